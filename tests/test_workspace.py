"""Tests for eggfocus/workspace.py and eggfocus/fileio.py — paths, time and storage."""

import logging
import os

from eggfocus.fileio import read_json, read_yaml, write_json_atomic, write_yaml_atomic
from eggfocus.workspace import configure_logging, ledger_path, local_timezone, settings_path, workspace_root


def test_workspace_root_from_env(workspace):
    assert workspace_root() == workspace.resolve()
    assert settings_path() == workspace.resolve() / "settings.yaml"
    assert ledger_path(workspace) == workspace / "ledger.json"


def test_local_timezone(monkeypatch):
    monkeypatch.setenv("EGGFOCUS_TZ", "Asia/Shanghai")
    assert local_timezone().key == "Asia/Shanghai"
    monkeypatch.setenv("EGGFOCUS_TZ", "Not/AZone")
    assert local_timezone().key == "UTC"
    monkeypatch.delenv("EGGFOCUS_TZ")
    assert local_timezone().key == "UTC"


def test_read_missing_files(tmp_path):
    assert read_json(tmp_path / "missing.json") == {}
    assert read_yaml(tmp_path / "missing.yaml") == {}


def test_read_json_non_object(tmp_path):
    path = tmp_path / "list.json"
    path.write_text("[1, 2]", encoding="utf-8")
    assert read_json(path) == {}


def test_atomic_writes_leave_no_temp_files(tmp_path):
    write_json_atomic(tmp_path / "data" / "ledger.json", {"balance": 3})
    write_yaml_atomic(tmp_path / "data" / "settings.yaml", {"restDuration": 60})
    assert read_json(tmp_path / "data" / "ledger.json") == {"balance": 3}
    assert read_yaml(tmp_path / "data" / "settings.yaml") == {"restDuration": 60}
    assert not [p for p in os.listdir(tmp_path / "data") if p.startswith(".tmp_")]


def test_configure_logging_writes_log_file(tmp_path):
    root_logger = logging.getLogger()
    saved_handlers, saved_level = root_logger.handlers[:], root_logger.level
    try:
        configure_logging(tmp_path, level="debug")
        logging.getLogger("eggfocus.test").debug("hello log")
        for handler in root_logger.handlers:
            handler.flush()
        assert "hello log" in (tmp_path / "eggfocus.log").read_text(encoding="utf-8")
        assert root_logger.level == logging.DEBUG
    finally:
        for handler in root_logger.handlers:
            handler.close()
        root_logger.handlers = saved_handlers
        root_logger.setLevel(saved_level)
