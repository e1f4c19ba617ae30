"""Shared test fixtures for EggFocus tests."""

from __future__ import annotations

import asyncio
import os
import random
from pathlib import Path

import pytest
import yaml


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Create a temporary data root with default settings."""
    root = tmp_path / "eggfocus"
    root.mkdir(parents=True)

    settings = {
        "taskOptions": [10, 20, 30, 40],
        "restDuration": 180,
        "timerOverride": 10,
    }
    (root / "settings.yaml").write_text(
        yaml.dump(settings, default_flow_style=False, sort_keys=False), encoding="utf-8"
    )

    os.environ["EGGFOCUS_ROOT"] = str(root)
    yield root
    if "EGGFOCUS_ROOT" in os.environ:
        del os.environ["EGGFOCUS_ROOT"]


@pytest.fixture
def loop():
    """A private event loop, so prompt futures can be created outside async code."""
    event_loop = asyncio.new_event_loop()
    yield event_loop
    event_loop.close()


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)
