"""Tests for eggfocus/scheduler.py — round planning and session flow."""

import random
from datetime import datetime, timezone

import pytest

from eggfocus.models import CLOSED, REST, REST_FINISHED, ROUND_STARTED, SETTLEMENT
from eggfocus.rewards import RewardCalculator
from eggfocus.scheduler import (
    PHASE_IDLE,
    PHASE_REST,
    PHASE_ROUND,
    PHASE_SETTLEMENT,
    SessionScheduler,
    minutes_to_seconds,
    plan_rounds,
)
from eggfocus.timer import TimerEngine

FIXED_NOW = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def _scheduler(rest_seconds: int = 5, seed: int = 42) -> SessionScheduler:
    return SessionScheduler(
        TimerEngine("focus"),
        RewardCalculator(random.Random(seed)),
        rest_timer=TimerEngine("rest"),
        rest_duration_seconds=rest_seconds,
        clock=lambda: FIXED_NOW,
    )


def _run_round(sched: SessionScheduler):
    """Tick until the current round ends; return the closing transition."""
    for _ in range(10_000):
        transition = sched.tick()
        if transition is not None:
            return transition
    raise AssertionError("round never finished")


# ── Plan arithmetic ───────────────────────────────────────────


def test_minutes_to_seconds_rounds_half_up():
    assert minutes_to_seconds(1) == 60
    assert minutes_to_seconds(0.4) == 24
    assert minutes_to_seconds(0.125) == 8  # 7.5 -> 8


@pytest.mark.parametrize("minutes", [0, -1, 0.001, float("nan"), float("inf")])
def test_minutes_to_seconds_rejects(minutes):
    with pytest.raises(ValueError):
        minutes_to_seconds(minutes)


@pytest.mark.parametrize("total,round_len,expected", [
    (60, 40, (2, 20)),
    (60, 60, (1, 60)),
    (60, 24, (3, 12)),
    (600, 600, (1, 600)),
    (10, 60, (1, 10)),
])
def test_plan_rounds_never_truncates(total, round_len, expected):
    rounds, last = plan_rounds(total, round_len)
    assert (rounds, last) == expected
    assert (rounds - 1) * round_len + last == total


def test_plan_rounds_invariant_sweep():
    for total in range(1, 200):
        for round_len in range(1, 70):
            rounds, last = plan_rounds(total, round_len)
            assert rounds == -(-total // round_len)
            assert 0 < last <= round_len
            assert (rounds - 1) * round_len + last == total


# ── Session flow ──────────────────────────────────────────────


def test_create_session_builds_plan():
    sched = _scheduler()
    transition = sched.create_session("Math", 1, 0.4)
    plan = sched.plan
    assert transition.kind == ROUND_STARTED
    assert plan.total_rounds == 3
    assert plan.round_durations() == [24, 24, 12]
    assert plan.current_round == 1
    assert plan.session_start_time == FIXED_NOW
    assert sched.phase == PHASE_ROUND
    assert sched.timer_state.time_left == 23


def test_create_session_requires_name():
    sched = _scheduler()
    with pytest.raises(ValueError):
        sched.create_session("   ", 10, 10)
    assert sched.phase == PHASE_IDLE


def test_math_session_end_to_end():
    sched = _scheduler()
    transitions = []
    sched.subscribe(transitions.append)
    sched.create_session("Math", 1, 0.4)

    first = _run_round(sched)
    assert first.kind == REST
    assert first.completed_rounds == 1
    assert sched.phase == PHASE_REST

    assert sched.start_next_round().kind == ROUND_STARTED
    assert _run_round(sched).kind == REST
    sched.start_next_round()

    last = _run_round(sched)
    assert last.kind == SETTLEMENT
    assert last.completed_rounds == 3
    assert last.base_coins == 5
    assert last.bonus_coins >= 1
    assert sched.phase == PHASE_SETTLEMENT
    assert sched.plan.total_focused_seconds == 57
    assert [t.kind for t in transitions] == [
        ROUND_STARTED, REST, ROUND_STARTED, REST, ROUND_STARTED, SETTLEMENT,
    ]


def test_round_coins_sum_to_base():
    sched = _scheduler()
    sched.create_session("Reading", 2, 0.5)
    total = 0
    while True:
        t = _run_round(sched)
        total += t.round_coins
        if t.kind == SETTLEMENT:
            break
        sched.start_next_round()
    assert total == sched.rewards_state.base_coins


def test_accrual_is_monotonic_and_stops_when_paused():
    sched = _scheduler()
    sched.create_session("Writing", 1, 1)
    previous = 0
    for _ in range(10):
        sched.tick()
        coins = sched.rewards_state.base_coins
        assert coins >= previous
        previous = coins

    sched.timer.pause()
    focused = sched.plan.total_focused_seconds
    for _ in range(5):
        sched.tick()
    assert sched.plan.total_focused_seconds == focused
    sched.timer.resume()
    sched.tick()
    assert sched.plan.total_focused_seconds == focused + 1


def test_rest_countdown_reports_once():
    sched = _scheduler(rest_seconds=3)
    sched.create_session("Math", 1, 0.5)
    _run_round(sched)
    assert sched.rest_finished is False

    kinds = [sched.tick() for _ in range(5)]
    finished = [t for t in kinds if t is not None]
    assert len(finished) == 1
    assert finished[0].kind == REST_FINISHED
    assert sched.rest_finished is True
    assert sched.phase == PHASE_REST


def test_start_next_round_cancels_rest():
    sched = _scheduler(rest_seconds=60)
    sched.create_session("Math", 1, 0.5)
    _run_round(sched)
    sched.start_next_round()
    assert sched.rest_timer.is_open is False
    assert sched.plan.current_round == 2


def test_start_next_round_past_last_is_noop():
    sched = _scheduler()
    sched.create_session("Short", 0.5, 0.5)
    assert sched.start_next_round() is None
    assert sched.plan.current_round == 1


def test_finish_early_settles_with_earned_coins():
    sched = _scheduler()
    sched.create_session("Essay", 10, 10)
    for _ in range(30):
        sched.tick()
    transition = sched.finish_early()
    assert transition.kind == SETTLEMENT
    assert transition.base_coins == 3  # ceil(30 * 5 / 60)
    assert transition.bonus_coins == 1
    assert sched.phase == PHASE_SETTLEMENT
    assert sched.timer.is_active is False
    # Settled sessions ignore further ticks and a second finish
    assert sched.tick() is None
    assert sched.finish_early() is None


def test_finish_early_from_rest():
    sched = _scheduler()
    sched.create_session("Math", 1, 0.5)
    _run_round(sched)
    transition = sched.finish_early()
    assert transition.kind == SETTLEMENT
    assert transition.round_coins == 0
    assert sched.rest_timer.is_open is False


def test_cancel_forfeits_reward():
    sched = _scheduler()
    sched.create_session("Essay", 10, 10)
    for _ in range(60):
        sched.tick()
    transition = sched.cancel()
    assert transition.kind == CLOSED
    assert transition.forfeited is True
    assert transition.base_coins == 0
    assert sched.phase == PHASE_IDLE
    assert sched.plan.is_active is False
    assert sched.timer.is_open is False


def test_reset_after_settlement():
    sched = _scheduler()
    sched.create_session("Short", 0.5, 0.5)
    _run_round(sched)
    transition = sched.reset()
    assert transition.kind == CLOSED
    assert transition.forfeited is False
    assert sched.phase == PHASE_IDLE


def test_new_session_replaces_active_one(caplog):
    sched = _scheduler()
    sched.create_session("First", 10, 10)
    for _ in range(30):
        sched.tick()
    sched.create_session("Second", 10, 10)
    assert sched.plan.task_name == "Second"
    assert sched.plan.total_focused_seconds == 0
    assert sched.rewards_state.base_coins == 0
    assert "Replacing active session" in caplog.text


def test_listener_exception_does_not_break_flow(caplog):
    sched = _scheduler()

    def boom(_t):
        raise RuntimeError("listener broke")

    sched.subscribe(boom)
    transition = sched.create_session("Math", 1, 1)
    assert transition.kind == ROUND_STARTED
    assert sched.phase == PHASE_ROUND
    assert "Transition listener failed" in caplog.text


def test_plan_property_is_a_copy():
    sched = _scheduler()
    sched.create_session("Math", 1, 1)
    plan = sched.plan
    plan.current_round = 99
    assert sched.plan.current_round == 1


def test_snapshot_shape():
    sched = _scheduler()
    sched.create_session("Math", 1, 1)
    snap = sched.snapshot()
    assert snap["phase"] == PHASE_ROUND
    assert snap["plan"]["taskName"] == "Math"
    assert snap["timer"]["timeLeft"] == 59
    assert snap["rest"]["isOpen"] is False
    assert snap["rewards"]["baseCoins"] == 0


def test_complete_current_round_needs_exhausted_timer():
    sched = _scheduler()
    sched.create_session("Math", 1, 0.5)
    sched.tick()
    assert sched.complete_current_round() is None
    assert sched.phase == PHASE_ROUND
    assert sched.plan.completed_rounds == 0
    assert sched.timer.is_active is True


def test_session_number_increments():
    sched = _scheduler()
    assert sched.session_number == 0
    sched.create_session("Math", 1, 1)
    sched.create_session("Reading", 1, 1)
    assert sched.session_number == 2
