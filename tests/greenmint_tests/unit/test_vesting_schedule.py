"""
Vesting schedule math.

Stage boundaries, cumulative percentages, the over-sum cap and the
remainder released once the schedule is exhausted.
"""

import pytest

from greenmint.blockchain.vesting_schedule import VestingSchedule
from greenmint.core.ledger_exceptions import ConstructionError

START = 1_000_000


@pytest.fixture
def schedule():
    return VestingSchedule.create([3000, 2000, 5000], 150, START)


def test_stage_at_boundaries(schedule):
    assert schedule.stage_at(START - 1) is None
    assert schedule.stage_at(START) == 0
    assert schedule.stage_at(START + 149) == 0
    assert schedule.stage_at(START + 150) == 1
    assert schedule.stage_at(START + 10_000) == 66


def test_cumulative_basis_points(schedule):
    assert schedule.cumulative_basis_points(START - 1) == 0
    assert schedule.cumulative_basis_points(START) == 3000
    assert schedule.cumulative_basis_points(START + 150) == 5000
    assert schedule.cumulative_basis_points(START + 300) == 10000
    assert schedule.cumulative_basis_points(START + 10**9) == 10000


def test_vested_amount_is_floored():
    schedule = VestingSchedule.create([3333], 10, 0)
    assert schedule.vested_amount(100, 0) == 33
    assert schedule.vested_amount(100, 10) == 100


def test_remainder_released_after_last_stage():
    schedule = VestingSchedule.create([3000], 150, START)
    assert schedule.vested_amount(100000, START) == 30000
    assert schedule.vested_amount(100000, START + 149) == 30000
    assert schedule.vested_amount(100000, START + 150) == 100000


def test_over_sum_is_capped(caplog):
    with caplog.at_level("WARNING"):
        schedule = VestingSchedule.create([6000, 6000], 10, START)
    assert "capped" in caplog.text
    assert schedule.vested_amount(1000, START) == 600
    assert schedule.vested_amount(1000, START + 10) == 1000
    assert schedule.vested_amount(1000, START + 20) == 1000


def test_monotonic_in_time(schedule):
    amounts = [schedule.vested_amount(100000, t) for t in range(START - 10, START + 600, 7)]
    assert amounts == sorted(amounts)


@pytest.mark.parametrize(
    "percents, duration, start",
    [
        ([], 150, START),
        ([10001], 150, START),
        ([-1], 150, START),
        ([1000], 0, START),
        ([1000], -5, START),
        ([1000], 150, -1),
        ([1000.5], 150, START),
    ],
)
def test_invalid_parameters(percents, duration, start):
    with pytest.raises(ConstructionError):
        VestingSchedule.create(percents, duration, start)


def test_unlock_timestamps(schedule):
    assert schedule.unlock_timestamps() == [START, START + 150, START + 300, START + 450]


def test_release_plan(schedule):
    plan = schedule.release_plan(100000)
    assert [entry["cumulative_amount"] for entry in plan] == [30000, 50000, 100000, 100000]
    assert [entry["basis_points"] for entry in plan] == [3000, 2000, 5000, 0]
    assert plan[-1]["remainder"] is True
    assert not any(entry["remainder"] for entry in plan[:-1])


def test_release_plan_remainder_basis_points():
    plan = VestingSchedule.create([3000, 2000], 10, 0).release_plan(1000)
    assert plan[-1]["basis_points"] == 5000
    assert plan[-1]["cumulative_amount"] == 1000
