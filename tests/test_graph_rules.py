from datetime import date, datetime, timedelta, timezone

import pytest

from nodewar.domain.graph_rules import (
    CAPTURE_COST,
    elapsed_minutes,
    fortify_cost,
    income_for,
    week_start,
)


def test_capture_cost_is_ten() -> None:
    assert CAPTURE_COST == 10


def test_fortify_cost_grows_by_twenty_per_level() -> None:
    assert [fortify_cost(lvl) for lvl in range(4)] == [20, 40, 60, 80]


def test_fortify_cost_rejects_negative_level() -> None:
    with pytest.raises(ValueError):
        fortify_cost(-1)


def test_elapsed_minutes_floors_partial_minutes() -> None:
    now = datetime(2026, 10, 21, 12, 0, 0)
    assert elapsed_minutes(now, now - timedelta(seconds=59)) == 0
    assert elapsed_minutes(now, now - timedelta(minutes=7, seconds=59)) == 7
    assert elapsed_minutes(now, now + timedelta(minutes=3)) == 0


def test_elapsed_minutes_accepts_aware_now() -> None:
    now = datetime(2026, 10, 21, 12, 0, 0, tzinfo=timezone.utc)
    assert elapsed_minutes(now, datetime(2026, 10, 21, 11, 55, 0)) == 5


def test_income_is_nodes_times_minutes() -> None:
    assert income_for(3, 7) == 21
    assert income_for(0, 30) == 0


@pytest.mark.parametrize(
    "moment, expected",
    [
        (datetime(2026, 10, 18, 0, 0, 0), date(2026, 10, 18)),  # Sunday midnight
        (datetime(2026, 10, 21, 12, 0, 0), date(2026, 10, 18)),  # Wednesday
        (datetime(2026, 10, 24, 23, 59, 59), date(2026, 10, 18)),  # Saturday
        (datetime(2026, 10, 25, 0, 0, 1), date(2026, 10, 25)),  # next Sunday
    ],
)
def test_week_start_is_previous_sunday(moment, expected) -> None:
    assert week_start(moment) == expected


def test_week_start_uses_utc_for_aware_times() -> None:
    # Sunday 01:00 in UTC+3 is still Saturday in UTC.
    moment = datetime(2026, 10, 25, 1, 0, 0, tzinfo=timezone(timedelta(hours=3)))
    assert week_start(moment) == date(2026, 10, 18)
