"""Territory and income rules that are independent from HTTP and DB.

Rule of thumb:
- OK: costs, income math, week bucketing, pure transformations.
- Not OK: touching DB sessions, Redis, FastAPI, datetime.now(), etc.
"""

from datetime import date, datetime, timedelta, timezone

CAPTURE_COST = 10
FORTIFY_COST_STEP = 20
INCOME_PER_NODE_PER_MINUTE = 1


def fortify_cost(fortify_lvl: int) -> int:
    """Cost to raise a node from fortify_lvl to fortify_lvl + 1."""
    if fortify_lvl < 0:
        raise ValueError("fortify_lvl must be >= 0")
    return (fortify_lvl + 1) * FORTIFY_COST_STEP


def to_naive_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


def elapsed_minutes(now: datetime, last_income_at: datetime) -> int:
    """Whole minutes between two instants; negative spans count as zero."""
    seconds = (to_naive_utc(now) - to_naive_utc(last_income_at)).total_seconds()
    if seconds <= 0:
        return 0
    return int(seconds // 60)


def income_for(owned_node_count: int, minutes: int) -> int:
    return owned_node_count * minutes * INCOME_PER_NODE_PER_MINUTE


def week_start(now: datetime) -> date:
    """Most recent Sunday (UTC) on or before now."""
    today = to_naive_utc(now).date()
    # date.weekday(): Monday == 0 ... Sunday == 6
    return today - timedelta(days=(today.weekday() + 1) % 7)
