import re
from datetime import datetime, timezone
from typing import Literal, Optional

from dateutil.relativedelta import relativedelta

TimeWindow = Literal["6m", "12m", "1y", "90d", "30d", "all"]

WINDOW_OFFSETS = {
    "6m": relativedelta(months=6),
    "12m": relativedelta(years=1),
    "1y": relativedelta(years=1),
    "90d": relativedelta(months=3),
    "30d": relativedelta(months=1),
}

RELATIVE_DAYS_RE = re.compile(r"-(\d+)d\b")


def _now() -> datetime:
    return datetime.now(timezone.utc).astimezone()


def now_iso(now: Optional[datetime] = None) -> str:
    return (now or _now()).isoformat(timespec="seconds")


def from_window(win: str, now: Optional[datetime] = None) -> Optional[str]:
    """ISO-8601 timestamp for the start of ``win``; None for "all"."""
    if win == "all":
        return None
    if win not in WINDOW_OFFSETS:
        raise ValueError(f"Unknown time window: {win}")
    return ((now or _now()) - WINDOW_OFFSETS[win]).isoformat(timespec="seconds")


def replace_relative_days(jql: str, days: int, only: Optional[int] = None) -> str:
    """Rewrite the first ``-Nd`` token of ``jql`` to ``-{days}d``.

    When ``only`` is given, just a token with exactly that many days is rewritten.
    """
    pattern = RELATIVE_DAYS_RE if only is None else re.compile(rf"-{only}d\b")
    return pattern.sub(f"-{days}d", jql, count=1)
