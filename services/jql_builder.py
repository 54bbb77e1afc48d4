from datetime import datetime
from typing import Optional

from utils.time_windows import from_window


def _time_clause(field: str, win: str, now: Optional[datetime]) -> str:
    start = from_window(win, now)
    return f' AND {field} >= "{start}"' if start else ""


def jql_for_bugs(project_key: str, win: str = "6m", now: Optional[datetime] = None) -> str:
    return f"project = {project_key} AND issuetype = Bug{_time_clause('created', win, now)}"


def jql_for_resolved(project_key: str, win: str = "1y", now: Optional[datetime] = None) -> str:
    return f"project = {project_key} AND resolutiondate IS NOT EMPTY{_time_clause('resolved', win, now)}"


def jql_for_open(project_key: str, win: str = "1y", now: Optional[datetime] = None) -> str:
    return f"project = {project_key} AND statusCategory != Done{_time_clause('created', win, now)}"


STATS_BUILDERS = {
    "bugs-6m": (jql_for_bugs, "6m"),
    "resolved-1y": (jql_for_resolved, "1y"),
    "open-1y": (jql_for_open, "1y"),
}


def jql_for_stats(kind: str, project_key: str) -> str:
    builder, win = STATS_BUILDERS[kind]
    return builder(project_key, win)


def nlq_to_jql(nlq: str, project_key: str) -> str:
    """Keyword mapper used when no predefined query matches the prompt."""
    q = nlq.lower()

    if "last 6 months" in q and "bug" in q:
        return jql_for_bugs(project_key, "6m")
    if any(p in q for p in ("last 1 year", "last year", "last 12 months")) and (
        "resolved" in q or "closed" in q
    ):
        return jql_for_resolved(project_key, "1y")
    if "open bugs" in q or ("bugs" in q and "open" in q):
        return jql_for_open(project_key, "1y")

    return f"project = {project_key}"
