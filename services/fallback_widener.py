"""Zero-result widening for "recently resolved" prompts.

The ladder walks INITIAL -> DONE_STATUS_14D -> RESOLUTION_WINDOW_30D ->
DONE_STATUS_30D and stops at the first query that returns rows. Each step is a
single blocking search; failures from Jira propagate untouched.
"""
import logging
import re
from enum import Enum
from typing import Callable, Dict, List, Optional

from pydantic import BaseModel, Field

from services.predefined_queries import PredefinedName
from utils.time_windows import replace_relative_days

RECENTLY_RESOLVED_RES = (
    re.compile(r"\b(recent|recently)\s+(resolved|closed|fixed)\s+(issues|tickets|bugs)\b", re.I),
    re.compile(r"\brecently\s+(resolved|closed|fixed)\b", re.I),
)

Execute = Callable[[str], Dict]


class WidenState(str, Enum):
    INITIAL = "initial"
    DONE_STATUS_14D = "tryDoneStatus14d"
    RESOLUTION_WINDOW_30D = "tryResolutionWindow30d"
    DONE_STATUS_30D = "tryDoneStatus30d"
    TERMINAL = "terminal"


NEXT_STATE = {
    WidenState.INITIAL: WidenState.DONE_STATUS_14D,
    WidenState.DONE_STATUS_14D: WidenState.RESOLUTION_WINDOW_30D,
    WidenState.RESOLUTION_WINDOW_30D: WidenState.DONE_STATUS_30D,
    WidenState.DONE_STATUS_30D: WidenState.TERMINAL,
}

NOTES = {
    WidenState.INITIAL: "",
    WidenState.DONE_STATUS_14D: " (no resolved in last 14d; showing items moved to Done in last 14d)",
    WidenState.RESOLUTION_WINDOW_30D: " (no matches in last 14d; showing last 30d)",
    WidenState.DONE_STATUS_30D: " (no resolved in last 14d; showing items moved to Done in last 30d)",
}


class RetryAttempt(BaseModel):
    state: WidenState
    jql: str
    total: int
    issues: List[Dict] = Field(default_factory=list)
    note: str = ""


class WidenResult(BaseModel):
    final_jql: str
    total: int
    issues: List[Dict] = Field(default_factory=list)
    note: str = ""
    attempts: List[RetryAttempt] = Field(default_factory=list)


def done_status_jql(project_key: str, days: int) -> str:
    return f"project = {project_key} AND statusCategory = Done AND updated >= -{days}d ORDER BY updated DESC"


def is_recently_resolved_intent(prompt: str, matched_name=None) -> bool:
    if getattr(matched_name, "value", matched_name) == PredefinedName.RECENTLY_RESOLVED_ISSUES_14D.value:
        return True
    return any(pattern.search(prompt or "") for pattern in RECENTLY_RESOLVED_RES)


def _query_for(state: WidenState, initial_jql: str, project_key: str) -> str:
    if state is WidenState.INITIAL:
        return initial_jql
    if state is WidenState.DONE_STATUS_14D:
        return done_status_jql(project_key, 14)
    if state is WidenState.RESOLUTION_WINDOW_30D:
        return replace_relative_days(initial_jql, 30, only=14)
    return done_status_jql(project_key, 30)


def widen(
    initial_jql: str,
    execute: Execute,
    project_key: str,
    window_days: Optional[int] = None,
) -> WidenResult:
    """Run ``initial_jql`` and relax it step by step while it returns nothing.

    ``execute`` takes a JQL string and returns ``{"total", "issues"}``. With
    ``window_days`` the first ``-Nd`` token is replaced and no relaxation is
    attempted.
    """
    if window_days:
        jql = replace_relative_days(initial_jql, window_days)
        page = execute(jql)
        attempt = RetryAttempt(state=WidenState.INITIAL, jql=jql, total=page["total"], issues=page["issues"])
        return WidenResult(final_jql=jql, total=attempt.total, issues=attempt.issues, attempts=[attempt])

    attempts: List[RetryAttempt] = []
    state = WidenState.INITIAL
    while state is not WidenState.TERMINAL:
        jql = _query_for(state, initial_jql, project_key)
        page = execute(jql)
        attempt = RetryAttempt(state=state, jql=jql, total=page["total"], issues=page["issues"], note=NOTES[state])
        attempts.append(attempt)

        if attempt.total > 0:
            if state is not WidenState.INITIAL:
                logging.info(f"🔁 Widened '{initial_jql}' -> '{jql}'")
            return WidenResult(
                final_jql=jql, total=attempt.total, issues=attempt.issues, note=attempt.note, attempts=attempts
            )
        state = NEXT_STATE[state]

    logging.info(f"No results after {len(attempts)} attempts for '{initial_jql}'")
    first = attempts[0]
    return WidenResult(final_jql=first.jql, total=first.total, issues=first.issues, attempts=attempts)
