from datetime import datetime, timezone

import pytest

from services.jql_builder import jql_for_bugs, jql_for_open, jql_for_resolved, jql_for_stats, nlq_to_jql
from utils.time_windows import from_window, now_iso, replace_relative_days

NOW = datetime(2025, 8, 31, 12, 0, tzinfo=timezone.utc)


def test_from_window_is_calendar_exact():
    assert from_window("6m", NOW) == "2025-02-28T12:00:00+00:00"
    assert from_window("1y", NOW) == "2024-08-31T12:00:00+00:00"
    assert from_window("12m", NOW) == from_window("1y", NOW)
    assert from_window("90d", NOW) == "2025-05-31T12:00:00+00:00"
    assert from_window("30d", NOW) == "2025-07-31T12:00:00+00:00"
    assert from_window("all", NOW) is None


def test_from_window_rejects_unknown():
    with pytest.raises(ValueError):
        from_window("2w", NOW)


def test_now_iso():
    assert now_iso(NOW) == "2025-08-31T12:00:00+00:00"


def test_window_jql_helpers():
    assert jql_for_bugs("CRM", "6m", NOW) == 'project = CRM AND issuetype = Bug AND created >= "2025-02-28T12:00:00+00:00"'
    assert jql_for_resolved("CRM", "all", NOW) == "project = CRM AND resolutiondate IS NOT EMPTY"
    assert jql_for_open("CRM", "1y", NOW).startswith("project = CRM AND statusCategory != Done AND created >= ")


def test_stats_kinds():
    assert jql_for_stats("bugs-6m", "AW").startswith("project = AW AND issuetype = Bug AND created >= ")
    assert jql_for_stats("resolved-1y", "AW").startswith("project = AW AND resolutiondate IS NOT EMPTY AND resolved >= ")


@pytest.mark.parametrize(
    "nlq,prefix",
    [
        ("bugs in the last 6 months", "project = CRM AND issuetype = Bug AND created >= "),
        ("closed in the last year", "project = CRM AND resolutiondate IS NOT EMPTY AND resolved >= "),
        ("Resolved last 12 months", "project = CRM AND resolutiondate IS NOT EMPTY AND resolved >= "),
        ("bugs still open", "project = CRM AND statusCategory != Done AND created >= "),
    ],
)
def test_keyword_mapper(nlq, prefix):
    assert nlq_to_jql(nlq, "CRM").startswith(prefix)


def test_keyword_mapper_fallback():
    assert nlq_to_jql("something else", "CRM") == "project = CRM"


def test_replace_relative_days():
    assert replace_relative_days("updated >= -14d AND created >= -90d", 30) == "updated >= -30d AND created >= -90d"
    assert replace_relative_days("created >= -90d AND updated >= -14d", 30, only=14) == "created >= -90d AND updated >= -30d"
    assert replace_relative_days("created >= -6m", 30) == "created >= -6m"
