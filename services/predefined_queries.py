import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional

from pydantic import BaseModel

from services.errors import MissingRequiredParameter, UnknownQueryName

NOT_DONE = "status not in (Done, Closed, Resolved)"


class PredefinedName(str, Enum):
    BUGS_CREATED_LAST_6_MONTHS = "bugs_created_last_6_months"
    BUGS_RESOLVED_LAST_12_MONTHS = "bugs_resolved_last_12_months"
    OPEN_BUGS_IN_PROJECT = "open_bugs_in_project"
    OPEN_BUGS_ANY_PROJECT = "open_bugs_any_project"
    OPEN_ISSUES_IN_PROJECT = "open_issues_in_project"
    OPEN_ISSUES_ANY_PROJECT = "open_issues_any_project"
    UNASSIGNED_OPEN_BUGS = "unassigned_open_bugs"
    MY_OPEN_BUGS = "my_open_bugs"
    CRITICAL_BLOCKER_OPEN_BUGS = "critical_blocker_open_bugs"
    BUGS_CREATED_LAST_WEEK = "bugs_created_last_week"
    BUGS_RESOLVED_LAST_WEEK = "bugs_resolved_last_week"
    RESOLVED_BUGS_THIS_WEEK = "resolved_bugs_this_week"
    NEW_BUGS_TODAY = "new_bugs_today"
    BUGS_RESOLVED_LAST_24H = "bugs_resolved_last_24h"
    STALE_OPEN_BUGS_14D = "stale_open_bugs_14d"
    AGING_OLDEST_OPEN_BUGS = "aging_oldest_open_bugs"
    REGRESSION_BUGS_LAST_30D = "regression_bugs_last_30d"
    OPEN_BUGS_FOR_COMPONENT = "open_bugs_for_component"
    BUGS_IN_UNRELEASED_VERSIONS = "bugs_in_unreleased_versions"
    BUGS_AFFECTING_VERSION = "bugs_affecting_version"
    BUGS_IN_OPEN_SPRINTS = "bugs_in_open_sprints"
    REOPENED_BUGS_LAST_30D = "reopened_bugs_last_30d"
    DUPLICATES_LAST_90D = "duplicates_last_90d"
    BUGS_NO_FIX_VERSION = "bugs_no_fix_version"
    BUGS_LINKED_TO_ISSUE = "bugs_linked_to_issue"
    ALL_ISSUES_IN_PROJECT = "all_issues_in_project"
    RECENTLY_RESOLVED_ISSUES_14D = "recently_resolved_issues_14d"
    OPEN_BUGS_BY_PRIORITY = "open_bugs_by_priority"
    BUGS_TARGETED_NEXT_UNRELEASED_VERSION = "bugs_targeted_next_unreleased_version"
    REOPENED_WITHOUT_REOPENED_STEP_30D = "reopened_without_reopened_step_30d"
    OPEN_BUGS_ENV_CONTAINS = "open_bugs_env_contains"
    RECENTLY_DONE_ISSUES_14D = "recently_done_issues_14d"
    RESOLVED_BUGS_ANYTIME = "resolved_bugs_anytime"


@dataclass(frozen=True)
class PredefinedQuery:
    """One catalog entry.

    ``generic`` entries render a base fragment that the builder scopes to a
    project when a key is supplied; ``templated`` entries render the final JQL
    themselves and decide on their own project clause.
    """

    name: str
    description: str
    kind: str
    render: Callable[[Dict[str, str]], str]
    required: tuple = ()
    optional: tuple = ()


class BuiltQuery(BaseModel):
    name: str
    jql: str
    params: Dict[str, str] = {}


def quote(value: str) -> str:
    """JQL string literal for ``value``."""
    return json.dumps(value, ensure_ascii=False)


def scope_to_project(jql: str, project_key: str) -> str:
    """``project = KEY AND (where)`` keeping a trailing ORDER BY outside the parens."""
    upper = jql.upper()
    if upper.startswith("ORDER BY "):
        return f"project = {project_key} {jql}"
    order_at = upper.find(" ORDER BY ")
    if order_at > 0:
        return f"project = {project_key} AND ({jql[:order_at]}){jql[order_at:]}"
    return f"project = {project_key} AND ({jql})"


def _generic(name: PredefinedName, description: str, fragment: str) -> PredefinedQuery:
    return PredefinedQuery(name.value, description, "generic", lambda p: fragment)


def _templated(
    name: PredefinedName,
    description: str,
    render: Callable[[Dict[str, str]], str],
    required: tuple = (),
    optional: tuple = (),
) -> PredefinedQuery:
    return PredefinedQuery(name.value, description, "templated", render, required, optional)


def _resolved_anytime(p: Dict[str, str]) -> str:
    core = (
        "issuetype = Bug AND (resolution IS NOT EMPTY OR statusCategory = Done) "
        "ORDER BY resolutiondate DESC, updated DESC"
    )
    return f"project = {p['projectKey']} AND {core}" if p.get("projectKey") else core


def _linked_to_issue(p: Dict[str, str]) -> str:
    if p.get("linkType"):
        return f"issuetype = Bug AND issue IN linkedIssues({quote(p['issueKey'])}, {quote(p['linkType'])})"
    return f"issuetype = Bug AND issue IN linkedIssues({quote(p['issueKey'])})"


N = PredefinedName

_ENTRIES = [
    _generic(N.BUGS_CREATED_LAST_6_MONTHS, "Bugs created in the last 6 months",
             "issuetype = Bug AND created >= -6m ORDER BY created DESC"),
    _generic(N.BUGS_RESOLVED_LAST_12_MONTHS, "Bugs resolved in the last 12 months",
             "issuetype = Bug AND resolutiondate >= -12m ORDER BY resolutiondate DESC"),
    _generic(N.OPEN_BUGS_IN_PROJECT, "Open bugs in project",
             f"issuetype = Bug AND {NOT_DONE} ORDER BY created DESC"),
    _generic(N.OPEN_BUGS_ANY_PROJECT, "Open bugs in any project",
             f"issuetype = Bug AND {NOT_DONE} ORDER BY created DESC"),
    _templated(N.OPEN_ISSUES_IN_PROJECT, "Open issues in project",
               lambda p: f"project = {p['projectKey']} AND statusCategory != Done ORDER BY created DESC",
               required=("projectKey",)),
    _generic(N.OPEN_ISSUES_ANY_PROJECT, "Open issues in any project",
             "statusCategory != Done ORDER BY created DESC"),
    _generic(N.UNASSIGNED_OPEN_BUGS, "Unassigned open bugs",
             f"issuetype = Bug AND assignee is EMPTY AND {NOT_DONE} ORDER BY created DESC"),
    _generic(N.MY_OPEN_BUGS, "My open bugs",
             f"issuetype = Bug AND assignee = currentUser() AND {NOT_DONE} ORDER BY updated DESC"),
    _generic(N.CRITICAL_BLOCKER_OPEN_BUGS, "Critical/Blocker open bugs",
             f"issuetype = Bug AND priority in (Critical, Blocker) AND {NOT_DONE} ORDER BY created DESC"),
    _templated(N.BUGS_CREATED_LAST_WEEK, "Bugs created in the last week",
               lambda p: "issuetype = Bug AND created >= startOfWeek(-1) AND created < startOfWeek()"),
    _templated(N.BUGS_RESOLVED_LAST_WEEK, "Bugs resolved in the last week",
               lambda p: "issuetype = Bug AND resolutiondate >= startOfWeek(-1) AND resolutiondate < startOfWeek()"),
    _generic(N.RESOLVED_BUGS_THIS_WEEK, "Bugs resolved this week",
             "issuetype = Bug AND resolutiondate >= startOfWeek() ORDER BY resolutiondate DESC"),
    _templated(N.NEW_BUGS_TODAY, "New bugs created today",
               lambda p: "issuetype = Bug AND created >= startOfDay()"),
    _templated(N.BUGS_RESOLVED_LAST_24H, "Bugs resolved in the last 24 hours",
               lambda p: "issuetype = Bug AND resolutiondate >= -1d"),
    _templated(N.STALE_OPEN_BUGS_14D, "Stale open bugs (no updates in 14 days)",
               lambda p: "issuetype = Bug AND statusCategory != Done AND updated <= -14d"),
    _templated(N.AGING_OLDEST_OPEN_BUGS, "Oldest open bugs",
               lambda p: "issuetype = Bug AND statusCategory != Done ORDER BY created ASC"),
    _templated(N.REGRESSION_BUGS_LAST_30D, "Regression bugs in the last 30 days",
               lambda p: f"issuetype = Bug AND labels = {quote(p.get('label') or 'regression')} AND created >= -30d",
               optional=("label",)),
    _templated(N.OPEN_BUGS_FOR_COMPONENT, "Open bugs for a specific component",
               lambda p: f"issuetype = Bug AND component = {quote(p['component'])} AND statusCategory != Done",
               required=("component",)),
    _templated(N.BUGS_IN_UNRELEASED_VERSIONS, "Bugs in unreleased versions",
               lambda p: (f"project = {p['projectKey']} AND issuetype = Bug "
                          f"AND fixVersion IN unreleasedVersions({p['projectKey']})"),
               required=("projectKey",)),
    _templated(N.BUGS_AFFECTING_VERSION, "Bugs affecting a specific version",
               lambda p: f"issuetype = Bug AND affectedVersion = {quote(p['version'])}",
               required=("version",)),
    _templated(N.BUGS_IN_OPEN_SPRINTS, "Bugs in open sprints",
               lambda p: "issuetype = Bug AND Sprint IN openSprints()"),
    _templated(N.REOPENED_BUGS_LAST_30D, "Reopened bugs in the last 30 days",
               lambda p: 'issuetype = Bug AND status CHANGED TO "Reopened" AFTER -30d'),
    _templated(N.DUPLICATES_LAST_90D, "Duplicate bugs in the last 90 days",
               lambda p: "issuetype = Bug AND resolution = Duplicate AND resolutiondate >= -90d"),
    _templated(N.BUGS_NO_FIX_VERSION, "Bugs without a fix version",
               lambda p: "issuetype = Bug AND fixVersion IS EMPTY"),
    _templated(N.BUGS_LINKED_TO_ISSUE, "Bugs linked to a specific issue", _linked_to_issue,
               required=("issueKey",), optional=("linkType",)),
    _templated(N.ALL_ISSUES_IN_PROJECT, "All issues in project",
               lambda p: f"project = {p['projectKey']} ORDER BY created DESC",
               required=("projectKey",)),
    _templated(N.RECENTLY_RESOLVED_ISSUES_14D, "Issues resolved in the last 14 days",
               lambda p: f"project = {p['projectKey']} AND resolutiondate >= -14d ORDER BY resolutiondate DESC",
               required=("projectKey",)),
    _templated(N.OPEN_BUGS_BY_PRIORITY, "Open bugs grouped by priority",
               lambda p: "issuetype = Bug AND statusCategory != Done ORDER BY priority DESC, created DESC"),
    _templated(N.BUGS_TARGETED_NEXT_UNRELEASED_VERSION, "Bugs targeted for next unreleased version",
               lambda p: (f"project = {p['projectKey']} AND issuetype = Bug "
                          f"AND fixVersion = earliestUnreleasedVersion({p['projectKey']})"),
               required=("projectKey",)),
    _templated(N.REOPENED_WITHOUT_REOPENED_STEP_30D,
               "Bugs reopened without a Reopened status in the last 30 days",
               lambda p: 'issuetype = Bug AND status WAS "Done" AND statusCategory != Done AND updated >= -30d'),
    _templated(N.OPEN_BUGS_ENV_CONTAINS, "Open bugs with environment containing text",
               lambda p: f"issuetype = Bug AND statusCategory != Done AND environment ~ {quote(p['text'])}",
               required=("text",)),
    _templated(N.RECENTLY_DONE_ISSUES_14D, "Issues marked as done in the last 14 days",
               lambda p: f"project = {p['projectKey']} AND statusCategory = Done AND updated >= -14d ORDER BY updated DESC",
               required=("projectKey",)),
    _templated(N.RESOLVED_BUGS_ANYTIME, "All resolved bugs (anytime)", _resolved_anytime,
               optional=("projectKey",)),
]

PREDEFINED_QUERIES: Dict[str, PredefinedQuery] = {entry.name: entry for entry in _ENTRIES}


def get_query(name) -> PredefinedQuery:
    key = getattr(name, "value", name)
    query = PREDEFINED_QUERIES.get(key)
    if query is None:
        raise UnknownQueryName(str(key))
    return query


def list_queries() -> List[dict]:
    return [
        {
            "name": q.name,
            "description": q.description,
            "required": list(q.required),
            "optional": list(q.optional),
            "projectScoped": q.kind == "generic" or "projectKey" in q.required,
        }
        for q in PREDEFINED_QUERIES.values()
    ]


def build_jql(name, params: Optional[Dict[str, str]] = None) -> BuiltQuery:
    """Render the final JQL for a predefined query.

    Blank values count as absent, so a required parameter is never substituted
    as an empty literal.
    """
    query = get_query(name)
    given = {k: str(v).strip() for k, v in (params or {}).items() if v is not None and str(v).strip()}

    for param in query.required:
        if param not in given:
            raise MissingRequiredParameter(query.name, param)

    jql = query.render(given)
    if query.kind == "generic" and given.get("projectKey"):
        jql = scope_to_project(jql, given["projectKey"])

    used = {k: given[k] for k in query.required + query.optional if k in given and k != "projectKey"}
    logging.debug(f"Built {query.name}: {jql}")
    return BuiltQuery(name=query.name, jql=jql, params=used)
