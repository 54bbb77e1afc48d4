import json
import re

import pytest

from services.errors import MissingRequiredParameter, UnknownQueryName
from services.predefined_queries import (
    PREDEFINED_QUERIES,
    PredefinedName,
    build_jql,
    list_queries,
    scope_to_project,
)

N = PredefinedName


def test_catalog_covers_every_name():
    assert set(PREDEFINED_QUERIES) == {name.value for name in PredefinedName}
    assert len(list_queries()) == len(PredefinedName)


def test_generic_query_is_scoped_with_order_by_outside():
    built = build_jql(N.OPEN_BUGS_IN_PROJECT, {"projectKey": "CRM"})
    assert built.jql == (
        "project = CRM AND (issuetype = Bug AND status not in (Done, Closed, Resolved)) ORDER BY created DESC"
    )


def test_generic_query_without_project():
    built = build_jql("critical_blocker_open_bugs")
    assert built.jql.startswith("issuetype = Bug AND priority in (Critical, Blocker)")
    assert "project =" not in built.jql


def test_templated_query_is_not_auto_scoped():
    built = build_jql(N.BUGS_NO_FIX_VERSION, {"projectKey": "CRM"})
    assert built.jql == "issuetype = Bug AND fixVersion IS EMPTY"


def test_component_literal_round_trips():
    built = build_jql("open_bugs_for_component", {"component": "Login", "projectKey": "CRM"})
    assert 'component = "Login"' in built.jql
    assert "statusCategory != Done" in built.jql
    literal = re.search(r'component = ("(?:[^"\\]|\\.)*")', built.jql).group(1)
    assert json.loads(literal) == "Login"
    assert built.params == {"component": "Login"}


def test_component_with_quotes_is_escaped_once():
    built = build_jql(N.OPEN_BUGS_FOR_COMPONENT, {"component": 'Say "hi"'})
    assert 'component = "Say \\"hi\\""' in built.jql


@pytest.mark.parametrize(
    "name,param",
    [
        (N.OPEN_BUGS_FOR_COMPONENT, "component"),
        (N.BUGS_AFFECTING_VERSION, "version"),
        (N.BUGS_LINKED_TO_ISSUE, "issueKey"),
        (N.OPEN_BUGS_ENV_CONTAINS, "text"),
        (N.ALL_ISSUES_IN_PROJECT, "projectKey"),
        (N.OPEN_ISSUES_IN_PROJECT, "projectKey"),
        (N.RECENTLY_RESOLVED_ISSUES_14D, "projectKey"),
        (N.RECENTLY_DONE_ISSUES_14D, "projectKey"),
        (N.BUGS_IN_UNRELEASED_VERSIONS, "projectKey"),
        (N.BUGS_TARGETED_NEXT_UNRELEASED_VERSION, "projectKey"),
    ],
)
def test_missing_required_parameter(name, param):
    with pytest.raises(MissingRequiredParameter) as exc:
        build_jql(name, {})
    assert exc.value.param == param

    with pytest.raises(MissingRequiredParameter):
        build_jql(name, {param: "   "})


def test_unknown_query_name():
    with pytest.raises(UnknownQueryName):
        build_jql("no_such_query", {})


def test_linked_issue_with_link_type():
    built = build_jql(N.BUGS_LINKED_TO_ISSUE, {"issueKey": "ABC-123", "linkType": "is blocked by"})
    assert built.jql == 'issuetype = Bug AND issue IN linkedIssues("ABC-123", "is blocked by")'
    assert built.params == {"issueKey": "ABC-123", "linkType": "is blocked by"}


def test_linked_issue_without_link_type():
    built = build_jql(N.BUGS_LINKED_TO_ISSUE, {"issueKey": "ABC-123"})
    assert built.jql == 'issuetype = Bug AND issue IN linkedIssues("ABC-123")'


def test_resolved_anytime_optional_project():
    assert build_jql(N.RESOLVED_BUGS_ANYTIME).jql.startswith("issuetype = Bug AND (resolution IS NOT EMPTY")
    assert build_jql(N.RESOLVED_BUGS_ANYTIME, {"projectKey": "CRM"}).jql.startswith(
        "project = CRM AND issuetype = Bug AND (resolution IS NOT EMPTY OR statusCategory = Done)"
    )


def test_regression_label_default_and_override():
    assert 'labels = "regression"' in build_jql(N.REGRESSION_BUGS_LAST_30D).jql
    built = build_jql(N.REGRESSION_BUGS_LAST_30D, {"label": "hotfix"})
    assert 'labels = "hotfix"' in built.jql
    assert built.params == {"label": "hotfix"}


def test_project_templates():
    assert build_jql(N.ALL_ISSUES_IN_PROJECT, {"projectKey": "AW"}).jql == "project = AW ORDER BY created DESC"
    assert build_jql(N.BUGS_IN_UNRELEASED_VERSIONS, {"projectKey": "AW"}).jql == (
        "project = AW AND issuetype = Bug AND fixVersion IN unreleasedVersions(AW)"
    )
    assert build_jql(N.RECENTLY_RESOLVED_ISSUES_14D, {"projectKey": "AW"}).jql == (
        "project = AW AND resolutiondate >= -14d ORDER BY resolutiondate DESC"
    )


def test_env_contains():
    built = build_jql(N.OPEN_BUGS_ENV_CONTAINS, {"text": "iOS", "envTerm": "iOS"})
    assert built.jql == 'issuetype = Bug AND statusCategory != Done AND environment ~ "iOS"'
    assert built.params == {"text": "iOS"}


def test_scope_to_project_variants():
    assert scope_to_project("a = 1", "X") == "project = X AND (a = 1)"
    assert scope_to_project("ORDER BY created DESC", "X") == "project = X ORDER BY created DESC"
    assert scope_to_project("a = 1 order by b", "X") == "project = X AND (a = 1) order by b"


def test_no_empty_substitution_ever_rendered():
    for name, query in PREDEFINED_QUERIES.items():
        params = {p: "VAL" for p in query.required}
        jql = build_jql(name, params).jql
        assert '""' not in jql
        assert "None" not in jql
        for param in query.required:
            if param != "projectKey":
                assert '"VAL"' in jql
