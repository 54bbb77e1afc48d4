from unittest.mock import MagicMock, patch

import pytest
import requests

from services.config import Settings
from services.errors import RemoteServiceFailure
from services.field_mapping import SEARCH_FIELDS
from services.jira_client import JiraClient


def response(status_code=200, payload=None, reason="OK"):
    resp = MagicMock()
    resp.status_code = status_code
    resp.reason = reason
    resp.text = str(payload)
    if isinstance(payload, Exception):
        resp.json.side_effect = payload
    else:
        resp.json.return_value = payload
    return resp


@pytest.fixture
def client():
    return JiraClient("https://example.atlassian.net/", "bot@example.com", "token", timeout=5)


def test_search_posts_jql(client):
    with patch("services.jira_client.requests.request") as request:
        request.return_value = response(payload={"total": 1, "issues": [{"key": "CRM-1"}]})
        page = client.search("project = CRM", 10, 20)

    assert page == {"total": 1, "issues": [{"key": "CRM-1"}]}
    method, url = request.call_args.args
    assert method == "POST"
    assert url == "https://example.atlassian.net/rest/api/3/search"
    body = request.call_args.kwargs["json"]
    assert body["jql"] == "project = CRM"
    assert body["startAt"] == 10
    assert body["maxResults"] == 20
    assert "summary" in body["fields"]
    assert request.call_args.kwargs["headers"]["Authorization"].startswith("Basic ")
    assert request.call_args.kwargs["timeout"] == 5


def test_count_uses_zero_max_results(client):
    with patch("services.jira_client.requests.request") as request:
        request.return_value = response(payload={"total": 42, "issues": []})
        assert client.count("project = CRM") == 42
    assert request.call_args.kwargs["json"] == {"jql": "project = CRM", "maxResults": 0, "fields": []}


def test_get_issue_quotes_key(client):
    with patch("services.jira_client.requests.request") as request:
        request.return_value = response(payload={"key": "CRM-7", "fields": {}})
        assert client.get_issue("CRM-7")["key"] == "CRM-7"
    method, url = request.call_args.args
    assert method == "GET"
    assert url.endswith("/rest/api/3/issue/CRM-7")


def test_jira_error_messages_are_surfaced(client):
    payload = {"errorMessages": ["The value 'NOPE' does not exist for the field 'project'."], "errors": {}}
    with patch("services.jira_client.requests.request") as request:
        request.return_value = response(400, payload, reason="Bad Request")
        with pytest.raises(RemoteServiceFailure) as exc:
            client.search("project = NOPE")

    assert exc.value.status_code == 400
    assert "does not exist for the field 'project'" in str(exc.value)


def test_generic_message_when_body_is_not_json(client):
    with patch("services.jira_client.requests.request") as request:
        request.return_value = response(503, ValueError("no json"), reason="Service Unavailable")
        with pytest.raises(RemoteServiceFailure) as exc:
            client.count("project = CRM")
    assert str(exc.value) == "Jira API error: 503 Service Unavailable"


def test_unreachable_service(client):
    with patch("services.jira_client.requests.request", side_effect=requests.ConnectionError("refused")):
        with pytest.raises(RemoteServiceFailure) as exc:
            client.search("project = CRM")
    assert "refused" in str(exc.value)
    assert exc.value.status_code is None


def test_from_settings_requires_credentials():
    with pytest.raises(RuntimeError) as exc:
        JiraClient.from_settings(Settings(jira_base_url="https://x"))
    assert "JIRA_EMAIL" in str(exc.value)
    assert "JIRA_BASE_URL" not in str(exc.value)


def test_browse_url_strips_trailing_slash(client):
    assert client.browse_url("CRM-1") == "https://example.atlassian.net/browse/CRM-1"


def test_non_json_success_body_is_a_remote_failure(client):
    with patch("services.jira_client.requests.request") as request:
        request.return_value = response(200, ValueError("Expecting value"))
        with pytest.raises(RemoteServiceFailure) as exc:
            client.search("project = CRM")
    assert str(exc.value) == "Jira API error: invalid JSON response"
    assert exc.value.status_code == 200


def test_search_requests_display_fields(client):
    with patch("services.jira_client.requests.request") as request:
        request.return_value = response(payload={"total": 0, "issues": []})
        client.search("project = CRM")
    assert request.call_args.kwargs["json"]["fields"] == SEARCH_FIELDS
