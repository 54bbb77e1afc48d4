import pytest

from services.config import Settings

BASE_URL = "https://example.atlassian.net"


def make_issue(key, summary="Login fails", status="In Progress", assignee="Ada", reporter="Grace",
               priority="High", created="2025-01-02T10:00:00.000+0000", resolutiondate=None):
    return {
        "key": key,
        "fields": {
            "summary": summary,
            "status": {"name": status},
            "assignee": {"displayName": assignee} if assignee else None,
            "reporter": {"displayName": reporter} if reporter else None,
            "priority": {"name": priority} if priority else None,
            "created": created,
            "updated": created,
            "resolutiondate": resolutiondate,
        },
    }


class FakeJira:
    """Stands in for JiraClient; search pages are served in order."""

    def __init__(self, pages=None, total=0, issue=None, error=None):
        self.base_url = BASE_URL
        self.pages = list(pages or [])
        self.total = total
        self.issue = issue
        self.error = error
        self.searches = []
        self.counts = []

    def browse_url(self, key):
        return f"{self.base_url}/browse/{key}"

    def search(self, jql, start_at=0, max_results=50):
        self.searches.append((jql, start_at, max_results))
        if self.error:
            raise self.error
        return self.pages.pop(0) if self.pages else {"total": 0, "issues": []}

    def count(self, jql):
        self.counts.append(jql)
        if self.error:
            raise self.error
        return self.total

    def get_issue(self, key):
        if self.error:
            raise self.error
        return self.issue


@pytest.fixture
def settings():
    return Settings(
        jira_base_url=BASE_URL,
        jira_email="bot@example.com",
        jira_api_token="token",
        default_project_key="ATOMICWORKPOC",
    )


@pytest.fixture
def issue_factory():
    return make_issue


@pytest.fixture
def fake_jira_factory():
    return FakeJira
