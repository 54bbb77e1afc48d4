import logging
from typing import Dict
from urllib.parse import quote

import requests

from services.config import Settings
from services.errors import RemoteServiceFailure
from services.field_mapping import SEARCH_FIELDS


def _error_message(resp: requests.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        data = None

    if isinstance(data, dict):
        messages = list(data.get("errorMessages") or [])
        messages += [f"{field}: {msg}" for field, msg in (data.get("errors") or {}).items()]
        if messages:
            return f"Jira API error: {', '.join(messages)}"
    return f"Jira API error: {resp.status_code} {resp.reason or ''}".strip()


class JiraClient:
    """Minimal Jira Cloud REST client: search, count and single-issue fetch."""

    def __init__(self, base_url: str, email: str, api_token: str, timeout: float = 30.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.headers = {
            "Authorization": requests.auth._basic_auth_str(email, api_token),
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    @classmethod
    def from_settings(cls, settings: Settings) -> "JiraClient":
        settings.require_credentials()
        return cls(
            settings.jira_base_url,
            settings.jira_email,
            settings.jira_api_token,
            timeout=settings.request_timeout,
        )

    def browse_url(self, key: str) -> str:
        return f"{self.base_url}/browse/{key}"

    def _request(self, method: str, path: str, **kwargs) -> Dict:
        url = f"{self.base_url}{path}"
        try:
            resp = requests.request(method, url, headers=self.headers, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logging.error(f"❌ Jira request failed: {e}")
            raise RemoteServiceFailure(f"Jira API error: {e}") from e

        if resp.status_code != 200:
            message = _error_message(resp)
            logging.error(f"❌ {method} {path} -> {resp.status_code}: {resp.text}")
            raise RemoteServiceFailure(message, status_code=resp.status_code)

        try:
            return resp.json()
        except ValueError as e:
            logging.error(f"❌ {method} {path} returned a non-JSON body: {resp.text[:200]}")
            raise RemoteServiceFailure("Jira API error: invalid JSON response", status_code=resp.status_code) from e

    def search(self, jql: str, start_at: int = 0, max_results: int = 50) -> Dict:
        """Returns ``{"total": int, "issues": [...]}``."""
        logging.info(f"Executing JQL: {jql}")
        data = self._request(
            "POST",
            "/rest/api/3/search",
            json={
                "jql": jql,
                "startAt": start_at,
                "maxResults": max_results,
                "fields": SEARCH_FIELDS,
            },
        )
        return {"total": data.get("total", 0), "issues": data.get("issues", [])}

    def count(self, jql: str) -> int:
        logging.info(f"Counting with JQL: {jql}")
        data = self._request(
            "POST",
            "/rest/api/3/search",
            json={"jql": jql, "maxResults": 0, "fields": []},
        )
        return int(data.get("total", 0))

    def get_issue(self, key: str) -> Dict:
        return self._request(
            "GET",
            f"/rest/api/3/issue/{quote(key, safe='')}",
            params={"fields": ",".join(SEARCH_FIELDS)},
        )
