import logging
from functools import lru_cache
from typing import Dict, Optional

from fastmcp import FastMCP

from services.config import Settings
from services.jira_client import JiraClient
from services.jql_builder import STATS_BUILDERS, jql_for_stats, nlq_to_jql
from services.predefined_queries import build_jql
from services.prompt_mapping import classify
from services import prompt_service

mcp = FastMCP("jira-prompt-query")


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()


@lru_cache
def get_jira_client() -> JiraClient:
    return JiraClient.from_settings(get_settings())


@mcp.tool()
def jira_stats(kind: str, project_key: Optional[str] = None) -> dict:
    """Bug stats for a fixed window: bugs-6m, resolved-1y or open-1y."""
    if kind not in STATS_BUILDERS:
        raise ValueError(f"kind must be one of {sorted(STATS_BUILDERS)}")
    pk = project_key or get_settings().default_project_key
    jql = jql_for_stats(kind, pk)
    return {"projectKey": pk, "kind": kind, "total": get_jira_client().count(jql), "jql": jql}


@mcp.tool()
def jira_query(nlq: str, project_key: Optional[str] = None, limit: int = 50) -> dict:
    """Ask in natural language with the keyword mapper; returns jql, total and issues."""
    pk = project_key or get_settings().default_project_key
    jql = nlq_to_jql(nlq, pk)
    page = get_jira_client().search(jql, 0, max(1, min(limit, 100)))
    return {"projectKey": pk, "jql": jql, **page}


@mcp.tool()
def jira_jql(jql: str, limit: int = 50) -> dict:
    """Run raw JQL. Returns total and issues."""
    page = get_jira_client().search(jql, 0, max(1, min(limit, 100)))
    return {"jql": jql, **page}


@mcp.tool()
def classify_prompt(prompt: str) -> dict:
    """Map a prompt to a predefined query name, extras and output preferences."""
    parsed = classify(prompt)
    if parsed is None:
        return {"prompt": prompt, "matchedName": None}
    return {"prompt": prompt, "matchedName": parsed.name.value, **parsed.model_dump(mode="json")}


@mcp.tool()
def build_query(name: str, params: Optional[Dict[str, str]] = None) -> dict:
    """Render the JQL for a predefined query name."""
    return build_jql(name, params or {}).model_dump()


@mcp.tool()
def search_prompt(prompt: str, project_key: Optional[str] = None, limit: int = 10) -> dict:
    """Prompt -> predefined JQL -> Jira rows."""
    return prompt_service.search_prompt(
        get_jira_client(), get_settings(), prompt, project_key=project_key, limit=max(1, min(limit, 100))
    )


if __name__ == "__main__":
    settings = get_settings()
    logging.basicConfig(level=settings.log_level)
    mcp.run(transport="sse", host="127.0.0.1", port=settings.mcp_port)
