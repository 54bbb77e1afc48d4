"""Prompt -> JQL -> Jira orchestration shared by the HTTP and MCP surfaces."""
import logging
from typing import Dict, List, Optional

from pydantic import BaseModel

from services.config import Settings
from services.fallback_widener import WidenResult, is_recently_resolved_intent, widen
from services.field_formatting import (
    FIELD_GETTERS,
    columns_for,
    format_text_block,
    issue_blurb,
    issue_line,
    shape_issue,
)
from services.jira_client import JiraClient
from services.jql_builder import nlq_to_jql
from services.predefined_queries import NOT_DONE, build_jql
from services.prompt_mapping import ParsedPrompt, classify


class QueryPlan(BaseModel):
    prompt: str
    parsed: Optional[ParsedPrompt] = None
    project_key: str
    jql: str

    @property
    def matched_name(self) -> Optional[str]:
        return self.parsed.name.value if self.parsed else None


def plan_prompt(
    prompt: str,
    settings: Settings,
    project_key: Optional[str] = None,
    extras: Optional[Dict[str, str]] = None,
) -> QueryPlan:
    """Classify ``prompt`` and render its JQL.

    The project key comes from the prompt, then the caller, then the
    configured default. Unclassified prompts go through the keyword mapper.
    """
    parsed = classify(prompt)
    pk = (parsed.project_key if parsed else None) or project_key or settings.default_project_key

    if parsed:
        params = {"projectKey": pk, **parsed.extras, **(extras or {})}
        jql = build_jql(parsed.name, params).jql
    else:
        jql = nlq_to_jql(prompt, pk)

    logging.info(f"Prompt '{prompt}' -> {parsed.name.value if parsed else 'keyword fallback'}: {jql}")
    return QueryPlan(prompt=prompt, parsed=parsed, project_key=pk, jql=jql)


def search_prompt(
    client: JiraClient,
    settings: Settings,
    prompt: str,
    project_key: Optional[str] = None,
    count_only: bool = False,
    start_at: int = 0,
    limit: int = 10,
    extras: Optional[Dict[str, str]] = None,
    keys_only: bool = False,
    include_details: bool = True,
    select: Optional[List[str]] = None,
    fmt: str = "json",
) -> Dict:
    plan = plan_prompt(prompt, settings, project_key, extras)
    out = plan.parsed.output if plan.parsed else None

    # Preferences stated in the prompt win over request defaults; an explicit
    # column list from the caller wins over the prompt.
    if out is not None:
        limit = out.limit if out.limit is not None else limit
        keys_only = out.keys_only if out.keys_only is not None else keys_only
        include_details = out.include_details if out.include_details is not None else include_details
        select = select if select is not None else out.select

    base = {"prompt": prompt, "matchedName": plan.matched_name, "jql": plan.jql, "startAt": start_at, "limit": limit}

    if count_only:
        return {**base, "total": client.count(plan.jql)}

    page = client.search(plan.jql, start_at, limit)
    base["total"] = page["total"]
    issues = page["issues"]

    if keys_only:
        return {**base, "keys": [i["key"] for i in issues]}

    if not include_details and not select:
        select = ["key"]
    rows = [shape_issue(i, client.base_url, select) for i in issues]

    if fmt == "text":
        return {**base, "text": format_text_block(rows, select)}
    return {**base, "columns": columns_for(select) if select else None, "issues": rows}


def note_for_prompt(client: JiraClient, settings: Settings, prompt: str, project_key: Optional[str] = None) -> Dict:
    plan = plan_prompt(prompt, settings, project_key)
    total = client.count(plan.jql)
    return {"note": f"{prompt}: {total} (JQL: {plan.jql})", "prompt": prompt, "jql": plan.jql, "total": total}


def summarize_prompt(
    client: JiraClient,
    settings: Settings,
    prompt: str,
    project_key: Optional[str] = None,
    top: int = 3,
    include_details: bool = False,
    window_days: Optional[int] = None,
) -> Dict:
    """Count plus top-N keys, widening "recently resolved" asks that come back empty."""
    plan = plan_prompt(prompt, settings, project_key)

    def execute(jql: str) -> Dict:
        return client.search(jql, 0, top)

    if is_recently_resolved_intent(prompt, plan.matched_name):
        result = widen(plan.jql, execute, plan.project_key, window_days=window_days)
    else:
        page = execute(plan.jql)
        result = WidenResult(final_jql=plan.jql, total=page["total"], issues=page["issues"])

    summary = f"{prompt} = {result.total}{result.note}"
    if result.issues:
        lines = [issue_line(i) if include_details else i["key"] for i in result.issues]
        summary += f"\nTop {len(result.issues)}:\n" + "\n".join(lines)

    return {
        "summary": summary,
        "prompt": prompt,
        "jql": result.final_jql,
        "total": result.total,
        "note": result.note or None,
        "top": [i["key"] for i in result.issues],
    }


def summarize_issue(client: JiraClient, key: str) -> Dict:
    issue = client.get_issue(key)
    return issue_blurb({**issue, "key": key})


def recent_activity(client: JiraClient, project_key: str) -> Dict:
    jql = f"project = {project_key} ORDER BY updated DESC"
    page = client.search(jql, 0, 5)
    rows = [
        {
            "key": i["key"],
            "summary": FIELD_GETTERS["summary"](i),
            "status": FIELD_GETTERS["status"](i),
            "updated": FIELD_GETTERS["updated"](i),
            "assignee": FIELD_GETTERS["assignee"](i) or "Unassigned",
            "url": client.browse_url(i["key"]),
        }
        for i in page["issues"]
    ]
    return {"projectKey": project_key, "recentActivity": rows, "jql": jql}


def open_issues_by_status(client: JiraClient, project_key: str) -> Dict:
    jql = f"project = {project_key} AND {NOT_DONE} ORDER BY priority DESC, created"
    page = client.search(jql, 0, 20)

    by_status: Dict[str, List[Dict]] = {}
    for i in page["issues"]:
        status = FIELD_GETTERS["status"](i) or "No Status"
        by_status.setdefault(status, []).append(
            {
                "key": i["key"],
                "summary": FIELD_GETTERS["summary"](i),
                "priority": FIELD_GETTERS["priority"](i) or "No Priority",
                "assignee": FIELD_GETTERS["assignee"](i) or "Unassigned",
                "created": FIELD_GETTERS["created"](i),
                "url": client.browse_url(i["key"]),
            }
        )
    return {"projectKey": project_key, "totalOpen": page["total"], "byStatus": by_status, "jql": jql}
