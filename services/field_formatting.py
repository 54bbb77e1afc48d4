from typing import Any, Dict, List, Optional

from services.field_mapping import DEFAULT_TEXT_COLUMNS, FIELD_LABELS


def _name(value: Optional[dict], attr: str) -> Optional[str]:
    return value.get(attr) if isinstance(value, dict) else None


FIELD_GETTERS = {
    "key": lambda i: i.get("key"),
    "summary": lambda i: i.get("fields", {}).get("summary") or "",
    "status": lambda i: _name(i.get("fields", {}).get("status"), "name") or "",
    "assignee": lambda i: _name(i.get("fields", {}).get("assignee"), "displayName"),
    "reporter": lambda i: _name(i.get("fields", {}).get("reporter"), "displayName"),
    "priority": lambda i: _name(i.get("fields", {}).get("priority"), "name"),
    "created": lambda i: i.get("fields", {}).get("created"),
    "updated": lambda i: i.get("fields", {}).get("updated"),
    "resolutiondate": lambda i: i.get("fields", {}).get("resolutiondate"),
}

DEFAULT_DETAIL_FIELDS = ["summary", "status", "assignee", "reporter", "priority", "created", "resolutiondate"]


def columns_for(select: Optional[List[str]]) -> List[str]:
    """Selected columns, always led by key and url, without duplicates."""
    return list(dict.fromkeys(["key", "url", *(select or [])]))


def shape_issue(issue: Dict[str, Any], base_url: str, select: Optional[List[str]] = None) -> Dict[str, Any]:
    """Compact row for an issue: the default detail set, or just the selected columns."""
    url = f"{base_url.rstrip('/')}/browse/{issue.get('key')}"
    if not select:
        row = {"key": issue.get("key"), "url": url}
        row.update({f: FIELD_GETTERS[f](issue) for f in DEFAULT_DETAIL_FIELDS})
        return row

    row = {}
    for field in columns_for(select):
        if field == "url":
            row["url"] = url
        elif field in FIELD_GETTERS:
            row[field] = FIELD_GETTERS[field](issue)
    return row


def format_text_block(rows: List[Dict[str, Any]], select: Optional[List[str]] = None) -> str:
    cols = columns_for(select) if select else DEFAULT_TEXT_COLUMNS
    return "\n\n".join(
        "\n".join(f"{FIELD_LABELS.get(c, c)}: {row.get(c) if row.get(c) is not None else ''}" for c in cols)
        for row in rows
    )


def clean(value: Optional[str], fallback: str = "—") -> str:
    return str(value or "").strip() or fallback


def issue_line(issue: Dict[str, Any]) -> str:
    status = clean(FIELD_GETTERS["status"](issue))
    reporter = clean(FIELD_GETTERS["reporter"](issue), "Unknown")
    assignee = clean(FIELD_GETTERS["assignee"](issue), "Unassigned")
    return f"{issue.get('key')} · {status} — Reporter: {reporter} · Assignee: {assignee}"


def issue_blurb(issue: Dict[str, Any]) -> Dict[str, str]:
    key = issue.get("key")
    summary = clean(FIELD_GETTERS["summary"](issue), "")
    blurb = issue_line(issue) + (f' · "{summary}"' if summary else "")
    return {
        "blurb": blurb,
        "key": key,
        "status": clean(FIELD_GETTERS["status"](issue)),
        "reporter": clean(FIELD_GETTERS["reporter"](issue), "Unknown"),
        "assignee": clean(FIELD_GETTERS["assignee"](issue), "Unassigned"),
        "summary": summary,
    }
