import re

# Prompt keywords -> canonical issue field, checked against the cleaned prompt.
FIELD_KEYWORDS = [
    (re.compile(r"\b(ids?|keys?|issue\s*keys?)\b", re.I), "key"),
    (re.compile(r"\breporters?\b", re.I), "reporter"),
    (re.compile(r"\bassignees?\b", re.I), "assignee"),
    (re.compile(r"\bstatus(es)?\b", re.I), "status"),
    (re.compile(r"\b(summary|title)\b", re.I), "summary"),
    (re.compile(r"\bpriorit(y|ies)\b", re.I), "priority"),
]

# Date phrasing, checked against the lowercase prompt. Up to three words may
# sit between the noun and "date/on/since/from".
DATE_FIELD_PATTERNS = [
    (
        re.compile(r"(?:^|\s)(created|create|submitted|submit)(?:\s+\w+){0,3}\s+(date|on|since|from)\b", re.I),
        re.compile(r"\b(?:created|create|submitted|submit)\s+date\b", re.I),
        "created",
    ),
    (
        re.compile(r"(?:^|\s)(resolution|resolved|closed|fixed)(?:\s+\w+){0,3}\s+(date|on|since|from)\b", re.I),
        re.compile(r"\b(resolution|resolved|closed|fixed)\s+date\b", re.I),
        "resolutiondate",
    ),
    (
        re.compile(r"(?:^|\s)(updated|modified|changed)(?:\s+\w+){0,3}\s+(date|on|since|from)\b", re.I),
        re.compile(r"\b(updated|modified|changed)\s+date\b", re.I),
        "updated",
    ),
]

KEYS_ONLY_RE = re.compile(r"\b(keys?|ids?)\s+only\b|\bonly\s+(keys?|ids?)\b", re.I)

# Bare uppercase token such as a project key.
UPPERCASE_TOKEN_RE = re.compile(r"[A-Z][A-Z0-9_]+")

FIELD_LABELS = {
    "key": "ID",
    "url": "URL",
    "summary": "Summary",
    "status": "Status",
    "reporter": "Reporter",
    "assignee": "Assignee",
    "priority": "Priority",
    "created": "Created",
    "updated": "Updated",
    "resolutiondate": "Resolved",
}

DEFAULT_TEXT_COLUMNS = ["key", "url", "summary", "status", "reporter"]

# Fields requested from Jira on every search.
SEARCH_FIELDS = [
    "summary",
    "issuetype",
    "status",
    "created",
    "updated",
    "resolutiondate",
    "priority",
    "assignee",
    "reporter",
    "labels",
]
