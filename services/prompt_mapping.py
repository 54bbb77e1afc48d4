"""Rule-based prompt classification.

A prompt is normalised, a project key and auxiliary parameters are extracted,
and the lowercase form is tested against ``INTENT_RULES`` in declaration
order. The first rule that matches decides the predefined query; later rules
that would also have matched are reported as ``shadowed`` so overlapping
intents can be reviewed instead of silently resolved.
"""
import logging
import re
from dataclasses import dataclass
from typing import Callable, Dict, List, NamedTuple, Optional

from pydantic import BaseModel, Field

from services.field_mapping import (
    DATE_FIELD_PATTERNS,
    FIELD_KEYWORDS,
    KEYS_ONLY_RE,
    UPPERCASE_TOKEN_RE,
)
from services.predefined_queries import PredefinedName

FILLER_RE = re.compile(
    r"\b(please|pls|could you|can you|show me|tell me|give me|list|display|find|what are|what's|whats)\b"
)

PROJECT_ALIASES = {
    "crm": "CRM",
    "customer portal": "CRM",
    "aw": "AW",
    "atomicwork": "AW",
}

ENVIRONMENTS = ["iOS", "Android", "Windows", "macOS", "Linux"]
ENVIRONMENT_SPELLINGS = {env.lower(): env for env in ENVIRONMENTS}

ISSUE_KEY_RE = re.compile(r"([A-Z][A-Z0-9]+-\d{1,6})")
ENV_RE = re.compile(r"\b(iOS|Android|Windows|macOS|Linux)\b", re.I)
BLOCKED_BY = "is blocked by"


class NormalizedPrompt(NamedTuple):
    raw: str
    lower: str


class OutputPreferences(BaseModel):
    keys_only: Optional[bool] = None
    include_details: Optional[bool] = None
    limit: Optional[int] = None
    select: Optional[List[str]] = None


class ExtractedParameters(BaseModel):
    component: Optional[str] = None
    issue_key: Optional[str] = None
    version: Optional[str] = None
    env_term: Optional[str] = None
    link_type: Optional[str] = None
    output: OutputPreferences = Field(default_factory=OutputPreferences)

    def as_extras(self) -> Dict[str, str]:
        extras = {
            "component": self.component,
            "issueKey": self.issue_key,
            "version": self.version,
            "envTerm": self.env_term,
            "linkType": self.link_type,
        }
        return {k: v for k, v in extras.items() if v is not None}


class ParsedPrompt(BaseModel):
    name: PredefinedName
    extras: Dict[str, str] = Field(default_factory=dict)
    project_key: Optional[str] = None
    output: OutputPreferences = Field(default_factory=OutputPreferences)
    shadowed: List[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Normalisation and extraction
# ---------------------------------------------------------------------------

def normalize(raw: str) -> NormalizedPrompt:
    cleaned = (raw or "").replace("“", '"').replace("”", '"')
    cleaned = cleaned.replace("‘", "'").replace("’", "'")
    cleaned = re.sub(r"[^\w\s\-.\"':]", " ", cleaned)
    cleaned = re.sub(r"\s+", " ", cleaned).strip()

    lower = FILLER_RE.sub("", cleaned.lower())
    lower = re.sub(r"\s+", " ", lower).strip()
    return NormalizedPrompt(cleaned, lower)


def extract_project_key(raw: str, lower: str) -> Optional[str]:
    # Explicit uppercase keys win over aliases.
    explicit = re.search(r"\b(?:in|for)\s+project\s+([A-Z][A-Z0-9_]+)\b", raw) or re.search(
        r"\b(?:in|for)\s+([A-Z][A-Z0-9_]+)\b", raw
    )
    if explicit:
        return explicit.group(1)

    phrase = re.search(r"\b(?:in|for)\s+([a-z][a-z0-9 _-]+)\b", lower)
    if phrase and phrase.group(1).strip() in PROJECT_ALIASES:
        return PROJECT_ALIASES[phrase.group(1).strip()]

    for alias, key in PROJECT_ALIASES.items():
        if (
            lower == alias
            or lower.startswith(alias + " ")
            or lower.endswith(" " + alias)
            or f" {alias} " in lower
        ):
            return key
    return None


def _extract_component(raw: str) -> Optional[str]:
    quoted = re.search(r'component\s+"([^"]+)"', raw, re.I)
    if quoted:
        return quoted.group(1).strip() or None
    bare = re.search(r"component\s+([A-Za-z0-9_-]+)", raw, re.I)
    return bare.group(1) if bare else None


def _extract_env_term(raw: str) -> Optional[str]:
    match = ENV_RE.search(raw)
    if not match:
        return None
    return ENVIRONMENT_SPELLINGS.get(match.group(1).lower())


def extract_output_preferences(raw: str, lower: str) -> OutputPreferences:
    select: List[str] = []
    for pattern, field in FIELD_KEYWORDS:
        if pattern.search(raw):
            select.append(field)
    for tolerant, direct, field in DATE_FIELD_PATTERNS:
        if tolerant.search(lower) or direct.search(lower):
            select.append(field)

    out = OutputPreferences()
    if not select and UPPERCASE_TOKEN_RE.search(raw):
        select = ["key", "summary"]
    if select:
        out.include_details = True
        out.select = list(dict.fromkeys(select))

    if KEYS_ONLY_RE.search(raw):
        out.keys_only = True
        out.include_details = False
        out.select = ["key"]

    top = re.search(r"\btop\s+(\d{1,3})\b", lower)
    limit = re.search(r"\blimit\s+(\d{1,3})\b", lower)
    n = int(top.group(1)) if top else int(limit.group(1)) if limit else 0
    if n:
        out.limit = min(max(n, 1), 100)
    return out


def extract_parameters(raw: str, lower: str) -> ExtractedParameters:
    issue_key = ISSUE_KEY_RE.search(raw)
    version = re.search(r'version\s+"?([A-Za-z0-9._-]+)"?', raw, re.I)
    trailing = re.search(r'"([^"]+)"\s*$', raw)

    return ExtractedParameters(
        component=_extract_component(raw),
        issue_key=issue_key.group(1) if issue_key else None,
        version=version.group(1) if version else None,
        env_term=_extract_env_term(raw),
        link_type=BLOCKED_BY if trailing and trailing.group(1).lower() == BLOCKED_BY else None,
        output=extract_output_preferences(raw, lower),
    )


# ---------------------------------------------------------------------------
# Intent rules
# ---------------------------------------------------------------------------

Extras = Dict[str, str]


@dataclass(frozen=True)
class IntentRule:
    tag: str
    pattern: re.Pattern
    target: PredefinedName
    transform: Callable[[Extras, ExtractedParameters], Extras] = lambda e, p: e

    def matches(self, lower: str) -> bool:
        return self.pattern.search(lower) is not None


class IntentMatch(NamedTuple):
    rule: IntentRule
    extras: Extras
    shadowed: List[str]


BUG = r"(bug|defect|issue|ticket)s?"
OPEN = r"(open|unresolved|not\s+closed|not\s+done)"
RESOLVED = r"(resolved|closed|fixed)"


def _rule(tag, pattern, target, transform=None, flags=re.I) -> IntentRule:
    compiled = re.compile(pattern, flags)
    if transform is None:
        return IntentRule(tag, compiled, target)
    return IntentRule(tag, compiled, target, transform)


def _with(**fields: Callable[[ExtractedParameters], Optional[str]]):
    def transform(extras: Extras, params: ExtractedParameters) -> Extras:
        out = dict(extras)
        for name, getter in fields.items():
            value = getter(params)
            if value is not None:
                out[name] = value
        return out
    return transform


N = PredefinedName

# Order is significant: the first matching rule wins.
INTENT_RULES = (
    _rule("recently-resolved", r"\b(recent|recently)\s+resolved\s+(issues?|tickets?|bugs?)\b",
          N.RECENTLY_RESOLVED_ISSUES_14D),
    _rule("resolved-any-words", r"\b(resolved|closed|fixed)\b.*\b(bugs?|issues?|tickets?)\b",
          N.RESOLVED_BUGS_ANYTIME),
    _rule("total-bugs-6-months", r"total\s+bugs?.*last\s+6\s*months|last\s+six\s*months",
          N.BUGS_CREATED_LAST_6_MONTHS),
    _rule("resolved-12-months", r"bugs?\s+resolved.*last\s+12\s*months|last\s+year",
          N.BUGS_RESOLVED_LAST_12_MONTHS),
    _rule("resolved-bug-leading", rf"^{RESOLVED}\s+{BUG}", N.RESOLVED_BUGS_ANYTIME, flags=0),
    _rule("resolved-bug-in", rf"{RESOLVED}\s+{BUG}\s+in\b", N.RESOLVED_BUGS_ANYTIME, flags=0),
    _rule("all-issues", r"^all\s+issues\b", N.ALL_ISSUES_IN_PROJECT),
    _rule("open-issues-in", r"\b(all\s+)?open\s+(issues|tickets)\s+(in|for)\b", N.OPEN_ISSUES_IN_PROJECT),
    _rule("open-issues", r"\b(all\s+)?open\s+(issues|tickets)\b", N.OPEN_ISSUES_ANY_PROJECT),
    _rule("open-bug-any-order", rf"(?:{OPEN}).*?(?:{BUG})|(?:{BUG}).*?(?:{OPEN})", N.OPEN_BUGS_IN_PROJECT),
    _rule("open-bugs-by-priority", r"open\s+bugs?\s+by\s+priority", N.OPEN_BUGS_BY_PRIORITY),
    _rule("open-bug-leading", rf"^{OPEN}\s+{BUG}", N.OPEN_BUGS_ANY_PROJECT, flags=0),
    _rule("open-bug-in", rf"{OPEN}\s+{BUG}\s+in\b", N.OPEN_BUGS_IN_PROJECT, flags=0),
    _rule("bug-then-open", rf"{BUG}.*{OPEN}", N.OPEN_BUGS_ANY_PROJECT, flags=0),
    _rule("all-open-bugs", r"all\s+open\s+bugs\b|open\s+bugs\s+right\s+now", N.OPEN_BUGS_ANY_PROJECT),
    _rule("open-bugs-leading", r"^open\s+bugs\b", N.OPEN_BUGS_ANY_PROJECT),
    _rule("resolved-this-week", r"\b(resolved|closed|fixed)\s+bugs?\s+(this|current)\s+week\b",
          N.RESOLVED_BUGS_THIS_WEEK),
    _rule("unassigned", r"unassigned\s+open\s+bugs", N.UNASSIGNED_OPEN_BUGS),
    _rule("mine", r"my\s+open\s+bugs", N.MY_OPEN_BUGS),
    _rule("critical-blocker", r"(critical|blocker).*(open\s+)?bugs", N.CRITICAL_BLOCKER_OPEN_BUGS),
    _rule("created-last-week", r"bugs\s+created\s+last\s+week", N.BUGS_CREATED_LAST_WEEK),
    _rule("resolved-last-week", r"bugs\s+resolved\s+last\s+week", N.BUGS_RESOLVED_LAST_WEEK),
    _rule("today", r"new\s+bugs\s+today|today's\s+bugs", N.NEW_BUGS_TODAY),
    _rule("resolved-24h", r"resolved\s+(in\s+)?last\s+24\s*hours", N.BUGS_RESOLVED_LAST_24H),
    _rule("stale", r"stale\s+open\s+bugs|no\s+updates\s+in\s+14\s*days", N.STALE_OPEN_BUGS_14D),
    _rule("oldest", r"aging.*oldest\s+open\s+bugs|oldest\s+open\s+bugs", N.AGING_OLDEST_OPEN_BUGS),
    _rule("regression", r"regression\s+bugs.*last\s+30\s*days", N.REGRESSION_BUGS_LAST_30D),
    _rule("by-component", r"open\s+bugs.*component", N.OPEN_BUGS_FOR_COMPONENT,
          _with(component=lambda p: p.component)),
    _rule("next-version", r"targeted\s+for\s+the\s+next\s+version|earliest\s+unreleased\s+version",
          N.BUGS_TARGETED_NEXT_UNRELEASED_VERSION),
    _rule("unreleased-versions", r"unreleased\s+versions", N.BUGS_IN_UNRELEASED_VERSIONS),
    _rule("affecting-version", r"affecting\s+version", N.BUGS_AFFECTING_VERSION,
          _with(version=lambda p: p.version)),
    _rule("open-sprints", r"open\s+sprints?", N.BUGS_IN_OPEN_SPRINTS),
    _rule("reopened", r"reopened\s+bugs.*last\s+30\s*days", N.REOPENED_BUGS_LAST_30D),
    _rule("reopened-no-step", r"no\s+explicit\s+reopened|without\s+reopened\s+step",
          N.REOPENED_WITHOUT_REOPENED_STEP_30D),
    _rule("duplicates", r"duplicates?.*last\s+90\s*days", N.DUPLICATES_LAST_90D),
    _rule("no-fix-version", r"no\s+fix\s+version|without\s+fix\s+version", N.BUGS_NO_FIX_VERSION),
    _rule("linked-blocked-by", r'linked\s+to\s+[A-Z][A-Z0-9]+-\d+\s*,?\s*"is blocked by"', N.BUGS_LINKED_TO_ISSUE,
          _with(issueKey=lambda p: p.issue_key, linkType=lambda p: BLOCKED_BY)),
    _rule("linked", r"linked\s+to\s+[A-Z][A-Z0-9]+-\d+", N.BUGS_LINKED_TO_ISSUE,
          _with(issueKey=lambda p: p.issue_key)),
    _rule("environment", r"(environment|env).*\b(iOS|Android|Windows|macOS|Linux)\b", N.OPEN_BUGS_ENV_CONTAINS,
          _with(text=lambda p: p.env_term, envTerm=lambda p: p.env_term)),
)


def match_intent(lower: str, params: ExtractedParameters, rules=INTENT_RULES) -> Optional[IntentMatch]:
    matched = [rule for rule in rules if rule.matches(lower)]
    if not matched:
        return None

    winner, shadowed = matched[0], [rule.tag for rule in matched[1:]]
    if shadowed:
        logging.debug(f"Prompt '{lower}' matched '{winner.tag}'; also matched {shadowed}")

    extras = winner.transform({}, params)
    for name, value in params.as_extras().items():
        extras.setdefault(name, value)
    return IntentMatch(winner, extras, shadowed)


def classify(prompt: str) -> Optional[ParsedPrompt]:
    """Map a prompt to a predefined query, or None when no rule matches."""
    raw, lower = normalize(prompt)
    project_key = extract_project_key(raw, lower)
    params = extract_parameters(raw, lower)

    match = match_intent(lower, params)
    if match is None:
        logging.info(f"No predefined query for prompt: '{prompt}'")
        return None

    logging.debug(f"Prompt '{prompt}' -> {match.rule.target.value} (rule '{match.rule.tag}')")
    return ParsedPrompt(
        name=match.rule.target,
        extras=match.extras,
        project_key=project_key,
        output=params.output,
        shadowed=match.shadowed,
    )
