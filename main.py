import logging
from functools import lru_cache
from typing import Dict, List, Literal, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from services.config import Settings
from services.errors import MissingRequiredParameter, RemoteServiceFailure, UnknownQueryName
from services.jira_client import JiraClient
from services.jql_builder import STATS_BUILDERS, jql_for_stats, nlq_to_jql
from services.predefined_queries import build_jql, list_queries
from services.prompt_mapping import classify
from services import prompt_service


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()


def get_jira_client(settings: Settings = Depends(get_settings)) -> JiraClient:
    try:
        return JiraClient.from_settings(settings)
    except RuntimeError as e:
        raise HTTPException(status_code=500, detail=str(e))


app = FastAPI(title="Jira prompt query server")


@app.exception_handler(MissingRequiredParameter)
async def missing_parameter_handler(request: Request, exc: MissingRequiredParameter):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(UnknownQueryName)
async def unknown_query_handler(request: Request, exc: UnknownQueryName):
    logging.error(f"Unknown predefined query reached the builder: {exc.query_name}")
    return JSONResponse(status_code=500, content={"detail": str(exc)})


@app.exception_handler(RemoteServiceFailure)
async def remote_failure_handler(request: Request, exc: RemoteServiceFailure):
    return JSONResponse(status_code=502, content={"detail": str(exc)})


class PromptQuery(BaseModel):
    prompt: str
    projectKey: Optional[str] = None


class BuildQuery(BaseModel):
    name: str
    params: Dict[str, str] = Field(default_factory=dict)


class NLQuery(BaseModel):
    nlq: str
    projectKey: Optional[str] = None
    limit: int = Field(50, ge=1, le=100)


class JQLQuery(BaseModel):
    jql: str
    limit: int = Field(50, ge=1, le=100)


class PromptSearch(BaseModel):
    prompt: str
    projectKey: Optional[str] = None
    countOnly: bool = False
    startAt: int = Field(0, ge=0)
    limit: int = Field(10, ge=1, le=100)
    extras: Optional[Dict[str, str]] = None
    keysOnly: bool = False
    includeDetails: bool = True
    select: Optional[List[str]] = None
    format: Literal["json", "text"] = "json"


class PromptSummary(BaseModel):
    prompt: str
    projectKey: Optional[str] = None
    top: int = Field(3, ge=1, le=50)
    includeDetails: bool = False
    windowDays: Optional[int] = Field(None, ge=1, le=365)


class IssueSummary(BaseModel):
    key: str


@app.get("/")
async def root():
    return {"message": "Jira prompt query server is running."}


@app.get("/health")
async def health():
    return {"ok": True}


@app.get("/queries")
def queries():
    return {"queries": list_queries()}


@app.post("/query/classify")
def classify_prompt(query: PromptQuery, settings: Settings = Depends(get_settings)):
    parsed = classify(query.prompt)
    if parsed is None:
        pk = query.projectKey or settings.default_project_key
        return {"prompt": query.prompt, "matchedName": None, "fallbackJql": nlq_to_jql(query.prompt, pk)}
    return {"prompt": query.prompt, "matchedName": parsed.name.value, **parsed.model_dump(mode="json")}


@app.post("/query/build")
def build_query(query: BuildQuery):
    try:
        return build_jql(query.name, query.params).model_dump()
    except UnknownQueryName as e:
        raise HTTPException(status_code=404, detail=str(e))


@app.get("/summary/recent-activity")
def summary_recent_activity(
    projectKey: Optional[str] = None,
    settings: Settings = Depends(get_settings),
    jira: JiraClient = Depends(get_jira_client),
):
    return prompt_service.recent_activity(jira, projectKey or settings.default_project_key)


@app.get("/summary/open-issues")
def summary_open_issues(
    projectKey: Optional[str] = None,
    settings: Settings = Depends(get_settings),
    jira: JiraClient = Depends(get_jira_client),
):
    return prompt_service.open_issues_by_status(jira, projectKey or settings.default_project_key)


@app.get("/stats/{kind}")
def stats(
    kind: str,
    projectKey: Optional[str] = None,
    settings: Settings = Depends(get_settings),
    jira: JiraClient = Depends(get_jira_client),
):
    if kind not in STATS_BUILDERS:
        raise HTTPException(status_code=404, detail=f"Unknown stats kind '{kind}'")
    pk = projectKey or settings.default_project_key
    jql = jql_for_stats(kind, pk)
    return {"projectKey": pk, "window": STATS_BUILDERS[kind][1], "total": jira.count(jql), "jql": jql}


@app.post("/search/nlq")
def search_nlq(
    query: NLQuery,
    settings: Settings = Depends(get_settings),
    jira: JiraClient = Depends(get_jira_client),
):
    pk = query.projectKey or settings.default_project_key
    jql = nlq_to_jql(query.nlq, pk)
    page = jira.search(jql, 0, query.limit)
    return {"projectKey": pk, "jql": jql, **page}


@app.post("/search/jql")
def search_jql(query: JQLQuery, jira: JiraClient = Depends(get_jira_client)):
    page = jira.search(query.jql, 0, query.limit)
    return {"jql": query.jql, **page}


@app.post("/search/prompt")
def search_prompt(
    query: PromptSearch,
    settings: Settings = Depends(get_settings),
    jira: JiraClient = Depends(get_jira_client),
):
    return prompt_service.search_prompt(
        jira,
        settings,
        query.prompt,
        project_key=query.projectKey,
        count_only=query.countOnly,
        start_at=query.startAt,
        limit=query.limit,
        extras=query.extras,
        keys_only=query.keysOnly,
        include_details=query.includeDetails,
        select=query.select,
        fmt=query.format,
    )


@app.post("/note/prompt")
def note_prompt(
    query: PromptQuery,
    settings: Settings = Depends(get_settings),
    jira: JiraClient = Depends(get_jira_client),
):
    return prompt_service.note_for_prompt(jira, settings, query.prompt, query.projectKey)


@app.post("/summary/prompt")
def summary_prompt(
    query: PromptSummary,
    settings: Settings = Depends(get_settings),
    jira: JiraClient = Depends(get_jira_client),
):
    return prompt_service.summarize_prompt(
        jira,
        settings,
        query.prompt,
        project_key=query.projectKey,
        top=query.top,
        include_details=query.includeDetails,
        window_days=query.windowDays,
    )


@app.post("/summary/issue")
def summary_issue(query: IssueSummary, jira: JiraClient = Depends(get_jira_client)):
    return prompt_service.summarize_issue(jira, query.key)


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    logging.basicConfig(level=settings.log_level)
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
