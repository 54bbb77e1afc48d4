class QueryError(Exception):
    """Base class for query catalog and Jira failures."""


class MissingRequiredParameter(QueryError):
    def __init__(self, query_name: str, param: str):
        self.query_name = query_name
        self.param = param
        super().__init__(f"{param} is required for {query_name}")


class UnknownQueryName(QueryError):
    def __init__(self, query_name: str):
        self.query_name = query_name
        super().__init__(f"Unknown query: {query_name}")


class RemoteServiceFailure(QueryError):
    """Jira rejected the request or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)
