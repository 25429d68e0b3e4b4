from typing import Any


class ChatError(Exception):
    status_code: int = 500
    error: str = "internal-server-error"

    def __init__(
        self,
        detail: Any = None,
        *,
        error: str | None = None,
        status_code: int | None = None,
        **fields: Any,
    ) -> None:
        super().__init__(str(detail) if detail is not None else (error or self.error))
        self.detail = detail
        if error is not None:
            self.error = error
        if status_code is not None:
            self.status_code = status_code
        self.fields = {key: value for key, value in fields.items() if value is not None}

    def payload(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.error}
        body.update(self.fields)
        if self.detail is not None:
            body["detail"] = self.detail
        return body


class InvalidInput(ChatError):
    status_code = 400
    error = "missing-message"


class BackendNotConfigured(ChatError):
    status_code = 500
    error = "backend-not-configured"


class UnknownAgent(ChatError):
    status_code = 400
    error = "unknown-agent"

    def __init__(self, project: str) -> None:
        super().__init__(
            project=project,
            message=f"Unknown Neuro-SAN agent '{project}' (404).",
        )
        self.project = project


class UpstreamHTTPError(ChatError):
    status_code = 502
    error = "ai-service-error"

    def __init__(self, detail: Any = None, *, upstream_status: int | None = None, **kwargs: Any) -> None:
        super().__init__(detail, **kwargs)
        # status the backend returned, before mapping to our own status_code
        self.upstream_status = upstream_status


class UpstreamUnavailable(ChatError):
    status_code = 503
    error = "ai-service-unavailable"


class UpstreamParseError(ChatError):
    status_code = 500
    error = "invalid-upstream-response"


class InternalError(ChatError):
    status_code = 500
    error = "internal-server-error"
