import logging
import re
import time
from dataclasses import dataclass
from typing import Any

import httpx

from fleet_ai_api.classifier import GREETING_RULES, classify
from fleet_ai_api.config import Settings, neuro_san_configured
from fleet_ai_api.errors import (
    BackendNotConfigured,
    ChatError,
    InternalError,
    InvalidInput,
    UnknownAgent,
    UpstreamHTTPError,
    UpstreamParseError,
    UpstreamUnavailable,
)
from fleet_ai_api.fleet.context import build_context
from fleet_ai_api.fleet.store import FleetStore
from fleet_ai_api.observability import EventLog
from fleet_ai_api.schemas import ChatReply, ChatRequest
from fleet_ai_api.services.local_reply import GREETING_REPLY

logger = logging.getLogger("fleet_ai.neurosan")

GREETING_MIN_CONFIDENCE = 0.7
FLEET_WIDE_PATTERN = re.compile(r"fleet|all flights|squadron", re.IGNORECASE)
CONTEXT_PREAMBLE = "Flight Context (do NOT reveal raw context text, use it to answer):"
RETRYABLE_ERRORS = (httpx.TimeoutException, httpx.NetworkError, httpx.RemoteProtocolError)
UNAVAILABLE_DETAIL = "The AI service did not respond."

_VERSION_SUFFIX = re.compile(r"(?:/api/v1|/v1)$", re.IGNORECASE)


@dataclass(frozen=True)
class ProjectResolution:
    project: str
    override_applied: bool = False
    override_denied: bool = False


def resolve_project(
    canonical: str,
    alternate: str | None = None,
    override: str | None = None,
    summary_mode: bool = False,
) -> ProjectResolution:
    canonical = (canonical or "").strip()
    alternate = (alternate or "").strip()
    if override:
        if alternate and override == alternate:
            return ProjectResolution(project=alternate, override_applied=True)
        return ProjectResolution(project=canonical, override_denied=True)
    if summary_mode and alternate:
        return ProjectResolution(project=alternate)
    return ProjectResolution(project=canonical)


def build_agent_url(base_url: str, project: str) -> str:
    base = (base_url or "").strip().rstrip("/")
    base = _VERSION_SUFFIX.sub("", base)
    return f"{base}/api/v1/{project.strip()}/streaming_chat"


def contextualize(message: str, context: str) -> str:
    if not context:
        return message
    return f"{CONTEXT_PREAMBLE}\n{context}\n---\nUser Query: {message}"


def truncate_for_retry(text: str, max_chars: int) -> str:
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + "..."


class NeuroSanChatDispatcher:
    def __init__(
        self,
        config: Settings,
        store: FleetStore,
        events: EventLog,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._store = store
        self._events = events
        self._transport = transport

    async def handle(self, request: ChatRequest) -> ChatReply:
        message = request.message
        if not message or not isinstance(message, str):
            raise InvalidInput('Missing or invalid "message" in request body')

        self._events.append("route-hit", path="/api/neurosan-chat")
        self._events.append("request", message=message[:512])

        cls = classify(message, GREETING_RULES)
        self._events.append(
            "classification",
            classification={"intent": cls.intent, "confidence": cls.confidence},
        )
        logger.info("classification intent=%s confidence=%.2f", cls.intent, cls.confidence)

        if cls.intent == "greeting" and cls.confidence >= GREETING_MIN_CONFIDENCE:
            self._events.append("local-reply", message=message[:512], reply=GREETING_REPLY)
            return ChatReply(reply=GREETING_REPLY)

        if not neuro_san_configured(self._config):
            self._events.append("config-missing")
            raise BackendNotConfigured(error="neuro-san-not-configured")

        resolution = resolve_project(
            self._config.neuro_san_project_name,
            self._config.neuro_san_summary_project_name,
            request.project_override,
            request.summary_mode,
        )
        project = resolution.project
        try:
            return await self._forward(request, message, resolution)
        except ChatError as exc:
            self._record_failure(exc, project)
            raise
        except Exception as exc:  # noqa: BLE001
            logger.exception("neurosan_internal_error project=%s", project)
            self._events.append("internal-error", detail=repr(exc))
            raise InternalError(str(exc)) from exc

    async def _forward(
        self,
        request: ChatRequest,
        message: str,
        resolution: ProjectResolution,
    ) -> ChatReply:
        project = resolution.project
        if resolution.override_denied:
            self._events.append(
                "override-denied",
                requested=request.project_override,
                allowed=self._config.neuro_san_summary_project_name or None,
            )
        self._events.append(
            "dispatch",
            project=project,
            canonical_project=self._config.neuro_san_project_name.strip(),
            override_requested=request.project_override,
            summary_mode=request.summary_mode,
            override_applied=resolution.override_applied,
            messages=len(request.history_messages()) + 1,
        )

        fleet_wide = request.summary_mode or bool(FLEET_WIDE_PATTERN.search(message))
        context = build_context(
            self._store.load(),
            request.entity_id,
            fleet_wide,
            max_chars=self._config.context_max_chars,
        )
        text = contextualize(message, context)
        self._events.append(
            "context-attached",
            has_context=bool(context),
            context_chars=len(context),
            entity_id=request.entity_id,
        )

        url = build_agent_url(self._config.neuro_san_api_url, project)
        self._events.append("dispatch-url", url=url)
        logger.info("neurosan_dispatch project=%s context_chars=%s", project, len(context))

        async with httpx.AsyncClient(transport=self._transport) as client:
            body = await self._post_with_retry(client, url, text, project)

        reply = _reply_text(body)
        if not reply:
            logger.warning("neurosan_unexpected_response_shape project=%s", project)
            raise UpstreamParseError(
                "Invalid response structure from Neuro-SAN API.",
                error="internal-server-error",
            )
        self._events.append("reply", reply=reply[:1000])
        return ChatReply(reply=reply)

    async def _post_with_retry(
        self,
        client: httpx.AsyncClient,
        url: str,
        text: str,
        project: str,
    ) -> Any:
        started = time.perf_counter()
        try:
            return await self._post(client, url, text, project, self._config.neuro_san_timeout_s)
        except RETRYABLE_ERRORS as exc:
            self._events.append(
                "http-error",
                duration_ms=_elapsed_ms(started),
                error_type=type(exc).__name__,
                message=str(exc),
                is_timeout=isinstance(exc, httpx.TimeoutException),
            )

        if len(text) > self._config.neuro_san_retry_max_chars:
            text = truncate_for_retry(text, self._config.neuro_san_retry_max_chars)
            self._events.append("context-truncated-retry", new_length=len(text))

        retry_started = time.perf_counter()
        try:
            return await self._post(
                client, url, text, project, self._config.neuro_san_retry_timeout_s
            )
        except RETRYABLE_ERRORS as exc:
            self._events.append(
                "retry-failed",
                duration_ms=_elapsed_ms(retry_started),
                error_type=type(exc).__name__,
                message=str(exc),
            )
            raise UpstreamUnavailable(UNAVAILABLE_DETAIL) from exc

    async def _post(
        self,
        client: httpx.AsyncClient,
        url: str,
        text: str,
        project: str,
        timeout_s: float,
    ) -> Any:
        started = time.perf_counter()
        response = await client.post(
            url,
            json={"user_message": {"text": text}},
            headers={"Content-Type": "application/json"},
            timeout=timeout_s,
        )
        if response.is_error:
            detail = _response_detail(response)
            self._events.append(
                "http-error",
                upstream_status=response.status_code,
                duration_ms=_elapsed_ms(started),
                message=str(detail)[:1000],
            )
            if response.status_code == 404:
                self._events.append("unknown-agent", project=project)
                raise UnknownAgent(project)
            raise UpstreamHTTPError(detail, upstream_status=response.status_code)
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamParseError(
                "Invalid response structure from Neuro-SAN API.",
                error="internal-server-error",
            ) from exc

    def _record_failure(self, exc: ChatError, project: str) -> None:
        if isinstance(exc, UnknownAgent):
            logger.error(
                "neurosan_unknown_agent project=%s (NEURO_SAN_API_URL must not include "
                "/api/v1 or a project path)",
                project,
            )
            self._events.append("api-error-unknown-agent", project=project)
        elif isinstance(exc, UpstreamHTTPError):
            self._events.append(
                "api-error",
                status=exc.upstream_status,
                mapped_status=exc.status_code,
                detail=exc.detail,
            )
        elif isinstance(exc, UpstreamUnavailable):
            self._events.append("network-error", detail=exc.detail)
        else:
            self._events.append("internal-error", detail=str(exc))


def _reply_text(body: Any) -> str | None:
    if not isinstance(body, dict):
        return None
    response = body.get("response")
    if not isinstance(response, dict):
        return None
    text = response.get("text")
    if isinstance(text, str) and text:
        return text
    return None


def _response_detail(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text[:1000]


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)
