import json
import logging
import time
from typing import Any

import httpx

from fleet_ai_api.classifier import SUMMARY_RULES, ClassificationResult, classify
from fleet_ai_api.config import Settings, azure_configured
from fleet_ai_api.errors import (
    BackendNotConfigured,
    InvalidInput,
    UpstreamHTTPError,
    UpstreamParseError,
    UpstreamUnavailable,
)
from fleet_ai_api.fleet.store import FleetDataset, FleetStore
from fleet_ai_api.fleet.summary import (
    compute_entity_summary,
    compute_fleet_summary,
    entity_components,
)
from fleet_ai_api.observability import EventLog
from fleet_ai_api.prompts import SUMMARY_INSTRUCTION, PromptLibrary
from fleet_ai_api.schemas import ChatReply, ChatRequest
from fleet_ai_api.services.local_reply import render_local_reply

logger = logging.getLogger("fleet_ai.azure")

LOCAL_REPLY_MIN_CONFIDENCE = 0.7
MAX_CONTEXT_COMPONENTS = 80
MAX_LISTED_ENTITIES = 10
DEFAULT_MAX_TOKENS = 512
BYPASS_MAX_TOKENS = 800
TEMPERATURE = 0.2


class AzureChatDispatcher:
    def __init__(
        self,
        config: Settings,
        store: FleetStore,
        prompts: PromptLibrary,
        events: EventLog,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._store = store
        self._prompts = prompts
        self._events = events
        self._transport = transport

    async def handle(self, request: ChatRequest) -> ChatReply:
        message = request.message
        if not message or not isinstance(message, str):
            raise InvalidInput('Missing or invalid "message" in request body')

        self._events.append("route-hit", path="/api/ai-chat")
        self._events.append(
            "request",
            message=message[:512],
            entity_id=request.entity_id,
            prompt_id=request.prompt_id,
        )

        dataset = self._store.load()
        entity = dataset.detail(request.entity_id)

        cls = classify(message, SUMMARY_RULES)
        self._events.append(
            "classification",
            message=message[:256],
            classification={
                "intent": cls.intent,
                "confidence": cls.confidence,
                "entity_mention": cls.entity_mention,
            },
        )
        logger.info(
            "classification intent=%s confidence=%.2f entity_mention=%s",
            cls.intent,
            cls.confidence,
            cls.entity_mention,
        )

        if (
            not request.bypass_local
            and cls.intent == "summary"
            and cls.confidence >= LOCAL_REPLY_MIN_CONFIDENCE
        ):
            reply = self._local_reply(dataset, entity)
            if reply is not None:
                self._events.append(
                    "local-reply",
                    entity_id=request.entity_id,
                    message=message[:512],
                    reply=reply[:2000],
                )
                return ChatReply(reply=reply)

        messages = [{"role": "system", "content": self._system_prompt(request, cls, dataset, entity)}]
        messages.extend(request.history_messages())
        messages.append({"role": "user", "content": message})

        if not azure_configured(self._config):
            self._events.append("config-missing")
            raise BackendNotConfigured(error="azure-openai-not-configured")

        payload = {
            "messages": messages,
            "max_tokens": BYPASS_MAX_TOKENS if request.bypass_local else DEFAULT_MAX_TOKENS,
            "temperature": TEMPERATURE,
        }
        self._events.append(
            "dispatch",
            model=self._config.azure_openai_deployment,
            messages=len(messages),
        )
        return await self._dispatch(payload)

    def _local_reply(self, dataset: FleetDataset, entity: dict[str, Any] | None) -> str | None:
        try:
            return render_local_reply(compute_fleet_summary(dataset), entity)
        except Exception:  # noqa: BLE001
            logger.exception("local_reply_failed")
            return None

    def _system_prompt(
        self,
        request: ChatRequest,
        cls: ClassificationResult,
        dataset: FleetDataset,
        entity: dict[str, Any] | None,
    ) -> str:
        system_prompt = self._prompts.resolve(request.prompt_id)
        if cls.intent == "summary":
            system_prompt = f"{SUMMARY_INSTRUCTION}\n\n{system_prompt}"
        needs_hint = cls.intent == "summary" and cls.confidence < LOCAL_REPLY_MIN_CONFIDENCE

        if entity is not None:
            components = [
                {
                    "id": item.get("id"),
                    "displayName": item.get("displayName"),
                    "componentName": item.get("componentName"),
                    "status": item.get("status"),
                    "maintenanceDue": item.get("maintenanceDue"),
                    "faultCode": item.get("faultCode"),
                }
                for item in entity_components(entity)[:MAX_CONTEXT_COMPONENTS]
            ]
            system_prompt += (
                f"\n\nVehicle context (id: {entity.get('id')}, "
                f"displayName: {entity.get('displayName') or ''}): "
                f"{json.dumps({'components': components})}"
            )
            if components:
                component_lines = [
                    f"- {item['componentName'] or item['displayName'] or item['id']} (id:{item['id']})"
                    f" | status: {item['status'] or 'unknown'}"
                    f" | faultCode: {item['faultCode'] or 'N/A'}"
                    f" | maintenanceDue: {item['maintenanceDue'] or 'N/A'}"
                    for item in components
                ]
                system_prompt += "\n\nVehicle components:\n" + "\n".join(component_lines)
            if needs_hint:
                summary = compute_entity_summary(entity)
                system_prompt += (
                    f"\n\nLocal vehicle summary: worstStatus={summary.worst_status}; "
                    f"keyIssue={summary.key_issue}"
                )
            return system_prompt

        fleet = compute_fleet_summary(dataset)
        listed = [
            {"id": item.get("id"), "displayName": item.get("displayName")}
            for item in dataset.entities[:MAX_LISTED_ENTITIES]
        ]
        system_prompt += (
            f"\n\nAvailable vehicles: {json.dumps(listed)}"
            f"\n\nFleet summary: totalVehicles={fleet.total}; vehiclesAllGood={fleet.count_good}; "
            f"vehiclesWithWarnings={fleet.count_warning}; vehiclesWithCritical={fleet.count_critical}; "
            f"operational={fleet.operational_count} ({fleet.operational_pct}%); "
            f"outOfServiceOrMaintenancePlanned={fleet.out_of_service_count}."
        )
        if needs_hint:
            system_prompt += f"\n\nLocal fleet critical IDs: {json.dumps(fleet.critical_ids)}"
        return system_prompt

    def _completions_url(self) -> str:
        endpoint = self._config.azure_openai_endpoint.rstrip("/")
        return (
            f"{endpoint}/openai/deployments/{self._config.azure_openai_deployment}"
            f"/chat/completions?api-version={self._config.azure_openai_api_version}"
        )

    async def _dispatch(self, payload: dict[str, Any]) -> ChatReply:
        headers = {
            "Content-Type": "application/json",
            "api-key": self._config.azure_openai_key,
        }
        started = time.perf_counter()
        try:
            async with httpx.AsyncClient(
                timeout=self._config.azure_timeout_s,
                transport=self._transport,
            ) as client:
                response = await client.post(self._completions_url(), headers=headers, json=payload)
        except httpx.HTTPError as exc:
            self._events.append(
                "request-failed",
                duration_ms=_elapsed_ms(started),
                error_type=type(exc).__name__,
                message=str(exc),
            )
            logger.warning("azure_request_failed error=%s", exc)
            raise UpstreamUnavailable(
                str(exc) or type(exc).__name__,
                error="azure-request-failed",
                status_code=500,
            ) from exc

        duration_ms = _elapsed_ms(started)
        try:
            parsed = response.json()
        except ValueError as exc:
            self._events.append(
                "parse-error",
                status=response.status_code,
                duration_ms=duration_ms,
                raw=response.text[:2000],
            )
            if response.is_error:
                raise UpstreamHTTPError(
                    response.text[:1000],
                    error="azure-error",
                    status_code=response.status_code,
                ) from exc
            raise UpstreamParseError(
                error="failed-to-parse-azure-response",
                raw=response.text[:2000],
            ) from exc

        if response.is_error:
            detail = _error_detail(parsed)
            self._events.append(
                "azure-error",
                status=response.status_code,
                duration_ms=duration_ms,
                detail=str(detail)[:1000],
            )
            logger.warning(
                "azure_error status=%s detail=%s", response.status_code, str(detail)[:180]
            )
            raise UpstreamHTTPError(detail, error="azure-error", status_code=response.status_code)

        reply = _reply_text(parsed)
        self._events.append(
            "reply",
            status=response.status_code,
            duration_ms=duration_ms,
            reply=reply[:1000],
        )
        logger.info("azure_reply length=%s status=%s", len(reply), response.status_code)
        return ChatReply(reply=reply)


def _error_detail(parsed: Any) -> Any:
    if isinstance(parsed, dict):
        error = parsed.get("error")
        if isinstance(error, dict) and error.get("message"):
            return error["message"]
        if parsed.get("message"):
            return parsed["message"]
    return json.dumps(parsed)


def _reply_text(parsed: Any) -> str:
    if not isinstance(parsed, dict):
        return "No reply"
    choices = parsed.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        message = choices[0].get("message") or {}
        content = message.get("content") if isinstance(message, dict) else None
        if isinstance(content, str) and content:
            return content
    error = parsed.get("error")
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    return "No reply"


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)
