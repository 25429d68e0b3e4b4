import asyncio
import logging
from collections.abc import Awaitable
from functools import lru_cache
from pathlib import Path

from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from fleet_ai_api.config import settings
from fleet_ai_api.errors import ChatError, InternalError
from fleet_ai_api.fleet.store import FleetStore, fleet_store
from fleet_ai_api.fleet.summary import compute_fleet_summary, entity_statuses
from fleet_ai_api.observability import EventLog, RequestLoggingMiddleware, configure_logging
from fleet_ai_api.prompts import PromptLibrary
from fleet_ai_api.schemas import (
    AppConfigResponse,
    ChatReply,
    ChatRequest,
    FleetSummaryResponse,
)
from fleet_ai_api.services.azure_chat import AzureChatDispatcher
from fleet_ai_api.services.neurosan_chat import NeuroSanChatDispatcher

configure_logging()
logger = logging.getLogger("fleet_ai.api")

DISCONNECT_POLL_S = 0.5

app = FastAPI(title="Fleet AI Chat API", version="0.1.0")
app.add_middleware(RequestLoggingMiddleware)


def get_fleet_store() -> FleetStore:
    return fleet_store


@lru_cache
def get_prompt_library() -> PromptLibrary:
    return PromptLibrary.from_file(settings.prompts_file)


@lru_cache
def get_azure_events() -> EventLog:
    return EventLog(Path(settings.logs_dir) / "ai.log", backend="azure")


@lru_cache
def get_neuro_san_events() -> EventLog:
    return EventLog(Path(settings.logs_dir) / "ai_chat.log", backend="neuro-san")


def get_azure_dispatcher(
    store: FleetStore = Depends(get_fleet_store),
    prompts: PromptLibrary = Depends(get_prompt_library),
    events: EventLog = Depends(get_azure_events),
) -> AzureChatDispatcher:
    return AzureChatDispatcher(settings, store, prompts, events)


def get_neuro_san_dispatcher(
    store: FleetStore = Depends(get_fleet_store),
    events: EventLog = Depends(get_neuro_san_events),
) -> NeuroSanChatDispatcher:
    return NeuroSanChatDispatcher(settings, store, events)


@app.on_event("shutdown")
def close_event_logs() -> None:
    for factory in (get_azure_events, get_neuro_san_events):
        if factory.cache_info().currsize:
            factory().close()
            factory.cache_clear()


@app.exception_handler(ChatError)
async def chat_error_handler(request: Request, exc: ChatError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.payload()))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"error": "invalid-request", "detail": jsonable_encoder(exc.errors())},
    )


async def run_until_disconnected(request: Request, work: Awaitable[ChatReply]) -> ChatReply | JSONResponse:
    task = asyncio.ensure_future(work)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=DISCONNECT_POLL_S)
            if done:
                return task.result()
            if await request.is_disconnected():
                task.cancel()
                logger.info("client_disconnected path=%s", request.url.path)
                return JSONResponse(status_code=499, content={"error": "client-disconnected"})
    except ChatError:
        raise
    except asyncio.CancelledError:
        task.cancel()
        raise
    except Exception as exc:  # noqa: BLE001
        logger.exception("chat_failed path=%s", request.url.path)
        raise InternalError(str(exc)) from exc


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/api/app-config", response_model=AppConfigResponse)
def app_config() -> AppConfigResponse:
    summary_project = settings.neuro_san_summary_project_name.strip()
    return AppConfigResponse(
        neuro_san_summary_project_configured=bool(summary_project),
        neuro_san_summary_project_name=summary_project or None,
    )


@app.get("/api/vehicles")
def list_vehicles(store: FleetStore = Depends(get_fleet_store)) -> dict:
    return {"vehicles": store.load().entities}


@app.get("/api/vehicles/{entity_id}")
def get_vehicle(entity_id: str, store: FleetStore = Depends(get_fleet_store)):
    details = store.load().detail(entity_id)
    if details is None:
        return JSONResponse(status_code=404, content={"error": "not-found", "id": entity_id})
    return details


@app.get("/api/fleet-summary", response_model=FleetSummaryResponse)
def fleet_summary(store: FleetStore = Depends(get_fleet_store)) -> FleetSummaryResponse:
    dataset = store.load()
    summary = compute_fleet_summary(dataset)
    return FleetSummaryResponse(**summary.model_dump(), entities=entity_statuses(dataset))


@app.post("/api/fleet/reload")
def reload_fleet(store: FleetStore = Depends(get_fleet_store)) -> dict:
    store.invalidate()
    dataset = store.load()
    return {"reloaded": True, "entities": len(dataset.entities), "records": len(dataset.records)}


@app.post("/api/ai-chat", response_model=ChatReply)
async def ai_chat(
    request: Request,
    chat_request: ChatRequest,
    dispatcher: AzureChatDispatcher = Depends(get_azure_dispatcher),
):
    return await run_until_disconnected(request, dispatcher.handle(chat_request))


@app.post("/api/neurosan-chat", response_model=ChatReply)
async def neurosan_chat(
    request: Request,
    chat_request: ChatRequest,
    dispatcher: NeuroSanChatDispatcher = Depends(get_neuro_san_dispatcher),
):
    return await run_until_disconnected(request, dispatcher.handle(chat_request))
