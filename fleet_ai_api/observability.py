import json
import logging
import queue
import time
import uuid
from datetime import datetime, timezone
from logging.handlers import QueueHandler, QueueListener
from pathlib import Path
from typing import Any

from fastapi import Request
from fastapi.responses import Response
from starlette.middleware.base import BaseHTTPMiddleware

from fleet_ai_api.config import settings

_EXTRA_FIELDS = (
    "request_id",
    "method",
    "path",
    "status_code",
    "latency_ms",
    "client_ip",
    "backend",
    "project",
    "entities",
    "records",
)


class JsonLogFormatter(logging.Formatter):
    """One JSON object per line; timestamps match the event log (UTC ISO-8601)."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(
            (key, getattr(record, key))
            for key in _EXTRA_FIELDS
            if getattr(record, key, None) is not None
        )
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging() -> None:
    root = logging.getLogger()
    if root.handlers:
        return
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    handler = logging.StreamHandler()
    if settings.log_json:
        handler.setFormatter(JsonLogFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
        )
    root.setLevel(level)
    root.addHandler(handler)


class _QuietFileHandler(logging.FileHandler):
    def handleError(self, record: logging.LogRecord) -> None:
        pass


class EventLog:
    """Append-only JSON-lines log of chat routing events for one backend.

    Records are queued and written by a background listener thread, so
    ``append`` never waits on the disk. Failures to open or write the file
    are dropped.
    """

    def __init__(self, path: str | Path, backend: str) -> None:
        self.path = Path(path)
        self.backend = backend
        self._queue: queue.SimpleQueue = queue.SimpleQueue()
        self._logger = logging.getLogger(f"fleet_ai.events.{backend}.{uuid.uuid4().hex[:8]}")
        self._logger.setLevel(logging.INFO)
        self._logger.propagate = False
        self._logger.addHandler(QueueHandler(self._queue))
        self._listener = QueueListener(self._queue, self._build_file_handler())
        self._listener.start()

    def append(self, event: str, **fields: Any) -> None:
        try:
            entry = {
                "ts": datetime.now(timezone.utc).isoformat(),
                "backend": self.backend,
                "event": event,
                **fields,
            }
            self._logger.info(json.dumps(entry, ensure_ascii=False, default=str))
        except Exception:  # noqa: BLE001
            pass

    def close(self) -> None:
        try:
            self._listener.stop()
        except Exception:  # noqa: BLE001
            pass
        for handler in self._listener.handlers:
            handler.close()

    def _build_file_handler(self) -> logging.Handler:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            handler: logging.Handler = _QuietFileHandler(self.path, encoding="utf-8", delay=True)
        except OSError:
            return logging.NullHandler()
        handler.setFormatter(logging.Formatter("%(message)s"))
        return handler


_access_logger = logging.getLogger("fleet_ai.access")

CHAT_BACKENDS = {
    "/api/ai-chat": "azure",
    "/api/neurosan-chat": "neuro-san",
}


def access_fields(request: Request, request_id: str, status_code: int, started: float) -> dict[str, Any]:
    path = request.url.path
    fields: dict[str, Any] = {
        "request_id": request_id,
        "method": request.method,
        "path": path,
        "status_code": status_code,
        "latency_ms": round((time.perf_counter() - started) * 1000.0, 2),
        "client_ip": request.client.host if request.client else None,
    }
    if path in CHAT_BACKENDS:
        fields["backend"] = CHAT_BACKENDS[path]
    return fields


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Access log line per request; echoes or assigns ``x-request-id``."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        request.state.request_id = request_id
        started = time.perf_counter()

        try:
            response: Response = await call_next(request)
        except Exception:  # noqa: BLE001
            _access_logger.exception(
                "request_failed", extra=access_fields(request, request_id, 500, started)
            )
            raise

        _access_logger.info(
            "request_complete",
            extra=access_fields(request, request_id, response.status_code, started),
        )
        response.headers["x-request-id"] = request_id
        return response
