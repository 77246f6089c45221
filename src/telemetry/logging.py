"""Structured logging configuration.

Configures structlog with JSON output in production and a human-readable
console renderer in development. Every module obtains its logger with
``structlog.get_logger(__name__)`` and logs dotted snake-case events::

    log.info("smart_router.model_selected", model_id="...", score=87.5)

Request-scoped fields (request_id, user_id) are bound through structlog
contextvars so they appear on every entry emitted while the request is
being routed, including entries from concurrent ensemble fan-out tasks.

Log format (production):
    {
        "timestamp": "2026-02-17T10:30:45.123456Z",
        "level": "info",
        "logger": "src.agent.model_router.router",
        "event": "smart_router.model_selected",
        "request_id": "req_789...",
        "user_id": "user_42",
        "model_id": "claude-sonnet-4"
    }
"""

from __future__ import annotations

import logging
import sys
import uuid
from typing import Any

import structlog
from structlog.types import Processor

# Third-party loggers that are chatty at INFO during every provider call
_NOISY_LOGGERS = ("LiteLLM", "LiteLLM Router", "LiteLLM Proxy", "httpx", "httpcore")

REQUEST_ID_HEADER = b"x-request-id"
_MAX_INBOUND_REQUEST_ID = 64


def _renderer_chain(json_logs: bool) -> list[Processor]:
    chain: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]
    if json_logs:
        chain.append(structlog.processors.format_exc_info)
        chain.append(structlog.processors.JSONRenderer())
    else:
        chain.append(structlog.dev.ConsoleRenderer(colors=True))
    return chain


def configure_logging(
    *,
    json_logs: bool = False,
    log_level: str = "INFO",
) -> None:
    """Configure structlog and the stdlib root logger it writes through.

    Provider SDK loggers are capped at WARNING unless ``log_level`` is
    DEBUG, so routing events stay readable next to upstream HTTP traffic.

    Args:
        json_logs: Render JSON lines (production) instead of console output
        log_level: Minimum level name, e.g. ``"INFO"``
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level!r}")

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    logging.getLogger().setLevel(level)
    third_party_level = level if level <= logging.DEBUG else max(level, logging.WARNING)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(third_party_level)

    structlog.configure(
        processors=_renderer_chain(json_logs),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


# ------------------------------------------------------------------ #
# Request ID Middleware
# ------------------------------------------------------------------ #


class RequestIdMiddleware:
    """Pure ASGI middleware that correlates log entries with HTTP requests.

    A caller-supplied ``x-request-id`` is reused when it is short and
    printable, otherwise a fresh id is minted. Either way the id is bound
    into the structlog context and echoed on the response.
    """

    def __init__(self, app: Any) -> None:
        self.app = app

    @staticmethod
    def _inbound_id(scope: dict[str, Any]) -> str | None:
        for key, value in scope.get("headers", []):
            if key.lower() == REQUEST_ID_HEADER:
                candidate = value.decode("latin-1").strip()
                if 0 < len(candidate) <= _MAX_INBOUND_REQUEST_ID and candidate.isprintable():
                    return candidate
                return None
        return None

    async def __call__(self, scope: dict[str, Any], receive: Any, send: Any) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = self._inbound_id(scope) or new_request_id()
        clear_context()
        bind_request_context(request_id=request_id)

        async def send_and_tag(message: dict[str, Any]) -> None:
            if message["type"] == "http.response.start":
                message["headers"] = [
                    *message.get("headers", []),
                    (REQUEST_ID_HEADER, request_id.encode("latin-1")),
                ]
            await send(message)

        await self.app(scope, receive, send_and_tag)


# ------------------------------------------------------------------ #
# Context Binding Helpers
# ------------------------------------------------------------------ #


def new_request_id() -> str:
    """Return a fresh, log-friendly request identifier."""
    return f"req_{uuid.uuid4().hex[:16]}"


def bind_request_context(
    *,
    request_id: str | None = None,
    user_id: str | None = None,
) -> None:
    """Bind request-scoped identifiers to the log context.

    Args:
        request_id: Correlation identifier for the routing request
        user_id: Caller identifier supplied by the API layer
    """
    context: dict[str, str] = {}
    if request_id:
        context["request_id"] = request_id
    if user_id:
        context["user_id"] = str(user_id)
    if context:
        structlog.contextvars.bind_contextvars(**context)


def clear_context() -> None:
    """Clear all context variables (useful for testing)."""
    structlog.contextvars.clear_contextvars()
