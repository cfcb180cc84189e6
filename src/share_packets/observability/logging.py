"""Structured logging for the share-packet service.

Every entry carries the service name, the current request id (when inside a
request), level, logger name and an ISO timestamp. A redaction step runs
last before rendering, so access tokens and passcodes cannot reach log
output even if a caller passes them as fields.

Render mode:
  - ``LOG_FORMAT=json`` or ``console`` wins when set.
  - Otherwise local runs render for the console and everything else as
    JSON lines.

Usage::

    from share_packets.observability.logging import configure_logging, get_logger

    configure_logging(environment=settings.environment)
    logger = get_logger(__name__)
    logger.info("packet_issued", packet_id=packet_id)
"""

from __future__ import annotations

import logging
import os
import re
import sys
from contextvars import ContextVar
from typing import Any

import structlog

SERVICE_NAME = "share-packets"

request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)

# Field names whose values are never rendered.
SECRET_FIELDS = frozenset({
    "token",
    "access_token",
    "passcode",
    "passcode_hash",
    "authorization",
    "service_role_key",
})

REDACTED = "<redacted>"

TOKEN_PREFIX_LENGTH = 8

# A whole 43-character base64url run: the shape of an access token. Bounded so
# that identifiers such as event names are never matched.
_TOKEN_RUN = re.compile(r"(?<![A-Za-z0-9_-])[A-Za-z0-9_-]{43}(?![A-Za-z0-9_-])")

# Set to WARNING at startup.
_NOISY_LOGGERS = ("uvicorn.access", "httpx", "httpcore")

_configured = False


# ── Token redaction ───────────────────────────────────────────────────


def redact_token(token: str | None) -> str:
    """Return ``<prefix>...`` or ``<redacted>`` for missing/short tokens."""
    if not token or len(token) < TOKEN_PREFIX_LENGTH:
        return REDACTED
    return f"{token[:TOKEN_PREFIX_LENGTH]}..."


def redact_string(text: str) -> str:
    """Shorten every access-token-shaped run in ``text`` to its prefix."""
    return _TOKEN_RUN.sub(lambda m: redact_token(m.group(0)), text)


# ── Processors ────────────────────────────────────────────────────────


def _add_service(logger: Any, method_name: str, event_dict: dict) -> dict:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def _add_request_id(logger: Any, method_name: str, event_dict: dict) -> dict:
    rid = request_id_ctx.get()
    if rid is not None:
        event_dict["request_id"] = rid
    return event_dict


def _redact_secrets(logger: Any, method_name: str, event_dict: dict) -> dict:
    for key, value in list(event_dict.items()):
        if value is not None and key.lower() in SECRET_FIELDS:
            event_dict[key] = REDACTED
    message = event_dict.get("event")
    if isinstance(message, str):
        event_dict["event"] = redact_string(message)
    return event_dict


# ── Setup ─────────────────────────────────────────────────────────────


def _wants_json(environment: str | None) -> bool:
    fmt = os.environ.get("LOG_FORMAT", "").lower()
    if fmt in ("json", "console"):
        return fmt == "json"
    return environment != "local"


def configure_logging(
    *,
    level: str | None = None,
    json_output: bool | None = None,
    environment: str | None = None,
) -> None:
    """Route structlog through stdlib logging to stdout. Runs once per process.

    Args:
        level: Log level name; defaults to ``LOG_LEVEL`` or INFO.
        json_output: Force JSON (True) or console (False) rendering.
        environment: Deployment environment used to pick the render mode
            when neither ``json_output`` nor ``LOG_FORMAT`` is given.
    """
    global _configured
    if _configured:
        return
    _configured = True

    level_name = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    if json_output is None:
        json_output = _wants_json(environment)

    pre_chain: list = [
        structlog.contextvars.merge_contextvars,
        _add_service,
        _add_request_id,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        _redact_secrets,
    ]
    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    renderer = (
        structlog.processors.JSONRenderer() if json_output
        else structlog.dev.ConsoleRenderer()
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(getattr(logging, level_name, logging.INFO))
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
