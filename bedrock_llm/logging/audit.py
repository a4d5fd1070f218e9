"""Structured JSON audit logging for model invocations.

Every invocation emits JSON lines tagged with the invocation's request id:
a debug line when the signed request is dispatched, a warning when Bedrock
rejects it or its response stream cannot be decoded, and one summary line
when the call completes or fails. Prompts and generated text are never
written, only their lengths.

Applications call setup_logging() once at startup; importing the library
configures nothing.
"""

import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any

from bedrock_llm.config.settings import get_settings

AUDIT_LOGGER_NAME = "bedrock_llm.audit"

# Set by LLM.call for the duration of one invocation
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


class JSONFormatter(logging.Formatter):
    """One JSON object per record: envelope fields first, then ``audit_data``."""

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry: dict[str, Any] = {
            "timestamp": created.isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": request_id_var.get(),
        }
        entry.update(getattr(record, "audit_data", None) or {})
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(level: str | None = None) -> None:
    """Send invocation audit lines to stdout (and AUDIT_LOG_FILE, if set).

    ``level`` overrides the LOG_LEVEL setting.
    """
    settings = get_settings()
    level_name = (level or settings.log_level).upper()

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if settings.audit_log_file:
        handlers.append(logging.FileHandler(settings.audit_log_file))

    logger = get_audit_logger()
    logger.setLevel(getattr(logging, level_name, logging.INFO))
    logger.handlers.clear()
    formatter = JSONFormatter()
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    # Audit lines go only to these handlers, not to the root logger
    logger.propagate = False


def get_audit_logger() -> logging.Logger:
    return logging.getLogger(AUDIT_LOGGER_NAME)


def generate_request_id() -> str:
    return uuid.uuid4().hex[:12]


def _emit(level: int, message: str, **fields: Any) -> None:
    get_audit_logger().log(level, message, extra={"audit_data": fields})


def log_dispatch(url: str, *, streaming: bool, body_length: int) -> None:
    _emit(logging.DEBUG, "Dispatching Bedrock request",
          url=url, streaming=streaming, body_length=body_length)


def log_request_rejected(url: str, status_code: int) -> None:
    _emit(logging.WARNING, "Bedrock request rejected", url=url, status_code=status_code)


def log_stream_failure(url: str, status_code: int, *, model: str, fragments: int) -> None:
    """A response stream broke after ``fragments`` fragments were delivered."""
    _emit(logging.WARNING, "Bedrock stream decode failed",
          url=url, status_code=status_code, model=model,
          fragments_before_failure=fragments)


def log_call_completed(
    llm_type: str,
    params: dict[str, Any],
    *,
    prompt_length: int,
    response_length: int,
    latency_ms: float,
) -> None:
    _emit(logging.INFO, "LLM call completed",
          llm_type=llm_type, **params,
          prompt_length=prompt_length, response_length=response_length,
          latency_ms=latency_ms)


def log_call_failed(llm_type: str, params: dict[str, Any], error: BaseException) -> None:
    # Only the type: messages can embed response bodies or stream bytes
    _emit(logging.WARNING, "LLM call failed",
          llm_type=llm_type, **params, error_type=type(error).__name__)


class InvocationTimer:
    """Wall-clock latency of one invocation, in milliseconds."""

    def __init__(self):
        self._started: float | None = None
        self.elapsed_ms: float = 0.0

    def __enter__(self):
        self._started = time.perf_counter()
        return self

    def __exit__(self, *exc):
        self.elapsed_ms = round((time.perf_counter() - self._started) * 1000, 2)
