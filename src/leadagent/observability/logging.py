"""Structured JSON logging for the chat pipeline.

Two ContextVars travel with each request through its await chain:

- ``correlation_id``: set per HTTP request from X-Request-ID by the API middleware
- ``current_step``: the pipeline step in progress (``extract``, ``search``, ...),
  set by :func:`pipeline_step`

Every record rendered by :class:`JSONFormatter` carries both, so one chat
request can be followed from extraction through search to streaming.
"""

import json
import logging
import time
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone

correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")
current_step: ContextVar[str] = ContextVar("current_step", default="")

# Record attributes copied into the JSON line when passed via ``extra=``
EXTRA_FIELDS = ("step", "duration_ms", "city", "state", "status_code", "lead_count")


def get_correlation_id() -> str:
    """Return the current correlation ID, or empty string if not set."""
    return correlation_id.get()


class JSONFormatter(logging.Formatter):
    """One JSON object per line: level, logger, message, request and step context."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        cid = correlation_id.get()
        if cid:
            entry["correlation_id"] = cid
        step = current_step.get()
        if step:
            entry["step"] = step

        for key in EXTRA_FIELDS:
            val = getattr(record, key, None)
            if val is not None:
                entry[key] = val

        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


@contextmanager
def pipeline_step(logger: logging.Logger, step: str, **fields):
    """Tag logs inside the block with ``step`` and log its duration on success.

    Extra keyword fields (``city``, ``state``, ...) are added to the completion
    record. A failing step is left for the caller to log; its exception
    propagates unchanged.
    """
    token = current_step.set(step)
    t0 = time.monotonic()
    try:
        yield
    finally:
        current_step.reset(token)
    duration_ms = round((time.monotonic() - t0) * 1000, 1)
    logger.info("%s step finished in %.1f ms", step, duration_ms,
                extra={"step": step, "duration_ms": duration_ms, **fields})


def setup_logging(json_format: bool = True, level: str = "INFO") -> None:
    """Install a single stderr handler on the root logger.

    Args:
        json_format: JSON lines for deployments, plain text for a local terminal.
        level: Root log level name.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()

    handler = logging.StreamHandler()
    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
    root.addHandler(handler)

    # Upstream HTTP clients log every request at INFO
    for name in ("httpx", "httpcore", "uvicorn.access"):
        logging.getLogger(name).setLevel(logging.WARNING)
