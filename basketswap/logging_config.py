"""
Structured logging for plan execution.

Every log line emitted while a flow runs carries the flow name and the plan
id, so approvals, retries and confirmations of one execution can be grouped.
Transaction call data can be tens of kilobytes for batch rebalances and is
shortened before rendering.
"""

import logging
import sys
from contextlib import contextmanager
from typing import Any, Iterator, MutableMapping, Optional

import structlog

from .config import settings


# Context keys bound for the duration of one flow execution
EXECUTION_CONTEXT_KEYS = ("flow", "plan_id")

# Event fields that may hold raw call data or signed payloads
CALLDATA_FIELDS = ("data", "calldata", "raw_tx")
CALLDATA_PREVIEW_CHARS = 74                      # selector + two words


def shorten_calldata(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Processor: keep the selector and first arguments of long hex payloads."""
    for key in CALLDATA_FIELDS:
        value = event_dict.get(key)
        if isinstance(value, str) and len(value) > CALLDATA_PREVIEW_CHARS:
            size = (len(value) - 2) // 2
            event_dict[key] = f"{value[:CALLDATA_PREVIEW_CHARS]}...({size} bytes)"
    return event_dict


@contextmanager
def execution_context(flow: str) -> Iterator[None]:
    """Bind the flow name for one execution; `bind_plan` adds the plan id."""
    structlog.contextvars.bind_contextvars(flow=flow)
    try:
        yield
    finally:
        structlog.contextvars.unbind_contextvars(*EXECUTION_CONTEXT_KEYS)


def bind_plan(plan_id: Optional[str]) -> None:
    structlog.contextvars.bind_contextvars(plan_id=plan_id)


def setup_logging(log_level: Optional[str] = None, json_logs: Optional[bool] = None) -> None:
    """Configure structlog and route stdlib loggers through it.

    Args:
        log_level: Override log level (default: settings.log_level)
        json_logs: Force JSON (True) or console (False) rendering; by default
            DEBUG renders for the console and everything else as JSON lines
    """
    level = getattr(logging, (log_level or settings.log_level).upper(), logging.INFO)
    if json_logs is None:
        json_logs = level != logging.DEBUG

    shared_processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        shorten_calldata,
    ]
    if json_logs:
        shared_processors.append(structlog.processors.format_exc_info)
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[*shared_processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            # Library modules log through stdlib logging with f-strings
            foreign_pre_chain=shared_processors,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    # Receipt polling would log every request
    for name in ("httpcore", "httpx"):
        logging.getLogger(name).setLevel(logging.WARNING)
