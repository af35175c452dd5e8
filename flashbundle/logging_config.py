"""
Logging setup for bundle runs.

Library modules log through ``logging.getLogger(__name__)``. Those stdlib
records are rendered by structlog, so a ``run_id`` bound with
:func:`bind_run_id` shows up on every line a run emits, including lines
from the chain and relay clients. Output is JSON lines, or colored console
output when the level is DEBUG.
"""

import logging
import sys
from contextlib import AbstractContextManager

import structlog


def bind_run_id(run_id: str) -> AbstractContextManager:
    """Attach ``run_id`` to every log line emitted inside the ``with`` block."""
    return structlog.contextvars.bound_contextvars(run_id=run_id)


def setup_logging(log_level: str = "INFO") -> None:
    """Route stdlib and structlog output through one structlog formatter.

    Args:
        log_level: Level name, usually ``Settings.log_level`` or the CLI flag
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    is_debug = level == logging.DEBUG

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if is_debug:
        renderer = structlog.dev.ConsoleRenderer()
    else:
        processors.append(structlog.processors.format_exc_info)
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[*processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # foreign_pre_chain merges the bound run_id into plain stdlib records
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=processors,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    # Per-request transport chatter
    for name in ("httpcore", "httpx"):
        logging.getLogger(name).setLevel(logging.WARNING)
