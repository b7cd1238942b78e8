"""structlog setup shared by the API process and the backfill script.

``configure_logging()`` installs the processor chain once; later calls are
ignored unless ``force=True``. Console rendering is the default; set
``LOG_JSON=true`` to emit one JSON object per line instead.
"""

from __future__ import annotations

import logging

import structlog

_configured = False


def configure_logging(
    level: str = "INFO",
    json_logs: bool = False,
    force: bool = False,
) -> None:
    """Install the structlog processor chain.

    Args:
        level: Minimum level name (``"DEBUG"``, ``"INFO"``, ...).
        json_logs: Render events as JSON lines instead of console text.
        force: Reconfigure even if logging was already set up.
    """
    global _configured
    if _configured and not force:
        return

    renderer: structlog.types.Processor
    if json_logs:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    min_level = logging.getLevelName(level.upper())
    if not isinstance(min_level, int):
        min_level = logging.INFO

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(min_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )
    _configured = True


def get_logger(name: str, **initial: object) -> structlog.BoundLogger:
    """Return a logger bound with ``logger_name`` and any extra context."""
    configure_logging()
    return structlog.get_logger(logger_name=name, **initial)
