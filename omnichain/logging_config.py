"""
Structured logging configuration using structlog.

The package is a library, so nothing is configured on import. Applications
call ``setup_logging()`` once; it renders JSON lines by default and colored
console output when the level is DEBUG or ``json_logs=False``.
"""

import logging
import sys
from typing import IO, Optional

import structlog

from .config import settings

PACKAGE_LOGGER = "omnichain"


def _renderer(json_logs: bool) -> structlog.types.Processor:
    if json_logs:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer()


def setup_logging(
    log_level: Optional[str] = None,
    *,
    json_logs: Optional[bool] = None,
    stream: Optional[IO[str]] = None,
    root: bool = False,
) -> logging.Logger:
    """Route package logs (stdlib and structlog) through one formatter.

    Args:
        log_level: Override log level (default: settings.log_level)
        json_logs: Force JSON (True) or console (False) rendering
        stream: Output stream (default: stdout)
        root: Install the handler on the root logger instead of the package logger

    Returns:
        The logger the handler was installed on
    """
    level = getattr(logging, (log_level or settings.log_level).upper(), logging.INFO)
    if json_logs is None:
        json_logs = level != logging.DEBUG

    pre_chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]
    if json_logs:
        pre_chain.append(structlog.processors.format_exc_info)

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(json_logs),
            ],
        )
    )

    target = logging.getLogger() if root else logging.getLogger(PACKAGE_LOGGER)
    target.handlers.clear()
    target.addHandler(handler)
    target.setLevel(level)
    if not root:
        target.propagate = False

    # Receipt polling logs every request at INFO
    for name in ("httpcore", "httpx"):
        logging.getLogger(name).setLevel(logging.WARNING)

    return target


def bind_flow(flow_id: str, operation: str) -> None:
    """Attach flow identifiers to every log line emitted by the current task."""
    structlog.contextvars.bind_contextvars(flow_id=flow_id, operation=operation)


def unbind_flow() -> None:
    structlog.contextvars.unbind_contextvars("flow_id", "operation")
