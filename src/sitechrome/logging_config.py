# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Build logs on stderr through structlog's stdlib bridge.

Local runs get the console renderer (colour only on a TTY), CI gets JSON
lines. Fields bound with :func:`run_context` (run id, target URL) ride along
on every record, including those from plain ``logging`` loggers.

Leaf module: no sitechrome imports. Safe to call early in startup.
"""

from __future__ import annotations

import logging
import sys
import uuid
from contextlib import AbstractContextManager
from typing import TextIO

import structlog

# Third-party loggers and the floor they are held at
_QUIET_LOGGERS = {
    "asyncio": logging.WARNING,
    "playwright": logging.WARNING,
}


def _pre_chain(json_output: bool) -> list:
    chain: list = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if json_output:
        # the console renderer formats tracebacks itself
        chain.append(structlog.processors.format_exc_info)
    chain.append(structlog.processors.UnicodeDecoder())
    return chain


def _renderer(json_output: bool, stream: TextIO):
    if json_output:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=stream.isatty())


def _resolve_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.strip().upper())
    return value if isinstance(value, int) else logging.INFO


def configure(*, json_output: bool = False, level: str | int = "INFO", stream: TextIO | None = None) -> None:
    """Route every logger through one structlog-formatted handler.

    Args:
        json_output: JSON lines (CI) instead of console output.
        level: Root logger level; unknown names fall back to INFO.
        stream: Destination (default stderr; stdout is reserved for command output).
    """
    stream = stream or sys.stderr
    pre_chain = _pre_chain(json_output)

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(stream)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(json_output, stream),
            ],
            foreign_pre_chain=pre_chain,
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(_resolve_level(level))

    for name, floor in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(floor)


def run_context(target_url: str) -> AbstractContextManager:
    """Bind a fresh run id and the target URL to every record logged inside."""
    return structlog.contextvars.bound_contextvars(run_id=uuid.uuid4().hex[:8], target=target_url)
