"""
Log output for the focus coach process.

Package modules only use stdlib ``logging.getLogger(__name__)``. This module
installs a single root handler whose formatter runs those records through
structlog, so sampler ticks, provider failures and ledger errors come out as
either readable console lines or one JSON object per line.

Timestamps are local time, matching the timestamps stored in the ledgers.
HTTP client chatter (``httpx``, ``openai``) is held at WARNING unless the
process itself runs at DEBUG.

Environment:
    FOCUS_COACH_LOG_LEVEL   default level when none is passed (INFO)
    FOCUS_COACH_LOG_FORMAT  ``json`` for JSON lines, anything else for console
"""

import logging
import os
import sys
from typing import List, Optional

import structlog

NOISY_LOGGERS = ("httpx", "httpcore", "openai")


def setup_logging(level: Optional[str] = None, json_output: Optional[bool] = None) -> None:
    """Route all stdlib logging to stderr through structlog.

    Safe to call more than once; the previous root handlers are replaced.

    Args:
        level: Level name, case-insensitive; unknown names fall back to INFO
        json_output: Force JSON (True) or console (False) output
    """
    if level is None:
        level = os.environ.get("FOCUS_COACH_LOG_LEVEL", "INFO")
    if json_output is None:
        json_output = os.environ.get("FOCUS_COACH_LOG_FORMAT", "").lower() == "json"

    numeric_level = getattr(logging, level.upper(), logging.INFO)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    pre_chain: List[structlog.types.Processor] = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.ExtraAdder(),
        structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S", utc=False),
    ]

    if json_output:
        render_chain: List[structlog.types.Processor] = [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        render_chain = [structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())]

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, *render_chain],
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(numeric_level)

    library_level = logging.DEBUG if numeric_level <= logging.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)


__all__ = ["setup_logging"]
