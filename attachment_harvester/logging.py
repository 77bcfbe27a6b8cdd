"""Structured logging setup using structlog.

Every module logs through ``structlog.get_logger()`` with snake_case event
names and key-value context (``uid``, ``seqno``, ``part_id``, ``filename``).
The controller binds ``mailbox`` as a contextvar for the whole run, so it
appears on every line without being passed around.  Records from plain
stdlib loggers (``asyncio`` and friends) go through the same pre-chain and
renderer, so a run's output is uniformly JSON or console.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import MutableMapping
from typing import Any

import structlog

SECRET_KEYS = frozenset({"password", "secret", "token"})


def redact_secrets(
    _logger: Any, _method: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Mask values of credential-like keys before rendering."""
    for key in event_dict.keys() & SECRET_KEYS:
        event_dict[key] = "**********"
    return event_dict


def _pre_chain() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        redact_secrets,
    ]


def setup_logging(*, json: bool = False, level: str = "INFO") -> None:
    """Route structlog and stdlib logging through one stdout handler.

    Parameters
    ----------
    json:
        Emit JSON lines instead of the console renderer.  Console is the
        default since a harvest is usually a one-shot run from cron or a
        terminal; colours only when stdout is a TTY.
    level:
        Root log level name, case-insensitive (e.g. ``"debug"``).
    """
    renderer: structlog.types.Processor
    if json:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=[
            *_pre_chain(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=_pre_chain(),
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level.upper())
    # asyncio never below INFO.
    logging.getLogger("asyncio").setLevel(max(root.level, logging.INFO))
