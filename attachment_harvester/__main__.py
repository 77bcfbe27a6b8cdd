"""Entry point: one harvest run against the configured mailbox.

Usage::

    python -m attachment_harvester

Configuration comes from ``EMAIL_*`` and ``HARVESTER_*`` environment
variables (or a ``.env`` file in the working directory).
"""

from __future__ import annotations

import asyncio
import sys

import structlog
from pydantic import ValidationError

from .config import HarvesterConfig
from .controller import InboxController
from .imap_session import AsyncImapSession
from .logging import setup_logging
from .processor import MessageProcessor
from .selection import SuffixPolicy
from .streamer import AttachmentStreamer

logger = structlog.get_logger()


def build_controller(config: HarvesterConfig) -> InboxController:
    session = AsyncImapSession(config.imap)
    processor = MessageProcessor(
        session,
        SuffixPolicy(config.suffixes),
        AttachmentStreamer(session, config.target_directory),
    )
    return InboxController(
        session,
        processor,
        mailbox=config.imap.mailbox,
        drain_timeout_seconds=config.drain_timeout_seconds,
    )


def main() -> None:
    setup_logging()
    try:
        config = HarvesterConfig()
    except ValidationError as exc:
        logger.error("config_invalid", errors=exc.errors(include_url=False, include_input=False))
        sys.exit(1)

    setup_logging(json=config.log_json, level=config.log_level)
    logger.info(
        "harvest_starting",
        host=config.imap.imap_host,
        target_directory=config.target_directory,
        suffixes=config.suffixes,
    )
    asyncio.run(build_controller(config).run())


if __name__ == "__main__":
    main()
