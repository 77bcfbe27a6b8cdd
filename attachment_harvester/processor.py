"""Per-message orchestration: find attachments, fetch the wanted ones.

Each selected attachment becomes its own asyncio task that pulls the
part from the session and hands the byte stream to an
:class:`AttachmentStreamer`.  Tasks are tracked in :class:`PendingStreams`
so the controller can wait for them before ending the session.
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path
from typing import Any

import structlog

from .errors import HeaderParseError
from .headers import decode_header_bytes, parse_header
from .selection import SelectionPolicy
from .session import FetchedMessage, MailboxSession
from .streamer import AttachmentStreamer
from .structure import AttachmentPart, flatten

logger = structlog.get_logger()


@dataclass
class MessageContext:
    """What the processor learned about one message."""

    seqno: int
    uid: str
    headers: dict[str, object] | None = None
    attachments: list[AttachmentPart] = field(default_factory=list)
    selected: list[AttachmentPart] = field(default_factory=list)


class PendingStreams:
    """Set of in-flight attachment tasks.

    A task that fails is logged and dropped; it never cancels its siblings.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], **context: Any) -> asyncio.Task[Any]:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(partial(self._settled, context))
        return task

    def _settled(self, context: dict[str, Any], task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("attachment_stream_cancelled", **context)
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "attachment_stream_failed",
                error=str(exc),
                error_type=type(exc).__name__,
                exc_info=exc,
                **context,
            )

    async def drain(self, timeout: float | None = None) -> int:
        """Wait for every in-flight task to settle.

        Returns how many were still running when *timeout* expired
        (0 when all settled).
        """
        tasks = set(self._tasks)
        if not tasks:
            return 0
        _, still_running = await asyncio.wait(tasks, timeout=timeout)
        return len(still_running)


class MessageProcessor:
    """Handle one message from the bulk fetch.

    Parses the header fields, walks the body structure, applies the
    selection policy and starts one stream task per selected attachment.
    Parts are fetched by UID, which stays valid while other messages are
    flagged or renumbered.
    """

    def __init__(
        self,
        session: MailboxSession,
        policy: SelectionPolicy,
        streamer: AttachmentStreamer,
        pending: PendingStreams | None = None,
    ) -> None:
        self._session = session
        self._policy = policy
        self._streamer = streamer
        self.pending = pending or PendingStreams()

    def process(self, message: FetchedMessage) -> MessageContext:
        """Start streaming the selected attachments of *message*.

        Returns once the stream tasks are spawned, not when they finish.
        """
        log = logger.bind(seqno=message.seqno, uid=message.uid)
        context = MessageContext(seqno=message.seqno, uid=message.uid)

        try:
            context.headers = parse_header(decode_header_bytes([message.header]))
            log.info(
                "header_parsed",
                sender=context.headers["from"],
                subject=context.headers["subject"],
            )
        except HeaderParseError as exc:
            log.warning("header_parse_failed", error=str(exc))

        if message.structure is not None:
            context.attachments = flatten(message.structure)
        log.info("attachments_found", count=len(context.attachments))

        for part in context.attachments:
            if not self._policy.select(part):
                log.info("attachment_skipped", part_id=part.part_id, filename=part.filename)
                continue
            log.info("attachment_fetching", part_id=part.part_id, filename=part.filename)
            context.selected.append(part)
            self.pending.spawn(
                self._retrieve(part, message.uid),
                uid=message.uid,
                part_id=part.part_id,
                filename=part.filename,
            )

        log.info("message_processed", streams=len(context.selected))
        return context

    async def _retrieve(self, part: AttachmentPart, uid: str) -> Path | None:
        chunks = self._session.fetch_part(uid, part.part_id)
        return await self._streamer.stream(part, uid, chunks)
