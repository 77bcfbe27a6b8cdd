"""InboxController: one harvest run from connect to logout."""

from __future__ import annotations

from enum import Enum

import structlog

from .errors import MailboxOperationError, SessionError
from .processor import MessageProcessor
from .session import MailboxSession

logger = structlog.get_logger()


class InboxState(str, Enum):
    """Lifecycle state of a harvest run."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CHECKING_INBOX = "checking_inbox"
    IDLE = "idle"
    PURGING = "purging"
    PROCESSING = "processing"
    DRAINING = "draining"


class InboxController:
    """Drive a single pass over the mailbox.

    1. Open the mailbox and count messages; stop if it is empty.
    2. Close it with expunge, purging messages flagged in an earlier run.
    3. Re-open it and bulk-fetch ``1:total``, handing each message to the
       :class:`MessageProcessor`.
    4. Wait for the attachment streams to settle, then end the session.

    Mailbox command failures are logged and the run continues as far as
    it can; a :class:`SessionError` ends it.  ``run()`` itself does not
    raise for either, and always finishes in ``DISCONNECTED``.
    """

    def __init__(
        self,
        session: MailboxSession,
        processor: MessageProcessor,
        *,
        mailbox: str = "INBOX",
        drain_timeout_seconds: float | None = None,
    ) -> None:
        self._session = session
        self._processor = processor
        self._mailbox = mailbox
        self._drain_timeout = drain_timeout_seconds
        self.state = InboxState.DISCONNECTED
        self.messages_seen = 0

    def _transition(self, state: InboxState) -> None:
        logger.debug("inbox_state", previous=self.state.value, state=state.value)
        self.state = state

    async def run(self) -> None:
        with structlog.contextvars.bound_contextvars(mailbox=self._mailbox):
            await self._run()

    async def _run(self) -> None:
        self._transition(InboxState.CONNECTING)
        try:
            await self._session.connect()
        except SessionError as exc:
            logger.error("session_error", error=str(exc), state=self.state.value)
            self._transition(InboxState.DISCONNECTED)
            return

        try:
            await self._harvest()
        except SessionError as exc:
            logger.error("session_error", error=str(exc), state=self.state.value)
        finally:
            await self._drain()
            await self._session.end()
            self._transition(InboxState.DISCONNECTED)
            logger.info("connection_ended", messages=self.messages_seen)

    async def _harvest(self) -> None:
        self._transition(InboxState.CHECKING_INBOX)
        try:
            status = await self._session.open_box(self._mailbox, read_only=False)
        except MailboxOperationError as exc:
            logger.error("mailbox_open_failed", error=str(exc))
            return

        if status.total == 0:
            self._transition(InboxState.IDLE)
            logger.info("mailbox_empty")
            return

        self._transition(InboxState.PURGING)
        try:
            await self._session.close_box(expunge=True)
        except MailboxOperationError as exc:
            logger.warning("mailbox_purge_failed", error=str(exc))

        self._transition(InboxState.PROCESSING)
        await self._process_inbox()

    async def _process_inbox(self) -> None:
        try:
            status = await self._session.open_box(self._mailbox, read_only=False)
        except MailboxOperationError as exc:
            logger.error("mailbox_open_failed", error=str(exc))
            return

        # The purge may have emptied the mailbox.
        if status.total == 0:
            logger.info("mailbox_empty")
            return

        try:
            async for message in self._session.fetch_messages(1, status.total):
                self.messages_seen += 1
                try:
                    self._processor.process(message)
                except Exception:
                    logger.exception(
                        "message_processing_failed",
                        seqno=message.seqno,
                        uid=message.uid,
                    )
        except MailboxOperationError as exc:
            logger.error("fetch_error", error=str(exc))
            return

        logger.info("fetch_complete", messages=self.messages_seen)

    async def _drain(self) -> None:
        self._transition(InboxState.DRAINING)
        pending = self._processor.pending.pending
        if pending:
            logger.info("waiting_for_streams", pending=pending)
        still_running = await self._processor.pending.drain(self._drain_timeout)
        if still_running:
            logger.warning(
                "streams_still_running",
                pending=still_running,
                timeout_seconds=self._drain_timeout,
            )
