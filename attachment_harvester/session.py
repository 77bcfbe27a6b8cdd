"""MailboxSession: the mailbox protocol capability the pipeline depends on."""

from __future__ import annotations

import abc
from collections.abc import AsyncIterator
from dataclasses import dataclass

from .structure import BodyStructureNode

DELETED = "\\Deleted"


@dataclass(frozen=True)
class MailboxStatus:
    """Result of opening a mailbox."""

    name: str
    total: int


@dataclass
class FetchedMessage:
    """One message from a bulk fetch: header fields and body structure."""

    seqno: int
    uid: str
    header: bytes = b""
    structure: BodyStructureNode | None = None


class MailboxSession(abc.ABC):
    """Abstract mailbox session.

    One instance is owned by the entry point and handed to the controller
    and the message processor.  Lifecycle: ``connect`` once, any number of
    ``open_box``/``close_box`` rounds, ``end`` once.

    Implementations raise :class:`~.errors.SessionError` when the
    connection itself is unusable and
    :class:`~.errors.MailboxOperationError` when the server rejects a
    single command.
    """

    @abc.abstractmethod
    async def connect(self) -> None:
        """Connect and authenticate; returning means the session is ready."""

    @abc.abstractmethod
    async def open_box(self, name: str, read_only: bool = False) -> MailboxStatus:
        """Select mailbox *name* and report its message count."""

    @abc.abstractmethod
    async def close_box(self, expunge: bool = True) -> None:
        """Close the selected mailbox, expunging ``\\Deleted`` messages if *expunge*."""

    @abc.abstractmethod
    def fetch_messages(self, first: int, last: int) -> AsyncIterator[FetchedMessage]:
        """Yield header and structure for sequence numbers ``first..last``."""

    @abc.abstractmethod
    def fetch_part(self, uid: str, part_id: str) -> AsyncIterator[bytes]:
        """Yield the raw (still transfer-encoded) bytes of one body part, in order."""

    @abc.abstractmethod
    async def set_flags(self, uid: str, flags: list[str]) -> None:
        """Replace the flags of message *uid*."""

    @abc.abstractmethod
    async def end(self) -> None:
        """Log out and drop the connection.  Safe to call more than once."""
