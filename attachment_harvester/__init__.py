"""Attachment harvester: stream selected mail attachments from IMAP to disk."""

from .config import HarvesterConfig, ImapConfig
from .controller import InboxController, InboxState
from .errors import (
    HarvesterError,
    HeaderParseError,
    MailboxOperationError,
    SessionError,
    StreamDecodeError,
)
from .imap_session import AsyncImapSession
from .processor import MessageContext, MessageProcessor, PendingStreams
from .selection import SelectionPolicy, SuffixPolicy
from .session import FetchedMessage, MailboxSession, MailboxStatus
from .streamer import AttachmentStreamer
from .structure import AttachmentPart, BodyPart, Disposition, Multipart, flatten

__all__ = [
    "AsyncImapSession",
    "AttachmentPart",
    "AttachmentStreamer",
    "BodyPart",
    "Disposition",
    "FetchedMessage",
    "HarvesterConfig",
    "HarvesterError",
    "HeaderParseError",
    "ImapConfig",
    "InboxController",
    "InboxState",
    "MailboxOperationError",
    "MailboxSession",
    "MailboxStatus",
    "MessageContext",
    "MessageProcessor",
    "Multipart",
    "PendingStreams",
    "SelectionPolicy",
    "SessionError",
    "StreamDecodeError",
    "SuffixPolicy",
    "flatten",
]
