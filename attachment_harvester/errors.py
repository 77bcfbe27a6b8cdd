"""Error taxonomy for the harvester pipeline.

Each class marks where a failure was detected, which decides how far it
is allowed to propagate:

* ``SessionError`` ends the run (the connection is unusable).
* ``MailboxOperationError`` is logged and the run carries on best-effort.
* ``HeaderParseError`` is logged; the message is processed without headers.
* ``StreamDecodeError`` fails a single attachment stream only.
"""

from __future__ import annotations


class HarvesterError(Exception):
    """Base class for all harvester errors."""


class SessionError(HarvesterError):
    """Connect, login, or transport failure on the mailbox session."""


class MailboxOperationError(HarvesterError):
    """The server rejected a mailbox command (open, close, fetch, store)."""


class HeaderParseError(HarvesterError):
    """Header text could not be parsed into fields."""


class StreamDecodeError(HarvesterError):
    """An attachment byte stream could not be decoded."""
