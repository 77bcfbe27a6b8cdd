"""Async IMAP session wrapping stdlib imaplib with asyncio.to_thread."""

from __future__ import annotations

import asyncio
import imaplib
from collections.abc import AsyncIterator, Callable
from typing import Any

import structlog

from .bodystructure import parse_bodystructure, parse_fetch_response
from .config import ImapConfig
from .errors import MailboxOperationError, SessionError
from .headers import HEADER_FIELDS
from .session import FetchedMessage, MailboxSession, MailboxStatus

logger = structlog.get_logger()

MESSAGE_FETCH_ITEMS = f"(UID BODYSTRUCTURE BODY.PEEK[HEADER.FIELDS ({' '.join(HEADER_FIELDS)})])"


def _quote_mailbox(name: str) -> str:
    if name.startswith('"') or not any(c in name for c in ' "\\'):
        return name
    return '"' + name.replace("\\", "\\\\").replace('"', '\\"') + '"'


def _describe(data: Any) -> str:
    if isinstance(data, list) and data and isinstance(data[0], bytes):
        return data[0].decode("utf-8", "replace")
    return repr(data)


def _section_value(attrs: dict[str, Any]) -> bytes:
    for key, value in attrs.items():
        if key.startswith("BODY[") and isinstance(value, bytes):
            return value
    return b""


class AsyncImapSession(MailboxSession):
    """Async-friendly IMAP session.

    All blocking ``imaplib`` operations run via ``asyncio.to_thread()``.
    An ``imaplib`` connection is not safe to share between threads, so
    every command goes through one ``asyncio.Lock``; concurrent attachment
    streams interleave at command granularity.
    """

    def __init__(self, config: ImapConfig) -> None:
        self._config = config
        self._conn: imaplib.IMAP4_SSL | imaplib.IMAP4 | None = None
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        try:
            await asyncio.to_thread(self._connect_sync)
        except (imaplib.IMAP4.error, OSError) as exc:
            raise SessionError(f"cannot connect to {self._config.imap_host}: {exc}") from exc
        logger.info(
            "imap_connected",
            host=self._config.imap_host,
            port=self._config.imap_port,
            user=self._config.addr,
        )

    def _connect_sync(self) -> None:
        if self._config.use_ssl:
            conn = imaplib.IMAP4_SSL(self._config.imap_host, self._config.imap_port)
        else:
            conn = imaplib.IMAP4(self._config.imap_host, self._config.imap_port)
        try:
            conn.login(self._config.addr, self._config.password.get_secret_value())
        except imaplib.IMAP4.error:
            try:
                conn.shutdown()
            except OSError as exc:
                logger.debug("imap_shutdown_failed", error=str(exc))
            raise
        self._conn = conn

    async def end(self) -> None:
        if self._conn is None:
            return
        conn, self._conn = self._conn, None
        async with self._lock:
            await asyncio.to_thread(self._logout_sync, conn)
        logger.info("imap_disconnected")

    @staticmethod
    def _logout_sync(conn: imaplib.IMAP4) -> None:
        # LOGOUT, not CLOSE: flagged messages stay until the next purge.
        try:
            conn.logout()
        except (imaplib.IMAP4.error, OSError):
            pass

    # ------------------------------------------------------------------
    # Command plumbing
    # ------------------------------------------------------------------

    async def _call(self, command: str, func: Callable[..., Any], *args: Any) -> Any:
        """Run one imaplib command in a thread, mapping failures to our errors."""
        async with self._lock:
            try:
                typ, data = await asyncio.to_thread(func, *args)
            except (imaplib.IMAP4.abort, OSError) as exc:
                raise SessionError(f"{command} failed: {exc}") from exc
            except imaplib.IMAP4.error as exc:
                raise MailboxOperationError(f"{command} failed: {exc}") from exc
        if typ != "OK":
            raise MailboxOperationError(f"{command} failed: {typ} {_describe(data)}")
        return data

    def _require(self) -> imaplib.IMAP4:
        if self._conn is None:
            raise SessionError("IMAP session is not connected")
        return self._conn

    # ------------------------------------------------------------------
    # Mailbox commands
    # ------------------------------------------------------------------

    async def open_box(self, name: str, read_only: bool = False) -> MailboxStatus:
        conn = self._require()
        data = await self._call("SELECT", conn.select, _quote_mailbox(name), read_only)
        try:
            total = int(data[0])
        except (IndexError, TypeError, ValueError) as exc:
            raise MailboxOperationError(f"SELECT {name}: bad EXISTS count {data!r}") from exc
        logger.info("mailbox_opened", mailbox=name, total=total, read_only=read_only)
        return MailboxStatus(name=name, total=total)

    async def close_box(self, expunge: bool = True) -> None:
        conn = self._require()
        # CLOSE expunges \Deleted messages as a side effect; UNSELECT does not.
        if expunge:
            await self._call("CLOSE", conn.close)
        else:
            await self._call("UNSELECT", conn.unselect)
        logger.info("mailbox_closed", expunge=expunge)

    async def set_flags(self, uid: str, flags: list[str]) -> None:
        conn = self._require()
        await self._call("UID STORE", conn.uid, "STORE", uid, "FLAGS", f"({' '.join(flags)})")
        logger.debug("imap_flags_set", uid=uid, flags=flags)

    # ------------------------------------------------------------------
    # Retrieval
    # ------------------------------------------------------------------

    async def fetch_messages(self, first: int, last: int) -> AsyncIterator[FetchedMessage]:
        conn = self._require()
        data = await self._call("FETCH", conn.fetch, f"{first}:{last}", MESSAGE_FETCH_ITEMS)
        try:
            responses = parse_fetch_response(data)
        except ValueError as exc:
            raise MailboxOperationError(f"unparseable FETCH response: {exc}") from exc

        for seqno, attrs in responses:
            uid = attrs.get("UID")
            if uid is None:
                # Unsolicited FLAGS updates carry no UID and are not messages we asked for.
                logger.debug("fetch_response_without_uid", seqno=seqno)
                continue
            structure = attrs.get("BODYSTRUCTURE")
            yield FetchedMessage(
                seqno=seqno,
                uid=str(uid),
                header=_section_value(attrs),
                structure=parse_bodystructure(structure) if isinstance(structure, list) else None,
            )

    async def fetch_part(self, uid: str, part_id: str) -> AsyncIterator[bytes]:
        """Stream one part with partial fetches of ``chunk_size`` bytes.

        A chunk shorter than requested (or empty) marks the end of the part.
        """
        size = self._config.chunk_size
        offset = 0
        while True:
            conn = self._require()
            data = await self._call(
                "UID FETCH",
                conn.uid,
                "FETCH",
                uid,
                f"(BODY.PEEK[{part_id}]<{offset}.{size}>)",
            )
            try:
                responses = parse_fetch_response(data)
            except ValueError as exc:
                raise MailboxOperationError(f"unparseable FETCH response: {exc}") from exc

            chunk = b""
            for _, attrs in responses:
                chunk = _section_value(attrs)
                if chunk:
                    break
            if not chunk:
                return
            yield chunk
            if len(chunk) < size:
                return
            offset += len(chunk)
