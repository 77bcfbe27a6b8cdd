"""Stream one attachment part to a file, then flag its message for deletion."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from pathlib import Path
from typing import BinaryIO

import structlog

from .decoder import decoder_for
from .session import DELETED, MailboxSession
from .structure import AttachmentPart

logger = structlog.get_logger()


class AttachmentStreamer:
    """Write attachment bytes into ``target_directory`` as they arrive.

    Each :meth:`stream` call is independent: it owns its decoder and file
    handle and shares nothing with concurrent calls.  File writes run in a
    worker thread via ``asyncio.to_thread()``.

    Attachments are named by their declared filename, so two attachments
    with the same name overwrite each other.
    """

    def __init__(self, session: MailboxSession, target_directory: str | Path) -> None:
        self._session = session
        self._target_directory = Path(target_directory)

    def target_path(self, filename: str) -> Path | None:
        # Only the final path component, so a crafted name cannot escape the directory.
        name = Path(filename.replace("\\", "/")).name
        if name in ("", ".", ".."):
            return None
        return self._target_directory / name

    @staticmethod
    def _open(path: Path) -> BinaryIO:
        path.parent.mkdir(parents=True, exist_ok=True)
        return path.open("wb")

    async def stream(
        self,
        part: AttachmentPart,
        uid: str,
        chunks: AsyncIterator[bytes],
    ) -> Path | None:
        """Decode *chunks* into the attachment file and flag *uid* ``\\Deleted``.

        Returns the written path, or ``None`` when the part has no filename
        (nothing is fetched, written or flagged in that case) or when the
        source yields no bytes (nothing is written or flagged).  Decode and
        I/O errors propagate; the message is then left unflagged and any
        partial file stays on disk.
        """
        if not part.filename:
            logger.debug("attachment_without_filename", uid=uid, part_id=part.part_id)
            return None

        path = self.target_path(part.filename)
        if path is None:
            logger.warning("attachment_filename_unusable", uid=uid, filename=part.filename)
            return None

        decoder = decoder_for(part.encoding)
        log = logger.bind(uid=uid, part_id=part.part_id, filename=str(path))
        log.info("attachment_streaming", encoding=part.encoding, size=part.size)

        handle: BinaryIO | None = None
        written = 0
        try:
            async for chunk in chunks:
                if handle is None:
                    if not chunk:
                        continue
                    # Opened on the first byte so an empty part leaves any existing file alone.
                    handle = await asyncio.to_thread(self._open, path)
                data = decoder.feed(chunk)
                if data:
                    await asyncio.to_thread(handle.write, data)
                    written += len(data)
            if handle is None:
                log.warning("attachment_empty")
                return None
            tail = decoder.flush()
            if tail:
                await asyncio.to_thread(handle.write, tail)
                written += len(tail)
        finally:
            if handle is not None:
                await asyncio.to_thread(handle.close)

        log.info("attachment_written", bytes=written)

        await self._session.set_flags(uid, [DELETED])
        log.info("message_marked_deleted")
        return path
