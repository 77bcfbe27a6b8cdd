"""Shared test fixtures for the attachment harvester test suite."""

from __future__ import annotations

import asyncio
import base64
from collections.abc import AsyncIterator
from pathlib import Path

import pytest

from attachment_harvester.config import HarvesterConfig, ImapConfig
from attachment_harvester.errors import MailboxOperationError
from attachment_harvester.session import FetchedMessage, MailboxSession, MailboxStatus
from attachment_harvester.structure import BodyPart, Disposition, Multipart

WAV_PAYLOAD = b"RIFF\x24\x00\x00\x00WAVE"  # 12 bytes


@pytest.fixture
def imap_config() -> ImapConfig:
    return ImapConfig(
        addr="recorder@test.com",
        password="testpass",
        imap_host="imap.test.com",
        imap_port=993,
        use_ssl=True,
        mailbox="INBOX",
        chunk_size=4,
    )


@pytest.fixture
def harvester_config(imap_config: ImapConfig, tmp_path: Path) -> HarvesterConfig:
    return HarvesterConfig(
        target_directory=str(tmp_path / "incoming"),
        suffixes=[".wav"],
        imap=imap_config,
    )


@pytest.fixture
def target_dir(tmp_path: Path) -> Path:
    return tmp_path / "incoming"


# ------------------------------------------------------------------
# Body structure builders
# ------------------------------------------------------------------


def text_part(part_id: str, subtype: str = "PLAIN") -> BodyPart:
    return BodyPart(
        part_id=part_id,
        type="TEXT",
        subtype=subtype,
        params={"charset": "UTF-8"},
        encoding="7BIT",
        size=20,
    )


def attachment_part(
    part_id: str,
    name: str | None,
    *,
    disposition: str = "ATTACHMENT",
    encoding: str = "BASE64",
    type_: str = "AUDIO",
    subtype: str = "X-WAV",
) -> BodyPart:
    return BodyPart(
        part_id=part_id,
        type=type_,
        subtype=subtype,
        params={"name": name} if name is not None else {},
        encoding=encoding,
        size=16,
        disposition=Disposition(type=disposition, params={"filename": name} if name else {}),
    )


def mixed(*children) -> Multipart:
    return Multipart(children=list(children), subtype="MIXED")


def header_bytes(subject: str = "Voicemail", sender: str = "pbx@example.com") -> bytes:
    return (
        f"From: {sender}\r\n"
        f"To: recorder@test.com\r\n"
        f"Subject: {subject}\r\n"
        f"Date: Mon, 01 Jun 2025 12:00:00 +0000\r\n\r\n"
    ).encode()


# ------------------------------------------------------------------
# In-memory mailbox session
# ------------------------------------------------------------------


class FakeSession(MailboxSession):
    """Mailbox session backed by lists, recording every call."""

    def __init__(
        self,
        messages: list[FetchedMessage] | None = None,
        parts: dict[tuple[str, str], bytes] | None = None,
        *,
        chunk_size: int = 5,
    ) -> None:
        self.messages = list(messages or [])
        self.parts = dict(parts or {})
        self.chunk_size = chunk_size
        self.calls: list[tuple] = []
        self.flags: list[tuple[str, list[str]]] = []
        self.fetched_parts: list[tuple[str, str]] = []
        self.connect_error: Exception | None = None
        self.open_errors: list[Exception | None] = []
        self.close_error: Exception | None = None
        self.fetch_error: Exception | None = None
        self.purge_removes: int = 0
        self.ended = 0

    async def connect(self) -> None:
        self.calls.append(("connect",))
        if self.connect_error is not None:
            raise self.connect_error

    async def open_box(self, name: str, read_only: bool = False) -> MailboxStatus:
        self.calls.append(("open_box", name, read_only))
        if self.open_errors:
            error = self.open_errors.pop(0)
            if error is not None:
                raise error
        return MailboxStatus(name=name, total=len(self.messages))

    async def close_box(self, expunge: bool = True) -> None:
        self.calls.append(("close_box", expunge))
        if self.close_error is not None:
            raise self.close_error
        if expunge and self.purge_removes:
            del self.messages[: self.purge_removes]

    async def fetch_messages(self, first: int, last: int) -> AsyncIterator[FetchedMessage]:
        self.calls.append(("fetch_messages", first, last))
        for message in self.messages[first - 1 : last]:
            await asyncio.sleep(0)
            yield message
        if self.fetch_error is not None:
            raise self.fetch_error

    async def fetch_part(self, uid: str, part_id: str) -> AsyncIterator[bytes]:
        self.fetched_parts.append((uid, part_id))
        try:
            data = self.parts[(uid, part_id)]
        except KeyError:
            raise MailboxOperationError(f"no part {part_id} in {uid}") from None
        for start in range(0, len(data), self.chunk_size):
            await asyncio.sleep(0)
            yield data[start : start + self.chunk_size]

    async def set_flags(self, uid: str, flags: list[str]) -> None:
        self.calls.append(("set_flags", uid, list(flags)))
        self.flags.append((uid, list(flags)))

    async def end(self) -> None:
        self.calls.append(("end",))
        self.ended += 1


@pytest.fixture
def three_message_mailbox() -> FakeSession:
    """#1 plain text, #2 one clip.wav attachment, #3 an inline logo.png."""
    messages = [
        FetchedMessage(seqno=1, uid="101", header=header_bytes("Hello"), structure=text_part("1")),
        FetchedMessage(
            seqno=2,
            uid="102",
            header=header_bytes("Voicemail"),
            structure=mixed(text_part("1"), attachment_part("2", "clip.wav")),
        ),
        FetchedMessage(
            seqno=3,
            uid="103",
            header=header_bytes("Newsletter"),
            structure=mixed(
                text_part("1", "HTML"),
                attachment_part(
                    "2", "logo.png", disposition="inline", type_="IMAGE", subtype="PNG"
                ),
            ),
        ),
    ]
    parts = {
        ("102", "2"): base64.encodebytes(WAV_PAYLOAD),
        ("103", "2"): base64.encodebytes(b"\x89PNG fake image"),
    }
    return FakeSession(messages, parts)
