"""Incremental transfer-encoding decoders for streamed attachment parts."""

from __future__ import annotations

import base64
import binascii
from typing import Protocol

from .errors import StreamDecodeError


class StreamDecoder(Protocol):
    def feed(self, chunk: bytes) -> bytes: ...

    def flush(self) -> bytes: ...


class PassthroughDecoder:
    """Writes bytes verbatim.

    Used for every encoding other than base64, including
    quoted-printable, so such files may come out unusable.
    """

    def feed(self, chunk: bytes) -> bytes:
        return chunk

    def flush(self) -> bytes:
        return b""


class Base64StreamDecoder:
    """Decode base64 text that arrives in arbitrary chunks.

    Line breaks and other whitespace are dropped; whatever does not fill a
    complete 4-character quantum is carried over to the next chunk, so the
    output never depends on where the chunk boundaries fall.
    """

    def __init__(self) -> None:
        self._pending = b""

    def feed(self, chunk: bytes) -> bytes:
        data = self._pending + b"".join(chunk.split())
        usable = len(data) - len(data) % 4
        self._pending = data[usable:]
        return self._decode(data[:usable])

    def flush(self) -> bytes:
        pending, self._pending = self._pending, b""
        if not pending:
            return b""
        # Tolerate a missing '=' tail on the final quantum.
        return self._decode(pending + b"=" * (-len(pending) % 4))

    @staticmethod
    def _decode(data: bytes) -> bytes:
        if not data:
            return b""
        try:
            return base64.b64decode(data, validate=True)
        except binascii.Error as exc:
            raise StreamDecodeError(f"invalid base64 data: {exc}") from exc


def decoder_for(encoding: str | None) -> StreamDecoder:
    """Pick the decoder for a part's Content-Transfer-Encoding."""
    if encoding and encoding.upper() == "BASE64":
        return Base64StreamDecoder()
    return PassthroughDecoder()
