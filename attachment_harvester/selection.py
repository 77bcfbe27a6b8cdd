"""Selection policies: which attachment parts are worth fetching."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from .structure import AttachmentPart


class SelectionPolicy(Protocol):
    def select(self, part: AttachmentPart) -> bool: ...


class SuffixPolicy:
    """Select parts whose filename contains one of the given tokens.

    Matching is case-insensitive and a substring match, so ``.wav`` also
    selects ``take.wav.1``.  Parts without a filename are never selected.
    """

    def __init__(self, suffixes: Iterable[str] = (".WAV",)) -> None:
        self.suffixes = tuple(s.upper() for s in suffixes if s)

    def select(self, part: AttachmentPart) -> bool:
        if not part.filename:
            return False
        name = part.filename.upper()
        return any(suffix in name for suffix in self.suffixes)

    def __repr__(self) -> str:
        return f"SuffixPolicy({list(self.suffixes)!r})"
