"""MIME body-structure tree and the attachment walker.

A body structure is either a ``Multipart`` container or a ``BodyPart``
leaf.  ``flatten`` walks the tree depth-first and returns the leaves whose
Content-Disposition marks them as attachments.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union

ATTACHMENT_DISPOSITIONS = frozenset({"INLINE", "ATTACHMENT"})


@dataclass(frozen=True)
class Disposition:
    """Content-Disposition of a part (``type`` as sent by the server)."""

    type: str
    params: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class BodyPart:
    """A single (non-multipart) MIME part."""

    part_id: str
    type: str | None = None
    subtype: str | None = None
    params: dict[str, str] = field(default_factory=dict)
    encoding: str | None = None
    size: int | None = None
    disposition: Disposition | None = None


@dataclass(frozen=True)
class Multipart:
    """A multipart container; contributes only through its children."""

    children: list[BodyStructureNode]
    subtype: str | None = None


BodyStructureNode = Union[Multipart, BodyPart]


@dataclass(frozen=True)
class AttachmentPart:
    """A leaf part classified as an attachment."""

    part_id: str
    filename: str | None
    encoding: str | None
    content_type: str | None = None
    size: int | None = None

    @classmethod
    def from_body_part(cls, part: BodyPart) -> AttachmentPart:
        content_type = None
        if part.type and part.subtype:
            content_type = f"{part.type}/{part.subtype}".lower()
        return cls(
            part_id=part.part_id,
            filename=part.params.get("name"),
            encoding=part.encoding,
            content_type=content_type,
            size=part.size,
        )


def is_attachment(part: BodyPart) -> bool:
    if part.disposition is None or not isinstance(part.disposition.type, str):
        return False
    return part.disposition.type.upper() in ATTACHMENT_DISPOSITIONS


def flatten(node: BodyStructureNode) -> list[AttachmentPart]:
    """Return the attachment leaves of *node* in depth-first, left-to-right order."""
    attachments: list[AttachmentPart] = []
    _collect(node, attachments)
    return attachments


def _collect(node: BodyStructureNode, out: list[AttachmentPart]) -> None:
    match node:
        case Multipart(children=children):
            for child in children:
                _collect(child, out)
        case BodyPart() if is_attachment(node):
            out.append(AttachmentPart.from_body_part(node))
        case _:
            pass
