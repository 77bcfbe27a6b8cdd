"""Parse IMAP ``FETCH`` responses and ``BODYSTRUCTURE`` values.

``imaplib`` hands back a FETCH response as a list mixing plain ``bytes``
lines and ``(meta, literal)`` tuples.  ``parse_fetch_response`` glues the
pieces back into wire form and reads the parenthesised lists, yielding one
``(seqno, attributes)`` pair per message.  ``parse_bodystructure`` turns a
parsed BODYSTRUCTURE list into the node tree from :mod:`.structure`,
numbering parts the way RFC 3501 section 6.4.5 does (``1``, ``2.1``, ...).

In the parsed form atoms are ``str``, quoted strings and literals are
``bytes``, ``NIL`` is ``None`` and parenthesised lists are ``list``.
"""

from __future__ import annotations

from email.header import decode_header, make_header
from typing import Any

from .structure import BodyPart, BodyStructureNode, Disposition, Multipart

_WHITESPACE = b" \t\r\n"
_ATOM_END = b" \t\r\n()"


def _read_quoted(buf: bytes, pos: int) -> tuple[bytes, int]:
    out = bytearray()
    pos += 1
    while pos < len(buf):
        c = buf[pos]
        if c == 0x5C:  # backslash
            pos += 1
            if pos < len(buf):
                out.append(buf[pos])
        elif c == 0x22:  # closing quote
            return bytes(out), pos + 1
        else:
            out.append(c)
        pos += 1
    raise ValueError("unterminated quoted string")


def _read_literal(buf: bytes, pos: int) -> tuple[bytes, int]:
    end = buf.index(b"}", pos)
    size = int(buf[pos + 1 : end])
    start = end + 1
    if buf[start : start + 2] == b"\r\n":
        start += 2
    if start + size > len(buf):
        raise ValueError("truncated literal")
    return buf[start : start + size], start + size


def _read_atom(buf: bytes, pos: int) -> tuple[str, int]:
    start = pos
    depth = 0
    while pos < len(buf):
        c = buf[pos : pos + 1]
        if c == b"[":
            depth += 1
        elif c == b"]":
            depth -= 1
        elif depth == 0 and c in _ATOM_END:
            break
        pos += 1
    return buf[start:pos].decode("ascii", "replace"), pos


def parse_values(buf: bytes) -> list[Any]:
    """Parse a sequence of IMAP values (atoms, strings, literals, lists)."""
    values: list[Any] = []
    stack = [values]
    pos = 0
    while pos < len(buf):
        c = buf[pos : pos + 1]
        if c in _WHITESPACE:
            pos += 1
        elif c == b"(":
            nested: list[Any] = []
            stack[-1].append(nested)
            stack.append(nested)
            pos += 1
        elif c == b")":
            if len(stack) == 1:
                raise ValueError(f"unbalanced ')' at offset {pos}")
            stack.pop()
            pos += 1
        elif c == b'"':
            text, pos = _read_quoted(buf, pos)
            stack[-1].append(text)
        elif c == b"{":
            text, pos = _read_literal(buf, pos)
            stack[-1].append(text)
        else:
            atom, pos = _read_atom(buf, pos)
            stack[-1].append(None if atom.upper() == "NIL" else atom)
    if len(stack) != 1:
        raise ValueError("unbalanced '(' in response")
    return values


def _join_response(data: list[Any]) -> bytes:
    pieces: list[bytes] = []
    for item in data:
        if isinstance(item, tuple):
            meta, literal = item
            pieces.append(meta + b"\r\n" + literal)
        elif isinstance(item, bytes):
            pieces.append(item)
    return b" ".join(pieces)


def parse_fetch_response(data: list[Any]) -> list[tuple[int, dict[str, Any]]]:
    """Split an ``imaplib`` FETCH response into per-message attribute dicts.

    Attribute names are upper-cased; section names keep their brackets,
    e.g. ``BODY[HEADER.FIELDS (FROM TO SUBJECT DATE)]``.
    """
    values = parse_values(_join_response(data))
    messages: list[tuple[int, dict[str, Any]]] = []
    i = 0
    while i + 1 < len(values):
        seqno, attrs = values[i], values[i + 1]
        if isinstance(seqno, str) and seqno.isdigit() and isinstance(attrs, list):
            pairs = iter(attrs)
            messages.append(
                (int(seqno), {str(key).upper(): value for key, value in zip(pairs, pairs)})
            )
            i += 2
        else:
            i += 1
    return messages


# ----------------------------------------------------------------------
# BODYSTRUCTURE
# ----------------------------------------------------------------------


def _text(value: Any) -> str | None:
    if isinstance(value, bytes):
        return value.decode("utf-8", "replace")
    if isinstance(value, str):
        return value
    return None


def _int(value: Any) -> int | None:
    try:
        return int(_text(value))  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None


def _field(value: list[Any], index: int) -> Any:
    return value[index] if index < len(value) else None


def _decode_words(text: str) -> str:
    if "=?" not in text:
        return text
    try:
        return str(make_header(decode_header(text)))
    except (ValueError, LookupError):
        return text


def _params(value: Any) -> dict[str, str]:
    if not isinstance(value, list):
        return {}
    params: dict[str, str] = {}
    pairs = iter(value)
    for key, val in zip(pairs, pairs):
        name, text = _text(key), _text(val)
        if name is not None and text is not None:
            params[name.lower()] = _decode_words(text)
    return params


def _disposition(value: Any) -> Disposition | None:
    if not isinstance(value, list) or not value:
        return None
    kind = _text(value[0])
    if kind is None:
        return None
    return Disposition(type=kind, params=_params(_field(value, 1)))


def _disposition_index(type_: str | None, subtype: str | None) -> int:
    # Extension data follows the body-type-specific fields.
    kind = (type_ or "").upper()
    if kind == "TEXT":
        return 9
    if kind == "MESSAGE" and (subtype or "").upper() in ("RFC822", "GLOBAL"):
        return 11
    return 8


def _body_part(value: list[Any], part_id: str) -> BodyPart:
    type_ = _text(_field(value, 0))
    subtype = _text(_field(value, 1))
    return BodyPart(
        part_id=part_id,
        type=type_,
        subtype=subtype,
        params=_params(_field(value, 2)),
        encoding=_text(_field(value, 5)),
        size=_int(_field(value, 6)),
        disposition=_disposition(_field(value, _disposition_index(type_, subtype))),
    )


def parse_bodystructure(value: list[Any], prefix: str = "") -> BodyStructureNode:
    """Convert a parsed BODYSTRUCTURE list into a node tree.

    A multipart's children are numbered ``1..n`` below *prefix*; a
    single-part message body is part ``1``.
    """
    if value and isinstance(value[0], list):
        children: list[BodyStructureNode] = []
        index = 0
        while index < len(value) and isinstance(value[index], list):
            child_id = f"{prefix}.{index + 1}" if prefix else str(index + 1)
            children.append(parse_bodystructure(value[index], child_id))
            index += 1
        return Multipart(children=children, subtype=_text(_field(value, index)))
    return _body_part(value, prefix or "1")
