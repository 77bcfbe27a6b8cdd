"""Header-field extraction for the bulk message fetch.

The bulk fetch only asks for ``HEADER.FIELDS (FROM TO SUBJECT DATE)``, so
``email.parser.HeaderParser`` sees a few lines and never a body.
"""

from __future__ import annotations

import email.errors
import email.parser
import email.utils

from .errors import HeaderParseError

HEADER_FIELDS = ("FROM", "TO", "SUBJECT", "DATE")


def decode_header_bytes(chunks: list[bytes]) -> str:
    """Join header chunks and decode them as UTF-8, replacing bad bytes."""
    return b"".join(chunks).decode("utf-8", "replace")


def parse_header(text: str) -> dict[str, object]:
    """Parse header text into ``from``, ``to``, ``subject`` and ``date``.

    Raises :class:`HeaderParseError` when the text has no header lines or
    the parser rejects it.
    """
    try:
        headers = email.parser.HeaderParser().parsestr(text, headersonly=True)
    except (email.errors.MessageError, TypeError, ValueError) as exc:
        raise HeaderParseError(str(exc)) from exc

    if not headers.keys() and text.strip():
        raise HeaderParseError(f"no header fields in {text[:40]!r}")

    return {
        "from": headers.get("From", ""),
        "to": _parse_address_list(headers.get("To")),
        "subject": headers.get("Subject", ""),
        "date": headers.get("Date", ""),
    }


def _parse_address_list(header_value: str | None) -> list[str]:
    if not header_value:
        return []
    return [addr for _, addr in email.utils.getaddresses([header_value]) if addr]
