"""Tests for attachment_harvester.headers."""

from __future__ import annotations

import pytest

from attachment_harvester.errors import HeaderParseError
from attachment_harvester.headers import decode_header_bytes, parse_header

from tests.conftest import header_bytes


class TestParseHeader:
    def test_basic_fields(self):
        fields = parse_header(decode_header_bytes([header_bytes("Voicemail")]))
        assert fields["from"] == "pbx@example.com"
        assert fields["to"] == ["recorder@test.com"]
        assert fields["subject"] == "Voicemail"
        assert fields["date"] == "Mon, 01 Jun 2025 12:00:00 +0000"

    def test_chunks_are_joined(self):
        raw = header_bytes("Split")
        chunks = [raw[:7], raw[7:30], raw[30:]]
        assert parse_header(decode_header_bytes(chunks))["subject"] == "Split"

    def test_multibyte_split_across_chunks(self):
        raw = "Subject: café\r\n\r\n".encode()
        split = raw.index(b"\xa9")
        assert parse_header(decode_header_bytes([raw[:split], raw[split:]]))["subject"] == "café"

    def test_display_name_addresses(self):
        text = "From: Alice <alice@example.com>\r\nTo: Bob <bob@example.com>, c@example.com\r\n\r\n"
        fields = parse_header(text)
        assert fields["from"] == "Alice <alice@example.com>"
        assert fields["to"] == ["bob@example.com", "c@example.com"]

    def test_missing_fields(self):
        fields = parse_header("Subject: only\r\n\r\n")
        assert fields["from"] == ""
        assert fields["to"] == []
        assert fields["date"] == ""

    def test_empty_header(self):
        assert parse_header("")["subject"] == ""

    def test_garbage_raises(self):
        with pytest.raises(HeaderParseError):
            parse_header("garbage without colon\r\n")

    def test_invalid_utf8_is_replaced(self):
        text = decode_header_bytes([b"Subject: bad \xff byte\r\n\r\n"])
        assert "�" in parse_header(text)["subject"]
