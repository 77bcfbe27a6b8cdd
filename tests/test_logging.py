"""Tests for attachment_harvester.logging."""

from __future__ import annotations

import json
import logging

import pytest
import structlog

from attachment_harvester.logging import redact_secrets, setup_logging


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    asyncio_logger = logging.getLogger("asyncio")
    handlers, level, asyncio_level = root.handlers[:], root.level, asyncio_logger.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    asyncio_logger.setLevel(asyncio_level)


class TestSetupLogging:
    def test_console_mode_is_default(self):
        setup_logging()
        root = logging.getLogger()
        assert root.level == logging.INFO
        assert len(root.handlers) == 1

    def test_json_mode(self):
        setup_logging(json=True, level="DEBUG")
        assert logging.getLogger().level == logging.DEBUG

    def test_level_case_insensitive(self):
        setup_logging(level="warning")
        assert logging.getLogger().level == logging.WARNING

    def test_replaces_existing_handlers(self):
        root = logging.getLogger()
        root.addHandler(logging.StreamHandler())
        root.addHandler(logging.StreamHandler())
        setup_logging()
        assert len(root.handlers) == 1

    def test_json_output_carries_context(self, capsys):
        setup_logging(json=True, level="INFO")
        with structlog.contextvars.bound_contextvars(mailbox="INBOX"):
            structlog.get_logger("harvest_test").info("attachment_written", uid="102")
        line = capsys.readouterr().out.strip().splitlines()[-1]
        record = json.loads(line)
        assert record["event"] == "attachment_written"
        assert record["uid"] == "102"
        assert record["mailbox"] == "INBOX"
        assert record["level"] == "info"

    def test_secrets_are_redacted(self, capsys):
        setup_logging(json=True)
        structlog.get_logger("harvest_test").info("login_attempt", user="u", password="hunter2")
        out = capsys.readouterr().out
        assert "hunter2" not in out
        record = json.loads(out.strip().splitlines()[-1])
        assert record["password"] == "**********"
        assert record["user"] == "u"

    def test_stdlib_records_share_renderer(self, capsys):
        setup_logging(json=True)
        logging.getLogger("third_party").warning("plain stdlib message")
        record = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
        assert record["event"] == "plain stdlib message"
        assert record["level"] == "warning"
        assert record["logger"] == "third_party"
        assert "timestamp" in record

    def test_asyncio_logger_not_below_info(self):
        setup_logging(level="DEBUG")
        assert logging.getLogger("asyncio").level == logging.INFO


class TestRedactSecrets:
    def test_masks_only_credential_keys(self):
        event = {"event": "x", "password": "p", "token": "t", "uid": "1"}
        assert redact_secrets(None, "info", event) == {
            "event": "x",
            "password": "**********",
            "token": "**********",
            "uid": "1",
        }
