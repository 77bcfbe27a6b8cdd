"""Harvester configuration loaded from environment variables.

Uses pydantic-settings so every field can be overridden via env vars or a
local ``.env`` file.  Missing credentials fail validation at start-up.
"""

from __future__ import annotations

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings


class ImapConfig(BaseSettings):
    """IMAP account and connection settings."""

    model_config = {"env_prefix": "EMAIL_", "env_file": ".env", "extra": "ignore"}

    addr: str = Field(description="Mail account address used to log in")
    password: SecretStr = Field(description="Mail account password")
    imap_host: str = Field(description="IMAP server hostname")
    imap_port: int = Field(default=993, description="IMAP server port")
    use_ssl: bool = Field(default=True, description="Use SSL/TLS connection")
    mailbox: str = Field(default="INBOX", description="Mailbox to harvest")
    chunk_size: int = Field(
        default=65536,
        gt=0,
        description="Bytes requested per partial fetch when streaming a part",
    )


class HarvesterConfig(BaseSettings):
    """Root configuration: where attachments go and which ones to keep."""

    model_config = {"env_prefix": "HARVESTER_", "env_file": ".env", "extra": "ignore"}

    target_directory: str = Field(
        default="./incoming",
        description="Directory attachments are written to",
    )
    suffixes: list[str] = Field(
        default_factory=lambda: [".WAV"],
        description="Filename tokens that select an attachment (case-insensitive)",
    )
    drain_timeout_seconds: float | None = Field(
        default=None,
        description="Upper bound on waiting for in-flight attachment streams; None waits for all",
    )
    log_json: bool = Field(default=False, description="Emit JSON log lines")
    log_level: str = Field(default="INFO", description="Root log level")

    imap: ImapConfig = Field(default_factory=ImapConfig)
