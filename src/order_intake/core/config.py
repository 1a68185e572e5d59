"""Configuration management."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from dotenv import dotenv_values

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in _TRUE_VALUES


@dataclass(frozen=True)
class IntakePolicy:
    """Thresholds that drive routing and throttling of order emails."""

    auto_approve_threshold: float = 0.80
    rate_limit_max_attempts: int = 5
    rate_limit_window_seconds: int = 60
    duplicate_window_hours: int = 24


@dataclass
class Config:
    """Application configuration."""

    database_url: str
    # Inbound mail (IMAP)
    imap_host: str | None = None
    imap_port: int = 993
    imap_user: str | None = None
    imap_password: str | None = None
    imap_tls: bool = True
    imap_mailbox: str = "INBOX"
    # Outbound mail (SMTP)
    smtp_host: str | None = None
    smtp_port: int = 587
    smtp_user: str | None = None
    smtp_password: str | None = None
    smtp_secure: bool = False
    smtp_from: str | None = None
    poll_interval_minutes: int = 5
    # Intake policy
    auto_approve_threshold: float = 0.80
    rate_limit_max_attempts: int = 5
    rate_limit_window_seconds: int = 60
    duplicate_window_hours: int = 24
    log_level: str = "INFO"
    log_json: bool = False

    @classmethod
    def from_env(cls, env_file: Path | None = None) -> Config:
        """Load configuration from environment and .env file.

        Args:
            env_file: Path to .env file. If None, only the process
                     environment is used.

        Returns:
            Config instance with loaded values.

        Raises:
            ValueError: If required DATABASE_URL is not set or a numeric
                value cannot be parsed.
        """
        # Load from .env file if provided
        config: dict[str, Any] = {}
        if env_file and env_file.exists():
            config = dict(dotenv_values(env_file))

        def get(key: str) -> str | None:
            # Environment variables override .env file
            value = os.environ.get(key) or config.get(key)
            return value if value else None

        database_url = get("DATABASE_URL")
        if not database_url:
            raise ValueError("DATABASE_URL is required")

        defaults = IntakePolicy()

        return cls(
            database_url=database_url,
            imap_host=get("IMAP_HOST"),
            imap_port=int(get("IMAP_PORT") or 993),
            imap_user=get("IMAP_USER"),
            imap_password=get("IMAP_PASSWORD"),
            imap_tls=_as_bool(get("IMAP_TLS"), True),
            imap_mailbox=get("IMAP_MAILBOX") or "INBOX",
            smtp_host=get("SMTP_HOST"),
            smtp_port=int(get("SMTP_PORT") or 587),
            smtp_user=get("SMTP_USER"),
            smtp_password=get("SMTP_PASSWORD"),
            smtp_secure=_as_bool(get("SMTP_SECURE"), False),
            smtp_from=get("SMTP_FROM"),
            poll_interval_minutes=int(get("POLL_INTERVAL_MINUTES") or 5),
            auto_approve_threshold=float(
                get("AUTO_APPROVE_THRESHOLD") or defaults.auto_approve_threshold
            ),
            rate_limit_max_attempts=int(
                get("RATE_LIMIT_MAX_ATTEMPTS") or defaults.rate_limit_max_attempts
            ),
            rate_limit_window_seconds=int(
                get("RATE_LIMIT_WINDOW_SECONDS") or defaults.rate_limit_window_seconds
            ),
            duplicate_window_hours=int(
                get("DUPLICATE_WINDOW_HOURS") or defaults.duplicate_window_hours
            ),
            log_level=(get("LOG_LEVEL") or "INFO").upper(),
            log_json=_as_bool(get("LOG_JSON"), False),
        )

    def validate(self) -> list[str]:
        """Validate configuration.

        Returns:
            List of problems, empty when the configuration is usable.
        """
        problems = []
        if not self.database_url:
            problems.append("DATABASE_URL")
        if self.imap_host and not (self.imap_user and self.imap_password):
            problems.append("IMAP_USER/IMAP_PASSWORD")
        if not 0.0 <= self.auto_approve_threshold <= 1.0:
            problems.append("AUTO_APPROVE_THRESHOLD")
        if self.rate_limit_max_attempts < 1:
            problems.append("RATE_LIMIT_MAX_ATTEMPTS")
        return problems

    def has_imap(self) -> bool:
        """Check if inbound IMAP is configured."""
        return bool(self.imap_host and self.imap_user and self.imap_password)

    def has_smtp(self) -> bool:
        """Check if outbound SMTP is configured."""
        return bool(self.smtp_host)

    @property
    def sender_address(self) -> str | None:
        """Address used in the From header of notifications."""
        return self.smtp_from or self.smtp_user

    def intake_policy(self) -> IntakePolicy:
        """Build the intake policy from the configured thresholds."""
        return IntakePolicy(
            auto_approve_threshold=self.auto_approve_threshold,
            rate_limit_max_attempts=self.rate_limit_max_attempts,
            rate_limit_window_seconds=self.rate_limit_window_seconds,
            duplicate_window_hours=self.duplicate_window_hours,
        )

    def with_database(self, database_url: str) -> Config:
        """Create a new config pointing at another database.

        Args:
            database_url: Database URL to use.

        Returns:
            New Config instance.
        """
        return replace(self, database_url=database_url)
