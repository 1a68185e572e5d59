"""Tests for order_intake.core.config."""

from __future__ import annotations

from pathlib import Path

import pytest

from order_intake.core.config import Config, IntakePolicy

ENV_KEYS = (
    "DATABASE_URL",
    "IMAP_HOST",
    "IMAP_PORT",
    "IMAP_USER",
    "IMAP_PASSWORD",
    "IMAP_TLS",
    "SMTP_HOST",
    "SMTP_PORT",
    "SMTP_USER",
    "SMTP_FROM",
    "SMTP_SECURE",
    "AUTO_APPROVE_THRESHOLD",
    "RATE_LIMIT_MAX_ATTEMPTS",
    "LOG_LEVEL",
    "LOG_JSON",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove configuration variables from the process environment."""
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


class TestConfig:
    """Tests for Config class."""

    def test_from_env_with_database_url(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test loading config with only DATABASE_URL set."""
        monkeypatch.setenv("DATABASE_URL", "postgresql://localhost/testdb")

        config = Config.from_env()

        assert config.database_url == "postgresql://localhost/testdb"
        assert config.imap_host is None
        assert config.smtp_port == 587
        assert config.auto_approve_threshold == 0.80
        assert config.log_level == "INFO"

    def test_from_env_missing_database_url(self) -> None:
        """Test that missing DATABASE_URL raises ValueError."""
        with pytest.raises(ValueError, match="DATABASE_URL is required"):
            Config.from_env()

    def test_from_env_with_all_values(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test loading config with mail and policy values set."""
        monkeypatch.setenv("DATABASE_URL", "postgresql://localhost/testdb")
        monkeypatch.setenv("IMAP_HOST", "imap.example.com")
        monkeypatch.setenv("IMAP_PORT", "143")
        monkeypatch.setenv("IMAP_TLS", "false")
        monkeypatch.setenv("SMTP_HOST", "smtp.example.com")
        monkeypatch.setenv("SMTP_SECURE", "yes")
        monkeypatch.setenv("AUTO_APPROVE_THRESHOLD", "0.9")
        monkeypatch.setenv("RATE_LIMIT_MAX_ATTEMPTS", "10")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("LOG_JSON", "1")

        config = Config.from_env()

        assert config.imap_port == 143
        assert config.imap_tls is False
        assert config.smtp_secure is True
        assert config.auto_approve_threshold == 0.9
        assert config.rate_limit_max_attempts == 10
        assert config.log_level == "DEBUG"
        assert config.log_json is True

    def test_from_env_file(self, tmp_path: Path) -> None:
        """Test loading values from a .env file."""
        env_file = tmp_path / ".env"
        env_file.write_text(
            "DATABASE_URL=postgresql://localhost/filedb\nSMTP_HOST=smtp.example.com\n"
        )

        config = Config.from_env(env_file)

        assert config.database_url == "postgresql://localhost/filedb"
        assert config.smtp_host == "smtp.example.com"

    def test_environment_overrides_file(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        """Test that the process environment wins over the .env file."""
        env_file = tmp_path / ".env"
        env_file.write_text("DATABASE_URL=postgresql://localhost/filedb\n")
        monkeypatch.setenv("DATABASE_URL", "postgresql://localhost/envdb")

        assert Config.from_env(env_file).database_url == "postgresql://localhost/envdb"

    def test_invalid_number(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that a malformed number raises ValueError."""
        monkeypatch.setenv("DATABASE_URL", "postgresql://localhost/testdb")
        monkeypatch.setenv("IMAP_PORT", "not-a-port")

        with pytest.raises(ValueError):
            Config.from_env()

    def test_validate_with_valid_config(self) -> None:
        """Test validation with valid config."""
        config = Config(database_url="postgresql://localhost/testdb")
        assert config.validate() == []

    def test_validate_problems(self) -> None:
        """Test validation reports each unusable setting."""
        config = Config(
            database_url="",
            imap_host="imap.example.com",
            auto_approve_threshold=1.5,
            rate_limit_max_attempts=0,
        )

        assert config.validate() == [
            "DATABASE_URL",
            "IMAP_USER/IMAP_PASSWORD",
            "AUTO_APPROVE_THRESHOLD",
            "RATE_LIMIT_MAX_ATTEMPTS",
        ]

    def test_has_imap(self) -> None:
        """Test has_imap method."""
        config = Config(
            database_url="test", imap_host="imap", imap_user="u", imap_password="p"
        )
        assert config.has_imap() is True
        assert Config(database_url="test", imap_host="imap").has_imap() is False

    def test_has_smtp(self) -> None:
        """Test has_smtp method."""
        assert Config(database_url="test", smtp_host="smtp").has_smtp() is True
        assert Config(database_url="test").has_smtp() is False

    def test_sender_address(self) -> None:
        """Test that SMTP_FROM is preferred over SMTP_USER."""
        assert Config(database_url="test", smtp_user="u@x.de").sender_address == "u@x.de"
        assert (
            Config(database_url="test", smtp_user="u@x.de", smtp_from="f@x.de").sender_address
            == "f@x.de"
        )

    def test_intake_policy(self) -> None:
        """Test building the intake policy."""
        config = Config(
            database_url="test", auto_approve_threshold=0.7, duplicate_window_hours=12
        )

        assert config.intake_policy() == IntakePolicy(
            auto_approve_threshold=0.7, duplicate_window_hours=12
        )

    def test_with_database(self) -> None:
        """Test creating config with another database."""
        config = Config(database_url="postgresql://localhost/a", smtp_host="smtp")

        other = config.with_database("postgresql://localhost/b")

        assert other.database_url == "postgresql://localhost/b"
        assert other.smtp_host == "smtp"
        assert config.database_url == "postgresql://localhost/a"
