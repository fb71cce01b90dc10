"""Tests for configuration loading."""

from pathlib import Path

import pytest

from paper_courier.config import Settings, get_settings, load_config
from paper_courier.core import InvalidConfig

CONFIG_YAML = """
keywords:
  - Graphene
  - lithium battery
recipient_email: reader@example.com
schedule:
  weekday: Sat
  time: "06:30"
  timezone: UTC
smtp:
  host: smtp.example.com
  port: 465
  account_id: bot@example.com
  security: ssl
delivery:
  max_attempts: 5
  initial_retry_delay: 1
paths:
  records_dir: /tmp/courier-records
"""


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the caller's environment out of the settings."""
    for name in ("SMTP_SECRET", "SMTP_ACCOUNT_ID", "RECIPIENT_EMAIL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("paper_courier.config.load_dotenv", lambda: None)


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    """Write a valid config file."""
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG_YAML, encoding="utf-8")
    return path


def test_get_settings_from_yaml(config_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Test YAML values land in the right sections."""
    monkeypatch.setenv("SMTP_SECRET", "app-password")

    settings = get_settings(config_path)
    settings.validate()

    assert settings.keyword_set().terms == ("graphene", "lithium battery")
    assert settings.schedule_spec().describe() == "Sat 06:30"
    assert settings.smtp.port == 465
    assert settings.smtp_account_id == "bot@example.com"
    assert settings.delivery.max_attempts == 5
    assert settings.retry_policy.initial_delay == 1.0
    assert isinstance(settings.delivery.initial_retry_delay, float)
    assert settings.records_dir == Path("/tmp/courier-records")
    assert settings.credentials.secret == "app-password"
    assert "app-password" not in repr(settings)


def test_environment_overrides_file(config_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Test environment variables win over the file."""
    monkeypatch.setenv("SMTP_SECRET", "from-env")
    monkeypatch.setenv("SMTP_ACCOUNT_ID", "other@example.com")
    monkeypatch.setenv("RECIPIENT_EMAIL", "team@example.com")

    settings = get_settings(config_path)

    assert settings.credentials.account_id == "other@example.com"
    assert settings.credentials.secret == "from-env"
    assert settings.recipient_email == "team@example.com"


def test_missing_file_uses_defaults(tmp_path: Path) -> None:
    """Test defaults: Wednesday 08:00, no keywords."""
    settings = get_settings(tmp_path / "missing.yaml")

    assert settings.schedule.weekday == "Wed"
    assert settings.schedule.time == "08:00"
    with pytest.raises(InvalidConfig, match="at least one keyword"):
        settings.validate()


def test_validate_requires_secret(config_path: Path) -> None:
    """Test the SMTP secret must be provided."""
    settings = get_settings(config_path)

    with pytest.raises(InvalidConfig, match="SMTP_SECRET"):
        settings.validate()


@pytest.mark.parametrize(
    "mutate, message",
    [
        (lambda s: setattr(s, "recipient_email", "not-an-address"), "recipient_email"),
        (lambda s: setattr(s.schedule, "weekday", "Funday"), "weekday"),
        (lambda s: setattr(s.schedule, "time", "25:00"), "hour"),
        (lambda s: setattr(s.smtp, "account_id", ""), "account_id"),
        (lambda s: setattr(s.smtp, "security", "tls"), "security"),
        (lambda s: setattr(s.delivery, "max_attempts", 0), "max_attempts"),
        (lambda s: setattr(s.delivery, "send_timeout", 0), "send_timeout"),
        (lambda s: setattr(s.delivery, "backoff_factor", 0), "backoff_factor"),
        (lambda s: setattr(s.source, "request_delay", -1), "request_delay"),
        (lambda s: setattr(s.source, "max_items_per_keyword", 0), "max_items_per_keyword"),
        (lambda s: setattr(s, "keywords", ["ok", "  "]), "empty"),
    ],
)
def test_validate_rejects_bad_values(mutate, message: str) -> None:
    """Test each invalid setting is reported."""
    settings = Settings(
        keywords=["graphene"],
        recipient_email="reader@example.com",
        smtp_secret="secret",
    )
    settings.smtp.account_id = "bot@example.com"
    settings.validate()

    mutate(settings)

    with pytest.raises(InvalidConfig, match=message):
        settings.validate()


def test_unknown_keys_are_rejected(tmp_path: Path) -> None:
    """Test typos in the config file are not silently ignored."""
    path = tmp_path / "config.yaml"

    path.write_text("keywords: [a]\nschedule:\n  weekdy: Mon\n", encoding="utf-8")
    with pytest.raises(InvalidConfig, match="schedule.weekdy"):
        get_settings(path)

    path.write_text("keywords: [a]\nrecipient: x@example.com\n", encoding="utf-8")
    with pytest.raises(InvalidConfig, match="recipient"):
        get_settings(path)


def test_invalid_yaml(tmp_path: Path) -> None:
    """Test broken YAML is an InvalidConfig."""
    path = tmp_path / "config.yaml"
    path.write_text("keywords: [unclosed\n", encoding="utf-8")

    with pytest.raises(InvalidConfig, match="not valid YAML"):
        load_config(path)


def test_unquoted_time_is_reported(tmp_path: Path) -> None:
    """Test an unquoted HH:MM (a base-60 number in YAML) asks for quotes."""
    path = tmp_path / "config.yaml"
    path.write_text("schedule:\n  weekday: Wed\n  time: 18:30\n", encoding="utf-8")

    with pytest.raises(InvalidConfig, match='quote it.*"18:30"'):
        get_settings(path)


def test_quoted_evening_time(tmp_path: Path) -> None:
    """Test a quoted afternoon time parses."""
    path = tmp_path / "config.yaml"
    path.write_text('schedule:\n  weekday: Wed\n  time: "18:30"\n', encoding="utf-8")

    settings = get_settings(path)

    assert settings.schedule_spec().describe() == "Wed 18:30"


def test_wrong_value_type(tmp_path: Path) -> None:
    """Test a non-numeric port is reported."""
    path = tmp_path / "config.yaml"
    path.write_text("smtp:\n  port: submission\n", encoding="utf-8")

    with pytest.raises(InvalidConfig, match="smtp.port"):
        get_settings(path)
