"""Configuration management."""

import os
from dataclasses import dataclass, field, fields
from email.utils import parseaddr
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from paper_courier.core import Credentials, InvalidConfig, KeywordSet, RetryPolicy, ScheduleSpec
from paper_courier.core.schedule import LOCAL_TIMEZONE


@dataclass
class ScheduleConfig:
    """When the digest goes out."""
    weekday: str = "Wed"
    time: str = "08:00"
    timezone: str = LOCAL_TIMEZONE


@dataclass
class SMTPConfig:
    """SMTP account settings. The secret comes from the environment."""
    host: str = "smtp.gmail.com"
    port: int = 587
    account_id: str = ""
    security: str = "starttls"
    sender_name: str = "Paper Courier"


@dataclass
class DeliveryConfig:
    """Retry and timeout settings."""
    max_attempts: int = 3
    initial_retry_delay: float = 5.0
    backoff_factor: float = 2.0
    max_retry_delay: float = 300.0
    fetch_timeout: float = 60.0
    send_timeout: float = 30.0


@dataclass
class SourceConfig:
    """ScienceDirect search settings."""
    max_items_per_keyword: int = 25
    request_delay: float = 1.0


@dataclass
class PathsConfig:
    """Path settings."""
    records_dir: Path = Path("records")
    log_dir: Path = Path("logs")


@dataclass
class Settings:
    """Application settings."""

    keywords: list[str] = field(default_factory=list)
    recipient_email: str = ""
    log_level: str = "INFO"

    # Secret (from environment or config)
    smtp_secret: str = field(default="", repr=False)

    # Config sections
    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    smtp: SMTPConfig = field(default_factory=SMTPConfig)
    delivery: DeliveryConfig = field(default_factory=DeliveryConfig)
    source: SourceConfig = field(default_factory=SourceConfig)
    paths: PathsConfig = field(default_factory=PathsConfig)

    @property
    def smtp_account_id(self) -> str:
        return self.smtp.account_id

    @property
    def records_dir(self) -> Path:
        return self.paths.records_dir

    @property
    def log_dir(self) -> Path:
        return self.paths.log_dir

    @property
    def credentials(self) -> Credentials:
        return Credentials(account_id=self.smtp.account_id, secret=self.smtp_secret)

    @property
    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.delivery.max_attempts,
            initial_delay=self.delivery.initial_retry_delay,
            backoff_factor=self.delivery.backoff_factor,
            max_delay=self.delivery.max_retry_delay,
        )

    def keyword_set(self) -> KeywordSet:
        return KeywordSet.validate(self.keywords)

    def schedule_spec(self) -> ScheduleSpec:
        return ScheduleSpec.parse(
            self.schedule.weekday, self.schedule.time, self.schedule.timezone
        )

    def validate(self) -> None:
        """Check everything the scheduler needs before it starts.

        Raises:
            InvalidConfig: With the first problem found
        """
        self.keyword_set()
        self.schedule_spec()

        _, address = parseaddr(self.recipient_email or "")
        if not address or "@" not in address:
            raise InvalidConfig(f"recipient_email = '{self.recipient_email}' is not a valid address")

        if not self.smtp.host:
            raise InvalidConfig("smtp.host is required")
        if not self.smtp.account_id:
            raise InvalidConfig("smtp.account_id is required (or set SMTP_ACCOUNT_ID)")
        if not self.smtp_secret:
            raise InvalidConfig("SMTP secret is missing: set SMTP_SECRET in the environment")
        if self.smtp.security not in ("starttls", "ssl", "none"):
            raise InvalidConfig(f"smtp.security = '{self.smtp.security}' must be starttls, ssl or none")

        if self.delivery.max_attempts < 1:
            raise InvalidConfig("delivery.max_attempts must be at least 1")
        for name in ("initial_retry_delay", "max_retry_delay"):
            if getattr(self.delivery, name) < 0:
                raise InvalidConfig(f"delivery.{name} cannot be negative")
        if self.delivery.backoff_factor < 1:
            raise InvalidConfig("delivery.backoff_factor must be at least 1")
        for name in ("fetch_timeout", "send_timeout"):
            if getattr(self.delivery, name) <= 0:
                raise InvalidConfig(f"delivery.{name} must be positive")
        if self.source.max_items_per_keyword < 1:
            raise InvalidConfig("source.max_items_per_keyword must be at least 1")
        if self.source.request_delay < 0:
            raise InvalidConfig("source.request_delay cannot be negative")


def load_config(config_path: Path = Path("config.yaml")) -> dict:
    """Load configuration from YAML file."""
    if not config_path.exists():
        return {}

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise InvalidConfig(f"{config_path}: not valid YAML: {e}") from e

    if not isinstance(config, dict):
        raise InvalidConfig(f"{config_path}: top level must be a mapping")
    return config


def _apply_section(section: Any, values: Any, name: str) -> None:
    """Copy a YAML mapping onto a config dataclass, rejecting unknown keys."""
    if not isinstance(values, dict):
        raise InvalidConfig(f"'{name}' must be a mapping")

    known = {f.name: f for f in fields(section)}
    for key, value in values.items():
        if key not in known:
            raise InvalidConfig(f"Unknown setting '{name}.{key}'")
        default = getattr(section, key)
        if key == "time" and isinstance(value, int) and not isinstance(value, bool):
            # YAML 1.1 reads an unquoted 18:30 as the base-60 number 1110
            hours, minutes = divmod(value, 60)
            raise InvalidConfig(
                f"'{name}.time' was read as the number {value}; "
                f'quote it in the config file, e.g. time: "{hours:02d}:{minutes:02d}"'
            )
        try:
            if isinstance(default, Path):
                value = Path(value)
            elif isinstance(default, (int, float)):
                value = type(default)(value)
            else:
                value = str(value)
        except (TypeError, ValueError) as e:
            raise InvalidConfig(f"'{name}.{key}': {e}") from e
        setattr(section, key, value)


def get_settings(config_path: Path = Path("config.yaml")) -> Settings:
    """Get application settings from YAML config and environment."""
    load_dotenv()

    # Load YAML config
    config = load_config(config_path)

    unknown = set(config) - {
        "keywords", "recipient_email", "log_level", "smtp_secret",
        "schedule", "smtp", "delivery", "source", "paths",
    }
    if unknown:
        raise InvalidConfig(f"Unknown settings: {', '.join(sorted(unknown))}")

    settings = Settings()

    if "keywords" in config:
        settings.keywords = config["keywords"]
    if "recipient_email" in config:
        settings.recipient_email = str(config["recipient_email"] or "")
    if "log_level" in config:
        settings.log_level = str(config["log_level"]).upper()
    if "smtp_secret" in config:
        settings.smtp_secret = str(config["smtp_secret"] or "")

    # Apply YAML sections
    for name in ("schedule", "smtp", "delivery", "source", "paths"):
        if name in config:
            _apply_section(getattr(settings, name), config[name], name)

    # Environment wins over the file
    settings.smtp_secret = os.getenv("SMTP_SECRET", settings.smtp_secret)
    settings.smtp.account_id = os.getenv("SMTP_ACCOUNT_ID", settings.smtp.account_id)
    settings.recipient_email = os.getenv("RECIPIENT_EMAIL", settings.recipient_email)

    return settings
