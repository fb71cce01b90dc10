"""Core domain entities."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class DeliveryStatus(str, Enum):
    """Outcome recorded for a scheduling period."""

    SUCCESS = "success"
    FAILED = "failed"


class SchedulerState(str, Enum):
    """States of the delivery scheduler."""

    IDLE = "idle"
    WAITING = "waiting"
    FETCHING = "fetching"
    RENDERING = "rendering"
    SENDING = "sending"
    COOLDOWN = "cooldown"
    STOPPED = "stopped"


@dataclass(frozen=True)
class Item:
    """Candidate content item produced by a fetcher."""

    identifier: str
    title: str
    link: str
    matched_keywords: tuple[str, ...] = ()
    journal: str = ""

    def __post_init__(self) -> None:
        if not self.identifier:
            raise ValueError("Identifier cannot be empty")
        if not self.title:
            raise ValueError("Title cannot be empty")


@dataclass(frozen=True)
class DigestMessage:
    """Rendered digest ready to be mailed."""

    recipient: str
    subject: str
    body: str
    built_at: datetime
    period_key: str


@dataclass(frozen=True)
class DeliveryRecord:
    """Persisted outcome of one scheduling period."""

    period_key: str
    sent_at: datetime
    status: DeliveryStatus
    note: str = ""

    def to_dict(self) -> dict:
        return {
            "period_key": self.period_key,
            "sent_at": self.sent_at.isoformat(),
            "status": self.status.value,
            "note": self.note,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "DeliveryRecord":
        return cls(
            period_key=str(data["period_key"]),
            sent_at=datetime.fromisoformat(str(data["sent_at"])),
            status=DeliveryStatus(data["status"]),
            note=data.get("note") or "",
        )


@dataclass(frozen=True)
class Credentials:
    """SMTP account credentials. The secret never shows up in repr."""

    account_id: str
    secret: str = field(repr=False)

    @property
    def is_complete(self) -> bool:
        return bool(self.account_id and self.secret)


@dataclass
class CycleOutcome:
    """What happened in one Fetching-to-Sending cycle."""

    period_key: str
    status: Optional[DeliveryStatus]
    item_count: int = 0
    skipped: bool = False
    note: str = ""
