"""Core domain layer."""

from paper_courier.core.digest_builder import NO_MATCHES_BODY, DigestBuilder
from paper_courier.core.entities import (
    Credentials,
    CycleOutcome,
    DeliveryRecord,
    DeliveryStatus,
    DigestMessage,
    Item,
    SchedulerState,
)
from paper_courier.core.errors import (
    DeliveryCancelled,
    FetchError,
    InvalidConfig,
    PaperCourierError,
    SendError,
    StoreError,
)
from paper_courier.core.interfaces import ContentFetcher, DeliveryStore, Mailer
from paper_courier.core.keywords import MATCH_ALL, KeywordSet
from paper_courier.core.retry import RetryPolicy, retry_async
from paper_courier.core.schedule import ScheduleSpec

__all__ = [
    "Item",
    "DigestMessage",
    "DeliveryRecord",
    "DeliveryStatus",
    "Credentials",
    "CycleOutcome",
    "SchedulerState",
    "KeywordSet",
    "MATCH_ALL",
    "ScheduleSpec",
    "DigestBuilder",
    "NO_MATCHES_BODY",
    "RetryPolicy",
    "retry_async",
    "ContentFetcher",
    "Mailer",
    "DeliveryStore",
    "PaperCourierError",
    "InvalidConfig",
    "FetchError",
    "SendError",
    "StoreError",
    "DeliveryCancelled",
]
