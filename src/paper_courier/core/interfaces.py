"""Core interfaces for adapters."""

from abc import ABC, abstractmethod
from typing import Optional

from paper_courier.core.entities import (
    Credentials,
    DeliveryRecord,
    DeliveryStatus,
    DigestMessage,
    Item,
)
from paper_courier.core.keywords import KeywordSet


class ContentFetcher(ABC):
    """Interface for fetching candidate items."""

    @abstractmethod
    async def fetch(self, keywords: KeywordSet, timeout: float) -> list[Item]:
        """Fetch items matching the keywords, best match first.

        Raises:
            FetchError: On any failure of the content source
        """
        pass


class Mailer(ABC):
    """Interface for delivering a digest message."""

    @abstractmethod
    async def send(self, message: DigestMessage, credentials: Credentials, timeout: float) -> None:
        """Send the message.

        The mailer enforces ``timeout`` itself and only returns or raises
        once the attempt is over, so a retry never overlaps a send that is
        still running.

        Raises:
            SendError: When the message could not be handed to the server
        """
        pass


class DeliveryStore(ABC):
    """Interface for persisting one delivery outcome per period."""

    @abstractmethod
    def get_status(self, period_key: str) -> Optional[DeliveryStatus]:
        """Status recorded for the period, or None if nothing was recorded."""
        pass

    @abstractmethod
    def put_if_absent(self, period_key: str, record: DeliveryRecord) -> bool:
        """Store the record unless the period already has one.

        Returns:
            False if a record for the period already existed
        """
        pass

    @abstractmethod
    def last_record(self) -> Optional[DeliveryRecord]:
        """Most recent record by period key."""
        pass

    @abstractmethod
    def list_records(self, limit: int = 20) -> list[DeliveryRecord]:
        """Records newest first."""
        pass
