"""In-process delivery store."""

import threading
from typing import Optional

from paper_courier.core import DeliveryRecord, DeliveryStatus, DeliveryStore


class MemoryDeliveryStore(DeliveryStore):
    """Keep records in a dict. Nothing survives the process."""

    def __init__(self) -> None:
        self._records: dict[str, DeliveryRecord] = {}
        self._lock = threading.Lock()

    def get_status(self, period_key: str) -> Optional[DeliveryStatus]:
        with self._lock:
            record = self._records.get(period_key)
        return record.status if record else None

    def put_if_absent(self, period_key: str, record: DeliveryRecord) -> bool:
        if record.period_key != period_key:
            raise ValueError(
                f"Record for {record.period_key} cannot be stored under {period_key}"
            )
        with self._lock:
            if period_key in self._records:
                return False
            self._records[period_key] = record
            return True

    def last_record(self) -> Optional[DeliveryRecord]:
        records = self.list_records(limit=1)
        return records[0] if records else None

    def list_records(self, limit: int = 20) -> list[DeliveryRecord]:
        with self._lock:
            keys = sorted(self._records, reverse=True)[:limit]
            return [self._records[key] for key in keys]
