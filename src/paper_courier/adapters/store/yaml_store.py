"""Delivery records kept as one YAML artifact per period."""

import logging
import os
import re
import uuid
from pathlib import Path
from typing import Optional

import yaml

from paper_courier.core import DeliveryRecord, DeliveryStatus, DeliveryStore, StoreError

logger = logging.getLogger(__name__)

_PERIOD_KEY_PATTERN = re.compile(r"^\d{4}-W\d{2}$")


class YamlDeliveryStore(DeliveryStore):
    """Store each period's outcome in ``<records_dir>/<period_key>.yaml``.

    ``put_if_absent`` writes the record to a temporary file and hard-links
    it onto the period file. The link fails if the period file exists, so
    processes sharing the directory never record two outcomes for one
    period, and readers never see a half-written record.
    """

    def __init__(self, records_dir: Path) -> None:
        self.records_dir = Path(records_dir)
        self._ensure_structure()

    def _ensure_structure(self) -> None:
        try:
            self.records_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreError(f"Cannot create records directory {self.records_dir}: {e}") from e

    def get_status(self, period_key: str) -> Optional[DeliveryStatus]:
        record = self._load(self._get_record_path(period_key))
        return record.status if record else None

    def put_if_absent(self, period_key: str, record: DeliveryRecord) -> bool:
        if record.period_key != period_key:
            raise ValueError(
                f"Record for {record.period_key} cannot be stored under {period_key}"
            )

        record_path = self._get_record_path(period_key)
        if record_path.exists():
            return False

        tmp_path = self.records_dir / f".{period_key}.{uuid.uuid4().hex}.tmp"
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                yaml.safe_dump(record.to_dict(), f, allow_unicode=True, default_flow_style=False, sort_keys=False)
                f.flush()
                os.fsync(f.fileno())
            os.link(tmp_path, record_path)
        except FileExistsError:
            return False
        except (OSError, yaml.YAMLError) as e:
            raise StoreError(f"Could not write record {period_key}: {e}") from e
        finally:
            tmp_path.unlink(missing_ok=True)

        logger.debug("Recorded %s as %s in %s", period_key, record.status.value, record_path)
        return True

    def last_record(self) -> Optional[DeliveryRecord]:
        records = self.list_records(limit=1)
        return records[0] if records else None

    def list_records(self, limit: int = 20) -> list[DeliveryRecord]:
        try:
            paths = sorted(
                (p for p in self.records_dir.glob("*.yaml") if _PERIOD_KEY_PATTERN.match(p.stem)),
                key=lambda p: p.stem,
                reverse=True,
            )
        except OSError as e:
            raise StoreError(f"Cannot list records in {self.records_dir}: {e}") from e

        # Unreadable files are skipped here; get_status still raises for them
        records = []
        for record_path in paths:
            if len(records) >= limit:
                break
            try:
                record = self._load(record_path)
            except StoreError as e:
                logger.warning("Skipping %s", e)
                continue
            if record is not None:
                records.append(record)
        return records

    def _load(self, record_path: Path) -> Optional[DeliveryRecord]:
        if not record_path.exists():
            return None
        try:
            with open(record_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
            return DeliveryRecord.from_dict(data)
        except (OSError, yaml.YAMLError, KeyError, TypeError, ValueError) as e:
            raise StoreError(f"Could not read record {record_path.name}: {e}") from e

    def _get_record_path(self, period_key: str) -> Path:
        if not _PERIOD_KEY_PATTERN.match(period_key):
            raise ValueError(f"Invalid period key: {period_key!r}")
        return self.records_dir / f"{period_key}.yaml"
