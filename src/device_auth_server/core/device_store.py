"""
Storage for registered devices and their tokens.

Records outlive the pending registration they were promoted from and are never
evicted. The in-memory implementation stands in for a durable store.
"""

import dataclasses
import logging
import threading
from abc import ABC, abstractmethod

from ..models.registration import DeviceRecord, DeviceTokens

logger = logging.getLogger(__name__)


class DeviceRecordStore(ABC):
    """Get/put/update access to device records keyed by product:dsn."""

    @abstractmethod
    def get(self, key: str) -> DeviceRecord | None:
        """Return a snapshot of the record for `key`, or None."""

    @abstractmethod
    def put(self, record: DeviceRecord) -> None:
        """Create or replace the record for `record.key`."""

    @abstractmethod
    def update_tokens(
        self,
        key: str,
        access: str,
        expires_in: int,
        refresh: str | None = None,
        refreshed_at: float | None = None,
    ) -> DeviceRecord | None:
        """Replace the access token (and rotated refresh token) in place."""

    def is_revoked(self, key: str) -> bool:
        """Revocation hook checked before every refresh. Nothing is revoked by default."""
        return False


class InMemoryDeviceRecordStore(DeviceRecordStore):
    def __init__(self):
        self._lock = threading.Lock()
        self._records: dict[str, DeviceRecord] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def get(self, key: str) -> DeviceRecord | None:
        with self._lock:
            record = self._records.get(key)
            if record is None:
                return None
            return dataclasses.replace(record, tokens=dataclasses.replace(record.tokens))

    def put(self, record: DeviceRecord) -> None:
        with self._lock:
            if record.key in self._records:
                logger.info(f"Replacing device record for {record.key}")
            self._records[record.key] = record

    def update_tokens(
        self,
        key: str,
        access: str,
        expires_in: int,
        refresh: str | None = None,
        refreshed_at: float | None = None,
    ) -> DeviceRecord | None:
        with self._lock:
            record = self._records.get(key)
            if record is None:
                return None
            record.tokens = DeviceTokens(
                access=access,
                refresh=refresh or record.tokens.refresh,
                expires_in=expires_in,
            )
            record.refreshed_at = refreshed_at
            return dataclasses.replace(record, tokens=dataclasses.replace(record.tokens))
