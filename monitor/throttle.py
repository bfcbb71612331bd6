"""
Daily notification budget.

The budget is process-wide and is read fresh from the persisted log on every
check. Two overlapping runs can both see an under-budget count and both
send; callers must ensure at most one run is active at a time.

Timestamps are kept as naive local time. Offset-aware timestamps found in a
log are converted on load.
"""

import json
import os
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

import structlog
from motor.motor_asyncio import AsyncIOMotorCollection
from pydantic import ValidationError
from pymongo.errors import PyMongoError

from monitor.errors import StorageError
from monitor.models import NotificationRecord, ThrottleSettings

logger = structlog.get_logger(__name__)


def to_local_naive(timestamp: datetime) -> datetime:
    """Convert an offset-aware timestamp to naive local time; naive values pass through."""
    if timestamp.tzinfo is None:
        return timestamp
    return timestamp.astimezone().replace(tzinfo=None)


def _parse_records(entries: List[Any], log) -> List[NotificationRecord]:
    records = []
    for entry in entries:
        try:
            record = NotificationRecord(**entry)
        except (TypeError, ValidationError) as e:
            log.warning("Skipping malformed notification record", entry=entry, error=str(e))
            continue
        records.append(record.copy(update={"timestamp": to_local_naive(record.timestamp)}))
    return records


class NotificationLog(ABC):
    """Append-only, time-pruned log of notification records."""

    @abstractmethod
    async def load(self) -> List[NotificationRecord]:
        """All stored records."""

    @abstractmethod
    async def append(self, record: NotificationRecord) -> None:
        """Persist one new record."""

    @abstractmethod
    async def prune(self, cutoff: datetime) -> int:
        """Delete records at or before ``cutoff``; returns how many were removed."""


class FileNotificationLog(NotificationLog):
    """Records as a JSON array in a single file."""

    def __init__(self, path: str):
        self.path = path
        self.logger = logger.bind(component="notification_log", backend="file")

    async def load(self) -> List[NotificationRecord]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except FileNotFoundError:
            return []
        except (OSError, ValueError) as e:
            self.logger.warning("Unreadable notification log, treating as empty", path=self.path, error=str(e))
            return []

        return _parse_records(raw if isinstance(raw, list) else [], self.logger)

    def _write(self, records: List[NotificationRecord]) -> None:
        payload = [{"timestamp": r.timestamp.isoformat(), "type": r.type} for r in records]
        try:
            directory = os.path.dirname(self.path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
        except OSError as e:
            raise StorageError(f"Could not write notification log {self.path}: {e}") from e

    async def append(self, record: NotificationRecord) -> None:
        records = await self.load()
        records.append(record)
        self._write(records)

    async def prune(self, cutoff: datetime) -> int:
        records = await self.load()
        kept = [r for r in records if r.timestamp > cutoff]
        if len(kept) != len(records):
            self._write(kept)
        return len(records) - len(kept)


class MongoNotificationLog(NotificationLog):
    """Records as documents in a collection."""

    def __init__(self, collection: AsyncIOMotorCollection):
        self.collection = collection
        self.logger = logger.bind(component="notification_log", backend="mongodb")

    async def load(self) -> List[NotificationRecord]:
        try:
            cursor = self.collection.find({}, {"_id": 0}).sort("timestamp", 1)
            documents = await cursor.to_list(length=None)
        except PyMongoError as e:
            self.logger.warning("Could not read notification log, treating as empty", error=str(e))
            return []
        return _parse_records(documents, self.logger)

    async def append(self, record: NotificationRecord) -> None:
        document: Dict[str, Any] = {"timestamp": record.timestamp, "type": record.type}
        try:
            await self.collection.insert_one(document)
        except PyMongoError as e:
            raise StorageError(f"Could not write notification record: {e}") from e

    async def prune(self, cutoff: datetime) -> int:
        try:
            result = await self.collection.delete_many({"timestamp": {"$lte": cutoff}})
        except PyMongoError as e:
            raise StorageError(f"Could not prune notification log: {e}") from e
        return result.deleted_count


class NotificationThrottle:
    """Permits at most ``max_daily_notifications`` deliveries per calendar day."""

    def __init__(
        self,
        log: NotificationLog,
        settings: Optional[ThrottleSettings] = None,
        clock: Callable[[], datetime] = datetime.now
    ):
        self.log = log
        self.settings = settings or ThrottleSettings()
        self.clock = clock
        self.logger = logger.bind(component="notification_throttle")

    async def sent_today(self) -> int:
        today = self.clock().date()
        records = await self.log.load()
        return sum(1 for r in records if r.timestamp.date() == today)

    async def can_send(self) -> bool:
        """True iff fewer than the daily maximum were recorded today."""
        count = await self.sent_today()
        self.logger.info(
            f"Today's notifications: {count}/{self.settings.max_daily_notifications}",
            sent_today=count,
            max_daily=self.settings.max_daily_notifications
        )
        return count < self.settings.max_daily_notifications

    async def record(self, notification_type: str = "availability_change") -> None:
        """Append a record, then prune entries older than the retention window."""
        now = self.clock()
        await self.log.append(NotificationRecord(timestamp=now, type=notification_type))

        pruned = await self.log.prune(now - timedelta(days=self.settings.retention_days))
        self.logger.info("Notification recorded", pruned=pruned)
