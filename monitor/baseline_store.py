"""
Per-period baseline snapshot storage.

One blob per period key, overwritten on every save; no history is kept.
"""

import os
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

import structlog
from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo.errors import PyMongoError

from monitor.errors import StorageError

logger = structlog.get_logger(__name__)


class BaselineStore(ABC):
    """Flat key -> image bytes mapping."""

    @abstractmethod
    async def load(self, period_key: str) -> Optional[bytes]:
        """Stored baseline for ``period_key``, or None when there is none."""

    @abstractmethod
    async def save(self, period_key: str, image_bytes: bytes) -> None:
        """Store ``image_bytes`` as the baseline for ``period_key``, replacing any previous one."""


class FileBaselineStore(BaselineStore):
    """Baselines as ``<directory>/<period_key>.png`` files."""

    def __init__(self, directory: str):
        self.directory = directory
        self.logger = logger.bind(component="baseline_store", backend="file")

    def _path(self, period_key: str) -> str:
        return os.path.join(self.directory, f"{period_key}.png")

    async def load(self, period_key: str) -> Optional[bytes]:
        path = self._path(period_key)
        try:
            with open(path, "rb") as f:
                data = f.read()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"Could not read baseline {path}: {e}") from e

        self.logger.debug("Loaded baseline", period=period_key, size=len(data))
        return data

    async def save(self, period_key: str, image_bytes: bytes) -> None:
        path = self._path(period_key)
        try:
            os.makedirs(self.directory, exist_ok=True)
            with open(path, "wb") as f:
                f.write(image_bytes)
        except OSError as e:
            raise StorageError(f"Could not write baseline {path}: {e}") from e

        self.logger.info("Baseline saved", period=period_key, size=len(image_bytes))


class MongoBaselineStore(BaselineStore):
    """Baselines as documents keyed by ``period_key``."""

    def __init__(self, collection: AsyncIOMotorCollection):
        self.collection = collection
        self.logger = logger.bind(component="baseline_store", backend="mongodb")

    async def load(self, period_key: str) -> Optional[bytes]:
        try:
            document = await self.collection.find_one({"period_key": period_key})
        except PyMongoError as e:
            raise StorageError(f"Could not read baseline {period_key}: {e}") from e

        if not document:
            return None
        image_bytes = document.get("image_bytes")
        if image_bytes is None:
            raise StorageError(f"Baseline document for {period_key} has no image data")
        return bytes(image_bytes)

    async def save(self, period_key: str, image_bytes: bytes) -> None:
        try:
            await self.collection.update_one(
                {"period_key": period_key},
                {"$set": {
                    "period_key": period_key,
                    "image_bytes": image_bytes,
                    "stored_at": datetime.utcnow()
                }},
                upsert=True
            )
        except PyMongoError as e:
            raise StorageError(f"Could not write baseline {period_key}: {e}") from e

        self.logger.info("Baseline saved", period=period_key, size=len(image_bytes))
