"""
Key-value storage for the POS back office.

Every collection lives under one string key as a JSON-serialized array. A
backend only stores and returns string payloads; KeyValueStore does the JSON
work and turns failures into logged defaults.
"""

import json
import logging
from typing import Any, Dict, Optional

from pymongo import MongoClient
from pymongo.database import Database
from pymongo.errors import PyMongoError

logger = logging.getLogger(__name__)

# Storage keys
PRODUCTS_KEY = "pos_products"
TRANSACTIONS_KEY = "pos_transactions"
CUSTOMERS_KEY = "pos_customers"
SETTINGS_KEY = "pos_settings"


class StorageError(Exception):
    """Raised by a backend when the underlying store fails."""


class QuotaExceededError(StorageError):
    """Raised when a write would exceed the backend's capacity."""


class MemoryBackend:
    """Dict-backed store, optionally capped at ``quota`` bytes in total."""

    name = "memory"

    def __init__(self, quota: Optional[int] = None):
        self.items: Dict[str, str] = {}
        self.quota = quota

    def get_item(self, key: str) -> Optional[str]:
        return self.items.get(key)

    def set_item(self, key: str, value: str) -> None:
        if self.quota is not None:
            used = sum(len(v.encode("utf-8")) for k, v in self.items.items() if k != key)
            if used + len(value.encode("utf-8")) > self.quota:
                raise QuotaExceededError(f"Quota of {self.quota} bytes exceeded writing {key}")
        self.items[key] = value

    def status(self) -> Dict[str, Any]:
        return {"backend": self.name, "keys": sorted(self.items)}


class MongoBackend:
    """One document per key in a MongoDB collection: {_id: key, value: payload}."""

    name = "mongodb"

    def __init__(self, database: Database, collection: str = "kv"):
        self.db = database
        self.collection = database[collection]

    def get_item(self, key: str) -> Optional[str]:
        try:
            doc = self.collection.find_one({"_id": key})
        except PyMongoError as e:
            raise StorageError(str(e)) from e
        if not doc:
            return None
        return doc.get("value")

    def set_item(self, key: str, value: str) -> None:
        try:
            self.collection.replace_one({"_id": key}, {"_id": key, "value": value}, upsert=True)
        except PyMongoError as e:
            raise StorageError(str(e)) from e

    def status(self) -> Dict[str, Any]:
        info: Dict[str, Any] = {"backend": self.name, "database_name": self.db.name}
        try:
            info["keys"] = sorted(doc["_id"] for doc in self.collection.find({}, {"_id": 1}))
        except PyMongoError as e:
            info["error"] = str(e)[:80]
        return info


def get_database(database_url: str, database_name: str) -> Database:
    client = MongoClient(database_url)
    return client[database_name]


class KeyValueStore:
    """JSON get/set over a backend. Reads fall back to a default, writes never raise."""

    def __init__(self, backend):
        self.backend = backend

    def read(self, key: str, default: Any) -> Any:
        try:
            item = self.backend.get_item(key)
            return json.loads(item) if item else default
        except (StorageError, ValueError, TypeError):
            logger.exception("Error reading from storage: %s", key)
            return default

    def write(self, key: str, value: Any) -> None:
        try:
            payload = json.dumps(value)
            self.backend.set_item(key, payload)
        except (StorageError, ValueError, TypeError):
            logger.exception("Error saving to storage: %s", key)


def create_backend(settings):
    if settings.use_mongo:
        return MongoBackend(get_database(settings.database_url, settings.database_name))
    return MemoryBackend()
