"""Collection-keyed persistence.

A store holds named collections of JSON records and only knows how to read or
replace a whole collection. Services do their own scan-and-filter on top.

Architecture note:
    Whole-collection writes mean the last writer wins. The QuizManager facade
    serializes service calls with a lock, which is enough for a single
    process; multi-process deployments would need a real database.
"""

from __future__ import annotations

import copy
import json
import logging
from pathlib import Path
from threading import Lock
from typing import Any, Protocol

logger = logging.getLogger(__name__)

QUIZ_COLLECTION = "quiz_data"
QUESTION_COLLECTION = "question_data"
QUESTION_BANK_COLLECTION = "question_bank"
ATTEMPT_COLLECTION = "attempt_data"
NOTIFICATION_COLLECTION = "notifications"
USER_COLLECTION = "users"

Record = dict[str, Any]


class CollectionStore(Protocol):
    def read_all(self, collection: str) -> list[Record]: ...

    def write_all(self, collection: str, records: list[Record]) -> None: ...


class InMemoryStore:
    """Keeps collections in a dict. Reads return deep copies."""

    def __init__(self) -> None:
        self._collections: dict[str, list[Record]] = {}
        self._lock = Lock()

    def read_all(self, collection: str) -> list[Record]:
        with self._lock:
            return copy.deepcopy(self._collections.get(collection, []))

    def write_all(self, collection: str, records: list[Record]) -> None:
        with self._lock:
            self._collections[collection] = copy.deepcopy(list(records))


class JsonFileStore:
    """Stores each collection as ``<data_dir>/<collection>.json``.

    A corrupt or unreadable file reads as an empty collection and is replaced
    on the next write.
    """

    def __init__(self, data_dir: Path) -> None:
        self._data_dir = data_dir.resolve()
        self._data_dir.mkdir(parents=True, exist_ok=True)
        self._lock = Lock()

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def read_all(self, collection: str) -> list[Record]:
        path = self._path_for(collection)
        with self._lock:
            if not path.exists():
                return []
            try:
                payload = json.loads(path.read_text(encoding="utf-8") or "[]")
            except (OSError, json.JSONDecodeError) as exc:
                logger.warning("Could not read collection %s: %s", collection, exc)
                return []
        if not isinstance(payload, list):
            logger.warning("Collection %s is not a JSON list; ignoring it", collection)
            return []
        return payload

    def write_all(self, collection: str, records: list[Record]) -> None:
        path = self._path_for(collection)
        document = json.dumps(list(records), indent=2, ensure_ascii=False)
        tmp_path = path.with_suffix(".json.tmp")
        with self._lock:
            tmp_path.write_text(document, encoding="utf-8")
            tmp_path.replace(path)

    def _path_for(self, collection: str) -> Path:
        if not collection or "/" in collection or "\\" in collection or collection.startswith("."):
            raise ValueError(f"Invalid collection name: {collection!r}")
        return self._data_dir / f"{collection}.json"


def create_store(data_dir: Path | None) -> CollectionStore:
    if data_dir is None:
        logger.info("Using in-memory store; data is lost on exit")
        return InMemoryStore()
    logger.info("Using JSON file store at %s", data_dir)
    return JsonFileStore(data_dir)


def index_of(records: list[Record], record_id: str) -> int:
    """Position of the record with ``record_id`` or -1."""
    return next((i for i, record in enumerate(records) if record["id"] == record_id), -1)
