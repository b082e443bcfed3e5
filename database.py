import os
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from bson import ObjectId
from bson.errors import InvalidId
from dotenv import load_dotenv
from pymongo import MongoClient
from pymongo.errors import OperationFailure, PyMongoError

from app_logger import get_logger

# Load environment variables if present
load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "appdb")
WATCH_POLL_SECONDS = float(os.getenv("WATCH_POLL_SECONDS", "3"))

# Change streams need a replica set; standalone servers answer with this code.
_CHANGE_STREAM_UNSUPPORTED = 40573

log = get_logger("database")

client = None
_db = None

try:
    client = MongoClient(DATABASE_URL, tz_aware=True)
    _db = client[DATABASE_NAME]
except Exception as e:
    log.warning("MongoDB client could not be created for %s: %s", DATABASE_URL, e)
    client = None
    _db = None

# Expose db for other modules
db = _db

Sort = Sequence[Tuple[str, int]]
Snapshot = List[Dict[str, Any]]


class StoreError(RuntimeError):
    """A read or write against the document store failed."""


def _to_str_id(doc: Dict[str, Any]) -> Dict[str, Any]:
    if not doc:
        return doc
    doc = dict(doc)
    if doc.get("_id") is not None:
        doc["id"] = str(doc["_id"])
        del doc["_id"]
    return doc


class Subscription:
    """Handle for a live query. ``cancel`` may be called any number of times."""

    def __init__(self) -> None:
        self._cancelled = threading.Event()
        self._stream = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        if self._cancelled.is_set():
            return
        self._cancelled.set()
        stream = self._stream
        if stream is not None:
            try:
                stream.close()
            except PyMongoError as e:
                log.debug("Closing change stream failed: %s", e)


class DocumentStore:
    def __init__(self, database) -> None:
        self._db = database

    def _collection(self, name: str):
        if self._db is None:
            raise StoreError("Database not initialized")
        return self._db[name]

    def get_document(self, collection_name: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Return the document, or None when it does not exist."""
        try:
            doc = self._collection(collection_name).find_one({"_id": doc_id})
        except PyMongoError as e:
            raise StoreError(str(e)) from e
        return _to_str_id(doc) if doc else None

    def set_fields(self, collection_name: str, doc_id: str, fields: Dict[str, Any]) -> None:
        """Merge-write: only the given (possibly dotted) fields change."""
        try:
            self._collection(collection_name).update_one({"_id": doc_id}, {"$set": fields}, upsert=True)
        except PyMongoError as e:
            raise StoreError(str(e)) from e

    def create_document(self, collection_name: str, data: Dict[str, Any]) -> str:
        data = dict(data)
        if "created_at" not in data:
            data["created_at"] = datetime.now(timezone.utc)
        try:
            result = self._collection(collection_name).insert_one(data)
        except PyMongoError as e:
            raise StoreError(str(e)) from e
        return str(result.inserted_id)

    def get_documents(
        self,
        collection_name: str,
        filter_dict: Optional[Dict[str, Any]] = None,
        sort: Optional[Sort] = None,
        limit: int = 100,
    ) -> Snapshot:
        filter_dict = filter_dict or {}
        try:
            cursor = self._collection(collection_name).find(filter_dict)
            if sort:
                cursor = cursor.sort(list(sort))
            return [_to_str_id(doc) for doc in cursor.limit(int(limit))]
        except PyMongoError as e:
            raise StoreError(str(e)) from e

    def update_document(self, collection_name: str, doc_id: str, updates: Dict[str, Any]) -> bool:
        try:
            oid = ObjectId(doc_id)
        except (InvalidId, TypeError):
            return False
        updates = dict(updates)
        updates["updated_at"] = datetime.now(timezone.utc)
        try:
            result = self._collection(collection_name).update_one({"_id": oid}, {"$set": updates})
        except PyMongoError as e:
            raise StoreError(str(e)) from e
        return result.matched_count > 0

    def delete_document(self, collection_name: str, doc_id: str) -> bool:
        try:
            oid = ObjectId(doc_id)
        except (InvalidId, TypeError):
            return False
        try:
            result = self._collection(collection_name).delete_one({"_id": oid})
        except PyMongoError as e:
            raise StoreError(str(e)) from e
        return result.deleted_count > 0

    def watch(
        self,
        collection_name: str,
        on_snapshot: Callable[[Snapshot], None],
        on_error: Callable[[StoreError], None],
        sort: Optional[Sort] = None,
        limit: int = 100,
    ) -> Subscription:
        """Deliver the query result now and again after every change.

        Runs in a daemon thread. Each delivery is the full result set. On a
        standalone server (no change streams) the query is polled instead.
        Errors end the subscription and are reported once through ``on_error``.
        """
        sub = Subscription()

        def snapshot() -> Snapshot:
            return self.get_documents(collection_name, sort=sort, limit=limit)

        def poll() -> None:
            last = snapshot()
            on_snapshot(last)
            while not sub._cancelled.wait(WATCH_POLL_SECONDS):
                current = snapshot()
                if current != last:
                    last = current
                    on_snapshot(current)

        def run() -> None:
            try:
                try:
                    stream = self._collection(collection_name).watch()
                except OperationFailure as e:
                    if e.code != _CHANGE_STREAM_UNSUPPORTED:
                        raise
                    log.info("Change streams unavailable, polling %s every %ss", collection_name, WATCH_POLL_SECONDS)
                    poll()
                    return
                with stream:
                    sub._stream = stream
                    if sub.cancelled:
                        return
                    on_snapshot(snapshot())
                    for _change in stream:
                        if sub.cancelled:
                            break
                        on_snapshot(snapshot())
            except (PyMongoError, StoreError) as e:
                if sub.cancelled:
                    return
                log.error("Live query on %s failed: %s", collection_name, e)
                on_error(e if isinstance(e, StoreError) else StoreError(str(e)))

        threading.Thread(target=run, name=f"watch-{collection_name}", daemon=True).start()
        return sub


store = DocumentStore(db)
