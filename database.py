"""
Document store access for the Textila API.

Four collections are used: ``users``, ``products``, ``orders`` and
``tracking``. Handlers never talk to pymongo directly; they get a
``DocumentStore`` handle built once by ``main.create_app`` and stored on
``app.state``. ``MongoStore`` is the production adapter, ``MemoryStore``
keeps everything in process for local runs and the test suite.
"""

import copy
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from bson.errors import InvalidId
from bson.objectid import ObjectId
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.errors import DuplicateKeyError
from pymongo.server_api import ServerApi

from errors import Conflict, InvalidArgument
from log_config import get_logger

logger = get_logger(__name__)

USERS = "users"
PRODUCTS = "products"
ORDERS = "orders"
TRACKING = "tracking"

COLLECTIONS = (USERS, PRODUCTS, ORDERS, TRACKING)

SortSpec = Sequence[Tuple[str, int]]

NEWEST_FIRST = [("createdAt", DESCENDING), ("_id", DESCENDING)]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_object_id(value: str) -> ObjectId:
    """Turn a path identifier into an ObjectId, rejecting malformed input."""
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise InvalidArgument(f"Invalid ID: {value}")


def to_dict(doc):
    if not doc:
        return doc
    d = dict(doc)
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    return d


class DocumentStore(ABC):
    """Generic insert/find/update/delete over named collections."""

    @abstractmethod
    def insert_one(self, collection: str, document: Dict[str, Any]) -> str:
        """Insert a document and return its new identifier.

        Raises ``Conflict`` when a unique index is violated.
        """

    @abstractmethod
    def find_one(self, collection: str, filter: Dict[str, Any]) -> Optional[dict]:
        ...

    @abstractmethod
    def find(
        self,
        collection: str,
        filter: Optional[Dict[str, Any]] = None,
        sort: Optional[SortSpec] = None,
        limit: Optional[int] = None,
    ) -> List[dict]:
        ...

    @abstractmethod
    def update_one(
        self,
        collection: str,
        filter: Dict[str, Any],
        values: Dict[str, Any],
        unset: Iterable[str] = (),
    ) -> int:
        """Set ``values`` (and drop ``unset`` fields) on the first match.

        Returns the matched count, 0 or 1.
        """

    @abstractmethod
    def delete_one(self, collection: str, filter: Dict[str, Any]) -> int:
        ...

    @abstractmethod
    def count(self, collection: str, filter: Optional[Dict[str, Any]] = None) -> int:
        ...

    @abstractmethod
    def ensure_unique(self, collection: str, field: str) -> None:
        """Unique index on ``field``; documents without the field are exempt."""

    @abstractmethod
    def collection_names(self) -> List[str]:
        ...

    def ping(self) -> bool:
        return True

    def close(self) -> None:
        pass


class MongoStore(DocumentStore):
    def __init__(self, url: str, database_name: str, client: Optional[MongoClient] = None):
        self.client = client if client is not None else MongoClient(url, server_api=ServerApi("1"))
        self.db = self.client[database_name]

    def insert_one(self, collection, document):
        try:
            result = self.db[collection].insert_one(dict(document))
        except DuplicateKeyError as exc:
            raise Conflict(f"Duplicate document in {collection}") from exc
        return str(result.inserted_id)

    def find_one(self, collection, filter):
        return self.db[collection].find_one(filter)

    def find(self, collection, filter=None, sort=None, limit=None):
        cursor = self.db[collection].find(filter or {})
        if sort:
            cursor = cursor.sort(list(sort))
        if limit:
            cursor = cursor.limit(limit)
        return list(cursor)

    def update_one(self, collection, filter, values, unset=()):
        update: Dict[str, Any] = {}
        if values:
            update["$set"] = values
        unset = list(unset)
        if unset:
            update["$unset"] = {field: "" for field in unset}
        if not update:
            return self.count(collection, filter)
        return self.db[collection].update_one(filter, update).matched_count

    def delete_one(self, collection, filter):
        return self.db[collection].delete_one(filter).deleted_count

    def count(self, collection, filter=None):
        return self.db[collection].count_documents(filter or {})

    def ensure_unique(self, collection, field):
        self.db[collection].create_index([(field, ASCENDING)], unique=True, sparse=True)

    def collection_names(self):
        return self.db.list_collection_names()

    def ping(self):
        self.client.admin.command("ping")
        return True

    def close(self):
        self.client.close()


class MemoryStore(DocumentStore):
    """In-process store with the same semantics as ``MongoStore``.

    Documents are deep-copied on the way in and out so callers can never
    mutate stored state. Equality filters only.
    """

    def __init__(self):
        self._collections: Dict[str, Dict[ObjectId, dict]] = {}
        self._unique: Dict[str, set] = {}
        self._lock = threading.RLock()

    def _docs(self, collection: str) -> Dict[ObjectId, dict]:
        return self._collections.setdefault(collection, {})

    @staticmethod
    def _matches(doc: dict, filter: Optional[Dict[str, Any]]) -> bool:
        if not filter:
            return True
        return all(field in doc and doc[field] == value for field, value in filter.items())

    def _violates_unique(self, collection: str, doc: dict, skip: Optional[ObjectId] = None) -> Optional[str]:
        for field in self._unique.get(collection, ()):
            if field not in doc:
                continue
            for oid, other in self._docs(collection).items():
                if oid != skip and field in other and other[field] == doc[field]:
                    return field
        return None

    def insert_one(self, collection, document):
        doc = copy.deepcopy(dict(document))
        with self._lock:
            oid = doc.setdefault("_id", ObjectId())
            if oid in self._docs(collection):
                raise Conflict(f"Duplicate document in {collection}")
            field = self._violates_unique(collection, doc)
            if field:
                raise Conflict(f"Duplicate {field} in {collection}")
            self._docs(collection)[oid] = doc
        return str(oid)

    def find_one(self, collection, filter):
        with self._lock:
            for doc in self._docs(collection).values():
                if self._matches(doc, filter):
                    return copy.deepcopy(doc)
        return None

    def find(self, collection, filter=None, sort=None, limit=None):
        with self._lock:
            docs = [copy.deepcopy(d) for d in self._docs(collection).values() if self._matches(d, filter)]
        # Python's sort is stable, so applying keys last-to-first gives a compound sort.
        for field, direction in reversed(list(sort or [])):
            docs.sort(
                key=lambda d: (d.get(field) is not None, d.get(field)),
                reverse=direction == DESCENDING,
            )
        if limit:
            docs = docs[:limit]
        return docs

    def update_one(self, collection, filter, values, unset=()):
        with self._lock:
            for oid, doc in self._docs(collection).items():
                if not self._matches(doc, filter):
                    continue
                updated = dict(doc)
                updated.update(copy.deepcopy(values))
                for field in unset:
                    updated.pop(field, None)
                field = self._violates_unique(collection, updated, skip=oid)
                if field:
                    raise Conflict(f"Duplicate {field} in {collection}")
                self._docs(collection)[oid] = updated
                return 1
        return 0

    def delete_one(self, collection, filter):
        with self._lock:
            for oid, doc in list(self._docs(collection).items()):
                if self._matches(doc, filter):
                    del self._docs(collection)[oid]
                    return 1
        return 0

    def count(self, collection, filter=None):
        with self._lock:
            return sum(1 for d in self._docs(collection).values() if self._matches(d, filter))

    def ensure_unique(self, collection, field):
        with self._lock:
            self._unique.setdefault(collection, set()).add(field)

    def collection_names(self):
        return sorted(name for name, docs in self._collections.items() if docs)


def create_document(store: DocumentStore, collection: str, data: Dict[str, Any]) -> str:
    """Stamp ``createdAt`` and insert ``data`` into ``collection``."""
    doc = {k: v for k, v in data.items() if k not in ("_id", "id")}
    doc["createdAt"] = utcnow()
    return store.insert_one(collection, doc)


def insert_ack(inserted_id: str) -> dict:
    return {"acknowledged": True, "insertedId": inserted_id}


def get_documents(
    store: DocumentStore,
    collection: str,
    filter: Optional[Dict[str, Any]] = None,
    sort: Optional[SortSpec] = None,
    limit: Optional[int] = None,
) -> List[dict]:
    return [to_dict(d) for d in store.find(collection, filter, sort=sort, limit=limit)]


def ensure_indexes(store: DocumentStore) -> None:
    store.ensure_unique(USERS, "email")
    store.ensure_unique(ORDERS, "sessionId")


def build_store(settings) -> DocumentStore:
    if settings.database_url:
        logger.info("Connecting to MongoDB", database=settings.database_name)
        return MongoStore(settings.database_url, settings.database_name)
    logger.warning("DATABASE_URL not set, using in-memory store")
    return MemoryStore()
