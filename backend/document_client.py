"""Narrow data-access interface over the remote document store.

Everything above this module talks to ``DocumentClient``; only
``MongoDocumentClient`` knows about Motor. Documents are plain dicts carrying an
``id`` key; the store's ``_id`` never leaks out.
"""

from __future__ import annotations

import abc
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Tuple

import structlog
from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, DeleteOne, ReplaceOne, UpdateOne
from pymongo.errors import DuplicateKeyError, PyMongoError

from exceptions import RemoteUnavailable

logger = structlog.get_logger(__name__)

Direction = Literal["asc", "desc"]


@dataclass(frozen=True)
class PageCursor:
    """Position after the last document of a page. Pass it back unchanged."""

    value: Any
    id: str


@dataclass
class WriteOp:
    kind: Literal["set", "update", "delete"]
    collection: str
    id: str
    payload: Dict[str, Any] = field(default_factory=dict)


class DocumentClient(abc.ABC):
    @abc.abstractmethod
    async def get_by_id(self, collection: str, doc_id: str) -> Optional[dict]: ...

    @abc.abstractmethod
    async def query(self, collection: str, filters: Dict[str, Any]) -> List[dict]: ...

    @abc.abstractmethod
    async def query_range(
        self, collection: str, field_name: str, start: str, end: str
    ) -> List[dict]:
        """Documents whose ``field_name`` lies in ``[start, end]``."""

    @abc.abstractmethod
    async def query_page(
        self,
        collection: str,
        order_by: str,
        direction: Direction,
        limit: int,
        after: Optional[PageCursor] = None,
    ) -> Tuple[List[dict], Optional[PageCursor]]: ...

    @abc.abstractmethod
    async def count(self, collection: str, filters: Dict[str, Any]) -> int: ...

    @abc.abstractmethod
    def new_id(self, collection: str) -> str: ...

    @abc.abstractmethod
    async def set(self, collection: str, doc_id: str, document: Dict[str, Any]) -> None: ...

    @abc.abstractmethod
    async def create_if_absent(self, collection: str, doc_id: str, document: Dict[str, Any]) -> bool:
        """Create the document unless the id exists. Returns whether it was created."""

    @abc.abstractmethod
    async def update(self, collection: str, doc_id: str, patch: Dict[str, Any]) -> bool: ...

    @abc.abstractmethod
    async def delete(self, collection: str, doc_id: str) -> bool: ...

    @abc.abstractmethod
    async def increment_field(self, collection: str, doc_id: str, field_name: str, delta: int) -> None: ...

    @abc.abstractmethod
    async def array_union(self, collection: str, doc_id: str, field_name: str, value: Any) -> bool: ...

    @abc.abstractmethod
    async def array_remove(self, collection: str, doc_id: str, field_name: str, value: Any) -> bool: ...

    @abc.abstractmethod
    async def batch_write(self, ops: List[WriteOp]) -> None: ...

    async def create(self, collection: str, document: Dict[str, Any]) -> str:
        """Store ``document`` under a freshly generated id and return it."""
        doc_id = self.new_id(collection)
        await self.set(collection, doc_id, {**document, "id": doc_id})
        return doc_id


def _to_store(doc_id: str, document: Dict[str, Any]) -> dict:
    stored = {k: v for k, v in document.items() if k != "id"}
    stored["_id"] = doc_id
    return stored


def _from_store(document: Optional[dict]) -> Optional[dict]:
    if document is None:
        return None
    doc = dict(document)
    doc["id"] = str(doc.pop("_id"))
    return doc


class MongoDocumentClient(DocumentClient):
    def __init__(self, db):
        self.db = db

    async def get_by_id(self, collection, doc_id):
        try:
            return _from_store(await self.db[collection].find_one({"_id": doc_id}))
        except PyMongoError as e:
            raise RemoteUnavailable(str(e)) from e

    async def query(self, collection, filters):
        try:
            docs = await self.db[collection].find(dict(filters)).to_list(length=None)
        except PyMongoError as e:
            raise RemoteUnavailable(str(e)) from e
        return [_from_store(d) for d in docs]

    async def query_range(self, collection, field_name, start, end):
        try:
            cursor = self.db[collection].find({field_name: {"$gte": start, "$lte": end}})
            docs = await cursor.to_list(length=None)
        except PyMongoError as e:
            raise RemoteUnavailable(str(e)) from e
        return [_from_store(d) for d in docs]

    async def query_page(self, collection, order_by, direction, limit, after=None):
        sort_dir = DESCENDING if direction == "desc" else ASCENDING
        op = "$lt" if direction == "desc" else "$gt"
        query: Dict[str, Any] = {}
        if after is not None:
            # keyset continuation: strictly past (value, id) of the previous page
            query = {
                "$or": [
                    {order_by: {op: after.value}},
                    {order_by: after.value, "_id": {op: after.id}},
                ]
            }
        try:
            cursor = self.db[collection].find(query).sort([(order_by, sort_dir), ("_id", sort_dir)]).limit(limit)
            docs = await cursor.to_list(length=limit)
        except PyMongoError as e:
            raise RemoteUnavailable(str(e)) from e
        items = [_from_store(d) for d in docs]
        next_cursor = PageCursor(value=items[-1].get(order_by), id=items[-1]["id"]) if items else None
        return items, next_cursor

    async def count(self, collection, filters):
        try:
            return await self.db[collection].count_documents(dict(filters))
        except PyMongoError as e:
            raise RemoteUnavailable(str(e)) from e

    def new_id(self, collection):
        return str(ObjectId())

    async def set(self, collection, doc_id, document):
        try:
            await self.db[collection].replace_one({"_id": doc_id}, _to_store(doc_id, document), upsert=True)
        except PyMongoError as e:
            raise RemoteUnavailable(str(e)) from e

    async def create_if_absent(self, collection, doc_id, document):
        try:
            await self.db[collection].insert_one(_to_store(doc_id, document))
        except DuplicateKeyError:
            return False
        except PyMongoError as e:
            raise RemoteUnavailable(str(e)) from e
        return True

    async def update(self, collection, doc_id, patch):
        try:
            result = await self.db[collection].update_one({"_id": doc_id}, {"$set": dict(patch)})
        except PyMongoError as e:
            raise RemoteUnavailable(str(e)) from e
        return result.matched_count > 0

    async def delete(self, collection, doc_id):
        try:
            result = await self.db[collection].delete_one({"_id": doc_id})
        except PyMongoError as e:
            raise RemoteUnavailable(str(e)) from e
        return result.deleted_count > 0

    async def increment_field(self, collection, doc_id, field_name, delta):
        # $inc is atomic on a single document
        try:
            await self.db[collection].update_one({"_id": doc_id}, {"$inc": {field_name: delta}})
        except PyMongoError as e:
            raise RemoteUnavailable(str(e)) from e

    async def array_union(self, collection, doc_id, field_name, value):
        try:
            result = await self.db[collection].update_one({"_id": doc_id}, {"$addToSet": {field_name: value}})
        except PyMongoError as e:
            raise RemoteUnavailable(str(e)) from e
        return result.matched_count > 0

    async def array_remove(self, collection, doc_id, field_name, value):
        try:
            result = await self.db[collection].update_one({"_id": doc_id}, {"$pull": {field_name: value}})
        except PyMongoError as e:
            raise RemoteUnavailable(str(e)) from e
        return result.matched_count > 0

    async def batch_write(self, ops):
        if not ops:
            return
        by_collection: Dict[str, list] = {}
        for op in ops:
            if op.kind == "set":
                request = ReplaceOne({"_id": op.id}, _to_store(op.id, op.payload), upsert=True)
            elif op.kind == "update":
                request = UpdateOne({"_id": op.id}, {"$set": dict(op.payload)})
            else:
                request = DeleteOne({"_id": op.id})
            by_collection.setdefault(op.collection, []).append(request)
        try:
            for collection, requests in by_collection.items():
                await self.db[collection].bulk_write(requests, ordered=False)
        except PyMongoError as e:
            raise RemoteUnavailable(str(e)) from e
        logger.debug("batch_write_committed", ops=len(ops))
