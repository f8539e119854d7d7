import copy
import itertools
from collections import defaultdict

from document_client import DocumentClient, PageCursor
from exceptions import RemoteUnavailable


def _matches(doc, filters):
    for key, expected in filters.items():
        value = doc.get(key)
        if isinstance(value, list):
            if expected not in value:
                return False
        elif value != expected:
            return False
    return True


class FakeDocumentClient(DocumentClient):
    """In-memory document store.

    ``offline = True`` makes every remote call fail; ``failing`` names the
    individual operations that should fail.
    """

    def __init__(self):
        self.collections = defaultdict(dict)
        self.offline = False
        self.failing = set()
        self._ids = itertools.count(1)

    def _check(self, op):
        if self.offline or op in self.failing:
            raise RemoteUnavailable(f"{op} failed: network unreachable")

    def docs(self, collection):
        return [copy.deepcopy(d) for d in self.collections[collection].values()]

    async def get_by_id(self, collection, doc_id):
        self._check("get_by_id")
        doc = self.collections[collection].get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def query(self, collection, filters):
        self._check("query")
        return [copy.deepcopy(d) for d in self.collections[collection].values() if _matches(d, filters)]

    async def query_range(self, collection, field_name, start, end):
        self._check("query_range")
        return [
            copy.deepcopy(d)
            for d in self.collections[collection].values()
            if start <= d.get(field_name, "") <= end
        ]

    async def query_page(self, collection, order_by, direction, limit, after=None):
        self._check("query_page")
        reverse = direction == "desc"
        docs = sorted(self.collections[collection].values(), key=lambda d: (d.get(order_by), d["id"]), reverse=reverse)
        if after is not None:
            mark = (after.value, after.id)
            if reverse:
                docs = [d for d in docs if (d.get(order_by), d["id"]) < mark]
            else:
                docs = [d for d in docs if (d.get(order_by), d["id"]) > mark]
        page = [copy.deepcopy(d) for d in docs[:limit]]
        next_cursor = PageCursor(page[-1].get(order_by), page[-1]["id"]) if page else None
        return page, next_cursor

    async def count(self, collection, filters):
        self._check("count")
        return sum(1 for d in self.collections[collection].values() if _matches(d, filters))

    def new_id(self, collection):
        return f"{collection}-{next(self._ids):04d}"

    async def set(self, collection, doc_id, document):
        self._check("set")
        self.collections[collection][doc_id] = {**copy.deepcopy(document), "id": doc_id}

    async def create_if_absent(self, collection, doc_id, document):
        self._check("create_if_absent")
        if doc_id in self.collections[collection]:
            return False
        self.collections[collection][doc_id] = {**copy.deepcopy(document), "id": doc_id}
        return True

    async def update(self, collection, doc_id, patch):
        self._check("update")
        doc = self.collections[collection].get(doc_id)
        if doc is None:
            return False
        doc.update(copy.deepcopy(patch))
        return True

    async def delete(self, collection, doc_id):
        self._check("delete")
        return self.collections[collection].pop(doc_id, None) is not None

    async def increment_field(self, collection, doc_id, field_name, delta):
        self._check("increment_field")
        doc = self.collections[collection].get(doc_id)
        if doc is not None:
            doc[field_name] = doc.get(field_name, 0) + delta

    async def array_union(self, collection, doc_id, field_name, value):
        self._check("array_union")
        doc = self.collections[collection].get(doc_id)
        if doc is None:
            return False
        values = doc.setdefault(field_name, [])
        if value not in values:
            values.append(value)
        return True

    async def array_remove(self, collection, doc_id, field_name, value):
        self._check("array_remove")
        doc = self.collections[collection].get(doc_id)
        if doc is None:
            return False
        doc[field_name] = [v for v in doc.get(field_name, []) if v != value]
        return True

    async def batch_write(self, ops):
        self._check("batch_write")
        for op in ops:
            store = self.collections[op.collection]
            if op.kind == "set":
                store[op.id] = {**copy.deepcopy(op.payload), "id": op.id}
            elif op.kind == "update":
                if op.id in store:
                    store[op.id].update(copy.deepcopy(op.payload))
            else:
                store.pop(op.id, None)
