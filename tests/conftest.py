# tests/conftest.py

from collections import defaultdict
from copy import deepcopy
from datetime import datetime, timedelta, timezone

import pytest

from database import StoreError
from workspace import Workspace

STAFF_EMAIL = "prof@escola.edu.br"
STAFF_PASSWORD = "segredo123"

BASE_TIME = datetime(2025, 3, 5, 14, 30, tzinfo=timezone.utc)


class MemorySubscription:
    def __init__(self, store, collection, on_snapshot, on_error, sort, limit):
        self.store = store
        self.collection = collection
        self.on_snapshot = on_snapshot
        self.on_error = on_error
        self.sort = sort
        self.limit = limit
        self.cancelled = False

    def deliver(self):
        self.on_snapshot(self.store.get_documents(self.collection, sort=self.sort, limit=self.limit))

    def cancel(self):
        self.cancelled = True


class MemoryStore:
    """In-memory DocumentStore with synchronous live queries."""

    def __init__(self):
        self.collections = defaultdict(dict)
        self.subscriptions = []
        self.fail = set()
        self._seq = 0

    def _check(self, op):
        if op in self.fail:
            raise StoreError(f"{op}: permission denied")

    def get_document(self, collection_name, doc_id):
        self._check("get")
        doc = self.collections[collection_name].get(doc_id)
        return None if doc is None else {"id": doc_id, **deepcopy(doc)}

    def set_fields(self, collection_name, doc_id, fields):
        self._check("set")
        doc = self.collections[collection_name].setdefault(doc_id, {})
        for path, value in fields.items():
            *parents, leaf = path.split(".")
            target = doc
            for p in parents:
                target = target.setdefault(p, {})
            target[leaf] = deepcopy(value)

    def create_document(self, collection_name, data):
        self._check("create")
        self._seq += 1
        doc_id = f"{self._seq:024x}"
        data = deepcopy(data)
        data.setdefault("created_at", BASE_TIME + timedelta(minutes=self._seq))
        self.collections[collection_name][doc_id] = data
        self._notify(collection_name)
        return doc_id

    def get_documents(self, collection_name, filter_dict=None, sort=None, limit=100):
        self._check("query")
        filter_dict = filter_dict or {}
        docs = [
            {"id": k, **deepcopy(v)}
            for k, v in self.collections[collection_name].items()
            if all(v.get(f) == val for f, val in filter_dict.items())
        ]
        for field, direction in reversed(list(sort or [])):
            docs.sort(key=lambda d: d.get(field), reverse=direction < 0)
        return docs[:limit]

    def update_document(self, collection_name, doc_id, updates):
        self._check("set")
        doc = self.collections[collection_name].get(doc_id)
        if doc is None:
            return False
        doc.update(deepcopy(updates))
        return True

    def delete_document(self, collection_name, doc_id):
        self._check("delete")
        removed = self.collections[collection_name].pop(doc_id, None) is not None
        if removed:
            self._notify(collection_name)
        return removed

    def watch(self, collection_name, on_snapshot, on_error, sort=None, limit=100):
        sub = MemorySubscription(self, collection_name, on_snapshot, on_error, sort, limit)
        self.subscriptions.append(sub)
        sub.deliver()
        return sub

    def active_subscriptions(self, collection_name="records"):
        return [s for s in self.subscriptions if s.collection == collection_name and not s.cancelled]

    def break_subscriptions(self):
        for sub in self.active_subscriptions():
            sub.on_error(StoreError("listen: permission denied"))

    def _notify(self, collection_name):
        for sub in self.active_subscriptions(collection_name):
            sub.deliver()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def roster_store(store):
    store.set_fields("config", "students", {"data": {
        "1": {"M1": ["Ana Silva", "João", "Bruno"], "M2": []},
        "3": {"M4": ["Carla"]},
    }})
    return store


@pytest.fixture
def workspace(roster_store):
    ws = Workspace(roster_store)
    yield ws
    ws.close()


@pytest.fixture
def signed_in(workspace):
    workspace.session.register(STAFF_EMAIL, STAFF_PASSWORD)
    workspace.dialogs.drain()
    return workspace


@pytest.fixture
def add_record(roster_store):
    def _add(student, **extra):
        data = {
            "grade": "1",
            "class_name": "M1",
            "student": student,
            "subject": "Matemática",
            "occurrences": [],
            "note": "",
            "created_by": None,
            "created_by_email": None,
        }
        data.update(extra)
        return roster_store.create_document("records", data)
    return _add
