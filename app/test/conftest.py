import os

os.environ.setdefault("LOG_FILE", "")

import copy, itertools
from datetime import datetime, timezone
import pytest
from fastapi.testclient import TestClient
from google.cloud.firestore import SERVER_TIMESTAMP

from app.database.connection import get_db
from app.models.user import Principal
from app.routes.firebase_auth import get_optional_principal

PARK_ID = "park-1"
OTHER_PARK_ID = "park-2"


def ts(minute: int, hour: int = 10) -> datetime:
    return datetime(2026, 5, 1, hour, minute, tzinfo=timezone.utc)


# ****************************************************
#  In-memory Firestore double
# ****************************************************

class FakeSnapshot:
    def __init__(self, doc_id, data):
        self.id = doc_id
        self._data = data
        self.exists = data is not None

    def to_dict(self):
        return copy.deepcopy(self._data) if self._data is not None else None


class FakeDocumentRef:
    def __init__(self, collection, doc_id):
        self._collection = collection
        self.id = doc_id

    def get(self):
        return FakeSnapshot(self.id, self._collection.docs.get(self.id))

    def set(self, data, merge=False):
        self._collection.docs[self.id] = self._collection.db.resolve(data)

    def update(self, data):
        if self.id not in self._collection.docs:
            raise KeyError(f"No document to update: {self.id}")
        self._collection.docs[self.id].update(self._collection.db.resolve(data))

    def delete(self):
        self._collection.docs.pop(self.id, None)


class FakeQuery:
    def __init__(self, collection, filters=(), order=None):
        self._collection = collection
        self._filters = list(filters)
        self._order = order

    def where(self, field_path=None, op_string=None, value=None, filter=None):
        if filter is not None:
            field_path, op_string, value = filter.field_path, filter.op_string, filter.value
        assert op_string == "==", "only equality filters are supported"
        return FakeQuery(self._collection, self._filters + [(field_path, value)], self._order)

    def order_by(self, field_path, direction="ASCENDING"):
        return FakeQuery(self._collection, self._filters, (field_path, direction))

    def stream(self):
        self._collection.db.check_failure(self._collection.name)
        items = [
            (doc_id, data) for doc_id, data in self._collection.docs.items()
            if all(data.get(field) == value for field, value in self._filters)
        ]
        if self._order:
            field, direction = self._order
            items = [item for item in items if item[1].get(field) is not None]
            items.sort(key=lambda item: item[1][field], reverse=direction == "DESCENDING")
        return iter([FakeSnapshot(doc_id, copy.deepcopy(data)) for doc_id, data in items])

    def get(self):
        return list(self.stream())


class FakeCollection(FakeQuery):
    def __init__(self, db, name):
        super().__init__(self)
        self.db = db
        self.name = name
        self.docs = {}

    def document(self, doc_id=None):
        return FakeDocumentRef(self, doc_id or self.db.next_id())

    def add(self, data):
        ref = self.document()
        ref.set(data)
        return self.db.now(), ref


class FakeFirestore:
    def __init__(self):
        self._collections = {}
        self._ids = itertools.count(1)
        self.failing = set()
        self.clock = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)

    def collection(self, name):
        if name not in self._collections:
            self._collections[name] = FakeCollection(self, name)
        return self._collections[name]

    def next_id(self):
        return f"auto{next(self._ids)}"

    def now(self):
        return self.clock

    def check_failure(self, name):
        if name in self.failing:
            raise RuntimeError(f"{name} unavailable")

    def resolve(self, data):
        return {k: (self.now() if v is SERVER_TIMESTAMP else copy.deepcopy(v)) for k, v in data.items()}

    def seed(self, collection_name, doc_id, data):
        self.collection(collection_name).docs[doc_id] = dict(data)


# ****************************************************
#  Fixtures
# ****************************************************

@pytest.fixture
def fake_db():
    return FakeFirestore()


@pytest.fixture
def principal():
    return Principal(uid=PARK_ID, email="admin@park.lk")


@pytest.fixture
def make_client(fake_db):
    from main import app

    def factory(current_principal=None):
        app.dependency_overrides[get_db] = lambda: fake_db
        app.dependency_overrides[get_optional_principal] = lambda: current_principal
        return TestClient(app)

    yield factory
    app.dependency_overrides.clear()
