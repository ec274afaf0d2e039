import copy
import itertools
import threading

import pytest
from google.api_core.exceptions import AlreadyExists
from google.cloud.firestore_v1.field_path import FieldPath

import expenses
import firebase_store
import groups
import invites
from expenses import Expense
from groups import Group
from members import Member


# =============================================================================
# In-memory Firestore
# =============================================================================

def _get_path(data, dotted):
    value = data
    for part in FieldPath.from_api_repr(dotted).parts:
        if not isinstance(value, dict) or part not in value:
            return None
        value = value[part]
    return value


def _set_path(data, dotted, value):
    parts = FieldPath.from_api_repr(dotted).parts
    target = data
    for part in parts[:-1]:
        target = target.setdefault(part, {})
    target[parts[-1]] = value


class FakeSnapshot:
    def __init__(self, reference, data):
        self.reference = reference
        self.id = reference.id
        self._data = data

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return copy.deepcopy(self._data) if self._data is not None else None


class FakeWatch:
    def __init__(self, db, watcher):
        self._db = db
        self._watcher = watcher

    def unsubscribe(self):
        if self._watcher in self._db.watchers:
            self._db.watchers.remove(self._watcher)


class FakeDocumentRef:
    def __init__(self, db, path):
        self._db = db
        self.path = path
        self.id = path.rsplit("/", 1)[-1]

    def collection(self, name):
        return FakeCollection(self._db, f"{self.path}/{name}")

    def get(self):
        return FakeSnapshot(self, self._db.docs.get(self.path))

    def set(self, data):
        self._db.docs[self.path] = copy.deepcopy(data)
        self._db.notify()

    def create(self, data):
        with self._db.lock:
            if self.path in self._db.docs:
                raise AlreadyExists(f"Document already exists: {self.path}")
            self._db.docs[self.path] = copy.deepcopy(data)
        self._db.notify()

    def update(self, fields):
        if self.path not in self._db.docs:
            raise KeyError(f"No document to update: {self.path}")
        self._db.apply_update(self.path, fields)
        self._db.notify()

    def delete(self):
        self._db.docs.pop(self.path, None)
        self._db.notify()

    def on_snapshot(self, callback):
        watcher = lambda: callback([self.get()], [], None)
        return self._db.watch(watcher)


class FakeQuery:
    def __init__(self, collection, filters=(), max_results=None):
        self._collection = collection
        self._filters = list(filters)
        self._limit = max_results

    def where(self, filter):
        return FakeQuery(self._collection, self._filters + [filter], self._limit)

    def limit(self, count):
        return FakeQuery(self._collection, self._filters, count)

    def _matches(self, data):
        for f in self._filters:
            assert f.op_string == "==", "fake only supports equality filters"
            if _get_path(data, f.field_path) != f.value:
                return False
        return True

    def stream(self):
        results = [s for s in self._collection.stream() if self._matches(s.to_dict())]
        return iter(results[:self._limit] if self._limit is not None else results)


class FakeCollection(FakeQuery):
    def __init__(self, db, path):
        super().__init__(self)
        self._db = db
        self.path = path

    def document(self, document_id=None):
        if document_id is None:
            document_id = f"auto{next(self._db.ids)}"
        return FakeDocumentRef(self._db, f"{self.path}/{document_id}")

    def stream(self):
        prefix = self.path + "/"
        return iter([
            FakeSnapshot(FakeDocumentRef(self._db, path), data)
            for path, data in list(self._db.docs.items())
            if path.startswith(prefix) and "/" not in path[len(prefix):]
        ])

    def on_snapshot(self, callback):
        watcher = lambda: callback(list(self.stream()), [], None)
        return self._db.watch(watcher)


class FakeBatch:
    def __init__(self, db):
        self._db = db
        self._ops = []

    def update(self, ref, fields):
        self._ops.append(("update", ref, fields))

    def delete(self, ref):
        self._ops.append(("delete", ref, None))

    def commit(self):
        for op, ref, fields in self._ops:
            if op == "update":
                self._db.apply_update(ref.path, fields)
            else:
                self._db.docs.pop(ref.path, None)
        self._db.notify()


class FakeFirestore:
    """Just enough of google.cloud.firestore.Client for the store modules."""

    def __init__(self):
        self.docs = {}
        self.watchers = []
        self.ids = itertools.count(1)
        self.lock = threading.Lock()

    def collection(self, name):
        return FakeCollection(self, name)

    def batch(self):
        return FakeBatch(self)

    def apply_update(self, path, fields):
        data = self.docs[path]
        for key, value in fields.items():
            _set_path(data, key, copy.deepcopy(value))

    def watch(self, watcher):
        self.watchers.append(watcher)
        watcher()
        return FakeWatch(self, watcher)

    def notify(self):
        for watcher in list(self.watchers):
            watcher()


# =============================================================================
# Fixtures
# =============================================================================

START_MS = 1_700_000_000_000


@pytest.fixture
def fake_db(monkeypatch):
    """
    Patch every store module to use an in-memory Firestore.

    The store clock is replaced by a counter so that every write gets a
    distinct, increasing timestamp.
    """
    db = FakeFirestore()
    clock = itertools.count(START_MS, 1000)
    for module in (expenses, groups, invites, firebase_store):
        monkeypatch.setattr(module, "get_db", lambda: db)
    for module in (expenses, groups, invites):
        monkeypatch.setattr(module, "now_ms", lambda: next(clock))
    return db


@pytest.fixture
def no_db(monkeypatch):
    """Simulate Firebase being unavailable."""
    for module in (expenses, groups, invites, firebase_store):
        monkeypatch.setattr(module, "get_db", lambda: None)


@pytest.fixture
def alice():
    return Member(id="alice", name="Alice")


@pytest.fixture
def bob():
    return Member(id="bob", name="Bob")


@pytest.fixture
def carol():
    return Member(id="carol", name="Carol")


@pytest.fixture
def flat(fake_db, alice, bob, carol):
    """A stored group where Alice is admin and Bob and Carol have joined."""
    group = groups.create_group("Flat 4B", "usd", alice)
    for user in (bob, carol):
        invite = invites.request_join_by_code(group.invite_code, user)
        invites.accept_invite(invite.id, alice.id)
    return groups.get_group(group.id)


def make_expense(amount, paid_by_id, participant_ids, expense_id="E001", type="expense", created_at=0, title="Dinner"):
    return Expense(
        id=expense_id,
        title=title,
        amount=amount,
        paid_by_id=paid_by_id,
        participant_ids=participant_ids,
        type=type,
        created_at=created_at
    )


def make_group(member_ids, expense_list=(), currency="USD", group_id="g1"):
    return Group(
        id=group_id,
        name=f"Group {group_id}",
        currency=currency,
        members=[Member(id=mid, name=mid.title(), joined_at=i) for i, mid in enumerate(member_ids)],
        expenses=list(expense_list),
        admin_id=member_ids[0] if member_ids else None,
        invite_code="CODE"
    )
