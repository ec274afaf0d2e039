import pytest

import firebase_store
from expenses import add_expense, delete_expense
from firebase_store import GroupRepository
from groups import delete_group


def test_get_group(flat):
    group = GroupRepository().get_group(flat.id)

    assert group.name == "Flat 4B"
    assert [m.name for m in group.members] == ["Alice", "Bob", "Carol"]


def test_get_missing_group(fake_db):
    assert GroupRepository().get_group("missing") is None


def test_explicit_client_is_used(fake_db, flat, monkeypatch):
    monkeypatch.setattr(firebase_store, "get_db", lambda: None)

    assert GroupRepository(db=fake_db).get_group(flat.id).id == flat.id


def test_unavailable_firestore(no_db):
    with pytest.raises(RuntimeError, match="Firestore is not available"):
        GroupRepository().get_group("g1")


def test_subscribe_emits_current_state(flat):
    received = []

    unsubscribe = GroupRepository().subscribe(flat.id, received.append)

    assert received
    assert received[-1].id == flat.id
    assert received[-1].expenses == []
    unsubscribe()


def test_subscribe_follows_expense_changes(flat):
    received = []
    unsubscribe = GroupRepository().subscribe(flat.id, received.append)

    expense = add_expense(flat.id, "Rent", 900, "alice", ["alice", "bob", "carol"])
    assert [e.id for e in received[-1].expenses] == [expense.id]

    delete_expense(flat.id, expense.id)
    assert received[-1].expenses == []
    unsubscribe()


def test_subscribe_reports_deleted_group(flat):
    received = []
    unsubscribe = GroupRepository().subscribe(flat.id, received.append)

    delete_group(flat.id, "alice")

    assert received[-1] is None
    unsubscribe()


def test_subscribe_to_missing_group_emits_none(fake_db):
    received = []

    GroupRepository().subscribe("missing", received.append)

    assert received and all(group is None for group in received)


def test_unsubscribe_stops_updates(fake_db, flat):
    received = []
    unsubscribe = GroupRepository().subscribe(flat.id, received.append)

    unsubscribe()
    count = len(received)
    add_expense(flat.id, "Rent", 900, "alice", ["alice", "bob", "carol"])

    assert len(received) == count
    assert fake_db.watchers == []
