"""
Firebase Store Module

Read access to groups as complete snapshots (group document plus its
expenses sub-collection), either on demand or as a live subscription.

Balances and settlements are never stored: callers recompute them from the
Group value they receive.

Firestore Structure:
    groups/{group_id}
    groups/{group_id}/expenses/{expense_id}

Classes:
    GroupRepository: get_group / subscribe over Firestore.
"""

import logging
import threading
from typing import Callable, Optional

from config.firebase_config import get_db
from expenses import Expense
from groups import Group, read_group
from utils import validate_non_empty_string

logger = logging.getLogger(__name__)


class GroupRepository:
    """
    Firestore-backed source of Group snapshots.

    Args:
        db: Firestore client. Defaults to the client from get_db().
    """

    def __init__(self, db=None):
        self._db = db

    def _client(self):
        db = self._db if self._db is not None else get_db()
        if db is None:
            raise RuntimeError("Firestore is not available")
        return db

    def get_group(self, group_id: str) -> Optional[Group]:
        """
        Read a group with its members and expenses.

        Returns:
            Group | None: The group, or None if it does not exist.

        Raises:
            ValueError: If group_id is invalid.
            RuntimeError: If Firestore is not available.
        """
        validate_non_empty_string(group_id, "group_id")
        return read_group(self._client(), group_id)

    def subscribe(self, group_id: str, callback: Callable[[Optional[Group]], None]) -> Callable[[], None]:
        """
        Watch a group and its expenses.

        The callback receives a fresh Group every time the group document
        or any of its expenses change, and None if the group is deleted.
        Nothing is emitted until the group document has been read once.

        Callbacks run on the Firestore watch thread. The group document and
        the expenses are watched separately, so a snapshot may briefly pair
        a new group document with older expenses or the reverse.

        Returns:
            Callable: Call it to stop watching.

        Raises:
            ValueError: If group_id is invalid.
            RuntimeError: If Firestore is not available.
        """
        validate_non_empty_string(group_id, "group_id")
        db = self._client()

        group_ref = db.collection("groups").document(group_id)
        lock = threading.Lock()
        state = {"loaded": False, "data": None, "expenses": []}

        def emit():
            if not state["loaded"]:
                return
            if state["data"] is None:
                callback(None)
                return
            callback(Group.from_firestore(group_id, state["data"], list(state["expenses"])))

        def on_group(doc_snapshots, changes, read_time):
            with lock:
                snapshot = doc_snapshots[0] if doc_snapshots else None
                state["loaded"] = True
                state["data"] = snapshot.to_dict() if snapshot is not None and snapshot.exists else None
                emit()

        def on_expenses(col_snapshot, changes, read_time):
            with lock:
                expenses = [Expense.from_dict(doc.to_dict(), doc.id) for doc in col_snapshot]
                expenses.sort(key=lambda e: e.created_at or 0, reverse=True)
                state["expenses"] = expenses
                emit()

        group_watch = group_ref.on_snapshot(on_group)
        expenses_watch = group_ref.collection("expenses").on_snapshot(on_expenses)
        logger.debug("Subscribed to group %s", group_id)

        def unsubscribe():
            group_watch.unsubscribe()
            expenses_watch.unsubscribe()
            logger.debug("Unsubscribed from group %s", group_id)

        return unsubscribe
