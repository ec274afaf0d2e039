"""
Groups Module

This module handles group lifecycle operations: creating groups, reading
them together with their expense ledger, and membership changes.

Data Model:
    Group stored at: groups/{group_id}
    Fields:
        - name: string
        - currency: string
        - adminId: string
        - inviteCode: string
        - memberIds: map member_id -> bool (False once the member left)
        - members: map member_id -> {id, name, joinedAt} or None
        - createdAt / updatedAt: int (epoch milliseconds)

Functions:
    create_group: Create a group owned by a member.
    get_group: Read a group with its members and expenses.
    list_user_groups: Read every group a user belongs to.
    leave_group: Remove yourself from a group.
    remove_member: Remove another member (admin only).
    delete_group: Delete a group with its expenses and invites (admin only).
"""

import logging
from typing import Optional

from google.cloud.firestore_v1.base_query import FieldFilter

from config.firebase_config import get_db
from expenses import Expense, read_expenses
from members import Member, member_field
from utils import create_invite_code, now_ms, validate_non_empty_string

logger = logging.getLogger(__name__)


class Group:
    """
    Represents a group and its expense ledger.

    Attributes:
        id (str): Firestore document ID.
        name (str): Group name.
        currency (str): Currency label used for every amount in the group.
        members (list[Member]): Active members in the order they joined.
        expenses (list[Expense]): Ledger entries.
        admin_id (str): Member ID of the group admin.
        invite_code (str): Code other users enter to request membership.
    """

    def __init__(
        self,
        id: str,
        name: str,
        currency: str,
        members: Optional[list[Member]] = None,
        expenses: Optional[list[Expense]] = None,
        admin_id: Optional[str] = None,
        invite_code: Optional[str] = None
    ):
        self.id = id
        self.name = name
        self.currency = currency
        self.members = members or []
        self.expenses = expenses or []
        self.admin_id = admin_id
        self.invite_code = invite_code

    def has_member(self, member_id: str) -> bool:
        return any(m.id == member_id for m in self.members)

    def to_dict(self) -> dict:
        """Convert group to a plain dictionary (API responses)."""
        return {
            "id": self.id,
            "name": self.name,
            "currency": self.currency,
            "members": [{"id": m.id, "name": m.name} for m in self.members],
            "expenses": [e.to_dict() for e in self.expenses],
            "admin_id": self.admin_id,
            "invite_code": self.invite_code
        }

    @classmethod
    def from_firestore(cls, group_id: str, data: dict, expenses: Optional[list[Expense]] = None) -> "Group":
        """
        Build a Group from its Firestore document.

        Removed members are stored as None and skipped. Members are ordered
        by join time; Firestore does not preserve map order.
        """
        members = [
            Member.from_dict(m)
            for m in (data.get("members") or {}).values()
            if m
        ]
        members.sort(key=lambda m: m.joined_at or 0)
        return cls(
            id=group_id,
            name=data.get("name"),
            currency=data.get("currency"),
            members=members,
            expenses=expenses,
            admin_id=data.get("adminId"),
            invite_code=data.get("inviteCode")
        )

    def __repr__(self) -> str:
        return f"Group(id='{self.id}', name='{self.name}', members={len(self.members)}, expenses={len(self.expenses)})"


def _require_db():
    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")
    return db


def _get_group_snapshot(db, group_id: str):
    group_ref = db.collection("groups").document(group_id)
    snapshot = group_ref.get()
    if not snapshot.exists:
        raise ValueError(f"Group {group_id} not found")
    return group_ref, snapshot.to_dict()


def create_group(name: str, currency: str, owner: Member) -> Group:
    """
    Create a new group with the owner as its admin and only member.

    Args:
        name: Group name.
        currency: Currency label (e.g. "USD").
        owner: Member creating the group.

    Returns:
        Group: The created group (no expenses yet).

    Raises:
        ValueError: If input validation fails.
        RuntimeError: If Firestore is not available.
    """
    validate_non_empty_string(name, "name")
    validate_non_empty_string(currency, "currency")
    validate_non_empty_string(owner.id, "owner.id")
    validate_non_empty_string(owner.name, "owner.name")

    db = _require_db()

    now = now_ms()
    owner_record = Member(id=owner.id, name=owner.name.strip(), joined_at=now)
    payload = {
        "name": name.strip(),
        "currency": currency.strip().upper(),
        "adminId": owner.id,
        "inviteCode": create_invite_code(),
        "memberIds": {owner.id: True},
        "members": {owner.id: owner_record.to_dict()},
        "createdAt": now,
        "updatedAt": now
    }

    group_ref = db.collection("groups").document()
    group_ref.set(payload)

    logger.info("Created group %s owned by %s", group_ref.id, owner.id)
    return Group.from_firestore(group_ref.id, payload)


def get_group(group_id: str) -> Optional[Group]:
    """
    Read a group with its members and expenses (newest first).

    Returns:
        Group | None: The group, or None if it does not exist.

    Raises:
        ValueError: If group_id is invalid.
        RuntimeError: If Firestore is not available.
    """
    validate_non_empty_string(group_id, "group_id")
    return read_group(_require_db(), group_id)


def read_group(db, group_id: str) -> Optional[Group]:
    """Read a group and its expenses with the given Firestore client."""
    group_ref = db.collection("groups").document(group_id)
    snapshot = group_ref.get()
    if not snapshot.exists:
        return None

    return Group.from_firestore(group_id, snapshot.to_dict(), read_expenses(group_ref))


def list_user_groups(user_id: str) -> list[Group]:
    """
    Read every group the user is an active member of.

    Raises:
        ValueError: If user_id is invalid.
        RuntimeError: If Firestore is not available.
    """
    validate_non_empty_string(user_id, "user_id")
    db = _require_db()

    query = db.collection("groups").where(filter=FieldFilter(member_field("memberIds", user_id), "==", True))

    groups = []
    for doc in query.stream():
        group_ref = db.collection("groups").document(doc.id)
        groups.append(Group.from_firestore(doc.id, doc.to_dict(), read_expenses(group_ref)))
    return groups


def _require_member(data: dict, group_id: str, member_id: str) -> None:
    if not (data.get("memberIds") or {}).get(member_id):
        raise ValueError(f"{member_id} is not a member of group {group_id}")


def _drop_member(db, group_ref, member_id: str) -> None:
    batch = db.batch()
    batch.update(group_ref, {
        member_field("memberIds", member_id): False,
        member_field("members", member_id): None,
        "updatedAt": now_ms()
    })
    batch.commit()


def leave_group(group_id: str, user_id: str) -> None:
    """
    Remove a user from a group.

    Past expenses are kept; the user simply stops being a member.

    Raises:
        ValueError: If the group does not exist or the user is not a member.
        PermissionError: If the user is the group admin.
        RuntimeError: If Firestore is not available.
    """
    validate_non_empty_string(group_id, "group_id")
    validate_non_empty_string(user_id, "user_id")
    db = _require_db()

    group_ref, data = _get_group_snapshot(db, group_id)
    if data.get("adminId") == user_id:
        logger.warning("Admin %s tried to leave group %s", user_id, group_id)
        raise PermissionError("The admin cannot leave the group")
    _require_member(data, group_id, user_id)

    _drop_member(db, group_ref, user_id)
    logger.info("User %s left group %s", user_id, group_id)


def remove_member(group_id: str, member_id: str, admin_id: str) -> None:
    """
    Remove a member from a group.

    Raises:
        ValueError: If the group does not exist or member_id is not a member.
        PermissionError: If admin_id is not the admin, or the admin tries
            to remove themselves.
        RuntimeError: If Firestore is not available.
    """
    validate_non_empty_string(group_id, "group_id")
    validate_non_empty_string(member_id, "member_id")
    validate_non_empty_string(admin_id, "admin_id")
    db = _require_db()

    group_ref, data = _get_group_snapshot(db, group_id)
    if data.get("adminId") != admin_id:
        logger.warning("User %s is not admin of group %s", admin_id, group_id)
        raise PermissionError("Only the admin can remove members")
    if member_id == admin_id:
        raise PermissionError("The admin cannot remove themselves")
    _require_member(data, group_id, member_id)

    _drop_member(db, group_ref, member_id)
    logger.info("Admin %s removed %s from group %s", admin_id, member_id, group_id)


def delete_group(group_id: str, admin_id: str) -> None:
    """
    Delete a group together with its expenses and join requests.

    Raises:
        ValueError: If the group does not exist.
        PermissionError: If admin_id is not the admin.
        RuntimeError: If Firestore is not available.
    """
    validate_non_empty_string(group_id, "group_id")
    validate_non_empty_string(admin_id, "admin_id")
    db = _require_db()

    group_ref, data = _get_group_snapshot(db, group_id)
    if data.get("adminId") != admin_id:
        logger.warning("User %s is not admin of group %s", admin_id, group_id)
        raise PermissionError("Only the admin can delete the group")

    batch = db.batch()
    for doc in group_ref.collection("expenses").stream():
        batch.delete(doc.reference)

    invites = db.collection("groupInvites").where(filter=FieldFilter("groupId", "==", group_id))
    for doc in invites.stream():
        batch.delete(doc.reference)

    batch.delete(group_ref)
    batch.commit()
    logger.info("Deleted group %s", group_id)
