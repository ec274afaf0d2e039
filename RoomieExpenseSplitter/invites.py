"""
Invites Module

Users join a group by entering its invite code. That creates a pending join
request which the group admin accepts or rejects.

Data Model:
    Invite stored at: groupInvites/{group_id}_{user_id}
    (a later request after a resolved one gets a "_{timestamp}" suffix)
    Fields:
        - groupId, groupName, adminId: string
        - requesterId, requesterName: string
        - status: "pending" | "accepted" | "rejected"
        - createdAt / updatedAt: int (epoch milliseconds)

Functions:
    request_join_by_code: Ask to join the group that owns an invite code.
    accept_invite: Admin accepts a request; the requester becomes a member.
    reject_invite: Admin rejects a request.
    list_pending_invites: Pending requests addressed to an admin.
"""

import logging
from typing import Optional

from google.cloud.firestore_v1.base_query import FieldFilter

from config.firebase_config import get_db
from members import DEFAULT_MEMBER_NAME, Member, member_field
from utils import now_ms, validate_non_empty_string

logger = logging.getLogger(__name__)


PENDING = "pending"
ACCEPTED = "accepted"
REJECTED = "rejected"


class GroupInvite:
    """A request from a user to join a group."""

    def __init__(
        self,
        id: str,
        group_id: str,
        group_name: str,
        admin_id: str,
        requester_id: str,
        requester_name: str,
        status: str = PENDING,
        created_at: Optional[int] = None
    ):
        self.id = id
        self.group_id = group_id
        self.group_name = group_name
        self.admin_id = admin_id
        self.requester_id = requester_id
        self.requester_name = requester_name
        self.status = status
        self.created_at = created_at

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "group_id": self.group_id,
            "group_name": self.group_name,
            "admin_id": self.admin_id,
            "requester_id": self.requester_id,
            "requester_name": self.requester_name,
            "status": self.status,
            "created_at": self.created_at
        }

    @classmethod
    def from_firestore(cls, invite_id: str, data: dict) -> "GroupInvite":
        return cls(
            id=invite_id,
            group_id=data.get("groupId"),
            group_name=data.get("groupName"),
            admin_id=data.get("adminId"),
            requester_id=data.get("requesterId"),
            requester_name=data.get("requesterName"),
            status=data.get("status", PENDING),
            created_at=data.get("createdAt")
        )

    def __repr__(self) -> str:
        return f"GroupInvite(id='{self.id}', group='{self.group_id}', requester='{self.requester_id}', status='{self.status}')"


def _require_db():
    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")
    return db


def request_join_by_code(code: str, user: Member) -> GroupInvite:
    """
    Create a pending request to join the group owning an invite code.

    Args:
        code: Invite code (case and surrounding spaces are ignored).
        user: The member asking to join.

    Returns:
        GroupInvite: The created pending request.

    Raises:
        ValueError: If the code is empty or unknown, the user is already a
            member, or a request is already pending.
        RuntimeError: If Firestore is not available.
    """
    trimmed = (code or "").strip().upper()
    if not trimmed:
        raise ValueError("Enter a valid invite code")
    validate_non_empty_string(user.id, "user.id")

    db = _require_db()

    matches = list(
        db.collection("groups")
        .where(filter=FieldFilter("inviteCode", "==", trimmed))
        .limit(1)
        .stream()
    )
    if not matches:
        raise ValueError("No group found for that invite code")

    group_doc = matches[0]
    group_data = group_doc.to_dict()
    if (group_data.get("memberIds") or {}).get(user.id):
        raise ValueError("You already belong to that group")

    invite_id = f"{group_doc.id}_{user.id}"
    existing = db.collection("groupInvites").document(invite_id).get()
    now = now_ms()
    if existing.exists:
        if existing.to_dict().get("status") == PENDING:
            raise ValueError("Your request is already pending")
        invite_id = f"{invite_id}_{now}"

    invite = GroupInvite(
        id=invite_id,
        group_id=group_doc.id,
        group_name=group_data.get("name"),
        admin_id=group_data.get("adminId"),
        requester_id=user.id,
        requester_name=(user.name or "").strip() or DEFAULT_MEMBER_NAME,
        status=PENDING,
        created_at=now
    )
    db.collection("groupInvites").document(invite_id).set({
        "groupId": invite.group_id,
        "groupName": invite.group_name,
        "adminId": invite.admin_id,
        "requesterId": invite.requester_id,
        "requesterName": invite.requester_name,
        "status": invite.status,
        "createdAt": now,
        "updatedAt": now
    })

    logger.info("User %s requested to join group %s", user.id, group_doc.id)
    return invite


def _get_invite_for_admin(db, invite_id: str, admin_id: str):
    validate_non_empty_string(invite_id, "invite_id")
    validate_non_empty_string(admin_id, "admin_id")

    invite_ref = db.collection("groupInvites").document(invite_id)
    snapshot = invite_ref.get()
    if not snapshot.exists:
        raise ValueError(f"Invite {invite_id} not found")

    invite = GroupInvite.from_firestore(invite_id, snapshot.to_dict())
    if invite.admin_id != admin_id:
        logger.warning("User %s is not admin for invite %s", admin_id, invite_id)
        raise PermissionError("Not authorized")
    if invite.status != PENDING:
        raise ValueError(f"Invite {invite_id} is already {invite.status}")
    return invite_ref, invite


def accept_invite(invite_id: str, admin_id: str) -> GroupInvite:
    """
    Accept a join request: the requester becomes a group member.

    The member is added and the invite marked accepted in a single batch.

    Raises:
        ValueError: If the invite does not exist or is not pending.
        PermissionError: If admin_id is not the group admin.
        RuntimeError: If Firestore is not available.
    """
    db = _require_db()
    invite_ref, invite = _get_invite_for_admin(db, invite_id, admin_id)

    now = now_ms()
    member = Member(id=invite.requester_id, name=invite.requester_name, joined_at=now)
    group_ref = db.collection("groups").document(invite.group_id)

    batch = db.batch()
    batch.update(group_ref, {
        member_field("memberIds", member.id): True,
        member_field("members", member.id): member.to_dict(),
        "updatedAt": now
    })
    batch.update(invite_ref, {"status": ACCEPTED, "updatedAt": now})
    batch.commit()

    invite.status = ACCEPTED
    logger.info("Invite %s accepted; %s joined group %s", invite_id, member.id, invite.group_id)
    return invite


def reject_invite(invite_id: str, admin_id: str) -> GroupInvite:
    """
    Reject a join request.

    Raises:
        ValueError: If the invite does not exist or is not pending.
        PermissionError: If admin_id is not the group admin.
        RuntimeError: If Firestore is not available.
    """
    db = _require_db()
    invite_ref, invite = _get_invite_for_admin(db, invite_id, admin_id)

    invite_ref.update({"status": REJECTED, "updatedAt": now_ms()})
    invite.status = REJECTED
    logger.info("Invite %s rejected", invite_id)
    return invite


def list_pending_invites(admin_id: str) -> list[GroupInvite]:
    """Pending join requests for every group administered by admin_id."""
    validate_non_empty_string(admin_id, "admin_id")
    db = _require_db()

    docs = db.collection("groupInvites").where(filter=FieldFilter("adminId", "==", admin_id)).stream()
    invites = [GroupInvite.from_firestore(doc.id, doc.to_dict()) for doc in docs]
    return [invite for invite in invites if invite.status == PENDING]
