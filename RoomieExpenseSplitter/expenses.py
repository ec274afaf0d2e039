"""
Expenses Module

This module handles all ledger-entry operations for a group: expenses and
the payments members make to settle their debts.

Features:
    - Add/delete expenses
    - Record debt payments as ledger entries of type "payment"
    - Optional item-level breakdown and receipt link
    - Track who paid and among whom the amount is split

Data Model:
    Expense stored at: groups/{group_id}/expenses/{expense_id}
    Fields:
        - id: string (E001, E002, ... format)
        - title: string
        - amount: float (finite, >= 0)
        - paidById: string (member id who fronted the money)
        - participantIds: list of member ids sharing the amount
        - type: string ("expense" or "payment")
        - items: list of {id, name, amount}
        - receiptUrl: string or None
        - createdAt: int (epoch milliseconds)

Functions:
    add_expense: Add a new expense to a group.
    record_payment: Record a payment from one member to another.
    get_expenses: Get all expenses for a group, newest first.
    delete_expense: Delete an expense from a group.
"""

import logging
import math
import re
from typing import Optional

from google.api_core.exceptions import AlreadyExists

from config.firebase_config import get_db
from members import DEFAULT_MEMBER_NAME
from utils import create_id, now_ms, validate_non_empty_string

logger = logging.getLogger(__name__)


EXPENSE_TYPE = "expense"
PAYMENT_TYPE = "payment"
VALID_TYPES = {EXPENSE_TYPE, PAYMENT_TYPE}

# Attempts at claiming the next E### id before giving up
MAX_ID_ATTEMPTS = 5


class Expense:
    """
    Represents a single ledger entry in a group.

    Attributes:
        id (str): Unique identifier in E### format.
        title (str): Free-text description.
        amount (float): Amount of the entry.
        paid_by_id (str): Member ID credited with the amount.
        participant_ids (list[str]): Member IDs the amount is split among.
        type (str): "expense" or "payment".
        items (list[dict]): Optional item breakdown ({id, name, amount}).
        receipt_url (str | None): Optional receipt or transfer proof link.
        created_at (int | None): Creation time (epoch milliseconds).
    """

    def __init__(
        self,
        id: str,
        title: str,
        amount: float,
        paid_by_id: str,
        participant_ids: list[str],
        type: str = EXPENSE_TYPE,
        items: Optional[list[dict]] = None,
        receipt_url: Optional[str] = None,
        created_at: Optional[int] = None
    ):
        self.id = id
        self.title = title
        self.amount = amount
        self.paid_by_id = paid_by_id
        self.participant_ids = participant_ids
        self.type = type
        self.items = items or []
        self.receipt_url = receipt_url
        self.created_at = created_at

    @property
    def is_payment(self) -> bool:
        return self.type == PAYMENT_TYPE

    def to_dict(self) -> dict:
        """Convert expense to dictionary for Firestore storage."""
        return {
            "id": self.id,
            "title": self.title,
            "amount": self.amount,
            "paidById": self.paid_by_id,
            "participantIds": self.participant_ids,
            "type": self.type,
            "items": self.items,
            "receiptUrl": self.receipt_url,
            "createdAt": self.created_at
        }

    @classmethod
    def from_dict(cls, data: dict, expense_id: Optional[str] = None) -> "Expense":
        """Create an Expense instance from a dictionary."""
        return cls(
            id=data.get("id") or expense_id,
            title=data.get("title") or "",
            amount=float(data.get("amount") or 0),
            paid_by_id=data.get("paidById"),
            participant_ids=list(data.get("participantIds") or []),
            type=data.get("type") or EXPENSE_TYPE,
            items=data.get("items") or [],
            receipt_url=data.get("receiptUrl"),
            created_at=data.get("createdAt")
        )

    def __repr__(self) -> str:
        return f"Expense(id='{self.id}', paid_by='{self.paid_by_id}', amount={self.amount}, type='{self.type}')"


def _group_ref(db, group_id: str):
    return db.collection("groups").document(group_id)


def _generate_next_expense_id(db, group_id: str) -> str:
    """
    Generate the next sequential expense ID for a group.

    Format: E001, E002, E003, ...

    IDs that do not follow the E### format (e.g. legacy auto IDs) are
    ignored when looking for the highest number.
    """
    docs = _group_ref(db, group_id).collection("expenses").stream()

    max_num = 0
    pattern = re.compile(r'^E(\d+)$')

    for doc in docs:
        match = pattern.match(doc.id)
        if match:
            max_num = max(max_num, int(match.group(1)))

    return f"E{max_num + 1:03d}"


def _create_with_next_id(db, group_id: str, expense: Expense) -> None:
    """
    Store an expense under the next free E### id.

    create() fails if the document already exists, so when a concurrent
    writer claims the same id the scan is repeated instead of overwriting
    its expense.

    Raises:
        RuntimeError: If no free id could be claimed after MAX_ID_ATTEMPTS.
    """
    expenses_ref = _group_ref(db, group_id).collection("expenses")

    for _ in range(MAX_ID_ATTEMPTS):
        expense.id = _generate_next_expense_id(db, group_id)
        try:
            expenses_ref.document(expense.id).create(expense.to_dict())
            return
        except AlreadyExists:
            logger.warning("Expense id %s in group %s was taken, retrying", expense.id, group_id)

    raise RuntimeError(
        f"Failed to allocate an expense id in group {group_id} after {MAX_ID_ATTEMPTS} attempts"
    )


def _get_group_members(db, group_id: str) -> dict:
    """
    Get the active members of a group keyed by member id.

    Raises:
        ValueError: If the group does not exist.
    """
    snapshot = _group_ref(db, group_id).get()
    if not snapshot.exists:
        raise ValueError(f"Group {group_id} not found")

    data = snapshot.to_dict()
    member_ids = data.get("memberIds") or {}
    members = data.get("members") or {}
    return {
        uid: members.get(uid) or {}
        for uid, active in member_ids.items()
        if active
    }


def _validate_amount(amount) -> None:
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        raise ValueError(f"amount must be a number, got: {amount!r}")
    if not math.isfinite(amount) or amount < 0:
        raise ValueError(f"amount must be a finite non-negative number, got: {amount}")


def _normalize_items(items: Optional[list[dict]]) -> list[dict]:
    normalized = []
    for item in items or []:
        name = (item.get("name") or "").strip() or "Item"
        amount = item.get("amount", 0)
        _validate_amount(amount)
        normalized.append({
            "id": item.get("id") or create_id(),
            "name": name,
            "amount": float(amount)
        })
    return normalized


def add_expense(
    group_id: str,
    title: str,
    amount: float,
    paid_by_id: str,
    participant_ids: list[str],
    type: str = EXPENSE_TYPE,
    items: Optional[list[dict]] = None,
    receipt_url: Optional[str] = None
) -> Expense:
    """
    Add a new ledger entry to a group.

    Args:
        group_id: The ID of the group.
        title: Description of the expense.
        amount: Amount (finite, >= 0).
        paid_by_id: Member ID of who paid.
        participant_ids: Member IDs among whom the amount is split.
        type: "expense" or "payment".
        items: Optional item breakdown, list of {name, amount}.
        receipt_url: Optional link to a receipt image.

    Returns:
        Expense: The created expense object.

    Raises:
        ValueError: If input validation fails or the group does not exist.
        RuntimeError: If Firestore is not available.

    Notes:
        - Payer does NOT have to be a participant
        - Participant ids are stored as given (no de-duplication)
    """
    validate_non_empty_string(group_id, "group_id")
    validate_non_empty_string(title, "title")
    validate_non_empty_string(paid_by_id, "paid_by_id")
    _validate_amount(amount)

    if type not in VALID_TYPES:
        raise ValueError(f"type must be one of {sorted(VALID_TYPES)}, got: {type}")

    if not isinstance(participant_ids, list) or len(participant_ids) == 0:
        raise ValueError("participant_ids must be a non-empty list of member IDs")

    normalized_items = _normalize_items(items)

    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")

    members = _get_group_members(db, group_id)

    if paid_by_id not in members:
        raise ValueError(f"paid_by_id '{paid_by_id}' is not a member of group {group_id}")

    for participant_id in participant_ids:
        if participant_id not in members:
            raise ValueError(f"participant '{participant_id}' is not a member of group {group_id}")

    now = now_ms()
    expense = Expense(
        id=None,
        title=title.strip(),
        amount=float(amount),
        paid_by_id=paid_by_id,
        participant_ids=list(participant_ids),
        type=type,
        items=normalized_items,
        receipt_url=receipt_url or None,
        created_at=now
    )

    group_ref = _group_ref(db, group_id)
    _create_with_next_id(db, group_id, expense)
    group_ref.update({"updatedAt": now})

    logger.info("Added %s %s to group %s (%.2f)", expense.type, expense.id, group_id, expense.amount)
    return expense


def record_payment(
    group_id: str,
    from_id: str,
    to_id: str,
    amount: float,
    receipt_url: Optional[str] = None
) -> Expense:
    """
    Record that one member paid another to settle a debt.

    The payment is stored as a ledger entry of type "payment" paid by
    from_id with to_id as its only participant, which moves the payer's
    balance up and the receiver's balance down by the amount.

    Raises:
        ValueError: If the amount is not positive, the members are the
            same, or either is not a member of the group.
        RuntimeError: If Firestore is not available.
    """
    validate_non_empty_string(group_id, "group_id")
    validate_non_empty_string(from_id, "from_id")
    validate_non_empty_string(to_id, "to_id")
    _validate_amount(amount)

    if amount <= 0:
        raise ValueError(f"payment amount must be positive, got: {amount}")
    if from_id == to_id:
        raise ValueError("a member cannot pay themselves")

    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")

    members = _get_group_members(db, group_id)
    to_name = (members.get(to_id) or {}).get("name") or DEFAULT_MEMBER_NAME

    return add_expense(
        group_id=group_id,
        title=f"Payment to {to_name}",
        amount=amount,
        paid_by_id=from_id,
        participant_ids=[to_id],
        type=PAYMENT_TYPE,
        receipt_url=receipt_url
    )


def read_expenses(group_ref) -> list[Expense]:
    """Read every expense under a group document reference, newest first."""
    expenses = [
        Expense.from_dict(doc.to_dict(), doc.id)
        for doc in group_ref.collection("expenses").stream()
    ]
    expenses.sort(key=lambda e: e.created_at or 0, reverse=True)
    return expenses


def get_expenses(group_id: str) -> list[Expense]:
    """
    Get all expenses for a group, newest first.

    Raises:
        ValueError: If group_id is invalid.
        RuntimeError: If Firestore is not available.
    """
    validate_non_empty_string(group_id, "group_id")

    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")

    return read_expenses(_group_ref(db, group_id))


def delete_expense(group_id: str, expense_id: str) -> None:
    """
    Delete an expense from a group.

    Raises:
        ValueError: If the expense does not exist.
        RuntimeError: If Firestore is not available.
    """
    validate_non_empty_string(group_id, "group_id")
    validate_non_empty_string(expense_id, "expense_id")

    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")

    group_ref = _group_ref(db, group_id)
    doc_ref = group_ref.collection("expenses").document(expense_id)
    if not doc_ref.get().exists:
        raise ValueError(f"Expense {expense_id} not found in group {group_id}")

    doc_ref.delete()
    group_ref.update({"updatedAt": now_ms()})
    logger.info("Deleted expense %s from group %s", expense_id, group_id)
