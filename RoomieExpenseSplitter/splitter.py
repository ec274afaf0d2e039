"""
Splitter Module

This module folds a group's expense ledger into one signed net balance per
member.

Features:
    - Equal splitting of each expense among its participants
    - Payments (type "payment") handled as regular ledger entries
    - Money rounding to 2 decimal places

Data Model:
    Input - group (Group):
        - members: list of Member (declared order)
        - expenses: list of Expense with amount, paid_by_id, participant_ids

    Output - list of MemberBalance:
        - member_id: string
        - net: float (positive = is owed money, negative = owes money)

Functions:
    calculate_balances: Calculate per-member net balances for a group.
"""

from dataclasses import dataclass

from utils import round_money


@dataclass(frozen=True)
class MemberBalance:
    """Net balance of one member. Derived, never stored."""
    member_id: str
    net: float

    def to_dict(self) -> dict:
        return {"member_id": self.member_id, "net": self.net}


def _apply_expense(totals: dict, expense) -> None:
    """
    Debit every participant an equal share and credit the payer in full.

    Participant ids are used as given: a repeated id is debited once per
    occurrence. An empty participant list credits the payer without
    debiting anyone.
    """
    count = len(expense.participant_ids) or 1
    share = expense.amount / count

    for participant_id in expense.participant_ids:
        totals[participant_id] = totals.get(participant_id, 0.0) - share

    totals[expense.paid_by_id] = totals.get(expense.paid_by_id, 0.0) + expense.amount


def calculate_balances(group, include_unknown: bool = False) -> list[MemberBalance]:
    """
    Calculate per-member net balances from a group's expenses.

    For each expense:
        1. Each participant is debited (amount / number of participants)
        2. The payer is credited the full amount

    Args:
        group: Group with members and expenses.
        include_unknown: Also emit ids that appear in expenses but are not
            declared members, after the members, in first-encounter order.

    Returns:
        list[MemberBalance]: One entry per declared member in declared
        order, each rounded to 2 decimal places.

    Notes:
        - Never raises; ids that do not belong to the group are accumulated
          like any other id
        - Does NOT validate amounts; non-finite amounts propagate
    """
    totals = {member.id: 0.0 for member in group.members}

    for expense in group.expenses:
        _apply_expense(totals, expense)

    declared = {member.id for member in group.members}

    # Members were seeded first, so insertion order puts them ahead of unknown ids
    return [
        MemberBalance(member_id=member_id, net=round_money(net))
        for member_id, net in totals.items()
        if include_unknown or member_id in declared
    ]
