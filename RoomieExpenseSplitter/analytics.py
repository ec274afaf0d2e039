"""
Analytics Module

This module provides expense history filtering and spending reports for a
group.

Features:
    - Time-range filtering of the expense history (1d, 7d, 30d, all)
    - Free-text search over title, payer and participant names
    - Total spend vs. total settled through payments
    - Per-member paid and consumed totals
    - Smart warnings for spending imbalances

Functions:
    filter_expenses: Filter and sort a group's expense history.
    generate_group_analytics: Generate spending analytics and warnings.
"""

from collections import defaultdict
from typing import Optional

from members import member_name_map
from utils import now_ms, round_money


DAY_MS = 86_400_000

RANGES = {
    "1d": 1 * DAY_MS,
    "7d": 7 * DAY_MS,
    "30d": 30 * DAY_MS,
    "all": None,
}

# A member fronting more than this share of the total triggers a warning
PAYER_SHARE_WARNING = 40


def filter_expenses(group, range: str = "30d", query: str = "", now: Optional[int] = None) -> list:
    """
    Filter a group's expenses by time range and search text.

    Args:
        group: Group with members and expenses.
        range: One of "1d", "7d", "30d", "all".
        query: Case-insensitive text matched against the expense title,
            the payer's name and the participants' names.
        now: Reference time in epoch milliseconds (defaults to current time).

    Returns:
        list[Expense]: Matching expenses, newest first.

    Raises:
        ValueError: If range is not recognised.
    """
    if range not in RANGES:
        raise ValueError(f"range must be one of {list(RANGES)}, got: {range}")

    window = RANGES[range]
    cutoff = 0 if window is None else (now if now is not None else now_ms()) - window
    q = (query or "").strip().lower()
    names = {member_id: name.lower() for member_id, name in member_name_map(group.members).items()}

    def matches(expense) -> bool:
        if not q:
            return True
        payer = names.get(expense.paid_by_id, "")
        participants = " ".join(names.get(pid, "") for pid in expense.participant_ids)
        return q in expense.title.lower() or q in payer or q in participants

    filtered = [
        e for e in group.expenses
        if (cutoff == 0 or (e.created_at or 0) >= cutoff) and matches(e)
    ]
    filtered.sort(key=lambda e: e.created_at or 0, reverse=True)
    return filtered


def generate_group_analytics(group) -> dict:
    """
    Generate spending analytics and smart warnings for a group.

    Analytics computed:
        - total_spent: Sum of regular expenses (payments excluded)
        - total_settled: Sum of payments recorded between members
        - expense_count / payment_count
        - paid_by_member: Amount each member fronted for expenses
        - share_by_member: Amount each member consumed
        - largest_expense: The single biggest expense, or None

    Warnings generated (rule-based):
        - If one member fronted > 40% of total spend (groups of 2+ members)

    Args:
        group: Group with members and expenses.

    Returns:
        dict: Contains two keys:
            - analytics: dict described above
            - warnings: list of warning strings
    """
    paid = defaultdict(float)
    share = defaultdict(float)
    total_spent = 0.0
    total_settled = 0.0
    expense_count = 0
    payment_count = 0
    largest = None

    for expense in group.expenses:
        if expense.is_payment:
            total_settled += expense.amount
            payment_count += 1
            continue

        expense_count += 1
        total_spent += expense.amount
        paid[expense.paid_by_id] += expense.amount
        if expense.participant_ids:
            per_person = expense.amount / len(expense.participant_ids)
            for participant_id in expense.participant_ids:
                share[participant_id] += per_person
        if largest is None or expense.amount > largest.amount:
            largest = expense

    analytics = {
        "total_spent": round_money(total_spent),
        "total_settled": round_money(total_settled),
        "expense_count": expense_count,
        "payment_count": payment_count,
        "paid_by_member": {mid: round_money(amount) for mid, amount in paid.items()},
        "share_by_member": {mid: round_money(amount) for mid, amount in share.items()},
        "largest_expense": None if largest is None else {
            "id": largest.id,
            "title": largest.title,
            "amount": round_money(largest.amount)
        }
    }

    warnings = []
    names = member_name_map(group.members)

    # Rule: one member fronting most of the spend
    if total_spent > 0 and len(group.members) > 1:
        for member_id, amount in paid.items():
            percentage = amount / total_spent * 100
            if percentage > PAYER_SHARE_WARNING:
                warnings.append(
                    f"Warning: {names.get(member_id, member_id)} paid {round_money(percentage)}% "
                    f"of total expenses ({round_money(amount)} of {round_money(total_spent)} {group.currency})"
                )

    return {
        "analytics": analytics,
        "warnings": warnings
    }
