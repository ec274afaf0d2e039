"""
Settlement Module

This module turns net balances into a list of pairwise transfers that
settle every debt in a group.

Features:
    - Greedy two-pointer matching of debtors against creditors
    - Input order preserved (no sorting by magnitude)
    - Rounding-safe remainders

Data Model:
    Input - list of MemberBalance:
        - member_id: string
        - net: float (positive = owed money, negative = owes money)

    Output - list of Settlement:
        - from_id: string (debtor who pays)
        - to_id: string (creditor who receives)
        - amount: float (rounded to 2 decimal places, always > 0)

Functions:
    calculate_settlements: Convert balances into settlement transfers.
"""

from dataclasses import dataclass

from utils import round_money


# Remainders at or below this are treated as settled
SETTLED_THRESHOLD = 0.0001


@dataclass(frozen=True)
class Settlement:
    """Recommended transfer from a debtor to a creditor. Never stored."""
    from_id: str
    to_id: str
    amount: float

    def to_dict(self) -> dict:
        return {"from_id": self.from_id, "to_id": self.to_id, "amount": self.amount}


def calculate_settlements(balances: list) -> list[Settlement]:
    """
    Convert net balances into settlement transfers.

    Uses a greedy algorithm:
        1. Separate members into creditors (net > 0) and debtors (net < 0,
           kept as a positive amount owed); zero balances are skipped
        2. Keep both lists in their incoming order
        3. Repeatedly match the current debtor with the current creditor:
           - Transfer the minimum of what the debtor owes and the creditor is owed
           - Reduce both remainders
           - Move past whichever side is settled (possibly both)

    The result settles every debt but may use more transfers than the
    theoretical minimum.

    Args:
        balances: List of MemberBalance.

    Returns:
        list[Settlement]: Transfers in the order they were matched.

    Notes:
        - Does NOT modify the input balances
        - Empty input yields an empty list
        - If the balances do not sum to zero, the unmatched remainder is
          left unsettled
    """
    creditors = [[b.member_id, b.net] for b in balances if b.net > 0]
    debtors = [[b.member_id, abs(b.net)] for b in balances if b.net < 0]

    settlements = []
    i = 0
    j = 0

    while i < len(debtors) and j < len(creditors):
        debtor = debtors[i]
        creditor = creditors[j]
        amount = min(debtor[1], creditor[1])

        if amount > 0:
            settlements.append(Settlement(
                from_id=debtor[0],
                to_id=creditor[0],
                amount=round_money(amount)
            ))
            debtor[1] = round_money(debtor[1] - amount)
            creditor[1] = round_money(creditor[1] - amount)

        # Written as "not >" so a NaN remainder also counts as settled
        if not debtor[1] > SETTLED_THRESHOLD:
            i += 1
        if not creditor[1] > SETTLED_THRESHOLD:
            j += 1

    return settlements
