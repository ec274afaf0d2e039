"""
Payments Module

Builds the "pending payments" view for one user across all of their
groups: what they must pay, what they should receive, and the totals per
currency.

Data Model:
    Input - groups: list of Group (members + expenses)
    Input - user_id: string

    Output - dict containing:
        - to_pay: list of PaymentItem (largest first)
        - to_receive: list of PaymentItem (largest first)
        - pay_by_currency: dict currency -> total to pay
        - receive_by_currency: dict currency -> total to receive
        - net_by_currency: dict currency -> receive minus pay (|net| >= 0.01)

Functions:
    build_payment_overview: Aggregate settlements involving a user.
"""

from collections import defaultdict
from dataclasses import asdict, dataclass

from members import DEFAULT_MEMBER_NAME, member_name_map
from settlement import calculate_settlements
from splitter import calculate_balances
from utils import round_money


PAY = "pay"
RECEIVE = "receive"


@dataclass(frozen=True)
class PaymentItem:
    """One settlement seen from the user's side."""
    id: str
    direction: str
    amount: float
    currency: str
    counterparty: str
    group_name: str
    group_id: str

    def to_dict(self) -> dict:
        return asdict(self)


def _sum_by_currency(items: list[PaymentItem]) -> dict:
    totals = defaultdict(float)
    for item in items:
        totals[item.currency] += item.amount
    return {currency: round_money(amount) for currency, amount in totals.items()}


def build_payment_overview(groups: list, user_id: str) -> dict:
    """
    Aggregate every settlement involving a user across their groups.

    For each group the user belongs to:
        1. Calculate balances and settlements
        2. Keep settlements where the user pays (to_pay) or receives (to_receive)

    Args:
        groups: List of Group.
        user_id: The member whose payments are collected.

    Returns:
        dict: to_pay, to_receive, pay_by_currency, receive_by_currency,
        net_by_currency.

    Notes:
        - Groups the user is not a member of are skipped
        - Amounts in different currencies are never added together
    """
    to_pay = []
    to_receive = []

    for group in groups:
        if not group.has_member(user_id):
            continue

        settlements = calculate_settlements(calculate_balances(group))
        names = member_name_map(group.members)

        for index, settlement in enumerate(settlements):
            item_id = f"{group.id}-{index}-{settlement.from_id}-{settlement.to_id}"
            if settlement.from_id == user_id:
                to_pay.append(PaymentItem(
                    id=item_id,
                    direction=PAY,
                    amount=settlement.amount,
                    currency=group.currency,
                    counterparty=names.get(settlement.to_id, DEFAULT_MEMBER_NAME),
                    group_name=group.name,
                    group_id=group.id
                ))
            elif settlement.to_id == user_id:
                to_receive.append(PaymentItem(
                    id=item_id,
                    direction=RECEIVE,
                    amount=settlement.amount,
                    currency=group.currency,
                    counterparty=names.get(settlement.from_id, DEFAULT_MEMBER_NAME),
                    group_name=group.name,
                    group_id=group.id
                ))

    to_pay.sort(key=lambda item: item.amount, reverse=True)
    to_receive.sort(key=lambda item: item.amount, reverse=True)

    pay_by_currency = _sum_by_currency(to_pay)
    receive_by_currency = _sum_by_currency(to_receive)

    net_by_currency = dict(receive_by_currency)
    for currency, amount in pay_by_currency.items():
        net_by_currency[currency] = round_money(net_by_currency.get(currency, 0.0) - amount)
    net_by_currency = {
        currency: amount
        for currency, amount in net_by_currency.items()
        if abs(amount) >= 0.01
    }

    return {
        "to_pay": to_pay,
        "to_receive": to_receive,
        "pay_by_currency": pay_by_currency,
        "receive_by_currency": receive_by_currency,
        "net_by_currency": net_by_currency
    }
