"""
RoomieExpenseSplitter - FastAPI Web Backend

This module serves as the main entry point for the shared-expense tracker
API used by roommates and travel groups.

Features:
    - RESTful API for groups, members, join requests, expenses and payments
    - Integration with Firebase Firestore backend
    - Balance and settlement calculations (recomputed on every read)
    - Cross-group pending payments and spending analytics

Endpoints:
    POST   /groups                                   - Create a group
    GET    /groups/{group_id}                        - Group with members and expenses
    DELETE /groups/{group_id}?admin_id=              - Delete a group
    GET    /users/{user_id}/groups                   - Groups of a user
    POST   /groups/join                              - Request to join by invite code
    GET    /users/{user_id}/invites                  - Pending join requests for an admin
    POST   /invites/{invite_id}/accept               - Accept a join request
    POST   /invites/{invite_id}/reject               - Reject a join request
    POST   /groups/{group_id}/leave                  - Leave a group
    DELETE /groups/{group_id}/members/{member_id}    - Remove a member
    POST   /groups/{group_id}/expenses               - Add an expense
    GET    /groups/{group_id}/expenses               - Filtered expense history
    DELETE /groups/{group_id}/expenses/{expense_id}  - Delete an expense
    POST   /groups/{group_id}/payments               - Record a debt payment
    GET    /groups/{group_id}/balances               - Balances and settlements
    GET    /groups/{group_id}/analytics              - Spending analytics
    GET    /users/{user_id}/payments                 - Pending payments across groups
    POST   /amounts/parse                            - Parse a free-text amount

Environment:
    LOG_LEVEL: Logging level (default INFO).

Usage:
    uvicorn main:app --reload
"""

import logging
import os
from typing import Literal, Optional

from fastapi import Depends, FastAPI, HTTPException, Query
from pydantic import BaseModel, Field

from analytics import filter_expenses, generate_group_analytics
from expenses import EXPENSE_TYPE, add_expense, delete_expense, record_payment
from firebase_store import GroupRepository
from groups import create_group, delete_group, leave_group, list_user_groups, remove_member
from invites import accept_invite, list_pending_invites, reject_invite, request_join_by_code
from members import DEFAULT_MEMBER_NAME, Member, member_name_map
from payments import build_payment_overview
from settlement import calculate_settlements
from splitter import calculate_balances
from utils import format_money, parse_amount


logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)


# =============================================================================
# Pydantic Models for Request/Response Validation
# =============================================================================

class MemberIn(BaseModel):
    """A user acting on the API."""
    id: str = Field(..., min_length=1, description="User ID")
    name: str = Field(..., min_length=1, description="Display name")


class GroupCreate(BaseModel):
    """Request model for creating a group."""
    name: str = Field(..., min_length=1, description="Group name")
    currency: str = Field(..., min_length=1, description="Currency label, e.g. USD")
    owner: MemberIn


class JoinRequest(BaseModel):
    """Request model for joining a group by invite code."""
    code: str = Field(..., min_length=1, description="Invite code")
    user: MemberIn


class AdminAction(BaseModel):
    """Request body for actions only the group admin may take."""
    admin_id: str = Field(..., min_length=1)


class LeaveRequest(BaseModel):
    user_id: str = Field(..., min_length=1)


class ExpenseItemIn(BaseModel):
    name: str = ""
    amount: float = Field(..., ge=0)


class ExpenseCreate(BaseModel):
    """Request model for adding an expense."""
    title: str = Field(..., min_length=1, description="Expense description")
    amount: float = Field(..., ge=0, allow_inf_nan=False, description="Expense amount")
    paid_by_id: str = Field(..., min_length=1, description="Member ID of payer")
    participant_ids: list[str] = Field(..., min_length=1, description="Member IDs sharing the amount")
    type: Literal["expense", "payment"] = EXPENSE_TYPE
    items: list[ExpenseItemIn] = Field(default_factory=list)
    receipt_url: Optional[str] = None


class PaymentCreate(BaseModel):
    """Request model for recording a debt payment."""
    from_id: str = Field(..., min_length=1, description="Member who paid")
    to_id: str = Field(..., min_length=1, description="Member who received")
    amount: float = Field(..., gt=0, allow_inf_nan=False)
    receipt_url: Optional[str] = None


class AmountParse(BaseModel):
    text: str
    currency: Optional[str] = None


class BalanceOut(BaseModel):
    member_id: str
    name: str
    net: float
    display: str


class SettlementOut(BaseModel):
    from_id: str
    from_name: str
    to_id: str
    to_name: str
    amount: float
    display: str


class BalancesResponse(BaseModel):
    """Response model for balance calculation."""
    group_id: str
    currency: str
    balances: list[BalanceOut]
    settlements: list[SettlementOut]


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="Roomie Expense Splitter",
    description="Shared expenses for roommates and trips: who owes whom",
    version="1.0.0"
)


def get_repository() -> GroupRepository:
    return GroupRepository()


def _http_error(exc: Exception) -> HTTPException:
    """Map store errors to HTTP errors."""
    if isinstance(exc, PermissionError):
        return HTTPException(status_code=403, detail=str(exc))
    if isinstance(exc, ValueError):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, RuntimeError):
        return HTTPException(status_code=503, detail=str(exc))
    logger.exception("Unexpected error")
    return HTTPException(status_code=500, detail=str(exc))


def _load_group(repo: GroupRepository, group_id: str):
    group = repo.get_group(group_id)
    if group is None:
        raise HTTPException(status_code=404, detail=f"Group {group_id} not found")
    return group


# =============================================================================
# Groups
# =============================================================================

@app.post("/groups", status_code=201)
def create_group_endpoint(group_data: GroupCreate):
    """Create a group; the owner becomes its admin and first member."""
    try:
        group = create_group(
            name=group_data.name,
            currency=group_data.currency,
            owner=Member(id=group_data.owner.id, name=group_data.owner.name)
        )
        return group.to_dict()
    except HTTPException:
        raise
    except Exception as e:
        raise _http_error(e)


@app.get("/groups/{group_id}")
def get_group_endpoint(group_id: str, repo: GroupRepository = Depends(get_repository)):
    try:
        return _load_group(repo, group_id).to_dict()
    except HTTPException:
        raise
    except Exception as e:
        raise _http_error(e)


@app.delete("/groups/{group_id}", status_code=204)
def delete_group_endpoint(group_id: str, admin_id: str = Query(..., min_length=1)):
    try:
        delete_group(group_id, admin_id)
    except HTTPException:
        raise
    except Exception as e:
        raise _http_error(e)


@app.get("/users/{user_id}/groups")
def list_user_groups_endpoint(user_id: str):
    try:
        return [group.to_dict() for group in list_user_groups(user_id)]
    except HTTPException:
        raise
    except Exception as e:
        raise _http_error(e)


@app.post("/groups/{group_id}/leave", status_code=204)
def leave_group_endpoint(group_id: str, body: LeaveRequest):
    try:
        leave_group(group_id, body.user_id)
    except HTTPException:
        raise
    except Exception as e:
        raise _http_error(e)


@app.delete("/groups/{group_id}/members/{member_id}", status_code=204)
def remove_member_endpoint(group_id: str, member_id: str, admin_id: str = Query(..., min_length=1)):
    try:
        remove_member(group_id, member_id, admin_id)
    except HTTPException:
        raise
    except Exception as e:
        raise _http_error(e)


# =============================================================================
# Join requests
# =============================================================================

@app.post("/groups/join", status_code=201)
def join_group_endpoint(body: JoinRequest):
    """Create a pending join request for the group owning the invite code."""
    try:
        invite = request_join_by_code(body.code, Member(id=body.user.id, name=body.user.name))
        return invite.to_dict()
    except HTTPException:
        raise
    except Exception as e:
        raise _http_error(e)


@app.get("/users/{user_id}/invites")
def list_invites_endpoint(user_id: str):
    try:
        return [invite.to_dict() for invite in list_pending_invites(user_id)]
    except HTTPException:
        raise
    except Exception as e:
        raise _http_error(e)


@app.post("/invites/{invite_id}/accept")
def accept_invite_endpoint(invite_id: str, body: AdminAction):
    try:
        return accept_invite(invite_id, body.admin_id).to_dict()
    except HTTPException:
        raise
    except Exception as e:
        raise _http_error(e)


@app.post("/invites/{invite_id}/reject")
def reject_invite_endpoint(invite_id: str, body: AdminAction):
    try:
        return reject_invite(invite_id, body.admin_id).to_dict()
    except HTTPException:
        raise
    except Exception as e:
        raise _http_error(e)


# =============================================================================
# Expenses and payments
# =============================================================================

@app.post("/groups/{group_id}/expenses", status_code=201)
def add_expense_endpoint(group_id: str, expense_data: ExpenseCreate):
    """
    Add an expense to a group.

    Request flow:
        1. Validate input using Pydantic model
        2. Call add_expense() from expenses.py (membership checks)
        3. Return created expense data
    """
    try:
        expense = add_expense(
            group_id=group_id,
            title=expense_data.title,
            amount=expense_data.amount,
            paid_by_id=expense_data.paid_by_id,
            participant_ids=expense_data.participant_ids,
            type=expense_data.type,
            items=[item.model_dump() for item in expense_data.items],
            receipt_url=expense_data.receipt_url
        )
        return expense.to_dict()
    except HTTPException:
        raise
    except Exception as e:
        raise _http_error(e)


@app.get("/groups/{group_id}/expenses")
def list_expenses_endpoint(
    group_id: str,
    range: Literal["1d", "7d", "30d", "all"] = "30d",
    q: str = "",
    repo: GroupRepository = Depends(get_repository)
):
    try:
        group = _load_group(repo, group_id)
        return [e.to_dict() for e in filter_expenses(group, range=range, query=q)]
    except HTTPException:
        raise
    except Exception as e:
        raise _http_error(e)


@app.delete("/groups/{group_id}/expenses/{expense_id}", status_code=204)
def delete_expense_endpoint(group_id: str, expense_id: str):
    try:
        delete_expense(group_id, expense_id)
    except HTTPException:
        raise
    except Exception as e:
        raise _http_error(e)


@app.post("/groups/{group_id}/payments", status_code=201)
def record_payment_endpoint(group_id: str, payment_data: PaymentCreate):
    """Record that one member paid another to settle a debt."""
    try:
        expense = record_payment(
            group_id=group_id,
            from_id=payment_data.from_id,
            to_id=payment_data.to_id,
            amount=payment_data.amount,
            receipt_url=payment_data.receipt_url
        )
        return expense.to_dict()
    except HTTPException:
        raise
    except Exception as e:
        raise _http_error(e)


# =============================================================================
# Balances, analytics and payments overview
# =============================================================================

@app.get("/groups/{group_id}/balances", response_model=BalancesResponse)
def group_balances_endpoint(group_id: str, repo: GroupRepository = Depends(get_repository)):
    """
    Calculate balances and settlements for a group.

    Request flow:
        1. Fetch the group and its expenses from Firestore
        2. Calculate balances (splitter.py)
        3. Calculate settlements (settlement.py)
        4. Attach member names and display strings
    """
    try:
        group = _load_group(repo, group_id)
        balances = calculate_balances(group)
        settlements = calculate_settlements(balances)
        names = member_name_map(group.members)

        return BalancesResponse(
            group_id=group.id,
            currency=group.currency,
            balances=[
                BalanceOut(
                    member_id=b.member_id,
                    name=names.get(b.member_id, DEFAULT_MEMBER_NAME),
                    net=b.net,
                    display=format_money(b.net, group.currency)
                )
                for b in balances
            ],
            settlements=[
                SettlementOut(
                    from_id=s.from_id,
                    from_name=names.get(s.from_id, DEFAULT_MEMBER_NAME),
                    to_id=s.to_id,
                    to_name=names.get(s.to_id, DEFAULT_MEMBER_NAME),
                    amount=s.amount,
                    display=format_money(s.amount, group.currency)
                )
                for s in settlements
            ]
        )
    except HTTPException:
        raise
    except Exception as e:
        raise _http_error(e)


@app.get("/groups/{group_id}/analytics")
def group_analytics_endpoint(group_id: str, repo: GroupRepository = Depends(get_repository)):
    try:
        return generate_group_analytics(_load_group(repo, group_id))
    except HTTPException:
        raise
    except Exception as e:
        raise _http_error(e)


@app.get("/users/{user_id}/payments")
def payment_overview_endpoint(user_id: str):
    """Everything the user must pay or receive, across all their groups."""
    try:
        overview = build_payment_overview(list_user_groups(user_id), user_id)
        overview["to_pay"] = [item.to_dict() for item in overview["to_pay"]]
        overview["to_receive"] = [item.to_dict() for item in overview["to_receive"]]
        return overview
    except HTTPException:
        raise
    except Exception as e:
        raise _http_error(e)


@app.post("/amounts/parse")
def parse_amount_endpoint(body: AmountParse):
    amount = parse_amount(body.text)
    return {
        "amount": amount,
        "display": format_money(amount, body.currency) if body.currency else f"{amount:.2f}"
    }


# =============================================================================
# Health Check Endpoint
# =============================================================================

@app.get("/health")
def health_check():
    """Health check endpoint to verify API is running."""
    return {"status": "healthy", "service": "Roomie Expense Splitter"}


# =============================================================================
# Run with: python main.py
# =============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="127.0.0.1", port=8000, reload=True)
