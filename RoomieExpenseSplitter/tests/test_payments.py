from conftest import make_expense, make_group
from members import Member
from payments import PAY, RECEIVE, build_payment_overview


def test_user_pays_and_receives_across_groups():
    usd = make_group(["me", "ann"], [make_expense(100, "ann", ["me", "ann"])], group_id="g1")
    eur = make_group(["me", "ben", "cat"], [make_expense(90, "me", ["me", "ben", "cat"])],
                     currency="EUR", group_id="g2")

    overview = build_payment_overview([usd, eur], "me")

    assert [(i.counterparty, i.amount, i.currency) for i in overview["to_pay"]] == [("Ann", 50.0, "USD")]
    assert [(i.counterparty, i.amount) for i in overview["to_receive"]] == [("Ben", 30.0), ("Cat", 30.0)]
    assert overview["pay_by_currency"] == {"USD": 50.0}
    assert overview["receive_by_currency"] == {"EUR": 60.0}
    assert overview["net_by_currency"] == {"USD": -50.0, "EUR": 60.0}


def test_item_fields():
    group = make_group(["me", "ann"], [make_expense(100, "ann", ["me", "ann"])], group_id="g1")

    item = build_payment_overview([group], "me")["to_pay"][0]

    assert item.to_dict() == {
        "id": "g1-0-me-ann",
        "direction": PAY,
        "amount": 50.0,
        "currency": "USD",
        "counterparty": "Ann",
        "group_name": "Group g1",
        "group_id": "g1",
    }


def test_lists_are_sorted_largest_first():
    small = make_group(["me", "ann"], [make_expense(20, "me", ["me", "ann"])], group_id="g1")
    large = make_group(["me", "ben"], [make_expense(200, "me", ["me", "ben"])], group_id="g2")

    overview = build_payment_overview([small, large], "me")

    assert [i.amount for i in overview["to_receive"]] == [100.0, 10.0]
    assert all(i.direction == RECEIVE for i in overview["to_receive"])
    assert overview["receive_by_currency"] == {"USD": 110.0}


def test_same_currency_nets_out():
    owes = make_group(["me", "ann"], [make_expense(60, "ann", ["me", "ann"])], group_id="g1")
    owed = make_group(["me", "ben"], [make_expense(60, "me", ["me", "ben"])], group_id="g2")

    overview = build_payment_overview([owes, owed], "me")

    assert overview["pay_by_currency"] == {"USD": 30.0}
    assert overview["receive_by_currency"] == {"USD": 30.0}
    assert overview["net_by_currency"] == {}


def test_groups_without_user_are_skipped():
    other = make_group(["ann", "ben"], [make_expense(100, "ann", ["ann", "ben"])])

    overview = build_payment_overview([other], "me")

    assert overview["to_pay"] == [] and overview["to_receive"] == []
    assert overview["net_by_currency"] == {}


def test_unnamed_member_uses_default_name():
    group = make_group(["me"], [make_expense(100, "me", ["me", "ann"])])
    group.members.append(Member.from_dict({"id": "ann"}))

    item = build_payment_overview([group], "me")["to_receive"][0]

    assert item.counterparty == "Roomie"
