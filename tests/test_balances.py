import random
from decimal import Decimal

import pytest

from app.services.balances import (
    EXPENSE,
    INCOME,
    INVESTMENT,
    SAVINGS,
    TRANSFER,
    balance_contribution,
    calculate_total_balance,
    calculate_wallet_balance,
    wallet_savings_total,
)
from app.services.wallets import deactivate_wallet


@pytest.mark.parametrize(
    "type, amount, expected",
    [
        (INCOME, "100", Decimal("100")),
        (EXPENSE, "100", Decimal("-100")),
        (SAVINGS, "100", Decimal("-100")),
        (INVESTMENT, "100", Decimal("-100")),
        (TRANSFER, "-100", Decimal("-100")),
        (TRANSFER, "100", Decimal("100")),
    ],
)
def test_sign_table(type, amount, expected):
    assert balance_contribution(type, amount) == expected


def test_unknown_type_has_no_contribution():
    with pytest.raises(ValueError):
        balance_contribution("refund", 10)


def test_balance_matches_fold_over_random_rows(ledger, db, make_wallet):
    wallet = make_wallet()
    rng = random.Random(42)
    expected = Decimal("0")
    for i in range(60):
        type = rng.choice([INCOME, EXPENSE, SAVINGS, INVESTMENT])
        amount = Decimal(rng.randint(1, 500000)) / 100
        extra = {"category": "Food"} if type == EXPENSE else {}
        ledger.create_transaction(1, f"row {i}", amount, type, wallet_id=wallet["id"],
                                  check_balance=False, **extra)
        expected += balance_contribution(type, amount)

    assert calculate_wallet_balance(db, 1, wallet["id"]) == expected


def test_savings_reduce_wallet_and_grow_savings_total(ledger, db, make_wallet):
    wallet = make_wallet(balance=100000)
    ledger.create_transaction(1, "Put aside", 25000, SAVINGS, wallet_id=wallet["id"], goal_name="Trip")

    assert calculate_wallet_balance(db, 1, wallet["id"]) == Decimal("75000")
    assert wallet_savings_total(db, 1, wallet["id"]) == Decimal("25000")


def test_total_balance_counts_active_wallets_only(ledger, db, make_wallet):
    main = make_wallet(name="Main", balance=1000)
    old = make_wallet(name="Old", balance=500)

    assert calculate_total_balance(db, 1) == Decimal("1500")

    deactivate_wallet(ledger, 1, old["id"])

    assert calculate_total_balance(db, 1) == Decimal("1000")
    # a deactivated wallet still reports its own history
    assert calculate_wallet_balance(db, 1, old["id"]) == Decimal("500")
    assert calculate_wallet_balance(db, 1, main["id"]) == Decimal("1000")


def test_balances_are_scoped_by_user(db, make_wallet):
    wallet = make_wallet(user_id=1, balance=1000)
    make_wallet(user_id=2, balance=999)

    assert calculate_wallet_balance(db, 2, wallet["id"]) == Decimal("0")
    assert calculate_total_balance(db, 2) == Decimal("999")
