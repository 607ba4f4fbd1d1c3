"""
Shared fixtures for GroupSplit tests.
"""
from typing import Dict, Optional

import pytest

from invalidation import InvalidationFeed
from ledger_view import BalanceCache, LedgerView
from models import Expense, ExpenseSplit, Group, Settlement, SplitType
from store import JsonLedgerStore


def make_expense(
    expense_id: str,
    payer: str,
    amount_cents: int,
    shares: Dict[str, int],
    group_id: Optional[str] = "g1",
    date: str = "2024-01-01",
    split_type: SplitType = SplitType.EXACT,
    created_by: Optional[str] = None,
) -> Expense:
    return Expense(
        id=expense_id,
        payer_id=payer,
        created_by=created_by or payer,
        amount_cents=amount_cents,
        split_type=split_type,
        date=date,
        group_id=group_id,
        description=f"expense {expense_id}",
        splits=[ExpenseSplit(expense_id, uid, cents) for uid, cents in shares.items()],
    )


def make_settlement(
    settlement_id: str,
    payer: str,
    payee: str,
    amount_cents: int,
    group_id: Optional[str] = "g1",
    date: str = "2024-01-02",
) -> Settlement:
    return Settlement(
        id=settlement_id, payer_id=payer, payee_id=payee, amount_cents=amount_cents, date=date, group_id=group_id
    )


@pytest.fixture
def feed():
    return InvalidationFeed()


@pytest.fixture
def store(feed):
    """Store with group g1 = {a, b, c} and group g2 = {a, b, d}"""
    s = JsonLedgerStore(feed=feed)
    s.add_group(Group("g1", "Trip", "a"), ["a", "b", "c"])
    s.add_group(Group("g2", "Home", "a"), ["a", "b", "d"])
    return s


@pytest.fixture
def view(store):
    return LedgerView(store)


@pytest.fixture
def cached_view(store, feed):
    return LedgerView(store, cache=BalanceCache(feed))
