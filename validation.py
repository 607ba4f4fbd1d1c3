"""
Consistency checks shared by the split calculator and every ledger mutation.

All tolerance constants live here; nothing else in the code base compares
amounts against an ad hoc epsilon.
"""
from __future__ import annotations
from decimal import Decimal
from typing import Iterable, Optional

from exceptions import AmountMismatchError, InvalidLedgerEntryError, InvalidSettlementError
from models import Expense, Settlement
from utils import parse_date

AMOUNT_TOLERANCE_CENTS = 5          # 0.05 currency units
PERCENT_TOLERANCE = Decimal("0.1")  # percentage points
SETTLED_THRESHOLD_CENTS = 1         # |balance| <= 0.01 counts as settled


def amounts_reconcile(total_cents: int, parts: Iterable[int], epsilon: int = AMOUNT_TOLERANCE_CENTS) -> bool:
    """True if the parts add up to total within epsilon cents"""
    return abs(sum(parts) - total_cents) <= epsilon


def percentages_reconcile(pcts: Iterable[Decimal], epsilon: Decimal = PERCENT_TOLERANCE) -> bool:
    """True if the percentages add up to 100 within epsilon points"""
    return abs(sum(pcts, Decimal(0)) - Decimal(100)) <= epsilon


def is_positive_amount(cents: int) -> bool:
    return cents > 0


def is_distinct_parties(payer_id: str, payee_id: str) -> bool:
    return payer_id != payee_id


def is_settled(cents: int) -> bool:
    return abs(cents) <= SETTLED_THRESHOLD_CENTS


def validate_expense(expense: Expense, member_ids: Optional[Iterable[str]] = None) -> None:
    """
    Reject a malformed expense before it is written.
    Raises InvalidLedgerEntryError or AmountMismatchError.
    """
    if not is_positive_amount(expense.amount_cents):
        raise InvalidLedgerEntryError(
            f"Expense {expense.id} amount must be positive",
            details={"expense_id": expense.id, "amount_cents": expense.amount_cents},
        )
    if not expense.splits:
        raise InvalidLedgerEntryError(f"Expense {expense.id} has no splits", details={"expense_id": expense.id})
    check_date(expense.date, expense.id)

    seen = set()
    for s in expense.splits:
        if s.expense_id != expense.id:
            raise InvalidLedgerEntryError(
                f"Split for {s.user_id} belongs to expense {s.expense_id}, not {expense.id}",
                details={"expense_id": expense.id, "user_id": s.user_id},
            )
        if s.share_cents <= 0:
            # zero shares are dropped by the calculator, never stored
            raise InvalidLedgerEntryError(
                f"Split for {s.user_id} must be positive",
                details={"expense_id": expense.id, "user_id": s.user_id, "share_cents": s.share_cents},
            )
        if s.user_id in seen:
            raise InvalidLedgerEntryError(
                f"Duplicate split for {s.user_id}", details={"expense_id": expense.id, "user_id": s.user_id}
            )
        seen.add(s.user_id)

    if member_ids is not None:
        members = set(member_ids)
        outsiders = sorted((seen | {expense.payer_id}) - members)
        if outsiders:
            raise InvalidLedgerEntryError(
                f"Expense {expense.id} references users outside the group: {', '.join(outsiders)}",
                details={"expense_id": expense.id, "group_id": expense.group_id, "user_ids": outsiders},
            )

    parts = [s.share_cents for s in expense.splits]
    if not amounts_reconcile(expense.amount_cents, parts):
        raise AmountMismatchError(expense.amount_cents, sum(parts))


def validate_settlement(settlement: Settlement) -> None:
    """Raises InvalidSettlementError for self-payments and non-positive amounts, InvalidLedgerEntryError for bad dates"""
    if not is_positive_amount(settlement.amount_cents):
        raise InvalidSettlementError(
            "Settlement amount must be positive",
            details={"settlement_id": settlement.id, "amount_cents": settlement.amount_cents},
        )
    if not is_distinct_parties(settlement.payer_id, settlement.payee_id):
        raise InvalidSettlementError(
            "Cannot settle with yourself",
            details={"settlement_id": settlement.id, "user_id": settlement.payer_id},
        )
    check_date(settlement.date, settlement.id)


def check_date(value: str, row_id: str) -> None:
    """Raises InvalidLedgerEntryError unless value is YYYY-MM-DD"""
    try:
        parse_date(value)
    except (AttributeError, TypeError, ValueError):
        raise InvalidLedgerEntryError(f"Invalid date for {row_id}: {value!r}", details={"id": row_id, "date": value})
