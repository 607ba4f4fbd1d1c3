"""
Split calculator: turns one entered total into per-participant shares
"""
from __future__ import annotations
import logging
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Union

from exceptions import AmountMismatchError, InvalidLedgerEntryError, PercentageMismatchError
from models import ExpenseSplit, SplitResult, SplitShare, SplitType
from utils import Number, round_cents, to_cents, to_decimal
from validation import (
    AMOUNT_TOLERANCE_CENTS,
    amounts_reconcile,
    is_positive_amount,
    percentages_reconcile,
)

logger = logging.getLogger(__name__)

ModeInputs = Union[Iterable[str], Mapping[str, Number], None]


def _check_participants(participants: Sequence[str]) -> List[str]:
    people = list(participants)
    if not people:
        raise InvalidLedgerEntryError("Select at least one person to split with")
    dupes = sorted({p for p in people if people.count(p) > 1})
    if dupes:
        raise InvalidLedgerEntryError(
            f"Duplicate participants: {', '.join(dupes)}", details={"user_ids": dupes}
        )
    return people


def _check_known(keys: Iterable[str], people: List[str]) -> None:
    unknown = sorted(set(keys) - set(people))
    if unknown:
        raise InvalidLedgerEntryError(
            f"Not a participant: {', '.join(unknown)}", details={"user_ids": unknown}
        )


def _equal_shares(total_cents: int, people: List[str], involved: Optional[Iterable[str]]) -> Dict[str, int]:
    chosen = set(people) if involved is None else set(involved)
    _check_known(chosen, people)
    if not chosen:
        raise InvalidLedgerEntryError("Select at least one person to split with")
    n = len(chosen)
    # each share rounded on its own; the remainder stays as drift
    share = round_cents(Decimal(total_cents) / n)
    if not amounts_reconcile(total_cents, [share] * n):
        raise AmountMismatchError(
            total_cents, share * n,
            message=f"Cannot split {total_cents / 100:.2f} equally between {n} people",
        )
    return {p: share for p in people if p in chosen}


def _exact_shares(total_cents: int, people: List[str], entered: Mapping[str, Number]) -> Dict[str, int]:
    _check_known(entered.keys(), people)
    shares = {}
    for p in people:
        cents = to_cents(entered.get(p, 0))
        if cents < 0:
            raise InvalidLedgerEntryError(
                f"Share for {p} cannot be negative", details={"user_id": p, "share_cents": cents}
            )
        shares[p] = cents
    if not amounts_reconcile(total_cents, shares.values()):
        raise AmountMismatchError(total_cents, sum(shares.values()))
    return shares


def _percentage_shares(total_cents: int, people: List[str], entered: Mapping[str, Number]) -> Dict[str, int]:
    _check_known(entered.keys(), people)
    pcts = {}
    for p in people:
        pct = to_decimal(entered.get(p, 0))
        if pct < 0 or pct > 100:
            raise InvalidLedgerEntryError(
                f"Percentage for {p} must be between 0 and 100", details={"user_id": p, "percent": str(pct)}
            )
        pcts[p] = pct
    if not percentages_reconcile(pcts.values()):
        raise PercentageMismatchError(sum(pcts.values(), Decimal(0)))

    shares = {p: round_cents(Decimal(total_cents) * pct / 100) for p, pct in pcts.items()}
    diff = total_cents - sum(shares.values())
    if abs(diff) > AMOUNT_TOLERANCE_CENTS:
        first = next(p for p in people if pcts[p] > 0)
        logger.debug("Percentage split off by %d cents; adjusting %s", diff, first)
        shares[first] += diff
        if shares[first] < 0:
            raise InvalidLedgerEntryError(
                f"Rounding adjustment would make {first}'s share negative",
                details={"user_id": first, "share_cents": shares[first]},
            )
    return shares


def compute_splits(
    total: Number,
    mode: Union[SplitType, str],
    participants: Sequence[str],
    mode_inputs: ModeInputs = None,
) -> SplitResult:
    """
    Compute validated per-participant shares of an expense.

    - EQUAL: mode_inputs is the involved subset of participants (all if None).
    - EXACT: mode_inputs maps user -> amount; must add up to total within 0.05.
    - PERCENTAGE: mode_inputs maps user -> percent; must add up to 100 within 0.1.

    Shares come back in participant order with zero shares removed.
    """
    split_type = SplitType.parse(mode)
    total_cents = to_cents(total)
    if not is_positive_amount(total_cents):
        raise InvalidLedgerEntryError("Invalid amount", details={"total_cents": total_cents})
    people = _check_participants(participants)

    if split_type is SplitType.EQUAL:
        if isinstance(mode_inputs, Mapping):
            mode_inputs = list(mode_inputs.keys())
        shares = _equal_shares(total_cents, people, mode_inputs)
    elif split_type is SplitType.EXACT:
        shares = _exact_shares(total_cents, people, mode_inputs or {})
    else:
        shares = _percentage_shares(total_cents, people, mode_inputs or {})

    result = SplitResult(
        total_cents=total_cents,
        split_type=split_type,
        shares=tuple(SplitShare(p, shares[p]) for p in people if shares.get(p, 0) > 0),
    )
    if not result.shares:
        raise InvalidLedgerEntryError("Nobody has a share in this expense")
    logger.debug(
        "%s split of %d cents over %d participants (drift %d)",
        split_type.value, total_cents, len(result.shares), result.drift_cents,
    )
    return result


def build_expense_splits(expense_id: str, result: SplitResult) -> List[ExpenseSplit]:
    """Turn calculator output into the rows stored under an expense"""
    return [ExpenseSplit(expense_id, s.user_id, s.share_cents) for s in result.shares]
