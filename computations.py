"""
Balance computations for GroupSplit
"""
from __future__ import annotations
import logging
from typing import Dict, Iterable, List, Optional, Sequence

from exceptions import InvalidLedgerEntryError
from models import BalanceSummary, Expense, MemberSummary, Settlement, Transfer, UserBalance
from validation import SETTLED_THRESHOLD_CENTS, is_settled, validate_settlement

logger = logging.getLogger(__name__)


def _check_expense(e: Expense, members: Optional[set]) -> None:
    if e.amount_cents < 0:
        raise InvalidLedgerEntryError(
            f"Expense {e.id} has a negative amount", details={"expense_id": e.id, "amount_cents": e.amount_cents}
        )
    for s in e.splits:
        if s.share_cents < 0:
            raise InvalidLedgerEntryError(
                f"Expense {e.id} has a negative share for {s.user_id}",
                details={"expense_id": e.id, "user_id": s.user_id, "share_cents": s.share_cents},
            )
        if members is not None and s.user_id not in members:
            raise InvalidLedgerEntryError(
                f"Expense {e.id} splits with {s.user_id}, who is not a member",
                details={"expense_id": e.id, "user_id": s.user_id},
            )


def compute_balances(
    expenses: Iterable[Expense],
    settlements: Iterable[Settlement],
    viewer_id: str,
    member_ids: Optional[Iterable[str]] = None,
) -> Dict[str, int]:
    """
    Net balance between the viewer and every counterparty in the snapshot.
    Returns dict mapping counterparty -> cents.
    positive -> counterparty owes the viewer; negative -> viewer owes the counterparty.

    Every expense must have the viewer as payer or participant and every
    settlement must have the viewer as a party; rows that don't are rejected,
    the caller is expected to scope its input.
    """
    members = set(member_ids) if member_ids is not None else None
    balance: Dict[str, int] = {}

    for e in expenses:
        _check_expense(e, members)
        if e.payer_id == viewer_id:
            # they owe the viewer
            for s in e.splits:
                if s.user_id != viewer_id:
                    balance[s.user_id] = balance.get(s.user_id, 0) + s.share_cents
            continue
        mine = e.share_of(viewer_id)
        if mine is None:
            raise InvalidLedgerEntryError(
                f"Expense {e.id} does not involve {viewer_id}",
                details={"expense_id": e.id, "viewer_id": viewer_id},
            )
        balance[e.payer_id] = balance.get(e.payer_id, 0) - mine

    for st in settlements:
        validate_settlement(st)
        if st.payer_id == viewer_id:
            balance[st.payee_id] = balance.get(st.payee_id, 0) + st.amount_cents
        elif st.payee_id == viewer_id:
            balance[st.payer_id] = balance.get(st.payer_id, 0) - st.amount_cents
        else:
            raise InvalidLedgerEntryError(
                f"Settlement {st.id} does not involve {viewer_id}",
                details={"settlement_id": st.id, "viewer_id": viewer_id},
            )

    logger.debug("Balances for %s: %d counterparties", viewer_id, len(balance))
    return balance


def total_balance(balances: Dict[str, int]) -> int:
    """Net total over every counterparty, settled ones included"""
    return sum(balances.values())


def owes_list(balances: Dict[str, int]) -> List[UserBalance]:
    """'Who owes whom' list: settled entries dropped, largest first"""
    out = [UserBalance(u, v) for u, v in balances.items() if not is_settled(v)]
    out.sort(key=lambda b: (-abs(b.amount_cents), b.user_id))
    return out


def summarize(balances: Dict[str, int]) -> BalanceSummary:
    """Split a balance map into owed / owing totals"""
    owed = sum(v for v in balances.values() if v > 0)
    owing = -sum(v for v in balances.values() if v < 0)
    return BalanceSummary(total_owed_cents=owed, total_owing_cents=owing, net_cents=owed - owing)


def compute_member_summary(
    expenses: Iterable[Expense],
    settlements: Iterable[Settlement],
    member_ids: Sequence[str],
) -> List[MemberSummary]:
    """
    Compute each member's position within a group.
    Returns MemberSummary per member in member_ids order; nets add up to
    the group's accumulated rounding drift (zero for reconciled splits).
    """
    paid = {p: 0 for p in member_ids}
    consumed = {p: 0 for p in member_ids}
    out_ = {p: 0 for p in member_ids}
    in_ = {p: 0 for p in member_ids}

    for e in expenses:
        _check_expense(e, set(member_ids))
        if e.payer_id not in paid:
            raise InvalidLedgerEntryError(
                f"Expense {e.id} paid by {e.payer_id}, who is not a member",
                details={"expense_id": e.id, "user_id": e.payer_id},
            )
        paid[e.payer_id] += e.amount_cents
        for s in e.splits:
            consumed[s.user_id] += s.share_cents

    for st in settlements:
        validate_settlement(st)
        for uid in (st.payer_id, st.payee_id):
            if uid not in paid:
                raise InvalidLedgerEntryError(
                    f"Settlement {st.id} involves {uid}, who is not a member",
                    details={"settlement_id": st.id, "user_id": uid},
                )
        out_[st.payer_id] += st.amount_cents
        in_[st.payee_id] += st.amount_cents

    return [MemberSummary(p, paid[p], consumed[p], out_[p], in_[p]) for p in member_ids]


def compute_transfers(net: Dict[str, int], eps: int = SETTLED_THRESHOLD_CENTS) -> List[Transfer]:
    """
    Compute transfers to settle debts.
    Greedy settlement: debtors pay creditors. net>0 creditor; net<0 debtor.
    """
    creditors = [(p, v) for p, v in net.items() if v > eps]
    debtors = [(p, -v) for p, v in net.items() if v < -eps]
    creditors.sort(key=lambda x: (-x[1], x[0]))
    debtors.sort(key=lambda x: (-x[1], x[0]))

    transfers = []
    i = j = 0
    while i < len(debtors) and j < len(creditors):
        dname, damt = debtors[i]
        cname, camt = creditors[j]
        x = min(damt, camt)
        if x > eps:
            transfers.append(Transfer(dname, cname, x))
        damt -= x
        camt -= x
        if damt <= eps:
            i += 1
        else:
            debtors[i] = (dname, damt)
        if camt <= eps:
            j += 1
        else:
            creditors[j] = (cname, camt)

    return transfers
