"""
Scope-keyed invalidation of computed balances.

A successful ledger mutation produces one Invalidation naming exactly the
scopes whose balances changed: the group (if any), every pair of involved
users, and each involved user's global view. Consumers drop those entries
and recompute on next read.
"""
from __future__ import annotations
import logging
import threading
from dataclasses import dataclass
from itertools import combinations
from typing import Callable, FrozenSet, Iterable, List, Optional

from models import Expense, Scope, Settlement

logger = logging.getLogger(__name__)

Listener = Callable[["Invalidation"], None]


@dataclass(frozen=True)
class Invalidation:
    table: str  # "expenses" | "settlements" | "group_members"
    scopes: FrozenSet[Scope]

    def affects(self, scope: Scope) -> bool:
        return scope in self.scopes


def _scopes_for(group_id: Optional[str], payer_id: str, others: Iterable[str]) -> set:
    scopes = set()
    users = sorted({payer_id, *others})
    if group_id:
        scopes.add(Scope.group(group_id))
    # every pair of involved users sees the row in its shared history
    for a, b in combinations(users, 2):
        scopes.add(Scope.friend(a, b))
    for uid in users:
        scopes.add(Scope.all_for(uid))
    return scopes


def invalidation_for_expense(expense: Expense, previous: Optional[Expense] = None) -> Invalidation:
    """Scopes touched by creating/editing/deleting expense (previous = state before an edit)"""
    scopes = _scopes_for(expense.group_id, expense.payer_id, expense.participant_ids)
    if previous is not None:
        scopes |= _scopes_for(previous.group_id, previous.payer_id, previous.participant_ids)
    return Invalidation("expenses", frozenset(scopes))


def invalidation_for_settlement(settlement: Settlement) -> Invalidation:
    return Invalidation(
        "settlements", frozenset(_scopes_for(settlement.group_id, settlement.payer_id, [settlement.payee_id]))
    )


def invalidation_for_membership(group_id: str, user_id: str, member_ids: Iterable[str]) -> Invalidation:
    """A user joined group_id: the group view and the new member's pairs change"""
    scopes = {Scope.group(group_id), Scope.all_for(user_id)}
    scopes.update(Scope.friend(user_id, m) for m in member_ids if m != user_id)
    return Invalidation("group_members", frozenset(scopes))


def invalidation_for_group(group_id: str, member_ids: Iterable[str]) -> Invalidation:
    """A new group: every member pair gains a common group"""
    users = sorted(set(member_ids))
    scopes = {Scope.group(group_id)}
    scopes.update(Scope.all_for(uid) for uid in users)
    scopes.update(Scope.friend(a, b) for a, b in combinations(users, 2))
    return Invalidation("group_members", frozenset(scopes))


class InvalidationFeed:
    """In-process fan-out of invalidation messages to subscribers"""

    def __init__(self):
        self._lock = threading.Lock()
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register listener; returns a callable that unsubscribes it"""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def publish(self, message: Invalidation) -> None:
        with self._lock:
            listeners = list(self._listeners)
        logger.debug("Invalidating %d scopes from %s change", len(message.scopes), message.table)
        for listener in listeners:
            listener(message)
