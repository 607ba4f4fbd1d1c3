"""
Presentation shapes built from balance computations: per-group balances,
pairwise friend balance with history, and a user's global totals.
"""
from __future__ import annotations
import logging
import threading
from typing import Callable, Dict, Hashable, List, Optional, Tuple

from computations import (
    compute_balances,
    compute_member_summary,
    compute_transfers,
    owes_list,
    summarize,
    total_balance,
)
from exceptions import PermissionDeniedError
from invalidation import Invalidation, InvalidationFeed
from models import (
    FriendBalance,
    GlobalBalances,
    GroupBalances,
    HistoryEntry,
    Scope,
    UserBalance,
)
from store import LedgerStore
from validation import is_settled

logger = logging.getLogger(__name__)

HISTORY_FILTERS = ("all", "unsettled", "settled")

CacheKey = Tuple[Scope, Hashable]


class BalanceCache:
    """
    Memoises computed views per scope. Entries are dropped only when an
    Invalidation names their scope; there is no time-based expiry.
    """

    def __init__(self, feed: Optional[InvalidationFeed] = None):
        self._lock = threading.Lock()
        self._entries: Dict[CacheKey, object] = {}
        self._generation = 0
        self._unsubscribe = feed.subscribe(self.invalidate) if feed is not None else None

    def get_or_compute(self, scope: Scope, key: Hashable, compute: Callable[[], object]):
        with self._lock:
            if (scope, key) in self._entries:
                return self._entries[(scope, key)]
            generation = self._generation
        value = compute()
        with self._lock:
            # an invalidation landed mid-compute; the value may be stale
            if generation == self._generation:
                self._entries[(scope, key)] = value
        return value

    def invalidate(self, message: Invalidation) -> None:
        with self._lock:
            self._generation += 1
            stale = [k for k in self._entries if message.affects(k[0])]
            for k in stale:
                del self._entries[k]
        if stale:
            logger.debug("Dropped %d cached views after %s change", len(stale), message.table)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class LedgerView:
    """Assembles balance views from a LedgerStore snapshot"""

    def __init__(self, store: LedgerStore, cache: Optional[BalanceCache] = None):
        self.store = store
        self.cache = cache

    def _cached(self, scope: Scope, key: Hashable, compute: Callable[[], object]):
        if self.cache is None:
            return compute()
        return self.cache.get_or_compute(scope, key, compute)

    # ---------- group ----------
    def group_balances(self, group_id: str, viewer_id: str) -> GroupBalances:
        scope = Scope.group(group_id)
        return self._cached(scope, ("group", viewer_id), lambda: self._group_balances(scope, viewer_id))

    def _group_balances(self, scope: Scope, viewer_id: str) -> GroupBalances:
        group_id = scope.ids[0]
        members = self.store.fetch_membership(group_id)
        if viewer_id not in members:
            raise PermissionDeniedError(
                f"{viewer_id} is not a member of group {group_id}",
                details={"group_id": group_id, "user_id": viewer_id},
            )
        expenses = self.store.fetch_expenses(scope)
        settlements = self.store.fetch_settlements(scope)

        balances = compute_balances(
            [e for e in expenses if e.involves(viewer_id)],
            [s for s in settlements if s.involves(viewer_id)],
            viewer_id,
            member_ids=members,
        )
        summaries = compute_member_summary(expenses, settlements, members)
        transfers = compute_transfers({m.user_id: m.net_cents for m in summaries})
        logger.debug("Group %s: %d expenses, %d settlements", group_id, len(expenses), len(settlements))
        return GroupBalances(
            group_id=group_id,
            viewer_id=viewer_id,
            balances=balances,
            owes=owes_list(balances),
            total_cents=total_balance(balances),
            members=summaries,
            transfers=transfers,
        )

    # ---------- friend ----------
    def friend_balance(self, viewer_id: str, friend_id: str, status: str = "all") -> FriendBalance:
        """
        Pairwise balance across every group and non-group expense the two share.

        status filters the history only: "unsettled" keeps expenses,
        "settled" keeps payments. Totals always cover everything.
        """
        if status not in HISTORY_FILTERS:
            raise ValueError(f"status must be one of {HISTORY_FILTERS}, got {status!r}")
        if viewer_id == friend_id:
            raise ValueError("viewer_id and friend_id must differ")
        scope = Scope.friend(viewer_id, friend_id)
        return self._cached(
            scope, ("friend", viewer_id, friend_id, status),
            lambda: self._friend_balance(scope, viewer_id, friend_id, status),
        )

    def _friend_balance(self, scope: Scope, viewer_id: str, friend_id: str, status: str) -> FriendBalance:
        expenses = self.store.fetch_expenses(scope)
        settlements = self.store.fetch_settlements(scope)
        balances = compute_balances(expenses, settlements, viewer_id)

        history: List[HistoryEntry] = []
        owed = owing = 0
        for e in expenses:
            if e.payer_id == viewer_id:
                effect = e.share_of(friend_id) or 0
            elif e.payer_id == friend_id:
                effect = -(e.share_of(viewer_id) or 0)
            else:
                # someone else paid; shows up in history, doesn't move this pair
                effect = 0
            if effect > 0:
                owed += effect
            else:
                owing -= effect
            history.append(HistoryEntry(
                kind="expense", id=e.id, date=e.date, payer_id=e.payer_id, amount_cents=e.amount_cents,
                effect_cents=effect, group_id=e.group_id, description=e.description,
            ))
        for s in settlements:
            effect = s.amount_cents if s.payer_id == viewer_id else -s.amount_cents
            history.append(HistoryEntry(
                kind="payment", id=s.id, date=s.date, payer_id=s.payer_id, amount_cents=s.amount_cents,
                effect_cents=effect, group_id=s.group_id, description="Payment",
            ))

        if status == "unsettled":
            history = [h for h in history if h.kind == "expense"]
        elif status == "settled":
            history = [h for h in history if h.kind == "payment"]
        history.sort(key=lambda h: h.id)
        history.sort(key=lambda h: h.date, reverse=True)

        friend_groups = set(self.store.fetch_groups_for(friend_id))
        common = [g for g in self.store.fetch_groups_for(viewer_id) if g in friend_groups]

        net = balances.get(friend_id, 0)
        return FriendBalance(
            viewer_id=viewer_id,
            friend_id=friend_id,
            net_cents=net,
            total_owed_cents=owed,
            total_owing_cents=owing,
            history=history,
            common_group_ids=common,
            is_settled=is_settled(net),
        )

    # ---------- global ----------
    def global_summary(self, viewer_id: str) -> GlobalBalances:
        scope = Scope.all_for(viewer_id)
        return self._cached(scope, ("global", viewer_id), lambda: self._global_summary(scope, viewer_id))

    def _global_summary(self, scope: Scope, viewer_id: str) -> GlobalBalances:
        balances = compute_balances(
            self.store.fetch_expenses(scope), self.store.fetch_settlements(scope), viewer_id
        )
        return GlobalBalances(
            viewer_id=viewer_id,
            balances=balances,
            owes=owes_list(balances),
            summary=summarize(balances),
        )

    def settle_up_candidates(self, viewer_id: str, group_id: Optional[str] = None) -> List[UserBalance]:
        """Counterparties the viewer still owes (negative balances), largest debt first"""
        if group_id is not None:
            owes = self.group_balances(group_id, viewer_id).owes
        else:
            owes = self.global_summary(viewer_id).owes
        return [b for b in owes if b.amount_cents < 0]
