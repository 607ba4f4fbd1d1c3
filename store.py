"""
Ledger storage: the read/mutation interface the balance engine consumes,
and a JSON-file backed implementation of it.
"""
from __future__ import annotations
import json
import logging
import os
import threading
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import replace
from typing import Callable, List, Optional

from config import dict_to_ledger, ledger_to_dict
from exceptions import (
    GroupSplitError,
    InvalidSettlementError,
    LedgerNotFoundError,
    PermissionDeniedError,
    StoreError,
)
from invalidation import (
    InvalidationFeed,
    invalidation_for_expense,
    invalidation_for_group,
    invalidation_for_membership,
    invalidation_for_settlement,
)
from models import Expense, ExpenseSplit, Group, GroupMember, Ledger, Profile, Scope, Settlement
from utils import today_str
from validation import validate_expense, validate_settlement

logger = logging.getLogger(__name__)


def _in_scope_expense(e: Expense, scope: Scope) -> bool:
    if scope.kind == "group":
        return e.group_id == scope.ids[0]
    if scope.kind == "friend":
        a, b = scope.ids
        return e.involves(a) and e.involves(b)
    return e.involves(scope.ids[0])


def _in_scope_settlement(s: Settlement, scope: Scope) -> bool:
    if scope.kind == "group":
        return s.group_id == scope.ids[0]
    if scope.kind == "friend":
        return set(scope.ids) == {s.payer_id, s.payee_id}
    return s.involves(scope.ids[0])


class LedgerStore(ABC):
    """Read interface plus validated mutation entry points"""

    @abstractmethod
    def fetch_expenses(self, scope: Scope) -> List[Expense]:
        ...

    @abstractmethod
    def fetch_settlements(self, scope: Scope) -> List[Settlement]:
        ...

    @abstractmethod
    def fetch_membership(self, group_id: str) -> List[str]:
        ...

    @abstractmethod
    def fetch_groups_for(self, user_id: str) -> List[str]:
        ...

    @abstractmethod
    def create_expense(self, expense: Expense) -> Expense:
        ...

    @abstractmethod
    def update_expense(self, expense: Expense, user_id: str) -> Expense:
        ...

    @abstractmethod
    def delete_expense(self, expense_id: str, user_id: str) -> None:
        ...

    @abstractmethod
    def create_settlement(self, settlement: Settlement) -> Settlement:
        ...


class JsonLedgerStore(LedgerStore):
    """
    In-memory ledger with optional JSON file persistence.

    Every mutation is validated before the ledger is touched, saved
    (when a path is set) and then announced on the invalidation feed.
    """

    def __init__(self, path: Optional[str] = None, feed: Optional[InvalidationFeed] = None,
                 ledger: Optional[Ledger] = None):
        self.path = path
        self.feed = feed
        self._lock = threading.RLock()
        self.ledger = ledger or Ledger()
        if ledger is None and path and os.path.exists(path):
            self.load()

    # ---------- persistence ----------
    def load(self) -> None:
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        with self._lock:
            self.ledger = dict_to_ledger(data)
        logger.info("Loaded ledger from %s (%d expenses, %d settlements)",
                    self.path, len(self.ledger.expenses), len(self.ledger.settlements))

    def save(self) -> None:
        if not self.path:
            return
        with self._lock:
            data = ledger_to_dict(self.ledger)
        tmp = self.path + ".tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        os.replace(tmp, self.path)

    # ---------- people & groups ----------
    def add_profile(self, profile: Profile) -> Profile:
        with self._lock:
            previous = self.ledger.profiles
            self.ledger.profiles = [p for p in previous if p.id != profile.id] + [profile]
            self._commit(lambda: setattr(self.ledger, "profiles", previous))
        return profile

    def add_group(self, group: Group, member_ids: List[str]) -> Group:
        members = list(dict.fromkeys([group.created_by] + list(member_ids)))
        with self._lock:
            n_groups, n_members = len(self.ledger.groups), len(self.ledger.members)
            self.ledger.groups.append(group)
            self.ledger.members.extend(GroupMember(group.id, uid) for uid in members)

            def undo():
                del self.ledger.groups[n_groups:]
                del self.ledger.members[n_members:]

            self._commit(undo)
        logger.info("Created group %s with %d members", group.id, len(members))
        self._publish(invalidation_for_group(group.id, members))
        return group

    def add_member(self, group_id: str, user_id: str) -> None:
        with self._lock:
            members = self.fetch_membership(group_id)
            if user_id in members:
                return
            self.ledger.members.append(GroupMember(group_id, user_id))
            self._commit(self.ledger.members.pop)
        logger.info("Added %s to group %s", user_id, group_id)
        self._publish(invalidation_for_membership(group_id, user_id, members))

    def _get_group(self, group_id: str) -> Group:
        for g in self.ledger.groups:
            if g.id == group_id:
                return g
        raise LedgerNotFoundError(f"Group {group_id} not found", details={"group_id": group_id})

    def _get_expense(self, expense_id: str) -> Expense:
        for e in self.ledger.expenses:
            if e.id == expense_id:
                return e
        raise LedgerNotFoundError(f"Expense {expense_id} not found", details={"expense_id": expense_id})

    # ---------- reads ----------
    def fetch_expenses(self, scope: Scope) -> List[Expense]:
        with self._lock:
            return [e for e in self.ledger.expenses if _in_scope_expense(e, scope)]

    def fetch_settlements(self, scope: Scope) -> List[Settlement]:
        with self._lock:
            return [s for s in self.ledger.settlements if _in_scope_settlement(s, scope)]

    def fetch_membership(self, group_id: str) -> List[str]:
        with self._lock:
            self._get_group(group_id)
            return [m.user_id for m in self.ledger.members if m.group_id == group_id]

    def fetch_groups_for(self, user_id: str) -> List[str]:
        with self._lock:
            return [m.group_id for m in self.ledger.members if m.user_id == user_id]

    def get_expense(self, expense_id: str) -> Expense:
        with self._lock:
            return self._get_expense(expense_id)

    # ---------- mutations ----------
    def _members_for(self, expense: Expense) -> Optional[List[str]]:
        return self.fetch_membership(expense.group_id) if expense.group_id else None

    def _publish(self, message) -> None:
        if self.feed is not None:
            self.feed.publish(message)

    @contextmanager
    def _mutation(self, kind: str, row_id: str):
        """Hold the ledger lock; rejected changes are logged before they propagate"""
        with self._lock:
            try:
                yield
            except GroupSplitError as ex:
                logger.warning("Rejected %s %s: %s", kind, row_id, ex.message)
                raise

    def _commit(self, undo: Callable[[], None]) -> None:
        """Save the ledger, undoing the in-memory change if the write fails"""
        try:
            self.save()
        except Exception:
            undo()
            logger.error("Could not save ledger to %s; change rolled back", self.path)
            raise

    def create_expense(self, expense: Expense) -> Expense:
        if not expense.id:
            new_id = uuid.uuid4().hex
            expense = replace(expense, id=new_id,
                              splits=[ExpenseSplit(new_id, s.user_id, s.share_cents) for s in expense.splits])
        if not expense.date:
            expense = replace(expense, date=today_str())
        with self._mutation("expense", expense.id):
            validate_expense(expense, self._members_for(expense))
            if any(e.id == expense.id for e in self.ledger.expenses):
                raise StoreError(f"Expense {expense.id} already exists", details={"expense_id": expense.id})
            self.ledger.expenses.append(expense)
            self._commit(self.ledger.expenses.pop)
        logger.info("Created expense %s (%d cents, %d splits)", expense.id, expense.amount_cents, len(expense.splits))
        self._publish(invalidation_for_expense(expense))
        return expense

    def update_expense(self, expense: Expense, user_id: str) -> Expense:
        """Replace the expense and all of its splits as one unit"""
        with self._mutation("expense update", expense.id):
            current = self._get_expense(expense.id)
            if current.created_by != user_id:
                raise PermissionDeniedError(
                    "Only the creator can edit this expense", details={"expense_id": expense.id, "user_id": user_id}
                )
            expense = replace(expense, created_by=current.created_by)
            validate_expense(expense, self._members_for(expense))
            idx = self.ledger.expenses.index(current)
            self.ledger.expenses[idx] = expense
            self._commit(lambda: self.ledger.expenses.__setitem__(idx, current))
        logger.info("Updated expense %s", expense.id)
        self._publish(invalidation_for_expense(expense, previous=current))
        return expense

    def delete_expense(self, expense_id: str, user_id: str) -> None:
        with self._mutation("expense delete", expense_id):
            current = self._get_expense(expense_id)
            if current.created_by != user_id:
                raise PermissionDeniedError(
                    "Only the creator can delete this expense", details={"expense_id": expense_id, "user_id": user_id}
                )
            # splits live on the expense, so they go with it
            idx = self.ledger.expenses.index(current)
            del self.ledger.expenses[idx]
            self._commit(lambda: self.ledger.expenses.insert(idx, current))
        logger.info("Deleted expense %s", expense_id)
        self._publish(invalidation_for_expense(current))

    def create_settlement(self, settlement: Settlement) -> Settlement:
        if not settlement.id:
            settlement = replace(settlement, id=uuid.uuid4().hex)
        if not settlement.date:
            settlement = replace(settlement, date=today_str())
        with self._mutation("settlement", settlement.id):
            validate_settlement(settlement)
            if settlement.group_id:
                members = self.fetch_membership(settlement.group_id)
                for uid in (settlement.payer_id, settlement.payee_id):
                    if uid not in members:
                        raise InvalidSettlementError(
                            f"{uid} is not a member of group {settlement.group_id}",
                            details={"group_id": settlement.group_id, "user_id": uid},
                        )
            self.ledger.settlements.append(settlement)
            self._commit(self.ledger.settlements.pop)
        logger.info("Recorded settlement %s: %s paid %s %d cents",
                    settlement.id, settlement.payer_id, settlement.payee_id, settlement.amount_cents)
        self._publish(invalidation_for_settlement(settlement))
        return settlement
