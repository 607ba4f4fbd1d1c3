"""
Data models for GroupSplit
"""
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from exceptions import InvalidLedgerEntryError


class SplitType(Enum):
    """How an expense total is divided among participants"""
    EQUAL = "EQUAL"
    EXACT = "EXACT"
    PERCENTAGE = "PERCENTAGE"

    @classmethod
    def parse(cls, value) -> "SplitType":
        """Accept enum members, names, and the legacy names found in stored data"""
        if isinstance(value, cls):
            return value
        name = str(value).strip().upper()
        legacy = {"INDIVIDUAL": cls.EXACT, "SELECTIVE": cls.EQUAL}
        if name in legacy:
            return legacy[name]
        try:
            return cls(name)
        except ValueError:
            raise InvalidLedgerEntryError(
                f"Unsupported split type: {value!r}", details={"split_type": str(value)}
            ) from None


@dataclass
class Profile:
    id: str
    name: str
    email: Optional[str] = None


@dataclass
class Group:
    id: str
    name: str
    created_by: str


@dataclass
class GroupMember:
    group_id: str
    user_id: str


@dataclass
class ExpenseSplit:
    """One participant's share of an expense"""
    expense_id: str
    user_id: str
    share_cents: int


@dataclass
class Expense:
    """Single expense; splits are replaced as a set on every edit"""
    id: str
    payer_id: str
    created_by: str
    amount_cents: int
    split_type: SplitType
    date: str  # YYYY-MM-DD
    splits: List[ExpenseSplit] = field(default_factory=list)
    group_id: Optional[str] = None
    description: str = ""
    category: Optional[str] = None
    receipt_url: Optional[str] = None
    currency: str = "USD"

    @property
    def participant_ids(self) -> List[str]:
        return [s.user_id for s in self.splits]

    def share_of(self, user_id: str) -> Optional[int]:
        """Share in cents for user_id, or None if not a participant"""
        for s in self.splits:
            if s.user_id == user_id:
                return s.share_cents
        return None

    def involves(self, user_id: str) -> bool:
        return self.payer_id == user_id or self.share_of(user_id) is not None


@dataclass
class Settlement:
    """Direct payment from payer to payee; immutable once recorded"""
    id: str
    payer_id: str
    payee_id: str
    amount_cents: int
    date: str  # YYYY-MM-DD
    group_id: Optional[str] = None
    currency: str = "USD"

    def involves(self, user_id: str) -> bool:
        return user_id in (self.payer_id, self.payee_id)


@dataclass
class Ledger:
    """Complete ledger snapshot as persisted by the JSON store"""
    profiles: List[Profile] = field(default_factory=list)
    groups: List[Group] = field(default_factory=list)
    members: List[GroupMember] = field(default_factory=list)
    expenses: List[Expense] = field(default_factory=list)
    settlements: List[Settlement] = field(default_factory=list)
    version: int = 1


# ---------- Split calculator output ----------

@dataclass(frozen=True)
class SplitShare:
    user_id: str
    share_cents: int


@dataclass(frozen=True)
class SplitResult:
    total_cents: int
    split_type: SplitType
    shares: Tuple[SplitShare, ...]

    @property
    def total_shares(self) -> int:
        return sum(s.share_cents for s in self.shares)

    @property
    def drift_cents(self) -> int:
        """Signed rounding drift left in the split (EQUAL splits keep theirs)"""
        return self.total_shares - self.total_cents

    def as_dict(self) -> Dict[str, int]:
        return {s.user_id: s.share_cents for s in self.shares}


# ---------- Scopes ----------

@dataclass(frozen=True)
class Scope:
    """Which slice of the ledger a balance is computed over"""
    kind: str  # "group" | "friend" | "global"
    ids: Tuple[str, ...]

    @classmethod
    def group(cls, group_id: str) -> "Scope":
        return cls("group", (group_id,))

    @classmethod
    def friend(cls, user_a: str, user_b: str) -> "Scope":
        # order-independent: the pair (a, b) and (b, a) is the same scope
        return cls("friend", tuple(sorted((user_a, user_b))))

    @classmethod
    def all_for(cls, user_id: str) -> "Scope":
        return cls("global", (user_id,))


# ---------- View shapes ----------

@dataclass(frozen=True)
class UserBalance:
    """positive = user owes the viewer; negative = viewer owes the user"""
    user_id: str
    amount_cents: int


@dataclass(frozen=True)
class BalanceSummary:
    total_owed_cents: int   # others owe you
    total_owing_cents: int  # you owe others
    net_cents: int


@dataclass(frozen=True)
class Transfer:
    from_user_id: str
    to_user_id: str
    amount_cents: int


@dataclass(frozen=True)
class MemberSummary:
    user_id: str
    paid_cents: int
    consumed_cents: int
    settled_out_cents: int
    settled_in_cents: int

    @property
    def net_cents(self) -> int:
        """positive -> should receive; negative -> should pay"""
        return self.paid_cents - self.consumed_cents + self.settled_out_cents - self.settled_in_cents


@dataclass(frozen=True)
class HistoryEntry:
    kind: str  # "expense" | "payment"
    id: str
    date: str
    payer_id: str
    amount_cents: int
    effect_cents: int  # signed effect on the viewer's balance with the friend
    group_id: Optional[str] = None
    description: str = ""


@dataclass
class GroupBalances:
    group_id: str
    viewer_id: str
    balances: Dict[str, int]
    owes: List[UserBalance]
    total_cents: int
    members: List[MemberSummary]
    transfers: List[Transfer]


@dataclass
class FriendBalance:
    viewer_id: str
    friend_id: str
    net_cents: int
    total_owed_cents: int
    total_owing_cents: int
    history: List[HistoryEntry]
    common_group_ids: List[str]
    is_settled: bool = False


@dataclass
class GlobalBalances:
    viewer_id: str
    balances: Dict[str, int]
    owes: List[UserBalance]
    summary: BalanceSummary
