"""
Exceptions for GroupSplit ledger operations.

Exception Hierarchy:
    GroupSplitError (base)
    ├── ValidationError - rejected before anything is persisted
    │   ├── AmountMismatchError - split amounts don't add up to the total
    │   ├── PercentageMismatchError - percentages don't add up to 100
    │   ├── InvalidLedgerEntryError - malformed expense/split data
    │   └── InvalidSettlementError - self-payment or non-positive amount
    └── StoreError - raised by LedgerStore adapters, passed through untouched
        ├── LedgerNotFoundError
        └── PermissionDeniedError

Usage:
    from exceptions import AmountMismatchError

    try:
        compute_splits("50.00", SplitType.EXACT, ["a", "b"], {"a": 20, "b": 20})
    except ValidationError as e:
        logger.warning("Rejected split: %s", e)
        return e.to_dict()
"""
from __future__ import annotations
from typing import Any, Dict, Optional


class GroupSplitError(Exception):
    """
    Base exception for all GroupSplit errors.

    Carries a machine-readable code and a details dict so callers
    (view models, API layers) can render consistent error payloads.
    """

    default_error_code: str = "GROUPSPLIT_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_error_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "message": self.message, "details": self.details}


class ValidationError(GroupSplitError):
    """Input rejected before any persistence call."""

    default_error_code = "VALIDATION_ERROR"


class AmountMismatchError(ValidationError):
    """
    Raised when entered split amounts don't reconcile with the expense total.

    Example:
        total=50.00, shares {A: 20, B: 20} -> sum 40.00 != 50.00
    """

    default_error_code = "AMOUNT_MISMATCH"

    def __init__(self, total_cents: int, sum_cents: int, message: Optional[str] = None):
        self.total_cents = total_cents
        self.sum_cents = sum_cents
        super().__init__(
            message or f"Split amounts ({sum_cents / 100:.2f}) do not match total ({total_cents / 100:.2f})",
            details={"total_cents": total_cents, "sum_cents": sum_cents},
        )


class PercentageMismatchError(ValidationError):
    """Raised when split percentages don't add up to 100 within tolerance."""

    default_error_code = "PERCENTAGE_MISMATCH"

    def __init__(self, total_percent, message: Optional[str] = None):
        self.total_percent = total_percent
        super().__init__(
            message or f"Percentages add up to {total_percent}, expected 100",
            details={"total_percent": str(total_percent)},
        )


class InvalidLedgerEntryError(ValidationError):
    """
    Raised for malformed ledger data: negative amounts, empty or
    duplicate participants, split users outside the group, or rows
    handed to the balance engine that don't involve the viewer.
    """

    default_error_code = "INVALID_LEDGER_ENTRY"


class InvalidSettlementError(ValidationError):
    """Raised for a settlement to oneself or with a non-positive amount."""

    default_error_code = "INVALID_SETTLEMENT"


class StoreError(GroupSplitError):
    """Base for LedgerStore adapter failures."""

    default_error_code = "STORE_ERROR"


class LedgerNotFoundError(StoreError):
    default_error_code = "NOT_FOUND"


class PermissionDeniedError(StoreError):
    default_error_code = "PERMISSION_DENIED"
