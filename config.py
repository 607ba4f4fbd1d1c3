"""
Configuration and data loading/saving for GroupSplit
"""
from __future__ import annotations
import json
import logging
import os
from dataclasses import asdict, dataclass
from typing import Optional

from models import Expense, ExpenseSplit, Group, GroupMember, Ledger, Profile, Settlement, SplitType
from utils import app_dir, from_cents, to_cents

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass
class Settings:
    """Runtime settings; settings.json in the data directory, then env overrides"""
    data_dir: str
    ledger_file: str = "ledger.json"
    currency: str = "USD"
    log_level: str = "INFO"

    @property
    def ledger_path(self) -> str:
        return os.path.join(self.data_dir, self.ledger_file)


def load_settings(data_dir: Optional[str] = None) -> Settings:
    """Load settings from settings.json (missing file -> defaults)"""
    base = data_dir or app_dir()
    settings = Settings(data_dir=base)
    try:
        with open(os.path.join(base, "settings.json"), "r", encoding="utf-8") as f:
            data = json.load(f)
        for key in ("ledger_file", "currency", "log_level"):
            if key in data:
                setattr(settings, key, str(data[key]))
    except FileNotFoundError:
        pass

    settings.currency = os.environ.get("GROUPSPLIT_CURRENCY", settings.currency).upper()
    settings.log_level = os.environ.get("GROUPSPLIT_LOG_LEVEL", settings.log_level).upper()
    return settings


def configure_logging(settings: Settings) -> None:
    """Install a root handler at the configured level"""
    level = getattr(logging, settings.log_level, logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logger.debug("Logging configured at %s", settings.log_level)


def _expense_to_dict(e: Expense) -> dict:
    return {
        "id": e.id,
        "group_id": e.group_id,
        "payer_id": e.payer_id,
        "created_by": e.created_by,
        "amount": str(from_cents(e.amount_cents)),
        "split_type": e.split_type.value,
        "date": e.date,
        "description": e.description,
        "category": e.category,
        "receipt_url": e.receipt_url,
        "currency": e.currency,
        "splits": [{"user_id": s.user_id, "amount": str(from_cents(s.share_cents))} for s in e.splits],
    }


def _dict_to_expense(d: dict) -> Expense:
    return Expense(
        id=d["id"],
        group_id=d.get("group_id"),
        payer_id=d["payer_id"],
        created_by=d.get("created_by") or d["payer_id"],
        amount_cents=to_cents(d["amount"]),
        split_type=SplitType.parse(d.get("split_type", "EQUAL")),
        date=d["date"],
        description=d.get("description", ""),
        category=d.get("category"),
        receipt_url=d.get("receipt_url"),
        currency=d.get("currency", "USD"),
        splits=[ExpenseSplit(d["id"], s["user_id"], to_cents(s["amount"])) for s in d.get("splits", [])],
    )


def _settlement_to_dict(s: Settlement) -> dict:
    return {
        "id": s.id,
        "payer_id": s.payer_id,
        "payee_id": s.payee_id,
        "group_id": s.group_id,
        "amount": str(from_cents(s.amount_cents)),
        "date": s.date,
        "currency": s.currency,
    }


def _dict_to_settlement(d: dict) -> Settlement:
    return Settlement(
        id=d["id"],
        payer_id=d["payer_id"],
        payee_id=d["payee_id"],
        group_id=d.get("group_id"),
        amount_cents=to_cents(d["amount"]),
        date=d["date"],
        currency=d.get("currency", "USD"),
    )


def ledger_to_dict(ledger: Ledger) -> dict:
    """Convert Ledger object to dictionary for JSON serialization"""
    return {
        "version": ledger.version,
        "profiles": [asdict(p) for p in ledger.profiles],
        "groups": [asdict(g) for g in ledger.groups],
        "members": [asdict(m) for m in ledger.members],
        "expenses": [_expense_to_dict(e) for e in ledger.expenses],
        "settlements": [_settlement_to_dict(s) for s in ledger.settlements],
    }


def dict_to_ledger(d: dict) -> Ledger:
    """Convert dictionary from JSON to Ledger object"""
    return Ledger(
        version=d.get("version", 1),
        profiles=[Profile(**p) for p in d.get("profiles", [])],
        groups=[Group(**g) for g in d.get("groups", [])],
        members=[GroupMember(**m) for m in d.get("members", [])],
        expenses=[_dict_to_expense(e) for e in d.get("expenses", [])],
        settlements=[_dict_to_settlement(s) for s in d.get("settlements", [])],
    )
