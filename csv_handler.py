"""
CSV export and import functionality for GroupSplit
"""
from __future__ import annotations
import csv
import logging
from typing import Iterable, List

from exceptions import InvalidLedgerEntryError
from models import Expense, ExpenseSplit, SplitType
from utils import from_cents, to_cents
from validation import validate_expense

logger = logging.getLogger(__name__)

COLUMNS = ['id', 'group_id', 'date', 'payer_id', 'created_by', 'description', 'category',
           'amount', 'currency', 'split_type', 'splits', 'receipt_url']


def export_expenses_to_csv(expenses: Iterable[Expense], filepath: str) -> int:
    """
    Export expenses to CSV file; returns the number of rows written.
    The splits column is encoded as "user:amount;user:amount".
    """
    count = 0
    with open(filepath, 'w', newline='', encoding='utf-8') as f:
        writer = csv.writer(f)
        writer.writerow(COLUMNS)
        for e in expenses:
            split_str = ';'.join(f"{s.user_id}:{from_cents(s.share_cents)}" for s in e.splits)
            writer.writerow([
                e.id,
                e.group_id or '',
                e.date,
                e.payer_id,
                e.created_by,
                e.description,
                e.category or '',
                from_cents(e.amount_cents),
                e.currency,
                e.split_type.value,
                split_str,
                e.receipt_url or '',
            ])
            count += 1
    logger.info("Exported %d expenses to %s", count, filepath)
    return count


def import_expenses_from_csv(filepath: str) -> List[Expense]:
    """
    Import expenses from CSV file.
    Every row is validated; the first bad row aborts the import.
    """
    expenses = []

    with open(filepath, 'r', encoding='utf-8') as f:
        reader = csv.DictReader(f)
        for line_no, row in enumerate(reader, start=2):
            splits = []
            for pair in (row.get('splits') or '').split(';'):
                if ':' not in pair:
                    continue
                user_id, amount = pair.rsplit(':', 1)
                splits.append(ExpenseSplit(row['id'], user_id.strip(), to_cents(amount)))

            try:
                expense = Expense(
                    id=row['id'],
                    group_id=row.get('group_id') or None,
                    date=row['date'],
                    payer_id=row['payer_id'],
                    created_by=row.get('created_by') or row['payer_id'],
                    description=row.get('description', ''),
                    category=row.get('category') or None,
                    amount_cents=to_cents(row['amount']),
                    currency=row.get('currency') or 'USD',
                    receipt_url=row.get('receipt_url') or None,
                    split_type=SplitType.parse(row.get('split_type') or 'EQUAL'),
                    splits=splits,
                )
            except (KeyError, ValueError) as ex:
                raise InvalidLedgerEntryError(f"Line {line_no}: {ex}", details={"line": line_no})
            validate_expense(expense)
            expenses.append(expense)

    logger.info("Imported %d expenses from %s", len(expenses), filepath)
    return expenses
