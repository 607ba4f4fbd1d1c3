"""
Excel export functionality for GroupSplit
"""
from __future__ import annotations
import logging
from typing import Dict, List, Optional

from openpyxl import Workbook
from openpyxl.styles import Font, Alignment, PatternFill, Border, Side
from openpyxl.utils import get_column_letter

from ledger_view import LedgerView
from models import Scope
from utils import from_cents
from validation import is_settled

logger = logging.getLogger(__name__)

MONEY = "0.00"


def _style_header(ws, row=1):
    """Apply header styling to worksheet row"""
    header_font = Font(bold=True, color="FFFFFF")
    fill = PatternFill("solid", fgColor="4F81BD")
    align = Alignment(horizontal="center", vertical="center")
    thin = Side(style="thin", color="A0A0A0")
    border = Border(left=thin, right=thin, top=thin, bottom=thin)
    for cell in ws[row]:
        cell.font = header_font
        cell.fill = fill
        cell.alignment = align
        cell.border = border


def _autosize_columns(ws, min_width=10, max_width=45):
    """Auto-size columns based on content"""
    for col in range(1, ws.max_column + 1):
        letter = get_column_letter(col)
        max_len = 0
        for cell in ws[letter]:
            v = cell.value
            if v is None:
                continue
            max_len = max(max_len, len(str(v)))
        ws.column_dimensions[letter].width = max(min_width, min(max_width, max_len + 2))


def _money_columns(ws, first_col: int, last_col: int):
    for r in range(2, ws.max_row + 1):
        for c in range(first_col, last_col + 1):
            ws.cell(r, c).number_format = MONEY


def export_excel(
    view: LedgerView,
    filepath: str,
    viewer_id: str,
    group_id: Optional[str] = None,
    names: Optional[Dict[str, str]] = None,
) -> None:
    """
    Export balances to an Excel file:
    - Expenses sheet (one column per participant share)
    - Balances sheet for the viewer
    - Members and Transfers sheets when a group is given
    """
    names = names or {}

    def label(uid: str) -> str:
        return names.get(uid, uid)

    wb = Workbook()
    # remove default sheet
    wb.remove(wb.active)

    scope = Scope.group(group_id) if group_id else Scope.all_for(viewer_id)
    exps = sorted(view.store.fetch_expenses(scope), key=lambda e: (e.date, e.id))
    people: List[str] = []
    for e in exps:
        for uid in [e.payer_id] + e.participant_ids:
            if uid not in people:
                people.append(uid)

    # Expenses
    ws = wb.create_sheet("Expenses")
    ws.append(["Date", "Description", "Paid by", "Amount", "Split"] + [label(p) for p in people])
    _style_header(ws, 1)
    ws.freeze_panes = "A2"
    for e in exps:
        shares = {s.user_id: from_cents(s.share_cents) for s in e.splits}
        ws.append([e.date, e.description, label(e.payer_id), from_cents(e.amount_cents), e.split_type.value]
                  + [shares.get(p, "") for p in people])
    if exps:
        ws.append(["TOTALS"] + [""] * (ws.max_column - 1))
        trow = ws.max_row
        ws.cell(trow, 1).font = Font(bold=True)
        # Excel formulas keep the totals auditable
        for col in [4] + list(range(6, 6 + len(people))):
            letter = get_column_letter(col)
            ws.cell(trow, col).value = f"=SUM({letter}2:{letter}{trow - 1})"
    _money_columns(ws, 4, 5 + len(people))
    _autosize_columns(ws)

    # Balances for the viewer
    if group_id:
        group = view.group_balances(group_id, viewer_id)
        balances = group.balances
    else:
        group = None
        balances = view.global_summary(viewer_id).balances
    ws = wb.create_sheet("Balances")
    ws.append(["Counterparty", "Balance", "Status"])
    _style_header(ws, 1)
    ws.freeze_panes = "A2"
    for uid, cents in sorted(balances.items(), key=lambda kv: (-abs(kv[1]), kv[0])):
        if is_settled(cents):
            status = "settled up"
        elif cents > 0:
            status = "owes you"
        else:
            status = "you owe"
        ws.append([label(uid), from_cents(cents), status])
    ws.append(["Total", from_cents(sum(balances.values())), ""])
    ws.cell(ws.max_row, 1).font = Font(bold=True)
    _money_columns(ws, 2, 2)
    _autosize_columns(ws)

    if group is not None:
        ws = wb.create_sheet("Members")
        ws.append(["Member", "Paid", "Consumed", "Settled out", "Settled in", "Net"])
        _style_header(ws, 1)
        ws.freeze_panes = "A2"
        for m in group.members:
            ws.append([label(m.user_id), from_cents(m.paid_cents), from_cents(m.consumed_cents),
                       from_cents(m.settled_out_cents), from_cents(m.settled_in_cents), from_cents(m.net_cents)])
        _money_columns(ws, 2, 6)
        _autosize_columns(ws)

        ws = wb.create_sheet("Transfers")
        ws.append(["From (Debtor)", "To (Creditor)", "Amount"])
        _style_header(ws, 1)
        ws.freeze_panes = "A2"
        for t in group.transfers:
            ws.append([label(t.from_user_id), label(t.to_user_id), from_cents(t.amount_cents)])
        _money_columns(ws, 3, 3)
        _autosize_columns(ws)

    wb.save(filepath)
    logger.info("Exported balance report for %s to %s", viewer_id, filepath)
