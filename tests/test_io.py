"""
Tests for CSV import/export, the Excel report and settings loading.
"""
import json
import logging

import pytest
from openpyxl import load_workbook

from config import configure_logging, load_settings
from csv_handler import export_expenses_to_csv, import_expenses_from_csv
from exceptions import AmountMismatchError
from excel_export import export_excel
from models import SplitType

from conftest import make_expense, make_settlement


class TestCsv:
    def test_export_then_import(self, tmp_path):
        path = str(tmp_path / "expenses.csv")
        expenses = [
            make_expense("e1", "a", 9000, {"a": 3000, "b": 3000, "c": 3000}, split_type=SplitType.EQUAL),
            make_expense("e2", "b", 1050, {"a": 1050}, group_id=None),
        ]
        expenses[1].currency = "EUR"
        expenses[1].receipt_url = "receipts/e2.jpg"

        assert export_expenses_to_csv(expenses, path) == 2
        imported = import_expenses_from_csv(path)

        assert [e.id for e in imported] == ["e1", "e2"]
        assert imported[0].split_type is SplitType.EQUAL
        assert imported[0].share_of("c") == 3000
        assert imported[1].group_id is None
        assert imported[1].amount_cents == 1050
        assert imported[1].currency == "EUR"
        assert imported[1].receipt_url == "receipts/e2.jpg"
        assert imported[0].currency == "USD"
        assert imported[0].receipt_url is None

    def test_import_rejects_inconsistent_row(self, tmp_path):
        path = tmp_path / "bad.csv"
        path.write_text(
            "id,group_id,date,payer_id,created_by,description,category,amount,split_type,splits\n"
            "e1,g1,2024-01-01,a,a,Dinner,,50.00,EXACT,a:20.00;b:20.00\n",
            encoding="utf-8",
        )
        with pytest.raises(AmountMismatchError):
            import_expenses_from_csv(str(path))


class TestExcelExport:
    def test_group_report(self, tmp_path, store, view):
        store.create_expense(make_expense("e1", "a", 9000, {"a": 3000, "b": 3000, "c": 3000}))
        store.create_settlement(make_settlement("s1", "b", "a", 3000))
        path = str(tmp_path / "report.xlsx")

        export_excel(view, path, "a", group_id="g1", names={"a": "Alice"})

        wb = load_workbook(path)
        assert wb.sheetnames == ["Expenses", "Balances", "Members", "Transfers"]
        balances = {row[0]: (row[1], row[2]) for row in wb["Balances"].iter_rows(min_row=2, values_only=True)}
        assert balances["c"] == (30, "owes you")
        assert balances["b"] == (0, "settled up")
        transfers = list(wb["Transfers"].iter_rows(min_row=2, values_only=True))
        assert transfers == [("c", "Alice", 30)]

    def test_global_report_has_no_group_sheets(self, tmp_path, store, view):
        store.create_expense(make_expense("e1", "b", 1000, {"a": 1000}))
        path = str(tmp_path / "report.xlsx")

        export_excel(view, path, "a")

        assert load_workbook(path).sheetnames == ["Expenses", "Balances"]


class TestSettings:
    def test_defaults_and_overrides(self, tmp_path, monkeypatch):
        (tmp_path / "settings.json").write_text(json.dumps({"currency": "eur", "ledger_file": "x.json"}))
        monkeypatch.setenv("GROUPSPLIT_LOG_LEVEL", "debug")

        settings = load_settings(str(tmp_path))

        assert settings.currency == "EUR"
        assert settings.log_level == "DEBUG"
        assert settings.ledger_path == str(tmp_path / "x.json")

    def test_missing_file(self, tmp_path, monkeypatch):
        monkeypatch.delenv("GROUPSPLIT_CURRENCY", raising=False)
        monkeypatch.delenv("GROUPSPLIT_LOG_LEVEL", raising=False)

        settings = load_settings(str(tmp_path))

        assert settings.currency == "USD"
        assert settings.ledger_file == "ledger.json"

    def test_configure_logging(self, tmp_path, monkeypatch):
        calls = []
        monkeypatch.setattr(logging, "basicConfig", lambda **kw: calls.append(kw))
        monkeypatch.setenv("GROUPSPLIT_LOG_LEVEL", "WARNING")

        configure_logging(load_settings(str(tmp_path)))

        assert calls[0]["level"] == logging.WARNING
