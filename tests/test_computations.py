"""
Tests for the balance engine.
"""
import pytest

from computations import (
    compute_balances,
    compute_member_summary,
    compute_transfers,
    owes_list,
    summarize,
    total_balance,
)
from exceptions import InvalidLedgerEntryError, InvalidSettlementError
from models import Transfer, UserBalance

from conftest import make_expense, make_settlement


def _involving(rows, user):
    return [r for r in rows if r.involves(user)]


class TestComputeBalances:
    def test_payer_is_owed_by_participants(self):
        expenses = [make_expense("e1", "a", 9000, {"a": 3000, "b": 3000, "c": 3000})]

        assert compute_balances(expenses, [], "a") == {"b": 3000, "c": 3000}
        assert compute_balances(expenses, [], "b") == {"a": -3000}

    def test_payer_outside_split(self):
        expenses = [make_expense("e1", "a", 2000, {"b": 1200, "c": 800})]
        assert compute_balances(expenses, [], "a") == {"b": 1200, "c": 800}

    def test_end_to_end_equal_split_then_settlement(self):
        """A pays 90 split three ways; B settles 30 to A."""
        expenses = [make_expense("e1", "a", 9000, {"a": 3000, "b": 3000, "c": 3000})]
        settlements = [make_settlement("s1", "b", "a", 3000)]

        bal_a = compute_balances(expenses, settlements, "a")
        bal_b = compute_balances(expenses, _involving(settlements, "b"), "b")
        bal_c = compute_balances(expenses, _involving(settlements, "c"), "c")

        assert bal_a["b"] == 0
        assert bal_a["c"] == 3000
        assert bal_b["a"] == 0
        assert bal_c["a"] == -3000

    def test_sign_symmetry(self):
        expenses = [
            make_expense("e1", "a", 9000, {"a": 3000, "b": 3000, "c": 3000}),
            make_expense("e2", "b", 4000, {"a": 2500, "b": 1500}),
            make_expense("e3", "c", 1000, {"b": 1000}),
        ]
        settlements = [make_settlement("s1", "b", "a", 700), make_settlement("s2", "c", "b", 200)]
        users = ["a", "b", "c"]

        bal = {
            u: compute_balances(_involving(expenses, u), _involving(settlements, u), u) for u in users
        }
        for x in users:
            for y in users:
                if x != y:
                    assert bal[x].get(y, 0) == -bal[y].get(x, 0)

    def test_settlement_only_moves_the_pair(self):
        expenses = [make_expense("e1", "a", 9000, {"a": 3000, "b": 3000, "c": 3000})]
        before = compute_balances(expenses, [], "a")
        after = compute_balances(expenses, [make_settlement("s1", "b", "a", 1234)], "a")

        assert after["b"] - before["b"] == -1234
        assert after["c"] == before["c"]

    def test_settlement_by_viewer_moves_balance_in_viewer_favour(self):
        expenses = [make_expense("e1", "b", 1000, {"a": 1000})]
        bal = compute_balances(expenses, [make_settlement("s1", "a", "b", 1500)], "a")
        assert bal == {"b": 500}

    def test_recomputation_is_idempotent(self):
        expenses = [make_expense("e1", "a", 9000, {"a": 3000, "b": 3000, "c": 3000})]
        settlements = [make_settlement("s1", "b", "a", 3000)]

        assert compute_balances(expenses, settlements, "a") == compute_balances(expenses, settlements, "a")

    def test_rejects_expense_not_involving_viewer(self):
        expenses = [make_expense("e1", "b", 1000, {"c": 1000})]
        with pytest.raises(InvalidLedgerEntryError):
            compute_balances(expenses, [], "a")

    def test_rejects_settlement_not_involving_viewer(self):
        with pytest.raises(InvalidLedgerEntryError):
            compute_balances([], [make_settlement("s1", "b", "c", 100)], "a")

    def test_rejects_negative_share(self):
        expenses = [make_expense("e1", "a", 1000, {"a": 1500, "b": -500})]
        with pytest.raises(InvalidLedgerEntryError):
            compute_balances(expenses, [], "a")

    def test_rejects_split_outside_membership(self):
        expenses = [make_expense("e1", "a", 1000, {"a": 500, "z": 500})]
        with pytest.raises(InvalidLedgerEntryError):
            compute_balances(expenses, [], "a", member_ids=["a", "b"])

    def test_rejects_bad_settlement(self):
        with pytest.raises(InvalidSettlementError):
            compute_balances([], [make_settlement("s1", "a", "b", 0)], "a")


class TestBalanceShapes:
    def test_total_includes_settled_entries(self):
        balances = {"b": 1, "c": -500, "d": 2000}
        assert total_balance(balances) == 1501

    def test_owes_list_drops_settled_and_sorts(self):
        balances = {"b": 1, "c": -500, "d": 2000, "e": -2000}
        assert owes_list(balances) == [
            UserBalance("d", 2000), UserBalance("e", -2000), UserBalance("c", -500),
        ]

    def test_summarize(self):
        summary = summarize({"b": 300, "c": -500, "d": 200})
        assert summary.total_owed_cents == 500
        assert summary.total_owing_cents == 500
        assert summary.net_cents == 0


class TestMemberSummary:
    def test_group_nets_sum_to_zero(self):
        expenses = [
            make_expense("e1", "a", 9000, {"a": 3000, "b": 3000, "c": 3000}),
            make_expense("e2", "b", 3000, {"b": 1000, "c": 2000}),
        ]
        settlements = [make_settlement("s1", "c", "a", 1000)]

        summary = {m.user_id: m for m in compute_member_summary(expenses, settlements, ["a", "b", "c"])}

        assert summary["a"].net_cents == 9000 - 3000 - 1000
        assert summary["b"].net_cents == 3000 - 4000
        assert summary["c"].net_cents == -5000 + 1000
        assert sum(m.net_cents for m in summary.values()) == 0

    def test_payer_must_be_member(self):
        with pytest.raises(InvalidLedgerEntryError):
            compute_member_summary([make_expense("e1", "z", 100, {"a": 100})], [], ["a", "b"])


class TestComputeTransfers:
    def test_greedy_plan(self):
        transfers = compute_transfers({"a": 5000, "b": -1000, "c": -4000})
        assert transfers == [Transfer("c", "a", 4000), Transfer("b", "a", 1000)]

    def test_settled_members_skipped(self):
        assert compute_transfers({"a": 1, "b": -1}) == []

    def test_plan_clears_every_net(self):
        net = {"a": 2500, "b": 1500, "c": -3000, "d": -1000}
        transfers = compute_transfers(net)
        for t in transfers:
            net[t.from_user_id] += t.amount_cents
            net[t.to_user_id] -= t.amount_cents
        assert all(v == 0 for v in net.values())
