"""
tests/unit/test_debt_simplification.py — Unit tests for balance_service.simplify_debts.

What this file proves:
  - Two-person debt → single transfer
  - One creditor, two equal debtors → two transfers, equal amounts
  - Uneven balances → the largest debtor pays the largest creditor first
  - n non-settled participants → at most n - 1 transfers
  - A debtor/creditor pair never appears twice
  - Ties are broken by participant id, so the output is reproducible
  - Creditors receive their balance to the cent; nobody is overpaid
  - Rounding does not accumulate across many debtors
  - Amounts are Decimal, rounded to cents, never below MIN_TRANSFER

Unit test constraints:
  - No database, no Flask. simplify_debts takes ParticipantBalance entries.
"""

from __future__ import annotations

from collections import defaultdict
from decimal import Decimal
from types import SimpleNamespace

from kashta.app.services.balance_service import (
    MIN_TRANSFER,
    ROLE_EPSILON,
    classify_role,
    compute_event_balances,
    simplify_debts,
    to_money,
)
from kashta.app.services.types import ParticipantBalance, Transfer


# ── Helpers ────────────────────────────────────────────────────────────────

def _balances(**amounts: str) -> list[ParticipantBalance]:
    entries = []
    for pid, raw in amounts.items():
        balance = Decimal(raw)
        entries.append(ParticipantBalance(
            participant_id=pid,
            name=pid.upper(),
            total_paid=Decimal("0"),
            fair_share=Decimal("0"),
            balance=balance,
            role=classify_role(balance),
        ))
    return entries


def _verify_correctness(balances: list[ParticipantBalance], transfers: list[Transfer]) -> None:
    """
    Applies the transfers and checks that simplify_debts neither invents,
    loses nor misroutes money:
      - every creditor receives their balance to within a cent, and never
        more than that balance rounded to cents;
      - no debtor pays more than their debt rounded to cents;
      - the total moved matches the creditors' surplus to within a cent
        per creditor.
    """
    received = defaultdict(lambda: Decimal("0"))
    paid = defaultdict(lambda: Decimal("0"))
    for t in transfers:
        received[t.creditor_id] += t.amount
        paid[t.debtor_id] += t.amount

    creditors = [e for e in balances if e.balance > ROLE_EPSILON]
    for entry in creditors:
        got = received[entry.participant_id]
        assert got <= to_money(entry.balance), (
            f"{entry.participant_id}: owed {entry.balance}, received {got}"
        )
        assert entry.balance - got <= Decimal("0.01"), (
            f"{entry.participant_id}: owed {entry.balance}, received {got}"
        )

    for entry in balances:
        if entry.balance < -ROLE_EPSILON:
            assert paid[entry.participant_id] <= to_money(-entry.balance)

    moved = sum((t.amount for t in transfers), Decimal("0"))
    surplus = sum((e.balance for e in creditors), Decimal("0"))
    assert abs(moved - surplus) <= Decimal("0.01") * max(len(creditors), 1)


def _as_tuples(transfers: list[Transfer]) -> list[tuple[str, str, Decimal]]:
    return [(t.debtor_id, t.creditor_id, t.amount) for t in transfers]


# ═══════════════════════════════════════════════════════════════════════════
# Basic shapes
# ═══════════════════════════════════════════════════════════════════════════

class TestBasicShapes:

    def test_two_people(self):
        balances = _balances(a="25.00", b="-25.00")
        transfers = simplify_debts(balances)

        assert _as_tuples(transfers) == [("b", "a", Decimal("25.00"))]
        _verify_correctness(balances, transfers)

    def test_all_settled_gives_no_transfers(self):
        assert simplify_debts(_balances(a="0", b="0.004", c="-0.004")) == []

    def test_empty_input(self):
        assert simplify_debts([]) == []

    def test_one_creditor_two_equal_debtors(self):
        balances = _balances(a="20", b="-10", c="-10")
        transfers = simplify_debts(balances)

        assert len(transfers) == 2
        assert {(t.debtor_id, t.creditor_id) for t in transfers} == {("b", "a"), ("c", "a")}
        assert all(t.amount == Decimal("10.00") for t in transfers)
        _verify_correctness(balances, transfers)

    def test_largest_debtor_pays_first(self):
        """A +30, B -10, C -20 → C→A 20 then B→A 10: two transfers, not three."""
        balances = _balances(a="30", b="-10", c="-20")
        transfers = simplify_debts(balances)

        assert _as_tuples(transfers) == [
            ("c", "a", Decimal("20.00")),
            ("b", "a", Decimal("10.00")),
        ]

    def test_debtor_split_across_two_creditors(self):
        balances = _balances(a="15", b="5", c="-20")
        transfers = simplify_debts(balances)

        assert _as_tuples(transfers) == [
            ("c", "a", Decimal("15.00")),
            ("c", "b", Decimal("5.00")),
        ]


# ═══════════════════════════════════════════════════════════════════════════
# Bounds and determinism
# ═══════════════════════════════════════════════════════════════════════════

class TestBoundsAndDeterminism:

    def test_at_most_n_minus_one_transfers(self):
        balances = _balances(
            a="40.00", b="25.50", c="-10.25", d="-30.00", e="-20.00", f="-5.25",
        )
        transfers = simplify_debts(balances)

        assert len(transfers) <= len(balances) - 1
        _verify_correctness(balances, transfers)

    def test_pairs_are_unique(self):
        balances = _balances(a="33.34", b="33.33", c="-22.22", d="-22.22", e="-22.23")
        transfers = simplify_debts(balances)

        pairs = [(t.debtor_id, t.creditor_id) for t in transfers]
        assert len(pairs) == len(set(pairs))

    def test_ties_break_by_participant_id(self):
        """Equal debts: the lower id is matched first."""
        transfers = simplify_debts(_balances(z="20", m="-10", b="-10"))
        assert [t.debtor_id for t in transfers] == ["b", "m"]

    def test_output_independent_of_input_order(self):
        forward = _balances(a="12", b="-4", c="-4", d="-4")
        backward = list(reversed(forward))
        assert _as_tuples(simplify_debts(forward)) == _as_tuples(simplify_debts(backward))

    def test_thirds_round_to_cents(self):
        """A pays 10 among three: two transfers of 3.33, nothing below a cent."""
        people = [SimpleNamespace(id=pid, name=pid) for pid in ("a", "b", "c")]
        contributions = [SimpleNamespace(participant_id="a", cost=Decimal("10.00"), quantity=1)]
        balances = compute_event_balances(1, people, contributions).balances

        transfers = simplify_debts(balances)

        assert [t.amount for t in transfers] == [Decimal("3.33"), Decimal("3.33")]
        assert all(t.amount >= MIN_TRANSFER for t in transfers)
        assert all(t.amount.as_tuple().exponent == -2 for t in transfers)
        _verify_correctness(balances, transfers)

    def test_sub_cent_residue_is_dropped(self):
        transfers = simplify_debts(_balances(a="10.004", b="-10.000", c="-0.004"))
        assert _as_tuples(transfers) == [("b", "a", Decimal("10.00"))]

    def test_rounding_does_not_accumulate_over_many_debtors(self):
        """A pays 100 among seven: A receives exactly 85.71, not 6 × 14.29."""
        people = [SimpleNamespace(id=pid, name=pid) for pid in "abcdefg"]
        contributions = [SimpleNamespace(participant_id="a", cost=Decimal("100.00"), quantity=1)]
        balances = compute_event_balances(1, people, contributions).balances

        transfers = simplify_debts(balances)

        assert len(transfers) == 6
        assert all(t.creditor_id == "a" for t in transfers)
        assert sum(t.amount for t in transfers) == Decimal("85.71")
        assert [t.amount for t in transfers] == [Decimal("14.29")] * 5 + [Decimal("14.26")]
        _verify_correctness(balances, transfers)

    def test_two_creditors_never_overpaid(self):
        people = [SimpleNamespace(id=pid, name=pid) for pid in "abcdefg"]
        contributions = [
            SimpleNamespace(participant_id="a", cost=Decimal("70.00"), quantity=1),
            SimpleNamespace(participant_id="b", cost=Decimal("30.01"), quantity=1),
        ]
        balances = compute_event_balances(1, people, contributions).balances

        transfers = simplify_debts(balances)

        assert len(transfers) <= len(balances) - 1
        _verify_correctness(balances, transfers)
