"""
services/types.py — Derived (never persisted) settlement and debt views.

These are the values the settlement engine computes from contributions and
the settlement-record table. They are frozen dataclasses so a computed view
cannot be mutated on its way to the serializer.

All money fields are Decimal. Values are kept at full precision here; they
are quantised to 2 dp only when a transfer is emitted (balance_service) or
when a route serialises them for output.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal


class BalanceRole(str, enum.Enum):
    CREDITOR = "creditor"  # paid more than their fair share
    DEBTOR   = "debtor"    # paid less than their fair share
    SETTLED  = "settled"   # within epsilon of their fair share


# ── Per-event views ────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ParticipantBalance:
    participant_id: str
    name: str
    total_paid: Decimal
    fair_share: Decimal
    balance: Decimal
    role: BalanceRole


@dataclass(frozen=True)
class EventBalances:
    """Output of the balance calculator for one event."""
    event_id: int
    total_spent: Decimal
    assigned_costs: Decimal
    unassigned_costs: Decimal
    participant_count: int
    fair_share: Decimal
    balances: list[ParticipantBalance] = field(default_factory=list)

    def balance_for(self, participant_id: str) -> ParticipantBalance | None:
        for entry in self.balances:
            if entry.participant_id == participant_id:
                return entry
        return None


@dataclass(frozen=True)
class Transfer:
    """One debtor → creditor payment produced by debt minimisation."""
    debtor_id: str
    creditor_id: str
    amount: Decimal


@dataclass(frozen=True)
class ReconciledTransfer:
    """A transfer merged with the paid state of its settlement record."""
    debtor_id: str
    creditor_id: str
    amount: Decimal
    is_settled: bool
    settled_at: datetime | None


@dataclass(frozen=True)
class SettlementTransaction:
    debtor_id: str
    debtor_name: str
    creditor_id: str
    creditor_name: str
    amount: Decimal
    is_settled: bool
    settled_at: datetime | None


@dataclass(frozen=True)
class EventSettlement:
    event_id: int
    event_title: str
    total_spent: Decimal
    assigned_costs: Decimal
    unassigned_costs: Decimal
    participant_count: int
    fair_share: Decimal
    balances: list[ParticipantBalance]
    transactions: list[SettlementTransaction]


# ── Cross-event views ──────────────────────────────────────────────────────

@dataclass(frozen=True)
class CounterpartyEventDebt:
    """
    One event's contribution to a counterparty position.

    `amount` is signed from the portfolio owner's point of view:
    positive = the owner owes the counterparty, negative = the counterparty
    owes the owner.
    """
    event_id: int
    event_title: str
    amount: Decimal
    is_settled: bool


@dataclass(frozen=True)
class CounterpartyDebt:
    counterparty_id: str
    counterparty_name: str
    net_amount: Decimal          # signed sum over every event
    outstanding_amount: Decimal  # signed sum over unsettled transfers only
    events: list[CounterpartyEventDebt]


@dataclass(frozen=True)
class EventBreakdown:
    event_id: int
    event_title: str
    event_date: datetime | None
    paid: Decimal
    fair_share: Decimal
    balance: Decimal
    role: BalanceRole


@dataclass(frozen=True)
class ParticipantDebtSummary:
    participant_id: str
    participant_name: str
    total_paid: Decimal
    total_owed: Decimal         # owed by the participant to others
    total_owed_to_you: Decimal  # owed to the participant by others
    net_position: Decimal
    role: BalanceRole
    event_count: int


@dataclass(frozen=True)
class ParticipantDebtPortfolio:
    participant_id: str
    participant_name: str
    total_paid: Decimal
    total_owed: Decimal
    total_owed_to_you: Decimal
    net_position: Decimal
    role: BalanceRole
    event_count: int
    counterparty_debts: list[CounterpartyDebt]
    event_breakdown: list[EventBreakdown]


# ── Deletion guards ────────────────────────────────────────────────────────

@dataclass(frozen=True)
class DeletionCheck:
    """Whether an event or participant may be deleted, and if not, why."""
    can_delete: bool
    code: str | None = None      # ErrorCode raised if deletion is attempted
    reason: str | None = None
