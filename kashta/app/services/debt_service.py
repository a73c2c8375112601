"""
services/debt_service.py — Cross-event debt aggregation.

Folds one participant's per-event balances and transfers into a portfolio:
how much they paid overall, how much they owe / are owed, and a net position
per counterparty.

Two read paths:
  - get_debt_portfolio(): full breakdown. Runs the complete per-event
    settlement pipeline read-only (persist=False) so transfers carry the
    persisted paid flags, then folds them per counterparty.
  - get_debt_summary_for_participant() / get_debt_summaries(): totals only.
    Only the balance calculator runs; no transfers are computed, and for the
    global list each event is computed once and shared by every participant.

Sign convention for counterparty amounts (portfolio owner's point of view):
  positive = the owner owes the counterparty
  negative = the counterparty owes the owner

Layer rules:
  - No Flask imports. Read-only: nothing here writes to the session.
"""

from __future__ import annotations

from collections import defaultdict
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from kashta.app.errors import AppError, ErrorCode
from kashta.app.models.event import Event
from kashta.app.models.event_participant import EventParticipant
from kashta.app.models.participant import Participant
from kashta.app.services import balance_service, settlement_service
from kashta.app.services.types import (
    BalanceRole,
    CounterpartyDebt,
    CounterpartyEventDebt,
    EventBreakdown,
    ParticipantBalance,
    ParticipantDebtPortfolio,
    ParticipantDebtSummary,
)

ZERO = Decimal("0")


# ── Data access helpers ────────────────────────────────────────────────────

def _get_participant_or_404(participant_id: str, session: Session) -> Participant:
    participant = session.get(Participant, participant_id)
    if participant is None:
        raise AppError(
            ErrorCode.PARTICIPANT_NOT_FOUND,
            f"Participant {participant_id} does not exist.",
            404,
        )
    return participant


def get_participant_events(participant_id: str, session: Session) -> list[Event]:
    """Returns every event the participant belongs to, newest first."""
    stmt = (
        select(Event)
        .join(EventParticipant, Event.id == EventParticipant.event_id)
        .where(EventParticipant.participant_id == participant_id)
        .order_by(Event.date.desc(), Event.id.desc())
    )
    return list(session.execute(stmt).scalars().all())


# ── Folding ────────────────────────────────────────────────────────────────

class _Totals:
    """Running totals shared by the summary and portfolio folds."""

    def __init__(self) -> None:
        self.total_paid = ZERO
        self.total_owed = ZERO
        self.total_owed_to_you = ZERO
        self.event_count = 0

    def add(self, entry: ParticipantBalance) -> None:
        self.event_count += 1
        self.total_paid += entry.total_paid
        if entry.role is BalanceRole.DEBTOR:
            self.total_owed += -entry.balance
        elif entry.role is BalanceRole.CREDITOR:
            self.total_owed_to_you += entry.balance

    @property
    def net_position(self) -> Decimal:
        return self.total_owed_to_you - self.total_owed

    def summary(self, participant: Participant) -> ParticipantDebtSummary:
        net = self.net_position
        return ParticipantDebtSummary(
            participant_id=participant.id,
            participant_name=participant.name,
            total_paid=self.total_paid,
            total_owed=self.total_owed,
            total_owed_to_you=self.total_owed_to_you,
            net_position=net,
            role=balance_service.classify_role(net),
            event_count=self.event_count,
        )


def _build_counterparty_debts(
        rows: dict[str, list[CounterpartyEventDebt]],
        names: dict[str, str],
) -> list[CounterpartyDebt]:
    debts = []
    for counterparty_id, events in rows.items():
        net = sum((e.amount for e in events), ZERO)
        outstanding = sum((e.amount for e in events if not e.is_settled), ZERO)
        debts.append(CounterpartyDebt(
            counterparty_id=counterparty_id,
            counterparty_name=names[counterparty_id],
            net_amount=net,
            outstanding_amount=outstanding,
            events=events,
        ))
    debts.sort(key=lambda d: (-abs(d.net_amount), d.counterparty_name, d.counterparty_id))
    return debts


# ── Public service functions ───────────────────────────────────────────────

def get_debt_portfolio(participant_id: str, session: Session) -> ParticipantDebtPortfolio:
    """
    Builds the full cross-event portfolio for one participant.

    For every event the participant is in, the event settlement is recomputed
    read-only. The participant's own balance feeds the totals and the event
    breakdown; every transfer naming them feeds the counterparty breakdown.

    Raises:
        AppError(PARTICIPANT_NOT_FOUND, 404) -- participant does not exist.
    """
    participant = _get_participant_or_404(participant_id, session)

    totals = _Totals()
    breakdown: list[EventBreakdown] = []
    counterparty_rows: dict[str, list[CounterpartyEventDebt]] = defaultdict(list)
    names: dict[str, str] = {}

    for event in get_participant_events(participant_id, session):
        settlement = settlement_service.get_event_settlement(event.id, session, persist=False)

        own = next(
            (b for b in settlement.balances if b.participant_id == participant_id),
            None,
        )
        if own is None:
            continue
        totals.add(own)
        breakdown.append(EventBreakdown(
            event_id=event.id,
            event_title=event.title,
            event_date=event.date,
            paid=own.total_paid,
            fair_share=own.fair_share,
            balance=own.balance,
            role=own.role,
        ))

        for txn in settlement.transactions:
            if txn.debtor_id == participant_id:
                counterparty_id, signed = txn.creditor_id, txn.amount
                names[counterparty_id] = txn.creditor_name
            elif txn.creditor_id == participant_id:
                counterparty_id, signed = txn.debtor_id, -txn.amount
                names[counterparty_id] = txn.debtor_name
            else:
                continue
            counterparty_rows[counterparty_id].append(CounterpartyEventDebt(
                event_id=event.id,
                event_title=event.title,
                amount=signed,
                is_settled=txn.is_settled,
            ))

    summary = totals.summary(participant)
    return ParticipantDebtPortfolio(
        participant_id=summary.participant_id,
        participant_name=summary.participant_name,
        total_paid=summary.total_paid,
        total_owed=summary.total_owed,
        total_owed_to_you=summary.total_owed_to_you,
        net_position=summary.net_position,
        role=summary.role,
        event_count=summary.event_count,
        counterparty_debts=_build_counterparty_debts(counterparty_rows, names),
        event_breakdown=breakdown,
    )


def get_debt_summary_for_participant(
        participant_id: str,
        session: Session,
) -> ParticipantDebtSummary | None:
    """Totals-only view for one participant; None if the participant does not exist."""
    participant = session.get(Participant, participant_id)
    if participant is None:
        return None

    totals = _Totals()
    for event in get_participant_events(participant_id, session):
        computed = balance_service.compute_event_balances(
            event.id,
            balance_service.get_event_participants(event.id, session),
            balance_service.get_contributions(event.id, session),
        )
        own = computed.balance_for(participant_id)
        if own is not None:
            totals.add(own)
    return totals.summary(participant)


def get_debt_summaries(session: Session) -> list[ParticipantDebtSummary]:
    """
    Totals-only view for every participant, ordered by name.

    Each event's balances are computed once and distributed to its
    participants, instead of once per participant.
    """
    participants = list(session.execute(
        select(Participant).order_by(Participant.name.asc(), Participant.id.asc())
    ).scalars().all())

    totals: dict[str, _Totals] = {p.id: _Totals() for p in participants}

    event_ids = session.execute(select(Event.id).order_by(Event.id.asc())).scalars().all()
    for event_id in event_ids:
        computed = balance_service.compute_event_balances(
            event_id,
            balance_service.get_event_participants(event_id, session),
            balance_service.get_contributions(event_id, session),
        )
        for entry in computed.balances:
            if entry.participant_id in totals:
                totals[entry.participant_id].add(entry)

    return [totals[p.id].summary(p) for p in participants]
