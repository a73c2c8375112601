"""
services/balance_service.py — Fair-share balances and debt minimisation.

This file is the SINGLE SOURCE OF TRUTH for how an event's balances and
transfers are computed. Do not reimplement the formulas elsewhere; the
settlement reconciler and the cross-event debt aggregator both call in here.

Layer rules:
  - No Flask imports. No current_app, request, g, or HTTP knowledge.
  - The pure functions (compute_event_balances, simplify_debts, ...) take
    plain objects and return the dataclasses in services/types.py.
  - The data access helpers take a SQLAlchemy Session and only read.

Money rules:
  - Decimal only, never float.
  - Fair shares and balances keep full precision. Amounts are rounded to
    cents only when a transfer is emitted.
  - Money is never compared for exact equality; ROLE_EPSILON and
    MIN_TRANSFER absorb the noise from dividing by the participant count.

Conservation:
  sum(balance) over an event is zero up to rounding noise, because every
  assigned cost is credited to exactly one participant and debited evenly
  across all of them. assert_balances_conserved() checks it.
"""

from __future__ import annotations

import heapq
from collections import defaultdict
from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from kashta.app.errors import AppError, ErrorCode
from kashta.app.models.contribution import Contribution
from kashta.app.models.event_participant import EventParticipant
from kashta.app.models.participant import Participant
from kashta.app.services.types import (
    BalanceRole,
    EventBalances,
    ParticipantBalance,
    Transfer,
)


ZERO = Decimal("0")
CENT = Decimal("0.01")

# |balance| below this is "settled".
ROLE_EPSILON = Decimal("0.005")

# Transfers smaller than a cent are never emitted.
MIN_TRANSFER = Decimal("0.01")

# Allowed drift of sum(balances) away from zero.
BALANCE_SUM_TOLERANCE = Decimal("0.01")


# ── Money helpers ──────────────────────────────────────────────────────────

def to_money(value: Decimal | int | str) -> Decimal:
    """Quantises a value to cents, rounding half up."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def contribution_amount(contribution) -> Decimal:
    """quantity × unit cost for one contribution. A NULL cost counts as zero."""
    cost = contribution.cost if contribution.cost is not None else ZERO
    quantity = contribution.quantity if contribution.quantity is not None else 1
    return Decimal(quantity) * Decimal(str(cost))


def classify_role(balance: Decimal) -> BalanceRole:
    if balance > ROLE_EPSILON:
        return BalanceRole.CREDITOR
    if balance < -ROLE_EPSILON:
        return BalanceRole.DEBTOR
    return BalanceRole.SETTLED


# ── Data access helpers ────────────────────────────────────────────────────

def get_event_participants(event_id: int, session: Session) -> list[Participant]:
    """Returns the participants of an event in the order they joined."""
    stmt = (
        select(Participant)
        .join(EventParticipant, Participant.id == EventParticipant.participant_id)
        .where(EventParticipant.event_id == event_id)
        .order_by(EventParticipant.joined_at.asc(), EventParticipant.id.asc())
    )
    return list(session.execute(stmt).scalars().all())


def get_contributions(event_id: int, session: Session) -> list[Contribution]:
    """Returns every contribution of an event, assigned or not."""
    stmt = (
        select(Contribution)
        .where(Contribution.event_id == event_id)
        .order_by(Contribution.created_at.asc(), Contribution.id.asc())
    )
    return list(session.execute(stmt).scalars().all())


# ── Balance calculator ─────────────────────────────────────────────────────

def compute_event_balances(
        event_id: int,
        participants: Iterable,
        contributions: Iterable,
) -> EventBalances:
    """
    Computes fair share and signed balances for one event.

    Args:
        participants:  objects with `id` and `name` — every participant of
                       the event, whether or not they contributed.
        contributions: objects with `participant_id`, `quantity` and `cost`.

    Algorithm:
      1. Sum quantity × cost into assigned_costs (payer is an event
         participant) or unassigned_costs (no payer yet).
      2. fair_share = assigned_costs / participant_count. Unassigned costs
         are not divided: nobody has claimed them yet.
      3. balance = total_paid - fair_share, classified with ROLE_EPSILON.

    With zero participants the fair share is zero and no balances are
    produced. A contribution whose payer is not (or no longer) an event
    participant is treated as unassigned.
    """
    people = list(participants)
    member_ids = {p.id for p in people}

    paid: dict[str, Decimal] = defaultdict(Decimal)
    assigned = ZERO
    unassigned = ZERO

    for contribution in contributions:
        amount = contribution_amount(contribution)
        payer_id = contribution.participant_id
        if payer_id is not None and payer_id in member_ids:
            paid[payer_id] += amount
            assigned += amount
        else:
            unassigned += amount

    participant_count = len(people)
    if participant_count == 0:
        fair_share = ZERO
    else:
        fair_share = assigned / participant_count

    balances = []
    for person in people:
        total_paid = paid.get(person.id, ZERO)
        balance = total_paid - fair_share
        balances.append(ParticipantBalance(
            participant_id=person.id,
            name=person.name,
            total_paid=total_paid,
            fair_share=fair_share,
            balance=balance,
            role=classify_role(balance),
        ))

    return EventBalances(
        event_id=event_id,
        total_spent=assigned + unassigned,
        assigned_costs=assigned,
        unassigned_costs=unassigned,
        participant_count=participant_count,
        fair_share=fair_share,
        balances=balances,
    )


def assert_balances_conserved(event_balances: EventBalances) -> None:
    """
    Raises INTERNAL_ERROR (500) if the event's balances do not sum to zero.

    A failure here means the balance calculator itself is broken; it is not
    reachable from user input.
    """
    total = sum((b.balance for b in event_balances.balances), ZERO)
    if abs(total) > BALANCE_SUM_TOLERANCE:
        raise AppError(
            ErrorCode.INTERNAL_ERROR,
            f"Balance integrity check failed: sum was {total} (expected 0.00). "
            f"Event {event_balances.event_id} has inconsistent financial data.",
            500,
        )


# ── Debt-minimisation engine ───────────────────────────────────────────────

def simplify_debts(balances: Iterable[ParticipantBalance]) -> list[Transfer]:
    """
    Greedy minimum cash flow: largest debtor pays largest creditor.

    Each step takes the debtor and the creditor with the largest remaining
    magnitude (ties broken by participant id ascending, so the output is
    reproducible), transfers min(debt, credit) rounded to cents, and puts
    back whichever side still has at least MIN_TRANSFER outstanding once
    rounded.

    Both sides are reduced by the emitted (rounded) amount, not the exact
    match, so a creditor never receives more than their balance rounded to
    cents and a debtor never pays more than theirs. Money moved equals the
    creditors' surplus to within a cent per creditor.

    Every step retires at least one side, and the last step retires both,
    so n non-settled participants produce at most n - 1 transfers and a
    debtor/creditor pair never appears twice.

    Args:
        balances: ParticipantBalance entries of ONE event; must satisfy
                  sum(balance) ≈ 0.

    Returns:
        Transfers in emission order. Empty when everyone is settled.
    """
    creditors: list[tuple[Decimal, str]] = []
    debtors: list[tuple[Decimal, str]] = []

    # Heaps keyed on (-magnitude, id): the smallest key is the largest
    # magnitude, and equal magnitudes pop in ascending id order.
    for entry in balances:
        if entry.balance > ROLE_EPSILON:
            creditors.append((-entry.balance, entry.participant_id))
        elif entry.balance < -ROLE_EPSILON:
            debtors.append((entry.balance, entry.participant_id))
    heapq.heapify(creditors)
    heapq.heapify(debtors)

    transfers: list[Transfer] = []

    while creditors and debtors:
        neg_credit, creditor_id = heapq.heappop(creditors)
        neg_debt, debtor_id = heapq.heappop(debtors)
        credit, debt = -neg_credit, -neg_debt

        matched = min(credit, debt)
        amount = to_money(matched)
        if amount >= MIN_TRANSFER:
            transfers.append(Transfer(
                debtor_id=debtor_id,
                creditor_id=creditor_id,
                amount=amount,
            ))

        credit -= amount
        debt -= amount
        if to_money(credit) >= MIN_TRANSFER:
            heapq.heappush(creditors, (-credit, creditor_id))
        if to_money(debt) >= MIN_TRANSFER:
            heapq.heappush(debtors, (-debt, debtor_id))

    return transfers
