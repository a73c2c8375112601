"""
services/contribution_service.py — Contribution lifecycle.

A contribution is (item, event) plus an optional payer, a quantity and a
unit cost. Every mutation here changes the event's costs, so each one ends
with settlement_service.reconcile_event_settlement() in the same transaction.

Payer rule:
  Assigning a contribution to someone outside its event enrolls them as a
  member first (event_service.ensure_participant_in_event), so every payer
  is inside the fair-share division by the time the event is reconciled.

Pruning:
  Unassigning or deleting a participant's last contribution in an event
  removes them from that event (event_service.prune_participant_if_idle).

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from kashta.app.errors import AppError, ErrorCode
from kashta.app.models.contribution import Contribution, ContributionStatus
from kashta.app.services import event_service, settlement_service
from kashta.app.services.participant_service import get_item_or_404


# ── Private helpers ────────────────────────────────────────────────────────

def _get_contribution_or_404(contribution_id: str, session: Session) -> Contribution:
    contribution = session.get(Contribution, contribution_id)
    if contribution is None:
        raise AppError(
            ErrorCode.CONTRIBUTION_NOT_FOUND,
            f"Contribution {contribution_id} does not exist.",
            404,
        )
    return contribution


# ── Public service functions ───────────────────────────────────────────────

def list_contributions(event_id: int, session: Session) -> list[Contribution]:
    event_service.get_event_or_404(event_id, session)
    stmt = (
        select(Contribution)
        .where(Contribution.event_id == event_id)
        .order_by(Contribution.created_at.asc(), Contribution.id.asc())
    )
    return list(session.execute(stmt).scalars().all())


def create_contribution(event_id: int, data: dict, session: Session) -> Contribution:
    """
    Adds an item to an event, optionally already assigned to a payer.

    Args:
        data: Validated dict from CreateContributionSchema.

    Raises:
        AppError(EVENT_NOT_FOUND, 404)
        AppError(ITEM_NOT_FOUND, 404)
        AppError(PARTICIPANT_NOT_FOUND, 404)
    """
    event_service.get_event_or_404(event_id, session)
    get_item_or_404(data["item_id"], session)

    participant_id = data.get("participant_id")
    if participant_id is not None:
        event_service.ensure_participant_in_event(event_id, participant_id, session)

    contribution = Contribution(
        event_id=event_id,
        item_id=data["item_id"],
        participant_id=participant_id,
        quantity=data.get("quantity", 1),
        cost=data.get("cost", Decimal("0.00")),
        status=ContributionStatus(data.get("status", ContributionStatus.PENDING.value)),
        notes=data.get("notes"),
    )
    session.add(contribution)
    session.flush()

    settlement_service.reconcile_event_settlement(event_id, session)
    return contribution


def update_contribution(contribution_id: str, data: dict, session: Session) -> Contribution:
    """
    Edits quantity, cost, payer, status or notes of a contribution.

    Only keys present in `data` are changed. Passing participant_id=None
    unassigns without resetting the cost (use unassign_contribution for the
    full reset). A new payer from outside the event is enrolled in it; the
    previous payer stays a member.
    """
    contribution = _get_contribution_or_404(contribution_id, session)

    new_payer = data.get("participant_id")
    if new_payer is not None and new_payer != contribution.participant_id:
        event_service.ensure_participant_in_event(contribution.event_id, new_payer, session)

    for field in ("participant_id", "quantity", "cost", "notes"):
        if field in data:
            setattr(contribution, field, data[field])
    if "status" in data:
        contribution.status = ContributionStatus(data["status"])
    session.flush()

    settlement_service.reconcile_event_settlement(contribution.event_id, session)
    return contribution


def unassign_contribution(contribution_id: str, session: Session) -> dict:
    """
    Returns a contribution to the unclaimed state (no payer, cost 0, pending).

    If that was the payer's last contribution in the event they are pruned
    from the event.

    Returns: {"unassigned": True, "participant_pruned": bool}
    """
    contribution = _get_contribution_or_404(contribution_id, session)
    event_id = contribution.event_id
    previous_payer = contribution.participant_id

    contribution.participant_id = None
    contribution.cost = Decimal("0.00")
    contribution.status = ContributionStatus.PENDING
    session.flush()

    pruned = False
    if previous_payer is not None:
        pruned = event_service.prune_participant_if_idle(event_id, previous_payer, session)

    settlement_service.reconcile_event_settlement(event_id, session)
    return {"unassigned": True, "participant_pruned": pruned}


def delete_contribution_and_prune(contribution_id: str, session: Session) -> dict:
    """
    Deletes a contribution; prunes its payer from the event if it was their last.

    Returns: {"deleted": True, "participant_pruned": bool}
    """
    contribution = _get_contribution_or_404(contribution_id, session)
    event_id = contribution.event_id
    payer = contribution.participant_id

    session.delete(contribution)
    session.flush()

    pruned = False
    if payer is not None:
        pruned = event_service.prune_participant_if_idle(event_id, payer, session)

    settlement_service.reconcile_event_settlement(event_id, session)
    return {"deleted": True, "participant_pruned": pruned}
