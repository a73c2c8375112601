"""
services/participant_service.py — Participant and item catalogue logic.

Deleting a participant:
  Refused while they still owe or are owed an unpaid settlement amount.
  Otherwise their contributions become unassigned (the cost stays on the
  event as unassigned cost), their memberships and any paid settlement
  records naming them are removed, and every event they were in is
  reconciled. The settlement activity log keeps its rows.

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import delete, or_, select, update
from sqlalchemy.orm import Session

from kashta.app.errors import AppError, ErrorCode
from kashta.app.models.contribution import Contribution
from kashta.app.models.event_participant import EventParticipant
from kashta.app.models.item import Item
from kashta.app.models.participant import Participant
from kashta.app.models.settlement_record import SettlementRecord
from kashta.app.services import settlement_service
from kashta.app.services.balance_service import MIN_TRANSFER, to_money
from kashta.app.services.types import DeletionCheck

logger = logging.getLogger(__name__)


def get_participant_or_404(participant_id: str, session: Session) -> Participant:
    """Returns the Participant or raises PARTICIPANT_NOT_FOUND (404)."""
    participant = session.get(Participant, participant_id)
    if participant is None:
        raise AppError(
            ErrorCode.PARTICIPANT_NOT_FOUND,
            f"Participant {participant_id} does not exist.",
            404,
        )
    return participant


def get_item_or_404(item_id: str, session: Session) -> Item:
    """Returns the Item or raises ITEM_NOT_FOUND (404)."""
    item = session.get(Item, item_id)
    if item is None:
        raise AppError(
            ErrorCode.ITEM_NOT_FOUND,
            f"Item {item_id} does not exist.",
            404,
        )
    return item


def create_participant(data: dict, session: Session) -> Participant:
    """
    Creates a participant.

    Args:
        data: Validated dict from CreateParticipantSchema
              (name, optional phone and avatar).
    """
    participant = Participant(
        name=data["name"].strip(),
        phone=data.get("phone"),
        avatar=data.get("avatar"),
    )
    session.add(participant)
    session.flush()
    return participant


def list_participants(session: Session) -> list[Participant]:
    stmt = select(Participant).order_by(Participant.name.asc(), Participant.id.asc())
    return list(session.execute(stmt).scalars().all())


def can_delete_participant(participant_id: str, session: Session) -> DeletionCheck:
    """
    Reports whether a participant may be deleted.

    Sums the participant's unpaid settlement records in both directions;
    either side reaching a cent blocks the deletion.

    Raises:
        AppError(PARTICIPANT_NOT_FOUND, 404)
    """
    get_participant_or_404(participant_id, session)

    unpaid = session.execute(
        select(SettlementRecord).where(
            or_(
                SettlementRecord.debtor_id == participant_id,
                SettlementRecord.creditor_id == participant_id,
            ),
            SettlementRecord.is_settled.is_(False),
        )
    ).scalars().all()

    owes = sum((r.amount for r in unpaid if r.debtor_id == participant_id), Decimal("0"))
    owed = sum((r.amount for r in unpaid if r.creditor_id == participant_id), Decimal("0"))

    if owes >= MIN_TRANSFER:
        return DeletionCheck(
            can_delete=False,
            code=ErrorCode.PARTICIPANT_HAS_DEBTS,
            reason=f"Participant {participant_id} still owes {to_money(owes)}. Settle all debts first.",
        )
    if owed >= MIN_TRANSFER:
        return DeletionCheck(
            can_delete=False,
            code=ErrorCode.PARTICIPANT_HAS_DEBTS,
            reason=f"Participant {participant_id} is still owed {to_money(owed)}. Settle all debts first.",
        )
    return DeletionCheck(can_delete=True)


def delete_participant(participant_id: str, session: Session) -> dict:
    """
    Deletes a participant who has no unpaid debts in either direction.

    Returns: {"deleted": True, "contributions_unassigned": int}

    Raises:
        AppError(PARTICIPANT_NOT_FOUND, 404)
        AppError(PARTICIPANT_HAS_DEBTS, 409)
    """
    check = can_delete_participant(participant_id, session)
    if not check.can_delete:
        raise AppError(check.code, check.reason, 409)

    participant = get_participant_or_404(participant_id, session)
    event_ids = session.execute(
        select(EventParticipant.event_id)
        .where(EventParticipant.participant_id == participant_id)
        .order_by(EventParticipant.event_id.asc())
    ).scalars().all()

    result = session.execute(
        update(Contribution)
        .where(Contribution.participant_id == participant_id)
        .values(participant_id=None)
    )
    unassigned = result.rowcount or 0

    session.execute(
        delete(SettlementRecord).where(
            or_(
                SettlementRecord.debtor_id == participant_id,
                SettlementRecord.creditor_id == participant_id,
            )
        )
    )
    session.execute(
        delete(EventParticipant).where(EventParticipant.participant_id == participant_id)
    )
    session.delete(participant)
    session.flush()

    for event_id in event_ids:
        settlement_service.reconcile_event_settlement(event_id, session)

    logger.info(
        "Deleted participant %s (%d events, %d contributions unassigned)",
        participant_id,
        len(event_ids),
        unassigned,
    )
    return {"deleted": True, "contributions_unassigned": unassigned}


def create_item(data: dict, session: Session) -> Item:
    item = Item(
        name=data["name"].strip(),
        description=data.get("description"),
    )
    session.add(item)
    session.flush()
    return item


def list_items(session: Session) -> list[Item]:
    stmt = select(Item).order_by(Item.name.asc(), Item.id.asc())
    return list(session.execute(stmt).scalars().all())
