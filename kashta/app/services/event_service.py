"""
services/event_service.py — Events and event membership.

Membership changes alter an event's participant_count and therefore every
fair share in it. Each mutation here finishes by reconciling the event's
settlement records in the same transaction
(settlement_service.reconcile_event_settlement).

Cascades are explicit orchestration steps, not database triggers:
  - remove_participant_from_event() deletes the participant's contributions
    in that event, then the membership row, then reconciles (which deletes
    any settlement record naming them).
  - prune_participant_if_idle() is called by contribution_service after an
    unassign or delete leaves a participant with nothing in the event.
  - delete_event() removes the event's zero-cost contributions and its
    membership rows before the event itself. It is refused while the event
    still has settlement records or any contribution with a cost.

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

import logging

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from kashta.app.errors import AppError, ErrorCode
from kashta.app.models.contribution import Contribution
from kashta.app.models.event import Event, EventStatus
from kashta.app.models.event_participant import EventParticipant, EventRole
from kashta.app.models.participant import Participant
from kashta.app.models.settlement_record import SettlementRecord
from kashta.app.services import settlement_service
from kashta.app.services.participant_service import get_participant_or_404
from kashta.app.services.types import DeletionCheck

logger = logging.getLogger(__name__)


# ── Private helpers ────────────────────────────────────────────────────────

def get_event_or_404(event_id: int, session: Session) -> Event:
    """Returns the Event or raises EVENT_NOT_FOUND (404)."""
    event = session.get(Event, event_id)
    if event is None:
        raise AppError(
            ErrorCode.EVENT_NOT_FOUND,
            f"Event {event_id} does not exist.",
            404,
        )
    return event


def get_membership(event_id: int, participant_id: str, session: Session) -> EventParticipant | None:
    return session.execute(
        select(EventParticipant).where(
            EventParticipant.event_id == event_id,
            EventParticipant.participant_id == participant_id,
        )
    ).scalar_one_or_none()


def _decrement_trip_count(participant: Participant) -> None:
    participant.trip_count = max((participant.trip_count or 0) - 1, 0)


def _enroll(event_id: int, participant: Participant, role: EventRole, session: Session) -> EventParticipant:
    link = EventParticipant(
        event_id=event_id,
        participant_id=participant.id,
        role=role,
    )
    session.add(link)
    participant.trip_count = (participant.trip_count or 0) + 1
    session.flush()
    return link


# ── Public service functions ───────────────────────────────────────────────

def create_event(data: dict, session: Session) -> Event:
    """
    Creates an event.

    Args:
        data: Validated dict from CreateEventSchema.
    """
    event = Event(
        title=data["title"].strip(),
        description=data.get("description"),
        location=data.get("location"),
        date=data["date"],
        end_date=data.get("end_date"),
        status=EventStatus(data.get("status", EventStatus.UPCOMING.value)),
    )
    session.add(event)
    session.flush()
    return event


def list_events(session: Session) -> list[Event]:
    """Returns every event, most recent date first."""
    stmt = select(Event).order_by(Event.date.desc(), Event.id.desc())
    return list(session.execute(stmt).scalars().all())


def get_event_detail(event_id: int, session: Session) -> tuple[Event, list[EventParticipant]]:
    """Returns the event and its membership rows (participant loaded)."""
    event = get_event_or_404(event_id, session)
    stmt = (
        select(EventParticipant)
        .where(EventParticipant.event_id == event_id)
        .order_by(EventParticipant.joined_at.asc(), EventParticipant.id.asc())
    )
    return event, list(session.execute(stmt).scalars().all())


def add_participant_to_event(
        event_id: int,
        participant_id: str,
        role: str,
        session: Session,
) -> EventParticipant:
    """
    Adds a participant to an event and bumps their trip count.

    Raises:
        AppError(EVENT_NOT_FOUND, 404)
        AppError(PARTICIPANT_NOT_FOUND, 404)
        AppError(ALREADY_IN_EVENT, 409)
    """
    get_event_or_404(event_id, session)
    participant = get_participant_or_404(participant_id, session)

    if get_membership(event_id, participant_id, session) is not None:
        raise AppError(
            ErrorCode.ALREADY_IN_EVENT,
            f"Participant {participant_id} is already in event {event_id}.",
            409,
            field="participant_id",
        )

    link = _enroll(event_id, participant, EventRole(role), session)

    # One more head lowers everyone's fair share.
    settlement_service.reconcile_event_settlement(event_id, session)
    return link


def ensure_participant_in_event(event_id: int, participant_id: str, session: Session) -> bool:
    """
    Enrolls a participant as a member of an event unless they already are.

    Used when a contribution is assigned to someone outside the event: the
    payer joins the event (and their trip count goes up) instead of the
    assignment being refused. Does NOT reconcile; the caller does that once
    after its own mutation.

    Returns True if the participant was enrolled.

    Raises:
        AppError(PARTICIPANT_NOT_FOUND, 404)
    """
    participant = get_participant_or_404(participant_id, session)
    if get_membership(event_id, participant_id, session) is not None:
        return False

    _enroll(event_id, participant, EventRole.MEMBER, session)
    logger.info("Enrolled payer %s in event %s", participant_id, event_id)
    return True


def remove_participant_from_event(
        event_id: int,
        participant_id: str,
        session: Session,
) -> int:
    """
    Removes a participant from an event together with their contributions.

    Returns the number of contributions deleted by the cascade.

    Raises:
        AppError(EVENT_NOT_FOUND, 404)
        AppError(PARTICIPANT_NOT_IN_EVENT, 422)
    """
    get_event_or_404(event_id, session)

    link = get_membership(event_id, participant_id, session)
    if link is None:
        raise AppError(
            ErrorCode.PARTICIPANT_NOT_IN_EVENT,
            f"Participant {participant_id} is not in event {event_id}.",
            422,
        )

    result = session.execute(
        delete(Contribution).where(
            Contribution.event_id == event_id,
            Contribution.participant_id == participant_id,
        )
    )
    removed = result.rowcount or 0

    participant = link.participant
    session.delete(link)
    _decrement_trip_count(participant)
    session.flush()

    logger.info(
        "Removed participant %s from event %s (%d contributions deleted)",
        participant_id,
        event_id,
        removed,
    )
    settlement_service.reconcile_event_settlement(event_id, session)
    return removed


def prune_participant_if_idle(event_id: int, participant_id: str, session: Session) -> bool:
    """
    Removes a participant from an event if they have no contributions left there.

    Does NOT reconcile; the caller does that once after its own mutation.
    Returns True if the participant was pruned.
    """
    remaining = session.execute(
        select(func.count(Contribution.id)).where(
            Contribution.event_id == event_id,
            Contribution.participant_id == participant_id,
        )
    ).scalar_one()
    if remaining:
        return False

    link = get_membership(event_id, participant_id, session)
    if link is None:
        return False

    participant = link.participant
    session.delete(link)
    _decrement_trip_count(participant)
    session.flush()
    return True


def can_delete_event(event_id: int, session: Session) -> DeletionCheck:
    """
    Reports whether an event may be deleted.

    An event is protected while any settlement record exists for it, paid or
    not, and while any of its contributions still carries a cost. Clearing
    the costs makes the reconciler drop the records, after which the event
    can go.

    Raises:
        AppError(EVENT_NOT_FOUND, 404)
    """
    get_event_or_404(event_id, session)

    records = session.execute(
        select(func.count(SettlementRecord.id)).where(SettlementRecord.event_id == event_id)
    ).scalar_one()
    if records:
        return DeletionCheck(
            can_delete=False,
            code=ErrorCode.EVENT_HAS_SETTLEMENTS,
            reason=f"Event {event_id} still has settlement records. Settle all debts first.",
        )

    costly = session.execute(
        select(func.count(Contribution.id)).where(
            Contribution.event_id == event_id,
            Contribution.cost > 0,
        )
    ).scalar_one()
    if costly:
        return DeletionCheck(
            can_delete=False,
            code=ErrorCode.EVENT_HAS_COSTS,
            reason=f"Event {event_id} has contributions with costs. Remove all costs first.",
        )

    return DeletionCheck(can_delete=True)


def delete_event(event_id: int, session: Session) -> None:
    """
    Deletes an event together with its contributions and memberships.

    Every member's trip count goes down by one. The settlement activity log
    keeps its rows; they hold snapshots, not references.

    Raises:
        AppError(EVENT_NOT_FOUND, 404)
        AppError(EVENT_HAS_SETTLEMENTS, 409)
        AppError(EVENT_HAS_COSTS, 409)
    """
    # Event row lock, as in the reconciler.
    session.execute(select(Event).where(Event.id == event_id).with_for_update())

    check = can_delete_event(event_id, session)
    if not check.can_delete:
        raise AppError(check.code, check.reason, 409)

    event = get_event_or_404(event_id, session)
    links = session.execute(
        select(EventParticipant).where(EventParticipant.event_id == event_id)
    ).scalars().all()
    for link in links:
        _decrement_trip_count(link.participant)

    session.execute(delete(Contribution).where(Contribution.event_id == event_id))
    session.execute(delete(EventParticipant).where(EventParticipant.event_id == event_id))
    session.delete(event)
    session.flush()

    logger.info("Deleted event %s (%d participants released)", event_id, len(links))
