"""
services/settlement_service.py — Per-event settlement and paid-state persistence.

Pipeline for one event:
  contributions + participants
    → balance_service.compute_event_balances()   (fair share, balances)
    → balance_service.simplify_debts()           (minimal transfers)
    → reconcile_settlement_records()             (settlement_records table)
    → EventSettlement view

Reconciliation contract:
  - A transfer whose (debtor, creditor) pair already has a record updates
    that record's amount; is_settled / settled_at are left alone.
  - A transfer with no record inserts one, unsettled.
  - A record whose pair is no longer produced is deleted.
  Running it twice with no contribution change in between is a no-op, so
  a read never flips a paid flag.

Concurrency:
  Writers lock the event row (SELECT ... FOR UPDATE) before reading the
  settlement records, so two reconciles of the same event serialise instead
  of racing a delete against an update. Events are independent; nothing
  locks across events. A storage failure rolls the session back and surfaces
  STORAGE_CONFLICT (503, retryable); previously committed rows are untouched.

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from kashta.app.errors import AppError, ErrorCode
from kashta.app.models.event import Event
from kashta.app.models.settlement_activity_log import (
    SettlementAction,
    SettlementActivityLog,
)
from kashta.app.models.settlement_record import SettlementRecord
from kashta.app.services import balance_service
from kashta.app.services.types import (
    EventSettlement,
    ReconciledTransfer,
    SettlementTransaction,
    Transfer,
)

logger = logging.getLogger(__name__)


# ── Private helpers ────────────────────────────────────────────────────────

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _get_event_or_404(event_id: int, session: Session, lock: bool = False) -> Event:
    """
    Returns the Event or raises EVENT_NOT_FOUND (404).

    With lock=True the event row is selected FOR UPDATE; it is the mutex for
    every write to that event's settlement records.
    """
    if lock:
        event = session.execute(
            select(Event).where(Event.id == event_id).with_for_update()
        ).scalar_one_or_none()
    else:
        event = session.get(Event, event_id)

    if event is None:
        raise AppError(
            ErrorCode.EVENT_NOT_FOUND,
            f"Event {event_id} does not exist.",
            404,
        )
    return event


def _storage_conflict(event_id: int, exc: SQLAlchemyError, session: Session) -> AppError:
    """Rolls back and builds the retryable error for a failed settlement write."""
    session.rollback()
    logger.error(
        "Settlement write for event %s failed and was rolled back: %s",
        event_id,
        exc,
    )
    return AppError(
        ErrorCode.STORAGE_CONFLICT,
        f"Settlement records for event {event_id} could not be saved. "
        f"No changes were applied; please retry.",
        503,
        retryable=True,
    )


# ── Data access helpers ────────────────────────────────────────────────────

def get_settlement_records(event_id: int, session: Session) -> list[SettlementRecord]:
    """Returns every persisted settlement record of an event."""
    stmt = (
        select(SettlementRecord)
        .where(SettlementRecord.event_id == event_id)
        .order_by(SettlementRecord.id.asc())
    )
    return list(session.execute(stmt).scalars().all())


def append_settlement_activity_log(entry: dict, session: Session) -> SettlementActivityLog:
    """Appends one immutable audit row. `entry` holds the column values."""
    log = SettlementActivityLog(**entry)
    session.add(log)
    session.flush()
    return log


# ── Reconciler ─────────────────────────────────────────────────────────────

def reconcile_settlement_records(
        event_id: int,
        transfers: list[Transfer],
        session: Session,
        persist: bool = True,
) -> list[ReconciledTransfer]:
    """
    Diffs freshly computed transfers against the event's settlement records.

    Args:
        transfers: output of balance_service.simplify_debts() for this event.
        persist:   when False nothing is written; the result shows what the
                   records would look like, using the persisted paid flags.
                   The cross-event aggregator reads this way.

    The caller must hold the event lock when persist=True
    (see _get_event_or_404(lock=True)).

    Returns:
        One ReconciledTransfer per transfer, in transfer order.

    Raises:
        AppError(STORAGE_CONFLICT, 503) — the write failed and was rolled back.
    """
    existing = {
        (record.debtor_id, record.creditor_id): record
        for record in get_settlement_records(event_id, session)
    }
    produced: set[tuple[str, str]] = set()
    reconciled: list[ReconciledTransfer] = []
    inserted = updated = 0

    try:
        for transfer in transfers:
            key = (transfer.debtor_id, transfer.creditor_id)
            produced.add(key)
            record = existing.get(key)

            if record is None:
                if persist:
                    session.add(SettlementRecord(
                        event_id=event_id,
                        debtor_id=transfer.debtor_id,
                        creditor_id=transfer.creditor_id,
                        amount=transfer.amount,
                        is_settled=False,
                        settled_at=None,
                    ))
                    inserted += 1
                reconciled.append(ReconciledTransfer(
                    debtor_id=transfer.debtor_id,
                    creditor_id=transfer.creditor_id,
                    amount=transfer.amount,
                    is_settled=False,
                    settled_at=None,
                ))
                continue

            if persist and record.amount != transfer.amount:
                record.amount = transfer.amount
                updated += 1
            reconciled.append(ReconciledTransfer(
                debtor_id=transfer.debtor_id,
                creditor_id=transfer.creditor_id,
                amount=transfer.amount,
                is_settled=record.is_settled,
                settled_at=record.settled_at,
            ))

        stale = [record for key, record in existing.items() if key not in produced]
        if persist:
            for record in stale:
                session.delete(record)
            session.flush()
    except SQLAlchemyError as exc:
        raise _storage_conflict(event_id, exc, session) from exc

    if persist:
        logger.debug(
            "Reconciled event %s: %d inserted, %d updated, %d deleted",
            event_id,
            inserted,
            updated,
            len(stale),
        )
    return reconciled


# ── Public service functions ───────────────────────────────────────────────

def get_event_settlement(
        event_id: int,
        session: Session,
        persist: bool = True,
) -> EventSettlement:
    """
    Recomputes an event's settlement from scratch.

    With persist=True (GET /events/:id/settlement and every contribution
    mutation) the settlement records are reconciled under the event lock.
    With persist=False nothing is written.

    Raises:
        AppError(EVENT_NOT_FOUND, 404)   -- event does not exist.
        AppError(INTERNAL_ERROR, 500)    -- balances do not sum to zero.
        AppError(STORAGE_CONFLICT, 503)  -- reconcile write failed.
    """
    event = _get_event_or_404(event_id, session, lock=persist)

    participants = balance_service.get_event_participants(event_id, session)
    contributions = balance_service.get_contributions(event_id, session)

    computed = balance_service.compute_event_balances(event_id, participants, contributions)
    balance_service.assert_balances_conserved(computed)

    transfers = balance_service.simplify_debts(computed.balances)
    reconciled = reconcile_settlement_records(event_id, transfers, session, persist=persist)

    names = {p.id: p.name for p in participants}
    transactions = [
        SettlementTransaction(
            debtor_id=r.debtor_id,
            debtor_name=names[r.debtor_id],
            creditor_id=r.creditor_id,
            creditor_name=names[r.creditor_id],
            amount=r.amount,
            is_settled=r.is_settled,
            settled_at=r.settled_at,
        )
        for r in reconciled
    ]

    return EventSettlement(
        event_id=event.id,
        event_title=event.title,
        total_spent=computed.total_spent,
        assigned_costs=computed.assigned_costs,
        unassigned_costs=computed.unassigned_costs,
        participant_count=computed.participant_count,
        fair_share=computed.fair_share,
        balances=computed.balances,
        transactions=transactions,
    )


def reconcile_event_settlement(event_id: int, session: Session) -> EventSettlement:
    """
    Re-runs the persisted pipeline after a contribution or membership change.

    Called by event_service and contribution_service inside the same request
    (and transaction) as the mutation, so the records never lag behind the
    contributions they were derived from.
    """
    return get_event_settlement(event_id, session, persist=True)


def toggle_settlement_status(
        event_id: int,
        debtor_id: str,
        creditor_id: str,
        session: Session,
) -> SettlementRecord:
    """
    Flips the paid flag of one settlement record.

    settled_at is stamped when the record becomes settled and cleared when
    it becomes unsettled. The record must already exist: a transfer has to
    be computed (GET settlement) before it can be marked as paid.

    An audit row is appended to the settlement activity log afterwards. That
    append is best-effort; its failure is logged and never fails the toggle.

    Raises:
        AppError(EVENT_NOT_FOUND, 404)       -- event does not exist.
        AppError(SETTLEMENT_NOT_FOUND, 404)  -- no record for this pair.
        AppError(STORAGE_CONFLICT, 503)      -- the flag could not be saved.
    """
    event = _get_event_or_404(event_id, session, lock=True)

    record = session.execute(
        select(SettlementRecord).where(
            SettlementRecord.event_id == event_id,
            SettlementRecord.debtor_id == debtor_id,
            SettlementRecord.creditor_id == creditor_id,
        )
    ).scalar_one_or_none()

    if record is None:
        raise AppError(
            ErrorCode.SETTLEMENT_NOT_FOUND,
            f"No settlement from {debtor_id} to {creditor_id} exists for event {event_id}.",
            404,
        )

    record.is_settled = not record.is_settled
    record.settled_at = _utcnow() if record.is_settled else None

    try:
        session.flush()
    except SQLAlchemyError as exc:
        raise _storage_conflict(event_id, exc, session) from exc

    _record_toggle_activity(event, record, session)
    return record


def _record_toggle_activity(event: Event, record: SettlementRecord, session: Session) -> None:
    """Writes the audit row for a toggle inside a SAVEPOINT; failures are logged only."""
    entry = {
        "event_id": event.id,
        "event_title": event.title,
        "debtor_id": record.debtor_id,
        "debtor_name": record.debtor.name,
        "creditor_id": record.creditor_id,
        "creditor_name": record.creditor.name,
        "amount": record.amount,
        "action": (
            SettlementAction.PAYMENT if record.is_settled
            else SettlementAction.CANCELLATION
        ),
    }
    try:
        with session.begin_nested():
            append_settlement_activity_log(entry, session)
    except SQLAlchemyError:
        logger.warning(
            "Could not append settlement activity log for event %s (%s -> %s)",
            event.id,
            record.debtor_id,
            record.creditor_id,
            exc_info=True,
        )


def list_event_settlements(session: Session) -> list[EventSettlement]:
    """
    Returns the settlement of every event that has at least one transfer,
    newest event first.

    Read-only (persist=False): every mutation has already reconciled its
    event, so the persisted paid flags are current.
    """
    event_ids = session.execute(
        select(Event.id).order_by(Event.date.desc(), Event.id.desc())
    ).scalars().all()

    settlements = []
    for event_id in event_ids:
        settlement = get_event_settlement(event_id, session, persist=False)
        if settlement.transactions:
            settlements.append(settlement)
    return settlements


def list_settlement_records(session: Session) -> list[SettlementRecord]:
    """Returns every persisted settlement record across all events."""
    stmt = (
        select(SettlementRecord)
        .order_by(SettlementRecord.event_id.asc(), SettlementRecord.id.asc())
    )
    return list(session.execute(stmt).scalars().all())


def list_settlement_activity_logs(limit: int, session: Session) -> list[SettlementActivityLog]:
    """Returns the newest `limit` audit rows, newest first."""
    stmt = (
        select(SettlementActivityLog)
        .order_by(SettlementActivityLog.created_at.desc(), SettlementActivityLog.id.desc())
        .limit(limit)
    )
    return list(session.execute(stmt).scalars().all())
