"""
routes/settlements.py — Settlement route handlers.

Layer rules:
  - Parse, call ONE service, commit, return envelope.
  - No business logic. No DB queries. No bare SQL.

GET /events/:id/settlement is a read that WRITES: every read recomputes the
transfers and reconciles the settlement records, so it commits. Reading twice
without a contribution change in between returns identical transactions.

Endpoints (base url_prefix=/api/v1):
  GET   /events/:id/settlement                     → 200  recompute + reconcile
  PATCH /events/:id/settlements/:debtor/:creditor  → 200  toggle paid flag
  GET   /settlements                               → 200  per-event settlements with transfers
  GET   /settlement-records                        → 200  all persisted settlement records
  GET   /settlement-activity-log?limit=N           → 200  audit trail, newest first
"""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from kashta.app.errors import AppError, ErrorCode
from kashta.app.extensions import db
from kashta.app.models.settlement_activity_log import SettlementActivityLog
from kashta.app.models.settlement_record import SettlementRecord
from kashta.app.services import settlement_service
from kashta.app.services.balance_service import to_money
from kashta.app.services.types import EventSettlement

settlements_bp = Blueprint("settlements", __name__)


# ── Serialization helpers ──────────────────────────────────────────────────
# Money leaves the API as 2-dp strings, never JSON numbers.

def _money(value) -> str:
    return str(to_money(value))


def _iso(value) -> str | None:
    return value.isoformat() if value is not None else None


def serialize_event_settlement(s: EventSettlement) -> dict:
    return {
        "event_id": s.event_id,
        "event_title": s.event_title,
        "total_spent": _money(s.total_spent),
        "assigned_costs": _money(s.assigned_costs),
        "unassigned_costs": _money(s.unassigned_costs),
        "participant_count": s.participant_count,
        "fair_share": _money(s.fair_share),
        "balances": [
            {
                "participant_id": b.participant_id,
                "name": b.name,
                "total_paid": _money(b.total_paid),
                "fair_share": _money(b.fair_share),
                "balance": _money(b.balance),
                "role": b.role.value,
            }
            for b in s.balances
        ],
        "transactions": [
            {
                "debtor_id": t.debtor_id,
                "debtor_name": t.debtor_name,
                "creditor_id": t.creditor_id,
                "creditor_name": t.creditor_name,
                "amount": _money(t.amount),
                "is_settled": t.is_settled,
                "settled_at": _iso(t.settled_at),
            }
            for t in s.transactions
        ],
    }


def serialize_settlement_record(r: SettlementRecord) -> dict:
    return {
        "id": r.id,
        "event_id": r.event_id,
        "debtor_id": r.debtor_id,
        "debtor_name": r.debtor.name,
        "creditor_id": r.creditor_id,
        "creditor_name": r.creditor.name,
        "amount": _money(r.amount),
        "is_settled": r.is_settled,
        "settled_at": _iso(r.settled_at),
        "created_at": _iso(r.created_at),
        "updated_at": _iso(r.updated_at),
    }


def _serialize_activity_log(log: SettlementActivityLog) -> dict:
    return {
        "id": log.id,
        "event_id": log.event_id,
        "event_title": log.event_title,
        "debtor_id": log.debtor_id,
        "debtor_name": log.debtor_name,
        "creditor_id": log.creditor_id,
        "creditor_name": log.creditor_name,
        "amount": _money(log.amount),
        "action": log.action.value,
        "created_at": _iso(log.created_at),
    }


def _parse_limit() -> int:
    """Parses ?limit= within [1, SETTLEMENT_LOG_MAX_LIMIT]."""
    default = current_app.config["SETTLEMENT_LOG_DEFAULT_LIMIT"]
    maximum = current_app.config["SETTLEMENT_LOG_MAX_LIMIT"]
    raw = request.args.get("limit")
    if raw is None:
        return default
    try:
        limit = int(raw)
    except ValueError:
        limit = 0
    if limit < 1 or limit > maximum:
        raise AppError(
            ErrorCode.INVALID_FIELD,
            f"limit must be an integer between 1 and {maximum}.",
            400,
            field="limit",
        )
    return limit


# ── Route handlers ─────────────────────────────────────────────────────────

@settlements_bp.route("/events/<int:event_id>/settlement", methods=["GET"])
def get_event_settlement(event_id: int):
    """GET /events/:id/settlement — Balances and reconciled transfers for one event."""
    settlement = settlement_service.get_event_settlement(event_id, session=db.session)
    db.session.commit()
    return jsonify({"data": serialize_event_settlement(settlement), "warnings": []}), 200


@settlements_bp.route(
    "/events/<int:event_id>/settlements/<debtor_id>/<creditor_id>",
    methods=["PATCH"],
)
def toggle_settlement(event_id: int, debtor_id: str, creditor_id: str):
    """PATCH /events/:id/settlements/:debtor/:creditor — Flip the paid flag."""
    record = settlement_service.toggle_settlement_status(
        event_id=event_id,
        debtor_id=debtor_id,
        creditor_id=creditor_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": serialize_settlement_record(record), "warnings": []}), 200


@settlements_bp.route("/settlements", methods=["GET"])
def list_settlements():
    """GET /settlements — Settlement of every event that still has transfers, newest first."""
    settlements = settlement_service.list_event_settlements(session=db.session)
    return jsonify({
        "data": [serialize_event_settlement(s) for s in settlements],
        "warnings": [],
    }), 200


@settlements_bp.route("/settlement-records", methods=["GET"])
def list_settlement_records():
    records = settlement_service.list_settlement_records(session=db.session)
    return jsonify({
        "data": [serialize_settlement_record(r) for r in records],
        "warnings": [],
    }), 200


@settlements_bp.route("/settlement-activity-log", methods=["GET"])
def list_settlement_activity_log():
    logs = settlement_service.list_settlement_activity_logs(_parse_limit(), session=db.session)
    return jsonify({
        "data": [_serialize_activity_log(log) for log in logs],
        "warnings": [],
    }), 200
