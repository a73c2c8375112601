"""
routes/debts.py — Cross-event debt route handlers.

Read-only: the aggregator recomputes every event it touches without writing
settlement records, so nothing here commits.

Endpoints (base url_prefix=/api/v1/debt):
  GET /debt                       → 200  summaries for every participant
  GET /debt/:participant_id       → 200  full portfolio (404 if unknown)
  GET /debt/:participant_id/summary → 200  summary, data=null if unknown
"""

from __future__ import annotations

from flask import Blueprint, jsonify

from kashta.app.extensions import db
from kashta.app.services import debt_service
from kashta.app.services.balance_service import to_money
from kashta.app.services.types import ParticipantDebtPortfolio, ParticipantDebtSummary

debts_bp = Blueprint("debts", __name__)


def _money(value) -> str:
    return str(to_money(value))


def _serialize_summary(s: ParticipantDebtSummary) -> dict:
    return {
        "participant": {"id": s.participant_id, "name": s.participant_name},
        "total_paid": _money(s.total_paid),
        "total_owed": _money(s.total_owed),
        "total_owed_to_you": _money(s.total_owed_to_you),
        "net_position": _money(s.net_position),
        "role": s.role.value,
        "event_count": s.event_count,
    }


def _serialize_portfolio(p: ParticipantDebtPortfolio) -> dict:
    payload = {
        "participant": {"id": p.participant_id, "name": p.participant_name},
        "total_paid": _money(p.total_paid),
        "total_owed": _money(p.total_owed),
        "total_owed_to_you": _money(p.total_owed_to_you),
        "net_position": _money(p.net_position),
        "role": p.role.value,
        "event_count": p.event_count,
    }
    payload["counterparty_debts"] = [
        {
            "counterparty": {"id": cp.counterparty_id, "name": cp.counterparty_name},
            "net_amount": _money(cp.net_amount),
            "outstanding_amount": _money(cp.outstanding_amount),
            "events": [
                {
                    "event_id": ev.event_id,
                    "event_title": ev.event_title,
                    "amount": _money(ev.amount),
                    "is_settled": ev.is_settled,
                }
                for ev in cp.events
            ],
        }
        for cp in p.counterparty_debts
    ]
    payload["event_breakdown"] = [
        {
            "event": {
                "id": eb.event_id,
                "title": eb.event_title,
                "date": eb.event_date.isoformat() if eb.event_date else None,
            },
            "paid": _money(eb.paid),
            "fair_share": _money(eb.fair_share),
            "balance": _money(eb.balance),
            "role": eb.role.value,
        }
        for eb in p.event_breakdown
    ]
    return payload


@debts_bp.route("/", methods=["GET"])
def list_debt_summaries():
    summaries = debt_service.get_debt_summaries(session=db.session)
    return jsonify({"data": [_serialize_summary(s) for s in summaries], "warnings": []}), 200


@debts_bp.route("/<participant_id>", methods=["GET"])
def get_debt_portfolio(participant_id: str):
    portfolio = debt_service.get_debt_portfolio(participant_id, session=db.session)
    return jsonify({"data": _serialize_portfolio(portfolio), "warnings": []}), 200


@debts_bp.route("/<participant_id>/summary", methods=["GET"])
def get_debt_summary(participant_id: str):
    summary = debt_service.get_debt_summary_for_participant(participant_id, session=db.session)
    data = _serialize_summary(summary) if summary is not None else None
    return jsonify({"data": data, "warnings": []}), 200
