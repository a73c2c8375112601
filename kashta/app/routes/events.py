"""
routes/events.py — Event, membership and contribution route handlers.

Layer rules:
  - Parse, validate, call ONE service, commit, return envelope.
  - No business logic. No DB queries. No bare SQL.
  - Every mutation that touches contributions or membership reconciles the
    event's settlement records inside the service; the single commit here
    makes the mutation and the reconcile atomic.

Endpoints (base url_prefix=/api/v1):
  POST   /events                               → 201  create event
  GET    /events                               → 200  list events
  GET    /events/:id                           → 200  event + participants
  GET    /events/:id/can-delete                → 200  deletion guard result
  DELETE /events/:id                           → 200  delete (409 while records or costs remain)
  POST   /events/:id/participants              → 201  add participant
  DELETE /events/:id/participants/:pid         → 200  remove participant (cascade)
  GET    /events/:id/contributions             → 200  list contributions
  POST   /events/:id/contributions             → 201  create contribution
  PATCH  /contributions/:id                    → 200  edit contribution
  POST   /contributions/:id/unassign           → 200  reset to unclaimed
  DELETE /contributions/:id                    → 200  delete contribution
"""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from kashta.app.extensions import db
from kashta.app.models.contribution import Contribution
from kashta.app.models.event import Event
from kashta.app.models.event_participant import EventParticipant
from kashta.app.routes.participants import serialize_deletion_check
from kashta.app.schemas.contribution_schema import (
    CreateContributionSchema,
    PatchContributionSchema,
)
from kashta.app.schemas.event_schema import (
    AddEventParticipantSchema,
    CreateEventSchema,
)
from kashta.app.services import contribution_service, event_service

events_bp = Blueprint("events", __name__)


# ── Serialization helpers ──────────────────────────────────────────────────

def _serialize_event(e: Event) -> dict:
    return {
        "id": e.id,
        "title": e.title,
        "description": e.description,
        "location": e.location,
        "date": e.date.isoformat(),
        "end_date": e.end_date.isoformat() if e.end_date else None,
        "status": e.status.value,
        "created_at": e.created_at.isoformat(),
    }


def _serialize_membership(link: EventParticipant) -> dict:
    return {
        "event_id": link.event_id,
        "participant_id": link.participant_id,
        "name": link.participant.name,
        "role": link.role.value,
        "joined_at": link.joined_at.isoformat(),
    }


def _serialize_contribution(c: Contribution) -> dict:
    return {
        "id": c.id,
        "event_id": c.event_id,
        "item_id": c.item_id,
        "participant_id": c.participant_id,
        "quantity": c.quantity,
        "cost": str(c.cost),                     # unit price, string
        "amount": str(c.cost * c.quantity),      # quantity × cost
        "status": c.status.value,
        "notes": c.notes,
    }


# ── Events ─────────────────────────────────────────────────────────────────

@events_bp.route("/events/", methods=["POST"])
def create_event():
    data = CreateEventSchema().load(request.get_json(force=True) or {})
    event = event_service.create_event(data, session=db.session)
    db.session.commit()
    return jsonify({"data": _serialize_event(event), "warnings": []}), 201


@events_bp.route("/events/", methods=["GET"])
def list_events():
    events = event_service.list_events(session=db.session)
    return jsonify({"data": [_serialize_event(e) for e in events], "warnings": []}), 200


@events_bp.route("/events/<int:event_id>", methods=["GET"])
def get_event(event_id: int):
    event, links = event_service.get_event_detail(event_id, session=db.session)
    payload = _serialize_event(event)
    payload["participants"] = [_serialize_membership(link) for link in links]
    return jsonify({"data": payload, "warnings": []}), 200


@events_bp.route("/events/<int:event_id>/can-delete", methods=["GET"])
def can_delete_event(event_id: int):
    check = event_service.can_delete_event(event_id, session=db.session)
    return jsonify({"data": serialize_deletion_check(check), "warnings": []}), 200


@events_bp.route("/events/<int:event_id>", methods=["DELETE"])
def delete_event(event_id: int):
    """DELETE /events/:id — Refused with 409 while settlement records or costs remain."""
    event_service.delete_event(event_id, session=db.session)
    db.session.commit()
    return jsonify({"data": {"deleted": True}, "warnings": []}), 200


# ── Membership ─────────────────────────────────────────────────────────────

@events_bp.route("/events/<int:event_id>/participants", methods=["POST"])
def add_participant(event_id: int):
    data = AddEventParticipantSchema().load(request.get_json(force=True) or {})
    link = event_service.add_participant_to_event(
        event_id=event_id,
        participant_id=data["participant_id"],
        role=data["role"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": _serialize_membership(link), "warnings": []}), 201


@events_bp.route("/events/<int:event_id>/participants/<participant_id>", methods=["DELETE"])
def remove_participant(event_id: int, participant_id: str):
    removed = event_service.remove_participant_from_event(
        event_id=event_id,
        participant_id=participant_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify({
        "data": {"removed": True, "contributions_deleted": removed},
        "warnings": [],
    }), 200


# ── Contributions ──────────────────────────────────────────────────────────

@events_bp.route("/events/<int:event_id>/contributions", methods=["GET"])
def list_contributions(event_id: int):
    contributions = contribution_service.list_contributions(event_id, session=db.session)
    return jsonify({
        "data": [_serialize_contribution(c) for c in contributions],
        "warnings": [],
    }), 200


@events_bp.route("/events/<int:event_id>/contributions", methods=["POST"])
def create_contribution(event_id: int):
    data = CreateContributionSchema().load(request.get_json(force=True) or {})
    contribution = contribution_service.create_contribution(event_id, data, session=db.session)
    db.session.commit()
    return jsonify({"data": _serialize_contribution(contribution), "warnings": []}), 201


@events_bp.route("/contributions/<contribution_id>", methods=["PATCH"])
def update_contribution(contribution_id: str):
    data = PatchContributionSchema().load(request.get_json(force=True) or {})
    contribution = contribution_service.update_contribution(
        contribution_id, data, session=db.session,
    )
    db.session.commit()
    return jsonify({"data": _serialize_contribution(contribution), "warnings": []}), 200


@events_bp.route("/contributions/<contribution_id>/unassign", methods=["POST"])
def unassign_contribution(contribution_id: str):
    result = contribution_service.unassign_contribution(contribution_id, session=db.session)
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200


@events_bp.route("/contributions/<contribution_id>", methods=["DELETE"])
def delete_contribution(contribution_id: str):
    result = contribution_service.delete_contribution_and_prune(
        contribution_id, session=db.session,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200
