"""
routes/participants.py — Participant and item route handlers.

Layer rules:
  - Parse, validate, call ONE service, commit, return envelope.
  - No business logic. No DB queries. No bare SQL.

Endpoints:
  POST   /participants                 → 201  create participant
  GET    /participants                 → 200  list participants
  GET    /participants/:id             → 200  get participant
  GET    /participants/:id/can-delete  → 200  deletion guard result
  DELETE /participants/:id             → 200  delete (409 while debts are unpaid)
  POST   /items                        → 201  create item
  GET    /items                        → 200  list items
"""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from kashta.app.extensions import db
from kashta.app.models.item import Item
from kashta.app.models.participant import Participant
from kashta.app.schemas.participant_schema import (
    CreateItemSchema,
    CreateParticipantSchema,
)
from kashta.app.services import participant_service
from kashta.app.services.types import DeletionCheck

participants_bp = Blueprint("participants", __name__)
items_bp = Blueprint("items", __name__)


def serialize_participant(p: Participant) -> dict:
    return {
        "id": p.id,
        "name": p.name,
        "phone": p.phone,
        "avatar": p.avatar,
        "trip_count": p.trip_count,
    }


def serialize_item(i: Item) -> dict:
    return {"id": i.id, "name": i.name, "description": i.description}


def serialize_deletion_check(check: DeletionCheck) -> dict:
    return {"can_delete": check.can_delete, "code": check.code, "reason": check.reason}


@participants_bp.route("/", methods=["POST"])
def create_participant():
    data = CreateParticipantSchema().load(request.get_json(force=True) or {})
    participant = participant_service.create_participant(data, session=db.session)
    db.session.commit()
    return jsonify({"data": serialize_participant(participant), "warnings": []}), 201


@participants_bp.route("/", methods=["GET"])
def list_participants():
    participants = participant_service.list_participants(session=db.session)
    return jsonify({
        "data": [serialize_participant(p) for p in participants],
        "warnings": [],
    }), 200


@participants_bp.route("/<participant_id>", methods=["GET"])
def get_participant(participant_id: str):
    participant = participant_service.get_participant_or_404(participant_id, session=db.session)
    return jsonify({"data": serialize_participant(participant), "warnings": []}), 200


@participants_bp.route("/<participant_id>/can-delete", methods=["GET"])
def can_delete_participant(participant_id: str):
    check = participant_service.can_delete_participant(participant_id, session=db.session)
    return jsonify({"data": serialize_deletion_check(check), "warnings": []}), 200


@participants_bp.route("/<participant_id>", methods=["DELETE"])
def delete_participant(participant_id: str):
    """DELETE /participants/:id — Refused with 409 while unpaid debts remain."""
    result = participant_service.delete_participant(participant_id, session=db.session)
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200


@items_bp.route("/", methods=["POST"])
def create_item():
    data = CreateItemSchema().load(request.get_json(force=True) or {})
    item = participant_service.create_item(data, session=db.session)
    db.session.commit()
    return jsonify({"data": serialize_item(item), "warnings": []}), 201


@items_bp.route("/", methods=["GET"])
def list_items():
    items = participant_service.list_items(session=db.session)
    return jsonify({"data": [serialize_item(i) for i in items], "warnings": []}), 200
