"""
schemas/event_schema.py — Marshmallow schemas for events and event membership.

Validation responsibility:
  - This file: field types, enum values, date ordering.
  - services/event_service.py: existence (404) and membership (409) checks.

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
"""

from __future__ import annotations

from datetime import timezone

from marshmallow import (
    Schema,
    ValidationError,
    fields,
    validate,
    validates_schema,
)

from kashta.app.models.event import EventStatus
from kashta.app.models.event_participant import EventRole


class CreateEventSchema(Schema):
    """POST /events"""

    title = fields.Str(
        required=True,
        validate=validate.Length(min=1, max=200),
    )
    description = fields.Str(load_default=None, allow_none=True)
    location = fields.Str(
        load_default=None,
        allow_none=True,
        validate=validate.Length(max=255),
    )
    date = fields.AwareDateTime(required=True, default_timezone=timezone.utc)
    end_date = fields.AwareDateTime(
        load_default=None,
        allow_none=True,
        default_timezone=timezone.utc,
    )
    status = fields.Str(
        load_default=EventStatus.UPCOMING.value,
        validate=validate.OneOf([s.value for s in EventStatus]),
    )

    @validates_schema
    def validate_title_and_dates(self, data, **kwargs):
        if not data["title"].strip():
            raise ValidationError(
                "This field must not be blank or contain only whitespace.",
                field_name="title",
            )
        end_date = data.get("end_date")
        if end_date is not None and end_date < data["date"]:
            raise ValidationError(
                "end_date must not be before date.",
                field_name="end_date",
            )


class AddEventParticipantSchema(Schema):
    """POST /events/:id/participants"""

    participant_id = fields.Str(
        required=True,
        validate=validate.Length(min=1, max=36),
    )
    role = fields.Str(
        load_default=EventRole.MEMBER.value,
        validate=validate.OneOf([r.value for r in EventRole]),
    )
