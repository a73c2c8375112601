"""
schemas/participant_schema.py — Marshmallow schemas for participants and items.

Validation responsibility:
  - This file: field types, lengths, non-blank names.
  - services/participant_service.py: existence lookups (404s).

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
           See extensions.py for the full explanation.
"""

from __future__ import annotations

from marshmallow import Schema, ValidationError, fields, validate


def _validate_non_empty_after_trim(value: str) -> None:
    """
    Raises ValidationError if the string is blank or contains only whitespace.
    Mirrors the DB CHECK(LENGTH(TRIM(name)) > 0) constraint at the API layer.
    """
    if not value.strip():
        raise ValidationError("This field must not be blank or contain only whitespace.")


class CreateParticipantSchema(Schema):
    """POST /participants"""

    name = fields.Str(
        required=True,
        validate=[
            validate.Length(max=100, error="name must be at most 100 characters."),
            _validate_non_empty_after_trim,
        ],
    )
    phone = fields.Str(
        load_default=None,
        allow_none=True,
        validate=validate.Length(max=32),
    )
    avatar = fields.Str(load_default=None, allow_none=True)


class CreateItemSchema(Schema):
    """POST /items"""

    name = fields.Str(
        required=True,
        validate=[
            validate.Length(max=100, error="name must be at most 100 characters."),
            _validate_non_empty_after_trim,
        ],
    )
    description = fields.Str(load_default=None, allow_none=True)
