"""
schemas/contribution_schema.py — Marshmallow schemas for contribution endpoints.

Validation responsibility:
  - This file:
      - quantity is a positive integer
      - cost is a non-negative Decimal with at most 2 decimal places
        (INVALID_AMOUNT_PRECISION — rejected, never rounded)
      - status is one of pending / confirmed / delivered
      - PATCH bodies must change at least one field
  - services/contribution_service.py:
      - ITEM_NOT_FOUND / PARTICIPANT_NOT_FOUND (404) — require DB lookups
      - enrolling a payer from outside the event — requires membership lookup

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
"""

from __future__ import annotations

from decimal import Decimal

from marshmallow import (
    Schema,
    ValidationError,
    fields,
    validate,
    validates_schema,
)

from kashta.app.errors import ErrorCode
from kashta.app.models.contribution import ContributionStatus


def _validate_unit_cost(value: Decimal) -> None:
    """
    Validates a unit cost:
      - Must be zero or greater (items are often added with cost 0 and
        priced later).
      - Must have at most 2 decimal places.

    Decimal.as_tuple().exponent is the scale as a negative integer:
      Decimal("10.123").as_tuple().exponent == -3  → 3 dp → REJECT
      Decimal("10.12").as_tuple().exponent  == -2  → 2 dp → accept
    """
    if value < Decimal("0"):
        raise ValidationError("Cost must not be negative.")
    if value.as_tuple().exponent < -2:
        raise ValidationError(ErrorCode.INVALID_AMOUNT_PRECISION)


_STATUS_VALUES = [s.value for s in ContributionStatus]


class CreateContributionSchema(Schema):
    """POST /events/:id/contributions"""

    item_id = fields.Str(
        required=True,
        validate=validate.Length(min=1, max=36),
    )

    # None = unassigned (nobody has claimed the item yet).
    participant_id = fields.Str(
        load_default=None,
        allow_none=True,
        validate=validate.Length(min=1, max=36),
    )

    quantity = fields.Int(
        load_default=1,
        strict=True,
        validate=validate.Range(min=1, error="quantity must be a positive integer."),
    )

    cost = fields.Decimal(
        load_default=Decimal("0.00"),
        validate=_validate_unit_cost,
    )

    status = fields.Str(
        load_default=ContributionStatus.PENDING.value,
        validate=validate.OneOf(_STATUS_VALUES),
    )

    notes = fields.Str(load_default=None, allow_none=True)


class PatchContributionSchema(Schema):
    """
    PATCH /contributions/:id

    Every field is optional; only the keys present are applied. Sending
    participant_id: null unassigns the payer but keeps the cost.
    """

    participant_id = fields.Str(
        allow_none=True,
        validate=validate.Length(min=1, max=36),
    )
    quantity = fields.Int(
        strict=True,
        validate=validate.Range(min=1, error="quantity must be a positive integer."),
    )
    cost = fields.Decimal(validate=_validate_unit_cost)
    status = fields.Str(validate=validate.OneOf(_STATUS_VALUES))
    notes = fields.Str(allow_none=True)

    @validates_schema
    def validate_not_empty(self, data, **kwargs):
        if not data:
            raise ValidationError("At least one field must be provided.")
