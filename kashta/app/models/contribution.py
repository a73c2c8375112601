"""
models/contribution.py — Contribution table definition.

Columns and constraints only. No business logic.

Key design points:
  - `cost` is the UNIT price; the amount a contribution adds to the event is
    quantity × cost. Numeric(10, 2) — never Float.
  - `participant_id` NULL means nobody has claimed the item yet. Such rows
    count towards an event's unassigned costs and are excluded from fair-share
    division.
  - Contributions are owned by their event (ON DELETE CASCADE). Removing a
    participant from an event deletes their contributions explicitly in
    event_service, not through a database trigger.
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from kashta.app.extensions import db


class ContributionStatus(str, enum.Enum):
    PENDING   = "pending"
    CONFIRMED = "confirmed"
    DELIVERED = "delivered"


class Contribution(db.Model):
    __tablename__ = "contributions"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_contributions_quantity_positive"),
        CheckConstraint("cost >= 0", name="ck_contributions_cost_non_negative"),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )

    event_id: Mapped[int] = mapped_column(
        ForeignKey("events.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    item_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("items.id", ondelete="RESTRICT"),
        nullable=False,
    )

    # NULL = unassigned.
    participant_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("participants.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    quantity: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
        server_default="1",
    )

    cost: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        default=Decimal("0.00"),
        server_default="0",
    )

    status: Mapped[ContributionStatus] = mapped_column(
        Enum(
            ContributionStatus,
            name="contribution_status",
            native_enum=False,
            length=16,
            values_callable=lambda cls: [m.value for m in cls],
        ),
        nullable=False,
        default=ContributionStatus.PENDING,
        server_default=ContributionStatus.PENDING.value,
    )

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # ── Relationships ──────────────────────────────────────────────────────

    event: Mapped["Event"] = relationship(  # noqa: F821
        "Event",
        back_populates="contributions",
    )

    item: Mapped["Item"] = relationship(  # noqa: F821
        "Item",
        back_populates="contributions",
    )

    participant: Mapped["Participant | None"] = relationship(  # noqa: F821
        "Participant",
        back_populates="contributions",
    )

    @property
    def is_assigned(self) -> bool:
        """True if a participant has claimed this contribution."""
        return self.participant_id is not None

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Contribution id={self.id} "
            f"event_id={self.event_id} "
            f"participant_id={self.participant_id} "
            f"quantity={self.quantity} cost={self.cost}>"
        )
