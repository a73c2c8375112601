"""
models/event_participant.py — EventParticipant junction table definition.

No business logic. No imports from services or routes.

Membership in this table is what counts towards an event's participant_count
when fair shares are computed — a participant with no contributions still
owes their share.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from kashta.app.extensions import db


class EventRole(str, enum.Enum):
    ORGANIZER = "organizer"
    MEMBER    = "member"


class EventParticipant(db.Model):
    __tablename__ = "event_participants"

    __table_args__ = (
        # A participant can only join an event once.
        UniqueConstraint(
            "event_id",
            "participant_id",
            name="uq_event_participants_event_participant",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    event_id: Mapped[int] = mapped_column(
        ForeignKey("events.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    participant_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("participants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    role: Mapped[EventRole] = mapped_column(
        Enum(
            EventRole,
            name="event_role",
            native_enum=False,
            length=16,
            values_callable=lambda cls: [m.value for m in cls],
        ),
        nullable=False,
        default=EventRole.MEMBER,
        server_default=EventRole.MEMBER.value,
    )

    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # ── Relationships ──────────────────────────────────────────────────────

    event: Mapped["Event"] = relationship(  # noqa: F821
        "Event",
        back_populates="participant_links",
    )

    participant: Mapped["Participant"] = relationship(  # noqa: F821
        "Participant",
        back_populates="event_links",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<EventParticipant event_id={self.event_id} "
            f"participant_id={self.participant_id} "
            f"role={self.role}>"
        )
