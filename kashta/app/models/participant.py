"""
models/participant.py — Participant table definition.

No business logic. No imports from services or routes.

Participants are global people records. They join events through the
event_participants junction table; `trip_count` is maintained by
event_service when a participant joins or leaves an event.
"""

from __future__ import annotations

import uuid

from sqlalchemy import CheckConstraint, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from kashta.app.extensions import db


def _new_uuid() -> str:
    return str(uuid.uuid4())


class Participant(db.Model):
    __tablename__ = "participants"

    __table_args__ = (
        CheckConstraint(
            "LENGTH(TRIM(name)) > 0",
            name="ck_participants_name_nonempty",
        ),
        CheckConstraint("trip_count >= 0", name="ck_participants_trip_count"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_uuid)

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)

    avatar: Mapped[str | None] = mapped_column(Text, nullable=True)

    trip_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
    )

    # ── Relationships ──────────────────────────────────────────────────────

    event_links: Mapped[list["EventParticipant"]] = relationship(  # noqa: F821
        "EventParticipant",
        back_populates="participant",
    )

    contributions: Mapped[list["Contribution"]] = relationship(  # noqa: F821
        "Contribution",
        back_populates="participant",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Participant id={self.id} name={self.name!r}>"
