"""
models/event.py — Event table definition.

No business logic. No imports from services or routes.

An event is one outing. Its contributions and event-participant rows are
owned by it (ON DELETE CASCADE); its settlement records are too. The
settlement activity log deliberately has NO foreign key to events so the
audit trail survives event deletion.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Enum, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from kashta.app.extensions import db


class EventStatus(str, enum.Enum):
    UPCOMING  = "upcoming"
    ONGOING   = "ongoing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    """Ensure SQLAlchemy stores enum values (e.g., 'upcoming'), not names ('UPCOMING')."""
    return [member.value for member in enum_cls]


class Event(db.Model):
    __tablename__ = "events"

    __table_args__ = (
        CheckConstraint(
            "LENGTH(TRIM(title)) > 0",
            name="ck_events_title_nonempty",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    title: Mapped[str] = mapped_column(String(200), nullable=False)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    location: Mapped[str | None] = mapped_column(String(255), nullable=True)

    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # VARCHAR + CHECK rather than a native enum type so the same model works
    # on PostgreSQL and on the SQLite test database.
    status: Mapped[EventStatus] = mapped_column(
        Enum(
            EventStatus,
            name="event_status",
            native_enum=False,
            length=16,
            values_callable=_enum_values,
        ),
        nullable=False,
        default=EventStatus.UPCOMING,
        server_default=EventStatus.UPCOMING.value,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # ── Relationships ──────────────────────────────────────────────────────

    participant_links: Mapped[list["EventParticipant"]] = relationship(  # noqa: F821
        "EventParticipant",
        back_populates="event",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    contributions: Mapped[list["Contribution"]] = relationship(  # noqa: F821
        "Contribution",
        back_populates="event",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    settlement_records: Mapped[list["SettlementRecord"]] = relationship(  # noqa: F821
        "SettlementRecord",
        back_populates="event",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Event id={self.id} title={self.title!r} status={self.status}>"
