"""
models/settlement_record.py — SettlementRecord table definition.

No business logic. No imports from services or routes.

A settlement record is one persisted transfer obligation produced by debt
minimisation: "debtor pays creditor `amount` for this event". The transfer
list itself is recomputed on every read; only the amount and the paid flag
live here.

Key design points:
  - UNIQUE(event_id, debtor_id, creditor_id): at most one record per triple.
    settlement_service.reconcile_settlement_records() relies on it.
  - `amount` is overwritten on every reconcile; `is_settled`/`settled_at`
    are preserved for as long as the triple keeps being produced.
  - settled_at IS NOT NULL exactly when is_settled is true (CHECK below).
  - Owned by the event (ON DELETE CASCADE). Participant FKs cascade too —
    a record naming a deleted participant is meaningless.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    UniqueConstraint,
    false,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from kashta.app.extensions import db


class SettlementRecord(db.Model):
    __tablename__ = "settlement_records"

    __table_args__ = (
        UniqueConstraint(
            "event_id",
            "debtor_id",
            "creditor_id",
            name="uq_settlement_records_event_pair",
        ),
        CheckConstraint("amount > 0", name="ck_settlement_records_amount_positive"),
        CheckConstraint(
            "debtor_id <> creditor_id",
            name="ck_settlement_records_no_self_transfer",
        ),
        CheckConstraint(
            "(is_settled AND settled_at IS NOT NULL) "
            "OR (NOT is_settled AND settled_at IS NULL)",
            name="ck_settlement_records_settled_at",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    event_id: Mapped[int] = mapped_column(
        ForeignKey("events.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    debtor_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("participants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    creditor_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("participants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    is_settled: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
    )

    settled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        onupdate=func.now(),
    )

    # ── Relationships ──────────────────────────────────────────────────────

    event: Mapped["Event"] = relationship(  # noqa: F821
        "Event",
        back_populates="settlement_records",
    )

    debtor: Mapped["Participant"] = relationship(  # noqa: F821
        "Participant",
        foreign_keys=[debtor_id],
    )

    creditor: Mapped["Participant"] = relationship(  # noqa: F821
        "Participant",
        foreign_keys=[creditor_id],
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<SettlementRecord id={self.id} "
            f"event_id={self.event_id} "
            f"from={self.debtor_id} "
            f"to={self.creditor_id} "
            f"amount={self.amount} "
            f"settled={self.is_settled}>"
        )
