"""
models/settlement_activity_log.py — Append-only settlement audit trail.

One row is written every time a settlement record is toggled. Rows are never
updated or deleted by the application.

There are intentionally NO foreign keys: event title and participant names
are snapshotted at write time so the history stays readable after the event
or the participants are deleted.
"""

from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Enum, Integer, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column

from kashta.app.extensions import db


class SettlementAction(str, enum.Enum):
    PAYMENT      = "payment"       # transfer marked as paid
    CANCELLATION = "cancellation"  # paid mark withdrawn


class SettlementActivityLog(db.Model):
    __tablename__ = "settlement_activity_logs"

    id: Mapped[int] = mapped_column(primary_key=True)

    event_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    event_title: Mapped[str] = mapped_column(String(200), nullable=False)

    debtor_id: Mapped[str] = mapped_column(String(36), nullable=False)
    debtor_name: Mapped[str] = mapped_column(String(100), nullable=False)

    creditor_id: Mapped[str] = mapped_column(String(36), nullable=False)
    creditor_name: Mapped[str] = mapped_column(String(100), nullable=False)

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    action: Mapped[SettlementAction] = mapped_column(
        Enum(
            SettlementAction,
            name="settlement_action",
            native_enum=False,
            length=16,
            values_callable=lambda cls: [m.value for m in cls],
        ),
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<SettlementActivityLog id={self.id} "
            f"event_id={self.event_id} "
            f"action={self.action} "
            f"amount={self.amount}>"
        )
