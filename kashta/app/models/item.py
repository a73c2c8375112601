"""
models/item.py — Item table definition.

Items are the shared supplies catalogue (tent, charcoal, water ...).
A contribution pairs one item with one event.
"""

from __future__ import annotations

import uuid

from sqlalchemy import CheckConstraint, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from kashta.app.extensions import db


class Item(db.Model):
    __tablename__ = "items"

    __table_args__ = (
        CheckConstraint(
            "LENGTH(TRIM(name)) > 0",
            name="ck_items_name_nonempty",
        ),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    contributions: Mapped[list["Contribution"]] = relationship(  # noqa: F821
        "Contribution",
        back_populates="item",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Item id={self.id} name={self.name!r}>"
