"""Initial schema — all tables, constraints, and indexes.

Revision: 001_initial_schema
Created:  2026-10-17

Append-only:
  This file must NEVER be edited after it has been applied to any database.
  If a schema change is required, create a NEW migration file.

Creation order:
  1. Tables in FK dependency order (participants, items, events
     → event_participants, contributions, settlement_records)
  2. settlement_activity_logs (no FKs; rows outlive the events they describe)
  3. Indexes

Enumerations (event status, role, contribution status, settlement action)
are VARCHAR(16) columns with CHECK constraints rather than PostgreSQL enum
types, matching the models' Enum(native_enum=False).

ON DELETE policies:
  event_participants.*          → CASCADE
  contributions.event_id        → CASCADE
  contributions.item_id         → RESTRICT  (cannot delete an item still used)
  contributions.participant_id  → SET NULL  (contribution becomes unassigned)
  settlement_records.*          → CASCADE
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# ── Alembic revision identifiers ──────────────────────────────────────────
revision: str = "001_initial_schema"
down_revision: str | None = None      # first migration — no parent
branch_labels: tuple | None = None
depends_on: tuple | None = None


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.func.now(),
    )


def upgrade() -> None:
    """Apply the full initial schema."""

    # ── Step 1: participants ───────────────────────────────────────────────

    op.create_table(
        "participants",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("avatar", sa.Text(), nullable=True),
        sa.Column("trip_count", sa.Integer(), nullable=False, server_default="0"),
        sa.PrimaryKeyConstraint("id", name="pk_participants"),
        sa.CheckConstraint(
            "LENGTH(TRIM(name)) > 0",
            name="ck_participants_name_nonempty",
        ),
        sa.CheckConstraint("trip_count >= 0", name="ck_participants_trip_count"),
    )

    # ── Step 2: items ──────────────────────────────────────────────────────

    op.create_table(
        "items",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_items"),
        sa.CheckConstraint("LENGTH(TRIM(name)) > 0", name="ck_items_name_nonempty"),
    )

    # ── Step 3: events ─────────────────────────────────────────────────────

    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="upcoming"),
        _created_at(),
        sa.PrimaryKeyConstraint("id", name="pk_events"),
        sa.CheckConstraint("LENGTH(TRIM(title)) > 0", name="ck_events_title_nonempty"),
        sa.CheckConstraint(
            "status IN ('upcoming', 'ongoing', 'completed', 'cancelled')",
            name="ck_events_status",
        ),
    )

    # ── Step 4: event_participants ─────────────────────────────────────────
    # UNIQUE(event_id, participant_id): a participant joins an event once.

    op.create_table(
        "event_participants",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "event_id",
            sa.Integer(),
            sa.ForeignKey("events.id", ondelete="CASCADE", name="fk_event_participants_event"),
            nullable=False,
        ),
        sa.Column(
            "participant_id",
            sa.String(36),
            sa.ForeignKey(
                "participants.id",
                ondelete="CASCADE",
                name="fk_event_participants_participant",
            ),
            nullable=False,
        ),
        sa.Column("role", sa.String(16), nullable=False, server_default="member"),
        sa.Column(
            "joined_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_event_participants"),
        sa.UniqueConstraint(
            "event_id",
            "participant_id",
            name="uq_event_participants_event_participant",
        ),
        sa.CheckConstraint("role IN ('organizer', 'member')", name="ck_event_participants_role"),
    )

    # ── Step 5: contributions ──────────────────────────────────────────────
    # participant_id NULL = unassigned; its cost is excluded from fair share.

    op.create_table(
        "contributions",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column(
            "event_id",
            sa.Integer(),
            sa.ForeignKey("events.id", ondelete="CASCADE", name="fk_contributions_event"),
            nullable=False,
        ),
        sa.Column(
            "item_id",
            sa.String(36),
            sa.ForeignKey("items.id", ondelete="RESTRICT", name="fk_contributions_item"),
            nullable=False,
        ),
        sa.Column(
            "participant_id",
            sa.String(36),
            sa.ForeignKey(
                "participants.id",
                ondelete="SET NULL",
                name="fk_contributions_participant",
            ),
            nullable=True,
        ),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("cost", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("notes", sa.Text(), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("id", name="pk_contributions"),
        sa.CheckConstraint("quantity > 0", name="ck_contributions_quantity_positive"),
        sa.CheckConstraint("cost >= 0", name="ck_contributions_cost_non_negative"),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'delivered')",
            name="ck_contributions_status",
        ),
    )

    # ── Step 6: settlement_records ─────────────────────────────────────────
    # One row per (event, debtor, creditor). settled_at is set iff is_settled.

    op.create_table(
        "settlement_records",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "event_id",
            sa.Integer(),
            sa.ForeignKey("events.id", ondelete="CASCADE", name="fk_settlement_records_event"),
            nullable=False,
        ),
        sa.Column(
            "debtor_id",
            sa.String(36),
            sa.ForeignKey(
                "participants.id",
                ondelete="CASCADE",
                name="fk_settlement_records_debtor",
            ),
            nullable=False,
        ),
        sa.Column(
            "creditor_id",
            sa.String(36),
            sa.ForeignKey(
                "participants.id",
                ondelete="CASCADE",
                name="fk_settlement_records_creditor",
            ),
            nullable=False,
        ),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("is_settled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("settled_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_settlement_records"),
        sa.UniqueConstraint(
            "event_id",
            "debtor_id",
            "creditor_id",
            name="uq_settlement_records_event_pair",
        ),
        sa.CheckConstraint("amount > 0", name="ck_settlement_records_amount_positive"),
        sa.CheckConstraint(
            "debtor_id <> creditor_id",
            name="ck_settlement_records_no_self_transfer",
        ),
        sa.CheckConstraint(
            "(is_settled AND settled_at IS NOT NULL) "
            "OR (NOT is_settled AND settled_at IS NULL)",
            name="ck_settlement_records_settled_at",
        ),
    )

    # ── Step 7: settlement_activity_logs ───────────────────────────────────
    # Snapshot columns, no FKs: the log survives deletion of what it names.

    op.create_table(
        "settlement_activity_logs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("event_id", sa.Integer(), nullable=True),
        sa.Column("event_title", sa.String(200), nullable=False),
        sa.Column("debtor_id", sa.String(36), nullable=False),
        sa.Column("debtor_name", sa.String(100), nullable=False),
        sa.Column("creditor_id", sa.String(36), nullable=False),
        sa.Column("creditor_name", sa.String(100), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("action", sa.String(16), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint("id", name="pk_settlement_activity_logs"),
        sa.CheckConstraint(
            "action IN ('payment', 'cancellation')",
            name="ck_settlement_activity_logs_action",
        ),
    )

    # ── Step 8: Indexes ────────────────────────────────────────────────────

    op.create_index("idx_event_participants_event", "event_participants", ["event_id"])
    op.create_index("idx_event_participants_participant", "event_participants", ["participant_id"])
    op.create_index("idx_contributions_event", "contributions", ["event_id"])
    op.create_index("idx_contributions_participant", "contributions", ["participant_id"])
    op.create_index("idx_settlement_records_event", "settlement_records", ["event_id"])
    op.create_index("idx_settlement_records_debtor", "settlement_records", ["debtor_id"])
    op.create_index("idx_settlement_records_creditor", "settlement_records", ["creditor_id"])
    op.create_index(
        "idx_settlement_activity_logs_event",
        "settlement_activity_logs",
        ["event_id"],
    )


def downgrade() -> None:
    """Drop everything created in upgrade(), in reverse dependency order."""
    op.drop_index("idx_settlement_activity_logs_event", table_name="settlement_activity_logs")
    op.drop_index("idx_settlement_records_creditor",    table_name="settlement_records")
    op.drop_index("idx_settlement_records_debtor",      table_name="settlement_records")
    op.drop_index("idx_settlement_records_event",       table_name="settlement_records")
    op.drop_index("idx_contributions_participant",      table_name="contributions")
    op.drop_index("idx_contributions_event",            table_name="contributions")
    op.drop_index("idx_event_participants_participant", table_name="event_participants")
    op.drop_index("idx_event_participants_event",       table_name="event_participants")

    op.drop_table("settlement_activity_logs")
    op.drop_table("settlement_records")
    op.drop_table("contributions")
    op.drop_table("event_participants")
    op.drop_table("events")
    op.drop_table("items")
    op.drop_table("participants")
