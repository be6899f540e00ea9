"""Compliance records and audit events.

Revision ID: 001
Revises:
Create Date: 2025-07-02

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create the compliance_records and audit_events tables."""
    op.create_table(
        "compliance_records",
        sa.Column("client_id", sa.String(100), nullable=False),
        sa.Column("preferred_region", sa.String(2), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("dpa_status", sa.String(20), nullable=False),
        sa.Column("dpa_expiration", sa.DateTime(timezone=True), nullable=False),
        sa.Column("next_audit", sa.DateTime(timezone=True), nullable=False),
        sa.Column("next_review", sa.DateTime(timezone=True), nullable=False),
        sa.Column("compliance_score", sa.Integer(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column(
            "document",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.PrimaryKeyConstraint("client_id", name=op.f("pk_compliance_records")),
        sa.CheckConstraint(
            "compliance_score BETWEEN 0 AND 100",
            name=op.f("ck_compliance_records_score_range"),
        ),
    )
    op.create_index(
        op.f("ix_compliance_records_preferred_region"),
        "compliance_records",
        ["preferred_region"],
    )
    op.create_index(
        op.f("ix_compliance_records_dpa_expiration"),
        "compliance_records",
        ["dpa_expiration"],
    )
    op.create_index(
        op.f("ix_compliance_records_next_audit"),
        "compliance_records",
        ["next_audit"],
    )

    op.create_table(
        "audit_events",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("event_type", sa.String(50), nullable=False),
        sa.Column("user_id", sa.String(100), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("success", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("regulation", sa.String(20), nullable=True),
        sa.Column("threat_level", sa.String(20), nullable=False),
        sa.Column("resource_type", sa.String(20), nullable=True),
        sa.Column("resource_id", sa.String(200), nullable=True),
        sa.Column("archived", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("archived_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("retention_period_days", sa.Integer(), nullable=False),
        sa.Column("document", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_audit_events")),
        sa.CheckConstraint(
            "archived OR archived_at IS NULL",
            name=op.f("ck_audit_events_archived_at"),
        ),
    )
    op.create_index(
        op.f("ix_audit_events_event_type_timestamp"),
        "audit_events",
        ["event_type", sa.text("timestamp DESC")],
    )
    op.create_index(
        op.f("ix_audit_events_user_id_timestamp"),
        "audit_events",
        ["user_id", sa.text("timestamp DESC")],
    )
    op.create_index(
        op.f("ix_audit_events_timestamp"),
        "audit_events",
        [sa.text("timestamp DESC")],
    )
    op.create_index(
        op.f("ix_audit_events_unarchived"),
        "audit_events",
        ["timestamp"],
        postgresql_where=sa.text("NOT archived"),
    )


def downgrade() -> None:
    """Drop both tables."""
    op.drop_table("audit_events")
    op.drop_table("compliance_records")
