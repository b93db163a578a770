"""Create version store, version index and purge audit tables.

Revision ID: 001
Revises:
Create Date: 2026-10-19

Tables: record_versions, record_version_index, purge_runs
"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB

revision = "001"
down_revision = None
branch_labels = None
depends_on = None

_STATUS_CHECK = "status IN ('DRAFT', 'FINAL')"
_PREVIOUS_CHECK = (
    "(version_number = 1 AND previous_version_number IS NULL) OR "
    "(version_number > 1 AND previous_version_number < version_number)"
)


def _metadata_columns() -> list[sa.Column]:
    return [
        sa.Column("record_id", sa.String(64), nullable=False),
        sa.Column("version_number", sa.Integer, nullable=False),
        sa.Column("schema_version_id", sa.String(64), nullable=False),
        sa.Column("status", sa.String(10), nullable=False),
        sa.Column("author", sa.String(255), nullable=False),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.Column("previous_version_number", sa.Integer),
        sa.Column("change_note", sa.Text),
    ]


def upgrade() -> None:
    """Create versioning and purge audit tables."""
    op.create_table(
        "record_versions",
        *_metadata_columns(),
        sa.Column("payload", JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.PrimaryKeyConstraint("record_id", "version_number", name="pk_record_versions"),
        sa.CheckConstraint("version_number >= 1", name="ck_record_versions_version"),
        sa.CheckConstraint(_STATUS_CHECK, name="ck_record_versions_status"),
        sa.CheckConstraint(_PREVIOUS_CHECK, name="ck_record_versions_previous"),
    )

    op.create_table(
        "record_version_index",
        *_metadata_columns(),
        sa.Column("payload_size", sa.Integer, nullable=False, server_default="0"),
        sa.PrimaryKeyConstraint("record_id", "version_number", name="pk_record_version_index"),
        sa.CheckConstraint(_STATUS_CHECK, name="ck_record_version_index_status"),
    )

    # Purge candidate query and per-status counts
    op.create_index(
        "idx_record_version_index_status_record",
        "record_version_index",
        ["status", "record_id"],
    )
    # Latest-records listing
    op.create_index(
        "idx_record_version_index_created_at",
        "record_version_index",
        ["created_at"],
    )

    op.create_table(
        "purge_runs",
        sa.Column("id", sa.BigInteger, sa.Identity(), primary_key=True),
        sa.Column("purge_id", sa.String(32), nullable=False),
        sa.Column("start_time", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("end_time", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("duration_ms", sa.BigInteger, nullable=False),
        sa.Column("status", sa.String(10), nullable=False),
        sa.Column("trigger", sa.String(16), nullable=False, server_default="scheduled"),
        sa.Column("records_processed", sa.Integer, nullable=False, server_default="0"),
        sa.Column("versions_deleted", sa.Integer, nullable=False, server_default="0"),
        sa.Column("versions_retained", sa.Integer, nullable=False, server_default="0"),
        sa.Column("processed_record_ids", JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("details", JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("error_message", sa.Text),
        sa.CheckConstraint(
            "status IN ('SUCCESS', 'PARTIAL', 'FAILED')", name="ck_purge_runs_status"
        ),
    )

    op.create_index("idx_purge_runs_purge_id", "purge_runs", ["purge_id"])
    op.create_index("idx_purge_runs_start_time", "purge_runs", ["start_time"])


def downgrade() -> None:
    """Drop versioning and purge audit tables."""
    op.drop_table("purge_runs")
    op.drop_table("record_version_index")
    op.drop_table("record_versions")
