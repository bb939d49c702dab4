"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-19

Creates:
- document (unique slug)
- document_segment (unique document_id + segment_index, GIN full-text index on PostgreSQL)
- voice_session
- quota_counter (unique owner_id + resource + period_key)
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create all tables."""
    # document table
    op.create_table(
        "document",
        sa.Column("document_id", sa.Uuid(), primary_key=True),
        sa.Column("owner_id", sa.Text(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("author", sa.Text(), nullable=False),
        sa.Column("persona", sa.Text(), nullable=True),
        sa.Column("slug", sa.Text(), nullable=False),
        sa.Column("file_url", sa.Text(), nullable=False),
        sa.Column("file_blob_key", sa.Text(), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=False),
        sa.Column("cover_url", sa.Text(), nullable=True),
        sa.Column("cover_blob_key", sa.Text(), nullable=True),
        sa.Column("total_segments", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("slug", name="uq_document_slug"),
    )
    op.create_index("idx_document_owner", "document", ["owner_id"])

    # document_segment table
    op.create_table(
        "document_segment",
        sa.Column("segment_id", sa.Uuid(), primary_key=True),
        sa.Column("document_id", sa.Uuid(), nullable=False),
        sa.Column("owner_id", sa.Text(), nullable=False),
        sa.Column("segment_index", sa.Integer(), nullable=False),
        sa.Column("page_number", sa.Integer(), nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("word_count", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["document_id"], ["document.document_id"], ondelete="CASCADE"),
        sa.UniqueConstraint("document_id", "segment_index", name="uq_segment_document_index"),
    )
    op.create_index("idx_segment_document_page", "document_segment", ["document_id", "page_number"])

    if op.get_bind().dialect.name == "postgresql":
        op.execute(
            "CREATE INDEX IF NOT EXISTS idx_segment_content_fts ON document_segment "
            "USING gin (to_tsvector('english', content))"
        )

    # voice_session table
    op.create_table(
        "voice_session",
        sa.Column("session_id", sa.Uuid(), primary_key=True),
        sa.Column("owner_id", sa.Text(), nullable=False),
        sa.Column("document_id", sa.Uuid(), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ended_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration_seconds", sa.Integer(), nullable=False),
        sa.Column("billing_period_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["document_id"], ["document.document_id"]),
    )
    op.create_index(
        "idx_session_owner_period", "voice_session", ["owner_id", "billing_period_start"]
    )

    # quota_counter table
    op.create_table(
        "quota_counter",
        sa.Column("counter_id", sa.Uuid(), primary_key=True),
        sa.Column("owner_id", sa.Text(), nullable=False),
        sa.Column("resource", sa.Text(), nullable=False),
        sa.Column("period_key", sa.Text(), nullable=False),
        sa.Column("used", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("owner_id", "resource", "period_key", name="uq_quota_owner_resource"),
    )


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table("quota_counter")
    op.drop_index("idx_session_owner_period", table_name="voice_session")
    op.drop_table("voice_session")
    op.execute("DROP INDEX IF EXISTS idx_segment_content_fts")
    op.drop_index("idx_segment_document_page", table_name="document_segment")
    op.drop_table("document_segment")
    op.drop_index("idx_document_owner", table_name="document")
    op.drop_table("document")
