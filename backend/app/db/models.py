"""SQLAlchemy ORM models for documents, segments and usage accounting."""

import uuid
from datetime import datetime

from sqlalchemy import (
    DDL,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    Uuid,
    event,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

# Text search configuration baked into the full-text index expression.
# Must match Settings.search_text_config for the planner to use the index.
FTS_CONFIG = "english"


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class Document(Base):
    """Document table - one ingested long-form document."""

    __tablename__ = "document"
    __table_args__ = (
        UniqueConstraint("slug", name="uq_document_slug"),
        Index("idx_document_owner", "owner_id"),
    )

    document_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_id: Mapped[str] = mapped_column(Text, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    author: Mapped[str] = mapped_column(Text, nullable=False)
    persona: Mapped[str | None] = mapped_column(Text, nullable=True)
    slug: Mapped[str] = mapped_column(Text, nullable=False)
    file_url: Mapped[str] = mapped_column(Text, nullable=False)
    file_blob_key: Mapped[str] = mapped_column(Text, nullable=False)
    file_size: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    cover_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    cover_blob_key: Mapped[str | None] = mapped_column(Text, nullable=True)
    total_segments: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    # Relationships
    segments: Mapped[list["DocumentSegment"]] = relationship(
        "DocumentSegment",
        back_populates="document",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    voice_sessions: Mapped[list["VoiceSession"]] = relationship(
        "VoiceSession", back_populates="document"
    )


class DocumentSegment(Base):
    """Document segment table - one retrievable, overlapping chunk."""

    __tablename__ = "document_segment"
    __table_args__ = (
        UniqueConstraint("document_id", "segment_index", name="uq_segment_document_index"),
        Index("idx_segment_document_page", "document_id", "page_number"),
    )

    segment_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    document_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("document.document_id", ondelete="CASCADE"), nullable=False
    )
    owner_id: Mapped[str] = mapped_column(Text, nullable=False)
    segment_index: Mapped[int] = mapped_column(Integer, nullable=False)
    page_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    word_count: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    # Relationships
    document: Mapped["Document"] = relationship("Document", back_populates="segments")


# Full-text index for the ranked search tier; PostgreSQL only
event.listen(
    DocumentSegment.__table__,
    "after_create",
    DDL(
        "CREATE INDEX IF NOT EXISTS idx_segment_content_fts ON document_segment "
        f"USING gin (to_tsvector('{FTS_CONFIG}', content))"
    ).execute_if(dialect="postgresql"),
)


class VoiceSession(Base):
    """Voice session table - one billed usage event."""

    __tablename__ = "voice_session"
    __table_args__ = (Index("idx_session_owner_period", "owner_id", "billing_period_start"),)

    session_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_id: Mapped[str] = mapped_column(Text, nullable=False)
    document_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("document.document_id"), nullable=False
    )
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    ended_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    duration_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    billing_period_start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    # Relationships
    document: Mapped["Document"] = relationship("Document", back_populates="voice_sessions")


class QuotaCounter(Base):
    """Quota counter table - admission serialization point.

    One row per (owner, resource, period). Admission locks the row, counts
    live usage and records the admitted total, so concurrent admissions for
    the same owner and resource are applied one at a time.
    """

    __tablename__ = "quota_counter"
    __table_args__ = (
        UniqueConstraint("owner_id", "resource", "period_key", name="uq_quota_owner_resource"),
    )

    counter_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_id: Mapped[str] = mapped_column(Text, nullable=False)
    resource: Mapped[str] = mapped_column(Text, nullable=False)
    period_key: Mapped[str] = mapped_column(Text, nullable=False)
    used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
