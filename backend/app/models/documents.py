"""Document domain models."""

from datetime import datetime
from typing import Annotated, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from backend.app.models.common import SearchTier


class DocumentInfo(BaseModel):
    """Document metadata (without segments)."""

    model_config = ConfigDict(from_attributes=True)

    document_id: UUID
    owner_id: str
    title: str
    author: str
    persona: str | None = None
    slug: str
    file_url: str
    file_blob_key: str
    file_size: int = 0
    cover_url: str | None = None
    cover_blob_key: str | None = None
    total_segments: int = 0
    created_at: datetime


class SegmentView(BaseModel):
    """One stored segment as returned to readers and search callers."""

    model_config = ConfigDict(from_attributes=True)

    segment_id: UUID
    document_id: UUID
    segment_index: int  # 0-based, global within the document
    page_number: int | None = None
    content: str
    word_count: int


class DocumentCreated(BaseModel):
    """Ingestion created a new document."""

    status: Literal["created"] = "created"
    document: DocumentInfo
    segments_created: int


class DocumentAlreadyExists(BaseModel):
    """A document with the same slug already existed; nothing was written."""

    status: Literal["already_exists"] = "already_exists"
    document: DocumentInfo


IngestOutcome = Annotated[DocumentCreated | DocumentAlreadyExists, Field(discriminator="status")]


class SearchResult(BaseModel):
    """Segments matching a query, plus the tier that produced them."""

    segments: list[SegmentView]
    tier: SearchTier
