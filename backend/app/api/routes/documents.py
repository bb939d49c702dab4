"""Document endpoints - ingestion, listing, segment reads and search."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.api.auth import get_current_context
from backend.app.api.deps import get_app_settings, get_quota_ledger, get_retrieval_engine
from backend.app.config import Settings
from backend.app.db.context import RequestContext
from backend.app.db.engine import begin_write, get_session
from backend.app.docs.ingest import ingest_document
from backend.app.docs.retriever import RetrievalEngine
from backend.app.docs.segmenter import TextSegment
from backend.app.docs.store import DocumentStore
from backend.app.models.documents import (
    DocumentCreated,
    DocumentInfo,
    IngestOutcome,
    SearchResult,
    SegmentView,
)
from backend.app.quota.ledger import QuotaLedger

router = APIRouter(prefix="/documents", tags=["documents"])


class CreateDocumentRequest(BaseModel):
    """Request body for POST /documents.

    Carries the text already decoded from the uploaded file, one string per
    page, or a single unpaginated ``text``.
    """

    title: str = Field(..., min_length=1, max_length=200)
    author: str = Field(..., min_length=1, max_length=200)
    persona: str | None = Field(None, max_length=100, description="Voice/persona tag")
    file_url: str = Field(..., min_length=1)
    file_blob_key: str = Field(..., min_length=1)
    file_size: int = Field(0, ge=0)
    cover_url: str | None = None
    cover_blob_key: str | None = None
    owner_id: str | None = Field(None, description="Defaults to the caller")
    pages: list[str] | None = Field(None, description="Decoded text per page")
    text: str | None = Field(None, description="Unpaginated document text")


class DocumentListResponse(BaseModel):
    """Response for GET /documents."""

    documents: list[DocumentInfo]


class SegmentIn(BaseModel):
    """One segment in a save-segments request."""

    content: str = Field(..., min_length=1)
    segment_index: int = Field(..., ge=0)
    page_number: int | None = Field(None, ge=1)


class SaveSegmentsRequest(BaseModel):
    """Request body for POST /documents/{document_id}/segments."""

    segments: list[SegmentIn]


class SaveSegmentsResponse(BaseModel):
    """Response for POST /documents/{document_id}/segments."""

    segments_created: int


class SegmentListResponse(BaseModel):
    """Response for segment range and page reads."""

    segments: list[SegmentView]


@router.post("", response_model=IngestOutcome, status_code=status.HTTP_201_CREATED)
async def create_document(
    request: CreateDocumentRequest,
    response: Response,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    session: Annotated[AsyncSession, Depends(get_session)],
    ledger: Annotated[QuotaLedger, Depends(get_quota_ledger)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> IngestOutcome:
    """Ingest a document with automatic segmentation.

    Returns 201 with the new document, or 200 with the existing document
    when the title's slug is already taken.
    """
    outcome = await ingest_document(
        session=session,
        ledger=ledger,
        requester_id=ctx.user_id,
        owner_id=request.owner_id or ctx.user_id,
        title=request.title,
        author=request.author,
        persona=request.persona,
        file_url=request.file_url,
        file_blob_key=request.file_blob_key,
        file_size=request.file_size,
        cover_url=request.cover_url,
        cover_blob_key=request.cover_blob_key,
        pages=request.pages,
        text=request.text,
        segment_size=settings.segment_size,
        overlap_size=settings.segment_overlap,
    )

    if not isinstance(outcome, DocumentCreated):
        response.status_code = status.HTTP_200_OK

    return outcome


@router.get("", response_model=DocumentListResponse)
async def list_documents(
    session: Annotated[AsyncSession, Depends(get_session)],
    search: Annotated[str | None, Query(max_length=200)] = None,
) -> DocumentListResponse:
    """List documents, newest first, optionally filtered by title/author."""
    documents = await DocumentStore(session).list_documents(search)
    return DocumentListResponse(
        documents=[DocumentInfo.model_validate(document) for document in documents]
    )


@router.get("/{slug}", response_model=DocumentInfo)
async def get_document_by_slug(
    slug: str,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> DocumentInfo:
    """Fetch a document by slug."""
    document = await DocumentStore(session).get_by_slug(slug)
    return DocumentInfo.model_validate(document)


@router.post(
    "/{document_id}/segments",
    response_model=SaveSegmentsResponse,
    status_code=status.HTTP_201_CREATED,
)
async def save_segments(
    document_id: UUID,
    request: SaveSegmentsRequest,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    session: Annotated[AsyncSession, Depends(get_session)],
) -> SaveSegmentsResponse:
    """Persist segments produced by a client-side decoder.

    Word counts are derived from the content.
    """
    segments = [
        TextSegment(
            content=segment.content,
            segment_index=segment.segment_index,
            word_count=len(segment.content.split()),
            page_number=segment.page_number,
        )
        for segment in request.segments
    ]

    await begin_write(session)
    count = await DocumentStore(session).save_segments(document_id, ctx.user_id, segments)
    return SaveSegmentsResponse(segments_created=count)


@router.get("/{document_id}/segments", response_model=SegmentListResponse)
async def list_segments(
    document_id: UUID,
    session: Annotated[AsyncSession, Depends(get_session)],
    start: Annotated[int, Query(ge=0)] = 0,
    end: Annotated[int | None, Query(ge=0)] = None,
) -> SegmentListResponse:
    """Fetch a range of segments in reading order."""
    store = DocumentStore(session)
    await store.get_document(document_id)

    segments = await store.fetch_segments(document_id, start, end)
    return SegmentListResponse(
        segments=[SegmentView.model_validate(segment) for segment in segments]
    )


@router.get("/{document_id}/pages/{page_number}", response_model=SegmentListResponse)
async def get_page(
    document_id: UUID,
    page_number: int,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> SegmentListResponse:
    """Fetch the segments of one page."""
    store = DocumentStore(session)
    await store.get_document(document_id)

    segments = await store.fetch_page(document_id, page_number)
    return SegmentListResponse(
        segments=[SegmentView.model_validate(segment) for segment in segments]
    )


@router.get("/{document_id}/search", response_model=SearchResult)
async def search_segments(
    document_id: UUID,
    session: Annotated[AsyncSession, Depends(get_session)],
    retrieval: Annotated[RetrievalEngine, Depends(get_retrieval_engine)],
    settings: Annotated[Settings, Depends(get_app_settings)],
    query: Annotated[str, Query(min_length=1, max_length=500)],
    limit: Annotated[int | None, Query(ge=1)] = None,
) -> SearchResult:
    """Search a document's segments.

    Degrades to fewer or no results rather than failing.
    """
    effective_limit = min(limit or settings.search_default_limit, settings.search_max_limit)
    return await retrieval.search(session, document_id, query, effective_limit)
