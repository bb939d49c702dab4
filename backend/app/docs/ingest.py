"""Document ingestion - admit, segment and persist a document."""

import logging
from collections.abc import Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.engine import begin_write
from backend.app.docs.segmenter import (
    DEFAULT_OVERLAP_SIZE,
    DEFAULT_SEGMENT_SIZE,
    generate_slug,
    segment_pages,
    segment_text,
)
from backend.app.docs.store import DocumentStore
from backend.app.errors import AuthorizationError, InvalidArgumentError, ServiceError
from backend.app.models.common import ResourceKind
from backend.app.models.documents import (
    DocumentAlreadyExists,
    DocumentCreated,
    DocumentInfo,
)
from backend.app.quota.ledger import QuotaLedger

logger = logging.getLogger(__name__)


async def ingest_document(
    *,
    session: AsyncSession,
    ledger: QuotaLedger,
    requester_id: str | None,
    owner_id: str,
    title: str,
    author: str,
    file_url: str,
    file_blob_key: str,
    file_size: int = 0,
    persona: str | None = None,
    cover_url: str | None = None,
    cover_blob_key: str | None = None,
    pages: Sequence[str] | None = None,
    text: str | None = None,
    segment_size: int = DEFAULT_SEGMENT_SIZE,
    overlap_size: int = DEFAULT_OVERLAP_SIZE,
) -> DocumentCreated | DocumentAlreadyExists:
    """Ingest a document: quota admission, segmentation and persistence.

    A title whose slug is already taken returns the existing document without
    touching quota. Otherwise the quota reservation, the document row and all
    of its segments are written in a single transaction and committed once.

    Args:
        session: Async database session
        ledger: Quota ledger used for admission
        requester_id: Authenticated identity making the request
        owner_id: Identity that will own the document
        title: Document title (slug source)
        author: Document author
        file_url: Reference to the stored source file
        file_blob_key: Blob storage key of the source file
        file_size: Source file size in bytes
        persona: Optional voice/persona tag
        cover_url: Optional cover image reference
        cover_blob_key: Optional cover image blob key
        pages: Decoded text per page (1-based page numbers are attached)
        text: Unpaginated text, used when ``pages`` is not given
        segment_size: Words per segment
        overlap_size: Words shared by consecutive segments

    Returns:
        DocumentCreated, or DocumentAlreadyExists for a duplicate slug

    Raises:
        InvalidArgumentError: Bad segmentation parameters or no content
        AuthorizationError: Requester missing or not the owner
        QuotaExceededError: Owner is at the plan's document limit
    """
    if pages is None and text is None:
        raise InvalidArgumentError("Either pages or text must be provided")

    # Segment first so bad parameters are rejected before any I/O
    if pages is not None:
        segments = segment_pages(pages, segment_size, overlap_size)
    else:
        segments = segment_text(text or "", segment_size, overlap_size)

    slug = generate_slug(title)
    store = DocumentStore(session)

    existing = await store.find_by_slug(slug)
    if existing is not None:
        logger.info(f"[ingest] slug={slug} already exists, returning existing document")
        return DocumentAlreadyExists(document=DocumentInfo.model_validate(existing))

    # End the read so neither it nor the write lock spans the plan lookup
    await session.rollback()

    if requester_id is None or requester_id != owner_id:
        raise AuthorizationError("Documents can only be created by their owner")

    plan = await ledger.resolve_plan(owner_id)
    await begin_write(session)

    try:
        await ledger.reserve(session, owner_id, ResourceKind.documents, plan=plan)
    except ServiceError:
        await session.rollback()
        raise

    try:
        document = await store.create_document(
            owner_id=owner_id,
            title=title,
            author=author,
            slug=slug,
            file_url=file_url,
            file_blob_key=file_blob_key,
            file_size=file_size,
            persona=persona,
            cover_url=cover_url,
            cover_blob_key=cover_blob_key,
        )
    except IntegrityError:
        # Lost a race with a concurrent ingestion of the same title
        await session.rollback()
        existing = await store.get_by_slug(slug)
        logger.info(f"[ingest] slug={slug} created concurrently, returning existing document")
        return DocumentAlreadyExists(document=DocumentInfo.model_validate(existing))

    count = await store.save_segments(document.document_id, owner_id, segments, commit=False)
    await session.commit()

    logger.info(
        f"[ingest] document_id={document.document_id} slug={slug} "
        f"owner_id={owner_id} segments={count}"
    )

    return DocumentCreated(
        document=DocumentInfo.model_validate(document),
        segments_created=count,
    )
