"""Document store - persist documents and their segments."""

import logging
import uuid
from collections.abc import Sequence

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.models import Document, DocumentSegment
from backend.app.docs.segmenter import TextSegment
from backend.app.errors import (
    AuthorizationError,
    ConflictError,
    InvalidArgumentError,
    NotFoundError,
)
from backend.app.utils.metrics import PrometheusServiceMetrics

logger = logging.getLogger(__name__)


class DocumentStore:
    """SQL-backed store for documents and segments.

    Methods flush inside the session's transaction; ``save_segments``
    commits by default so it can be used as a standalone unit of work.
    """

    def __init__(
        self, session: AsyncSession, metrics: PrometheusServiceMetrics | None = None
    ) -> None:
        self._session = session
        self._metrics = metrics or PrometheusServiceMetrics()

    async def create_document(
        self,
        *,
        owner_id: str,
        title: str,
        author: str,
        slug: str,
        file_url: str,
        file_blob_key: str,
        file_size: int = 0,
        persona: str | None = None,
        cover_url: str | None = None,
        cover_blob_key: str | None = None,
    ) -> Document:
        """Insert a document row (not committed).

        Raises:
            IntegrityError: If the slug is already taken
        """
        document = Document(
            document_id=uuid.uuid4(),
            owner_id=owner_id,
            title=title,
            author=author,
            persona=persona,
            slug=slug,
            file_url=file_url,
            file_blob_key=file_blob_key,
            file_size=file_size,
            cover_url=cover_url,
            cover_blob_key=cover_blob_key,
            total_segments=0,
        )
        self._session.add(document)
        await self._session.flush()
        await self._session.refresh(document)
        return document

    async def get_document(self, document_id: uuid.UUID) -> Document:
        """Fetch a document by id.

        Raises:
            NotFoundError: If no such document exists
        """
        document = await self._session.get(Document, document_id)
        if document is None:
            raise NotFoundError(f"Document {document_id} not found")
        return document

    async def find_by_slug(self, slug: str) -> Document | None:
        result = await self._session.execute(select(Document).where(Document.slug == slug))
        return result.scalar_one_or_none()

    async def get_by_slug(self, slug: str) -> Document:
        """Fetch a document by slug.

        Raises:
            NotFoundError: If no document has this slug
        """
        document = await self.find_by_slug(slug)
        if document is None:
            raise NotFoundError(f"Document '{slug}' not found")
        return document

    async def list_documents(self, search: str | None = None) -> list[Document]:
        """List documents newest first, optionally filtered by title or author.

        The search term is matched literally and case-insensitively.
        """
        stmt = select(Document)

        if search:
            stmt = stmt.where(
                or_(
                    Document.title.icontains(search, autoescape=True),
                    Document.author.icontains(search, autoescape=True),
                )
            )

        stmt = stmt.order_by(Document.created_at.desc(), Document.title)

        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def count_documents(self, owner_id: str) -> int:
        """Number of documents an owner holds (their lifetime document usage)."""
        result = await self._session.execute(
            select(func.count()).select_from(Document).where(Document.owner_id == owner_id)
        )
        return int(result.scalar_one())

    async def count_segments(self, document_id: uuid.UUID) -> int:
        result = await self._session.execute(
            select(func.count())
            .select_from(DocumentSegment)
            .where(DocumentSegment.document_id == document_id)
        )
        return int(result.scalar_one())

    async def save_segments(
        self,
        document_id: uuid.UUID,
        owner_id: str,
        segments: Sequence[TextSegment],
        *,
        commit: bool = True,
    ) -> int:
        """Persist a document's segments as one batch.

        Validates everything before writing: the document must exist and
        belong to ``owner_id``, indices must be exactly 0..n-1, and the
        document must not hold segments yet. The batch and the
        ``total_segments`` update succeed or fail together.

        Args:
            document_id: Parent document
            owner_id: Owner identity; must match the document's owner
            segments: Segments with global indices
            commit: Commit the transaction (False when part of a larger unit)

        Returns:
            Number of segments written

        Raises:
            NotFoundError: Unknown document
            AuthorizationError: Owner mismatch
            InvalidArgumentError: Indices not contiguous from 0
            ConflictError: Document already has segments, or a uniqueness
                violation was raised by the database
        """
        document = await self.get_document(document_id)

        if document.owner_id != owner_id:
            raise AuthorizationError("Segments can only be saved by the document owner")

        indices = [segment.segment_index for segment in segments]
        if indices != list(range(len(segments))):
            raise InvalidArgumentError("segment_index values must be contiguous starting at 0")

        if await self.count_segments(document_id) > 0:
            raise ConflictError(f"Document {document_id} already has segments")

        logger.info(f"[save_segments] document_id={document_id} count={len(segments)}")

        self._session.add_all(
            [
                DocumentSegment(
                    segment_id=uuid.uuid4(),
                    document_id=document_id,
                    owner_id=owner_id,
                    segment_index=segment.segment_index,
                    page_number=segment.page_number,
                    content=segment.content,
                    word_count=segment.word_count,
                )
                for segment in segments
            ]
        )

        # Last write wins; ingestion runs once per document
        document.total_segments = len(segments)

        try:
            await self._session.flush()
            if commit:
                await self._session.commit()
        except IntegrityError as e:
            await self._session.rollback()
            logger.warning(f"[save_segments] document_id={document_id} conflict: {e.orig}")
            raise ConflictError(f"Segments for document {document_id} already exist") from e

        self._metrics.add_segments(len(segments))

        return len(segments)

    async def fetch_segments(
        self, document_id: uuid.UUID, start: int = 0, end: int | None = None
    ) -> list[DocumentSegment]:
        """Fetch segments with ``start <= segment_index < end`` in reading order."""
        if start < 0 or (end is not None and end < start):
            raise InvalidArgumentError("Segment range must satisfy 0 <= start <= end")

        stmt = select(DocumentSegment).where(
            DocumentSegment.document_id == document_id,
            DocumentSegment.segment_index >= start,
        )
        if end is not None:
            stmt = stmt.where(DocumentSegment.segment_index < end)

        stmt = stmt.order_by(DocumentSegment.segment_index)

        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def fetch_page(self, document_id: uuid.UUID, page_number: int) -> list[DocumentSegment]:
        """Fetch the segments cut from one page, in reading order."""
        result = await self._session.execute(
            select(DocumentSegment)
            .where(
                DocumentSegment.document_id == document_id,
                DocumentSegment.page_number == page_number,
            )
            .order_by(DocumentSegment.segment_index)
        )
        return list(result.scalars().all())
