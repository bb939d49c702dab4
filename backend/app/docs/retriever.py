"""Segment retriever - ranked full-text search with a regex fallback."""

import logging
import re
import time
from typing import Protocol
from uuid import UUID

from sqlalchemy import func, literal_column, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.models import FTS_CONFIG, DocumentSegment
from backend.app.errors import InvalidArgumentError
from backend.app.models.common import SearchTier
from backend.app.models.documents import SearchResult, SegmentView
from backend.app.utils.logging import StructuredEventLogger
from backend.app.utils.metrics import PrometheusServiceMetrics

logger = logging.getLogger(__name__)

# Keywords this short are too common to narrow anything down
MIN_KEYWORD_LENGTH = 3

# Optionally schema-qualified, e.g. "english" or "pg_catalog.simple"
_TEXT_CONFIG_NAME = re.compile(r"[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?")


class RankedSearchUnavailable(Exception):
    """The ranked tier cannot run against this store."""


class RankedSearch(Protocol):
    """Relevance-scored search over one document's segments."""

    async def search(
        self, session: AsyncSession, document_id: UUID, query: str, limit: int
    ) -> list[DocumentSegment]:
        """Return up to ``limit`` segments, most relevant first.

        Raises:
            RankedSearchUnavailable: If the backing index cannot be used
            SQLAlchemyError: On query failure
        """
        ...


class PostgresFullTextSearch:
    """Ranked tier backed by PostgreSQL full-text search."""

    def __init__(self, text_config: str = FTS_CONFIG) -> None:
        if not _TEXT_CONFIG_NAME.fullmatch(text_config):
            raise InvalidArgumentError(f"invalid text search config: {text_config!r}")
        # Inlined as a constant so the expression matches idx_segment_content_fts
        self._config = literal_column(f"'{text_config}'::regconfig")

    async def search(
        self, session: AsyncSession, document_id: UUID, query: str, limit: int
    ) -> list[DocumentSegment]:
        """Match with ``plainto_tsquery`` and order by ``ts_rank``."""
        dialect = session.get_bind().dialect.name
        if dialect != "postgresql":
            raise RankedSearchUnavailable(f"full-text search not available on {dialect}")

        ts_vector = func.to_tsvector(self._config, DocumentSegment.content)
        ts_query = func.plainto_tsquery(self._config, query)

        stmt = (
            select(DocumentSegment)
            .where(
                DocumentSegment.document_id == document_id,
                ts_vector.bool_op("@@")(ts_query),
            )
            .order_by(func.ts_rank(ts_vector, ts_query).desc(), DocumentSegment.segment_index)
            .limit(limit)
        )

        result = await session.execute(stmt)
        return list(result.scalars().all())


def build_keyword_pattern(query: str) -> str | None:
    """Build the fallback regex from a free-text query.

    Whitespace-delimited keywords shorter than MIN_KEYWORD_LENGTH are
    dropped; the rest are escaped for literal matching and OR-ed together.

    Returns:
        Alternation pattern, or None when no keyword survives
    """
    keywords = [word for word in query.split() if len(word) >= MIN_KEYWORD_LENGTH]

    if not keywords:
        return None

    return "|".join(re.escape(keyword) for keyword in keywords)


class RetrievalEngine:
    """Two-tier search over a single document's segments.

    The ranked tier supplies relevance ordering when a full-text index
    exists. When it is unavailable, fails, or finds nothing, a keyword
    regex match runs instead and returns segments in reading order.
    """

    def __init__(
        self,
        ranked: RankedSearch | None = None,
        metrics: PrometheusServiceMetrics | None = None,
        event_logger: StructuredEventLogger | None = None,
    ) -> None:
        self._ranked = ranked or PostgresFullTextSearch()
        self._metrics = metrics or PrometheusServiceMetrics()
        self._events = event_logger or StructuredEventLogger()

    async def search(
        self,
        session: AsyncSession,
        document_id: UUID,
        query: str,
        limit: int = 5,
    ) -> SearchResult:
        """Find the segments of a document most relevant to a query.

        Never raises for storage problems: a failed tier degrades to fewer or
        no results.

        Args:
            session: Async database session
            document_id: Document to search within
            query: Free-text query
            limit: Maximum number of results

        Returns:
            SearchResult with segments and the tier that produced them

        Raises:
            InvalidArgumentError: If limit < 1
        """
        if limit < 1:
            raise InvalidArgumentError("limit must be at least 1")

        started = time.perf_counter()

        if not query.strip():
            return self._finish(document_id, query, SearchTier.none, [], started)

        segments = await self._ranked_tier(session, document_id, query, limit)
        if segments:
            return self._finish(document_id, query, SearchTier.ranked, segments, started)

        segments = await self._fallback_tier(session, document_id, query, limit)
        tier = SearchTier.fallback if segments else SearchTier.none
        return self._finish(document_id, query, tier, segments, started)

    async def _ranked_tier(
        self, session: AsyncSession, document_id: UUID, query: str, limit: int
    ) -> list[DocumentSegment]:
        try:
            return await self._ranked.search(session, document_id, query, limit)
        except RankedSearchUnavailable as e:
            logger.debug(f"[search] ranked tier unavailable: {e}")
            self._metrics.inc_ranked_failure("unavailable")
        except SQLAlchemyError as e:
            logger.warning(f"[search] ranked tier failed for document_id={document_id}: {e}")
            self._metrics.inc_ranked_failure(type(e).__name__)
            # Clear the aborted transaction before the fallback query
            await session.rollback()

        return []

    async def _fallback_tier(
        self, session: AsyncSession, document_id: UUID, query: str, limit: int
    ) -> list[DocumentSegment]:
        pattern = build_keyword_pattern(query)
        if pattern is None:
            return []

        stmt = (
            select(DocumentSegment)
            .where(
                DocumentSegment.document_id == document_id,
                # Inline flag is understood by both PostgreSQL and Python re
                DocumentSegment.content.regexp_match(f"(?i){pattern}"),
            )
            .order_by(DocumentSegment.segment_index)
            .limit(limit)
        )

        try:
            result = await session.execute(stmt)
        except SQLAlchemyError as e:
            logger.error(f"[search] fallback tier failed for document_id={document_id}: {e}")
            await session.rollback()
            return []

        return list(result.scalars().all())

    def _finish(
        self,
        document_id: UUID,
        query: str,
        tier: SearchTier,
        segments: list[DocumentSegment],
        started: float,
    ) -> SearchResult:
        latency_ms = (time.perf_counter() - started) * 1000
        self._metrics.record_search(tier.value, latency_ms)
        self._events.log_search(document_id, query, tier.value, len(segments), latency_ms)

        return SearchResult(
            segments=[SegmentView.model_validate(segment) for segment in segments],
            tier=tier,
        )
