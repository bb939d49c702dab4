"""PostgreSQL-only tests for the ranked full-text tier and counter locking."""

import asyncio
import uuid
from typing import Any

import pytest

from backend.app.db.engine import Store
from backend.app.db.models import Document, DocumentSegment
from backend.app.docs.retriever import PostgresFullTextSearch, RetrievalEngine
from backend.app.errors import QuotaExceededError
from backend.app.models.common import PlanTier, SearchTier
from backend.app.quota.ledger import QuotaLedger
from backend.app.quota.resolver import StaticPlanResolver
from backend.app.sessions.tracker import SessionTracker


async def _seed(store: Store, contents: list[str]) -> uuid.UUID:
    document_id = uuid.uuid4()
    async with store.session() as session:
        session.add(
            Document(
                document_id=document_id,
                owner_id="user-1",
                title="Moby Dick",
                author="Herman Melville",
                slug=f"moby-dick-{document_id.hex[:8]}",
                file_url="https://blob.example.com/moby.pdf",
                file_blob_key="moby.pdf",
                total_segments=len(contents),
            )
        )
        await session.flush()
        for index, content in enumerate(contents):
            session.add(
                DocumentSegment(
                    document_id=document_id,
                    owner_id="user-1",
                    segment_index=index,
                    content=content,
                    word_count=len(content.split()),
                )
            )
        await session.commit()
    return document_id


@pytest.mark.postgres
@pytest.mark.asyncio
async def test_ranked_tier_orders_by_relevance(postgres_store: Store) -> None:
    """Segments mentioning the query terms more often rank first."""
    document_id = await _seed(
        postgres_store,
        [
            "The ship left the harbour at dawn.",
            "The whale, the white whale, the whale that took his leg.",
            "A whale was sighted off the bow.",
        ],
    )
    engine = RetrievalEngine(ranked=PostgresFullTextSearch("english"))

    async with postgres_store.session() as session:
        result = await engine.search(session, document_id, "white whale", limit=5)

    assert result.tier == SearchTier.ranked
    assert result.segments[0].segment_index == 1


@pytest.mark.postgres
@pytest.mark.asyncio
async def test_ranked_miss_falls_back_to_keywords(postgres_store: Store) -> None:
    """Stop-word-only queries find nothing ranked and fall back."""
    document_id = await _seed(postgres_store, ["over the hills", "and far away"])
    engine = RetrievalEngine(ranked=PostgresFullTextSearch("english"))

    async with postgres_store.session() as session:
        result = await engine.search(session, document_id, "the and", limit=5)

    assert result.tier == SearchTier.fallback
    assert [s.segment_index for s in result.segments] == [0, 1]


@pytest.mark.postgres
@pytest.mark.asyncio
async def test_concurrent_session_starts_lock_counter(postgres_store: Store) -> None:
    """Row locking keeps racing starts within the monthly limit."""
    document_id = await _seed(postgres_store, ["content"])
    ledger = QuotaLedger(StaticPlanResolver({"user-1": PlanTier.free}))
    tracker = SessionTracker(ledger)

    async with postgres_store.session() as session:
        for _ in range(4):
            await tracker.start(session, "user-1", document_id)

    async def attempt() -> Any:
        async with postgres_store.session() as session:
            try:
                return await tracker.start(session, "user-1", document_id)
            except QuotaExceededError as e:
                return e

    results = await asyncio.gather(*(attempt() for _ in range(3)))

    assert sum(isinstance(r, QuotaExceededError) for r in results) == 2

    async with postgres_store.session() as session:
        assert (await ledger.usage(session, "user-1")).sessions_used == 5
