"""Integration tests for the document store."""

import time
import uuid
from typing import Any

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.engine import Store, begin_write
from backend.app.docs.segmenter import TextSegment, split_into_segments
from backend.app.docs.store import DocumentStore
from backend.app.errors import (
    AuthorizationError,
    ConflictError,
    InvalidArgumentError,
    NotFoundError,
)


def _segments(*contents: str, page_number: int | None = None) -> list[TextSegment]:
    return [
        TextSegment(
            content=content,
            segment_index=index,
            word_count=len(content.split()),
            page_number=page_number,
        )
        for index, content in enumerate(contents)
    ]


async def _create(
    session: AsyncSession, slug: str = "moby-dick", owner_id: str = "user-1"
) -> uuid.UUID:
    store = DocumentStore(session)
    document = await store.create_document(
        owner_id=owner_id,
        title="Moby Dick",
        author="Herman Melville",
        slug=slug,
        file_url="https://blob.example.com/moby.pdf",
        file_blob_key="moby.pdf",
        file_size=2048,
    )
    await session.commit()
    return document.document_id


@pytest.mark.asyncio
async def test_save_segments_sets_total(session: AsyncSession) -> None:
    """Saving segments persists them and records the count on the document."""
    document_id = await _create(session)
    store = DocumentStore(session)

    count = await store.save_segments(document_id, "user-1", _segments("one two", "two three"))

    assert count == 2
    document = await store.get_document(document_id)
    assert document.total_segments == 2
    assert await store.count_segments(document_id) == 2


@pytest.mark.asyncio
async def test_save_segments_twice_conflicts(session: AsyncSession) -> None:
    """A document's segments are written exactly once."""
    document_id = await _create(session)
    store = DocumentStore(session)
    await store.save_segments(document_id, "user-1", _segments("one", "two"))

    with pytest.raises(ConflictError):
        await store.save_segments(document_id, "user-1", _segments("three"))

    assert await store.count_segments(document_id) == 2


@pytest.mark.asyncio
async def test_save_segments_requires_contiguous_indices(session: AsyncSession) -> None:
    """Gapped or unordered indices are rejected before writing."""
    document_id = await _create(session)
    store = DocumentStore(session)
    gapped = [
        TextSegment(content="a", segment_index=0, word_count=1),
        TextSegment(content="b", segment_index=2, word_count=1),
    ]

    with pytest.raises(InvalidArgumentError):
        await store.save_segments(document_id, "user-1", gapped)

    assert await store.count_segments(document_id) == 0


@pytest.mark.asyncio
async def test_save_segments_owner_mismatch(session: AsyncSession) -> None:
    """Only the owner may attach segments."""
    document_id = await _create(session)

    with pytest.raises(AuthorizationError):
        await DocumentStore(session).save_segments(document_id, "intruder", _segments("x"))


@pytest.mark.asyncio
async def test_save_segments_unknown_document(session: AsyncSession) -> None:
    """Saving against a missing document is NotFound."""
    with pytest.raises(NotFoundError):
        await DocumentStore(session).save_segments(uuid.uuid4(), "user-1", _segments("x"))


@pytest.mark.asyncio
async def test_fetch_segments_range_in_reading_order(session: AsyncSession) -> None:
    """Range reads are half-open and ordered by index."""
    document_id = await _create(session)
    store = DocumentStore(session)
    text = " ".join(f"w{i}" for i in range(40))
    await store.save_segments(document_id, "user-1", split_into_segments(text, 10, 2))

    middle = await store.fetch_segments(document_id, 1, 3)
    everything = await store.fetch_segments(document_id)

    assert [s.segment_index for s in middle] == [1, 2]
    assert [s.segment_index for s in everything] == list(range(len(everything)))
    assert everything[0].content.startswith("w0 w1")


@pytest.mark.asyncio
async def test_fetch_segments_invalid_range(session: AsyncSession) -> None:
    """Ranges with end before start are rejected."""
    with pytest.raises(InvalidArgumentError):
        await DocumentStore(session).fetch_segments(uuid.uuid4(), 5, 2)


@pytest.mark.asyncio
async def test_fetch_page(session: AsyncSession) -> None:
    """Page reads return only that page's segments."""
    document_id = await _create(session)
    store = DocumentStore(session)
    segments = [
        TextSegment(content="page one a", segment_index=0, word_count=3, page_number=1),
        TextSegment(content="page one b", segment_index=1, word_count=3, page_number=1),
        TextSegment(content="page two", segment_index=2, word_count=2, page_number=2),
    ]
    await store.save_segments(document_id, "user-1", segments)

    page_one = await store.fetch_page(document_id, 1)
    page_three = await store.fetch_page(document_id, 3)

    assert [s.content for s in page_one] == ["page one a", "page one b"]
    assert page_three == []


@pytest.mark.asyncio
async def test_get_by_slug(session: AsyncSession) -> None:
    """Slug lookups find the document or raise NotFound."""
    document_id = await _create(session, slug="white-whale")
    store = DocumentStore(session)

    assert (await store.get_by_slug("white-whale")).document_id == document_id
    assert await store.find_by_slug("missing") is None
    with pytest.raises(NotFoundError):
        await store.get_by_slug("missing")


@pytest.mark.asyncio
async def test_list_documents_search_is_literal(store: Store) -> None:
    """Search matches title or author case-insensitively and literally."""
    async with store.session() as session:
        documents = DocumentStore(session)
        for slug, title, author in [
            ("dune", "Dune", "Frank Herbert"),
            ("emma", "Emma", "Jane Austen"),
            ("odd", "100% Pure_Data", "Anon"),
        ]:
            await documents.create_document(
                owner_id="user-1",
                title=title,
                author=author,
                slug=slug,
                file_url=f"https://blob.example.com/{slug}.pdf",
                file_blob_key=f"{slug}.pdf",
            )
        await session.commit()

    async with store.session() as session:
        documents = DocumentStore(session)

        assert len(await documents.list_documents()) == 3
        assert [d.title for d in await documents.list_documents("austen")] == ["Emma"]
        assert [d.title for d in await documents.list_documents("DUNE")] == ["Dune"]
        assert [d.title for d in await documents.list_documents("0% P")] == ["100% Pure_Data"]
        assert await documents.list_documents("e_a") == []


@pytest.mark.asyncio
async def test_count_documents_per_owner(session: AsyncSession) -> None:
    """Document counts are scoped to the owner."""
    await _create(session, slug="one", owner_id="user-1")
    await _create(session, slug="two", owner_id="user-1")
    await _create(session, slug="three", owner_id="user-2")

    store = DocumentStore(session)

    assert await store.count_documents("user-1") == 2
    assert await store.count_documents("user-2") == 1
    assert await store.count_documents("nobody") == 0


@pytest.mark.asyncio
async def test_reads_proceed_while_writer_holds_lock(store: Store, seed_document: Any) -> None:
    """Only write units of work take SQLite's write lock; readers are not queued behind it."""
    document_id = await seed_document(segments=["alpha beta", "gamma delta"])

    async with store.session() as writer:
        await begin_write(writer)

        started = time.perf_counter()
        async with store.session() as reader:
            segments = await DocumentStore(reader).fetch_segments(document_id)
        elapsed = time.perf_counter() - started

        await writer.rollback()

    assert [s.content for s in segments] == ["alpha beta", "gamma delta"]
    assert elapsed < 0.5
