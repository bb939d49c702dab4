"""Shared pytest fixtures for all test suites."""

import os
import uuid
from collections.abc import AsyncGenerator, Awaitable, Callable, Sequence
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.pool import NullPool

from backend.app.config import Settings
from backend.app.db.engine import Store
from backend.app.db.models import Base, Document, DocumentSegment


def sqlite_settings(tmp_path: Path) -> Settings:
    """Settings pointing at a throwaway SQLite file.

    A file rather than :memory: so every pooled connection sees the same data.
    """
    return Settings(database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")


@pytest_asyncio.fixture
async def store(tmp_path: Path) -> AsyncGenerator[Store, None]:
    """Store backed by a fresh SQLite database with all tables created."""
    test_store = Store.open(sqlite_settings(tmp_path), poolclass=NullPool)
    await test_store.create_all()

    yield test_store

    await test_store.close()


@pytest_asyncio.fixture
async def session(store: Store) -> AsyncGenerator[AsyncSession, None]:
    """Session from the store's factory (expire_on_commit=False)."""
    async with store.session() as db_session:
        yield db_session


SeedDocument = Callable[..., Awaitable[uuid.UUID]]


@pytest.fixture
def seed_document(store: Store) -> SeedDocument:
    """Factory inserting a document (and optional segments) directly, bypassing quota.

    Usage:
        document_id = await seed_document(segments=["first", "second"])
    """

    async def _seed(
        owner_id: str = "user-1",
        title: str = "Moby Dick",
        segments: Sequence[str] = (),
        page_numbers: Sequence[int | None] | None = None,
    ) -> uuid.UUID:
        document_id = uuid.uuid4()

        async with store.session() as db_session:
            db_session.add(
                Document(
                    document_id=document_id,
                    owner_id=owner_id,
                    title=title,
                    author="Herman Melville",
                    slug=f"{title.lower().replace(' ', '-')}-{document_id.hex[:8]}",
                    file_url=f"https://blob.example.com/{document_id}.pdf",
                    file_blob_key=f"{document_id}.pdf",
                    file_size=1024,
                    total_segments=len(segments),
                )
            )
            await db_session.flush()

            for index, content in enumerate(segments):
                db_session.add(
                    DocumentSegment(
                        document_id=document_id,
                        owner_id=owner_id,
                        segment_index=index,
                        page_number=page_numbers[index] if page_numbers else None,
                        content=content,
                        word_count=len(content.split()),
                    )
                )

            await db_session.commit()

        return document_id

    return _seed


@pytest_asyncio.fixture
async def postgres_store() -> AsyncGenerator[Store, None]:
    """Store for PostgreSQL integration tests.

    Requires DATABASE_URL to be set to a real PostgreSQL connection string.
    Tests using this fixture should be marked with @pytest.mark.postgres.

    Usage:
        @pytest.mark.postgres
        async def test_something(postgres_store):
            async with postgres_store.session() as session:
                # ... test code
    """
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        pytest.skip("DATABASE_URL not set - skipping postgres test")

    # Ensure it's a postgres URL
    if not database_url.startswith(("postgresql://", "postgresql+asyncpg://")):
        pytest.skip(f"DATABASE_URL is not PostgreSQL: {database_url}")

    pg_store = Store.open(Settings(database_url=database_url), poolclass=NullPool)

    # Create tables (and the full-text index)
    await pg_store.create_all()

    yield pg_store

    # Cleanup: drop all tables
    async with pg_store.engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await pg_store.close()
