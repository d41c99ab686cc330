"""Pytest configuration and shared fixtures."""

import os

# Settings are read at import time; keep the app off real Postgres/Redis.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")

import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from mall.models import MAX_CATEGORY_LEVEL, Base, Category
from mall.repositories.category_repository import CategoryRepository
from mall.services.category_service import CategoryService


@pytest_asyncio.fixture
async def test_db():
    """Create an in-memory SQLite database for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    SessionLocal = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with SessionLocal() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def repository(test_db: AsyncSession) -> CategoryRepository:
    return CategoryRepository(test_db)


@pytest.fixture
def service(repository: CategoryRepository) -> CategoryService:
    return CategoryService(repository)


@pytest_asyncio.fixture
async def electronics_tree(service: CategoryService) -> dict:
    """Electronics > Phones > Smartphones, returned as a name -> id map."""
    root = await service.create(name="Electronics", sort=1)
    phones = await service.create(name="Phones", parent_id=root.id, sort=1)
    smartphones = await service.create(name="Smartphones", parent_id=phones.id, sort=1)
    return {
        "Electronics": root.id,
        "Phones": phones.id,
        "Smartphones": smartphones.id,
    }


async def _assert_hierarchy_consistent(session: AsyncSession) -> None:
    result = await session.execute(select(Category).execution_options(populate_existing=True))
    rows = {c.id: c for c in result.scalars().all()}

    siblings = set()
    for category in rows.values():
        if category.parent_id is None:
            assert category.level == 1, category
        else:
            assert category.level == rows[category.parent_id].level + 1, category

        hops, current = 0, category
        while current.parent_id is not None:
            current = rows[current.parent_id]
            hops += 1
            assert hops < MAX_CATEGORY_LEVEL, f"{category} is too deep or in a cycle"

        key = (category.parent_id, category.name)
        assert key not in siblings, f"duplicate sibling name {key}"
        siblings.add(key)


@pytest.fixture
def assert_consistent(test_db: AsyncSession):
    """Async check of level, depth and sibling-name invariants over the whole table."""

    async def check() -> None:
        await _assert_hierarchy_consistent(test_db)

    return check
