"""Database seeding for development.

Builds a small three-level category tree through the category service so
the seeded rows obey the same rules as API-created ones.
Run with: python -m mall.db.seed
"""

import asyncio
from typing import List, Optional, Tuple
from uuid import UUID

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mall.models import Category
from mall.repositories.category_repository import CategoryRepository
from mall.services.category_service import CategoryService

logger = structlog.get_logger(__name__)

# (name, sort, children)
CATEGORY_TREE: List[Tuple[str, int, list]] = [
    ("Fresh Fruit", 1, [
        ("Imported Fruit", 1, [("Imported Apples", 1, []), ("Cherries", 2, [])]),
        ("Domestic Fruit", 2, [("Pears", 1, []), ("Grapes", 2, [])]),
    ]),
    ("Electronics", 2, [
        ("Phones", 1, [("Smartphones", 1, []), ("Feature Phones", 2, [])]),
        ("Computers", 2, [("Laptops", 1, []), ("Desktops", 2, [])]),
    ]),
    ("Home & Living", 3, [
        ("Kitchen", 1, []),
        ("Bedding", 2, []),
    ]),
]


async def _create_branch(
    service: CategoryService,
    nodes: List[Tuple[str, int, list]],
    parent_id: Optional[UUID] = None,
) -> int:
    created = 0
    for name, sort, children in nodes:
        category = await service.create(name=name, parent_id=parent_id, sort=sort)
        created += 1
        created += await _create_branch(service, children, category.id)
    return created


async def seed_categories(session: AsyncSession) -> int:
    """Seed the sample category tree if the table is empty.

    Returns:
        Number of categories created
    """
    existing = await session.execute(select(func.count(Category.id)))
    if existing.scalar():
        logger.info("category_seed_skipped", reason="table not empty")
        return 0

    service = CategoryService(CategoryRepository(session))
    created = await _create_branch(service, CATEGORY_TREE)
    logger.info("categories_seeded", count=created)
    return created


async def main() -> None:
    from mall.core.logging import configure_logging
    from mall.db.session import async_session_factory, engine
    from mall.models import Base

    configure_logging()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with async_session_factory() as session:
        await seed_categories(session)

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
