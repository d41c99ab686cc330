"""Category repository: the only place that talks SQL for the category tree.

The service layer receives a repository instance instead of reaching for a
global session, so every query and write for one request goes through the
same ``AsyncSession`` and the same transaction.
"""

from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, TypeVar
from uuid import UUID

import structlog
from sqlalchemy import and_, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from mall.models.base import utcnow
from mall.models.category import Category
from mall.models.product import Product

logger = structlog.get_logger(__name__)

T = TypeVar("T")

SORTABLE_COLUMNS = {
    "sort": Category.sort,
    "name": Category.name,
    "created_at": Category.created_at,
    "updated_at": Category.updated_at,
}


def _parent_clause(parent_id: Optional[UUID]):
    if parent_id is None:
        return Category.parent_id.is_(None)
    return Category.parent_id == parent_id


class CategoryRepository:
    """Async data access for ``Category`` rows."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.logger = logger.bind(repository="category_repository")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def find_by_id(self, category_id: UUID, with_relations: bool = False) -> Optional[Category]:
        """Get a category by ID.

        Args:
            category_id: Category UUID
            with_relations: Eager-load parent and children, refreshing any
                copy already in the session

        Returns:
            Category or None if not found
        """
        query = select(Category).where(Category.id == category_id)
        if with_relations:
            query = query.options(
                selectinload(Category.parent),
                selectinload(Category.children),
            ).execution_options(populate_existing=True)

        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def find_many(self, ids: Iterable[UUID]) -> List[Category]:
        ids = list(ids)
        if not ids:
            return []
        result = await self.db.execute(select(Category).where(Category.id.in_(ids)))
        return list(result.scalars().all())

    async def find_siblings(
        self,
        parent_id: Optional[UUID],
        exclude_id: Optional[UUID] = None,
        name: Optional[str] = None,
    ) -> List[Category]:
        """Categories sharing ``parent_id``, optionally narrowed to one name."""
        conditions = [_parent_clause(parent_id)]
        if exclude_id is not None:
            conditions.append(Category.id != exclude_id)
        if name is not None:
            conditions.append(Category.name == name)

        result = await self.db.execute(
            select(Category).where(and_(*conditions)).order_by(Category.sort)
        )
        return list(result.scalars().all())

    async def find_children(self, parent_id: UUID, status: Optional[int] = None) -> List[Category]:
        query = (
            select(Category)
            .options(selectinload(Category.parent), selectinload(Category.children))
            .where(Category.parent_id == parent_id)
        )
        if status is not None:
            query = query.where(Category.status == status)

        result = await self.db.execute(query.order_by(Category.sort))
        return list(result.scalars().all())

    async def find_children_of(self, parent_ids: Sequence[UUID]) -> List[Tuple[UUID, UUID]]:
        """Child edges of a whole frontier in one query.

        Returns:
            List of (child_id, parent_id) pairs
        """
        if not parent_ids:
            return []
        result = await self.db.execute(
            select(Category.id, Category.parent_id).where(Category.parent_id.in_(list(parent_ids)))
        )
        return [(row[0], row[1]) for row in result.all()]

    async def find_all(
        self,
        parent_id: Optional[UUID] = None,
        level: Optional[int] = None,
        status: Optional[int] = None,
        keyword: Optional[str] = None,
        order_by: str = "sort",
        order: str = "asc",
        page: int = 1,
        size: int = 20,
    ) -> Tuple[List[Category], int]:
        """Paginated category listing with filters.

        Returns:
            Tuple of (categories list, total count)
        """
        conditions = []
        if parent_id is not None:
            conditions.append(Category.parent_id == parent_id)
        if level is not None:
            conditions.append(Category.level == level)
        if status is not None:
            conditions.append(Category.status == status)
        if keyword:
            conditions.append(Category.name.icontains(keyword, autoescape=True))

        query = select(Category).options(
            selectinload(Category.parent),
            selectinload(Category.children),
        )
        count_q = select(func.count(Category.id))
        if conditions:
            query = query.where(and_(*conditions))
            count_q = count_q.where(and_(*conditions))

        column = SORTABLE_COLUMNS.get(order_by, Category.sort)
        query = query.order_by(column.desc() if order == "desc" else column.asc(), Category.id)

        offset = (page - 1) * size
        query = query.offset(offset).limit(size)

        result = await self.db.execute(query)
        categories = list(result.scalars().all())

        total_result = await self.db.execute(count_q)
        total = total_result.scalar() or 0

        return categories, total

    async def find_for_tree(self, status: Optional[int] = None) -> List[Category]:
        """All categories (optionally one status) ordered by level, then sort."""
        query = select(Category)
        if status is not None:
            query = query.where(Category.status == status)
        result = await self.db.execute(query.order_by(Category.level, Category.sort))
        return list(result.scalars().all())

    async def find_roots_with_children(self, status: Optional[int] = None) -> List[Category]:
        """Root categories plus their direct children, ordered by level, then sort."""
        roots_q = select(Category.id).where(Category.parent_id.is_(None))
        if status is not None:
            roots_q = roots_q.where(Category.status == status)

        query = select(Category).where(
            (Category.parent_id.is_(None)) | (Category.parent_id.in_(roots_q))
        )
        if status is not None:
            query = query.where(Category.status == status)

        result = await self.db.execute(query.order_by(Category.level, Category.sort))
        return list(result.scalars().all())

    async def find_products(self, category_id: UUID, limit: int) -> List[Product]:
        """Newest products of one category."""
        result = await self.db.execute(
            select(Product)
            .where(Product.category_id == category_id)
            .order_by(Product.created_at.desc(), Product.id)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def count_children(self, category_id: UUID) -> int:
        result = await self.db.execute(
            select(func.count(Category.id)).where(Category.parent_id == category_id)
        )
        return result.scalar() or 0

    async def count_products(self, category_id: UUID) -> int:
        result = await self.db.execute(
            select(func.count(Product.id)).where(Product.category_id == category_id)
        )
        return result.scalar() or 0

    async def count_products_for(self, category_ids: Sequence[UUID]) -> Dict[UUID, int]:
        """Product counts keyed by category ID (categories without products omitted)."""
        if not category_ids:
            return {}
        result = await self.db.execute(
            select(Product.category_id, func.count(Product.id))
            .where(Product.category_id.in_(list(category_ids)))
            .group_by(Product.category_id)
        )
        return {row[0]: row[1] for row in result.all()}

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create(self, **fields: Any) -> Category:
        category = Category(**fields)
        self.db.add(category)
        await self.db.flush()
        return category

    async def update(self, category: Category, **fields: Any) -> Category:
        for key, value in fields.items():
            setattr(category, key, value)
        category.updated_at = utcnow()
        await self.db.flush()
        return category

    async def update_levels(self, category_ids: Sequence[UUID], level: int) -> int:
        """Set ``level`` on a batch of categories with a single UPDATE.

        Returns:
            Number of rows updated
        """
        if not category_ids:
            return 0
        result = await self.db.execute(
            update(Category)
            .where(Category.id.in_(list(category_ids)))
            .values(level=level, updated_at=utcnow())
        )
        return result.rowcount

    async def update_many(self, entries: Sequence[Tuple[UUID, Dict[str, Any]]]) -> None:
        """Apply per-row field changes; every ID must exist."""
        categories = {c.id: c for c in await self.find_many(entry_id for entry_id, _ in entries)}
        now = utcnow()
        for entry_id, fields in entries:
            category = categories[entry_id]
            for key, value in fields.items():
                setattr(category, key, value)
            category.updated_at = now
        await self.db.flush()

    async def delete(self, category: Category) -> None:
        await self.db.delete(category)
        await self.db.flush()

    async def run_atomic(self, work: Callable[[], Awaitable[T]]) -> T:
        """Run ``work`` as one unit: commit on success, roll back everything on error."""
        try:
            result = await work()
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            self.logger.warning("atomic_unit_rolled_back")
            raise
        return result
