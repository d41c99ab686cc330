"""Category service: hierarchy-aware CRUD for the product category tree.

Every mutation validates first and writes second, inside a single
``run_atomic`` unit, so a failed check or a database error never leaves a
half-moved subtree behind.
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple
from uuid import UUID

import structlog

from mall.core.exceptions import (
    CategoryNotFoundError,
    HasChildrenError,
    HasProductsError,
    ParentNotFoundError,
)
from mall.models.category import Category, CategoryStatus
from mall.models.product import Product
from mall.repositories.category_repository import CategoryRepository
from mall.schemas.category import CategoryListParams
from mall.services.category_levels import LevelRecalculator
from mall.services.category_tree import TreeBuilder, TreeNode
from mall.services.category_validator import HierarchyValidator

logger = structlog.get_logger(__name__)

UPDATABLE_FIELDS = ("name", "parent_id", "sort", "status")
PRODUCT_PREVIEW_LIMIT = 10


class CategoryService:
    """Service for managing product categories.

    Handles creation, re-parenting with level cascade, deletion guards,
    batch re-sorting and the tree/list read paths.
    """

    def __init__(self, repository: CategoryRepository):
        """Initialize category service.

        Args:
            repository: Category repository bound to the request's session
        """
        self.repository = repository
        self.validator = HierarchyValidator(repository)
        self.levels = LevelRecalculator(repository)
        self.logger = logger.bind(service="category_service")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_by_id(self, category_id: UUID) -> Category:
        """Get a category with its parent and children loaded.

        Raises:
            CategoryNotFoundError: If no category has this ID
        """
        category = await self.repository.find_by_id(category_id, with_relations=True)
        if category is None:
            raise CategoryNotFoundError(category_id)
        return category

    async def get_list(self, params: CategoryListParams) -> Tuple[List[Category], int]:
        """Get paginated categories with filters.

        Returns:
            Tuple of (categories list, total count)
        """
        categories, total = await self.repository.find_all(
            parent_id=params.parent_id,
            level=params.level,
            status=int(params.status) if params.status is not None else None,
            keyword=params.keyword,
            order_by=params.sort_by,
            order=params.sort_order,
            page=params.page,
            size=params.size,
        )

        self.logger.info(
            "categories_listed",
            count=len(categories),
            total=total,
            page=params.page,
            size=params.size,
        )
        return categories, total

    async def get_tree(self, status: Optional[CategoryStatus] = None) -> List[TreeNode]:
        """Get the whole category forest, optionally restricted to one status.

        Children of a filtered-out parent are left out of the tree.
        """
        records = await self.repository.find_for_tree(int(status) if status is not None else None)
        tree = TreeBuilder.build(records)

        self.logger.info("category_tree_built", categories=len(records), roots=len(tree))
        return tree

    async def get_root_categories(self) -> List[TreeNode]:
        """Enabled root categories, each with its enabled direct children."""
        records = await self.repository.find_roots_with_children(int(CategoryStatus.ENABLED))
        roots = TreeBuilder.build(records)

        self.logger.info("root_categories_fetched", count=len(roots))
        return roots

    async def get_child_categories(self, parent_id: UUID) -> List[Category]:
        children = await self.repository.find_children(parent_id)
        self.logger.info("child_categories_fetched", parent_id=str(parent_id), count=len(children))
        return children

    async def get_product_counts(self, category_ids: Sequence[UUID]) -> Dict[UUID, int]:
        return await self.repository.count_products_for(category_ids)

    async def get_product_preview(self, category_id: UUID, limit: int = PRODUCT_PREVIEW_LIMIT) -> List[Product]:
        """First few products of a category for the detail view."""
        return await self.repository.find_products(category_id, limit)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create(
        self,
        name: str,
        parent_id: Optional[UUID] = None,
        sort: int = 0,
        status: CategoryStatus = CategoryStatus.ENABLED,
    ) -> Category:
        """Create a category; its level is derived from the parent.

        Raises:
            EmptyNameError, NameTooLongError, SortOutOfRangeError,
            ParentNotFoundError, DepthExceededError, DuplicateSiblingError
        """
        name = self.validator.validate_name(name)
        self.validator.validate_sort(sort)

        async def work() -> Category:
            level = 1
            if parent_id is not None:
                parent = await self.repository.find_by_id(parent_id)
                if parent is None:
                    raise ParentNotFoundError(parent_id)
                self.validator.check_depth(parent.level)
                level = parent.level + 1

            await self.validator.check_sibling_uniqueness(name, parent_id)

            return await self.repository.create(
                name=name,
                parent_id=parent_id,
                level=level,
                sort=sort,
                status=int(status),
            )

        category = await self.repository.run_atomic(work)

        self.logger.info(
            "category_created",
            category_id=str(category.id),
            parent_id=str(parent_id) if parent_id else None,
            level=category.level,
        )
        return await self.get_by_id(category.id)

    async def update(self, category_id: UUID, changes: Mapping[str, Any]) -> Category:
        """Apply a partial update.

        ``changes`` holds only the fields the caller sent: a ``parent_id``
        key with ``None`` moves the category to the root, a missing key keeps
        the current parent. Moving a category cascades the new levels to its
        whole subtree in the same unit of work.

        Raises:
            CategoryNotFoundError, EmptyNameError, NameTooLongError,
            SortOutOfRangeError, SelfParentError, CycleDetectedError,
            ParentNotFoundError, DepthExceededError, DuplicateSiblingError
        """
        changes = {key: value for key, value in changes.items() if key in UPDATABLE_FIELDS}

        new_name: Optional[str] = None
        if "name" in changes:
            new_name = self.validator.validate_name(changes["name"])
        if changes.get("sort") is not None:
            self.validator.validate_sort(changes["sort"])

        async def work() -> Tuple[Category, Optional[int]]:
            category = await self.repository.find_by_id(category_id)
            if category is None:
                raise CategoryNotFoundError(category_id)

            fields: Dict[str, Any] = {}
            effective_parent_id = category.parent_id
            new_level: Optional[int] = None

            if "parent_id" in changes and changes["parent_id"] != category.parent_id:
                new_parent_id = changes["parent_id"]
                self.validator.check_not_self_parent(category.id, new_parent_id)

                if new_parent_id is not None:
                    await self.validator.check_no_cycle(category.id, new_parent_id)
                    parent = await self.repository.find_by_id(new_parent_id)
                    if parent is None:
                        raise ParentNotFoundError(new_parent_id)
                    self.validator.check_depth(parent.level)
                    new_level = parent.level + 1
                else:
                    new_level = 1

                await self.validator.check_subtree_fits(category.id, new_level)
                effective_parent_id = new_parent_id
                fields["parent_id"] = new_parent_id

            name_changed = new_name is not None and new_name != category.name
            if name_changed or "parent_id" in fields:
                # A moved category must not collide with its new siblings either
                await self.validator.check_sibling_uniqueness(
                    new_name if name_changed else category.name,
                    effective_parent_id,
                    exclude_id=category.id,
                )
                if name_changed:
                    fields["name"] = new_name

            if changes.get("sort") is not None:
                fields["sort"] = changes["sort"]
            if changes.get("status") is not None:
                fields["status"] = int(changes["status"])

            old_level = category.level
            await self.repository.update(category, **fields)

            touched = None
            if new_level is not None and new_level != old_level:
                touched = await self.levels.recompute_subtree(category.id, new_level)

            return category, touched

        category, touched = await self.repository.run_atomic(work)

        self.logger.info(
            "category_updated",
            category_id=str(category_id),
            fields=sorted(changes),
            levels_touched=touched,
        )
        return await self.get_by_id(category_id)

    async def delete(self, category_id: UUID) -> None:
        """Delete a leaf category that no product references.

        Raises:
            CategoryNotFoundError, HasChildrenError, HasProductsError
        """

        async def work() -> None:
            category = await self.repository.find_by_id(category_id)
            if category is None:
                raise CategoryNotFoundError(category_id)

            children = await self.repository.count_children(category_id)
            if children > 0:
                raise HasChildrenError(children)

            products = await self.repository.count_products(category_id)
            if products > 0:
                raise HasProductsError(products)

            await self.repository.delete(category)

        await self.repository.run_atomic(work)
        self.logger.info("category_deleted", category_id=str(category_id))

    async def update_sort_batch(self, updates: Sequence[Tuple[UUID, int]]) -> int:
        """Re-sort many categories at once, all-or-nothing.

        Every sort value is validated before the first write.

        Args:
            updates: (category_id, sort) pairs; a repeated ID keeps its last sort

        Returns:
            Number of entries applied

        Raises:
            SortOutOfRangeError: If any entry is out of range
            CategoryNotFoundError: If any ID does not exist
        """
        for _category_id, sort in updates:
            self.validator.validate_sort(sort)

        async def work() -> int:
            ids = [category_id for category_id, _sort in updates]
            existing = {c.id for c in await self.repository.find_many(ids)}
            for item_id in ids:
                if item_id not in existing:
                    raise CategoryNotFoundError(item_id)

            await self.repository.update_many([(category_id, {"sort": sort}) for category_id, sort in updates])
            return len(updates)

        applied = await self.repository.run_atomic(work)

        self.logger.info("category_sort_batch_applied", count=applied)
        return applied
