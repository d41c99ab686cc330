"""Level cascade after a category changes parent."""

from uuid import UUID

import structlog

from mall.repositories.category_repository import CategoryRepository
from mall.services.category_tree import iter_descendant_levels

logger = structlog.get_logger(__name__)


class LevelRecalculator:
    """Rewrites ``level`` for a moved category and everything below it.

    Purely mechanical: it trusts the caller to have run the depth pre-check
    and to wrap the call in the same atomic unit as the parent change.
    """

    def __init__(self, repository: CategoryRepository):
        self.repository = repository
        self.logger = logger.bind(service="level_recalculator")

    async def recompute_subtree(self, root_id: UUID, new_root_level: int) -> int:
        """Set the root's level and cascade ``parent level + 1`` downwards.

        Issues one child query and one bulk UPDATE per tree level.

        Args:
            root_id: Category whose parent just changed
            new_root_level: Its new level

        Returns:
            Number of category rows touched, root included
        """
        touched = await self.repository.update_levels([root_id], new_root_level)

        async for depth, ids in iter_descendant_levels(self.repository, root_id):
            touched += await self.repository.update_levels(ids, new_root_level + depth)

        self.logger.info(
            "category_levels_recomputed",
            root_id=str(root_id),
            new_root_level=new_root_level,
            touched=touched,
        )
        return touched
