"""Structural checks run before any category write."""

from typing import Optional
from uuid import UUID

import structlog

from mall.core.exceptions import (
    CycleDetectedError,
    DepthExceededError,
    DuplicateSiblingError,
    EmptyNameError,
    NameTooLongError,
    SelfParentError,
    SortOutOfRangeError,
)
from mall.models.category import MAX_CATEGORY_LEVEL, MAX_NAME_LENGTH, MAX_SORT, MIN_SORT
from mall.repositories.category_repository import CategoryRepository
from mall.services.category_tree import iter_descendant_levels

logger = structlog.get_logger(__name__)


class HierarchyValidator:
    """Enforces the category tree invariants.

    The static checks are pure. The others read through the repository but
    never write.
    """

    def __init__(self, repository: CategoryRepository):
        self.repository = repository
        self.logger = logger.bind(service="category_validator")

    @staticmethod
    def validate_name(name: Optional[str]) -> str:
        """Return the trimmed name or raise EmptyNameError / NameTooLongError."""
        trimmed = (name or "").strip()
        if not trimmed:
            raise EmptyNameError()
        if len(trimmed) > MAX_NAME_LENGTH:
            raise NameTooLongError(MAX_NAME_LENGTH)
        return trimmed

    @staticmethod
    def validate_sort(sort: int) -> None:
        if sort < MIN_SORT or sort > MAX_SORT:
            raise SortOutOfRangeError(sort, MIN_SORT, MAX_SORT)

    @staticmethod
    def check_depth(parent_level: int) -> None:
        if parent_level + 1 > MAX_CATEGORY_LEVEL:
            raise DepthExceededError(MAX_CATEGORY_LEVEL)

    @staticmethod
    def check_not_self_parent(category_id: UUID, candidate_parent_id: Optional[UUID]) -> None:
        if candidate_parent_id == category_id:
            raise SelfParentError()

    async def check_sibling_uniqueness(
        self,
        name: str,
        parent_id: Optional[UUID],
        exclude_id: Optional[UUID] = None,
    ) -> None:
        """Raise DuplicateSiblingError if another sibling already uses ``name``.

        Siblings of every status count.
        """
        clashes = await self.repository.find_siblings(parent_id, exclude_id=exclude_id, name=name)
        if clashes:
            self.logger.info(
                "duplicate_sibling_name",
                name=name,
                parent_id=str(parent_id) if parent_id else None,
            )
            raise DuplicateSiblingError(name)

    async def check_no_cycle(self, category_id: UUID, candidate_parent_id: UUID) -> None:
        """Raise CycleDetectedError if ``candidate_parent_id`` sits below ``category_id``."""
        async for _depth, ids in iter_descendant_levels(self.repository, category_id):
            if candidate_parent_id in ids:
                self.logger.info(
                    "category_cycle_rejected",
                    category_id=str(category_id),
                    candidate_parent_id=str(candidate_parent_id),
                )
                raise CycleDetectedError()

    async def subtree_height(self, category_id: UUID) -> int:
        """Number of levels below ``category_id`` (0 for a leaf)."""
        height = 0
        async for depth, _ids in iter_descendant_levels(self.repository, category_id):
            height = depth
        return height

    async def check_subtree_fits(self, category_id: UUID, new_level: int) -> None:
        """Raise DepthExceededError if the moved subtree would reach past the max level.

        Checks the deepest existing descendant, not just the moved node.
        """
        if new_level > MAX_CATEGORY_LEVEL:
            raise DepthExceededError(MAX_CATEGORY_LEVEL)
        height = await self.subtree_height(category_id)
        if new_level + height > MAX_CATEGORY_LEVEL:
            self.logger.info(
                "category_subtree_too_deep",
                category_id=str(category_id),
                new_level=new_level,
                subtree_height=height,
            )
            raise DepthExceededError(MAX_CATEGORY_LEVEL)
