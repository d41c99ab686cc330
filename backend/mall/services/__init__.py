"""Services module for business logic and data operations.

Services implement the category hierarchy rules on top of the repository
layer and are consumed by the API routers.
"""

from mall.services.category_levels import LevelRecalculator
from mall.services.category_service import CategoryService
from mall.services.category_tree import TreeBuilder, TreeNode
from mall.services.category_validator import HierarchyValidator

__all__ = [
    "CategoryService",
    "HierarchyValidator",
    "LevelRecalculator",
    "TreeBuilder",
    "TreeNode",
]
