"""SQLAlchemy models for the mall backend.

All models are imported here so ``Base.metadata`` knows every table.
"""

from mall.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from mall.models.category import (
    MAX_CATEGORY_LEVEL,
    MAX_NAME_LENGTH,
    MAX_SORT,
    MIN_SORT,
    Category,
    CategoryStatus,
)
from mall.models.product import Product

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "Category",
    "CategoryStatus",
    "MAX_CATEGORY_LEVEL",
    "MAX_NAME_LENGTH",
    "MIN_SORT",
    "MAX_SORT",
    "Product",
]
