"""Category model for the product classification tree."""

import enum
import uuid
from typing import TYPE_CHECKING, Optional

from sqlalchemy import ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mall.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from mall.models.product import Product

MAX_CATEGORY_LEVEL = 3
MAX_NAME_LENGTH = 50
MIN_SORT = 0
MAX_SORT = 9999


class CategoryStatus(enum.IntEnum):
    """Category visibility flag (0/1 on the wire)."""

    DISABLED = 0
    ENABLED = 1


class Category(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Product category with hierarchical support.

    Categories form a tree of at most three levels
    (e.g., 'Electronics' > 'Phones' > 'Smartphones'). ``level`` is derived
    from the parent and maintained by the category service.
    """

    __tablename__ = "product_categories"
    __table_args__ = (
        Index("ix_product_categories_level_sort", "level", "sort"),
    )

    name: Mapped[str] = mapped_column(String(MAX_NAME_LENGTH), nullable=False, comment="Category name")
    parent_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("product_categories.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
        comment="Parent category ID, NULL for roots",
    )
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1, comment="Depth, root = 1")
    sort: Mapped[int] = mapped_column(Integer, nullable=False, default=0, comment="Sibling display order")
    status: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=CategoryStatus.ENABLED,
        comment="0 = disabled, 1 = enabled",
    )

    # Self-referential relationship, no cascade: children must be moved or removed first
    parent: Mapped[Optional["Category"]] = relationship(
        "Category",
        remote_side="Category.id",
        back_populates="children",
    )
    children: Mapped[list["Category"]] = relationship(
        "Category",
        back_populates="parent",
        order_by="Category.sort",
        passive_deletes=True,
    )

    products: Mapped[list["Product"]] = relationship(back_populates="category", passive_deletes=True)

    def __repr__(self) -> str:
        return f"<Category(id={self.id}, name='{self.name}', level={self.level})>"
