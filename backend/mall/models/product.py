"""Product model, kept to the columns the category tree depends on."""

import uuid
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mall.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from mall.models.category import Category


class Product(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Sellable product.

    Only the category association matters here: a category that still owns
    products cannot be deleted.
    """

    __tablename__ = "products"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    status: Mapped[int] = mapped_column(Integer, nullable=False, default=1, comment="0 = off shelf, 1 = on sale")
    category_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("product_categories.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )

    category: Mapped[Optional["Category"]] = relationship(back_populates="products")

    def __repr__(self) -> str:
        return f"<Product(id={self.id}, name='{self.name}')>"
