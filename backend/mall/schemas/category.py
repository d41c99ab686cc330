"""Category Pydantic schemas for request/response validation.

Request models only check types. Name length and sort range are enforced by
the category service so each failure keeps its own error code.
"""

from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from mall.models.category import MAX_CATEGORY_LEVEL, CategoryStatus

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


class CategoryCreateRequest(BaseModel):
    """Request to create a category."""

    name: str = Field(description="1-50 characters after trimming")
    parent_id: Optional[UUID] = Field(None, description="Parent category, omit for a root")
    sort: int = Field(0, description="0-9999, ascending display order")
    status: CategoryStatus = CategoryStatus.ENABLED


class CategoryUpdateRequest(BaseModel):
    """Partial update. Only the fields present in the body are applied.

    Sending ``"parent_id": null`` moves the category to the root level.
    """

    name: Optional[str] = None
    parent_id: Optional[UUID] = None
    sort: Optional[int] = None
    status: Optional[CategoryStatus] = None


class CategorySortItem(BaseModel):
    id: UUID
    sort: int


class CategoryBatchSortRequest(BaseModel):
    """Batch re-sort, applied all-or-nothing."""

    updates: List[CategorySortItem] = Field(min_length=1)


class CategoryListParams(BaseModel):
    """Filters, ordering and paging for the category list."""

    parent_id: Optional[UUID] = None
    level: Optional[int] = Field(None, ge=1, le=MAX_CATEGORY_LEVEL)
    status: Optional[CategoryStatus] = None
    keyword: Optional[str] = None
    page: int = 1
    size: int = DEFAULT_PAGE_SIZE
    sort_by: Literal["sort", "name", "created_at", "updated_at"] = "sort"
    sort_order: Literal["asc", "desc"] = "asc"

    @field_validator("page")
    @classmethod
    def clamp_page(cls, value: int) -> int:
        return value if value >= 1 else 1

    @field_validator("size")
    @classmethod
    def clamp_size(cls, value: int) -> int:
        """Out-of-range page sizes fall back to the default."""
        if value < 1 or value > MAX_PAGE_SIZE:
            return DEFAULT_PAGE_SIZE
        return value


class CategoryBrief(BaseModel):
    """Parent or child reference embedded in a category response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    level: int
    sort: int
    status: CategoryStatus


class CategoryResponse(BaseModel):
    """Category response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    parent_id: Optional[UUID] = None
    level: int
    sort: int
    status: CategoryStatus
    created_at: datetime
    updated_at: datetime
    parent: Optional[CategoryBrief] = None
    children: List[CategoryBrief] = []
    product_count: int = 0  # Computed field


class ProductBrief(BaseModel):
    """Product entry in the category detail preview."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    status: int


class CategoryDetailResponse(CategoryResponse):
    """Single-category view with a short product preview."""

    products: List[ProductBrief] = []


class CategoryTreeResponse(BaseModel):
    """Category node with nested children for tree structure."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    parent_id: Optional[UUID] = None
    level: int
    sort: int
    status: CategoryStatus
    children: List["CategoryTreeResponse"] = []
