"""Pydantic schemas for the mall API.

All request/response models are defined here for easy import.
"""

from mall.schemas.common import ApiResponse, ErrorDetail, ErrorResponse, PaginationMeta
from mall.schemas.category import (
    CategoryBatchSortRequest,
    CategoryBrief,
    CategoryCreateRequest,
    CategoryDetailResponse,
    CategoryListParams,
    CategoryResponse,
    CategorySortItem,
    CategoryTreeResponse,
    CategoryUpdateRequest,
    ProductBrief,
)
from mall.schemas.health import HealthCheckResponse

__all__ = [
    # Common
    "ApiResponse",
    "ErrorDetail",
    "ErrorResponse",
    "PaginationMeta",
    # Category
    "CategoryBatchSortRequest",
    "CategoryBrief",
    "CategoryCreateRequest",
    "CategoryDetailResponse",
    "CategoryListParams",
    "CategoryResponse",
    "CategorySortItem",
    "CategoryTreeResponse",
    "CategoryUpdateRequest",
    "ProductBrief",
    # Health
    "HealthCheckResponse",
]
