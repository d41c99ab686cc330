"""Product category API endpoints."""

from typing import Dict, List, Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from mall.config import settings
from mall.dependencies import get_category_service
from mall.models.category import Category, CategoryStatus
from mall.schemas import (
    ApiResponse,
    CategoryBatchSortRequest,
    CategoryCreateRequest,
    CategoryDetailResponse,
    CategoryListParams,
    CategoryResponse,
    CategoryTreeResponse,
    CategoryUpdateRequest,
    PaginationMeta,
    ProductBrief,
)
from mall.services.cache_service import (
    CacheService,
    cache_key_for_category_tree,
    get_cache,
    invalidate_categories_cache,
)
from mall.services.category_service import CategoryService
from mall.services.category_tree import TreeNode

router = APIRouter()


def _to_response(category: Category, product_counts: Dict[UUID, int]) -> dict:
    data = CategoryResponse.model_validate(category)
    data.product_count = product_counts.get(category.id, 0)
    return data.model_dump(mode="json")


def _tree_to_response(nodes: List[TreeNode]) -> list:
    return [CategoryTreeResponse.model_validate(node).model_dump(mode="json") for node in nodes]


@router.get("/tree", response_model=ApiResponse)
async def get_category_tree(
    status: Optional[int] = Query(None, ge=0, le=1, description="0: disabled, 1: enabled"),
    service: CategoryService = Depends(get_category_service),
    cache: CacheService = Depends(get_cache),
):
    """Get the full category tree, optionally filtered by status.

    This endpoint is cached; every category write invalidates it.
    """
    status_filter = CategoryStatus(status) if status is not None else None
    cache_key = cache_key_for_category_tree(status_filter)

    cached = await cache.get(cache_key)
    if cached:
        return ApiResponse.model_validate_json(cached)

    tree = await service.get_tree(status_filter)
    response = ApiResponse(status="success", data=_tree_to_response(tree))

    await cache.set(cache_key, response.model_dump_json(), ttl=settings.CATEGORY_TREE_CACHE_TTL)
    return response


@router.get("/roots", response_model=ApiResponse)
async def get_root_categories(service: CategoryService = Depends(get_category_service)):
    """Enabled root categories with their enabled children."""
    roots = await service.get_root_categories()
    return ApiResponse(status="success", data=_tree_to_response(roots))


@router.patch("/batch/sort", response_model=ApiResponse)
async def update_categories_sort(
    body: CategoryBatchSortRequest,
    service: CategoryService = Depends(get_category_service),
    cache: CacheService = Depends(get_cache),
):
    """Re-sort several categories at once. Nothing is applied if any entry is invalid."""
    updated = await service.update_sort_batch([(item.id, item.sort) for item in body.updates])
    await invalidate_categories_cache(cache)
    return ApiResponse(status="success", data={"updated": updated})


@router.get("", response_model=ApiResponse)
async def list_categories(
    parent_id: Optional[UUID] = Query(None, description="Only children of this category"),
    level: Optional[int] = Query(None, ge=1, le=3),
    status: Optional[int] = Query(None, ge=0, le=1, description="0: disabled, 1: enabled"),
    keyword: Optional[str] = Query(None, description="Name contains"),
    page: int = Query(1, description="Page number (1-indexed)"),
    size: int = Query(20, description="Items per page (1-100)"),
    sort_by: Literal["sort", "name", "created_at", "updated_at"] = Query("sort"),
    sort_order: Literal["asc", "desc"] = Query("asc"),
    service: CategoryService = Depends(get_category_service),
):
    """List categories with filters and pagination."""
    params = CategoryListParams(
        parent_id=parent_id,
        level=level,
        status=status,
        keyword=keyword,
        page=page,
        size=size,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    categories, total = await service.get_list(params)
    counts = await service.get_product_counts([c.id for c in categories])

    total_pages = (total + params.size - 1) // params.size if total > 0 else 0

    return ApiResponse(
        status="success",
        data=[_to_response(c, counts) for c in categories],
        meta=PaginationMeta(
            page=params.page,
            limit=params.size,
            total=total,
            total_pages=total_pages,
        ),
    )


@router.get("/{category_id}", response_model=ApiResponse)
async def get_category(category_id: UUID, service: CategoryService = Depends(get_category_service)):
    """Get one category with its parent, children, product count and a product preview."""
    category = await service.get_by_id(category_id)
    counts = await service.get_product_counts([category.id])
    preview = await service.get_product_preview(category.id)

    detail = CategoryDetailResponse(
        **_to_response(category, counts),
        products=[ProductBrief.model_validate(p) for p in preview],
    )
    return ApiResponse(status="success", data=detail.model_dump(mode="json"))


@router.get("/{category_id}/children", response_model=ApiResponse)
async def get_child_categories(category_id: UUID, service: CategoryService = Depends(get_category_service)):
    """Direct children of a category, ordered by sort."""
    children = await service.get_child_categories(category_id)
    counts = await service.get_product_counts([c.id for c in children])
    return ApiResponse(status="success", data=[_to_response(c, counts) for c in children])


@router.post("", response_model=ApiResponse, status_code=201)
async def create_category(
    body: CategoryCreateRequest,
    service: CategoryService = Depends(get_category_service),
    cache: CacheService = Depends(get_cache),
):
    """Create a category. Its level follows from the parent."""
    category = await service.create(
        name=body.name,
        parent_id=body.parent_id,
        sort=body.sort,
        status=body.status,
    )
    await invalidate_categories_cache(cache)
    return ApiResponse(status="success", data=_to_response(category, {}))


@router.put("/{category_id}", response_model=ApiResponse)
async def update_category(
    category_id: UUID,
    body: CategoryUpdateRequest,
    service: CategoryService = Depends(get_category_service),
    cache: CacheService = Depends(get_cache),
):
    """Update name, parent, sort or status. Only fields present in the body change."""
    category = await service.update(category_id, body.model_dump(exclude_unset=True))
    counts = await service.get_product_counts([category.id])
    await invalidate_categories_cache(cache)
    return ApiResponse(status="success", data=_to_response(category, counts))


@router.delete("/{category_id}", response_model=ApiResponse)
async def delete_category(
    category_id: UUID,
    service: CategoryService = Depends(get_category_service),
    cache: CacheService = Depends(get_cache),
):
    """Delete a category without children or products."""
    await service.delete(category_id)
    await invalidate_categories_cache(cache)
    return ApiResponse(status="success", data={"deleted": True})
