"""Custom exception classes for the application.

Every category failure carries a stable ``code`` and an HTTP ``status_code``
so the API layer can map it to an error envelope without string matching.
"""

from typing import Optional


class MallException(Exception):
    """Base exception for all mall errors."""

    code: str = "INTERNAL_ERROR"
    status_code: int = 500

    def __init__(self, message: str = "An unexpected error occurred", field: Optional[str] = None):
        self.message = message
        self.field = field
        super().__init__(self.message)


class NotFoundError(MallException):
    """Raised when a requested resource is not found."""

    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, resource: str, identifier: str):
        super().__init__(f"{resource} with identifier '{identifier}' not found")


class CategoryError(MallException):
    """Base class for category hierarchy failures."""

    status_code = 400


# Input shape

class EmptyNameError(CategoryError):
    code = "EMPTY_NAME"

    def __init__(self):
        super().__init__("Category name must not be empty", field="name")


class NameTooLongError(CategoryError):
    code = "NAME_TOO_LONG"

    def __init__(self, max_length: int):
        super().__init__(f"Category name must be at most {max_length} characters", field="name")


class SortOutOfRangeError(CategoryError):
    code = "SORT_OUT_OF_RANGE"

    def __init__(self, sort: int, low: int, high: int):
        self.sort = sort
        super().__init__(f"Sort value {sort} must be between {low} and {high}", field="sort")


# Referential integrity

class CategoryNotFoundError(NotFoundError):
    code = "CATEGORY_NOT_FOUND"

    def __init__(self, category_id):
        super().__init__("Category", str(category_id))
        self.field = "id"


class ParentNotFoundError(CategoryError):
    code = "PARENT_NOT_FOUND"

    def __init__(self, parent_id):
        super().__init__(f"Parent category '{parent_id}' not found", field="parent_id")


# Structure

class DepthExceededError(CategoryError):
    code = "DEPTH_EXCEEDED"

    def __init__(self, max_level: int):
        super().__init__(f"Category hierarchy cannot exceed {max_level} levels", field="parent_id")


class CycleDetectedError(CategoryError):
    code = "CYCLE_DETECTED"

    def __init__(self):
        super().__init__("Cannot move a category under one of its descendants", field="parent_id")


class SelfParentError(CategoryError):
    code = "SELF_PARENT"

    def __init__(self):
        super().__init__("A category cannot be its own parent", field="parent_id")


class DuplicateSiblingError(CategoryError):
    code = "DUPLICATE_SIBLING"
    status_code = 409

    def __init__(self, name: str):
        super().__init__(f"A sibling category named '{name}' already exists", field="name")


# Delete guards

class HasChildrenError(CategoryError):
    code = "HAS_CHILDREN"
    status_code = 409

    def __init__(self, count: int):
        self.count = count
        super().__init__(f"Category has {count} child categories and cannot be deleted")


class HasProductsError(CategoryError):
    code = "HAS_PRODUCTS"
    status_code = 409

    def __init__(self, count: int):
        self.count = count
        super().__init__(f"Category has {count} products and cannot be deleted")
