"""Persistence boundaries used by the service layer."""

from mall.repositories.category_repository import CategoryRepository

__all__ = ["CategoryRepository"]
