"""FastAPI dependency injection providers."""

from typing import AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from mall.db.session import async_session_factory
from mall.repositories.category_repository import CategoryRepository
from mall.services.category_service import CategoryService


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a database session for request-scoped usage.

    The session is automatically committed on success or rolled back on error.
    Always closed after the request completes.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def get_category_service(db: AsyncSession = Depends(get_db)) -> CategoryService:
    """Category service wired to the request's session."""
    return CategoryService(CategoryRepository(db))
