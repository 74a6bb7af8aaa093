"""
FastAPI dependency providers for sessions and units of work.
"""

from fastapi import Depends
from sqlmodel.ext.asyncio.session import AsyncSession
from framework.database.manager import DatabaseManager
from .unit_of_work import AsyncUnitOfWork


async def get_db():
    """Get database session."""
    manager = DatabaseManager.get_instance()
    async for session in manager.sql.get_session():
        yield session


async def get_uow(db: AsyncSession = Depends(get_db)):
    """Dependency: create AsyncUnitOfWork; disposed when the request ends."""
    uow = AsyncUnitOfWork(session=db)
    try:
        yield uow
    finally:
        await uow.dispose()
