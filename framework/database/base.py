from abc import ABC, abstractmethod
from typing import AsyncIterator
from sqlmodel.ext.asyncio.session import AsyncSession


class BaseDatabaseDriver(ABC):
    """Owns an engine and hands out sessions bound to it."""

    @abstractmethod
    async def connect(self):
        pass

    @abstractmethod
    async def disconnect(self):
        pass

    @abstractmethod
    async def create_all(self):
        """Create every table registered on SQLModel.metadata."""

    @abstractmethod
    def get_session(self) -> AsyncIterator[AsyncSession]:
        pass
