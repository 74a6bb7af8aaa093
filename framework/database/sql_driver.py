from sqlmodel import SQLModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel.ext.asyncio.session import AsyncSession
from loguru import logger
from .base import BaseDatabaseDriver


class SQLDriver(BaseDatabaseDriver):
    def __init__(self, url: str, echo: bool = False):
        self.url = url
        engine_kwargs = {}
        if url.startswith("sqlite") and ":memory:" in url:
            # One shared connection, otherwise every session sees an empty database
            engine_kwargs = {"connect_args": {"check_same_thread": False}, "poolclass": StaticPool}
        self.engine = create_async_engine(url, echo=echo, future=True, **engine_kwargs)
        self.session_factory = sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )

    async def connect(self):
        """Connect to database (SQLModel engine manages connections)."""
        async with self.engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info(f"Database connected: {self.engine.url.render_as_string(hide_password=True)}")

    async def disconnect(self):
        """Disconnect from database."""
        await self.engine.dispose()

    async def create_all(self):
        async with self.engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)

    async def get_session(self):
        async with self.session_factory() as session:
            yield session
