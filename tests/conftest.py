"""Test config and shared fixtures."""
import pytest
from typing import AsyncGenerator, Generator, List
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine
from sqlmodel.ext.asyncio.session import AsyncSession

from main import app
from framework.repository import AsyncUnitOfWork, UnitOfWork
from framework.repository.dependencies import get_db
from apps.catalog.models import Category, Product
from entities import Hero, Team


# In-memory SQLite for tests
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
TEST_SYNC_DATABASE_URL = "sqlite://"


@pytest.fixture
def engine():
    """Sync in-memory engine with all tables created."""
    engine = create_engine(
        TEST_SYNC_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session(engine) -> Generator[Session, None, None]:
    """Sync session; keeps the default expire_on_commit=True."""
    with Session(engine) as session:
        yield session


@pytest.fixture
def uow(session: Session) -> Generator[UnitOfWork, None, None]:
    unit_of_work = UnitOfWork(session=session)
    yield unit_of_work
    unit_of_work.dispose()


@pytest.fixture(scope="function")
async def async_session() -> AsyncGenerator[AsyncSession, None]:
    """Create async test database session."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False
    )

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    async_session_maker = sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session_maker() as session:
        yield session
        await session.rollback()
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def async_uow(async_session: AsyncSession) -> AsyncGenerator[AsyncUnitOfWork, None]:
    unit_of_work = AsyncUnitOfWork(session=async_session)
    yield unit_of_work
    await unit_of_work.dispose()


@pytest.fixture
def heroes(session: Session) -> List[Hero]:
    """Five committed heroes aged 10..50; the first two belong to a team."""
    team = Team(name="Avengers")
    session.add(team)
    session.flush()
    rows = [
        Hero(name=name, age=age, team_id=team.id if index < 2 else None)
        for index, (name, age) in enumerate(
            [("Deadpond", 30), ("Rusty", 10), ("Spider", 50), ("Tarantula", 20), ("Black Lion", 40)]
        )
    ]
    session.add_all(rows)
    session.commit()
    for hero in rows:
        session.refresh(hero)
    return rows


@pytest.fixture
async def async_heroes(async_session: AsyncSession) -> List[Hero]:
    team = Team(name="Avengers")
    async_session.add(team)
    await async_session.flush()
    rows = [
        Hero(name="Deadpond", age=30, team_id=team.id),
        Hero(name="Rusty", age=10, team_id=team.id),
        Hero(name="Spider", age=50),
    ]
    async_session.add_all(rows)
    await async_session.commit()
    return rows


@pytest.fixture
async def client(
    async_session: AsyncSession
) -> AsyncGenerator[AsyncClient, None]:
    """Create test client."""
    async def _get_db():
        yield async_session

    app.dependency_overrides[get_db] = _get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
async def sample_category(async_session: AsyncSession) -> Category:
    """Create sample category."""
    category = Category(name="Tools")
    async_session.add(category)
    await async_session.commit()
    await async_session.refresh(category)
    return category


@pytest.fixture
async def sample_products(async_session: AsyncSession, sample_category: Category) -> List[Product]:
    """Three active products in sample_category and one inactive one."""
    products = [
        Product(sku="HAM-1", name="Hammer", price=12.5, category_id=sample_category.id),
        Product(sku="SAW-1", name="Saw", price=25.0, category_id=sample_category.id),
        Product(sku="DRL-1", name="Drill", price=80.0, category_id=sample_category.id),
        Product(sku="OLD-1", name="Old Drill", price=5.0, is_active=False, category_id=sample_category.id),
    ]
    async_session.add_all(products)
    await async_session.commit()
    for product in products:
        await async_session.refresh(product)
    return products
