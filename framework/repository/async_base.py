"""
Generic repository over a sqlmodel AsyncSession.
"""

from typing import Any, Iterable, List, Optional, Type, TypeVar, TYPE_CHECKING
from sqlalchemy import text
from sqlmodel import SQLModel, select, func
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlmodel.sql.expression import SelectOfScalar

from .base import criteria_from_filters, identity_of
from .interfaces import IRepositoryAsync
from .query import AsyncQueryFluent, as_criteria, build_select
from .state import ObjectState, StateHelper

if TYPE_CHECKING:
    from .unit_of_work import AsyncUnitOfWork

T = TypeVar("T", bound=SQLModel)
E = TypeVar("E", bound=SQLModel)


class AsyncRepository(IRepositoryAsync[T]):
    """Generic async repository implementation with SQLModel CRUD; subclasses can add custom queries."""

    model: Optional[Type[T]] = None

    def __init__(self, session: AsyncSession, model: Optional[Type[T]] = None, unit_of_work: Optional["AsyncUnitOfWork"] = None):
        self.session = session
        self.model = model if model is not None else type(self).model
        if self.model is None:
            raise TypeError(f"{type(self).__name__} needs a model")
        self.unit_of_work = unit_of_work

    async def _track(self, entity: Any, state: ObjectState) -> Any:
        if self.unit_of_work is not None:
            return await self.unit_of_work.sync_object_state(entity, state)
        return await StateHelper.apply_state_async(self.session, entity, state)

    async def execute(self, statement: SelectOfScalar) -> List[T]:
        result = await self.session.exec(statement)
        return list(result.all())

    async def find(self, *key_values: Any) -> Optional[T]:
        """Get entity by primary key."""
        return await self.session.get(self.model, identity_of(key_values))

    async def find_one(self, *criteria: Any) -> Optional[T]:
        result = await self.session.exec(build_select(self.model, criteria))
        return result.first()

    async def find_first(self, sort_expression: Any, is_desc: bool, *criteria: Any) -> Optional[T]:
        order = sort_expression.desc() if is_desc else sort_expression.asc()
        statement = build_select(self.model, criteria, order_by=order).limit(1)
        result = await self.session.exec(statement)
        return result.first()

    async def select_query(self, sql: str, **params: Any) -> List[T]:
        statement = select(self.model).from_statement(text(sql))
        result = await self.session.scalars(statement, params)
        return list(result.all())

    async def insert(self, entity: T) -> T:
        return await self._track(entity, ObjectState.ADDED)

    async def insert_range(self, entities: Iterable[T]) -> List[T]:
        return [await self.insert(entity) for entity in entities]

    async def update(self, entity: T) -> T:
        return await self._track(entity, ObjectState.MODIFIED)

    async def delete(self, entity_or_id: Any) -> bool:
        """Delete by instance or by key; False if the key matches nothing."""
        if isinstance(entity_or_id, self.model):
            entity = entity_or_id
        else:
            entity = await self.session.get(self.model, entity_or_id)
            if entity is None:
                return False
        await self._track(entity, ObjectState.DELETED)
        return True

    async def filter(
        self,
        predicate: Any = None,
        order_by: Any = None,
        includes: Optional[Iterable[Any]] = None,
        page: Optional[int] = None,
        page_size: Optional[int] = None,
    ) -> List[T]:
        statement = build_select(self.model, predicate, order_by, includes, page, page_size)
        return await self.execute(statement)

    async def get_all(self) -> List[T]:
        return await self.execute(select(self.model))

    def query(self, predicate: Any = None) -> AsyncQueryFluent[T]:
        return AsyncQueryFluent(self, predicate)

    def queryable(self) -> SelectOfScalar:
        return select(self.model)

    def get_repository(self, model: Type[E]) -> "AsyncRepository[E]":
        if self.unit_of_work is not None:
            return self.unit_of_work.repository(model)
        return AsyncRepository(self.session, model)

    async def find_by(self, **filters: Any) -> Optional[T]:
        """Find one entity by filters (e.g. sku='A-1')."""
        result = await self.session.exec(build_select(self.model, criteria_from_filters(self.model, filters)))
        return result.first()

    async def find_all(self, **filters: Any) -> List[T]:
        return await self.execute(build_select(self.model, criteria_from_filters(self.model, filters)))

    async def count(self, *criteria: Any, **filters: Any) -> int:
        """Count entities matching criteria and filters."""
        statement = select(func.count()).select_from(self.model)
        where = as_criteria(criteria) + criteria_from_filters(self.model, filters)
        if where:
            statement = statement.where(*where)
        result = await self.session.exec(statement)
        return result.one()
