"""
Generic repository over a sqlmodel Session.
"""

from typing import Any, Iterable, List, Optional, Type, TypeVar, TYPE_CHECKING
from sqlalchemy import text
from sqlmodel import Session, SQLModel, select, func
from sqlmodel.sql.expression import SelectOfScalar

from .interfaces import IRepository
from .query import QueryFluent, as_criteria, build_select
from .state import ObjectState, StateHelper

if TYPE_CHECKING:
    from .unit_of_work import UnitOfWork

T = TypeVar("T", bound=SQLModel)
E = TypeVar("E", bound=SQLModel)


def identity_of(key_values: tuple) -> Any:
    """Turn positional key values into the identity session.get() expects."""
    if not key_values:
        raise ValueError("At least one key value is required")
    return key_values[0] if len(key_values) == 1 else tuple(key_values)


def criteria_from_filters(model: Type[SQLModel], filters: dict) -> List[Any]:
    """Equality criteria from keyword filters (e.g. username='admin')."""
    criteria = []
    for key, value in filters.items():
        if not hasattr(model, key):
            raise ValueError(f"{model.__name__} has no attribute '{key}'")
        criteria.append(getattr(model, key) == value)
    return criteria


class Repository(IRepository[T]):
    """Generic repository with SQLModel CRUD; subclasses can add custom queries.

    Subclasses may pin the entity type with a class attribute instead of passing it:

        class ProductRepository(Repository[Product]):
            model = Product
    """

    model: Optional[Type[T]] = None

    def __init__(self, session: Session, model: Optional[Type[T]] = None, unit_of_work: Optional["UnitOfWork"] = None):
        """Initialize repository with session and model."""
        self.session = session
        self.model = model if model is not None else type(self).model
        if self.model is None:
            raise TypeError(f"{type(self).__name__} needs a model")
        self.unit_of_work = unit_of_work

    def _track(self, entity: Any, state: ObjectState) -> Any:
        if self.unit_of_work is not None:
            return self.unit_of_work.sync_object_state(entity, state)
        return StateHelper.apply_state(self.session, entity, state)

    def execute(self, statement: SelectOfScalar) -> List[T]:
        result = self.session.exec(statement)
        return list(result.all())

    def find(self, *key_values: Any) -> Optional[T]:
        """Get entity by primary key; composite keys are passed positionally."""
        return self.session.get(self.model, identity_of(key_values))

    def find_one(self, *criteria: Any) -> Optional[T]:
        statement = build_select(self.model, criteria)
        return self.session.exec(statement).first()

    def find_first(self, sort_expression: Any, is_desc: bool, *criteria: Any) -> Optional[T]:
        order = sort_expression.desc() if is_desc else sort_expression.asc()
        statement = build_select(self.model, criteria, order_by=order).limit(1)
        return self.session.exec(statement).first()

    def select_query(self, sql: str, **params: Any) -> List[T]:
        """Raw SQL passthrough; bind parameters use :name syntax."""
        statement = select(self.model).from_statement(text(sql))
        return list(self.session.scalars(statement, params).all())

    def insert(self, entity: T) -> T:
        return self._track(entity, ObjectState.ADDED)

    def insert_range(self, entities: Iterable[T]) -> List[T]:
        return [self.insert(entity) for entity in entities]

    def update(self, entity: T) -> T:
        """Mark entity modified; returns the instance the session tracks."""
        return self._track(entity, ObjectState.MODIFIED)

    def delete(self, entity_or_id: Any) -> bool:
        """Delete by instance or by key; False if the key matches nothing."""
        if isinstance(entity_or_id, self.model):
            entity = entity_or_id
        else:
            entity = self.session.get(self.model, entity_or_id)
            if entity is None:
                return False
        self._track(entity, ObjectState.DELETED)
        return True

    def filter(
        self,
        predicate: Any = None,
        order_by: Any = None,
        includes: Optional[Iterable[Any]] = None,
        page: Optional[int] = None,
        page_size: Optional[int] = None,
    ) -> List[T]:
        statement = build_select(self.model, predicate, order_by, includes, page, page_size)
        return self.execute(statement)

    def get_all(self) -> List[T]:
        return self.execute(select(self.model))

    def query(self, predicate: Any = None) -> QueryFluent[T]:
        return QueryFluent(self, predicate)

    def queryable(self) -> SelectOfScalar:
        return select(self.model)

    def get_repository(self, model: Type[E]) -> "Repository[E]":
        """Repository for another entity sharing this session."""
        if self.unit_of_work is not None:
            return self.unit_of_work.repository(model)
        return Repository(self.session, model)

    def find_by(self, **filters: Any) -> Optional[T]:
        """Find one entity by filters (e.g. username='admin')."""
        statement = build_select(self.model, criteria_from_filters(self.model, filters))
        return self.session.exec(statement).first()

    def find_all(self, **filters: Any) -> List[T]:
        """Find entities by filters."""
        return self.execute(build_select(self.model, criteria_from_filters(self.model, filters)))

    def count(self, *criteria: Any, **filters: Any) -> int:
        """Count entities matching criteria and filters."""
        statement = select(func.count()).select_from(self.model)
        where = as_criteria(criteria) + criteria_from_filters(self.model, filters)
        if where:
            statement = statement.where(*where)
        return self.session.exec(statement).one()
