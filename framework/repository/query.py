"""
Query composition: predicate objects, statement building and fluent queries.
"""

from typing import Any, Callable, Generic, Iterable, List, Optional, Sequence, Tuple, Type, TypeVar, Union
from sqlalchemy import and_, or_
from sqlalchemy.orm import QueryableAttribute, selectinload
from sqlalchemy.sql.elements import ClauseElement
from sqlmodel import SQLModel, select
from sqlmodel.sql.expression import SelectOfScalar

T = TypeVar("T", bound=SQLModel)

OrderBy = Union[Callable[[SelectOfScalar], SelectOfScalar], Any, Sequence[Any]]


class QueryObject(Generic[T]):
    """
    Composable predicate.

    Subclasses build their expression in __init__ with and_()/or_():

        class ActiveProducts(QueryObject[Product]):
            def __init__(self, min_price):
                super().__init__(Product.is_active == True)
                self.and_(Product.price >= min_price)
    """

    def __init__(self, expression: Any = None):
        self._expression = expression

    def query(self) -> Any:
        """Return the composed expression, None when nothing was added."""
        return self._expression

    def and_(self, other: Union["QueryObject", Any]) -> "QueryObject[T]":
        other_expression = _expression_of(other)
        if other_expression is not None:
            current = self.query()
            self._expression = other_expression if current is None else and_(current, other_expression)
        return self

    def or_(self, other: Union["QueryObject", Any]) -> "QueryObject[T]":
        other_expression = _expression_of(other)
        if other_expression is not None:
            current = self.query()
            self._expression = other_expression if current is None else or_(current, other_expression)
        return self


def _expression_of(value: Any) -> Any:
    if isinstance(value, QueryObject):
        return value.query()
    return value


def as_criteria(predicate: Any) -> List[Any]:
    """Normalize None / expression / QueryObject / sequence of those into a flat list."""
    if predicate is None:
        return []
    if isinstance(predicate, QueryObject):
        expression = predicate.query()
        return [] if expression is None else [expression]
    if isinstance(predicate, (list, tuple)):
        criteria = []
        for item in predicate:
            criteria.extend(as_criteria(item))
        return criteria
    return [predicate]


def apply_order(statement: SelectOfScalar, order_by: OrderBy) -> SelectOfScalar:
    """order_by is either a callable receiving the statement or one or more order clauses."""
    if order_by is None:
        return statement
    if isinstance(order_by, (ClauseElement, QueryableAttribute)):
        return statement.order_by(order_by)
    if isinstance(order_by, (list, tuple)):
        return statement.order_by(*order_by)
    if callable(order_by):
        return order_by(statement)
    raise TypeError(f"Unsupported order_by value: {order_by!r}")


def build_select(
    model: Type[T],
    predicate: Any = None,
    order_by: OrderBy = None,
    includes: Optional[Iterable[Any]] = None,
    page: Optional[int] = None,
    page_size: Optional[int] = None,
) -> SelectOfScalar:
    """Build select(model) with eager loads, ordering, filtering and optional paging."""
    statement = select(model)

    for include in includes or ():
        statement = statement.options(selectinload(include))
    statement = apply_order(statement, order_by)

    criteria = as_criteria(predicate)
    if criteria:
        statement = statement.where(*criteria)

    if page is not None and page_size is not None:
        if page < 1:
            raise ValueError(f"page must be >= 1, got {page}")
        if page_size < 1:
            raise ValueError(f"page_size must be >= 1, got {page_size}")
        statement = statement.offset((page - 1) * page_size).limit(page_size)
    return statement


class _QueryFluentBase(Generic[T]):
    def __init__(self, repository, predicate: Any = None):
        self._repository = repository
        self._predicate = predicate
        self._order_by: OrderBy = None
        self._includes: List[Any] = []

    def order_by(self, order_by: OrderBy) -> "_QueryFluentBase[T]":
        self._order_by = order_by
        return self

    def include(self, *relationships: Any) -> "_QueryFluentBase[T]":
        self._includes.extend(relationships)
        return self

    def statement(self, page: Optional[int] = None, page_size: Optional[int] = None) -> SelectOfScalar:
        """The statement this query would run, for further composition."""
        return build_select(
            self._repository.model,
            self._predicate,
            self._order_by,
            self._includes,
            page,
            page_size,
        )


class QueryFluent(_QueryFluentBase[T]):
    """Fluent query over a sync Repository."""

    def select(self) -> List[T]:
        return self._repository.execute(self.statement())

    def select_page(self, page: int, page_size: int) -> Tuple[List[T], int]:
        """Return one page of results and the total number of matches."""
        statement = self.statement(page, page_size)
        total = self._repository.count(self._predicate)
        return self._repository.execute(statement), total

    def sql_query(self, sql: str, **params: Any) -> List[T]:
        return self._repository.select_query(sql, **params)


class AsyncQueryFluent(_QueryFluentBase[T]):
    """Fluent query over an AsyncRepository."""

    async def select(self) -> List[T]:
        return await self._repository.execute(self.statement())

    async def select_page(self, page: int, page_size: int) -> Tuple[List[T], int]:
        statement = self.statement(page, page_size)
        total = await self._repository.count(self._predicate)
        return await self._repository.execute(statement), total

    async def sql_query(self, sql: str, **params: Any) -> List[T]:
        return await self._repository.select_query(sql, **params)
