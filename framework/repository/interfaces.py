"""
Repository and unit of work interfaces.

Sync and async flavours are separate because Session and AsyncSession are.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Generic, Iterable, List, Optional, Type, TypeVar, Union
from sqlmodel import SQLModel
from sqlmodel.sql.expression import SelectOfScalar

from .state import EntityEntry, ObjectState

T = TypeVar("T", bound=SQLModel)
E = TypeVar("E", bound=SQLModel)


class IsolationLevel(str, Enum):
    """Transaction isolation levels; values are SQLAlchemy isolation_level strings."""
    UNSPECIFIED = "UNSPECIFIED"
    READ_UNCOMMITTED = "READ UNCOMMITTED"
    READ_COMMITTED = "READ COMMITTED"
    REPEATABLE_READ = "REPEATABLE READ"
    SERIALIZABLE = "SERIALIZABLE"
    AUTOCOMMIT = "AUTOCOMMIT"


class IRepository(ABC, Generic[T]):
    """Repository interface; defines standard data access API."""

    @abstractmethod
    def find(self, *key_values: Any) -> Optional[T]:
        """Get entity by primary key."""

    @abstractmethod
    def find_one(self, *criteria: Any) -> Optional[T]:
        """Get the first entity matching the predicate."""

    @abstractmethod
    def find_first(self, sort_expression: Any, is_desc: bool, *criteria: Any) -> Optional[T]:
        """Get the first match after ordering."""

    @abstractmethod
    def select_query(self, sql: str, **params: Any) -> List[T]:
        """Run raw SQL and map the rows onto the entity."""

    @abstractmethod
    def insert(self, entity: T) -> T:
        pass

    @abstractmethod
    def insert_range(self, entities: Iterable[T]) -> List[T]:
        pass

    @abstractmethod
    def update(self, entity: T) -> T:
        pass

    @abstractmethod
    def delete(self, entity_or_id: Any) -> bool:
        pass

    @abstractmethod
    def filter(
        self,
        predicate: Any = None,
        order_by: Any = None,
        includes: Optional[Iterable[Any]] = None,
        page: Optional[int] = None,
        page_size: Optional[int] = None,
    ) -> List[T]:
        pass

    @abstractmethod
    def get_all(self) -> List[T]:
        pass

    @abstractmethod
    def query(self, predicate: Any = None):
        """Start a fluent query, optionally from a QueryObject or predicate."""

    @abstractmethod
    def queryable(self) -> SelectOfScalar:
        pass

    @abstractmethod
    def get_repository(self, model: Type[E]) -> "IRepository[E]":
        pass


class IRepositoryAsync(ABC, Generic[T]):
    """Async repository interface."""

    @abstractmethod
    async def find(self, *key_values: Any) -> Optional[T]:
        pass

    @abstractmethod
    async def find_one(self, *criteria: Any) -> Optional[T]:
        pass

    @abstractmethod
    async def find_first(self, sort_expression: Any, is_desc: bool, *criteria: Any) -> Optional[T]:
        pass

    @abstractmethod
    async def select_query(self, sql: str, **params: Any) -> List[T]:
        pass

    @abstractmethod
    async def insert(self, entity: T) -> T:
        pass

    @abstractmethod
    async def insert_range(self, entities: Iterable[T]) -> List[T]:
        pass

    @abstractmethod
    async def update(self, entity: T) -> T:
        pass

    @abstractmethod
    async def delete(self, entity_or_id: Any) -> bool:
        pass

    @abstractmethod
    async def filter(
        self,
        predicate: Any = None,
        order_by: Any = None,
        includes: Optional[Iterable[Any]] = None,
        page: Optional[int] = None,
        page_size: Optional[int] = None,
    ) -> List[T]:
        pass

    @abstractmethod
    async def get_all(self) -> List[T]:
        pass

    @abstractmethod
    def query(self, predicate: Any = None):
        pass

    @abstractmethod
    def queryable(self) -> SelectOfScalar:
        pass

    @abstractmethod
    def get_repository(self, model: Type[E]) -> "IRepositoryAsync[E]":
        pass


class IUnitOfWork(ABC):
    """Transaction boundary and repository registry over a sync session."""

    @abstractmethod
    def save_changes(self) -> int:
        pass

    @abstractmethod
    def dispose(self) -> None:
        pass

    @abstractmethod
    def repository(self, model: Type[E], repository_class: Optional[type] = None) -> IRepository[E]:
        pass

    @abstractmethod
    def begin_transaction(self, isolation_level: Union[IsolationLevel, str, None] = IsolationLevel.UNSPECIFIED) -> None:
        pass

    @abstractmethod
    def commit(self) -> bool:
        pass

    @abstractmethod
    def rollback(self) -> None:
        pass

    @abstractmethod
    def sync_objects_state_pre_commit(self) -> List[EntityEntry]:
        pass

    @abstractmethod
    def sync_objects_state_post_commit(self) -> None:
        pass

    @abstractmethod
    def sync_object_state(self, entity: Any, state: ObjectState) -> Any:
        pass


class IUnitOfWorkAsync(ABC):
    """Transaction boundary and repository registry over an AsyncSession."""

    @abstractmethod
    async def save_changes(self) -> int:
        pass

    @abstractmethod
    async def dispose(self) -> None:
        pass

    @abstractmethod
    def repository(self, model: Type[E], repository_class: Optional[type] = None) -> IRepositoryAsync[E]:
        pass

    @abstractmethod
    async def begin_transaction(self, isolation_level: Union[IsolationLevel, str, None] = IsolationLevel.UNSPECIFIED) -> None:
        pass

    @abstractmethod
    async def commit(self) -> bool:
        pass

    @abstractmethod
    async def rollback(self) -> None:
        pass

    @abstractmethod
    def sync_objects_state_pre_commit(self) -> List[EntityEntry]:
        pass

    @abstractmethod
    async def sync_objects_state_post_commit(self) -> None:
        pass

    @abstractmethod
    async def sync_object_state(self, entity: Any, state: ObjectState) -> Any:
        pass
