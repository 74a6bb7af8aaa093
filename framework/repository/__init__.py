"""
Repository pattern: data access abstraction, decouples service layer from database session.
"""

from .async_base import AsyncRepository
from .base import Repository
from .exceptions import (
    IsolationLevelError,
    TransactionAlreadyStartedError,
    TransactionNotStartedError,
    UnitOfWorkDisposedError,
    UnitOfWorkError,
)
from .interfaces import IRepository, IRepositoryAsync, IsolationLevel, IUnitOfWork, IUnitOfWorkAsync
from .query import AsyncQueryFluent, QueryFluent, QueryObject
from .state import EntityEntry, ObjectState, StateHelper
from .unit_of_work import AsyncUnitOfWork, UnitOfWork

__all__ = [
    "AsyncQueryFluent",
    "AsyncRepository",
    "AsyncUnitOfWork",
    "EntityEntry",
    "IRepository",
    "IRepositoryAsync",
    "IUnitOfWork",
    "IUnitOfWorkAsync",
    "IsolationLevel",
    "IsolationLevelError",
    "ObjectState",
    "QueryFluent",
    "QueryObject",
    "Repository",
    "StateHelper",
    "TransactionAlreadyStartedError",
    "TransactionNotStartedError",
    "UnitOfWork",
    "UnitOfWorkDisposedError",
    "UnitOfWorkError",
]
