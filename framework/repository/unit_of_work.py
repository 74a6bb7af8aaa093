"""
Unit of Work: manages repositories and transaction boundaries.
"""

from typing import Any, Callable, Dict, List, Optional, Union
from loguru import logger
from sqlalchemy import event
from sqlalchemy.orm import Session as _OrmSession
from sqlmodel import Session
from sqlmodel.ext.asyncio.session import AsyncSession

from .async_base import AsyncRepository
from .base import Repository
from .exceptions import (
    IsolationLevelError,
    TransactionAlreadyStartedError,
    TransactionNotStartedError,
    UnitOfWorkDisposedError,
)
from .interfaces import IsolationLevel, IUnitOfWork, IUnitOfWorkAsync
from .state import EntityEntry, ObjectState, StateHelper


def _isolation_level(isolation_level: Union[IsolationLevel, str, None]) -> IsolationLevel:
    if isolation_level is None:
        return IsolationLevel.UNSPECIFIED
    return IsolationLevel(isolation_level)


def _execution_options(isolation_level: Union[IsolationLevel, str, None]) -> Optional[dict]:
    level = _isolation_level(isolation_level)
    if level is IsolationLevel.UNSPECIFIED:
        return None
    return {"isolation_level": level.value}


class _UnitOfWorkBase:
    """State shared by the sync and async units of work."""

    default_repository_class: type = Repository

    def __init__(
        self,
        session,
        orm_session: _OrmSession,
        owns_session: bool = False,
        repository_factory: Optional[Callable[[type, Any], Any]] = None,
    ):
        self.session = session
        self._orm_session = orm_session
        self._owns_session = owns_session
        self._repository_factory = repository_factory
        self._repositories: Dict[str, Any] = {}
        self._transaction_open = False
        self._disposed = False
        self._saving = False
        self._flushed_changes = 0
        event.listen(self._orm_session, "after_flush", self._count_flushed)
        event.listen(self._orm_session, "after_commit", self._settle_flushed)
        event.listen(self._orm_session, "after_rollback", self._settle_flushed)

    def _count_flushed(self, session: _OrmSession, flush_context) -> None:
        # new/dirty/deleted still hold the pre-flush view here
        self._flushed_changes += (
            len(session.new)
            + len(session.deleted)
            + sum(1 for entity in session.dirty if session.is_modified(entity))
        )

    def _settle_flushed(self, session: _OrmSession) -> None:
        # Writes committed or rolled back outside save_changes() are no longer outstanding
        if not self._saving:
            self._flushed_changes = 0

    def _take_flushed_changes(self) -> int:
        changes, self._flushed_changes = self._flushed_changes, 0
        return changes

    def _has_uncommitted_changes(self) -> bool:
        return self._flushed_changes > 0 or bool(StateHelper.pending_entries(self._orm_session))

    def _ensure_active(self) -> None:
        if self._disposed:
            raise UnitOfWorkDisposedError()

    def _release(self) -> None:
        for name, listener in (
            ("after_flush", self._count_flushed),
            ("after_commit", self._settle_flushed),
            ("after_rollback", self._settle_flushed),
        ):
            if event.contains(self._orm_session, name, listener):
                event.remove(self._orm_session, name, listener)
        self._repositories.clear()
        self._flushed_changes = 0
        self._disposed = True

    @property
    def in_transaction(self) -> bool:
        """True between begin_transaction() and commit()/rollback()."""
        return self._transaction_open

    @property
    def disposed(self) -> bool:
        return self._disposed

    def repository(self, model: type, repository_class: Optional[type] = None):
        """Get or create the repository for model (cached per entity type name)."""
        self._ensure_active()
        if self._repository_factory is not None and repository_class is None:
            return self._repository_factory(model, self)

        if repository_class is None:
            repository_class = self.default_repository_class
            cache_key = model.__name__
        else:
            cache_key = f"{repository_class.__name__}_{model.__name__}"

        repository = self._repositories.get(cache_key)
        if repository is None:
            repository = repository_class(self.session, model, self)
            self._repositories[cache_key] = repository
        elif repository.model is not model:
            raise ValueError(
                f"Repository key '{cache_key}' is already bound to "
                f"{repository.model.__module__}.{repository.model.__qualname__}"
            )
        return repository

    def entries(self) -> List[EntityEntry]:
        """Every entity the session tracks, with its state."""
        self._ensure_active()
        return StateHelper.entries(self._orm_session)

    def sync_objects_state_pre_commit(self) -> List[EntityEntry]:
        """Entities with pending writes, as they stand before the flush."""
        self._ensure_active()
        pending = StateHelper.pending_entries(self._orm_session)
        if pending:
            logger.debug(
                "Pending changes: "
                + ", ".join(f"{type(e.entity).__name__}={e.state.value}" for e in pending)
            )
        return pending


class UnitOfWork(_UnitOfWorkBase, IUnitOfWork):
    """Manages related repositories with a shared Session and transaction commit/rollback."""

    default_repository_class = Repository

    def __init__(
        self,
        session: Optional[Session] = None,
        owns_session: bool = False,
        repository_factory: Optional[Callable[[type, "UnitOfWork"], Repository]] = None,
    ):
        """Initialize UnitOfWork; session must be provided (e.g. UnitOfWork.from_engine())."""
        if session is None:
            raise ValueError("Session must be provided. Use UnitOfWork.from_engine() or pass session explicitly.")
        super().__init__(session, session, owns_session, repository_factory)

    @classmethod
    def from_engine(cls, engine, **session_kwargs) -> "UnitOfWork":
        """Create a UnitOfWork that owns a new Session on engine."""
        return cls(session=Session(engine, **session_kwargs), owns_session=True)

    def save_changes(self) -> int:
        """Write pending changes; commits unless an explicit transaction is open.

        Returns the number of inserts, updates and deletes written since the
        previous save, including rows an autoflush already sent.
        """
        self._ensure_active()
        self.sync_objects_state_pre_commit()
        self._saving = True
        try:
            if self._transaction_open:
                self.session.flush()
            else:
                self.session.commit()
        except Exception:
            self._flushed_changes = 0
            raise
        finally:
            self._saving = False
        changes = self._take_flushed_changes()
        self.sync_objects_state_post_commit()
        logger.debug(f"Saved {changes} change(s)")
        return changes

    def begin_transaction(self, isolation_level: Union[IsolationLevel, str, None] = IsolationLevel.UNSPECIFIED) -> None:
        """Start an explicit transaction.

        A session that already began an implicit transaction (any read does)
        keeps its connection's isolation level, so for a specific level the
        read-only implicit transaction is ended first. Uncommitted writes make
        that impossible and raise IsolationLevelError.
        """
        self._ensure_active()
        level = _isolation_level(isolation_level)
        if self._transaction_open:
            raise TransactionAlreadyStartedError()
        options = _execution_options(level)
        restarted = False
        if options is not None and self.session.in_transaction():
            if self._has_uncommitted_changes():
                raise IsolationLevelError(level.value)
            self.session.commit()
            restarted = True
        self.session.connection(execution_options=options)
        self._transaction_open = True
        logger.debug(f"Transaction started (isolation={level.value})")
        if restarted:
            self.sync_objects_state_post_commit()

    def commit(self) -> bool:
        self._ensure_active()
        if not self._transaction_open:
            raise TransactionNotStartedError("commit")
        self.session.commit()
        self._transaction_open = False
        logger.debug("Transaction committed")
        return True

    def rollback(self) -> None:
        self._ensure_active()
        if not self._transaction_open:
            raise TransactionNotStartedError("rollback")
        self.session.rollback()
        self._transaction_open = False
        logger.debug("Transaction rolled back")
        self.sync_objects_state_post_commit()

    def flush(self) -> None:
        """Flush session (e.g. to get auto-increment IDs)."""
        self._ensure_active()
        self.session.flush()

    def sync_objects_state_post_commit(self) -> None:
        """Reload entities the ORM expired so they stay readable."""
        self._ensure_active()
        for entity in StateHelper.expired_entities(self.session):
            self.session.refresh(entity)

    def sync_object_state(self, entity: Any, state: ObjectState) -> Any:
        self._ensure_active()
        return StateHelper.apply_state(self.session, entity, state)

    def dispose(self) -> None:
        if self._disposed:
            return
        self._release()
        if self._owns_session:
            self.session.close()

    def __enter__(self) -> "UnitOfWork":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._disposed:
            return
        try:
            if exc_type is not None:
                if self._transaction_open:
                    self.rollback()
                else:
                    self.session.rollback()
            else:
                try:
                    self.save_changes()
                    if self._transaction_open:
                        self.commit()
                except Exception:
                    self.session.rollback()
                    self._transaction_open = False
                    raise
        finally:
            self.dispose()


class AsyncUnitOfWork(_UnitOfWorkBase, IUnitOfWorkAsync):
    """Manages related repositories with a shared AsyncSession and transaction commit/rollback."""

    default_repository_class = AsyncRepository

    def __init__(
        self,
        session: Optional[AsyncSession] = None,
        owns_session: bool = False,
        repository_factory: Optional[Callable[[type, "AsyncUnitOfWork"], AsyncRepository]] = None,
    ):
        """Initialize AsyncUnitOfWork; session must be provided (e.g. AsyncUnitOfWork.from_session())."""
        if session is None:
            raise ValueError("Session must be provided. Use AsyncUnitOfWork.from_session() or pass session explicitly.")
        super().__init__(session, session.sync_session, owns_session, repository_factory)

    @classmethod
    async def from_session(cls, session: AsyncSession) -> "AsyncUnitOfWork":
        """Create AsyncUnitOfWork from an existing session."""
        return cls(session=session)

    @classmethod
    def from_session_factory(cls, session_factory) -> "AsyncUnitOfWork":
        """Create an AsyncUnitOfWork owning a fresh session from session_factory."""
        return cls(session=session_factory(), owns_session=True)

    async def save_changes(self) -> int:
        self._ensure_active()
        self.sync_objects_state_pre_commit()
        self._saving = True
        try:
            if self._transaction_open:
                await self.session.flush()
            else:
                await self.session.commit()
        except Exception:
            self._flushed_changes = 0
            raise
        finally:
            self._saving = False
        changes = self._take_flushed_changes()
        await self.sync_objects_state_post_commit()
        logger.debug(f"Saved {changes} change(s)")
        return changes

    async def begin_transaction(self, isolation_level: Union[IsolationLevel, str, None] = IsolationLevel.UNSPECIFIED) -> None:
        self._ensure_active()
        level = _isolation_level(isolation_level)
        if self._transaction_open:
            raise TransactionAlreadyStartedError()
        options = _execution_options(level)
        restarted = False
        if options is not None and self.session.in_transaction():
            if self._has_uncommitted_changes():
                raise IsolationLevelError(level.value)
            await self.session.commit()
            restarted = True
        await self.session.connection(execution_options=options)
        self._transaction_open = True
        logger.debug(f"Transaction started (isolation={level.value})")
        if restarted:
            await self.sync_objects_state_post_commit()

    async def commit(self) -> bool:
        self._ensure_active()
        if not self._transaction_open:
            raise TransactionNotStartedError("commit")
        await self.session.commit()
        self._transaction_open = False
        logger.debug("Transaction committed")
        return True

    async def rollback(self) -> None:
        self._ensure_active()
        if not self._transaction_open:
            raise TransactionNotStartedError("rollback")
        await self.session.rollback()
        self._transaction_open = False
        logger.debug("Transaction rolled back")
        await self.sync_objects_state_post_commit()

    async def flush(self) -> None:
        """Flush session (e.g. to get auto-increment IDs)."""
        self._ensure_active()
        await self.session.flush()

    async def sync_objects_state_post_commit(self) -> None:
        """Reload expired entities; lazy loads are not possible on an AsyncSession."""
        self._ensure_active()
        for entity in StateHelper.expired_entities(self._orm_session):
            await self.session.refresh(entity)

    async def sync_object_state(self, entity: Any, state: ObjectState) -> Any:
        self._ensure_active()
        return await StateHelper.apply_state_async(self.session, entity, state)

    async def dispose(self) -> None:
        if self._disposed:
            return
        self._release()
        if self._owns_session:
            await self.session.close()

    async def __aenter__(self) -> "AsyncUnitOfWork":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._disposed:
            return
        try:
            if exc_type is not None:
                if self._transaction_open:
                    await self.rollback()
                else:
                    await self.session.rollback()
            else:
                try:
                    await self.save_changes()
                    if self._transaction_open:
                        await self.commit()
                except Exception:
                    await self.session.rollback()
                    self._transaction_open = False
                    raise
        finally:
            await self.dispose()
