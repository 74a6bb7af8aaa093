"""
Entity state vocabulary and the mapping onto SQLAlchemy instance states.

The ORM owns change tracking; this module only translates between its
InstanceState flags and ObjectState, and forwards requested transitions
to the session (add / merge / delete / expunge / refresh).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional, Set
from sqlalchemy import inspect
from sqlalchemy.orm import Session
from sqlmodel.ext.asyncio.session import AsyncSession


class ObjectState(str, Enum):
    """State of an entity as seen by the unit of work."""
    DETACHED = "detached"
    UNCHANGED = "unchanged"
    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"


PENDING_STATES = (ObjectState.ADDED, ObjectState.MODIFIED, ObjectState.DELETED)


@dataclass(frozen=True)
class EntityEntry:
    """A tracked entity together with its current state."""
    entity: Any
    state: ObjectState


class StateHelper:
    """Maps ORM instance states to ObjectState and applies transitions."""

    @staticmethod
    def convert_state(entity: Any, session: Optional[Session] = None) -> ObjectState:
        """Read the ORM state of entity; session refines unflushed deletes and net modifications."""
        instance_state = inspect(entity)

        if instance_state.pending:
            return ObjectState.ADDED
        if instance_state.deleted:
            return ObjectState.DELETED
        if instance_state.persistent:
            if session is not None and entity in session.deleted:
                return ObjectState.DELETED
            modified = session.is_modified(entity) if session is not None else instance_state.modified
            return ObjectState.MODIFIED if modified else ObjectState.UNCHANGED
        return ObjectState.DETACHED

    @classmethod
    def entries(cls, session: Session) -> List[EntityEntry]:
        """Every entity the session tracks: identity map plus pending inserts."""
        tracked = list(session.identity_map.values()) + list(session.new)
        return [EntityEntry(entity, cls.convert_state(entity, session)) for entity in tracked]

    @classmethod
    def pending_entries(cls, session: Session) -> List[EntityEntry]:
        return [entry for entry in cls.entries(session) if entry.state in PENDING_STATES]

    @staticmethod
    def expired_columns(entity: Any) -> Set[str]:
        """Expired column attributes; unloaded lazy relationships are not counted."""
        instance_state = inspect(entity)
        return instance_state.expired_attributes & set(instance_state.mapper.column_attrs.keys())

    @classmethod
    def expired_entities(cls, session: Session) -> List[Any]:
        """Persistent entities whose columns the ORM expired (commit/rollback)."""
        return [entity for entity in session.identity_map.values() if cls.expired_columns(entity)]

    @staticmethod
    def apply_state(session: Session, entity: Any, state: ObjectState) -> Any:
        """Move entity into state on a sync session; returns the instance the session tracks."""
        current = inspect(entity)
        state = ObjectState(state)

        if state is ObjectState.ADDED:
            session.add(entity)
        elif state is ObjectState.MODIFIED:
            if current.transient:
                with session.no_autoflush:
                    entity = session.merge(entity)
            elif current.detached:
                session.add(entity)
        elif state is ObjectState.DELETED:
            if current.pending:
                # Never written, dropping it cancels the insert
                session.expunge(entity)
                return entity
            if current.transient:
                with session.no_autoflush:
                    entity = session.merge(entity)
            elif current.detached:
                session.add(entity)
            session.delete(entity)
        elif state is ObjectState.UNCHANGED:
            if current.transient:
                with session.no_autoflush:
                    entity = session.merge(entity)
            elif current.detached:
                session.add(entity)
            elif current.persistent and entity not in session.deleted:
                session.refresh(entity)
        elif state is ObjectState.DETACHED:
            if entity in session:
                session.expunge(entity)
        return entity

    @staticmethod
    async def apply_state_async(session: AsyncSession, entity: Any, state: ObjectState) -> Any:
        """Async counterpart of apply_state."""
        sync_session = session.sync_session
        current = inspect(entity)
        state = ObjectState(state)

        if state is ObjectState.ADDED:
            session.add(entity)
        elif state is ObjectState.MODIFIED:
            if current.transient:
                with sync_session.no_autoflush:
                    entity = await session.merge(entity)
            elif current.detached:
                session.add(entity)
        elif state is ObjectState.DELETED:
            if current.pending:
                session.expunge(entity)
                return entity
            if current.transient:
                with sync_session.no_autoflush:
                    entity = await session.merge(entity)
            elif current.detached:
                session.add(entity)
            await session.delete(entity)
        elif state is ObjectState.UNCHANGED:
            if current.transient:
                with sync_session.no_autoflush:
                    entity = await session.merge(entity)
            elif current.detached:
                session.add(entity)
            elif current.persistent and entity not in sync_session.deleted:
                await session.refresh(entity)
        elif state is ObjectState.DETACHED:
            if entity in sync_session:
                session.expunge(entity)
        return entity
