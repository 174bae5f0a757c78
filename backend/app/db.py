from __future__ import annotations

from typing import TYPE_CHECKING, Annotated

from fastapi import Depends
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import Session, with_loader_criteria
from sqlmodel import col

from app.config import get_settings
from app.models.base import SoftDeleteMixin

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.orm import ORMExecuteState

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None

INCLUDE_DELETED = "include_deleted"


def soft_delete_models() -> list[type[SoftDeleteMixin]]:
    """Mapped table classes that carry ``deleted_at``.

    The mixin itself is a plain SQLModel class with no mapped columns, so the
    criteria has to name each table class.
    """
    models: list[type[SoftDeleteMixin]] = []
    pending = list(SoftDeleteMixin.__subclasses__())
    while pending:
        cls = pending.pop()
        pending.extend(cls.__subclasses__())
        if hasattr(cls, "__table__") and cls not in models:
            models.append(cls)
    return models


@event.listens_for(Session, "do_orm_execute")
def _filter_soft_deleted(execute_state: ORMExecuteState) -> None:
    """Hide soft-deleted rows from every ORM SELECT, UPDATE and DELETE.

    Pass ``execution_options(include_deleted=True)`` to opt out.
    """
    if execute_state.is_column_load or execute_state.is_relationship_load:
        return
    if not (execute_state.is_select or execute_state.is_update or execute_state.is_delete):
        return
    if execute_state.execution_options.get(INCLUDE_DELETED, False):
        return
    execute_state.statement = execute_state.statement.options(
        *(
            with_loader_criteria(model, col(model.deleted_at).is_(None), include_aliases=True)
            for model in soft_delete_models()
        )
    )


def get_engine() -> AsyncEngine:
    """Return the singleton async engine, creating it on first call."""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_async_engine(
            settings.database_url,
            echo=settings.debug,
            pool_pre_ping=True,
        )
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the singleton async session factory."""
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            get_engine(),
            expire_on_commit=False,
        )
    return _session_factory


async def get_session() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency that yields an async database session."""
    factory = get_session_factory()
    async with factory() as session:
        yield session


SessionDep = Annotated[AsyncSession, Depends(get_session)]


async def dispose_engine() -> None:
    """Dispose the engine and reset singletons. Call on app shutdown."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None
