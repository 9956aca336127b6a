"""Async database engine, session factory and declarative base."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from fleetbook.config import Settings


class Base(DeclarativeBase):
    """Declarative base for all engine tables."""


def get_engine(settings: Settings) -> AsyncEngine:
    """Create the async engine for the configured PostgreSQL database."""
    return create_async_engine(
        settings.database_url,
        echo=settings.debug,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=True,
    )


def get_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory; objects stay readable after commit."""
    return async_sessionmaker(bind=engine, expire_on_commit=False)


@asynccontextmanager
async def get_db_context(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Open a session wrapped in a single transaction.

    Commits on normal exit and rolls back when the block raises.
    """
    async with session_factory() as session:
        async with session.begin():
            yield session


async def init_db(engine: AsyncEngine) -> None:
    """Create all tables. Used for local development and tests."""
    import fleetbook.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db(engine: AsyncEngine) -> None:
    """Dispose of the connection pool."""
    await engine.dispose()


_INSERT_CONSTRUCTS = {
    "postgresql": postgresql_insert,
    "sqlite": sqlite_insert,
}


async def insert_if_missing(
    session: AsyncSession,
    model: type[Base],
    values: dict[str, Any],
    index_elements: list[str],
) -> None:
    """INSERT ... ON CONFLICT DO NOTHING for the current backend.

    Concurrent callers inserting the same key wait on each other instead of
    failing on the unique constraint.
    """
    dialect = session.get_bind().dialect.name
    insert_construct = _INSERT_CONSTRUCTS.get(dialect)
    if insert_construct is None:
        raise NotImplementedError(f"Unsupported database backend: {dialect}")
    stmt = insert_construct(model.__table__).values(**values).on_conflict_do_nothing(
        index_elements=index_elements
    )
    await session.execute(stmt)
