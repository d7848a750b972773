"""
Database Configuration

Async SQLAlchemy engine, session factory and the FastAPI session dependency.

Tenant isolation:
- Every repository query filters by agency_id explicitly.
- ``set_tenant_context`` also publishes the agency id to Postgres as
  ``app.current_agency_id`` at the start of every transaction of the
  session, so the Row-Level Security policies created by the migrations
  apply. The setting is transaction-local and never leaks into pooled
  connections.
"""

import logging
from collections.abc import AsyncGenerator
from uuid import UUID

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Session

from pleeno.core.config import settings

logger = logging.getLogger(__name__)

engine = create_async_engine(
    settings.database_url,
    echo=settings.database_echo,
    pool_pre_ping=True,
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency yielding a database session.

    The session is rolled back if the request handler raises.
    """
    async with async_session_maker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


TENANT_INFO_KEY = "agency_id"
_SET_TENANT_SQL = text("SELECT set_config('app.current_agency_id', :agency_id, true)")


@event.listens_for(Session, "after_begin")
def _apply_tenant_context(session, _transaction, connection) -> None:
    agency_id = session.info.get(TENANT_INFO_KEY)
    if agency_id is not None:
        connection.execute(_SET_TENANT_SQL, {"agency_id": agency_id})


async def set_tenant_context(db: AsyncSession, agency_id: UUID | str) -> None:
    """Scope every transaction of ``db`` to the given agency for RLS policies."""
    db.info[TENANT_INFO_KEY] = str(agency_id)
    if db.in_transaction():
        await db.execute(_SET_TENANT_SQL, {"agency_id": str(agency_id)})


async def init_db() -> None:
    """Verify the database is reachable. Call on application startup."""
    async with engine.begin() as conn:
        await conn.execute(text("SELECT 1"))
    logger.info("Database connection verified")


async def close_db() -> None:
    """Dispose of the connection pool."""
    await engine.dispose()
