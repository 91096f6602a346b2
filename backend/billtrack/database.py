"""Database engine, session factory, and declarative base.

  - Base            → every BillTrack table
  - SoftDeleteMixin → `is_deleted` / `deleted_at` tombstone columns
  - get_db()        → request-scoped session (commit on success, rollback on error)
  - atomic()        → explicit unit of work inside a service
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator

from sqlalchemy import Boolean, DateTime
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from billtrack.config import settings

engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_size=20,
    max_overflow=10,
)

async_session = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


# ── Base classes ────────────────────────────────────────────

class Base(DeclarativeBase):
    pass


class SoftDeleteMixin:
    """Tombstone columns. Normal reads filter on `is_deleted == False`."""

    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime)

    def soft_delete(self) -> None:
        self.is_deleted = True
        self.deleted_at = datetime.utcnow()


# ── Session dependency ──────────────────────────────────────

async def get_db() -> AsyncIterator[AsyncSession]:
    """Yield a session for one request."""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def atomic(db: AsyncSession) -> AsyncIterator[AsyncSession]:
    """Commit every write made inside the block together, or none of them.

    Any exception raised inside the block rolls the session back before it
    propagates, so a half-written unit (e.g. a Payment without its
    Collection update) never reaches the database.
    """
    try:
        yield db
        await db.commit()
    except Exception:
        await db.rollback()
        raise
