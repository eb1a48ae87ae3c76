"""
Async database engine, session factory, and ORM base.

Rules enforced:
  • Every DB call goes through AsyncSession (no sync sessions).
  • Components receive a session or session factory explicitly; the
    process entry point owns the engine lifecycle.
  • The declarative Base is shared across all models so Alembic can
    auto-detect schema changes from a single metadata object.

SQLite (local dev + tests):
  Every transaction starts with BEGIN IMMEDIATE so concurrent writers
  queue on the busy timeout instead of failing mid-transaction.
"""

from collections.abc import AsyncGenerator

from fastapi import Depends
from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from keygate.core.config import settings


def build_engine(url: str, **kwargs) -> AsyncEngine:  # type: ignore[no-untyped-def]
    """
    Create an async engine for `url`.

    Extra kwargs go straight to create_async_engine (tests pass poolclass).
    """
    is_sqlite = make_url(url).get_backend_name() == "sqlite"
    if is_sqlite:
        kwargs.setdefault(
            "connect_args",
            {"timeout": settings.SQLITE_BUSY_TIMEOUT_SECONDS},
        )

    async_engine = create_async_engine(
        url,
        echo=settings.DEBUG,
        pool_pre_ping=True,
        **kwargs,
    )
    if is_sqlite:
        _configure_sqlite(async_engine)
    return async_engine


def _configure_sqlite(async_engine: AsyncEngine) -> None:
    """Take over transaction control from the sqlite3 driver."""

    @event.listens_for(async_engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, _connection_record) -> None:  # type: ignore[no-untyped-def]
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()
        # disable the driver's implicit BEGIN; we emit our own below
        dbapi_connection.isolation_level = None

    @event.listens_for(async_engine.sync_engine, "begin")
    def _on_begin(conn) -> None:  # type: ignore[no-untyped-def]
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=bind,
        class_=AsyncSession,
        expire_on_commit=False,  # avoid lazy-load issues after commit
    )


# ── Engine ──────────────────────────────────────────────────
engine = build_engine(settings.DATABASE_URL)

# ── Session factory ─────────────────────────────────────────
async_session_factory = build_session_factory(engine)


# ── ORM Base ────────────────────────────────────────────────
class Base(DeclarativeBase):
    """Shared declarative base for all SQLAlchemy models."""


# ── Dependencies ────────────────────────────────────────────
def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """
    The store handle injected into the gate, the ledger, and the recorder.

    Tests swap it via app.dependency_overrides.
    """
    return async_session_factory


async def get_db_session(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> AsyncGenerator[AsyncSession, None]:
    """
    Yield a scoped async session for one request.

    The session is committed by the caller (router/service);
    this generator only guarantees cleanup on exit.
    """
    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.close()
