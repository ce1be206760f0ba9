# -*- coding: utf-8 -*-
"""
backend/app/shared/database/database.py

SQLAlchemy async (asyncpg en producción, aiosqlite en dev/tests).

Provee:
- build_engine(url): fábrica de engines (usada también por tests)
- engine (create_async_engine) y SessionLocal (async_sessionmaker)
- Dependencia FastAPI: get_async_session
- context manager: session_scope()
- create_all() para entornos sin migraciones
- check_database_health()

Autor: Banter Backend
Fecha: 2026-02-18
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from app.shared.config import get_settings
from app.shared.database.base import Base

logger = logging.getLogger(__name__)


def build_engine(url: str, *, echo: bool = False) -> AsyncEngine:
    """
    Crea un AsyncEngine según el dialecto.

    - SQLite en memoria: StaticPool (una sola conexión compartida).
    - SQLite en archivo: timeout de lock para escrituras concurrentes.
    - PostgreSQL: pool con pre-ping según settings.
    """
    kwargs: Dict[str, Any] = {"echo": echo}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False, "timeout": 15}
        if ":memory:" in url:
            kwargs["poolclass"] = StaticPool
    else:
        settings = get_settings()
        kwargs["pool_size"] = settings.db_pool_size
        kwargs["max_overflow"] = settings.db_max_overflow
        kwargs["pool_pre_ping"] = settings.db_pool_pre_ping
    return create_async_engine(url, **kwargs)


def build_sessionmaker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=bind,
        expire_on_commit=False,
        class_=AsyncSession,
        autoflush=False,
    )


_settings = get_settings()
DATABASE_URL = _settings.database_url

logger.debug("[DB] engine url=%s echo=%s", DATABASE_URL.split("@")[-1], _settings.db_echo_sql)

engine = build_engine(DATABASE_URL, echo=_settings.db_echo_sql)

# ── Session factory
SessionLocal = build_sessionmaker(engine)


# ── Dependencias FastAPI
async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    async with SessionLocal() as session:
        try:
            yield session
        except SQLAlchemyError:
            # Libera locks/transacción antes de propagar
            await session.rollback()
            raise


# ── Context manager reutilizable en scripts/tests
@asynccontextmanager
async def session_scope() -> AsyncGenerator[AsyncSession, None]:
    async with SessionLocal() as session:
        yield session
        # commit/rollback queda a cargo de quien usa el scope


async def create_all(bind: AsyncEngine | None = None) -> None:
    """Crea las tablas registradas en Base.metadata (dev/tests)."""
    # Registrar modelos en el metadata antes de crear
    import app.modules.accounts.models  # noqa: F401
    import app.modules.notifications.models  # noqa: F401
    import app.modules.billing.models  # noqa: F401
    import app.modules.billing.ledger.models  # noqa: F401

    target = bind or engine
    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# ── Health check
async def check_database_health(timeout_s: float = 3.0, sql: str = "SELECT 1") -> bool:
    """
    Verifica conectividad a la base de datos.

    Returns:
        True si la conexión es exitosa, False en caso contrario
    """
    try:
        async with asyncio.timeout(timeout_s):
            async with engine.connect() as conn:
                await conn.execute(text(sql))
        return True
    except (SQLAlchemyError, OSError, TimeoutError) as e:
        logger.warning("database_health_check_failed error=%s", repr(e))
        return False


__all__ = [
    "engine",
    "SessionLocal",
    "Base",
    "build_engine",
    "build_sessionmaker",
    "get_async_session",
    "session_scope",
    "create_all",
    "check_database_health",
]
# Fin del archivo backend/app/shared/database/database.py
