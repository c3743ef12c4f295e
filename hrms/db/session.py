"""
Async SQLAlchemy engine & session factory (asyncpg driver).

Store access is bounded: pool checkout waits at most ``DB_POOL_TIMEOUT``
and each statement at most ``DB_COMMAND_TIMEOUT`` seconds.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from hrms.core.config import settings

engine_args = {
    "echo": False,
    "pool_pre_ping": True,
}

if "postgresql" in settings.DATABASE_URL:
    engine_args.update(
        {
            "pool_size": 20,
            "max_overflow": 10,
            "pool_recycle": 300,
            "pool_timeout": settings.DB_POOL_TIMEOUT,
            "connect_args": {"command_timeout": settings.DB_COMMAND_TIMEOUT},
        }
    )

engine = create_async_engine(
    settings.DATABASE_URL,
    **engine_args,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

