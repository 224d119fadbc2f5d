# app/core/database.py

import ssl
from typing import AsyncGenerator

from loguru import logger
from sqlmodel import SQLModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.core.config import settings

if not settings.DATABASE_URL:
    raise RuntimeError("DATABASE_URL is not set")

# SQLite (aiosqlite) is used for local runs and tests; everything else is asyncpg
IS_SQLITE = settings.DATABASE_URL.startswith("sqlite")


def _connect_args() -> dict:
    if IS_SQLITE:
        return {}

    ctx = ssl.create_default_context()
    if not settings.DB_SSL_VERIFY:
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE

    # Transaction-mode poolers can't hold prepared statements
    return {
        "ssl": ctx,
        "statement_cache_size": 0,
        "prepared_statement_name_func": None,
    }


# Pooling is left to the external pooler
engine = create_async_engine(
    settings.DATABASE_URL,
    connect_args=_connect_args(),
    pool_pre_ping=True,
    poolclass=NullPool,
)
logger.info(f"Database engine configured ({engine.dialect.name})")

AsyncSessionLocal = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        yield session


def _register_tables():
    # Importing the model modules adds their tables to SQLModel.metadata
    from app.models import audit, notification, outpass, system_setting, user  # noqa: F401


async def init_db():
    _register_tables()
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    logger.info("Database tables ready")


async def drop_db():
    _register_tables()
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)


async def test_connection():
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
