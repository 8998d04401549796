"""
数据库引擎与会话工厂

PostgreSQL (asyncpg) 为生产目标；SQLite (aiosqlite) 用于本地开发和测试。
"""
from typing import Any, Dict

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from core.config import DatabaseSettings, settings
from core.logging_config import get_logger
from infrastructure.models import Base


logger = get_logger(__name__)

_ASYNC_DRIVERS = {
    "postgresql": "postgresql+asyncpg",
    "postgres": "postgresql+asyncpg",
    "sqlite": "sqlite+aiosqlite",
}


def build_async_url(database_url: str) -> str:
    """确保数据库URL使用异步驱动"""
    url = make_url(database_url)
    if "+" in url.drivername:
        return database_url
    if url.drivername not in _ASYNC_DRIVERS:
        raise ValueError(f"不支持的数据库驱动: {url.drivername}. 请使用 asyncpg/aiosqlite 或更新DATABASE__URL")
    return url.set(drivername=_ASYNC_DRIVERS[url.drivername]).render_as_string(hide_password=False)


def _engine_options(db: DatabaseSettings, async_url: str) -> Dict[str, Any]:
    options: Dict[str, Any] = {"echo": db.echo}
    url = make_url(async_url)
    if url.get_backend_name() == "sqlite":
        # 内存库必须共享同一连接，否则每个会话看到的是空库
        if url.database in (None, "", ":memory:"):
            options["poolclass"] = StaticPool
        options["connect_args"] = {"check_same_thread": False}
        return options
    options.update(
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_pre_ping=True,
        pool_recycle=db.pool_recycle,
    )
    return options


def build_engine(db: DatabaseSettings) -> AsyncEngine:
    async_url = build_async_url(db.url)
    return create_async_engine(async_url, **_engine_options(db, async_url))


engine = build_engine(settings.database)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    expire_on_commit=False,
)


async def create_tables():
    """
    创建所有表

    仅用于开发环境；生产环境通过 alembic 迁移建表
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("database_tables_created", tables=sorted(Base.metadata.tables))


async def ping_database() -> None:
    """执行 SELECT 1；失败时抛出 SQLAlchemyError 由调用方处理"""
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))


async def dispose_engine() -> None:
    await engine.dispose()
