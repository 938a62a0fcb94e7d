# =============================================================================
# 数据库连接与会话管理模块
# =============================================================================
# 本模块负责 NewsDesk 的数据库连接管理，是整个后端的数据访问基础层。
# 主要职责：
#   1. 创建和管理 SQLAlchemy 异步数据库引擎（AsyncEngine）
#   2. 提供异步会话工厂（async_sessionmaker），用于生成数据库会话
#   3. 提供请求级会话的生命周期管理（成功提交、异常回滚）
#   4. 提供数据库初始化（建表）和关闭（释放连接池）功能
#   5. 提供数据库健康检查功能
#
# 架构设计说明：
#   - 模块级变量（_engine、_session_factory）惰性创建，整个进程共享同一连接池
#   - 会话通过 FastAPI 的 Depends(get_session) 注入到路由，再显式传给服务层，
#     服务层不持有任何全局数据库句柄
#   - 一个请求对应一个事务：路由正常返回则提交，抛出任何异常则回滚
#   - SQLite 连接默认不执行外键约束，enable_sqlite_foreign_keys 在每个新连接上
#     打开 PRAGMA foreign_keys，保证 ON DELETE CASCADE / SET NULL 生效
# =============================================================================

"""Database connection and session management for NewsDesk."""

from __future__ import annotations

import logging
from typing import AsyncGenerator

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from core.models.base import Base

logger = logging.getLogger(__name__)

# 模块级全局变量：数据库引擎实例，首次调用 get_engine() 时惰性创建
_engine: AsyncEngine | None = None

# 模块级全局变量：异步会话工厂实例，首次调用 get_session_factory() 时惰性创建
_session_factory: async_sessionmaker[AsyncSession] | None = None


def enable_sqlite_foreign_keys(engine: AsyncEngine) -> None:
    """Turn on foreign key enforcement for every new SQLite connection.

    No-op for other dialects, which enforce declared foreign keys natively.

    Args:
        engine: Async engine whose connections should enforce foreign keys.
    """
    if engine.dialect.name != "sqlite":
        return

    # 在底层同步引擎上监听 connect 事件，每个新建的 DBAPI 连接都会执行一次
    @event.listens_for(engine.sync_engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def get_engine() -> AsyncEngine:
    """Get or create the async database engine.

    Lazily constructs a singleton ``AsyncEngine`` from ``settings`` so the
    application shares a single connection pool.

    Returns:
        AsyncEngine: A shared asynchronous engine bound to ``settings.database_url``.

    Raises:
        sqlalchemy.exc.SQLAlchemyError: If the engine cannot be created due to
            invalid configuration or driver issues.
    """
    global _engine
    if _engine is None:
        # 延迟导入 settings，避免模块加载时的循环依赖
        from settings import settings

        # pool_size: 连接池中保持的持久连接数
        # max_overflow: 超出 pool_size 后允许额外创建的临时连接数
        # pool_recycle: 连接回收时间（秒），防止数据库服务端超时断开
        _engine = create_async_engine(
            settings.database_url,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_recycle=settings.db_pool_recycle,
            echo=settings.db_echo,
        )
        enable_sqlite_foreign_keys(_engine)
        logger.info("Database engine created")
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get or create the async session factory.

    The factory is configured with ``expire_on_commit=False`` to avoid
    implicit lazy-loading after ``await`` boundaries in async handlers.

    Returns:
        async_sessionmaker[AsyncSession]: A session factory bound to the shared engine.
    """
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            # 提交后不自动过期对象属性，避免在 await 之后意外触发惰性加载
            expire_on_commit=False,
        )
    return _session_factory


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session for FastAPI dependencies.

    Commits on success and rolls back on any exception, so each request is
    one store transaction.

    Yields:
        AsyncSession: An active async SQLAlchemy session.

    Raises:
        Exception: Re-raises any exception raised by downstream handlers after
            rolling back the session.
    """
    factory = get_session_factory()
    async with factory() as session:
        try:
            yield session
            # 路由处理函数正常返回，提交事务
            await session.commit()
        except Exception:
            # 任何异常都回滚，保证没有部分写入
            await session.rollback()
            raise


async def init_db() -> None:
    """Create all tables registered on ``Base.metadata`` if missing.

    Raises:
        sqlalchemy.exc.SQLAlchemyError: If schema creation fails.
    """
    engine = get_engine()
    async with engine.begin() as conn:
        # run_sync 将同步的 DDL 操作放到同步上下文中执行
        # 已存在的表会被跳过，不会覆盖或修改已有表结构
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created/verified")


async def close_db() -> None:
    """Dispose the database engine and clear the session factory."""
    global _engine, _session_factory
    if _engine:
        await _engine.dispose()
        _engine = None
        _session_factory = None
        logger.info("Database connections closed")


async def check_db_connection() -> bool:
    """Check whether the database connection is healthy.

    Executes a lightweight ``SELECT 1`` on a fresh connection.

    Returns:
        bool: ``True`` if the query succeeds, otherwise ``False``.
    """
    try:
        engine = get_engine()
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        # 健康检查只报告状态，由调用方决定返回 503 还是中止启动
        logger.error(f"Database connection check failed: {e}")
        return False
