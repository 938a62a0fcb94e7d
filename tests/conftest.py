"""Shared test fixtures for NewsDesk tests."""

from __future__ import annotations

import os
import sys
from typing import AsyncGenerator, Generator

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy import BigInteger
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Ensure the project root is on sys.path so bare imports work
_PROJECT_ROOT = os.path.join(os.path.dirname(__file__), os.pardir)
if _PROJECT_ROOT not in sys.path:
    sys.path.insert(0, os.path.abspath(_PROJECT_ROOT))

# Use in-memory SQLite for tests (faster, no external dependencies)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
TEST_PASSWORD = "password123"


# Fix BigInteger autoincrement on SQLite: BigInteger maps to BIGINT which
# doesn't support autoincrement in SQLite.  Only the exact type name INTEGER
# gets the special ROWID alias behaviour.  We register a compilation hook so
# that BigInteger renders as INTEGER on the sqlite dialect.
from sqlalchemy.ext.compiler import compiles as _compiles  # noqa: E402


@_compiles(BigInteger, "sqlite")
def _compile_big_int_sqlite(type_, compiler, **kw):
    return "INTEGER"


def register_models() -> None:
    """Import every model module so its table is on ``Base.metadata``."""
    import apps.content.models  # noqa: F401
    import apps.feedback.models  # noqa: F401
    import apps.subscription.models  # noqa: F401
    import core.models.user  # noqa: F401


def make_test_engine(url: str = TEST_DATABASE_URL, **kwargs) -> AsyncEngine:
    """Create a SQLite engine with foreign keys enforced.

    创建测试用 SQLite 引擎并打开外键约束（级联删除依赖它）。
    内存数据库使用 StaticPool，保证所有连接共享同一个数据库。
    """
    from core.database import enable_sqlite_foreign_keys

    if url == TEST_DATABASE_URL:
        kwargs.setdefault("poolclass", StaticPool)
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    engine = create_async_engine(url, echo=False, **kwargs)
    enable_sqlite_foreign_keys(engine)
    return engine


@pytest_asyncio.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Provide a fresh in-memory database with the full schema.

    每个测试使用独立的内存数据库，测试之间互不影响。
    """
    from core.models.base import Base

    register_models()
    engine = make_test_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def file_db_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Provide a file-backed database for tests with concurrent sessions.

    多个会话需要各自独立的连接：使用临时文件数据库并开启 WAL，
    写锁冲突时等待而不是立即报 "database is locked"。
    """
    from sqlalchemy import event
    from core.models.base import Base

    register_models()
    engine = make_test_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'newsdesk.db'}",
        connect_args={"timeout": 30},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _set_wal(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Provide an isolated database session per test."""
    session_factory = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with session_factory() as session:
        yield session
        # Rollback any uncommitted changes
        await session.rollback()


async def _create_user(session: AsyncSession, username: str, role: str):
    from apps.auth.service import AuthService

    user = await AuthService.register(
        session=session,
        username=username,
        email=f"{username}@example.com",
        password=TEST_PASSWORD,
        full_name=username.title(),
        role=role,
    )
    await session.commit()
    return user.to_principal()


@pytest_asyncio.fixture
async def subscriber(db_session: AsyncSession):
    """A committed subscriber account, as a ``Principal``."""
    return await _create_user(db_session, "reader", "subscriber")


@pytest_asyncio.fixture
async def editor(db_session: AsyncSession):
    """A committed editor account, as a ``Principal``."""
    return await _create_user(db_session, "writer", "editor")


@pytest_asyncio.fixture
async def admin(db_session: AsyncSession):
    """A committed admin account, as a ``Principal``."""
    return await _create_user(db_session, "boss", "admin")


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """Provide a FastAPI test client with DB overrides.

    构建测试客户端并覆盖数据库依赖，禁用生命周期事件
    （不连接 MySQL，不引导初始管理员）。

    Returns:
        Generator[TestClient, None, None]: Synchronous test client.
    """
    from fastapi import FastAPI
    from main import app
    from core.database import get_session
    from core.models.base import Base

    register_models()
    engine = make_test_engine()
    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    # Track whether the schema has been created
    _initialized = False

    # Override the database session dependency; same commit/rollback
    # contract as core.database.get_session
    async def override_get_session():
        nonlocal _initialized

        if not _initialized:
            # Create tables on the client's event loop (first request)
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            _initialized = True

        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    test_app = FastAPI(title=app.title)

    # Copy middleware
    for middleware in app.user_middleware:
        test_app.user_middleware.append(middleware)

    # Copy exception handlers
    for exc_class, handler in app.exception_handlers.items():
        test_app.add_exception_handler(exc_class, handler)

    # Copy routes
    for route in app.routes:
        test_app.routes.append(route)

    # 复制过来的路由通过原 app 查找依赖覆盖，两边都要设置
    app.dependency_overrides[get_session] = override_get_session
    test_app.dependency_overrides[get_session] = override_get_session

    with TestClient(test_app, raise_server_exceptions=False) as test_client:
        # Trigger schema creation with a dummy request before yielding
        test_client.get("/api/v1/auth/status")
        yield test_client

    app.dependency_overrides.clear()
    test_app.dependency_overrides.clear()


def _register_and_login(
    client: TestClient,
    username: str,
    email: str,
    password: str = TEST_PASSWORD,
    role: str = "subscriber",
) -> str:
    """Register a user via the API and return an access token.

    通过 API 注册用户，然后用邮箱登录获取 JWT。
    """
    reg_resp = client.post(
        "/api/v1/auth/register",
        json={
            "username": username,
            "email": email,
            "password": password,
            "full_name": username.title(),
            "role": role,
        },
    )
    if reg_resp.status_code not in (200, 201):
        raise RuntimeError(
            f"Registration failed for {username}: "
            f"status={reg_resp.status_code} {reg_resp.text}"
        )

    login_resp = client.post(
        "/api/v1/auth/login",
        json={"email": email, "password": password},
    )
    data = login_resp.json()
    if "access_token" not in data:
        raise RuntimeError(
            f"Login failed for {username}: "
            f"login={login_resp.status_code} {login_resp.text}"
        )
    return data["access_token"]


@pytest.fixture
def subscriber_headers(client: TestClient) -> dict:
    """Authorization headers for a subscriber."""
    token = _register_and_login(client, "reader", "reader@example.com")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def editor_headers(client: TestClient) -> dict:
    """Authorization headers for an editor."""
    token = _register_and_login(client, "writer", "writer@example.com", role="editor")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(client: TestClient) -> dict:
    """Authorization headers for an admin."""
    token = _register_and_login(client, "boss", "boss@example.com", role="admin")
    return {"Authorization": f"Bearer {token}"}
