# ==========================================================================
# 认证服务模块
# --------------------------------------------------------------------------
# 本模块是 NewsDesk 认证功能的核心业务逻辑层。
# 封装了所有与用户身份相关的操作，包括：
#   1. 用户注册 —— 唯一性校验、密码哈希、角色与默认订阅分配
#   2. 用户登录 —— 邮箱 + 密码验证、JWT 令牌生成、最后登录时间更新
#   3. 令牌刷新 —— refresh_token 校验与新令牌对生成
#   4. 个人资料修改 —— 返回新的 Principal 快照
#   5. 初始管理员创建 —— 启动时根据配置引导
#
# 设计决策：
#   - 采用静态方法 (staticmethod) 设计，AuthService 作为无状态的服务类
#     所有状态通过参数传入（数据库会话、用户 ID 等）
#   - 业务校验失败抛出 core.exceptions 中的类型化异常，
#     由 main.py 中的异常处理器统一转换为 HTTP 响应
#   - 唯一性由数据库唯一约束最终裁决：预检查给出友好消息，
#     并发注册导致的 IntegrityError 同样转换为 ConflictError
# ==========================================================================

"""Authentication service for NewsDesk."""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from apps.subscription.lifecycle import registration_term
from core.exceptions import AuthenticationError, ConflictError, NotFoundError
from core.models.user import User
from core.policy import Principal, Role
from core.security import REFRESH_TOKEN_TYPE, create_token_pair, user_id_from_token

logger = logging.getLogger(__name__)


# --------------------------------------------------------------------------
# 认证服务类
# --------------------------------------------------------------------------
class AuthService:
    """Service class for authentication operations.

    认证业务逻辑服务类，提供注册、登录、刷新令牌与资料修改等功能。
    """

    # ------------------------------------------------------------------
    # 用户注册
    # ------------------------------------------------------------------
    @staticmethod
    async def register(
        session: AsyncSession,
        username: str,
        email: str,
        password: str,
        full_name: str,
        role: Role | str = Role.SUBSCRIBER,
    ) -> User:
        """Register a new user.

        注册新用户：初始订阅状态为 active，有效期一年。

        Args:
            session: Async database session.
            username: Username (surrounding spaces removed).
            email: Email address (lower-cased).
            password: Plaintext password.
            full_name: Display name.
            role: Account role, ``subscriber`` by default.

        Returns:
            User: Newly created user.

        Raises:
            ConflictError: If the email or username is already registered.
        """
        username = username.strip()
        email = email.strip().lower()
        role = Role(role)

        # 先查邮箱再查用户名，给出具体的冲突原因
        existing = await session.execute(select(User.id).where(User.email == email))
        if existing.first() is not None:
            raise ConflictError("Email already registered")
        existing = await session.execute(select(User.id).where(User.username == username))
        if existing.first() is not None:
            raise ConflictError("Username already taken")

        term = registration_term()
        user = User(
            username=username,
            email=email,
            full_name=full_name,
            role=role.value,
            subscription_status=term.status.value,
            subscription_end_date=term.end_date,
        )
        user.set_password(password)

        session.add(user)
        try:
            await session.flush()
        except IntegrityError:
            # 并发注册撞上唯一约束；请求会话随异常整体回滚
            logger.warning(f"Concurrent registration collided for {email}")
            raise ConflictError("Account already exists")
        await session.refresh(user)

        logger.info(f"User registered: {username} ({role.value})")
        return user

    # ------------------------------------------------------------------
    # 用户登录
    # ------------------------------------------------------------------
    @staticmethod
    async def login(
        session: AsyncSession,
        email: str,
        password: str,
    ) -> tuple[User, str, str]:
        """Authenticate by email and password.

        Args:
            session: Async database session.
            email: Account email.
            password: Plaintext password.

        Returns:
            tuple[User, str, str]: (user, access_token, refresh_token).

        Raises:
            AuthenticationError: If the credentials are invalid.
        """
        result = await session.execute(select(User).where(User.email == email.strip().lower()))
        user = result.scalar_one_or_none()

        # 用户不存在与密码错误返回同一条消息，不暴露账户是否存在
        if user is None or not user.check_password(password):
            logger.info(f"Failed login for {email}")
            raise AuthenticationError("Invalid credentials")

        user.update_last_login()
        await session.flush()
        access_token, refresh_token = create_token_pair(user.id)

        logger.info(f"User logged in: {user.username}")
        return user, access_token, refresh_token

    # ------------------------------------------------------------------
    # 令牌刷新
    # ------------------------------------------------------------------
    @staticmethod
    async def refresh_tokens(session: AsyncSession, refresh_token: str) -> tuple[str, str]:
        """Exchange a refresh token for a new token pair.

        Raises:
            AuthenticationError: If the token is invalid, of the wrong type,
                or its user no longer exists.
        """
        user_id = user_id_from_token(refresh_token, REFRESH_TOKEN_TYPE)
        if user_id is None:
            raise AuthenticationError("Invalid refresh token")

        # 令牌有效也要确认用户仍然存在
        user = await session.get(User, user_id)
        if user is None:
            raise AuthenticationError("User not found")

        return create_token_pair(user.id)

    # ------------------------------------------------------------------
    # 修改个人资料
    # ------------------------------------------------------------------
    @staticmethod
    async def update_profile(
        session: AsyncSession,
        user_id: int,
        username: str,
        full_name: str,
    ) -> Principal:
        """Update one's own username and display name.

        Returns:
            Principal: Snapshot reflecting the new values.

        Raises:
            NotFoundError: If the user does not exist.
            ConflictError: If the username belongs to another account.
        """
        user = await session.get(User, user_id)
        if user is None:
            raise NotFoundError("User", user_id)

        username = username.strip()
        result = await session.execute(
            select(User.id).where(User.username == username, User.id != user_id)
        )
        if result.first() is not None:
            raise ConflictError("Username already taken")

        user.username = username
        user.full_name = full_name.strip()
        await session.flush()

        logger.info(f"Profile updated for user {user_id}")
        return user.to_principal()

    # ------------------------------------------------------------------
    # 创建初始管理员
    # ------------------------------------------------------------------
    @staticmethod
    async def create_admin(
        session: AsyncSession,
        username: str,
        email: str,
        password: str,
        full_name: str | None = None,
    ) -> User | None:
        """Create the bootstrap admin account unless it already exists.

        Returns:
            User | None: The created admin, or ``None`` if the username or
            email is already taken.
        """
        result = await session.execute(
            select(User.id).where((User.username == username) | (User.email == email.lower()))
        )
        if result.first() is not None:
            return None

        user = await AuthService.register(
            session,
            username=username,
            email=email,
            password=password,
            full_name=full_name or username,
            role=Role.ADMIN,
        )
        logger.info(f"Bootstrap admin created: {username}")
        return user
