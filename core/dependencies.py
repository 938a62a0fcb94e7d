# =============================================================================
# FastAPI 依赖注入模块
# =============================================================================
# 本模块提供 NewsDesk 的认证与授权依赖函数，是身份协作方（identity collaborator）
# 在 HTTP 层的实现。
# 主要职责：
#   1. 从 HTTP 请求中提取和验证 JWT 访问令牌
#   2. 根据令牌加载当前用户，并构造不可变的主体快照 Principal
#   3. 基于 core.policy 的能力等级提供"下限"式访问控制依赖
#
# 架构角色：
#   - 被各个 API 路由通过 FastAPI 的 Depends() 机制调用
#   - 依赖 core.security 解码令牌、core.database 获取会话、core.policy 做决策
#
# 设计说明：
#   - 认证层级从宽松到严格：
#     get_optional_principal（可选） → get_current_principal（必须登录）
#     → require_capability(SUBSCRIBER / EDITOR / ADMIN)
#   - 失败时抛出 AuthenticationError / AuthorizationError，由 main.py 的
#     异常处理器统一渲染为 401 / 403
#   - 使用 Annotated 类型别名简化路由函数的参数声明
# =============================================================================

"""FastAPI dependencies for NewsDesk.

Provides authentication and role-floor authorization dependencies.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_session
from core.exceptions import AuthenticationError
from core.models.user import User
from core.policy import Capability, Principal, require
from core.security import ACCESS_TOKEN_TYPE, decode_token

# auto_error=False：未携带 Bearer 令牌时不自动报错，而是返回 None，
# 由各依赖函数自行决定是否强制要求认证
http_bearer = HTTPBearer(auto_error=False)


async def _load_user(token: str, session: AsyncSession) -> User:
    payload = decode_token(token)
    if not payload:
        raise AuthenticationError("Invalid or expired token")

    # 确保使用的是访问令牌而不是刷新令牌
    if payload.get("type") != ACCESS_TOKEN_TYPE:
        raise AuthenticationError("Invalid token type")

    try:
        user_id = int(payload.get("sub"))
    except (ValueError, TypeError):
        raise AuthenticationError("Invalid token payload")

    user = await session.get(User, user_id)
    # 令牌仍有效但用户记录已不存在
    if not user:
        raise AuthenticationError("User not found")
    return user


async def get_current_user(
    credentials: Annotated[
        HTTPAuthorizationCredentials | None, Depends(http_bearer)
    ] = None,
    session: AsyncSession = Depends(get_session),
) -> User:
    """Resolve the authenticated user behind the request.

    Args:
        credentials: HTTP Bearer credentials from the request.
        session: Async database session injected by FastAPI.

    Returns:
        User: Authenticated user record.

    Raises:
        AuthenticationError: If no token is present, the token is invalid or
            not an access token, or the user no longer exists.
    """
    if not credentials:
        raise AuthenticationError()
    return await _load_user(credentials.credentials, session)


async def get_optional_user(
    credentials: Annotated[
        HTTPAuthorizationCredentials | None, Depends(http_bearer)
    ] = None,
    session: AsyncSession = Depends(get_session),
) -> User | None:
    """Resolve the user if a valid access token is present, else ``None``.

    Never raises for missing or invalid tokens; used by endpoints where login
    is optional.
    """
    if not credentials:
        return None
    try:
        return await _load_user(credentials.credentials, session)
    except AuthenticationError:
        return None


async def get_current_principal(
    user: User = Depends(get_current_user),
) -> Principal:
    """Snapshot the authenticated user as a ``Principal``."""
    return Principal.from_user(user)


async def get_optional_principal(
    user: User | None = Depends(get_optional_user),
) -> Principal | None:
    """Snapshot the user as a ``Principal`` when one is present."""
    return Principal.from_user(user) if user else None


def require_capability(required: Capability):
    """Create a dependency enforcing a capability floor.

    The returned dependency allows any principal whose role is at or above
    ``required`` in the capability ordering.

    Args:
        required: Minimum capability level.

    Returns:
        Depends: A dependency that yields the allowed ``Principal``.

    Example:
        >>> @router.get("/editor/issues")
        ... async def list_issues(
        ...     principal: Principal = require_capability(Capability.EDITOR),
        ... ):
        ...     ...
    """

    # 通过闭包捕获 required，为每个门槛生成独立的依赖函数
    async def capability_checker(
        principal: Principal | None = Depends(get_optional_principal),
        credentials: Annotated[
            HTTPAuthorizationCredentials | None, Depends(http_bearer)
        ] = None,
    ) -> Principal:
        # 携带了令牌但令牌无效时，报告具体的令牌错误而不是笼统的"需要认证"
        if principal is None and credentials is not None:
            raise AuthenticationError("Invalid or expired token")
        return require(principal, required)

    return Depends(capability_checker)


# =============================================================================
# 类型别名定义
# =============================================================================
# 在路由函数中直接使用这些别名作为参数类型注解即可完成认证与授权
# 示例：async def my_endpoint(principal: EditorPrincipal): ...
CurrentUser = Annotated[User, Depends(get_current_user)]                      # 当前已认证用户（ORM 对象）
CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]       # 当前主体快照
OptionalPrincipal = Annotated[Principal | None, Depends(get_optional_principal)]  # 可选主体（匿名时为 None）
SubscriberPrincipal = Annotated[Principal, require_capability(Capability.SUBSCRIBER)]  # 任意已登录角色
EditorPrincipal = Annotated[Principal, require_capability(Capability.EDITOR)]          # 编辑或管理员
AdminPrincipal = Annotated[Principal, require_capability(Capability.ADMIN)]            # 仅管理员
