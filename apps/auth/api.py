# ==========================================================================
# 认证 API 模块
# --------------------------------------------------------------------------
# 本模块是 NewsDesk 的用户认证接口层，负责处理所有与身份认证相关的
# HTTP 请求。采用 JWT（JSON Web Token）无状态认证机制。
#
# 提供以下端点：
#   1. POST /auth/register —— 用户注册（默认订阅者角色，赠送一年订阅）
#   2. POST /auth/login    —— 邮箱 + 密码登录，返回令牌对与用户快照
#   3. POST /auth/refresh  —— 使用 refresh_token 换取新令牌对
#   4. POST /auth/logout   —— 登出（JWT 模式下由客户端丢弃令牌）
#   5. GET  /auth/me       —— 当前登录用户快照
#   6. GET  /auth/status   —— 登录状态查询，从不报错
#
# 架构位置：
#   业务逻辑委托给 AuthService（service.py），数据校验由 schemas.py 负责。
#   业务异常（ConflictError / AuthenticationError 等）直接向上抛出，
#   由 main.py 中注册的异常处理器统一转换为 HTTP 响应。
# ==========================================================================

"""Authentication API endpoints for NewsDesk."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_session
from core.dependencies import CurrentPrincipal, OptionalPrincipal
from core.models.base import utc_now
from settings import settings

from .schemas import (
    AuthStatusResponse,
    LoginResponse,
    MessageResponse,
    PrincipalResponse,
    RefreshTokenRequest,
    TokenResponse,
    UserLoginRequest,
    UserRegisterRequest,
)
from .service import AuthService

# 创建认证路由器，所有端点挂载在 /auth 前缀下
router = APIRouter(prefix="/auth", tags=["authentication"])


# --------------------------------------------------------------------------
# 用户注册端点
# --------------------------------------------------------------------------
@router.post("/register", response_model=PrincipalResponse, status_code=status.HTTP_201_CREATED)
async def register(
    request: UserRegisterRequest,
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Register a new user account.

    创建用户账户并返回用户快照。

    Raises:
        ConflictError: If the email or username is already registered.
    """
    user = await AuthService.register(
        session=session,
        username=request.username,
        email=request.email,
        password=request.password,
        full_name=request.full_name,
        role=request.role,
    )
    return user.to_principal().to_dict()


# --------------------------------------------------------------------------
# 用户登录端点
# --------------------------------------------------------------------------
@router.post("/login", response_model=LoginResponse)
async def login(
    request: UserLoginRequest,
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Login and receive access and refresh tokens.

    验证邮箱与密码，返回令牌对和用户快照。

    Raises:
        AuthenticationError: If the credentials are invalid.
    """
    user, access_token, refresh_token = await AuthService.login(
        session=session,
        email=request.email,
        password=request.password,
    )
    return {
        "access_token": access_token,
        "refresh_token": refresh_token,
        "token_type": "bearer",
        # expires_in 以秒为单位（分钟数 * 60）
        "expires_in": settings.jwt_access_token_expire_minutes * 60,
        "user": user.to_principal().to_dict(),
    }


# --------------------------------------------------------------------------
# 令牌刷新端点
# --------------------------------------------------------------------------
@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(
    request: RefreshTokenRequest,
    session: AsyncSession = Depends(get_session),
) -> TokenResponse:
    """Refresh the token pair using a refresh token."""
    access_token, refresh_token = await AuthService.refresh_tokens(
        session=session,
        refresh_token=request.refresh_token,
    )
    return TokenResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_in=settings.jwt_access_token_expire_minutes * 60,
    )


# --------------------------------------------------------------------------
# 用户登出端点
# --------------------------------------------------------------------------
@router.post("/logout", response_model=MessageResponse)
async def logout() -> dict:
    """Logout the current user.

    JWT 无状态模式下服务端无法使令牌失效，登出由客户端清除令牌完成。
    """
    return {"message": "Logged out successfully"}


# --------------------------------------------------------------------------
# 当前用户信息端点
# --------------------------------------------------------------------------
@router.get("/me", response_model=PrincipalResponse)
async def get_current_user_info(principal: CurrentPrincipal) -> dict:
    """Return the authenticated principal snapshot."""
    return principal.to_dict()


@router.get("/status", response_model=AuthStatusResponse)
async def auth_status(principal: OptionalPrincipal) -> dict:
    """Report whether the request carries a valid access token.

    令牌缺失或无效时返回 ``authenticated = false``，不会报错。
    """
    return {
        "authenticated": principal is not None,
        "user": principal.to_dict() if principal else None,
        "timestamp": utc_now(),
    }
