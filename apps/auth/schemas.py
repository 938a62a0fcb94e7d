# ==========================================================================
# 认证模块 - Pydantic 数据校验模式 (Schemas)
# --------------------------------------------------------------------------
# 本模块定义了认证相关 API 端点所使用的请求和响应数据模型。
# 使用 Pydantic BaseModel 实现以下功能：
#   1. 请求参数的自动校验（类型检查、长度限制、格式验证等）
#   2. 响应数据的序列化与结构化
#   3. 自动生成 OpenAPI/Swagger 文档中的数据模型描述
#
# 架构位置：
#   本模块位于 apps/auth/schemas.py，被 auth、subscriber、admin 路由共同引用。
#   PrincipalResponse 是所有"返回当前用户快照"的端点共用的输出格式。
#
# 包含的 Schema：
#   - UserRegisterRequest : 用户注册请求
#   - UserLoginRequest    : 用户登录请求（邮箱 + 密码）
#   - RefreshTokenRequest : 令牌刷新请求
#   - TokenResponse       : 令牌响应（刷新）
#   - LoginResponse       : 登录响应（令牌 + 用户快照）
#   - PrincipalResponse   : 用户快照
#   - AuthStatusResponse  : 登录状态查询
#   - ProfileUpdateRequest: 修改个人资料
# ==========================================================================

"""Pydantic schemas for authentication API."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from core.policy import Role


# --------------------------------------------------------------------------
# 用户注册请求模型
# --------------------------------------------------------------------------
class UserRegisterRequest(BaseModel):
    """Request schema for user registration.

    用户注册请求数据模型。

    Attributes:
        username: Username (3-50 chars, surrounding spaces removed).
        email: Email address (stored lower-cased).
        password: Plaintext password (at least 6 chars).
        full_name: Display name.
        role: Optional role, ``subscriber`` when omitted.
    """

    # 用户名：去除首尾空格后 3-50 个字符
    username: str = Field(..., max_length=50)
    # 邮箱：使用 Pydantic 的 EmailStr 类型自动验证邮箱格式
    email: EmailStr
    # 密码：至少 6 个字符，明文传输后由后端进行 bcrypt 哈希
    password: str = Field(..., min_length=6, max_length=100)
    full_name: str = Field(..., max_length=100)
    role: Role = Role.SUBSCRIBER

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        """Trim the username and enforce its length.

        Raises:
            ValueError: If the trimmed username is shorter than 3 chars.
        """
        v = v.strip()
        if len(v) < 3:
            raise ValueError("Username must be at least 3 characters")
        return v

    @field_validator("full_name")
    @classmethod
    def validate_full_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Full name is required")
        return v

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        # 邮箱统一小写存储，唯一性比较不受大小写影响
        return v.lower()


# --------------------------------------------------------------------------
# 用户登录请求模型
# --------------------------------------------------------------------------
class UserLoginRequest(BaseModel):
    """Request schema for user login.

    用户登录请求数据模型。

    Attributes:
        email: Account email.
        password: Plaintext password.
    """

    email: str = Field(..., min_length=1)
    # 密码：最少 1 个字符（长度校验在注册时已完成，登录时仅确保非空）
    password: str = Field(..., min_length=1)


# --------------------------------------------------------------------------
# 令牌刷新请求模型
# --------------------------------------------------------------------------
class RefreshTokenRequest(BaseModel):
    """Request schema for token refresh."""

    refresh_token: str


# --------------------------------------------------------------------------
# 用户快照响应模型
# --------------------------------------------------------------------------
class PrincipalResponse(BaseModel):
    """Response schema for a principal snapshot.

    用户快照响应模型，对应 core.policy.Principal。
    """

    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str
    full_name: str | None = None
    role: str
    subscription_status: str
    subscription_end_date: datetime | None = None


# --------------------------------------------------------------------------
# 令牌响应模型
# --------------------------------------------------------------------------
class TokenResponse(BaseModel):
    """Response schema for token endpoints.

    Attributes:
        access_token: JWT access token.
        refresh_token: JWT refresh token.
        token_type: Token type (bearer).
        expires_in: Access token lifetime in seconds.
    """

    access_token: str          # JWT 访问令牌
    refresh_token: str         # JWT 刷新令牌
    token_type: str = "bearer" # 令牌类型，固定为 "bearer"
    expires_in: int            # access_token 的有效期（秒）


class LoginResponse(TokenResponse):
    """Tokens plus the logged-in user's snapshot."""

    user: PrincipalResponse


class AuthStatusResponse(BaseModel):
    """Login status of the current request; never fails."""

    authenticated: bool
    user: PrincipalResponse | None = None
    timestamp: datetime


class MessageResponse(BaseModel):
    """Plain message response."""

    message: str


# --------------------------------------------------------------------------
# 修改个人资料请求模型
# --------------------------------------------------------------------------
class ProfileUpdateRequest(BaseModel):
    """Request schema for updating one's own profile.

    修改个人资料请求模型，用户名与姓名均为必填。
    """

    username: str = Field(..., max_length=50)
    full_name: str = Field(..., max_length=100)

    @field_validator("username", "full_name")
    @classmethod
    def strip_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Username and full name are required")
        return v
