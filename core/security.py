# =============================================================================
# 安全工具模块
# =============================================================================
# 本模块提供 NewsDesk 的身份凭证工具：
#   1. 密码哈希与验证（bcrypt）
#   2. JWT 访问令牌和刷新令牌的签发与解析
#
# 架构角色：
#   - 密码函数被 User 模型的 set_password / check_password 调用
#   - 令牌函数被认证服务（apps/auth）与认证依赖（core/dependencies.py）调用
#
# 设计决策：
#   - 直接调用 bcrypt，输入截断到 72 字节（bcrypt 的输入上限），保证行为可预测
#   - 令牌分为 access（短期）与 refresh（长期），通过 payload 中的 "type" 区分，
#     刷新令牌不能当作访问令牌使用
#   - 令牌只携带用户 ID（sub）；角色等信息每次请求都从数据库重新读取，
#     因此角色变更、续订等操作无需重新签发令牌即可生效
# =============================================================================

"""Password hashing and JWT token management for NewsDesk."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
from jose import JWTError, jwt

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


def hash_password(password: str) -> str:
    """Hash a plaintext password using bcrypt.

    Args:
        password: Plaintext password to hash.

    Returns:
        str: Bcrypt hash string including salt.

    Example:
        >>> hash_password("MySecret123").startswith("$2")
        True
    """
    # bcrypt 只处理前 72 字节，显式截断保证行为一致
    password_bytes = password.encode("utf-8")[:72]
    return bcrypt.hashpw(password_bytes, bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plaintext password against a bcrypt hash.

    Args:
        plain_password: Password provided by the user.
        hashed_password: Stored bcrypt hash.

    Returns:
        bool: ``True`` if the password matches the hash, otherwise ``False``.
    """
    password_bytes = plain_password.encode("utf-8")[:72]
    # checkpw 从哈希中取出盐值重新计算，并做恒定时间比较
    return bcrypt.checkpw(password_bytes, hashed_password.encode("utf-8"))


def _encode_token(data: dict[str, Any], token_type: str, lifetime: timedelta) -> str:
    # 延迟导入 settings，避免循环依赖
    from settings import settings

    to_encode = data.copy()
    to_encode.update({
        "exp": datetime.now(timezone.utc) + lifetime,
        "type": token_type,
    })
    return jwt.encode(
        to_encode,
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )


def create_access_token(
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    """Create a signed JWT access token.

    Adds the ``exp`` claim and a ``type=access`` marker to the payload.

    Args:
        data: Payload data to embed in the token (``sub`` = user id).
        expires_delta: Optional override for token lifetime.

    Returns:
        str: Encoded JWT access token.
    """
    from settings import settings

    lifetime = expires_delta or timedelta(minutes=settings.jwt_access_token_expire_minutes)
    return _encode_token(data, ACCESS_TOKEN_TYPE, lifetime)


def create_refresh_token(
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    """Create a signed JWT refresh token.

    Adds the ``exp`` claim and a ``type=refresh`` marker to the payload.

    Args:
        data: Payload data to embed in the token.
        expires_delta: Optional override for token lifetime.

    Returns:
        str: Encoded JWT refresh token.
    """
    from settings import settings

    lifetime = expires_delta or timedelta(days=settings.jwt_refresh_token_expire_days)
    return _encode_token(data, REFRESH_TOKEN_TYPE, lifetime)


def create_token_pair(user_id: int) -> tuple[str, str]:
    """Issue an ``(access_token, refresh_token)`` pair for a user id."""
    payload = {"sub": str(user_id)}
    return create_access_token(payload), create_refresh_token(payload)


def decode_token(token: str) -> dict[str, Any] | None:
    """Decode and verify a JWT token.

    Validates signature, algorithm, and expiration. Returns ``None`` on any
    JWT error instead of raising.

    Args:
        token: Encoded JWT string.

    Returns:
        dict[str, Any] | None: Decoded payload if valid, otherwise ``None``.
    """
    from settings import settings

    try:
        # algorithms 限定只接受配置的算法，防止算法替换攻击
        return jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        # 签名无效、过期、格式错误统一返回 None，由调用方决定如何处理
        return None


def user_id_from_token(token: str, expected_type: str) -> int | None:
    """Return the ``sub`` user id of a valid token of ``expected_type``.

    Args:
        token: Encoded JWT string.
        expected_type: ``"access"`` or ``"refresh"``.

    Returns:
        int | None: User id, or ``None`` if the token is invalid, of the wrong
        type, or carries a malformed subject.
    """
    payload = decode_token(token)
    if not payload or payload.get("type") != expected_type:
        return None
    try:
        return int(payload.get("sub"))
    except (ValueError, TypeError):
        return None
