# =============================================================================
# 业务异常模块
# =============================================================================
# 本模块定义 NewsDesk 的业务错误分类，是服务层与接口层之间的错误契约。
# 主要职责：
#   1. 提供统一的异常基类 NewsletterError，携带面向调用方的消息和 HTTP 状态码
#   2. 定义六类业务错误：校验、认证、授权、不存在、冲突、存储
#
# 架构角色：
#   - 服务层（apps/*/service.py）直接抛出这些异常，不在路由层做转换
#   - main.py 注册的异常处理器根据 status_code 统一渲染 JSON 响应
#   - StoreError 是唯一对调用方隐藏细节的错误，详细信息只写入日志
# =============================================================================

"""Typed error taxonomy for NewsDesk."""

from __future__ import annotations

from typing import Any


class NewsletterError(Exception):
    """Base class for all business errors.

    业务错误基类。``message`` 会原样返回给调用方。

    Attributes:
        message: Human-readable message for the caller.
        details: Optional extra context rendered alongside the message.
        status_code: HTTP status used by the API exception handler.
    """

    status_code: int = 500

    def __init__(self, message: str, details: Any = None) -> None:
        self.message = message
        self.details = details
        super().__init__(message)


class ValidationError(NewsletterError):
    """Malformed or out-of-range input. Raised before any write."""

    status_code = 400


class AuthenticationError(NewsletterError):
    """No principal present where one is required."""

    status_code = 401

    def __init__(self, message: str = "Authentication required", details: Any = None) -> None:
        super().__init__(message, details)


class AuthorizationError(NewsletterError):
    """Principal present but lacks the required role or ownership."""

    status_code = 403


class NotFoundError(NewsletterError):
    """Referenced entity does not exist.

    找不到资源时抛出，消息形如 "Article not found"。
    """

    status_code = 404

    def __init__(self, resource: str, identifier: Any = None) -> None:
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} not found")


class ConflictError(NewsletterError):
    """Uniqueness violation, e.g. a duplicate email on registration."""

    status_code = 409


class StoreError(NewsletterError):
    """Underlying persistence failure.

    存储层失败。调用方只会看到通用的 "Internal server error"，
    原始异常保存在 ``cause`` 中并写入日志。
    """

    status_code = 500

    def __init__(self, message: str = "Internal server error", cause: BaseException | None = None) -> None:
        self.cause = cause
        super().__init__(message)
