# =============================================================================
# 角色策略模块
# =============================================================================
# 本模块是 NewsDesk 的访问控制决策核心，全部为纯函数，不访问数据库。
# 主要职责：
#   1. 定义封闭的角色枚举 Role（subscriber / editor / admin）
#   2. 定义累进的能力等级 Capability：
#      public < authenticated < subscriber < editor < admin
#   3. 定义请求主体快照 Principal（由 dependencies.py 从用户记录构造）
#   4. 提供"下限"式的权限判断与文章删除的所有权判断
#
# 架构角色：
#   - 被 core/dependencies.py 的 require_capability 依赖工厂调用
#   - 被内容服务（apps/content）用于删除权限与可见性判断
#
# 设计决策：
#   - 新增角色只需在 Role 与 ROLE_CAPABILITY 中各加一行
#   - "subscriber" 门槛是包含式下限：editor、admin 同样满足
#   - 决策函数只返回 True/False；require 系列函数负责抛出对应的业务异常
# =============================================================================

"""Role policy: capability ordering and ownership checks for NewsDesk."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum, IntEnum
from typing import Any, Optional

from core.exceptions import AuthenticationError, AuthorizationError

logger = logging.getLogger(__name__)


class Role(str, Enum):
    """Closed set of account roles."""

    SUBSCRIBER = "subscriber"
    EDITOR = "editor"
    ADMIN = "admin"


class Capability(IntEnum):
    """Cumulative capability levels; a higher level includes every lower one."""

    PUBLIC = 0
    AUTHENTICATED = 1
    SUBSCRIBER = 2
    EDITOR = 3
    ADMIN = 4


# 角色到能力等级的映射，是权限顺序的唯一来源
ROLE_CAPABILITY: dict[Role, Capability] = {
    Role.SUBSCRIBER: Capability.SUBSCRIBER,
    Role.EDITOR: Capability.EDITOR,
    Role.ADMIN: Capability.ADMIN,
}

# 各门槛被拒绝时返回给调用方的消息
DENIAL_MESSAGES: dict[Capability, str] = {
    Capability.SUBSCRIBER: "Subscriber access required",
    Capability.EDITOR: "Editor access required",
    Capability.ADMIN: "Admin access required",
}


@dataclass(frozen=True)
class Principal:
    """Immutable snapshot of the identity behind a request.

    请求主体的不可变快照。续订、修改资料等操作返回新的快照，
    而不是修改会话中的旧对象。
    """

    id: int
    username: str
    email: str
    full_name: Optional[str]
    role: Role
    subscription_status: str
    subscription_end_date: Optional[datetime]

    @classmethod
    def from_user(cls, user: Any) -> "Principal":
        """Build a snapshot from a ``User`` ORM instance.

        Args:
            user: Loaded user record.

        Returns:
            Principal: Snapshot of the user's current state.
        """
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            full_name=user.full_name,
            role=Role(user.role),
            subscription_status=user.subscription_status,
            subscription_end_date=user.subscription_end_date,
        )

    @property
    def capability(self) -> Capability:
        return ROLE_CAPABILITY[self.role]

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "full_name": self.full_name,
            "role": self.role.value,
            "subscription_status": self.subscription_status,
            "subscription_end_date": self.subscription_end_date,
        }


def capability_of(principal: Optional[Principal]) -> Capability:
    """Return the capability level of a principal (PUBLIC when absent)."""
    if principal is None:
        return Capability.PUBLIC
    return principal.capability


def is_allowed(principal: Optional[Principal], required: Capability) -> bool:
    """Decide whether ``principal`` meets the ``required`` capability floor.

    判断主体是否达到所需的能力下限。

    Args:
        principal: Request principal, or ``None`` for anonymous requests.
        required: Minimum capability level.

    Returns:
        bool: ``True`` if the principal's level is at least ``required``.
    """
    return capability_of(principal) >= required


def require(principal: Optional[Principal], required: Capability) -> Optional[Principal]:
    """Enforce a capability floor.

    Args:
        principal: Request principal, or ``None``.
        required: Minimum capability level.

    Returns:
        Optional[Principal]: The same principal when allowed.

    Raises:
        AuthenticationError: If a principal is required but absent.
        AuthorizationError: If the principal's role is below the floor.
    """
    if required > Capability.PUBLIC and principal is None:
        raise AuthenticationError()
    if not is_allowed(principal, required):
        logger.info(
            f"Access denied for user {principal.id} ({principal.role.value}): "
            f"requires {required.name.lower()}"
        )
        raise AuthorizationError(DENIAL_MESSAGES.get(required, "Access denied"))
    return principal


def can_delete_article(principal: Optional[Principal], author_id: Optional[int]) -> bool:
    """Ownership rule for article deletion: the author or an admin.

    文章删除的所有权规则：仅作者本人或管理员可删除。
    作者已被删除（author_id 为空）的文章只有管理员可删除。
    """
    if principal is None:
        return False
    if principal.is_admin:
        return True
    return author_id is not None and author_id == principal.id


def ensure_can_delete_article(principal: Optional[Principal], author_id: Optional[int]) -> None:
    """Raise ``AuthorizationError`` unless ``can_delete_article`` allows it."""
    if principal is None:
        raise AuthenticationError()
    if not can_delete_article(principal, author_id):
        logger.warning(f"User {principal.id} attempted to delete an article owned by {author_id}")
        raise AuthorizationError("You can only delete your own articles")
