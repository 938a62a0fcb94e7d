# =============================================================================
# 用户模型模块
# =============================================================================
# 本模块定义 NewsDesk 的用户模型（User）及订阅状态枚举。
# 主要职责：
#   1. 定义用户表（users）的 ORM 映射：认证信息、角色、当前订阅状态
#   2. 提供密码设置、验证、登录时间更新、主体快照构造等方法
#
# 架构角色：
#   - 作为认证系统的核心模型，被 dependencies.py 中的认证依赖函数查询
#   - 用户表上的 subscription_status / subscription_end_date 是订阅的权威当前状态，
#     subscriptions 表只是追加式的历史流水
#
# 设计决策：
#   - username 和 email 均建立唯一索引，由数据库约束保证唯一性
#   - role 以字符串存储，取值由 core.policy.Role 枚举限定
#   - 用户不提供硬删除操作；外键仍声明了删除行为（文章/期刊置空，反馈级联删除）
# =============================================================================

"""User model for NewsDesk."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import BigInteger, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from core.models.base import Base, TimestampMixin, utc_now


class SubscriptionStatus(str, Enum):
    """Live subscription state stored on the user row."""

    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class User(Base, TimestampMixin):
    """User account with role and current subscription state.

    保存认证信息、角色以及当前订阅状态。

    Attributes:
        id: Primary key.
        username: Unique username.
        email: Unique email address (stored lower-cased).
        password_hash: Bcrypt hash of the password.
        full_name: Display name.
        role: One of ``subscriber``, ``editor``, ``admin``.
        subscription_status: One of ``active``, ``expired``, ``cancelled``.
        subscription_end_date: When the current subscription ends.
        last_login_at: Last successful login (UTC).
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)

    # ---- 认证相关字段 ----
    username: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
        index=True,
    )
    email: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        nullable=False,
        index=True,
    )
    # 只保存 bcrypt 哈希，明文密码永不落库
    password_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    full_name: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    # ---- 角色与订阅 ----
    role: Mapped[str] = mapped_column(
        String(20),
        default="subscriber",
        nullable=False,
        index=True,
    )
    subscription_status: Mapped[str] = mapped_column(
        String(20),
        default=SubscriptionStatus.ACTIVE.value,
        nullable=False,
        index=True,
    )
    subscription_end_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    last_login_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username={self.username}, role={self.role})>"

    def set_password(self, password: str) -> None:
        """Set the user's password hash.

        Args:
            password: Plaintext password.
        """
        # 延迟导入 security 模块，避免循环依赖
        from core.security import hash_password

        self.password_hash = hash_password(password)

    def check_password(self, password: str) -> bool:
        """Check whether a plaintext password matches.

        Args:
            password: Plaintext password to verify.

        Returns:
            bool: ``True`` if the password matches the stored hash.
        """
        from core.security import verify_password

        return verify_password(password, self.password_hash)

    def update_last_login(self) -> None:
        """Stamp ``last_login_at`` with the current UTC time."""
        self.last_login_at = utc_now()

    def to_principal(self):
        """Return an immutable ``Principal`` snapshot of this user."""
        from core.policy import Principal

        return Principal.from_user(self)
