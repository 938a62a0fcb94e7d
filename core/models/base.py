# =============================================================================
# ORM 基础模型与通用混入类模块
# =============================================================================
# 本模块定义了 NewsDesk 中所有 SQLAlchemy ORM 模型的基类和通用混入（Mixin）。
# 主要职责：
#   1. 提供所有 ORM 模型的声明式基类（Base），统一模型注册与元数据管理
#   2. 提供时间戳混入类（TimestampMixin），自动管理创建时间和更新时间字段
#   3. 提供 utc_now()，供各模型与服务生成统一的 UTC 时间戳
#
# 架构角色：
#   - User、Issue、Article、Feedback、Subscription 的根基类
#   - 被 database.py 用于数据库表的自动创建（Base.metadata.create_all）
#
# 设计决策：
#   - 使用 SQLAlchemy 2.0 风格的 DeclarativeBase 声明式基类
#   - 时间戳统一使用 UTC 时区，并在 Python 层生成（而非 server_default）
# =============================================================================

"""Base models and mixins for NewsDesk."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import DateTime
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Declarative base for all ORM models.

    All models must inherit from this base so they are registered in
    ``Base.metadata`` for schema creation.
    """

    pass


class TimestampMixin:
    """Mixin providing ``created_at`` and ``updated_at`` timestamps.

    ``updated_at`` is refreshed automatically on ORM update operations.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False,
    )
    # onupdate 使每次 ORM UPDATE 时自动刷新此字段
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        onupdate=utc_now,
        nullable=False,
    )
