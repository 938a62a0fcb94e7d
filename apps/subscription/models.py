# ==============================================================================
# 模块: subscription/models.py
# 功能: 订阅历史流水（subscriptions 表）
# 设计说明:
#   - 追加式流水，只插入不修改；用户表上的订阅字段才是权威当前状态
#   - 每次续订写入一行，起止时间与用户表上写入的值完全相同
#   - amount 来自 settings 中的定价配置，使用 Numeric 保存精确金额
# ==============================================================================

"""Subscription ledger model for NewsDesk."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import BigInteger, DateTime, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from core.models.base import Base, utc_now


class Subscription(Base):
    """One append-only subscription ledger entry.

    Attributes:
        id: Primary key.
        user_id: Subscribing user.
        subscription_type: ``monthly`` or ``yearly``.
        start_date: Start of the paid term.
        end_date: End of the paid term.
        amount: Price charged for the term.
        status: Status recorded with the entry.
        created_at: Time the entry was written.
    """

    __tablename__ = "subscriptions"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    subscription_type: Mapped[str] = mapped_column(String(20), nullable=False)
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="active", nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<Subscription(id={self.id}, user_id={self.user_id}, "
            f"type={self.subscription_type}, end={self.end_date})>"
        )
