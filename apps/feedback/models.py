# ==============================================================================
# 模块: feedback/models.py
# 功能: 读者反馈（评分 + 评论）ORM 模型
# 架构角色: 评分聚合器与反馈 upsert 规则的存储基础。
# 设计说明:
#   - 每个 (user_id, article_id) 至多一条反馈，由唯一约束保证；
#     重复提交通过数据库原子 upsert 原地覆盖，不会产生第二行
#   - rating 取值 1-5，服务层先行校验，CHECK 约束兜底
#   - created_at 表示"最近一次提交时间"，覆盖提交时一并刷新
#   - 删除文章或用户时，其反馈由外键级联删除
# ==============================================================================

"""Feedback model for NewsDesk."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from core.models.base import Base, utc_now

MIN_RATING = 1
MAX_RATING = 5


class Feedback(Base):
    """One reader's rating and optional comment on one article.

    Attributes:
        id: Primary key, preserved across resubmissions.
        article_id: Rated article.
        user_id: Rating user.
        rating: Integer rating in ``[1, 5]``.
        comment: Optional free text.
        created_at: Time of the latest submission.
    """

    __tablename__ = "feedback"
    __table_args__ = (
        UniqueConstraint("user_id", "article_id", name="uq_feedback_user_article"),
        CheckConstraint(
            f"rating >= {MIN_RATING} AND rating <= {MAX_RATING}",
            name="ck_feedback_rating_range",
        ),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    article_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("articles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    rating: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<Feedback(id={self.id}, user_id={self.user_id}, "
            f"article_id={self.article_id}, rating={self.rating})>"
        )
