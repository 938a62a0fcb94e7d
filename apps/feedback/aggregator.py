# ==============================================================================
# 模块: feedback/aggregator.py
# 功能: 评分聚合器
# 架构角色: 计算单篇文章的平均分与反馈数、已发布文章的高分榜，以及全站反馈统计。
# 设计决策:
#   - 每次查询实时计算（AVG / COUNT），不持久化任何物化聚合值；
#     读多写少且数据量小，实时计算保证结果始终最新
#   - 没有反馈时平均分为 None（不做除零，也不伪造默认值）
#   - 平均分对外保留两位小数；排序在 SQL 中基于原始平均值完成
#   - 高分榜：仅限已发布文章，至少 1 条反馈，
#     按 (平均分降序, 反馈数降序) 排序，文章 ID 升序仅用于结果稳定
# ==============================================================================

"""Rating aggregation for NewsDesk."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import Subquery, case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from apps.content.models import Article, ContentStatus
from apps.feedback.models import MAX_RATING, MIN_RATING, Feedback
from core.exceptions import ValidationError
from core.models.user import User

logger = logging.getLogger(__name__)

# 进入高分榜所需的最少反馈条数
MIN_SAMPLE_SIZE = 1


def normalize_average(value: Optional[float | Decimal]) -> Optional[float]:
    """Convert a SQL ``AVG`` result to a float with two decimals.

    MySQL returns ``Decimal`` and SQLite returns ``float``; ``None`` (no rows)
    is passed through unchanged.
    """
    if value is None:
        return None
    return round(float(value), 2)


def resolve_limit(limit: Optional[int]) -> int:
    """Apply the default and upper bound to a caller-supplied ranking limit.

    Raises:
        ValidationError: If ``limit`` is smaller than 1.
    """
    from settings import settings

    if limit is None:
        return settings.top_rated_limit
    if limit < 1:
        raise ValidationError("Limit must be a positive integer")
    return min(limit, settings.max_page_size)


@dataclass(frozen=True)
class RatingSummary:
    """Average rating and feedback count of one article."""

    average_rating: Optional[float]
    feedback_count: int


@dataclass(frozen=True)
class FeedbackStats:
    """Site-wide feedback statistics."""

    total_feedback: int
    average_rating: Optional[float]
    five_star: int
    four_star: int
    three_star: int
    two_star: int
    one_star: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def rating_subquery() -> Subquery:
    """Per-article ``AVG(rating)`` / ``COUNT(*)``, for LEFT OUTER JOIN onto articles.

    Columns: ``article_id``, ``average_rating``, ``feedback_count``.
    Articles without feedback get NULL in both aggregate columns after the
    join; callers coalesce the count to 0.
    """
    return (
        select(
            Feedback.article_id.label("article_id"),
            func.avg(Feedback.rating).label("average_rating"),
            func.count(Feedback.id).label("feedback_count"),
        )
        .group_by(Feedback.article_id)
        .subquery("ratings")
    )


class RatingAggregator:
    """Read-only rating queries over the feedback table.

    评分聚合查询，只读，不修改任何数据。
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def summary(self, article_id: int) -> RatingSummary:
        """Compute the rating aggregate of one article.

        Args:
            article_id: Article to aggregate.

        Returns:
            RatingSummary: ``average_rating`` is ``None`` when there is no
            feedback.
        """
        result = await self.session.execute(
            select(func.avg(Feedback.rating), func.count(Feedback.id))
            .where(Feedback.article_id == article_id)
        )
        average, count = result.one()
        return RatingSummary(
            average_rating=normalize_average(average),
            feedback_count=int(count or 0),
        )

    async def top_rated(self, limit: Optional[int] = None) -> list[dict[str, Any]]:
        """Rank published articles by average rating.

        Args:
            limit: Maximum number of articles (default from settings).

        Returns:
            list[dict[str, Any]]: Ranked rows with ``id``, ``title``,
            ``summary``, ``featured_image_url``, ``author_name``,
            ``created_at``, ``average_rating`` and ``feedback_count``.

        Raises:
            ValidationError: If ``limit`` is smaller than 1.
        """
        limit = resolve_limit(limit)

        average_col = func.avg(Feedback.rating).label("average_rating")
        count_col = func.count(Feedback.id).label("feedback_count")

        # 内连接 feedback：没有任何反馈的文章天然不会出现在结果中，
        # HAVING 再显式约束最少样本数
        stmt = (
            select(
                Article.id,
                Article.title,
                Article.summary,
                Article.featured_image_url,
                Article.created_at,
                User.full_name.label("author_name"),
                average_col,
                count_col,
            )
            .join(Feedback, Feedback.article_id == Article.id)
            .outerjoin(User, User.id == Article.author_id)
            .where(Article.status == ContentStatus.PUBLISHED.value)
            .group_by(
                Article.id,
                Article.title,
                Article.summary,
                Article.featured_image_url,
                Article.created_at,
                User.full_name,
            )
            .having(func.count(Feedback.id) >= MIN_SAMPLE_SIZE)
            .order_by(average_col.desc(), count_col.desc(), Article.id.asc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)

        return [
            {
                "id": row.id,
                "title": row.title,
                "summary": row.summary,
                "featured_image_url": row.featured_image_url,
                "author_name": row.author_name,
                "created_at": row.created_at,
                "average_rating": normalize_average(row.average_rating),
                "feedback_count": int(row.feedback_count),
            }
            for row in result.all()
        ]

    async def stats(self) -> FeedbackStats:
        """Compute site-wide totals, average and per-star counts."""
        star_columns = [
            func.sum(case((Feedback.rating == stars, 1), else_=0))
            for stars in range(MAX_RATING, MIN_RATING - 1, -1)
        ]
        result = await self.session.execute(
            select(func.count(Feedback.id), func.avg(Feedback.rating), *star_columns)
        )
        total, average, *per_star = result.one()
        # 空表时 SUM 返回 NULL
        five, four, three, two, one = (int(value or 0) for value in per_star)
        return FeedbackStats(
            total_feedback=int(total or 0),
            average_rating=normalize_average(average),
            five_star=five,
            four_star=four,
            three_star=three,
            two_star=two,
            one_star=one,
        )
