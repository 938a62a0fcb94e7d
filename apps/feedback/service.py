# ==============================================================================
# 模块: feedback/service.py
# 功能: 反馈提交（upsert）、查询与删除
# 架构角色: 反馈表唯一的写入入口。订阅端路由调用 submit，管理端调用 list_all/delete。
# 核心规则:
#   - rating 必须是 [1, 5] 内的整数，否则抛出 ValidationError，且不执行任何写入
#   - 每个 (user_id, article_id) 至多一行：由唯一约束 + 数据库原子 upsert 保证，
#     不在应用层"先查后写"（并发时会产生重复行）
#   - 重复提交覆盖 rating / comment / created_at，保留原行 ID
#   - 只能对当前主体可见的文章提交反馈
# 方言差异:
#   - MySQL: INSERT ... ON DUPLICATE KEY UPDATE
#   - SQLite / PostgreSQL: INSERT ... ON CONFLICT (user_id, article_id) DO UPDATE
# ==============================================================================

"""Feedback submission and queries for NewsDesk."""

from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from apps.content.models import Article, Issue
from apps.content.visibility import ensure_article_visible
from apps.feedback.models import MAX_RATING, MIN_RATING, Feedback
from core.exceptions import NotFoundError, StoreError, ValidationError
from core.models.base import utc_now
from core.models.user import User
from core.policy import Principal

logger = logging.getLogger(__name__)


def validate_rating(rating: Any) -> int:
    """Check that ``rating`` is an integer in ``[1, 5]``.

    Raises:
        ValidationError: For non-integers (including booleans) and
            out-of-range values.
    """
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise ValidationError("Rating must be between 1 and 5")
    if rating < MIN_RATING or rating > MAX_RATING:
        raise ValidationError("Rating must be between 1 and 5")
    return rating


def build_upsert(dialect_name: str, values: dict[str, Any]):
    """Build the dialect-specific atomic insert-or-update for one feedback row.

    Args:
        dialect_name: SQLAlchemy dialect name of the bound engine.
        values: Column values for the row.

    Returns:
        An executable ``INSERT`` statement with conflict handling.

    Raises:
        StoreError: If the dialect has no supported upsert form.
    """
    overwrite = ("rating", "comment", "created_at")

    if dialect_name == "mysql":
        from sqlalchemy.dialects.mysql import insert

        stmt = insert(Feedback).values(**values)
        return stmt.on_duplicate_key_update(
            **{column: stmt.inserted[column] for column in overwrite}
        )

    if dialect_name in ("sqlite", "postgresql"):
        if dialect_name == "sqlite":
            from sqlalchemy.dialects.sqlite import insert
        else:
            from sqlalchemy.dialects.postgresql import insert

        stmt = insert(Feedback).values(**values)
        return stmt.on_conflict_do_update(
            index_elements=["user_id", "article_id"],
            set_={column: stmt.excluded[column] for column in overwrite},
        )

    raise StoreError(f"Upsert not supported for dialect {dialect_name}")


class FeedbackService:
    """Feedback upsert and queries.

    反馈业务服务。
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def submit(
        self,
        principal: Principal,
        article_id: int,
        rating: Any,
        comment: Optional[str] = None,
    ) -> Feedback:
        """Insert or overwrite the caller's feedback on an article.

        Args:
            principal: Submitting user.
            article_id: Rated article.
            rating: Integer rating in ``[1, 5]``.
            comment: Optional free text; blank comments are stored as ``None``.

        Returns:
            Feedback: The single row for ``(principal.id, article_id)``.

        Raises:
            ValidationError: If the rating is invalid (nothing is written).
            NotFoundError: If the article does not exist.
            AuthorizationError: If the article is not visible to the caller.
        """
        rating = validate_rating(rating)

        result = await self.session.execute(
            select(Article.status, Issue.status)
            .outerjoin(Issue, Issue.id == Article.issue_id)
            .where(Article.id == article_id)
        )
        row = result.one_or_none()
        if row is None:
            raise NotFoundError("Article", article_id)
        ensure_article_visible(principal, article_id, row[0], row[1])

        comment = comment.strip() if comment else None
        values = {
            "user_id": principal.id,
            "article_id": article_id,
            "rating": rating,
            "comment": comment or None,
            "created_at": utc_now(),
        }
        dialect_name = self.session.get_bind().dialect.name
        await self.session.execute(build_upsert(dialect_name, values))

        # 重新读取，并覆盖身份映射中可能存在的旧对象
        result = await self.session.execute(
            select(Feedback)
            .where(Feedback.user_id == principal.id, Feedback.article_id == article_id)
            .execution_options(populate_existing=True)
        )
        feedback = result.scalar_one()
        logger.info(
            f"Feedback {feedback.id} saved: user {principal.id} rated article "
            f"{article_id} with {rating}"
        )
        return feedback

    async def get_for_user(self, user_id: int, article_id: int) -> Feedback | None:
        """Return the feedback of ``user_id`` on ``article_id``, if any."""
        result = await self.session.execute(
            select(Feedback).where(
                Feedback.user_id == user_id,
                Feedback.article_id == article_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_for_article(self, article_id: int) -> list[dict[str, Any]]:
        """List feedback on one article with author names, newest first."""
        result = await self.session.execute(
            select(Feedback, User.full_name.label("user_name"))
            .outerjoin(User, User.id == Feedback.user_id)
            .where(Feedback.article_id == article_id)
            .order_by(Feedback.created_at.desc(), Feedback.id.desc())
        )
        return [_to_view(row.Feedback, user_name=row.user_name) for row in result.all()]

    async def list_all(self) -> list[dict[str, Any]]:
        """List every feedback row with user and article titles (admin view)."""
        result = await self.session.execute(
            select(
                Feedback,
                User.full_name.label("user_name"),
                Article.title.label("article_title"),
            )
            .outerjoin(User, User.id == Feedback.user_id)
            .outerjoin(Article, Article.id == Feedback.article_id)
            .order_by(Feedback.created_at.desc(), Feedback.id.desc())
        )
        return [
            _to_view(row.Feedback, user_name=row.user_name, article_title=row.article_title)
            for row in result.all()
        ]

    async def delete(self, feedback_id: int) -> None:
        """Delete one feedback row.

        Raises:
            NotFoundError: If the row does not exist.
        """
        result = await self.session.execute(delete(Feedback).where(Feedback.id == feedback_id))
        if result.rowcount == 0:
            raise NotFoundError("Feedback", feedback_id)
        logger.info(f"Feedback {feedback_id} deleted")


def _to_view(feedback: Feedback, **extra: Any) -> dict[str, Any]:
    view = {
        "id": feedback.id,
        "article_id": feedback.article_id,
        "user_id": feedback.user_id,
        "rating": feedback.rating,
        "comment": feedback.comment,
        "created_at": feedback.created_at,
    }
    view.update(extra)
    return view
