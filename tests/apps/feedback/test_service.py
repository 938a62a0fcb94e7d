"""Tests for apps/feedback/service.py — one feedback row per reader and article.

反馈提交（插入或覆盖）业务逻辑测试。
"""

from __future__ import annotations

import asyncio

import pytest
from sqlalchemy import func, select

from core.exceptions import AuthorizationError, NotFoundError, ValidationError

pytestmark = pytest.mark.integration


async def _published_article(session, editor, **data):
    from apps.content.service import ArticleService

    payload = {"title": "Rated piece", "content": "Body", "status": "published"}
    payload.update(data)
    article = await ArticleService(session).create_article(editor, payload)
    await session.commit()
    return article


async def _feedback_rows(session, article_id: int):
    from apps.feedback.models import Feedback

    result = await session.execute(select(Feedback).where(Feedback.article_id == article_id))
    return list(result.scalars().all())


class TestValidateRating:
    """Rating validation without a database.

    评分取值校验。
    """

    @pytest.mark.parametrize("rating", [1, 3, 5])
    def test_accepts_range(self, rating):
        """Verify 1 through 5 are accepted.

        Args:
            rating: Candidate rating.

        Returns:
            None: This test does not return a value.
        """
        from apps.feedback.service import validate_rating

        assert validate_rating(rating) == rating

    @pytest.mark.parametrize("rating", [0, 6, -1, 4.5, "5", None, True])
    def test_rejects_out_of_range_and_non_integers(self, rating):
        """Verify out-of-range, fractional, string and boolean ratings fail.

        验证越界、小数、字符串和布尔值评分都会被拒绝。

        Args:
            rating: Candidate rating.

        Returns:
            None: This test does not return a value.
        """
        from apps.feedback.service import validate_rating

        with pytest.raises(ValidationError) as exc_info:
            validate_rating(rating)
        assert exc_info.value.message == "Rating must be between 1 and 5"

    def test_unknown_dialect(self):
        """Verify an unsupported dialect has no upsert form.

        Returns:
            None: This test does not return a value.
        """
        from apps.feedback.service import build_upsert
        from core.exceptions import StoreError

        with pytest.raises(StoreError):
            build_upsert("oracle", {"user_id": 1, "article_id": 1, "rating": 3})


class TestFeedbackSubmit:
    """Upsert semantics of feedback submission.

    反馈提交的插入或覆盖语义。
    """

    @pytest.mark.asyncio
    async def test_resubmission_overwrites_single_row(self, db_session, editor, subscriber):
        """Verify repeated submissions keep one row with the latest values.

        验证多次提交只保留一行，值为最后一次提交，且主键不变。

        Args:
            db_session: Async database session fixture.
            editor: Editor principal fixture.
            subscriber: Subscriber principal fixture.

        Returns:
            None: This test does not return a value.
        """
        from apps.feedback.service import FeedbackService

        article = await _published_article(db_session, editor)
        service = FeedbackService(db_session)

        first = await service.submit(subscriber, article["id"], 2, "meh")
        first_id = first.id
        await service.submit(subscriber, article["id"], 4, "better")
        last = await service.submit(subscriber, article["id"], 5, "  great  ")

        rows = await _feedback_rows(db_session, article["id"])
        assert len(rows) == 1
        assert last.id == first_id
        assert last.rating == 5
        assert last.comment == "great"

    @pytest.mark.asyncio
    async def test_blank_comment_stored_as_none(self, db_session, editor, subscriber):
        """Verify a whitespace-only comment is stored as ``None``.

        Args:
            db_session: Async database session fixture.
            editor: Editor principal fixture.
            subscriber: Subscriber principal fixture.

        Returns:
            None: This test does not return a value.
        """
        from apps.feedback.service import FeedbackService

        article = await _published_article(db_session, editor)
        feedback = await FeedbackService(db_session).submit(subscriber, article["id"], 3, "   ")
        assert feedback.comment is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("rating", [0, 6])
    async def test_invalid_rating_writes_nothing(self, db_session, editor, subscriber, rating):
        """Verify invalid ratings are rejected before any write.

        验证非法评分在写入之前被拒绝，不产生任何行。

        Args:
            db_session: Async database session fixture.
            editor: Editor principal fixture.
            subscriber: Subscriber principal fixture.
            rating: Out-of-range rating.

        Returns:
            None: This test does not return a value.
        """
        from apps.feedback.service import FeedbackService

        article = await _published_article(db_session, editor)
        with pytest.raises(ValidationError):
            await FeedbackService(db_session).submit(subscriber, article["id"], rating)

        assert await _feedback_rows(db_session, article["id"]) == []

    @pytest.mark.asyncio
    async def test_missing_article(self, db_session, subscriber):
        """Verify feedback on an unknown article raises ``NotFoundError``.

        Args:
            db_session: Async database session fixture.
            subscriber: Subscriber principal fixture.

        Returns:
            None: This test does not return a value.
        """
        from apps.feedback.service import FeedbackService

        with pytest.raises(NotFoundError):
            await FeedbackService(db_session).submit(subscriber, 999, 4)

    @pytest.mark.asyncio
    async def test_hidden_article_rejected(self, db_session, editor, subscriber):
        """Verify subscribers cannot rate draft articles.

        验证订阅者不能对草稿文章评分。

        Args:
            db_session: Async database session fixture.
            editor: Editor principal fixture.
            subscriber: Subscriber principal fixture.

        Returns:
            None: This test does not return a value.
        """
        from apps.feedback.service import FeedbackService

        article = await _published_article(db_session, editor, status="draft")
        with pytest.raises(AuthorizationError):
            await FeedbackService(db_session).submit(subscriber, article["id"], 4)

    @pytest.mark.asyncio
    async def test_list_and_delete(self, db_session, editor, subscriber, admin):
        """Verify listing includes user names and delete removes the row.

        验证列表带有用户显示名，删除后该行消失。

        Args:
            db_session: Async database session fixture.
            editor: Editor principal fixture.
            subscriber: Subscriber principal fixture.
            admin: Admin principal fixture.

        Returns:
            None: This test does not return a value.
        """
        from apps.feedback.service import FeedbackService

        article = await _published_article(db_session, editor)
        service = FeedbackService(db_session)
        mine = await service.submit(subscriber, article["id"], 4)
        await service.submit(admin, article["id"], 2)

        listed = await service.list_for_article(article["id"])
        assert {row["user_name"] for row in listed} == {"Reader", "Boss"}

        everything = await service.list_all()
        assert all(row["article_title"] == "Rated piece" for row in everything)

        await service.delete(mine.id)
        assert await service.get_for_user(subscriber.id, article["id"]) is None
        with pytest.raises(NotFoundError):
            await service.delete(mine.id)


class TestConcurrentSubmit:
    """Concurrent submissions from independent sessions.

    多个独立会话并发提交同一用户同一文章的反馈。
    """

    @pytest.mark.asyncio
    async def test_concurrent_submissions_leave_one_row(self, file_db_engine):
        """Verify racing submissions never create a duplicate row.

        验证并发提交不会产生重复行，最终只保留一行。

        Args:
            file_db_engine: File-backed engine fixture.

        Returns:
            None: This test does not return a value.
        """
        from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

        from apps.auth.service import AuthService
        from apps.feedback.models import Feedback
        from apps.feedback.service import FeedbackService

        factory = async_sessionmaker(file_db_engine, class_=AsyncSession, expire_on_commit=False)

        async with factory() as session:
            writer = await AuthService.register(
                session, "writer", "writer@example.com", "password123", "Writer", "editor"
            )
            reader = await AuthService.register(
                session, "reader", "reader@example.com", "password123", "Reader"
            )
            await session.commit()
            article = await _published_article(session, writer.to_principal())
            principal = reader.to_principal()

        async def submit(rating: int) -> None:
            async with factory() as session:
                await FeedbackService(session).submit(principal, article["id"], rating)
                await session.commit()

        await asyncio.gather(*(submit(rating) for rating in (1, 2, 3, 4, 5)))

        async with factory() as session:
            result = await session.execute(
                select(func.count(Feedback.id)).where(
                    Feedback.user_id == principal.id,
                    Feedback.article_id == article["id"],
                )
            )
            assert result.scalar_one() == 1
