"""Tests for apps/feedback/aggregator.py — averages, rankings and stats.

评分聚合测试。
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from core.exceptions import ValidationError

pytestmark = pytest.mark.integration


async def _readers(session, count: int):
    """Register ``count`` subscribers and return their principals."""
    from apps.auth.service import AuthService

    principals = []
    for index in range(count):
        user = await AuthService.register(
            session,
            username=f"rater{index}",
            email=f"rater{index}@example.com",
            password="password123",
            full_name=f"Rater {index}",
        )
        principals.append(user.to_principal())
    return principals


async def _article(session, editor, title: str, status: str = "published"):
    from apps.content.service import ArticleService

    return await ArticleService(session).create_article(
        editor, {"title": title, "content": "Body", "status": status}
    )


async def _rate(session, readers, article_id: int, ratings: list[int]) -> None:
    from apps.feedback.service import FeedbackService

    service = FeedbackService(session)
    for reader, rating in zip(readers, ratings):
        await service.submit(reader, article_id, rating)


class TestHelpers:
    """Pure helpers used by the aggregator.

    聚合辅助函数。
    """

    @pytest.mark.parametrize(
        "value, expected",
        [(None, None), (Decimal("4.3333333"), 4.33), (4.5, 4.5), (3, 3.0)],
    )
    def test_normalize_average(self, value, expected):
        """Verify averages are rounded to two decimals and ``None`` passes through.

        Args:
            value: Raw database average.
            expected: Normalized value.

        Returns:
            None: This test does not return a value.
        """
        from apps.feedback.aggregator import normalize_average

        assert normalize_average(value) == expected

    def test_resolve_limit(self):
        """Verify the default, the cap and rejection of non-positive limits.

        验证默认值、上限截断以及非正数被拒绝。

        Returns:
            None: This test does not return a value.
        """
        from apps.feedback.aggregator import resolve_limit
        from settings import settings

        assert resolve_limit(None) == settings.top_rated_limit
        assert resolve_limit(3) == 3
        assert resolve_limit(settings.max_page_size + 50) == settings.max_page_size
        for bad in (0, -2):
            with pytest.raises(ValidationError):
                resolve_limit(bad)


class TestSummary:
    """Per-article aggregate.

    单篇文章的评分汇总。
    """

    @pytest.mark.asyncio
    async def test_summary_without_feedback(self, db_session, editor):
        """Verify an unrated article has no average and zero count.

        验证没有反馈的文章平均分为 ``None``、数量为 0。

        Args:
            db_session: Async database session fixture.
            editor: Editor principal fixture.

        Returns:
            None: This test does not return a value.
        """
        from apps.feedback.aggregator import RatingAggregator

        article = await _article(db_session, editor, "Quiet")
        summary = await RatingAggregator(db_session).summary(article["id"])

        assert summary.average_rating is None
        assert summary.feedback_count == 0

    @pytest.mark.asyncio
    async def test_summary_reflects_overwrites(self, db_session, editor):
        """Verify a resubmission replaces the earlier rating in the average.

        验证重新提交的评分会替换旧评分，而不是额外计入平均值。

        Args:
            db_session: Async database session fixture.
            editor: Editor principal fixture.

        Returns:
            None: This test does not return a value.
        """
        from apps.feedback.aggregator import RatingAggregator

        readers = await _readers(db_session, 2)
        article = await _article(db_session, editor, "Debated")
        await _rate(db_session, readers, article["id"], [1, 5])
        await _rate(db_session, readers[:1], article["id"], [3])

        summary = await RatingAggregator(db_session).summary(article["id"])
        assert summary.feedback_count == 2
        assert summary.average_rating == 4.0


class TestTopRated:
    """Ranking of published articles.

    已发布文章的评分排行。
    """

    @pytest.mark.asyncio
    async def test_count_breaks_average_ties(self, db_session, editor):
        """Verify equal averages are ordered by feedback count, larger first.

        验证平均分相同的文章按反馈数量降序排列。

        Args:
            db_session: Async database session fixture.
            editor: Editor principal fixture.

        Returns:
            None: This test does not return a value.
        """
        from apps.feedback.aggregator import RatingAggregator

        readers = await _readers(db_session, 4)
        few = await _article(db_session, editor, "Few votes")
        many = await _article(db_session, editor, "Many votes")
        low = await _article(db_session, editor, "Low score")
        await _rate(db_session, readers, few["id"], [4, 5])
        await _rate(db_session, readers, many["id"], [4, 5, 4, 5])
        await _rate(db_session, readers, low["id"], [2, 3, 2])

        ranked = await RatingAggregator(db_session).top_rated()

        assert [row["title"] for row in ranked] == ["Many votes", "Few votes", "Low score"]
        assert ranked[0]["average_rating"] == 4.5
        assert ranked[0]["feedback_count"] == 4
        assert ranked[1]["feedback_count"] == 2
        assert ranked[0]["author_name"] == "Writer"

    @pytest.mark.asyncio
    async def test_excludes_unrated_and_unpublished(self, db_session, editor):
        """Verify articles without feedback or not published never appear.

        验证没有反馈或未发布的文章不会出现在排行中。

        Args:
            db_session: Async database session fixture.
            editor: Editor principal fixture.

        Returns:
            None: This test does not return a value.
        """
        from apps.feedback.aggregator import RatingAggregator

        readers = await _readers(db_session, 1)
        rated = await _article(db_session, editor, "Rated")
        await _article(db_session, editor, "Unrated")
        draft = await _article(db_session, editor, "Draft", status="draft")
        archived = await _article(db_session, editor, "Archived")
        await _rate(db_session, readers, rated["id"], [3])
        # 编辑可以看到草稿，用编辑身份给草稿评分
        await _rate(db_session, [editor], draft["id"], [5])
        await _rate(db_session, readers, archived["id"], [5])

        from apps.content.service import ArticleService

        await ArticleService(db_session).update_article(archived["id"], {"status": "archived"})

        ranked = await RatingAggregator(db_session).top_rated()
        assert [row["title"] for row in ranked] == ["Rated"]

    @pytest.mark.asyncio
    async def test_limit_truncates(self, db_session, editor):
        """Verify the result is truncated to ``limit`` rows.

        Args:
            db_session: Async database session fixture.
            editor: Editor principal fixture.

        Returns:
            None: This test does not return a value.
        """
        from apps.feedback.aggregator import RatingAggregator

        readers = await _readers(db_session, 1)
        for index in range(3):
            article = await _article(db_session, editor, f"Piece {index}")
            await _rate(db_session, readers, article["id"], [index + 1])

        ranked = await RatingAggregator(db_session).top_rated(limit=2)
        assert [row["title"] for row in ranked] == ["Piece 2", "Piece 1"]

    @pytest.mark.asyncio
    async def test_invalid_limit(self, db_session):
        """Verify a zero limit is rejected.

        Args:
            db_session: Async database session fixture.

        Returns:
            None: This test does not return a value.
        """
        from apps.feedback.aggregator import RatingAggregator

        with pytest.raises(ValidationError):
            await RatingAggregator(db_session).top_rated(limit=0)


class TestStats:
    """Site-wide statistics.

    全站反馈统计。
    """

    @pytest.mark.asyncio
    async def test_empty_stats(self, db_session):
        """Verify an empty feedback table yields zeros and no average.

        Args:
            db_session: Async database session fixture.

        Returns:
            None: This test does not return a value.
        """
        from apps.feedback.aggregator import RatingAggregator

        stats = await RatingAggregator(db_session).stats()
        assert stats.total_feedback == 0
        assert stats.average_rating is None
        assert stats.five_star == stats.one_star == 0

    @pytest.mark.asyncio
    async def test_star_breakdown(self, db_session, editor):
        """Verify totals, average and per-star counts.

        验证总数、平均分以及各星级数量。

        Args:
            db_session: Async database session fixture.
            editor: Editor principal fixture.

        Returns:
            None: This test does not return a value.
        """
        from apps.feedback.aggregator import RatingAggregator

        readers = await _readers(db_session, 4)
        article = await _article(db_session, editor, "Stats")
        await _rate(db_session, readers, article["id"], [5, 5, 4, 1])

        stats = (await RatingAggregator(db_session).stats()).to_dict()
        assert stats["total_feedback"] == 4
        assert stats["average_rating"] == 3.75
        assert stats["five_star"] == 2
        assert stats["four_star"] == 1
        assert stats["three_star"] == 0
        assert stats["one_star"] == 1
