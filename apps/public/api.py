# ==========================================================================
# 公开 API 模块
# --------------------------------------------------------------------------
# 无需登录即可访问的接口，只返回对匿名读者可见的内容：
#   1. GET /public/preview   —— 首页预览：最新文章、最新期刊、高分文章、总数
#   2. GET /public/stats     —— 可见文章数与已发布期刊数
#   3. GET /public/top-rated —— 高分文章榜
# ==========================================================================

"""Public (anonymous) API endpoints for NewsDesk."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from apps.content.models import Article, ContentStatus, Issue
from apps.content.schemas import ArticleResponse, IssueResponse
from apps.content.service import ArticleService, IssueService
from apps.content.visibility import published_article_clause
from apps.feedback.aggregator import RatingAggregator
from apps.feedback.schemas import TopRatedArticle
from core.database import get_session
from settings import settings

router = APIRouter(prefix="/public", tags=["public"])


async def _visible_totals(session: AsyncSession) -> dict[str, int]:
    articles = await session.execute(
        select(func.count(Article.id))
        .select_from(Article)
        .outerjoin(Issue, Issue.id == Article.issue_id)
        .where(published_article_clause())
    )
    issues = await session.execute(
        select(func.count(Issue.id)).where(Issue.status == ContentStatus.PUBLISHED.value)
    )
    return {
        "total_articles": articles.scalar() or 0,
        "total_issues": issues.scalar() or 0,
    }


@router.get("/preview")
async def preview(session: AsyncSession = Depends(get_session)) -> dict[str, Any]:
    """Landing-page teaser for anonymous readers."""
    articles = await ArticleService(session).list_visible(None, limit=settings.preview_articles)
    issues = await IssueService(session).list_visible(None, limit=settings.preview_issues)
    top_rated = await RatingAggregator(session).top_rated(limit=settings.preview_top_rated)
    return {
        "articles": [ArticleResponse.model_validate(a) for a in articles],
        "issues": [IssueResponse.model_validate(i) for i in issues],
        "top_rated": top_rated,
        "stats": await _visible_totals(session),
    }


@router.get("/stats")
async def stats(session: AsyncSession = Depends(get_session)) -> dict[str, int]:
    return await _visible_totals(session)


@router.get("/top-rated", response_model=list[TopRatedArticle])
async def top_rated(
    limit: Optional[int] = Query(default=None),
    session: AsyncSession = Depends(get_session),
) -> list[dict[str, Any]]:
    """Published articles ranked by average rating, then feedback count.

    Raises:
        ValidationError: If ``limit`` is smaller than 1.
    """
    return await RatingAggregator(session).top_rated(limit=limit)
