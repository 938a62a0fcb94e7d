# ==========================================================================
# 订阅端 API 模块
# --------------------------------------------------------------------------
# 本模块提供读者阅读、评分与管理订阅的接口。
# 门槛为 subscriber，这是包含式下限：任何已登录角色（含编辑、管理员）均可访问；
# 看到的内容范围由可见性规则决定（编辑和管理员可以看到草稿）。
#
# 提供以下端点：
#   1. GET  /subscriber/dashboard                   —— 最新文章、最新期刊、高分榜、订阅信息
#   2. GET  /subscriber/articles                    —— 可见文章列表
#   3. GET  /subscriber/articles/{id}               —— 文章详情（计一次浏览）+ 反馈
#   4. POST /subscriber/articles/{id}/feedback      —— 提交 / 覆盖反馈
#   5. GET  /subscriber/issues                      —— 可见期刊列表
#   6. GET  /subscriber/issues/{id}                 —— 期刊详情 + 其可见文章
#   7. GET  /subscriber/profile, PUT /subscriber/profile —— 个人资料
#   8. POST /subscriber/subscription/renew          —— 续订
#   9. GET  /subscriber/subscription                —— 当前订阅 + 历史流水
# ==========================================================================

"""Subscriber API endpoints for NewsDesk."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from apps.auth.schemas import PrincipalResponse, ProfileUpdateRequest
from apps.auth.service import AuthService
from apps.content.schemas import ArticleResponse, IssueResponse
from apps.content.service import ArticleService, IssueService
from apps.feedback.aggregator import RatingAggregator
from apps.feedback.schemas import (
    ArticleDetailResponse,
    FeedbackResponse,
    FeedbackSubmitRequest,
)
from apps.feedback.service import FeedbackService
from apps.subscription.schemas import (
    RenewSubscriptionRequest,
    RenewSubscriptionResponse,
    SubscriptionInfoResponse,
)
from apps.subscription.service import SubscriptionService
from core.database import get_session
from core.dependencies import SubscriberPrincipal

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/subscriber", tags=["subscriber"])

# 仪表盘各区块的条目数
DASHBOARD_ARTICLES = 6
DASHBOARD_ISSUES = 3
DASHBOARD_TOP_RATED = 5


@router.get("/dashboard")
async def dashboard(
    principal: SubscriberPrincipal,
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    """Reader overview: recent articles and issues, top rated, subscription."""
    articles = await ArticleService(session).list_visible(principal, limit=DASHBOARD_ARTICLES)
    issues = await IssueService(session).list_visible(principal, limit=DASHBOARD_ISSUES)
    top_rated = await RatingAggregator(session).top_rated(limit=DASHBOARD_TOP_RATED)
    return {
        "recent_articles": [ArticleResponse.model_validate(a) for a in articles],
        "recent_issues": [IssueResponse.model_validate(i) for i in issues],
        "top_rated": top_rated,
        "subscription": {
            "status": principal.subscription_status,
            "end_date": principal.subscription_end_date,
        },
    }


# ============================================================================
# Articles
# ============================================================================
@router.get("/articles", response_model=list[ArticleResponse])
async def list_articles(
    principal: SubscriberPrincipal,
    session: AsyncSession = Depends(get_session),
) -> list[dict[str, Any]]:
    """List the articles visible to the caller, newest first."""
    return await ArticleService(session).list_visible(principal)


@router.get("/articles/{article_id}", response_model=ArticleDetailResponse)
async def read_article(
    article_id: int,
    principal: SubscriberPrincipal,
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    """Read one article with its feedback; counts one view.

    Raises:
        NotFoundError: If the article does not exist.
        AuthorizationError: If the article is not visible to the caller.
    """
    article = await ArticleService(session).read_article(principal, article_id)
    feedback_service = FeedbackService(session)
    return {
        "article": article,
        "feedback": await feedback_service.list_for_article(article_id),
        "user_feedback": await feedback_service.get_for_user(principal.id, article_id),
    }


@router.post("/articles/{article_id}/feedback", response_model=FeedbackResponse)
async def submit_feedback(
    article_id: int,
    request: FeedbackSubmitRequest,
    principal: SubscriberPrincipal,
    session: AsyncSession = Depends(get_session),
) -> Any:
    """Submit or overwrite the caller's rating and comment on an article."""
    return await FeedbackService(session).submit(
        principal,
        article_id,
        rating=request.rating,
        comment=request.comment,
    )


# ============================================================================
# Issues
# ============================================================================
@router.get("/issues", response_model=list[IssueResponse])
async def list_issues(
    principal: SubscriberPrincipal,
    session: AsyncSession = Depends(get_session),
) -> list[dict[str, Any]]:
    """List the issues visible to the caller."""
    return await IssueService(session).list_visible(principal)


@router.get("/issues/{issue_id}")
async def read_issue(
    issue_id: int,
    principal: SubscriberPrincipal,
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    """Fetch an issue and its visible articles.

    Raises:
        NotFoundError: If the issue does not exist.
        AuthorizationError: If the issue is not visible to the caller.
    """
    issue, articles = await IssueService(session).read_issue(principal, issue_id)
    return {
        "issue": IssueResponse.model_validate(issue),
        "articles": [ArticleResponse.model_validate(a) for a in articles],
    }


# ============================================================================
# Profile
# ============================================================================
@router.get("/profile", response_model=PrincipalResponse)
async def get_profile(principal: SubscriberPrincipal) -> dict[str, Any]:
    return principal.to_dict()


@router.put("/profile", response_model=PrincipalResponse)
async def update_profile(
    request: ProfileUpdateRequest,
    principal: SubscriberPrincipal,
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    """Update the caller's username and display name.

    Returns the refreshed principal snapshot.
    """
    updated = await AuthService.update_profile(
        session,
        user_id=principal.id,
        username=request.username,
        full_name=request.full_name,
    )
    return updated.to_dict()


# ============================================================================
# Subscription
# ============================================================================
@router.post("/subscription/renew", response_model=RenewSubscriptionResponse)
async def renew_subscription(
    request: RenewSubscriptionRequest,
    principal: SubscriberPrincipal,
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    """Renew the caller's subscription for one month or one year."""
    updated, entry = await SubscriptionService(session).renew(
        principal.id, request.subscription_type
    )
    return {
        "message": "Subscription renewed successfully",
        "user": updated.to_dict(),
        "subscription": entry,
    }


@router.get("/subscription", response_model=SubscriptionInfoResponse)
async def get_subscription(
    principal: SubscriberPrincipal,
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    """Current subscription state plus the ledger, newest first."""
    history = await SubscriptionService(session).history(principal.id)
    return {
        "subscription_status": principal.subscription_status,
        "subscription_end_date": principal.subscription_end_date,
        "history": history,
    }
