# ==========================================================================
# 管理后台 API 模块
# --------------------------------------------------------------------------
# 本模块是 NewsDesk 的管理后台接口层，仅限管理员（role = admin）访问。
# 提供以下核心管理能力：
#   1. 仪表盘统计 —— 各角色用户数、活跃订阅数、文章/期刊按状态计数、反馈统计、
#                    最近注册用户与最近文章
#   2. 用户管理   —— 分页列表（搜索、角色筛选）、编辑用户资料、角色与订阅状态
#   3. 内容管理   —— 文章、期刊列表与删除（删除期刊级联删除文章及其反馈）
#   4. 反馈管理   —— 反馈列表与删除
#   5. 报表       —— 高分文章榜
#
# 架构位置：
#   apps/admin/api.py 属于"管理应用"(admin app)的路由层。所有端点均依赖
#   AdminPrincipal 进行管理员身份校验；简单的统计与用户查询直接在路由中完成，
#   内容与反馈操作复用各自的服务类。
# ==========================================================================

"""Admin API endpoints for NewsDesk."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, EmailStr, Field, field_validator
from sqlalchemy import desc, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from apps.auth.schemas import PrincipalResponse
from apps.content.models import Article, ContentStatus, Issue
from apps.content.schemas import ArticleResponse, IssueResponse
from apps.content.service import ArticleService, IssueService
from apps.feedback.aggregator import RatingAggregator
from apps.feedback.schemas import FeedbackResponse, FeedbackStatsResponse, TopRatedArticle
from apps.feedback.service import FeedbackService
from core.database import get_session
from core.dependencies import AdminPrincipal
from core.exceptions import ConflictError, NotFoundError
from core.models.user import SubscriptionStatus, User
from core.policy import Role
from settings import settings

logger = logging.getLogger(__name__)

# 创建管理后台路由器，所有端点统一挂载在 /admin 前缀下
router = APIRouter(prefix="/admin", tags=["admin"])

# 仪表盘"最近"区块的条目数
RECENT_LIMIT = 5


# ============================================================================
# Dashboard Stats
# ============================================================================
async def _count_by(session: AsyncSession, column) -> Dict[str, int]:
    result = await session.execute(select(column, func.count()).group_by(column))
    return {str(key): int(count) for key, count in result.all()}


@router.get("/dashboard")
async def dashboard(
    admin: AdminPrincipal,
    session: AsyncSession = Depends(get_session),
) -> Dict[str, Any]:
    """Get dashboard statistics for the admin overview.

    Returns:
        Dict[str, Any]: User, subscription, content and feedback metrics plus
        the most recent users and articles.
    """
    users_by_role = await _count_by(session, User.role)
    active_subscriptions = await session.execute(
        select(func.count(User.id)).where(
            User.subscription_status == SubscriptionStatus.ACTIVE.value
        )
    )
    articles_by_status = await _count_by(session, Article.status)
    issues_by_status = await _count_by(session, Issue.status)
    feedback_stats = await RatingAggregator(session).stats()

    recent_users = await session.execute(
        select(User).order_by(desc(User.created_at), desc(User.id)).limit(RECENT_LIMIT)
    )
    recent_articles = await ArticleService(session).list_articles(limit=RECENT_LIMIT)

    return {
        "users": {
            "total": sum(users_by_role.values()),
            "by_role": {role.value: users_by_role.get(role.value, 0) for role in Role},
            "active_subscriptions": active_subscriptions.scalar() or 0,
        },
        "articles": {
            "total": sum(articles_by_status.values()),
            "by_status": {s.value: articles_by_status.get(s.value, 0) for s in ContentStatus},
        },
        "issues": {
            "total": sum(issues_by_status.values()),
            "by_status": {s.value: issues_by_status.get(s.value, 0) for s in ContentStatus},
        },
        "feedback": FeedbackStatsResponse(**feedback_stats.to_dict()),
        "recent_users": [
            PrincipalResponse.model_validate(user.to_principal().to_dict())
            for user in recent_users.scalars().all()
        ],
        "recent_articles": [
            ArticleResponse.model_validate(a) for a in recent_articles
        ],
    }


# ============================================================================
# User Management
# ============================================================================
# 用户列表响应模型，包含用户数组和总数（用于前端分页展示）
class UserListResponse(BaseModel):
    """Response schema for user list queries.

    Attributes:
        users: Page of user snapshots.
        total: Total number of matching users.
        page: Current page.
        page_size: Effective page size after clamping.
    """

    users: List[PrincipalResponse]
    total: int
    page: int
    page_size: int


# 管理员编辑用户请求体，只有显式提交的字段会被修改
class AdminUserUpdate(BaseModel):
    """Request schema for editing a user (admin only).

    Attributes:
        username: New username.
        email: New email address.
        full_name: New display name.
        role: New role.
        subscription_status: New live subscription status.
        subscription_end_date: New subscription end.
    """

    username: Optional[str] = Field(default=None, min_length=3, max_length=50)
    email: Optional[EmailStr] = None
    full_name: Optional[str] = Field(default=None, max_length=100)
    role: Optional[Role] = None
    subscription_status: Optional[SubscriptionStatus] = None
    subscription_end_date: Optional[datetime] = None

    @field_validator("username")
    @classmethod
    def strip_username(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v is not None else v

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: Optional[str]) -> Optional[str]:
        return v.lower() if v is not None else v


@router.get("/users", response_model=UserListResponse)
async def list_users(
    admin: AdminPrincipal,
    page: int = 1,                 # 当前页码，默认第 1 页
    page_size: int = 20,           # 每页显示条数，默认 20 条
    search: Optional[str] = None,  # 搜索用户名或邮箱
    role: Optional[Role] = None,   # 按角色筛选
    session: AsyncSession = Depends(get_session),
) -> Dict[str, Any]:
    """List users with pagination and filtering (admin only).

    Args:
        admin: Admin principal.
        page: Page number, starting from 1.
        page_size: Items per page, clamped to ``[1, max_page_size]``.
        search: Case-insensitive match on username or email.
        role: Filter by role.
        session: Async database session.

    Returns:
        Dict[str, Any]: Page of users and the total count.
    """
    page = max(1, page)
    page_size = min(max(1, page_size), settings.max_page_size)

    base_query = select(User)
    if search:
        search_term = f"%{search}%"
        base_query = base_query.where(
            or_(User.username.ilike(search_term), User.email.ilike(search_term))
        )
    if role:
        base_query = base_query.where(User.role == role.value)

    count_result = await session.execute(select(func.count()).select_from(base_query.subquery()))
    total = count_result.scalar() or 0

    result = await session.execute(
        base_query
        .order_by(desc(User.created_at), desc(User.id))
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return {
        "users": [user.to_principal().to_dict() for user in result.scalars().all()],
        "total": total,
        "page": page,
        "page_size": page_size,
    }


@router.put("/users/{user_id}", response_model=PrincipalResponse)
async def update_user(
    user_id: int,
    update: AdminUserUpdate,
    admin: AdminPrincipal,
    session: AsyncSession = Depends(get_session),
) -> Dict[str, Any]:
    """Edit a user's profile, role and subscription state (admin only).

    Raises:
        NotFoundError: If the user does not exist.
        ConflictError: If the new username or email belongs to another user.
    """
    user = await session.get(User, user_id)
    if user is None:
        raise NotFoundError("User", user_id)

    changes = update.model_dump(exclude_unset=True)

    if changes.get("email"):
        taken = await session.execute(
            select(User.id).where(User.email == changes["email"], User.id != user_id)
        )
        if taken.first() is not None:
            raise ConflictError("Email already registered")
    if changes.get("username"):
        taken = await session.execute(
            select(User.id).where(User.username == changes["username"], User.id != user_id)
        )
        if taken.first() is not None:
            raise ConflictError("Username already taken")

    for field, value in changes.items():
        # 必填列不接受显式的 null
        if value is None and field in ("username", "email", "role", "subscription_status"):
            continue
        if isinstance(value, (Role, SubscriptionStatus)):
            value = value.value
        setattr(user, field, value)

    await session.flush()
    logger.info(f"Admin {admin.id} updated user {user_id}: {sorted(changes)}")
    return user.to_principal().to_dict()


# ============================================================================
# Content Management
# ============================================================================
@router.get("/articles", response_model=List[ArticleResponse])
async def list_articles(
    admin: AdminPrincipal,
    session: AsyncSession = Depends(get_session),
) -> List[Dict[str, Any]]:
    """List every article in every status."""
    return await ArticleService(session).list_articles()


@router.delete("/articles/{article_id}")
async def delete_article(
    article_id: int,
    admin: AdminPrincipal,
    session: AsyncSession = Depends(get_session),
) -> Dict[str, str]:
    """Delete any article; its feedback cascades."""
    await ArticleService(session).delete_article(admin, article_id)
    return {"status": "ok", "message": "Article deleted successfully"}


@router.get("/issues", response_model=List[IssueResponse])
async def list_issues(
    admin: AdminPrincipal,
    session: AsyncSession = Depends(get_session),
) -> List[Dict[str, Any]]:
    """List every issue in every status."""
    return await IssueService(session).list_issues()


@router.delete("/issues/{issue_id}")
async def delete_issue(
    issue_id: int,
    admin: AdminPrincipal,
    session: AsyncSession = Depends(get_session),
) -> Dict[str, str]:
    """Delete an issue together with its articles and their feedback."""
    await IssueService(session).delete_issue(issue_id)
    return {"status": "ok", "message": "Issue deleted successfully"}


# ============================================================================
# Feedback Management
# ============================================================================
@router.get("/feedback", response_model=List[FeedbackResponse])
async def list_feedback(
    admin: AdminPrincipal,
    session: AsyncSession = Depends(get_session),
) -> List[Dict[str, Any]]:
    """List all feedback with user names and article titles."""
    return await FeedbackService(session).list_all()


@router.delete("/feedback/{feedback_id}")
async def delete_feedback(
    feedback_id: int,
    admin: AdminPrincipal,
    session: AsyncSession = Depends(get_session),
) -> Dict[str, str]:
    await FeedbackService(session).delete(feedback_id)
    return {"status": "ok", "message": "Feedback deleted successfully"}


# ============================================================================
# Reports
# ============================================================================
@router.get("/reports", response_model=List[TopRatedArticle])
async def reports(
    admin: AdminPrincipal,
    limit: Optional[int] = Query(default=None),
    session: AsyncSession = Depends(get_session),
) -> List[Dict[str, Any]]:
    """Top-rated published articles (default limit from settings)."""
    return await RatingAggregator(session).top_rated(limit=limit)
