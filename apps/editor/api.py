# ==========================================================================
# 编辑端 API 模块
# --------------------------------------------------------------------------
# 本模块提供编辑（及管理员）撰写与管理内容的接口，门槛为 editor。
# 提供以下端点：
#   1. GET    /editor/dashboard        —— 我的文章、全部期刊、我的文章统计
#   2. GET    /editor/issues           —— 期刊列表（所有状态）
#   3. POST   /editor/issues           —— 创建期刊（系统分配期刊号）
#   4. PUT    /editor/issues/{id}      —— 更新期刊
#   5. GET    /editor/articles         —— 文章列表，可按状态筛选
#   6. GET    /editor/articles/{id}    —— 文章详情（编辑视图，不计浏览数）
#   7. POST   /editor/articles         —— 创建文章，作者为当前用户
#   8. PUT    /editor/articles/{id}    —— 更新文章
#   9. DELETE /editor/articles/{id}    —— 删除文章，仅作者本人或管理员
#
# 架构位置：
#   业务逻辑委托给 apps/content/service.py 中的 IssueService / ArticleService。
# ==========================================================================

"""Editor API endpoints for NewsDesk."""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from apps.content.models import ContentStatus
from apps.content.schemas import (
    ArticleCreateRequest,
    ArticleResponse,
    ArticleUpdateRequest,
    EditorDashboardResponse,
    IssueCreateRequest,
    IssueResponse,
    IssueUpdateRequest,
)
from apps.content.service import ArticleService, IssueService
from core.database import get_session
from core.dependencies import EditorPrincipal

logger = logging.getLogger(__name__)

# 编辑端路由器，所有端点挂载在 /editor 前缀下
router = APIRouter(prefix="/editor", tags=["editor"])


# ============================================================================
# Dashboard
# ============================================================================
@router.get("/dashboard", response_model=EditorDashboardResponse)
async def dashboard(
    principal: EditorPrincipal,
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    """Editor overview: own articles, all issues, own article counts."""
    my_articles = await ArticleService(session).list_by_author(principal.id)
    all_issues = await IssueService(session).list_issues()
    return {
        "my_articles": my_articles,
        "all_issues": all_issues,
        "stats": {
            "total": len(my_articles),
            "published": sum(1 for a in my_articles if a["status"] == ContentStatus.PUBLISHED.value),
            "draft": sum(1 for a in my_articles if a["status"] == ContentStatus.DRAFT.value),
        },
    }


# ============================================================================
# Issues
# ============================================================================
@router.get("/issues", response_model=list[IssueResponse])
async def list_issues(
    principal: EditorPrincipal,
    status_filter: Optional[ContentStatus] = Query(default=None, alias="status"),
    session: AsyncSession = Depends(get_session),
) -> list[dict[str, Any]]:
    """List issues in every status, newest publication date first."""
    return await IssueService(session).list_issues(
        status=status_filter.value if status_filter else None
    )


@router.post("/issues", response_model=IssueResponse, status_code=status.HTTP_201_CREATED)
async def create_issue(
    request: IssueCreateRequest,
    principal: EditorPrincipal,
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    """Create an issue; the issue number is assigned by the server."""
    return await IssueService(session).create_issue(principal, request.model_dump())


@router.put("/issues/{issue_id}", response_model=IssueResponse)
async def update_issue(
    issue_id: int,
    request: IssueUpdateRequest,
    principal: EditorPrincipal,
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    """Partially update an issue; only submitted fields change."""
    return await IssueService(session).update_issue(
        issue_id, request.model_dump(exclude_unset=True)
    )


# ============================================================================
# Articles
# ============================================================================
@router.get("/articles", response_model=list[ArticleResponse])
async def list_articles(
    principal: EditorPrincipal,
    status_filter: Optional[ContentStatus] = Query(default=None, alias="status"),
    session: AsyncSession = Depends(get_session),
) -> list[dict[str, Any]]:
    """List articles in every status, optionally filtered by one status."""
    return await ArticleService(session).list_articles(
        status=status_filter.value if status_filter else None
    )


@router.get("/articles/{article_id}", response_model=ArticleResponse)
async def get_article(
    article_id: int,
    principal: EditorPrincipal,
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    """Fetch an article for editing, in any status."""
    return await ArticleService(session).get_article(article_id)


@router.post("/articles", response_model=ArticleResponse, status_code=status.HTTP_201_CREATED)
async def create_article(
    request: ArticleCreateRequest,
    principal: EditorPrincipal,
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    """Create an article authored by the caller."""
    return await ArticleService(session).create_article(principal, request.model_dump())


@router.put("/articles/{article_id}", response_model=ArticleResponse)
async def update_article(
    article_id: int,
    request: ArticleUpdateRequest,
    principal: EditorPrincipal,
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    """Partially update an article."""
    return await ArticleService(session).update_article(
        article_id, request.model_dump(exclude_unset=True)
    )


@router.delete("/articles/{article_id}")
async def delete_article(
    article_id: int,
    principal: EditorPrincipal,
    session: AsyncSession = Depends(get_session),
) -> dict[str, str]:
    """Delete an article; only its author or an admin may do so."""
    await ArticleService(session).delete_article(principal, article_id)
    return {"status": "ok", "message": "Article deleted successfully"}
