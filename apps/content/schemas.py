# ==========================================================================
# 内容模块 - Pydantic 数据校验模式 (Schemas)
# --------------------------------------------------------------------------
# 本模块定义期刊与文章相关 API 端点所使用的请求和响应数据模型。
#
# 架构位置：
#   被编辑端、订阅端、管理端和公开端的路由共同引用。
#   请求模型只做类型与枚举校验，"必填字段不能为空"等业务规则由
#   content/service.py 统一检查，保证非 HTTP 调用方得到同样的错误。
#
# 包含的 Schema：
#   - IssueCreateRequest / IssueUpdateRequest  : 期刊创建 / 部分更新
#   - IssueResponse                            : 期刊视图（含创建者与文章数）
#   - ArticleCreateRequest / ArticleUpdateRequest : 文章创建 / 部分更新
#   - ArticleResponse                          : 文章视图（含作者、期刊、评分聚合）
#   - ContentStats / EditorDashboardResponse   : 编辑仪表盘
# ==========================================================================

"""Pydantic schemas for issues and articles."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

from apps.content.models import ContentStatus


# --------------------------------------------------------------------------
# 期刊
# --------------------------------------------------------------------------
class IssueCreateRequest(BaseModel):
    """Request schema for creating an issue.

    创建期刊请求模型。期刊号由系统分配，客户端提交的值会被忽略。
    """

    title: str | None = Field(default=None, max_length=200)
    description: str | None = None
    publication_date: date | None = None
    cover_image_url: str | None = Field(default=None, max_length=500)
    status: ContentStatus = ContentStatus.DRAFT


class IssueUpdateRequest(BaseModel):
    """Request schema for a partial issue update.

    期刊部分更新请求模型，只有显式提交的字段会被修改。
    """

    title: str | None = Field(default=None, max_length=200)
    description: str | None = None
    publication_date: date | None = None
    cover_image_url: str | None = Field(default=None, max_length=500)
    status: ContentStatus | None = None


class IssueResponse(BaseModel):
    """Response schema for an issue view."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str | None = None
    issue_number: int
    publication_date: date
    cover_image_url: str | None = None
    status: str
    created_by: int | None = None
    creator_name: str | None = None   # 创建者显示名，用户被删除后为空
    article_count: int = 0
    created_at: datetime
    updated_at: datetime


# --------------------------------------------------------------------------
# 文章
# --------------------------------------------------------------------------
class ArticleCreateRequest(BaseModel):
    """Request schema for creating an article.

    创建文章请求模型。作者固定为当前登录用户。
    """

    title: str | None = Field(default=None, max_length=200)
    content: str | None = None
    summary: str | None = None
    issue_id: int | None = None
    featured_image_url: str | None = Field(default=None, max_length=500)
    status: ContentStatus = ContentStatus.DRAFT


class ArticleUpdateRequest(BaseModel):
    """Request schema for a partial article update."""

    title: str | None = Field(default=None, max_length=200)
    content: str | None = None
    summary: str | None = None
    issue_id: int | None = None
    featured_image_url: str | None = Field(default=None, max_length=500)
    status: ContentStatus | None = None


class ArticleResponse(BaseModel):
    """Response schema for an article view.

    文章视图响应模型。

    Attributes:
        average_rating: Mean rating with two decimals, ``None`` without feedback.
        feedback_count: Number of feedback rows.
    """

    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    content: str
    summary: str | None = None
    author_id: int | None = None
    author_name: str | None = None
    issue_id: int | None = None
    issue_title: str | None = None
    issue_number: int | None = None
    featured_image_url: str | None = None
    status: str
    view_count: int = 0
    average_rating: float | None = None
    feedback_count: int = 0
    created_at: datetime
    updated_at: datetime


# --------------------------------------------------------------------------
# 编辑仪表盘
# --------------------------------------------------------------------------
class ContentStats(BaseModel):
    """Article counts of one author."""

    total: int
    published: int
    draft: int


class EditorDashboardResponse(BaseModel):
    """Response schema for the editor dashboard."""

    my_articles: list[ArticleResponse]
    all_issues: list[IssueResponse]
    stats: ContentStats
