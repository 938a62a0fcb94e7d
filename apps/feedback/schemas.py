# ==========================================================================
# 反馈模块 - Pydantic 数据校验模式 (Schemas)
# --------------------------------------------------------------------------
# 请求模型中的 rating 使用 StrictInt：拒绝 "5"、5.0、true 之类的非整数输入，
# 取值范围由 FeedbackService 校验，错误信息统一为 "Rating must be between 1 and 5"。
# ==========================================================================

"""Pydantic schemas for feedback."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, StrictInt

from apps.content.schemas import ArticleResponse


class FeedbackSubmitRequest(BaseModel):
    """Request schema for submitting feedback.

    提交反馈请求模型。

    Attributes:
        rating: Integer rating, 1 to 5.
        comment: Optional comment.
    """

    rating: StrictInt
    comment: str | None = None


class FeedbackResponse(BaseModel):
    """Response schema for one feedback row."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    article_id: int
    user_id: int
    rating: int
    comment: str | None = None
    created_at: datetime
    user_name: str | None = None
    article_title: str | None = None


class FeedbackStatsResponse(BaseModel):
    """Site-wide feedback statistics."""

    total_feedback: int
    average_rating: float | None = None
    five_star: int
    four_star: int
    three_star: int
    two_star: int
    one_star: int


class TopRatedArticle(BaseModel):
    """One row of the top-rated ranking."""

    id: int
    title: str
    summary: str | None = None
    featured_image_url: str | None = None
    author_name: str | None = None
    created_at: datetime
    average_rating: float
    feedback_count: int


class ArticleDetailResponse(BaseModel):
    """Article with its feedback and the caller's own feedback.

    订阅端文章详情：文章本身、全部反馈、当前用户的反馈。
    """

    article: ArticleResponse
    feedback: list[FeedbackResponse]
    user_feedback: FeedbackResponse | None = None
