# ==============================================================================
# 模块: content/visibility.py
# 功能: 内容可见性过滤器
# 架构角色: 决定某个主体能否看到某篇文章 / 某一期期刊。
#           既提供逐条判断的纯函数（用于按 ID 读取），
#           也提供等价的 SQL 条件（用于列表查询），两者规则必须保持一致。
# 规则:
#   - 编辑、管理员：所有状态的内容均可见（撰写与审核需要）
#   - 订阅者：文章必须已发布，且不属于任何期刊或所属期刊也已发布；
#             期刊必须已发布
#   - 按 ID 读取不可见内容时抛出 AuthorizationError（"not available"），
#     与 NotFoundError 区分，便于日志区分两种情况
# ==============================================================================

"""Content visibility rules for NewsDesk."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import ColumnElement, and_, or_

from apps.content.models import Article, ContentStatus, Issue
from core.exceptions import AuthorizationError
from core.policy import Capability, Principal, capability_of

logger = logging.getLogger(__name__)

PUBLISHED = ContentStatus.PUBLISHED.value


def sees_everything(principal: Optional[Principal]) -> bool:
    """Editors and admins see content in every status."""
    return capability_of(principal) >= Capability.EDITOR


def article_visible(
    principal: Optional[Principal],
    article_status: str,
    issue_status: Optional[str],
) -> bool:
    """Decide whether an article is visible to ``principal``.

    Args:
        principal: Request principal (``None`` for anonymous readers).
        article_status: Status of the article.
        issue_status: Status of the parent issue, or ``None`` if the article
            has no parent issue.

    Returns:
        bool: ``True`` if the article may be shown.
    """
    if sees_everything(principal):
        return True
    return article_status == PUBLISHED and (issue_status is None or issue_status == PUBLISHED)


def issue_visible(principal: Optional[Principal], issue_status: str) -> bool:
    """Decide whether an issue is visible to ``principal``."""
    if sees_everything(principal):
        return True
    return issue_status == PUBLISHED


def ensure_article_visible(
    principal: Optional[Principal],
    article_id: int,
    article_status: str,
    issue_status: Optional[str],
) -> None:
    """Raise ``AuthorizationError`` if the article is hidden from ``principal``."""
    if not article_visible(principal, article_status, issue_status):
        logger.info(f"Article {article_id} ({article_status}) not available to {_who(principal)}")
        raise AuthorizationError("Article not available")


def ensure_issue_visible(principal: Optional[Principal], issue_id: int, issue_status: str) -> None:
    """Raise ``AuthorizationError`` if the issue is hidden from ``principal``."""
    if not issue_visible(principal, issue_status):
        logger.info(f"Issue {issue_id} ({issue_status}) not available to {_who(principal)}")
        raise AuthorizationError("Issue not available")


def published_article_clause() -> ColumnElement[bool]:
    """SQL condition matching articles visible to readers.

    Must be used on a query that LEFT OUTER JOINs ``Issue`` on
    ``Article.issue_id``.
    """
    return and_(
        Article.status == PUBLISHED,
        or_(Article.issue_id.is_(None), Issue.status == PUBLISHED),
    )


def _who(principal: Optional[Principal]) -> str:
    if principal is None:
        return "anonymous"
    return f"user {principal.id} ({principal.role.value})"
