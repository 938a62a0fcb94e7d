# ==============================================================================
# 模块: content/service.py
# 功能: 期刊与文章的业务逻辑层
# 架构角色: 被编辑端（apps/editor）、订阅端（apps/subscriber）、管理端（apps/admin）
#           和公开端（apps/public）的路由调用。每个服务实例在构造时接收请求级
#           AsyncSession，不持有任何全局数据库句柄。
# 主要职责:
#   1. 期刊：列表（含创建者与文章数）、读取、创建（分配期刊号）、更新、删除
#   2. 文章：列表（含作者、期刊、评分聚合）、读取（可见性检查 + 浏览计数）、
#            创建、更新、删除（所有权检查）
# 设计决策:
#   - 服务采用实例方法，只 flush 不 commit，由请求级会话统一提交
#   - 列表查询返回字典视图，包含连接得到的派生字段，直接交给 Pydantic 响应模型
#   - 期刊号 = 当前最大值 + 1，在 SAVEPOINT 中插入；唯一约束冲突说明有并发写入者
#     抢先占用了该号码，使用 tenacity 重新读取并重试
# ==============================================================================

"""Issue and article services for NewsDesk."""

from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy import Select, delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from apps.content.models import Article, ContentStatus, Issue
from apps.content.visibility import (
    ensure_article_visible,
    ensure_issue_visible,
    published_article_clause,
    sees_everything,
)
from apps.feedback.aggregator import normalize_average, rating_subquery
from core.exceptions import ConflictError, NotFoundError, ValidationError
from core.models.user import User
from core.policy import Principal, ensure_can_delete_article

logger = logging.getLogger(__name__)

# 期刊号冲突时的最大尝试次数
ISSUE_NUMBER_ATTEMPTS = 5

ISSUE_FIELDS = ("title", "description", "publication_date", "cover_image_url", "status")
ARTICLE_FIELDS = ("title", "content", "summary", "issue_id", "featured_image_url", "status")


class IssueNumberTaken(Exception):
    """A concurrent writer claimed the issue number first."""

    def __init__(self, issue_number: int) -> None:
        self.issue_number = issue_number
        super().__init__(f"Issue number {issue_number} already taken")


def _status_value(status: Any) -> str:
    return status.value if isinstance(status, ContentStatus) else str(status)


def _check_status(status: Any) -> str:
    value = _status_value(status)
    if value not in {s.value for s in ContentStatus}:
        raise ValidationError(f"Invalid status: {value}")
    return value


def latest_issue_number_query() -> Select:
    """Locking read of the highest issue number."""
    # FOR UPDATE 读取最新已提交的值并锁住当前最大行；SQLite 忽略该子句
    return (
        select(Issue.issue_number)
        .order_by(Issue.issue_number.desc())
        .limit(1)
        .with_for_update()
    )


# ------------------------------------------------------------------------------
# 期刊服务
# ------------------------------------------------------------------------------
class IssueService:
    """Issue queries and mutations.

    期刊业务服务。
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    def _issue_query(self, published_articles_only: bool = False):
        # 每期文章数：订阅者视角只统计已发布文章
        counts = select(
            Article.issue_id.label("issue_id"),
            func.count(Article.id).label("article_count"),
        )
        if published_articles_only:
            counts = counts.where(Article.status == ContentStatus.PUBLISHED.value)
        counts = counts.group_by(Article.issue_id).subquery("article_counts")

        return (
            select(
                Issue,
                User.full_name.label("creator_name"),
                func.coalesce(counts.c.article_count, 0).label("article_count"),
            )
            .outerjoin(User, User.id == Issue.created_by)
            .outerjoin(counts, counts.c.issue_id == Issue.id)
        )

    @staticmethod
    def _to_view(row) -> dict[str, Any]:
        issue: Issue = row.Issue
        return {
            "id": issue.id,
            "title": issue.title,
            "description": issue.description,
            "issue_number": issue.issue_number,
            "publication_date": issue.publication_date,
            "cover_image_url": issue.cover_image_url,
            "status": issue.status,
            "created_by": issue.created_by,
            "creator_name": row.creator_name,
            "article_count": int(row.article_count or 0),
            "created_at": issue.created_at,
            "updated_at": issue.updated_at,
        }

    async def list_issues(
        self,
        status: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        """List all issues, newest publication date first.

        Args:
            status: Optional status filter.
            limit: Maximum number of issues.

        Returns:
            list[dict[str, Any]]: Issue views with ``creator_name`` and
            ``article_count``.
        """
        stmt = self._issue_query()
        if status:
            stmt = stmt.where(Issue.status == _check_status(status))
        stmt = stmt.order_by(Issue.publication_date.desc(), Issue.issue_number.desc())
        if limit:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return [self._to_view(row) for row in result.all()]

    async def list_visible(
        self,
        principal: Optional[Principal] = None,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        """List issues visible to ``principal``.

        Readers below editor see published issues only, with article counts
        limited to published articles.
        """
        if sees_everything(principal):
            return await self.list_issues(limit=limit)

        stmt = (
            self._issue_query(published_articles_only=True)
            .where(Issue.status == ContentStatus.PUBLISHED.value)
            .order_by(Issue.publication_date.desc(), Issue.issue_number.desc())
        )
        if limit:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return [self._to_view(row) for row in result.all()]

    async def get_issue(self, issue_id: int) -> dict[str, Any]:
        """Fetch one issue view.

        Raises:
            NotFoundError: If the issue does not exist.
        """
        result = await self.session.execute(self._issue_query().where(Issue.id == issue_id))
        row = result.one_or_none()
        if row is None:
            raise NotFoundError("Issue", issue_id)
        return self._to_view(row)

    async def read_issue(
        self, principal: Optional[Principal], issue_id: int
    ) -> tuple[dict[str, Any], list[dict[str, Any]]]:
        """Fetch an issue and its articles as seen by ``principal``.

        Returns:
            tuple: ``(issue_view, article_views)``.

        Raises:
            NotFoundError: If the issue does not exist.
            AuthorizationError: If the issue is not visible to ``principal``.
        """
        issue = await self.get_issue(issue_id)
        ensure_issue_visible(principal, issue_id, issue["status"])
        articles = await ArticleService(self.session).list_for_issue(issue_id, principal)
        return issue, articles

    async def next_issue_number(self) -> int:
        """Return ``max(issue_number) + 1`` (1 for the first issue).

        The read is a locking read: under InnoDB REPEATABLE READ a plain
        SELECT keeps returning the transaction's snapshot, so a retry after
        a collision would compute the same taken number again.
        """
        result = await self.session.execute(latest_issue_number_query())
        current = result.scalar_one_or_none()
        return (current or 0) + 1

    async def _insert_issue(self, principal: Principal, fields: dict[str, Any]) -> Issue:
        issue_number = await self.next_issue_number()
        issue = Issue(issue_number=issue_number, created_by=principal.id, **fields)
        try:
            # SAVEPOINT：冲突时只回滚本次插入，不影响请求内的其他写入
            async with self.session.begin_nested():
                self.session.add(issue)
                await self.session.flush()
        except IntegrityError as exc:
            logger.warning(f"Issue number {issue_number} collided, retrying")
            raise IssueNumberTaken(issue_number) from exc
        return issue

    async def create_issue(self, principal: Principal, data: dict[str, Any]) -> dict[str, Any]:
        """Create an issue with the next issue number.

        Args:
            principal: Creating editor or admin.
            data: ``title``, ``publication_date`` (required), ``description``,
                ``cover_image_url``, ``status``.

        Returns:
            dict[str, Any]: The created issue view.

        Raises:
            ValidationError: If title or publication date is missing.
            ConflictError: If no free issue number could be claimed.
        """
        from settings import settings

        title = (data.get("title") or "").strip()
        if not title or not data.get("publication_date"):
            raise ValidationError("Title and publication date are required")

        fields = {
            "title": title,
            "description": data.get("description"),
            "publication_date": data["publication_date"],
            "cover_image_url": data.get("cover_image_url") or settings.default_cover_image_url,
            "status": _check_status(data.get("status") or ContentStatus.DRAFT),
        }

        insert_with_retry = retry(
            stop=stop_after_attempt(ISSUE_NUMBER_ATTEMPTS),
            wait=wait_exponential(multiplier=0.01, max=0.2),
            retry=retry_if_exception_type(IssueNumberTaken),
            reraise=True,
        )(self._insert_issue)
        try:
            issue = await insert_with_retry(principal, fields)
        except IssueNumberTaken:
            raise ConflictError("Could not allocate an issue number, please retry")

        logger.info(f"Issue #{issue.issue_number} created by user {principal.id}: {issue.title}")
        return await self.get_issue(issue.id)

    async def update_issue(self, issue_id: int, data: dict[str, Any]) -> dict[str, Any]:
        """Apply a partial update to an issue.

        Only keys present in ``data`` are changed; ``issue_number`` is never
        client-writable.

        Raises:
            NotFoundError: If the issue does not exist.
            ValidationError: If a required field is blanked.
        """
        issue = await self.session.get(Issue, issue_id)
        if issue is None:
            raise NotFoundError("Issue", issue_id)

        for field in ISSUE_FIELDS:
            if field not in data:
                continue
            value = data[field]
            if field == "title":
                value = (value or "").strip()
                if not value:
                    raise ValidationError("Title cannot be empty")
            elif field == "publication_date" and value is None:
                raise ValidationError("Publication date cannot be empty")
            elif field == "status":
                value = _check_status(value)
            setattr(issue, field, value)

        await self.session.flush()
        logger.info(f"Issue {issue_id} updated: {sorted(k for k in data if k in ISSUE_FIELDS)}")
        return await self.get_issue(issue_id)

    async def delete_issue(self, issue_id: int) -> None:
        """Delete an issue; its articles and their feedback cascade.

        Raises:
            NotFoundError: If the issue does not exist.
        """
        result = await self.session.execute(delete(Issue).where(Issue.id == issue_id))
        if result.rowcount == 0:
            raise NotFoundError("Issue", issue_id)
        logger.info(f"Issue {issue_id} deleted")


# ------------------------------------------------------------------------------
# 文章服务
# ------------------------------------------------------------------------------
class ArticleService:
    """Article queries and mutations.

    文章业务服务。
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    def _article_query(self):
        ratings = rating_subquery()
        return (
            select(
                Article,
                User.full_name.label("author_name"),
                Issue.title.label("issue_title"),
                Issue.issue_number.label("issue_number"),
                Issue.status.label("issue_status"),
                ratings.c.average_rating,
                func.coalesce(ratings.c.feedback_count, 0).label("feedback_count"),
            )
            .outerjoin(User, User.id == Article.author_id)
            .outerjoin(Issue, Issue.id == Article.issue_id)
            .outerjoin(ratings, ratings.c.article_id == Article.id)
        )

    @staticmethod
    def _to_view(row) -> dict[str, Any]:
        article: Article = row.Article
        return {
            "id": article.id,
            "title": article.title,
            "content": article.content,
            "summary": article.summary,
            "author_id": article.author_id,
            "author_name": row.author_name,
            "issue_id": article.issue_id,
            "issue_title": row.issue_title,
            "issue_number": row.issue_number,
            "issue_status": row.issue_status,
            "featured_image_url": article.featured_image_url,
            "status": article.status,
            "view_count": article.view_count,
            "average_rating": normalize_average(row.average_rating),
            "feedback_count": int(row.feedback_count or 0),
            "created_at": article.created_at,
            "updated_at": article.updated_at,
        }

    async def _fetch(self, stmt) -> list[dict[str, Any]]:
        result = await self.session.execute(stmt)
        return [self._to_view(row) for row in result.all()]

    async def list_articles(
        self,
        status: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        """List every article regardless of visibility (editor/admin view)."""
        stmt = self._article_query()
        if status:
            stmt = stmt.where(Article.status == _check_status(status))
        stmt = stmt.order_by(Article.created_at.desc(), Article.id.desc())
        if limit:
            stmt = stmt.limit(limit)
        return await self._fetch(stmt)

    async def list_visible(
        self,
        principal: Optional[Principal] = None,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        """List articles visible to ``principal``, newest first."""
        stmt = self._article_query()
        if not sees_everything(principal):
            stmt = stmt.where(published_article_clause())
        stmt = stmt.order_by(Article.created_at.desc(), Article.id.desc())
        if limit:
            stmt = stmt.limit(limit)
        return await self._fetch(stmt)

    async def list_by_author(self, author_id: int) -> list[dict[str, Any]]:
        """List the articles written by ``author_id``."""
        stmt = (
            self._article_query()
            .where(Article.author_id == author_id)
            .order_by(Article.created_at.desc(), Article.id.desc())
        )
        return await self._fetch(stmt)

    async def list_for_issue(
        self, issue_id: int, principal: Optional[Principal] = None
    ) -> list[dict[str, Any]]:
        """List the articles of one issue visible to ``principal``."""
        stmt = self._article_query().where(Article.issue_id == issue_id)
        if not sees_everything(principal):
            stmt = stmt.where(published_article_clause())
        return await self._fetch(stmt.order_by(Article.created_at.desc(), Article.id.desc()))

    async def get_article(self, article_id: int) -> dict[str, Any]:
        """Fetch one article view without visibility checks.

        Raises:
            NotFoundError: If the article does not exist.
        """
        # 计数器由 Core UPDATE 修改，这里强制刷新身份映射中的旧值
        result = await self.session.execute(
            self._article_query()
            .where(Article.id == article_id)
            .execution_options(populate_existing=True)
        )
        row = result.one_or_none()
        if row is None:
            raise NotFoundError("Article", article_id)
        return self._to_view(row)

    async def read_article(self, principal: Optional[Principal], article_id: int) -> dict[str, Any]:
        """Fetch an article for reading and count the view.

        The view counter is incremented exactly once per successful read,
        whoever the reader is. Hidden articles are not counted.

        Raises:
            NotFoundError: If the article does not exist.
            AuthorizationError: If the article is not visible to ``principal``.
        """
        article = await self.get_article(article_id)
        ensure_article_visible(principal, article_id, article["status"], article["issue_status"])
        await self.increment_view_count(article_id)
        article["view_count"] += 1
        return article

    async def increment_view_count(self, article_id: int) -> None:
        # 原子自增，避免并发读取时丢失计数
        await self.session.execute(
            update(Article)
            .where(Article.id == article_id)
            .values(view_count=Article.view_count + 1)
            .execution_options(synchronize_session=False)
        )

    async def _ensure_issue_exists(self, issue_id: Optional[int]) -> None:
        if issue_id is not None and await self.session.get(Issue, issue_id) is None:
            raise NotFoundError("Issue", issue_id)

    async def create_article(self, principal: Principal, data: dict[str, Any]) -> dict[str, Any]:
        """Create an article authored by ``principal``.

        Args:
            principal: Authoring editor or admin.
            data: ``title``, ``content`` (required), ``summary``, ``issue_id``,
                ``featured_image_url``, ``status``.

        Raises:
            ValidationError: If title or content is missing.
            NotFoundError: If ``issue_id`` refers to a missing issue.
        """
        from settings import settings

        title = (data.get("title") or "").strip()
        content = data.get("content") or ""
        if not title or not content.strip():
            raise ValidationError("Title and content are required")
        await self._ensure_issue_exists(data.get("issue_id"))

        article = Article(
            title=title,
            content=content,
            summary=data.get("summary"),
            author_id=principal.id,
            issue_id=data.get("issue_id"),
            featured_image_url=data.get("featured_image_url") or settings.default_featured_image_url,
            status=_check_status(data.get("status") or ContentStatus.DRAFT),
            view_count=0,
        )
        self.session.add(article)
        await self.session.flush()
        logger.info(f"Article {article.id} created by user {principal.id}: {article.title}")
        return await self.get_article(article.id)

    async def update_article(self, article_id: int, data: dict[str, Any]) -> dict[str, Any]:
        """Apply a partial update to an article.

        Raises:
            NotFoundError: If the article or the new parent issue does not exist.
            ValidationError: If title or content is blanked.
        """
        article = await self.session.get(Article, article_id)
        if article is None:
            raise NotFoundError("Article", article_id)

        for field in ARTICLE_FIELDS:
            if field not in data:
                continue
            value = data[field]
            if field in ("title", "content"):
                if not (value or "").strip():
                    raise ValidationError("Title and content are required")
                if field == "title":
                    value = value.strip()
            elif field == "issue_id":
                await self._ensure_issue_exists(value)
            elif field == "status":
                value = _check_status(value)
            setattr(article, field, value)

        await self.session.flush()
        logger.info(f"Article {article_id} updated: {sorted(k for k in data if k in ARTICLE_FIELDS)}")
        return await self.get_article(article_id)

    async def delete_article(self, principal: Principal, article_id: int) -> None:
        """Delete an article if ``principal`` is its author or an admin.

        Raises:
            NotFoundError: If the article does not exist.
            AuthorizationError: If ``principal`` is neither author nor admin.
        """
        article = await self.session.get(Article, article_id)
        if article is None:
            raise NotFoundError("Article", article_id)
        ensure_can_delete_article(principal, article.author_id)

        await self.session.execute(delete(Article).where(Article.id == article_id))
        logger.info(f"Article {article_id} deleted by user {principal.id}")
