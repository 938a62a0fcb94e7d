# ==============================================================================
# 模块: content/models.py
# 功能: 期刊（Issue）与文章（Article）的 ORM 数据模型定义
# 架构角色: 内容模块的数据层。期刊是周期性出版的"一期"，文章可以归属某一期，
#           也可以不属于任何一期（issue_id 为空）。
# 设计说明:
#   - 期刊号 issue_number 由系统按 max+1 分配，并由唯一约束兜底，
#     并发创建时由唯一约束裁决（见 IssueService.create_issue 的重试逻辑）
#   - 外键删除行为：
#       删除期刊 -> 级联删除其下文章 -> 级联删除这些文章的反馈
#       删除用户 -> 文章作者、期刊创建者置空
#   - 关系使用 passive_deletes=True，删除时依赖数据库外键完成级联，
#     不在 ORM 层逐条加载子对象
#   - view_count 只增不减，CHECK 约束保证非负
# ==============================================================================

"""Issue and article models for NewsDesk."""

from __future__ import annotations

from datetime import date
from enum import Enum

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Date,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.models.base import Base, TimestampMixin


class ContentStatus(str, Enum):
    """Lifecycle status shared by issues and articles."""

    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class Issue(Base, TimestampMixin):
    """A periodic edition of the newsletter.

    Attributes:
        id: Primary key.
        title: Issue title.
        description: Optional description.
        issue_number: System-assigned sequence number, unique.
        publication_date: Planned or actual publication date.
        cover_image_url: Cover image reference.
        status: ``draft``, ``published`` or ``archived``.
        created_by: Creating user, nulled if that user is deleted.
    """

    __tablename__ = "issues"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    issue_number: Mapped[int] = mapped_column(Integer, unique=True, nullable=False, index=True)
    publication_date: Mapped[date] = mapped_column(Date, nullable=False)
    cover_image_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20),
        default=ContentStatus.DRAFT.value,
        nullable=False,
        index=True,
    )
    created_by: Mapped[int | None] = mapped_column(
        BigInteger,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    articles: Mapped[list["Article"]] = relationship(
        "Article",
        back_populates="issue",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Issue(id={self.id}, number={self.issue_number}, status={self.status})>"


class Article(Base, TimestampMixin):
    """A newsletter article, optionally part of an issue.

    Attributes:
        id: Primary key.
        title: Article title.
        content: Full body text.
        summary: Optional short summary.
        author_id: Authoring user, nulled if that user is deleted.
        issue_id: Parent issue; the article is deleted with it.
        featured_image_url: Featured image reference.
        status: ``draft``, ``published`` or ``archived``.
        view_count: Number of detail reads.
    """

    __tablename__ = "articles"
    __table_args__ = (
        CheckConstraint("view_count >= 0", name="ck_articles_view_count_non_negative"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    author_id: Mapped[int | None] = mapped_column(
        BigInteger,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    issue_id: Mapped[int | None] = mapped_column(
        BigInteger,
        ForeignKey("issues.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    featured_image_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20),
        default=ContentStatus.DRAFT.value,
        nullable=False,
        index=True,
    )
    view_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    issue: Mapped["Issue | None"] = relationship("Issue", back_populates="articles")

    def __repr__(self) -> str:
        return f"<Article(id={self.id}, title={self.title!r}, status={self.status})>"
