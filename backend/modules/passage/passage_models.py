"""
文章数据模型
文章、标签、分类、文章标签关联、阅读记录
"""

from datetime import datetime
from typing import Optional
from sqlalchemy import String, Integer, Boolean, DateTime, Text, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from core.database import Base
from utils.timezone import utc_now

# 文章状态
STATUS_DRAFT = "draft"
STATUS_PUBLISHED = "published"
STATUS_PENDING = "pending"
STATUS_DELETED = "deleted"
PASSAGE_STATUSES = (STATUS_DRAFT, STATUS_PUBLISHED, STATUS_PENDING, STATUS_DELETED)

# 可见性
VISIBILITY_PUBLIC = "public"
VISIBILITY_PRIVATE = "private"
PASSAGE_VISIBILITIES = (VISIBILITY_PUBLIC, VISIBILITY_PRIVATE)

DEFAULT_AUTHOR = "管理员"
UNCATEGORIZED = "未分类"


class Passage(Base):
    """文章"""
    __tablename__ = "passages"
    # SQLite 默认会复用已删除的最大 id
    __table_args__ = {"comment": "文章表", "sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255))
    content: Mapped[str] = mapped_column(Text, default="")  # 渲染后的 HTML
    original_content: Mapped[str] = mapped_column(Text, default="")  # Markdown 原文
    summary: Mapped[str] = mapped_column(Text, default="")
    author: Mapped[str] = mapped_column(String(100), default=DEFAULT_AUTHOR)
    category: Mapped[str] = mapped_column(String(100), default="", index=True)

    # 状态：draft草稿, published已发布, pending待审, deleted回收站
    status: Mapped[str] = mapped_column(String(20), default=STATUS_DRAFT, index=True)
    visibility: Mapped[str] = mapped_column(String(20), default=VISIBILITY_PUBLIC)
    show_title: Mapped[bool] = mapped_column(Boolean, default=True)

    # 定时发布
    is_scheduled: Mapped[bool] = mapped_column(Boolean, default=False)
    published_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # markdown 目录下的相对路径（不含扩展名）
    file_path: Mapped[str] = mapped_column(String(500), default="", index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, onupdate=utc_now)


class Tag(Base):
    """标签"""
    __tablename__ = "tags"
    __table_args__ = {"comment": "标签表"}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    description: Mapped[str] = mapped_column(String(255), default="")
    color: Mapped[str] = mapped_column(String(20), default="")
    category_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)  # 标签分组，仅作元数据
    sort_order: Mapped[int] = mapped_column(Integer, default=0)
    usage_count: Mapped[int] = mapped_column(Integer, default=0)
    is_enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, onupdate=utc_now)


class Category(Base):
    """分类"""
    __tablename__ = "categories"
    __table_args__ = {"comment": "分类表"}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    description: Mapped[str] = mapped_column(String(255), default="")
    icon: Mapped[str] = mapped_column(String(100), default="")
    sort_order: Mapped[int] = mapped_column(Integer, default=0)
    is_enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, onupdate=utc_now)


class PassageTag(Base):
    """文章标签关联"""
    __tablename__ = "passage_tags"
    __table_args__ = (
        UniqueConstraint("passage_id", "tag_id", name="uq_passage_tag"),
        {"comment": "文章与标签关联表"},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    passage_id: Mapped[int] = mapped_column(Integer, ForeignKey("passages.id", ondelete="CASCADE"), index=True)
    tag_id: Mapped[int] = mapped_column(Integer, ForeignKey("tags.id", ondelete="CASCADE"), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)


class ArticleView(Base):
    """文章阅读记录（只追加）"""
    __tablename__ = "article_views"
    __table_args__ = {"comment": "文章阅读记录表"}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    passage_id: Mapped[int] = mapped_column(Integer, index=True)
    ip: Mapped[str] = mapped_column(String(64), default="", index=True)
    user_agent: Mapped[str] = mapped_column(String(500), default="")
    country: Mapped[str] = mapped_column(String(100), default="")
    city: Mapped[str] = mapped_column(String(100), default="")
    region: Mapped[str] = mapped_column(String(100), default="")
    view_date: Mapped[str] = mapped_column(String(10), index=True)  # 北京日期 YYYY-MM-DD
    view_time: Mapped[datetime] = mapped_column(DateTime, default=utc_now)
    duration: Mapped[int] = mapped_column(Integer, default=0)  # 停留秒数（预留）
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)
