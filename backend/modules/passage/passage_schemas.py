"""
文章模块数据验证模式
"""

from datetime import datetime
from typing import Optional, List, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator

from utils.timezone import parse_datetime

from .passage_models import PASSAGE_STATUSES, PASSAGE_VISIBILITIES

# 标签可以是逗号分隔的字符串、JSON 数组字符串或数组
TagInput = Union[str, List[str], None]


def _check_status(value: Optional[str]) -> Optional[str]:
    if value is not None and value not in PASSAGE_STATUSES:
        raise ValueError(f"无效的文章状态: {value}")
    return value


def _check_visibility(value: Optional[str]) -> Optional[str]:
    if value is not None and value not in PASSAGE_VISIBILITIES:
        raise ValueError(f"无效的可见性: {value}")
    return value


def _parse_time(value):
    """RFC3339 字符串 -> datetime，空字符串视为清空"""
    if isinstance(value, str):
        return parse_datetime(value)
    return value


# ============ 文章 ============

class PassageFields(BaseModel):
    """创建与更新共用字段，未提交的字段为 None"""
    title: Optional[str] = None
    content: Optional[str] = None  # Markdown 原文
    summary: Optional[str] = None
    author: Optional[str] = None
    category: Optional[str] = None
    status: Optional[str] = None
    visibility: Optional[str] = None
    show_title: Optional[bool] = None
    is_scheduled: Optional[bool] = None
    published_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    tags: TagInput = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return _check_status(v)

    @field_validator("visibility")
    @classmethod
    def validate_visibility(cls, v):
        return _check_visibility(v)

    @field_validator("published_at", "created_at", mode="before")
    @classmethod
    def parse_times(cls, v):
        return _parse_time(v)


class PassageCreate(PassageFields):
    """创建文章（标题与内容在服务层校验，以返回统一的提示）"""


class PassageUpdate(PassageFields):
    """整篇更新，未提交的字段保留原值"""


class PassagePatch(BaseModel):
    """
    部分更新

    只接受 visibility/is_scheduled/published_at/status/category/summary/show_title/tags，
    其余字段静默丢弃
    """
    visibility: Optional[str] = None
    is_scheduled: Optional[bool] = None
    published_at: Optional[datetime] = None
    status: Optional[str] = None
    category: Optional[str] = None
    summary: Optional[str] = None
    show_title: Optional[bool] = None
    tags: TagInput = None

    model_config = ConfigDict(extra="ignore")

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return _check_status(v)

    @field_validator("visibility")
    @classmethod
    def validate_visibility(cls, v):
        return _check_visibility(v)

    @field_validator("published_at", mode="before")
    @classmethod
    def parse_times(cls, v):
        return _parse_time(v)


# ============ 标签 ============

class TagCreate(BaseModel):
    """创建标签"""
    name: str = Field(..., min_length=1, max_length=50)
    description: str = ""
    color: str = ""
    category_id: Optional[int] = None
    sort_order: int = 0
    is_enabled: bool = True


class TagUpdate(BaseModel):
    """更新标签"""
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    description: Optional[str] = None
    color: Optional[str] = None
    category_id: Optional[int] = None
    sort_order: Optional[int] = None
    is_enabled: Optional[bool] = None


class TagPatch(BaseModel):
    """调整排序或启用状态"""
    sort_order: Optional[int] = None
    is_enabled: Optional[bool] = None


class TagInfo(BaseModel):
    """标签信息"""
    id: int
    name: str
    description: str
    color: str
    category_id: Optional[int]
    sort_order: int
    usage_count: int
    is_enabled: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ============ 分类 ============

class CategoryCreate(BaseModel):
    """创建分类"""
    name: str = Field(..., min_length=1, max_length=100)
    description: str = ""
    icon: str = ""
    sort_order: int = 0
    is_enabled: bool = True


class CategoryUpdate(BaseModel):
    """更新分类"""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    icon: Optional[str] = None
    sort_order: Optional[int] = None
    is_enabled: Optional[bool] = None


class CategoryInfo(BaseModel):
    """分类信息"""
    id: int
    name: str
    description: str
    icon: str
    sort_order: int
    is_enabled: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
