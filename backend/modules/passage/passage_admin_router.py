"""
文章后台管理接口
文章增删改查、Markdown 同步、标签与分类管理、阅读统计，均要求管理员角色
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db
from core.errors import ValidationException
from core.security import require_admin, TokenData
from schemas import success, paginate

from .passage_schemas import (
    PassageCreate, PassageUpdate, PassagePatch,
    TagCreate, TagUpdate, TagPatch, TagInfo,
    CategoryCreate, CategoryUpdate, CategoryInfo,
)
from .passage_services import (
    PassageService, TaxonomyService,
    passage_brief, passage_admin_detail,
)

router = APIRouter()


def _parse_id(raw: Optional[str], missing: str = "缺少文章ID参数", invalid: str = "无效的文章ID") -> int:
    """解析查询参数中的 id"""
    if raw is None or not raw.strip():
        raise ValidationException(missing)
    try:
        value = int(raw)
    except ValueError:
        raise ValidationException(invalid)
    if value <= 0:
        raise ValidationException(invalid)
    return value


def _parse_tag_id(raw: Optional[str]) -> int:
    return _parse_id(raw, "缺少标签ID参数", "无效的标签ID")


def _parse_category_id(raw: Optional[str]) -> int:
    return _parse_id(raw, "缺少分类ID参数", "无效的分类ID")


# ============ 文章 ============

@router.get("/passages")
async def list_or_get_passage(
    id: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[str] = None,
    category: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    user: TokenData = Depends(require_admin())
):
    """带 id 时返回编辑用详情，否则返回分页列表"""
    service = PassageService(db)
    if id is not None:
        passage = await service.get_passage(_parse_id(id))
        tags = await service.get_tag_names(passage.id)
        return success(passage_admin_detail(passage, tags))

    items, total = await service.list_admin(page, limit, status=status, category=category)
    return paginate(items, total, page, limit)


@router.post("/passages", status_code=201)
async def create_passage(
    data: PassageCreate,
    db: AsyncSession = Depends(get_db),
    user: TokenData = Depends(require_admin())
):
    """创建文章"""
    passage = await PassageService(db).create(data)
    return success(passage_brief(passage), message="文章创建成功")


@router.put("/passages")
async def update_passage(
    data: PassageUpdate,
    id: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    user: TokenData = Depends(require_admin())
):
    """整篇更新文章"""
    passage = await PassageService(db).update(_parse_id(id), data)
    return success({
        "id": passage.id,
        "title": passage.title,
        "status": passage.status,
        "file_path": passage.file_path,
    }, message="文章更新成功")


@router.patch("/passages")
async def patch_passage(
    data: PassagePatch,
    id: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    user: TokenData = Depends(require_admin())
):
    """部分更新文章（可见性、定时发布、状态、分类、摘要、标题显示、标签）"""
    passage = await PassageService(db).partial_update(_parse_id(id), data)
    brief = passage_admin_detail(passage, [])
    return success({
        key: brief[key] for key in ("id", "visibility", "is_scheduled", "published_at", "status")
    }, message="文章更新成功")


@router.delete("/passages")
async def delete_passage(
    id: Optional[str] = None,
    recycle: bool = False,
    db: AsyncSession = Depends(get_db),
    user: TokenData = Depends(require_admin())
):
    """删除文章：recycle=true 移入回收站，否则永久删除"""
    await PassageService(db).delete(_parse_id(id), recycle=recycle)
    return success(message="文章已移动到回收站" if recycle else "文章删除成功")


@router.get("/passages/categories")
async def list_passage_categories(
    db: AsyncSession = Depends(get_db),
    user: TokenData = Depends(require_admin())
):
    """文章中使用过的分类名"""
    return success(await PassageService(db).all_category_names())


@router.post("/passages/sync")
async def sync_passages(
    db: AsyncSession = Depends(get_db),
    user: TokenData = Depends(require_admin())
):
    """把 Markdown 目录同步到数据库"""
    result = await PassageService(db).sync_all()
    return success(result, message="同步完成")


@router.get("/files")
async def list_markdown_files(
    db: AsyncSession = Depends(get_db),
    user: TokenData = Depends(require_admin())
):
    """列出 Markdown 文件"""
    return success(PassageService(db).list_files())


# ============ 标签 ============

@router.get("/tags")
async def list_or_get_tag(
    id: Optional[str] = None,
    category_id: Optional[int] = None,
    enabled: bool = False,
    db: AsyncSession = Depends(get_db),
    user: TokenData = Depends(require_admin())
):
    """带 id 时返回标签及其关联文章，否则返回标签列表"""
    service = TaxonomyService(db)
    if id is not None:
        tag_id = _parse_tag_id(id)
        tag = await service.get_tag(tag_id)
        return success({**TagInfo.model_validate(tag).model_dump(), **await service.tag_usage(tag_id)})

    if category_id is not None:
        tags = await service.list_tags_by_group(category_id)
    else:
        tags = await service.list_tags(enabled_only=enabled)
    return success([TagInfo.model_validate(t).model_dump() for t in tags])


@router.post("/tags", status_code=201)
async def create_tag(
    data: TagCreate,
    db: AsyncSession = Depends(get_db),
    user: TokenData = Depends(require_admin())
):
    """创建标签"""
    tag = await TaxonomyService(db).create_tag(data)
    return success(TagInfo.model_validate(tag).model_dump(), message="标签创建成功")


@router.put("/tags")
async def update_tag(
    data: TagUpdate,
    id: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    user: TokenData = Depends(require_admin())
):
    """更新标签"""
    tag = await TaxonomyService(db).update_tag(_parse_tag_id(id), data)
    return success(TagInfo.model_validate(tag).model_dump(), message="标签更新成功")


@router.patch("/tags")
async def patch_tag(
    data: TagPatch,
    id: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    user: TokenData = Depends(require_admin())
):
    """调整标签排序或启用状态"""
    tag = await TaxonomyService(db).patch_tag(_parse_tag_id(id), data)
    return success(TagInfo.model_validate(tag).model_dump(), message="标签更新成功")


@router.delete("/tags")
async def delete_tag(
    id: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    user: TokenData = Depends(require_admin())
):
    """删除标签"""
    await TaxonomyService(db).delete_tag(_parse_tag_id(id))
    return success(message="标签删除成功")


# ============ 分类 ============

@router.get("/categories")
async def list_categories(
    db: AsyncSession = Depends(get_db),
    user: TokenData = Depends(require_admin())
):
    """获取分类列表"""
    categories = await TaxonomyService(db).list_categories()
    return success([CategoryInfo.model_validate(c).model_dump() for c in categories])


@router.post("/categories", status_code=201)
async def create_category(
    data: CategoryCreate,
    db: AsyncSession = Depends(get_db),
    user: TokenData = Depends(require_admin())
):
    """创建分类"""
    category = await TaxonomyService(db).create_category(data)
    return success(CategoryInfo.model_validate(category).model_dump(), message="分类创建成功")


@router.put("/categories")
async def update_category(
    data: CategoryUpdate,
    id: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    user: TokenData = Depends(require_admin())
):
    """更新分类"""
    category = await TaxonomyService(db).update_category(_parse_category_id(id), data)
    return success(CategoryInfo.model_validate(category).model_dump(), message="分类更新成功")


@router.delete("/categories")
async def delete_category(
    id: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    user: TokenData = Depends(require_admin())
):
    """删除分类"""
    await TaxonomyService(db).delete_category(_parse_category_id(id))
    return success(message="分类删除成功")


# ============ 阅读统计 ============

@router.get("/analytics")
async def get_analytics(
    action: str = "",
    days: int = Query(30, ge=1, le=3650),
    limit: int = Query(10, ge=1, le=100),
    id: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    user: TokenData = Depends(require_admin())
):
    """阅读统计：most-viewed / view-sources / view-trend / article-stats / view-by-city / view-by-ip"""
    passage_id = _parse_id(id) if id is not None else None
    data = await PassageService(db).analytics(action, days=days, limit=limit, passage_id=passage_id)
    return success(data)
