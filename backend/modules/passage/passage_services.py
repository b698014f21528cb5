"""
文章业务逻辑层
文章的创建、更新、删除只经由这里完成：数据库行、Markdown 文件、渲染结果、标签关联同时落地
"""

import logging
from pathlib import PurePosixPath
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from core.config import get_settings
from core.errors import (
    AppException, ErrorCode, ValidationException, ConflictException,
    NotFoundException, FileSystemException,
)
from core.events import event_bus, Events
from core.repository import commit
from utils.text import sanitize_filename, clean_title, make_summary, calculate_read_time
from utils.timezone import utc_now, to_storage_utc, format_date, format_utc

from .passage_access import AccessDecision, evaluate_access, REASON_NOT_FOUND
from .passage_files import MarkdownFileStore, render_file_body
from .passage_models import (
    Passage, Tag, Category,
    STATUS_DRAFT, STATUS_PUBLISHED, STATUS_DELETED, VISIBILITY_PUBLIC,
    DEFAULT_AUTHOR, UNCATEGORIZED,
)
from .passage_renderer import MarkdownRenderer, get_renderer
from .passage_schemas import (
    PassageCreate, PassageUpdate, PassagePatch,
    TagCreate, TagUpdate, TagPatch, CategoryCreate, CategoryUpdate,
)
from .passage_store import (
    PassageRepository, TagRepository, CategoryRepository,
    PassageTagRepository, ArticleViewRepository,
)
from .passage_tags import TagAssociator

logger = logging.getLogger(__name__)

SUMMARY_LENGTH = 200

# 整篇更新时可直接覆盖的字段
_UPDATABLE_FIELDS = ("summary", "author", "category", "status", "visibility", "show_title", "is_scheduled")


def strip_file_header(text: str, title: str) -> str:
    """去掉写入文件时追加的 "# 标题" 行，得到文章原文"""
    header = render_file_body(title, "")
    if text.startswith(header):
        return text[len(header):]
    first, _, rest = text.partition("\n")
    if first.startswith("# ") and first[2:].strip() == title:
        return rest.lstrip("\n")
    return text


# ==================== 输出格式 ====================

def passage_brief(passage: Passage) -> dict:
    return {
        "id": passage.id,
        "title": passage.title,
        "status": passage.status,
        "created_at": format_date(passage.created_at),
    }


def passage_public_item(passage: Passage, tags: List[str]) -> dict:
    return {
        "id": passage.id,
        "title": passage.title,
        "summary": passage.summary,
        "tags": tags,
        "category": passage.category,
        "created_at": format_date(passage.created_at),
        "status": passage.status,
        "visibility": passage.visibility,
        "is_scheduled": bool(passage.is_scheduled),
        "published_at": format_utc(passage.published_at) or None,
    }


def passage_detail(passage: Passage, tags: List[str]) -> dict:
    """公开详情（渲染后的 HTML）"""
    return {
        "id": passage.id,
        "title": passage.title,
        "content": passage.content,
        "summary": passage.summary,
        "tags": tags,
        "category": passage.category,
        "show_title": bool(passage.show_title),
        "created_at": format_date(passage.created_at),
        "updated_at": format_date(passage.updated_at),
        "read_time": calculate_read_time(passage.content),
    }


def passage_admin_detail(passage: Passage, tags: List[str]) -> dict:
    """后台编辑用详情（Markdown 原文）"""
    return {
        "id": passage.id,
        "title": passage.title,
        "content": passage.original_content,
        "summary": passage.summary,
        "author": passage.author,
        "tags": tags,
        "category": passage.category,
        "status": passage.status,
        "show_title": bool(passage.show_title),
        "visibility": passage.visibility,
        "is_scheduled": bool(passage.is_scheduled),
        "published_at": format_utc(passage.published_at) or None,
        "created_at": format_date(passage.created_at),
        "file_path": passage.file_path,
        "content_type": "markdown",
    }


def passage_admin_item(passage: Passage) -> dict:
    return {
        "id": passage.id,
        "title": passage.title,
        "status": passage.status,
        "category": passage.category,
        "visibility": passage.visibility,
        "created_at": format_date(passage.created_at),
    }


class PassageService:
    """文章服务"""

    def __init__(
        self,
        db: AsyncSession,
        files: Optional[MarkdownFileStore] = None,
        renderer: Optional[MarkdownRenderer] = None,
    ):
        self.db = db
        self.passages = PassageRepository(db)
        self.categories = CategoryRepository(db)
        self.edges = PassageTagRepository(db)
        self.views = ArticleViewRepository(db)
        self.files = files or MarkdownFileStore(get_settings().markdown_dir)
        self.renderer = renderer or get_renderer()

    # ==================== 读取 ====================

    async def get_passage(self, passage_id: int) -> Passage:
        """获取文章，不存在时抛出 404"""
        passage = await self.passages.get_by_id(passage_id)
        if passage is None:
            raise AppException(ErrorCode.PASSAGE_NOT_FOUND)
        return passage

    async def get_tag_names(self, passage_id: int) -> List[str]:
        return await self.edges.get_tag_names_by_passage_id(passage_id)

    async def read(self, passage_id: int, role: Optional[str]) -> Tuple[AccessDecision, Passage]:
        """
        按调用者角色读取文章

        回收站中的文章对非管理员表现为不存在；其他拒绝情况返回判定结果，由调用方决定响应
        """
        passage = await self.get_passage(passage_id)
        decision = evaluate_access(passage, role)
        if not decision.allowed and decision.reason == REASON_NOT_FOUND:
            raise AppException(ErrorCode.PASSAGE_NOT_FOUND)
        return decision, passage

    async def read_by_path(self, segment: str, role: Optional[str]) -> Tuple[AccessDecision, Passage]:
        """按 YYYY/MM/DD/标题 形式的路径读取文章"""
        rel_path = self.files.resolve_by_url(segment)
        passage = await self.passages.get_by_file_path(rel_path) if rel_path else None
        if passage is None:
            raise AppException(ErrorCode.PASSAGE_NOT_FOUND)
        return await self.read(passage.id, role)

    async def list_public(self, page: int, limit: int, category: Optional[str] = None) -> Tuple[List[dict], int]:
        """已发布且公开的文章列表"""
        if category == "all":
            category = None
        offset = (page - 1) * limit
        passages = await self.passages.get_public(limit=limit, offset=offset, category=category)
        total = await self.passages.count_public(category=category)
        tag_names = await self.edges.get_tag_names(p.id for p in passages)
        return [passage_public_item(p, tag_names[p.id]) for p in passages], total

    async def list_admin(
        self, page: int, limit: int, status: Optional[str] = None, category: Optional[str] = None
    ) -> Tuple[List[dict], int]:
        offset = (page - 1) * limit
        if category:
            passages = await self.passages.get_by_category(category, limit=limit, offset=offset)
            total = await self.passages.count_by_category(category)
        elif status:
            passages = await self.passages.get_by_status(status, limit=limit, offset=offset)
            total = await self.passages.count_by_status(status)
        else:
            passages = await self.passages.get_all(limit=limit, offset=offset)
            total = await self.passages.count()
        return [passage_admin_item(p) for p in passages], total

    async def public_tags(self) -> List[dict]:
        return await TagRepository(self.db).get_public_tag_counts()

    async def public_categories(self) -> List[dict]:
        names = await self.passages.get_public_categories()
        return [{"id": index + 1, "name": name} for index, name in enumerate(names)]

    async def public_archive(self) -> List[dict]:
        return await self.passages.get_public_archive()

    async def all_category_names(self) -> List[str]:
        return await self.passages.get_all_categories()

    # ==================== 写入 ====================

    async def _after_write(self, passage: Passage, raw_tags: Any, tags_supplied: bool, category: str):
        """
        提交后的附属写入：标签关联与分类自动创建

        失败只记录日志，文章本身已经保存
        """
        passage_id = passage.id
        try:
            if tags_supplied:
                await TagAssociator(self.db).reconcile(passage_id, raw_tags)
            await self.ensure_category(category)
            await commit(self.db, "同步文章标签")
        except AppException as e:
            logger.warning(f"文章 {passage_id} 的标签/分类同步失败: {e.message}")
            await self.db.rollback()
            await self.db.refresh(passage)

    async def ensure_category(self, name: Optional[str]) -> Optional[Category]:
        """分类不存在时自动创建（启用状态）"""
        name = (name or "").strip()
        if not name or name == UNCATEGORIZED:
            return None
        category = await self.categories.get_by_name(name)
        if category is not None:
            return category
        try:
            async with self.db.begin_nested():
                category = await self.categories.create(Category(name=name, is_enabled=True))
        except AppException:
            category = await self.categories.get_by_name(name)
            if category is None:
                raise
            return category
        logger.info(f"自动创建分类: {name}")
        return category

    @staticmethod
    def _check_schedule(is_scheduled: Optional[bool], published_at) -> None:
        """定时发布必须带发布时间"""
        if is_scheduled and published_at is None:
            raise ValidationException("定时发布需要指定发布时间")

    async def create(self, data: PassageCreate) -> Passage:
        """
        创建文章

        先插入数据库行取得 id，再写 Markdown 文件，最后提交；
        文件写入失败回滚数据库，提交失败删除已写入的文件
        """
        title = clean_title(data.title)
        original = data.content or ""
        if not title or not original.strip():
            raise ValidationException("标题和内容不能为空")
        published_at = to_storage_utc(data.published_at)
        self._check_schedule(data.is_scheduled, published_at)

        show_title = True if data.show_title is None else data.show_title
        content = self.renderer.convert_with_option(original, show_title)
        created_at = to_storage_utc(data.created_at) or utc_now()
        file_path = self.files.unique_path(self.files.path_for(title, created_at))
        category = (data.category or "").strip()

        passage = Passage(
            title=title,
            content=content,
            original_content=original,
            summary=data.summary or make_summary(content, SUMMARY_LENGTH),
            author=data.author or DEFAULT_AUTHOR,
            category=category,
            status=data.status or STATUS_DRAFT,
            visibility=data.visibility or VISIBILITY_PUBLIC,
            show_title=show_title,
            is_scheduled=bool(data.is_scheduled),
            published_at=published_at,
            file_path=file_path,
            created_at=created_at,
            updated_at=utc_now(),
        )
        await self.passages.create(passage)

        try:
            await self.files.write(file_path, title, original)
        except FileSystemException:
            await self.db.rollback()
            raise

        try:
            await commit(self.db, "创建文章")
        except AppException:
            await self.files.delete(file_path)
            raise

        logger.info(f"文章已创建: [{passage.id}] {title} -> {file_path}")
        await self._after_write(passage, data.tags, data.tags is not None, category)
        event_bus.emit(Events.PASSAGE_CREATED, "passage", {"passage_id": passage.id, "title": title})
        return passage

    async def _move_file(self, passage: Passage, title: str) -> str:
        """标题变化时重命名文件，目录保持不变"""
        old_path = passage.file_path
        if not old_path:
            return self.files.unique_path(self.files.path_for(title, passage.created_at))
        target = f"{PurePosixPath(old_path).parent}/{sanitize_filename(title)}"
        if not self.files.exists(old_path):
            logger.warning(f"原 Markdown 文件不存在，直接写入新文件: {old_path}")
            return self.files.unique_path(target, ignore=old_path)
        return await self.files.rename(old_path, target)

    async def _restore_file(self, old_path: str, old_title: str, old_body: str, new_path: str):
        """数据库提交失败时恢复原文件"""
        try:
            await self.files.write(old_path, old_title, old_body)
            if new_path != old_path:
                await self.files.delete(new_path)
        except FileSystemException as e:
            logger.error(f"恢复 Markdown 文件失败 {old_path}: {e.message}")

    async def update(self, passage_id: int, data: PassageUpdate) -> Passage:
        """
        整篇更新

        未提交的字段保留原值；标题变化时重命名文件（冲突追加时间后缀）
        """
        passage = await self.get_passage(passage_id)
        fields = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}

        title = clean_title(fields.get("title", passage.title))
        original = fields.get("content", passage.original_content)
        if not title or not original.strip():
            raise ValidationException("标题和内容不能为空")
        published_at = to_storage_utc(fields["published_at"]) if "published_at" in fields else passage.published_at
        self._check_schedule(fields.get("is_scheduled", passage.is_scheduled), published_at)

        old_path, old_title, old_body = passage.file_path, passage.title, passage.original_content
        show_title = fields.get("show_title", passage.show_title)
        content = self.renderer.convert_with_option(original, show_title)

        if title != passage.title:
            new_path = await self._move_file(passage, title)
        else:
            new_path = old_path or self.files.unique_path(self.files.path_for(title, passage.created_at))
        try:
            await self.files.write(new_path, title, original)
        except FileSystemException:
            if new_path != old_path:
                await self._restore_file(old_path, old_title, old_body, new_path)
            raise

        for key in _UPDATABLE_FIELDS:
            if key in fields:
                setattr(passage, key, fields[key])
        passage.published_at = published_at
        if "created_at" in fields:
            passage.created_at = to_storage_utc(fields["created_at"])
        if not passage.summary:
            passage.summary = make_summary(content, SUMMARY_LENGTH)
        passage.title = title
        passage.original_content = original
        passage.content = content
        passage.file_path = new_path

        try:
            await self.passages.update(passage)
            await commit(self.db, "更新文章")
        except AppException:
            await self.db.rollback()
            await self._restore_file(old_path, old_title, old_body, new_path)
            raise

        logger.info(f"文章已更新: [{passage.id}] {title}")
        await self._after_write(passage, fields.get("tags"), "tags" in fields, passage.category)
        event_bus.emit(Events.PASSAGE_UPDATED, "passage", {"passage_id": passage.id, "title": title})
        return passage

    async def partial_update(self, passage_id: int, patch: PassagePatch) -> Passage:
        """
        部分更新

        tags 字段存在时（即使为空字符串）完整同步标签关联
        """
        fields = patch.model_dump(exclude_unset=True)
        if not fields:
            raise ValidationException("没有提供有效的更新字段")
        passage = await self.get_passage(passage_id)
        is_scheduled = fields.get("is_scheduled")
        if is_scheduled is None:
            is_scheduled = passage.is_scheduled
        published_at = to_storage_utc(fields["published_at"]) if "published_at" in fields else passage.published_at
        self._check_schedule(is_scheduled, published_at)

        for key in ("visibility", "status", "category", "summary"):
            if fields.get(key) is not None:
                setattr(passage, key, fields[key])
        passage.is_scheduled = is_scheduled
        passage.published_at = published_at
        if fields.get("show_title") is not None and fields["show_title"] != passage.show_title:
            passage.show_title = fields["show_title"]
            passage.content = self.renderer.convert_with_option(passage.original_content, passage.show_title)

        await self.passages.update(passage)
        await commit(self.db, "更新文章")

        tags_supplied = "tags" in fields
        await self._after_write(passage, fields.get("tags") or "", tags_supplied, passage.category)
        event_bus.emit(Events.PASSAGE_UPDATED, "passage", {"passage_id": passage.id, "fields": sorted(fields)})
        return passage

    async def delete(self, passage_id: int, recycle: bool = False):
        """
        删除文章

        recycle=True 时移入回收站（保留数据行、文件与标签关联）；
        否则永久删除数据行与关联，再删除文件，文件删除失败只记录日志
        """
        passage = await self.get_passage(passage_id)
        if recycle:
            passage.status = STATUS_DELETED
            await self.passages.update(passage)
            await commit(self.db, "删除文章")
            logger.info(f"文章已移入回收站: [{passage_id}] {passage.title}")
            event_bus.emit(Events.PASSAGE_DELETED, "passage", {"passage_id": passage_id, "recycle": True})
            return

        file_path, title = passage.file_path, passage.title
        await TagAssociator(self.db).detach_all(passage_id)
        await self.passages.delete(passage_id)
        await commit(self.db, "删除文章")
        logger.info(f"文章已永久删除: [{passage_id}] {title}")

        if file_path:
            try:
                await self.files.delete(file_path)
            except FileSystemException as e:
                logger.warning(f"文章 {passage_id} 已删除，但 Markdown 文件未能删除 {file_path}: {e.message}")
        event_bus.emit(Events.PASSAGE_DELETED, "passage", {"passage_id": passage_id, "recycle": False})

    # ==================== 文件同步 ====================

    async def sync_file(self, rel_path: str) -> str:
        """
        把单个 Markdown 文件同步到数据库

        Returns:
            "created" 或 "updated"
        """
        parsed = await self.files.parse(rel_path)
        original = strip_file_header(parsed.body, parsed.title)
        content = self.renderer.convert(original)
        summary = make_summary(content, SUMMARY_LENGTH)

        passage = await self.passages.get_by_file_path(rel_path)
        if passage is not None:
            passage.title = parsed.title
            passage.original_content = original
            passage.content = self.renderer.convert_with_option(original, passage.show_title)
            passage.summary = summary
            await self.passages.update(passage)
            await commit(self.db, "同步文章")
            return "updated"

        path_date = self.files.date_from_path(rel_path)
        created_at = to_storage_utc(path_date) if path_date else parsed.mod_time
        await self.passages.create(Passage(
            title=parsed.title,
            content=content,
            original_content=original,
            summary=summary,
            author=DEFAULT_AUTHOR,
            status=STATUS_PUBLISHED,
            file_path=rel_path,
            created_at=created_at,
            updated_at=utc_now(),
        ))
        await commit(self.db, "同步文章")
        return "created"

    async def sync_all(self) -> Dict[str, int]:
        """遍历 Markdown 目录，补齐或更新数据库中的文章；单个文件失败不影响其他文件"""
        result = {"created": 0, "updated": 0, "failed": 0}
        for rel_path in self.files.iter_paths():
            try:
                outcome = await self.sync_file(rel_path)
            except AppException as e:
                await self.db.rollback()
                logger.error(f"同步 Markdown 文件失败 {rel_path}: {e.message}")
                result["failed"] += 1
                continue
            result[outcome] += 1
        logger.info(f"Markdown 同步完成: {result}")
        return result

    def list_files(self) -> List[dict]:
        return self.files.list_files()

    # ==================== 阅读统计 ====================

    async def analytics(
        self,
        action: str,
        days: int = 30,
        limit: int = 10,
        passage_id: Optional[int] = None,
    ) -> Any:
        if action == "most-viewed":
            return await self.views.get_most_viewed(limit)
        if action == "view-sources":
            return await self.views.get_view_sources(days)
        if action == "view-trend":
            return await self.views.get_view_trend(days)
        if action == "article-stats":
            if not passage_id:
                raise ValidationException("缺少文章ID参数")
            return await self.views.get_article_stats(passage_id, days)
        if action == "view-by-city":
            return await self.views.get_view_by_city(days)
        if action == "view-by-ip":
            return await self.views.get_view_by_ip(days)
        raise ValidationException("未知的操作类型")


class TaxonomyService:
    """标签与分类管理"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.tags = TagRepository(db)
        self.categories = CategoryRepository(db)
        self.edges = PassageTagRepository(db)

    # ==================== 标签 ====================

    async def get_tag(self, tag_id: int) -> Tag:
        tag = await self.tags.get_by_id(tag_id)
        if tag is None:
            raise NotFoundException("标签", tag_id, code=ErrorCode.TAG_NOT_FOUND)
        return tag

    async def list_tags(self, enabled_only: bool = False) -> List[Tag]:
        if enabled_only:
            return await self.tags.get_all_enabled()
        return await self.tags.get_all()

    async def list_tags_by_group(self, category_id: int) -> List[Tag]:
        return await self.tags.get_by_category_id(category_id)

    async def create_tag(self, data: TagCreate) -> Tag:
        name = data.name.strip()
        if await self.tags.get_by_name(name):
            raise ConflictException("标签名已存在")
        tag = await self.tags.create(Tag(**{**data.model_dump(), "name": name}))
        await commit(self.db, "创建标签")
        return tag

    async def update_tag(self, tag_id: int, data: TagUpdate) -> Tag:
        tag = await self.get_tag(tag_id)
        fields = data.model_dump(exclude_unset=True)
        name = (fields.get("name") or "").strip()
        if name and name != tag.name:
            if await self.tags.get_by_name(name):
                raise ConflictException("标签名已存在")
            fields["name"] = name
        for key, value in fields.items():
            if value is not None or key == "category_id":
                setattr(tag, key, value)
        tag.updated_at = utc_now()
        await self.tags.update(tag)
        await commit(self.db, "更新标签")
        return tag

    async def patch_tag(self, tag_id: int, data: TagPatch) -> Tag:
        """调整排序或启用状态"""
        await self.get_tag(tag_id)
        if data.sort_order is None and data.is_enabled is None:
            raise ValidationException("没有提供有效的更新字段")
        if data.sort_order is not None:
            await self.tags.update_sort_order(tag_id, data.sort_order)
        if data.is_enabled is not None:
            await self.tags.update_enabled(tag_id, data.is_enabled)
        await commit(self.db, "更新标签")
        tag = await self.get_tag(tag_id)
        await self.db.refresh(tag)
        return tag

    async def delete_tag(self, tag_id: int):
        """删除标签及其全部文章关联"""
        await self.get_tag(tag_id)
        removed = await self.edges.delete_by_tag_id(tag_id)
        await self.tags.delete(tag_id)
        await commit(self.db, "删除标签")
        logger.info(f"标签已删除: {tag_id}（解除 {removed} 条文章关联）")

    async def tag_usage(self, tag_id: int) -> dict:
        await self.get_tag(tag_id)
        return {
            "passage_ids": await self.edges.get_passage_ids_by_tag_id(tag_id),
            "count": await self.edges.count_by_tag_id(tag_id),
        }

    # ==================== 分类 ====================

    async def get_category(self, category_id: int) -> Category:
        category = await self.categories.get_by_id(category_id)
        if category is None:
            raise NotFoundException("分类", category_id, code=ErrorCode.CATEGORY_NOT_FOUND)
        return category

    async def list_categories(self) -> List[Category]:
        return await self.categories.get_all()

    async def create_category(self, data: CategoryCreate) -> Category:
        name = data.name.strip()
        if await self.categories.get_by_name(name):
            raise ConflictException("分类名已存在")
        category = await self.categories.create(Category(**{**data.model_dump(), "name": name}))
        await commit(self.db, "创建分类")
        return category

    async def update_category(self, category_id: int, data: CategoryUpdate) -> Category:
        """只修改分类本身，已引用旧名称的文章不受影响"""
        category = await self.get_category(category_id)
        fields = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
        name = (fields.get("name") or "").strip()
        if name and name != category.name:
            if await self.categories.get_by_name(name):
                raise ConflictException("分类名已存在")
            fields["name"] = name
        for key, value in fields.items():
            setattr(category, key, value)
        category.updated_at = utc_now()
        await self.categories.update(category)
        await commit(self.db, "更新分类")
        return category

    async def delete_category(self, category_id: int):
        await self.get_category(category_id)
        await self.categories.delete(category_id)
        await commit(self.db, "删除分类")
