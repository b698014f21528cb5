"""
文章标签关联维护
把客户端提交的标签名列表同步到关联表，缺失的标签自动创建
"""

import json
import logging
from typing import List, Union

from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import AppException

from .passage_models import Tag
from .passage_store import TagRepository, PassageTagRepository

logger = logging.getLogger(__name__)


def parse_tag_names(raw: Union[str, List[str], None]) -> List[str]:
    """
    解析标签输入

    以 [ 开头时按 JSON 数组解析，否则按逗号分隔；
    去除首尾空白、丢弃空值并去重（保持原顺序）
    """
    if raw is None:
        return []
    if isinstance(raw, str):
        text = raw.strip()
        items = None
        if text.startswith("["):
            try:
                decoded = json.loads(text)
                if isinstance(decoded, list):
                    items = [str(item) for item in decoded if item is not None]
            except json.JSONDecodeError:
                logger.debug(f"标签不是合法的 JSON 数组，按逗号分隔处理: {text}")
        if items is None:
            items = text.split(",")
    else:
        items = [str(item) for item in raw if item is not None]

    names = []
    for item in items:
        name = item.strip()
        if name and name not in names:
            names.append(name)
    return names


class TagAssociator:
    """
    标签关联器

    对比现有关联与目标标签集合，只增删差异部分并同步标签使用次数；
    不提交事务，由调用方决定提交或回滚
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.tags = TagRepository(db)
        self.edges = PassageTagRepository(db)

    async def _get_or_create(self, name: str) -> Tag:
        """按名称获取标签，不存在时在保存点内创建"""
        tag = await self.tags.get_by_name(name)
        if tag is not None:
            return tag
        try:
            async with self.db.begin_nested():
                tag = await self.tags.create(Tag(name=name, is_enabled=True))
        except AppException:
            # 同名标签可能已被并发请求创建
            tag = await self.tags.get_by_name(name)
            if tag is None:
                raise
            return tag
        logger.info(f"自动创建标签: {name}")
        return tag

    async def reconcile(self, passage_id: int, raw_tags: Union[str, List[str], None]) -> List[str]:
        """
        同步文章标签，返回最终关联的标签名

        单个标签处理失败只记录日志，不影响其他标签
        """
        names = parse_tag_names(raw_tags)
        current_ids = set(await self.edges.get_tag_ids_by_passage_id(passage_id))

        wanted_ids: List[int] = []
        linked: List[str] = []
        for name in names:
            try:
                tag = await self._get_or_create(name)
            except AppException as e:
                logger.error(f"处理标签失败 [{name}]: {e.message}")
                continue
            if tag.id not in wanted_ids:
                wanted_ids.append(tag.id)
                linked.append(name)

        for tag_id in current_ids.difference(wanted_ids):
            await self.edges.delete_pair(passage_id, tag_id)
            await self.tags.decrement_usage_count(tag_id)

        for tag_id in wanted_ids:
            if tag_id in current_ids:
                continue
            try:
                async with self.db.begin_nested():
                    await self.edges.create(passage_id, tag_id)
                    await self.tags.increment_usage_count(tag_id)
            except AppException as e:
                logger.error(f"创建标签关联失败 [passage={passage_id}, tag={tag_id}]: {e.message}")

        return linked

    async def detach_all(self, passage_id: int) -> int:
        """删除文章的全部关联并回减使用次数"""
        tag_ids = await self.edges.get_tag_ids_by_passage_id(passage_id)
        for tag_id in tag_ids:
            await self.tags.decrement_usage_count(tag_id)
        return await self.edges.delete_by_passage_id(passage_id)
