"""
文章模块数据访问
文章、标签、分类、关联、阅读记录的仓储实现，调用方不直接拼写 SQL
"""

from collections import defaultdict
from datetime import timedelta
from typing import Dict, Iterable, List, Optional

from sqlalchemy import select, func, delete, update, and_, distinct

from core.repository import BaseRepository
from utils.timezone import get_beijing_time, utc_now, utc_to_beijing

from .passage_models import (
    Passage, Tag, Category, PassageTag, ArticleView,
    STATUS_PUBLISHED, VISIBILITY_PUBLIC, UNCATEGORIZED,
)


def _public_filter():
    """公开列表只包含已发布且公开的文章"""
    return and_(Passage.status == STATUS_PUBLISHED, Passage.visibility == VISIBILITY_PUBLIC)


def window_start(days: int) -> str:
    """统计窗口起始日期（北京时间 today - days）"""
    return (get_beijing_time().date() - timedelta(days=days)).strftime("%Y-%m-%d")


# ==================== 文章 ====================

class PassageRepository(BaseRepository):
    """文章仓储"""

    async def create(self, passage: Passage) -> Passage:
        return await self.add(passage, "创建文章")

    async def get_by_id(self, passage_id: int) -> Optional[Passage]:
        """不存在时返回 None"""
        return await self.one_or_none(select(Passage).where(Passage.id == passage_id), "获取文章")

    async def get_by_file_path(self, file_path: str) -> Optional[Passage]:
        stmt = select(Passage).where(Passage.file_path == file_path).limit(1)
        return await self.one_or_none(stmt, "获取文章")

    async def get_all(self, limit: int = 10, offset: int = 0) -> List[Passage]:
        stmt = (
            select(Passage)
            .order_by(Passage.created_at.desc(), Passage.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return await self.all(stmt, "获取文章列表")

    async def get_by_status(self, status: str, limit: int = 10, offset: int = 0) -> List[Passage]:
        stmt = (
            select(Passage)
            .where(Passage.status == status)
            .order_by(Passage.created_at.desc(), Passage.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return await self.all(stmt, "获取文章列表")

    async def get_by_category(self, category: str, limit: int = 10, offset: int = 0) -> List[Passage]:
        """按分类名精确匹配"""
        stmt = (
            select(Passage)
            .where(Passage.category == category)
            .order_by(Passage.created_at.desc(), Passage.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return await self.all(stmt, "获取分类文章")

    async def get_public(self, limit: int = 10, offset: int = 0, category: Optional[str] = None) -> List[Passage]:
        stmt = select(Passage).where(_public_filter())
        if category:
            stmt = stmt.where(Passage.category == category)
        stmt = stmt.order_by(Passage.created_at.desc(), Passage.id.desc()).offset(offset).limit(limit)
        return await self.all(stmt, "获取文章列表")

    async def count_public(self, category: Optional[str] = None) -> int:
        stmt = select(func.count(Passage.id)).where(_public_filter())
        if category:
            stmt = stmt.where(Passage.category == category)
        return await self.scalar(stmt, "统计文章") or 0

    async def get_all_categories(self) -> List[str]:
        """所有文章使用过的分类名（去重，排除"未分类"）"""
        stmt = (
            select(Passage.category)
            .where(Passage.category != "", Passage.category != UNCATEGORIZED)
            .distinct()
            .order_by(Passage.category)
        )
        result = await self.execute(stmt, "获取分类")
        return [row[0] for row in result.all()]

    async def get_public_categories(self) -> List[str]:
        stmt = (
            select(Passage.category)
            .where(_public_filter(), Passage.category != "", Passage.category != UNCATEGORIZED)
            .distinct()
            .order_by(Passage.category)
        )
        result = await self.execute(stmt, "获取分类")
        return [row[0] for row in result.all()]

    async def get_public_archive(self) -> List[dict]:
        """按北京时间年月分组统计已发布文章"""
        result = await self.execute(select(Passage.created_at).where(_public_filter()), "获取归档")
        counts: Dict[tuple, int] = defaultdict(int)
        for (created_at,) in result.all():
            local = utc_to_beijing(created_at)
            counts[(local.strftime("%Y"), local.strftime("%m"))] += 1
        return [
            {"year": year, "month": month, "count": count}
            for (year, month), count in sorted(counts.items(), reverse=True)
        ]

    async def update(self, passage: Passage) -> Passage:
        passage.updated_at = utc_now()
        await self.flush("更新文章")
        return passage

    async def delete(self, passage_id: int) -> bool:
        result = await self.execute(delete(Passage).where(Passage.id == passage_id), "删除文章")
        return result.rowcount > 0

    async def count(self) -> int:
        return await self.scalar(select(func.count(Passage.id)), "统计文章") or 0

    async def count_by_status(self, status: str) -> int:
        stmt = select(func.count(Passage.id)).where(Passage.status == status)
        return await self.scalar(stmt, "统计文章") or 0

    async def count_by_category(self, category: str) -> int:
        stmt = select(func.count(Passage.id)).where(Passage.category == category)
        return await self.scalar(stmt, "统计文章") or 0


# ==================== 标签 ====================

class TagRepository(BaseRepository):
    """标签仓储"""

    def _ordered(self, stmt):
        return stmt.order_by(Tag.sort_order, Tag.name)

    async def create(self, tag: Tag) -> Tag:
        return await self.add(tag, "创建标签")

    async def get_by_id(self, tag_id: int) -> Optional[Tag]:
        return await self.one_or_none(select(Tag).where(Tag.id == tag_id), "获取标签")

    async def get_by_name(self, name: str) -> Optional[Tag]:
        """名称区分大小写"""
        return await self.one_or_none(select(Tag).where(Tag.name == name), "获取标签")

    async def get_by_ids(self, tag_ids: Iterable[int]) -> List[Tag]:
        ids = list(tag_ids)
        if not ids:
            return []
        return await self.all(self._ordered(select(Tag).where(Tag.id.in_(ids))), "获取标签")

    async def get_all(self) -> List[Tag]:
        return await self.all(self._ordered(select(Tag)), "获取标签列表")

    async def get_all_enabled(self) -> List[Tag]:
        return await self.all(self._ordered(select(Tag).where(Tag.is_enabled.is_(True))), "获取标签列表")

    async def get_by_category_id(self, category_id: int) -> List[Tag]:
        stmt = self._ordered(select(Tag).where(Tag.category_id == category_id))
        return await self.all(stmt, "获取标签列表")

    async def update(self, tag: Tag) -> Tag:
        await self.flush("更新标签")
        return tag

    async def delete(self, tag_id: int) -> bool:
        result = await self.execute(delete(Tag).where(Tag.id == tag_id), "删除标签")
        return result.rowcount > 0

    async def update_sort_order(self, tag_id: int, sort_order: int) -> bool:
        stmt = update(Tag).where(Tag.id == tag_id).values(sort_order=sort_order, updated_at=utc_now())
        result = await self.execute(stmt, "更新标签排序")
        return result.rowcount > 0

    async def update_enabled(self, tag_id: int, is_enabled: bool) -> bool:
        stmt = update(Tag).where(Tag.id == tag_id).values(is_enabled=is_enabled, updated_at=utc_now())
        result = await self.execute(stmt, "更新标签状态")
        return result.rowcount > 0

    async def increment_usage_count(self, tag_id: int):
        stmt = update(Tag).where(Tag.id == tag_id).values(usage_count=Tag.usage_count + 1)
        await self.execute(stmt, "更新标签使用次数")

    async def decrement_usage_count(self, tag_id: int):
        """使用次数不会减到负数"""
        stmt = (
            update(Tag)
            .where(Tag.id == tag_id, Tag.usage_count > 0)
            .values(usage_count=Tag.usage_count - 1)
        )
        await self.execute(stmt, "更新标签使用次数")

    async def get_public_tag_counts(self) -> List[dict]:
        """启用的标签及其关联的公开文章数（至少 1 篇）"""
        article_count = func.count(PassageTag.passage_id)
        stmt = (
            select(Tag.id, Tag.name, article_count)
            .join(PassageTag, PassageTag.tag_id == Tag.id)
            .join(Passage, Passage.id == PassageTag.passage_id)
            .where(Tag.is_enabled.is_(True), _public_filter())
            .group_by(Tag.id, Tag.name, Tag.sort_order)
            .order_by(Tag.sort_order, Tag.name)
        )
        result = await self.execute(stmt, "获取标签统计")
        return [{"id": tag_id, "name": name, "count": count} for tag_id, name, count in result.all()]


# ==================== 分类 ====================

class CategoryRepository(BaseRepository):
    """分类仓储"""

    async def create(self, category: Category) -> Category:
        return await self.add(category, "创建分类")

    async def get_by_id(self, category_id: int) -> Optional[Category]:
        return await self.one_or_none(select(Category).where(Category.id == category_id), "获取分类")

    async def get_by_name(self, name: str) -> Optional[Category]:
        return await self.one_or_none(select(Category).where(Category.name == name), "获取分类")

    async def get_all(self) -> List[Category]:
        stmt = select(Category).order_by(Category.sort_order, Category.name)
        return await self.all(stmt, "获取分类列表")

    async def update(self, category: Category) -> Category:
        await self.flush("更新分类")
        return category

    async def delete(self, category_id: int) -> bool:
        result = await self.execute(delete(Category).where(Category.id == category_id), "删除分类")
        return result.rowcount > 0


# ==================== 文章标签关联 ====================

class PassageTagRepository(BaseRepository):
    """文章标签关联仓储"""

    async def create(self, passage_id: int, tag_id: int) -> PassageTag:
        return await self.add(PassageTag(passage_id=passage_id, tag_id=tag_id), "创建文章标签关联")

    async def delete_by_passage_id(self, passage_id: int) -> int:
        result = await self.execute(
            delete(PassageTag).where(PassageTag.passage_id == passage_id), "删除文章标签关联"
        )
        return result.rowcount

    async def delete_by_tag_id(self, tag_id: int) -> int:
        result = await self.execute(delete(PassageTag).where(PassageTag.tag_id == tag_id), "删除文章标签关联")
        return result.rowcount

    async def delete_pair(self, passage_id: int, tag_id: int) -> bool:
        stmt = delete(PassageTag).where(PassageTag.passage_id == passage_id, PassageTag.tag_id == tag_id)
        result = await self.execute(stmt, "删除文章标签关联")
        return result.rowcount > 0

    async def get_tag_ids_by_passage_id(self, passage_id: int) -> List[int]:
        stmt = select(PassageTag.tag_id).where(PassageTag.passage_id == passage_id).order_by(PassageTag.id)
        result = await self.execute(stmt, "获取文章标签")
        return [row[0] for row in result.all()]

    async def get_passage_ids_by_tag_id(self, tag_id: int) -> List[int]:
        stmt = select(PassageTag.passage_id).where(PassageTag.tag_id == tag_id).order_by(PassageTag.passage_id)
        result = await self.execute(stmt, "获取标签文章")
        return [row[0] for row in result.all()]

    async def count_by_tag_id(self, tag_id: int) -> int:
        stmt = select(func.count(PassageTag.id)).where(PassageTag.tag_id == tag_id)
        return await self.scalar(stmt, "统计标签文章") or 0

    async def get_tag_names(self, passage_ids: Iterable[int]) -> Dict[int, List[str]]:
        """批量获取多篇文章的标签名"""
        ids = list(passage_ids)
        names: Dict[int, List[str]] = {pid: [] for pid in ids}
        if not ids:
            return names
        stmt = (
            select(PassageTag.passage_id, Tag.name)
            .join(Tag, Tag.id == PassageTag.tag_id)
            .where(PassageTag.passage_id.in_(ids))
            .order_by(PassageTag.passage_id, Tag.sort_order, Tag.name)
        )
        result = await self.execute(stmt, "获取文章标签")
        for passage_id, name in result.all():
            names[passage_id].append(name)
        return names

    async def get_tag_names_by_passage_id(self, passage_id: int) -> List[str]:
        return (await self.get_tag_names([passage_id]))[passage_id]


# ==================== 阅读记录 ====================

class ArticleViewRepository(BaseRepository):
    """阅读记录仓储（只追加，不修改）"""

    async def record_view(
        self,
        passage_id: int,
        ip: str,
        user_agent: str,
        country: str = "",
        city: str = "",
        region: str = "",
    ) -> ArticleView:
        now = utc_now()
        view = ArticleView(
            passage_id=passage_id,
            ip=ip,
            user_agent=(user_agent or "")[:500],
            country=country or "",
            city=city or "",
            region=region or "",
            view_date=utc_to_beijing(now).strftime("%Y-%m-%d"),
            view_time=now,
        )
        return await self.add(view, "记录文章阅读")

    async def get_article_views(self, passage_id: int) -> List[ArticleView]:
        stmt = select(ArticleView).where(ArticleView.passage_id == passage_id).order_by(ArticleView.view_time.desc())
        return await self.all(stmt, "获取阅读记录")

    async def get_article_stats(self, passage_id: int, days: int = 30) -> dict:
        """单篇文章统计：总阅读、独立访客、国家/城市 Top5、每日趋势"""
        start = window_start(days)
        in_window = and_(ArticleView.passage_id == passage_id, ArticleView.view_date >= start)

        total = await self.scalar(select(func.count(ArticleView.id)).where(in_window), "统计阅读") or 0
        unique = await self.scalar(
            select(func.count(distinct(ArticleView.ip))).where(in_window), "统计阅读"
        ) or 0

        count_col = func.count(ArticleView.id).label("count")
        countries = await self.execute(
            select(ArticleView.country, count_col)
            .where(in_window, ArticleView.country != "")
            .group_by(ArticleView.country)
            .order_by(count_col.desc())
            .limit(5),
            "统计阅读来源",
        )
        cities = await self.execute(
            select(ArticleView.city, count_col)
            .where(in_window, ArticleView.city != "")
            .group_by(ArticleView.city)
            .order_by(count_col.desc())
            .limit(5),
            "统计阅读城市",
        )
        trend = await self.execute(
            select(ArticleView.view_date, count_col)
            .where(in_window)
            .group_by(ArticleView.view_date)
            .order_by(ArticleView.view_date),
            "统计阅读趋势",
        )
        return {
            "passage_id": passage_id,
            "total_views": total,
            "unique_visitors": unique,
            "top_countries": [{"country": c, "count": n} for c, n in countries.all()],
            "top_cities": [{"city": c, "count": n} for c, n in cities.all()],
            "daily_trend": [{"date": d, "count": n} for d, n in trend.all()],
        }

    async def get_most_viewed(self, limit: int = 10) -> List[dict]:
        """已发布文章按阅读量排序"""
        view_count = func.count(ArticleView.id).label("view_count")
        stmt = (
            select(Passage.id, Passage.title, view_count)
            .outerjoin(ArticleView, ArticleView.passage_id == Passage.id)
            .where(Passage.status == STATUS_PUBLISHED)
            .group_by(Passage.id, Passage.title)
            .order_by(view_count.desc(), Passage.id)
            .limit(limit)
        )
        result = await self.execute(stmt, "统计热门文章")
        return [{"id": pid, "title": title, "view_count": count} for pid, title, count in result.all()]

    async def get_view_sources(self, days: int = 30) -> List[dict]:
        """按国家统计（Top 10）"""
        count_col = func.count(ArticleView.id).label("count")
        stmt = (
            select(ArticleView.country, count_col)
            .where(ArticleView.view_date >= window_start(days), ArticleView.country != "")
            .group_by(ArticleView.country)
            .order_by(count_col.desc())
            .limit(10)
        )
        result = await self.execute(stmt, "统计阅读来源")
        return [{"country": country, "count": count} for country, count in result.all()]

    async def get_view_trend(self, days: int = 30) -> List[dict]:
        """按日期统计（升序）"""
        count_col = func.count(ArticleView.id).label("count")
        stmt = (
            select(ArticleView.view_date, count_col)
            .where(ArticleView.view_date >= window_start(days))
            .group_by(ArticleView.view_date)
            .order_by(ArticleView.view_date)
        )
        result = await self.execute(stmt, "统计阅读趋势")
        return [{"date": view_date, "count": count} for view_date, count in result.all()]

    async def get_view_by_city(self, days: int = 30) -> List[dict]:
        """按城市统计（Top 20）"""
        count_col = func.count(ArticleView.id).label("count")
        stmt = (
            select(ArticleView.city, ArticleView.country, count_col)
            .where(ArticleView.view_date >= window_start(days), ArticleView.city != "")
            .group_by(ArticleView.city, ArticleView.country)
            .order_by(count_col.desc())
            .limit(20)
        )
        result = await self.execute(stmt, "统计阅读城市")
        return [{"city": city, "country": country, "count": count} for city, country, count in result.all()]

    async def get_view_by_ip(self, days: int = 30) -> List[dict]:
        """按 IP 统计（Top 20），含首次/最近访问时间"""
        count_col = func.count(ArticleView.id).label("count")
        stmt = (
            select(
                ArticleView.ip,
                func.max(ArticleView.country),
                func.max(ArticleView.city),
                func.max(ArticleView.region),
                count_col,
                func.min(ArticleView.view_time),
                func.max(ArticleView.view_time),
            )
            .where(ArticleView.view_date >= window_start(days))
            .group_by(ArticleView.ip)
            .order_by(count_col.desc())
            .limit(20)
        )
        result = await self.execute(stmt, "统计访问IP")
        return [
            {
                "ip": ip,
                "country": country or "",
                "city": city or "",
                "region": region or "",
                "count": count,
                "first_visit": first_visit,
                "last_visit": last_visit,
            }
            for ip, country, city, region, count, first_visit, last_visit in result.all()
        ]
