"""
文章模块仓储测试
"""

import asyncio
from datetime import datetime

import pytest

from core.errors import DatabaseException
from modules.passage.passage_models import Passage, Tag, PassageTag, ArticleView
from modules.passage.passage_store import (
    PassageRepository, TagRepository, PassageTagRepository, ArticleViewRepository, window_start,
)
from utils.timezone import get_beijing_time


async def add_passage(session, title, status="published", visibility="public", category="", created_at=None):
    passage = Passage(
        title=title,
        status=status,
        visibility=visibility,
        category=category,
        file_path=f"2024/01/01/{title}",
        created_at=created_at or datetime(2024, 1, 1, 12, 0),
    )
    session.add(passage)
    await session.flush()
    return passage


class TestPassageRepository:
    """文章仓储测试"""

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, db_session):
        assert await PassageRepository(db_session).get_by_id(12345) is None

    @pytest.mark.asyncio
    async def test_get_all_newest_first(self, db_session):
        await add_passage(db_session, "old", created_at=datetime(2024, 1, 1))
        await add_passage(db_session, "new", created_at=datetime(2024, 6, 1))
        await add_passage(db_session, "mid", created_at=datetime(2024, 3, 1))

        repo = PassageRepository(db_session)
        assert [p.title for p in await repo.get_all(limit=2)] == ["new", "mid"]
        assert [p.title for p in await repo.get_all(limit=2, offset=2)] == ["old"]
        assert await repo.count() == 3

    @pytest.mark.asyncio
    async def test_public_filter(self, db_session):
        await add_passage(db_session, "public", category="技术")
        await add_passage(db_session, "private", visibility="private", category="私密")
        await add_passage(db_session, "draft", status="draft", category="草稿")
        await add_passage(db_session, "deleted", status="deleted")

        repo = PassageRepository(db_session)
        assert [p.title for p in await repo.get_public()] == ["public"]
        assert await repo.count_public() == 1
        assert await repo.count_public(category="私密") == 0
        assert await repo.get_public_categories() == ["技术"]

    @pytest.mark.asyncio
    async def test_status_and_category_queries(self, db_session):
        await add_passage(db_session, "a", status="draft", category="技术")
        await add_passage(db_session, "b", status="published", category="技术")
        await add_passage(db_session, "c", status="draft", category="生活")

        repo = PassageRepository(db_session)
        assert {p.title for p in await repo.get_by_status("draft")} == {"a", "c"}
        assert await repo.count_by_status("draft") == 2
        assert {p.title for p in await repo.get_by_category("技术")} == {"a", "b"}
        assert await repo.count_by_category("技术") == 2

    @pytest.mark.asyncio
    async def test_all_categories_excludes_uncategorized(self, db_session):
        await add_passage(db_session, "a", category="未分类")
        await add_passage(db_session, "b", category="生活")
        await add_passage(db_session, "c", category="技术")
        await add_passage(db_session, "d", category="技术")
        await add_passage(db_session, "e")

        assert await PassageRepository(db_session).get_all_categories() == ["技术", "生活"]

    @pytest.mark.asyncio
    async def test_public_categories_distinct_and_sorted(self, db_session):
        for title, category in [("a", "生活"), ("b", "技术"), ("c", "生活"), ("d", "技术"), ("e", "未分类")]:
            await add_passage(db_session, title, category=category)

        assert await PassageRepository(db_session).get_public_categories() == ["技术", "生活"]

    @pytest.mark.asyncio
    async def test_archive_uses_beijing_month(self, db_session):
        """UTC 1 月 31 日 20:00 属于北京时间 2 月"""
        await add_passage(db_session, "a", created_at=datetime(2024, 1, 31, 20, 0))
        await add_passage(db_session, "b", created_at=datetime(2024, 2, 10))
        await add_passage(db_session, "c", created_at=datetime(2023, 12, 1))
        await add_passage(db_session, "d", status="draft", created_at=datetime(2023, 11, 1))

        archive = await PassageRepository(db_session).get_public_archive()
        assert archive == [
            {"year": "2024", "month": "02", "count": 2},
            {"year": "2023", "month": "12", "count": 1},
        ]

    @pytest.mark.asyncio
    async def test_get_by_file_path(self, db_session):
        passage = await add_passage(db_session, "Hello")
        found = await PassageRepository(db_session).get_by_file_path("2024/01/01/Hello")
        assert found.id == passage.id

    @pytest.mark.asyncio
    async def test_query_timeout(self, db_session):
        """超出查询时限时包装为 DatabaseException"""
        repo = PassageRepository(db_session, timeout=0.01)

        async def slow():
            await asyncio.sleep(1)

        with pytest.raises(DatabaseException) as exc_info:
            await repo._run(slow(), "慢查询")
        assert "超时" in exc_info.value.message


class TestTagRepository:
    """标签仓储测试"""

    @pytest.mark.asyncio
    async def test_ordering_and_filters(self, db_session):
        db_session.add_all([
            Tag(name="b", sort_order=1, category_id=7),
            Tag(name="a", sort_order=1),
            Tag(name="z", sort_order=0, is_enabled=False, category_id=7),
        ])
        await db_session.flush()

        repo = TagRepository(db_session)
        assert [t.name for t in await repo.get_all()] == ["z", "a", "b"]
        assert [t.name for t in await repo.get_all_enabled()] == ["a", "b"]
        assert [t.name for t in await repo.get_by_category_id(7)] == ["z", "b"]

    @pytest.mark.asyncio
    async def test_sort_and_enabled_updates(self, db_session):
        tag = Tag(name="t")
        db_session.add(tag)
        await db_session.flush()

        repo = TagRepository(db_session)
        assert await repo.update_sort_order(tag.id, 9) is True
        assert await repo.update_enabled(tag.id, False) is True
        assert await repo.update_enabled(9999, False) is False

        await db_session.refresh(tag)
        assert tag.sort_order == 9
        assert tag.is_enabled is False

    @pytest.mark.asyncio
    async def test_usage_count_never_negative(self, db_session):
        tag = Tag(name="t", usage_count=0)
        db_session.add(tag)
        await db_session.flush()

        await TagRepository(db_session).decrement_usage_count(tag.id)
        await db_session.refresh(tag)
        assert tag.usage_count == 0

    @pytest.mark.asyncio
    async def test_public_tag_counts(self, db_session):
        public = await add_passage(db_session, "public")
        other = await add_passage(db_session, "other")
        draft = await add_passage(db_session, "draft", status="draft")
        go, rust, hidden = Tag(name="go"), Tag(name="rust"), Tag(name="hidden", is_enabled=False)
        db_session.add_all([go, rust, hidden])
        await db_session.flush()
        db_session.add_all([
            PassageTag(passage_id=public.id, tag_id=go.id),
            PassageTag(passage_id=other.id, tag_id=go.id),
            PassageTag(passage_id=draft.id, tag_id=rust.id),
            PassageTag(passage_id=public.id, tag_id=hidden.id),
        ])
        await db_session.flush()

        counts = await TagRepository(db_session).get_public_tag_counts()
        assert counts == [{"id": go.id, "name": "go", "count": 2}]


class TestPassageTagRepository:
    """文章标签关联仓储测试"""

    @pytest.mark.asyncio
    async def test_edges(self, db_session):
        first = await add_passage(db_session, "first")
        second = await add_passage(db_session, "second")
        tag = Tag(name="t")
        db_session.add(tag)
        await db_session.flush()

        repo = PassageTagRepository(db_session)
        await repo.create(first.id, tag.id)
        await repo.create(second.id, tag.id)

        assert await repo.get_tag_ids_by_passage_id(first.id) == [tag.id]
        assert await repo.get_passage_ids_by_tag_id(tag.id) == [first.id, second.id]
        assert await repo.count_by_tag_id(tag.id) == 2
        assert await repo.get_tag_names([first.id, 999]) == {first.id: ["t"], 999: []}

        assert await repo.delete_pair(first.id, tag.id) is True
        assert await repo.delete_by_tag_id(tag.id) == 1
        assert await repo.count_by_tag_id(tag.id) == 0

    @pytest.mark.asyncio
    async def test_duplicate_edge_rejected(self, db_session):
        passage = await add_passage(db_session, "p")
        tag = Tag(name="t")
        db_session.add(tag)
        await db_session.flush()

        repo = PassageTagRepository(db_session)
        await repo.create(passage.id, tag.id)
        with pytest.raises(DatabaseException):
            await repo.create(passage.id, tag.id)


def _view(passage_id, ip, date, country="", city="", region=""):
    return ArticleView(
        passage_id=passage_id, ip=ip, view_date=date,
        country=country, city=city, region=region,
        view_time=datetime.strptime(date, "%Y-%m-%d"),
    )


class TestArticleViewRepository:
    """阅读记录仓储测试"""

    @pytest.mark.asyncio
    async def test_record_view(self, db_session):
        view = await ArticleViewRepository(db_session).record_view(1, "8.8.8.8", "x" * 600)

        assert view.view_date == get_beijing_time().strftime("%Y-%m-%d")
        assert len(view.user_agent) == 500
        assert (view.country, view.city, view.region) == ("", "", "")

    @pytest.mark.asyncio
    async def test_aggregates(self, db_session):
        hot = await add_passage(db_session, "hot")
        cold = await add_passage(db_session, "cold")
        await add_passage(db_session, "draft", status="draft")
        today = window_start(0)
        old = window_start(100)
        db_session.add_all([
            _view(hot.id, "1.1.1.1", today, "中国", "北京", "北京市"),
            _view(hot.id, "1.1.1.1", today, "中国", "北京", "北京市"),
            _view(hot.id, "2.2.2.2", today, "美国", "纽约", "纽约州"),
            _view(cold.id, "3.3.3.3", today),
            _view(hot.id, "4.4.4.4", old, "日本", "东京", ""),
        ])
        await db_session.flush()
        repo = ArticleViewRepository(db_session)

        most = await repo.get_most_viewed(limit=10)
        assert [(m["title"], m["view_count"]) for m in most] == [("hot", 4), ("cold", 1)]

        assert await repo.get_view_sources(30) == [
            {"country": "中国", "count": 2},
            {"country": "美国", "count": 1},
        ]
        assert await repo.get_view_trend(30) == [{"date": today, "count": 4}]
        cities = await repo.get_view_by_city(30)
        assert cities[0] == {"city": "北京", "country": "中国", "count": 2}

        by_ip = await repo.get_view_by_ip(30)
        assert by_ip[0]["ip"] == "1.1.1.1"
        assert by_ip[0]["count"] == 2
        assert by_ip[0]["region"] == "北京市"
        assert "4.4.4.4" not in {row["ip"] for row in by_ip}

        stats = await repo.get_article_stats(hot.id, 30)
        assert stats["total_views"] == 3
        assert stats["unique_visitors"] == 2
        assert stats["top_countries"][0] == {"country": "中国", "count": 2}
        assert stats["top_cities"][0] == {"city": "北京", "count": 2}
        assert stats["daily_trend"] == [{"date": today, "count": 3}]

        assert len(await repo.get_article_views(hot.id)) == 4
