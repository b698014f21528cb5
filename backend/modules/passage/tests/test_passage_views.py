"""
文章阅读记录测试
"""

import asyncio

import pytest
from sqlalchemy import select

from core.config import get_settings
from core.events import event_bus, Events
from modules.passage.passage_models import ArticleView
from modules.passage.passage_views import ViewRecorder


class FakeGeo:
    """固定返回值的地理位置查询"""

    def __init__(self, location=("中国", "上海", "上海市")):
        self.location = location
        self.calls = []

    def lookup(self, ip):
        self.calls.append(ip)
        return self.location


async def _views(session_factory):
    async with session_factory() as session:
        return (await session.execute(select(ArticleView))).scalars().all()


class TestViewRecorder:
    """阅读记录器测试"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("ip", ["127.0.0.1", "192.168.1.5", "::1", "unknown"])
    async def test_local_address_skipped(self, workspace, session_factory, ip):
        recorder = ViewRecorder()
        assert recorder.submit(1, ip, "ua") is None
        await recorder.drain()
        assert await _views(session_factory) == []

    @pytest.mark.asyncio
    async def test_public_address_without_geo_db(self, workspace, session_factory):
        """GeoIP 数据库缺失时仍写入记录，地理字段为空"""
        recorder = ViewRecorder()
        task = recorder.submit(1, "8.8.8.8", "Mozilla/5.0")
        assert task is not None
        await recorder.drain(timeout=5)

        views = await _views(session_factory)
        assert len(views) == 1
        assert views[0].ip == "8.8.8.8"
        assert views[0].user_agent == "Mozilla/5.0"
        assert (views[0].country, views[0].city, views[0].region) == ("", "", "")
        assert recorder.pending == 0

    @pytest.mark.asyncio
    async def test_geo_fields_written(self, workspace, session_factory):
        geo = FakeGeo()
        recorder = ViewRecorder(geo=geo)
        recorder.submit(3, "203.0.113.9", "")
        await recorder.drain(timeout=5)

        views = await _views(session_factory)
        assert (views[0].country, views[0].city, views[0].region) == ("中国", "上海", "上海市")
        assert geo.calls == ["203.0.113.9"]

    @pytest.mark.asyncio
    async def test_disabled(self, workspace, session_factory, monkeypatch):
        monkeypatch.setattr(get_settings(), "view_recording_enabled", False)
        assert ViewRecorder().submit(1, "8.8.8.8", "ua") is None

    @pytest.mark.asyncio
    async def test_failure_is_logged_not_raised(self, workspace, session_factory):
        class BrokenGeo:
            def lookup(self, ip):
                raise RuntimeError("geo down")

        assert await ViewRecorder(geo=BrokenGeo()).record(1, "8.8.8.8", "ua") is False
        assert await _views(session_factory) == []

    @pytest.mark.asyncio
    async def test_viewed_event(self, workspace, session_factory):
        received = []
        event_bus.subscribe(Events.PASSAGE_VIEWED, received.append)

        assert await ViewRecorder(geo=FakeGeo()).record(5, "8.8.4.4", "ua") is True
        await asyncio.sleep(0.01)

        assert received[0].data == {"passage_id": 5, "ip": "8.8.4.4", "city": "上海"}
