"""
文章阅读记录
请求返回后在独立任务中完成：过滤本地地址 -> 地理位置查询 -> 写入阅读记录
"""

import asyncio
import logging
from typing import Optional, Set

from core import database
from core.config import get_settings
from core.events import event_bus, Events
from utils.geoip import GeoLocator, get_geo_locator
from utils.request import is_local_ip

from .passage_store import ArticleViewRepository

logger = logging.getLogger(__name__)


class ViewRecorder:
    """
    阅读记录器

    只接收 id、ip、user-agent 这类独立数据，不持有请求对象；
    任何失败只记录日志
    """

    def __init__(self, geo: Optional[GeoLocator] = None):
        self._geo = geo
        self._pending: Set[asyncio.Task] = set()

    @property
    def geo(self) -> GeoLocator:
        return self._geo or get_geo_locator()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def submit(self, passage_id: int, ip: str, user_agent: str) -> Optional[asyncio.Task]:
        """提交一次阅读（不等待写入完成），被过滤时返回 None"""
        if not get_settings().view_recording_enabled:
            return None
        if is_local_ip(ip):
            logger.debug(f"跳过本地地址的阅读记录: {ip}")
            return None

        task = asyncio.create_task(self.record(passage_id, ip, user_agent or ""))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def record(self, passage_id: int, ip: str, user_agent: str) -> bool:
        """写入一条阅读记录，成功返回 True"""
        try:
            country, city, region = await asyncio.to_thread(self.geo.lookup, ip)
            async with database.get_db_session() as db:
                await ArticleViewRepository(db).record_view(
                    passage_id, ip, user_agent, country=country, city=city, region=region
                )
        except Exception as e:
            logger.warning(f"记录文章阅读失败 [passage={passage_id}, ip={ip}]: {e}")
            return False

        event_bus.emit(Events.PASSAGE_VIEWED, "passage", {"passage_id": passage_id, "ip": ip, "city": city})
        return True

    async def drain(self, timeout: Optional[float] = None):
        """等待已提交的记录任务完成（关闭服务与测试时使用）"""
        if not self._pending:
            return
        _, pending = await asyncio.wait(list(self._pending), timeout=timeout)
        if pending:
            logger.warning(f"仍有 {len(pending)} 条阅读记录未写入")


view_recorder = ViewRecorder()
