"""
IP 地理位置查询
基于 MaxMind GeoLite2-City 数据库，数据库缺失时返回空字符串
"""

import logging
import threading
from pathlib import Path
from typing import Iterable, Optional, Tuple

import geoip2.database
import geoip2.errors
from maxminddb.errors import InvalidDatabaseError

logger = logging.getLogger(__name__)

Location = Tuple[str, str, str]
EMPTY_LOCATION: Location = ("", "", "")


def _pick_name(names: Optional[dict]) -> str:
    """优先中文名称，其次英文"""
    if not names:
        return ""
    return names.get("zh-CN") or names.get("en") or ""


class GeoLocator:
    """GeoLite2 查询器（延迟打开数据库）"""

    def __init__(self, search_paths: Iterable[Path]):
        self.search_paths = [Path(p) for p in search_paths]
        self._reader: Optional[geoip2.database.Reader] = None
        self._opened = False
        self._lock = threading.Lock()

    def _open(self) -> Optional[geoip2.database.Reader]:
        with self._lock:
            if self._opened:
                return self._reader
            self._opened = True
            for path in self.search_paths:
                if not path.is_file():
                    continue
                try:
                    self._reader = geoip2.database.Reader(str(path))
                    logger.info(f"GeoIP 数据库已加载: {path}")
                    break
                except (OSError, InvalidDatabaseError) as e:
                    logger.warning(f"GeoIP 数据库加载失败 {path}: {e}")
            if self._reader is None:
                logger.info("未找到 GeoIP 数据库，阅读记录将不包含地理位置")
            return self._reader

    @property
    def available(self) -> bool:
        return self._open() is not None

    def lookup(self, ip: str) -> Location:
        """
        查询 IP 所在地

        Returns:
            (国家, 城市, 省份/地区)，无法查询时均为空字符串
        """
        reader = self._open()
        if reader is None:
            return EMPTY_LOCATION
        try:
            record = reader.city(ip)
        except (ValueError, geoip2.errors.AddressNotFoundError) as e:
            logger.debug(f"GeoIP 查询无结果 {ip}: {e}")
            return EMPTY_LOCATION

        region = ""
        if record.subdivisions:
            region = _pick_name(record.subdivisions[0].names)
        return _pick_name(record.country.names), _pick_name(record.city.names), region

    def close(self):
        with self._lock:
            if self._reader is not None:
                self._reader.close()
            self._reader = None
            self._opened = False


_locator: Optional[GeoLocator] = None


def get_geo_locator() -> GeoLocator:
    """获取全局查询器"""
    global _locator
    if _locator is None:
        from core.config import get_settings
        _locator = GeoLocator(get_settings().geoip_search_paths)
    return _locator


def reset_geo_locator():
    """关闭并重置查询器（关闭服务或配置变更后）"""
    global _locator
    if _locator is not None:
        _locator.close()
    _locator = None
