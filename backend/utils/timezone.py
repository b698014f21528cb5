# -*- coding: utf-8 -*-
"""
时区工具模块
数据库统一存储 UTC（不带时区信息），展示与日期分区使用东八区（北京时间）
"""

from datetime import datetime, timezone, timedelta
from typing import Optional

# 东八区时区对象
BEIJING_TZ = timezone(timedelta(hours=8))


def get_beijing_time() -> datetime:
    """
    获取当前北京时间（东八区）

    Returns:
        datetime: 带有东八区时区信息的当前时间
    """
    return datetime.now(BEIJING_TZ)


def utc_now() -> datetime:
    """当前 UTC 时间（不带时区信息，用于入库）"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def utc_to_beijing(dt: Optional[datetime]) -> Optional[datetime]:
    """
    将UTC时间转换为北京时间

    Args:
        dt: UTC时间对象，无时区信息时视为UTC

    Returns:
        datetime: 北京时间
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(BEIJING_TZ)


def to_storage_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    转换为入库用的 UTC 时间（去掉时区信息）

    无时区信息的时间视为北京时间
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=BEIJING_TZ)

    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    解析前端提交的时间字符串

    支持 RFC3339（含 Z 或偏移）、"YYYY-MM-DD HH:MM:SS"、"YYYY-MM-DD"
    空字符串返回 None，格式错误抛出 ValueError
    """
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


def format_date(dt: Optional[datetime]) -> str:
    """UTC 存储时间 -> 北京日期 YYYY-MM-DD"""
    if dt is None:
        return ""
    return utc_to_beijing(dt).strftime("%Y-%m-%d")


def format_utc(dt: Optional[datetime]) -> str:
    """UTC 存储时间 -> YYYY-MM-DD HH:MM:SS（不做时区转换）"""
    if dt is None:
        return ""
    return dt.strftime("%Y-%m-%d %H:%M:%S")

