"""时间工具：统一对外输出的时间格式与时区。"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from zoneinfo import ZoneInfo

from app.packages.drive.core.config import get_settings


def get_timezone() -> ZoneInfo:
    """返回配置指定的时区信息。"""
    return get_settings().timezone_info


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def expires_after(seconds: int) -> datetime:
    """返回从现在起 ``seconds`` 秒后的 UTC 时间。"""
    return utc_now() + timedelta(seconds=seconds)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """把无时区时间视为 UTC；SQLite 读回的时间不带时区信息。"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_iso(value: Optional[datetime]) -> Optional[str]:
    """将时间转换为带时区的 ISO-8601 字符串（UTC）。"""
    normalized = as_utc(value)
    if normalized is None:
        return None
    return normalized.isoformat()


def format_datetime(value: Optional[datetime]) -> Optional[str]:
    """将时间格式化为配置时区下的 ``YYYY-MM-DD HH:MM:SS`` 字符串。"""
    normalized = as_utc(value)
    if normalized is None:
        return None
    return normalized.astimezone(get_timezone()).strftime("%Y-%m-%d %H:%M:%S")
