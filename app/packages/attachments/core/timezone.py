"""时间工具：所有写库与展示的时间都按配置时区处理。"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from app.packages.attachments.core.config import get_settings

DISPLAY_FORMAT = "%Y-%m-%d %H:%M:%S"


def now() -> datetime:
    return datetime.now(get_settings().timezone_info)


def to_local(value: Optional[datetime]) -> Optional[datetime]:
    """转换到配置时区；SQLite 读回的无时区时间按配置时区解释。"""
    if value is None:
        return None
    tz = get_settings().timezone_info
    return value.replace(tzinfo=tz) if value.tzinfo is None else value.astimezone(tz)


def format_datetime(value: Optional[datetime]) -> Optional[str]:
    localized = to_local(value)
    return localized.strftime(DISPLAY_FORMAT) if localized else None


def isoformat_now() -> str:
    """带时区偏移的 ISO-8601 时间戳，精确到秒。"""
    return now().isoformat(timespec="seconds")


def month_partition(value: Optional[datetime] = None) -> str:
    """对象存储 key 的年月分段，如 ``2024/05``。"""
    stamp = to_local(value) or now()
    return f"{stamp:%Y}/{stamp:%m}"
