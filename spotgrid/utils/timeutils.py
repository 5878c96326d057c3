"""
时间工具函数
"""

from datetime import datetime, timezone

from spotgrid.utils.types import SessionId


def generate_session_id(timestamp: datetime = None) -> SessionId:
    """
    生成会话 ID
    
    格式: s{YYYYMMDD}_{HHmmss}
    示例: s20250629_143000
    """
    if timestamp is None:
        timestamp = datetime.now()
    return SessionId(f"s{timestamp.strftime('%Y%m%d_%H%M%S')}")


def utc_now() -> datetime:
    """当前 UTC 时间"""
    return datetime.now(timezone.utc)


def ms_to_datetime(ms: int) -> datetime:
    """毫秒时间戳转 UTC datetime"""
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)
