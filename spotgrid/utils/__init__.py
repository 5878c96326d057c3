"""
工具模块
"""

from spotgrid.utils.types import SessionId, ConfigHash
from spotgrid.utils.timeutils import generate_session_id, utc_now, ms_to_datetime
from spotgrid.utils.symbols import split_symbol

__all__ = [
    "SessionId",
    "ConfigHash",
    "generate_session_id",
    "utc_now",
    "ms_to_datetime",
    "split_symbol",
]
