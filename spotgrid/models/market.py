"""
行情与账户模型

只读上下文，用于展示，不影响状态机正确性
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class Ticker:
    """行情快照"""
    symbol: str
    last: float
    bid: float = 0.0
    ask: float = 0.0
    high_24h: float = 0.0
    low_24h: float = 0.0
    change_24h: float = 0.0
    base_volume: float = 0.0
    timestamp: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "last": self.last,
            "bid": self.bid,
            "ask": self.ask,
            "high_24h": self.high_24h,
            "low_24h": self.low_24h,
            "change_24h": self.change_24h,
            "base_volume": self.base_volume,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }


@dataclass
class Balance:
    """单币种余额"""
    coin: str
    available: float = 0.0
    frozen: float = 0.0

    @property
    def total(self) -> float:
        return self.available + self.frozen

    def to_dict(self) -> dict:
        return {
            "coin": self.coin,
            "available": self.available,
            "frozen": self.frozen,
            "total": self.total,
        }
