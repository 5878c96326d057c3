"""
运行快照模型

给展示层使用的只读视图，不包含任何可变引用
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

import pandas as pd

from spotgrid.models.grid import LevelSnapshot, LevelState
from spotgrid.models.market import Balance, Ticker
from spotgrid.models.state import RunHealth, RunState


@dataclass
class RunStats:
    """运行统计"""
    active_orders: int = 0
    buy_orders: int = 0
    sell_orders: int = 0
    pending_levels: int = 0
    fills: int = 0
    completed_cycles: int = 0   # sell 成交次数 = 完成的网格循环

    def to_dict(self) -> dict:
        return {
            "active_orders": self.active_orders,
            "buy_orders": self.buy_orders,
            "sell_orders": self.sell_orders,
            "pending_levels": self.pending_levels,
            "fills": self.fills,
            "completed_cycles": self.completed_cycles,
        }


@dataclass
class RunSnapshot:
    """
    完整运行快照

    包含状态、健康度、每个层级（含最近错误）、指标和行情上下文
    """
    timestamp: datetime = field(default_factory=datetime.now)
    session_id: str = ""
    symbol: str = ""
    state: RunState = RunState.STOPPED
    health: RunHealth = RunHealth.OK
    levels: List[LevelSnapshot] = field(default_factory=list)
    metrics: Optional[Dict[str, float]] = None
    ticker: Optional[Ticker] = None
    balances: List[Balance] = field(default_factory=list)
    stats: RunStats = field(default_factory=RunStats)
    consecutive_faults: int = 0
    last_error: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.state.is_active

    def level_errors(self) -> Dict[int, str]:
        """每个层级的最近错误"""
        return {
            level.index: level.last_error
            for level in self.levels
            if level.last_error
        }

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典"""
        return {
            "timestamp": self.timestamp.isoformat(),
            "session_id": self.session_id,
            "symbol": self.symbol,
            "state": self.state.name,
            "health": self.health.name,
            "levels": [level.to_dict() for level in self.levels],
            "metrics": self.metrics,
            "ticker": self.ticker.to_dict() if self.ticker else None,
            "balances": [b.to_dict() for b in self.balances],
            "stats": self.stats.to_dict(),
            "consecutive_faults": self.consecutive_faults,
            "last_error": self.last_error,
        }

    def to_frame(self) -> pd.DataFrame:
        """
        层级表格（按价格升序）

        列: price, fill_state, buy_order_ref, sell_order_ref, order_qty,
            filled_qty, pending_retry, retry_count, last_error
        """
        columns = [
            "index", "price", "fill_state", "buy_order_ref", "sell_order_ref",
            "order_qty", "filled_qty", "pending_retry", "retry_count", "last_error",
        ]
        if not self.levels:
            return pd.DataFrame(columns=columns).set_index("index")

        df = pd.DataFrame([level.to_dict() for level in self.levels], columns=columns)
        df.set_index("index", inplace=True)
        return df

    def count_in_state(self, state: LevelState) -> int:
        return sum(1 for level in self.levels if level.fill_state == state)
