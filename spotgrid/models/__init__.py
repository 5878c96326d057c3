"""
数据模型模块

包含:
- grid: 网格层级、订单、订单意图
- market: 行情与余额
- state: 运行状态与健康度
- snapshot: 运行快照
"""

from spotgrid.models.grid import (
    OrderSide,
    LevelState,
    GridLevel,
    LevelSnapshot,
    ExchangeOrder,
    IntentAction,
    OrderIntent,
    ActionResult,
    TickReport,
)
from spotgrid.models.market import Ticker, Balance
from spotgrid.models.state import RunState, RunHealth
from spotgrid.models.snapshot import RunSnapshot, RunStats

__all__ = [
    # Grid
    "OrderSide",
    "LevelState",
    "GridLevel",
    "LevelSnapshot",
    "ExchangeOrder",
    "IntentAction",
    "OrderIntent",
    "ActionResult",
    "TickReport",
    # Market
    "Ticker",
    "Balance",
    # State
    "RunState",
    "RunHealth",
    # Snapshot
    "RunSnapshot",
    "RunStats",
]
