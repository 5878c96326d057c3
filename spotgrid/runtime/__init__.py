"""
运行时模块

包含:
- controller: 策略生命周期控制器
- event_loop: 轮询循环
"""

from spotgrid.runtime.controller import StrategyController, StrategyRun, StopReport
from spotgrid.runtime.event_loop import PollingLoop

__all__ = [
    "StrategyController",
    "StrategyRun",
    "StopReport",
    "PollingLoop",
]
