"""
执行模块

包含:
- reconciler: 对账引擎（成交检测、补偿订单、撤单）
- sim_exchange: 模拟交易所（dry-run / 测试）
"""

from spotgrid.execution.reconciler import ReconciliationEngine
from spotgrid.execution.sim_exchange import SimExchange

__all__ = [
    "ReconciliationEngine",
    "SimExchange",
]
