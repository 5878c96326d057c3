"""
网格引擎模块

包含:
- grid_builder: 网格布局生成
- level_store: 层级存储
"""

from spotgrid.grid_engine.grid_builder import (
    build_grid_layout,
    compute_order_size,
    compute_price_step,
    order_qty,
    paired_sell_price,
)
from spotgrid.grid_engine.level_store import GridLevelStore

__all__ = [
    "build_grid_layout",
    "compute_order_size",
    "compute_price_step",
    "order_qty",
    "paired_sell_price",
    "GridLevelStore",
]
