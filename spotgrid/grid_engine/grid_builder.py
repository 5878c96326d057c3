"""
网格布局生成

实现:
- 等差网格: price_i = lower + i * step, step = (upper - lower) / (grid_count - 1)
- 价格取 6 位小数（布局固定后不再变化）
- 订单数量与配对价格（未取整，交易所客户端负责精度）
"""

from typing import List

import numpy as np

from spotgrid.config.schema import GridConfiguration, PRICE_DECIMALS, PRICE_EPSILON
from spotgrid.exceptions import InvalidConfiguration
from spotgrid.models.grid import GridLevel


def compute_price_step(config: GridConfiguration) -> float:
    """
    网格间距（未取整）

    Raises:
        InvalidConfiguration: grid_count < 2
    """
    if config.grid_count < 2:
        raise InvalidConfiguration([f"Grid count must be at least 2, got {config.grid_count}"])
    return (config.upper_price - config.lower_price) / (config.grid_count - 1)


def compute_order_size(config: GridConfiguration) -> float:
    """每层订单价值（quote，未取整）"""
    if config.grid_count <= 0:
        raise InvalidConfiguration([f"Grid count must be positive, got {config.grid_count}"])
    return config.investment / config.grid_count


def order_qty(order_size: float, price: float) -> float:
    """把 quote 价值换算成 base 数量"""
    if price <= 0:
        raise InvalidConfiguration([f"Order price must be positive, got {price}"])
    return order_size / price


def paired_sell_price(buy_price: float, profit_per_grid: float) -> float:
    """
    buy 成交后的配对 sell 价格

    sell_price = buy_price * (1 + profit_per_grid / 100)
    """
    return buy_price * (1 + profit_per_grid / 100)


def build_grid_layout(config: GridConfiguration) -> List[GridLevel]:
    """
    生成网格层级

    确定性、无副作用。上游校验保证 grid_count >= 3，这里仍然防御性检查。

    Args:
        config: 已校验的网格配置

    Returns:
        按价格升序排列的 grid_count 个层级

    Raises:
        InvalidConfiguration: grid_count < 2、upper_price <= lower_price 或取整后间距过小
    """
    step = compute_price_step(config)

    if config.upper_price <= config.lower_price:
        raise InvalidConfiguration([
            f"Upper price ({config.upper_price}) must be greater than "
            f"lower price ({config.lower_price})"
        ])

    indices = np.arange(config.grid_count, dtype=float)
    prices = np.round(config.lower_price + indices * step, PRICE_DECIMALS)

    # 取整后相邻价格的间距必须超过比较容差，否则按价格无法区分层级
    if np.any(np.diff(prices) <= PRICE_EPSILON):
        raise InvalidConfiguration([
            f"Price step ({step}) is too small for {PRICE_DECIMALS} decimal places"
        ])

    return [
        GridLevel(index=i, price=float(price))
        for i, price in enumerate(prices.tolist())
    ]
