"""
配置校验与网格指标

实现：
- 阻断性检查（全部执行，不短路）
- 非阻断性警告
- 展示用指标（总是可计算，与有效性无关）
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List

import numpy as np

from spotgrid.audit.events import AuditEvent, AuditEventType
from spotgrid.config.schema import (
    GridConfiguration,
    TradingLimits,
    TRADING_LIMITS,
    PRICE_DECIMALS,
    PRICE_EPSILON,
)
from spotgrid.exceptions import InvalidConfiguration
from spotgrid.utils.symbols import split_symbol


# 警告阈值
HIGH_GRID_COUNT_WARNING = 20
LOW_PROFIT_WARNING = 0.5
WIDE_RANGE_WARNING_PCT = 50.0


@dataclass(frozen=True)
class ValidationResult:
    """校验结果"""
    errors: List[str]
    warnings: List[str]

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0


@dataclass(frozen=True)
class GridMetrics:
    """
    网格指标

    四舍五入仅用于展示；引擎内部使用未取整的值
    """
    price_step: float
    order_size: float
    total_potential_profit: float
    price_range: float
    average_price: float

    def to_dict(self) -> Dict[str, float]:
        return {
            "price_step": self.price_step,
            "order_size": self.order_size,
            "total_potential_profit": self.total_potential_profit,
            "price_range": self.price_range,
            "average_price": self.average_price,
        }


def validate_grid_config(
    config: GridConfiguration,
    limits: TradingLimits = TRADING_LIMITS,
) -> ValidationResult:
    """
    校验网格配置

    纯函数：相同输入总是得到相同的 errors/warnings

    Args:
        config: 候选配置
        limits: 交易限制

    Returns:
        ValidationResult
    """
    errors = []
    warnings = []

    # 投入金额
    if config.investment < limits.min_investment:
        errors.append(f"Minimum investment is ${limits.min_investment:g}")

    # 网格数量
    if config.grid_count < limits.min_grid_count:
        errors.append(f"Minimum grid count is {limits.min_grid_count}")

    if config.grid_count > limits.max_grid_count:
        errors.append(f"Maximum grid count is {limits.max_grid_count}")

    # 价格区间
    if config.upper_price <= config.lower_price:
        errors.append("Upper price must be greater than lower price")

    if config.lower_price <= 0:
        errors.append("Lower price must be greater than 0")

    # 取整后相邻层级必须可按价格区分
    if (
        limits.min_grid_count <= config.grid_count <= limits.max_grid_count
        and config.grid_count >= 2
        and config.upper_price > config.lower_price
    ):
        step = (config.upper_price - config.lower_price) / (config.grid_count - 1)
        prices = np.round(
            config.lower_price + np.arange(config.grid_count, dtype=float) * step,
            PRICE_DECIMALS,
        )
        if np.any(np.diff(prices) <= PRICE_EPSILON):
            errors.append(
                f"Price step ({step:g}) is too small; levels must differ by more "
                f"than {PRICE_EPSILON:g} after rounding to {PRICE_DECIMALS} decimals"
            )

    # 交易对
    try:
        split_symbol(config.symbol)
    except ValueError:
        errors.append(f"Unsupported trading pair {config.symbol}")

    # 每格利润
    if config.profit_per_grid < limits.min_profit_per_grid:
        errors.append(f"Minimum profit per grid is {limits.min_profit_per_grid:g}%")

    if config.profit_per_grid > limits.max_profit_per_grid:
        errors.append(f"Maximum profit per grid is {limits.max_profit_per_grid:g}%")

    # 单笔订单价值（grid_count <= 0 已由数量检查报错）
    if config.grid_count > 0:
        order_size = config.investment / config.grid_count
        if order_size < limits.min_order_value:
            errors.append(
                f"Order size (${order_size:.2f}) is below minimum ${limits.min_order_value:g}. "
                "Reduce grid count or increase investment."
            )

    # 警告
    if config.grid_count > HIGH_GRID_COUNT_WARNING:
        warnings.append("High grid count may result in many small orders")

    if config.profit_per_grid < LOW_PROFIT_WARNING:
        warnings.append("Low profit per grid may result in minimal profits after fees")

    if config.lower_price > 0:
        price_range = (config.upper_price - config.lower_price) / config.lower_price * 100
        if price_range > WIDE_RANGE_WARNING_PCT:
            warnings.append(
                "Large price range may require significant price movement to be profitable"
            )

    return ValidationResult(errors=errors, warnings=warnings)


def validate_or_raise(
    config: GridConfiguration,
    limits: TradingLimits = TRADING_LIMITS,
) -> ValidationResult:
    """
    校验配置，失败则抛出异常

    Raises:
        InvalidConfiguration: 配置无效
    """
    result = validate_grid_config(config, limits)

    if not result.is_valid:
        raise InvalidConfiguration(result.errors)

    for warning in result.warnings:
        print(f"[CONFIG WARNING] {warning}")

    return result


def calculate_grid_metrics(config: GridConfiguration) -> GridMetrics:
    """
    计算网格指标

    无论配置是否有效都可以计算；退化输入（grid_count < 2、lower_price <= 0）
    对应的指标返回 0.0
    """
    if config.grid_count >= 2:
        price_step = (config.upper_price - config.lower_price) / (config.grid_count - 1)
    else:
        price_step = 0.0

    order_size = config.investment / config.grid_count if config.grid_count > 0 else 0.0
    total_potential_profit = config.investment * config.profit_per_grid / 100

    if config.lower_price > 0:
        price_range = (config.upper_price - config.lower_price) / config.lower_price * 100
    else:
        price_range = 0.0

    average_price = (config.upper_price + config.lower_price) / 2

    return GridMetrics(
        price_step=round(price_step, 6),
        order_size=round(order_size, 2),
        total_potential_profit=round(total_potential_profit, 2),
        price_range=round(price_range, 2),
        average_price=round(average_price, 2),
    )


def create_invalid_config_event(
    session_id: str,
    timestamp: datetime,
    errors: List[str],
    config_hash: str,
) -> AuditEvent:
    """创建配置无效审计事件"""
    return AuditEvent(
        session_id=session_id,
        timestamp=timestamp,
        event_type=AuditEventType.CONFIG_INVALID,
        reason="Config validation failed",
        config_hash=config_hash,
        details={"errors": errors},
    )
