"""
配置模块

包含:
- schema: 配置数据结构
- loader: 配置加载
- validator: 配置校验与网格指标
"""

from spotgrid.config.schema import (
    AppConfig,
    ExchangeConfig,
    GridConfiguration,
    RuntimeConfig,
    TradingLimits,
    TRADING_LIMITS,
)
from spotgrid.config.loader import load_config, parse_config, compute_config_hash
from spotgrid.config.validator import (
    GridMetrics,
    ValidationResult,
    calculate_grid_metrics,
    validate_grid_config,
    validate_or_raise,
)

__all__ = [
    "AppConfig",
    "ExchangeConfig",
    "GridConfiguration",
    "RuntimeConfig",
    "TradingLimits",
    "TRADING_LIMITS",
    "load_config",
    "parse_config",
    "compute_config_hash",
    "GridMetrics",
    "ValidationResult",
    "calculate_grid_metrics",
    "validate_grid_config",
    "validate_or_raise",
]
