"""
配置数据结构定义
"""

from dataclasses import dataclass, field


# 网格价格精度与比较容差
PRICE_DECIMALS = 6
PRICE_EPSILON = 1e-6


@dataclass(frozen=True)
class GridConfiguration:
    """
    网格配置

    运行期间不可变，只在边界处校验一次
    """
    symbol: str = "BTCUSDT"
    grid_count: int = 10
    upper_price: float = 0.0
    lower_price: float = 0.0
    investment: float = 0.0          # quote 计价（USDT）
    profit_per_grid: float = 1.0     # 百分比，1.0 = 1%


@dataclass(frozen=True)
class TradingLimits:
    """交易限制"""
    min_investment: float = 5.0        # $5 最小投入
    min_order_value: float = 2.0       # $2 最小订单价值
    max_grid_count: int = 50
    min_grid_count: int = 3
    min_profit_per_grid: float = 0.1   # 0.1%
    max_profit_per_grid: float = 10.0  # 10%


TRADING_LIMITS = TradingLimits()


@dataclass
class RuntimeConfig:
    """运行配置"""
    poll_interval_seconds: float = 5.0
    health_check_interval_seconds: float = 30.0
    api_fault_max_consecutive: int = 3
    price_epsilon: float = PRICE_EPSILON
    verify_vanished_orders: bool = True
    output_dir: str = "output"


@dataclass
class ExchangeConfig:
    """交易所配置"""
    exchange: str = "bitget"
    market_type: str = "spot"
    dry_run: bool = False
    request_timeout_ms: int = 10000
    # dry-run 模式下模拟账户的初始余额
    sim_quote_balance: float = 1000.0


@dataclass
class AppConfig:
    """
    完整配置

    所有配置都必须参数化，不能写死在代码中
    """
    grid: GridConfiguration = field(default_factory=GridConfiguration)
    limits: TradingLimits = field(default_factory=TradingLimits)
    runtime: RuntimeConfig = field(default_factory=RuntimeConfig)
    exchange: ExchangeConfig = field(default_factory=ExchangeConfig)
