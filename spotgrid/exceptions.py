"""
错误分类

- InvalidConfiguration: 配置校验失败，永远不会进入引擎
- ExchangeUnavailable: 网络/传输故障（瞬时，下一个 tick 重试）
- ExchangeRejected / InvalidOrderParams / InsufficientFunds: 交易所拒绝（按层级记录，下一个 tick 重试）
- StateInconsistency: 本地状态与交易所不一致
"""

from typing import List, Optional


class GridError(Exception):
    """所有网格错误的基类"""


class InvalidConfiguration(GridError):
    """配置无效"""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__(f"Invalid grid configuration: {self.errors}")


class ExchangeError(GridError):
    """交易所客户端错误基类"""

    def __init__(self, message: str, symbol: Optional[str] = None):
        self.symbol = symbol
        super().__init__(message)


class ExchangeUnavailable(ExchangeError):
    """交易所不可达（超时、网络、限流）"""


class ExchangeRejected(ExchangeError):
    """交易所拒绝请求（鉴权、权限、业务错误）"""


class InvalidOrderParams(ExchangeRejected):
    """订单参数无效（精度、最小下单量等）"""


class InsufficientFunds(ExchangeRejected):
    """余额不足"""


class StateInconsistency(GridError):
    """
    状态不一致

    例如：检测到成交的层级没有记录对应的订单 ID，
    或订单在引擎之外被撤销
    """

    def __init__(self, message: str, level_index: Optional[int] = None, price: Optional[float] = None):
        self.level_index = level_index
        self.price = price
        super().__init__(message)
