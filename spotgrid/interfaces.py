"""
核心接口定义

交易所客户端是外部协作者：实盘（Bitget）和 dry-run（SimExchange）
实现同一个接口，核心逻辑不区分
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from spotgrid.models.grid import ExchangeOrder, OrderSide
from spotgrid.models.market import Balance, Ticker


class IExchangeClient(ABC):
    """
    交易所客户端接口

    实现：
    - SimExchange: 模拟撮合（dry-run / 测试）
    - BitgetClient: 实盘（Bitget 现货，基于 ccxt）

    失败时抛出 spotgrid.exceptions 中的 ExchangeError 子类：
    - ExchangeUnavailable: 传输故障
    - ExchangeRejected: 鉴权/业务拒绝
    - InsufficientFunds / InvalidOrderParams: 订单被语义拒绝
    """

    @abstractmethod
    def get_open_orders(self, symbol: str) -> List[ExchangeOrder]:
        """获取活跃订单"""
        pass

    @abstractmethod
    def place_order(
        self,
        symbol: str,
        side: OrderSide,
        price: float,
        size: float,
    ) -> str:
        """
        下限价单

        Returns:
            exchange_order_id
        """
        pass

    @abstractmethod
    def cancel_order(self, symbol: str, order_ref: str) -> bool:
        """
        撤单

        Returns:
            是否成功
        """
        pass

    @abstractmethod
    def get_ticker(self, symbol: str) -> Ticker:
        """获取行情"""
        pass

    @abstractmethod
    def get_balances(self) -> List[Balance]:
        """获取账户余额"""
        pass

    def get_order_status(self, symbol: str, order_ref: str) -> Optional[str]:
        """
        查询单个订单状态

        可选能力，用于区分"成交"和"外部撤单"。

        Returns:
            "open" | "filled" | "canceled" | ...；None 表示不支持
        """
        return None

    def get_server_time(self) -> Optional[datetime]:
        """
        交易所服务器时间（连通性检查）

        Returns:
            None 表示不支持
        """
        return None
