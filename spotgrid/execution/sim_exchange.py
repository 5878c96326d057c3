"""
模拟交易所 (SimExchange)

dry-run 和测试使用的交易所客户端:
- 限价单挂在内存订单簿，价格穿越时整单成交（无部分成交、无滑点）
- 下单时冻结余额，成交/撤单时结算
- 可注入故障：下单失败、撤单失败、整体不可达
- 可模拟外部撤单和手动成交
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional

from spotgrid.exceptions import (
    ExchangeError,
    ExchangeUnavailable,
    InsufficientFunds,
    InvalidOrderParams,
)
from spotgrid.interfaces import IExchangeClient
from spotgrid.models.grid import ExchangeOrder, OrderSide
from spotgrid.models.market import Balance, Ticker
from spotgrid.utils.symbols import split_symbol
from spotgrid.utils.timeutils import utc_now


# 数量比较容差
QTY_EPSILON = 1e-9


@dataclass
class SimExchange(IExchangeClient):
    """
    模拟交易所

    price_source: 可选的价格回调 symbol -> price；设置后每次轮询活跃订单都会
    按最新价格撮合穿越的订单（dry-run 用实盘行情驱动）
    """
    quote_balance: float = 1000.0
    quote_asset: str = "USDT"
    price_source: Optional[Callable[[str], float]] = None
    supports_order_status: bool = True

    # 内部状态
    _balances: Dict[str, Balance] = field(default_factory=dict)
    _open_orders: Dict[str, ExchangeOrder] = field(default_factory=dict)
    _order_status: Dict[str, str] = field(default_factory=dict)
    _last_prices: Dict[str, float] = field(default_factory=dict)
    _next_id: int = 1
    _place_count: int = 0

    # 故障注入
    _place_failures: List[ExchangeError] = field(default_factory=list)
    _cancel_failures: List[ExchangeError] = field(default_factory=list)
    _unavailable: bool = False

    def __post_init__(self):
        self._lock = threading.RLock()
        self._balances[self.quote_asset] = Balance(coin=self.quote_asset, available=self.quote_balance)

    # ------------------------------------------------------------------
    # IExchangeClient
    # ------------------------------------------------------------------

    def get_open_orders(self, symbol: str) -> List[ExchangeOrder]:
        """获取活跃订单（先按最新价格撮合）"""
        with self._lock:
            self._check_available()

            if self.price_source is not None:
                self.set_price(symbol, self.price_source(symbol))

            return [
                ExchangeOrder(
                    order_ref=order.order_ref,
                    symbol=order.symbol,
                    side=order.side,
                    price=order.price,
                    size=order.size,
                    status=order.status,
                )
                for order in self._open_orders.values()
                if order.symbol == symbol
            ]

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
            exchange_order_id（sim_N）

        Raises:
            InvalidOrderParams: 价格或数量不为正，或交易对无法识别
            InsufficientFunds: 可用余额不足
        """
        with self._lock:
            self._check_available()

            if self._place_failures:
                raise self._place_failures.pop(0)

            if price <= 0 or size <= 0:
                raise InvalidOrderParams(f"Invalid order: price={price}, size={size}", symbol=symbol)

            try:
                base, quote = split_symbol(symbol)
            except ValueError as e:
                raise InvalidOrderParams(str(e), symbol=symbol) from e

            # 冻结余额
            if side == OrderSide.BUY:
                self._freeze(quote, price * size, symbol)
            else:
                self._freeze(base, size, symbol)

            order_ref = f"sim_{self._next_id}"
            self._next_id += 1
            self._place_count += 1

            self._open_orders[order_ref] = ExchangeOrder(
                order_ref=order_ref,
                symbol=symbol,
                side=side,
                price=price,
                size=size,
                status="open",
            )
            self._order_status[order_ref] = "open"

            return order_ref

    def cancel_order(self, symbol: str, order_ref: str) -> bool:
        """
        撤单

        Returns:
            是否成功；订单不存在返回 False
        """
        with self._lock:
            self._check_available()

            if self._cancel_failures:
                raise self._cancel_failures.pop(0)

            order = self._open_orders.get(order_ref)
            if order is None or order.symbol != symbol:
                return False

            self._close_order(order, "canceled")
            return True

    def get_ticker(self, symbol: str) -> Ticker:
        """获取行情"""
        with self._lock:
            self._check_available()

            if self.price_source is not None:
                self._last_prices[symbol] = self.price_source(symbol)

            last = self._last_prices.get(symbol)
            if last is None:
                raise ExchangeUnavailable(f"No price available for {symbol}", symbol=symbol)

            return Ticker(
                symbol=symbol,
                last=last,
                bid=last,
                ask=last,
                timestamp=utc_now(),
            )

    def get_balances(self) -> List[Balance]:
        """获取账户余额"""
        with self._lock:
            self._check_available()
            return [
                Balance(coin=b.coin, available=b.available, frozen=b.frozen)
                for b in self._balances.values()
            ]

    def get_order_status(self, symbol: str, order_ref: str) -> Optional[str]:
        """查询单个订单状态"""
        with self._lock:
            self._check_available()
            if not self.supports_order_status:
                return None
            return self._order_status.get(order_ref)

    def get_server_time(self) -> Optional[datetime]:
        with self._lock:
            self._check_available()
            return utc_now()

    # ------------------------------------------------------------------
    # 撮合
    # ------------------------------------------------------------------

    def set_price(self, symbol: str, price: float) -> List[str]:
        """
        更新价格并撮合穿越的订单

        buy: price <= 限价；sell: price >= 限价

        Returns:
            成交的订单 ID
        """
        with self._lock:
            self._last_prices[symbol] = price

            crossed = [
                order for order in self._open_orders.values()
                if order.symbol == symbol and (
                    (order.side == OrderSide.BUY and price <= order.price)
                    or (order.side == OrderSide.SELL and price >= order.price)
                )
            ]

            for order in crossed:
                self._close_order(order, "filled")

            return [order.order_ref for order in crossed]

    def fill_order(self, order_ref: str) -> None:
        """手动成交一个订单"""
        with self._lock:
            order = self._open_orders.get(order_ref)
            if order is None:
                raise KeyError(f"Unknown open order {order_ref}")
            self._close_order(order, "filled")

    def cancel_externally(self, order_ref: str) -> None:
        """模拟在引擎之外撤单（例如用户在交易所页面操作）"""
        with self._lock:
            order = self._open_orders.get(order_ref)
            if order is None:
                raise KeyError(f"Unknown open order {order_ref}")
            self._close_order(order, "canceled")

    # ------------------------------------------------------------------
    # 故障注入
    # ------------------------------------------------------------------

    def fail_next_place(self, error: ExchangeError, count: int = 1) -> None:
        """接下来 count 次下单抛出 error"""
        with self._lock:
            self._place_failures.extend([error] * count)

    def fail_next_cancel(self, error: ExchangeError, count: int = 1) -> None:
        """接下来 count 次撤单抛出 error"""
        with self._lock:
            self._cancel_failures.extend([error] * count)

    def set_unavailable(self, unavailable: bool = True) -> None:
        """模拟交易所整体不可达"""
        with self._lock:
            self._unavailable = unavailable

    # ------------------------------------------------------------------
    # 查询
    # ------------------------------------------------------------------

    @property
    def place_count(self) -> int:
        """累计成功下单次数"""
        return self._place_count

    def balance(self, coin: str) -> Balance:
        with self._lock:
            return self._balances.get(coin.upper(), Balance(coin=coin.upper()))

    # ------------------------------------------------------------------
    # 内部
    # ------------------------------------------------------------------

    def _check_available(self) -> None:
        if self._unavailable:
            raise ExchangeUnavailable("Simulated exchange is unavailable")

    def _account(self, coin: str) -> Balance:
        if coin not in self._balances:
            self._balances[coin] = Balance(coin=coin)
        return self._balances[coin]

    def _freeze(self, coin: str, amount: float, symbol: str) -> None:
        account = self._account(coin)
        if amount > account.available + QTY_EPSILON:
            raise InsufficientFunds(
                f"Insufficient {coin}: need {amount:.8f}, available {account.available:.8f}",
                symbol=symbol,
            )
        account.available -= amount
        account.frozen += amount

    def _close_order(self, order: ExchangeOrder, status: str) -> None:
        """结算订单并移出订单簿"""
        base, quote = split_symbol(order.symbol)
        notional = order.price * order.size

        if order.side == OrderSide.BUY:
            quote_account = self._account(quote)
            quote_account.frozen = max(quote_account.frozen - notional, 0.0)
            if status == "filled":
                self._account(base).available += order.size
            else:
                quote_account.available += notional
        else:
            base_account = self._account(base)
            base_account.frozen = max(base_account.frozen - order.size, 0.0)
            if status == "filled":
                self._account(quote).available += notional
            else:
                base_account.available += order.size

        order.status = status
        self._order_status[order.order_ref] = status
        del self._open_orders[order.order_ref]
