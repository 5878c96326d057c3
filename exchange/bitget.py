"""Bitget spot client using CCXT."""

import os
from datetime import datetime
from typing import Any, Callable, List, Optional

import ccxt

from spotgrid.exceptions import (
    ExchangeError,
    ExchangeRejected,
    ExchangeUnavailable,
    InsufficientFunds,
    InvalidOrderParams,
)
from spotgrid.interfaces import IExchangeClient
from spotgrid.models.grid import ExchangeOrder, OrderSide
from spotgrid.models.market import Balance, Ticker
from spotgrid.utils.symbols import split_symbol
from spotgrid.utils.timeutils import ms_to_datetime


class BitgetClient(IExchangeClient):
    """Bitget exchange client."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_secret: Optional[str] = None,
        passphrase: Optional[str] = None,
        market_type: str = "spot",
        timeout_ms: int = 10000,
        load_markets: bool = True,
    ):
        """
        Initialize Bitget client.

        Without credentials the client runs in public mode: tickers and
        server time work, private endpoints are rejected by the exchange.

        Parameters
        ----------
        api_key : str, optional
            API key
        api_secret : str, optional
            API secret
        passphrase : str, optional
            API passphrase
        market_type : str
            Market type ("spot", "swap", etc.)
        timeout_ms : int
            Per-request timeout in milliseconds; bounds the duration of a tick
        load_markets : bool
            Load market metadata (precision, limits) on construction
        """
        options = {
            'enableRateLimit': True,
            'timeout': timeout_ms,
            'options': {'defaultType': market_type},
        }
        if api_key and api_secret:
            options.update({
                'apiKey': api_key,
                'secret': api_secret,
                'password': passphrase or '',
            })

        self.exchange = ccxt.bitget(options)
        self.market_type = market_type
        self.has_credentials = bool(api_key and api_secret)

        if load_markets:
            self._call("load_markets", None, self.exchange.load_markets)

    @classmethod
    def from_env(cls, market_type: str = "spot", timeout_ms: int = 10000) -> "BitgetClient":
        """
        Create a client from BITGET_API_KEY / BITGET_API_SECRET / BITGET_PASSPHRASE.

        Missing variables yield a public-mode client.
        """
        return cls(
            api_key=os.environ.get("BITGET_API_KEY"),
            api_secret=os.environ.get("BITGET_API_SECRET"),
            passphrase=os.environ.get("BITGET_PASSPHRASE"),
            market_type=market_type,
            timeout_ms=timeout_ms,
        )

    def get_open_orders(self, symbol: str) -> List[ExchangeOrder]:
        """
        Fetch open orders.

        Parameters
        ----------
        symbol : str
            Trading symbol (e.g., "BTCUSDT")

        Returns
        -------
        list of ExchangeOrder
            Orders currently resting on the book
        """
        ccxt_symbol = self._convert_symbol(symbol)
        orders = self._call("fetch_open_orders", symbol, self.exchange.fetch_open_orders, ccxt_symbol)

        return [
            ExchangeOrder(
                order_ref=str(order.get('id', '')),
                symbol=symbol,
                side=OrderSide(str(order.get('side', 'buy')).lower()),
                price=float(order.get('price') or 0),
                size=float(order.get('amount') or 0),
                status=order.get('status') or 'open',
            )
            for order in orders
        ]

    def place_order(
        self,
        symbol: str,
        side: OrderSide,
        price: float,
        size: float,
    ) -> str:
        """
        Place limit order.

        Price and size are rounded to the market's precision before sending.

        Parameters
        ----------
        symbol : str
            Trading symbol
        side : OrderSide
            Order side
        price : float
            Order price
        size : float
            Order quantity (base asset)

        Returns
        -------
        str
            Exchange order id
        """
        ccxt_symbol = self._convert_symbol(symbol)

        amount = float(self._call(
            "amount_to_precision", symbol, self.exchange.amount_to_precision, ccxt_symbol, size,
        ))
        limit_price = float(self._call(
            "price_to_precision", symbol, self.exchange.price_to_precision, ccxt_symbol, price,
        ))

        if amount <= 0:
            raise InvalidOrderParams(
                f"Order size {size} rounds to zero for {symbol}", symbol=symbol,
            )

        order = self._call(
            "create_order",
            symbol,
            self.exchange.create_order,
            ccxt_symbol,
            'limit',
            side.value,
            amount,
            limit_price,
        )

        order_id = order.get('id') if order else None
        if not order_id:
            raise ExchangeRejected(f"No order id returned for {side.value} order", symbol=symbol)

        return str(order_id)

    def cancel_order(self, symbol: str, order_ref: str) -> bool:
        """
        Cancel order.

        Returns False when the exchange rejects the cancel (e.g. the order
        no longer exists); transport failures raise ExchangeUnavailable.
        """
        ccxt_symbol = self._convert_symbol(symbol)
        try:
            self._call("cancel_order", symbol, self.exchange.cancel_order, order_ref, ccxt_symbol)
        except ExchangeRejected as e:
            print(f"[Bitget] Failed to cancel order {order_ref}: {e}")
            return False
        return True

    def get_order_status(self, symbol: str, order_ref: str) -> Optional[str]:
        """
        Get order status.

        Returns
        -------
        str or None
            CCXT unified status ("open", "closed", "canceled", "expired",
            "rejected"); None when the exchange no longer knows the order
        """
        ccxt_symbol = self._convert_symbol(symbol)
        try:
            order = self.exchange.fetch_order(order_ref, ccxt_symbol)
        except ccxt.OrderNotFound:
            return None
        except ccxt.BaseError as e:
            raise self._map_error(e, symbol) from e

        status = order.get('status')
        return str(status).lower() if status else None

    def get_ticker(self, symbol: str) -> Ticker:
        """Fetch 24h ticker."""
        ccxt_symbol = self._convert_symbol(symbol)
        ticker = self._call("fetch_ticker", symbol, self.exchange.fetch_ticker, ccxt_symbol)

        timestamp = ticker.get('timestamp')
        return Ticker(
            symbol=symbol,
            last=float(ticker.get('last') or 0),
            bid=float(ticker.get('bid') or 0),
            ask=float(ticker.get('ask') or 0),
            high_24h=float(ticker.get('high') or 0),
            low_24h=float(ticker.get('low') or 0),
            change_24h=float(ticker.get('percentage') or 0),
            base_volume=float(ticker.get('baseVolume') or 0),
            timestamp=ms_to_datetime(timestamp) if timestamp else None,
        )

    def get_balances(self) -> List[Balance]:
        """Fetch non-zero account balances."""
        balance = self._call("fetch_balance", None, self.exchange.fetch_balance)

        free = balance.get('free') or {}
        used = balance.get('used') or {}
        total = balance.get('total') or {}

        balances = []
        for coin in sorted(total):
            if not total.get(coin):
                continue
            balances.append(Balance(
                coin=coin,
                available=float(free.get(coin) or 0),
                frozen=float(used.get(coin) or 0),
            ))
        return balances

    def get_server_time(self) -> Optional[datetime]:
        """Fetch exchange server time."""
        ms = self._call("fetch_time", None, self.exchange.fetch_time)
        return ms_to_datetime(ms) if ms else None

    def get_last_price(self, symbol: str) -> float:
        """Last traded price (price source for dry-run mode)."""
        return self.get_ticker(symbol).last

    def _call(self, action: str, symbol: Optional[str], fn: Callable[..., Any], *args: Any) -> Any:
        """Invoke a CCXT method, translating its errors."""
        try:
            return fn(*args)
        except ccxt.BaseError as e:
            raise self._map_error(e, symbol, action) from e

    @staticmethod
    def _map_error(
        error: Exception,
        symbol: Optional[str] = None,
        action: str = "request",
    ) -> ExchangeError:
        """
        Map CCXT exceptions onto the grid error taxonomy.

        InsufficientFunds and InvalidOrder are checked before the generic
        ExchangeError they derive from.
        """
        message = f"{action}: {error}"

        if isinstance(error, ccxt.InsufficientFunds):
            return InsufficientFunds(message, symbol=symbol)
        if isinstance(error, ccxt.InvalidOrder):
            return InvalidOrderParams(message, symbol=symbol)
        if isinstance(error, ccxt.NetworkError):
            return ExchangeUnavailable(message, symbol=symbol)
        return ExchangeRejected(message, symbol=symbol)

    def _convert_symbol(self, symbol: str) -> str:
        """
        Convert symbol format for spot or futures.

        For futures (swap), converts BTCUSDT -> BTC/USDT:USDT
        For spot, converts BTCUSDT -> BTC/USDT

        Raises
        ------
        InvalidOrderParams
            If the quote asset cannot be recognised.
        """
        if '/' in symbol:
            return symbol

        try:
            base, quote = split_symbol(symbol)
        except ValueError as e:
            raise InvalidOrderParams(str(e), symbol=symbol) from e

        if self.market_type == 'swap':
            return f"{base}/{quote}:{quote}"
        return f"{base}/{quote}"
