"""
Unit tests for the Bitget client.

CCXT is mocked; only the translation between CCXT and the grid
interfaces is exercised.
"""
from unittest.mock import MagicMock, patch

import ccxt
import pytest

from exchange.bitget import BitgetClient
from spotgrid.exceptions import (
    ExchangeRejected,
    ExchangeUnavailable,
    InsufficientFunds,
    InvalidOrderParams,
)
from spotgrid.models.grid import OrderSide


@pytest.fixture
def mock_exchange():
    with patch("exchange.bitget.ccxt.bitget") as factory:
        exchange = MagicMock()
        exchange.amount_to_precision.side_effect = lambda symbol, amount: f"{amount:.6f}"
        exchange.price_to_precision.side_effect = lambda symbol, price: f"{price:.2f}"
        factory.return_value = exchange
        yield factory


@pytest.fixture
def client(mock_exchange):
    return BitgetClient("key", "secret", "pass", market_type="spot", timeout_ms=5000)


class TestConstruction:

    def test_credentials_and_timeout_passed(self, mock_exchange, client):
        options = mock_exchange.call_args[0][0]

        assert options["apiKey"] == "key"
        assert options["secret"] == "secret"
        assert options["password"] == "pass"
        assert options["timeout"] == 5000
        assert options["options"] == {"defaultType": "spot"}
        client.exchange.load_markets.assert_called_once()

    def test_public_mode(self, mock_exchange):
        client = BitgetClient(load_markets=False)
        options = mock_exchange.call_args[0][0]

        assert "apiKey" not in options
        assert not client.has_credentials
        client.exchange.load_markets.assert_not_called()

    def test_load_markets_network_error(self, mock_exchange):
        mock_exchange.return_value.load_markets.side_effect = ccxt.NetworkError("down")

        with pytest.raises(ExchangeUnavailable):
            BitgetClient()


class TestSymbols:

    def test_spot_symbol(self, client):
        assert client._convert_symbol("BTCUSDT") == "BTC/USDT"
        assert client._convert_symbol("ETH/USDT") == "ETH/USDT"

    def test_swap_symbol(self, mock_exchange):
        client = BitgetClient(market_type="swap", load_markets=False)

        assert client._convert_symbol("BTCUSDT") == "BTC/USDT:USDT"

    def test_unknown_quote_asset(self, client):
        with pytest.raises(InvalidOrderParams):
            client.place_order("BTCEUR", OrderSide.BUY, 41000.0, 0.002)

        client.exchange.create_order.assert_not_called()


class TestPlaceOrder:

    def test_limit_order_with_precision(self, client):
        client.exchange.create_order.return_value = {"id": 123456}

        ref = client.place_order("BTCUSDT", OrderSide.BUY, 41000.004, 0.00243902439)

        assert ref == "123456"
        client.exchange.create_order.assert_called_once_with(
            "BTC/USDT", "limit", "buy", 0.002439, 41000.0,
        )

    def test_size_rounding_to_zero(self, client):
        with pytest.raises(InvalidOrderParams):
            client.place_order("BTCUSDT", OrderSide.BUY, 41000.0, 0.0000001)

        client.exchange.create_order.assert_not_called()

    def test_missing_order_id(self, client):
        client.exchange.create_order.return_value = {}

        with pytest.raises(ExchangeRejected):
            client.place_order("BTCUSDT", OrderSide.SELL, 41410.0, 0.002)

    @pytest.mark.parametrize("ccxt_error, expected", [
        (ccxt.InsufficientFunds("balance"), InsufficientFunds),
        (ccxt.InvalidOrder("min notional"), InvalidOrderParams),
        (ccxt.RequestTimeout("timeout"), ExchangeUnavailable),
        (ccxt.NetworkError("reset"), ExchangeUnavailable),
        (ccxt.AuthenticationError("bad key"), ExchangeRejected),
        (ccxt.ExchangeError("40001"), ExchangeRejected),
    ])
    def test_error_mapping(self, client, ccxt_error, expected):
        client.exchange.create_order.side_effect = ccxt_error

        with pytest.raises(expected) as exc_info:
            client.place_order("BTCUSDT", OrderSide.BUY, 41000.0, 0.002)

        assert exc_info.value.symbol == "BTCUSDT"


class TestCancelOrder:

    def test_cancel_success(self, client):
        assert client.cancel_order("BTCUSDT", "123")
        client.exchange.cancel_order.assert_called_once_with("123", "BTC/USDT")

    def test_cancel_unknown_order(self, client):
        client.exchange.cancel_order.side_effect = ccxt.OrderNotFound("gone")

        assert not client.cancel_order("BTCUSDT", "123")

    def test_cancel_network_error_raises(self, client):
        client.exchange.cancel_order.side_effect = ccxt.NetworkError("down")

        with pytest.raises(ExchangeUnavailable):
            client.cancel_order("BTCUSDT", "123")


class TestQueries:

    def test_open_orders(self, client):
        client.exchange.fetch_open_orders.return_value = [
            {"id": "1", "side": "buy", "price": 40000.0, "amount": 0.0025, "status": "open"},
            {"id": "2", "side": "sell", "price": 41410.0, "amount": 0.0024, "status": "open"},
        ]

        orders = client.get_open_orders("BTCUSDT")

        assert [o.order_ref for o in orders] == ["1", "2"]
        assert orders[1].side == OrderSide.SELL
        assert orders[0].price == 40000.0
        assert orders[0].symbol == "BTCUSDT"

    def test_order_status(self, client):
        client.exchange.fetch_order.return_value = {"id": "1", "status": "closed"}

        assert client.get_order_status("BTCUSDT", "1") == "closed"

    def test_order_status_not_found(self, client):
        client.exchange.fetch_order.side_effect = ccxt.OrderNotFound("gone")

        assert client.get_order_status("BTCUSDT", "1") is None

    def test_order_status_network_error(self, client):
        client.exchange.fetch_order.side_effect = ccxt.RequestTimeout("timeout")

        with pytest.raises(ExchangeUnavailable):
            client.get_order_status("BTCUSDT", "1")

    def test_ticker(self, client):
        client.exchange.fetch_ticker.return_value = {
            "last": 41234.5, "bid": 41234.0, "ask": 41235.0,
            "high": 42000.0, "low": 40000.0, "percentage": 1.5,
            "baseVolume": 1234.0, "timestamp": 1735689600000,
        }

        ticker = client.get_ticker("BTCUSDT")

        assert ticker.last == 41234.5
        assert ticker.change_24h == 1.5
        assert ticker.timestamp.year == 2025
        assert client.get_last_price("BTCUSDT") == 41234.5

    def test_balances_skip_zero(self, client):
        client.exchange.fetch_balance.return_value = {
            "free": {"USDT": 900.0, "BTC": 0.001, "ETH": 0.0},
            "used": {"USDT": 100.0, "BTC": 0.0, "ETH": 0.0},
            "total": {"USDT": 1000.0, "BTC": 0.001, "ETH": 0.0},
        }

        balances = client.get_balances()

        assert [b.coin for b in balances] == ["BTC", "USDT"]
        assert balances[1].available == 900.0
        assert balances[1].frozen == 100.0

    def test_server_time(self, client):
        client.exchange.fetch_time.return_value = 1735689600000

        assert client.get_server_time().year == 2025
