"""
Unit tests for configuration validation and grid metrics.
"""
import pytest

from spotgrid.config.schema import GridConfiguration, TradingLimits
from spotgrid.config.validator import (
    calculate_grid_metrics,
    create_invalid_config_event,
    validate_grid_config,
    validate_or_raise,
)
from spotgrid.audit.events import AuditEventType
from spotgrid.exceptions import InvalidConfiguration


ORDER_SIZE_ERROR = (
    "Order size ($1.67) is below minimum $2. Reduce grid count or increase investment."
)


def make_config(**overrides):
    params = dict(
        symbol="BTCUSDT",
        grid_count=3,
        lower_price=40000.0,
        upper_price=42000.0,
        investment=300.0,
        profit_per_grid=1.0,
    )
    params.update(overrides)
    return GridConfiguration(**params)


class TestValidateGridConfig:
    """Test blocking checks."""

    def test_valid_config(self):
        result = validate_grid_config(make_config())

        assert result.is_valid
        assert result.errors == []

    def test_order_size_below_minimum(self):
        """{investment 5, grid_count 3} -> order size 1.67 < 2."""
        result = validate_grid_config(make_config(investment=5.0))

        assert not result.is_valid
        assert result.errors == [ORDER_SIZE_ERROR]

    def test_minimum_investment(self):
        result = validate_grid_config(make_config(investment=4.0, grid_count=3))

        assert "Minimum investment is $5" in result.errors

    def test_grid_count_bounds(self):
        assert "Minimum grid count is 3" in validate_grid_config(make_config(grid_count=2)).errors
        assert "Maximum grid count is 50" in validate_grid_config(
            make_config(grid_count=51, investment=1000.0)
        ).errors

    def test_price_checks(self):
        inverted = validate_grid_config(make_config(lower_price=42000.0, upper_price=40000.0))
        assert "Upper price must be greater than lower price" in inverted.errors

        zero_lower = validate_grid_config(make_config(lower_price=0.0))
        assert "Lower price must be greater than 0" in zero_lower.errors

    def test_profit_bounds(self):
        assert "Minimum profit per grid is 0.1%" in validate_grid_config(
            make_config(profit_per_grid=0.05)
        ).errors
        assert "Maximum profit per grid is 10%" in validate_grid_config(
            make_config(profit_per_grid=12.0)
        ).errors

    def test_all_checks_evaluated(self):
        """Checks do not short-circuit."""
        config = make_config(
            investment=1.0,
            grid_count=0,
            lower_price=-1.0,
            upper_price=-2.0,
            profit_per_grid=20.0,
        )
        result = validate_grid_config(config)

        assert "Minimum investment is $5" in result.errors
        assert "Minimum grid count is 3" in result.errors
        assert "Upper price must be greater than lower price" in result.errors
        assert "Lower price must be greater than 0" in result.errors
        assert "Maximum profit per grid is 10%" in result.errors

    def test_step_too_small_for_price_lookup(self):
        result = validate_grid_config(make_config(
            symbol="XUSDT", grid_count=21, lower_price=1.0, upper_price=1.00002, investment=100.0,
        ))

        assert not result.is_valid
        assert len(result.errors) == 1
        assert result.errors[0].startswith("Price step (1e-06) is too small")

    def test_narrow_grid_accepted(self):
        result = validate_grid_config(make_config(
            symbol="XUSDT", grid_count=21, lower_price=1.0, upper_price=1.00004, investment=100.0,
        ))

        assert result.is_valid

    def test_unsupported_trading_pair(self):
        result = validate_grid_config(make_config(symbol="BTCEUR"))

        assert result.errors == ["Unsupported trading pair BTCEUR"]
        assert validate_grid_config(make_config(symbol="BTC/EUR")).is_valid

    def test_pure(self):
        """Same input, same result; is_valid iff no errors."""
        config = make_config(investment=5.0, grid_count=30, profit_per_grid=0.2)

        first = validate_grid_config(config)
        second = validate_grid_config(config)

        assert first == second
        assert first.is_valid == (len(first.errors) == 0)

    def test_custom_limits(self):
        limits = TradingLimits(min_order_value=150.0)
        result = validate_grid_config(make_config(), limits)

        assert not result.is_valid
        assert result.errors[0].startswith("Order size ($100.00) is below minimum $150")


class TestWarnings:
    """Test non-blocking warnings."""

    def test_high_grid_count(self):
        result = validate_grid_config(make_config(grid_count=25, investment=500.0))

        assert result.is_valid
        assert "High grid count may result in many small orders" in result.warnings

    def test_low_profit(self):
        result = validate_grid_config(make_config(profit_per_grid=0.3))

        assert "Low profit per grid may result in minimal profits after fees" in result.warnings

    def test_wide_range(self):
        result = validate_grid_config(make_config(lower_price=100.0, upper_price=200.0))

        assert result.is_valid
        assert any("Large price range" in w for w in result.warnings)

    def test_no_warnings_for_reference_grid(self):
        assert validate_grid_config(make_config()).warnings == []


class TestValidateOrRaise:

    def test_raises_with_error_list(self):
        with pytest.raises(InvalidConfiguration) as exc_info:
            validate_or_raise(make_config(investment=5.0))

        assert exc_info.value.errors == [ORDER_SIZE_ERROR]

    def test_prints_warnings(self, capsys):
        validate_or_raise(make_config(profit_per_grid=0.3))

        assert "[CONFIG WARNING]" in capsys.readouterr().out


class TestGridMetrics:
    """Test display metrics."""

    def test_reference_metrics(self):
        metrics = calculate_grid_metrics(make_config())

        assert metrics.price_step == 1000.0
        assert metrics.order_size == 100.0
        assert metrics.total_potential_profit == 3.0
        assert metrics.price_range == 5.0
        assert metrics.average_price == 41000.0

    def test_metrics_for_invalid_config(self):
        """Metrics are computable regardless of validity."""
        metrics = calculate_grid_metrics(make_config(investment=5.0))

        assert metrics.order_size == 1.67

    def test_degenerate_inputs_yield_zero(self):
        assert calculate_grid_metrics(make_config(grid_count=1)).price_step == 0.0
        assert calculate_grid_metrics(make_config(grid_count=0)).order_size == 0.0
        assert calculate_grid_metrics(make_config(lower_price=0.0)).price_range == 0.0

    def test_to_dict(self):
        data = calculate_grid_metrics(make_config()).to_dict()

        assert set(data) == {
            "price_step", "order_size", "total_potential_profit", "price_range", "average_price",
        }


class TestInvalidConfigEvent:

    def test_event_carries_errors(self):
        from datetime import datetime

        event = create_invalid_config_event(
            session_id="s1",
            timestamp=datetime(2025, 1, 1),
            errors=[ORDER_SIZE_ERROR],
            config_hash="abcd1234",
        )
        data = event.to_dict()

        assert event.event_type == AuditEventType.CONFIG_INVALID
        assert data["config_hash"] == "abcd1234"
        assert data["details"]["errors"] == [ORDER_SIZE_ERROR]
