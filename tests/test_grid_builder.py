"""
Unit tests for grid layout generation.

Tests cover:
- Arithmetic spacing and level count
- 6-decimal price rounding
- Order size, quantity and paired sell price helpers
- Defensive errors for degenerate configurations
"""
import pytest

from spotgrid.config.schema import GridConfiguration
from spotgrid.exceptions import InvalidConfiguration
from spotgrid.grid_engine.grid_builder import (
    build_grid_layout,
    compute_order_size,
    compute_price_step,
    order_qty,
    paired_sell_price,
)
from spotgrid.models.grid import LevelState


class TestBuildGridLayout:
    """Test level generation."""

    def test_reference_grid_levels(self, grid_config):
        """{3, 40000, 42000} yields levels 40000 / 41000 / 42000."""
        levels = build_grid_layout(grid_config)

        assert [level.price for level in levels] == [40000.0, 41000.0, 42000.0]
        assert [level.index for level in levels] == [0, 1, 2]

    def test_levels_start_empty(self, grid_config):
        levels = build_grid_layout(grid_config)

        for level in levels:
            assert level.fill_state == LevelState.EMPTY
            assert level.buy_order_ref is None
            assert level.sell_order_ref is None
            assert not level.pending_retry

    def test_count_and_spacing(self):
        """grid_count levels, strictly increasing, step = (upper - lower) / (n - 1)."""
        config = GridConfiguration(
            grid_count=11, lower_price=0.92, upper_price=1.02, investment=100,
        )
        levels = build_grid_layout(config)
        step = compute_price_step(config)

        assert len(levels) == 11
        assert levels[0].price == pytest.approx(0.92)
        assert levels[-1].price == pytest.approx(1.02)

        for i in range(1, len(levels)):
            assert levels[i].price > levels[i - 1].price
            assert levels[i].price - levels[i - 1].price == pytest.approx(step, abs=2e-6)

    def test_prices_rounded_to_six_decimals(self):
        config = GridConfiguration(
            grid_count=4, lower_price=0.1, upper_price=0.2, investment=100,
        )
        prices = [level.price for level in build_grid_layout(config)]

        assert prices == [0.1, 0.133333, 0.166667, 0.2]

    def test_deterministic(self, grid_config):
        first = [level.price for level in build_grid_layout(grid_config)]
        second = [level.price for level in build_grid_layout(grid_config)]

        assert first == second

    def test_grid_count_below_two_raises(self):
        config = GridConfiguration(grid_count=1, lower_price=100, upper_price=200, investment=100)

        with pytest.raises(InvalidConfiguration):
            build_grid_layout(config)

    def test_inverted_range_raises(self):
        config = GridConfiguration(grid_count=3, lower_price=200, upper_price=100, investment=100)

        with pytest.raises(InvalidConfiguration):
            build_grid_layout(config)

    def test_step_too_small_for_rounding_raises(self):
        """Levels that collapse after rounding are rejected."""
        config = GridConfiguration(
            grid_count=5, lower_price=1.0, upper_price=1.000002, investment=100,
        )

        with pytest.raises(InvalidConfiguration):
            build_grid_layout(config)

    def test_step_within_price_epsilon_raises(self):
        """A rounded step of 1e-6 cannot be told apart from the lookup tolerance."""
        config = GridConfiguration(
            grid_count=21, lower_price=1.0, upper_price=1.00002, investment=100,
        )

        with pytest.raises(InvalidConfiguration):
            build_grid_layout(config)

    def test_narrow_but_distinct_levels(self):
        config = GridConfiguration(
            grid_count=21, lower_price=1.0, upper_price=1.00004, investment=100,
        )
        prices = [level.price for level in build_grid_layout(config)]

        assert len(prices) == 21
        assert prices[1] == pytest.approx(1.000002)
        assert min(b - a for a, b in zip(prices, prices[1:])) > 1e-6


class TestOrderHelpers:
    """Test sizing helpers."""

    def test_order_size(self, grid_config):
        assert compute_order_size(grid_config) == pytest.approx(100.0)

    def test_order_size_unrounded(self):
        config = GridConfiguration(grid_count=3, lower_price=1, upper_price=2, investment=5)

        assert compute_order_size(config) == pytest.approx(5 / 3)

    def test_order_qty(self):
        assert order_qty(100.0, 40000.0) == pytest.approx(0.0025)

    def test_order_qty_rejects_non_positive_price(self):
        with pytest.raises(InvalidConfiguration):
            order_qty(100.0, 0.0)

    def test_paired_sell_price(self):
        """A buy filled at 41000 with 1% profit pairs with a sell at 41410."""
        assert paired_sell_price(41000.0, 1.0) == pytest.approx(41410.0)

    def test_paired_sell_price_fractional_profit(self):
        assert paired_sell_price(100.0, 0.5) == pytest.approx(100.5)
