"""
Unit tests for YAML configuration loading.
"""
import pytest
import yaml

from spotgrid.config.loader import (
    compute_config_hash,
    load_config,
    parse_config,
    save_config_snapshot,
)
from spotgrid.config.schema import AppConfig, GridConfiguration


CONFIG_YAML = """
grid:
  symbol: ETHUSDT
  grid_count: 5
  lower_price: 3000
  upper_price: 3400
  investment: 250
  profit_per_grid: 0.8
  leverage: 10

limits:
  min_order_value: 5

runtime:
  poll_interval_seconds: 2
  verify_vanished_orders: false

exchange:
  dry_run: true
"""


class TestLoadConfig:

    def test_load_sections(self, tmp_path):
        path = tmp_path / "grid.yaml"
        path.write_text(CONFIG_YAML, encoding="utf-8")

        config = load_config(str(path))

        assert config.grid.symbol == "ETHUSDT"
        assert config.grid.grid_count == 5
        assert config.grid.upper_price == 3400
        assert config.grid.profit_per_grid == 0.8
        assert config.limits.min_order_value == 5
        assert config.limits.max_grid_count == 50
        assert config.runtime.poll_interval_seconds == 2
        assert config.runtime.verify_vanished_orders is False
        assert config.runtime.health_check_interval_seconds == 30.0
        assert config.exchange.dry_run is True
        assert config.exchange.exchange == "bitget"

    def test_unknown_keys_ignored(self):
        config = parse_config({"grid": {"grid_count": 4, "leverage": 10}, "extra": {}})

        assert config.grid.grid_count == 4

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")

        assert load_config(str(path)) == AppConfig()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "missing.yaml"))

    def test_example_config_is_valid(self):
        from pathlib import Path
        from spotgrid.config.validator import validate_grid_config

        example = Path(__file__).resolve().parent.parent / "config" / "grid.example.yaml"
        config = load_config(str(example))

        assert validate_grid_config(config.grid, config.limits).is_valid


class TestConfigHash:

    def test_hash_is_stable(self):
        config = GridConfiguration(grid_count=3, lower_price=1, upper_price=2, investment=10)

        assert compute_config_hash(config) == compute_config_hash(config)
        assert len(compute_config_hash(config)) == 8

    def test_hash_changes_with_config(self):
        a = GridConfiguration(grid_count=3, lower_price=1, upper_price=2, investment=10)
        b = GridConfiguration(grid_count=4, lower_price=1, upper_price=2, investment=10)

        assert compute_config_hash(a) != compute_config_hash(b)


class TestConfigSnapshot:

    def test_snapshot_round_trip(self, tmp_path):
        config = parse_config(yaml.safe_load(CONFIG_YAML))
        path = tmp_path / "out" / "config_snapshot.yaml"

        save_config_snapshot(config, str(path))

        assert load_config(str(path)) == config
