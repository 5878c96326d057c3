"""
配置加载器
"""

import hashlib
import inspect
import json
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Union

import yaml

from spotgrid.config.schema import (
    AppConfig,
    ExchangeConfig,
    GridConfiguration,
    RuntimeConfig,
    TradingLimits,
)
from spotgrid.utils.types import ConfigHash


def load_config(config_path: str) -> AppConfig:
    """
    从 YAML 文件加载配置

    Args:
        config_path: 配置文件路径

    Returns:
        AppConfig 实例
    """
    path = Path(config_path)

    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    return parse_config(data)


def parse_config(data: Dict[str, Any]) -> AppConfig:
    """解析配置字典"""
    return AppConfig(
        grid=_parse_section(data.get("grid", {}), GridConfiguration),
        limits=_parse_section(data.get("limits", {}), TradingLimits),
        runtime=_parse_section(data.get("runtime", {}), RuntimeConfig),
        exchange=_parse_section(data.get("exchange", {}), ExchangeConfig),
    )


def _parse_section(data: Dict[str, Any], cls: type) -> Any:
    """解析配置段落"""
    if not data:
        return cls()

    # 过滤掉 cls 不接受的字段
    sig = inspect.signature(cls)
    valid_keys = set(sig.parameters.keys())
    filtered_data = {k: v for k, v in data.items() if k in valid_keys}

    return cls(**filtered_data)


def compute_config_hash(config: Union[AppConfig, GridConfiguration]) -> ConfigHash:
    """
    计算配置哈希

    用于审计，确保可以追踪配置变化

    Returns:
        SHA256 哈希的前 8 位
    """
    config_str = json.dumps(asdict(config), sort_keys=True, default=str)
    hash_obj = hashlib.sha256(config_str.encode())

    return ConfigHash(hash_obj.hexdigest()[:8])


def save_config_snapshot(config: AppConfig, output_path: str) -> None:
    """
    保存配置快照

    Args:
        config: 配置实例
        output_path: 输出路径
    """
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w", encoding="utf-8") as f:
        yaml.dump(asdict(config), f, allow_unicode=True, default_flow_style=False)
