"""
交易对格式工具
"""

from typing import Tuple


# 按长度降序匹配，避免 "USDT" 被 "USD" 截断
QUOTE_ASSETS = ("USDT", "USDC", "BUSD", "USD", "BTC", "ETH")


def split_symbol(symbol: str) -> Tuple[str, str]:
    """
    拆分交易对

    支持 "BTCUSDT" 和 "BTC/USDT" 两种格式

    Returns:
        (base, quote)

    Raises:
        ValueError: 无法识别计价币种
    """
    symbol = symbol.upper()

    if "/" in symbol:
        base, quote = symbol.split("/", 1)
        return base, quote.split(":", 1)[0]

    for quote in QUOTE_ASSETS:
        if symbol.endswith(quote) and len(symbol) > len(quote):
            return symbol[: -len(quote)], quote

    raise ValueError(f"Cannot determine quote asset of symbol {symbol}")
