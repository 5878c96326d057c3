"""Exchange clients."""

from exchange.bitget import BitgetClient

__all__ = ["BitgetClient"]
