"""Market data subsystem for One Capital.

Public API:
    PriceEntry          - Immutable price snapshot with 24h change
    PriceCache          - Thread-safe in-memory price store
    MarketDataSource    - Abstract interface for data providers
    create_market_data_source - Factory that selects simulator or CoinGecko
"""

from .cache import PriceCache
from .factory import create_market_data_source
from .interface import MarketDataSource
from .models import PriceEntry

__all__ = [
    "PriceEntry",
    "PriceCache",
    "MarketDataSource",
    "create_market_data_source",
]
