"""Marketplace adapters package.

Each adapter reaches one marketplace through its own access method and
normalizes the results into the shared listing model:

- EbayAdapter: official Browse API with cached OAuth tokens
- FacebookAdapter: anonymous GraphQL queries with cached locations
- DepopAdapter: internal web API called from inside a browser page
- PoshmarkAdapter: intercepted API responses with page-scraping fallback
"""

from .base import AdapterProtocol, BaseAdapter, parse_price
from .depop import DepopAdapter
from .ebay import EbayAdapter
from .facebook import FacebookAdapter
from .poshmark import PoshmarkAdapter
from .registry import ADAPTER_FACTORIES, AdapterRegistry, build_adapters

__all__ = [
    "ADAPTER_FACTORIES",
    "AdapterProtocol",
    "AdapterRegistry",
    "BaseAdapter",
    "DepopAdapter",
    "EbayAdapter",
    "FacebookAdapter",
    "PoshmarkAdapter",
    "build_adapters",
    "parse_price",
]
