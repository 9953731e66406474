"""
Snapshot exchange with upstream account decoders
"""

from .snapshot_io import (
    MarketSnapshot,
    load_market_json,
    load_market_yaml,
    market_digest,
    market_from_dict,
    market_to_dict,
    snapshot_to_dict,
)

__all__ = [
    "MarketSnapshot",
    "load_market_json",
    "load_market_yaml",
    "market_digest",
    "market_from_dict",
    "market_to_dict",
    "snapshot_to_dict",
]
