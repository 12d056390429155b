"""
Core Utilities Package

This package contains utility functions and helpers used throughout the application.

Modules:
    - time: Timestamp conversion, settlement estimation and countdown helpers
    - parsing: Lenient number/timestamp parsing for exchange payloads
    - symbols: Exchange symbol to base asset normalization
"""

from core.utils.time import to_utc_datetime, current_utc_datetime, next_settlement_boundary
from core.utils.parsing import parse_float, parse_timestamp
from core.utils.symbols import base_asset

__all__ = [
    "to_utc_datetime",
    "current_utc_datetime",
    "next_settlement_boundary",
    "parse_float",
    "parse_timestamp",
    "base_asset",
]
