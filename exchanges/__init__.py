"""
Exchange Connectors Package

This package contains individual exchange connector modules.
Each exchange (Binance, Bybit, KuCoin, Gate.io, Bitget, MEXC) has its own
subpackage with a class implementing ExchangeInterface.fetch_funding().

The modular design allows adding new exchanges without modifying existing code:
add a subpackage and register its class in EXCHANGE_CLASSES.
"""

from typing import Dict, Type

from core.exchange_interface import ExchangeInterface
from exchanges.binance import BinanceExchange
from exchanges.bitget import BitgetExchange
from exchanges.bybit import BybitExchange
from exchanges.gate import GateExchange
from exchanges.kucoin import KuCoinExchange
from exchanges.mexc import MexcExchange

EXCHANGE_CLASSES: Dict[str, Type[ExchangeInterface]] = {
    cls.name: cls
    for cls in (
        BinanceExchange,
        BybitExchange,
        KuCoinExchange,
        GateExchange,
        BitgetExchange,
        MexcExchange,
    )
}

__all__ = [
    "EXCHANGE_CLASSES",
    "BinanceExchange",
    "BybitExchange",
    "KuCoinExchange",
    "GateExchange",
    "BitgetExchange",
    "MexcExchange",
]
