"""
Symbol Normalization

Maps exchange-native perpetual symbols to their base asset so the same
underlying can be compared across exchanges.

Exchange formats:
    - Binance, Bybit: BTCUSDT         -> strip "USDT"
    - KuCoin:         XBTUSDTM        -> strip "USDTM" (XBT is KuCoin's BTC)
    - Gate.io, MEXC:  BTC_USDT        -> split on "_"
    - Bitget:         BTCUSDT_UMCBL   -> cut at "_", then strip "USDT"

Any separator characters left over after the exchange rule are removed.
"""

from typing import Callable, Dict

QUOTE_SUFFIX = "USDT"
KUCOIN_SUFFIX = "USDTM"
SEPARATORS = ("_", "-")

# Exchanges that use a different ticker for the same asset
ASSET_ALIASES = {
    "XBT": "BTC",
}


def _strip_suffix(symbol: str, suffix: str) -> str:
    if symbol.endswith(suffix) and len(symbol) > len(suffix):
        return symbol[: -len(suffix)]
    return symbol


def _before_separator(symbol: str) -> str:
    for sep in SEPARATORS:
        if sep in symbol:
            return symbol.split(sep, 1)[0]
    return symbol


def _split_rule(symbol: str) -> str:
    """Gate.io / MEXC: BTC_USDT"""
    return _before_separator(symbol)


def _bitget_rule(symbol: str) -> str:
    """Bitget: BTCUSDT_UMCBL (v1) or BTCUSDT (v2)"""
    return _strip_suffix(_before_separator(symbol), QUOTE_SUFFIX)


def _kucoin_rule(symbol: str) -> str:
    """KuCoin: XBTUSDTM"""
    return _strip_suffix(symbol, KUCOIN_SUFFIX)


def _default_rule(symbol: str) -> str:
    """Binance / Bybit and anything unknown: BTCUSDT, tolerating other forms"""
    if symbol.endswith(KUCOIN_SUFFIX):
        return _strip_suffix(symbol, KUCOIN_SUFFIX)
    if symbol.endswith(QUOTE_SUFFIX):
        return _strip_suffix(symbol, QUOTE_SUFFIX)
    return _before_separator(symbol)


SYMBOL_RULES: Dict[str, Callable[[str], str]] = {
    "gate": _split_rule,
    "mexc": _split_rule,
    "bitget": _bitget_rule,
    "kucoin": _kucoin_rule,
}


def base_asset(exchange: str, symbol: str) -> str:
    """
    Normalize an exchange-native symbol to its base asset.

    Args:
        exchange: Exchange name (case-insensitive)
        symbol: Exchange-native symbol

    Returns:
        str: Uppercase base asset

    Examples:
        >>> base_asset("gate", "BTC_USDT")
        'BTC'
        >>> base_asset("binance", "BTCUSDT")
        'BTC'
        >>> base_asset("kucoin", "XBTUSDTM")
        'BTC'
    """
    symbol = symbol.upper()
    rule = SYMBOL_RULES.get(exchange.lower(), _default_rule)
    base = rule(symbol)
    for sep in SEPARATORS:
        base = base.replace(sep, "")
    return ASSET_ALIASES.get(base, base)
