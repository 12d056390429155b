"""
24h Price Movers

Source and selection rule for price-mover alerts: Binance futures symbols
whose 24h price change exceeds a subscriber's threshold.
"""

import asyncio
from typing import Iterable, List, Optional, Set

from core.logging import get_logger
from core.schemas import PriceMover
from exchanges.binance import BinanceExchange


def select_movers(movers: Iterable[PriceMover], threshold_pct: float, already_sent: Set[str]) -> List[PriceMover]:
    """
    Symbols whose 24h change is strictly above `threshold_pct`, smallest change
    first, skipping symbols in `already_sent` and repeated symbols.

    Examples:
        >>> select_movers([PriceMover(symbol="AUSDT", price_change_pct=40.0)], 40.0, set())
        []
    """
    ranked = sorted(movers, key=lambda m: m.price_change_pct)
    selected: List[PriceMover] = []
    seen = set(already_sent)
    for mover in ranked:
        if mover.price_change_pct <= threshold_pct or mover.symbol in seen:
            continue
        seen.add(mover.symbol)
        selected.append(mover)
    return selected


class PriceMoverFeed:
    """
    Binance 24h ticker source with the same failure contract as an
    aggregation round: a failed fetch is logged and yields no movers.
    """

    def __init__(self, exchange: Optional[BinanceExchange] = None) -> None:
        self.exchange = exchange or BinanceExchange()
        self._logger = get_logger(__name__)

    async def initialize(self) -> None:
        await self.exchange.initialize()

    async def shutdown(self) -> None:
        await self.exchange.shutdown()

    async def fetch(self) -> List[PriceMover]:
        try:
            return await self.exchange.fetch_price_movers()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._logger.warning(f"24h ticker fetch failed: {type(e).__name__}: {e}")
            return []
