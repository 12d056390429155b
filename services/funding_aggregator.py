"""
Cross-Exchange Funding Aggregator

Fetches funding quotes from every registered exchange concurrently, pools
them, groups them by base asset and ranks the max-minus-min rate spreads.

Failure model:
    - Each exchange fetch runs in its own task; an exception in one task is
      logged and becomes an empty result for that exchange
    - The whole fan-out is joined with a single deadline; exchanges still
      pending at the deadline are cancelled and count as empty
    - No exchange reachable means an empty result, never an exception
"""

import asyncio
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from core.config import settings
from core.exchange_interface import ExchangeInterface
from core.exchange_manager import ExchangeManager
from core.logging import get_logger
from core.schemas import AssetSpread, FundingQuote
from core.utils.symbols import base_asset
from core.utils.time import current_utc_datetime


@dataclass
class ExchangeRoundStatus:
    """Outcome of one exchange in the most recent aggregation round."""

    status: str  # "ok", "failed" or "timeout"
    quotes: int = 0
    error: Optional[str] = None


def compute_spreads(quotes: Iterable[FundingQuote]) -> List[AssetSpread]:
    """
    Group quotes by base asset and build one AssetSpread per eligible group.

    A group is eligible when it has at least two quotes, its highest and
    lowest rates differ, and those rates belong to different instruments.
    Groups keep discovery order; among equal rates the first quote wins.

    Returns:
        List[AssetSpread]: Unsorted spreads in discovery order
    """
    groups: Dict[str, List[FundingQuote]] = {}
    for quote in quotes:
        groups.setdefault(base_asset(quote.exchange, quote.symbol), []).append(quote)

    spreads: List[AssetSpread] = []
    for asset, group in groups.items():
        if len(group) < 2:
            continue
        high = max(group, key=lambda q: q.rate)
        low = min(group, key=lambda q: q.rate)
        if high.rate == low.rate or high.key == low.key:
            continue
        spreads.append(AssetSpread.from_quotes(asset, high, low))
    return spreads


def rank_spreads(quotes: Iterable[FundingQuote], n: int) -> List[AssetSpread]:
    """
    Top max(1, n) spreads by spread_pct, largest first.

    Example:
        >>> quotes = [
        ...     FundingQuote(exchange="a", symbol="BTCUSDT", rate=0.001),
        ...     FundingQuote(exchange="b", symbol="BTCUSDT", rate=-0.005),
        ... ]
        >>> rank_spreads(quotes, 5)[0].spread_pct
        0.6
    """
    spreads = compute_spreads(quotes)
    # sorted() is stable, so equal spreads keep discovery order
    spreads = sorted(spreads, key=lambda s: s.spread_pct, reverse=True)
    return spreads[: max(1, n)]


class FundingAggregator:
    """
    Fan-out/fan-in over all registered exchanges.

    Attributes:
        manager: Exchange registry to aggregate
        timeout: Ceiling (seconds) for joining all exchange fetches
        last_round: Per-exchange status of the most recent round
        last_round_at: When the most recent round finished

    Example:
        >>> aggregator = FundingAggregator(manager)
        >>> spreads = await aggregator.top_spreads(10)
        >>> spreads[0].base_asset, round(spreads[0].spread_pct, 3)
        ('BTC', 0.6)
    """

    def __init__(self, manager: ExchangeManager, timeout: Optional[float] = None) -> None:
        self.manager = manager
        self.timeout = settings.aggregation_timeout if timeout is None else timeout
        self.last_round: Dict[str, ExchangeRoundStatus] = {}
        self.last_round_at = None
        self._logger = get_logger(__name__)

    async def top_spreads(self, n: int) -> List[AssetSpread]:
        """
        Fetch all exchanges and return the largest funding spreads.

        Args:
            n: Number of spreads wanted (values below 1 are treated as 1)

        Returns:
            List[AssetSpread]: At most max(1, n) spreads sorted by spread_pct
            descending. Empty when no data could be fetched.
        """
        quotes = await self.fetch_all_quotes()
        if not quotes:
            self._logger.warning("No funding quotes fetched from any exchange")
            return []

        spreads = rank_spreads(quotes, n)
        self._logger.info(f"Ranked {len(spreads)} spread(s) from {len(quotes)} quotes")
        return spreads

    async def fetch_all_quotes(self) -> List[FundingQuote]:
        """
        Fetch every exchange concurrently and pool the quotes.

        Quotes are pooled in exchange registration order so ranking is
        deterministic for a given set of responses.
        """
        exchanges = list(self.manager)
        if not exchanges:
            return []

        tasks = {
            exchange.name: asyncio.create_task(self._fetch_one(exchange), name=f"funding_{exchange.name}")
            for exchange in exchanges
        }
        _, pending = await asyncio.wait(tasks.values(), timeout=self.timeout)

        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        pooled: List[FundingQuote] = []
        round_status: Dict[str, ExchangeRoundStatus] = {}
        for name, task in tasks.items():
            if task in pending:
                self._logger.warning(f"{name} did not respond within {self.timeout:.0f}s, skipped this round")
                round_status[name] = ExchangeRoundStatus(status="timeout")
                continue
            quotes, error = task.result()
            if error is not None:
                round_status[name] = ExchangeRoundStatus(status="failed", error=error)
                continue
            round_status[name] = ExchangeRoundStatus(status="ok", quotes=len(quotes))
            pooled.extend(quotes)

        self.last_round = round_status
        self.last_round_at = current_utc_datetime()
        return pooled

    async def _fetch_one(self, exchange: ExchangeInterface):
        """Run one exchange fetch, converting any failure into an empty result."""
        try:
            return await exchange.fetch_funding(), None
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._logger.warning(f"{exchange.name} fetch failed: {type(e).__name__}: {e}")
            return [], f"{type(e).__name__}: {e}"
