"""
Exchange Interface - Abstract Contract for All Funding Sources

This module defines the abstract base class that all exchange connectors must implement.
By enforcing a consistent interface, we ensure:
- All exchanges expose the same fetch_funding() capability
- Easy to add new exchanges without modifying the aggregator
- One place for HTTP session handling, timeouts and settlement estimation

Design Philosophy:
    "Program to an interface, not an implementation"

    The aggregator works with ExchangeInterface, not specific exchange
    implementations. Each connector only describes WHERE its records live in
    the payload and HOW one record maps to a FundingQuote.

Example:
    class BinanceExchange(ExchangeInterface):
        name = "binance"

        def _iter_records(self, payload):
            return self._records(payload)

        def _parse_record(self, record):
            return self._quote(record["symbol"], parse_float(record["lastFundingRate"]))

Error Contract:
    - Network failures, timeouts and non-2xx responses raise from fetch_funding()
    - A single malformed record is dropped silently; it never fails the fetch
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Iterable, List, Optional

import aiohttp

from core.config import settings
from core.exceptions import ExchangeRequestError
from core.logging import get_logger, log_api_request, log_api_response
from core.schemas import FundingQuote
from core.utils.time import current_utc_datetime, next_settlement_boundary


class ExchangeInterface(ABC):
    """
    Abstract Base Class for Exchange Funding Connectors

    Class Attributes:
        name: Unique identifier for the exchange (lowercase, e.g., "binance", "kucoin")
        settlement_offset_hours: Offset of the exchange's 8h funding cycle in hours,
                                 used only when the exchange omits the next funding time

    Abstract Methods (MUST be implemented by all exchanges):
        - _iter_records: Locate the list of instrument records in a payload
        - _parse_record: Map one record to a FundingQuote (or None to drop it)

    Lifecycle Methods:
        - initialize: Create the HTTP session
        - shutdown: Close the HTTP session
    """

    # ============================================
    # Class Attributes (must be set by subclasses)
    # ============================================

    name: str
    """Unique exchange identifier (lowercase). Example: "binance", "gate" """

    settlement_offset_hours: int = 0
    """Funding cycle offset in hours (KuCoin settles at 04/12/20 UTC)"""

    def __init__(self, url: Optional[str] = None, session: Optional[aiohttp.ClientSession] = None):
        """
        Initialize the connector.

        Args:
            url: Funding endpoint (defaults to the configured URL for this exchange)
            session: Optional shared aiohttp session; if omitted one is created
                     in initialize() and closed in shutdown()
        """
        self.url = url or settings.funding_url(self.name)
        self.session = session
        self._owns_session = False
        self.logger = get_logger(f"exchanges.{self.name}")

    # ============================================
    # Lifecycle Methods
    # ============================================

    async def initialize(self) -> None:
        """Create the HTTP session if none was injected."""
        if self.session is None:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(
                    total=settings.request_timeout,
                    connect=settings.connect_timeout
                ),
                headers={"User-Agent": "FundingSpreadMonitor/1.0"}
            )
            self._owns_session = True
            self.logger.debug(f"{self.name} session created")

    async def shutdown(self) -> None:
        """Close the HTTP session if this connector created it."""
        if self.session is not None and self._owns_session:
            await self.session.close()
            self.logger.debug(f"{self.name} session closed")
        self.session = None
        self._owns_session = False

    async def __aenter__(self):
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.shutdown()

    # ============================================
    # Funding Fetch
    # ============================================

    async def fetch_funding(self) -> List[FundingQuote]:
        """
        Fetch and normalize funding quotes for every USDT-margined perpetual.

        Returns:
            List[FundingQuote]: One quote per eligible instrument. Quotes whose
            next settlement time was not reported carry an estimated time.

        Raises:
            ExchangeRequestError: Non-2xx response or invalid JSON body
            aiohttp.ClientError: Connection-level failure
            asyncio.TimeoutError: Request exceeded the configured timeout
        """
        payload = await self._get_json()
        now = current_utc_datetime()

        quotes: List[FundingQuote] = []
        dropped = 0
        for record in self._iter_records(payload):
            if not isinstance(record, dict):
                dropped += 1
                continue
            try:
                quote = self._parse_record(record)
            except (ValueError, TypeError, KeyError, AttributeError):
                # pydantic.ValidationError is a ValueError
                quote = None
            if quote is None:
                dropped += 1
                continue
            quotes.append(self._with_estimated_settlement(quote, now))

        self.logger.debug(f"{self.name}: {len(quotes)} quotes ({dropped} records skipped)")
        return quotes

    @abstractmethod
    def _iter_records(self, payload: Any) -> Iterable[Any]:
        """Return the instrument records contained in a response payload."""

    @abstractmethod
    def _parse_record(self, record: dict) -> Optional[FundingQuote]:
        """Map one instrument record to a FundingQuote, or None to skip it."""

    # ============================================
    # Helpers for Subclasses
    # ============================================

    async def _get_json(self, url: Optional[str] = None) -> Any:
        """
        Single bounded-time GET of the funding endpoint (or of `url`).

        Raises:
            RuntimeError: If the session was never initialized
            ExchangeRequestError: Non-2xx status or unparsable body
        """
        if self.session is None:
            raise RuntimeError(f"{self.name} session not initialized. Call initialize() first.")

        url = url or self.url
        log_api_request(self.name, url)
        started = asyncio.get_running_loop().time()

        async with self.session.get(url) as resp:
            elapsed = asyncio.get_running_loop().time() - started
            log_api_response(self.name, url, resp.status, elapsed)

            if resp.status // 100 != 2:
                text = await resp.text()
                raise ExchangeRequestError(self.name, url, resp.status, text[:200])

            try:
                return await resp.json(content_type=None)
            except ValueError as e:
                raise ExchangeRequestError(self.name, url, resp.status, f"invalid JSON: {e}")

    def _records(self, payload: Any, *path: str) -> List[Any]:
        """
        Walk `path` into a JSON payload and return the list found there.

        An unexpected payload shape is logged and treated as "no records".
        """
        node = payload
        for key in path:
            node = node.get(key) if isinstance(node, dict) else None
        if not isinstance(node, list):
            location = "/".join(path) or "<root>"
            self.logger.warning(f"{self.name}: expected a list at {location}, got {type(node).__name__}")
            return []
        return node

    def _quote(
        self,
        symbol: Any,
        rate: Optional[float],
        price: Optional[float] = None,
        next_settlement_at: Optional[datetime] = None
    ) -> Optional[FundingQuote]:
        """Build a quote for this exchange, or None when symbol/rate are unusable."""
        if not symbol or not isinstance(symbol, str) or rate is None:
            return None
        return FundingQuote(
            exchange=self.name,
            symbol=symbol,
            rate=rate,
            price=price,
            next_settlement_at=next_settlement_at,
        )

    def _with_estimated_settlement(self, quote: FundingQuote, now: datetime) -> FundingQuote:
        """Fill in an estimated 8h-cycle settlement time when the exchange gave none."""
        if quote.next_settlement_at is not None:
            return quote
        return quote.model_copy(update={
            "next_settlement_at": next_settlement_boundary(self.settlement_offset_hours, now),
            "is_estimated_settlement": True,
        })

    def __repr__(self) -> str:
        return f"<{type(self).__name__}(name={self.name!r})>"
