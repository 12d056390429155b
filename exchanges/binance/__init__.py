"""
Binance Exchange Connector

This module implements the ExchangeInterface for Binance Futures (USD-M).

API Documentation:
    https://binance-docs.github.io/apidocs/futures/en/

Endpoints Used:
    GET /fapi/v1/premiumIndex - Mark price and funding for all symbols
    GET /fapi/v1/ticker/24hr - 24h price change statistics (price-mover alerts)

Response Format:
    [
      {
        "symbol": "BTCUSDT",
        "markPrice": "11793.63104562",
        "indexPrice": "11781.80495970",
        "lastFundingRate": "0.00038246",
        "nextFundingTime": 1597392000000,
        "time": 1597370495002
      }
    ]

Notes:
    - Only symbols ending in USDT are kept (USDC-margined pairs are skipped)
    - nextFundingTime is 0 for instruments without a scheduled funding
"""

from typing import Any, Iterable, List, Optional

from core.config import settings
from core.exchange_interface import ExchangeInterface
from core.schemas import FundingQuote, PriceMover
from core.utils.parsing import parse_float, parse_timestamp


class BinanceExchange(ExchangeInterface):
    """
    Binance Futures Funding Connector

    Example:
        >>> async with BinanceExchange() as exchange:
        ...     quotes = await exchange.fetch_funding()
        ...     print(quotes[0].symbol, quotes[0].rate)
    """

    name = "binance"
    settlement_offset_hours = 0

    def _iter_records(self, payload: Any) -> Iterable[Any]:
        return self._records(payload)

    def _parse_record(self, record: dict) -> Optional[FundingQuote]:
        symbol = record.get("symbol") or ""
        if not symbol.endswith("USDT"):
            return None

        return self._quote(
            symbol,
            rate=parse_float(record.get("lastFundingRate")),
            price=parse_float(record.get("markPrice")),
            next_settlement_at=parse_timestamp(record.get("nextFundingTime")),
        )

    async def fetch_price_movers(self) -> List[PriceMover]:
        """
        Fetch 24h ticker statistics for every futures symbol.

        Response Format:
            [{"symbol": "BTCUSDT", "priceChange": "-94.99", "priceChangePercent": "-0.095",
              "lastPrice": "99927.10", "highPrice": "101000.00", "lowPrice": "99100.50",
              "volume": "8913.30", "count": 76}]

        Records without a symbol or a parsable priceChangePercent are dropped.

        Raises:
            ExchangeRequestError: Non-2xx response or invalid JSON body
        """
        payload = await self._get_json(settings.binance_ticker_url)

        movers: List[PriceMover] = []
        for record in self._records(payload):
            if not isinstance(record, dict):
                continue
            symbol = record.get("symbol")
            change_pct = parse_float(record.get("priceChangePercent"))
            if not symbol or not isinstance(symbol, str) or change_pct is None:
                continue
            count = parse_float(record.get("count"))
            movers.append(PriceMover(
                symbol=symbol,
                price_change_pct=change_pct,
                price_change=parse_float(record.get("priceChange")),
                last_price=parse_float(record.get("lastPrice")),
                high_price=parse_float(record.get("highPrice")),
                low_price=parse_float(record.get("lowPrice")),
                volume=parse_float(record.get("volume")),
                trade_count=int(count) if count is not None else None,
            ))

        self.logger.debug(f"{self.name}: {len(movers)} 24h tickers")
        return movers
