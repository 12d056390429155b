"""
Bitget Exchange Connector

API Documentation:
    https://www.bitget.com/api-doc/contract/market/Get-All-Symbol-Ticker

Endpoint Used:
    GET /api/v2/mix/market/tickers?productType=USDT-FUTURES

Response Format:
    {
      "code": "00000",
      "msg": "success",
      "data": [
        {
          "symbol": "BTCUSDT",
          "lastPr": "64000.1",
          "fundingRate": "0.000068",
          "nextFundingTime": "1704124800000"
        }
      ]
    }

Notes:
    - The legacy v1 API names symbols BTCUSDT_UMCBL and reports the price as
      "last"/"lastPrice"; both shapes are accepted
"""

from typing import Any, Iterable, Optional

from core.exchange_interface import ExchangeInterface
from core.schemas import FundingQuote
from core.utils.parsing import parse_float, parse_timestamp

PRICE_FIELDS = ("lastPr", "last", "lastPrice")


class BitgetExchange(ExchangeInterface):
    """Bitget USDT-M Futures Funding Connector"""

    name = "bitget"
    settlement_offset_hours = 0

    def _iter_records(self, payload: Any) -> Iterable[Any]:
        return self._records(payload, "data")

    def _parse_record(self, record: dict) -> Optional[FundingQuote]:
        symbol = record.get("symbol") or ""
        if not symbol.upper().split("_", 1)[0].endswith("USDT"):
            return None

        price = None
        for field in PRICE_FIELDS:
            price = parse_float(record.get(field))
            if price is not None:
                break

        return self._quote(
            symbol,
            rate=parse_float(record.get("fundingRate")),
            price=price,
            next_settlement_at=parse_timestamp(record.get("nextFundingTime")),
        )
