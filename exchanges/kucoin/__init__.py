"""
KuCoin Futures Exchange Connector

API Documentation:
    https://www.kucoin.com/docs/rest/futures-trading/market-data/get-symbols-list

Endpoint Used:
    GET /api/v1/contracts/active

Response Format:
    {
      "code": "200000",
      "data": [
        {
          "symbol": "XBTUSDTM",
          "markPrice": 64012.5,
          "indexPrice": 64001.2,
          "fundingFeeRate": 0.0001,
          "nextFundingRateDateTime": 1704124800000
        }
      ]
    }

Notes:
    - USDT-margined perpetuals end in "USDTM"; everything else is skipped
    - KuCoin settles at 04:00/12:00/20:00 UTC, so estimated settlement
      times use a +4h cycle offset
"""

from typing import Any, Iterable, Optional

from core.exchange_interface import ExchangeInterface
from core.schemas import FundingQuote
from core.utils.parsing import parse_float, parse_timestamp


class KuCoinExchange(ExchangeInterface):
    """KuCoin Futures Funding Connector"""

    name = "kucoin"
    settlement_offset_hours = 4

    def _iter_records(self, payload: Any) -> Iterable[Any]:
        return self._records(payload, "data")

    def _parse_record(self, record: dict) -> Optional[FundingQuote]:
        symbol = record.get("symbol") or ""
        if not symbol.endswith("USDTM"):
            return None

        price = parse_float(record.get("markPrice"))
        if price is None:
            price = parse_float(record.get("indexPrice"))

        next_time = parse_timestamp(record.get("nextFundingRateDateTime"))
        if next_time is None:
            next_time = parse_timestamp(record.get("fundingNextApply"))

        return self._quote(
            symbol,
            rate=parse_float(record.get("fundingFeeRate")),
            price=price,
            next_settlement_at=next_time,
        )
