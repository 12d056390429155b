"""
MEXC Contract Exchange Connector

API Documentation:
    https://mexcdevelop.github.io/apidocs/contract_v1_en/#get-contract-trend-data

Endpoint Used:
    GET https://contract.mexc.com/api/v1/contract/ticker

Response Format:
    {
      "success": true,
      "code": 0,
      "data": [
        {"symbol": "BTC_USDT", "lastPrice": 64000.1, "fundingRate": 0.0001}
      ]
    }

Notes:
    - The ticker does not report the next funding time; it is always
      estimated from the 8h cycle
"""

from typing import Any, Iterable, Optional

from core.exceptions import ExchangeRequestError
from core.exchange_interface import ExchangeInterface
from core.schemas import FundingQuote
from core.utils.parsing import parse_float


class MexcExchange(ExchangeInterface):
    """MEXC Perpetual Contracts Funding Connector"""

    name = "mexc"
    settlement_offset_hours = 0

    def _iter_records(self, payload: Any) -> Iterable[Any]:
        if isinstance(payload, dict) and payload.get("success") is False:
            raise ExchangeRequestError(self.name, self.url, detail=f"code={payload.get('code')}")
        return self._records(payload, "data")

    def _parse_record(self, record: dict) -> Optional[FundingQuote]:
        symbol = record.get("symbol") or ""
        if not symbol.upper().endswith("_USDT"):
            return None

        return self._quote(
            symbol,
            rate=parse_float(record.get("fundingRate")),
            price=parse_float(record.get("lastPrice")),
        )
