"""
Gate.io Futures Exchange Connector

API Documentation:
    https://www.gate.io/docs/developers/apiv4/#list-futures-tickers

Endpoint Used:
    GET /api/v4/futures/usdt/tickers

Response Format:
    [
      {
        "contract": "BTC_USDT",
        "last": "64000.1",
        "mark_price": "64001.3",
        "funding_rate": "0.0001",
        "funding_next_apply": 1704124800
      }
    ]

Notes:
    - funding_next_apply is in SECONDS (unit is auto-detected)
    - Contracts are named BASE_USDT
"""

from typing import Any, Iterable, Optional

from core.exchange_interface import ExchangeInterface
from core.schemas import FundingQuote
from core.utils.parsing import parse_float, parse_timestamp


class GateExchange(ExchangeInterface):
    """Gate.io USDT Futures Funding Connector"""

    name = "gate"
    settlement_offset_hours = 0

    def _iter_records(self, payload: Any) -> Iterable[Any]:
        return self._records(payload)

    def _parse_record(self, record: dict) -> Optional[FundingQuote]:
        contract = record.get("contract") or ""
        if not contract.upper().endswith("_USDT"):
            return None

        price = parse_float(record.get("last"))
        if price is None:
            price = parse_float(record.get("mark_price"))

        return self._quote(
            contract,
            rate=parse_float(record.get("funding_rate")),
            price=price,
            next_settlement_at=parse_timestamp(record.get("funding_next_apply")),
        )
