"""
Bybit Exchange Connector

This module implements the ExchangeInterface for Bybit linear (USDT) perpetuals.

API Documentation:
    https://bybit-exchange.github.io/docs/v5/market/tickers

Endpoint Used:
    GET /v5/market/tickers?category=linear

Response Format:
    {
      "retCode": 0,
      "retMsg": "OK",
      "result": {
        "category": "linear",
        "list": [
          {
            "symbol": "BTCUSDT",
            "lastPrice": "16597.00",
            "fundingRate": "-0.000212",
            "nextFundingTime": "1673280000000"
          }
        ]
      }
    }

Notes:
    - The linear category also lists USDC perpetuals (BTCPERP) and dated
      futures (BTCUSDT-26DEC25); only symbols ending in USDT are kept
    - Dated futures carry an empty fundingRate and would be dropped anyway
"""

from typing import Any, Iterable, Optional

from core.exceptions import ExchangeRequestError
from core.exchange_interface import ExchangeInterface
from core.schemas import FundingQuote
from core.utils.parsing import parse_float, parse_timestamp


class BybitExchange(ExchangeInterface):
    """Bybit Linear Perpetuals Funding Connector"""

    name = "bybit"
    settlement_offset_hours = 0

    def _iter_records(self, payload: Any) -> Iterable[Any]:
        # Bybit reports API errors with HTTP 200 and a non-zero retCode
        if isinstance(payload, dict) and payload.get("retCode", 0) != 0:
            raise ExchangeRequestError(
                self.name, self.url, detail=f"retCode={payload.get('retCode')} {payload.get('retMsg', '')}"
            )
        return self._records(payload, "result", "list")

    def _parse_record(self, record: dict) -> Optional[FundingQuote]:
        symbol = record.get("symbol") or ""
        if not symbol.endswith("USDT"):
            return None

        return self._quote(
            symbol,
            rate=parse_float(record.get("fundingRate")),
            price=parse_float(record.get("lastPrice")),
            next_settlement_at=parse_timestamp(record.get("nextFundingTime")),
        )
