"""
Unit Tests for Exchange Funding Connectors

Each connector is fed a mocked payload in the documented response shape and
must:
- Keep only USDT-margined perpetuals
- Map rate, price and next settlement time
- Drop malformed records without failing the fetch

Run with:
    pytest tests/unit/test_exchanges.py -v
"""

from datetime import datetime, timezone

import pytest

from core.config import settings
from core.exceptions import ExchangeRequestError
from exchanges.binance import BinanceExchange
from exchanges.bitget import BitgetExchange
from exchanges.bybit import BybitExchange
from exchanges.gate import GateExchange
from exchanges.kucoin import KuCoinExchange
from exchanges.mexc import MexcExchange

SETTLEMENT = datetime(2024, 1, 1, 16, 0, tzinfo=timezone.utc)
SETTLEMENT_MS = 1704124800000
SETTLEMENT_S = 1704124800


def mock_payload(monkeypatch, exchange, payload):
    async def mock_get_json():
        return payload

    monkeypatch.setattr(exchange, "_get_json", mock_get_json)


# ============================================
# Binance
# ============================================

class TestBinance:
    """Tests for BinanceExchange"""

    @pytest.mark.asyncio
    async def test_parses_premium_index(self, monkeypatch):
        exchange = BinanceExchange()
        mock_payload(monkeypatch, exchange, [
            {
                "symbol": "BTCUSDT",
                "markPrice": "64000.10",
                "lastFundingRate": "0.00038246",
                "nextFundingTime": SETTLEMENT_MS,
            },
            {"symbol": "ETHUSDC", "markPrice": "3000", "lastFundingRate": "0.0001", "nextFundingTime": SETTLEMENT_MS},
            {"symbol": "SOLUSDT", "markPrice": "", "lastFundingRate": "oops", "nextFundingTime": SETTLEMENT_MS},
        ])

        quotes = await exchange.fetch_funding()

        assert len(quotes) == 1
        quote = quotes[0]
        assert quote.exchange == "binance"
        assert quote.symbol == "BTCUSDT"
        assert quote.rate == pytest.approx(0.00038246)
        assert quote.price == pytest.approx(64000.10)
        assert quote.next_settlement_at == SETTLEMENT
        assert quote.is_estimated_settlement is False

    @pytest.mark.asyncio
    async def test_zero_next_funding_time_is_estimated(self, monkeypatch):
        exchange = BinanceExchange()
        mock_payload(monkeypatch, exchange, [
            {"symbol": "BTCUSDT", "markPrice": "1", "lastFundingRate": "0.0001", "nextFundingTime": 0},
        ])

        quotes = await exchange.fetch_funding()

        assert quotes[0].is_estimated_settlement is True
        assert quotes[0].next_settlement_at.hour in (0, 8, 16)

    @pytest.mark.asyncio
    async def test_parses_24h_tickers(self, monkeypatch):
        exchange = BinanceExchange()
        requested = []

        async def mock_get_json(url=None):
            requested.append(url)
            return [
                {
                    "symbol": "ordiusdt",
                    "priceChange": "18.15",
                    "priceChangePercent": "42.100",
                    "lastPrice": "61.25",
                    "highPrice": "63.00",
                    "lowPrice": "42.80",
                    "volume": "9876543",
                    "count": 76012,
                },
                {"symbol": "BTCUSDT", "priceChangePercent": ""},
                {"priceChangePercent": "5.0"},
                "garbage",
            ]

        monkeypatch.setattr(exchange, "_get_json", mock_get_json)

        movers = await exchange.fetch_price_movers()

        assert requested == [settings.binance_ticker_url]
        assert len(movers) == 1
        mover = movers[0]
        assert mover.symbol == "ORDIUSDT"
        assert mover.price_change_pct == pytest.approx(42.1)
        assert mover.last_price == pytest.approx(61.25)
        assert mover.trade_count == 76012


# ============================================
# Bybit
# ============================================

class TestBybit:
    """Tests for BybitExchange"""

    @pytest.mark.asyncio
    async def test_parses_linear_tickers(self, monkeypatch):
        exchange = BybitExchange()
        mock_payload(monkeypatch, exchange, {
            "retCode": 0,
            "retMsg": "OK",
            "result": {
                "category": "linear",
                "list": [
                    {"symbol": "BTCUSDT", "lastPrice": "16597.00", "fundingRate": "-0.000212",
                     "nextFundingTime": str(SETTLEMENT_MS)},
                    {"symbol": "BTCPERP", "lastPrice": "16597.00", "fundingRate": "0.0001",
                     "nextFundingTime": str(SETTLEMENT_MS)},
                    {"symbol": "BTCUSDT-26DEC25", "lastPrice": "17000", "fundingRate": "",
                     "nextFundingTime": "0"},
                ],
            },
        })

        quotes = await exchange.fetch_funding()

        assert [q.symbol for q in quotes] == ["BTCUSDT"]
        assert quotes[0].rate == pytest.approx(-0.000212)
        assert quotes[0].price == pytest.approx(16597.0)
        assert quotes[0].next_settlement_at == SETTLEMENT

    @pytest.mark.asyncio
    async def test_non_zero_ret_code_raises(self, monkeypatch):
        exchange = BybitExchange()
        mock_payload(monkeypatch, exchange, {"retCode": 10006, "retMsg": "Too many visits!"})

        with pytest.raises(ExchangeRequestError, match="10006"):
            await exchange.fetch_funding()


# ============================================
# KuCoin
# ============================================

class TestKuCoin:
    """Tests for KuCoinExchange"""

    @pytest.mark.asyncio
    async def test_parses_active_contracts(self, monkeypatch):
        exchange = KuCoinExchange()
        mock_payload(monkeypatch, exchange, {
            "code": "200000",
            "data": [
                {"symbol": "XBTUSDTM", "markPrice": 64012.5, "indexPrice": 64001.2,
                 "fundingFeeRate": 0.0001, "nextFundingRateDateTime": SETTLEMENT_MS},
                {"symbol": "XBTUSDM", "markPrice": 64012.5, "fundingFeeRate": 0.0001},
                {"symbol": "ETHUSDTM", "indexPrice": 3000.5, "fundingFeeRate": -0.0002,
                 "fundingNextApply": SETTLEMENT_MS},
            ],
        })

        quotes = await exchange.fetch_funding()

        assert [q.symbol for q in quotes] == ["XBTUSDTM", "ETHUSDTM"]
        assert quotes[0].price == 64012.5
        assert quotes[0].next_settlement_at == SETTLEMENT
        # markPrice missing: falls back to indexPrice
        assert quotes[1].price == 3000.5
        assert quotes[1].next_settlement_at == SETTLEMENT

    @pytest.mark.asyncio
    async def test_estimate_uses_four_hour_offset(self, monkeypatch):
        exchange = KuCoinExchange()
        mock_payload(monkeypatch, exchange, {
            "data": [{"symbol": "XBTUSDTM", "markPrice": 1.0, "fundingFeeRate": 0.0001}],
        })

        quotes = await exchange.fetch_funding()

        assert quotes[0].is_estimated_settlement is True
        assert quotes[0].next_settlement_at.hour in (4, 12, 20)


# ============================================
# Gate.io
# ============================================

class TestGate:
    """Tests for GateExchange"""

    @pytest.mark.asyncio
    async def test_parses_tickers_with_seconds_timestamp(self, monkeypatch):
        exchange = GateExchange()
        mock_payload(monkeypatch, exchange, [
            {"contract": "BTC_USDT", "last": "64000.1", "mark_price": "64001.3",
             "funding_rate": "0.0001", "funding_next_apply": SETTLEMENT_S},
            {"contract": "ETH_USDT", "last": "", "mark_price": "3000.2",
             "funding_rate": "-0.0003", "funding_next_apply": SETTLEMENT_S},
            {"contract": "BTC_USD", "last": "64000", "funding_rate": "0.0001"},
        ])

        quotes = await exchange.fetch_funding()

        assert [q.symbol for q in quotes] == ["BTC_USDT", "ETH_USDT"]
        assert quotes[0].next_settlement_at == SETTLEMENT
        assert quotes[0].price == pytest.approx(64000.1)
        assert quotes[1].price == pytest.approx(3000.2)


# ============================================
# Bitget
# ============================================

class TestBitget:
    """Tests for BitgetExchange"""

    @pytest.mark.asyncio
    async def test_parses_v2_tickers(self, monkeypatch):
        exchange = BitgetExchange()
        mock_payload(monkeypatch, exchange, {
            "code": "00000",
            "data": [
                {"symbol": "BTCUSDT", "lastPr": "64000.1", "fundingRate": "0.000068",
                 "nextFundingTime": str(SETTLEMENT_MS)},
                {"symbol": "BTCUSD", "lastPr": "64000.1", "fundingRate": "0.0001"},
            ],
        })

        quotes = await exchange.fetch_funding()

        assert [q.symbol for q in quotes] == ["BTCUSDT"]
        assert quotes[0].price == pytest.approx(64000.1)
        assert quotes[0].next_settlement_at == SETTLEMENT

    @pytest.mark.asyncio
    async def test_accepts_legacy_symbol_and_price_fields(self, monkeypatch):
        exchange = BitgetExchange()
        mock_payload(monkeypatch, exchange, {
            "data": [{"symbol": "ETHUSDT_UMCBL", "last": "3000.5", "fundingRate": "-0.0001"}],
        })

        quotes = await exchange.fetch_funding()

        assert quotes[0].symbol == "ETHUSDT_UMCBL"
        assert quotes[0].price == pytest.approx(3000.5)
        assert quotes[0].is_estimated_settlement is True


# ============================================
# MEXC
# ============================================

class TestMexc:
    """Tests for MexcExchange"""

    @pytest.mark.asyncio
    async def test_settlement_always_estimated(self, monkeypatch):
        exchange = MexcExchange()
        mock_payload(monkeypatch, exchange, {
            "success": True,
            "code": 0,
            "data": [
                {"symbol": "BTC_USDT", "lastPrice": 64000.1, "fundingRate": 0.0001},
                {"symbol": "BTC_USD", "lastPrice": 64000.1, "fundingRate": 0.0001},
            ],
        })

        quotes = await exchange.fetch_funding()

        assert [q.symbol for q in quotes] == ["BTC_USDT"]
        assert quotes[0].is_estimated_settlement is True
        assert quotes[0].next_settlement_at > datetime.now(timezone.utc)

    @pytest.mark.asyncio
    async def test_unsuccessful_response_raises(self, monkeypatch):
        exchange = MexcExchange()
        mock_payload(monkeypatch, exchange, {"success": False, "code": 510})

        with pytest.raises(ExchangeRequestError, match="510"):
            await exchange.fetch_funding()
