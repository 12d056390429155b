"""
Normalized Data Schemas

This module defines Pydantic models for funding data and alerting.
These schemas provide a unified, exchange-agnostic data format.

Key Principle:
    Regardless of which exchange the data comes from (Binance, Bybit, KuCoin, ...),
    it gets normalized into these standardized schemas. The aggregator, the alert
    scheduler and the API all work with the same records.

Models:
    - FundingQuote: One exchange's current funding state for one instrument
    - AssetSpread: Highest vs lowest funding rate for one base asset
    - NotificationPolicy: Recurring-poll alert policy of a subscriber
    - PrecisePolicy: Pre-settlement alert policy of a subscriber
    - AlertEvent: Payload handed to the delivery collaborator
    - PriceMover: 24h ticker statistics of one Binance futures symbol
    - MoverPolicy: 24h price-mover alert policy of a subscriber
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict

from core.config import settings


# ============================================
# Funding Quote Schema
# ============================================

class FundingQuote(BaseModel):
    """
    Funding Quote Data Model

    Represents the current funding state of one perpetual instrument on one exchange.

    Funding Rate Explained:
        - Positive rate: Longs pay shorts
        - Negative rate: Shorts pay longs
        - Rate typically applied every 8 hours (exchange-dependent)

    Attributes:
        exchange: Source exchange identifier (lowercase)
        symbol: Exchange-native instrument symbol (uppercase, e.g. "BTC_USDT", "XBTUSDTM")
        rate: Current funding rate as decimal (0.001 = 0.1%), never clamped
        price: Last/mark/index price, None if the exchange did not provide one
        next_settlement_at: Next funding settlement in UTC, None if unknown
        is_estimated_settlement: True if next_settlement_at was estimated
                                 rather than reported by the exchange

    Example:
        >>> quote = FundingQuote(
        ...     exchange="kucoin",
        ...     symbol="XBTUSDTM",
        ...     rate=0.0001,
        ...     price=64000.0,
        ...     next_settlement_at=datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc),
        ...     is_estimated_settlement=True
        ... )

    Notes:
        - An estimated settlement time is always flagged; callers must never
          treat it as exact.
    """

    exchange: str = Field(
        ...,
        description="Source exchange identifier (lowercase)",
        examples=["binance", "gate", "kucoin"]
    )

    symbol: str = Field(
        ...,
        description="Exchange-native instrument symbol in uppercase",
        examples=["BTCUSDT", "BTC_USDT", "XBTUSDTM"]
    )

    rate: float = Field(
        ...,
        description="Current funding rate as decimal (0.0001 = 0.01%)"
    )

    price: Optional[float] = Field(
        None,
        description="Last, mark or index price (if available)"
    )

    next_settlement_at: Optional[datetime] = Field(
        None,
        description="Next funding settlement in UTC"
    )

    is_estimated_settlement: bool = Field(
        False,
        description="True if next_settlement_at was estimated from the 8h cycle"
    )

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "exchange": "binance",
                "symbol": "BTCUSDT",
                "rate": 0.0001,
                "price": 64000.0,
                "next_settlement_at": "2024-01-01T16:00:00Z",
                "is_estimated_settlement": False
            }
        }
    )

    @field_validator('symbol')
    @classmethod
    def validate_symbol(cls, v: str) -> str:
        """Ensure symbol is uppercase"""
        return v.upper()

    @field_validator('exchange')
    @classmethod
    def validate_exchange(cls, v: str) -> str:
        """Ensure exchange is lowercase"""
        return v.lower()

    @model_validator(mode='after')
    def validate_estimate_flag(self) -> "FundingQuote":
        """An estimate flag without a settlement time is meaningless"""
        if self.is_estimated_settlement and self.next_settlement_at is None:
            raise ValueError("is_estimated_settlement requires next_settlement_at")
        return self

    @property
    def key(self) -> tuple:
        """(exchange, symbol) identity of the instrument"""
        return (self.exchange, self.symbol)

    @property
    def rate_pct(self) -> float:
        """Funding rate in percent"""
        return self.rate * 100.0


# ============================================
# Asset Spread Schema
# ============================================

class AssetSpread(BaseModel):
    """
    Cross-Exchange Funding Spread for One Base Asset

    Attributes:
        base_asset: Normalized underlying symbol (e.g. "BTC")
        high_quote: Quote with the highest funding rate
        low_quote: Quote with the lowest funding rate
        spread_pct: (high_quote.rate - low_quote.rate) * 100

    Notes:
        - Only built for assets quoted on at least two instruments
        - high_quote and low_quote are always different instruments
        - spread_pct is always strictly positive
    """

    base_asset: str = Field(..., description="Normalized base asset", examples=["BTC"])
    high_quote: FundingQuote
    low_quote: FundingQuote
    spread_pct: float = Field(..., gt=0, description="Rate spread in percent")

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_quotes(cls, base_asset: str, high: FundingQuote, low: FundingQuote) -> "AssetSpread":
        """Build a spread from its two extreme quotes."""
        return cls(
            base_asset=base_asset,
            high_quote=high,
            low_quote=low,
            spread_pct=(high.rate - low.rate) * 100.0,
        )

    @model_validator(mode='after')
    def validate_distinct_quotes(self) -> "AssetSpread":
        if self.high_quote.key == self.low_quote.key:
            raise ValueError("high_quote and low_quote must be different instruments")
        return self


# ============================================
# Subscriber Policies
# ============================================

class NotificationPolicy(BaseModel):
    """
    Recurring-poll alert policy.

    Every poll_interval_minutes the top spreads are evaluated; the first one
    above threshold_pct whose sooner side settles within window_minutes is
    delivered.
    """

    window_minutes: int = Field(..., gt=0, description="Alert when settlement is this close (minutes)")
    threshold_pct: float = Field(..., ge=0, description="Minimum spread in percent")
    poll_interval_minutes: int = Field(..., gt=0, description="Evaluation interval (minutes)")

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {"window_minutes": 30, "threshold_pct": 1.0, "poll_interval_minutes": 60}
        }
    )


class PrecisePolicy(BaseModel):
    """
    Pre-settlement alert policy.

    Alerts are armed to fire window_minutes before the settlement of the best
    qualifying spread.
    """

    threshold_pct: float = Field(
        default_factory=lambda: settings.precise_threshold_pct,
        ge=0,
        description="Minimum spread in percent"
    )
    window_minutes: int = Field(
        default_factory=lambda: settings.precise_window_minutes,
        gt=0,
        description="Fire this many minutes before settlement"
    )

    model_config = ConfigDict(frozen=True)


# ============================================
# Alert Event
# ============================================

class AlertEvent(BaseModel):
    """
    Alert handed to the delivery collaborator.

    Attributes:
        subscriber_id: Recipient
        spread: The qualifying spread
        eta_minutes: Ceiling-rounded minutes to the sooner settlement at fire time
        settling_quote: The side that settles first
        fired_at: When the alert was produced (UTC)
    """

    subscriber_id: str
    spread: AssetSpread
    eta_minutes: int = Field(..., ge=0)
    settling_quote: FundingQuote
    fired_at: datetime


# ============================================
# 24h Price Movers
# ============================================

class PriceMover(BaseModel):
    """
    24h Ticker Statistics of One Symbol

    Attributes:
        symbol: Exchange-native symbol (e.g. "BTCUSDT")
        price_change_pct: 24h price change in percent (12.5 = +12.5%)
        price_change: 24h absolute price change
        last_price: Last traded price
        high_price: 24h high
        low_price: 24h low
        volume: 24h base-asset volume
        trade_count: Number of trades in the last 24h
    """

    symbol: str = Field(..., description="Exchange-native symbol", examples=["BTCUSDT"])
    price_change_pct: float = Field(..., description="24h price change in percent")
    price_change: Optional[float] = None
    last_price: Optional[float] = None
    high_price: Optional[float] = None
    low_price: Optional[float] = None
    volume: Optional[float] = None
    trade_count: Optional[int] = None

    model_config = ConfigDict(frozen=True)

    @field_validator('symbol')
    @classmethod
    def validate_symbol(cls, v: str) -> str:
        """Ensure symbol is uppercase"""
        return v.upper()


class MoverPolicy(BaseModel):
    """
    24h price-mover alert policy.

    Every interval_seconds the Binance 24h tickers are fetched; each symbol
    whose price change exceeds threshold_pct is alerted once. Alerted symbols
    are forgotten every MOVER_RESET_HOURS.
    """

    threshold_pct: float = Field(
        default_factory=lambda: settings.mover_threshold_pct,
        description="24h price change (in percent) a symbol must exceed"
    )
    interval_seconds: int = Field(..., gt=0, description="Polling interval (seconds)")

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={"example": {"threshold_pct": 40.0, "interval_seconds": 60}}
    )
