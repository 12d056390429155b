"""
Plain-text rendering of funding reports and alerts.

The output carries no markup; transports that need escaping or rich
formatting do it on their side.
"""

from datetime import datetime
from typing import List, Optional

from core.schemas import AlertEvent, AssetSpread, FundingQuote, PriceMover
from core.utils.time import current_utc_datetime, minutes_until_floor

NO_ENTRIES_TEXT = "No entries matched."

EXCHANGE_DISPLAY_NAMES = {
    "binance": "Binance",
    "bybit": "Bybit",
    "kucoin": "KuCoin",
    "gate": "Gate.io",
    "bitget": "Bitget",
    "mexc": "MEXC",
}


def exchange_display_name(exchange: str) -> str:
    return EXCHANGE_DISPLAY_NAMES.get(exchange, exchange.capitalize())


def format_rate(rate: float) -> str:
    """Funding rate as a signed percentage, e.g. 0.0001 -> '+0.0100%'."""
    return f"{rate * 100:+.4f}%"


def format_price(price: Optional[float]) -> str:
    if price is None:
        return "n/a"
    if price >= 1:
        return f"{price:,.2f}"
    return f"{price:.6g}"


def format_eta(when: Optional[datetime], now: datetime) -> str:
    """Time until `when`, floor-rounded to minutes ('1h 05m', '12m', 'now')."""
    if when is None:
        return "unknown"
    minutes = minutes_until_floor(when, now)
    if minutes <= 0:
        return "now"
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}h {minutes:02d}m"
    return f"{minutes}m"


def _quote_line(marker: str, quote: FundingQuote, now: datetime) -> str:
    eta = format_eta(quote.next_settlement_at, now)
    if quote.is_estimated_settlement:
        eta += " (est.)"
    return (
        f"   {marker} {exchange_display_name(quote.exchange)} {quote.symbol}  "
        f"{format_rate(quote.rate)}  next in {eta}  price {format_price(quote.price)}"
    )


def render_report(spreads: List[AssetSpread], now: Optional[datetime] = None) -> str:
    """
    Render a ranked spread list.

    Example output:
        Top 1 funding spread(s) at 07:30 UTC
        1. BTC  spread 0.6000%
           high Binance BTCUSDT  +0.1000%  next in 30m  price 64,000.10
           low  Bybit BTCUSDT  -0.5000%  next in 30m  price n/a
    """
    if not spreads:
        return NO_ENTRIES_TEXT

    now = now or current_utc_datetime()
    lines = [f"Top {len(spreads)} funding spread(s) at {now:%H:%M} UTC"]
    for rank, spread in enumerate(spreads, start=1):
        lines.append(f"{rank}. {spread.base_asset}  spread {spread.spread_pct:.4f}%")
        lines.append(_quote_line("high", spread.high_quote, now))
        lines.append(_quote_line("low ", spread.low_quote, now))
    return "\n".join(lines)


def render_alert(event: AlertEvent) -> str:
    """Render one alert. The ETA is the one computed when the alert fired."""
    spread = event.spread
    settling = event.settling_quote
    estimated = " (estimated)" if settling.is_estimated_settlement else ""
    return "\n".join([
        f"Funding alert: {spread.base_asset} spread {spread.spread_pct:.4f}%",
        f"{exchange_display_name(settling.exchange)} {settling.symbol} settles in "
        f"~{event.eta_minutes} min{estimated} at {format_rate(settling.rate)}",
        _quote_line("high", spread.high_quote, event.fired_at).strip(),
        _quote_line("low ", spread.low_quote, event.fired_at).strip(),
    ])


def render_mover(mover: PriceMover) -> str:
    """
    Render one 24h price mover.

    Example:
        Price mover: ORDIUSDT +42.10% in 24h
           last 61.25  change +18.15
           high 63.00  low 42.80
           volume 9,876,543.00  trades 76,012
    """
    change = f"{mover.price_change:+.6g}" if mover.price_change is not None else "n/a"
    trades = f"{mover.trade_count:,}" if mover.trade_count is not None else "n/a"
    return "\n".join([
        f"Price mover: {mover.symbol} {mover.price_change_pct:+.2f}% in 24h",
        f"   last {format_price(mover.last_price)}  change {change}",
        f"   high {format_price(mover.high_price)}  low {format_price(mover.low_price)}",
        f"   volume {format_price(mover.volume)}  trades {trades}",
    ])
