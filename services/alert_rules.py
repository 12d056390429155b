"""
Alert Qualification Rules

Pure functions deciding whether an AssetSpread is worth alerting on, shared
by the recurring-poll and the precise pre-settlement schedulers.

A spread qualifies when:
    - spread_pct >= threshold
    - at least one side settles in the future (a missing or past settlement
      time counts as "never")
    - the side settling first ("sooner") does not have the lower rate by the
      priority comparator below; equal settlement instants always pass

The window test (eta_minutes <= window) is left to the caller.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from core.schemas import AssetSpread, FundingQuote
from core.utils.time import current_utc_datetime, minutes_until_ceil


@dataclass(frozen=True)
class AlertCandidate:
    """A qualifying spread together with its sooner-settling side."""

    spread: AssetSpread
    sooner: FundingQuote
    later: FundingQuote
    settles_at: datetime
    eta_minutes: int

    @property
    def event_key(self) -> Tuple[str, datetime]:
        """Identity of the settlement event this candidate alerts on."""
        return (self.spread.base_asset, self.settles_at)


def priority_rate_wins(sooner_rate: float, later_rate: float) -> bool:
    """
    Priority comparator between the sooner and the later side.

    If both rates are negative the larger magnitude wins; otherwise the larger
    signed value wins. Equality counts as a win.

    Examples:
        >>> priority_rate_wins(-0.02, -0.01)
        True
        >>> priority_rate_wins(0.005, 0.015)
        False
        >>> priority_rate_wins(0.001, -0.005)
        True
    """
    if sooner_rate < 0 and later_rate < 0:
        return abs(sooner_rate) >= abs(later_rate)
    return sooner_rate >= later_rate


def future_settlement(quote: FundingQuote, now: datetime) -> Optional[datetime]:
    """Settlement time of the quote if it lies strictly after `now`."""
    when = quote.next_settlement_at
    if when is None or when <= now:
        return None
    return when


def evaluate_spread(
    spread: AssetSpread,
    threshold_pct: float,
    now: Optional[datetime] = None,
) -> Optional[AlertCandidate]:
    """
    Apply the qualifying rule to one spread.

    Returns:
        AlertCandidate if the spread qualifies, None otherwise
    """
    if spread.spread_pct < threshold_pct:
        return None

    now = now or current_utc_datetime()
    high, low = spread.high_quote, spread.low_quote
    high_at = future_settlement(high, now)
    low_at = future_settlement(low, now)

    if high_at is None and low_at is None:
        return None

    if high_at is not None and low_at is not None and high_at == low_at:
        # Both settle together: the priority rule does not apply
        return AlertCandidate(spread, high, low, high_at, minutes_until_ceil(high_at, now))

    if low_at is None or (high_at is not None and high_at < low_at):
        sooner, later, settles_at = high, low, high_at
    else:
        sooner, later, settles_at = low, high, low_at

    if not priority_rate_wins(sooner.rate, later.rate):
        return None

    return AlertCandidate(spread, sooner, later, settles_at, minutes_until_ceil(settles_at, now))


def qualifying_candidates(
    spreads: Iterable[AssetSpread],
    threshold_pct: float,
    now: Optional[datetime] = None,
) -> List[AlertCandidate]:
    """Qualifying candidates in the order of `spreads`."""
    now = now or current_utc_datetime()
    candidates = []
    for spread in spreads:
        candidate = evaluate_spread(spread, threshold_pct, now)
        if candidate is not None:
            candidates.append(candidate)
    return candidates


def first_within_window(candidates: Iterable[AlertCandidate], window_minutes: int) -> Optional[AlertCandidate]:
    """First candidate settling within the window."""
    for candidate in candidates:
        if candidate.eta_minutes <= window_minutes:
            return candidate
    return None


def soonest(candidates: List[AlertCandidate]) -> Optional[AlertCandidate]:
    """Candidate with the smallest ETA; ties keep the input order."""
    if not candidates:
        return None
    return min(candidates, key=lambda c: c.eta_minutes)
