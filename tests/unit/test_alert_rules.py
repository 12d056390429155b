"""
Unit Tests for Alert Qualification Rules

Run with:
    pytest tests/unit/test_alert_rules.py -v
"""

from datetime import datetime, timedelta, timezone

import pytest

from core.schemas import AssetSpread, FundingQuote
from services.alert_rules import (
    evaluate_spread,
    first_within_window,
    priority_rate_wins,
    qualifying_candidates,
    soonest,
)

NOW = datetime(2024, 1, 1, 7, 35, tzinfo=timezone.utc)


def make_spread(high_rate, low_rate, high_in=None, low_in=None, base="BTC"):
    """Spread whose sides settle `high_in` / `low_in` minutes after NOW (None = unknown)"""
    def side(exchange, rate, minutes):
        when = NOW + timedelta(minutes=minutes) if minutes is not None else None
        return FundingQuote(exchange=exchange, symbol=f"{base}USDT", rate=rate, next_settlement_at=when)

    return AssetSpread.from_quotes(base, side("exa", high_rate, high_in), side("exb", low_rate, low_in))


class TestPriorityComparator:
    """Tests for priority_rate_wins"""

    def test_both_negative_compares_magnitude(self):
        assert priority_rate_wins(-0.02, -0.01) is True
        assert priority_rate_wins(-0.01, -0.02) is False

    def test_positive_compares_signed_value(self):
        assert priority_rate_wins(0.015, 0.005) is True
        assert priority_rate_wins(0.005, 0.015) is False

    def test_mixed_signs_compare_signed_value(self):
        assert priority_rate_wins(0.001, -0.005) is True
        assert priority_rate_wins(-0.005, 0.001) is False

    def test_equality_wins(self):
        assert priority_rate_wins(0.01, 0.01) is True
        assert priority_rate_wins(-0.01, -0.01) is True


class TestEvaluateSpread:
    """Tests for evaluate_spread"""

    def test_sooner_high_side_qualifies(self):
        """1.2% spread, high side settles in 25m"""
        candidate = evaluate_spread(make_spread(0.008, -0.004, high_in=25, low_in=145), 1.0, NOW)

        assert candidate is not None
        assert candidate.eta_minutes == 25
        assert candidate.sooner.exchange == "exa"
        assert candidate.event_key == ("BTC", NOW + timedelta(minutes=25))

    def test_below_threshold_rejected(self):
        assert evaluate_spread(make_spread(0.003, -0.004, high_in=25, low_in=145), 1.0, NOW) is None

    def test_threshold_is_inclusive(self):
        spread = make_spread(0.006, -0.004, high_in=25, low_in=145)
        assert evaluate_spread(spread, spread.spread_pct, NOW) is not None

    def test_both_negative_sooner_larger_magnitude_qualifies(self):
        """Sooner -2.0% vs later -1.0%"""
        spread = make_spread(-0.01, -0.02, high_in=300, low_in=20)
        candidate = evaluate_spread(spread, 0.5, NOW)

        assert candidate is not None
        assert candidate.sooner.rate == -0.02

    def test_positive_sooner_lower_rate_rejected(self):
        """Sooner 0.5% vs later 1.5%"""
        spread = make_spread(0.015, 0.005, high_in=300, low_in=20)
        assert evaluate_spread(spread, 0.5, NOW) is None

    def test_same_settlement_instant_passes(self):
        spread = make_spread(0.015, 0.005, high_in=20, low_in=20)
        candidate = evaluate_spread(spread, 0.5, NOW)

        assert candidate is not None
        assert candidate.eta_minutes == 20

    def test_unknown_side_counts_as_never(self):
        # Only the low side has a time, so it is the sooner side and its rate loses
        assert evaluate_spread(make_spread(0.015, 0.005, high_in=None, low_in=20), 0.5, NOW) is None
        # Only the high side has a time
        candidate = evaluate_spread(make_spread(0.015, 0.005, high_in=20, low_in=None), 0.5, NOW)
        assert candidate is not None and candidate.sooner.exchange == "exa"

    def test_past_settlement_counts_as_never(self):
        candidate = evaluate_spread(make_spread(0.015, 0.005, high_in=40, low_in=-5), 0.5, NOW)
        assert candidate is not None
        assert candidate.sooner.exchange == "exa"

    def test_no_settlement_times_rejected(self):
        assert evaluate_spread(make_spread(0.015, 0.005), 0.5, NOW) is None

    def test_eta_is_ceiling_rounded(self):
        spread = make_spread(0.02, 0.0, high_in=24.5, low_in=200)
        assert evaluate_spread(spread, 1.0, NOW).eta_minutes == 25


class TestCandidateSelection:
    """Tests for first_within_window and soonest"""

    def test_window_filter_is_inclusive(self):
        candidates = qualifying_candidates([make_spread(0.008, -0.004, high_in=30, low_in=200)], 1.0, NOW)
        assert first_within_window(candidates, 30) is candidates[0]
        assert first_within_window(candidates, 29) is None

    def test_first_within_window_keeps_rank_order(self):
        spreads = [
            make_spread(0.03, 0.0, high_in=45, low_in=300, base="ETH"),
            make_spread(0.02, 0.0, high_in=25, low_in=300, base="BTC"),
            make_spread(0.015, 0.0, high_in=10, low_in=300, base="SOL"),
        ]
        candidates = qualifying_candidates(spreads, 1.0, NOW)

        assert first_within_window(candidates, 30).spread.base_asset == "BTC"

    def test_soonest_breaks_ties_by_order(self):
        spreads = [
            make_spread(0.03, 0.0, high_in=60, low_in=300, base="ETH"),
            make_spread(0.02, 0.0, high_in=40, low_in=300, base="BTC"),
            make_spread(0.015, 0.0, high_in=40, low_in=300, base="SOL"),
        ]
        best = soonest(qualifying_candidates(spreads, 1.0, NOW))
        assert best.spread.base_asset == "BTC"

    def test_soonest_of_nothing(self):
        assert soonest([]) is None
