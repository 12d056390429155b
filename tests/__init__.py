"""
Test Suite

Contains unit tests for the funding spread monitor.

Structure:
- tests/unit/: Tests for individual components (adapters, aggregation, alert rules,
  timers, scheduling, formatting, API). No test contacts a live exchange.

Uses pytest with pytest-asyncio for testing async functionality.
"""
