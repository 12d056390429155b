"""
Unified Logging Configuration

This module sets up a centralized logging system for the entire application.
All modules should import and use the logger from this module instead of
using print() statements.

Usage:
    from core.logging import logger, get_logger

    logger.info("Aggregation round finished")

    log = get_logger(__name__)
    log.warning("kucoin fetch failed")

Log Levels (from most to least verbose):
    DEBUG    - Detailed diagnostic information (e.g., "GET premiumIndex | Status: 200")
    INFO     - General informational messages (e.g., "Precise alert armed for BTC")
    WARNING  - Recoverable problems (e.g., "gate timed out, skipped this round")
    ERROR    - Errors that don't crash the app (e.g., "Alert delivery failed")
    CRITICAL - Severe errors that may crash

Configuration:
    Log level is controlled by the LOG_LEVEL setting in .env file;
    DEBUG=true forces DEBUG.
"""

import logging
import sys
from typing import Optional


def setup_logging(
    log_level: str = "INFO",
    log_format: Optional[str] = None,
    include_timestamp: bool = True,
    include_module: bool = True
) -> logging.Logger:
    """
    Configure and return the application logger.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Custom log format string (uses default if None)
        include_timestamp: Include timestamp in log messages
        include_module: Include module name in log messages

    Returns:
        logging.Logger: Configured logger instance

    Example:
        >>> logger = setup_logging(log_level="DEBUG")
        >>> logger.info("Application started")
        2024-01-01 12:00:00 [INFO] fundingmon: Application started
    """
    if log_format is None:
        format_parts = []

        if include_timestamp:
            format_parts.append("%(asctime)s")

        format_parts.append("[%(levelname)s]")

        if include_module:
            format_parts.append("%(name)s:")

        format_parts.append("%(message)s")

        log_format = " ".join(format_parts)

    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format=log_format,
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        force=True  # Override any existing configuration
    )

    logger = logging.getLogger("fundingmon")
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    return logger


# ============================================
# Initialize Logger with Settings
# ============================================

try:
    from core.config import settings
    log_level = settings.effective_log_level
except ImportError:
    log_level = "INFO"

# Create the global logger instance
logger = setup_logging(log_level=log_level)


# ============================================
# Convenience Functions
# ============================================

def get_logger(name: str) -> logging.Logger:
    """
    Get a child logger of the application logger.

    Args:
        name: Name for the logger (typically __name__)

    Returns:
        logging.Logger: Logger instance for the specified name

    Example:
        # In services/funding_aggregator.py:
        logger = get_logger(__name__)  # "fundingmon.services.funding_aggregator"
    """
    return logging.getLogger(f"fundingmon.{name}")


# ============================================
# Log Helper Functions
# ============================================

def log_api_request(exchange: str, url: str) -> None:
    """
    Log an exchange API request with consistent formatting.

    Example:
        >>> log_api_request("binance", "https://fapi.binance.com/fapi/v1/premiumIndex")
        [DEBUG] API Request: binance https://fapi.binance.com/fapi/v1/premiumIndex
    """
    logger.debug(f"API Request: {exchange} {url}")


def log_api_response(exchange: str, url: str, status: int, response_time: float = None) -> None:
    """
    Log an exchange API response with status and timing information.

    Example:
        >>> log_api_response("binance", "/fapi/v1/premiumIndex", 200, 0.342)
        [DEBUG] API Response: binance /fapi/v1/premiumIndex | Status: 200 | Time: 0.342s
    """
    time_str = f" | Time: {response_time:.3f}s" if response_time else ""
    logger.debug(f"API Response: {exchange} {url} | Status: {status}{time_str}")


def log_timer_event(subscriber_id: str, category: str, event: str, details: str = None) -> None:
    """
    Log a scheduler timer event with consistent formatting.

    Args:
        subscriber_id: Subscriber owning the timer
        category: Timer category (recurring, rescan, precise)
        event: Event type (e.g., "scheduled", "cancelled", "fired", "error")
        details: Additional details (optional)

    Example:
        >>> log_timer_event("42", "precise", "scheduled", "in 1795s")
        [INFO] Timer: 42/precise scheduled | in 1795s
    """
    details_str = f" | {details}" if details else ""
    level = logging.ERROR if event == "error" else logging.INFO
    logger.log(level, f"Timer: {subscriber_id}/{category} {event}{details_str}")


logger.debug("Logging system initialized")
