"""
Configuration Management Module

This module handles loading, validating, and providing access to application configuration
from environment variables (.env file).

Uses Pydantic Settings for automatic validation and type conversion.

Key Features:
- Loads configuration from .env file
- Validates all required settings
- Provides type-safe access to configuration values
- Converts comma-separated strings to lists (exchanges, CORS origins)
- Handles optional settings with sensible defaults

Usage:
    from core.config import settings

    # Access configuration values
    print(settings.aggregation_timeout)
    print(settings.exchanges_list)  # Returns a list of strings
"""

from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """
    Application Settings

    This class defines all configuration parameters for the application.
    Values are automatically loaded from environment variables or .env file.

    Attributes:
        *_funding_url: Public funding/ticker endpoint of each exchange
        enabled_exchanges: Comma-separated list of exchanges to aggregate
        request_timeout: Total timeout of one exchange HTTP request (seconds)
        connect_timeout: Connection timeout of one exchange HTTP request (seconds)
        aggregation_timeout: Ceiling for joining all exchange fetches (seconds)
        default_report_top: Number of spreads in an on-demand report
        alert_candidate_pool: Number of top spreads evaluated per alert scan
        precise_window_minutes: Pre-settlement window for precise alerts
        precise_threshold_pct: Default spread threshold for precise alerts
        precise_lead_seconds: Safety lead subtracted from precise one-shot delays
        precise_slack_minutes: Allowed ETA drift when a precise one-shot fires
        rescan_minute_offset: Minute of the hour for the hourly precise rescan
        scheduler_workers: Size of the shared timer worker pool
        binance_ticker_url: Binance 24h ticker endpoint used for price-mover alerts
        mover_threshold_pct: Default 24h price change threshold for price-mover alerts
        mover_reset_hours: Period after which alerted price movers are forgotten
        app_host: Host address for FastAPI server
        app_port: Port number for FastAPI server
        environment: Current environment (development, production)
        debug: Force DEBUG logging regardless of log_level
        log_level: Logging level
        cors_origins: Comma-separated list of allowed CORS origins
    """

    # ============================================
    # Exchange Endpoints
    # ============================================

    binance_funding_url: str = Field(
        default="https://fapi.binance.com/fapi/v1/premiumIndex",
        description="Binance USD-M premium index (funding) endpoint"
    )

    bybit_funding_url: str = Field(
        default="https://api.bybit.com/v5/market/tickers?category=linear",
        description="Bybit linear tickers endpoint"
    )

    kucoin_funding_url: str = Field(
        default="https://api-futures.kucoin.com/api/v1/contracts/active",
        description="KuCoin Futures active contracts endpoint"
    )

    gate_funding_url: str = Field(
        default="https://api.gateio.ws/api/v4/futures/usdt/tickers",
        description="Gate.io USDT futures tickers endpoint"
    )

    bitget_funding_url: str = Field(
        default="https://api.bitget.com/api/v2/mix/market/tickers?productType=USDT-FUTURES",
        description="Bitget USDT-M futures tickers endpoint"
    )

    mexc_funding_url: str = Field(
        default="https://contract.mexc.com/api/v1/contract/ticker",
        description="MEXC contract tickers endpoint"
    )

    binance_ticker_url: str = Field(
        default="https://fapi.binance.com/fapi/v1/ticker/24hr",
        description="Binance USD-M 24h ticker statistics endpoint (price-mover alerts)"
    )

    enabled_exchanges: str = Field(
        default="binance,bybit,kucoin,gate,bitget,mexc",
        description="Comma-separated list of exchanges to aggregate"
    )

    # ============================================
    # Timeouts
    # ============================================

    request_timeout: int = Field(
        default=20,
        description="HTTP request timeout in seconds"
    )

    connect_timeout: int = Field(
        default=10,
        description="HTTP connection timeout in seconds"
    )

    aggregation_timeout: float = Field(
        default=30.0,
        description="Maximum time to wait for all exchanges in one round (seconds)"
    )

    # ============================================
    # Report & Alert Configuration
    # ============================================

    default_report_top: int = Field(
        default=10,
        description="Number of spreads shown in an on-demand report"
    )

    alert_candidate_pool: int = Field(
        default=10,
        description="Number of top spreads evaluated on each alert scan"
    )

    precise_window_minutes: int = Field(
        default=30,
        description="Precise alerts fire this many minutes before settlement"
    )

    precise_threshold_pct: float = Field(
        default=1.0,
        description="Default minimum spread (in percent) for precise alerts"
    )

    precise_lead_seconds: int = Field(
        default=5,
        description="Seconds subtracted from the precise one-shot delay"
    )

    precise_slack_minutes: int = Field(
        default=3,
        description="ETA drift tolerated when a precise one-shot fires"
    )

    rescan_minute_offset: int = Field(
        default=5,
        description="Minute of the hour at which the hourly precise rescan runs"
    )

    scheduler_workers: int = Field(
        default=4,
        description="Number of concurrent timer workers shared by all subscribers"
    )

    mover_threshold_pct: float = Field(
        default=40.0,
        description="Default 24h price change (in percent) a symbol must exceed to be alerted"
    )

    mover_reset_hours: int = Field(
        default=3,
        description="Hours after which already-alerted price movers may be alerted again"
    )

    # ============================================
    # Application Configuration
    # ============================================

    app_host: str = Field(
        default="0.0.0.0",
        description="FastAPI server host address"
    )

    app_port: int = Field(
        default=8000,
        description="FastAPI server port"
    )

    environment: str = Field(
        default="development",
        description="Application environment (development, production)"
    )

    debug: bool = Field(
        default=False,
        description="Enable debug mode (forces DEBUG logging)"
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="Comma-separated list of allowed CORS origins"
    )

    # ============================================
    # Pydantic Settings Configuration
    # ============================================

    model_config = SettingsConfigDict(
        # Look for .env file in the project root
        env_file=".env",
        # Ignore extra fields in .env that aren't defined here
        extra="ignore",
        # Case-insensitive environment variable matching
        case_sensitive=False
    )

    # ============================================
    # Computed Properties
    # ============================================

    @property
    def exchanges_list(self) -> List[str]:
        """
        Convert comma-separated exchanges string to a list.

        Returns:
            List of lowercase exchange names (e.g., ["binance", "bybit"])

        Example:
            >>> settings.exchanges_list
            ['binance', 'bybit', 'kucoin', 'gate', 'bitget', 'mexc']
        """
        return [e.strip().lower() for e in self.enabled_exchanges.split(",") if e.strip()]

    @property
    def cors_origins_list(self) -> List[str]:
        """
        Convert comma-separated CORS origins string to a list.

        Returns:
            List of allowed origin URLs
        """
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def effective_log_level(self) -> str:
        """LOG_LEVEL, or DEBUG when debug mode is on."""
        return "DEBUG" if self.debug else self.log_level.upper()

    def funding_url(self, exchange: str) -> str:
        """
        Get the configured funding endpoint for an exchange.

        Args:
            exchange: Lowercase exchange name (e.g., "kucoin")

        Returns:
            The endpoint URL

        Raises:
            AttributeError: If no endpoint is configured for the exchange
        """
        return getattr(self, f"{exchange.lower()}_funding_url")


# ============================================
# Global Settings Instance
# ============================================

# Create a single instance of settings to be imported throughout the application
settings = Settings()


# ============================================
# Configuration Validation
# ============================================

KNOWN_EXCHANGES = ("binance", "bybit", "kucoin", "gate", "bitget", "mexc")


def validate_configuration() -> None:
    """
    Validate critical configuration settings on application startup.

    Raises:
        ValueError: If required configuration is missing or invalid
    """
    # Import logger here to avoid circular import
    # (logging.py imports config.py, so we can't import at module level)
    from core.logging import logger

    if not settings.exchanges_list:
        raise ValueError("ENABLED_EXCHANGES must contain at least one exchange")

    for exchange in settings.exchanges_list:
        if exchange not in KNOWN_EXCHANGES:
            raise ValueError(
                f"Unknown exchange: '{exchange}'. "
                f"Must be one of: {', '.join(KNOWN_EXCHANGES)}"
            )

    if settings.aggregation_timeout <= 0:
        raise ValueError("AGGREGATION_TIMEOUT must be positive")

    if settings.request_timeout <= 0 or settings.connect_timeout <= 0:
        raise ValueError("REQUEST_TIMEOUT and CONNECT_TIMEOUT must be positive")

    if settings.scheduler_workers < 1:
        raise ValueError("SCHEDULER_WORKERS must be at least 1")

    if settings.precise_window_minutes < 1:
        raise ValueError("PRECISE_WINDOW_MINUTES must be at least 1")

    if settings.mover_reset_hours < 1:
        raise ValueError("MOVER_RESET_HOURS must be at least 1")

    if not (0 <= settings.rescan_minute_offset <= 59):
        raise ValueError(
            f"Invalid RESCAN_MINUTE_OFFSET: {settings.rescan_minute_offset}. Must be between 0 and 59"
        )

    if not (1 <= settings.app_port <= 65535):
        raise ValueError(f"Invalid port number: {settings.app_port}. Must be between 1 and 65535")

    valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    if settings.log_level.upper() not in valid_log_levels:
        raise ValueError(
            f"Invalid LOG_LEVEL: '{settings.log_level}'. "
            f"Must be one of: {', '.join(valid_log_levels)}"
        )

    if settings.environment not in ("development", "production"):
        raise ValueError(
            f"Invalid ENVIRONMENT: '{settings.environment}'. Must be development or production"
        )

    logger.info("Configuration validated successfully")
    logger.info(f"Aggregating exchanges: {', '.join(settings.exchanges_list)}")
    logger.info(f"Aggregation timeout: {settings.aggregation_timeout:.0f}s")
    logger.info(f"Scheduler workers: {settings.scheduler_workers}")
    logger.info(f"Server: {settings.app_host}:{settings.app_port}")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Log level: {settings.effective_log_level}")
