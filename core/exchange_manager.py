"""
Exchange Manager - Central Registry for Funding Connectors

This module provides a centralized manager for all exchange connectors.
The ExchangeManager acts as a registry and factory for exchange instances.

Design Benefits:
    - Single source of truth for the exchanges being aggregated
    - Exchanges are selected by configuration (ENABLED_EXCHANGES)
    - Centralized lifecycle management (initialize/shutdown)

Example Usage:
    manager = ExchangeManager()
    await manager.initialize_all()

    for exchange in manager:
        quotes = await exchange.fetch_funding()

    await manager.shutdown_all()
"""

from typing import Dict, Iterable, Iterator, List, Optional

from core.exceptions import ExchangeNotFoundError
from core.exchange_interface import ExchangeInterface
from core.logging import logger


class ExchangeManager:
    """
    Central Manager for Exchange Connectors

    Attributes:
        exchanges: Dictionary mapping exchange names to exchange instances,
                   in registration order

    Example:
        >>> manager = ExchangeManager()
        >>> manager.list_exchanges()
        ['binance', 'bybit', 'kucoin', 'gate', 'bitget', 'mexc']
    """

    def __init__(self, exchanges: Optional[Iterable[ExchangeInterface]] = None):
        """
        Initialize the Exchange Manager and register exchanges.

        Args:
            exchanges: Explicit connector instances. When omitted, one connector
                       per entry of settings.exchanges_list is created.

        Note:
            Exchange instances are created but not initialized here.
            Call initialize_all() to open HTTP sessions.
        """
        if exchanges is None:
            # Import here to avoid circular imports
            # Each exchange module imports from core, so we can't import at module level
            from core.config import settings
            from exchanges import EXCHANGE_CLASSES

            exchanges = [EXCHANGE_CLASSES[name]() for name in settings.exchanges_list]

        self.exchanges: Dict[str, ExchangeInterface] = {}
        for exchange in exchanges:
            self.exchanges[exchange.name.lower()] = exchange

        logger.info(
            f"ExchangeManager initialized with {len(self.exchanges)} exchange(s): "
            f"{', '.join(self.exchanges.keys())}"
        )

    # ============================================
    # Exchange Retrieval Methods
    # ============================================

    def get_exchange(self, name: str) -> ExchangeInterface:
        """
        Get an exchange connector by name.

        Args:
            name: Exchange name (case-insensitive)

        Returns:
            ExchangeInterface: The requested exchange instance

        Raises:
            ExchangeNotFoundError: If the exchange is not registered
        """
        name = name.lower()

        if name not in self.exchanges:
            available = ", ".join(self.exchanges.keys())
            logger.error(f"Exchange '{name}' not found. Available: {available}")
            raise ExchangeNotFoundError(
                f"Exchange '{name}' is not supported. "
                f"Available exchanges: {available}"
            )

        return self.exchanges[name]

    def has_exchange(self, name: str) -> bool:
        """Check if an exchange is registered (case-insensitive)."""
        return name.lower() in self.exchanges

    def list_exchanges(self) -> List[str]:
        """Get a list of all registered exchange names."""
        return list(self.exchanges.keys())

    # ============================================
    # Lifecycle Management
    # ============================================

    async def initialize_all(self) -> None:
        """
        Initialize all registered exchanges.

        A connector that fails to initialize is logged and skipped; it will
        simply contribute no quotes until it recovers.
        """
        logger.info("Initializing all exchanges...")

        for name, exchange in self.exchanges.items():
            try:
                await exchange.initialize()
                logger.info(f"✓ {name} initialized")
            except Exception as e:
                logger.error(f"✗ Failed to initialize {name}: {e}")

        logger.info("All exchanges initialized")

    async def shutdown_all(self) -> None:
        """Shutdown all exchanges gracefully."""
        logger.info("Shutting down all exchanges...")

        for name, exchange in self.exchanges.items():
            try:
                await exchange.shutdown()
                logger.debug(f"✓ {name} shut down")
            except Exception as e:
                logger.error(f"✗ Error shutting down {name}: {e}")

        logger.info("All exchanges shut down")

    # ============================================
    # Utility Methods
    # ============================================

    def __iter__(self) -> Iterator[ExchangeInterface]:
        return iter(list(self.exchanges.values()))

    def __repr__(self) -> str:
        """String representation of the manager."""
        return f"<ExchangeManager(exchanges={list(self.exchanges.keys())})>"

    def __len__(self) -> int:
        """Number of registered exchanges."""
        return len(self.exchanges)
