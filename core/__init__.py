"""
Core Package

Contains the exchange-agnostic core logic including:
- ExchangeInterface: Abstract base class defining the contract for all funding connectors
- ExchangeManager: Central registry that manages multiple exchange connectors
- Schemas: Pydantic models for normalized data structures (FundingQuote, AssetSpread, policies)

This layer ensures all exchanges follow the same interface, making the system modular and scalable.
"""
