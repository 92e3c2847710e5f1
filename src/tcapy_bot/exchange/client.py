"""Abstract exchange client interface.

Defines the contract for the spot exchange feeds the signal pipeline
consumes. Signal and feed code depends only on this interface, keeping
MEXC-specific details isolated in the concrete implementation.
"""

from abc import ABC, abstractmethod


class ExchangeClient(ABC):
    """Abstract base class for exchange market-data clients."""

    @abstractmethod
    async def connect(self) -> None:
        """Initialize connection and load markets."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Clean up resources (CRITICAL for ccxt async)."""
        ...

    @abstractmethod
    async def fetch_trades(self, symbol: str, limit: int = 1000) -> list[dict]:
        """Fetch recent public trades, newest-first or unordered.

        Returns ccxt trade dicts with keys: timestamp, price, amount, side, info.
        """
        ...

    @abstractmethod
    async def fetch_order_book(self, symbol: str, limit: int = 100) -> dict:
        """Fetch an order book snapshot.

        Returns a dict with "bids" and "asks" as lists of [price, amount].
        """
        ...

    @abstractmethod
    async def fetch_ticker(self, symbol: str) -> dict:
        """Fetch the 24h ticker (last price, quoteVolume) for a symbol."""
        ...
