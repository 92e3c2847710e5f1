"""MEXC spot exchange client implementation via ccxt async.

Wraps ccxt.async_support.mexc with proper initialization, market loading
and async cleanup. Only public market-data endpoints are used; API keys
are passed through so authenticated rate limits apply when configured.
"""

import ccxt.async_support as ccxt_async

from tcapy_bot.config import ExchangeSettings
from tcapy_bot.exchange.client import ExchangeClient
from tcapy_bot.logging import get_logger

logger = get_logger(__name__)


class MexcClient(ExchangeClient):
    """Concrete MEXC exchange client using ccxt async."""

    def __init__(self, settings: ExchangeSettings) -> None:
        self._settings = settings

        config: dict = {
            "apiKey": settings.api_key.get_secret_value(),
            "secret": settings.api_secret.get_secret_value(),
            "enableRateLimit": True,
            "timeout": settings.timeout_ms,
            "options": {
                "defaultType": "spot",
            },
        }

        self._exchange = ccxt_async.mexc(config)
        self._markets: dict = {}

    @property
    def exchange(self) -> ccxt_async.mexc:
        """Access the underlying ccxt exchange instance."""
        return self._exchange

    async def connect(self) -> None:
        """Initialize connection by loading markets."""
        logger.info("connecting_to_mexc", symbol=self._settings.symbol)
        self._markets = await self._exchange.load_markets()
        logger.info("mexc_connected", market_count=len(self._markets))

    async def close(self) -> None:
        """Clean up ccxt async resources. CRITICAL: must be called to avoid resource leaks."""
        logger.info("closing_mexc_connection")
        await self._exchange.close()
        logger.info("mexc_connection_closed")

    async def fetch_trades(self, symbol: str, limit: int = 1000) -> list[dict]:
        """Fetch recent public trades via ccxt."""
        trades = await self._exchange.fetch_trades(symbol, limit=limit)
        logger.debug("fetched_trades", symbol=symbol, count=len(trades))
        return trades

    async def fetch_order_book(self, symbol: str, limit: int = 100) -> dict:
        """Fetch an order book snapshot via ccxt."""
        return await self._exchange.fetch_order_book(symbol, limit=limit)

    async def fetch_ticker(self, symbol: str) -> dict:
        """Fetch the 24h ticker via ccxt."""
        return await self._exchange.fetch_ticker(symbol)
