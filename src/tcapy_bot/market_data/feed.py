"""Market feed fan-out: trades, order book, 24h volume and quote in one call.

Fetches all inputs of a signal cycle concurrently and applies the partial
failure rules:
- trade history failure  -> FeedUnavailableError (nothing meaningful without it)
- order book failure     -> no order book (None)
- exchange volume failure -> 0
- quote failure          -> no quote; exchange volume is used instead
"""

import asyncio
import time
from decimal import Decimal

from tcapy_bot.config import ExchangeSettings, FetchSettings, SignalSettings
from tcapy_bot.exceptions import FeedUnavailableError
from tcapy_bot.exchange.client import ExchangeClient
from tcapy_bot.exchange.parsers import parse_order_book, parse_trades, to_decimal_or_none
from tcapy_bot.logging import get_logger
from tcapy_bot.market_data.coinmarketcap import CoinMarketCapClient
from tcapy_bot.market_data.retry import fetch_with_retry
from tcapy_bot.models import CoinQuote, MarketSnapshot, OrderBookSnapshot

logger = get_logger(__name__)


class MarketFeed:
    """Collects a MarketSnapshot for the configured symbol.

    Args:
        exchange: Spot exchange client (trades, depth, ticker).
        quotes: Quote aggregator client. None = exchange volume only.
        exchange_settings: Symbol and page limits.
        fetch_settings: Retry policy applied to every call.
        signal_settings: Provides the asset name used for the quote lookup.
    """

    def __init__(
        self,
        exchange: ExchangeClient,
        quotes: CoinMarketCapClient | None,
        exchange_settings: ExchangeSettings,
        fetch_settings: FetchSettings,
        signal_settings: SignalSettings,
    ) -> None:
        self._exchange = exchange
        self._quotes = quotes
        self._exchange_settings = exchange_settings
        self._fetch_settings = fetch_settings
        self._asset = signal_settings.asset

    async def fetch_snapshot(self) -> MarketSnapshot:
        """Fetch every input concurrently and return a snapshot.

        Raises:
            FeedUnavailableError: trade history could not be fetched or was empty.
        """
        trades_res, book_res, ticker_res, quote_res = await asyncio.gather(
            self._fetch_trades(),
            self._fetch_order_book(),
            self._fetch_exchange_volume(),
            self._fetch_quote(),
            return_exceptions=True,
        )

        if isinstance(trades_res, BaseException):
            if isinstance(trades_res, asyncio.CancelledError):
                raise trades_res
            raise FeedUnavailableError(f"Trade history unavailable: {trades_res}") from trades_res

        trades = parse_trades(trades_res)
        if not trades:
            raise FeedUnavailableError("No trade data available")

        order_book = self._or_default(book_res, None, "order_book")
        exchange_volume = self._or_default(ticker_res, Decimal("0"), "volume_24h")
        quote = self._or_default(quote_res, None, "quote")

        volume_24h = exchange_volume
        if quote is not None and quote.volume_24h > 0:
            volume_24h = quote.volume_24h

        return MarketSnapshot(
            trades=tuple(trades),
            order_book=order_book,
            volume_24h=volume_24h,
            fetched_at_ms=int(time.time() * 1000),
            quote=quote,
        )

    @staticmethod
    def _or_default(result: object, default: object, feed: str):
        if isinstance(result, asyncio.CancelledError):
            raise result
        if isinstance(result, BaseException):
            logger.warning("feed_degraded", feed=feed, error=str(result))
            return default
        return result

    async def _fetch_trades(self) -> list[dict]:
        return await fetch_with_retry(
            self._exchange.fetch_trades,
            self._exchange_settings.symbol,
            limit=self._exchange_settings.trade_limit,
            settings=self._fetch_settings,
            label="trades",
        )

    async def _fetch_order_book(self) -> OrderBookSnapshot | None:
        raw = await fetch_with_retry(
            self._exchange.fetch_order_book,
            self._exchange_settings.symbol,
            limit=self._exchange_settings.order_book_limit,
            settings=self._fetch_settings,
            label="order_book",
        )
        return parse_order_book(raw)

    async def _fetch_exchange_volume(self) -> Decimal:
        ticker = await fetch_with_retry(
            self._exchange.fetch_ticker,
            self._exchange_settings.symbol,
            settings=self._fetch_settings,
            label="ticker",
        )
        volume = to_decimal_or_none(ticker.get("quoteVolume"))
        if volume is None:
            volume = to_decimal_or_none((ticker.get("info") or {}).get("quoteVolume"))
        return volume if volume is not None and volume > 0 else Decimal("0")

    async def _fetch_quote(self) -> CoinQuote | None:
        if self._quotes is None:
            return None
        return await fetch_with_retry(
            self._quotes.fetch_quote,
            self._asset,
            settings=self._fetch_settings,
            label="quote",
        )
