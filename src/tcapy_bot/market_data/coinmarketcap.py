"""CoinMarketCap quote service for price, volume and supply data.

Fetches the latest quote for a symbol via the CoinMarketCap Pro API
(``/cryptocurrency/quotes/latest``). Uses urllib.request (stdlib) run in a
worker thread, so no HTTP client dependency is needed.

Requests are throttled to a minimum spacing (the free plan rate-limits
aggressively) and results are cached in memory for a short TTL.
"""

import asyncio
import json
import time
import urllib.error
import urllib.parse
import urllib.request
from decimal import Decimal

from tcapy_bot.config import MarketDataSettings
from tcapy_bot.exceptions import CoinNotFoundError, MarketDataError
from tcapy_bot.exchange.parsers import to_decimal_or_none
from tcapy_bot.logging import get_logger
from tcapy_bot.models import CoinQuote

logger = get_logger(__name__)


def _dec(raw: object) -> Decimal:
    value = to_decimal_or_none(raw)
    return value if value is not None else Decimal("0")


def parse_quote(symbol: str, payload: dict, convert: str = "USDT") -> CoinQuote:
    """Build a CoinQuote from a quotes/latest v2 response body.

    Raises:
        CoinNotFoundError: the response holds no entry for ``symbol``.
    """
    entries = (payload.get("data") or {}).get(symbol)
    coin = entries[0] if isinstance(entries, list) and entries else None
    if not coin:
        raise CoinNotFoundError(f"Coin data not found for symbol: {symbol}")

    quote = (coin.get("quote") or {}).get(convert) or {}
    return CoinQuote(
        symbol=symbol,
        name=coin.get("name", symbol),
        slug=coin.get("slug", symbol.lower()),
        price=_dec(quote.get("price")),
        volume_24h=_dec(quote.get("volume_24h")),
        percent_change_1h=_dec(quote.get("percent_change_1h")),
        percent_change_24h=_dec(quote.get("percent_change_24h")),
        market_cap=_dec(quote.get("market_cap")),
        circulating_supply=_dec(coin.get("circulating_supply")),
        total_supply=_dec(coin.get("total_supply")),
        max_supply=_dec(coin.get("max_supply")),
    )


class CoinMarketCapClient:
    """Fetches and caches latest quotes from the CoinMarketCap Pro API.

    Args:
        settings: API key, base URL, timeout, throttle and cache TTL.
    """

    def __init__(self, settings: MarketDataSettings) -> None:
        self._settings = settings
        self._cache: dict[str, tuple[CoinQuote, float]] = {}
        self._last_request: float | None = None
        self._lock = asyncio.Lock()

    def _cached(self, symbol: str) -> CoinQuote | None:
        entry = self._cache.get(symbol)
        if entry is None:
            return None
        quote, fetched_at = entry
        if time.monotonic() - fetched_at >= self._settings.cache_ttl_seconds:
            return None
        return quote

    def _request(self, symbol: str) -> dict:
        """Blocking HTTP GET for one symbol. Runs in a worker thread."""
        params = urllib.parse.urlencode({"symbol": symbol, "convert": self._settings.convert})
        url = f"{self._settings.base_url}/cryptocurrency/quotes/latest?{params}"
        headers = {
            "Accept": "application/json",
            "X-CMC_PRO_API_KEY": self._settings.api_key.get_secret_value(),
            "User-Agent": "TcapySignalBot/1.0",
        }
        req = urllib.request.Request(url, headers=headers)

        try:
            with urllib.request.urlopen(req, timeout=self._settings.timeout_seconds) as resp:
                return json.loads(resp.read())
        except urllib.error.HTTPError as e:
            api_message = None
            try:
                body = json.loads(e.read() or b"{}")
                api_message = (body.get("status") or {}).get("error_message")
            except (ValueError, AttributeError):
                pass
            raise MarketDataError(
                f"CoinMarketCap request failed with HTTP {e.code}",
                status=e.code,
                api_message=api_message,
            ) from e
        except (urllib.error.URLError, TimeoutError) as e:
            raise MarketDataError(f"CoinMarketCap request failed: {e}") from e

    async def fetch_quote(self, symbol: str) -> CoinQuote:
        """Return the latest quote for ``symbol`` (e.g. "TCAPY").

        Raises:
            CoinNotFoundError: CoinMarketCap does not list the symbol.
            MarketDataError: HTTP or network failure.
        """
        symbol = symbol.upper()
        async with self._lock:
            cached = self._cached(symbol)
            if cached is not None:
                return cached

            if self._last_request is not None:
                wait = self._settings.throttle_seconds - (time.monotonic() - self._last_request)
                if wait > 0:
                    await asyncio.sleep(wait)
            self._last_request = time.monotonic()

            payload = await asyncio.to_thread(self._request, symbol)
            quote = parse_quote(symbol, payload, self._settings.convert)
            self._cache[symbol] = (quote, time.monotonic())

        logger.info(
            "cmc_quote_fetched",
            symbol=symbol,
            price=str(quote.price),
            volume_24h=str(quote.volume_24h),
        )
        return quote
