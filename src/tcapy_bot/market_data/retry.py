"""Retry wrapper shared by every market-data feed call.

MarketFeed routes its four inputs through ``fetch_with_retry``: MEXC
trades, MEXC depth, the MEXC 24h ticker and the CoinMarketCap quote.
Each one is labelled so a log line names the feed that is struggling.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import ccxt.async_support

from tcapy_bot.config import FetchSettings
from tcapy_bot.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

# MEXC answers 429 per IP for a while, so throttled calls back off harder
RATE_LIMIT_FACTOR = 3


def _backoff_seconds(attempt: int, base_delay: float, error: Exception) -> float:
    delay = base_delay * (2**attempt)
    if isinstance(error, ccxt.async_support.RateLimitExceeded):
        delay *= RATE_LIMIT_FACTOR
    return delay


async def fetch_with_retry(
    fetch_fn: Callable[..., Awaitable[T]],
    *args: Any,
    settings: FetchSettings | None = None,
    label: str = "fetch",
    **kwargs: Any,
) -> T:
    """Await ``fetch_fn(*args, **kwargs)``, retrying a failed feed call.

    ``settings.max_retries`` is the total number of attempts (at least
    one). The wait before attempt n+1 is ``retry_base_delay * 2**n``, tripled
    when the exchange reported a rate limit. Task cancellation is never
    retried.

    Args:
        fetch_fn: Coroutine function of the feed (e.g. ``client.fetch_trades``).
        settings: Attempt count and base delay. Defaults apply if None.
        label: Feed name used in log events ("trades", "order_book", ...).

    Raises:
        Exception: whatever the last attempt raised.
    """
    settings = settings or FetchSettings()
    attempts = max(settings.max_retries, 1)

    attempt = 0
    while True:
        try:
            return await fetch_fn(*args, **kwargs)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            attempt += 1
            if attempt >= attempts:
                logger.error(
                    "feed_call_gave_up",
                    feed=label,
                    attempts=attempts,
                    error_type=type(e).__name__,
                    error=str(e),
                )
                raise

            delay = _backoff_seconds(attempt - 1, settings.retry_base_delay, e)
            logger.warning(
                "feed_call_retrying",
                feed=label,
                attempt=attempt,
                of=attempts,
                wait_seconds=delay,
                rate_limited=isinstance(e, ccxt.async_support.RateLimitExceeded),
                error=str(e),
            )
            await asyncio.sleep(delay)
