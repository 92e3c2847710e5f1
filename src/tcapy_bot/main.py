"""Entry point for the TCAPY signal bot.

Wires all components together, starts Telegram polling and the scheduled
poster, and runs until SIGINT/SIGTERM.

Component wiring order (in _build_components):
1. AppSettings (configuration)
2. Logging setup
3. MexcClient (trades, order book, ticker)
4. CoinMarketCapClient (quotes for /coin and the 24h volume)
5. MarketFeed (concurrent fetch with retry and partial-failure rules)
6. SignalEngine (pure signal pipeline)
7. SignalBot (Telegram commands)
8. SignalScheduler (periodic group posts)
"""

import asyncio
import signal
from typing import Any

from telegram.error import TelegramError

from tcapy_bot.chat.handlers import SignalBot
from tcapy_bot.chat.scheduler import SignalScheduler
from tcapy_bot.config import AppSettings
from tcapy_bot.exchange.mexc_client import MexcClient
from tcapy_bot.logging import get_logger, setup_logging
from tcapy_bot.market_data.coinmarketcap import CoinMarketCapClient
from tcapy_bot.market_data.feed import MarketFeed
from tcapy_bot.signals.engine import SignalEngine

# Delay before retrying a failed Telegram launch (e.g. 409 Conflict while
# another instance is still polling)
LAUNCH_RETRY_SECONDS = 30


def _build_components(settings: AppSettings) -> dict[str, Any]:
    """Build all bot components from settings.

    Note: Does NOT connect the exchange or start polling -- that happens
    in run().

    Args:
        settings: Application-wide settings.

    Returns:
        Dict mapping component names to instances.
    """
    logger = get_logger("tcapy_bot.main")

    # 3. Create exchange client
    exchange_client = MexcClient(settings.exchange)

    # 4. Create quote client
    quote_client = CoinMarketCapClient(settings.market_data)
    has_cmc_key = bool(settings.market_data.api_key.get_secret_value())
    if not has_cmc_key:
        logger.warning(
            "no_cmc_api_key_configured",
            note="/coin will fail and signals use exchange 24h volume only.",
        )

    # 5. Create market feed (skip the quote fan-out without a key)
    feed = MarketFeed(
        exchange=exchange_client,
        quotes=quote_client if has_cmc_key else None,
        exchange_settings=settings.exchange,
        fetch_settings=settings.fetch,
        signal_settings=settings.signal,
    )

    # 6. Create signal engine
    engine = SignalEngine(settings.signal, symbol=settings.exchange.symbol)

    # 7. Create Telegram bot
    bot = SignalBot(
        settings=settings.telegram,
        signal_settings=settings.signal,
        engine=engine,
        feed=feed,
        quotes=quote_client,
    )

    # 8. Create scheduler
    scheduler = SignalScheduler(bot, settings.telegram, settings.schedule)

    return {
        "exchange_client": exchange_client,
        "quote_client": quote_client,
        "feed": feed,
        "engine": engine,
        "bot": bot,
        "scheduler": scheduler,
    }


def _setup_signal_handlers(stop_event: asyncio.Event) -> None:
    """Register SIGINT/SIGTERM to trigger a graceful shutdown.

    Must be called after the asyncio event loop is running.
    """
    logger = get_logger("tcapy_bot.main")
    loop = asyncio.get_running_loop()

    def _graceful_handler(sig: signal.Signals) -> None:
        logger.info("graceful_shutdown_signal", signal=sig.name)
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _graceful_handler, sig)


async def _launch_bot(bot: SignalBot, stop_event: asyncio.Event) -> bool:
    """Start Telegram polling, retrying until it succeeds or shutdown is requested."""
    logger = get_logger("tcapy_bot.main")
    while not stop_event.is_set():
        try:
            await bot.start()
            return True
        except TelegramError as e:
            logger.error(
                "bot_launch_failed",
                error=str(e),
                retry_in_seconds=LAUNCH_RETRY_SECONDS,
            )
            await bot.stop()
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=LAUNCH_RETRY_SECONDS)
            except asyncio.TimeoutError:
                pass
    return False


async def run() -> None:
    """Run the signal bot until a shutdown signal arrives."""
    # 1. Load settings
    settings = AppSettings()

    # 2. Setup logging
    setup_logging(settings.log_level, settings.log_dir)
    logger = get_logger("tcapy_bot.main")

    # 3-8. Build all components
    components = _build_components(settings)
    exchange_client = components["exchange_client"]
    bot = components["bot"]
    scheduler = components["scheduler"]

    stop_event = asyncio.Event()
    _setup_signal_handlers(stop_event)

    logger.info(
        "starting_tcapy_bot",
        symbol=settings.exchange.symbol,
        group_chat_id=settings.telegram.group_chat_id,
        schedule_enabled=settings.schedule.enabled,
        interval_seconds=settings.schedule.interval_seconds,
    )

    try:
        await exchange_client.connect()
        if await _launch_bot(bot, stop_event):
            await scheduler.start()
            await stop_event.wait()
    finally:
        await scheduler.stop()
        await bot.stop()
        await exchange_client.close()
        logger.info("tcapy_bot_stopped")


def main() -> None:
    """Synchronous entry point."""
    asyncio.run(run())


if __name__ == "__main__":
    main()
