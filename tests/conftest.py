"""Shared test fixtures for the TCAPY signal bot."""

import pytest

from tcapy_bot.config import (
    AppSettings,
    ExchangeSettings,
    FetchSettings,
    MarketDataSettings,
    ScheduleSettings,
    SignalSettings,
    TelegramSettings,
)

NOW_MS = 1_700_000_000_000


@pytest.fixture
def now_ms() -> int:
    """Fixed evaluation time (epoch ms) for deterministic window math."""
    return NOW_MS


@pytest.fixture
def signal_settings() -> SignalSettings:
    """Default signal constants."""
    return SignalSettings()


@pytest.fixture
def fast_fetch_settings() -> FetchSettings:
    """Retry settings with no real backoff delay."""
    return FetchSettings(max_retries=3, retry_base_delay=0.0)


@pytest.fixture
def mock_settings() -> AppSettings:
    """Return AppSettings with test defaults (dummy keys, group allow-list set)."""
    return AppSettings(
        log_level="DEBUG",
        exchange=ExchangeSettings(
            api_key="test-api-key",  # type: ignore[arg-type]
            api_secret="test-api-secret",  # type: ignore[arg-type]
        ),
        market_data=MarketDataSettings(
            api_key="test-cmc-key",  # type: ignore[arg-type]
            throttle_seconds=0.0,
        ),
        fetch=FetchSettings(retry_base_delay=0.0),
        telegram=TelegramSettings(
            bot_token="123456:TEST-TOKEN",  # type: ignore[arg-type]
            group_chat_id="-100123",
            message_thread_id=7,
        ),
        schedule=ScheduleSettings(interval_seconds=3600),
        signal=SignalSettings(),
    )
