"""Configuration system using pydantic-settings with environment variable loading."""

from decimal import Decimal

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class ExchangeSettings(BaseSettings):
    """MEXC spot exchange connection settings."""

    model_config = SettingsConfigDict(env_prefix="MEXC_")

    api_key: SecretStr = SecretStr("")
    api_secret: SecretStr = SecretStr("")
    symbol: str = "TCAPY/USDT"  # ccxt unified symbol
    trade_limit: int = 1000  # MEXC max page size for recent trades
    order_book_limit: int = 100
    timeout_ms: int = 10000


class MarketDataSettings(BaseSettings):
    """CoinMarketCap quote API settings."""

    model_config = SettingsConfigDict(env_prefix="CMC_")

    api_key: SecretStr = SecretStr("")
    base_url: str = "https://pro-api.coinmarketcap.com/v2"
    convert: str = "USDT"
    timeout_seconds: float = 10.0
    throttle_seconds: float = 2.0  # min spacing between outbound requests
    cache_ttl_seconds: float = 30.0


class FetchSettings(BaseSettings):
    """Retry behaviour for every outbound market-data call."""

    model_config = SettingsConfigDict(env_prefix="FETCH_")

    max_retries: int = 3
    retry_base_delay: float = 1.0


class TelegramSettings(BaseSettings):
    """Telegram bot token and the single chat allow-list."""

    model_config = SettingsConfigDict(env_prefix="TELEGRAM_")

    bot_token: SecretStr = SecretStr("")
    group_chat_id: str | None = None  # None = /tcapy allowed in any chat
    message_thread_id: int | None = None  # only enforced in forum chats


class ScheduleSettings(BaseSettings):
    """Periodic signal posting."""

    model_config = SettingsConfigDict(env_prefix="SCHEDULE_")

    enabled: bool = True
    interval_seconds: int = 14400  # 4 hours
    run_on_start: bool = False


class SignalSettings(BaseSettings):
    """Every tunable constant of the signal pipeline in one place.

    Window shares, buy-ratio steps, reconciliation thresholds, buy-zone
    bucketing and classifier annotations. All fields configurable via
    SIGNAL_ environment variable prefix (list fields as JSON).
    """

    model_config = SettingsConfigDict(env_prefix="SIGNAL_")

    asset: str = "TCAPY"
    cmc_slug: str = "toncapy"
    circulating_supply: Decimal = Decimal("888000000000")  # overrides CMC supply for the asset

    # Window share of 24h volume (up = window price change > 0)
    share_15m_up: Decimal = Decimal("0.04")
    share_15m_down: Decimal = Decimal("0.03")
    share_30m_up: Decimal = Decimal("0.06")
    share_30m_down: Decimal = Decimal("0.05")
    share_1h_up: Decimal = Decimal("0.10")
    share_1h_down: Decimal = Decimal("0.08")
    share_4h_up: Decimal = Decimal("0.25")
    share_4h_down: Decimal = Decimal("0.20")

    # Buy ratio steps: (|change| strictly above, offset from 0.5), strongest first
    buy_ratio_steps: list[tuple[Decimal, Decimal]] = [
        (Decimal("2"), Decimal("0.3")),
        (Decimal("1"), Decimal("0.2")),
        (Decimal("0.2"), Decimal("0.1")),
    ]
    estimate_scale: Decimal = Decimal("1")  # calibration multiplier on estimated volume

    # Reconciliation (actual vs estimated)
    min_plausible_fraction: Decimal = Decimal("0.01")  # of 24h volume
    min_trade_count: int = 100

    # Buy zones
    zone_min_bucket_value: Decimal = Decimal("50")  # quote currency
    zone_min_price_fraction: Decimal = Decimal("0.9")  # of current price
    zone_book_significance: Decimal = Decimal("0.003")  # of 24h volume
    zone_trade_significance: Decimal = Decimal("0.002")  # of 24h volume
    zone_near_band_pct: Decimal = Decimal("5")
    zone_max_primary: int = 2
    zone_dedupe_fraction: Decimal = Decimal("0.02")
    zone_trade_lookback_hours: int = 3
    zone_trade_price_band: Decimal = Decimal("0.1")
    zone_min_trades: int = 5
    zone_max_count: int = 3
    # (price multiplier, share of 24h volume)
    default_zones: list[tuple[Decimal, Decimal]] = [
        (Decimal("0.99"), Decimal("0.07")),
        (Decimal("0.97"), Decimal("0.10")),
    ]
    synthetic_zones: list[tuple[Decimal, Decimal]] = [
        (Decimal("0.995"), Decimal("0.05")),
        (Decimal("0.985"), Decimal("0.08")),
        (Decimal("0.97"), Decimal("0.12")),
    ]

    # Classifier annotations
    neutral_band_pct: Decimal = Decimal("0.2")
    annotation_min_volume: Decimal = Decimal("1000")
    annotation_high_volume: Decimal = Decimal("2000")
    annotation_extreme_volume: Decimal = Decimal("3000")
    ratio_extreme_buy: Decimal = Decimal("2")
    ratio_strong_buy: Decimal = Decimal("1.5")
    ratio_heavy_sell: Decimal = Decimal("0.5")
    ratio_sellers_control: Decimal = Decimal("0.8")

    # Alert line
    alert_15m_pct: Decimal = Decimal("5")
    alert_1h_pct: Decimal = Decimal("10")


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    log_dir: str | None = None  # write combined.log / error.log here when set
    exchange: ExchangeSettings = ExchangeSettings()
    market_data: MarketDataSettings = MarketDataSettings()
    fetch: FetchSettings = FetchSettings()
    telegram: TelegramSettings = TelegramSettings()
    schedule: ScheduleSettings = ScheduleSettings()
    signal: SignalSettings = SignalSettings()
