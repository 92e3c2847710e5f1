"""Shared data models for the TCAPY signal bot.

CRITICAL: All monetary values use Decimal. Never use float for prices,
quantities, values or percentages.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

_ZERO = Decimal("0")


class Window(str, Enum):
    """Lookback windows analysed on every signal cycle, shortest first."""

    M15 = "15m"
    M30 = "30m"
    H1 = "1h"
    H4 = "4h"

    @property
    def minutes(self) -> int:
        return _WINDOW_MINUTES[self]

    @property
    def duration_ms(self) -> int:
        return self.minutes * 60 * 1000

    @property
    def display_name(self) -> str:
        """Human-readable name used in signal messages (e.g. "15 Minutes")."""
        return _WINDOW_TITLES[self]


_WINDOW_MINUTES: dict[Window, int] = {
    Window.M15: 15,
    Window.M30: 30,
    Window.H1: 60,
    Window.H4: 240,
}

_WINDOW_TITLES: dict[Window, str] = {
    Window.M15: "15 Minutes",
    Window.M30: "30 Minutes",
    Window.H1: "1 Hour",
    Window.H4: "4 Hours",
}


class ZoneSource(str, Enum):
    """Where a buy zone came from."""

    ORDER_BOOK = "order_book"
    TRADES = "trades"
    DEFAULT = "default"
    SYNTHETIC = "synthetic"


@dataclass(frozen=True)
class Trade:
    """A single executed trade from the exchange feed.

    ``is_sell_initiated`` is True when the taker was the seller (the trade
    hit a resting buy order). Records with a missing or non-finite field are
    invalid and skipped by every consumer.
    """

    timestamp_ms: int
    price: Decimal
    quantity: Decimal
    is_sell_initiated: bool


@dataclass(frozen=True)
class OrderBookLevel:
    """One price level of an order book side."""

    price: Decimal
    quantity: Decimal


@dataclass(frozen=True)
class OrderBookSnapshot:
    """Bids and asks as returned by the feed. Ordering is not guaranteed."""

    bids: tuple[OrderBookLevel, ...] = ()
    asks: tuple[OrderBookLevel, ...] = ()


@dataclass(frozen=True)
class VolumeWindow:
    """Buy/sell traded value (quote currency) and quantity (base asset)."""

    buy_value: Decimal = _ZERO
    sell_value: Decimal = _ZERO
    buy_quantity: Decimal = _ZERO
    sell_quantity: Decimal = _ZERO

    @property
    def total_value(self) -> Decimal:
        return self.buy_value + self.sell_value


@dataclass(frozen=True)
class ReconciledWindow:
    """The volume figures chosen for a window, and whether they are estimates.

    ``reason`` names the data-quality rule that forced the estimate
    ("below_min_fraction", "inconsistent_nesting", "too_few_trades").
    """

    volume: VolumeWindow
    estimated: bool = False
    reason: str | None = None


@dataclass(frozen=True)
class BuyZone:
    """A price level below the current price with notable latent buy interest."""

    price: Decimal
    quantity: Decimal
    value: Decimal
    source: ZoneSource = ZoneSource.ORDER_BOOK


@dataclass(frozen=True)
class PriceChangeSet:
    """Percent change of the current price against the price ``window`` ago."""

    window: Window
    percent_change: Decimal
    volume: VolumeWindow = field(default_factory=VolumeWindow)


@dataclass(frozen=True)
class TimeframeCandidate:
    """Input to the signal classifier: one window competing to be primary."""

    window: Window
    percent_change: Decimal
    volume: VolumeWindow


@dataclass(frozen=True)
class SignalResult:
    """Categorical signal for the dominant timeframe."""

    window: Window
    percent_change: Decimal
    message: str
    buy_sell_ratio: Decimal
    total_volume: Decimal

    @property
    def timeframe_label(self) -> str:
        return self.window.display_name


@dataclass(frozen=True)
class CoinQuote:
    """Latest quote for a coin from the price/market-cap aggregator."""

    symbol: str
    name: str
    slug: str
    price: Decimal
    volume_24h: Decimal = _ZERO
    percent_change_1h: Decimal = _ZERO
    percent_change_24h: Decimal = _ZERO
    market_cap: Decimal = _ZERO
    circulating_supply: Decimal = _ZERO
    total_supply: Decimal = _ZERO
    max_supply: Decimal = _ZERO


@dataclass(frozen=True)
class MarketSnapshot:
    """Everything the signal engine consumes, fetched in one fan-out.

    ``order_book`` is None when the depth feed failed; ``volume_24h`` is
    zero when both volume sources failed.
    """

    trades: tuple[Trade, ...]
    order_book: OrderBookSnapshot | None
    volume_24h: Decimal
    fetched_at_ms: int
    quote: CoinQuote | None = None


@dataclass(frozen=True)
class SignalReport:
    """All numbers a renderer needs to build the periodic analysis message."""

    symbol: str
    current_price: Decimal
    volume_24h: Decimal
    price_changes: tuple[PriceChangeSet, ...]
    windows: dict[Window, ReconciledWindow]
    signal: SignalResult
    buy_zones: tuple[BuyZone, ...]
    technical_trend: str
    alert: bool
    generated_at_ms: int

    def change_for(self, window: Window) -> Decimal:
        """Return the percent change for ``window`` (zero if absent)."""
        for change in self.price_changes:
            if change.window == window:
                return change.percent_change
        return _ZERO

    def volume_for(self, window: Window) -> VolumeWindow:
        return self.windows[window].volume

    @property
    def zones_are_synthetic(self) -> bool:
        """True when buy zones bottomed out at the fixed synthetic levels."""
        return bool(self.buy_zones) and all(
            z.source == ZoneSource.SYNTHETIC for z in self.buy_zones
        )
