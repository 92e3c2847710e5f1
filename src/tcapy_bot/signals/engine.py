"""Signal engine composing the pipeline into a single report (one cycle).

The SignalEngine is the top-level coordinator that:
1. Derives the current price from the newest positively priced trade
2. Aggregates actual buy/sell volume for every lookback window
3. Computes price changes per window
4. Estimates volume from the 24h total and reconciles actual vs estimate
5. Classifies the dominant timeframe into a categorical signal
6. Finds buy zones from the order book (or trades, or synthetic levels)

``build_report`` is pure apart from reading the clock when ``now`` is not
supplied. ``generate`` adds the async fetch from a MarketFeed.

CRITICAL: All computations use Decimal. Never use float for signal values.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal
from typing import TYPE_CHECKING

from tcapy_bot.config import SignalSettings
from tcapy_bot.exceptions import EmptyInputError
from tcapy_bot.logging import get_logger
from tcapy_bot.models import (
    OrderBookSnapshot,
    SignalReport,
    TimeframeCandidate,
    Trade,
    Window,
)
from tcapy_bot.signals.buy_zones import find_buy_zones
from tcapy_bot.signals.classifier import (
    classify_signal,
    is_significant_move,
    technical_trend,
)
from tcapy_bot.signals.estimator import estimate_volume_distribution, reconcile_windows
from tcapy_bot.signals.price import build_price_change_sets, compute_price_changes
from tcapy_bot.signals.volume import aggregate_volume, now_ms, valid_trades

if TYPE_CHECKING:
    from tcapy_bot.market_data.feed import MarketFeed

logger = get_logger(__name__)


class SignalEngine:
    """Builds SignalReports from trades, order book and 24h volume.

    Args:
        settings: Tunable constants for estimation, zones and classification.
        symbol: Display symbol carried on every report (e.g. "TCAPY/USDT").
    """

    def __init__(self, settings: SignalSettings, symbol: str = "TCAPY/USDT") -> None:
        self._settings = settings
        self._symbol = symbol

    def build_report(
        self,
        trades: Sequence[Trade],
        order_book: OrderBookSnapshot | None,
        volume_24h: Decimal,
        now: int | None = None,
    ) -> SignalReport:
        """Run the full pipeline over one snapshot of market data.

        Args:
            trades: Recent trades in any order. Invalid records are skipped.
            order_book: Depth snapshot, or None if the depth feed failed.
            volume_24h: 24h quote volume (zero if unknown).
            now: Evaluation time in epoch ms. Defaults to the current time.

        Raises:
            EmptyInputError: no valid trade with a positive price, so no current price exists.
        """
        now = now_ms() if now is None else now
        usable = valid_trades(trades)
        if not usable:
            raise EmptyInputError("No trade data available")

        # zero-priced prints are valid records but cannot anchor a price
        priced = [t for t in usable if t.price > 0]
        if not priced:
            raise EmptyInputError("No trade with a usable price")
        current_price = max(priced, key=lambda t: t.timestamp_ms).price

        volume_24h = max(volume_24h, Decimal("0"))

        actual = {
            window: aggregate_volume(usable, now - window.duration_ms, now)
            for window in Window
        }
        changes = compute_price_changes(usable, current_price, now)
        estimated = estimate_volume_distribution(
            volume_24h, changes, current_price, self._settings
        )
        reconciled = reconcile_windows(
            actual, estimated, volume_24h, len(usable), self._settings
        )
        volumes = {window: rw.volume for window, rw in reconciled.items()}

        signal = classify_signal(
            [
                TimeframeCandidate(window=w, percent_change=changes[w], volume=volumes[w])
                for w in Window
            ],
            self._settings,
        )
        zones = find_buy_zones(
            usable, order_book, current_price, volume_24h, now, self._settings
        )

        report = SignalReport(
            symbol=self._symbol,
            current_price=current_price,
            volume_24h=volume_24h,
            price_changes=build_price_change_sets(changes, volumes),
            windows=reconciled,
            signal=signal,
            buy_zones=tuple(zones),
            technical_trend=technical_trend(changes[Window.H1], changes[Window.H4]),
            alert=is_significant_move(changes, self._settings),
            generated_at_ms=now,
        )

        logger.info(
            "signal_report_built",
            symbol=self._symbol,
            price=str(current_price),
            primary=signal.window.value,
            change=str(signal.percent_change),
            ratio=str(signal.buy_sell_ratio),
            estimated=[w.value for w, rw in reconciled.items() if rw.estimated],
            zones=len(zones),
        )
        return report

    async def generate(self, feed: MarketFeed) -> SignalReport:
        """Fetch a fresh snapshot from ``feed`` and build the report."""
        snapshot = await feed.fetch_snapshot()
        return self.build_report(
            snapshot.trades,
            snapshot.order_book,
            snapshot.volume_24h,
            now=snapshot.fetched_at_ms,
        )
