"""Tests for SignalEngine report composition."""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from tcapy_bot.config import SignalSettings
from tcapy_bot.exceptions import EmptyInputError
from tcapy_bot.models import (
    MarketSnapshot,
    OrderBookLevel,
    OrderBookSnapshot,
    Trade,
    Window,
    ZoneSource,
)
from tcapy_bot.signals.engine import SignalEngine
from tcapy_bot.signals.estimator import REASON_TOO_FEW_TRADES

NOW = 1_700_000_000_000


def _make_trade(offset_ms: int, price: str, quantity: str = "1", sell: bool = False) -> Trade:
    return Trade(NOW - offset_ms, Decimal(price), Decimal(quantity), sell)


def _make_moving_trades() -> list[Trade]:
    """Sparse history: +10% over 15m, flat 30m, -12% over 1h, +100% over 4h."""
    return [
        _make_trade(Window.H4.duration_ms, "0.55"),
        _make_trade(0, "1.10", "100"),
        _make_trade(Window.H1.duration_ms, "1.25"),
        _make_trade(Window.M15.duration_ms, "1.00", "50", sell=True),
        _make_trade(Window.M30.duration_ms, "1.10"),
    ]


def _make_dense_trades(count: int = 150) -> list[Trade]:
    """``count`` flat-price buys within the last few minutes."""
    return [_make_trade(i * 1000, "1") for i in range(count)]


@pytest.fixture
def engine() -> SignalEngine:
    return SignalEngine(SignalSettings(), symbol="TCAPY/USDT")


class TestBuildReport:
    """Tests for SignalEngine.build_report."""

    def test_current_price_from_newest_trade(self, engine: SignalEngine) -> None:
        """Input order does not matter; the newest trade sets the price."""
        report = engine.build_report(_make_moving_trades(), None, Decimal("100000"), now=NOW)
        assert report.current_price == Decimal("1.10")
        assert report.symbol == "TCAPY/USDT"
        assert report.generated_at_ms == NOW

    def test_price_changes_and_primary_timeframe(self, engine: SignalEngine) -> None:
        """The 4h move is the largest absolute change and drives the signal."""
        report = engine.build_report(_make_moving_trades(), None, Decimal("100000"), now=NOW)
        assert report.change_for(Window.M15) == Decimal("10")
        assert report.change_for(Window.M30) == Decimal("0")
        assert report.change_for(Window.H1) == Decimal("-12")
        assert report.change_for(Window.H4) == Decimal("100")
        assert report.signal.window == Window.H4
        assert report.signal.message.startswith("🌋 EXTREME SURGE in 4 Hours")

    def test_trend_and_alert(self, engine: SignalEngine) -> None:
        """Mixed 1h/4h is Neutral; a 10% 15m move raises the alert."""
        report = engine.build_report(_make_moving_trades(), None, Decimal("100000"), now=NOW)
        assert report.technical_trend == "Neutral"
        assert report.alert is True

    def test_sparse_history_uses_estimates(self, engine: SignalEngine) -> None:
        """Under 100 trades every window is estimated and flagged."""
        report = engine.build_report(_make_moving_trades(), None, Decimal("100000"), now=NOW)
        for window in Window:
            assert report.windows[window].estimated is True
            assert report.windows[window].reason == REASON_TOO_FEW_TRADES
        # 4h up-move: 25% of 24h volume, all of it feeding the signal
        assert report.signal.total_volume == Decimal("25000")
        assert report.volume_for(Window.H4).total_value == Decimal("25000")

    def test_dense_history_keeps_actuals(self, engine: SignalEngine) -> None:
        """Enough consistent, plausible trades are reported as-is."""
        report = engine.build_report(_make_dense_trades(), None, Decimal("1000"), now=NOW)
        for window in Window:
            rw = report.windows[window]
            assert rw.estimated is False
            assert rw.volume.buy_value == Decimal("150")
            assert rw.volume.sell_value == Decimal("0")
        assert report.signal.buy_sell_ratio == Decimal("1")
        assert report.signal.message.startswith("🌾 CONSOLIDATION PHASE")

    def test_price_change_sets_carry_chosen_volume(self, engine: SignalEngine) -> None:
        """Each change set pairs with the reconciled window volume."""
        report = engine.build_report(_make_moving_trades(), None, Decimal("100000"), now=NOW)
        assert [c.window for c in report.price_changes] == list(Window)
        for change in report.price_changes:
            assert change.volume == report.volume_for(change.window)

    def test_zones_from_order_book(self, engine: SignalEngine) -> None:
        """An order book with a significant bid produces book zones."""
        book = OrderBookSnapshot(bids=(OrderBookLevel(Decimal("1.09"), Decimal("1000")),))
        report = engine.build_report(_make_moving_trades(), book, Decimal("10000"), now=NOW)
        assert report.buy_zones[0].source == ZoneSource.ORDER_BOOK
        assert report.zones_are_synthetic is False

    def test_no_book_and_sparse_trades_gives_synthetic_zones(self, engine: SignalEngine) -> None:
        """Without book or enough buys the synthetic zones are flagged."""
        report = engine.build_report(_make_moving_trades(), None, Decimal("10000"), now=NOW)
        assert len(report.buy_zones) == 3
        assert report.zones_are_synthetic is True

    def test_zero_volume_keeps_actuals(self, engine: SignalEngine) -> None:
        """No 24h volume: nothing to estimate from, actual figures are kept."""
        report = engine.build_report(_make_moving_trades(), None, Decimal("0"), now=NOW)
        assert all(not rw.estimated for rw in report.windows.values())

    def test_negative_volume_clamped(self, engine: SignalEngine) -> None:
        """A negative volume from a broken feed is treated as zero."""
        report = engine.build_report(_make_moving_trades(), None, Decimal("-5"), now=NOW)
        assert report.volume_24h == Decimal("0")

    def test_no_trades_raises(self, engine: SignalEngine) -> None:
        """Without trades there is no current price."""
        with pytest.raises(EmptyInputError):
            engine.build_report([], None, Decimal("1000"), now=NOW)

    def test_only_invalid_trades_raises(self, engine: SignalEngine) -> None:
        """Invalid records do not count as trades."""
        bad = [Trade(NOW, Decimal("NaN"), Decimal("1"), False)]
        with pytest.raises(EmptyInputError):
            engine.build_report(bad, None, Decimal("1000"), now=NOW)

    def test_zero_priced_newest_trade_skipped(self, engine: SignalEngine) -> None:
        """A newest print at price 0 does not block the report."""
        trades = [_make_trade(60_000, "1.00", "100"), _make_trade(0, "0", "5")]
        report = engine.build_report(trades, None, Decimal("1000"), now=NOW)
        assert report.current_price == Decimal("1.00")

    def test_only_zero_priced_trades_raises(self, engine: SignalEngine) -> None:
        """No positively priced trade means no current price."""
        trades = [_make_trade(0, "0", "5"), _make_trade(1000, "0", "2")]
        with pytest.raises(EmptyInputError):
            engine.build_report(trades, None, Decimal("1000"), now=NOW)


class TestGenerate:
    """Tests for SignalEngine.generate."""

    @pytest.mark.asyncio
    async def test_uses_snapshot_from_feed(self, engine: SignalEngine) -> None:
        """The snapshot's fetch time is the evaluation time."""
        snapshot = MarketSnapshot(
            trades=tuple(_make_moving_trades()),
            order_book=None,
            volume_24h=Decimal("100000"),
            fetched_at_ms=NOW,
        )
        feed = AsyncMock()
        feed.fetch_snapshot = AsyncMock(return_value=snapshot)

        report = await engine.generate(feed)

        feed.fetch_snapshot.assert_awaited_once()
        assert report.generated_at_ms == NOW
        assert report.change_for(Window.M15) == Decimal("10")
