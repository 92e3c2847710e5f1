"""Tests for Telegram HTML rendering helpers."""

from decimal import Decimal

import pytest

from tcapy_bot.chat.formatting import (
    ABOUT_TCAPY_TEXT,
    NOT_AVAILABLE,
    describe_market_error,
    format_number,
    format_price,
    render_coin_info,
    render_scheduled_failure,
    render_signal_report,
    trade_url,
)
from tcapy_bot.config import SignalSettings
from tcapy_bot.exceptions import CoinNotFoundError, MarketDataError
from tcapy_bot.models import (
    BuyZone,
    CoinQuote,
    PriceChangeSet,
    ReconciledWindow,
    SignalReport,
    SignalResult,
    VolumeWindow,
    Window,
    ZoneSource,
)


def _make_report(
    h1_sell: str = "500",
    zones: tuple[BuyZone, ...] = (),
    alert: bool = False,
    estimated: bool = False,
) -> SignalReport:
    """Report at price 0.00001 with 1h buy 1000 and a configurable 1h sell."""
    windows = {
        window: ReconciledWindow(
            volume=VolumeWindow(
                buy_value=Decimal("1000"),
                sell_value=Decimal(h1_sell) if window == Window.H1 else Decimal("400"),
                buy_quantity=Decimal("100000000"),
                sell_quantity=Decimal("40000000"),
            ),
            estimated=estimated,
        )
        for window in Window
    }
    return SignalReport(
        symbol="TCAPY/USDT",
        current_price=Decimal("0.00001"),
        volume_24h=Decimal("123456.7"),
        price_changes=(
            PriceChangeSet(Window.M15, Decimal("6.5")),
            PriceChangeSet(Window.M30, Decimal("0")),
            PriceChangeSet(Window.H1, Decimal("-1.234")),
            PriceChangeSet(Window.H4, Decimal("12")),
        ),
        windows=windows,
        signal=SignalResult(
            window=Window.H4,
            percent_change=Decimal("12"),
            message="📈 STRONG BULL RALLY in 4 Hours",
            buy_sell_ratio=Decimal("2.5"),
            total_volume=Decimal("1400"),
        ),
        buy_zones=zones,
        technical_trend="Neutral",
        alert=alert,
        generated_at_ms=1_700_000_000_000,
    )


def _make_quote(symbol: str = "BTC", **overrides) -> CoinQuote:
    values = {
        "symbol": symbol,
        "name": "Bitcoin",
        "slug": "bitcoin",
        "price": Decimal("65000.456"),
        "volume_24h": Decimal("30000000000"),
        "percent_change_1h": Decimal("0.123"),
        "percent_change_24h": Decimal("-2.5"),
        "market_cap": Decimal("1280000000000"),
        "circulating_supply": Decimal("19700000"),
        "max_supply": Decimal("21000000"),
    }
    values.update(overrides)
    return CoinQuote(**values)


class TestFormatPrice:
    """Tests for format_price."""

    @pytest.mark.parametrize(
        ("price", "expected"),
        [
            (Decimal("0.00001234"), "0.00001234"),
            (Decimal("0.000012345"), "0.00001235"),
            (Decimal("0.005"), "0.005"),
            (Decimal("0.5"), "0.5"),
            (Decimal("1234.567"), "1234.57"),
            (Decimal("1.005"), "1.01"),
            (Decimal("100"), "100"),
            ("0.25", "0.25"),
        ],
    )
    def test_precision_by_magnitude(self, price: object, expected: str) -> None:
        assert format_price(price) == expected

    @pytest.mark.parametrize("price", [None, "abc", float("nan")])
    def test_not_available(self, price: object) -> None:
        assert format_price(price) == NOT_AVAILABLE


class TestFormatNumber:
    """Tests for format_number."""

    def test_thousands_separator(self) -> None:
        assert format_number(Decimal("1234567.891")) == "1,234,567.89"

    def test_zero_decimals_rounds_half_up(self) -> None:
        assert format_number(Decimal("1234.5"), 0) == "1,235"

    def test_pads_decimals(self) -> None:
        assert format_number(5) == "5.00"

    def test_invalid_is_not_available(self) -> None:
        assert format_number(None) == NOT_AVAILABLE

    def test_huge_value_keeps_all_digits(self) -> None:
        """A 1E+32 percent change from a near-zero reference still renders."""
        assert format_number(Decimal("1E+32")) == "100" + ",000" * 10 + ".00"


class TestRenderSignalReport:
    """Tests for render_signal_report."""

    def test_header_price_and_changes(self) -> None:
        text = render_signal_report(_make_report(), SignalSettings())
        assert text.startswith("<b>🚨 TCAPY/USDT Real-Time Analysis</b>")
        assert "$0.00001 USDT" in text
        assert "🕒 15m: 6.50%" in text
        assert "🕰 1h: -1.23%" in text
        assert "📅 4h: 12.00%" in text
        assert "📈 STRONG BULL RALLY in 4 Hours" in text

    def test_alert_line_only_when_flagged(self) -> None:
        settings = SignalSettings()
        assert "ALERT" not in render_signal_report(_make_report(), settings)
        assert "⚠️ ALERT" in render_signal_report(_make_report(alert=True), settings)

    def test_volume_tables(self) -> None:
        """Three rows per side, 4h is not tabulated."""
        text = render_signal_report(_make_report(), SignalSettings())
        assert "- <b>Last 15 Minutes:</b> $400 | 40,000,000 TCAPY" in text
        assert "- <b>Last 1 Hour:</b> $1,000 | 100,000,000 TCAPY" in text
        assert "Last 4 Hours" not in text
        assert "(est.)" not in text

    def test_estimated_rows_marked(self) -> None:
        text = render_signal_report(_make_report(estimated=True), SignalSettings())
        assert text.count("<i>(est.)</i>") == 6

    def test_hourly_ratio(self) -> None:
        text = render_signal_report(_make_report(h1_sell="500"), SignalSettings())
        assert "<b>Buy/Sell Ratio (1h):</b> 2.00 📈" in text

    def test_hourly_ratio_without_sells(self) -> None:
        """No 1h sells renders an infinite ratio instead of dividing by zero."""
        text = render_signal_report(_make_report(h1_sell="0"), SignalSettings())
        assert "<b>Buy/Sell Ratio (1h):</b> ∞ 📈" in text

    def test_buy_zones_listed(self) -> None:
        zones = (
            BuyZone(Decimal("0.0000099"), Decimal("50000000"), Decimal("495")),
            BuyZone(Decimal("0.0000097"), Decimal("10000000"), Decimal("97"), ZoneSource.DEFAULT),
        )
        text = render_signal_report(_make_report(zones=zones), SignalSettings())
        assert "🏆 Top Buy Zones Right Now" in text
        assert "1. $0.0000099 | $495 | 50,000,000 TCAPY" in text
        assert "2. $0.0000097 | $97 | 10,000,000 TCAPY" in text

    def test_synthetic_zones_not_listed(self) -> None:
        zones = (BuyZone(Decimal("0.00000995"), Decimal("1"), Decimal("1"), ZoneSource.SYNTHETIC),)
        text = render_signal_report(_make_report(zones=zones), SignalSettings())
        assert "No significant buy zones detected" in text
        assert "Top Buy Zones" not in text

    def test_market_metrics_use_configured_supply(self) -> None:
        """Market cap = price x configured circulating supply."""
        text = render_signal_report(_make_report(), SignalSettings())
        assert "<b>- Market Cap:</b> $8,880,000" in text
        assert "<b>- Circulating Supply:</b> 888,000,000,000" in text
        assert "<b>Technical Trend:</b> Neutral ↔️" in text
        assert trade_url("TCAPY") in text


class TestRenderCoinInfo:
    """Tests for render_coin_info."""

    def test_regular_coin(self) -> None:
        text = render_coin_info(_make_quote(), SignalSettings())
        assert text.startswith("📈 <b>Bitcoin (BTC)</b>")
        assert "$65000.46" in text
        assert "<b>24h Change:</b> -2.50%" in text
        assert "<b>Circulating Supply:</b> 19,700,000 BTC" in text
        assert "<b>Max Supply:</b> 21,000,000 BTC" in text
        # circulating supply known: cap recomputed from price
        assert "<b>Market Cap:</b> $1,280,508,983,200" in text
        assert "https://coinmarketcap.com/currencies/bitcoin/" in text

    def test_unknown_supply_uses_reported_cap(self) -> None:
        quote = _make_quote(circulating_supply=Decimal("0"), max_supply=Decimal("0"))
        text = render_coin_info(quote, SignalSettings())
        assert "<b>Market Cap:</b> $1,280,000,000,000" in text
        assert "Circulating Supply" not in text
        assert "Max Supply" not in text

    def test_configured_asset_override(self) -> None:
        """The bot's own asset uses the fixed supply and the project blurb."""
        quote = _make_quote(
            symbol="TCAPY",
            name="TonCapy",
            slug="toncapy",
            price=Decimal("0.00001"),
            circulating_supply=Decimal("5"),
        )
        text = render_coin_info(quote, SignalSettings())
        assert "<b>Market Cap:</b> $8,880,000" in text
        assert "<b>Total Supply:</b> 888,000,000,000 TCAPY" in text
        assert ABOUT_TCAPY_TEXT in text
        assert "Circulating Supply" not in text


class TestDescribeMarketError:
    """Tests for describe_market_error."""

    def test_coin_not_found(self) -> None:
        text = describe_market_error(CoinNotFoundError("missing"), "XYZ")
        assert text == '❌ Coin "XYZ" not found. Please check the symbol and try again.'

    @pytest.mark.parametrize(
        ("status", "expected"),
        [
            (400, "Invalid request."),
            (401, "API authentication error."),
            (403, "Access denied."),
            (429, "Rate limit exceeded."),
            (500, "Server error."),
            (502, "An unexpected error occurred."),
        ],
    )
    def test_http_status_mapping(self, status: int, expected: str) -> None:
        assert describe_market_error(MarketDataError("x", status=status), "BTC").startswith(expected)

    def test_api_message_appended(self) -> None:
        exc = MarketDataError("x", status=401, api_message="API key missing.")
        assert describe_market_error(exc, "BTC").endswith(" Details: API key missing.")

    def test_network_failure(self) -> None:
        assert describe_market_error(MarketDataError("timed out"), "BTC") == "Error: timed out"


class TestRenderScheduledFailure:
    def test_escapes_error_text(self) -> None:
        text = render_scheduled_failure(RuntimeError("<boom>"))
        assert "&lt;boom&gt;" in text
        assert text.endswith("Service will retry automatically.")
