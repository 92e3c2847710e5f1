"""HTML message rendering for Telegram (parse_mode=HTML).

Pure functions: every number shown to users goes through ``format_price``
or ``format_number`` so the layout stays consistent between the /tcapy
command, scheduled posts and /coin replies.
"""

import html
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from tcapy_bot.config import SignalSettings
from tcapy_bot.exceptions import CoinNotFoundError, MarketDataError
from tcapy_bot.models import CoinQuote, SignalReport, Window
from tcapy_bot.signals.numeric import quantize

NOT_AVAILABLE = "N/A"

# Windows shown in the sell/buy tables (4h only feeds the signal)
TABLE_WINDOWS = (Window.M15, Window.M30, Window.H1)

_TREND_LABELS = {
    "Bullish": "Bullish 📈",
    "Bearish": "Bearish 📉",
    "Neutral": "Neutral ↔️",
}

_HTTP_ERROR_TEXT = {
    400: "Invalid request. Please check the coin symbol (e.g., use BTC, ETH, etc.).",
    401: "API authentication error. Please try again later.",
    403: "Access denied. Please try again later.",
    429: "Rate limit exceeded. Please try again in a few minutes.",
    500: "Server error. Please try again later.",
}

WELCOME_TEXT = (
    "💰 <b>Welcome to TCAPY Community Bot</b> 💰\n\n"
    "Hello! Explore cryptocurrency data with these commands:\n\n"
    "- <code>/start</code> - Show this welcome message\n"
    "- <code>/tcapy</code> - See real-time TCAPY investment signals\n"
    "- <code>/coin tcapy</code> - Get detailed info for TCAPY\n"
    "- <code>/coin [symbol]</code> - Get details for any cryptocurrency\n"
    "- <code>/help</code> - Display all available commands\n\n"
    "<i>Serving a community of 500,000+ crypto enthusiasts!</i>"
)

HELP_TEXT = (
    "📚 <b>TCAPY Bot Command Guide</b> 📚\n\n"
    "Here's everything you can do with this bot:\n\n"
    "- <code>/start</code> - Displays the welcome message to get you started\n"
    "- <code>/tcapy</code> - Shows real-time investment signals for TCAPY\n"
    "- <code>/coin [symbol]</code> - Fetches details for any cryptocurrency:\n"
    "  • Example: <code>/coin tcapy</code> - Get TCAPY details\n"
    "  • Example: <code>/coin btc</code> - Get Bitcoin details\n"
    "- <code>/help</code> - Shows this guide with all available commands\n\n"
    "<i>The bot automatically posts TCAPY updates every 4 hours</i>"
)

ABOUT_TCAPY_TEXT = (
    "🌟 <b>Welcome to TonCapy!</b>\n"
    "TonCapy is where memes meet crypto, an energetic hub inspired by the "
    "friendly capybara. With the TCapy token at its heart, the platform helps "
    "Telegram projects create, manage and grow vibrant communities.\n\n"
    "<b>Why TonCapy?</b>\n"
    "🤝 Community Building: Connect with like-minded users.\n"
    "⚡ Real-Time Interaction: Dynamic notifications and interactive content.\n"
    "🚀 Token Ecosystem: Fuel community growth with TCapy.\n"
)

STATUS_COLLECTING_TEXT = "🔄 Collecting real-time TCAPY data, please wait..."
SIGNAL_FAILED_TEXT = "❌ Failed to retrieve TCAPY data. Please try again later."
WRONG_CHAT_TEXT = "❌ This command is only available in the designated group."
WRONG_TOPIC_TEXT = "❌ This command is only available in the designated topic."
MISSING_SYMBOL_TEXT = "❌ Please provide a coin symbol (e.g., /coin BTC)"
GENERIC_ERROR_TEXT = "An error occurred while processing your request. Please try again later."


def _to_decimal(value: object) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    return result if result.is_finite() else None


def format_price(price: object) -> str:
    """Format a price with precision scaled to its magnitude.

    < 0.0001 -> 8 decimals, < 0.01 -> 6, < 1 -> 4, otherwise 2.
    Trailing zeros (and a dangling decimal point) are stripped.
    """
    value = _to_decimal(price)
    if value is None:
        return NOT_AVAILABLE

    if value < Decimal("0.0001"):
        places = 8
    elif value < Decimal("0.01"):
        places = 6
    elif value < 1:
        places = 4
    else:
        places = 2

    text = f"{quantize(value, Decimal(1).scaleb(-places), ROUND_HALF_UP):f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def format_number(num: object, decimals: int = 2) -> str:
    """Format with thousands separators and exactly ``decimals`` fraction digits."""
    value = _to_decimal(num)
    if value is None:
        return NOT_AVAILABLE
    rounded = quantize(value, Decimal(1).scaleb(-decimals), ROUND_HALF_UP)
    return f"{rounded:,.{decimals}f}"


def chart_url(slug: str) -> str:
    return f"https://coinmarketcap.com/currencies/{slug}/"


def news_url(slug: str) -> str:
    return f"{chart_url(slug)}news/"


def trade_url(symbol: str) -> str:
    return f"https://www.mexc.com/exchange/{symbol.upper()}_USDT"


def _hourly_ratio(report: SignalReport) -> tuple[str, str]:
    volume = report.volume_for(Window.H1)
    if volume.sell_value == 0:
        return "∞", "📈"
    ratio = volume.buy_value / volume.sell_value
    return format_number(ratio, 2), "📈" if ratio > 1 else "📉"


def _volume_rows(report: SignalReport, asset: str, side: str) -> list[str]:
    rows = []
    for window in TABLE_WINDOWS:
        reconciled = report.windows[window]
        volume = reconciled.volume
        if side == "sell":
            value, quantity = volume.sell_value, volume.sell_quantity
        else:
            value, quantity = volume.buy_value, volume.buy_quantity
        marker = " <i>(est.)</i>" if reconciled.estimated else ""
        rows.append(
            f"- <b>Last {window.display_name}:</b> ${format_number(value, 0)} | "
            f"{format_number(quantity, 0)} {asset}{marker}"
        )
    return rows


def render_signal_report(report: SignalReport, settings: SignalSettings) -> str:
    """Render the periodic / on-demand analysis message as Telegram HTML."""
    asset = settings.asset
    changes = " | ".join(
        [
            f"🕒 15m: {format_number(report.change_for(Window.M15))}%",
            f"⏳ 30m: {format_number(report.change_for(Window.M30))}%",
            f"🕰 1h: {format_number(report.change_for(Window.H1))}%",
            f"📅 4h: {format_number(report.change_for(Window.H4))}%",
        ]
    )

    lines = [
        f"<b>🚨 {html.escape(report.symbol)} Real-Time Analysis</b>",
        "",
        f"<b>💰 Current Price:</b> ${format_price(report.current_price)} USDT",
        changes,
        "",
    ]
    if report.alert:
        lines.append("<b>⚠️ ALERT: Significant Price Movement Detected!</b>")
    lines.append(html.escape(report.signal.message, quote=False))

    lines += ["", f"<b>📊 Volume Analysis (Last 24h: ${format_number(report.volume_24h, 0)})</b>"]
    lines += ["", "🔴 <b>Sell Orders (Asks)</b>"]
    lines += _volume_rows(report, asset, "sell")
    lines += ["", "🟢 <b>Buy Orders (Bids)</b>"]
    lines += _volume_rows(report, asset, "buy")

    ratio_text, ratio_icon = _hourly_ratio(report)
    lines += ["", f"<b>Buy/Sell Ratio (1h):</b> {ratio_text} {ratio_icon}"]

    lines.append("")
    if report.buy_zones and not report.zones_are_synthetic:
        lines.append("<b>🏆 Top Buy Zones Right Now</b> 💡")
        for index, zone in enumerate(report.buy_zones, start=1):
            lines.append(
                f"{index}. ${format_price(zone.price)} | ${format_number(zone.value, 0)} | "
                f"{format_number(zone.quantity, 0)} {asset}"
            )
    else:
        lines.append("🟢 No significant buy zones detected in recent trading activity.")

    market_cap = report.current_price * settings.circulating_supply
    lines += [
        "",
        "<b>📊 Market Metrics</b>",
        f"<b>- Market Cap:</b> ${format_number(market_cap, 0)}",
        f"<b>- Total Volume 24H:</b> ${format_number(report.volume_24h, 0)}",
        f"<b>- Circulating Supply:</b> {format_number(settings.circulating_supply, 0)}",
        "",
        f"<b>Technical Trend:</b> {_TREND_LABELS.get(report.technical_trend, report.technical_trend)}",
        "",
        f'🔗 <a href="{trade_url(asset)}">Trade on MEXC</a> | '
        f'<a href="{chart_url(settings.cmc_slug)}">View on CMC</a>',
        "📚 <b>Use /tcapy for real-time updates | /help for all commands</b>",
        "🌐 Powered by <b>TCAPY Community Bot</b>",
    ]
    return "\n".join(lines)


def render_coin_info(quote: CoinQuote, settings: SignalSettings) -> str:
    """Render the /coin reply.

    The configured asset uses the fixed circulating supply for its market
    cap and gets a project blurb instead of the CoinMarketCap supply lines.
    """
    symbol = quote.symbol.upper()
    is_asset = symbol == settings.asset.upper()
    circulating = settings.circulating_supply if is_asset else quote.circulating_supply
    market_cap = quote.price * circulating if circulating > 0 else quote.market_cap

    lines = [
        f"📈 <b>{html.escape(quote.name)} ({html.escape(symbol)})</b>",
        f"💰 <b>Current Price:</b> ${format_price(quote.price)}",
        f"📊 <b>24h Change:</b> {format_number(quote.percent_change_24h, 2)}%",
        f"📊 <b>1h Change:</b> {format_number(quote.percent_change_1h, 2)}%",
        f"🔄 <b>24h Volume:</b> ${format_number(quote.volume_24h, 0)}",
        f"🔄 <b>Market Cap:</b> ${format_number(market_cap, 0)}",
    ]

    if is_asset:
        lines.append(f"🔢 <b>Total Supply:</b> {format_number(settings.circulating_supply, 0)} {symbol}")
        lines += ["", ABOUT_TCAPY_TEXT]
    else:
        if quote.circulating_supply > 0:
            lines.append(
                f"🔢 <b>Circulating Supply:</b> {format_number(quote.circulating_supply, 0)} {symbol}"
            )
        if quote.max_supply > 0:
            lines.append(f"🔢 <b>Max Supply:</b> {format_number(quote.max_supply, 0)} {symbol}")

    lines += ["", f'🔗 <a href="{chart_url(quote.slug)}">View Chart</a>']
    return "\n".join(lines)


def describe_market_error(exc: Exception, symbol: str) -> str:
    """Translate a quote lookup failure into a plain-text user message."""
    if isinstance(exc, CoinNotFoundError):
        return f'❌ Coin "{symbol}" not found. Please check the symbol and try again.'

    if isinstance(exc, MarketDataError) and exc.status is not None:
        text = _HTTP_ERROR_TEXT.get(exc.status, "An unexpected error occurred.")
        if exc.api_message:
            text += f" Details: {exc.api_message}"
        return text

    return f"Error: {exc}"


def render_scheduled_failure(exc: Exception) -> str:
    """Notice posted to the group when a scheduled signal run fails."""
    return (
        f"❌ Error generating TCAPY signal: {html.escape(str(exc), quote=False)}. "
        "Service will retry automatically."
    )
