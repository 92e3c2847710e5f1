"""Time-windowed buy/sell volume aggregation over raw trade history.

Reduces a list of trades into buy/sell value and quantity totals for every
trade executed since a cutoff. Trades stamped in the future are rejected as
stale or bad feed data. Invalid records are skipped, never fatal.

CRITICAL: All values use Decimal. Never use float for volumes.
"""

import time
from collections.abc import Iterable
from decimal import Decimal

from tcapy_bot.logging import get_logger
from tcapy_bot.models import Trade, VolumeWindow

logger = get_logger(__name__)


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def is_valid_trade(trade: object) -> bool:
    """Return True if ``trade`` is a Trade with usable numeric fields.

    A valid trade has an integer timestamp and finite, non-negative
    Decimal price and quantity.
    """
    if not isinstance(trade, Trade):
        return False
    if not isinstance(trade.timestamp_ms, int) or isinstance(trade.timestamp_ms, bool):
        return False
    for value in (trade.price, trade.quantity):
        if not isinstance(value, Decimal) or not value.is_finite() or value < 0:
            return False
    return True


def valid_trades(trades: Iterable[object]) -> list[Trade]:
    """Filter an iterable down to its valid Trade records, preserving order."""
    return [t for t in trades if is_valid_trade(t)]  # type: ignore[misc]


def aggregate_volume(
    trades: Iterable[Trade],
    since_ms: int,
    now: int | None = None,
) -> VolumeWindow:
    """Aggregate buy/sell value and quantity for trades in ``[since_ms, now]``.

    Each included trade's value (price x quantity) goes to the sell side
    when the trade was sell-initiated, otherwise to the buy side; its raw
    quantity is accumulated on the same side.

    Args:
        trades: Trade records in any order. May be empty or contain invalid
            entries, which are skipped.
        since_ms: Inclusive lower bound on trade timestamp (epoch ms).
        now: Inclusive upper bound (epoch ms). Defaults to the current time.

    Returns:
        A VolumeWindow; all zeros for empty or fully invalid input.
    """
    upper = now_ms() if now is None else now

    buy_value = Decimal("0")
    sell_value = Decimal("0")
    buy_quantity = Decimal("0")
    sell_quantity = Decimal("0")
    skipped = 0

    for trade in trades:
        if not is_valid_trade(trade):
            skipped += 1
            continue
        if trade.timestamp_ms < since_ms or trade.timestamp_ms > upper:
            continue

        value = trade.price * trade.quantity
        if trade.is_sell_initiated:
            sell_value += value
            sell_quantity += trade.quantity
        else:
            buy_value += value
            buy_quantity += trade.quantity

    if skipped:
        logger.debug("invalid_trades_skipped", count=skipped, since_ms=since_ms)

    return VolumeWindow(
        buy_value=buy_value,
        sell_value=sell_value,
        buy_quantity=buy_quantity,
        sell_quantity=sell_quantity,
    )
