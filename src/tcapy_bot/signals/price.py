"""Historical price lookup and percent-change derivation.

Finds the traded price nearest in time to a lookback target and turns it
into a signed percent change against the current price.

CRITICAL: All computations use Decimal. Never use float.
"""

from collections.abc import Iterable, Sequence
from decimal import Decimal

from tcapy_bot.models import PriceChangeSet, Trade, VolumeWindow, Window
from tcapy_bot.signals.numeric import quantize
from tcapy_bot.signals.volume import valid_trades

#: Precision of percent-change results (6 decimal places).
_PCT_QUANTIZE = Decimal("0.000001")


def price_at_or_before(trades: Iterable[Trade], target_ms: int) -> Decimal | None:
    """Return the price of the trade closest in time to ``target_ms``.

    Only trades at or before the target qualify. Among them the one with
    the smallest absolute time difference wins; equally close candidates
    resolve to the earlier trade (then to input order).

    If no trade qualifies, the oldest available trade's price is returned
    as a best-effort estimate, so callers must treat the result as
    approximate.

    Returns:
        The price, or None only when there are no valid trades at all.
    """
    usable = valid_trades(trades)
    if not usable:
        return None

    qualifying = [
        (i, t) for i, t in enumerate(usable) if t.timestamp_ms <= target_ms
    ]
    if not qualifying:
        oldest = min(enumerate(usable), key=lambda it: (it[1].timestamp_ms, it[0]))
        return oldest[1].price

    _, nearest = min(
        qualifying,
        key=lambda it: (abs(it[1].timestamp_ms - target_ms), it[1].timestamp_ms, it[0]),
    )
    return nearest.price


def percent_change(current: Decimal, reference: Decimal | None) -> Decimal:
    """Signed percent change from ``reference`` to ``current``.

    A missing or non-positive reference is replaced by ``current`` itself
    (change 0) so the division can never fail.
    """
    if reference is None or reference <= 0:
        return quantize(Decimal("0"), _PCT_QUANTIZE)
    return quantize((current - reference) / reference * Decimal("100"), _PCT_QUANTIZE)


def compute_price_changes(
    trades: Sequence[Trade],
    current_price: Decimal,
    now_ms: int,
    windows: Iterable[Window] = tuple(Window),
) -> dict[Window, Decimal]:
    """Percent change over every lookback window, keyed by window."""
    return {
        window: percent_change(
            current_price, price_at_or_before(trades, now_ms - window.duration_ms)
        )
        for window in windows
    }


def build_price_change_sets(
    changes: dict[Window, Decimal],
    volumes: dict[Window, VolumeWindow],
) -> tuple[PriceChangeSet, ...]:
    """Pair each window's percent change with the volume figures chosen for it."""
    return tuple(
        PriceChangeSet(window=window, percent_change=change, volume=volumes[window])
        for window, change in changes.items()
    )
