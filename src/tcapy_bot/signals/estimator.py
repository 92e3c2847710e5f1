"""Volume estimation and actual-vs-estimate reconciliation.

Recent-trade pages are capped by the exchange, so trade-derived volume for
short windows is often far below real market activity. The estimator
synthesizes a plausible buy/sell split anchored to the more reliable 24h
quote volume:

    window_volume = volume_24h * window_share(change) * estimate_scale
    buy_value     = window_volume * buy_ratio(change)
    sell_value    = window_volume * (1 - buy_ratio(change))
    quantity      = round(value / current_price)

The reconciliation policy then decides, window by window, whether the
actual figures are trustworthy or the estimate must be used instead.

CRITICAL: All computations use Decimal. Never use float.
"""

from collections.abc import Mapping
from decimal import ROUND_HALF_UP, Decimal

from tcapy_bot.config import SignalSettings
from tcapy_bot.exceptions import PreconditionViolation
from tcapy_bot.logging import get_logger
from tcapy_bot.models import ReconciledWindow, VolumeWindow, Window
from tcapy_bot.signals.numeric import quantize

logger = get_logger(__name__)

_HALF = Decimal("0.5")
_ONE = Decimal("1")
_ZERO = Decimal("0")

REASON_BELOW_MIN_FRACTION = "below_min_fraction"
REASON_INCONSISTENT_NESTING = "inconsistent_nesting"
REASON_TOO_FEW_TRADES = "too_few_trades"


def buy_ratio_for_change(
    change: Decimal,
    steps: list[tuple[Decimal, Decimal]] | None = None,
) -> Decimal:
    """Map a percent price change to the share of volume that was buying.

    Monotonic step function symmetric around zero: the first step whose
    threshold ``|change|`` strictly exceeds moves the ratio away from 0.5
    by its offset, up for rallies and down for declines. With the default
    steps the result is bounded to [0.2, 0.8].

    Args:
        change: Signed percent change of the window.
        steps: (threshold, offset) pairs, strongest first.
            Defaults to SignalSettings.buy_ratio_steps.
    """
    if steps is None:
        steps = SignalSettings.model_fields["buy_ratio_steps"].default

    magnitude = abs(change)
    for threshold, offset in steps:
        if magnitude > threshold:
            return _HALF + offset if change > 0 else _HALF - offset
    return _HALF


def window_share(window: Window, change: Decimal, settings: SignalSettings) -> Decimal:
    """Fraction of 24h volume attributed to ``window``; higher on an up-move."""
    direction = "up" if change > 0 else "down"
    return getattr(settings, f"share_{window.value}_{direction}")


def estimate_volume_distribution(
    volume_24h: Decimal,
    price_changes: Mapping[Window, Decimal],
    current_price: Decimal,
    settings: SignalSettings | None = None,
) -> dict[Window, VolumeWindow]:
    """Synthesize per-window buy/sell value and quantity from 24h volume.

    Args:
        volume_24h: Total 24h quote volume. Must be >= 0.
        price_changes: Percent change per window; windows missing from the
            mapping are treated as flat.
        current_price: Reference price used to convert value to quantity.
            Must be > 0.
        settings: Window shares, ratio steps and scale. Defaults apply if None.

    Returns:
        Estimated VolumeWindow for each of the four windows.

    Raises:
        PreconditionViolation: current_price <= 0 or volume_24h < 0.
    """
    if current_price <= 0:
        raise PreconditionViolation(f"current_price must be > 0, got {current_price}")
    if volume_24h < 0:
        raise PreconditionViolation(f"volume_24h must be >= 0, got {volume_24h}")

    settings = settings or SignalSettings()
    estimates: dict[Window, VolumeWindow] = {}

    for window in Window:
        change = price_changes.get(window, _ZERO)
        window_volume = volume_24h * window_share(window, change, settings) * settings.estimate_scale
        ratio = buy_ratio_for_change(change, settings.buy_ratio_steps)

        buy_value = window_volume * ratio
        sell_value = window_volume * (_ONE - ratio)
        estimates[window] = VolumeWindow(
            buy_value=buy_value,
            sell_value=sell_value,
            buy_quantity=_round_units(buy_value / current_price),
            sell_quantity=_round_units(sell_value / current_price),
        )

    return estimates


def _round_units(value: Decimal) -> Decimal:
    return quantize(value, _ONE, rounding=ROUND_HALF_UP)


def _dominates(larger: VolumeWindow, smaller: VolumeWindow) -> bool:
    """True if every total of ``larger`` is >= the same total of ``smaller``."""
    return (
        larger.buy_value >= smaller.buy_value
        and larger.sell_value >= smaller.sell_value
        and larger.buy_quantity >= smaller.buy_quantity
        and larger.sell_quantity >= smaller.sell_quantity
    )


def inconsistent_windows(actual: Mapping[Window, VolumeWindow]) -> set[Window]:
    """Windows taking part in a nesting violation (shorter window > longer window).

    Windows computed from the same trade source must be monotonic: a wider
    window contains every trade of a narrower one.
    """
    ordered = [w for w in Window if w in actual]
    bad: set[Window] = set()
    for i, shorter in enumerate(ordered):
        for longer in ordered[i + 1 :]:
            if not _dominates(actual[longer], actual[shorter]):
                bad.update((shorter, longer))
    return bad


def reconcile_windows(
    actual: Mapping[Window, VolumeWindow],
    estimated: Mapping[Window, VolumeWindow],
    volume_24h: Decimal,
    trade_count: int,
    settings: SignalSettings | None = None,
) -> dict[Window, ReconciledWindow]:
    """Choose actual or estimated figures for every window.

    The estimate replaces the actual figures for a window when:
    - fewer than ``min_trade_count`` trades were available at all, or
    - the window takes part in a nesting violation, or
    - its actual buy+sell value is below ``min_plausible_fraction`` of
      the 24h volume.

    Without a positive 24h volume there is nothing to anchor an estimate
    to, so actual figures are always kept.

    Each substitution is logged and flagged on the returned window.
    """
    settings = settings or SignalSettings()
    result: dict[Window, ReconciledWindow] = {}

    if volume_24h <= 0:
        for window, volume in actual.items():
            result[window] = ReconciledWindow(volume=volume)
        return result

    inconsistent = inconsistent_windows(actual)
    min_value = volume_24h * settings.min_plausible_fraction

    for window in Window:
        if window not in actual:
            continue
        volume = actual[window]

        reason: str | None = None
        if trade_count < settings.min_trade_count:
            reason = REASON_TOO_FEW_TRADES
        elif window in inconsistent:
            reason = REASON_INCONSISTENT_NESTING
        elif volume.total_value < min_value:
            reason = REASON_BELOW_MIN_FRACTION

        if reason is not None and window in estimated:
            logger.info(
                "volume_estimate_substituted",
                window=window.value,
                reason=reason,
                actual_value=str(volume.total_value),
                estimated_value=str(estimated[window].total_value),
            )
            result[window] = ReconciledWindow(
                volume=estimated[window], estimated=True, reason=reason
            )
        else:
            result[window] = ReconciledWindow(volume=volume)

    return result
