"""Buy zone detection from order-book depth or recent buy-side trades.

Priority order:
1. Order book: bucket bids near the current price, keep significant
   buckets, rank them and take the top few, then merge in default zones
   that are not near-duplicates.
2. Trades: the same bucket/filter/rank/merge pipeline over buy-initiated
   trades of the last few hours within a price band around the current
   price, when enough of them exist.
3. Synthetic: fixed levels just below the current price.

The result is always sorted by descending price and bounded in length.
This is a deterministic heuristic ranking, not a prediction of support.

CRITICAL: All computations use Decimal. Never use float.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal

from tcapy_bot.config import SignalSettings
from tcapy_bot.exceptions import PreconditionViolation
from tcapy_bot.logging import get_logger
from tcapy_bot.models import BuyZone, OrderBookSnapshot, Trade, ZoneSource
from tcapy_bot.signals.numeric import quantize
from tcapy_bot.signals.volume import now_ms, valid_trades

logger = get_logger(__name__)

_HUNDRED = Decimal("100")
_ZERO = Decimal("0")
_QTY_QUANTIZE = Decimal("0.00000001")


@dataclass
class _Bucket:
    quantity: Decimal = _ZERO
    value: Decimal = _ZERO


def bucket_size(current_price: Decimal, coarse: bool = False) -> Decimal:
    """Price bucket width for ``current_price``.

    Sub-cent prices get a width two orders of magnitude below the price
    itself (0.00001 at 0.001-0.01, 1e-8 at 0.000002), so separate bid walls
    of micro-priced tokens stay in separate buckets. From one cent up the
    width is 0.0001, and 0.001 from 1 upward.

    Trade clustering uses ``coarse`` buckets ten times wider than the
    order-book ones since fills are sparser than resting depth.
    """
    if current_price < Decimal("0.01"):
        size = Decimal(1).scaleb(current_price.adjusted() - 2)
    elif current_price < 1:
        size = Decimal("0.0001")
    else:
        size = Decimal("0.001")
    return size * 10 if coarse else size


def _bucketize(
    levels: Iterable[tuple[Decimal, Decimal]], size: Decimal, source: ZoneSource
) -> list[BuyZone]:
    """Group (price, quantity) pairs into buckets of width ``size``.

    Each bucket's price is its volume-weighted average, so value equals
    price x quantity for the zone.
    """
    buckets: dict[Decimal, _Bucket] = {}
    for price, quantity in levels:
        key = (price / size).to_integral_value(rounding=ROUND_FLOOR) * size
        bucket = buckets.setdefault(key, _Bucket())
        bucket.quantity += quantity
        bucket.value += price * quantity

    zones = []
    for bucket in buckets.values():
        if bucket.quantity <= 0:
            continue
        zones.append(
            BuyZone(
                price=bucket.value / bucket.quantity,
                quantity=bucket.quantity,
                value=bucket.value,
                source=source,
            )
        )
    return zones


def _rank(zones: list[BuyZone], current_price: Decimal, near_band_pct: Decimal) -> list[BuyZone]:
    """Rank zones: within the near band by value desc, then farther ones by distance asc."""

    def key(zone: BuyZone) -> tuple:
        distance = abs(current_price - zone.price) / current_price * _HUNDRED
        if distance < near_band_pct:
            return (0, -zone.value, -zone.price)
        return (1, distance, -zone.price)

    return sorted(zones, key=key)


def _zone_from_share(
    current_price: Decimal,
    multiplier: Decimal,
    share: Decimal,
    volume_24h: Decimal,
    source: ZoneSource,
) -> BuyZone:
    price = current_price * multiplier
    value = volume_24h * share
    return BuyZone(
        price=price,
        quantity=quantize(value / price, _QTY_QUANTIZE),
        value=value,
        source=source,
    )


def default_zones(
    current_price: Decimal, volume_24h: Decimal, settings: SignalSettings
) -> list[BuyZone]:
    """The fixed fallback zones merged into data-derived ones."""
    return [
        _zone_from_share(current_price, mult, share, volume_24h, ZoneSource.DEFAULT)
        for mult, share in settings.default_zones
    ]


def synthetic_zones(
    current_price: Decimal, volume_24h: Decimal, settings: SignalSettings
) -> list[BuyZone]:
    """Zones returned when neither order book nor trades are usable."""
    zones = [
        _zone_from_share(current_price, mult, share, volume_24h, ZoneSource.SYNTHETIC)
        for mult, share in settings.synthetic_zones
    ]
    return _finalize(zones, settings)


def _merge_with_defaults(
    selected: list[BuyZone],
    current_price: Decimal,
    volume_24h: Decimal,
    settings: SignalSettings,
) -> list[BuyZone]:
    combined = list(selected)
    for fallback in default_zones(current_price, volume_24h, settings):
        has_similar = any(
            abs(zone.price - fallback.price) / fallback.price < settings.zone_dedupe_fraction
            for zone in selected
        )
        if not has_similar:
            combined.append(fallback)
    return combined


def _finalize(zones: list[BuyZone], settings: SignalSettings) -> list[BuyZone]:
    return sorted(zones, key=lambda z: z.price, reverse=True)[: settings.zone_max_count]


def _zones_from_order_book(
    order_book: OrderBookSnapshot | None,
    current_price: Decimal,
    volume_24h: Decimal,
    settings: SignalSettings,
) -> list[BuyZone]:
    if order_book is None or not order_book.bids:
        return []

    min_price = current_price * settings.zone_min_price_fraction
    levels = [
        (level.price, level.quantity)
        for level in order_book.bids
        if level.price.is_finite()
        and level.quantity.is_finite()
        and level.price > 0
        and level.quantity >= 0
        and level.price >= min_price
    ]

    significance = volume_24h * settings.zone_book_significance
    zones = [
        zone
        for zone in _bucketize(levels, bucket_size(current_price), ZoneSource.ORDER_BOOK)
        if zone.value >= settings.zone_min_bucket_value and zone.value > significance
    ]
    return _rank(zones, current_price, settings.zone_near_band_pct)


def _zones_from_trades(
    trades: Sequence[Trade],
    current_price: Decimal,
    volume_24h: Decimal,
    now: int,
    settings: SignalSettings,
) -> list[BuyZone]:
    since = now - settings.zone_trade_lookback_hours * 3600 * 1000
    band = settings.zone_trade_price_band
    buys = [
        t
        for t in valid_trades(trades)
        if not t.is_sell_initiated
        and since <= t.timestamp_ms <= now
        and t.price > 0
        and abs(t.price - current_price) / current_price <= band
    ]
    if len(buys) < settings.zone_min_trades:
        return []

    significance = volume_24h * settings.zone_trade_significance
    zones = [
        zone
        for zone in _bucketize(
            ((t.price, t.quantity) for t in buys),
            bucket_size(current_price, coarse=True),
            ZoneSource.TRADES,
        )
        if zone.value > significance
    ]
    return _rank(zones, current_price, settings.zone_near_band_pct)


def find_buy_zones(
    trades: Sequence[Trade],
    order_book: OrderBookSnapshot | None,
    current_price: Decimal,
    volume_24h: Decimal,
    now: int | None = None,
    settings: SignalSettings | None = None,
) -> list[BuyZone]:
    """Find up to ``zone_max_count`` buy zones, sorted by descending price.

    Args:
        trades: Recent trade history (any order; invalid records skipped).
        order_book: Depth snapshot, or None when the depth feed failed.
        current_price: Reference price. Must be > 0.
        volume_24h: 24h quote volume used for significance filters and
            default zone sizing. Must be >= 0.
        now: Epoch ms used for the trade lookback. Defaults to current time.
        settings: Bucketing and filtering constants. Defaults apply if None.

    Raises:
        PreconditionViolation: current_price <= 0 or volume_24h < 0.
    """
    if current_price <= 0:
        raise PreconditionViolation(f"current_price must be > 0, got {current_price}")
    if volume_24h < 0:
        raise PreconditionViolation(f"volume_24h must be >= 0, got {volume_24h}")

    settings = settings or SignalSettings()
    now = now_ms() if now is None else now

    ranked = _zones_from_order_book(order_book, current_price, volume_24h, settings)
    source = ZoneSource.ORDER_BOOK
    if not ranked:
        ranked = _zones_from_trades(trades, current_price, volume_24h, now, settings)
        source = ZoneSource.TRADES

    if not ranked:
        logger.debug("buy_zones_synthetic", current_price=str(current_price))
        return synthetic_zones(current_price, volume_24h, settings)

    selected = ranked[: settings.zone_max_primary]
    zones = _finalize(
        _merge_with_defaults(selected, current_price, volume_24h, settings), settings
    )
    logger.debug("buy_zones_found", source=source.value, count=len(zones))
    return zones
