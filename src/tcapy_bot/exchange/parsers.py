"""Conversion of raw exchange payloads into typed models.

Accepts ccxt-unified dicts and falls back to raw MEXC field names
(time/qty/isBuyerMaker) so both shapes parse identically. Malformed
records are dropped, never raised.

Side convention: a trade is sell-initiated when the taker sold, i.e. ccxt
side == "sell" or MEXC isBuyerMaker == true.

All monetary values use Decimal. Never use float for prices or quantities.
"""

from collections.abc import Iterable, Mapping
from decimal import Decimal, InvalidOperation

from tcapy_bot.logging import get_logger
from tcapy_bot.models import OrderBookLevel, OrderBookSnapshot, Trade

logger = get_logger(__name__)


def to_decimal_or_none(raw: object) -> Decimal | None:
    """Convert a raw numeric field to a finite Decimal, or None if unusable."""
    if raw is None or isinstance(raw, bool) or raw == "":
        return None
    try:
        value = Decimal(str(raw))
    except (InvalidOperation, ValueError):
        return None
    return value if value.is_finite() else None


def _to_int_or_none(raw: object) -> int | None:
    if raw is None or isinstance(raw, bool):
        return None
    try:
        return int(str(raw))
    except ValueError:
        value = to_decimal_or_none(raw)
        return int(value) if value is not None else None


def _is_sell_initiated(raw: Mapping) -> bool:
    side = raw.get("side")
    if side in ("buy", "sell"):
        return side == "sell"
    info = raw.get("info") if isinstance(raw.get("info"), Mapping) else raw
    maker = info.get("isBuyerMaker")
    if isinstance(maker, str):
        return maker.lower() == "true"
    return bool(maker)


def parse_trade(raw: object) -> Trade | None:
    """Parse one trade record. Returns None when any required field is invalid."""
    if not isinstance(raw, Mapping):
        return None

    info = raw.get("info") if isinstance(raw.get("info"), Mapping) else {}
    timestamp = _to_int_or_none(raw.get("timestamp", raw.get("time", info.get("time"))))
    price = to_decimal_or_none(raw.get("price", info.get("price")))
    quantity = to_decimal_or_none(raw.get("amount", raw.get("qty", info.get("qty"))))

    if timestamp is None or price is None or quantity is None:
        return None
    if price < 0 or quantity < 0:
        return None

    return Trade(
        timestamp_ms=timestamp,
        price=price,
        quantity=quantity,
        is_sell_initiated=_is_sell_initiated(raw),
    )


def parse_trades(raws: Iterable[object] | None) -> list[Trade]:
    """Parse a trade list, dropping invalid records (order preserved)."""
    if not raws:
        return []

    trades: list[Trade] = []
    dropped = 0
    for raw in raws:
        trade = parse_trade(raw)
        if trade is None:
            dropped += 1
        else:
            trades.append(trade)

    if dropped:
        logger.warning("invalid_trade_records_dropped", dropped=dropped, kept=len(trades))
    return trades


def _parse_levels(raw_levels: object) -> tuple[OrderBookLevel, ...]:
    if not isinstance(raw_levels, (list, tuple)):
        return ()
    levels = []
    for entry in raw_levels:
        if not isinstance(entry, (list, tuple)) or len(entry) < 2:
            continue
        price = to_decimal_or_none(entry[0])
        quantity = to_decimal_or_none(entry[1])
        if price is None or quantity is None or price <= 0 or quantity < 0:
            continue
        levels.append(OrderBookLevel(price=price, quantity=quantity))
    return tuple(levels)


def parse_order_book(raw: object) -> OrderBookSnapshot | None:
    """Parse {"bids": [[p, q], ...], "asks": [...]}; None when both sides are empty."""
    if not isinstance(raw, Mapping):
        return None
    bids = _parse_levels(raw.get("bids"))
    asks = _parse_levels(raw.get("asks"))
    if not bids and not asks:
        return None
    return OrderBookSnapshot(bids=bids, asks=asks)
