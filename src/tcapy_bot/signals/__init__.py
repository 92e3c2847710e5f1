"""Trading-signal estimation pipeline.

Pure functions turning raw trades and an order-book snapshot into windowed
buy/sell volume, price changes, reconciled volume estimates, buy zones and
a categorical signal, plus the SignalEngine that composes them.
"""

from tcapy_bot.signals.buy_zones import find_buy_zones
from tcapy_bot.signals.classifier import (
    classify_signal,
    describe_change,
    is_significant_move,
    technical_trend,
    volume_annotation,
)
from tcapy_bot.signals.engine import SignalEngine
from tcapy_bot.signals.estimator import (
    buy_ratio_for_change,
    estimate_volume_distribution,
    reconcile_windows,
)
from tcapy_bot.signals.price import compute_price_changes, percent_change, price_at_or_before
from tcapy_bot.signals.volume import aggregate_volume

__all__ = [
    "SignalEngine",
    "aggregate_volume",
    "buy_ratio_for_change",
    "classify_signal",
    "compute_price_changes",
    "describe_change",
    "estimate_volume_distribution",
    "find_buy_zones",
    "is_significant_move",
    "percent_change",
    "price_at_or_before",
    "reconcile_windows",
    "technical_trend",
    "volume_annotation",
]
