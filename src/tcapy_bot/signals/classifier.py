"""Categorical signal classification for the dominant timeframe.

Picks the timeframe with the largest absolute price move, maps its percent
change to one of a fixed ladder of magnitude tiers, and appends a volume
annotation derived from the buy/sell ratio and total traded value.

Tier ladder (evaluated strongest first, first match wins):

    >= 20, >= 15, >= 10, >= 7, >= 5, >= 3, >= 2, >= 1, >= 0.5, >= 0.2
    (-0.2, 0.2)                                   consolidation
    <= -7, <= -3, <= -1, <= -0.5, <= -0.2

CRITICAL: All computations use Decimal. Never use float.
"""

from collections.abc import Mapping, Sequence
from decimal import Decimal, InvalidOperation

from tcapy_bot.config import SignalSettings
from tcapy_bot.exceptions import EmptyInputError, InvalidInputError
from tcapy_bot.models import SignalResult, TimeframeCandidate, Window
from tcapy_bot.signals.numeric import quantize

_ONE = Decimal("1")
_RATIO_QUANTIZE = Decimal("0.000001")

#: Positive tiers: (inclusive lower bound, phrase template), strongest first.
_BULLISH_TIERS: tuple[tuple[Decimal, str], ...] = (
    (Decimal("20"), "🌋 EXTREME SURGE in {tf}: {asset} showing parabolic movement with massive buy pressure – FOMO phase detected!"),
    (Decimal("15"), "🚀 MASSIVE BREAKOUT in {tf}: {asset} exploding with extreme buy strength – strong momentum building!"),
    (Decimal("10"), "📈 STRONG BULL RALLY in {tf}: Price accelerating rapidly with institutional buying detected."),
    (Decimal("7"), "💥 POWERFUL MOMENTUM in {tf}: Strong buy pressure pushing price higher with conviction."),
    (Decimal("5"), "💡 STRONG UPTREND in {tf}: Clear bullish pattern forming with sustained buying."),
    (Decimal("3"), "🌟 SOLID BULLISH MOVE in {tf}: Buyers stepping in with confidence – good momentum."),
    (Decimal("2"), "✅ POSITIVE TREND in {tf}: Healthy buying momentum with bullish continuation likely."),
    (Decimal("1"), "🟢 MILD STRENGTH in {tf}: Market trending upward with steady support."),
    (Decimal("0.5"), "📊 GRADUAL GROWTH in {tf}: Slow but steady accumulation phase."),
    (Decimal("0.2"), "🌱 EARLY BULLISH SIGNS in {tf}: First signs of accumulation – monitor closely."),
)

#: Negative tiers: (inclusive upper bound, phrase template), strongest first.
_BEARISH_TIERS: tuple[tuple[Decimal, str], ...] = (
    (Decimal("-7"), "🌀 MAJOR CORRECTION in {tf}: Sharp selloff – potential oversold opportunity for brave traders."),
    (Decimal("-3"), "📉 SIGNIFICANT DECLINE in {tf}: Increased selling pressure – watch key support levels."),
    (Decimal("-1"), "🔄 PULLBACK ZONE in {tf}: Healthy correction after recent moves."),
    (Decimal("-0.5"), "🟠 MILD CORRECTION in {tf}: Some profit-taking but technical structure remains intact."),
    (Decimal("-0.2"), "🌥 MINOR WEAKNESS in {tf}: Slight selling pressure but nothing concerning."),
)

_CONSOLIDATION = "🌾 CONSOLIDATION PHASE in {tf}: Market taking a breather – often precedes bigger moves."

_EXTREME_BUY = "📈 EXTREMELY HIGH buy pressure detected with heavy accumulation!"
_STRONG_BUY = "📈 Strong buy pressure with institutional accumulation patterns."
_HEAVY_DISTRIBUTION = "📉 Heavy distribution detected – potential buying opportunity approaching."
_SELLERS_CONTROL = "📉 Sellers currently in control – monitor for reversal signs."
_EXTREME_ACTIVITY = "🔊 Extremely high trading activity with major market participation!"
_HIGH_ACTIVITY = "🔊 High trading volume indicating strong market interest!"


def to_decimal(value: object, name: str = "value") -> Decimal:
    """Coerce a numeric argument to a finite Decimal.

    Raises:
        InvalidInputError: value is not a finite int/float/Decimal/numeric string.
    """
    if isinstance(value, bool) or value is None:
        raise InvalidInputError(f"{name} must be numeric, got {value!r}")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float, str)):
        try:
            result = Decimal(str(value))
        except InvalidOperation as e:
            raise InvalidInputError(f"{name} must be numeric, got {value!r}") from e
    else:
        raise InvalidInputError(f"{name} must be numeric, got {type(value).__name__}")
    if not result.is_finite():
        raise InvalidInputError(f"{name} must be finite, got {value!r}")
    return result


def describe_change(
    change: Decimal,
    timeframe: str,
    asset: str = "TCAPY",
    neutral_band: Decimal = Decimal("0.2"),
) -> str:
    """Return the tier phrase for a percent change over ``timeframe``."""
    if -neutral_band < change < neutral_band:
        return _CONSOLIDATION.format(tf=timeframe, asset=asset)
    if change > 0:
        for bound, phrase in _BULLISH_TIERS:
            if change >= bound:
                return phrase.format(tf=timeframe, asset=asset)
    else:
        for bound, phrase in _BEARISH_TIERS:
            if change <= bound:
                return phrase.format(tf=timeframe, asset=asset)
    # Only reachable with a custom band narrower than the weakest tier
    return _CONSOLIDATION.format(tf=timeframe, asset=asset)


def volume_annotation(
    buy_sell_ratio: Decimal,
    total_volume: Decimal,
    settings: SignalSettings | None = None,
) -> str | None:
    """Secondary clause from buy/sell ratio and total traded value, if any."""
    s = settings or SignalSettings()
    active = total_volume > s.annotation_min_volume

    if active and buy_sell_ratio > s.ratio_extreme_buy:
        return _EXTREME_BUY
    if active and buy_sell_ratio > s.ratio_strong_buy:
        return _STRONG_BUY
    if active and buy_sell_ratio < s.ratio_heavy_sell:
        return _HEAVY_DISTRIBUTION
    if active and buy_sell_ratio < s.ratio_sellers_control:
        return _SELLERS_CONTROL
    if total_volume > s.annotation_extreme_volume:
        return _EXTREME_ACTIVITY
    if total_volume > s.annotation_high_volume:
        return _HIGH_ACTIVITY
    return None


def buy_sell_ratio(buy_value: Decimal, sell_value: Decimal) -> Decimal:
    """buy / sell, defined as exactly 1 when nothing was sold."""
    if sell_value == 0:
        return _ONE
    return quantize(buy_value / sell_value, _RATIO_QUANTIZE)


def classify_signal(
    candidates: Sequence[TimeframeCandidate],
    settings: SignalSettings | None = None,
) -> SignalResult:
    """Classify the most significant timeframe into a SignalResult.

    The primary timeframe is the candidate with the largest absolute
    percent change; the first one in input order wins ties.

    Raises:
        EmptyInputError: no candidates were given.
        InvalidInputError: a candidate's percent change is not numeric.
    """
    if not candidates:
        raise EmptyInputError("classify_signal needs at least one timeframe candidate")

    s = settings or SignalSettings()
    changes = [to_decimal(c.percent_change, f"{c.window.value} percent_change") for c in candidates]

    primary_index = 0
    for i, change in enumerate(changes):
        if abs(change) > abs(changes[primary_index]):
            primary_index = i
    primary = candidates[primary_index]
    change = changes[primary_index]

    volume = primary.volume
    ratio = buy_sell_ratio(volume.buy_value, volume.sell_value)
    total = volume.total_value

    message = describe_change(change, primary.window.display_name, s.asset, s.neutral_band_pct)
    annotation = volume_annotation(ratio, total, s)
    if annotation:
        message = f"{message} {annotation}"

    return SignalResult(
        window=primary.window,
        percent_change=change,
        message=message,
        buy_sell_ratio=ratio,
        total_volume=total,
    )


def technical_trend(change_1h: Decimal, change_4h: Decimal) -> str:
    """Bullish when both 1h and 4h are up, Bearish when both are down."""
    if change_1h > 0 and change_4h > 0:
        return "Bullish"
    if change_1h < 0 and change_4h < 0:
        return "Bearish"
    return "Neutral"


def is_significant_move(
    changes: Mapping[Window, Decimal],
    settings: SignalSettings | None = None,
) -> bool:
    """Alert when the 15m or 1h move crosses its threshold."""
    s = settings or SignalSettings()
    return (
        abs(changes.get(Window.M15, Decimal("0"))) >= s.alert_15m_pct
        or abs(changes.get(Window.H1, Decimal("0"))) >= s.alert_1h_pct
    )
