"""Tests for buy zone detection (order book, trade clustering, synthetic fallback)."""

from decimal import Decimal

import pytest

from tcapy_bot.exceptions import PreconditionViolation
from tcapy_bot.models import OrderBookLevel, OrderBookSnapshot, Trade, ZoneSource
from tcapy_bot.signals.buy_zones import bucket_size, find_buy_zones

NOW = 1_700_000_000_000
PRICE = Decimal("1")
VOLUME_24H = Decimal("10000")


def _make_book(bids: list[tuple[str, str]]) -> OrderBookSnapshot:
    """Order book with the given (price, quantity) bids and no asks."""
    return OrderBookSnapshot(
        bids=tuple(OrderBookLevel(Decimal(p), Decimal(q)) for p, q in bids)
    )


def _make_buys(
    count: int,
    price: str = "0.98",
    quantity: str = "10",
    offset_ms: int = 60_000,
    sell: bool = False,
) -> list[Trade]:
    """``count`` identical trades stamped ``offset_ms`` before NOW."""
    return [
        Trade(NOW - offset_ms, Decimal(price), Decimal(quantity), sell) for _ in range(count)
    ]


def _prices(zones) -> list[Decimal]:
    return [z.price for z in zones]


class TestBucketSize:
    """Tests for bucket_size."""

    @pytest.mark.parametrize(
        ("price", "expected"),
        [
            ("0.000002", "0.00000001"),
            ("0.000005", "0.00000001"),
            ("0.00005", "0.0000001"),
            ("0.005", "0.00001"),
            ("0.5", "0.0001"),
            ("5", "0.001"),
        ],
    )
    def test_scales_with_magnitude(self, price: str, expected: str) -> None:
        """Sub-cent prices get buckets two orders of magnitude below the price."""
        assert bucket_size(Decimal(price)) == Decimal(expected)

    def test_coarse_is_ten_times_wider(self) -> None:
        """Trade clustering uses buckets 10x the order-book width."""
        assert bucket_size(Decimal("5"), coarse=True) == Decimal("0.01")
        assert bucket_size(Decimal("0.000002"), coarse=True) == Decimal("0.0000001")

    def test_micro_price_bid_walls_stay_separate(self) -> None:
        """Below 0.00001 each bid wall keeps its own bucket."""
        price = Decimal("0.000002")
        book = _make_book(
            [
                ("0.00000199", "100000000"),
                ("0.00000195", "100000000"),
                ("0.00000190", "100000000"),
                ("0.00000185", "100000000"),
            ]
        )
        zones = find_buy_zones([], book, price, VOLUME_24H, now=NOW)
        # 0.99x / 0.97x defaults sit within 2% of the selected walls
        assert _prices(zones) == [Decimal("0.00000199"), Decimal("0.00000195")]
        assert all(z.source == ZoneSource.ORDER_BOOK for z in zones)
        assert all(z.quantity == Decimal("100000000") for z in zones)


class TestOrderBookZones:
    """Tests for the order-book path."""

    def test_selects_filters_and_merges_defaults(self) -> None:
        """Significant bids are kept; deep/tiny ones dropped; 0.97 default added."""
        book = _make_book(
            [
                ("0.995", "100"),  # value 99.5, near
                ("0.95", "200"),  # value 190, 5% away
                ("0.85", "1000"),  # below 90% of price
                ("0.999", "10"),  # value 9.99, below absolute floor
            ]
        )
        zones = find_buy_zones([], book, PRICE, VOLUME_24H, now=NOW)
        assert _prices(zones) == [Decimal("0.995"), Decimal("0.97"), Decimal("0.95")]
        assert [z.source for z in zones] == [
            ZoneSource.ORDER_BOOK,
            ZoneSource.DEFAULT,
            ZoneSource.ORDER_BOOK,
        ]

    def test_bucket_price_is_volume_weighted(self) -> None:
        """Levels in one bucket merge; value stays price x quantity."""
        book = _make_book([("0.9951", "100"), ("0.9959", "100")])
        zones = find_buy_zones([], book, PRICE, VOLUME_24H, now=NOW)
        zone = zones[0]
        assert zone.source == ZoneSource.ORDER_BOOK
        assert zone.price == Decimal("0.9955")
        assert zone.quantity == Decimal("200")
        assert zone.value == zone.price * zone.quantity

    def test_near_band_ranked_by_value(self) -> None:
        """Zones within 5% beat farther ones; among them the larger value wins."""
        book = _make_book(
            [("0.99", "100"), ("0.98", "200"), ("0.93", "100"), ("0.91", "100")]
        )
        zones = find_buy_zones([], book, PRICE, VOLUME_24H, now=NOW)
        # both defaults are within 2% of a selected zone and are skipped
        assert _prices(zones) == [Decimal("0.99"), Decimal("0.98")]

    def test_far_zones_ranked_by_distance(self) -> None:
        """Outside the near band the closest zones are taken first."""
        book = _make_book([("0.93", "100"), ("0.91", "100"), ("0.92", "500")])
        zones = find_buy_zones([], book, PRICE, VOLUME_24H, now=NOW)
        assert _prices(zones) == [Decimal("0.99"), Decimal("0.97"), Decimal("0.93")]

    def test_unsorted_bids_give_same_result(self) -> None:
        """Bid ordering from the feed is not assumed."""
        bids = [("0.95", "200"), ("0.995", "100"), ("0.97", "300")]
        forward = find_buy_zones([], _make_book(bids), PRICE, VOLUME_24H, now=NOW)
        backward = find_buy_zones([], _make_book(bids[::-1]), PRICE, VOLUME_24H, now=NOW)
        assert forward == backward


class TestTradeZones:
    """Tests for the trade-clustering fallback."""

    def test_used_when_book_missing(self) -> None:
        """Enough recent buys cluster into a zone."""
        zones = find_buy_zones(_make_buys(5), None, PRICE, VOLUME_24H, now=NOW)
        assert _prices(zones) == [Decimal("0.98")]
        assert zones[0].source == ZoneSource.TRADES
        assert zones[0].value == Decimal("49")

    def test_used_when_book_has_no_significant_bids(self) -> None:
        """An order book with only tiny bids falls through to trades."""
        book = _make_book([("0.99", "1")])
        zones = find_buy_zones(_make_buys(5), book, PRICE, VOLUME_24H, now=NOW)
        assert zones[0].source == ZoneSource.TRADES

    def test_too_few_buys_gives_synthetic(self) -> None:
        """Fewer than 5 qualifying buys are not clustered."""
        trades = _make_buys(4) + _make_buys(5, sell=True)
        zones = find_buy_zones(trades, None, PRICE, VOLUME_24H, now=NOW)
        assert all(z.source == ZoneSource.SYNTHETIC for z in zones)

    def test_old_and_out_of_band_buys_ignored(self) -> None:
        """Buys older than 3h or over 10% away from the price do not count."""
        trades = (
            _make_buys(3)
            + _make_buys(1, offset_ms=4 * 3600 * 1000)
            + _make_buys(1, price="1.2")
        )
        zones = find_buy_zones(trades, None, PRICE, VOLUME_24H, now=NOW)
        assert all(z.source == ZoneSource.SYNTHETIC for z in zones)


class TestSyntheticZones:
    """Tests for the synthetic fallback."""

    def test_three_fixed_levels(self) -> None:
        """-0.5%, -1.5% and -3% of the price sized from 24h volume."""
        zones = find_buy_zones([], None, PRICE, VOLUME_24H, now=NOW)
        assert _prices(zones) == [Decimal("0.995"), Decimal("0.985"), Decimal("0.97")]
        assert [z.value for z in zones] == [Decimal("500"), Decimal("800"), Decimal("1200")]
        for zone in zones:
            assert abs(zone.price * zone.quantity - zone.value) < Decimal("0.00001")


class TestFindBuyZonesContract:
    """Bounds and preconditions of find_buy_zones."""

    @pytest.mark.parametrize(
        "bids",
        [
            [],
            [("0.999", "500"), ("0.998", "500"), ("0.95", "900"), ("0.92", "900")],
            [("0.96", "100"), ("0.94", "100"), ("0.93", "100"), ("0.90", "1000")],
        ],
    )
    def test_bounded_and_descending(self, bids: list[tuple[str, str]]) -> None:
        """At most 3 zones, prices non-increasing."""
        zones = find_buy_zones(_make_buys(6), _make_book(bids), PRICE, VOLUME_24H, now=NOW)
        assert 0 < len(zones) <= 3
        prices = _prices(zones)
        assert prices == sorted(prices, reverse=True)

    @pytest.mark.parametrize("price", ["0", "-0.5"])
    def test_non_positive_price_rejected(self, price: str) -> None:
        """current_price <= 0 fails fast."""
        with pytest.raises(PreconditionViolation):
            find_buy_zones([], None, Decimal(price), VOLUME_24H, now=NOW)

    def test_negative_volume_rejected(self) -> None:
        """A negative 24h volume is a precondition failure."""
        with pytest.raises(PreconditionViolation):
            find_buy_zones([], None, PRICE, Decimal("-1"), now=NOW)
