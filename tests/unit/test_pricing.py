"""Unit tests for the delivery pricing policy."""
import pytest

from app.services.delivery.pricing import (
    DEFAULT_POLICY,
    EstimateSource,
    PricingPolicy,
    price_delivery,
    round_half_up,
)


class TestRoundHalfUp:
    """Test JavaScript-style rounding."""

    @pytest.mark.parametrize("value,expected", [(0.5, 1), (1.5, 2), (2.5, 3), (2.49, 2), (0, 0)])
    def test_integers(self, value, expected):
        """Test that halves round up, unlike round()."""
        assert round_half_up(value) == expected

    def test_two_places(self):
        """Test rounding to two decimal places."""
        assert round_half_up(12.345, 2) == 12.35
        assert round_half_up(290.1749, 2) == 290.17


class TestPriceDelivery:
    """Test fare computation."""

    def test_routed_quote(self):
        """Test routed pricing: 15 base + 3/km."""
        quote = price_delivery(12.0, EstimateSource.ROUTED, duration_minutes=25)

        assert quote.base_fare == 15
        assert quote.distance_fare == 36
        assert quote.total_charge == 51
        assert quote.duration_minutes == 25
        assert quote.distance_km == 12.0
        assert quote.source == EstimateSource.ROUTED

    def test_fallback_quote(self):
        """Test fallback pricing: 15 base + 3.5/km, 3 minutes per km."""
        quote = price_delivery(10.0, EstimateSource.FALLBACK)

        assert quote.base_fare == 15
        assert quote.distance_fare == 35
        assert quote.total_charge == 50
        assert quote.duration_minutes == 30
        assert quote.source == EstimateSource.FALLBACK

    def test_source_accepts_string(self):
        """Test that the source tag may be given as its string value."""
        assert price_delivery(10.0, "fallback").source == EstimateSource.FALLBACK

    def test_zero_distance_charges_base_fare(self):
        """Test that a zero-distance delivery costs the base fare."""
        quote = price_delivery(0.0, EstimateSource.ROUTED, duration_minutes=0)
        assert quote.distance_fare == 0
        assert quote.total_charge == 15

    def test_distance_rounded_to_two_places(self):
        """Test that distance on the quote is rounded but the fare uses the raw value."""
        quote = price_delivery(1.005, EstimateSource.ROUTED, duration_minutes=2)
        assert quote.distance_km == 1.01
        assert quote.distance_fare == 3

    @pytest.mark.parametrize("distance", [0.1, 0.5, 1.17, 4.5, 7.25, 13.3, 99.99, 290.17])
    def test_total_is_sum_of_parts(self, distance):
        """Test that the breakdown always adds up."""
        for source in EstimateSource:
            quote = price_delivery(distance, source)
            assert quote.total_charge == quote.base_fare + quote.distance_fare

    def test_half_fare_rounds_up(self):
        """Test that a fare landing on .5 rounds up."""
        # 1.5 km * 3 = 4.5
        assert price_delivery(1.5, EstimateSource.ROUTED, duration_minutes=3).distance_fare == 5
        # 1 km * 3.5 = 3.5
        assert price_delivery(1.0, EstimateSource.FALLBACK).distance_fare == 4

    @pytest.mark.parametrize("source", list(EstimateSource))
    def test_monotonic_in_distance(self, source):
        """Test that a longer distance never costs less."""
        distances = [i * 0.37 for i in range(300)]
        totals = [price_delivery(d, source).total_charge for d in distances]
        assert totals == sorted(totals)

    def test_fallback_never_cheaper_than_routed(self):
        """Test that the fallback distance fare is at least the routed one."""
        for i in range(500):
            distance = i * 0.41
            routed = price_delivery(distance, EstimateSource.ROUTED, duration_minutes=1)
            fallback = price_delivery(distance, EstimateSource.FALLBACK)
            assert fallback.distance_fare >= routed.distance_fare

    def test_custom_policy(self):
        """Test that fares follow the policy passed in."""
        policy = PricingPolicy(base_fare=20, routed_rate_per_km=2.0, fallback_rate_per_km=4.0)

        routed = price_delivery(10.0, EstimateSource.ROUTED, duration_minutes=12, policy=policy)
        fallback = price_delivery(10.0, EstimateSource.FALLBACK, policy=policy)

        assert routed.total_charge == 40
        assert fallback.total_charge == 60

    def test_deterministic(self):
        """Test that identical inputs give equal quotes."""
        assert price_delivery(42.42, EstimateSource.FALLBACK) == price_delivery(
            42.42, EstimateSource.FALLBACK
        )

    def test_default_policy_constants(self):
        """Test the default fare constants."""
        assert DEFAULT_POLICY.base_fare == 15
        assert DEFAULT_POLICY.rate_for(EstimateSource.ROUTED) == 3.0
        assert DEFAULT_POLICY.rate_for(EstimateSource.FALLBACK) == 3.5

    @pytest.mark.parametrize("distance", [-1.0, float("nan"), float("inf")])
    def test_invalid_distance_rejected(self, distance):
        """Test that distances which cannot be priced raise instead of giving a bogus total."""
        with pytest.raises(ValueError):
            price_delivery(distance, EstimateSource.ROUTED)
