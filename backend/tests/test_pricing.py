"""
Unit tests for the pricing engine.

Covers location normalization, fixed-route matching in both directions,
per-km pricing and add-ons.
"""
import pytest

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from fleet import get_vehicle_by_id
from models import FixedRoute, VehicleType
from pricing import (
    FIXED_ROUTES,
    InvalidDistanceError,
    calculate_price,
    find_fixed_route,
    format_chf,
    get_add_on_by_id,
    normalize_location,
    resolve_add_ons,
    to_centimes,
)


@pytest.fixture
def standard():
    return get_vehicle_by_id("vehicle-standard-eclass")


@pytest.fixture
def premium():
    return get_vehicle_by_id("vehicle-premium-sclass")


@pytest.fixture
def van():
    return get_vehicle_by_id("vehicle-van-vclass")


class TestNormalizeLocation:
    def test_lowercases_and_trims(self):
        assert normalize_location("  Zürich   Airport ") == "zürich airport"

    def test_drops_punctuation(self):
        assert normalize_location("St. Moritz") == "st moritz"

    def test_keeps_digits_and_umlauts(self):
        assert normalize_location("Zürich-Flughafen 2") == "zürichflughafen 2"


class TestFindFixedRoute:
    def test_forward_match(self):
        route = find_fixed_route("Zürich Airport", "Basel")
        assert route.id == "zrh-basel-city"

    def test_reverse_match(self):
        route = find_fixed_route("St. Moritz", "ZRH")
        assert route.id == "zrh-stmoritz"

    def test_case_and_spacing_ignored(self):
        assert find_fixed_route("  ZURICH airport", "zurich   CITY").id == "zrh-zurich-city"

    def test_no_match(self):
        assert find_fixed_route("Bern", "Lugano") is None

    def test_unlisted_spelling_falls_through(self):
        assert find_fixed_route("Kloten Airport", "Basel") is None

    def test_forward_search_beats_reverse(self):
        first = FixedRoute(
            id="a-b",
            from_synonyms=("a",),
            to_synonyms=("b",),
            prices={t: 1.0 for t in VehicleType},
            description="A → B",
        )
        second = FixedRoute(
            id="b-a",
            from_synonyms=("b",),
            to_synonyms=("a",),
            prices={t: 2.0 for t in VehicleType},
            description="B → A",
        )
        assert find_fixed_route("b", "a", routes=[first, second]).id == "b-a"

    def test_route_must_price_every_vehicle_type(self):
        with pytest.raises(ValueError):
            FixedRoute(
                id="partial",
                from_synonyms=("x",),
                to_synonyms=("y",),
                prices={VehicleType.STANDARD: 10.0},
                description="X → Y",
            )


class TestCalculatePrice:
    def test_fixed_route_with_vip(self, standard):
        """Zürich Airport to Zürich City in a Standard with VIP service."""
        result = calculate_price(
            "Zürich Airport", "Zürich City", standard,
            selected_add_on_ids=["vip-meet-inside"],
        )
        assert result.pricing_method == "fixed-route"
        assert result.base_price == 80
        assert result.add_ons_total == 100
        assert result.subtotal == 180
        assert result.currency == "CHF"
        assert result.distance_km is None
        assert [b.label for b in result.breakdown] == ["Zürich Airport → Zürich City", "VIP Service"]

    def test_per_km_van(self, van):
        """Bern to Lugano, 220 km in the Van."""
        result = calculate_price("Bern", "Lugano", van, distance_km=220)
        assert result.pricing_method == "per-km"
        assert result.base_price == pytest.approx(990)
        assert result.subtotal == pytest.approx(990)
        assert result.per_km_rate == 4.50
        assert result.fixed_route is None
        assert result.breakdown[0].label == "Distance: 220.0 km × 4.50 CHF/km"

    def test_fixed_price_is_symmetric(self, premium):
        forward = calculate_price("ZRH", "St Moritz", premium)
        back = calculate_price("Saint Moritz", "Zurich Airport", premium)
        assert forward.base_price == back.base_price == 1000

    def test_fixed_route_ignores_distance(self, van):
        result = calculate_price("zrh", "basel", van, distance_km=87)
        assert result.base_price == 450
        assert result.distance_km is None

    def test_per_km_is_linear(self, standard):
        one = calculate_price("Bern", "Thun", standard, distance_km=10).base_price
        two = calculate_price("Bern", "Thun", standard, distance_km=20).base_price
        assert two == pytest.approx(2 * one)

    @pytest.mark.parametrize("distance", [None, 0, -5])
    def test_missing_distance_raises(self, standard, distance):
        with pytest.raises(InvalidDistanceError):
            calculate_price("Bern", "Lugano", standard, distance_km=distance)

    def test_invalid_distance_is_a_value_error(self, standard):
        with pytest.raises(ValueError):
            calculate_price("Bern", "Lugano", standard)

    def test_unknown_add_ons_dropped(self, standard):
        result = calculate_price(
            "Bern", "Lugano", standard, distance_km=100,
            selected_add_on_ids=["champagne", "vip-meet-inside"],
        )
        assert [a.id for a in result.add_ons] == ["vip-meet-inside"]
        assert result.subtotal == pytest.approx(520)

    def test_subtotal_is_base_plus_add_ons(self, premium):
        result = calculate_price("Bern", "Lugano", premium, distance_km=33.3, selected_add_on_ids=["vip-meet-inside"])
        assert result.subtotal == result.base_price + result.add_ons_total

    def test_injected_routes(self, standard):
        custom = FixedRoute(
            id="bern-thun",
            from_synonyms=("bern",),
            to_synonyms=("thun",),
            prices={t: 55.0 for t in VehicleType},
            description="Bern → Thun",
        )
        result = calculate_price("Bern", "Thun", standard, routes=FIXED_ROUTES + (custom,))
        assert result.base_price == 55


class TestHelpers:
    def test_resolve_add_ons_empty(self):
        assert resolve_add_ons(None) == []

    def test_get_add_on_by_id(self):
        assert get_add_on_by_id("vip-meet-inside").price == 100
        assert get_add_on_by_id("nope") is None

    def test_format_chf(self):
        assert format_chf(123.4) == "123.40 CHF"

    def test_to_centimes_rounds(self):
        assert to_centimes(80) == 8000
        assert to_centimes(19.999) == 2000
        assert to_centimes(0.1 + 0.2) == 30
