"""
Pricing engine for the Elegant Limo service.

Fixed-price routes override per-km pricing when the pickup and
destination both match a route's synonyms (in either direction).
Everything else is priced as distance x the vehicle's per-km rate.
Add-ons are flat fees on top.
"""
import re
from typing import Iterable, Optional

from models import (
    AddOn,
    BreakdownItem,
    FixedRoute,
    PriceCalculation,
    SelectedAddOn,
    Vehicle,
    VehicleType,
)


CURRENCY = "CHF"

_AIRPORT_ZRH = (
    "zürich airport",
    "zrh",
    "zurich airport",
    "zürich flughafen",
    "zurich flughafen",
)

FIXED_ROUTES: tuple[FixedRoute, ...] = (
    FixedRoute(
        id="zrh-zurich-city",
        from_synonyms=_AIRPORT_ZRH,
        to_synonyms=("zürich city", "zurich city", "zurich stadt", "zürich stadt", "zurich", "zürich"),
        prices={
            VehicleType.STANDARD: 80.0,
            VehicleType.PREMIUM: 100.0,
            VehicleType.VAN: 90.0,
        },
        description="Zürich Airport → Zürich City",
    ),
    FixedRoute(
        id="zrh-basel-city",
        from_synonyms=_AIRPORT_ZRH,
        to_synonyms=("basel city", "basel stadt", "basel", "bsl"),
        prices={
            VehicleType.STANDARD: 420.0,
            VehicleType.PREMIUM: 500.0,
            VehicleType.VAN: 450.0,
        },
        description="Zürich Airport → Basel City",
    ),
    FixedRoute(
        id="zrh-stmoritz",
        from_synonyms=_AIRPORT_ZRH,
        to_synonyms=("st. moritz", "st moritz", "saint moritz", "stmoritz"),
        prices={
            VehicleType.STANDARD: 800.0,
            VehicleType.PREMIUM: 1000.0,
            VehicleType.VAN: 1000.0,
        },
        description="Zürich Airport → St. Moritz",
    ),
)

ADD_ONS: tuple[AddOn, ...] = (
    AddOn(
        id="vip-meet-inside",
        name="VIP Service",
        description=(
            "Airport meet-and-greet inside the terminal "
            "(chauffeur enters the terminal to pick you up)"
        ),
        price=100.0,
    ),
)


class InvalidDistanceError(ValueError):
    """Raised when per-km pricing is needed but no positive distance was given."""


_NON_LOCATION_CHARS = re.compile(r"[^a-zäöü0-9\s]")
_WHITESPACE_RUN = re.compile(r"\s+")


def normalize_location(location: str) -> str:
    """
    Normalize a location string for route matching.

    Lowercases, trims, keeps only a-z, German umlauts, digits and
    whitespace, then collapses whitespace runs to a single space.

    Examples:
        "  Zürich   Airport " -> "zürich airport"
        "St. Moritz"         -> "st moritz"
    """
    cleaned = _NON_LOCATION_CHARS.sub("", location.lower().strip())
    return _WHITESPACE_RUN.sub(" ", cleaned)


def _matches(normalized: str, synonyms: Iterable[str]) -> bool:
    return any(normalize_location(s) == normalized for s in synonyms)


def find_fixed_route(
    from_location: str,
    to_location: str,
    routes: Iterable[FixedRoute] = FIXED_ROUTES,
) -> Optional[FixedRoute]:
    """
    Find a fixed route for the trip.

    The forward direction is searched across all routes first; only then
    are the endpoints swapped, so a return leg gets the same flat price.
    """
    routes = tuple(routes)
    normalized_from = normalize_location(from_location)
    normalized_to = normalize_location(to_location)

    for route in routes:
        if _matches(normalized_from, route.from_synonyms) and _matches(normalized_to, route.to_synonyms):
            return route

    # Return leg
    for route in routes:
        if _matches(normalized_from, route.to_synonyms) and _matches(normalized_to, route.from_synonyms):
            return route

    return None


def resolve_add_ons(
    selected_add_on_ids: Optional[Iterable[str]],
    add_ons: Iterable[AddOn] = ADD_ONS,
) -> list[SelectedAddOn]:
    """Resolve add-on ids against the catalog. Unknown ids are dropped."""
    selected = set(selected_add_on_ids or ())
    return [
        SelectedAddOn(id=a.id, name=a.name, price=a.price)
        for a in add_ons
        if a.id in selected
    ]


def calculate_price(
    from_location: str,
    to_location: str,
    vehicle: Vehicle,
    distance_km: Optional[float] = None,
    selected_add_on_ids: Optional[Iterable[str]] = None,
    routes: Iterable[FixedRoute] = FIXED_ROUTES,
    add_ons: Iterable[AddOn] = ADD_ONS,
) -> PriceCalculation:
    """
    Calculate the price of a trip.

    Args:
        from_location: Pickup location as entered by the customer
        to_location: Destination as entered by the customer
        vehicle: The selected vehicle
        distance_km: Road distance, required unless a fixed route matches
        selected_add_on_ids: Ids of chosen add-ons
        routes: Fixed-route table
        add_ons: Add-on catalog

    Returns:
        PriceCalculation with base price, add-ons, subtotal and breakdown

    Raises:
        InvalidDistanceError: No fixed route matched and distance is missing or <= 0
    """
    fixed_route = find_fixed_route(from_location, to_location, routes)
    breakdown: list[BreakdownItem] = []

    if fixed_route is not None:
        base_price = fixed_route.prices[vehicle.type]
        pricing_method = "fixed-route"
        breakdown.append(BreakdownItem(label=fixed_route.description, amount=base_price))
    else:
        if not distance_km or distance_km <= 0:
            raise InvalidDistanceError("Distance is required for non-fixed routes")
        base_price = distance_km * vehicle.per_km_rate
        pricing_method = "per-km"
        breakdown.append(BreakdownItem(
            label=f"Distance: {distance_km:.1f} km × {vehicle.per_km_rate:.2f} CHF/km",
            amount=base_price,
        ))

    resolved = resolve_add_ons(selected_add_on_ids, add_ons)
    add_ons_total = sum(a.price for a in resolved)
    breakdown.extend(BreakdownItem(label=a.name, amount=a.price) for a in resolved)

    is_per_km = pricing_method == "per-km"
    return PriceCalculation(
        base_price=base_price,
        pricing_method=pricing_method,
        fixed_route=fixed_route,
        distance_km=distance_km if is_per_km else None,
        per_km_rate=vehicle.per_km_rate if is_per_km else None,
        add_ons=resolved,
        add_ons_total=add_ons_total,
        subtotal=base_price + add_ons_total,
        currency=CURRENCY,
        breakdown=breakdown,
    )


def get_add_on_by_id(add_on_id: str, add_ons: Iterable[AddOn] = ADD_ONS) -> Optional[AddOn]:
    return next((a for a in add_ons if a.id == add_on_id), None)


def format_chf(amount: float) -> str:
    """Format an amount like '123.40 CHF'."""
    return f"{amount:.2f} CHF"


def to_centimes(amount: float) -> int:
    """Convert CHF to centimes for the payment provider (1 CHF = 100 centimes)."""
    return int(round(amount * 100))
