"""
Fleet catalog for the Elegant Limo service.

Only these three vehicles exist. Lookups never raise: a miss returns
None, an empty list or False.
"""
from typing import Iterable, Optional

from models import Vehicle, VehicleType


FLEET: tuple[Vehicle, ...] = (
    Vehicle(
        id="vehicle-standard-eclass",
        type=VehicleType.STANDARD,
        name="Standard",
        class_name="Mercedes E-Class",
        capacity_min=1,
        capacity_max=3,
        per_km_rate=4.20,
        description="Elegant and comfortable for up to 3 passengers",
        features=("Leather seats", "Climate control", "Wi-Fi"),
    ),
    Vehicle(
        id="vehicle-premium-sclass",
        type=VehicleType.PREMIUM,
        name="Premium",
        class_name="Mercedes S-Class",
        capacity_min=1,
        capacity_max=3,
        per_km_rate=5.00,
        description="Ultimate luxury for up to 3 passengers",
        features=("Premium leather", "Massage seats", "Champagne bar", "Wi-Fi"),
    ),
    Vehicle(
        id="vehicle-van-vclass",
        type=VehicleType.VAN,
        name="Van",
        class_name="Mercedes V-Class",
        capacity_min=1,
        capacity_max=7,
        per_km_rate=4.50,
        description="Spacious luxury for up to 7 passengers",
        features=("Spacious interior", "Captain seats", "Extra luggage space", "Wi-Fi"),
    ),
)


def list_vehicles(fleet: Iterable[Vehicle] = FLEET) -> list[Vehicle]:
    return list(fleet)


def get_vehicle_by_id(vehicle_id: str, fleet: Iterable[Vehicle] = FLEET) -> Optional[Vehicle]:
    """Get a specific vehicle by ID."""
    return next((v for v in fleet if v.id == vehicle_id), None)


def get_vehicle_by_type(vehicle_type: VehicleType, fleet: Iterable[Vehicle] = FLEET) -> Optional[Vehicle]:
    """Get the vehicle of a given type."""
    return next((v for v in fleet if v.type == vehicle_type), None)


def fits_capacity(vehicle: Vehicle, passenger_count: int) -> bool:
    return vehicle.capacity_min <= passenger_count <= vehicle.capacity_max


def get_vehicles_for_passenger_count(
    passenger_count: int,
    fleet: Iterable[Vehicle] = FLEET,
) -> list[Vehicle]:
    """Get vehicles whose capacity range includes the passenger count."""
    return [v for v in fleet if fits_capacity(v, passenger_count)]


def vehicle_can_accommodate(
    vehicle_id: str,
    passenger_count: int,
    fleet: Iterable[Vehicle] = FLEET,
) -> bool:
    """Check if vehicle can accommodate passenger count."""
    vehicle = get_vehicle_by_id(vehicle_id, fleet)
    if vehicle is None:
        return False
    return fits_capacity(vehicle, passenger_count)


def vehicle_display_name(vehicle_id: str, fleet: Iterable[Vehicle] = FLEET) -> str:
    """Human-readable name like 'Premium (Mercedes S-Class)', or the raw id if unknown."""
    vehicle = get_vehicle_by_id(vehicle_id, fleet)
    if vehicle is None:
        return vehicle_id
    return f"{vehicle.name} ({vehicle.class_name})"
