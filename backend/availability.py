"""
Availability and overlap detection for fleet vehicles.

A vehicle is unavailable when the requested trip overlaps another active
booking for the same vehicle (with a turnaround buffer on both trips) or
an admin-defined closed slot (no buffer).
"""
import math
from datetime import date, time, datetime, timedelta
from typing import Iterable, Optional, Union

from models import (
    AvailabilityResult,
    BookingRecord,
    BookingStatus,
    ClosedSlot,
    ValidationResult,
    Vehicle,
    parse_date_value,
    parse_time_value,
)
from config import local_now
from fleet import fits_capacity


# Turnaround time applied around every booking before comparing
BOOKING_BUFFER_MINUTES = 30

# Assumed average driving speed for duration estimates
AVERAGE_SPEED_KMH = 60

# Added to every trip duration estimate
TRIP_DURATION_BUFFER_MINUTES = 15

MINIMUM_ADVANCE_HOURS = 2

BOOKING_CONFLICT_REASON = "Vehicle is already booked for an overlapping time"
CLOSED_SLOT_FALLBACK_REASON = "This time slot is not available"
ADVANCE_NOTICE_REASON = f"Bookings require at least {MINIMUM_ADVANCE_HOURS} hours advance notice"

DateLike = Union[date, str]
TimeLike = Union[time, str]


def to_datetime(d: DateLike, t: TimeLike) -> datetime:
    """Combine a date and a time (objects or 'YYYY-MM-DD' / 'HH:MM' strings)."""
    return datetime.combine(parse_date_value(d), parse_time_value(t))


def do_time_ranges_overlap(
    start1: datetime,
    end1: datetime,
    start2: datetime,
    end2: datetime,
) -> bool:
    """Half-open interval overlap: touching ranges do not overlap."""
    return start1 < end2 and start2 < end1


def _find_conflicting_booking(
    vehicle_id: str,
    pickup_date: date,
    request_start: datetime,
    request_end: datetime,
    existing_bookings: Iterable[BookingRecord],
    exclude_booking_id: Optional[str],
) -> Optional[BookingRecord]:
    buffer = timedelta(minutes=BOOKING_BUFFER_MINUTES)
    buffered_start = request_start - buffer
    buffered_end = request_end + buffer

    for booking in existing_bookings:
        if exclude_booking_id and booking.id == exclude_booking_id:
            continue
        if booking.status == BookingStatus.CANCELLED:
            continue
        if booking.vehicle_id != vehicle_id:
            continue
        if booking.pickup_date != pickup_date:
            continue

        booking_start = datetime.combine(booking.pickup_date, booking.pickup_time)
        booking_end = booking_start + timedelta(minutes=booking.estimated_duration_minutes)

        if do_time_ranges_overlap(
            buffered_start,
            buffered_end,
            booking_start - buffer,
            booking_end + buffer,
        ):
            return booking

    return None


def _find_conflicting_slot(
    vehicle_id: str,
    pickup_date: date,
    request_start: datetime,
    request_end: datetime,
    closed_slots: Iterable[ClosedSlot],
) -> Optional[ClosedSlot]:
    for slot in closed_slots:
        if slot.vehicle_id and slot.vehicle_id != vehicle_id:
            continue
        if slot.date != pickup_date:
            continue

        slot_start = datetime.combine(slot.date, slot.start_time)
        slot_end = datetime.combine(slot.date, slot.end_time)

        if do_time_ranges_overlap(request_start, request_end, slot_start, slot_end):
            return slot

    return None


def is_vehicle_available(
    vehicle_id: str,
    date: DateLike,
    time: TimeLike,
    estimated_duration_minutes: int,
    existing_bookings: Iterable[BookingRecord],
    closed_slots: Iterable[ClosedSlot],
    exclude_booking_id: Optional[str] = None,
) -> AvailabilityResult:
    """
    Check if a vehicle is free for the requested trip.

    Bookings are checked first; closed slots only if no booking conflicts.

    Args:
        vehicle_id: Vehicle to check
        date: Pickup date
        time: Pickup time
        estimated_duration_minutes: Trip length
        existing_bookings: Snapshot of stored bookings
        closed_slots: Admin-defined closed slots
        exclude_booking_id: Booking being modified, ignored in the check

    Returns:
        AvailabilityResult, with the first conflicting booking or slot
    """
    pickup_date = parse_date_value(date)
    request_start = to_datetime(pickup_date, time)
    request_end = request_start + timedelta(minutes=estimated_duration_minutes)

    conflicting_booking = _find_conflicting_booking(
        vehicle_id,
        pickup_date,
        request_start,
        request_end,
        existing_bookings,
        exclude_booking_id,
    )
    if conflicting_booking is not None:
        return AvailabilityResult(
            available=False,
            reason=BOOKING_CONFLICT_REASON,
            conflicting_booking=conflicting_booking,
        )

    conflicting_slot = _find_conflicting_slot(
        vehicle_id, pickup_date, request_start, request_end, closed_slots
    )
    if conflicting_slot is not None:
        return AvailabilityResult(
            available=False,
            reason=conflicting_slot.reason or CLOSED_SLOT_FALLBACK_REASON,
            conflicting_slot=conflicting_slot,
        )

    return AvailabilityResult(available=True)


def get_available_vehicles(
    vehicles: Iterable[Vehicle],
    date: DateLike,
    time: TimeLike,
    estimated_duration_minutes: int,
    passenger_count: int,
    existing_bookings: Iterable[BookingRecord],
    closed_slots: Iterable[ClosedSlot],
) -> list[Vehicle]:
    """Vehicles that fit the passenger count and are free for the trip."""
    existing_bookings = list(existing_bookings)
    closed_slots = list(closed_slots)

    return [
        vehicle for vehicle in vehicles
        if fits_capacity(vehicle, passenger_count)
        and is_vehicle_available(
            vehicle_id=vehicle.id,
            date=date,
            time=time,
            estimated_duration_minutes=estimated_duration_minutes,
            existing_bookings=existing_bookings,
            closed_slots=closed_slots,
        ).available
    ]


def estimate_trip_duration_minutes(distance_km: float) -> int:
    """
    Estimate trip duration from distance.

    Assumes 60 km/h on average, rounded up to the minute, plus a fixed
    15-minute buffer. 100 km -> 115 minutes.
    """
    if distance_km <= 0:
        raise ValueError("Distance must be positive")
    duration_minutes = math.ceil(distance_km / AVERAGE_SPEED_KMH * 60)
    return duration_minutes + TRIP_DURATION_BUFFER_MINUTES


def is_datetime_in_past(date: DateLike, time: TimeLike, now: Optional[datetime] = None) -> bool:
    now = now or local_now()
    return to_datetime(date, time) < now


def meets_minimum_advance_notice(
    date: DateLike,
    time: TimeLike,
    now: Optional[datetime] = None,
) -> ValidationResult:
    """Bookings need at least 2 hours between now and pickup."""
    now = now or local_now()
    pickup = to_datetime(date, time)

    if pickup < now + timedelta(hours=MINIMUM_ADVANCE_HOURS):
        return ValidationResult(valid=False, error=ADVANCE_NOTICE_REASON)

    return ValidationResult(valid=True)
