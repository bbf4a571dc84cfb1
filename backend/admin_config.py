"""
Admin configuration rules for the ops dashboard.

Closed slots, the flight delay configuration, route synonyms and booking
status changes are validated here before any store accepts them. All
functions are pure: they return new values and never mutate their inputs.
"""
import re
import uuid
from datetime import datetime
from typing import Iterable, Optional

from models import (
    BookingStatus,
    ClosedSlot,
    ClosedSlotInput,
    ClosedSlotUpdate,
    FlightDelayConfig,
    FlightDelayConfigUpdate,
    ValidationResult,
)
from policies import DEFAULT_DELAY_CONFIG


DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
TIME_PATTERN = re.compile(r"^\d{2}:\d{2}$")

INVALID_DATE_MESSAGE = "Invalid date format (use YYYY-MM-DD)"
INVALID_TIME_MESSAGE = "Invalid time format (use HH:MM)"
INVERTED_RANGE_MESSAGE = "Start time must be before end time"
SLOT_NOT_FOUND_MESSAGE = "Slot not found"

MIN_SYNONYM_LENGTH = 2

ALLOWED_STATUS_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED}),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
}


# ============== CLOSED SLOTS ==============

def _is_valid_date(value: str) -> bool:
    if not DATE_PATTERN.match(value):
        return False
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        return False
    return True


def _is_valid_time(value: str) -> bool:
    if not TIME_PATTERN.match(value):
        return False
    try:
        datetime.strptime(value, "%H:%M")
    except ValueError:
        return False
    return True


def _minutes(value: str) -> int:
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def validate_closed_slot(data: ClosedSlotInput) -> ValidationResult:
    """
    Validate a closed slot before it is stored.

    Checks date format, time format and that start is before end.
    """
    if not _is_valid_date(data.date):
        return ValidationResult(valid=False, error=INVALID_DATE_MESSAGE)

    if not _is_valid_time(data.start_time) or not _is_valid_time(data.end_time):
        return ValidationResult(valid=False, error=INVALID_TIME_MESSAGE)

    if _minutes(data.start_time) >= _minutes(data.end_time):
        return ValidationResult(valid=False, error=INVERTED_RANGE_MESSAGE)

    return ValidationResult(valid=True)


def generate_closed_slot_id() -> str:
    return f"closed-{uuid.uuid4().hex[:12]}"


def slot_to_input(slot: ClosedSlot) -> ClosedSlotInput:
    return ClosedSlotInput(
        vehicle_id=slot.vehicle_id,
        date=slot.date.isoformat(),
        start_time=slot.start_time.strftime("%H:%M"),
        end_time=slot.end_time.strftime("%H:%M"),
        reason=slot.reason,
    )


def merge_closed_slot(slot: ClosedSlot, updates: ClosedSlotUpdate) -> ClosedSlotInput:
    """Apply the fields set on an update to an existing slot."""
    current = slot_to_input(slot).model_dump()
    current.update(updates.model_dump(exclude_unset=True))
    return ClosedSlotInput(**current)


def create_closed_slot(
    slots: Iterable[ClosedSlot],
    data: ClosedSlotInput,
    slot_id: Optional[str] = None,
) -> tuple[list[ClosedSlot], Optional[ClosedSlot], ValidationResult]:
    """
    Validate and append a new closed slot.

    Returns:
        Tuple of (new slot list, created slot or None, validation result)
    """
    slots = list(slots)
    result = validate_closed_slot(data)
    if not result.valid:
        return slots, None, result

    slot = ClosedSlot(id=slot_id or generate_closed_slot_id(), **data.model_dump())
    return slots + [slot], slot, result


def update_closed_slot(
    slots: Iterable[ClosedSlot],
    slot_id: str,
    updates: ClosedSlotUpdate,
) -> tuple[list[ClosedSlot], Optional[ClosedSlot], ValidationResult]:
    """
    Validate the merged slot and replace it in the list.

    Returns:
        Tuple of (new slot list, updated slot or None, validation result)
    """
    slots = list(slots)
    existing = next((s for s in slots if s.id == slot_id), None)
    if existing is None:
        return slots, None, ValidationResult(valid=False, error=SLOT_NOT_FOUND_MESSAGE)

    merged = merge_closed_slot(existing, updates)
    result = validate_closed_slot(merged)
    if not result.valid:
        return slots, None, result

    updated = ClosedSlot(id=slot_id, **merged.model_dump())
    return [updated if s.id == slot_id else s for s in slots], updated, result


def delete_closed_slot(
    slots: Iterable[ClosedSlot],
    slot_id: str,
) -> tuple[list[ClosedSlot], bool]:
    slots = list(slots)
    remaining = [s for s in slots if s.id != slot_id]
    return remaining, len(remaining) != len(slots)


def closed_slots_for_date(slots: Iterable[ClosedSlot], target_date) -> list[ClosedSlot]:
    return [s for s in slots if s.date == target_date]


def closed_slots_for_vehicle(slots: Iterable[ClosedSlot], vehicle_id: str) -> list[ClosedSlot]:
    """Slots that apply to the vehicle, including fleet-wide ones."""
    return [s for s in slots if s.vehicle_id is None or s.vehicle_id == vehicle_id]


# ============== FLIGHT DELAY CONFIG ==============

def validate_delay_config(updates: FlightDelayConfigUpdate) -> ValidationResult:
    """Reject negative minutes or amounts and non-positive intervals."""
    if updates.free_waiting_minutes is not None and updates.free_waiting_minutes < 0:
        return ValidationResult(valid=False, error="Free waiting minutes cannot be negative")

    if updates.fixed_amount is not None and updates.fixed_amount < 0:
        return ValidationResult(valid=False, error="Fixed amount cannot be negative")

    if updates.per_interval_amount is not None and updates.per_interval_amount < 0:
        return ValidationResult(valid=False, error="Per-interval amount cannot be negative")

    if updates.interval_minutes is not None and updates.interval_minutes <= 0:
        return ValidationResult(valid=False, error="Interval minutes must be positive")

    return ValidationResult(valid=True)


def apply_delay_config_update(
    config: FlightDelayConfig,
    updates: FlightDelayConfigUpdate,
) -> tuple[FlightDelayConfig, ValidationResult]:
    """
    Merge an update into the config after validating it.

    On invalid input the original config is returned unchanged.
    """
    result = validate_delay_config(updates)
    if not result.valid:
        return config, result
    return config.model_copy(update=updates.model_dump(exclude_unset=True)), result


def default_delay_config() -> FlightDelayConfig:
    return DEFAULT_DELAY_CONFIG.model_copy()


# ============== ROUTE SYNONYMS ==============

def validate_route_synonym(location: Optional[str]) -> ValidationResult:
    if not location or len(location.strip()) < MIN_SYNONYM_LENGTH:
        return ValidationResult(valid=False, error="Location name too short")
    return ValidationResult(valid=True)


# ============== BOOKING STATUS ==============

def validate_status_transition(current: BookingStatus, new: BookingStatus) -> ValidationResult:
    """
    Allowed: pending -> confirmed | cancelled, confirmed -> completed | cancelled.
    """
    if new in ALLOWED_STATUS_TRANSITIONS[current]:
        return ValidationResult(valid=True)
    return ValidationResult(
        valid=False,
        error=f"Cannot change booking status from {current.value} to {new.value}",
    )
