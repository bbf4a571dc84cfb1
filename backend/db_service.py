"""
Database service layer for CRUD operations.

Every write that carries admin input runs through the validators in
admin_config first; invalid input is reported back as a
ValidationResult and nothing is stored.
"""
import json
import logging
import random
import string
import uuid
from datetime import date, datetime, time
from typing import Optional, List

from sqlalchemy.orm import Session

from db_models import (
    Booking, ClosedSlot as DbClosedSlot, FlightDelaySettings, RouteSynonym,
)
from models import (
    BookingPayload,
    BookingRecord,
    BookingStats,
    BookingStatus,
    ChargeType,
    ClosedSlot,
    ClosedSlotInput,
    ClosedSlotUpdate,
    FixedRoute,
    FlightDelayConfig,
    FlightDelayConfigUpdate,
    ValidationResult,
    parse_date_value,
    parse_time_value,
)
from admin_config import (
    SLOT_NOT_FOUND_MESSAGE,
    apply_delay_config_update,
    default_delay_config,
    generate_closed_slot_id,
    merge_closed_slot,
    validate_closed_slot,
    validate_route_synonym,
    validate_status_transition,
)
from pricing import FIXED_ROUTES, normalize_location
from availability import estimate_trip_duration_minutes

logger = logging.getLogger(__name__)

DELAY_SETTINGS_ID = 1
DEFAULT_TRIP_MINUTES = 60


def generate_booking_reference() -> str:
    """Generate a booking reference like EL12345678."""
    return "EL" + "".join(random.choices(string.digits, k=8))


# ============== BOOKING OPERATIONS ==============

def get_booking_by_id(db: Session, booking_id: str) -> Optional[Booking]:
    return db.query(Booking).filter(Booking.id == booking_id).first()


def get_booking_by_reference(db: Session, reference: str) -> Optional[Booking]:
    return db.query(Booking).filter(Booking.reference == reference.strip().upper()).first()


def get_bookings(
    db: Session,
    status: Optional[BookingStatus] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> List[Booking]:
    """
    Get bookings, newest first.

    Args:
        db: Database session
        status: Only bookings with this status
        start_date: Only pickups on or after this date
        end_date: Only pickups on or before this date
    """
    query = db.query(Booking)
    if status is not None:
        query = query.filter(Booking.status == status)
    if start_date is not None:
        query = query.filter(Booking.pickup_date >= start_date)
    if end_date is not None:
        query = query.filter(Booking.pickup_date <= end_date)
    return query.order_by(Booking.created_at.desc(), Booking.reference.desc()).all()


def get_bookings_for_date(db: Session, target_date: date) -> List[Booking]:
    """Active (non-cancelled) bookings with a pickup on the given date."""
    return db.query(Booking).filter(
        Booking.pickup_date == target_date,
        Booking.status != BookingStatus.CANCELLED,
    ).all()


def add_booking(
    db: Session,
    payload: BookingPayload,
    status: BookingStatus = BookingStatus.PENDING,
    distance_km: Optional[float] = None,
    stripe_session_id: Optional[str] = None,
    stripe_payment_intent_id: Optional[str] = None,
) -> tuple[Booking, bool]:
    """
    Store a booking, ignoring duplicates by reference.

    Returns:
        tuple: (Booking object, is_new: bool) - is_new is False if the
        reference was already stored
    """
    reference = (payload.booking_reference or generate_booking_reference()).strip().upper()

    existing = get_booking_by_reference(db, reference)
    if existing:
        return existing, False

    if payload.estimated_duration_minutes:
        duration = payload.estimated_duration_minutes
    elif distance_km:
        duration = estimate_trip_duration_minutes(distance_km)
    else:
        duration = DEFAULT_TRIP_MINUTES

    first_name = payload.customer_first_name
    last_name = payload.customer_last_name
    if first_name is None and last_name is None and payload.customer_name:
        first_name, _, last_name = payload.customer_name.strip().partition(" ")

    booking = Booking(
        id=payload.id or str(uuid.uuid4()),
        reference=reference,
        status=status,
        from_location=payload.from_location,
        to_location=payload.to_location,
        pickup_date=parse_date_value(payload.date),
        pickup_time=parse_time_value(payload.time),
        passengers=payload.passengers,
        vehicle_id=payload.vehicle_id,
        estimated_duration_minutes=duration,
        total_price=payload.total_price,
        add_ons=json.dumps(payload.add_ons),
        customer_first_name=first_name,
        customer_last_name=last_name,
        customer_email=payload.customer_email,
        customer_phone=payload.customer_phone,
        payment_method=payload.payment_method,
        stripe_session_id=stripe_session_id,
        stripe_payment_intent_id=stripe_payment_intent_id,
    )
    db.add(booking)
    db.commit()
    db.refresh(booking)
    logger.info(f"Stored booking {booking.reference} ({booking.status.value})")
    return booking, True


def update_booking_status(
    db: Session,
    booking_id: str,
    new_status: BookingStatus,
    decline_reason: Optional[str] = None,
    refund_amount: Optional[float] = None,
) -> tuple[Optional[Booking], ValidationResult]:
    """
    Move a booking to a new status if the transition is allowed.

    The refund amount, when given, is stored in the same commit.

    Returns:
        tuple: (Booking or None if not found, validation result)
    """
    booking = get_booking_by_id(db, booking_id)
    if not booking:
        return None, ValidationResult(valid=False, error="Booking not found")

    result = validate_status_transition(booking.status, new_status)
    if not result.valid:
        return booking, result

    booking.status = new_status
    if decline_reason:
        booking.decline_reason = decline_reason
    if refund_amount is not None:
        booking.refund_amount = refund_amount
    db.commit()
    db.refresh(booking)
    logger.info(f"Booking {booking.reference} is now {new_status.value}")
    return booking, result


def mark_confirmation_sent(db: Session, booking: Booking) -> None:
    booking.confirmation_email_sent = True
    db.commit()


def delete_booking(db: Session, booking_id: str) -> bool:
    booking = get_booking_by_id(db, booking_id)
    if not booking:
        return False
    db.delete(booking)
    db.commit()
    return True


def to_booking_record(booking: Booking) -> BookingRecord:
    """Snapshot a stored booking for the availability checker."""
    return BookingRecord(
        id=booking.id,
        vehicle_id=booking.vehicle_id,
        pickup_date=booking.pickup_date,
        pickup_time=booking.pickup_time,
        estimated_duration_minutes=booking.estimated_duration_minutes,
        status=booking.status,
    )


def to_booking_payload(booking: Booking) -> BookingPayload:
    """Rebuild the checkout payload of a stored booking (used for emails)."""
    name = " ".join(p for p in (booking.customer_first_name, booking.customer_last_name) if p)
    return BookingPayload(
        id=booking.id,
        booking_reference=booking.reference,
        from_location=booking.from_location,
        to_location=booking.to_location,
        date=booking.pickup_date.isoformat(),
        time=booking.pickup_time.strftime("%H:%M"),
        passengers=booking.passengers,
        vehicle_id=booking.vehicle_id,
        total_price=booking.total_price,
        estimated_duration_minutes=booking.estimated_duration_minutes,
        customer_email=booking.customer_email or "",
        customer_phone=booking.customer_phone or "",
        customer_name=name,
        customer_first_name=booking.customer_first_name,
        customer_last_name=booking.customer_last_name,
        add_ons=json.loads(booking.add_ons) if booking.add_ons else [],
        payment_method=booking.payment_method or "Stripe",
    )


def get_booking_records_for_date(db: Session, target_date: date) -> List[BookingRecord]:
    return [to_booking_record(b) for b in get_bookings_for_date(db, target_date)]


def get_booking_stats(db: Session) -> BookingStats:
    """
    Counts per status plus revenue.

    Revenue counts confirmed and completed bookings only.
    """
    bookings = db.query(Booking).all()
    counts = {status: 0 for status in BookingStatus}
    revenue = 0.0
    paid = 0
    for booking in bookings:
        counts[booking.status] += 1
        if booking.status in (BookingStatus.CONFIRMED, BookingStatus.COMPLETED):
            revenue += booking.total_price
            paid += 1

    return BookingStats(
        total_bookings=len(bookings),
        pending_bookings=counts[BookingStatus.PENDING],
        confirmed_bookings=counts[BookingStatus.CONFIRMED],
        completed_bookings=counts[BookingStatus.COMPLETED],
        cancelled_bookings=counts[BookingStatus.CANCELLED],
        total_revenue=revenue,
        average_booking_value=revenue / paid if paid else 0.0,
    )


# ============== CLOSED SLOT OPERATIONS ==============

def _to_closed_slot(row: DbClosedSlot) -> ClosedSlot:
    return ClosedSlot(
        id=row.id,
        vehicle_id=row.vehicle_id,
        date=row.date,
        start_time=row.start_time,
        end_time=row.end_time,
        reason=row.reason,
    )


def list_closed_slots(db: Session, target_date: Optional[date] = None) -> List[ClosedSlot]:
    query = db.query(DbClosedSlot)
    if target_date is not None:
        query = query.filter(DbClosedSlot.date == target_date)
    rows = query.order_by(DbClosedSlot.date, DbClosedSlot.start_time).all()
    return [_to_closed_slot(row) for row in rows]


def create_closed_slot(db: Session, data: ClosedSlotInput) -> tuple[Optional[ClosedSlot], ValidationResult]:
    result = validate_closed_slot(data)
    if not result.valid:
        return None, result

    row = DbClosedSlot(
        id=generate_closed_slot_id(),
        vehicle_id=data.vehicle_id,
        date=parse_date_value(data.date),
        start_time=parse_time_value(data.start_time),
        end_time=parse_time_value(data.end_time),
        reason=data.reason,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return _to_closed_slot(row), result


def update_closed_slot(
    db: Session,
    slot_id: str,
    updates: ClosedSlotUpdate,
) -> tuple[Optional[ClosedSlot], ValidationResult]:
    """Validate the merged slot before writing any field."""
    row = db.query(DbClosedSlot).filter(DbClosedSlot.id == slot_id).first()
    if not row:
        return None, ValidationResult(valid=False, error=SLOT_NOT_FOUND_MESSAGE)

    merged = merge_closed_slot(_to_closed_slot(row), updates)
    result = validate_closed_slot(merged)
    if not result.valid:
        return None, result

    row.vehicle_id = merged.vehicle_id
    row.date = parse_date_value(merged.date)
    row.start_time = parse_time_value(merged.start_time)
    row.end_time = parse_time_value(merged.end_time)
    row.reason = merged.reason
    db.commit()
    db.refresh(row)
    return _to_closed_slot(row), result


def delete_closed_slot(db: Session, slot_id: str) -> bool:
    row = db.query(DbClosedSlot).filter(DbClosedSlot.id == slot_id).first()
    if not row:
        return False
    db.delete(row)
    db.commit()
    return True


# ============== FLIGHT DELAY CONFIG ==============

def _to_delay_config(row: FlightDelaySettings) -> FlightDelayConfig:
    return FlightDelayConfig(
        enabled=row.enabled,
        free_waiting_minutes=row.free_waiting_minutes,
        charge_type=ChargeType(row.charge_type),
        fixed_amount=row.fixed_amount,
        per_interval_amount=row.per_interval_amount,
        interval_minutes=row.interval_minutes,
    )


def _write_delay_config(db: Session, config: FlightDelayConfig) -> FlightDelayConfig:
    row = db.query(FlightDelaySettings).filter(FlightDelaySettings.id == DELAY_SETTINGS_ID).first()
    if not row:
        row = FlightDelaySettings(id=DELAY_SETTINGS_ID)
        db.add(row)
    row.enabled = config.enabled
    row.free_waiting_minutes = config.free_waiting_minutes
    row.charge_type = config.charge_type.value
    row.fixed_amount = config.fixed_amount
    row.per_interval_amount = config.per_interval_amount
    row.interval_minutes = config.interval_minutes
    db.commit()
    return config


def get_delay_config(db: Session) -> FlightDelayConfig:
    """Stored delay config, or the default if none was saved yet."""
    row = db.query(FlightDelaySettings).filter(FlightDelaySettings.id == DELAY_SETTINGS_ID).first()
    if not row:
        return default_delay_config()
    return _to_delay_config(row)


def update_delay_config(
    db: Session,
    updates: FlightDelayConfigUpdate,
) -> tuple[FlightDelayConfig, ValidationResult]:
    current = get_delay_config(db)
    config, result = apply_delay_config_update(current, updates)
    if not result.valid:
        return current, result
    return _write_delay_config(db, config), result


def reset_delay_config(db: Session) -> FlightDelayConfig:
    return _write_delay_config(db, default_delay_config())


# ============== FIXED ROUTE SYNONYMS ==============

def get_fixed_routes(db: Session) -> List[FixedRoute]:
    """The fixed-route table with ops-added synonyms merged in."""
    extras = db.query(RouteSynonym).all()
    routes = []
    for route in FIXED_ROUTES:
        extra_from = tuple(s.location for s in extras if s.route_id == route.id and s.direction == "from")
        extra_to = tuple(s.location for s in extras if s.route_id == route.id and s.direction == "to")
        if extra_from or extra_to:
            route = route.model_copy(update={
                "from_synonyms": route.from_synonyms + extra_from,
                "to_synonyms": route.to_synonyms + extra_to,
            })
        routes.append(route)
    return routes


def add_route_synonym(
    db: Session,
    route_id: str,
    location: str,
    direction: str,
) -> ValidationResult:
    if not any(r.id == route_id for r in FIXED_ROUTES):
        return ValidationResult(valid=False, error="Route not found")
    if direction not in ("from", "to"):
        return ValidationResult(valid=False, error="Direction must be 'from' or 'to'")

    result = validate_route_synonym(location)
    if not result.valid:
        return result

    db.add(RouteSynonym(route_id=route_id, location=normalize_location(location), direction=direction))
    db.commit()
    return result


def remove_route_synonym(db: Session, route_id: str, location: str, direction: str) -> bool:
    rows = db.query(RouteSynonym).filter(
        RouteSynonym.route_id == route_id,
        RouteSynonym.location == normalize_location(location),
        RouteSynonym.direction == direction,
    ).all()
    for row in rows:
        db.delete(row)
    db.commit()
    return bool(rows)


# ============== REMINDERS ==============

def get_bookings_needing_reminder(db: Session, now: datetime, window_hours: int = 24) -> List[Booking]:
    """Confirmed bookings with a pickup within the window that have no reminder yet."""
    candidates = db.query(Booking).filter(
        Booking.status == BookingStatus.CONFIRMED,
        Booking.reminder_24h_sent == False,  # noqa: E712
        Booking.pickup_date >= now.date(),
    ).all()

    due = []
    for booking in candidates:
        hours_until = (datetime.combine(booking.pickup_date, booking.pickup_time) - now).total_seconds() / 3600
        if 0 <= hours_until <= window_hours:
            due.append(booking)
    return due


def mark_reminder_sent(db: Session, booking: Booking, sent_at: Optional[datetime] = None) -> None:
    booking.reminder_24h_sent = True
    booking.reminder_24h_sent_at = sent_at or datetime.utcnow()
    db.commit()
