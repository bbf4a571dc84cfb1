"""
Tests for the database service layer.

Runs against the in-memory SQLite database set up in conftest.py.
"""
import json
import re
from datetime import date, datetime, time, timedelta

import pytest

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

import db_service
from admin_config import INVALID_TIME_MESSAGE, INVERTED_RANGE_MESSAGE, SLOT_NOT_FOUND_MESSAGE
from models import (
    BookingPayload,
    BookingStatus,
    ChargeType,
    ClosedSlotInput,
    ClosedSlotUpdate,
    FlightDelayConfigUpdate,
)
from pricing import calculate_price
from fleet import get_vehicle_by_id


def make_payload(reference="EL10000001", **overrides) -> BookingPayload:
    data = {
        "booking_reference": reference,
        "from_location": "Zürich Airport",
        "to_location": "Zürich City",
        "date": "2026-06-02",
        "time": "09:00",
        "passengers": 2,
        "vehicle_id": "vehicle-standard-eclass",
        "total_price": 180.0,
        "customer_name": "Anna Muster",
        "customer_email": "anna@example.com",
        "customer_phone": "+41 79 000 00 00",
        "add_ons": ["VIP Service"],
    }
    data.update(overrides)
    return BookingPayload(**data)


class TestBookingReference:
    def test_format(self):
        for _ in range(20):
            assert re.fullmatch(r"EL\d{8}", db_service.generate_booking_reference())


class TestAddBooking:
    def test_stores_booking(self, db_session):
        booking, created = db_service.add_booking(db_session, make_payload())

        assert created is True
        assert booking.reference == "EL10000001"
        assert booking.status == BookingStatus.PENDING
        assert booking.pickup_date == date(2026, 6, 2)
        assert booking.pickup_time == time(9, 0)
        assert booking.customer_first_name == "Anna"
        assert booking.customer_last_name == "Muster"
        assert json.loads(booking.add_ons) == ["VIP Service"]

    def test_duplicate_reference_ignored(self, db_session):
        first, _ = db_service.add_booking(db_session, make_payload())
        second, created = db_service.add_booking(db_session, make_payload(total_price=999.0))

        assert created is False
        assert second.id == first.id
        assert second.total_price == 180
        assert len(db_service.get_bookings(db_session)) == 1

    def test_reference_lookup_is_case_insensitive(self, db_session):
        db_service.add_booking(db_session, make_payload())
        assert db_service.get_booking_by_reference(db_session, " el10000001 ") is not None

    def test_missing_reference_is_generated(self, db_session):
        booking, _ = db_service.add_booking(db_session, make_payload(reference=""))
        assert re.fullmatch(r"EL\d{8}", booking.reference)

    def test_duration_from_distance(self, db_session):
        booking, _ = db_service.add_booking(db_session, make_payload(), distance_km=100)
        assert booking.estimated_duration_minutes == 115

    def test_duration_defaults_to_one_hour(self, db_session):
        booking, _ = db_service.add_booking(db_session, make_payload())
        assert booking.estimated_duration_minutes == 60

    def test_explicit_duration_wins(self, db_session):
        booking, _ = db_service.add_booking(db_session, make_payload(estimated_duration_minutes=200), distance_km=10)
        assert booking.estimated_duration_minutes == 200

    def test_invalid_date_raises(self, db_session):
        with pytest.raises(ValueError):
            db_service.add_booking(db_session, make_payload(date="02.06.2026"))

    def test_payload_round_trip(self, db_session):
        booking, _ = db_service.add_booking(db_session, make_payload())
        payload = db_service.to_booking_payload(booking)
        assert payload.customer_name == "Anna Muster"
        assert payload.date == "2026-06-02"
        assert payload.time == "09:00"
        assert payload.add_ons == ["VIP Service"]


class TestQueries:
    def test_newest_first_and_filters(self, db_session):
        older, _ = db_service.add_booking(db_session, make_payload("EL00000001", date="2026-06-01"))
        newer, _ = db_service.add_booking(
            db_session, make_payload("EL00000002", date="2026-06-10"), status=BookingStatus.CONFIRMED,
        )
        older.created_at = datetime(2026, 1, 1)
        newer.created_at = datetime(2026, 1, 2)
        db_session.commit()

        assert [b.reference for b in db_service.get_bookings(db_session)] == ["EL00000002", "EL00000001"]
        assert [b.reference for b in db_service.get_bookings(db_session, status=BookingStatus.PENDING)] == ["EL00000001"]
        assert [b.reference for b in db_service.get_bookings(db_session, start_date=date(2026, 6, 5))] == ["EL00000002"]
        assert [b.reference for b in db_service.get_bookings(db_session, end_date=date(2026, 6, 5))] == ["EL00000001"]

    def test_bookings_for_date_skip_cancelled(self, db_session):
        db_service.add_booking(db_session, make_payload("EL00000001"))
        db_service.add_booking(db_session, make_payload("EL00000002"), status=BookingStatus.CANCELLED)

        records = db_service.get_booking_records_for_date(db_session, date(2026, 6, 2))
        assert len(records) == 1
        assert records[0].vehicle_id == "vehicle-standard-eclass"
        assert records[0].pickup_time == time(9, 0)


class TestStatus:
    def test_valid_transition(self, db_session):
        booking, _ = db_service.add_booking(db_session, make_payload())
        updated, result = db_service.update_booking_status(db_session, booking.id, BookingStatus.CONFIRMED)
        assert result.valid is True
        assert updated.status == BookingStatus.CONFIRMED

    def test_invalid_transition_leaves_status(self, db_session):
        booking, _ = db_service.add_booking(db_session, make_payload())
        updated, result = db_service.update_booking_status(db_session, booking.id, BookingStatus.COMPLETED)
        assert result.valid is False
        assert updated.status == BookingStatus.PENDING

    def test_decline_reason_stored(self, db_session):
        booking, _ = db_service.add_booking(db_session, make_payload())
        updated, _ = db_service.update_booking_status(
            db_session, booking.id, BookingStatus.CANCELLED, decline_reason="No driver available",
        )
        assert updated.decline_reason == "No driver available"

    def test_refund_amount_stored_with_status(self, db_session):
        booking, _ = db_service.add_booking(db_session, make_payload(), status=BookingStatus.CONFIRMED)
        updated, _ = db_service.update_booking_status(
            db_session, booking.id, BookingStatus.CANCELLED, refund_amount=210.0,
        )
        assert updated.status == BookingStatus.CANCELLED
        assert updated.refund_amount == 210.0

    def test_unknown_booking(self, db_session):
        booking, result = db_service.update_booking_status(db_session, "missing", BookingStatus.CONFIRMED)
        assert booking is None
        assert result.error == "Booking not found"

    def test_delete(self, db_session):
        booking, _ = db_service.add_booking(db_session, make_payload())
        assert db_service.delete_booking(db_session, booking.id) is True
        assert db_service.delete_booking(db_session, booking.id) is False


class TestStats:
    def test_counts_and_revenue(self, db_session):
        db_service.add_booking(db_session, make_payload("EL00000001", total_price=100.0))
        db_service.add_booking(db_session, make_payload("EL00000002", total_price=200.0), status=BookingStatus.CONFIRMED)
        db_service.add_booking(db_session, make_payload("EL00000003", total_price=300.0), status=BookingStatus.COMPLETED)
        db_service.add_booking(db_session, make_payload("EL00000004", total_price=400.0), status=BookingStatus.CANCELLED)

        stats = db_service.get_booking_stats(db_session)
        assert stats.total_bookings == 4
        assert stats.pending_bookings == 1
        assert stats.confirmed_bookings == 1
        assert stats.completed_bookings == 1
        assert stats.cancelled_bookings == 1
        assert stats.total_revenue == 500
        assert stats.average_booking_value == 250

    def test_empty(self, db_session):
        stats = db_service.get_booking_stats(db_session)
        assert stats.total_bookings == 0
        assert stats.average_booking_value == 0


class TestClosedSlots:
    def test_create_and_list(self, db_session):
        slot, result = db_service.create_closed_slot(
            db_session, ClosedSlotInput(date="2026-06-02", start_time="14:00", end_time="16:00", reason="Service"),
        )
        assert result.valid is True
        assert slot.start_time == time(14, 0)

        assert [s.id for s in db_service.list_closed_slots(db_session)] == [slot.id]
        assert db_service.list_closed_slots(db_session, date(2026, 6, 3)) == []

    def test_create_invalid(self, db_session):
        slot, result = db_service.create_closed_slot(
            db_session, ClosedSlotInput(date="2026-06-02", start_time="1400", end_time="16:00"),
        )
        assert slot is None
        assert result.error == INVALID_TIME_MESSAGE
        assert db_service.list_closed_slots(db_session) == []

    def test_update(self, db_session):
        slot, _ = db_service.create_closed_slot(
            db_session, ClosedSlotInput(date="2026-06-02", start_time="14:00", end_time="16:00"),
        )
        updated, result = db_service.update_closed_slot(db_session, slot.id, ClosedSlotUpdate(end_time="18:00"))
        assert result.valid is True
        assert updated.end_time == time(18, 0)

    def test_update_inverted_is_rejected(self, db_session):
        slot, _ = db_service.create_closed_slot(
            db_session, ClosedSlotInput(date="2026-06-02", start_time="14:00", end_time="16:00"),
        )
        updated, result = db_service.update_closed_slot(db_session, slot.id, ClosedSlotUpdate(start_time="17:00"))
        assert updated is None
        assert result.error == INVERTED_RANGE_MESSAGE
        assert db_service.list_closed_slots(db_session)[0].start_time == time(14, 0)

    def test_update_missing(self, db_session):
        updated, result = db_service.update_closed_slot(db_session, "nope", ClosedSlotUpdate(reason="x"))
        assert result.error == SLOT_NOT_FOUND_MESSAGE

    def test_delete(self, db_session):
        slot, _ = db_service.create_closed_slot(
            db_session, ClosedSlotInput(date="2026-06-02", start_time="14:00", end_time="16:00"),
        )
        assert db_service.delete_closed_slot(db_session, slot.id) is True
        assert db_service.delete_closed_slot(db_session, slot.id) is False


class TestDelayConfig:
    def test_default_when_nothing_stored(self, db_session):
        config = db_service.get_delay_config(db_session)
        assert config.free_waiting_minutes == 60
        assert config.charge_type == ChargeType.PER_INTERVAL

    def test_update_persists(self, db_session):
        config, result = db_service.update_delay_config(
            db_session, FlightDelayConfigUpdate(free_waiting_minutes=45, per_interval_amount=40.0),
        )
        assert result.valid is True
        stored = db_service.get_delay_config(db_session)
        assert stored.free_waiting_minutes == 45
        assert stored.per_interval_amount == 40
        assert stored.interval_minutes == 30

    def test_invalid_update_not_stored(self, db_session):
        _, result = db_service.update_delay_config(db_session, FlightDelayConfigUpdate(interval_minutes=0))
        assert result.valid is False
        assert db_service.get_delay_config(db_session).interval_minutes == 30

    def test_reset(self, db_session):
        db_service.update_delay_config(db_session, FlightDelayConfigUpdate(enabled=False))
        config = db_service.reset_delay_config(db_session)
        assert config.enabled is True
        assert db_service.get_delay_config(db_session).enabled is True


class TestRouteSynonyms:
    def test_added_synonym_is_used_for_pricing(self, db_session):
        standard = get_vehicle_by_id("vehicle-standard-eclass")
        assert calculate_price("Kloten Airport", "Basel", standard, distance_km=80).pricing_method == "per-km"

        result = db_service.add_route_synonym(db_session, "zrh-basel-city", "Kloten Airport", "from")
        assert result.valid is True

        routes = db_service.get_fixed_routes(db_session)
        priced = calculate_price("Kloten Airport", "Basel", standard, routes=routes)
        assert priced.pricing_method == "fixed-route"
        assert priced.base_price == 420

    def test_static_table_untouched(self, db_session):
        db_service.add_route_synonym(db_session, "zrh-basel-city", "Basel SBB", "to")
        from pricing import FIXED_ROUTES
        basel = next(r for r in FIXED_ROUTES if r.id == "zrh-basel-city")
        assert "basel sbb" not in basel.to_synonyms

    def test_unknown_route(self, db_session):
        assert db_service.add_route_synonym(db_session, "zrh-geneva", "Genf", "to").error == "Route not found"

    def test_bad_direction(self, db_session):
        assert db_service.add_route_synonym(db_session, "zrh-basel-city", "Basel", "via").valid is False

    def test_too_short(self, db_session):
        result = db_service.add_route_synonym(db_session, "zrh-basel-city", "B", "to")
        assert result.error == "Location name too short"

    def test_remove(self, db_session):
        db_service.add_route_synonym(db_session, "zrh-basel-city", "Basel SBB", "to")
        assert db_service.remove_route_synonym(db_session, "zrh-basel-city", "basel sbb", "to") is True
        assert db_service.remove_route_synonym(db_session, "zrh-basel-city", "basel sbb", "to") is False


class TestReminders:
    NOW = datetime(2026, 6, 1, 10, 0)

    def test_due_bookings(self, db_session):
        db_service.add_booking(
            db_session, make_payload("EL00000001", date="2026-06-02", time="09:00"), status=BookingStatus.CONFIRMED,
        )
        db_service.add_booking(
            db_session, make_payload("EL00000002", date="2026-06-02", time="11:00"), status=BookingStatus.CONFIRMED,
        )
        db_service.add_booking(db_session, make_payload("EL00000003", date="2026-06-01", time="12:00"))
        db_service.add_booking(
            db_session, make_payload("EL00000004", date="2026-06-01", time="09:00"), status=BookingStatus.CONFIRMED,
        )

        due = db_service.get_bookings_needing_reminder(db_session, self.NOW)
        assert [b.reference for b in due] == ["EL00000001"]

    def test_reminded_booking_not_due_again(self, db_session):
        booking, _ = db_service.add_booking(
            db_session, make_payload(date="2026-06-01", time="15:00"), status=BookingStatus.CONFIRMED,
        )
        db_service.mark_reminder_sent(db_session, booking, sent_at=self.NOW - timedelta(minutes=5))
        assert db_service.get_bookings_needing_reminder(db_session, self.NOW) == []
