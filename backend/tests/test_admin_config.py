"""
Unit tests for closed-slot, delay-config and status-transition rules.
"""
from datetime import date

import pytest

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from admin_config import (
    INVALID_DATE_MESSAGE,
    INVALID_TIME_MESSAGE,
    INVERTED_RANGE_MESSAGE,
    SLOT_NOT_FOUND_MESSAGE,
    apply_delay_config_update,
    closed_slots_for_date,
    closed_slots_for_vehicle,
    create_closed_slot,
    default_delay_config,
    delete_closed_slot,
    update_closed_slot,
    validate_closed_slot,
    validate_delay_config,
    validate_route_synonym,
    validate_status_transition,
)
from models import (
    BookingStatus,
    ChargeType,
    ClosedSlotInput,
    ClosedSlotUpdate,
    FlightDelayConfigUpdate,
)


def slot_input(**overrides):
    data = {"date": "2026-07-01", "start_time": "08:00", "end_time": "12:00"}
    data.update(overrides)
    return ClosedSlotInput(**data)


class TestValidateClosedSlot:
    def test_valid(self):
        assert validate_closed_slot(slot_input()).valid is True

    @pytest.mark.parametrize("value", ["2026/07/01", "01-07-2026", "2026-7-1", "2026-02-30"])
    def test_bad_dates(self, value):
        result = validate_closed_slot(slot_input(date=value))
        assert result.valid is False
        assert result.error == INVALID_DATE_MESSAGE

    @pytest.mark.parametrize("value", ["8:00", "0800", "25:99", "12:60"])
    def test_bad_times(self, value):
        result = validate_closed_slot(slot_input(start_time=value))
        assert result.error == INVALID_TIME_MESSAGE

    def test_start_must_precede_end(self):
        assert validate_closed_slot(slot_input(start_time="12:00")).error == INVERTED_RANGE_MESSAGE
        assert validate_closed_slot(slot_input(start_time="13:00")).error == INVERTED_RANGE_MESSAGE


class TestClosedSlotList:
    def test_create_returns_new_list(self):
        original = []
        slots, slot, result = create_closed_slot(original, slot_input(reason="Holiday"))
        assert result.valid is True
        assert original == []
        assert slots == [slot]
        assert slot.id.startswith("closed-")
        assert slot.reason == "Holiday"

    def test_create_invalid_leaves_list(self):
        slots, slot, result = create_closed_slot([], slot_input(end_time="07:00"))
        assert slot is None
        assert slots == []
        assert result.valid is False

    def test_update_merges_and_validates(self):
        slots, slot, _ = create_closed_slot([], slot_input(), slot_id="s1")
        updated_list, updated, result = update_closed_slot(slots, "s1", ClosedSlotUpdate(end_time="10:00"))
        assert result.valid is True
        assert updated.end_time.hour == 10
        assert updated.start_time.hour == 8
        assert slots[0].end_time.hour == 12

    def test_update_rejects_inverted_merge(self):
        slots, _, _ = create_closed_slot([], slot_input(), slot_id="s1")
        same, updated, result = update_closed_slot(slots, "s1", ClosedSlotUpdate(start_time="13:00"))
        assert updated is None
        assert result.error == INVERTED_RANGE_MESSAGE
        assert same == slots

    def test_update_unknown_slot(self):
        _, updated, result = update_closed_slot([], "nope", ClosedSlotUpdate(reason="x"))
        assert updated is None
        assert result.error == SLOT_NOT_FOUND_MESSAGE

    def test_delete(self):
        slots, _, _ = create_closed_slot([], slot_input(), slot_id="s1")
        remaining, deleted = delete_closed_slot(slots, "s1")
        assert deleted is True
        assert remaining == []
        assert delete_closed_slot(remaining, "s1") == ([], False)

    def test_filters(self):
        slots, _, _ = create_closed_slot([], slot_input(), slot_id="all")
        slots, _, _ = create_closed_slot(slots, slot_input(vehicle_id="vehicle-van-vclass", date="2026-07-02"), slot_id="van")
        assert [s.id for s in closed_slots_for_date(slots, date(2026, 7, 2))] == ["van"]
        assert [s.id for s in closed_slots_for_vehicle(slots, "vehicle-van-vclass")] == ["all", "van"]
        assert [s.id for s in closed_slots_for_vehicle(slots, "vehicle-standard-eclass")] == ["all"]


class TestDelayConfig:
    @pytest.mark.parametrize("updates, message", [
        ({"free_waiting_minutes": -1}, "Free waiting minutes cannot be negative"),
        ({"fixed_amount": -0.01}, "Fixed amount cannot be negative"),
        ({"per_interval_amount": -5}, "Per-interval amount cannot be negative"),
        ({"interval_minutes": 0}, "Interval minutes must be positive"),
    ])
    def test_invalid_updates(self, updates, message):
        result = validate_delay_config(FlightDelayConfigUpdate(**updates))
        assert result.valid is False
        assert result.error == message

    def test_apply_partial_update(self):
        config, result = apply_delay_config_update(
            default_delay_config(),
            FlightDelayConfigUpdate(charge_type=ChargeType.FIXED, fixed_amount=80.0),
        )
        assert result.valid is True
        assert config.charge_type == ChargeType.FIXED
        assert config.fixed_amount == 80
        assert config.free_waiting_minutes == 60

    def test_apply_invalid_keeps_config(self):
        original = default_delay_config()
        config, result = apply_delay_config_update(original, FlightDelayConfigUpdate(interval_minutes=-1))
        assert result.valid is False
        assert config == original

    def test_zero_free_minutes_allowed(self):
        assert validate_delay_config(FlightDelayConfigUpdate(free_waiting_minutes=0)).valid is True


class TestRouteSynonym:
    def test_too_short(self):
        assert validate_route_synonym(" a ").error == "Location name too short"
        assert validate_route_synonym("").valid is False
        assert validate_route_synonym(None).valid is False

    def test_ok(self):
        assert validate_route_synonym("Kloten").valid is True


class TestStatusTransitions:
    @pytest.mark.parametrize("current, new", [
        (BookingStatus.PENDING, BookingStatus.CONFIRMED),
        (BookingStatus.PENDING, BookingStatus.CANCELLED),
        (BookingStatus.CONFIRMED, BookingStatus.COMPLETED),
        (BookingStatus.CONFIRMED, BookingStatus.CANCELLED),
    ])
    def test_allowed(self, current, new):
        assert validate_status_transition(current, new).valid is True

    @pytest.mark.parametrize("current, new", [
        (BookingStatus.PENDING, BookingStatus.COMPLETED),
        (BookingStatus.COMPLETED, BookingStatus.CANCELLED),
        (BookingStatus.CANCELLED, BookingStatus.CONFIRMED),
        (BookingStatus.CONFIRMED, BookingStatus.PENDING),
    ])
    def test_rejected(self, current, new):
        result = validate_status_transition(current, new)
        assert result.valid is False
        assert result.error == f"Cannot change booking status from {current.value} to {new.value}"
