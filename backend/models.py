"""
Data models for the Elegant Limo booking system.
"""
from datetime import date, time, datetime
from typing import Optional, Literal
from pydantic import BaseModel, Field, field_validator, model_validator
from enum import Enum


def parse_date_value(v):
    """Accept a date or a 'YYYY-MM-DD' string."""
    if v is None or isinstance(v, date):
        return v
    if isinstance(v, str):
        return datetime.strptime(v, '%Y-%m-%d').date()
    return v


def parse_time_value(v):
    """Accept a time or an 'HH:MM' string."""
    if v is None or isinstance(v, time):
        return v
    if isinstance(v, str):
        parts = v.split(':')
        return time(int(parts[0]), int(parts[1]))
    return v


class VehicleType(str, Enum):
    """The three vehicle classes of the fleet."""
    STANDARD = "standard"
    PREMIUM = "premium"
    VAN = "van"


class BookingStatus(str, Enum):
    """Lifecycle status of a booking."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Vehicle(BaseModel):
    """A fleet vehicle. Defined once at startup, never mutated."""
    id: str
    type: VehicleType
    name: str
    class_name: str
    capacity_min: int
    capacity_max: int
    per_km_rate: float = Field(gt=0)  # CHF per kilometer
    description: str = ""
    features: tuple[str, ...] = ()

    class Config:
        frozen = True

    @model_validator(mode='after')
    def check_capacity(self):
        if self.capacity_min > self.capacity_max:
            raise ValueError("capacity_min must not exceed capacity_max")
        return self


class FixedRoute(BaseModel):
    """Flat per-vehicle-type price for a named corridor."""
    id: str
    from_synonyms: tuple[str, ...]
    to_synonyms: tuple[str, ...]
    prices: dict[VehicleType, float]
    description: str

    class Config:
        frozen = True

    @field_validator('prices')
    @classmethod
    def check_all_types_priced(cls, v):
        missing = [t.value for t in VehicleType if t not in v]
        if missing:
            raise ValueError(f"Missing prices for vehicle types: {', '.join(missing)}")
        return v


class AddOn(BaseModel):
    """Optional flat-fee service."""
    id: str
    name: str
    description: str = ""
    price: float

    class Config:
        frozen = True


class SelectedAddOn(BaseModel):
    id: str
    name: str
    price: float


class BreakdownItem(BaseModel):
    label: str
    amount: float


class PriceCalculation(BaseModel):
    """Result of the pricing engine. Derived, never persisted."""
    base_price: float
    pricing_method: Literal["fixed-route", "per-km"]
    fixed_route: Optional[FixedRoute] = None
    distance_km: Optional[float] = None
    per_km_rate: Optional[float] = None
    add_ons: list[SelectedAddOn] = []
    add_ons_total: float = 0.0
    subtotal: float
    currency: Literal["CHF"] = "CHF"
    breakdown: list[BreakdownItem] = []


class BookingRecord(BaseModel):
    """Snapshot of a stored booking as seen by the availability checker."""
    id: str
    vehicle_id: str
    pickup_date: date
    pickup_time: time
    estimated_duration_minutes: int
    status: BookingStatus = BookingStatus.PENDING

    @field_validator('pickup_date', mode='before')
    @classmethod
    def parse_date(cls, v):
        return parse_date_value(v)

    @field_validator('pickup_time', mode='before')
    @classmethod
    def parse_time(cls, v):
        return parse_time_value(v)


class ClosedSlot(BaseModel):
    """Admin-defined unavailability window. No vehicle_id means all vehicles."""
    id: str
    vehicle_id: Optional[str] = None
    date: date
    start_time: time
    end_time: time
    reason: Optional[str] = None

    @field_validator('date', mode='before')
    @classmethod
    def parse_date(cls, v):
        return parse_date_value(v)

    @field_validator('start_time', 'end_time', mode='before')
    @classmethod
    def parse_time(cls, v):
        return parse_time_value(v)


class ClosedSlotInput(BaseModel):
    """Raw closed-slot fields as entered by an admin, before validation."""
    vehicle_id: Optional[str] = None
    date: str
    start_time: str
    end_time: str
    reason: Optional[str] = None


class ClosedSlotUpdate(BaseModel):
    vehicle_id: Optional[str] = None
    date: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    reason: Optional[str] = None


class AvailabilityResult(BaseModel):
    available: bool
    reason: Optional[str] = None
    conflicting_booking: Optional[BookingRecord] = None
    conflicting_slot: Optional[ClosedSlot] = None


class ValidationResult(BaseModel):
    valid: bool
    error: Optional[str] = None


class ChargeType(str, Enum):
    FIXED = "fixed"
    PER_INTERVAL = "per-interval"


class FlightDelayConfig(BaseModel):
    """Admin-editable flight delay surcharge settings."""
    enabled: bool = True
    free_waiting_minutes: int = 60
    charge_type: ChargeType = ChargeType.PER_INTERVAL
    fixed_amount: Optional[float] = None
    per_interval_amount: Optional[float] = 50.0
    interval_minutes: Optional[int] = 30


class FlightDelayConfigUpdate(BaseModel):
    enabled: Optional[bool] = None
    free_waiting_minutes: Optional[int] = None
    charge_type: Optional[ChargeType] = None
    fixed_amount: Optional[float] = None
    per_interval_amount: Optional[float] = None
    interval_minutes: Optional[int] = None


class DelaySurcharge(BaseModel):
    surcharge: float
    reason: str
    intervals: Optional[int] = None


class CancellationRefund(BaseModel):
    refund_percentage: int
    refund_amount: float
    cancellation_fee: float
    reason: str


class InvoiceLineItem(BaseModel):
    description: str
    quantity: Optional[int] = None
    unit_price: Optional[float] = None
    amount: float
    type: Literal["base", "addon", "fee", "discount", "total"]


class AdminConfig(BaseModel):
    """Aggregate of admin-controlled settings."""
    closed_slots: list[ClosedSlot] = []
    flight_delay_config: FlightDelayConfig = FlightDelayConfig()
    minimum_advance_hours: int = 2
    buffer_between_bookings_minutes: int = 30


class BookingStats(BaseModel):
    total_bookings: int
    pending_bookings: int
    confirmed_bookings: int
    completed_bookings: int
    cancelled_bookings: int
    total_revenue: float
    average_booking_value: float


class BookingPayload(BaseModel):
    """
    Booking details collected at checkout.

    Travels through Stripe metadata and feeds the booking emails.
    """
    id: str = ""
    booking_reference: str = ""
    from_location: str = Field(default="", alias="from")
    to_location: str = Field(default="", alias="to")
    date: str = ""
    time: str = "09:00"
    passengers: int = 1
    vehicle_id: str = ""
    vehicle_label: str = ""
    total_price: float = 0.0
    estimated_duration_minutes: Optional[int] = Field(default=None, gt=0)
    customer_email: str = ""
    customer_phone: str = ""
    customer_name: str = ""
    customer_first_name: Optional[str] = None
    customer_last_name: Optional[str] = None
    add_ons: list[str] = []
    payment_method: str = "Stripe"
    cancellation_summary: Optional[str] = None

    class Config:
        populate_by_name = True
