"""
SQLAlchemy database models for the Elegant Limo booking system.
"""
from sqlalchemy import (
    Column, Integer, String, DateTime, Date, Time,
    Enum, Boolean, Float, Text
)
from sqlalchemy.sql import func
from database import Base
from models import BookingStatus


class Booking(Base):
    """A chauffeur booking."""
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True)
    reference = Column(String(20), unique=True, nullable=False, index=True)
    status = Column(Enum(BookingStatus), default=BookingStatus.PENDING, nullable=False)

    # Trip
    from_location = Column(String(255), nullable=False)
    to_location = Column(String(255), nullable=False)
    pickup_date = Column(Date, nullable=False, index=True)
    pickup_time = Column(Time, nullable=False)
    passengers = Column(Integer, nullable=False, default=1)
    vehicle_id = Column(String(50), nullable=False, index=True)
    estimated_duration_minutes = Column(Integer, nullable=False, default=60)

    # Pricing
    total_price = Column(Float, nullable=False)
    add_ons = Column(Text)  # JSON list of add-on names

    # Customer
    customer_first_name = Column(String(100))
    customer_last_name = Column(String(100))
    customer_email = Column(String(255), index=True)
    customer_phone = Column(String(50))

    # Payment
    payment_method = Column(String(50), default="Stripe")
    stripe_session_id = Column(String(255), unique=True, nullable=True)
    stripe_payment_intent_id = Column(String(255), nullable=True)

    # Cancellation
    decline_reason = Column(Text)
    refund_amount = Column(Float)

    # Email tracking
    confirmation_email_sent = Column(Boolean, default=False)
    reminder_24h_sent = Column(Boolean, default=False)
    reminder_24h_sent_at = Column(DateTime(timezone=True))

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Booking {self.reference} ({self.status.value})>"


class ClosedSlot(Base):
    """Admin-defined window in which a vehicle (or the whole fleet) cannot be booked."""
    __tablename__ = "closed_slots"

    id = Column(String(50), primary_key=True)
    vehicle_id = Column(String(50), nullable=True)  # NULL = all vehicles
    date = Column(Date, nullable=False, index=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    reason = Column(String(255))

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<ClosedSlot {self.date} {self.start_time}-{self.end_time}>"


class FlightDelaySettings(Base):
    """Singleton row (id=1) holding the flight delay surcharge configuration."""
    __tablename__ = "flight_delay_settings"

    id = Column(Integer, primary_key=True)
    enabled = Column(Boolean, nullable=False, default=True)
    free_waiting_minutes = Column(Integer, nullable=False, default=60)
    charge_type = Column(String(20), nullable=False, default="per-interval")
    fixed_amount = Column(Float)
    per_interval_amount = Column(Float)
    interval_minutes = Column(Integer)

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class RouteSynonym(Base):
    """Extra location spelling attached to a fixed route by ops."""
    __tablename__ = "route_synonyms"

    id = Column(Integer, primary_key=True, index=True)
    route_id = Column(String(50), nullable=False, index=True)
    location = Column(String(255), nullable=False)
    direction = Column(String(4), nullable=False)  # "from" or "to"

    created_at = Column(DateTime(timezone=True), server_default=func.now())
