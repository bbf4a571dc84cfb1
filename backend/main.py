"""
FastAPI application for the Elegant Limo booking system.

Provides REST API endpoints for the frontend to:
- Browse the fleet, fixed routes, add-ons and policies
- Price trips and get quotes for available vehicles
- Pay through Stripe Checkout and send booking emails
- Manage bookings, closed slots and the delay config (ops)
"""
import logging
import secrets
from datetime import date, datetime, time
from typing import Literal, Optional

import stripe
from fastapi import FastAPI, HTTPException, Query, Header, Depends
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from models import (
    AdminConfig,
    AvailabilityResult,
    BookingPayload,
    BookingStatus,
    ClosedSlotInput,
    ClosedSlotUpdate,
    FlightDelayConfigUpdate,
    PriceCalculation,
    Vehicle,
)
from config import get_settings, is_email_enabled, is_stripe_configured, local_now
from fleet import FLEET, get_vehicle_by_id, get_vehicles_for_passenger_count, list_vehicles, vehicle_display_name
from pricing import ADD_ONS, InvalidDistanceError, calculate_price, find_fixed_route, resolve_add_ons, to_centimes
from availability import (
    BOOKING_BUFFER_MINUTES,
    MINIMUM_ADVANCE_HOURS,
    estimate_trip_duration_minutes,
    get_available_vehicles,
    is_vehicle_available,
    meets_minimum_advance_notice,
    to_datetime,
)
from policies import (
    CANCELLATION_POLICY,
    FLIGHT_DELAY_POLICY,
    PAYMENT_POLICY,
    TERMS_SUMMARY,
    calculate_cancellation_refund,
    calculate_flight_delay_surcharge,
)
from invoice import format_invoice_text, generate_invoice_line_items
from admin_config import SLOT_NOT_FOUND_MESSAGE, validate_status_transition
from route_service import Coordinates, fetch_road_route
from stripe_service import (
    SessionNotPaidError,
    create_checkout_session,
    get_paid_session,
    metadata_to_booking,
    payment_intent_id_of,
    refund_payment,
)
from email_service import (
    send_booking_emails as send_booking_emails_via_provider,
    send_cancellation_request_email,
    send_receipt_email as send_receipt_email_via_provider,
)

# Database imports
from database import get_db, init_db
from db_models import Booking as DbBooking
import db_service

# Reminder scheduler
from email_scheduler import start_scheduler, stop_scheduler

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEFAULT_TRIP_MINUTES = 60


# Initialize FastAPI app
app = FastAPI(
    title="Elegant Limo Booking API",
    description="Backend API for the Elegant Limo chauffeur booking system",
    version="1.0.0",
)

# Configure CORS for frontend access
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",  # Vite dev server
        "http://localhost:3000",
        "https://elegant-limo.ch",
        "https://www.elegant-limo.ch",
        get_settings().frontend_url,
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup_event():
    """Initialize database and start background scheduler on startup."""
    init_db()
    start_scheduler()


@app.on_event("shutdown")
async def shutdown_event():
    """Stop background scheduler on shutdown."""
    stop_scheduler()


def require_ops(x_ops_password: Optional[str] = Header(None)):
    """
    Dependency guarding the ops endpoints.

    Expects header: X-Ops-Password: <password>. Open when no password is configured.
    """
    expected = get_settings().ops_password
    if not expected:
        return
    if not x_ops_password or not secrets.compare_digest(x_ops_password, expected):
        raise HTTPException(status_code=401, detail="Invalid ops password")


def booking_to_dict(booking: DbBooking) -> dict:
    """Serialize a stored booking for API responses."""
    payload = db_service.to_booking_payload(booking)
    return {
        "id": booking.id,
        "booking_reference": booking.reference,
        "status": booking.status.value,
        "from": booking.from_location,
        "to": booking.to_location,
        "date": booking.pickup_date.isoformat(),
        "time": booking.pickup_time.strftime("%H:%M"),
        "passengers": booking.passengers,
        "vehicle_id": booking.vehicle_id,
        "vehicle_name": vehicle_display_name(booking.vehicle_id),
        "estimated_duration_minutes": booking.estimated_duration_minutes,
        "total_price": booking.total_price,
        "add_ons": payload.add_ons,
        "customer_name": payload.customer_name,
        "customer_email": booking.customer_email,
        "customer_phone": booking.customer_phone,
        "payment_method": booking.payment_method,
        "decline_reason": booking.decline_reason,
        "refund_amount": booking.refund_amount,
        "confirmation_email_sent": bool(booking.confirmation_email_sent),
        "reminder_24h_sent": bool(booking.reminder_24h_sent),
        "created_at": booking.created_at.isoformat() if booking.created_at else None,
    }


def _get_booking_or_404(db: Session, booking_id: str) -> DbBooking:
    booking = db_service.get_booking_by_id(db, booking_id)
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    return booking


def _get_vehicle_or_404(vehicle_id: str) -> Vehicle:
    vehicle = get_vehicle_by_id(vehicle_id)
    if not vehicle:
        raise HTTPException(status_code=404, detail=f"Vehicle {vehicle_id} not found")
    return vehicle


# API Endpoints

@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "healthy", "service": "Elegant Limo Booking API"}


# ==================== CATALOG ====================

@app.get("/api/vehicles")
async def get_vehicles(passengers: Optional[int] = Query(None, ge=1)):
    """List the fleet, optionally only vehicles that fit a passenger count."""
    if passengers is None:
        vehicles = list_vehicles()
    else:
        vehicles = get_vehicles_for_passenger_count(passengers)
    return {"vehicles": vehicles, "count": len(vehicles)}


@app.get("/api/vehicles/{vehicle_id}", response_model=Vehicle)
async def get_vehicle(vehicle_id: str):
    return _get_vehicle_or_404(vehicle_id)


@app.get("/api/fixed-routes")
async def get_fixed_routes(db: Session = Depends(get_db)):
    return {"routes": db_service.get_fixed_routes(db)}


@app.get("/api/add-ons")
async def get_add_ons():
    return {"add_ons": list(ADD_ONS)}


@app.get("/api/policies")
async def get_policies():
    """Customer-facing policy texts."""
    return {
        "payment": PAYMENT_POLICY,
        "cancellation": CANCELLATION_POLICY,
        "flight_delay": FLIGHT_DELAY_POLICY,
        "terms": TERMS_SUMMARY,
    }


# ==================== PRICING ====================

class PriceRequest(BaseModel):
    """Request to price a trip for one vehicle."""
    from_location: str = Field(alias="from")
    to_location: str = Field(alias="to")
    vehicle_id: str
    distance_km: Optional[float] = Field(default=None, gt=0)
    add_on_ids: list[str] = []

    class Config:
        populate_by_name = True


@app.post("/api/pricing/calculate", response_model=PriceCalculation)
async def price_trip(request: PriceRequest, db: Session = Depends(get_db)):
    """
    Price a trip.

    Fixed routes win over per-km pricing; distance is only required when
    no fixed route matches.
    """
    vehicle = _get_vehicle_or_404(request.vehicle_id)
    try:
        return calculate_price(
            request.from_location,
            request.to_location,
            vehicle,
            distance_km=request.distance_km,
            selected_add_on_ids=request.add_on_ids,
            routes=db_service.get_fixed_routes(db),
        )
    except InvalidDistanceError as e:
        raise HTTPException(status_code=400, detail=str(e))


class QuoteRequest(BaseModel):
    """Request for priced, available vehicles for a trip."""
    from_location: str = Field(alias="from")
    to_location: str = Field(alias="to")
    date: date
    time: time
    passengers: int = Field(default=1, ge=1)
    distance_km: Optional[float] = Field(default=None, gt=0)
    estimated_duration_minutes: Optional[int] = Field(default=None, gt=0)
    add_on_ids: list[str] = []

    class Config:
        populate_by_name = True


class VehicleQuote(BaseModel):
    vehicle: Vehicle
    price: PriceCalculation


class QuoteResponse(BaseModel):
    quotes: list[VehicleQuote]
    estimated_duration_minutes: int


@app.post("/api/quotes", response_model=QuoteResponse)
async def get_quotes(request: QuoteRequest, db: Session = Depends(get_db)):
    """
    Quote every vehicle that fits the party and is free at the pickup time.

    Duration is taken from the request, estimated from the distance, or
    defaults to one hour.
    """
    notice = meets_minimum_advance_notice(request.date, request.time, now=local_now())
    if not notice.valid:
        raise HTTPException(status_code=400, detail=notice.error)

    routes = db_service.get_fixed_routes(db)
    if find_fixed_route(request.from_location, request.to_location, routes) is None:
        if not request.distance_km or request.distance_km <= 0:
            raise HTTPException(status_code=400, detail="Distance is required for non-fixed routes")

    if request.estimated_duration_minutes:
        duration = request.estimated_duration_minutes
    elif request.distance_km:
        duration = estimate_trip_duration_minutes(request.distance_km)
    else:
        duration = DEFAULT_TRIP_MINUTES

    vehicles = get_available_vehicles(
        FLEET,
        request.date,
        request.time,
        duration,
        request.passengers,
        db_service.get_booking_records_for_date(db, request.date),
        db_service.list_closed_slots(db, request.date),
    )

    quotes = [
        VehicleQuote(
            vehicle=vehicle,
            price=calculate_price(
                request.from_location,
                request.to_location,
                vehicle,
                distance_km=request.distance_km,
                selected_add_on_ids=request.add_on_ids,
                routes=routes,
            ),
        )
        for vehicle in vehicles
    ]
    return QuoteResponse(quotes=quotes, estimated_duration_minutes=duration)


# ==================== AVAILABILITY ====================

class AvailabilityRequest(BaseModel):
    vehicle_id: str
    date: date
    time: time
    estimated_duration_minutes: int = Field(default=DEFAULT_TRIP_MINUTES, gt=0)
    exclude_booking_id: Optional[str] = None


@app.post("/api/availability/check", response_model=AvailabilityResult)
async def check_availability(request: AvailabilityRequest, db: Session = Depends(get_db)):
    _get_vehicle_or_404(request.vehicle_id)
    return is_vehicle_available(
        vehicle_id=request.vehicle_id,
        date=request.date,
        time=request.time,
        estimated_duration_minutes=request.estimated_duration_minutes,
        existing_bookings=db_service.get_booking_records_for_date(db, request.date),
        closed_slots=db_service.list_closed_slots(db, request.date),
        exclude_booking_id=request.exclude_booking_id,
    )


class RouteEstimateRequest(BaseModel):
    origin: Coordinates
    destination: Coordinates


@app.post("/api/route/estimate")
async def estimate_route(request: RouteEstimateRequest):
    """Road distance and duration, falling back to a straight-line estimate."""
    return await fetch_road_route(request.origin, request.destination)


# ==================== POLICIES & INVOICE ====================

class CancellationRefundRequest(BaseModel):
    total_amount: float = Field(ge=0)
    pickup_datetime: datetime
    cancellation_time: Optional[datetime] = None


@app.post("/api/policies/cancellation-refund")
async def cancellation_refund(request: CancellationRefundRequest):
    return calculate_cancellation_refund(
        request.total_amount,
        request.cancellation_time or local_now(),
        request.pickup_datetime,
    )


class DelaySurchargeRequest(BaseModel):
    delay_minutes: int = Field(ge=0)


@app.post("/api/policies/delay-surcharge")
async def delay_surcharge(request: DelaySurchargeRequest, db: Session = Depends(get_db)):
    """Surcharge under the currently configured delay rules."""
    return calculate_flight_delay_surcharge(request.delay_minutes, db_service.get_delay_config(db))


class InvoiceRequest(BaseModel):
    base_price: float
    base_price_description: str
    add_on_ids: list[str] = []
    delay_surcharge: Optional[float] = None
    discount_amount: Optional[float] = None
    discount_reason: Optional[str] = None


@app.post("/api/invoice")
async def build_invoice(request: InvoiceRequest):
    """Invoice line items plus their plain-text rendering."""
    items = generate_invoice_line_items(
        base_price=request.base_price,
        base_price_description=request.base_price_description,
        add_ons=resolve_add_ons(request.add_on_ids),
        delay_surcharge=request.delay_surcharge,
        discount_amount=request.discount_amount,
        discount_reason=request.discount_reason,
    )
    return {"line_items": items, "text": format_invoice_text(items)}


# ==================== STRIPE PAYMENTS ====================

class CheckoutRequest(BookingPayload):
    """Booking payload plus the Stripe redirect URLs."""
    success_url: str = ""
    cancel_url: str = ""


@app.get("/api/stripe/config")
async def get_stripe_config():
    """Get Stripe publishable key for frontend initialization."""
    settings = get_settings()

    if not is_stripe_configured():
        raise HTTPException(
            status_code=503,
            detail="Payment system is not configured"
        )

    return {
        "publishable_key": settings.stripe_publishable_key,
        "is_configured": True,
    }


def _check_slot_still_free(request: BookingPayload, db: Session) -> None:
    """Refuse checkout for a vehicle that is no longer free at the requested time."""
    if not request.vehicle_id or not request.date:
        return
    try:
        pickup = to_datetime(request.date, request.time)
    except (ValueError, IndexError):
        raise HTTPException(status_code=400, detail="Invalid date or time")

    result = is_vehicle_available(
        vehicle_id=request.vehicle_id,
        date=pickup.date(),
        time=pickup.time(),
        estimated_duration_minutes=request.estimated_duration_minutes or DEFAULT_TRIP_MINUTES,
        existing_bookings=db_service.get_booking_records_for_date(db, pickup.date()),
        closed_slots=db_service.list_closed_slots(db, pickup.date()),
    )
    if not result.available:
        raise HTTPException(status_code=409, detail=result.reason)


@app.post("/api/create-stripe-checkout-session")
async def create_stripe_checkout_session(request: CheckoutRequest, db: Session = Depends(get_db)):
    """
    Create a Stripe Checkout session for a booking.

    Booking details ride along in the session metadata and are read back
    by /api/stripe-session-success.
    """
    if not is_stripe_configured():
        raise HTTPException(status_code=500, detail="STRIPE_SECRET_KEY not configured")

    if not request.success_url or not request.cancel_url:
        raise HTTPException(status_code=400, detail="successUrl and cancelUrl required")

    _check_slot_still_free(request, db)

    payload = BookingPayload(**request.model_dump(exclude={"success_url", "cancel_url"}))
    if not payload.booking_reference:
        payload.booking_reference = db_service.generate_booking_reference()

    try:
        session = create_checkout_session(payload, request.success_url, request.cancel_url)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except stripe.StripeError as e:
        logger.error(f"create-stripe-checkout-session error: {e}")
        raise HTTPException(status_code=500, detail=str(e) or "Failed to create checkout session")

    return {"url": session.url, "session_id": session.session_id, "booking_reference": payload.booking_reference}


@app.get("/api/stripe-session-success")
async def stripe_session_success(
    session_id: str = Query(""),
    db: Session = Depends(get_db),
):
    """
    Read back a paid Checkout session and store the booking as confirmed.

    Calling it twice for the same session returns the stored booking again.
    """
    if not is_stripe_configured():
        raise HTTPException(status_code=500, detail="STRIPE_SECRET_KEY not configured")

    if not session_id:
        raise HTTPException(status_code=400, detail="session_id required")

    try:
        session = get_paid_session(session_id)
    except SessionNotPaidError as e:
        raise HTTPException(
            status_code=400,
            detail={"error": "Session not paid", "payment_status": e.payment_status},
        )
    except stripe.StripeError as e:
        logger.error(f"stripe-session-success error: {e}")
        raise HTTPException(status_code=500, detail=str(e) or "Failed to retrieve session")

    payload = metadata_to_booking(dict(session.metadata or {}))
    try:
        booking, created = db_service.add_booking(
            db,
            payload,
            status=BookingStatus.CONFIRMED,
            stripe_session_id=session.id,
            stripe_payment_intent_id=payment_intent_id_of(session),
        )
    except (ValueError, IndexError):
        raise HTTPException(status_code=400, detail="Session metadata has an invalid date or time")

    if created:
        logger.info(f"Booking {booking.reference} confirmed via Stripe session {session.id}")

    return {"ok": True, "booking": payload.model_copy(update={"booking_reference": booking.reference})}


# ==================== CUSTOMER EMAILS ====================

@app.post("/api/send-booking-emails")
async def send_booking_emails(request: BookingPayload):
    """Send the admin alert and the customer confirmation."""
    if not is_email_enabled():
        raise HTTPException(status_code=500, detail="Email is not configured")

    if request.cancellation_summary is None:
        request.cancellation_summary = CANCELLATION_POLICY["summary"]

    results = send_booking_emails_via_provider(request)
    if results["admin"] is None:
        raise HTTPException(status_code=500, detail="Failed to send emails")
    return {"ok": True, **results}


class ReceiptRequest(BaseModel):
    customer_email: str = ""
    customer_name: str = ""
    booking_reference: str = ""
    total_price: float = 0.0


@app.post("/api/send-receipt-email")
async def send_receipt_email(request: ReceiptRequest, db: Session = Depends(get_db)):
    """
    Send a payment receipt.

    When the booking is on file, its price is itemised in the receipt.
    """
    if not is_email_enabled():
        raise HTTPException(status_code=500, detail="Email is not configured")

    line_items = None
    booking = db_service.get_booking_by_reference(db, request.booking_reference) if request.booking_reference else None
    if booking:
        # Stored add-ons are display names
        stored = set(db_service.to_booking_payload(booking).add_ons)
        add_ons = resolve_add_ons(a.id for a in ADD_ONS if a.name in stored or a.id in stored)
        base_price = booking.total_price - sum(a.price for a in add_ons)
        line_items = generate_invoice_line_items(
            base_price=base_price,
            base_price_description=f"{booking.from_location} → {booking.to_location}",
            add_ons=add_ons,
        )

    try:
        sent = send_receipt_email_via_provider(
            request.customer_email,
            request.customer_name,
            request.booking_reference,
            request.total_price,
            line_items,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not sent:
        raise HTTPException(status_code=500, detail="Failed to send receipt")
    return {"ok": True}


class CancellationRequest(BaseModel):
    booking_reference: str = ""
    email: str = ""


@app.post("/api/send-cancellation-request")
async def send_cancellation_request(request: CancellationRequest):
    """Forward a customer's cancellation request to the office."""
    if not is_email_enabled():
        raise HTTPException(status_code=500, detail="Email is not configured")

    try:
        sent = send_cancellation_request_email(request.booking_reference, request.email)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not sent:
        raise HTTPException(status_code=500, detail="Failed to send cancellation request")
    return {"ok": True}


# ==================== OPS: BOOKINGS ====================

@app.get("/api/admin/bookings", dependencies=[Depends(require_ops)])
async def admin_list_bookings(
    status: Optional[BookingStatus] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_db),
):
    """All bookings, newest first, optionally filtered by status and pickup date range."""
    bookings = db_service.get_bookings(db, status=status, start_date=start_date, end_date=end_date)
    return {"bookings": [booking_to_dict(b) for b in bookings], "count": len(bookings)}


class AdminBookingRequest(BookingPayload):
    status: BookingStatus = BookingStatus.CONFIRMED
    distance_km: Optional[float] = Field(default=None, gt=0)


@app.post("/api/admin/bookings", dependencies=[Depends(require_ops)])
async def admin_add_booking(request: AdminBookingRequest, db: Session = Depends(get_db)):
    """Record a booking taken by phone. A known reference is not stored twice."""
    _get_vehicle_or_404(request.vehicle_id)
    payload = BookingPayload(**request.model_dump(exclude={"status", "distance_km"}))
    try:
        booking, created = db_service.add_booking(
            db, payload, status=request.status, distance_km=request.distance_km,
        )
    except (ValueError, IndexError):
        raise HTTPException(status_code=400, detail="Invalid date or time")
    return {"booking": booking_to_dict(booking), "created": created}


@app.get("/api/admin/bookings/{booking_id}", dependencies=[Depends(require_ops)])
async def admin_get_booking(booking_id: str, db: Session = Depends(get_db)):
    return booking_to_dict(_get_booking_or_404(db, booking_id))


@app.delete("/api/admin/bookings/{booking_id}", dependencies=[Depends(require_ops)])
async def admin_delete_booking(booking_id: str, db: Session = Depends(get_db)):
    if not db_service.delete_booking(db, booking_id):
        raise HTTPException(status_code=404, detail="Booking not found")
    return {"success": True}


class StatusUpdateRequest(BaseModel):
    status: BookingStatus
    decline_reason: Optional[str] = None


@app.patch("/api/admin/bookings/{booking_id}/status", dependencies=[Depends(require_ops)])
async def admin_update_status(
    booking_id: str,
    request: StatusUpdateRequest,
    db: Session = Depends(get_db),
):
    booking, result = db_service.update_booking_status(
        db, booking_id, request.status, decline_reason=request.decline_reason,
    )
    if booking is None:
        raise HTTPException(status_code=404, detail=result.error)
    if not result.valid:
        raise HTTPException(status_code=400, detail=result.error)
    return booking_to_dict(booking)


class AdminCancelRequest(BaseModel):
    reason: Optional[str] = None
    cancellation_time: Optional[datetime] = None
    issue_refund: bool = True


@app.post("/api/admin/bookings/{booking_id}/cancel", dependencies=[Depends(require_ops)])
async def admin_cancel_booking(
    booking_id: str,
    request: AdminCancelRequest,
    db: Session = Depends(get_db),
):
    """
    Cancel a booking and refund it per the cancellation policy.

    The Stripe refund is only attempted for bookings paid through Checkout.
    """
    booking = _get_booking_or_404(db, booking_id)

    # Nothing is stored until the refund has gone through
    transition = validate_status_transition(booking.status, BookingStatus.CANCELLED)
    if not transition.valid:
        raise HTTPException(status_code=400, detail=transition.error)

    refund = calculate_cancellation_refund(
        booking.total_price,
        request.cancellation_time or local_now(),
        datetime.combine(booking.pickup_date, booking.pickup_time),
    )

    stripe_refund = None
    if request.issue_refund and refund.refund_amount > 0 and booking.stripe_payment_intent_id:
        if not is_stripe_configured():
            raise HTTPException(status_code=503, detail="Payment system is not configured")
        try:
            stripe_refund = refund_payment(
                booking.stripe_payment_intent_id,
                amount_centimes=to_centimes(refund.refund_amount),
            )
        except stripe.StripeError as e:
            logger.error(f"Refund failed for {booking.reference}: {e}")
            raise HTTPException(status_code=500, detail=f"Refund failed: {str(e)}")

    booking, result = db_service.update_booking_status(
        db, booking_id, BookingStatus.CANCELLED,
        decline_reason=request.reason, refund_amount=refund.refund_amount,
    )
    if not result.valid:
        raise HTTPException(status_code=400, detail=result.error)

    return {"booking": booking_to_dict(booking), "refund": refund, "stripe_refund": stripe_refund}


@app.post("/api/admin/bookings/{booking_id}/resend-confirmation", dependencies=[Depends(require_ops)])
async def admin_resend_confirmation(booking_id: str, db: Session = Depends(get_db)):
    booking = _get_booking_or_404(db, booking_id)

    if not is_email_enabled():
        raise HTTPException(status_code=500, detail="Email is not configured")

    payload = db_service.to_booking_payload(booking)
    payload.vehicle_label = vehicle_display_name(booking.vehicle_id)
    payload.cancellation_summary = CANCELLATION_POLICY["summary"]

    results = send_booking_emails_via_provider(payload)
    if results["customer"] == "sent":
        db_service.mark_confirmation_sent(db, booking)
    return {"ok": True, **results}


@app.get("/api/admin/reports/booking-stats", dependencies=[Depends(require_ops)])
async def admin_booking_stats(db: Session = Depends(get_db)):
    return db_service.get_booking_stats(db)


# ==================== OPS: ADMIN CONFIG ====================

@app.get("/api/admin/config", dependencies=[Depends(require_ops)], response_model=AdminConfig)
async def admin_get_config(db: Session = Depends(get_db)):
    return AdminConfig(
        closed_slots=db_service.list_closed_slots(db),
        flight_delay_config=db_service.get_delay_config(db),
        minimum_advance_hours=MINIMUM_ADVANCE_HOURS,
        buffer_between_bookings_minutes=BOOKING_BUFFER_MINUTES,
    )


@app.get("/api/admin/closed-slots", dependencies=[Depends(require_ops)])
async def admin_list_closed_slots(
    slot_date: Optional[date] = Query(None, alias="date"),
    db: Session = Depends(get_db),
):
    return {"closed_slots": db_service.list_closed_slots(db, slot_date)}


@app.post("/api/admin/closed-slots", dependencies=[Depends(require_ops)])
async def admin_create_closed_slot(request: ClosedSlotInput, db: Session = Depends(get_db)):
    if request.vehicle_id:
        _get_vehicle_or_404(request.vehicle_id)
    slot, result = db_service.create_closed_slot(db, request)
    if not result.valid:
        raise HTTPException(status_code=400, detail=result.error)
    return slot


@app.patch("/api/admin/closed-slots/{slot_id}", dependencies=[Depends(require_ops)])
async def admin_update_closed_slot(
    slot_id: str,
    request: ClosedSlotUpdate,
    db: Session = Depends(get_db),
):
    slot, result = db_service.update_closed_slot(db, slot_id, request)
    if slot is None and result.error == SLOT_NOT_FOUND_MESSAGE:
        raise HTTPException(status_code=404, detail=result.error)
    if not result.valid:
        raise HTTPException(status_code=400, detail=result.error)
    return slot


@app.delete("/api/admin/closed-slots/{slot_id}", dependencies=[Depends(require_ops)])
async def admin_delete_closed_slot(slot_id: str, db: Session = Depends(get_db)):
    if not db_service.delete_closed_slot(db, slot_id):
        raise HTTPException(status_code=404, detail=SLOT_NOT_FOUND_MESSAGE)
    return {"success": True}


@app.get("/api/admin/delay-config", dependencies=[Depends(require_ops)])
async def admin_get_delay_config(db: Session = Depends(get_db)):
    return db_service.get_delay_config(db)


@app.patch("/api/admin/delay-config", dependencies=[Depends(require_ops)])
async def admin_update_delay_config(request: FlightDelayConfigUpdate, db: Session = Depends(get_db)):
    config, result = db_service.update_delay_config(db, request)
    if not result.valid:
        raise HTTPException(status_code=400, detail=result.error)
    return config


@app.post("/api/admin/delay-config/reset", dependencies=[Depends(require_ops)])
async def admin_reset_delay_config(db: Session = Depends(get_db)):
    return db_service.reset_delay_config(db)


# ==================== OPS: FIXED ROUTES ====================

class RouteSynonymRequest(BaseModel):
    location: str
    direction: Literal["from", "to"] = "to"


@app.get("/api/admin/fixed-routes", dependencies=[Depends(require_ops)])
async def admin_list_fixed_routes(db: Session = Depends(get_db)):
    return {"routes": db_service.get_fixed_routes(db)}


@app.post("/api/admin/fixed-routes/{route_id}/synonyms", dependencies=[Depends(require_ops)])
async def admin_add_route_synonym(
    route_id: str,
    request: RouteSynonymRequest,
    db: Session = Depends(get_db),
):
    """Teach a fixed route another spelling of its pickup or destination."""
    result = db_service.add_route_synonym(db, route_id, request.location, request.direction)
    if not result.valid:
        status_code = 404 if result.error == "Route not found" else 400
        raise HTTPException(status_code=status_code, detail=result.error)
    route = next(r for r in db_service.get_fixed_routes(db) if r.id == route_id)
    return route


@app.delete("/api/admin/fixed-routes/{route_id}/synonyms", dependencies=[Depends(require_ops)])
async def admin_remove_route_synonym(
    route_id: str,
    location: str = Query(...),
    direction: Literal["from", "to"] = Query("to"),
    db: Session = Depends(get_db),
):
    if not db_service.remove_route_synonym(db, route_id, location, direction):
        raise HTTPException(status_code=404, detail="Synonym not found")
    return {"success": True}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
