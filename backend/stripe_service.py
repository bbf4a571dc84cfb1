"""
Stripe payment integration for the Elegant Limo booking system.

Handles Checkout sessions, reading back paid sessions and refunds.
Booking details travel through the session metadata so the success
page can rebuild the booking without server-side state.
"""
import json
import logging
from typing import Optional

import stripe
from pydantic import BaseModel

from config import get_settings, is_stripe_configured
from models import BookingPayload
from pricing import to_centimes

logger = logging.getLogger(__name__)

# Stripe rejects card charges below CHF 0.50
MIN_CHARGE_CENTIMES = 50

# Stripe metadata values are strings of at most 500 characters
METADATA_VALUE_LIMIT = 500

PRODUCT_NAME = "Elegant Limo – Transfer"
CANCELLATION_NOTE = (
    "Cancellation: free ≥24h before pickup; "
    "<24h before pickup: 50% cancellation fee applies."
)


def init_stripe():
    """Initialize Stripe with the secret key."""
    settings = get_settings()
    if settings.stripe_secret_key:
        stripe.api_key = settings.stripe_secret_key


class CheckoutSessionResponse(BaseModel):
    url: str
    session_id: str


class SessionNotPaidError(Exception):
    """Raised when a Checkout session is read back before payment completed."""

    def __init__(self, payment_status: str):
        self.payment_status = payment_status
        super().__init__(f"Session not paid (payment_status={payment_status})")


def validate_charge_amount(total_price: float) -> int:
    """
    Convert a CHF total to centimes and check Stripe's limits.

    Raises:
        ValueError: If the amount is below CHF 0.50 or above the configured maximum
    """
    amount = to_centimes(total_price)
    if amount < MIN_CHARGE_CENTIMES:
        raise ValueError("Amount must be at least CHF 0.50")

    max_chf = get_settings().max_charge_chf
    if amount > to_centimes(max_chf):
        raise ValueError(f"Amount exceeds the maximum of CHF {max_chf:.2f}")
    return amount


def _clip(value) -> str:
    return str(value if value is not None else "")[:METADATA_VALUE_LIMIT]


def booking_to_metadata(payload: BookingPayload) -> dict[str, str]:
    """
    Flatten a booking into Stripe metadata.

    First and last name are split from the full name when not given.
    """
    name = payload.customer_name.strip()
    first, _, rest = name.partition(" ")
    first_name = payload.customer_first_name if payload.customer_first_name is not None else first
    last_name = payload.customer_last_name if payload.customer_last_name is not None else rest.strip()

    return {
        "id": _clip(payload.id),
        "bookingReference": _clip(payload.booking_reference),
        "from": _clip(payload.from_location),
        "to": _clip(payload.to_location),
        "date": _clip(payload.date),
        "time": _clip(payload.time),
        "passengers": str(payload.passengers),
        "vehicleId": _clip(payload.vehicle_id),
        "vehicleLabel": _clip(payload.vehicle_label or payload.vehicle_id),
        "totalPrice": str(payload.total_price),
        "estimatedDurationMinutes": _clip(payload.estimated_duration_minutes),
        "customerEmail": _clip(payload.customer_email),
        "customerPhone": _clip(payload.customer_phone),
        "customerName": _clip(name),
        "customerFirstName": _clip(first_name),
        "customerLastName": _clip(last_name),
        "addOns": _clip(json.dumps(payload.add_ons)),
        "paymentMethod": _clip(payload.payment_method or "Stripe"),
    }


def _to_int(value, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _to_float(value, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def metadata_to_booking(metadata: dict) -> BookingPayload:
    """Rebuild a booking from session metadata, applying defaults for missing keys."""
    try:
        add_ons = json.loads(metadata.get("addOns") or "[]")
    except json.JSONDecodeError:
        add_ons = []
    if not isinstance(add_ons, list):
        add_ons = []

    duration = _to_int(metadata.get("estimatedDurationMinutes"), 0)

    return BookingPayload(
        id=metadata.get("id") or "",
        booking_reference=metadata.get("bookingReference") or "",
        from_location=metadata.get("from") or "",
        to_location=metadata.get("to") or "",
        date=metadata.get("date") or "",
        time=metadata.get("time") or "09:00",
        passengers=_to_int(metadata.get("passengers"), 1) or 1,
        vehicle_id=metadata.get("vehicleId") or "",
        vehicle_label=metadata.get("vehicleLabel") or metadata.get("vehicleId") or "",
        total_price=_to_float(metadata.get("totalPrice"), 0.0),
        estimated_duration_minutes=duration or None,
        customer_email=metadata.get("customerEmail") or "",
        customer_phone=metadata.get("customerPhone") or "",
        customer_name=metadata.get("customerName") or "",
        customer_first_name=metadata.get("customerFirstName") or "",
        customer_last_name=metadata.get("customerLastName") or "",
        add_ons=[str(a) for a in add_ons],
        payment_method=metadata.get("paymentMethod") or "Stripe",
    )


def build_line_item_description(payload: BookingPayload) -> str:
    route = f"{payload.from_location[:80]} → {payload.to_location[:80]} • {payload.date} {payload.time}"
    return f"{route}. {CANCELLATION_NOTE}"[:METADATA_VALUE_LIMIT]


def create_checkout_session(
    payload: BookingPayload,
    success_url: str,
    cancel_url: str,
) -> CheckoutSessionResponse:
    """
    Create a Stripe Checkout session for a booking.

    Args:
        payload: Booking details, stored in the session metadata
        success_url: Where Stripe redirects after payment
        cancel_url: Where Stripe redirects if the customer aborts

    Returns:
        CheckoutSessionResponse with the hosted checkout URL

    Raises:
        ValueError: If Stripe is not configured or the amount is out of range
        stripe.error.StripeError: If the Stripe API call fails
    """
    init_stripe()

    if not is_stripe_configured():
        raise ValueError("Stripe is not configured. Please set STRIPE_SECRET_KEY.")

    amount = validate_charge_amount(payload.total_price)

    session = stripe.checkout.Session.create(
        mode="payment",
        payment_method_types=["card"],
        customer_email=payload.customer_email.strip() or None,
        line_items=[
            {
                "price_data": {
                    "currency": "chf",
                    "product_data": {
                        "name": PRODUCT_NAME,
                        "description": build_line_item_description(payload),
                    },
                    "unit_amount": amount,
                },
                "quantity": 1,
            }
        ],
        metadata=booking_to_metadata(payload),
        success_url=success_url,
        cancel_url=cancel_url,
    )

    logger.info(f"Created checkout session {session.id} for {amount} centimes")
    return CheckoutSessionResponse(url=session.url, session_id=session.id)


def get_paid_session(session_id: str):
    """
    Retrieve a Checkout session and make sure it has been paid.

    Raises:
        ValueError: If Stripe is not configured
        SessionNotPaidError: If the session's payment_status is not "paid"
    """
    init_stripe()

    if not is_stripe_configured():
        raise ValueError("Stripe is not configured. Please set STRIPE_SECRET_KEY.")

    session = stripe.checkout.Session.retrieve(session_id, expand=["payment_intent"])
    if session.payment_status != "paid":
        raise SessionNotPaidError(session.payment_status)
    return session


def payment_intent_id_of(session) -> Optional[str]:
    """The payment intent id of a session, whether expanded or not."""
    intent = session.payment_intent
    if intent is None or isinstance(intent, str):
        return intent
    return intent.id


def refund_payment(
    payment_intent_id: str,
    amount_centimes: Optional[int] = None,
    reason: str = "requested_by_customer",
) -> dict:
    """
    Refund a payment, fully or partially.

    Args:
        payment_intent_id: The PaymentIntent ID to refund
        amount_centimes: Partial amount to refund; None refunds everything
        reason: Reason for refund (requested_by_customer, duplicate, fraudulent)

    Returns:
        Refund details
    """
    init_stripe()

    params = {"payment_intent": payment_intent_id, "reason": reason}
    if amount_centimes is not None:
        params["amount"] = amount_centimes

    refund = stripe.Refund.create(**params)
    logger.info(f"Refund {refund.id} for {payment_intent_id}: {refund.status}")

    return {
        "refund_id": refund.id,
        "status": refund.status,
        "amount": refund.amount,
    }
