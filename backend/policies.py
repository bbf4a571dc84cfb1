"""
Booking policies: cancellation refunds and flight delay surcharges.

Also holds the customer-facing policy texts shown at checkout and in emails.
"""
import math
from datetime import datetime, timedelta

from models import CancellationRefund, ChargeType, DelaySurcharge, FlightDelayConfig


FREE_CANCELLATION_HOURS = 48
LATE_CANCELLATION_HOURS = 24
LATE_CANCELLATION_REFUND_PERCENT = 50

DEFAULT_INTERVAL_MINUTES = 30

DEFAULT_DELAY_CONFIG = FlightDelayConfig(
    enabled=True,
    free_waiting_minutes=60,
    charge_type=ChargeType.PER_INTERVAL,
    per_interval_amount=50.0,
    interval_minutes=30,
)


def calculate_cancellation_refund(
    total_amount: float,
    cancellation_time: datetime,
    pickup_datetime: datetime,
) -> CancellationRefund:
    """
    Calculate the refund for a cancellation.

    Tiers:
    - 48 hours or more before pickup: full refund
    - 24 to 48 hours before pickup: full refund (grace period)
    - Less than 24 hours before pickup: 50% refund, 50% fee

    Exactly 48h falls in the first tier, exactly 24h in the grace period.
    """
    hours_until_pickup = (pickup_datetime - cancellation_time) / timedelta(hours=1)

    if hours_until_pickup >= FREE_CANCELLATION_HOURS:
        return CancellationRefund(
            refund_percentage=100,
            refund_amount=total_amount,
            cancellation_fee=0.0,
            reason="Free cancellation (≥48 hours before pickup)",
        )

    if hours_until_pickup < LATE_CANCELLATION_HOURS:
        share = LATE_CANCELLATION_REFUND_PERCENT / 100
        return CancellationRefund(
            refund_percentage=LATE_CANCELLATION_REFUND_PERCENT,
            refund_amount=total_amount * share,
            cancellation_fee=total_amount * (1 - share),
            reason="Late cancellation (<24 hours): 50% cancellation fee applies",
        )

    return CancellationRefund(
        refund_percentage=100,
        refund_amount=total_amount,
        cancellation_fee=0.0,
        reason="Free cancellation (24-48 hours before pickup)",
    )


def calculate_flight_delay_surcharge(
    delay_minutes: int,
    config: FlightDelayConfig = DEFAULT_DELAY_CONFIG,
) -> DelaySurcharge:
    """
    Calculate the surcharge for waiting on a delayed flight.

    With the default config the first 60 minutes are free, then
    CHF 50 is charged per started 30-minute interval:
    61 -> 50, 90 -> 50, 91 -> 100.
    """
    if not config.enabled:
        return DelaySurcharge(surcharge=0.0, reason="Delay charges disabled")

    excess_minutes = delay_minutes - config.free_waiting_minutes

    if excess_minutes <= 0:
        return DelaySurcharge(
            surcharge=0.0,
            reason=f"Free waiting time ({config.free_waiting_minutes} minutes)",
        )

    if config.charge_type == ChargeType.FIXED:
        return DelaySurcharge(
            surcharge=config.fixed_amount or 0.0,
            reason=f"Fixed delay charge for {delay_minutes} minutes delay",
        )

    interval_minutes = config.interval_minutes or DEFAULT_INTERVAL_MINUTES
    intervals = math.ceil(excess_minutes / interval_minutes)
    surcharge = intervals * (config.per_interval_amount or 0.0)

    return DelaySurcharge(
        surcharge=surcharge,
        reason=f"Delay charge: {intervals} × {interval_minutes} min intervals",
        intervals=intervals,
    )


PAYMENT_POLICY = {
    "method": "Pay on website (Stripe)",
    "description": "Payment by card on our website via Stripe. Receipt sent by email.",
    "details": [
        "Pay securely by credit or debit card on the checkout page",
        "Powered by Stripe – all major cards accepted (Visa, Mastercard, American Express)",
        "Email receipt sent after payment",
        "No payment on the vehicle – full payment online",
    ],
    "no_cash": True,
    "no_upfront_payment": True,
}

CANCELLATION_POLICY = {
    "title": "Cancellation Policy",
    "summary": "Free cancellation up to 48 hours before pickup",
    "details": [
        "Cancel free of charge if you cancel ≥48 hours before your scheduled pickup time",
        "Cancellations between 24-48 hours before pickup: Free cancellation (grace period)",
        "Cancellations <24 hours before pickup: 50% cancellation fee applies",
        "To cancel, contact us by phone or email with your booking reference",
        "Refunds are processed within 5-7 business days",
    ],
}

FLIGHT_DELAY_POLICY = {
    "title": "Flight Delay Policy",
    "summary": "First 60 minutes of delay are free",
    "details": [
        "We track your flight and adjust pickup time automatically",
        "First 60 minutes of delay: No additional charge",
        "After 60 minutes: Delay surcharge applies",
        "Delay charge: CHF 50 per 30-minute interval (or part thereof)",
        "You will be notified of any delay charges before confirming",
    ],
}

TERMS_SUMMARY = {
    "title": "Booking Terms",
    "points": [
        "Bookings require at least 2 hours advance notice",
        "Full payment online by card (cash not accepted)",
        "Free cancellation up to 48 hours before pickup",
        "50% cancellation fee if cancelled less than 24 hours before pickup",
        "Flight delays: First 60 minutes free, then CHF 50 per 30 minutes",
        "Passenger count must match vehicle capacity",
        "Additional stops may incur extra charges",
        "Smoking is not permitted in any vehicle",
    ],
}
