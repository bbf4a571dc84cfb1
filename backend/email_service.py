"""
Email service for booking notifications via SendGrid.

Builds the admin alert, customer confirmation, payment receipt,
cancellation request and 24h reminder emails.
"""
import html
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Optional
from urllib.parse import quote

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail, Email, To, Content, ReplyTo

from config import LOCAL_TZ, get_settings, is_email_enabled
from fleet import vehicle_display_name
from invoice import format_invoice_text
from models import BookingPayload, InvoiceLineItem
from policies import CANCELLATION_POLICY, PAYMENT_POLICY
from pricing import format_chf

logger = logging.getLogger(__name__)

CALENDAR_EVENT_HOURS = 2

EMAIL_PATTERN = re.compile(r"^[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}$", re.IGNORECASE)

CELL_STYLE = "padding:6px 12px;border:1px solid #eee;"


def _e(value) -> str:
    """HTML-escape a value, treating None as empty."""
    return html.escape("" if value is None else str(value))


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_PATTERN.match(email or ""))


def send_email(to_email: str, subject: str, html_content: str, reply_to: Optional[str] = None) -> bool:
    """
    Send an email via SendGrid.

    Returns True if sent successfully, False otherwise.
    """
    settings = get_settings()
    if not is_email_enabled():
        logger.warning("SendGrid API key not configured - email not sent")
        return False

    try:
        message = Mail(
            from_email=Email(settings.sender_email, settings.sender_name),
            to_emails=To(to_email),
            subject=subject,
            html_content=Content("text/html", html_content),
        )
        if reply_to:
            message.reply_to = ReplyTo(reply_to)

        sg = SendGridAPIClient(settings.sendgrid_api_key)
        response = sg.send(message)

        if response.status_code in (200, 201, 202):
            logger.info(f"Email sent successfully to {to_email}")
            return True
        logger.error(f"Failed to send email to {to_email}: {response.status_code}")
        return False

    except Exception as e:
        logger.error(f"Error sending email to {to_email}: {str(e)}")
        return False


def _vehicle_label(p: BookingPayload) -> str:
    return p.vehicle_label or p.vehicle_id


def _add_ons_text(p: BookingPayload) -> str:
    return ", ".join(p.add_ons) if p.add_ons else "None"


def build_admin_html(p: BookingPayload) -> str:
    """Booking alert for the office: every field in a two-column table."""
    rows = [
        ("Booking Reference", p.booking_reference),
        ("From", p.from_location),
        ("To", p.to_location),
        ("Date", p.date),
        ("Time", p.time),
        ("Passengers", p.passengers),
        ("Vehicle", _vehicle_label(p)),
        ("Total Price", f"CHF {p.total_price:.2f}"),
        ("Customer Name", p.customer_name),
        ("Customer Email", p.customer_email),
        ("Customer Phone", p.customer_phone),
        ("Payment Method", p.payment_method),
        ("Add-ons", _add_ons_text(p)),
    ]
    table = "".join(
        f'<tr><td style="{CELL_STYLE}">{_e(k)}</td><td style="{CELL_STYLE}">{_e(v)}</td></tr>'
        for k, v in rows
    )
    return (
        f'<!DOCTYPE html><html><body style="font-family:sans-serif;">'
        f'<h2>New booking: {_e(p.booking_reference)}</h2>'
        f'<table style="border-collapse:collapse;">{table}</table>'
        f'</body></html>'
    )


def build_google_calendar_url(p: BookingPayload) -> Optional[str]:
    """
    One-click "add to Google Calendar" link for a 2-hour event at pickup.

    Pickup times are Swiss local time. Returns None if the date is unusable.
    """
    try:
        hours, minutes = (int(x) for x in (p.time or "09:00").replace(" ", "").split(":")[:2])
        start = datetime.combine(
            datetime.strptime(p.date, "%Y-%m-%d").date(),
            datetime.min.time().replace(hour=hours, minute=minutes),
        )
    except ValueError:
        return None

    start_utc = start.replace(tzinfo=LOCAL_TZ).astimezone(timezone.utc)
    end_utc = start_utc + timedelta(hours=CALENDAR_EVENT_HOURS)
    fmt = "%Y%m%dT%H%M%SZ"

    text = quote(f"Elegant Limo: {p.from_location} → {p.to_location}", safe="")
    details = quote(f"Booking {p.booking_reference}. {p.passengers} passenger(s).", safe="")
    return (
        "https://calendar.google.com/calendar/render?action=TEMPLATE"
        f"&text={text}&dates={start_utc.strftime(fmt)}/{end_utc.strftime(fmt)}&details={details}"
    )


def build_whatsapp_url(booking_reference: str) -> str:
    number = re.sub(r"\D", "", get_settings().whatsapp_number)
    text = quote(f"Hi, I have a booking with Elegant Limo. My booking ID: {booking_reference}.", safe="")
    return f"https://wa.me/{number}?text={text}"


def build_customer_html(p: BookingPayload) -> str:
    """Customer confirmation with calendar and WhatsApp buttons."""
    calendar_url = build_google_calendar_url(p)
    whatsapp_url = build_whatsapp_url(p.booking_reference)
    name = p.customer_name or "Customer"

    cancellation = ""
    if p.cancellation_summary:
        cancellation = f"<p><strong>Cancellation policy:</strong> {_e(p.cancellation_summary)}</p>"

    buttons = ""
    if calendar_url:
        buttons += (
            f'<a href="{_e(calendar_url)}" style="display:inline-block;padding:10px 18px;background:#d4af37;'
            f'color:#fff;text-decoration:none;border-radius:6px;font-weight:600;margin-right:10px;">'
            f'📅 Add to Google Calendar</a>'
        )
    buttons += (
        f'<a href="{_e(whatsapp_url)}" style="display:inline-block;padding:10px 18px;background:#25D366;'
        f'color:#fff;text-decoration:none;border-radius:6px;font-weight:600;">💬 Contact us on WhatsApp</a>'
    )

    return f"""<!DOCTYPE html>
<html>
<body style="font-family:sans-serif;">
    <p>Dear {_e(name)},</p>
    <p>Thank you for booking with Elegant Limo Switzerland.</p>
    <p>Your booking <strong>{_e(p.booking_reference)}</strong> is confirmed.</p>
    <ul>
        <li><strong>Pickup:</strong> {_e(p.date)} at {_e(p.time)}</li>
        <li><strong>From:</strong> {_e(p.from_location)}</li>
        <li><strong>To:</strong> {_e(p.to_location)}</li>
        <li><strong>Vehicle:</strong> {_e(_vehicle_label(p))}</li>
        <li><strong>Passengers:</strong> {p.passengers}</li>
        <li><strong>Total:</strong> CHF {p.total_price:.2f}</li>
        <li><strong>Payment:</strong> {_e(p.payment_method)}</li>
        <li><strong>Add-ons:</strong> {_e(_add_ons_text(p))}</li>
    </ul>
    {cancellation}
    <p><strong>One click:</strong></p>
    <p style="margin:12px 0;">{buttons}</p>
    <p>For questions or changes, reply to this email or use the WhatsApp button above.</p>
    <p>Best regards,<br/>Elegant Limo Switzerland</p>
</body>
</html>
"""


def build_receipt_html(
    customer_name: str,
    booking_reference: str,
    total_price: float,
    line_items: Optional[list[InvoiceLineItem]] = None,
) -> str:
    """Payment receipt. The invoice lines are appended as preformatted text when given."""
    name = customer_name or "Customer"
    invoice = ""
    if line_items:
        invoice = f'<pre style="font-family:monospace;">{_e(format_invoice_text(line_items))}</pre>'

    return f"""<!DOCTYPE html>
<html>
<body style="font-family:sans-serif;">
    <p>Dear {_e(name)},</p>
    <p>Thank you for your payment. This is your receipt for your Elegant Limo booking.</p>
    <table style="border-collapse:collapse;max-width:400px;">
        <tr><td style="{CELL_STYLE}"><strong>Booking reference</strong></td><td style="{CELL_STYLE}">{_e(booking_reference)}</td></tr>
        <tr><td style="{CELL_STYLE}"><strong>Amount paid</strong></td><td style="{CELL_STYLE}">CHF {total_price:.2f}</td></tr>
    </table>
    {invoice}
    <p>If you have any questions, reply to this email or contact us on WhatsApp.</p>
    <p>Best regards,<br/>{_e(get_settings().sender_name)}</p>
</body>
</html>
"""


def build_cancellation_request_html(booking_reference: str, email: str, requested_at: datetime) -> str:
    return f"""<!DOCTYPE html>
<html>
<body style="font-family:sans-serif;">
    <h2>Cancellation request</h2>
    <p>A customer has requested to cancel their booking.</p>
    <table style="border-collapse:collapse;">
        <tr><td style="{CELL_STYLE}">Booking reference</td><td style="{CELL_STYLE}">{_e(booking_reference)}</td></tr>
        <tr><td style="{CELL_STYLE}">Customer email</td><td style="{CELL_STYLE}">{_e(email)}</td></tr>
        <tr><td style="{CELL_STYLE}">Requested at</td><td style="{CELL_STYLE}">{_e(requested_at.isoformat())}</td></tr>
    </table>
    <p style="margin-top:16px;color:#666;">Process the cancellation and refund per your policy
    (&ge;24h before pickup: full refund; &lt;24h: 50% fee). You can reply to this email to contact the customer.</p>
</body>
</html>
"""


def build_24h_reminder_message(p: BookingPayload) -> str:
    """Plain-text reminder sent the day before pickup."""
    lines = [
        f"Booking: {p.booking_reference}",
        f"Vehicle: {vehicle_display_name(p.vehicle_id)}",
        f"Pickup: {p.date} at {p.time}",
        f"From: {p.from_location}",
        f"To: {p.to_location}",
        f"Passengers: {p.passengers}",
        f"Add-ons: {_add_ons_text(p)}",
        f"Total: {format_chf(p.total_price)}",
        f"Payment: {PAYMENT_POLICY['method']}",
        f"Cancellation: {CANCELLATION_POLICY['summary']}",
    ]
    return "\n".join(lines)


def send_booking_emails(p: BookingPayload) -> dict[str, Optional[str]]:
    """
    Send the admin alert and, if an address is known, the customer confirmation.

    Returns:
        {"admin": "sent" | None, "customer": "sent" | None}
    """
    settings = get_settings()
    results = {"admin": None, "customer": None}

    if send_email(
        settings.admin_email,
        f"[Elegant Limo] New booking {p.booking_reference}",
        build_admin_html(p),
        reply_to=settings.admin_email,
    ):
        results["admin"] = "sent"

    customer_email = p.customer_email.strip()
    if customer_email and send_email(
        customer_email,
        f"Elegant Limo — Booking Confirmation {p.booking_reference}",
        build_customer_html(p),
        reply_to=settings.admin_email,
    ):
        results["customer"] = "sent"

    return results


def send_receipt_email(
    customer_email: str,
    customer_name: str,
    booking_reference: str,
    total_price: float,
    line_items: Optional[list[InvoiceLineItem]] = None,
) -> bool:
    """
    Raises:
        ValueError: If no customer email is given
    """
    customer_email = (customer_email or "").strip()
    if not customer_email:
        raise ValueError("customerEmail required")

    return send_email(
        customer_email,
        f"Elegant Limo – Payment receipt {booking_reference}",
        build_receipt_html(customer_name, booking_reference, total_price, line_items),
        reply_to=get_settings().sender_email,
    )


def send_cancellation_request_email(
    booking_reference: str,
    email: str,
    requested_at: Optional[datetime] = None,
) -> bool:
    """
    Forward a customer's cancellation request to the office.

    The office can reply straight to the customer.

    Raises:
        ValueError: If the reference is missing or the email is invalid
    """
    reference = (booking_reference or "").strip().upper()
    email = (email or "").strip()
    if not reference:
        raise ValueError("bookingReference is required")
    if not email:
        raise ValueError("email is required")
    if not is_valid_email(email):
        raise ValueError("Invalid email address")

    requested_at = requested_at or datetime.now(timezone.utc)
    return send_email(
        get_settings().admin_email,
        f"[Elegant Limo] Cancellation request: {reference}",
        build_cancellation_request_html(reference, email, requested_at),
        reply_to=email,
    )


def send_24h_reminder(p: BookingPayload) -> bool:
    """Email the reminder to the customer, copying the office."""
    settings = get_settings()
    message = build_24h_reminder_message(p)
    body = f'<!DOCTYPE html><html><body style="font-family:sans-serif;"><pre>{_e(message)}</pre></body></html>'
    subject = f"Elegant Limo – Pickup reminder {p.booking_reference}"

    sent = False
    if p.customer_email.strip():
        sent = send_email(p.customer_email.strip(), subject, body, reply_to=settings.admin_email)
    admin_sent = send_email(settings.admin_email, f"[Elegant Limo] {subject}", body)
    return sent or admin_sent
