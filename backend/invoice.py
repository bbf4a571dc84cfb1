"""
Invoice line items and plain-text rendering.
"""
from typing import Iterable, Optional

from models import InvoiceLineItem, PriceCalculation, SelectedAddOn


INVOICE_WIDTH = 40
INVOICE_HEADER = "=== INVOICE ==="


def generate_invoice_line_items(
    base_price: float,
    base_price_description: str,
    add_ons: Optional[Iterable[SelectedAddOn]] = None,
    delay_surcharge: Optional[float] = None,
    discount_amount: Optional[float] = None,
    discount_reason: Optional[str] = None,
) -> list[InvoiceLineItem]:
    """
    Build ordered invoice line items ending in a total.

    Discounts are stored as negative amounts. The total is the plain sum
    of every preceding line.
    """
    items = [
        InvoiceLineItem(description=base_price_description, amount=base_price, type="base"),
    ]

    for add_on in add_ons or ():
        items.append(InvoiceLineItem(
            description=add_on.name,
            quantity=1,
            unit_price=add_on.price,
            amount=add_on.price,
            type="addon",
        ))

    if delay_surcharge and delay_surcharge > 0:
        items.append(InvoiceLineItem(
            description="Flight Delay Surcharge",
            amount=delay_surcharge,
            type="fee",
        ))

    if discount_amount and discount_amount > 0:
        items.append(InvoiceLineItem(
            description=discount_reason or "Discount",
            amount=-discount_amount,
            type="discount",
        ))

    total = sum(item.amount for item in items)
    items.append(InvoiceLineItem(description="Total", amount=total, type="total"))

    return items


def line_items_from_price(
    calculation: PriceCalculation,
    delay_surcharge: Optional[float] = None,
    discount_amount: Optional[float] = None,
    discount_reason: Optional[str] = None,
) -> list[InvoiceLineItem]:
    """Invoice line items for a priced trip, using its first breakdown label as base description."""
    description = calculation.breakdown[0].label if calculation.breakdown else "Transfer"
    return generate_invoice_line_items(
        base_price=calculation.base_price,
        base_price_description=description,
        add_ons=calculation.add_ons,
        delay_surcharge=delay_surcharge,
        discount_amount=discount_amount,
        discount_reason=discount_reason,
    )


def format_amount(amount: float) -> str:
    sign = "" if amount >= 0 else "-"
    return f"{sign}{abs(amount):.2f} CHF"


def format_invoice_text(items: Iterable[InvoiceLineItem]) -> str:
    """
    Render line items as fixed-width text.

    Amounts are right-aligned to a 40-column line with at least one
    space after the description. A rule precedes the total.
    """
    text = f"{INVOICE_HEADER}\n\n"

    for item in items:
        if item.type == "total":
            text += "\n" + "─" * INVOICE_WIDTH + "\n"

        amount_str = format_amount(item.amount)
        padding = INVOICE_WIDTH - len(item.description) - len(amount_str)
        text += f"{item.description}{' ' * max(padding, 1)}{amount_str}\n"

    return text
