"""Cart totals for the POS.

Functions to calculate display and payment totals from cart lines and the
branch parameter record (service charges per prescription type).
"""

from decimal import Decimal, ROUND_HALF_EVEN
from typing import Iterable, NamedTuple

from .exceptions import InsufficientPayment

ZERO = Decimal("0")
HUNDRED = Decimal("100")

# Prescription line type -> parameter field holding its service charge
SERVICE_CHARGE_FIELDS = {
    "R/": "service",
    "RC": "service_dokter",
    "R-Commitment": "service_dokter",
}


class CartTotals(NamedTuple):
    """Totals shown under the cart."""

    subtotal: Decimal
    misc: Decimal
    service_charge: Decimal
    discount: Decimal
    promo: Decimal
    tot_retju: Decimal

    @property
    def grand_total(self) -> Decimal:
        return self.subtotal + self.misc + self.service_charge - self.discount - self.promo


class TransactionTotals(NamedTuple):
    """Totals sent with a transaction payload."""

    sub_total: Decimal
    total_misc: Decimal
    total_service_fee: Decimal
    total_discount: Decimal
    total_promo: Decimal
    correct_total_amount: Decimal
    tot_retju: Decimal = ZERO


class PaymentBreakdown(NamedTuple):
    """Tendered amounts and the change owed on each payment method."""

    cash: Decimal
    debit: Decimal
    credit: Decimal
    total_paid: Decimal
    change_cash: Decimal
    change_dc: Decimal
    change_cc: Decimal


EMPTY_TOTALS = CartTotals(ZERO, ZERO, ZERO, ZERO, ZERO, ZERO)


def round_money(amount: Decimal, places: int = 2) -> Decimal:
    """Round to specified decimal places using banker's rounding."""
    quantize_str = "0." + "0" * places if places else "1"
    return amount.quantize(Decimal(quantize_str), rounding=ROUND_HALF_EVEN)


def service_charge_for_type(line_type: str, parameters: dict | None) -> Decimal:
    """Service charge for one line of the given prescription type.

    Non-prescription lines, and any line when parameters are not loaded,
    carry no service charge.
    """
    if not parameters:
        return ZERO
    field_name = SERVICE_CHARGE_FIELDS.get(line_type or "")
    if not field_name:
        return ZERO
    return Decimal(str(parameters.get(field_name) or 0))


def line_discount(item) -> Decimal:
    """Percentage discount of a line as an amount."""
    return (item.subtotal or ZERO) * (item.discount_percentage or ZERO) / HUNDRED


def line_total(item) -> Decimal:
    """Line total after service charge, misc, percentage discount and promo."""
    return (
        (item.subtotal or ZERO)
        + (item.sc or ZERO)
        + (item.misc or ZERO)
        - line_discount(item)
        - (item.disc_promo or ZERO)
    )


def counted_lines(items: Iterable) -> list:
    """Lines that take part in cart totals.

    Skips unnamed lines, zero-quantity lines and original-sale lines that
    have not been returned. Returned lines count with negative amounts.
    """
    lines = []
    for item in items:
        if not item.name:
            continue
        if item.is_original_return_item and not item.is_deleted:
            continue
        if item.quantity == 0:
            continue
        lines.append(item)
    return lines


def calculate_totals(items: Iterable, parameters: dict | None, is_return: bool = False) -> CartTotals:
    """Calculate cart totals.

    Service charge is taken from the branch parameters by line type and
    signed by the line quantity. For return carts, tot_retju is the refund:
    the absolute totals of the lines being returned.

    Args:
        items: Cart lines
        parameters: Branch parameter record (None if not loaded yet)
        is_return: Whether this is a return cart

    Returns:
        CartTotals, each amount rounded to two places
    """
    lines = counted_lines(items)

    subtotal = sum((item.subtotal for item in lines), ZERO)
    misc = sum((item.misc for item in lines), ZERO)
    service_charge = sum(
        (service_charge_for_type(item.type, parameters) * (-1 if item.quantity < 0 else 1) for item in lines),
        ZERO,
    )
    discount = sum((line_discount(item) for item in lines), ZERO)
    promo = sum((item.disc_promo for item in lines), ZERO)

    tot_retju = ZERO
    if is_return:
        tot_retju = sum((abs(item.total) for item in lines if item.quantity < 0), ZERO)

    return CartTotals(
        subtotal=round_money(subtotal),
        misc=round_money(misc),
        service_charge=round_money(service_charge),
        discount=round_money(discount),
        promo=round_money(promo),
        tot_retju=round_money(tot_retju),
    )


def payable_total(items: Iterable) -> Decimal:
    """Amount due at payment: every line, using its own service charge."""
    items = list(items)
    subtotal = sum((item.subtotal for item in items), ZERO)
    misc = sum((item.misc for item in items), ZERO)
    sc = sum((item.sc for item in items), ZERO)
    discount = sum((line_discount(item) for item in items), ZERO)
    promo = sum((item.disc_promo for item in items), ZERO)
    return round_money(subtotal + misc + sc - discount - promo)


def transaction_totals(items: Iterable, is_return: bool = False) -> TransactionTotals:
    """Totals block of a transaction payload for the given lines."""
    items = list(items)
    tot_retju = ZERO
    if is_return:
        tot_retju = sum((abs(item.total) for item in counted_lines(items) if item.quantity < 0), ZERO)

    return TransactionTotals(
        sub_total=round_money(sum((item.subtotal for item in items), ZERO)),
        total_misc=round_money(sum((item.misc for item in items), ZERO)),
        total_service_fee=round_money(sum((item.sc for item in items), ZERO)),
        total_discount=round_money(sum((line_discount(item) for item in items), ZERO)),
        total_promo=round_money(sum((item.disc_promo for item in items), ZERO)),
        correct_total_amount=payable_total(items),
        tot_retju=round_money(tot_retju),
    )


def allocate_change(
    amount_due: Decimal,
    cash: Decimal = ZERO,
    debit: Decimal = ZERO,
    credit: Decimal = ZERO,
) -> PaymentBreakdown:
    """Split the tendered amounts and work out the change.

    All change is booked against one method: credit card if the credit
    amount covers it, else debit card if that covers it, else cash.

    Raises:
        InsufficientPayment: Total tendered is below the amount due
    """
    total_paid = cash + debit + credit
    if total_paid < amount_due:
        raise InsufficientPayment()

    change_cash = change_dc = change_cc = ZERO
    change = total_paid - amount_due
    if change > 0:
        if credit >= change:
            change_cc = change
        elif debit >= change:
            change_dc = change
        else:
            change_cash = change

    return PaymentBreakdown(
        cash=cash,
        debit=debit,
        credit=credit,
        total_paid=total_paid,
        change_cash=change_cash,
        change_dc=change_dc,
        change_cc=change_cc,
    )
