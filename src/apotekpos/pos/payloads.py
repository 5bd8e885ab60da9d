"""Transaction payload assembly.

Builds the JSON body for POST /transaction from cart lines, payment,
totals and the transaction classification chosen at checkout.
"""

from dataclasses import asdict, dataclass, fields
from decimal import Decimal

from .cart import CartItem
from .exceptions import TransactionValidationError
from .totals import ZERO, TransactionTotals, line_discount, round_money

ACTION_SALE = "1"
ACTION_ITEM_RETURN = "2"
ACTION_FULL_RETURN = "0"

PRESCRIPTION_TRANSACTION_TYPE = "2"

MEDICINE_COMPOUNDED = "Compounded"
MEDICINE_READY = "Ready to Use"
FULL_PRESCRIPTION = "Full Prescription"
PARTIAL_PRESCRIPTION = "Partial Prescription"
AVAILABLE = "Available"
PATIENT_CREDIT = "Patient Credit"

RETURN_REASON_REQUIRED = "Return reason is required and cannot be empty."
CONFIRMATION_REQUIRED = "Confirmation person is required and cannot be empty."


@dataclass
class PaymentInfo:
    """Tendered amounts, change and card details captured at payment."""

    cash: Decimal = ZERO
    change_cash: Decimal = ZERO
    change_cc: Decimal = ZERO
    change_dc: Decimal = ZERO
    credit: Decimal = ZERO
    debit: Decimal = ZERO
    credit_account_number: str | None = None
    debit_account_number: str | None = None
    credit_edc_machine: str | None = None
    debit_edc_machine: str | None = None
    credit_bank: str | None = None
    debit_bank: str | None = None
    credit_card_type: str | None = None
    debit_card_type: str | None = None

    @classmethod
    def from_breakdown(cls, breakdown, **card_details) -> "PaymentInfo":
        """Build from a :class:`~apotekpos.pos.totals.PaymentBreakdown`."""
        return cls(
            cash=breakdown.cash,
            change_cash=breakdown.change_cash,
            change_cc=breakdown.change_cc,
            change_dc=breakdown.change_dc,
            credit=breakdown.credit,
            debit=breakdown.debit,
            **card_details,
        )


@dataclass
class TransactionTypeInfo:
    medicine_type: str = ""
    transaction_type: str = ""
    availability: str = ""

    @classmethod
    def from_original(cls, transaction: dict) -> "TransactionTypeInfo":
        """Derive the classification from the flags of a stored transaction."""
        return cls(
            medicine_type=MEDICINE_COMPOUNDED if transaction.get("compounded") else MEDICINE_READY,
            transaction_type=FULL_PRESCRIPTION if transaction.get("full_prescription") else PARTIAL_PRESCRIPTION,
            availability=AVAILABLE if transaction.get("availability") else PATIENT_CREDIT,
        )

    @property
    def is_compounded(self) -> bool:
        return self.medicine_type == MEDICINE_COMPOUNDED


@dataclass
class ReturnInfo:
    """Return details kept alongside the return cart."""

    is_return_transaction: bool = False
    return_reason: str = ""
    confirmation_retur_by: str = ""
    invoice_number: str = ""
    original_transaction_type: str = ""

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "ReturnInfo":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


def validate_return_info(return_info: ReturnInfo | None) -> str | None:
    """Check the return fields of a return transaction.

    Returns:
        An error message, or None when valid or not a return
    """
    if not return_info or not return_info.is_return_transaction:
        return None
    if not (return_info.return_reason or "").strip():
        return RETURN_REASON_REQUIRED
    if not (return_info.confirmation_retur_by or "").strip():
        return CONFIRMATION_REQUIRED
    return None


def _line_action(item: CartItem, transaction_action: str) -> str:
    # Original-sale lines of a return cart: "2" once returned, else kept as "1"
    if item.is_original_return_item and item.is_deleted:
        return ACTION_ITEM_RETURN
    if item.is_original_return_item or item.is_deleted:
        return ACTION_SALE
    return transaction_action


def _clamp_to_quantity_sign(total: Decimal, quantity: int) -> Decimal:
    if quantity < 0:
        return min(ZERO, total)
    return max(ZERO, total)


def build_transaction_items(
    items: list[CartItem],
    transaction_type: str,
    transaction_action: str,
    type_info: TransactionTypeInfo | None = None,
) -> list[dict]:
    """Convert cart lines to transaction payload lines."""
    payload_items = []
    for item in items:
        nominal_discount = item.nominal_discount
        if not nominal_discount and item.discount_percentage:
            nominal_discount = round_money(line_discount(item))

        total = item.subtotal + item.sc + item.misc - nominal_discount - item.disc_promo

        line = {
            "transaction_action": _line_action(item, transaction_action),
            "product_code": item.product_code or item.stock.get("kode_brg", ""),
            "quantity": item.quantity,
            "sub_total": item.subtotal,
            "nominal_discount": nominal_discount,
            "discount": item.discount_percentage,
            "service_fee": item.sc,
            "misc": item.misc,
            "disc_promo": item.disc_promo,
            "value_promo": item.value_promo,
            "no_promo": item.no_promo,
            "promo_type": item.promo_type or "1",
            "up_selling": "Y" if item.up == "Y" else "N",
            "total": _clamp_to_quantity_sign(total, item.quantity),
            "round_up": item.round_up,
        }
        if transaction_type == PRESCRIPTION_TRANSACTION_TYPE:
            line["prescription_code"] = "RC" if type_info and type_info.is_compounded else "R/"
        payload_items.append(line)
    return payload_items


def _parse_id(value, label: str) -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError) as e:
        raise TransactionValidationError(f"{label} is required") from e


def build_transaction_payload(
    *,
    device_id: str,
    invoice_number: str,
    customer_id,
    transaction_type: str,
    transaction_action: str,
    items: list[CartItem],
    payment: PaymentInfo,
    totals: TransactionTotals,
    doctor_id=None,
    type_info: TransactionTypeInfo | None = None,
    return_info: ReturnInfo | None = None,
    notes: str = "",
    corporate_code: str | None = None,
    need_print_invoice: bool = False,
) -> dict:
    """Assemble the body of a POST /transaction request.

    Return transactions send a grand total of 0; the refund travels in
    ``tot_retju``.

    Raises:
        TransactionValidationError: Customer id is not numeric, or a return
            is missing its reason or confirming person
    """
    is_return = bool(return_info and return_info.is_return_transaction)

    payload = {
        "device_id": device_id,
        "invoice_number": invoice_number,
        "notes": notes or "",
        "customer_id": _parse_id(customer_id, "Customer ID"),
        "doctor_id": _parse_id(doctor_id, "Doctor ID") if doctor_id not in (None, "") else None,
        "corporate_code": corporate_code,
        "transaction_type": transaction_type,
        "transaction_action": transaction_action,
        "need_print_invoice": need_print_invoice,
        "items": build_transaction_items(items, transaction_type, transaction_action, type_info),
        "cash": payment.cash,
        "change_cash": payment.change_cash,
        "change_cc": payment.change_cc,
        "change_dc": payment.change_dc,
        "credit_card": payment.credit,
        "debit_card": payment.debit,
        "no_cc": payment.credit_account_number or None,
        "no_dc": payment.debit_account_number or None,
        "edc_cc": payment.credit_edc_machine or None,
        "edc_dc": payment.debit_edc_machine or None,
        "publisher_cc": payment.credit_bank or None,
        "publisher_dc": payment.debit_bank or None,
        "type_cc": payment.credit_card_type or None,
        "type_dc": payment.debit_card_type or None,
        # Backend field name is spelled "compunded"
        "compunded": bool(type_info and type_info.medicine_type == MEDICINE_COMPOUNDED),
        "full_prescription": bool(type_info and type_info.transaction_type == FULL_PRESCRIPTION),
        "availability": bool(type_info and type_info.availability == AVAILABLE),
        "sub_total": totals.sub_total,
        "misc": totals.total_misc,
        "service_fee": totals.total_service_fee,
        "discount": totals.total_discount,
        "promo": totals.total_promo,
        "round_up": 0,
        "grand_total": ZERO if is_return else totals.correct_total_amount,
        "tot_retju": totals.tot_retju or ZERO,
    }

    if is_return:
        error = validate_return_info(return_info)
        if error:
            raise TransactionValidationError(error)
        payload["retur_reason"] = return_info.return_reason.strip()
        payload["confirmation_retur_by"] = return_info.confirmation_retur_by.strip()

    return payload

