"""Transaction processor.

One entry point for the three transaction kinds the POS submits:

- regular sale (action "1") with a freshly reserved invoice number
- item-based return (action "2") against the original invoice
- full return (action "0") reversing every line of a stored transaction

Each kind resolves the device id and transaction type, builds the payload
with :mod:`apotekpos.pos.payloads` and posts it to the backend.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from django.conf import settings

from . import api_client, system_client
from .cart import CartItem
from .exceptions import (
    DeviceNotConfigured,
    PosApiError,
    PosApiUnavailable,
    SystemServiceError,
    TransactionValidationError,
)
from .messages import user_message
from .payloads import (
    ACTION_FULL_RETURN,
    ACTION_ITEM_RETURN,
    ACTION_SALE,
    PaymentInfo,
    ReturnInfo,
    TransactionTypeInfo,
    build_transaction_payload,
)
from .totals import ZERO, TransactionTotals

logger = logging.getLogger(__name__)

DEFAULT_CONFIRMED_BY = "cashier"
ITEM_RETURN_REASON = "Item-based return"
FULL_RETURN_REASON = "Customer request"
SUCCESS_MESSAGE = "Transaction processed successfully"

ZERO_TOTALS = TransactionTotals(ZERO, ZERO, ZERO, ZERO, ZERO, ZERO)


@dataclass
class RegularSale:
    items: list[CartItem]
    customer_id: str
    payment: PaymentInfo
    totals: TransactionTotals
    doctor_id: str | None = None
    type_info: TransactionTypeInfo | None = None
    notes: str = ""


@dataclass
class ItemBasedReturn:
    """Return of selected lines of an earlier sale, booked on its invoice."""

    items: list[CartItem]
    customer_id: str
    payment: PaymentInfo
    totals: TransactionTotals
    original_invoice_number: str
    doctor_id: str | None = None
    type_info: TransactionTypeInfo | None = None
    return_reason: str = ""
    confirmed_by: str = DEFAULT_CONFIRMED_BY
    notes: str = ""


@dataclass
class FullReturn:
    """Return of a whole stored transaction."""

    original_transaction: dict
    original_items: list[CartItem] = field(default_factory=list)
    return_reason: str = ""
    confirmed_by: str = DEFAULT_CONFIRMED_BY


@dataclass
class TransactionResult:
    success: bool
    data: Any = None
    message: str = ""
    status: int = 200


def resolve_device_id() -> str:
    """Read the device id of this terminal.

    Raises:
        DeviceNotConfigured: Device service is down or has no device id
    """
    device_id = system_client.get_device_id()
    if not device_id:
        raise DeviceNotConfigured()
    return device_id


def resolve_transaction_type(auth_token: str, device_id: str) -> str:
    """Default sale type of the kassa bound to this device.

    Falls back to POS_DEFAULT_TRANSACTION_TYPE when the kassa cannot be read.
    """
    default = settings.POS_DEFAULT_TRANSACTION_TYPE
    try:
        kassa = api_client.get_kassa(auth_token, device_id)
    except (PosApiError, PosApiUnavailable) as e:
        logger.warning("Kassa lookup failed for device %s, using type %s: %s", device_id, default, e)
        return default
    return str((kassa or {}).get("default_jual") or default)


def _full_return_lines(original_items: list[dict]) -> list[dict]:
    # Quantities reversed, amounts zeroed; the backend reverses the money
    return [
        {
            "transaction_action": ACTION_FULL_RETURN,
            "product_code": item.get("product_code", ""),
            "quantity": -abs(int(item.get("quantity") or 0)),
            "sub_total": 0,
            "nominal_discount": 0,
            "discount": 0,
            "service_fee": 0,
            "misc": 0,
            "disc_promo": 0,
            "value_promo": 0,
            "no_promo": "",
            "promo_type": item.get("promo_type") or "",
            "up_selling": item.get("up_selling") or "N",
            "total": 0,
            "round_up": 0,
            "prescription_code": item.get("prescription_code") or "",
        }
        for item in original_items
    ]


def build_order_payload(order, auth_token: str) -> dict:
    """Resolve identifiers for an order and assemble its payload.

    Raises:
        DeviceNotConfigured: No device id for this terminal
        PosApiError: Backend refused the invoice request
        PosApiUnavailable: Backend is unreachable
        TransactionValidationError: Order data is incomplete
    """
    device_id = resolve_device_id()

    if isinstance(order, RegularSale):
        transaction_type = resolve_transaction_type(auth_token, device_id)
        return build_transaction_payload(
            device_id=device_id,
            invoice_number=api_client.get_next_invoice(auth_token, transaction_type),
            customer_id=order.customer_id,
            doctor_id=order.doctor_id,
            transaction_type=transaction_type,
            transaction_action=ACTION_SALE,
            items=order.items,
            payment=order.payment,
            totals=order.totals,
            type_info=order.type_info,
            notes=order.notes,
        )

    if isinstance(order, ItemBasedReturn):
        if not order.original_invoice_number:
            raise TransactionValidationError("Original invoice number is required")
        transaction_type = resolve_transaction_type(auth_token, device_id)
        return build_transaction_payload(
            device_id=device_id,
            invoice_number=order.original_invoice_number,
            customer_id=order.customer_id,
            doctor_id=order.doctor_id,
            transaction_type=transaction_type,
            transaction_action=ACTION_ITEM_RETURN,
            items=order.items,
            payment=order.payment,
            totals=order.totals,
            type_info=order.type_info,
            return_info=ReturnInfo(
                is_return_transaction=True,
                return_reason=order.return_reason or ITEM_RETURN_REASON,
                confirmation_retur_by=order.confirmed_by,
                invoice_number=order.original_invoice_number,
            ),
            notes=order.notes,
        )

    if isinstance(order, FullReturn):
        original = order.original_transaction
        payload = build_transaction_payload(
            device_id=device_id,
            invoice_number=original.get("invoice_number", ""),
            customer_id=original.get("customer_id"),
            doctor_id=original.get("doctor_id") or None,
            transaction_type=str(original.get("transaction_type") or settings.POS_DEFAULT_TRANSACTION_TYPE),
            transaction_action=ACTION_FULL_RETURN,
            items=order.original_items,
            payment=PaymentInfo(),
            totals=ZERO_TOTALS,
            type_info=TransactionTypeInfo.from_original(original),
            return_info=ReturnInfo(
                is_return_transaction=True,
                return_reason=order.return_reason or FULL_RETURN_REASON,
                confirmation_retur_by=order.confirmed_by,
                invoice_number=original.get("invoice_number", ""),
                original_transaction_type=str(original.get("transaction_type") or ""),
            ),
            notes=original.get("notes") or "",
        )
        payload["items"] = _full_return_lines(original.get("items") or [])
        return payload

    raise TypeError(f"Unknown transaction kind: {type(order).__name__}")


def process_transaction(order, auth_token: str) -> TransactionResult:
    """Submit a sale or return to the backend.

    Every failure comes back as an unsuccessful result carrying a display
    message and HTTP status; unexpected errors are logged with a traceback.
    """
    try:
        payload = build_order_payload(order, auth_token)
        data = api_client.create_transaction(auth_token, payload)
    except (
        DeviceNotConfigured,
        PosApiError,
        PosApiUnavailable,
        SystemServiceError,
        TransactionValidationError,
    ) as e:
        message, status = user_message(e)
        logger.error("Transaction processing error: %s", e)
        return TransactionResult(success=False, message=message, status=status)
    except Exception as e:
        logger.exception("Unexpected error while processing transaction", extra={"error": str(e)})
        message, status = user_message(e)
        return TransactionResult(success=False, message=message, status=status)

    logger.info("Transaction %s submitted", payload["invoice_number"])
    return TransactionResult(success=True, data=data, message=SUCCESS_MESSAGE)
