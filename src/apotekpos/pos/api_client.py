"""HTTP client for the POS backend.

Every call carries the cashier's bearer token. Responses arrive wrapped in
``{"message": ..., "data": ...}``; the functions here unwrap ``data`` and
raise from :mod:`apotekpos.pos.exceptions` on failure.
"""

import json
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

import httpx
from django.conf import settings

from .exceptions import (
    PosApiError,
    PosApiTimeout,
    PosApiUnavailable,
    SessionExpired,
    TransactionValidationError,
)

logger = logging.getLogger(__name__)

DEFAULT_PAGE_LIMIT = 100
MAX_TRANSACTION_PAGE_LIMIT = 100
PASSTHROUGH_LIST_PARAMS = ("search", "sort_by", "sort_order")


@dataclass
class Page:
    """One page of a paginated backend listing."""

    docs: list[dict] = field(default_factory=list)
    total_docs: int = 0
    page: int = 1
    total_pages: int = 0

    @classmethod
    def from_data(cls, data: Any) -> "Page":
        if isinstance(data, list):
            return cls(docs=data, total_docs=len(data), page=1, total_pages=1 if data else 0)
        return cls(
            docs=data.get("docs") or [],
            total_docs=int(data.get("totalDocs") or 0),
            page=int(data.get("page") or 1),
            total_pages=int(data.get("totalPages") or 0),
        )


def bearer(auth_token: str) -> str:
    """Return the Authorization header value for a token."""
    return auth_token if auth_token.startswith("Bearer ") else f"Bearer {auth_token}"


def _json_default(value):
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def dumps(payload: Any) -> str:
    """Serialize a payload, sending Decimal amounts as JSON numbers."""
    return json.dumps(payload, default=_json_default)


def _get_client(auth_token: str, base_url: str | None = None) -> httpx.Client:
    """Get a configured httpx client."""
    return httpx.Client(
        base_url=base_url or settings.POS_API_BASE_URL,
        timeout=settings.POS_API_TIMEOUT,
        headers={
            "Content-Type": "application/json",
            "Accept": "application/json",
            "Authorization": bearer(auth_token),
        },
    )


def _handle_response(response: httpx.Response) -> dict:
    """Handle response from the POS backend."""
    if 200 <= response.status_code < 300:
        return response.json()

    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}

    if response.status_code == 401:
        raise SessionExpired(errors=body.get("errors"))

    raise PosApiError(
        status=response.status_code,
        message=body.get("message"),
        errors=body.get("errors"),
    )


def _send(method: str, path: str, auth_token: str, *, params=None, payload=None, base_url=None) -> dict:
    try:
        with _get_client(auth_token, base_url) as client:
            if method == "GET":
                response = client.get(path, params=params)
            elif method == "POST":
                response = client.post(path, params=params, content=dumps(payload if payload is not None else {}))
            else:
                raise ValueError(f"Unsupported method: {method}")
            return _handle_response(response)
    except httpx.TimeoutException as e:
        logger.error("POS backend timed out on %s %s: %s", method, path, e)
        raise PosApiTimeout(str(e)) from e
    except httpx.RequestError as e:
        logger.error("POS backend unavailable on %s %s: %s", method, path, e)
        raise PosApiUnavailable(str(e)) from e


def _list_params(offset: int, limit: int, **optional) -> dict:
    params = {"offset": str(offset), "limit": str(limit)}
    for name in PASSTHROUGH_LIST_PARAMS:
        value = optional.get(name)
        if value:
            params[name] = value
    return params


def _paginated(path: str, auth_token: str, params: dict) -> Page:
    body = _send("GET", path, auth_token, params=params)
    if body.get("data") is None:
        raise PosApiError(status=400, message=body.get("message") or "No data returned")
    return Page.from_data(body["data"])


# Customers and doctors


def list_customers(
    auth_token: str,
    offset: int = 0,
    limit: int = DEFAULT_PAGE_LIMIT,
    search: str | None = None,
    sort_by: str | None = None,
    sort_order: str | None = None,
) -> Page:
    """List customers, optionally filtered by a search term."""
    params = _list_params(offset, limit, search=search, sort_by=sort_by, sort_order=sort_order)
    return _paginated("/customer", auth_token, params)


def create_customer(auth_token: str, customer: dict) -> dict:
    """Register a new customer and return the stored record."""
    return _send("POST", "/customer", auth_token, payload=customer).get("data")


def list_doctors(
    auth_token: str,
    offset: int = 0,
    limit: int = DEFAULT_PAGE_LIMIT,
    search: str | None = None,
    sort_by: str | None = None,
    sort_order: str | None = None,
) -> Page:
    """List prescribing doctors."""
    params = _list_params(offset, limit, search=search, sort_by=sort_by, sort_order=sort_order)
    return _paginated("/doctor", auth_token, params)


def create_doctor(auth_token: str, doctor: dict) -> dict:
    """Register a new doctor and return the stored record."""
    return _send("POST", "/doctor", auth_token, payload=doctor).get("data")


# Stock and promos


def search_stock(
    auth_token: str,
    search: str | None = None,
    offset: int = 0,
    limit: int = DEFAULT_PAGE_LIMIT,
) -> Page:
    """Search the branch stock by name, code or barcode."""
    return _paginated("/stock", auth_token, _list_params(offset, limit, search=search))


def get_stock(auth_token: str, kode_brg: str) -> dict:
    """Get one stock record by product code."""
    if not kode_brg:
        raise ValueError("Product code is required")
    return _send("GET", f"/stock/{kode_brg}", auth_token).get("data")


def get_branch_wide_stock(auth_token: str, kode_brg: str) -> dict:
    """Get a stock record with quantities across all branches."""
    if not kode_brg:
        raise ValueError("Product code is required")
    body = _send("GET", f"/stock/{kode_brg}", auth_token, params={"with_stock_details": "true"})
    return body.get("data")


def list_promos(
    auth_token: str,
    offset: int = 0,
    limit: int = DEFAULT_PAGE_LIMIT,
    search: str | None = None,
) -> Page:
    """List active promos."""
    return _paginated("/promo", auth_token, _list_params(offset, limit, search=search))


# Parameters and kassa


def get_parameters(auth_token: str) -> dict:
    """Get the branch parameter record (service charges, round-up, receipt text)."""
    return _send("GET", "/parameter/me", auth_token).get("data") or {}


def upsert_parameters(auth_token: str, changes: dict) -> dict:
    """Create or update branch parameters."""
    return _send("POST", "/parameter/upsert", auth_token, payload=changes).get("data")


def get_kassa(auth_token: str, device_id: str) -> dict | None:
    """Get the kassa (register) record bound to a device id."""
    if not device_id:
        raise ValueError("Device ID is required")
    return _send("GET", f"/kassa/{device_id}", auth_token).get("data")


def upsert_kassa(auth_token: str, device_id: str, kassa: dict) -> dict:
    """Create or update the kassa record for a device id."""
    if not device_id:
        raise ValueError("Device ID is required")
    return _send("POST", f"/kassa/{device_id}/upsert", auth_token, payload=kassa).get("data")


def get_next_queue_number(auth_token: str) -> int:
    """Take the next customer queue number from the queue service."""
    body = _send("GET", "/queue/next-counter", auth_token, base_url=settings.POS_QUEUE_URL)
    return int((body.get("data") or {}).get("queue_number") or 0)


# Transactions


def get_next_invoice(auth_token: str, transaction_type: str = "1") -> str:
    """Reserve the next invoice number for a transaction type."""
    body = _send(
        "GET",
        "/transaction/next-invoice",
        auth_token,
        params={"transaction_type": transaction_type or "1"},
    )
    invoice_number = (body.get("data") or {}).get("invoice_number")
    if not invoice_number:
        raise PosApiError(status=502, message=body.get("message") or "Backend returned no invoice number")
    return invoice_number


def list_transactions(
    auth_token: str,
    offset: int = 0,
    limit: int = 10,
    from_date: str | None = None,
    to_date: str | None = None,
) -> Page:
    """List past transactions, newest first, optionally within a date range."""
    if offset < 0 or limit < 1 or limit > MAX_TRANSACTION_PAGE_LIMIT:
        raise ValueError("Invalid pagination parameters")

    params = {"offset": str(offset), "limit": str(limit)}
    if from_date:
        params["from_date"] = from_date
    if to_date:
        params["to_date"] = to_date

    body = _send("GET", "/transaction", auth_token, params=params)
    return Page.from_data(body.get("data") or {})


def get_transaction(auth_token: str, transaction_id: str) -> dict:
    """Get one transaction with its line items."""
    if not transaction_id or not str(transaction_id).strip():
        raise ValueError("Transaction ID is required")
    return _send("GET", "/transaction/one", auth_token, params={"id": str(transaction_id).strip()}).get("data")


def get_transaction_by_invoice(auth_token: str, invoice_number: str) -> dict:
    """Get one transaction by its invoice number."""
    if not invoice_number:
        raise ValueError("Invoice number is required")
    body = _send("GET", "/transaction/invoice", auth_token, params={"invoice_number": invoice_number})
    return body.get("data")


def create_transaction(auth_token: str, payload: dict) -> dict:
    """Submit a sale or return transaction.

    Raises:
        TransactionValidationError: Payload is missing the invoice number,
            customer or line items
        PosApiError: Backend rejected the transaction
        PosApiUnavailable: Backend is unreachable
    """
    if not payload.get("invoice_number"):
        raise TransactionValidationError("Invoice number is required")
    if payload.get("customer_id") is None:
        raise TransactionValidationError("Customer ID is required")
    if not payload.get("items"):
        raise TransactionValidationError("Transaction items are required")

    logger.info(
        "Creating transaction %s (type=%s action=%s, %d items)",
        payload["invoice_number"],
        payload.get("transaction_type"),
        payload.get("transaction_action"),
        len(payload["items"]),
    )
    return _send("POST", "/transaction", auth_token, payload=payload)


def print_transaction(auth_token: str, transaction_id: str) -> dict:
    """Ask the backend to send a transaction receipt to the printer."""
    if not transaction_id:
        raise ValueError("Transaction ID is required")
    return _send("POST", f"/transaction/{transaction_id}/print", auth_token).get("data")
