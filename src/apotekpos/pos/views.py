"""JSON views for the POS cart and checkout.

Every endpoint works on the session cart; ``?mode=return`` selects the
return cart instead of the regular one. Backend calls use the token put on
the request by :class:`apotekpos.core.middleware.AuthTokenMiddleware`.
"""

import json
import logging

from django.core.serializers.json import DjangoJSONEncoder
from django.http import JsonResponse
from django.utils.decorators import method_decorator
from django.views import View
from django.views.decorators.csrf import csrf_exempt

from apotekpos.core.middleware import require_auth_token

from . import api_client
from .cart import convert_transaction_item, to_decimal
from .exceptions import (
    PosApiError,
    PosApiUnavailable,
    TransactionValidationError,
)
from .messages import user_message
from .payloads import PaymentInfo, ReturnInfo, TransactionTypeInfo
from .processor import FullReturn, ItemBasedReturn, RegularSale, process_transaction
from .storage import (
    RETURN_CART,
    REGULAR_CART,
    CartStore,
    PendingBillStore,
    ReturnInfoStore,
    SelectionStore,
)
from .totals import allocate_change, calculate_totals, service_charge_for_type, transaction_totals

logger = logging.getLogger(__name__)

CARD_DETAIL_FIELDS = (
    "credit_account_number",
    "debit_account_number",
    "credit_edc_machine",
    "debit_edc_machine",
    "credit_bank",
    "debit_bank",
    "credit_card_type",
    "debit_card_type",
)


def _json(data, status=200):
    return JsonResponse(data, status=status, encoder=DjangoJSONEncoder)


def _error(message, status):
    return _json({"success": False, "message": message}, status=status)


def _exception_response(exc):
    message, status = user_message(exc)
    return _error(message, status)


def _body(request):
    """Parse a JSON request body; None when it is not a JSON object."""
    if not request.body:
        return {}
    try:
        data = json.loads(request.body)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


def _is_return(request) -> bool:
    return request.GET.get("mode") == "return"


def _cart(request) -> CartStore:
    return CartStore(request.session, RETURN_CART if _is_return(request) else REGULAR_CART)


def _parameters(request) -> dict | None:
    """Branch parameters for service charges; None when they cannot be read."""
    try:
        return api_client.get_parameters(request.auth_token)
    except (PosApiError, PosApiUnavailable) as e:
        logger.warning("Could not load branch parameters: %s", e)
        return None


def _cart_payload(cart: CartStore) -> dict:
    items, next_id = cart.load()
    return {"items": [item.to_dict() for item in items], "next_id": next_id}


def _item_response(item, warning=None, status=200):
    return _json({"success": True, "item": item.to_dict(), "stock_warning": warning}, status=status)


@method_decorator(csrf_exempt, name="dispatch")
class CartView(View):
    """GET /pos/cart/ returns the cart; DELETE /pos/cart/ empties it."""

    def get(self, request):
        return _json({"success": True, **_cart_payload(_cart(request))})

    def delete(self, request):
        cart = _cart(request)
        cart.clear()
        if cart.config.is_return:
            ReturnInfoStore(request.session).clear()
        return _json({"success": True, **_cart_payload(cart)})


@method_decorator(csrf_exempt, name="dispatch")
class CartItemsView(View):
    """Add a product to the cart.

    POST /pos/cart/items/
    {"kode_brg": "PCT500"}

    The stock record is read from the backend. Repeated adds of the same
    product raise its quantity.
    """

    @method_decorator(require_auth_token)
    def post(self, request):
        data = _body(request)
        if data is None:
            return _error("Invalid JSON", 400)

        kode_brg = (data.get("kode_brg") or "").strip()
        if not kode_brg:
            return _error("kode_brg required", 400)

        try:
            stock = api_client.get_stock(request.auth_token, kode_brg)
        except (PosApiError, PosApiUnavailable) as e:
            return _exception_response(e)
        if not stock:
            return _error("Product not found", 404)

        item, warning = _cart(request).add_stock(stock)
        return _item_response(item, warning, status=201)


@method_decorator(csrf_exempt, name="dispatch")
class CartItemQuantityView(View):
    """POST /pos/cart/items/<id>/quantity/ {"quantity": 3}"""

    @method_decorator(require_auth_token)
    def post(self, request, item_id):
        data = _body(request)
        if data is None:
            return _error("Invalid JSON", 400)
        try:
            quantity = int(data.get("quantity"))
        except (TypeError, ValueError):
            return _error("quantity must be an integer", 400)

        try:
            item, warning = _cart(request).update_quantity(item_id, quantity, _parameters(request))
        except KeyError:
            return _error("Item not found", 404)
        return _item_response(item, warning)


@method_decorator(csrf_exempt, name="dispatch")
class CartItemTypeView(View):
    """POST /pos/cart/items/<id>/type/ {"type": "R/"}"""

    @method_decorator(require_auth_token)
    def post(self, request, item_id):
        data = _body(request)
        if data is None:
            return _error("Invalid JSON", 400)
        try:
            item = _cart(request).set_type(item_id, data.get("type") or "", _parameters(request))
        except KeyError:
            return _error("Item not found", 404)
        return _item_response(item)


@method_decorator(csrf_exempt, name="dispatch")
class CartItemReturnView(View):
    """Mark an original-sale line returned, or undo it.

    POST /pos/cart/items/<id>/return/?mode=return
    DELETE /pos/cart/items/<id>/return/?mode=return
    """

    def post(self, request, item_id):
        try:
            item = _cart(request).mark_returned(item_id)
        except KeyError:
            return _error("Item not found", 404)
        except ValueError as e:
            return _error(str(e), 400)
        return _item_response(item)

    def delete(self, request, item_id):
        try:
            item = _cart(request).undo_return(item_id)
        except KeyError:
            return _error("Item not found", 404)
        except ValueError as e:
            return _error(str(e), 400)
        return _item_response(item)


def _line_change(cart, method, *args):
    """Run a line adjustment on the cart and answer with the changed line."""
    try:
        item = getattr(cart, method)(*args)
    except KeyError:
        return _error("Item not found", 404)
    except ValueError as e:
        return _error(str(e), 400)
    return _item_response(item)


def _find_promo(auth_token: str, no_promo: str, product_code: str) -> dict | None:
    """The promo record with this number that applies to the product."""
    page = api_client.list_promos(auth_token, search=no_promo)
    for promo in page.docs:
        if promo.get("no_promo") != no_promo:
            continue
        if promo.get("kd_brgdg") in (None, "", product_code):
            return promo
    return None


@method_decorator(csrf_exempt, name="dispatch")
class CartItemMiscView(View):
    """POST /pos/cart/items/<id>/misc/ {"amount": 2000}"""

    def post(self, request, item_id):
        data = _body(request)
        if data is None:
            return _error("Invalid JSON", 400)
        try:
            amount = to_decimal(data.get("amount"))
        except ValueError as e:
            return _error(str(e), 400)
        return _line_change(_cart(request), "add_misc", item_id, amount)


@method_decorator(csrf_exempt, name="dispatch")
class CartItemPromoView(View):
    """Apply an item promo to a line, or take it off.

    POST /pos/cart/items/<id>/promo/
    {"no_promo": "PR01"}

    The promo is looked up in the backend promo list. Its ``disc_promo`` is
    the rate; ``nilai_promo``, when set, is the amount off the line.
    """

    @method_decorator(require_auth_token)
    def post(self, request, item_id):
        data = _body(request)
        if data is None:
            return _error("Invalid JSON", 400)
        no_promo = str(data.get("no_promo") or "").strip()
        if not no_promo:
            return _error("no_promo required", 400)

        cart = _cart(request)
        items, _next_id = cart.load()
        item = next((line for line in items if line.id == item_id), None)
        if item is None:
            return _error("Item not found", 404)

        try:
            promo = _find_promo(request.auth_token, no_promo, item.product_code)
        except (PosApiError, PosApiUnavailable) as e:
            return _exception_response(e)
        if promo is None:
            return _error("Promo not found", 404)

        try:
            rate = to_decimal(promo.get("disc_promo"))
            amount = to_decimal(promo.get("nilai_promo")) or None
        except ValueError as e:
            return _error(str(e), 400)
        promo_type = str(data.get("promo_type") or "1")
        return _line_change(cart, "apply_promo", item_id, no_promo, rate, amount, promo_type)

    def delete(self, request, item_id):
        return _line_change(_cart(request), "clear_promo", item_id)


@method_decorator(csrf_exempt, name="dispatch")
class CartItemDiscountView(View):
    """POST /pos/cart/items/<id>/discount/ {"discount_percentage": 10}"""

    def post(self, request, item_id):
        data = _body(request)
        if data is None:
            return _error("Invalid JSON", 400)
        try:
            rate = to_decimal(data.get("discount_percentage"))
        except ValueError as e:
            return _error(str(e), 400)
        return _line_change(_cart(request), "set_discount", item_id, rate)


@method_decorator(csrf_exempt, name="dispatch")
class CartDiscountView(View):
    """POST /pos/cart/discount/ {"discount_percentage": 5} discounts every new line."""

    def post(self, request):
        data = _body(request)
        if data is None:
            return _error("Invalid JSON", 400)
        try:
            rate = to_decimal(data.get("discount_percentage"))
        except ValueError as e:
            return _error(str(e), 400)

        cart = _cart(request)
        try:
            cart.set_global_discount(rate)
        except ValueError as e:
            return _error(str(e), 400)
        return _json({"success": True, **_cart_payload(cart)})


@method_decorator(csrf_exempt, name="dispatch")
class CartItemUpSellingView(View):
    """POST /pos/cart/items/<id>/up-selling/ with {"up": true|false}; no body toggles."""

    def post(self, request, item_id):
        data = _body(request)
        if data is None:
            return _error("Invalid JSON", 400)
        up = data.get("up")
        if up is not None and not isinstance(up, bool):
            return _error("up must be true or false", 400)
        return _line_change(_cart(request), "set_up_selling", item_id, up)


@method_decorator(csrf_exempt, name="dispatch")
class CartItemView(View):
    """DELETE /pos/cart/items/<id>/"""

    def delete(self, request, item_id):
        try:
            returned = _cart(request).remove(item_id)
        except KeyError:
            return _error("Item not found", 404)
        if returned is not None:
            return _item_response(returned)
        return _json({"success": True, "item": None})


@method_decorator(csrf_exempt, name="dispatch")
class CartTotalsView(View):
    """GET /pos/cart/totals/"""

    @method_decorator(require_auth_token)
    def get(self, request):
        cart = _cart(request)
        items, _next_id = cart.load()
        totals = calculate_totals(items, _parameters(request), is_return=cart.config.is_return)
        return _json(
            {
                "success": True,
                "totals": {
                    **totals._asdict(),
                    "grand_total": totals.grand_total,
                },
            }
        )


@method_decorator(csrf_exempt, name="dispatch")
class LoadTransactionView(View):
    """Load an earlier sale into the return cart.

    POST /pos/cart/load-transaction/
    {"transaction_id": "123"}
    """

    @method_decorator(require_auth_token)
    def post(self, request):
        data = _body(request)
        if data is None:
            return _error("Invalid JSON", 400)
        transaction_id = str(data.get("transaction_id") or "").strip()
        if not transaction_id:
            return _error("transaction_id required", 400)

        try:
            transaction = api_client.get_transaction(request.auth_token, transaction_id)
        except (PosApiError, PosApiUnavailable) as e:
            return _exception_response(e)
        if not transaction or not transaction.get("items"):
            return _error("Transaction has no items", 404)

        cart = CartStore(request.session, RETURN_CART)
        cart.load_transaction(transaction)
        ReturnInfoStore(request.session).save(
            ReturnInfo(
                is_return_transaction=True,
                invoice_number=transaction.get("invoice_number", ""),
                original_transaction_type=str(transaction.get("transaction_type") or ""),
            )
        )
        return _json({"success": True, **_cart_payload(cart)})


@method_decorator(csrf_exempt, name="dispatch")
class CustomerSelectionView(View):
    """POST /pos/selection/customer/ with the customer record."""

    def post(self, request):
        data = _body(request)
        if data is None:
            return _error("Invalid JSON", 400)
        if data.get("id") in (None, ""):
            return _error("Customer id required", 400)
        SelectionStore(request.session).save_customer(data)
        return _json({"success": True, "customer": data})


@method_decorator(csrf_exempt, name="dispatch")
class DoctorSelectionView(View):
    """POST /pos/selection/doctor/ with the doctor record."""

    def post(self, request):
        data = _body(request)
        if data is None:
            return _error("Invalid JSON", 400)
        if data.get("id") in (None, ""):
            return _error("Doctor id required", 400)
        SelectionStore(request.session).save_doctor(data)
        return _json({"success": True, "doctor": data})


@method_decorator(csrf_exempt, name="dispatch")
class SelectionView(View):
    """GET /pos/selection/ shows the chosen customer and doctor; DELETE clears both."""

    def get(self, request):
        selection = SelectionStore(request.session)
        return _json({"success": True, "customer": selection.get_customer(), "doctor": selection.get_doctor()})

    def delete(self, request):
        SelectionStore(request.session).clear()
        return _json({"success": True})


@method_decorator(csrf_exempt, name="dispatch")
class PendingBillsView(View):
    """List parked bills, or park the current cart.

    POST /pos/pending-bills/
    {"notes": "picks up after lunch"}
    """

    def get(self, request):
        return _json({"success": True, "bills": PendingBillStore(request.session).list()})

    def post(self, request):
        data = _body(request)
        if data is None:
            return _error("Invalid JSON", 400)

        customer = SelectionStore(request.session).get_customer()
        try:
            bill_id = PendingBillStore(request.session).save(_cart(request), customer, data.get("notes", ""))
        except ValueError as e:
            return _error(str(e), 400)
        return _json({"success": True, "bill_id": bill_id}, status=201)


@method_decorator(csrf_exempt, name="dispatch")
class PendingBillRestoreView(View):
    """POST /pos/pending-bills/<bill_id>/restore/"""

    def post(self, request, bill_id):
        cart = _cart(request)
        bill = PendingBillStore(request.session).restore(bill_id, cart)
        if bill is None:
            return _error("Pending bill not found", 404)
        if bill.get("customer"):
            SelectionStore(request.session).save_customer(bill["customer"])
        return _json({"success": True, **_cart_payload(cart)})


@method_decorator(csrf_exempt, name="dispatch")
class PendingBillView(View):
    """DELETE /pos/pending-bills/<bill_id>/"""

    def delete(self, request, bill_id):
        if not PendingBillStore(request.session).delete(bill_id):
            return _error("Pending bill not found", 404)
        return _json({"success": True})


def _payment_lines(items, parameters):
    # Named lines only; service charge repriced from the branch parameters
    lines = []
    for item in items:
        if not item.name:
            continue
        charge = service_charge_for_type(item.type, parameters)
        item.sc = -charge if item.quantity < 0 else charge
        lines.append(item)
    return lines


def _type_info(data: dict) -> TransactionTypeInfo | None:
    info = data.get("type_info")
    if not isinstance(info, dict):
        return None
    return TransactionTypeInfo(
        medicine_type=info.get("medicine_type", ""),
        transaction_type=info.get("transaction_type", ""),
        availability=info.get("availability", ""),
    )


@method_decorator(csrf_exempt, name="dispatch")
class CheckoutView(View):
    """Pay and submit the current cart.

    POST /pos/checkout/
    {
        "cash": 50000, "debit": 0, "credit": 0,
        "type_info": {"medicine_type": "Ready to Use", ...},
        "notes": ""
    }

    With ``?mode=return`` the return cart is submitted as an item-based
    return. ``{"full_return": true, "transaction_id": "..."}`` reverses a
    whole earlier sale instead.
    """

    @method_decorator(require_auth_token)
    def post(self, request):
        data = _body(request)
        if data is None:
            return _error("Invalid JSON", 400)

        if data.get("full_return"):
            return self._full_return(request, data)

        cart = _cart(request)
        selection = SelectionStore(request.session)
        items, _next_id = cart.load()
        lines = _payment_lines(items, _parameters(request))
        if not lines:
            return _error("Cart is empty", 400)

        customer_id = selection.get_customer_id()
        if customer_id in (None, ""):
            return _error("Please select a customer", 400)

        totals = transaction_totals(lines, is_return=cart.config.is_return)
        try:
            tendered = {name: to_decimal(data.get(name)) for name in ("cash", "debit", "credit")}
        except ValueError as e:
            return _error(str(e), 400)

        try:
            breakdown = allocate_change(max(totals.correct_total_amount, 0), **tendered)
        except TransactionValidationError as e:
            return _exception_response(e)

        payment = PaymentInfo.from_breakdown(
            breakdown,
            **{name: data.get(name) or None for name in CARD_DETAIL_FIELDS},
        )

        if cart.config.is_return:
            return_info = ReturnInfoStore(request.session).get()
            order = ItemBasedReturn(
                items=lines,
                customer_id=customer_id,
                doctor_id=selection.get_doctor_id(),
                payment=payment,
                totals=totals,
                type_info=_type_info(data),
                original_invoice_number=data.get("invoice_number") or return_info.invoice_number,
                return_reason=data.get("return_reason") or return_info.return_reason,
                confirmed_by=data.get("confirmed_by") or return_info.confirmation_retur_by or "cashier",
                notes=data.get("notes", ""),
            )
        else:
            order = RegularSale(
                items=lines,
                customer_id=customer_id,
                doctor_id=selection.get_doctor_id(),
                payment=payment,
                totals=totals,
                type_info=_type_info(data),
                notes=data.get("notes", ""),
            )

        result = process_transaction(order, request.auth_token)
        if not result.success:
            return _error(result.message, result.status)

        cart.clear()
        if cart.config.is_return:
            ReturnInfoStore(request.session).clear()
        else:
            selection.clear()

        return _json(
            {
                "success": True,
                "message": result.message,
                "data": result.data,
                "payment": breakdown._asdict(),
            }
        )

    def _full_return(self, request, data):
        transaction_id = str(data.get("transaction_id") or "").strip()
        if not transaction_id:
            return _error("transaction_id required", 400)

        try:
            original = api_client.get_transaction(request.auth_token, transaction_id)
        except (PosApiError, PosApiUnavailable) as e:
            return _exception_response(e)
        if not original:
            return _error("Transaction not found", 404)

        order = FullReturn(
            original_transaction=original,
            original_items=[
                convert_transaction_item(line, index)
                for index, line in enumerate(original.get("items") or [], start=1)
            ],
            return_reason=data.get("return_reason", ""),
            confirmed_by=data.get("confirmed_by") or "cashier",
        )
        result = process_transaction(order, request.auth_token)
        if not result.success:
            return _error(result.message, result.status)

        CartStore(request.session, RETURN_CART).clear()
        ReturnInfoStore(request.session).clear()
        return _json({"success": True, "message": result.message, "data": result.data})
