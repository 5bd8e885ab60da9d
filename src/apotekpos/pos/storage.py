"""Session-backed state of the POS terminal.

The cart, the selected customer and doctor, return details and pending
bills are kept in the Django session under fixed keys. Each store wraps a
dict-like ``storage`` (normally ``request.session``).
"""

import json
import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal

from django.utils import timezone

from .cart import (
    CartItem,
    adjusted,
    convert_stock_to_item,
    convert_to_return_item,
    convert_transaction_item,
    stock_warning,
    with_quantity,
)
from .payloads import ReturnInfo
from .totals import HUNDRED, ZERO, round_money, service_charge_for_type

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CartConfig:
    is_return: bool
    products_key: str
    next_id_key: str


REGULAR_CART = CartConfig(is_return=False, products_key="pos-products", next_id_key="pos-next-id")
RETURN_CART = CartConfig(is_return=True, products_key="return-pos-products", next_id_key="return-pos-next-id")

CUSTOMER_KEY = "pos-selected-customer"
DOCTOR_KEY = "pos-selected-doctor"
RETURN_INFO_KEY = "return-transaction-info"
PENDING_BILLS_KEY = "pos-pending-bills"


def _check_discount_rate(rate: Decimal) -> None:
    if rate < ZERO or rate > HUNDRED:
        raise ValueError("Discount must be between 0 and 100")


def _decode(raw):
    # Values written by the browser build arrive as JSON strings
    if isinstance(raw, str):
        return json.loads(raw)
    return raw


class CartStore:
    """Cart lines and the next line id for one cart."""

    def __init__(self, storage, config: CartConfig = REGULAR_CART):
        self.storage = storage
        self.config = config

    def load(self) -> tuple[list[CartItem], int]:
        """Read the cart; unreadable data gives an empty cart."""
        items = []
        raw_items = self.storage.get(self.config.products_key)
        if raw_items:
            try:
                items = [CartItem.from_dict(data) for data in _decode(raw_items)]
            except (TypeError, ValueError, AttributeError) as e:
                logger.warning("Discarding unreadable cart %s: %s", self.config.products_key, e)
                items = []

        next_id = 1
        raw_next_id = self.storage.get(self.config.next_id_key)
        if raw_next_id not in (None, ""):
            try:
                next_id = int(raw_next_id)
            except (TypeError, ValueError):
                logger.warning("Discarding unreadable next id %r", raw_next_id)
                next_id = 1
        return items, next_id

    def save(self, items: list[CartItem], next_id: int) -> None:
        self.storage[self.config.products_key] = [item.to_dict() for item in items]
        self.storage[self.config.next_id_key] = next_id

    def clear(self) -> None:
        self.save([], 1)

    def add_stock(self, stock: dict) -> tuple[CartItem, str | None]:
        """Add a product from a stock record.

        A product already in the cart gets its quantity raised by one
        instead of a second line.

        Returns:
            The added or updated line and a stock warning (None if stock
            covers the quantity)
        """
        items, next_id = self.load()
        kode_brg = stock.get("kode_brg", "")

        for index, item in enumerate(items):
            if item.product_code == kode_brg and not item.is_original_return_item:
                if stock.get("q_akhir") is not None:
                    item.available_stock = int(stock["q_akhir"])
                updated = with_quantity(item, item.quantity + 1, item.sc)
                items[index] = updated
                self.save(items, next_id)
                return updated, stock_warning(updated, updated.quantity)

        item = convert_stock_to_item(stock, next_id)
        items.append(item)
        self.save(items, next_id + 1)
        return item, stock_warning(item, item.quantity)

    def update_quantity(self, item_id: int, quantity: int, parameters: dict | None = None) -> tuple[CartItem, str | None]:
        """Set the quantity of a line and recompute its amounts.

        Raises:
            KeyError: No line with that id
        """
        items, next_id = self.load()
        index = self._index(items, item_id)
        item = items[index]
        updated = with_quantity(item, quantity, service_charge_for_type(item.type, parameters))
        items[index] = updated
        self.save(items, next_id)
        return updated, stock_warning(updated, updated.quantity)

    def set_type(self, item_id: int, line_type: str, parameters: dict | None = None) -> CartItem:
        """Change the prescription type of a line and reprice its service charge."""
        items, next_id = self.load()
        index = self._index(items, item_id)
        item = items[index]
        item.type = line_type or ""
        updated = with_quantity(item, item.quantity, service_charge_for_type(item.type, parameters))
        items[index] = updated
        self.save(items, next_id)
        return updated

    def mark_returned(self, item_id: int) -> CartItem:
        """Flag an original-sale line as returned, negating its amounts."""
        items, next_id = self.load()
        index = self._index(items, item_id)
        item = items[index]
        if not item.is_original_return_item:
            raise ValueError("Only lines of the original sale can be returned")
        returned = convert_to_return_item(item)
        returned.is_deleted = True
        items[index] = returned
        self.save(items, next_id)
        return returned

    def undo_return(self, item_id: int) -> CartItem:
        """Put a returned original-sale line back to positive amounts."""
        items, next_id = self.load()
        index = self._index(items, item_id)
        item = items[index]
        if not item.is_original_return_item:
            raise ValueError("Only lines of the original sale can be returned")
        restored = CartItem.from_dict(item.to_dict())
        restored.is_deleted = False
        for name in ("quantity", "subtotal", "nominal_discount", "sc", "misc", "disc_promo", "round_up", "total"):
            setattr(restored, name, abs(getattr(restored, name)))
        items[index] = restored
        self.save(items, next_id)
        return restored

    def remove(self, item_id: int) -> CartItem | None:
        """Remove a line.

        In a return cart, original-sale lines are never dropped: removing
        one marks it returned.

        Returns:
            The returned line, or None when the line was dropped
        """
        items, next_id = self.load()
        index = self._index(items, item_id)
        if items[index].is_original_return_item:
            return self.mark_returned(item_id)
        del items[index]
        self.save(items, next_id)
        return None

    def add_misc(self, item_id: int, amount: Decimal) -> CartItem:
        """Add a misc charge (compounding, packaging) on top of a line's misc."""
        if amount <= ZERO:
            raise ValueError("Misc amount must be greater than zero")
        return self._change_line(item_id, lambda item: {"misc": item.misc + amount})

    def apply_promo(
        self,
        item_id: int,
        no_promo: str,
        rate: Decimal = ZERO,
        amount: Decimal | None = None,
        promo_type: str = "1",
    ) -> CartItem:
        """Put an item promo on a line.

        Args:
            item_id: Cart line id
            no_promo: Promo number
            rate: Promo percentage, stored as value_promo
            amount: Promo amount off the line; taken from the rate and the
                line subtotal when not given
            promo_type: Promo type code
        """
        if not no_promo:
            raise ValueError("Promo number is required")
        if rate < ZERO or rate > HUNDRED:
            raise ValueError("Promo rate must be between 0 and 100")
        if amount is not None and amount < ZERO:
            raise ValueError("Promo amount cannot be negative")

        def change(item):
            promo_amount = amount if amount is not None else round_money(item.subtotal * rate / HUNDRED)
            return {
                "no_promo": no_promo,
                "disc_promo": promo_amount,
                "value_promo": rate,
                "promo_type": promo_type or "1",
            }

        return self._change_line(item_id, change)

    def clear_promo(self, item_id: int) -> CartItem:
        return self._change_line(
            item_id,
            lambda item: {"no_promo": "", "disc_promo": ZERO, "value_promo": ZERO, "promo_type": "1"},
        )

    def set_discount(self, item_id: int, rate: Decimal) -> CartItem:
        """Set the percentage discount of one line."""
        _check_discount_rate(rate)
        return self._change_line(item_id, lambda item: {"discount_percentage": rate, "nominal_discount": ZERO})

    def set_global_discount(self, rate: Decimal) -> list[CartItem]:
        """Set the percentage discount of every line added in this cart.

        Lines loaded from an earlier sale keep the discount they were sold with.
        """
        _check_discount_rate(rate)
        items, next_id = self.load()
        changed = []
        for index, item in enumerate(items):
            if item.is_original_return_item:
                continue
            items[index] = adjusted(item, discount_percentage=rate, nominal_discount=ZERO)
            changed.append(items[index])
        self.save(items, next_id)
        return changed

    def set_up_selling(self, item_id: int, up: bool | None = None) -> CartItem:
        """Flag a line as an upsell; toggles the flag when up is None."""

        def change(item):
            flag = item.up != "Y" if up is None else up
            return {"up": "Y" if flag else "N"}

        return self._change_line(item_id, change)

    def _change_line(self, item_id: int, change) -> CartItem:
        # change(item) gives the fields to replace; the total follows
        items, next_id = self.load()
        index = self._index(items, item_id)
        item = items[index]
        if item.is_deleted:
            raise ValueError("A returned line cannot be changed")
        updated = adjusted(item, **change(item))
        items[index] = updated
        self.save(items, next_id)
        return updated

    def load_transaction(self, transaction: dict) -> list[CartItem]:
        """Replace the cart with the lines of an earlier transaction."""
        lines = transaction.get("items") or []
        items = [convert_transaction_item(line, index) for index, line in enumerate(lines, start=1)]
        self.save(items, len(items) + 1)
        return items

    @staticmethod
    def _index(items: list[CartItem], item_id: int) -> int:
        for index, item in enumerate(items):
            if item.id == item_id:
                return index
        raise KeyError(item_id)


class SelectionStore:
    """Customer and doctor chosen for the current sale."""

    def __init__(self, storage):
        self.storage = storage

    def save_customer(self, customer: dict) -> None:
        self.storage[CUSTOMER_KEY] = customer

    def get_customer(self) -> dict | None:
        return self._get(CUSTOMER_KEY)

    def get_customer_id(self):
        customer = self.get_customer()
        return customer.get("id") if customer else None

    def clear_customer(self) -> None:
        self.storage.pop(CUSTOMER_KEY, None)

    def save_doctor(self, doctor: dict) -> None:
        self.storage[DOCTOR_KEY] = doctor

    def get_doctor(self) -> dict | None:
        return self._get(DOCTOR_KEY)

    def get_doctor_id(self):
        doctor = self.get_doctor()
        return doctor.get("id") if doctor else None

    def clear_doctor(self) -> None:
        self.storage.pop(DOCTOR_KEY, None)

    def clear(self) -> None:
        self.clear_customer()
        self.clear_doctor()

    def _get(self, key: str) -> dict | None:
        raw = self.storage.get(key)
        if not raw:
            return None
        try:
            data = _decode(raw)
        except ValueError as e:
            logger.warning("Discarding unreadable %s: %s", key, e)
            return None
        return data if isinstance(data, dict) else None


class ReturnInfoStore:
    def __init__(self, storage):
        self.storage = storage

    def save(self, return_info: ReturnInfo) -> None:
        self.storage[RETURN_INFO_KEY] = return_info.to_dict()

    def get(self) -> ReturnInfo:
        raw = self.storage.get(RETURN_INFO_KEY)
        if not raw:
            return ReturnInfo(is_return_transaction=True)
        try:
            return ReturnInfo.from_dict(_decode(raw))
        except (TypeError, ValueError, AttributeError) as e:
            logger.warning("Discarding unreadable return info: %s", e)
            return ReturnInfo(is_return_transaction=True)

    def clear(self) -> None:
        self.storage.pop(RETURN_INFO_KEY, None)


class PendingBillStore:
    """Carts parked for later completion."""

    def __init__(self, storage):
        self.storage = storage

    def _bills(self) -> list[dict]:
        raw = self.storage.get(PENDING_BILLS_KEY)
        if not raw:
            return []
        try:
            bills = _decode(raw)
        except ValueError as e:
            logger.warning("Discarding unreadable pending bills: %s", e)
            return []
        return bills if isinstance(bills, list) else []

    def save(self, cart: CartStore, customer: dict | None = None, notes: str = "") -> str:
        """Park the contents of a cart and empty it.

        Raises:
            ValueError: The cart has no lines
        """
        items, next_id = cart.load()
        if not items:
            raise ValueError("Cannot save an empty cart as a pending bill")

        bill_id = f"PB-{timezone.now():%Y%m%d%H%M%S}-{uuid.uuid4().hex[:6].upper()}"
        bills = self._bills()
        bills.append(
            {
                "bill_id": bill_id,
                "created_at": timezone.now().isoformat(),
                "customer": customer,
                "items": [item.to_dict() for item in items],
                "next_id": next_id,
                "notes": notes or "",
            }
        )
        self.storage[PENDING_BILLS_KEY] = bills
        cart.clear()
        logger.info("Saved pending bill %s with %d items", bill_id, len(items))
        return bill_id

    def list(self) -> list[dict]:
        return self._bills()

    def get(self, bill_id: str) -> dict | None:
        for bill in self._bills():
            if bill.get("bill_id") == bill_id:
                return bill
        return None

    def restore(self, bill_id: str, cart: CartStore) -> dict | None:
        """Load a parked bill back into a cart and drop it from the list."""
        bill = self.get(bill_id)
        if bill is None:
            return None
        items = [CartItem.from_dict(data) for data in bill.get("items") or []]
        cart.save(items, int(bill.get("next_id") or len(items) + 1))
        self.delete(bill_id)
        return bill

    def delete(self, bill_id: str) -> bool:
        bills = self._bills()
        remaining = [bill for bill in bills if bill.get("bill_id") != bill_id]
        if len(remaining) == len(bills):
            return False
        self.storage[PENDING_BILLS_KEY] = remaining
        return True
