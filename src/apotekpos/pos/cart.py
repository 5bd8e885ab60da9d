"""Cart line items and conversions.

A cart line is built from a stock record when the cashier adds a product,
or from a historical transaction line when a sale is loaded for return.
"""

import dataclasses
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from .totals import ZERO, line_total

OUT_OF_STOCK = "out-of-stock"
INSUFFICIENT_STOCK = "insufficient-stock"

DECIMAL_FIELDS = (
    "price",
    "subtotal",
    "discount_percentage",
    "nominal_discount",
    "sc",
    "misc",
    "disc_promo",
    "value_promo",
    "round_up",
    "total",
)


def to_decimal(value) -> Decimal:
    """Coerce a JSON number or numeric string to Decimal (blank is zero)."""
    if value is None or value == "":
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    try:
        return Decimal(value)
    except (InvalidOperation, TypeError) as e:
        raise ValueError(f"Invalid amount: {value!r}") from e


@dataclass
class CartItem:
    """One line of a POS cart."""

    id: int
    name: str
    price: Decimal = ZERO
    quantity: int = 1
    subtotal: Decimal = ZERO
    type: str = ""
    # discount_percentage is a rate (0-100); nominal_discount a fixed amount
    discount_percentage: Decimal = ZERO
    nominal_discount: Decimal = ZERO
    sc: Decimal = ZERO
    misc: Decimal = ZERO
    disc_promo: Decimal = ZERO
    value_promo: Decimal = ZERO
    no_promo: str = ""
    promo_type: str = "1"
    round_up: Decimal = ZERO
    up: str = "N"
    no_voucher: int = 0
    total: Decimal = ZERO
    product_code: str = ""
    available_stock: int | None = None
    is_original_return_item: bool = False
    is_deleted: bool = False
    stock: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Serialize for session storage (amounts as strings)."""
        data = dataclasses.asdict(self)
        for name in DECIMAL_FIELDS:
            data[name] = str(data[name])
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "CartItem":
        """Rebuild a line from stored data.

        Carts saved by older terminals carry ``discount`` (a rate) and
        ``promo`` (an amount) instead of the split discount/promo fields.
        """
        data = dict(data)
        legacy_discount = data.pop("discount", None)
        legacy_promo = data.pop("promo", None)

        if not to_decimal(data.get("discount_percentage")) and legacy_discount is not None:
            data["discount_percentage"] = legacy_discount
        if not to_decimal(data.get("disc_promo")) and legacy_promo is not None:
            data["disc_promo"] = legacy_promo

        known = {f.name for f in dataclasses.fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        for name in DECIMAL_FIELDS:
            values[name] = to_decimal(values.get(name))

        values["quantity"] = int(values.get("quantity") or 0)
        values["no_voucher"] = int(values.get("no_voucher") or 0)
        values["type"] = values.get("type") or ""
        values["no_promo"] = values.get("no_promo") or ""
        values["promo_type"] = values.get("promo_type") or "1"
        values["up"] = "Y" if values.get("up") == "Y" else "N"
        values["is_original_return_item"] = bool(values.get("is_original_return_item", False))
        values["is_deleted"] = bool(values.get("is_deleted", False))
        values["stock"] = values.get("stock") or {}
        return cls(**values)


def convert_stock_to_item(stock: dict, next_id: int) -> CartItem:
    """Build a fresh cart line (quantity 1) from a stock record."""
    price = to_decimal(stock.get("hj_ecer"))
    available = stock.get("q_akhir")
    return CartItem(
        id=next_id,
        name=stock.get("nama_brg", ""),
        price=price,
        quantity=1,
        subtotal=price,
        total=price,
        product_code=stock.get("kode_brg", ""),
        available_stock=int(available) if available is not None else None,
        stock={
            "kode_brg": stock.get("kode_brg", ""),
            "nama_brg": stock.get("nama_brg", ""),
            "hj_ecer": str(price),
            "satuan": stock.get("satuan", ""),
        },
    )


def convert_transaction_item(item: dict, item_id: int) -> CartItem:
    """Build a cart line from a line of an earlier transaction.

    Amounts load as positive values; the line turns negative only when the
    cashier marks it returned.
    """
    return CartItem(
        id=item_id,
        name=item.get("product_name") or item.get("product_code", ""),
        type=(item.get("prescription_code") or "").strip(),
        price=to_decimal(item.get("price")),
        quantity=abs(int(item.get("quantity") or 0)),
        subtotal=abs(to_decimal(item.get("sub_total"))),
        discount_percentage=abs(to_decimal(item.get("discount"))),
        nominal_discount=abs(to_decimal(item.get("nominal_discount"))),
        sc=abs(to_decimal(item.get("service_fee"))),
        misc=abs(to_decimal(item.get("misc"))),
        disc_promo=abs(to_decimal(item.get("disc_promo"))),
        value_promo=to_decimal(item.get("value_promo")),
        no_promo=item.get("no_promo") or "",
        promo_type=item.get("promo_type") or "1",
        round_up=abs(to_decimal(item.get("round_up"))),
        up="Y" if item.get("up_selling") == "Y" else "N",
        total=abs(to_decimal(item.get("total"))),
        product_code=item.get("product_code", ""),
        is_original_return_item=True,
        is_deleted=False,
        stock={
            "kode_brg": item.get("product_code", ""),
            "nama_brg": item.get("product_name", ""),
            "hj_ecer": str(to_decimal(item.get("price"))),
        },
    )


def convert_to_return_item(item: CartItem) -> CartItem:
    """Negate every amount of a line; rates stay positive."""
    return dataclasses.replace(
        item,
        quantity=-abs(item.quantity),
        subtotal=-abs(item.subtotal),
        nominal_discount=-abs(item.nominal_discount),
        sc=-abs(item.sc),
        misc=-abs(item.misc),
        disc_promo=-abs(item.disc_promo),
        round_up=-abs(item.round_up),
        total=-abs(item.total),
    )


def with_quantity(item: CartItem, quantity: int, service_charge: Decimal) -> CartItem:
    """Return the line at a new quantity with subtotal, sc and total recomputed.

    Negative quantities are clamped to zero.
    """
    quantity = max(0, int(quantity))
    subtotal = item.price * quantity
    updated = dataclasses.replace(item, quantity=quantity, subtotal=subtotal, sc=service_charge)
    return dataclasses.replace(updated, total=line_total(updated))


def adjusted(item: CartItem, **changes) -> CartItem:
    """Return the line with fields changed and its total recomputed."""
    updated = dataclasses.replace(item, **changes)
    return dataclasses.replace(updated, total=line_total(updated))


def stock_warning(item: CartItem, requested_quantity: int) -> str | None:
    """Classify a requested quantity against the stock on hand.

    Returns None when stock is unknown or sufficient.
    """
    if item.available_stock is None:
        return None
    if item.available_stock <= 0:
        return OUT_OF_STOCK
    if requested_quantity > item.available_stock:
        return INSUFFICIENT_STOCK
    return None
