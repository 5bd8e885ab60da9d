"""URL patterns for the POS cart and checkout API."""

from django.urls import path

from . import views

app_name = "pos"

urlpatterns = [
    # Cart
    path("cart/", views.CartView.as_view(), name="cart"),
    path("cart/items/", views.CartItemsView.as_view(), name="cart-items"),
    path("cart/items/<int:item_id>/", views.CartItemView.as_view(), name="cart-item"),
    path("cart/items/<int:item_id>/quantity/", views.CartItemQuantityView.as_view(), name="cart-item-quantity"),
    path("cart/items/<int:item_id>/type/", views.CartItemTypeView.as_view(), name="cart-item-type"),
    path("cart/items/<int:item_id>/return/", views.CartItemReturnView.as_view(), name="cart-item-return"),
    path("cart/items/<int:item_id>/misc/", views.CartItemMiscView.as_view(), name="cart-item-misc"),
    path("cart/items/<int:item_id>/promo/", views.CartItemPromoView.as_view(), name="cart-item-promo"),
    path("cart/items/<int:item_id>/discount/", views.CartItemDiscountView.as_view(), name="cart-item-discount"),
    path(
        "cart/items/<int:item_id>/up-selling/",
        views.CartItemUpSellingView.as_view(),
        name="cart-item-up-selling",
    ),
    path("cart/discount/", views.CartDiscountView.as_view(), name="cart-discount"),
    path("cart/totals/", views.CartTotalsView.as_view(), name="cart-totals"),
    path("cart/load-transaction/", views.LoadTransactionView.as_view(), name="cart-load-transaction"),

    # Customer and doctor
    path("selection/", views.SelectionView.as_view(), name="selection"),
    path("selection/customer/", views.CustomerSelectionView.as_view(), name="selection-customer"),
    path("selection/doctor/", views.DoctorSelectionView.as_view(), name="selection-doctor"),

    # Pending bills
    path("pending-bills/", views.PendingBillsView.as_view(), name="pending-bills"),
    path("pending-bills/<str:bill_id>/", views.PendingBillView.as_view(), name="pending-bill"),
    path(
        "pending-bills/<str:bill_id>/restore/",
        views.PendingBillRestoreView.as_view(),
        name="pending-bill-restore",
    ),

    # Payment
    path("checkout/", views.CheckoutView.as_view(), name="checkout"),
]
