from django.urls import path

from .views import CartItemDetailView, CartItemsView, CartPromoCodeView, CartView

app_name = "carts"

urlpatterns = [
    path("", CartView.as_view(), name="cart"),  # GET view / DELETE clear
    path("items/", CartItemsView.as_view(), name="cart-items"),
    path("items/<int:item_id>/", CartItemDetailView.as_view(), name="cart-item-detail"),
    path("promo-code/", CartPromoCodeView.as_view(), name="cart-promo-code"),
]
