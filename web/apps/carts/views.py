from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.common.policy import Actor
from apps.promotions.schemas import ApplyPromoCode

from .schemas import AddCartItem, UpdateCartItem
from .services import CartService


def _render(service: CartService, cart, code=status.HTTP_200_OK) -> Response:
    return Response(service.to_dto(cart).model_dump(mode="json"), status=code)


class CartView(APIView):
    def get(self, request):
        service = CartService()
        return _render(service, service.view(Actor.from_user(request.user)))

    def delete(self, request):
        service = CartService()
        return _render(service, service.clear(Actor.from_user(request.user)))


class CartItemsView(APIView):
    def post(self, request):
        dto = AddCartItem.model_validate(request.data)
        service = CartService()
        cart = service.add_item(Actor.from_user(request.user), dto.product_id, dto.quantity)
        return _render(service, cart, status.HTTP_201_CREATED)


class CartItemDetailView(APIView):
    def patch(self, request, item_id: int):
        dto = UpdateCartItem.model_validate(request.data)
        service = CartService()
        cart = service.update_item(Actor.from_user(request.user), item_id, dto.quantity)
        return _render(service, cart)

    def delete(self, request, item_id: int):
        service = CartService()
        return _render(service, service.remove_item(Actor.from_user(request.user), item_id))


class CartPromoCodeView(APIView):
    def post(self, request):
        dto = ApplyPromoCode.model_validate(request.data)
        service = CartService()
        return _render(service, service.apply_promo_code(Actor.from_user(request.user), dto.code))
