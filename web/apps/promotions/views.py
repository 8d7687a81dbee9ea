"""HTTP views for promo code administration.

Request bodies are validated with pydantic; validation and domain errors are
rendered by ``gateway.exceptions.domain_exception_handler``.
"""

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.common.policy import Actor

from .schemas import PromoCodeCreate, PromoCodeOut, PromoCodeUpdate
from .services import PromoCodeService


def _out(promo) -> dict:
    return PromoCodeOut.model_validate(promo).model_dump(mode="json")


class PromoCodeCollectionView(APIView):
    def get(self, request):
        actor = Actor.from_user(request.user)
        promos = PromoCodeService().list(actor, status=request.GET.get("status"))
        return Response({"results": [_out(p) for p in promos]})

    def post(self, request):
        actor = Actor.from_user(request.user)
        dto = PromoCodeCreate.model_validate(request.data)
        promo = PromoCodeService().create(actor, dto)
        return Response(_out(promo), status=status.HTTP_201_CREATED)


class PromoCodeDetailView(APIView):
    def get(self, request, pid):
        promo = PromoCodeService().find_by_id(Actor.from_user(request.user), pid)
        return Response(_out(promo))

    def patch(self, request, pid):
        dto = PromoCodeUpdate.model_validate(request.data)
        promo = PromoCodeService().update(Actor.from_user(request.user), pid, dto)
        return Response(_out(promo))


class PromoCodeDisableView(APIView):
    def post(self, request, pid):
        promo = PromoCodeService().disable(Actor.from_user(request.user), pid)
        return Response(_out(promo))
