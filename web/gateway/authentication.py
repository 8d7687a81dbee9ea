"""Resolve the upstream identity header to a ``Customer``.

Session management lives in front of this service; by the time a request
arrives here the edge proxy has authenticated the caller and forwards the
customer id in ``X-User-Id``. Requests without it are guests.
"""

from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import authentication, exceptions

from apps.accounts.models import Customer


class UpstreamIdentityAuthentication(authentication.BaseAuthentication):
    HEADER = "HTTP_X_USER_ID"

    def authenticate(self, request):
        user_id = request.META.get(self.HEADER)
        if not user_id:
            return None
        try:
            customer = Customer.objects.get(pk=user_id)
        except (Customer.DoesNotExist, DjangoValidationError, ValueError):
            raise exceptions.AuthenticationFailed("UNKNOWN_USER")
        return customer, None

    def authenticate_header(self, request):
        return "X-User-Id"
