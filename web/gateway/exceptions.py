"""DRF exception handler mapping domain errors and pydantic failures."""

import logging

from pydantic import ValidationError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from apps.common.errors import DomainError

logger = logging.getLogger("gateway")


def domain_exception_handler(exc, context):
    """Render ``DomainError`` as ``{"detail": CODE, "message": ...}``.

    Anything DRF does not know about falls through to its default handling
    (and from there to Django's 500 page).
    """
    if isinstance(exc, DomainError):
        if exc.http_status >= 500:
            logger.error("upstream failure", extra={"code": exc.code, "detail": exc.detail})
        return Response(exc.as_body(), status=exc.http_status)

    if isinstance(exc, ValidationError):
        errors = [
            {"loc": list(e["loc"]), "msg": e["msg"], "type": e["type"]}
            for e in exc.errors()
        ]
        return Response(
            {"detail": "VALIDATION_FAILED", "errors": errors},
            status=status.HTTP_400_BAD_REQUEST,
        )

    return exception_handler(exc, context)
