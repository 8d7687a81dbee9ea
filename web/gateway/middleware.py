"""Request correlation and body-size guard middleware.

``RequestIdMiddleware`` gives every request an identifier: the incoming
``X-Request-ID`` header when the caller sent one, a fresh UUID4 otherwise.
The id lives on ``request.request_id`` and in ``REQUEST_ID_CTX`` so log
filters and outgoing HTTP clients can read it without threading it through
every call. The same id is echoed on the response.

``ApiSizeLimitMiddleware`` refuses oversized ``/api/`` bodies before any view
parses them.
"""

import contextvars
import os
import uuid

from django.http import JsonResponse
from django.utils.deprecation import MiddlewareMixin

REQUEST_ID_CTX = contextvars.ContextVar("request_id", default="-")
MAX_API_BYTES = int(os.getenv("API_MAX_BYTES", str(1 * 1024 * 1024)))


class RequestIdMiddleware(MiddlewareMixin):
    """Assign a per-request id and return it in ``X-Request-ID``."""

    HEADER = "HTTP_X_REQUEST_ID"
    RESPONSE_HEADER = "X-Request-ID"

    def process_request(self, request):
        rid = request.META.get(self.HEADER) or str(uuid.uuid4())
        request.request_id = rid
        REQUEST_ID_CTX.set(rid)

    def process_response(self, request, response):
        """Echo the id, falling back to the context var for error paths."""
        rid = getattr(request, "request_id", REQUEST_ID_CTX.get())
        response[self.RESPONSE_HEADER] = rid
        return response


class ApiSizeLimitMiddleware(MiddlewareMixin):
    PREFIX = "/api/"

    def process_request(self, request):
        if not request.path.startswith(self.PREFIX):
            return None
        clen = request.META.get("CONTENT_LENGTH") or ""
        if clen.isdigit() and int(clen) > MAX_API_BYTES:
            return JsonResponse(
                {"detail": "PAYLOAD_TOO_LARGE", "max_bytes": MAX_API_BYTES}, status=413
            )
        return None
