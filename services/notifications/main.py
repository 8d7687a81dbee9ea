"""Notification service API built with FastAPI.

Accepts low-stock alert requests from the web tier and queues one mail job
per recipient. Validation is performed with Pydantic models, persistence is
delegated to the SQLAlchemy repository in ``repo``.
"""

import logging
import time
import uuid
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Annotated, List, Optional

from fastapi import FastAPI, Header, HTTPException, Request
from pydantic import BaseModel, EmailStr, Field
from pythonjsonlogger.json import JsonFormatter
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError

from repo import IdempotencyKey, NotificationsRepo, canonical_hash, engine, get_session, init_db

logger = logging.getLogger("notifications")
if not logger.handlers:
    h = logging.StreamHandler()
    h.setFormatter(JsonFormatter("%(asctime)s %(levelname)s %(name)s %(message)s %(request_id)s"))
    logger.addHandler(h)
    logger.setLevel(logging.INFO)


def _wait_for_db(timeout: float = 30.0) -> None:
    deadline = time.time() + timeout
    while True:
        try:
            with engine.connect() as conn:
                conn.execute(text("select 1"))
            return
        except OperationalError:
            if time.time() > deadline:
                raise
            time.sleep(1)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    _wait_for_db()
    init_db()
    yield


app = FastAPI(title="Notification Service", lifespan=lifespan)


class RecipientIn(BaseModel):
    email: EmailStr
    full_name: str = ""


class ProductInfo(BaseModel):
    """Product facts rendered into the alert mail."""
    id: str
    name: str = Field(min_length=1)
    description: str = ""
    stock: int = Field(ge=0)
    price: Decimal


class LowStockAlertRequest(BaseModel):
    """Request body for the low-stock endpoint.

    Attributes:
        recipients: Customers to notify, at least one.
        product: The product running low.
    """
    recipients: List[RecipientIn] = Field(min_length=1)
    product: ProductInfo


class AlertAccepted(BaseModel):
    queued: int
    job_ids: List[uuid.UUID]
    replayed: bool = False


@app.get("/health")
def health():
    return {"ok": True}


@app.post("/alerts/low-stock", response_model=AlertAccepted, status_code=202)
def low_stock_alert(
    req: LowStockAlertRequest,
    request: Request,
    idempotency_key: Annotated[Optional[str], Header(alias="Idempotency-Key")] = None,
):
    """Queue a low-stock mail for every recipient.

    With an ``Idempotency-Key`` header the jobs and the key are committed in
    one transaction. A retry with the same key and body returns the jobs of
    the first request; the same key with a different body is a 409.

    Raises:
        HTTPException: 409 ``IDEMPOTENCY_CONFLICT`` on key reuse with another
            body, 500 when the stored key cannot be read back.
    """
    body = req.model_dump(mode="json")
    payload_hash = canonical_hash(body)
    rid = getattr(request.state, "request_id", "-")

    with get_session() as s:
        rec = None
        if idempotency_key:
            rec = IdempotencyKey(key=idempotency_key, request_hash=payload_hash)
            s.add(rec)
            try:
                s.flush()
            except IntegrityError:
                s.rollback()
                prev = s.get(IdempotencyKey, idempotency_key)
                if prev is None:
                    raise HTTPException(status_code=500, detail="IDEMPOTENCY_LOOKUP_ERROR")
                if prev.request_hash != payload_hash:
                    raise HTTPException(status_code=409, detail="IDEMPOTENCY_CONFLICT")
                logger.info("alert replayed", extra={"request_id": rid, "idempotency_key": idempotency_key})
                return AlertAccepted(queued=prev.job_count, job_ids=prev.job_ids or [], replayed=True)

        ids = NotificationsRepo().enqueue_low_stock(s, body["recipients"], body["product"])
        if rec is not None:
            rec.job_ids = [str(i) for i in ids]
            rec.job_count = len(ids)
        s.commit()

    logger.info(
        "low stock alert queued",
        extra={"request_id": rid, "product_id": req.product.id, "queued": len(ids)},
    )
    return AlertAccepted(queued=len(ids), job_ids=ids)


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    rid = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = rid
    try:
        response = await call_next(request)
    finally:
        logger.info("request handled", extra={"request_id": rid, "path": request.url.path, "method": request.method})
    response.headers["X-Request-ID"] = rid
    return response
