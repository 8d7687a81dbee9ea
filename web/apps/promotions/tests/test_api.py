from datetime import timedelta

import pytest
from django.utils import timezone

URL = "/api/promo-codes/"


@pytest.mark.django_db
def test_manager_creates_and_reads_promo_code(client, manager, auth):
    r = client.post(
        URL,
        data={"code": "welcome10", "discount_type": "FIXED", "discount_value": "10.00", "usage_limit": 100},
        content_type="application/json",
        **auth(manager),
    )
    assert r.status_code == 201
    body = r.json()
    assert body["code"] == "WELCOME10"
    assert body["usage_count"] == 0

    r = client.get(f"{URL}{body['id']}/", **auth(manager))
    assert r.status_code == 200
    assert r.json()["discount_type"] == "FIXED"


@pytest.mark.django_db
def test_invalid_payload_is_400_with_errors(client, manager, auth):
    r = client.post(
        URL,
        data={"code": "x", "discount_type": "FIXED", "discount_value": "1"},
        content_type="application/json",
        **auth(manager),
    )
    assert r.status_code == 400
    assert r.json()["detail"] == "VALIDATION_FAILED"
    assert r.json()["errors"]


@pytest.mark.django_db
def test_guest_cannot_create(client):
    r = client.post(
        URL,
        data={"code": "WELCOME10", "discount_type": "FIXED", "discount_value": "1", "usage_limit": 1},
        content_type="application/json",
    )
    assert r.status_code == 403
    assert r.json()["detail"] == "FORBIDDEN"


@pytest.mark.django_db
def test_patch_and_disable(client, manager, auth, make_promo):
    promo = make_promo(usage_count=3)
    r = client.patch(
        f"{URL}{promo.id}/", data={"usage_limit": 2}, content_type="application/json", **auth(manager)
    )
    assert r.status_code == 400
    assert r.json()["detail"] == "USAGE_LIMIT_BELOW_USAGE_COUNT"

    future = (timezone.now() + timedelta(days=7)).isoformat()
    r = client.patch(
        f"{URL}{promo.id}/", data={"expiration_date": future}, content_type="application/json", **auth(manager)
    )
    assert r.status_code == 200
    assert r.json()["expiration_date"] is not None

    r = client.post(f"{URL}{promo.id}/disable/", **auth(manager))
    assert r.status_code == 200
    assert r.json()["status"] == "DISABLED"


@pytest.mark.django_db
def test_unknown_promo_code_is_404(client, manager, auth):
    import uuid
    r = client.get(f"{URL}{uuid.uuid4()}/", **auth(manager))
    assert r.status_code == 404
    assert r.json()["detail"] == "PROMO_CODE_NOT_FOUND"


@pytest.mark.django_db
def test_unknown_user_header_is_rejected(client):
    import uuid
    r = client.get(URL, HTTP_X_USER_ID=str(uuid.uuid4()))
    assert r.status_code in (401, 403)
