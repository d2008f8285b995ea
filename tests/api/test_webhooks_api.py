# tests/api/test_webhooks_api.py

import hashlib
import hmac
import json

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from registration_service import crud
from registration_service.api.v1.endpoints.payments import get_payment_service
from registration_service.api.v1.endpoints.webhooks import get_webhook_payment_service
from registration_service.main import app
from registration_service.services import lifecycle
from registration_service.services.payment.payment_service import PaymentService
from tests.services.test_payment_service import (
    SECRET,
    FakePaystack,
    make_provider,
    start_payment,
)

URL = "/api/v1/webhooks/paystack"


@pytest.fixture
def gateway(test_client_e2e: TestClient, db_session_e2e: Session):
    """A configured Paystack gateway behind the webhook endpoint."""
    fake = FakePaystack()

    def override_payment_service():
        return PaymentService(db_session_e2e, provider=make_provider(fake))

    app.dependency_overrides[get_webhook_payment_service] = override_payment_service
    app.dependency_overrides[get_payment_service] = override_payment_service
    return fake


def _signed(payload: dict):
    body = json.dumps(payload).encode()
    signature = hmac.new(SECRET.encode(), body, hashlib.sha512).hexdigest()
    return body, {"x-paystack-signature": signature, "content-type": "application/json"}


def _charge_event(reference: str, amount: int, event: str = "charge.success", status="success"):
    return {
        "event": event,
        "data": {
            "id": 424242,
            "reference": reference,
            "status": status,
            "amount": amount,
            "currency": "NGN",
        },
    }


def test_charge_success_is_applied_once(
    test_client_e2e: TestClient, db_session_e2e: Session, gateway
) -> None:
    registration, _, result = start_payment(db_session_e2e, gateway)
    body, headers = _signed(_charge_event(result["reference"], registration.amount_due * 100))

    first = test_client_e2e.post(URL, content=body, headers=headers)
    second = test_client_e2e.post(URL, content=body, headers=headers)

    assert first.status_code == 200
    assert first.json()["status"] == "processed"
    assert first.json()["payment_status"] == "paid"
    assert second.json()["status"] == "already_processed"
    db_session_e2e.refresh(registration)
    assert lifecycle.has_access(registration) is True
    records = crud.payment_record.get_by_tracking_number(
        db_session_e2e, tracking_number=registration.tracking_number
    )
    assert [r.payment_status for r in records] == ["success"]


def test_webhook_after_verify_changes_nothing(
    test_client_e2e: TestClient, db_session_e2e: Session, gateway
) -> None:
    registration, _, result = start_payment(db_session_e2e, gateway)
    response = test_client_e2e.post(
        "/api/v1/payments/verify", json={"reference": result["reference"]}
    )
    assert response.status_code == 200
    assert response.json()["payment_status"] == "paid"

    success, headers = _signed(_charge_event(result["reference"], registration.amount_due * 100))
    response = test_client_e2e.post(URL, content=success, headers=headers)
    assert response.json()["payment_status"] == "paid"

    # A late failure notice for the same reference is ignored
    failure, headers = _signed(
        _charge_event(
            result["reference"], registration.amount_due * 100,
            event="charge.failed", status="failed",
        )
    )
    response = test_client_e2e.post(URL, content=failure, headers=headers)

    assert response.json()["status"] == "processed"
    assert response.json()["payment_status"] == "paid"
    records = crud.payment_record.get_by_tracking_number(
        db_session_e2e, tracking_number=registration.tracking_number
    )
    assert [r.payment_status for r in records] == ["success"]


def test_missing_signature_is_rejected(test_client_e2e: TestClient, gateway) -> None:
    response = test_client_e2e.post(URL, content=b"{}")

    assert response.status_code == 400


def test_invalid_signature_is_rejected(test_client_e2e: TestClient, gateway) -> None:
    response = test_client_e2e.post(
        URL, content=b'{"event":"charge.success"}', headers={"x-paystack-signature": "bad"}
    )

    assert response.status_code == 400


def test_unrelated_events_are_acknowledged(test_client_e2e: TestClient, gateway) -> None:
    body, headers = _signed({"event": "transfer.success", "data": {"id": 7}})

    response = test_client_e2e.post(URL, content=body, headers=headers)

    assert response.status_code == 200
    assert response.json()["status"] == "ignored"


def test_webhook_without_gateway_is_unavailable(test_client_e2e: TestClient) -> None:
    body, headers = _signed({"event": "charge.success", "data": {"id": 7}})

    response = test_client_e2e.post(URL, content=body, headers=headers)

    assert response.status_code == 503
