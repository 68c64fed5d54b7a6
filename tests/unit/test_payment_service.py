import json
from decimal import Decimal

import httpx
import pytest

from app.core.config import settings
from app.schemas.payment import PaymentRecord
from app.services.payment_service import (
    HttpPaymentConfirmer,
    PaymentStepError,
    build_payment_confirmer,
    record_pwyc_payment,
)


def _record() -> PaymentRecord:
    return PaymentRecord(booking_id="bk_1", offered_amount=Decimal("42.00"), attendee_email="jo@example.com")


def test_confirmer_authenticates_with_the_service_credential_on_every_call():
    captured = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(
            (request.headers.get("X-SERVICE-CREDENTIAL"), "X-PAYMENT" in request.headers, json.loads(request.content))
        )
        return httpx.Response(200, json={"success": True, "details": {"bookingId": "bk_1"}})

    confirmer = HttpPaymentConfirmer(
        url="http://localhost:3000/api/process-pwyc-payment",
        credential="svc-secret",
        transport=httpx.MockTransport(handler),
    )
    first = confirmer.confirm(_record())
    second = confirmer.confirm(_record())

    assert first["success"] is True and second["success"] is True
    assert [(credential, has_payment) for credential, has_payment, _ in captured] == [
        ("svc-secret", False),
        ("svc-secret", False),
    ]
    assert captured[0][2] == {"bookingId": "bk_1", "offeredAmount": 42.0, "attendeeEmail": "jo@example.com"}


def test_confirmer_surfaces_gate_rejection():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(402, json={"error": {"code": "payment_required", "message": "Invalid payment"}})

    confirmer = HttpPaymentConfirmer(url="http://pay.local", credential="x", transport=httpx.MockTransport(handler))

    with pytest.raises(PaymentStepError) as exc_info:
        confirmer.confirm(_record())

    assert "402" in exc_info.value.message
    assert exc_info.value.detail["message"] == "Invalid payment"


def test_no_credential_means_no_payment_step():
    assert build_payment_confirmer(settings.model_copy(update={"payment_credential": ""})) is None

    confirmer = build_payment_confirmer(settings.model_copy(update={"payment_credential": "proof"}))
    assert isinstance(confirmer, HttpPaymentConfirmer)


def test_recorded_payment_echoes_offer_and_payer():
    details = record_pwyc_payment(_record(), payer="0xPayer")

    assert details["bookingId"] == "bk_1"
    assert details["offeredAmount"] == 42.0
    assert details["payer"] == "0xPayer"
