import os
import sys
from pathlib import Path
from typing import Any

import httpx
import pytest
from fastapi.testclient import TestClient

sys.path.append(str(Path(__file__).resolve().parents[1]))

os.environ.setdefault("RATE_LIMIT_BACKEND", "memory")

from app.api.deps import get_cal_client, get_payment_confirmer, get_settings  # noqa: E402
from app.core.config import settings  # noqa: E402
from app.core.rate_limiter import rate_limit_store  # noqa: E402
from app.main import app  # noqa: E402
from app.services.calcom_client import CalComClient  # noqa: E402
from app.services.payment_gate import GateDecision, PaymentGate  # noqa: E402
from app.services.payment_service import PaymentConfirmer  # noqa: E402

VALID_PAYMENT = "valid-payment-proof"


class FakeCalCom:
    """In-memory stand-in for the Cal.com v2 API."""

    def __init__(self) -> None:
        self.event_types: list[dict[str, Any]] = []
        self.event_types_status = 200
        self.slots: dict[str, dict[str, list[dict[str, str]]]] = {}
        self.failing_slugs: set[str] = set()
        self.booking: dict[str, Any] = {
            "id": 101,
            "uid": "bk_101",
            "title": "30 min between atl5d and Jo",
            "start": "2026-11-02T15:00:00.000Z",
            "end": "2026-11-02T15:30:00.000Z",
            "meetingUrl": "https://app.cal.com/video/bk_101",
            "metadata": {"tiktokUsername": "jo_atl"},
        }
        self.booking_error: tuple[int, str] | None = None
        self.requests: list[httpx.Request] = []

    @staticmethod
    def _error(status_code: int, message: str) -> httpx.Response:
        return httpx.Response(status_code, json={"status": "error", "error": {"code": "Error", "message": message}})

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path.endswith("/event-types"):
            if self.event_types_status != 200:
                return self._error(self.event_types_status, "User not found")
            return httpx.Response(200, json={"status": "success", "data": self.event_types})
        if path.endswith("/slots"):
            slug = request.url.params["eventTypeSlug"]
            if slug in self.failing_slugs:
                return self._error(500, f"slots unavailable for {slug}")
            return httpx.Response(200, json={"status": "success", "data": self.slots.get(slug, {})})
        if path.endswith("/bookings") and request.method == "POST":
            if self.booking_error:
                return self._error(*self.booking_error)
            return httpx.Response(201, json={"status": "success", "data": self.booking})
        if "/bookings/" in path:
            return httpx.Response(200, json={"status": "success", "data": self.booking})
        return self._error(404, f"unexpected path {path}")

    def calls_to(self, suffix: str) -> list[httpx.Request]:
        return [request for request in self.requests if request.url.path.endswith(suffix)]


class FakePaymentGate(PaymentGate):
    def __init__(self) -> None:
        self.verified: list[str] = []
        self.settled: list[str] = []

    def verify(self, payment_header: str, requirements: dict[str, Any]) -> GateDecision:
        self.verified.append(payment_header)
        if payment_header != VALID_PAYMENT:
            return GateDecision(is_valid=False, reason="invalid_exact_evm_payload_signature")
        return GateDecision(is_valid=True, payer="0xPayer")

    def settle(self, payment_header: str, requirements: dict[str, Any]) -> dict[str, Any]:
        self.settled.append(payment_header)
        return {"success": True, "transaction": "0xabc", "network": "base-sepolia", "payer": "0xPayer"}


class RecordingPaymentConfirmer(PaymentConfirmer):
    def __init__(self) -> None:
        self.records = []

    def confirm(self, record):
        self.records.append(record)
        return {"success": True, "details": {"bookingId": record.booking_id}}


@pytest.fixture(autouse=True)
def reset_rate_limiter() -> None:
    rate_limit_store.reset()


@pytest.fixture()
def calcom() -> FakeCalCom:
    return FakeCalCom()


@pytest.fixture()
def payment_gate() -> FakePaymentGate:
    return FakePaymentGate()


@pytest.fixture()
def config():
    return settings.model_copy(update={"payment_credential": "", "cal_api_key": "cal_test_key"})


@pytest.fixture()
def client(calcom, payment_gate, config) -> TestClient:
    def override_get_cal_client():
        cal_client = CalComClient.from_settings(config, transport=httpx.MockTransport(calcom.handler))
        try:
            yield cal_client
        finally:
            cal_client.close()

    original_gate, original_settings = app.state.payment_gate, app.state.settings
    app.state.payment_gate = payment_gate
    app.state.settings = config
    app.dependency_overrides[get_settings] = lambda: config
    app.dependency_overrides[get_cal_client] = override_get_cal_client
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    app.state.payment_gate = original_gate
    app.state.settings = original_settings


@pytest.fixture()
def paid_headers() -> dict[str, str]:
    return {"X-PAYMENT": VALID_PAYMENT}


@pytest.fixture()
def payment_confirmer() -> RecordingPaymentConfirmer:
    confirmer = RecordingPaymentConfirmer()
    app.dependency_overrides[get_payment_confirmer] = lambda: confirmer
    return confirmer
