"""x402 payment gate.

A guarded request must carry an ``X-PAYMENT`` header holding a base64 JSON
payment payload. The gate asks a facilitator to verify the payload against
the route's payment requirements before the handler runs, and to settle it
once the handler succeeded. The settlement receipt travels back to the
client base64-encoded in ``X-PAYMENT-RESPONSE``.

An x402 payload is a single-use signed authorization, so the backend cannot
replay one for every booking it forwards to the payment-confirmation step.
That route also admits callers presenting the configured shared credential
in ``X-SERVICE-CREDENTIAL``; those calls skip verification and settlement.
"""

import base64
import hmac
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import httpx

from app.core.config import Settings

logger = logging.getLogger(__name__)

X402_VERSION = 1
PAYMENT_HEADER = "X-PAYMENT"
PAYMENT_RESPONSE_HEADER = "X-PAYMENT-RESPONSE"
SERVICE_CREDENTIAL_HEADER = "X-SERVICE-CREDENTIAL"

BOOKING_ROUTE = "/api/book-service-pwyc"
PAYMENT_CONFIRMATION_ROUTE = "/api/process-pwyc-payment"


class PaymentGateError(Exception):
    pass


@dataclass(frozen=True)
class GateDecision:
    is_valid: bool
    reason: str | None = None
    payer: str | None = None


@dataclass(frozen=True)
class GuardedRoute:
    method: str
    path: str
    amount_atomic: str
    description: str
    service_credential: str = ""

    def admits_service_call(self, credential: str | None) -> bool:
        """Backend-to-backend calls holding the route's shared credential bypass the facilitator."""
        if not self.service_credential or not credential:
            return False
        return hmac.compare_digest(credential.encode(), self.service_credential.encode())


def decode_payment_header(value: str) -> dict[str, Any]:
    try:
        payload = json.loads(base64.b64decode(value, validate=True))
    except (ValueError, TypeError) as exc:
        raise PaymentGateError("Malformed X-PAYMENT header") from exc
    if not isinstance(payload, dict):
        raise PaymentGateError("Malformed X-PAYMENT header")
    return payload


def encode_payment_response(settlement: dict[str, Any]) -> str:
    return base64.b64encode(json.dumps(settlement, separators=(",", ":")).encode()).decode()


def decode_payment_response(value: str) -> dict[str, Any]:
    return json.loads(base64.b64decode(value))


def guarded_routes(config: Settings) -> dict[tuple[str, str], GuardedRoute]:
    routes = [
        GuardedRoute(
            method="POST",
            path=BOOKING_ROUTE,
            amount_atomic=config.booking_fee_atomic,
            description="Pay-what-you-can booking fee",
        ),
        GuardedRoute(
            method="POST",
            path=PAYMENT_CONFIRMATION_ROUTE,
            amount_atomic=config.payment_confirmation_fee_atomic,
            description="Pay-what-you-can payment confirmation",
            service_credential=config.payment_credential,
        ),
    ]
    return {(route.method, route.path): route for route in routes}


def build_requirements(config: Settings, route: GuardedRoute, resource_url: str) -> dict[str, Any]:
    return {
        "scheme": "exact",
        "network": config.payment_network,
        "maxAmountRequired": route.amount_atomic,
        "resource": resource_url,
        "description": route.description,
        "mimeType": "application/json",
        "payTo": config.payment_receiver_address,
        "maxTimeoutSeconds": config.payment_max_timeout_seconds,
        "asset": config.payment_asset,
        "extra": {"name": "USDC", "version": "2"},
    }


class PaymentGate(ABC):
    @abstractmethod
    def verify(self, payment_header: str, requirements: dict[str, Any]) -> GateDecision:
        raise NotImplementedError

    @abstractmethod
    def settle(self, payment_header: str, requirements: dict[str, Any]) -> dict[str, Any]:
        raise NotImplementedError


class FacilitatorPaymentGate(PaymentGate):
    def __init__(
        self,
        facilitator_url: str,
        timeout: float = 15.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._facilitator_url = facilitator_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    def _post(self, path: str, payment_header: str, requirements: dict[str, Any]) -> dict[str, Any]:
        body = {
            "x402Version": X402_VERSION,
            "paymentPayload": decode_payment_header(payment_header),
            "paymentRequirements": requirements,
        }
        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                response = client.post(f"{self._facilitator_url}{path}", json=body)
                response.raise_for_status()
                return response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("facilitator_call_failed path=%s reason=%s", path, exc)
            raise PaymentGateError(f"Payment facilitator call to {path} failed") from exc

    def verify(self, payment_header: str, requirements: dict[str, Any]) -> GateDecision:
        try:
            result = self._post("/verify", payment_header, requirements)
        except PaymentGateError as exc:
            return GateDecision(is_valid=False, reason=str(exc))
        return GateDecision(
            is_valid=bool(result.get("isValid")),
            reason=result.get("invalidReason"),
            payer=result.get("payer"),
        )

    def settle(self, payment_header: str, requirements: dict[str, Any]) -> dict[str, Any]:
        result = self._post("/settle", payment_header, requirements)
        if not result.get("success"):
            raise PaymentGateError(result.get("errorReason") or "Payment settlement failed")
        return result


def build_payment_gate(config: Settings) -> PaymentGate | None:
    if not config.payment_gate_enabled:
        return None
    return FacilitatorPaymentGate(
        facilitator_url=config.facilitator_url,
        timeout=config.facilitator_timeout_seconds,
    )
