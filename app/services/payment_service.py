import logging
from abc import ABC, abstractmethod
from datetime import UTC, datetime
from typing import Any

import httpx

from app.core.config import Settings
from app.schemas.payment import PaymentRecord
from app.services.payment_gate import SERVICE_CREDENTIAL_HEADER

logger = logging.getLogger(__name__)


class PaymentStepError(Exception):
    def __init__(self, message: str, detail: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail


class PaymentConfirmer(ABC):
    """Forwards the attendee's offer to the payment-confirmation step."""

    @abstractmethod
    def confirm(self, record: PaymentRecord) -> dict[str, Any]:
        raise NotImplementedError


class HttpPaymentConfirmer(PaymentConfirmer):
    """Calls the payment-confirmation endpoint, authenticated by the shared service ``credential``."""

    def __init__(
        self,
        url: str,
        credential: str,
        timeout: float = 60.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._url = url
        self._credential = credential
        self._timeout = timeout
        self._transport = transport

    def confirm(self, record: PaymentRecord) -> dict[str, Any]:
        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                response = client.post(
                    self._url,
                    json=record.model_dump(mode="json", by_alias=True),
                    headers={SERVICE_CREDENTIAL_HEADER: self._credential},
                )
        except httpx.HTTPError as exc:
            raise PaymentStepError(f"Payment step unreachable: {exc}") from exc

        try:
            body = response.json()
        except ValueError:
            body = {"raw": response.text}
        if not isinstance(body, dict):
            body = {"raw": body}

        if response.is_error or not body.get("success", False):
            detail = body.get("error", body)
            raise PaymentStepError(
                f"Payment step rejected booking {record.booking_id} with status {response.status_code}",
                detail=detail,
            )
        return body


def build_payment_confirmer(config: Settings) -> PaymentConfirmer | None:
    if not config.payment_credential:
        return None
    return HttpPaymentConfirmer(
        url=config.payment_confirmation_url,
        credential=config.payment_credential,
        timeout=config.payment_confirmation_timeout_seconds,
    )


def record_pwyc_payment(record: PaymentRecord, payer: str | None = None) -> dict[str, Any]:
    """Acknowledge an offer whose gate payment already went through."""
    details: dict[str, Any] = {
        "bookingId": record.booking_id,
        "offeredAmount": float(record.offered_amount),
        "attendeeEmail": record.attendee_email,
        "recordedAt": datetime.now(UTC).isoformat(),
    }
    if payer:
        details["payer"] = payer
    logger.info(
        "pwyc_payment_recorded booking_id=%s offered_amount=%s payer=%s",
        record.booking_id,
        record.offered_amount,
        payer or "-",
    )
    return details
