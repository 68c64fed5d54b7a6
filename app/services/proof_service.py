"""Proof-of-service verification and payment release."""

import logging
import re
from abc import ABC, abstractmethod

import httpx
from fastapi import HTTPException, status

from app.core.config import Settings
from app.services.calcom_client import CalComClient, CalComError

logger = logging.getLogger(__name__)

INVALID_PROOF_DETAIL = "Invalid proof. Tag the original post."


class ProofVerifier(ABC):
    @abstractmethod
    def verify(self, booking_id: str, proof_url: str) -> bool:
        raise NotImplementedError


class AcceptAllProofVerifier(ProofVerifier):
    def verify(self, booking_id: str, proof_url: str) -> bool:
        logger.info("proof_accepted_without_inspection booking_id=%s proof_url=%s", booking_id, proof_url)
        return True


def _normalize_handle(handle: str | None) -> str | None:
    if not handle:
        return None
    handle = handle.strip().lstrip("@")
    return handle or None


def _mentions(text: str, marker: str) -> bool:
    return re.search(rf"(?<!\w){re.escape(marker)}(?!\w)", text, flags=re.IGNORECASE) is not None


class ContentProofVerifier(ProofVerifier):
    """Accepts a proof page that carries the campaign hashtag and tags the attendee.

    The attendee's handle comes from the booking metadata stored at the
    scheduling provider, since this service keeps no bookings of its own.
    """

    def __init__(
        self,
        cal_client: CalComClient,
        required_hashtag: str,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._cal_client = cal_client
        self._required_hashtag = required_hashtag.lstrip("#")
        self._timeout = timeout
        self._transport = transport

    def _attendee_handle(self, booking_id: str) -> str | None:
        try:
            booking = self._cal_client.get_booking(booking_id)
        except CalComError as exc:
            if exc.status_code == status.HTTP_404_NOT_FOUND:
                return None
            raise
        metadata = booking.get("metadata") or {}
        return _normalize_handle(metadata.get("tiktokUsername"))

    def _fetch_content(self, proof_url: str) -> str | None:
        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport, follow_redirects=True) as client:
                response = client.get(proof_url)
        except httpx.HTTPError as exc:
            logger.warning("proof_fetch_failed proof_url=%s reason=%s", proof_url, exc)
            return None
        if response.is_error:
            logger.warning("proof_fetch_failed proof_url=%s status=%s", proof_url, response.status_code)
            return None
        return response.text

    def verify(self, booking_id: str, proof_url: str) -> bool:
        handle = self._attendee_handle(booking_id)
        content = self._fetch_content(proof_url)
        if content is None:
            return False

        markers = [f"#{self._required_hashtag}"]
        if handle:
            markers.append(f"@{handle}")
        missing = [marker for marker in markers if not _mentions(content, marker)]
        if missing:
            logger.info("proof_rejected booking_id=%s missing=%s", booking_id, ",".join(missing))
            return False
        return True


class PaymentReleaser(ABC):
    @abstractmethod
    def release(self, booking_id: str) -> None:
        raise NotImplementedError


class LoggingPaymentReleaser(PaymentReleaser):
    def release(self, booking_id: str) -> None:
        logger.info("payment_release_requested booking_id=%s", booking_id)


def build_proof_verifier(config: Settings, cal_client: CalComClient) -> ProofVerifier:
    mode = config.proof_verification_mode.strip().lower()
    if mode == "content":
        return ContentProofVerifier(
            cal_client=cal_client,
            required_hashtag=config.proof_required_hashtag,
            timeout=config.proof_fetch_timeout_seconds,
        )
    return AcceptAllProofVerifier()


def verify_proof_and_release(
    verifier: ProofVerifier,
    releaser: PaymentReleaser,
    booking_id: str,
    proof_url: str,
) -> bool:
    try:
        is_valid = verifier.verify(booking_id, proof_url)
    except CalComError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Proof verification failed: {exc.message}",
        ) from None

    if not is_valid:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=INVALID_PROOF_DETAIL)

    releaser.release(booking_id)
    return True
