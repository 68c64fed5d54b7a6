import logging
from datetime import datetime, timedelta
from typing import Any

from fastapi import HTTPException, status

from app.core.config import Settings
from app.core.metrics import BOOKING_COUNT
from app.schemas.booking import BookingConfirmation, BookingRequest, BookingStatus
from app.schemas.payment import PaymentRecord
from app.services.calcom_client import CalComClient, CalComError
from app.services.payment_service import PaymentConfirmer, PaymentStepError

logger = logging.getLogger(__name__)

BOOKING_FAILED_DETAIL = "Booking failed"
PAYMENT_FAILED_DETAIL = "Payment processing failed"


def derive_event_slug(duration_minutes: int, config: Settings) -> str:
    if duration_minutes not in config.supported_durations:
        supported = ", ".join(str(value) for value in config.supported_durations)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"bookedDuration must be one of: {supported}",
        )
    return config.event_slug_template.format(duration=duration_minutes)


def build_booking_payload(request: BookingRequest, event_slug: str, config: Settings) -> dict[str, Any]:
    metadata = {
        "serviceDescription": request.service_description,
        "offeredAmount": str(request.offered_amount),
        "bookedDuration": str(request.booked_duration),
    }
    if request.tiktok_username:
        metadata["tiktokUsername"] = request.tiktok_username
    if request.irl_travel_username:
        metadata["irlTravelUsername"] = request.irl_travel_username

    return {
        "start": request.start_time.isoformat(),
        "eventTypeSlug": event_slug,
        "username": request.organizer_username,
        "attendee": {
            "name": request.attendee_name,
            "email": request.attendee_email,
            "timeZone": request.time_zone or config.default_time_zone,
        },
        "metadata": metadata,
    }


def _parse_provider_time(value: Any) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def _meeting_url(reservation: dict[str, Any]) -> str | None:
    for key in ("meetingUrl", "location"):
        value = reservation.get(key)
        if isinstance(value, str) and value.startswith(("http://", "https://")):
            return value
    return None


def payment_instructions(request: BookingRequest, booking_id: str, config: Settings) -> str:
    handle = (request.tiktok_username or request.attendee_name).lstrip("@")
    return (
        f"Post a before/after TikTok tagging @{handle} and #{config.proof_required_hashtag} "
        f"with booking {booking_id} to release payment."
    )


def submit_pwyc_offer(
    cal_client: CalComClient,
    payment_confirmer: PaymentConfirmer | None,
    config: Settings,
    request: BookingRequest,
) -> BookingConfirmation:
    event_slug = derive_event_slug(request.booked_duration, config)

    try:
        reservation = cal_client.create_booking(build_booking_payload(request, event_slug, config))
    except CalComError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"{BOOKING_FAILED_DETAIL}: {exc.message}",
        ) from None

    booking_id = str(reservation.get("uid") or reservation.get("id") or "")
    if not booking_id:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"{BOOKING_FAILED_DETAIL}: scheduling provider returned no booking id",
        )

    if payment_confirmer is None:
        booking_status = BookingStatus.PAYMENT_BYPASSED
        logger.info("payment_step_skipped booking_id=%s reason=no_payment_credential", booking_id)
    else:
        record = PaymentRecord(
            booking_id=booking_id,
            offered_amount=request.offered_amount,
            attendee_email=request.attendee_email,
        )
        try:
            payment_confirmer.confirm(record)
        except PaymentStepError as exc:
            logger.error("payment_step_failed booking_id=%s reason=%s", booking_id, exc.message)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"{PAYMENT_FAILED_DETAIL} for booking {booking_id}: {exc.detail or exc.message}",
            ) from None
        booking_status = BookingStatus.CONFIRMED

    start_time = _parse_provider_time(reservation.get("start")) or request.start_time
    end_time = _parse_provider_time(reservation.get("end")) or start_time + timedelta(
        minutes=request.booked_duration
    )

    BOOKING_COUNT.labels(status=booking_status.value).inc()
    logger.info(
        "pwyc_booking_created booking_id=%s event_slug=%s status=%s",
        booking_id,
        event_slug,
        booking_status.value,
    )
    return BookingConfirmation(
        booking_id=booking_id,
        meeting_url=_meeting_url(reservation),
        start_time=start_time,
        end_time=end_time,
        title=request.service_description,
        offered_amount=request.offered_amount,
        status=booking_status,
        instructions=payment_instructions(request, booking_id, config),
    )
