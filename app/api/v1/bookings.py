from fastapi import APIRouter, Depends, status

from app.api.deps import get_cal_client, get_payment_confirmer, get_settings
from app.core.config import Settings
from app.schemas.booking import BookingRequest, BookingResponse
from app.services.booking_service import submit_pwyc_offer
from app.services.calcom_client import CalComClient
from app.services.payment_service import PaymentConfirmer

router = APIRouter(prefix="/api", tags=["bookings"])


@router.post("/book-service-pwyc", response_model=BookingResponse, status_code=status.HTTP_200_OK)
def book_service_pwyc(
    payload: BookingRequest,
    config: Settings = Depends(get_settings),
    cal_client: CalComClient = Depends(get_cal_client),
    payment_confirmer: PaymentConfirmer | None = Depends(get_payment_confirmer),
) -> BookingResponse:
    confirmation = submit_pwyc_offer(
        cal_client=cal_client,
        payment_confirmer=payment_confirmer,
        config=config,
        request=payload,
    )
    return BookingResponse(data=confirmation)
