from fastapi import APIRouter, Request, status

from app.schemas.payment import PaymentConfirmationResponse, PaymentRecord
from app.services.payment_service import record_pwyc_payment

router = APIRouter(prefix="/api", tags=["payments"])


@router.post("/process-pwyc-payment", response_model=PaymentConfirmationResponse, status_code=status.HTTP_200_OK)
def process_pwyc_payment(payload: PaymentRecord, request: Request) -> PaymentConfirmationResponse:
    payer = getattr(request.state, "payment_payer", None)
    return PaymentConfirmationResponse(success=True, details=record_pwyc_payment(payload, payer=payer))
