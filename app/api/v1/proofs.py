from fastapi import APIRouter, Depends, Request, status

from app.api.deps import get_payment_releaser, get_proof_verifier, get_settings
from app.core.config import Settings
from app.core.rate_limiter import enforce_rate_limit
from app.schemas.proof import ProofSubmission, ProofVerificationResponse
from app.services.proof_service import PaymentReleaser, ProofVerifier, verify_proof_and_release

router = APIRouter(prefix="/api", tags=["proofs"])


@router.post("/verify-proof", response_model=ProofVerificationResponse, status_code=status.HTTP_200_OK)
def verify_proof(
    payload: ProofSubmission,
    request: Request,
    config: Settings = Depends(get_settings),
    verifier: ProofVerifier = Depends(get_proof_verifier),
    releaser: PaymentReleaser = Depends(get_payment_releaser),
) -> ProofVerificationResponse:
    enforce_rate_limit("proof", request, config)
    released = verify_proof_and_release(
        verifier=verifier,
        releaser=releaser,
        booking_id=payload.booking_id,
        proof_url=str(payload.proof_url),
    )
    return ProofVerificationResponse(success=True, payment_released=released)


legacy_router = APIRouter(tags=["proofs"])
legacy_router.add_api_route(
    "/verify-tiktok",
    verify_proof,
    methods=["POST"],
    response_model=ProofVerificationResponse,
    status_code=status.HTTP_200_OK,
)
