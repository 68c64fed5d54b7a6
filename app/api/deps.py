from collections.abc import Iterator

from fastapi import Depends

from app.core.config import Settings, settings
from app.services.calcom_client import CalComClient
from app.services.payment_service import PaymentConfirmer, build_payment_confirmer
from app.services.proof_service import (
    LoggingPaymentReleaser,
    PaymentReleaser,
    ProofVerifier,
    build_proof_verifier,
)


def get_settings() -> Settings:
    return settings


def get_cal_client(config: Settings = Depends(get_settings)) -> Iterator[CalComClient]:
    client = CalComClient.from_settings(config)
    try:
        yield client
    finally:
        client.close()


def get_payment_confirmer(config: Settings = Depends(get_settings)) -> PaymentConfirmer | None:
    return build_payment_confirmer(config)


def get_proof_verifier(
    config: Settings = Depends(get_settings),
    cal_client: CalComClient = Depends(get_cal_client),
) -> ProofVerifier:
    return build_proof_verifier(config, cal_client)


def get_payment_releaser() -> PaymentReleaser:
    return LoggingPaymentReleaser()
