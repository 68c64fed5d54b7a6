from pydantic import AliasChoices, BaseModel, Field, HttpUrl


class ProofSubmission(BaseModel):
    booking_id: str = Field(min_length=1, max_length=128, alias="bookingId")
    proof_url: HttpUrl = Field(validation_alias=AliasChoices("proofUrl", "tiktokUrl", "proof_url"))

    model_config = {"populate_by_name": True, "str_strip_whitespace": True}


class ProofVerificationResponse(BaseModel):
    success: bool
    payment_released: bool = Field(alias="paymentReleased")

    model_config = {"populate_by_name": True}
