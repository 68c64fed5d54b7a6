from decimal import Decimal
from typing import Any

from pydantic import BaseModel, EmailStr, Field, field_serializer


class PaymentRecord(BaseModel):
    booking_id: str = Field(min_length=1, max_length=128, alias="bookingId")
    offered_amount: Decimal = Field(ge=0, alias="offeredAmount")
    attendee_email: EmailStr = Field(alias="attendeeEmail")

    model_config = {"populate_by_name": True, "str_strip_whitespace": True}

    @field_serializer("offered_amount", when_used="json")
    def serialize_offered_amount(self, value: Decimal) -> float:
        return float(value)


class PaymentConfirmationResponse(BaseModel):
    success: bool
    details: dict[str, Any]
