from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import AliasChoices, BaseModel, EmailStr, Field


class BookingStatus(str, Enum):
    CONFIRMED = "confirmed"
    PAYMENT_BYPASSED = "pending_payment_server_side_skipped"


class BookingRequest(BaseModel):
    attendee_name: str = Field(min_length=1, max_length=120, alias="attendeeName")
    attendee_email: EmailStr = Field(alias="attendeeEmail")
    start_time: datetime = Field(alias="startTime")
    offered_amount: Decimal = Field(ge=0, alias="offeredAmount")
    service_description: str = Field(min_length=1, max_length=500, alias="serviceDescription")
    booked_duration: int = Field(alias="bookedDuration")
    organizer_username: str = Field(
        min_length=1,
        max_length=120,
        validation_alias=AliasChoices("organizerUsername", "calcomOrganizerUsername", "organizer_username"),
    )
    tiktok_username: str | None = Field(default=None, max_length=120, alias="tiktokUsername")
    irl_travel_username: str | None = Field(default=None, max_length=120, alias="irlTravelUsername")
    time_zone: str | None = Field(default=None, max_length=64, alias="timeZone")

    model_config = {"populate_by_name": True, "str_strip_whitespace": True}


class BookingConfirmation(BaseModel):
    booking_id: str = Field(alias="bookingId")
    meeting_url: str | None = Field(default=None, alias="meetingUrl")
    start_time: datetime = Field(alias="startTime")
    end_time: datetime = Field(alias="endTime")
    title: str
    offered_amount: Decimal = Field(alias="offeredAmount")
    status: BookingStatus
    instructions: str

    model_config = {"populate_by_name": True}


class BookingResponse(BaseModel):
    data: BookingConfirmation
