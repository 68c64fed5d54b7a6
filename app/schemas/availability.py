from datetime import date, datetime

from pydantic import BaseModel, Field, model_validator


class AvailabilityRequest(BaseModel):
    username: str = Field(min_length=1, max_length=120)
    start_date: date | None = Field(default=None, alias="startDate")
    end_date: date | None = Field(default=None, alias="endDate")

    model_config = {"populate_by_name": True, "str_strip_whitespace": True}

    @model_validator(mode="after")
    def validate_range(self) -> "AvailabilityRequest":
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("endDate must not be before startDate")
        return self


class EventDefinition(BaseModel):
    duration_minutes: int | None = None
    slug: str | None = None


class DaySlots(BaseModel):
    day: date = Field(alias="date")
    slots: list[datetime]

    model_config = {"populate_by_name": True}


class AvailabilityOffer(BaseModel):
    duration: int
    event_slug: str = Field(alias="eventSlug")
    availability: list[DaySlots]

    model_config = {"populate_by_name": True}


class AvailabilityResponse(BaseModel):
    data: list[AvailabilityOffer]


class EventTypesRequest(BaseModel):
    username: str = Field(min_length=1, max_length=120)

    model_config = {"str_strip_whitespace": True}


class EventTypeSummary(BaseModel):
    duration: int
    slug: str
    price: str


class EventTypesResponse(BaseModel):
    slots: list[EventTypeSummary]
