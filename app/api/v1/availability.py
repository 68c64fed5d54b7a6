from fastapi import APIRouter, Depends, Request, status

from app.api.deps import get_cal_client, get_settings
from app.core.config import Settings
from app.core.rate_limiter import enforce_rate_limit
from app.schemas.availability import (
    AvailabilityRequest,
    AvailabilityResponse,
    EventTypesRequest,
    EventTypesResponse,
)
from app.services.availability_service import get_available_time_blocks, list_event_types
from app.services.calcom_client import CalComClient

router = APIRouter(prefix="/api", tags=["availability"])


@router.post("/get-available-time-blocks", response_model=AvailabilityResponse, status_code=status.HTTP_200_OK)
def get_available_time_blocks_for_organizer(
    payload: AvailabilityRequest,
    request: Request,
    config: Settings = Depends(get_settings),
    cal_client: CalComClient = Depends(get_cal_client),
) -> AvailabilityResponse:
    enforce_rate_limit("availability", request, config)
    offers = get_available_time_blocks(
        cal_client=cal_client,
        config=config,
        username=payload.username,
        start_date=payload.start_date,
        end_date=payload.end_date,
    )
    return AvailabilityResponse(data=offers)


@router.post("/slots", response_model=EventTypesResponse, status_code=status.HTTP_200_OK)
def list_organizer_event_types(
    payload: EventTypesRequest,
    request: Request,
    config: Settings = Depends(get_settings),
    cal_client: CalComClient = Depends(get_cal_client),
) -> EventTypesResponse:
    enforce_rate_limit("availability", request, config)
    return EventTypesResponse(slots=list_event_types(cal_client=cal_client, config=config, username=payload.username))
