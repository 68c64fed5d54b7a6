import logging
from collections import defaultdict
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, Generic, TypeVar

from fastapi import HTTPException, status

from app.core.config import Settings
from app.schemas.availability import AvailabilityOffer, DaySlots, EventDefinition, EventTypeSummary
from app.services.calcom_client import CalComClient, CalComError

logger = logging.getLogger(__name__)

ItemT = TypeVar("ItemT")
ValueT = TypeVar("ValueT")

AVAILABILITY_FAILED_DETAIL = "Failed to fetch available time blocks"
EVENT_TYPES_FAILED_DETAIL = "Failed to fetch slots"


@dataclass(frozen=True)
class Outcome(Generic[ItemT, ValueT]):
    item: ItemT
    value: ValueT | None = None
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.reason is None


def best_effort_map(
    func: Callable[[ItemT], ValueT],
    items: Iterable[ItemT],
    errors: tuple[type[Exception], ...] = (CalComError, ValueError, TypeError),
) -> list[Outcome[ItemT, ValueT]]:
    """Apply ``func`` to every item, recording failures instead of raising them."""
    outcomes: list[Outcome[ItemT, ValueT]] = []
    for item in items:
        try:
            outcomes.append(Outcome(item=item, value=func(item)))
        except errors as exc:
            outcomes.append(Outcome(item=item, reason=str(exc) or exc.__class__.__name__))
    return outcomes


def resolve_search_window(
    start_date: date | None,
    end_date: date | None,
    default_days: int,
    now: datetime | None = None,
) -> tuple[datetime, datetime]:
    now = now or datetime.now(UTC)
    start = datetime.combine(start_date, time.min, tzinfo=UTC) if start_date else now
    if end_date:
        end = datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=UTC)
    else:
        end = now + timedelta(days=default_days)
    return start, end


def _parse_timestamp(value: Any) -> datetime:
    """Parse a provider timestamp as an aware UTC datetime; naive values are taken as UTC."""
    parsed = value if isinstance(value, datetime) else datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def to_day_slots(slots_by_day: dict[str, list[Any]]) -> list[DaySlots]:
    grouped: dict[date, list[datetime]] = defaultdict(list)
    for day_key, starts in slots_by_day.items():
        day = date.fromisoformat(day_key[:10])
        grouped[day].extend(_parse_timestamp(start) for start in starts)

    return [DaySlots(day=day, slots=sorted(grouped[day])) for day in sorted(grouped)]


def is_bookable(definition: EventDefinition, supported_durations: Iterable[int]) -> bool:
    return bool(definition.slug) and definition.duration_minutes in set(supported_durations)


def get_available_time_blocks(
    cal_client: CalComClient,
    config: Settings,
    username: str,
    start_date: date | None = None,
    end_date: date | None = None,
) -> list[AvailabilityOffer]:
    start, end = resolve_search_window(start_date, end_date, config.availability_default_days)

    try:
        definitions = cal_client.list_event_definitions(username)
    except CalComError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"{AVAILABILITY_FAILED_DETAIL}: {exc.message}",
        ) from None

    bookable = [d for d in definitions if is_bookable(d, config.supported_durations)]

    def fetch_day_slots(definition: EventDefinition) -> list[DaySlots]:
        return to_day_slots(cal_client.get_slots(definition.slug, username, start, end))

    offers: list[AvailabilityOffer] = []
    for outcome in best_effort_map(fetch_day_slots, bookable):
        definition = outcome.item
        if not outcome.ok:
            logger.warning(
                "slot_fetch_skipped username=%s event_slug=%s reason=%s",
                username,
                definition.slug,
                outcome.reason,
            )
            continue
        if not any(day.slots for day in outcome.value):
            continue
        offers.append(
            AvailabilityOffer(
                duration=definition.duration_minutes,
                event_slug=definition.slug,
                availability=outcome.value,
            )
        )

    logger.info(
        "availability_aggregated username=%s definitions=%s offers=%s",
        username,
        len(definitions),
        len(offers),
    )
    return offers


def suggested_price(duration_minutes: int, price_per_block: Decimal) -> str:
    """Price hint of one ``price_per_block`` per 15 minutes."""
    return f"${Decimal(duration_minutes) / 15 * price_per_block:.2f}"


def list_event_types(cal_client: CalComClient, config: Settings, username: str) -> list[EventTypeSummary]:
    try:
        definitions = cal_client.list_event_definitions(username)
    except CalComError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"{EVENT_TYPES_FAILED_DETAIL}: {exc.message}",
        ) from None

    return [
        EventTypeSummary(
            duration=definition.duration_minutes,
            slug=definition.slug,
            price=suggested_price(definition.duration_minutes, config.price_per_block),
        )
        for definition in definitions
        if is_bookable(definition, config.supported_durations)
    ]
