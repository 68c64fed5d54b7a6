"""Thin client for the Cal.com v2 REST API.

Only the calls the booking flow needs are wrapped: event types, slot
availability, booking creation and booking lookup. Each endpoint family is
versioned through the ``cal-api-version`` header.
"""

import logging
from datetime import datetime
from typing import Any

import httpx

from app.core.config import Settings
from app.core.metrics import CALCOM_REQUEST_COUNT
from app.schemas.availability import EventDefinition

logger = logging.getLogger(__name__)


class CalComError(Exception):
    """Raised when the scheduling provider is unreachable or rejects a call."""

    def __init__(self, message: str, status_code: int | None = None, detail: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.detail = detail


def _provider_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase

    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if isinstance(error, str):
        return error
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.reason_phrase


class CalComClient:
    def __init__(
        self,
        base_url: str,
        api_key: str,
        event_types_version: str,
        slots_version: str,
        bookings_version: str,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )
        self._event_types_version = event_types_version
        self._slots_version = slots_version
        self._bookings_version = bookings_version

    @classmethod
    def from_settings(cls, settings: Settings, transport: httpx.BaseTransport | None = None) -> "CalComClient":
        return cls(
            base_url=settings.cal_api_base_url,
            api_key=settings.cal_api_key,
            event_types_version=settings.cal_event_types_api_version,
            slots_version=settings.cal_slots_api_version,
            bookings_version=settings.cal_bookings_api_version,
            timeout=settings.cal_request_timeout_seconds,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def _request(
        self,
        operation: str,
        method: str,
        path: str,
        api_version: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> Any:
        try:
            response = self._client.request(
                method,
                path,
                params=params,
                json=json,
                headers={"cal-api-version": api_version},
            )
        except httpx.HTTPError as exc:
            CALCOM_REQUEST_COUNT.labels(operation=operation, outcome="unreachable").inc()
            logger.error("calcom_unreachable operation=%s reason=%s", operation, exc)
            raise CalComError(f"Scheduling provider unreachable: {exc}") from exc

        if response.is_error:
            CALCOM_REQUEST_COUNT.labels(operation=operation, outcome="rejected").inc()
            message = _provider_message(response)
            logger.error(
                "calcom_rejected operation=%s status=%s message=%s",
                operation,
                response.status_code,
                message,
            )
            raise CalComError(message, status_code=response.status_code, detail=message)

        CALCOM_REQUEST_COUNT.labels(operation=operation, outcome="ok").inc()
        try:
            body = response.json()
        except ValueError as exc:
            raise CalComError("Scheduling provider returned a non-JSON body", status_code=response.status_code) from exc
        return body.get("data") if isinstance(body, dict) else body

    def list_event_definitions(self, username: str) -> list[EventDefinition]:
        data = self._request(
            "event_types",
            "GET",
            "/event-types",
            self._event_types_version,
            params={"username": username},
        )
        if not isinstance(data, list):
            raise CalComError("Unexpected event types payload from scheduling provider")

        return [
            EventDefinition(
                duration_minutes=item.get("lengthInMinutes"),
                slug=item.get("slug") or None,
            )
            for item in data
            if isinstance(item, dict)
        ]

    def get_slots(self, event_slug: str, username: str, start: datetime, end: datetime) -> dict[str, list[str]]:
        """Return available start timestamps keyed by the provider's calendar date."""
        data = self._request(
            "slots",
            "GET",
            "/slots",
            self._slots_version,
            params={
                "eventTypeSlug": event_slug,
                "username": username,
                "start": start.isoformat(),
                "end": end.isoformat(),
            },
        )
        if isinstance(data, dict) and isinstance(data.get("slots"), dict):
            data = data["slots"]
        if not isinstance(data, dict):
            raise CalComError(f"Unexpected slots payload for {event_slug}")

        slots_by_day: dict[str, list[str]] = {}
        for day, entries in data.items():
            starts = []
            for entry in entries or []:
                if isinstance(entry, dict):
                    value = entry.get("start") or entry.get("time")
                else:
                    value = entry
                if value:
                    starts.append(value)
            slots_by_day[day] = starts
        return slots_by_day

    def create_booking(self, payload: dict[str, Any]) -> dict[str, Any]:
        data = self._request("create_booking", "POST", "/bookings", self._bookings_version, json=payload)
        if not isinstance(data, dict):
            raise CalComError("Unexpected booking payload from scheduling provider")
        return data

    def get_booking(self, booking_uid: str) -> dict[str, Any]:
        data = self._request("get_booking", "GET", f"/bookings/{booking_uid}", self._bookings_version)
        if not isinstance(data, dict):
            raise CalComError(f"Unexpected booking payload for {booking_uid}")
        return data
