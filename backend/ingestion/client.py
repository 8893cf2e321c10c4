from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

import httpx
from loguru import logger

from app.core.config import settings
from app.domain import ProviderError, SourceNotConfiguredError

from .base import RateLimiter

TICKETMASTER_MAX_PAGE_SIZE = 200
SEATGEEK_MAX_PER_PAGE = 100
GOOGLE_PLACES_MAX_RESULTS = 20

GOOGLE_PLACES_FIELD_MASK = ",".join(
    (
        "places.id",
        "places.displayName",
        "places.formattedAddress",
        "places.location",
        "places.rating",
        "places.websiteUri",
        "places.googleMapsUri",
        "places.types",
        "places.photos",
    )
)


def format_api_datetime(value: datetime) -> str:
    """Render a timestamp as ``YYYY-MM-DDTHH:MM:SSZ``."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class _ProviderClient:
    provider = "Provider"

    def __init__(
        self,
        *,
        base_url: str,
        timeout: float | None = None,
        limiter: RateLimiter | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url
        self.timeout = timeout if timeout is not None else settings.http_timeout_seconds
        self.limiter = limiter or RateLimiter(0)
        self.client = httpx.Client(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        self.limiter.wait_or_raise()
        response = self.client.request(method, path, **kwargs)
        if response.is_error:
            raise ProviderError(self.provider, response.status_code, response.text)
        return response

    def close(self) -> None:
        self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class TicketmasterClient(_ProviderClient):
    """Thin wrapper around the Ticketmaster Discovery API v2."""

    provider = "Ticketmaster"

    def __init__(
        self,
        api_key: str | None = None,
        *,
        base_url: str | None = None,
        page_size: int = TICKETMASTER_MAX_PAGE_SIZE,
        **kwargs: Any,
    ) -> None:
        self.api_key = api_key or settings.ticketmaster_api_key
        if not self.api_key:
            raise SourceNotConfiguredError("TICKETMASTER_API_KEY")
        self.page_size = min(page_size, TICKETMASTER_MAX_PAGE_SIZE)
        super().__init__(
            base_url=base_url or str(settings.ticketmaster_base_url),
            **kwargs,
        )

    def fetch_page(
        self,
        *,
        city: str,
        state_code: str | None,
        start: datetime,
        end: datetime,
        page: int,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {
            "apikey": self.api_key,
            "locale": "*",
            "size": self.page_size,
            "page": page,
            "city": city,
            "startDateTime": format_api_datetime(start),
            "endDateTime": format_api_datetime(end),
            "sort": "date,asc",
        }
        if state_code:
            params["stateCode"] = state_code
        logger.info("Ticketmaster GET events city={} page={}", city, page)
        return self._request("GET", "/events.json", params=params).json()

    def iter_events(
        self,
        *,
        city: str,
        state_code: str | None,
        start: datetime,
        end: datetime,
    ) -> Iterable[dict[str, Any]]:
        page = 0
        total_pages = 1
        while page < total_pages:
            payload = self.fetch_page(
                city=city, state_code=state_code, start=start, end=end, page=page
            )
            embedded = payload.get("_embedded") or {}
            for event in embedded.get("events") or []:
                yield event

            page_info = payload.get("page") or {}
            total_pages = int(page_info.get("totalPages") or 0)
            page += 1


class SeatGeekClient(_ProviderClient):
    """Thin wrapper around the SeatGeek platform API."""

    provider = "SeatGeek"

    def __init__(
        self,
        client_id: str | None = None,
        *,
        base_url: str | None = None,
        per_page: int = SEATGEEK_MAX_PER_PAGE,
        **kwargs: Any,
    ) -> None:
        self.client_id = client_id or settings.seatgeek_client_id
        if not self.client_id:
            raise SourceNotConfiguredError("SEATGEEK_CLIENT_ID")
        self.per_page = min(per_page, SEATGEEK_MAX_PER_PAGE)
        super().__init__(base_url=base_url or str(settings.seatgeek_base_url), **kwargs)

    def fetch_page(
        self,
        *,
        lat: float,
        lon: float,
        range_: str,
        start: datetime,
        end: datetime,
        page: int,
    ) -> dict[str, Any]:
        params = {
            "client_id": self.client_id,
            "lat": lat,
            "lon": lon,
            "range": range_,
            "per_page": self.per_page,
            "page": page,
            "datetime_utc.gte": format_api_datetime(start),
            "datetime_utc.lte": format_api_datetime(end),
        }
        logger.info("SeatGeek GET events lat={} lon={} page={}", lat, lon, page)
        return self._request("GET", "/events", params=params).json()

    def iter_events(
        self,
        *,
        lat: float,
        lon: float,
        range_: str,
        start: datetime,
        end: datetime,
    ) -> Iterable[dict[str, Any]]:
        page = 1
        seen = 0
        while True:
            payload = self.fetch_page(
                lat=lat, lon=lon, range_=range_, start=start, end=end, page=page
            )
            events = payload.get("events") or []
            for event in events:
                yield event
            seen += len(events)

            total = int((payload.get("meta") or {}).get("total") or 0)
            if seen >= total or len(events) < self.per_page:
                break
            page += 1

    def event_exists(self, external_id: str) -> bool | None:
        """True when the event is live, False on a 404, None when unknown."""
        try:
            self._request("GET", f"/events/{external_id}", params={"client_id": self.client_id})
        except ProviderError as exc:
            if exc.status_code == 404:
                return False
            logger.warning("SeatGeek validation of {} failed: {}", external_id, exc)
            return None
        except httpx.HTTPError as exc:
            logger.warning("SeatGeek validation of {} failed: {}", external_id, exc)
            return None
        return True


class GooglePlacesClient(_ProviderClient):
    """Google Places (New) text search."""

    provider = "Google Places"

    def __init__(
        self,
        api_key: str | None = None,
        *,
        search_url: str | None = None,
        **kwargs: Any,
    ) -> None:
        self.api_key = api_key or settings.google_places_api_key
        if not self.api_key:
            raise SourceNotConfiguredError("GOOGLE_PLACES_API_KEY")
        self.search_url = search_url or str(settings.google_places_search_url)
        super().__init__(base_url="", **kwargs)

    def search_text(
        self,
        query: str,
        *,
        lat: float,
        lng: float,
        radius_meters: float,
        max_results: int = GOOGLE_PLACES_MAX_RESULTS,
    ) -> list[dict[str, Any]]:
        body = {
            "textQuery": query,
            "maxResultCount": max(1, min(GOOGLE_PLACES_MAX_RESULTS, max_results)),
            "locationBias": {
                "circle": {
                    "center": {"latitude": lat, "longitude": lng},
                    "radius": radius_meters,
                }
            },
        }
        headers = {
            "X-Goog-Api-Key": self.api_key,
            "X-Goog-FieldMask": GOOGLE_PLACES_FIELD_MASK,
        }
        logger.info("Google Places search {!r} near ({}, {})", query, lat, lng)
        payload = self._request("POST", self.search_url, json=body, headers=headers).json()
        error = payload.get("error")
        if error:
            raise ProviderError(
                self.provider, int(error.get("code") or 0), str(error.get("message") or "")
            )
        places = payload.get("places")
        return places if isinstance(places, list) else []
