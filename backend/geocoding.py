"""Forward and reverse geocoding against OpenStreetMap Nominatim.

Both clients share one RateLimiter so the process stays within Nominatim's
one-request-per-second usage policy.
"""

import logging
from typing import Any

import httpx
from pydantic import ValidationError as PydanticValidationError

import config
from errors import (
    DiscoveryError,
    ErrorReporter,
    ErrorSource,
    NotFoundError,
    ParseError,
    ValidationError,
    to_report,
)
from models import CityInfo, Coordinates, SearchResult
from providers import request_json
from throttle import RateLimiter

logger = logging.getLogger(__name__)

PLACE_FIELDS = ("city", "town", "village")
REVERSE_PLACE_FIELDS = ("city", "town", "village", "municipality", "county")


def _first_token(display_name: str) -> str:
    return display_name.split(",")[0].strip()


def _as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _as_text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _pick_place(address: dict, fields: tuple[str, ...]) -> str | None:
    for field in fields:
        value = address.get(field)
        if isinstance(value, str) and value:
            return value
    return None


def _secondary_info(address: dict, display_name: str, primary_name: str) -> str:
    parts = [address[k] for k in ("state", "country") if isinstance(address.get(k), str) and address[k]]
    if parts:
        return ", ".join(parts)
    tokens = [t.strip() for t in display_name.split(",") if t.strip()]
    return ", ".join(t for t in tokens if t != primary_name)


def parse_search_item(item: dict) -> SearchResult:
    """Map one Nominatim search hit onto a SearchResult.

    Raises ValidationError when the hit has no usable coordinates and
    pydantic's ValidationError when a field has the wrong type.
    """
    display_name = _as_text(item.get("display_name"))
    address = _as_dict(item.get("address"))
    primary_name = _pick_place(address, PLACE_FIELDS) or _first_token(display_name)
    importance = item.get("importance")
    return SearchResult(
        id=str(item.get("place_id", "")),
        display_name=display_name,
        primary_name=primary_name,
        secondary_info=_secondary_info(address, display_name, primary_name),
        coordinates=Coordinates.of(item.get("lat"), item.get("lon")),
        type=item.get("type") or "unknown",
        importance=float(importance) if importance is not None else 0.0,
    )


def select_search_result(result: SearchResult) -> CityInfo:
    parts = [p.strip() for p in result.secondary_info.split(",")] if result.secondary_info else []
    return CityInfo(
        city=result.primary_name,
        country=parts[-1] if parts else "",
        state=parts[0] if len(parts) > 1 else None,
        full_address=result.display_name,
        latitude=result.coordinates.latitude,
        longitude=result.coordinates.longitude,
    )


class GeoSearchClient:
    def __init__(
        self,
        http: httpx.AsyncClient,
        rate_limiter: RateLimiter,
        reporter: ErrorReporter,
        base_url: str = config.NOMINATIM_URL,
        user_agent: str = config.USER_AGENT,
        language: str = config.ACCEPT_LANGUAGE,
        timeout: float = config.SEARCH_TIMEOUT_S,
    ):
        self.http = http
        self.rate_limiter = rate_limiter
        self.reporter = reporter
        self.base_url = base_url.rstrip("/")
        self.headers = {"User-Agent": user_agent}
        self.language = language
        self.timeout = timeout

    async def search_locations(self, query: str, limit: int = config.SEARCH_DEFAULT_LIMIT) -> list[SearchResult]:
        query = (query or "").strip()
        if not query:
            return []

        await self.rate_limiter.acquire()
        params = {
            "q": query,
            "format": "json",
            "limit": limit,
            "addressdetails": 1,
            "accept-language": self.language,
        }
        try:
            data = await request_json(
                self.http, "GET", f"{self.base_url}/search",
                params=params, headers=self.headers, timeout=self.timeout,
            )
        except ParseError as exc:
            logger.debug("Search for %r returned no usable body: %s", query, exc)
            return []
        except DiscoveryError as exc:
            self.reporter.report(to_report(exc, ErrorSource.GEO_SEARCH))
            return []

        if not isinstance(data, list):
            logger.debug("Search for %r returned %s, expected a list", query, type(data).__name__)
            return []

        results: list[SearchResult] = []
        for item in data:
            if not isinstance(item, dict):
                continue
            try:
                results.append(parse_search_item(item))
            except (ValidationError, PydanticValidationError, TypeError, ValueError) as exc:
                logger.debug("Skipping search hit %s: %s", item.get("place_id"), exc)
        logger.info("Search %r: %d results", query, len(results))
        return results

    async def search_location(self, name: str) -> Coordinates | None:
        """Resolve a place name to the coordinates of the best hit."""
        results = await self.search_locations(name, limit=1)
        return results[0].coordinates if results else None


class ReverseGeocoder:
    def __init__(
        self,
        http: httpx.AsyncClient,
        reporter: ErrorReporter,
        rate_limiter: RateLimiter | None = None,
        base_url: str = config.NOMINATIM_URL,
        user_agent: str = config.USER_AGENT,
        language: str = config.ACCEPT_LANGUAGE,
        timeout: float = config.REVERSE_TIMEOUT_S,
    ):
        self.http = http
        self.reporter = reporter
        self.rate_limiter = rate_limiter
        self.base_url = base_url.rstrip("/")
        self.headers = {"User-Agent": user_agent}
        self.language = language
        self.timeout = timeout

    async def reverse_geocode(self, coords: Coordinates) -> CityInfo | None:
        """Reverse geocode a coordinate into a CityInfo.

        Returns None (and reports) on network errors or an empty answer.
        """
        if self.rate_limiter is not None:
            await self.rate_limiter.acquire()
        params = {
            "lat": coords.latitude,
            "lon": coords.longitude,
            "format": "json",
            "accept-language": self.language,
        }
        try:
            data = await request_json(
                self.http, "GET", f"{self.base_url}/reverse",
                params=params, headers=self.headers, timeout=self.timeout,
            )
            return self._parse(data)
        except DiscoveryError as exc:
            self.reporter.report(to_report(exc, ErrorSource.REVERSE_GEOCODER))
            return None

    @staticmethod
    def _parse(data: Any) -> CityInfo:
        if not isinstance(data, dict) or not data or data.get("error"):
            raise NotFoundError(f"No place found: {data.get('error') if isinstance(data, dict) else data!r}")
        display_name = _as_text(data.get("display_name"))
        address = _as_dict(data.get("address"))
        city = _pick_place(address, REVERSE_PLACE_FIELDS) or _first_token(display_name)
        if not city:
            raise NotFoundError("Reverse geocode answer has no place name")
        echoed = Coordinates.of(data.get("lat"), data.get("lon"))
        state = address.get("state")
        return CityInfo(
            city=city,
            country=_as_text(address.get("country")),
            state=state if isinstance(state, str) else None,
            full_address=display_name,
            latitude=echoed.latitude,
            longitude=echoed.longitude,
        )
