"""Nearby attraction fetcher using the Overpass API.

One query per call selects tourism/historic tagged nodes and ways around the
given point; elements are filtered, typed, measured, sorted by distance and
truncated.
"""

import logging

import httpx
from pydantic import ValidationError as PydanticValidationError

import config
from errors import DiscoveryError, ErrorReporter, ErrorSource, ParseError, to_report
from geo import distance
from models import Attraction, Coordinates
from providers import request_json

logger = logging.getLogger(__name__)

TYPE_TAGS = ("tourism", "historic", "amenity")
DESCRIPTION_TAGS = ("description", "wikipedia:de", "wikipedia")


def build_query(coords: Coordinates, radius_m: float, element_limit: int = config.OVERPASS_ELEMENT_LIMIT) -> str:
    around = f"around:{int(radius_m)},{coords.latitude},{coords.longitude}"
    return (
        f"[out:json][timeout:{int(config.OVERPASS_TIMEOUT_S)}];\n"
        "(\n"
        f'  node["tourism"]({around});\n'
        f'  node["historic"]({around});\n'
        f'  way["tourism"]({around});\n'
        f'  way["historic"]({around});\n'
        ");\n"
        f"out center {element_limit};"
    )


def _element_coords(element: dict) -> Coordinates | None:
    lat, lon = element.get("lat"), element.get("lon")
    if lat is None or lon is None:
        center = element.get("center")
        if not isinstance(center, dict):
            return None
        lat, lon = center.get("lat"), center.get("lon")
    if lat is None or lon is None:
        return None
    try:
        return Coordinates.of(lat, lon)
    except DiscoveryError:
        return None


def _element_type(tags: dict) -> str:
    for tag in TYPE_TAGS:
        if isinstance(tags.get(tag), str) and tags[tag]:
            return tags[tag]
    return "attraction"


def _parse_element(element: dict, origin: Coordinates, index: int) -> Attraction | None:
    tags = element.get("tags")
    if not isinstance(tags, dict):
        return None
    name = tags.get("name")
    if not isinstance(name, str) or not name.strip():
        return None
    coords = _element_coords(element)
    if coords is None:
        return None

    element_id = element.get("id")
    if element_id is None:
        attraction_id = str(index)
    elif element.get("type"):
        attraction_id = f"{element['type']}/{element_id}"
    else:
        attraction_id = str(element_id)

    description = next((tags[t] for t in DESCRIPTION_TAGS if isinstance(tags.get(t), str) and tags[t]), None)
    return Attraction(
        id=attraction_id,
        name=name,
        coordinates=coords,
        type=_element_type(tags),
        distance=round(distance(origin, coords), 1),
        rating=config.PLACEHOLDER_RATING,
        description=description,
    )


def parse_elements(
    elements: list,
    origin: Coordinates,
    max_results: int = config.MAX_ATTRACTIONS,
) -> list[Attraction]:
    attractions = []
    for index, element in enumerate(elements):
        if not isinstance(element, dict):
            continue
        try:
            attraction = _parse_element(element, origin, index)
        except (PydanticValidationError, TypeError, ValueError) as exc:
            logger.debug("Skipping Overpass element %r: %s", element.get("id"), exc)
            continue
        if attraction is not None:
            attractions.append(attraction)
    attractions.sort(key=lambda a: a.distance)
    return attractions[:max_results]


class PointOfInterestFetcher:
    def __init__(
        self,
        http: httpx.AsyncClient,
        reporter: ErrorReporter,
        url: str = config.OVERPASS_URL,
        max_results: int = config.MAX_ATTRACTIONS,
        timeout: float = config.OVERPASS_TIMEOUT_S,
        user_agent: str = config.USER_AGENT,
    ):
        self.http = http
        self.reporter = reporter
        self.url = url
        self.max_results = max_results
        self.timeout = timeout
        self.headers = {"User-Agent": user_agent}

    async def get_nearby(self, coords: Coordinates, radius_m: float = config.DEFAULT_RADIUS_M) -> list[Attraction]:
        query = build_query(coords, radius_m)
        try:
            data = await request_json(
                self.http, "POST", self.url,
                data={"data": query}, headers=self.headers, timeout=self.timeout,
            )
            if not isinstance(data, dict):
                raise ParseError("Overpass answer is not an object")
            elements = data.get("elements")
            if elements is None:
                return []
            if not isinstance(elements, list):
                raise ParseError("Overpass 'elements' is not a list")
        except DiscoveryError as exc:
            self.reporter.report(to_report(
                exc, ErrorSource.ATTRACTIONS,
                api_message_key="errors.api.attractionsUnavailable",
            ))
            return []

        attractions = parse_elements(elements, coords, self.max_results)
        logger.info(
            "Overpass: %d elements -> %d attractions within %dm of (%.4f, %.4f)",
            len(elements), len(attractions), radius_m, coords.latitude, coords.longitude,
        )
        return attractions
