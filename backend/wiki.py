"""Wikipedia summaries, title search and city images via the MediaWiki API."""

import logging
from typing import Any

import httpx

import config
from errors import DiscoveryError, ErrorReporter, ErrorSource, NetworkError, ParseError, ValidationError, to_report
from models import Coordinates, WikiError, WikiSearchHit, WikiSummary
from providers import request_json

logger = logging.getLogger(__name__)

NO_EXTRACT = "Keine Beschreibung verfügbar."
NOT_FOUND_EXTRACT = "Für diesen Ort sind aktuell keine detaillierten Informationen verfügbar."
FAILED_EXTRACT = 'Informationen für "{location}" konnten nicht geladen werden.'


def normalize_title(location: str) -> str:
    """Drop everything after the first comma ("Potsdam, Brandenburg" -> "Potsdam")."""
    return location.split(",")[0].strip()


def _first_page(data: Any) -> tuple[str, dict] | None:
    if not isinstance(data, dict):
        raise ParseError("Wikipedia answer is not an object")
    query = data.get("query")
    pages = query.get("pages") if isinstance(query, dict) else None
    if not isinstance(pages, dict):
        raise ParseError("Wikipedia answer has no pages")
    for page_id, page in pages.items():
        if page_id == "-1" or not isinstance(page, dict) or "missing" in page:
            return None
        return page_id, page
    return None


def _page_coordinates(page: dict) -> Coordinates | None:
    coords = page.get("coordinates")
    if not isinstance(coords, list) or not coords or not isinstance(coords[0], dict):
        return None
    try:
        return Coordinates.of(coords[0].get("lat"), coords[0].get("lon"))
    except ValidationError:
        return None


def parse_page(page: dict, fallback_title: str) -> WikiSummary:
    title = page.get("title")
    extract = page.get("extract")
    return WikiSummary(
        title=title if isinstance(title, str) and title else fallback_title,
        extract=extract if isinstance(extract, str) and extract.strip() else NO_EXTRACT,
        coordinates=_page_coordinates(page),
    )


def parse_opensearch(data: Any) -> list[WikiSearchHit]:
    """Decode the [term, titles, descriptions, urls] opensearch shape."""
    if not isinstance(data, list) or len(data) < 2 or not isinstance(data[1], list):
        return []
    descriptions = data[2] if len(data) > 2 and isinstance(data[2], list) else []
    urls = data[3] if len(data) > 3 and isinstance(data[3], list) else []

    hits = []
    for i, title in enumerate(data[1]):
        if not isinstance(title, str) or not title:
            continue
        description = descriptions[i] if i < len(descriptions) else None
        url = urls[i] if i < len(urls) else None
        hits.append(WikiSearchHit(
            title=title,
            description=description if isinstance(description, str) and description else "Keine Beschreibung",
            url=url if isinstance(url, str) else "",
        ))
    return hits


def _failure(location: str, exc: DiscoveryError) -> WikiSummary:
    if isinstance(exc, NetworkError) and exc.kind == "timeout":
        error = WikiError(code="TIMEOUT", message="Request timed out", can_retry=True)
    elif isinstance(exc, NetworkError) and exc.kind == "offline":
        error = WikiError(code="NETWORK_ERROR", message="Network unavailable", can_retry=True)
    else:
        error = WikiError(code="API_ERROR", message=str(exc), can_retry=True)
    return WikiSummary(title=location, extract=FAILED_EXTRACT.format(location=location), error=error)


class WikipediaClient:
    def __init__(
        self,
        http: httpx.AsyncClient,
        reporter: ErrorReporter,
        language: str = config.LANGUAGE,
        url: str = config.WIKIPEDIA_URL,
        user_agent: str = config.USER_AGENT,
        timeout: float = config.WIKI_TIMEOUT_S,
        image_timeout: float = config.CITY_IMAGE_TIMEOUT_S,
    ):
        self.http = http
        self.reporter = reporter
        self.url = url.format(language=language)
        self.timeout = timeout
        self.image_timeout = image_timeout
        self.headers = {"User-Agent": user_agent}

    async def _get(self, params: dict, timeout: float) -> Any:
        return await request_json(
            self.http, "GET", self.url,
            params={"format": "json", **params}, headers=self.headers, timeout=timeout,
        )

    async def _query_page(self, title: str) -> tuple[str, dict] | None:
        data = await self._get({
            "action": "query",
            "prop": "extracts|pageimages|coordinates",
            "exintro": 1,
            "explaintext": 1,
            "titles": title,
            "redirects": 1,
        }, self.timeout)
        return _first_page(data)

    async def fetch_summary(self, location: str) -> WikiSummary:
        """Intro extract for a place, never raising.

        A missing article falls back to the first opensearch title. Failures
        come back as a WikiSummary carrying a WikiError.
        """
        title = normalize_title(location)
        if not title:
            return WikiSummary(
                title=location, extract=NOT_FOUND_EXTRACT,
                error=WikiError(code="NOT_FOUND", message="Empty location"),
            )
        try:
            found = await self._query_page(title)
            if found is None:
                hits = await self.search_titles(title)
                if hits:
                    logger.debug("No article %r, retrying with %r", title, hits[0].title)
                    found = await self._query_page(hits[0].title)
        except DiscoveryError as exc:
            self.reporter.report(to_report(
                exc, ErrorSource.WIKI,
                api_message_key="errors.api.wikiUnavailable",
            ))
            return _failure(location, exc)

        if found is None:
            logger.info("No Wikipedia article for %r", location)
            return WikiSummary(
                title=location,
                extract=NOT_FOUND_EXTRACT,
                error=WikiError(code="NOT_FOUND", message=f'Wikipedia article not found for "{location}"'),
            )
        return parse_page(found[1], location)

    async def search_titles(self, term: str, limit: int = 10) -> list[WikiSearchHit]:
        """Opensearch titles for a term. Only connectivity problems are reported."""
        try:
            data = await self._get({"action": "opensearch", "search": term, "limit": limit}, self.timeout)
        except NetworkError as exc:
            if exc.kind in ("timeout", "offline"):
                self.reporter.report(to_report(exc, ErrorSource.WIKI))
            else:
                logger.debug("Wikipedia opensearch for %r failed: %s", term, exc)
            return []
        except ParseError as exc:
            logger.debug("Wikipedia opensearch for %r unreadable: %s", term, exc)
            return []
        return parse_opensearch(data)

    async def get_city_image(self, city: str) -> str | None:
        """URL of the article's original lead image, or None. Failures stay silent."""
        try:
            data = await self._get({
                "action": "query",
                "titles": city,
                "prop": "pageimages",
                "piprop": "original",
            }, self.image_timeout)
            found = _first_page(data)
        except DiscoveryError as exc:
            logger.debug("City image for %r unavailable: %s", city, exc)
            return None

        if found is None:
            return None
        original = found[1].get("original")
        source = original.get("source") if isinstance(original, dict) else None
        return source if isinstance(source, str) and source else None
