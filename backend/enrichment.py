"""Place details: Wikipedia summary plus a cached AI description, and city images."""

import asyncio
import logging
from typing import Iterable

import config
from cache import TTLCache, build_text_key, normalize_interests
from errors import ErrorReporter, ErrorSeverity, ErrorSource, NetworkError, ParseError, to_report
from models import PlaceDetails
from scoring import ScoringClient, interest_context, scoring_message_key
from wiki import WikipediaClient

logger = logging.getLogger(__name__)


class PlaceEnricher:
    def __init__(
        self,
        cache: TTLCache,
        scorer: ScoringClient,
        wiki: WikipediaClient,
        reporter: ErrorReporter,
        description_ttl_ms: float = config.DESCRIPTION_TTL_MS,
        image_ttl_ms: float = config.CITY_IMAGE_TTL_MS,
        description_prefix: str = config.DESCRIPTION_CACHE_PREFIX,
        image_prefix: str = config.CITY_IMAGE_CACHE_PREFIX,
    ):
        self.cache = cache
        self.scorer = scorer
        self.wiki = wiki
        self.reporter = reporter
        self.description_ttl_ms = description_ttl_ms
        self.image_ttl_ms = image_ttl_ms
        self.description_prefix = description_prefix
        self.image_prefix = image_prefix

    def description_key(self, location: str, interests: Iterable[str] = ()) -> str:
        return build_text_key(self.description_prefix, location, interests)

    async def describe(self, location: str, interests: Iterable[str] = ()) -> tuple[str | None, bool]:
        """(description, from_cache). None when no key is configured or the call failed."""
        if not location.strip() or not self.scorer.has_valid_key:
            return None, False

        interests = normalize_interests(interests)
        key = self.description_key(location, interests)
        cached = self.cache.get_cached(key, str)
        if cached:
            logger.debug("Description cache hit %s", key)
            return cached, True

        try:
            description = await self.scorer.describe(location, interest_context(interests, self.scorer.language))
        except NetworkError as exc:
            self.reporter.report(to_report(
                exc, ErrorSource.SCORING,
                severity=ErrorSeverity.INFO,
                api_message_key=scoring_message_key(exc),
            ))
            return None, False
        except ParseError as exc:
            logger.warning("Description reply for %r unusable: %s", location, exc)
            return None, False

        self.cache.set_cached(key, description, self.description_ttl_ms)
        return description, False

    async def details(self, location: str, interests: Iterable[str] = ()) -> PlaceDetails:
        summary, (description, from_cache) = await asyncio.gather(
            self.wiki.fetch_summary(location),
            self.describe(location, interests),
        )
        return PlaceDetails(
            name=location,
            wiki=summary,
            description=description,
            description_from_cache=from_cache,
        )

    async def city_image(self, city: str) -> str | None:
        """Lead image URL for a city. Misses are not cached."""
        if not city.strip():
            return None
        key = build_text_key(self.image_prefix, city)
        cached = self.cache.get_cached(key, str)
        if cached:
            return cached
        url = await self.wiki.get_city_image(city.strip())
        if url:
            self.cache.set_cached(key, url, self.image_ttl_ms)
        return url
