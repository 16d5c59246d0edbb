"""Discovery pipeline: composes geocoding, fetching and ranking per request."""

import asyncio
import logging
from typing import Iterable

import httpx

import config
from attractions import PointOfInterestFetcher
from cache import InMemoryStore, KeyValueStore, TTLCache
from enrichment import PlaceEnricher
from errors import ErrorReporter, LoggingErrorReporter
from geo import LocationTracker
from geocoding import GeoSearchClient, ReverseGeocoder, select_search_result
from models import CityInfo, Coordinates, DiscoveryResult, PlaceDetails, SearchResult
from ranker import InterestRanker
from scoring import ScoringClient
from throttle import RateLimiter
from wiki import WikipediaClient

logger = logging.getLogger(__name__)


class DiscoveryPipeline:
    def __init__(
        self,
        fetcher: PointOfInterestFetcher,
        ranker: InterestRanker,
        search_client: GeoSearchClient,
        geocoder: ReverseGeocoder,
        enricher: PlaceEnricher,
        tracker: LocationTracker | None = None,
        default_radius_m: float = config.DEFAULT_RADIUS_M,
    ):
        self.fetcher = fetcher
        self.ranker = ranker
        self.search_client = search_client
        self.geocoder = geocoder
        self.enricher = enricher
        self.tracker = tracker or LocationTracker()
        self.default_radius_m = default_radius_m

    async def discover(
        self,
        coords: Coordinates,
        interests: Iterable[str] = (),
        radius_m: float | None = None,
        include_city: bool = True,
    ) -> DiscoveryResult:
        radius = radius_m or self.default_radius_m

        async def fetch():
            return await self.fetcher.get_nearby(coords, radius)

        async def city_lookup():
            return await self.geocoder.reverse_geocode(coords) if include_city else None

        city, result = await asyncio.gather(city_lookup(), self.ranker.load(coords, interests, fetch))
        logger.info(
            "Discovered %d attractions for %s (cached=%s, ranking=%s)",
            len(result.attractions), result.cache_key, result.from_cache, result.ranking.value,
        )
        return result.model_copy(update={"city": city})

    async def discover_search_result(
        self,
        result: SearchResult,
        interests: Iterable[str] = (),
        radius_m: float | None = None,
    ) -> DiscoveryResult:
        """Discover around a place the user picked from search results."""
        city = select_search_result(result)
        discovered = await self.discover(result.coordinates, interests, radius_m, include_city=False)
        return discovered.model_copy(update={"city": city})

    async def on_location_update(
        self,
        coords: Coordinates,
        interests: Iterable[str] = (),
    ) -> DiscoveryResult | None:
        """Refresh only when the new GPS fix moved far enough."""
        if not self.tracker.update(coords):
            return None
        return await self.discover(coords, interests)

    async def search(self, query: str, limit: int = config.SEARCH_DEFAULT_LIMIT) -> list[SearchResult]:
        return await self.search_client.search_locations(query, limit)

    async def reverse(self, coords: Coordinates) -> CityInfo | None:
        return await self.geocoder.reverse_geocode(coords)

    async def details(self, name: str, interests: Iterable[str] = ()) -> PlaceDetails:
        return await self.enricher.details(name, interests)

    async def city_image(self, city: str) -> str | None:
        return await self.enricher.city_image(city)

    def clear_cache(self) -> bool:
        """Drop every cached entry: attraction lists, descriptions and images."""
        ok = self.ranker.cache.store.clear()
        if ok:
            logger.info("Cache cleared")
        return ok

    async def close(self) -> None:
        await self.ranker.wait_for_pending()


def build_store(reporter: ErrorReporter) -> KeyValueStore:
    if config.CACHE_BACKEND == "memory":
        return InMemoryStore()
    from db import LibsqlStore
    return LibsqlStore(reporter=reporter)


def build_pipeline(
    http: httpx.AsyncClient,
    store: KeyValueStore | None = None,
    reporter: ErrorReporter | None = None,
    rate_limiter: RateLimiter | None = None,
    scorer: ScoringClient | None = None,
) -> DiscoveryPipeline:
    reporter = reporter or LoggingErrorReporter()
    store = store if store is not None else build_store(reporter)
    rate_limiter = rate_limiter or RateLimiter()
    scorer = scorer or ScoringClient(http)
    cache = TTLCache(store)
    return DiscoveryPipeline(
        fetcher=PointOfInterestFetcher(http, reporter),
        ranker=InterestRanker(cache, scorer, reporter),
        search_client=GeoSearchClient(http, rate_limiter, reporter),
        geocoder=ReverseGeocoder(http, reporter, rate_limiter=rate_limiter),
        enricher=PlaceEnricher(cache, scorer, WikipediaClient(http, reporter), reporter),
        tracker=LocationTracker(),
    )
