"""Caller-side location search with debouncing.

Keystrokes reset a short quiet window before anything reaches the search
client, and answers to a query that has since been replaced are dropped.
"""

import asyncio
import logging

import config
from geocoding import GeoSearchClient, select_search_result
from models import CityInfo, SearchResult
from throttle import Debouncer

logger = logging.getLogger(__name__)


class LocationSearchSession:
    def __init__(
        self,
        client: GeoSearchClient,
        debounce_s: float = config.SEARCH_DEBOUNCE_S,
        limit: int = 5,
    ):
        self.client = client
        self.limit = limit
        self.query = ""
        self.results: list[SearchResult] = []
        self.loading = False
        self.selected: SearchResult | None = None
        self._debouncer = Debouncer(debounce_s)
        self._generation = 0

    def set_query(self, query: str) -> None:
        self.query = query
        self._generation += 1
        self._debouncer.cancel()

        if not query.strip():
            self.results = []
            self.loading = False
            return

        self.loading = True
        generation = self._generation
        self._debouncer.schedule(lambda: self._perform_search(query, generation))

    async def _perform_search(self, query: str, generation: int) -> None:
        results = await self.client.search_locations(query, self.limit)
        if generation != self._generation:
            logger.debug("Discarding results for superseded query %r", query)
            return
        self.results = results
        self.loading = False

    async def wait(self) -> None:
        """Wait for the pending search, if any, to settle."""
        task = self._debouncer.pending
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            if not task.cancelled():
                raise

    def select(self, result: SearchResult) -> CityInfo:
        self._generation += 1
        self._debouncer.cancel()
        self.selected = result
        self.loading = False
        self.query = result.primary_name
        self.results = []
        return select_search_result(result)

    def clear(self) -> None:
        self._generation += 1
        self._debouncer.cancel()
        self.query = ""
        self.results = []
        self.loading = False
        self.selected = None
