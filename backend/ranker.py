"""Two-phase interest ranking.

Phase 1 hands back whatever can be shown right away: a cached ranked list,
or the freshly fetched raw list. Phase 2 runs as a background task that asks
the scoring collaborator for per-attraction scores, reorders, and upgrades the
cached result. A failing phase 2 never takes the raw list away.

Per cache key: IDLE -> RAW_READY -> RANKING -> RANKED, or RANKING -> RAW_READY
when scoring fails.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Iterable

import config
from cache import TTLCache, build_key, normalize_interests
from errors import ErrorReporter, ErrorSeverity, ErrorSource, NetworkError, ParseError, to_report
from models import Attraction, AttractionScore, Coordinates, DiscoveryResult, RankingState
from scoring import ScoringClient, scoring_message_key

logger = logging.getLogger(__name__)

RankedListener = Callable[[str, list[Attraction]], None]


def sort_by_interest_score(attractions: Iterable[Attraction]) -> list[Attraction]:
    """Descending by score, unscored entries last, ties keep their order."""
    return sorted(
        attractions,
        key=lambda a: (a.interest_score is None, -(a.interest_score or 0.0)),
    )


def merge_scores(
    attractions: list[Attraction],
    scores: list[AttractionScore],
    default_score: float = config.DEFAULT_INTEREST_SCORE,
) -> list[Attraction]:
    """Attach scores by exact name; names the scorer skipped get the default."""
    by_name: dict[str, AttractionScore] = {}
    for s in scores:
        by_name.setdefault(s.name, s)

    merged = []
    for attraction in attractions:
        match = by_name.get(attraction.name)
        merged.append(attraction.model_copy(update={
            "interest_score": match.score if match else default_score,
            "interest_reason": match.reason if match else "",
        }))
    return merged


class InterestRanker:
    def __init__(
        self,
        cache: TTLCache,
        scorer: ScoringClient,
        reporter: ErrorReporter,
        ranked_ttl_ms: float = config.RANKED_TTL_MS,
        raw_ttl_ms: float = config.RAW_TTL_MS,
        ranked_prefix: str = config.ATTRACTIONS_CACHE_PREFIX,
        raw_prefix: str = config.RAW_ATTRACTIONS_CACHE_PREFIX,
    ):
        self.cache = cache
        self.scorer = scorer
        self.reporter = reporter
        self.ranked_ttl_ms = ranked_ttl_ms
        self.raw_ttl_ms = raw_ttl_ms
        self.ranked_prefix = ranked_prefix
        self.raw_prefix = raw_prefix
        self._states: dict[str, RankingState] = {}
        self._in_flight: set[str] = set()
        self._tasks: set[asyncio.Task] = set()
        self._listeners: list[RankedListener] = []

    # ---------- Introspection ----------

    def keys_for(self, coords: Coordinates, interests: Iterable[str]) -> tuple[str, str]:
        """(ranked key, raw key) for a discovery request."""
        return (
            build_key(self.ranked_prefix, coords, interests),
            build_key(self.raw_prefix, coords, interests),
        )

    def state(self, key: str) -> RankingState:
        return self._states.get(key, RankingState.IDLE)

    def is_ranking(self, key: str) -> bool:
        return key in self._in_flight

    def on_ranked(self, listener: RankedListener) -> None:
        self._listeners.append(listener)

    async def wait_for_pending(self) -> None:
        """Block until every background ranking task has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ---------- Phase 1 ----------

    async def load(
        self,
        coords: Coordinates,
        interests: Iterable[str],
        fetch: Callable[[], Awaitable[list[Attraction]]],
    ) -> DiscoveryResult:
        interests = normalize_interests(interests)
        key, raw_key = self.keys_for(coords, interests)

        cached = self.cache.get_cached(key, list[Attraction])
        if cached is not None:
            logger.debug("Ranked cache hit %s", key)
            return DiscoveryResult(
                cache_key=key,
                attractions=cached,
                from_cache=True,
                ranking=self._states.get(key, RankingState.RANKED),
            )

        if key in self._in_flight:
            raw = self.cache.get_cached(raw_key, list[Attraction])
            if raw is not None:
                return DiscoveryResult(
                    cache_key=key, attractions=raw, from_cache=True, ranking=RankingState.RANKING,
                )

        raw = await fetch()
        if raw:
            self.cache.set_cached(raw_key, raw, self.raw_ttl_ms)
            # a concurrent load may have started ranking while we were fetching
            if key not in self._in_flight:
                self._states[key] = RankingState.RAW_READY
                self._start_ranking(key, raw, interests)
        return DiscoveryResult(cache_key=key, attractions=raw, ranking=self.state(key))

    def _start_ranking(self, key: str, raw: list[Attraction], interests: list[str]) -> None:
        if not interests or not self.scorer.has_valid_key:
            self.cache.set_cached(key, raw, self.ranked_ttl_ms)
            return
        if key in self._in_flight:
            logger.debug("Ranking already running for %s", key)
            return

        self._in_flight.add(key)
        self._states[key] = RankingState.RANKING
        task = asyncio.create_task(self._rank_in_background(key, raw, interests))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    # ---------- Phase 2 ----------

    async def _rank_in_background(self, key: str, raw: list[Attraction], interests: list[str]) -> None:
        try:
            await self.rank(key, raw, interests)
        except Exception:
            logger.exception("Background ranking for %s failed unexpectedly", key)
            self._states[key] = RankingState.RAW_READY
        finally:
            self._in_flight.discard(key)

    async def rank(self, key: str, raw: list[Attraction], interests: list[str]) -> list[Attraction] | None:
        """Score, reorder and cache under key. Returns None when scoring was unreachable."""
        try:
            scores = await self.scorer.score([a.name for a in raw], interests)
        except ParseError as exc:
            logger.warning("Scoring reply unreadable for %s, using default scores: %s", key, exc)
            scores = []
        except NetworkError as exc:
            self.reporter.report(to_report(
                exc, ErrorSource.SCORING,
                severity=ErrorSeverity.INFO,
                api_message_key=scoring_message_key(exc),
            ))
            self.cache.set_cached(key, raw, self.ranked_ttl_ms)
            self._states[key] = RankingState.RAW_READY
            return None

        ranked = sort_by_interest_score(merge_scores(raw, scores))
        self.cache.set_cached(key, ranked, self.ranked_ttl_ms)
        self._states[key] = RankingState.RANKED
        logger.info("Ranked %d attractions for %s", len(ranked), key)

        for listener in self._listeners:
            try:
                listener(key, ranked)
            except Exception:
                logger.exception("on_ranked listener failed for %s", key)
        return ranked
