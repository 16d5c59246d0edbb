"""End-to-end tests for the discovery pipeline against mocked providers."""

import asyncio
import json
import sys
from pathlib import Path

import httpx
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from cache import InMemoryStore
from conftest import chat_reply, mock_http
from models import Coordinates, RankingState, SearchResult
from pipeline import build_pipeline
from scoring import ScoringClient
from throttle import RateLimiter

BRANDENBURG_GATE = Coordinates(latitude=52.5163, longitude=13.3777)

OVERPASS_ANSWER = {
    "elements": [
        {"type": "node", "id": 1, "lat": 52.5186, "lon": 13.3762,
         "tags": {"name": "Reichstagsgebäude", "tourism": "attraction"}},
        {"type": "node", "id": 2, "lat": 52.5163, "lon": 13.3777,
         "tags": {"name": "Brandenburger Tor", "historic": "monument"}},
    ]
}

REVERSE_ANSWER = {
    "display_name": "Pariser Platz, Mitte, Berlin, 10117, Deutschland",
    "lat": "52.5163",
    "lon": "13.3777",
    "address": {"city": "Berlin", "state": "Berlin", "country": "Deutschland"},
}

WIKI_ANSWER = {"query": {"pages": {"1": {"title": "Brandenburger Tor", "extract": "Frühklassizistisches Tor."}}}}

SCORES = [
    {"name": "Reichstagsgebäude", "score": 9, "reason": "Politische Geschichte"},
    {"name": "Brandenburger Tor", "score": 6, "reason": "Wahrzeichen"},
]


class Providers:
    """Routes mocked requests by host and path, counting calls."""

    def __init__(self):
        self.calls: dict[str, int] = {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == "overpass-api.de":
            name, response = "overpass", httpx.Response(200, json=OVERPASS_ANSWER)
        elif request.url.path == "/reverse":
            name, response = "reverse", httpx.Response(200, json=REVERSE_ANSWER)
        elif request.url.path == "/search":
            name, response = "search", httpx.Response(200, json=[])
        elif request.url.host == "api.openai.com":
            body = json.loads(request.content)
            if body["max_tokens"] == 500:
                name, response = "describe", httpx.Response(200, json=chat_reply("Das Tor ist ein Wahrzeichen."))
            else:
                name, response = "scoring", httpx.Response(200, json=chat_reply(json.dumps(SCORES)))
        elif request.url.host == "de.wikipedia.org":
            name, response = "wiki", httpx.Response(200, json=WIKI_ANSWER)
        else:
            return httpx.Response(404)
        self.calls[name] = self.calls.get(name, 0) + 1
        return response


def _pipeline(reporter):
    providers = Providers()
    http = mock_http(providers)
    pipeline = build_pipeline(
        http,
        store=InMemoryStore(),
        reporter=reporter,
        rate_limiter=RateLimiter(0.0),
        scorer=ScoringClient(http, api_key="sk-test"),
    )
    return pipeline, providers


@pytest.mark.asyncio
async def test_discover_returns_raw_then_ranked(reporter):
    pipeline, providers = _pipeline(reporter)

    first = await pipeline.discover(BRANDENBURG_GATE, ["history"])
    assert [a.name for a in first.attractions] == ["Brandenburger Tor", "Reichstagsgebäude"]
    assert first.city.city == "Berlin"
    assert first.ranking == RankingState.RANKING

    await pipeline.close()

    second = await pipeline.discover(BRANDENBURG_GATE, ["history"], include_city=False)
    assert second.from_cache
    assert second.city is None
    assert [a.name for a in second.attractions] == ["Reichstagsgebäude", "Brandenburger Tor"]
    assert second.attractions[0].interest_reason == "Politische Geschichte"
    assert providers.calls == {"reverse": 1, "overpass": 1, "scoring": 1}
    assert reporter.reports == []


@pytest.mark.asyncio
async def test_on_location_update_ignores_jitter(reporter):
    pipeline, providers = _pipeline(reporter)

    first = await pipeline.on_location_update(BRANDENBURG_GATE)
    assert first is not None

    jitter = Coordinates(latitude=52.5170, longitude=13.3780)
    assert await pipeline.on_location_update(jitter) is None
    assert pipeline.tracker.location == BRANDENBURG_GATE
    assert providers.calls["overpass"] == 1

    moved = Coordinates(latitude=52.5300, longitude=13.4000)
    assert await pipeline.on_location_update(moved) is not None
    assert providers.calls["overpass"] == 2
    await pipeline.close()


@pytest.mark.asyncio
async def test_discover_search_result_uses_selected_place(reporter):
    pipeline, providers = _pipeline(reporter)
    picked = SearchResult(
        id="240109189", display_name="Berlin, Deutschland", primary_name="Berlin",
        secondary_info="Deutschland", coordinates=BRANDENBURG_GATE, type="city",
    )

    result = await pipeline.discover_search_result(picked)
    assert result.city.city == "Berlin"
    assert result.city.country == "Deutschland"
    assert "reverse" not in providers.calls
    assert len(result.attractions) == 2
    await pipeline.close()


@pytest.mark.asyncio
async def test_provider_outage_yields_empty_result(reporter):
    def handler(request):
        raise httpx.ConnectError("offline", request=request)

    http = mock_http(handler)
    pipeline = build_pipeline(http, store=InMemoryStore(), reporter=reporter, rate_limiter=RateLimiter(0.0))
    result = await pipeline.discover(BRANDENBURG_GATE, ["history"])

    assert result.attractions == []
    assert result.city is None
    assert result.ranking == RankingState.IDLE
    assert {r.message_key for r in reporter.reports} == {"errors.network.offline"}
    assert len(reporter.reports) == 2


@pytest.mark.asyncio
async def test_search_and_reverse_delegate(reporter):
    pipeline, providers = _pipeline(reporter)
    assert await pipeline.search("Atlantis") == []
    city = await pipeline.reverse(BRANDENBURG_GATE)
    assert city.city == "Berlin"
    assert providers.calls == {"search": 1, "reverse": 1}


@pytest.mark.asyncio
async def test_discover_looks_up_city_while_fetching(reporter):
    overpass_called = asyncio.Event()

    async def handler(request):
        if request.url.host == "overpass-api.de":
            overpass_called.set()
            return httpx.Response(200, json=OVERPASS_ANSWER)
        if request.url.path == "/reverse":
            # answers only once the attraction fetch is under way
            await overpass_called.wait()
            return httpx.Response(200, json=REVERSE_ANSWER)
        return httpx.Response(404)

    pipeline = build_pipeline(
        mock_http(handler), store=InMemoryStore(), reporter=reporter, rate_limiter=RateLimiter(0.0),
    )
    result = await asyncio.wait_for(pipeline.discover(BRANDENBURG_GATE), timeout=2)
    assert result.city.city == "Berlin"
    assert len(result.attractions) == 2
    await pipeline.close()


@pytest.mark.asyncio
async def test_clear_cache_empties_store(reporter):
    pipeline, providers = _pipeline(reporter)
    await pipeline.discover(BRANDENBURG_GATE, include_city=False)
    await pipeline.close()
    assert len(pipeline.ranker.cache.store) > 0

    assert pipeline.clear_cache() is True
    assert len(pipeline.ranker.cache.store) == 0

    await pipeline.discover(BRANDENBURG_GATE, include_city=False)
    assert providers.calls["overpass"] == 2


class BrokenStore(InMemoryStore):
    def clear(self) -> bool:
        return False


@pytest.mark.asyncio
async def test_clear_cache_reports_store_failure(reporter):
    pipeline = build_pipeline(mock_http(Providers()), store=BrokenStore(), reporter=reporter)
    assert pipeline.clear_cache() is False


@pytest.mark.asyncio
async def test_details_delegate_to_enricher(reporter):
    pipeline, providers = _pipeline(reporter)
    details = await pipeline.details("Brandenburger Tor", ["history"])
    assert details.wiki.extract == "Frühklassizistisches Tor."
    assert details.description == "Das Tor ist ein Wahrzeichen."

    again = await pipeline.details("brandenburger tor", ["history"])
    assert again.description_from_cache is True
    assert providers.calls == {"wiki": 2, "describe": 1}
