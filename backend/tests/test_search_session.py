"""Tests for the debounced location search session."""

import asyncio
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from models import Coordinates, SearchResult
from search_session import LocationSearchSession


def _hit(name: str) -> SearchResult:
    return SearchResult(
        id=name, display_name=f"{name}, Deutschland", primary_name=name,
        secondary_info="Deutschland", coordinates=Coordinates(latitude=52.5, longitude=13.4),
        type="city",
    )


class FakeSearchClient:
    def __init__(self, slow_queries=()):
        self.calls = []
        self.slow_queries = set(slow_queries)

    async def search_locations(self, query, limit=10):
        self.calls.append((query, limit))
        if query in self.slow_queries:
            await asyncio.sleep(10)
        return [_hit(query.title())]


@pytest.mark.asyncio
async def test_typing_burst_sends_one_search():
    client = FakeSearchClient()
    session = LocationSearchSession(client, debounce_s=0.02)

    for query in ["B", "Be", "Ber", "Berl", "Berlin"]:
        session.set_query(query)
    assert session.loading
    await session.wait()

    assert client.calls == [("Berlin", 5)]
    assert [r.primary_name for r in session.results] == ["Berlin"]
    assert not session.loading


@pytest.mark.asyncio
async def test_blank_query_clears_without_searching():
    client = FakeSearchClient()
    session = LocationSearchSession(client, debounce_s=0.01)
    session.set_query("Potsdam")
    await session.wait()
    assert session.results

    session.set_query("   ")
    await session.wait()
    assert session.results == []
    assert not session.loading
    assert len(client.calls) == 1


@pytest.mark.asyncio
async def test_replaced_query_never_lands():
    client = FakeSearchClient(slow_queries={"Pots"})
    session = LocationSearchSession(client, debounce_s=0.01)

    session.set_query("Pots")
    await asyncio.sleep(0.03)
    assert client.calls == [("Pots", 5)]

    session.set_query("Potsdam")
    await session.wait()
    assert [r.primary_name for r in session.results] == ["Potsdam"]


@pytest.mark.asyncio
async def test_select_cancels_pending_search():
    client = FakeSearchClient()
    session = LocationSearchSession(client, debounce_s=0.05)
    session.set_query("Muen")

    info = session.select(_hit("München"))
    await asyncio.sleep(0.08)

    assert client.calls == []
    assert info.city == "München"
    assert info.country == "Deutschland"
    assert session.query == "München"
    assert session.results == []
    assert not session.loading
    assert session.selected.primary_name == "München"


@pytest.mark.asyncio
async def test_clear_resets_session():
    client = FakeSearchClient()
    session = LocationSearchSession(client, debounce_s=0.01)
    session.set_query("Hamburg")
    await session.wait()
    session.select(session.results[0])

    session.clear()
    assert session.query == ""
    assert session.selected is None
    assert session.results == []
    await session.wait()
