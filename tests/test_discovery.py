import asyncio
from datetime import timedelta

import pytest
import requests

from nearbite.models.schemas import FilterSet, Location, SearchKey, VisitRecord
from nearbite.services.discovery_service import (
    DiscoveryEngine,
    InvalidLocationError,
    SearchState,
    filter_recent_visits,
)
from nearbite.services.restaurant_api import NetworkError, RestaurantApiClient, SearchPage
from tests.conftest import FakeResponse, FakeSession

RAFFLES = Location(address="Raffles Place", lat=1.2840, lng=103.8514)


def _filters(**overrides):
    values = {"departure_time": "12:00"}
    values.update(overrides)
    return FilterSet(**values)


def _page(ids, cursor=None):
    return SearchPage(results=[{"fsq_id": i, "name": f"Place {i}"} for i in ids], size=len(ids), cursor=cursor)


class FakeApiClient:
    """Serves pages in order; each entry is a SearchPage, an exception or a Future to await."""

    def __init__(self, pages):
        self.pages = list(pages)
        self.calls = []

    async def fetch_page(self, key, page_size, cursor=None):
        self.calls.append((key, page_size, cursor))
        page = self.pages.pop(0)
        if isinstance(page, asyncio.Future):
            page = await page
        if isinstance(page, Exception):
            raise page
        return page


def _ids(results):
    return [r["fsq_id"] for r in results]


# --- search key -------------------------------------------------------------

def test_search_key_ignores_filter_order():
    first = SearchKey.build(RAFFLES, _filters(cuisines=["thai", "indian"], dietary=["vegan"]))
    second = SearchKey.build(RAFFLES, _filters(cuisines=["indian", "thai", "thai"], dietary=["vegan"]))
    assert first == second
    assert hash(first) == hash(second)


def test_search_key_differs_on_price_level():
    assert SearchKey.build(RAFFLES, _filters(price_level=2)) != SearchKey.build(RAFFLES, _filters(price_level=3))


def test_radius_must_be_single_value_in_range():
    with pytest.raises(ValueError):
        FilterSet(radius=[0.1])
    with pytest.raises(ValueError):
        FilterSet(radius=[0.5, 1.0])
    assert FilterSet(radius=[5.0]).radius_km == 5.0


# --- engine -----------------------------------------------------------------

def test_search_without_coordinates_raises_without_network():
    client = FakeApiClient([])
    engine = DiscoveryEngine(client)

    with pytest.raises(InvalidLocationError):
        asyncio.run(engine.search(Location(address="somewhere"), _filters()))
    assert client.calls == []


def test_zero_coordinates_are_searchable():
    client = FakeApiClient([_page(["a"])])
    engine = DiscoveryEngine(client)

    results = asyncio.run(engine.search(Location(lat=0.0, lng=0.0), _filters()))

    assert _ids(results) == ["a"]
    assert client.calls[0][0].lat == 0.0


def test_pages_accumulate_in_order():
    client = FakeApiClient([_page(["a", "b"], cursor="c1"), _page(["c"])])
    engine = DiscoveryEngine(client, page_size=2)

    async def scenario():
        await engine.search(RAFFLES, _filters())
        assert engine.has_more
        return await engine.load_more()

    results = asyncio.run(scenario())
    assert _ids(results) == ["a", "b", "c"]
    assert client.calls[1][2] == "c1"
    assert engine.has_more is False
    assert engine.state is SearchState.HAS_RESULTS


def test_load_more_without_cursor_does_nothing():
    client = FakeApiClient([_page(["a"])])
    engine = DiscoveryEngine(client)

    async def scenario():
        await engine.search(RAFFLES, _filters())
        return await engine.load_more()

    assert _ids(asyncio.run(scenario())) == ["a"]
    assert len(client.calls) == 1


def test_unchanged_search_does_not_refetch():
    client = FakeApiClient([_page(["a"])])
    engine = DiscoveryEngine(client)

    async def scenario():
        await engine.search(RAFFLES, _filters(cuisines=["thai", "indian"]))
        return await engine.search(RAFFLES, _filters(cuisines=["indian", "thai"]))

    assert _ids(asyncio.run(scenario())) == ["a"]
    assert len(client.calls) == 1


def test_changed_filters_discard_accumulated_pages():
    client = FakeApiClient([_page(["a"], cursor="c1"), _page(["b"]), _page(["x"])])
    engine = DiscoveryEngine(client)

    async def scenario():
        await engine.search(RAFFLES, _filters(price_level=2))
        await engine.load_more()
        return await engine.search(RAFFLES, _filters(price_level=3))

    results = asyncio.run(scenario())
    assert _ids(results) == ["x"]
    assert client.calls[2][0].price_level == 3
    assert client.calls[2][2] is None


def test_empty_result_state():
    engine = DiscoveryEngine(FakeApiClient([_page([])]))
    assert asyncio.run(engine.search(RAFFLES, _filters())) == []
    assert engine.state is SearchState.EMPTY


def test_network_error_is_stored_not_raised():
    client = FakeApiClient([NetworkError("backend down", status_code=502), _page(["a"])])
    engine = DiscoveryEngine(client)

    async def scenario():
        failed = await engine.search(RAFFLES, _filters())
        snapshot = (failed, engine.state, engine.error, engine.is_loading)
        # A failed search is retried even with an unchanged key
        retried = await engine.search(RAFFLES, _filters())
        return snapshot, retried

    (failed, state, error, loading), retried = asyncio.run(scenario())
    assert failed == []
    assert state is SearchState.FAILED
    assert isinstance(error, NetworkError)
    assert loading is False
    assert _ids(retried) == ["a"]
    assert engine.error is None


def test_stale_response_is_discarded():
    async def scenario():
        slow = asyncio.get_running_loop().create_future()
        client = FakeApiClient([slow, _page(["new"])])
        engine = DiscoveryEngine(client)

        first = asyncio.ensure_future(engine.search(RAFFLES, _filters(price_level=1)))
        await asyncio.sleep(0)
        await engine.search(RAFFLES, _filters(price_level=4))

        slow.set_result(_page(["old"]))
        await first
        return engine

    engine = asyncio.run(scenario())
    assert _ids(engine.data) == ["new"]
    assert engine.key.price_level == 4
    assert engine.state is SearchState.HAS_RESULTS


def test_refetch_restarts_from_first_page():
    client = FakeApiClient([_page(["a"], cursor="c1"), _page(["b"]), _page(["a2"])])
    engine = DiscoveryEngine(client)

    async def scenario():
        await engine.search(RAFFLES, _filters())
        await engine.load_more()
        return await engine.refetch()

    assert _ids(asyncio.run(scenario())) == ["a2"]
    assert client.calls[2][2] is None


def test_data_hides_recent_visits(clock):
    client = FakeApiClient([_page(["a", "b"])])
    engine = DiscoveryEngine(client, clock=clock)
    engine.visit_history = [VisitRecord(id="a", visit_date=clock() - timedelta(days=3))]

    results = asyncio.run(engine.search(RAFFLES, _filters(history_days=7)))

    assert _ids(results) == ["b"]
    assert _ids(engine.results) == ["a", "b"]


# --- recency filter ---------------------------------------------------------

def test_visit_ten_days_ago_excluded_at_fourteen_included_at_seven(clock):
    results = [{"fsq_id": "a"}, {"fsq_id": "b"}]
    history = [VisitRecord(id="a", visit_date=clock() - timedelta(days=10))]

    assert _ids(filter_recent_visits(results, history, 14, clock())) == ["b"]
    assert _ids(filter_recent_visits(results, history, 7, clock())) == ["a", "b"]


def test_zero_history_days_keeps_everything(clock):
    results = [{"fsq_id": "a"}]
    history = [VisitRecord(id="a", visit_date=clock())]

    assert filter_recent_visits(results, history, 0, clock()) == results


def test_visit_exactly_on_boundary_is_kept(clock):
    results = [{"place_id": "a"}]
    history = [VisitRecord(id="a", visit_date=clock() - timedelta(days=7, hours=1))]

    assert filter_recent_visits(results, history, 7, clock()) == results


def test_filter_does_not_modify_input(clock):
    results = [{"fsq_id": "a"}, {"fsq_id": "b"}]
    history = [VisitRecord(id="a", visit_date=clock())]

    filter_recent_visits(results, history, 30, clock())
    assert _ids(results) == ["a", "b"]


# --- HTTP client ------------------------------------------------------------

def test_client_sends_search_params_and_cursor():
    session = FakeSession({"/api/restaurants": {"results": [{"fsq_id": "a"}], "size": 1, "cursor": "next"}})
    client = RestaurantApiClient(base_url="http://backend/", session=session)
    key = SearchKey.build(RAFFLES, _filters(cuisines=["thai"], exclude_chains=True))

    page = client.search_page(key, 10, cursor="c0")

    params = session.calls[0]["params"]
    assert session.calls[0]["url"] == "http://backend/api/restaurants"
    assert params["pageSize"] == 10
    assert params["cursor"] == "c0"
    assert params["cuisines"] == ["thai"]
    assert params["excludeChains"] == "true"
    assert params["excludeCafe"] == "false"
    assert page.cursor == "next"


def test_client_empty_cursor_means_last_page():
    session = FakeSession({"/api/restaurants": {"results": [], "size": 0, "cursor": ""}})
    client = RestaurantApiClient(base_url="http://backend", session=session)

    page = client.search_page(SearchKey.build(RAFFLES, _filters()), 10)
    assert page.cursor is None
    assert "cursor" not in session.calls[0]["params"]


def test_client_raises_network_error_on_bad_status():
    session = FakeSession({"/api/restaurants": FakeResponse({"error": "boom"}, status_code=500)})
    client = RestaurantApiClient(base_url="http://backend", session=session)

    with pytest.raises(NetworkError) as exc_info:
        client.search_page(SearchKey.build(RAFFLES, _filters()), 10)
    assert exc_info.value.status_code == 500


def test_client_raises_network_error_on_transport_failure():
    session = FakeSession({"/api/restaurants": requests.Timeout("slow")})
    client = RestaurantApiClient(base_url="http://backend", session=session)

    with pytest.raises(NetworkError):
        client.get_details("a")


def test_client_lists_candidate_ids():
    session = FakeSession({"/api/restaurants/ids": {"results": [{"fsq_id": "a"}, {"fsq_id": "b"}, {}]}})
    client = RestaurantApiClient(base_url="http://backend", session=session)

    ids = asyncio.run(client.fetch_ids(SearchKey.build(RAFFLES, _filters())))

    assert ids == ["a", "b"]
    assert session.calls[0]["params"]["fieldsToFetch"] == "fsq_id"


def test_load_more_while_page_in_flight_does_nothing():
    async def scenario():
        second = asyncio.get_running_loop().create_future()
        client = FakeApiClient([_page(["a"], cursor="c1"), second])
        engine = DiscoveryEngine(client)
        await engine.search(RAFFLES, _filters())

        pending = asyncio.ensure_future(engine.load_more())
        await asyncio.sleep(0)
        assert engine.is_loading
        ignored = await engine.load_more()

        second.set_result(_page(["b"]))
        results = await pending
        return client, ignored, results

    client, ignored, results = asyncio.run(scenario())
    assert len(client.calls) == 2
    assert _ids(ignored) == ["a"]
    assert _ids(results) == ["a", "b"]


def test_clear_discards_results_and_late_response():
    async def scenario():
        slow = asyncio.get_running_loop().create_future()
        client = FakeApiClient([_page(["a"], cursor="c1"), slow])
        engine = DiscoveryEngine(client)
        await engine.search(RAFFLES, _filters())

        pending = asyncio.ensure_future(engine.load_more())
        await asyncio.sleep(0)
        engine.clear()
        slow.set_result(_page(["late"]))
        await pending
        return engine

    engine = asyncio.run(scenario())
    assert engine.key is None
    assert engine.data == []
    assert engine.results == []
    assert engine.has_more is False
    assert engine.state is SearchState.IDLE


def test_client_quotes_restaurant_id_in_path():
    session = FakeSession({"/api/restaurants/": {"fsq_id": "a/b c"}})
    client = RestaurantApiClient(base_url="http://backend", session=session)

    assert client.get_details("a/b c") == {"fsq_id": "a/b c"}
    assert session.calls[0]["url"] == "http://backend/api/restaurants/a%2Fb%20c"
