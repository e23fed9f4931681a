import asyncio

from nearbite.services.providers import (
    AddressInput,
    HybridPlacesProvider,
    LatLng,
    LoadState,
    MapContainer,
    ProviderLoadError,
    ProviderType,
    SdkLoader,
)
from nearbite.services.providers.base import BackendPlacesProvider
from tests.conftest import FakeSession


class GatedProvider(BackendPlacesProvider):
    """Backend whose load finishes when the test resolves its gate."""

    def __init__(self, loader, provider_type, gate):
        self._type = provider_type
        self._gate = gate
        self.calls = []
        super().__init__(loader, api_key="key", session=FakeSession())

    @property
    def name(self):
        return self._type.value

    @property
    def provider_type(self):
        return self._type

    async def _load_sdk(self):
        await self._gate

    def init_autocomplete(self, input_target, on_place_selected):
        self.calls.append("init_autocomplete")
        return None

    def show_map(self, container, location):
        self.calls.append("show_map")
        return None

    async def geocode_address(self, address):
        self.calls.append("geocode_address")
        return LatLng(0.0, 0.0)

    def init_map(self, container, options=None):
        self.calls.append("init_map")
        return None

    def get_photo_url(self, photo_reference, max_width):
        self.calls.append("get_photo_url")
        return f"{self.name}:{photo_reference}"


def _build(readiness_timeout=5.0):
    loop = asyncio.get_running_loop()
    full_gate, lite_gate = loop.create_future(), loop.create_future()
    loader = SdkLoader()
    full = GatedProvider(loader, ProviderType.GOOGLE, full_gate)
    lite = GatedProvider(loader, ProviderType.FOURSQUARE, lite_gate)
    hybrid = HybridPlacesProvider(full, lite, readiness_timeout=readiness_timeout)
    return hybrid, full, lite, full_gate, lite_gate


async def _settle(provider):
    await provider.wait_until_ready(1)
    await asyncio.sleep(0)


def test_loaded_only_when_both_delegates_loaded():
    async def scenario():
        hybrid, full, lite, full_gate, lite_gate = _build()
        states = [hybrid.is_loaded]

        full_gate.set_result(None)
        await _settle(full)
        states.append(hybrid.is_loaded)

        lite_gate.set_result(None)
        states.append(await hybrid.wait_until_ready(1))
        return states

    assert asyncio.run(scenario()) == [False, False, True]


def test_loaded_when_both_delegates_finish_in_same_pass():
    async def scenario():
        hybrid, full, lite, full_gate, lite_gate = _build()
        full_gate.set_result(None)
        lite_gate.set_result(None)
        loaded = await hybrid.wait_until_ready(1)
        return loaded, hybrid

    loaded, hybrid = asyncio.run(scenario())
    assert loaded is True
    assert hybrid.status.state is LoadState.LOADED
    assert hybrid.error is None


def test_full_error_wins_when_both_fail_in_same_pass():
    async def scenario():
        hybrid, full, lite, full_gate, lite_gate = _build()
        lite_gate.set_exception(ProviderLoadError("lite down", provider="foursquare"))
        full_gate.set_exception(ProviderLoadError("full down", provider="google"))
        await hybrid.wait_until_ready(1)
        return hybrid

    hybrid = asyncio.run(scenario())
    assert "full down" in str(hybrid.error)


def test_full_error_wins_even_when_lite_fails_later():
    async def scenario():
        hybrid, full, lite, full_gate, lite_gate = _build()
        full_gate.set_exception(ProviderLoadError("full down", provider="google"))
        await _settle(full)
        first = hybrid.error

        lite_gate.set_exception(ProviderLoadError("lite down", provider="foursquare"))
        await hybrid.wait_until_ready(1)
        return hybrid, first

    hybrid, first = asyncio.run(scenario())
    assert "full down" in str(first)
    assert "full down" in str(hybrid.error)
    assert hybrid.status.state is LoadState.ERRORED


def test_full_error_replaces_earlier_lite_error():
    async def scenario():
        hybrid, full, lite, full_gate, lite_gate = _build()
        lite_gate.set_exception(ProviderLoadError("lite down", provider="foursquare"))
        await _settle(lite)
        first = hybrid.error

        full_gate.set_exception(ProviderLoadError("full down", provider="google"))
        await hybrid.wait_until_ready(1)
        return hybrid, first

    hybrid, first = asyncio.run(scenario())
    assert "lite down" in str(first)
    assert "full down" in str(hybrid.error)


def test_lite_error_surfaces_when_full_loads():
    async def scenario():
        hybrid, full, lite, full_gate, lite_gate = _build()
        full_gate.set_result(None)
        lite_gate.set_exception(ProviderLoadError("lite down", provider="foursquare"))
        return await hybrid.wait_until_ready(1), hybrid

    loaded, hybrid = asyncio.run(scenario())
    assert loaded is False
    assert "lite down" in str(hybrid.error)


def test_stops_watching_after_readiness_timeout():
    async def scenario():
        hybrid, full, lite, full_gate, lite_gate = _build(readiness_timeout=0.05)
        settled = await hybrid.wait_until_ready(1)

        full_gate.set_result(None)
        lite_gate.set_result(None)
        await _settle(full)
        await _settle(lite)
        return settled, hybrid, full, lite

    settled, hybrid, full, lite = asyncio.run(scenario())
    assert settled is False
    assert full.is_loaded and lite.is_loaded
    assert hybrid.status.state is LoadState.LOADING


def test_routes_operations_to_delegates():
    async def scenario():
        hybrid, full, lite, full_gate, lite_gate = _build()
        full_gate.set_result(None)
        lite_gate.set_result(None)
        await hybrid.wait_until_ready(1)

        hybrid.init_autocomplete(AddressInput("address"), lambda place: None)
        hybrid.show_map(MapContainer("map"), LatLng(1.0, 2.0))
        await hybrid.geocode_address("Raffles Place")
        hybrid.init_map(MapContainer("map"))
        photo = hybrid.get_photo_url("ref", 200)
        return full, lite, photo

    full, lite, photo = asyncio.run(scenario())
    assert full.calls == ["show_map", "init_map"]
    assert lite.calls == ["init_autocomplete", "geocode_address", "get_photo_url"]
    assert photo == "foursquare:ref"
