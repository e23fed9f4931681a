"""
Base classes for the places provider layer.

Defines the capability contract every places backend implements (autocomplete,
map rendering, geocoding, map initialization, photo URLs) together with the
load-status state machine and the per-type SDK load memoization.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

import requests

logger = logging.getLogger(__name__)

HTTP_TIMEOUT_SECONDS = 10


class ProviderType(Enum):
    """Supported provider types."""
    GOOGLE = "google"            # Full mapping backend
    FOURSQUARE = "foursquare"    # Lightweight places/photo backend
    HYBRID = "hybrid"            # Routes each operation to one of the above


class LoadState(Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    LOADED = "loaded"
    ERRORED = "errored"


class ProviderError(Exception):
    """Base exception for provider errors."""
    def __init__(self, message: str, provider: str):
        super().__init__(message)
        self.provider = provider


class ProviderLoadError(ProviderError):
    """The backend SDK could not be loaded (missing key, network, backend refusal)."""
    pass


class UnknownProviderError(ProviderError):
    """Raised when switching to a provider type that was never registered."""
    pass


@dataclass
class ProviderStatus:
    """
    Load status attached to every provider.

    Moves Unloaded -> Loading -> {Loaded | Errored} and never backward. An
    errored status may have its error replaced (the hybrid provider does this
    when a higher-priority delegate fails later).
    """
    state: LoadState = LoadState.UNLOADED
    error: Optional[BaseException] = None

    @property
    def is_loaded(self) -> bool:
        return self.state is LoadState.LOADED

    def start_loading(self) -> None:
        if self.state is LoadState.UNLOADED:
            self.state = LoadState.LOADING

    def mark_loaded(self) -> None:
        if self.state in (LoadState.UNLOADED, LoadState.LOADING):
            self.state = LoadState.LOADED
            self.error = None

    def mark_errored(self, error: BaseException) -> None:
        if self.state is LoadState.LOADED:
            return
        self.state = LoadState.ERRORED
        self.error = error


@dataclass(frozen=True)
class LatLng:
    lat: float
    lng: float


def as_latlng(value: Any) -> LatLng:
    """Accept a LatLng, a {"lat", "lng"} mapping or a (lat, lng) pair."""
    if isinstance(value, LatLng):
        return value
    if isinstance(value, dict):
        return LatLng(float(value["lat"]), float(value["lng"]))
    lat, lng = value
    return LatLng(float(lat), float(lng))


def read_latlng(payload: Any, lat_key: str = "lat", lng_key: str = "lng") -> Optional[LatLng]:
    """Coordinates out of a backend JSON object, or None when absent or malformed."""
    if not isinstance(payload, dict):
        return None
    lat, lng = payload.get(lat_key), payload.get(lng_key)
    if not isinstance(lat, (int, float)) or not isinstance(lng, (int, float)):
        return None
    return LatLng(float(lat), float(lng))


@dataclass
class PlaceResult:
    """A place chosen through autocomplete."""
    name: Optional[str] = None
    formatted_address: Optional[str] = None
    location: Optional[LatLng] = None  # None means the backend gave no geometry
    place_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def has_geometry(self) -> bool:
        return self.location is not None

    @property
    def display_name(self) -> str:
        return self.formatted_address or self.name or ""


@dataclass
class MapView:
    """A rendered map: what a UI needs to draw it."""
    provider: str
    center: LatLng
    zoom: int
    markers: List[LatLng] = field(default_factory=list)
    map_type: str = "roadmap"
    tile_url: Optional[str] = None
    static_url: Optional[str] = None

    def recenter(self, location: LatLng) -> None:
        self.center = location
        self.markers = [location]


@dataclass
class MapContainer:
    """Target a map is rendered into."""
    element_id: str
    view: Optional[MapView] = None


@dataclass
class AddressInput:
    """Target an autocomplete session is bound to."""
    element_id: str
    value: str = ""
    autocomplete: Optional["AutocompleteSession"] = None


PlaceSelectedCallback = Callable[[PlaceResult], None]


class AutocompleteSession(ABC):
    """
    Address autocomplete bound to one AddressInput.

    suggest() refreshes the suggestion list for the typed text, select() hands
    the chosen suggestion to the callback. Suggestions without geometry are
    logged and dropped, never reported as errors.
    """

    def __init__(
        self,
        provider_name: str,
        input_target: AddressInput,
        on_place_selected: PlaceSelectedCallback,
        min_query_length: int = 1,
    ):
        self.provider_name = provider_name
        self.input_target = input_target
        self.on_place_selected = on_place_selected
        self.min_query_length = min_query_length
        self.results: List[PlaceResult] = []
        self._destroyed = False
        input_target.autocomplete = self

    @abstractmethod
    async def _fetch_suggestions(self, query: str) -> List[PlaceResult]:
        pass

    async def _resolve(self, place: PlaceResult) -> PlaceResult:
        """Fill in geometry for a suggestion. Default: suggestion is complete."""
        return place

    async def suggest(self, query: str) -> List[PlaceResult]:
        self.input_target.value = query
        if self._destroyed or len(query.strip()) < self.min_query_length:
            self.clear_results()
            return []
        try:
            self.results = await self._fetch_suggestions(query)
        except Exception as e:
            logger.error(f"{self.provider_name}: autocomplete lookup failed for {query!r}: {e}")
            self.clear_results()
        return self.results

    async def select(self, index: int) -> bool:
        """Select a suggestion. Returns True if the callback was invoked."""
        if self._destroyed or not 0 <= index < len(self.results):
            return False
        place = await self._resolve(self.results[index])
        if not place.has_geometry:
            logger.warning(f"{self.provider_name}: selected place has no geometry data: {place.display_name!r}")
            return False
        self.input_target.value = place.name or place.display_name
        self.clear_results()
        self.on_place_selected(place)
        return True

    def clear_results(self) -> None:
        self.results = []

    def destroy(self) -> None:
        self._destroyed = True
        self.clear_results()
        if self.input_target.autocomplete is self:
            self.input_target.autocomplete = None


class SdkLoader:
    """
    Memoized backend loads, one per provider type.

    The first caller's load task is shared by every later caller for the same
    type, so constructing several providers of one type probes the backend once.
    """

    def __init__(self):
        self._loads: Dict[ProviderType, "asyncio.Future[None]"] = {}

    def load(
        self,
        provider_type: ProviderType,
        start: Callable[[], Awaitable[None]],
    ) -> "asyncio.Future[None]":
        existing = self._loads.get(provider_type)
        if existing is not None:
            logger.debug(f"Reusing in-flight load for {provider_type.value}")
            return existing
        logger.info(f"Loading {provider_type.value} places backend...")
        task = asyncio.get_running_loop().create_task(start())
        self._loads[provider_type] = task
        return task

    def get(self, provider_type: ProviderType) -> Optional["asyncio.Future[None]"]:
        return self._loads.get(provider_type)


class PlacesProvider(ABC):
    """Capability contract shared by every places backend, composite included."""

    status: ProviderStatus

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name for logging/tracking."""
        pass

    @property
    @abstractmethod
    def provider_type(self) -> ProviderType:
        pass

    @property
    def is_loaded(self) -> bool:
        return self.status.is_loaded

    @property
    def error(self) -> Optional[BaseException]:
        return self.status.error

    @abstractmethod
    async def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Wait for the load to settle; returns is_loaded."""
        pass

    @abstractmethod
    def init_autocomplete(
        self,
        input_target: Optional[AddressInput],
        on_place_selected: PlaceSelectedCallback,
    ) -> Optional[AutocompleteSession]:
        """
        Bind address autocomplete to an input.

        Returns None when the backend is not loaded, the input is missing, or
        the session cannot be created. Callers treat None as "not ready".
        """
        pass

    @abstractmethod
    def show_map(self, container: Optional[MapContainer], location: LatLng) -> Optional[MapView]:
        """Render (or re-center) a map with a single marker at location."""
        pass

    @abstractmethod
    async def geocode_address(self, address: str) -> Optional[LatLng]:
        """Resolve free text to coordinates. Returns None on any failure."""
        pass

    @abstractmethod
    def init_map(
        self,
        container: Optional[MapContainer],
        options: Optional[Dict[str, Any]] = None,
    ) -> Optional[MapView]:
        """Create a standalone map, defaulting center and zoom when not given."""
        pass

    @abstractmethod
    def get_photo_url(self, photo_reference: str, max_width: int) -> str:
        """Build a photo URL. Never fails."""
        pass


class BackendPlacesProvider(PlacesProvider):
    """
    A provider wrapping one third-party backend.

    Construction starts the (memoized) backend load; the status follows the
    shared load task. Must be constructed while an event loop is running.
    """

    def __init__(
        self,
        loader: SdkLoader,
        api_key: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ):
        self._api_key = api_key
        self._session = session or requests.Session()
        self._loader = loader
        self.status = ProviderStatus()
        self.status.start_loading()
        self.load_future = loader.load(self.provider_type, self._load_sdk)
        self.load_future.add_done_callback(self._on_load_done)

    @abstractmethod
    async def _load_sdk(self) -> None:
        """Confirm the backend is usable; raise ProviderLoadError if not."""
        pass

    def _on_load_done(self, future: "asyncio.Future[None]") -> None:
        if future.cancelled():
            self.status.mark_errored(ProviderLoadError(f"{self.name} load was cancelled", provider=self.name))
            return
        error = future.exception()
        if error is None:
            logger.info(f"{self.name} places backend loaded successfully")
            self.status.mark_loaded()
            return
        if not isinstance(error, ProviderLoadError):
            error = ProviderLoadError(f"Failed to load {self.name}: {error}", provider=self.name)
        logger.error(f"Error loading {self.name} places backend: {error}")
        self.status.mark_errored(error)

    async def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        try:
            await asyncio.wait_for(asyncio.shield(self.load_future), timeout)
        except asyncio.TimeoutError:
            logger.warning(f"{self.name} did not finish loading within {timeout}s")
        except Exception:
            # Recorded on the status by _on_load_done
            pass
        return self.is_loaded

    def _decorate_view(self, view: MapView) -> None:
        """Attach backend-specific drawing info (tile or static image URL)."""
        pass

    def _render_location_map(self, container: Optional[MapContainer], location: LatLng, zoom: int) -> Optional[MapView]:
        if not self.is_loaded:
            logger.warning(f"Cannot show map: {self.name} not loaded yet")
            return None
        if container is None:
            logger.error("Cannot show map: container is None")
            return None
        view = container.view
        if view is not None and view.provider == self.name:
            view.recenter(location)
            view.zoom = zoom
        else:
            view = MapView(provider=self.name, center=location, zoom=zoom, markers=[location])
            container.view = view
        self._decorate_view(view)
        return view

    def _render_map(
        self,
        container: Optional[MapContainer],
        options: Optional[Dict[str, Any]],
        defaults: Dict[str, Any],
    ) -> Optional[MapView]:
        if not self.is_loaded:
            logger.warning(f"Cannot initialize map: {self.name} not loaded yet")
            return None
        if container is None:
            logger.error("Cannot initialize map: container is None")
            return None
        map_options = dict(defaults)
        map_options.update(options or {})
        center = as_latlng(map_options["center"])
        view = MapView(
            provider=self.name,
            center=center,
            zoom=int(map_options["zoom"]),
            markers=[center] if map_options.get("marker") else [],
            map_type=map_options.get("map_type", "roadmap"),
        )
        self._decorate_view(view)
        container.view = view
        return view

    def _require_api_key(self) -> str:
        if not self._api_key:
            raise ProviderLoadError(f"{self.name} API key is missing. Check your .env file.", provider=self.name)
        return self._api_key

    async def _get_json(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """GET a JSON document off the event loop."""
        try:
            response = await asyncio.to_thread(
                self._session.get, url, params=params, headers=headers, timeout=HTTP_TIMEOUT_SECONDS
            )
        except requests.RequestException as e:
            raise ProviderError(f"{self.name} request failed: {e}", provider=self.name) from e
        if response.status_code != 200:
            raise ProviderError(
                f"{self.name} API error ({response.status_code}): {response.text}",
                provider=self.name,
            )
        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(f"{self.name} returned invalid JSON: {e}", provider=self.name) from e
        if not isinstance(data, dict):
            raise ProviderError(f"{self.name} returned an unexpected response: {data!r}", provider=self.name)
        return data
