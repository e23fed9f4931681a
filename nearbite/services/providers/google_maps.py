"""
Google Maps provider implementation.

Full-featured mapping backend: Places autocomplete, Geocoding, Static Maps
rendering and Place Photo URLs, all over the Maps web services.
"""

import logging
from typing import Any, Dict, List, Optional

import requests

from nearbite.config.settings import DEFAULT_MAP_CENTER, DEFAULT_MAP_ZOOM, LOCATION_MAP_ZOOM
from .base import (
    AddressInput,
    AutocompleteSession,
    BackendPlacesProvider,
    LatLng,
    MapContainer,
    MapView,
    PlaceResult,
    PlaceSelectedCallback,
    ProviderError,
    ProviderLoadError,
    ProviderType,
    read_latlng,
)

logger = logging.getLogger(__name__)

GOOGLE_MAPS_BASE_URL = "https://maps.googleapis.com/maps/api"

# Statuses meaning the backend refused the key (anything else proves it is accepted)
DENIED_STATUSES = {"REQUEST_DENIED", "OVER_DAILY_LIMIT"}


class GoogleAutocompleteSession(AutocompleteSession):
    """Predictions come without geometry; it is fetched from Place Details on select."""

    def __init__(self, provider: "GoogleMapsProvider", input_target: AddressInput, on_place_selected: PlaceSelectedCallback):
        super().__init__(provider.name, input_target, on_place_selected)
        self._provider = provider

    async def _fetch_suggestions(self, query: str) -> List[PlaceResult]:
        data = await self._provider._get_json(
            f"{GOOGLE_MAPS_BASE_URL}/place/autocomplete/json",
            params={"input": query, "key": self._provider._api_key},
        )
        status = data.get("status")
        if status not in ("OK", "ZERO_RESULTS"):
            raise ProviderError(f"Autocomplete failed: {status}", provider=self.provider_name)

        results = []
        for prediction in data.get("predictions", []):
            formatting = prediction.get("structured_formatting", {})
            results.append(PlaceResult(
                name=formatting.get("main_text") or prediction.get("description"),
                formatted_address=prediction.get("description"),
                place_id=prediction.get("place_id"),
            ))
        return results

    async def _resolve(self, place: PlaceResult) -> PlaceResult:
        if place.has_geometry or not place.place_id:
            return place
        try:
            data = await self._provider._get_json(
                f"{GOOGLE_MAPS_BASE_URL}/place/details/json",
                params={
                    "place_id": place.place_id,
                    "fields": "formatted_address,geometry,name",
                    "key": self._provider._api_key,
                },
            )
        except (ProviderError, ValueError) as e:
            logger.error(f"Place details lookup failed for {place.place_id}: {e}")
            return place

        result = data.get("result")
        if not isinstance(result, dict):
            return place
        geometry = result.get("geometry")
        location = read_latlng(geometry.get("location") if isinstance(geometry, dict) else None)
        return PlaceResult(
            name=result.get("name", place.name),
            formatted_address=result.get("formatted_address", place.formatted_address),
            location=location,
            place_id=place.place_id,
        )


class GoogleMapsProvider(BackendPlacesProvider):
    """
    Google Maps web services provider.

    The load probe sends one geocode request: a REQUEST_DENIED answer means
    the key is unusable, any other answer means the backend accepted it.
    """

    @property
    def name(self) -> str:
        return "google_maps"

    @property
    def provider_type(self) -> ProviderType:
        return ProviderType.GOOGLE

    async def _load_sdk(self) -> None:
        api_key = self._require_api_key()
        try:
            data = await self._get_json(
                f"{GOOGLE_MAPS_BASE_URL}/geocode/json",
                params={"address": "", "key": api_key},
            )
        except (ProviderError, ValueError) as e:
            raise ProviderLoadError(f"Failed to load Google Maps API: {e}", provider=self.name) from e

        status = data.get("status")
        if status in DENIED_STATUSES:
            raise ProviderLoadError(
                f"Google Maps API failed to initialize properly ({status}): {data.get('error_message', '')}",
                provider=self.name,
            )

    def init_autocomplete(
        self,
        input_target: Optional[AddressInput],
        on_place_selected: PlaceSelectedCallback,
    ) -> Optional[AutocompleteSession]:
        if input_target is None:
            logger.error("Cannot initialize autocomplete: input target is None")
            return None
        if not self.is_loaded:
            logger.warning("Cannot initialize autocomplete: Google Maps not loaded yet")
            return None
        try:
            return GoogleAutocompleteSession(self, input_target, on_place_selected)
        except Exception as e:
            logger.error(f"Error initializing autocomplete: {e}")
            return None

    def show_map(self, container: Optional[MapContainer], location: LatLng) -> Optional[MapView]:
        return self._render_location_map(container, location, LOCATION_MAP_ZOOM)

    async def geocode_address(self, address: str) -> Optional[LatLng]:
        if not self.is_loaded:
            return None
        if not address or not address.strip():
            logger.warning("Empty address provided to geocode_address")
            return None
        try:
            data = await self._get_json(
                f"{GOOGLE_MAPS_BASE_URL}/geocode/json",
                params={"address": address, "key": self._api_key},
            )
        except (ProviderError, ValueError) as e:
            logger.error(f"Geocoding error: {e}")
            return None

        results = data.get("results")
        if data.get("status") != "OK" or not results or not isinstance(results, list):
            logger.warning(f"Geocoding failed: {data.get('status')}")
            return None
        geometry = results[0].get("geometry") if isinstance(results[0], dict) else None
        location = read_latlng(geometry.get("location") if isinstance(geometry, dict) else None)
        if location is None:
            logger.warning(f"Geocoding result missing coordinates for {address!r}")
        return location

    def init_map(
        self,
        container: Optional[MapContainer],
        options: Optional[Dict[str, Any]] = None,
    ) -> Optional[MapView]:
        return self._render_map(container, options, {
            "center": DEFAULT_MAP_CENTER,
            "zoom": DEFAULT_MAP_ZOOM,
            "map_type": "roadmap",
            "marker": False,
        })

    def get_photo_url(self, photo_reference: str, max_width: int) -> str:
        return (
            f"{GOOGLE_MAPS_BASE_URL}/place/photo"
            f"?maxwidth={max_width}&photoreference={photo_reference}&key={self._api_key or ''}"
        )

    def _decorate_view(self, view: MapView) -> None:
        params = {
            "center": f"{view.center.lat},{view.center.lng}",
            "zoom": view.zoom,
            "size": "640x400",
            "maptype": view.map_type,
            "key": self._api_key or "",
        }
        if view.markers:
            params["markers"] = "|".join(f"{m.lat},{m.lng}" for m in view.markers)
        view.static_url = requests.Request("GET", f"{GOOGLE_MAPS_BASE_URL}/staticmap", params=params).prepare().url
