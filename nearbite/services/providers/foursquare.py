"""
Foursquare Places provider implementation.

Lightweight places backend: geographic autocomplete, geocoding through the
autocomplete and place search endpoints, OpenStreetMap tiles for maps, and
photo URLs on the Foursquare CDN.
"""

import logging
import re
from typing import Any, Dict, List, Optional

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
    ProviderType,
    read_latlng,
)

logger = logging.getLogger(__name__)

FOURSQUARE_BASE_URL = "https://api.foursquare.com/v3"
FOURSQUARE_PHOTO_BASE_URL = "https://fastly.4sqi.net/img/general"
OSM_TILE_URL = "https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png"
PLACEHOLDER_PHOTO_URL = "https://via.placeholder.com/{size}x{size}?text=No+Image+Available"

_PHOTO_SIZE_SEGMENT = re.compile(r"/\d+x\d+/")


def _join_address(*parts: Optional[str]) -> str:
    return ", ".join(p for p in parts if p)


class FoursquareAutocompleteSession(AutocompleteSession):
    """Suggestions only start at three typed characters."""

    def __init__(self, provider: "FoursquareProvider", input_target: AddressInput, on_place_selected: PlaceSelectedCallback):
        super().__init__(provider.name, input_target, on_place_selected, min_query_length=3)
        self._provider = provider

    async def _fetch_suggestions(self, query: str) -> List[PlaceResult]:
        return await self._provider._autocomplete_locations(query)


class FoursquareProvider(BackendPlacesProvider):
    """
    Foursquare Places API (v3) provider.

    There is no script to fetch: the load only confirms the API key.
    """

    @property
    def name(self) -> str:
        return "foursquare"

    @property
    def provider_type(self) -> ProviderType:
        return ProviderType.FOURSQUARE

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": self._api_key or "", "Accept": "application/json"}

    async def _load_sdk(self) -> None:
        self._require_api_key()

    async def _autocomplete_locations(self, query: str) -> List[PlaceResult]:
        """Regions, countries and cities matching the query."""
        data = await self._get_json(
            f"{FOURSQUARE_BASE_URL}/autocomplete",
            params={"query": query, "limit": 5, "types": "geo"},
            headers=self._headers(),
        )

        results = []
        for result in data.get("results") or []:
            if not isinstance(result, dict) or result.get("type") != "geo":
                continue
            geo = result.get("geo") or {}
            location = read_latlng(geo.get("center"), "latitude", "longitude")
            if location is None:
                logger.warning(f"Foursquare autocomplete result missing geocodes: {result}")
                continue
            results.append(PlaceResult(
                name=(result.get("text") or {}).get("primary") or geo.get("name") or "Unknown Location",
                formatted_address=_join_address(
                    geo.get("name"), geo.get("locality"), geo.get("region"), geo.get("country")
                ),
                location=location,
            ))
        return results

    async def _search_places(self, query: str, limit: int = 5, fields: str = "name,location,geocodes") -> List[Dict[str, Any]]:
        data = await self._get_json(
            f"{FOURSQUARE_BASE_URL}/places/search",
            params={"query": query, "limit": limit, "fields": fields},
            headers=self._headers(),
        )
        results = data.get("results")
        return results if isinstance(results, list) else []

    def init_autocomplete(
        self,
        input_target: Optional[AddressInput],
        on_place_selected: PlaceSelectedCallback,
    ) -> Optional[AutocompleteSession]:
        if not self.is_loaded:
            logger.warning("Cannot initialize autocomplete: Foursquare API not loaded yet")
            return None
        if input_target is None:
            logger.error("Cannot initialize autocomplete: input target is None")
            return None
        try:
            return FoursquareAutocompleteSession(self, input_target, on_place_selected)
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
            # Regions/cities first, then any place matching the text
            suggestions = await self._autocomplete_locations(address)
            if suggestions:
                return suggestions[0].location

            logger.info(f"No autocomplete match for {address!r}, falling back to places search")
            places = await self._search_places(address, limit=1, fields="geocodes")
        except (ProviderError, ValueError) as e:
            logger.error(f"Error geocoding address: {e}")
            return None

        if not places:
            logger.warning(f"No results found for address: {address}")
            return None
        geocodes = places[0].get("geocodes") if isinstance(places[0], dict) else None
        location = read_latlng(geocodes.get("main") if isinstance(geocodes, dict) else None, "latitude", "longitude")
        if location is None:
            logger.warning(f"Places search geocoding result missing coordinates: {places[0]}")
        return location

    def init_map(
        self,
        container: Optional[MapContainer],
        options: Optional[Dict[str, Any]] = None,
    ) -> Optional[MapView]:
        return self._render_map(container, options, {
            "center": DEFAULT_MAP_CENTER,
            "zoom": DEFAULT_MAP_ZOOM,
            "map_type": "osm",
            "marker": True,
        })

    def get_photo_url(self, photo_reference: str, max_width: int) -> str:
        if not photo_reference:
            return PLACEHOLDER_PHOTO_URL.format(size=max_width)
        if photo_reference.startswith("http"):
            if "fastly.4sqi.net/img/" in photo_reference:
                return _PHOTO_SIZE_SEGMENT.sub(f"/{max_width}x{max_width}/", photo_reference, count=1)
            return photo_reference
        return f"{FOURSQUARE_PHOTO_BASE_URL}/{max_width}x{max_width}/{photo_reference}"

    def _decorate_view(self, view: MapView) -> None:
        view.map_type = "osm"
        view.tile_url = OSM_TILE_URL
