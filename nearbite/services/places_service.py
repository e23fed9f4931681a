"""
Places service: the provider surface handed to UI and API code.

Every call resolves the provider through the registry at call time, so a
switch_provider() takes effect on the very next call.
"""

from typing import Any, Dict, Optional, Union

from nearbite.services.providers import (
    AddressInput,
    AutocompleteSession,
    LatLng,
    MapContainer,
    MapView,
    PlacesProvider,
    PlacesRegistry,
    ProviderType,
)
from nearbite.services.providers.base import PlaceSelectedCallback


class PlacesService:
    def __init__(self, registry: PlacesRegistry):
        self.registry = registry

    @property
    def provider(self) -> PlacesProvider:
        return self.registry.get_active_provider()

    @property
    def provider_type(self) -> ProviderType:
        return self.registry.get_active_provider_type()

    @property
    def is_loaded(self) -> bool:
        return self.provider.is_loaded

    @property
    def error(self) -> Optional[BaseException]:
        return self.provider.error

    def switch_provider(self, provider_type: Union[str, ProviderType]) -> PlacesProvider:
        """Raises UnknownProviderError for unregistered types."""
        self.registry.set_active_provider(provider_type)
        return self.provider

    async def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        return await self.provider.wait_until_ready(timeout)

    def init_autocomplete(
        self,
        input_target: Optional[AddressInput],
        on_place_selected: PlaceSelectedCallback,
    ) -> Optional[AutocompleteSession]:
        return self.provider.init_autocomplete(input_target, on_place_selected)

    def show_map(self, container: Optional[MapContainer], location: LatLng) -> Optional[MapView]:
        return self.provider.show_map(container, location)

    async def geocode_address(self, address: str) -> Optional[LatLng]:
        return await self.provider.geocode_address(address)

    def init_map(
        self,
        container: Optional[MapContainer],
        options: Optional[Dict[str, Any]] = None,
    ) -> Optional[MapView]:
        return self.provider.init_map(container, options)

    def get_photo_url(self, photo_reference: str, max_width: int) -> str:
        return self.provider.get_photo_url(photo_reference, max_width)
