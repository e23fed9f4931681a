"""
Hybrid places provider.

Uses the lightweight backend for autocomplete, geocoding and photos, and the
full mapping backend for everything drawn on a map.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from .base import (
    AddressInput,
    AutocompleteSession,
    BackendPlacesProvider,
    LatLng,
    LoadState,
    MapContainer,
    MapView,
    PlaceSelectedCallback,
    PlacesProvider,
    ProviderStatus,
    ProviderType,
)

logger = logging.getLogger(__name__)


def _settled(provider: PlacesProvider) -> bool:
    # A delegate's future can be done before its own done-callback has updated its status
    return provider.status.state in (LoadState.LOADED, LoadState.ERRORED)


class HybridPlacesProvider(PlacesProvider):
    """
    Routes each operation to one of two delegates:

        autocomplete / geocode / photo URL  -> lite
        show_map / init_map                 -> full

    Loaded only when both delegates are loaded. The surfaced error is the full
    provider's if it has one, else the lite provider's. Status is refreshed by
    callbacks on the delegates' load futures and stops being refreshed once both
    are loaded or once readiness_timeout elapses.
    """

    def __init__(
        self,
        full: BackendPlacesProvider,
        lite: BackendPlacesProvider,
        readiness_timeout: float = 30.0,
    ):
        self.full = full
        self.lite = lite
        self.status = ProviderStatus()
        self.status.start_loading()
        self._watching = True
        self._ready: "asyncio.Future[None]" = asyncio.get_running_loop().create_future()
        self._timeout_handle = asyncio.get_running_loop().call_later(readiness_timeout, self._stop_watching)

        for delegate in (self.full, self.lite):
            delegate.load_future.add_done_callback(lambda _f: self._refresh_status())
        self._refresh_status()

    @property
    def name(self) -> str:
        return "hybrid"

    @property
    def provider_type(self) -> ProviderType:
        return ProviderType.HYBRID

    def _refresh_status(self) -> None:
        if not self._watching:
            return

        logger.debug(
            f"HybridProvider: checking loading state - {self.full.name}: {self.full.is_loaded}, "
            f"{self.lite.name}: {self.lite.is_loaded}"
        )
        if self.full.error is not None:
            if self.status.error is not self.full.error:
                logger.error(f"HybridProvider: {self.full.name} provider error: {self.full.error}")
            self.status.mark_errored(self.full.error)
        elif self.lite.error is not None:
            if self.status.error is not self.lite.error:
                logger.error(f"HybridProvider: {self.lite.name} provider error: {self.lite.error}")
            self.status.mark_errored(self.lite.error)
        elif self.full.is_loaded and self.lite.is_loaded:
            logger.info("HybridProvider: both providers loaded successfully")
            self.status.mark_loaded()

        if _settled(self.full) and _settled(self.lite):
            self._finish()

    def _stop_watching(self) -> None:
        if self._watching:
            logger.warning(
                f"HybridProvider: gave up waiting for delegates (state={self.status.state.value})"
            )
        self._finish()

    def _finish(self) -> None:
        self._watching = False
        self._timeout_handle.cancel()
        if not self._ready.done():
            self._ready.set_result(None)

    async def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        try:
            await asyncio.wait_for(asyncio.shield(self._ready), timeout)
        except asyncio.TimeoutError:
            logger.warning(f"hybrid did not settle within {timeout}s")
        return self.is_loaded

    def init_autocomplete(
        self,
        input_target: Optional[AddressInput],
        on_place_selected: PlaceSelectedCallback,
    ) -> Optional[AutocompleteSession]:
        logger.debug(f"HybridProvider: initializing autocomplete with {self.lite.name}")
        return self.lite.init_autocomplete(input_target, on_place_selected)

    def show_map(self, container: Optional[MapContainer], location: LatLng) -> Optional[MapView]:
        logger.debug(f"HybridProvider: showing map with {self.full.name} at {location}")
        return self.full.show_map(container, location)

    async def geocode_address(self, address: str) -> Optional[LatLng]:
        logger.debug(f"HybridProvider: geocoding address with {self.lite.name}")
        return await self.lite.geocode_address(address)

    def init_map(
        self,
        container: Optional[MapContainer],
        options: Optional[Dict[str, Any]] = None,
    ) -> Optional[MapView]:
        logger.debug(f"HybridProvider: initializing map with {self.full.name}")
        return self.full.init_map(container, options)

    def get_photo_url(self, photo_reference: str, max_width: int) -> str:
        return self.lite.get_photo_url(photo_reference, max_width)
