"""
Provider registry for places providers.

One registry is built at application start and handed to everything that needs
a provider. It owns the SDK loader and one instance of every provider type, and
tracks which of them is active.
"""

import logging
from typing import Dict, Optional, Union

import requests

from nearbite.config.settings import DEFAULT_PLACES_PROVIDER, PlacesSettings
from .base import PlacesProvider, ProviderType, SdkLoader, UnknownProviderError
from .foursquare import FoursquareProvider
from .google_maps import GoogleMapsProvider
from .hybrid import HybridPlacesProvider

logger = logging.getLogger(__name__)

_ALIASES = {
    "google": ProviderType.GOOGLE,
    "google_maps": ProviderType.GOOGLE,
    "google_places": ProviderType.GOOGLE,
    "foursquare": ProviderType.FOURSQUARE,
    "fsq": ProviderType.FOURSQUARE,
    "hybrid": ProviderType.HYBRID,
}


def parse_provider_type(value: Union[str, ProviderType, None]) -> Optional[ProviderType]:
    """Map a configured name (case-insensitive, aliases allowed) to a ProviderType."""
    if isinstance(value, ProviderType):
        return value
    if not value:
        return None
    return _ALIASES.get(value.strip().lower())


class PlacesRegistry:
    """
    Holds every provider for the process lifetime.

    Construction eagerly creates all providers so each backend load starts
    right away, whichever one ends up active. Must be built inside a running
    event loop (e.g. the FastAPI startup hook).
    """

    def __init__(self, settings: PlacesSettings, session: Optional[requests.Session] = None):
        self.loader = SdkLoader()
        google = GoogleMapsProvider(self.loader, api_key=settings.google_api_key, session=session)
        foursquare = FoursquareProvider(self.loader, api_key=settings.foursquare_api_key, session=session)
        hybrid = HybridPlacesProvider(full=google, lite=foursquare, readiness_timeout=settings.readiness_timeout)

        self._providers: Dict[ProviderType, PlacesProvider] = {
            ProviderType.GOOGLE: google,
            ProviderType.FOURSQUARE: foursquare,
            ProviderType.HYBRID: hybrid,
        }

        configured = parse_provider_type(settings.active_provider)
        if configured is not None and configured in self._providers:
            self._active = configured
            logger.info(f"Using places provider from config: {configured.value}")
        else:
            if settings.active_provider:
                logger.warning(
                    f"Unknown places provider '{settings.active_provider}', defaulting to {DEFAULT_PLACES_PROVIDER}"
                )
            self._active = ProviderType(DEFAULT_PLACES_PROVIDER)
            logger.info(f"Using default places provider: {self._active.value}")

    def get_provider(self, provider_type: Union[str, ProviderType]) -> PlacesProvider:
        resolved = parse_provider_type(provider_type)
        if resolved is None or resolved not in self._providers:
            raise UnknownProviderError(f"Provider {provider_type} not found", provider=str(provider_type))
        return self._providers[resolved]

    def get_active_provider(self) -> PlacesProvider:
        return self._providers[self._active]

    def get_active_provider_type(self) -> ProviderType:
        return self._active

    def set_active_provider(self, provider_type: Union[str, ProviderType]) -> None:
        """
        Switch the active provider.

        Raises:
            UnknownProviderError: If the type was never registered
        """
        resolved = parse_provider_type(provider_type)
        if resolved is None or resolved not in self._providers:
            raise UnknownProviderError(f"Provider {provider_type} not found", provider=str(provider_type))
        self._active = resolved
        logger.info(f"Active places provider set to: {resolved.value}")

    def status_report(self) -> Dict[str, Dict[str, Optional[str]]]:
        """Load state of every provider, for status/debugging."""
        return {
            provider_type.value: {
                "state": provider.status.state.value,
                "error": str(provider.error) if provider.error else None,
            }
            for provider_type, provider in self._providers.items()
        }
