"""
Provider abstraction layer for places services.

This module provides a unified interface for autocomplete, maps, geocoding
and photos across multiple places backends (Google Maps, Foursquare, and a
hybrid of the two).
"""

from .base import (
    AddressInput,
    AutocompleteSession,
    LatLng,
    LoadState,
    MapContainer,
    MapView,
    PlaceResult,
    PlacesProvider,
    ProviderError,
    ProviderLoadError,
    ProviderStatus,
    ProviderType,
    SdkLoader,
    UnknownProviderError,
)
from .google_maps import GoogleMapsProvider
from .foursquare import FoursquareProvider
from .hybrid import HybridPlacesProvider
from .factory import PlacesRegistry, parse_provider_type

__all__ = [
    "AddressInput",
    "AutocompleteSession",
    "LatLng",
    "LoadState",
    "MapContainer",
    "MapView",
    "PlaceResult",
    "PlacesProvider",
    "ProviderError",
    "ProviderLoadError",
    "ProviderStatus",
    "ProviderType",
    "SdkLoader",
    "UnknownProviderError",
    "GoogleMapsProvider",
    "FoursquareProvider",
    "HybridPlacesProvider",
    "PlacesRegistry",
    "parse_provider_type",
]
