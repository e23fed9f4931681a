"""
Runtime Configuration

Values are read from the environment (and the project .env file) once at import.
Services that need to be tested with other values take a PlacesSettings
snapshot instead of reading the module constants directly.

Usage:
    from nearbite.config.settings import load_places_settings

    registry = PlacesRegistry(load_places_settings())
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv

# Load .env file from project root
project_root = Path(__file__).parent.parent.parent
env_path = project_root / ".env"
load_dotenv(dotenv_path=env_path)

# =============================================================================
# Places providers
# =============================================================================

GOOGLE_MAPS_API_KEY = os.getenv("GOOGLE_MAPS_API_KEY")
FOURSQUARE_PLACES_API_KEY = os.getenv("FOURSQUARE_PLACES_API_KEY")
PLACES_PROVIDER = os.getenv("PLACES_PROVIDER")
DEFAULT_PLACES_PROVIDER = "google"   # Used when PLACES_PROVIDER is missing or invalid

# Hybrid provider stops watching its delegates after this long
PLACES_READINESS_TIMEOUT_SECONDS = float(os.getenv("PLACES_READINESS_TIMEOUT_SECONDS", "30"))

# Map defaults (New York) for maps initialized before a location is known
DEFAULT_MAP_CENTER = (40.7128, -74.0060)
DEFAULT_MAP_ZOOM = 12
LOCATION_MAP_ZOOM = 15

# =============================================================================
# Restaurant search backend
# =============================================================================

RESTAURANT_API_BASE_URL = os.getenv("RESTAURANT_API_BASE_URL", "http://localhost:5000")
SEARCH_PAGE_SIZE = int(os.getenv("SEARCH_PAGE_SIZE", "10"))
HTTP_TIMEOUT_SECONDS = 15

# =============================================================================
# Crowd level cache
# =============================================================================

CROWD_DATA_TTL_MS = int(os.getenv("CROWD_DATA_TTL", "86400000"))  # 24 hours


@dataclass(frozen=True)
class PlacesSettings:
    """Snapshot of provider configuration handed to the registry."""
    google_api_key: Optional[str] = None
    foursquare_api_key: Optional[str] = None
    active_provider: Optional[str] = None
    readiness_timeout: float = 30.0


def load_places_settings() -> PlacesSettings:
    return PlacesSettings(
        google_api_key=GOOGLE_MAPS_API_KEY,
        foursquare_api_key=FOURSQUARE_PLACES_API_KEY,
        active_provider=PLACES_PROVIDER,
        readiness_timeout=PLACES_READINESS_TIMEOUT_SECONDS,
    )
