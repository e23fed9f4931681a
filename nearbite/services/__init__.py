# Crowd level cache exports
from nearbite.services.crowd_service import (
    CrowdDataError,
    CrowdLevelCache,
)

# Discovery exports
from nearbite.services.discovery_service import (
    DiscoveryEngine,
    DiscoveryError,
    InvalidLocationError,
    SearchState,
    StaleResponseDiscarded,
    filter_recent_visits,
    restaurant_id,
)
from nearbite.services.random_picker import (
    NoCandidatesError,
    NoLocationError,
    PickFailedError,
    RandomPicker,
)
from nearbite.services.restaurant_api import (
    NetworkError,
    RestaurantApiClient,
    SearchPage,
)

# Service surfaces
from nearbite.services.places_service import PlacesService
from nearbite.services.restaurants_service import RestaurantsService

__all__ = [
    "CrowdDataError",
    "CrowdLevelCache",
    "DiscoveryEngine",
    "DiscoveryError",
    "InvalidLocationError",
    "SearchState",
    "StaleResponseDiscarded",
    "filter_recent_visits",
    "restaurant_id",
    "NoCandidatesError",
    "NoLocationError",
    "PickFailedError",
    "RandomPicker",
    "NetworkError",
    "RestaurantApiClient",
    "SearchPage",
    "PlacesService",
    "RestaurantsService",
]
