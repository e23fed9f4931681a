"""
Random restaurant pick in two phases: list candidate ids for the search, then
fetch the full record of one uniformly sampled id.
"""

import logging
import random
from typing import Collection, List, Optional

from nearbite.models.schemas import FilterSet, Location, SearchKey
from nearbite.services.discovery_service import DiscoveryError, InvalidLocationError
from nearbite.services.restaurant_api import NetworkError, Restaurant, RestaurantApiClient

logger = logging.getLogger(__name__)


class NoLocationError(InvalidLocationError):
    """Random pick attempted without a location."""
    pass


class NoCandidatesError(DiscoveryError):
    """No restaurant matches the current location and filters."""
    pass


class PickFailedError(DiscoveryError):
    """The chosen restaurant's details could not be fetched."""
    def __init__(self, message: str, restaurant_id: str):
        super().__init__(message)
        self.restaurant_id = restaurant_id


class RandomPicker:
    def __init__(self, client: RestaurantApiClient, rng: Optional[random.Random] = None):
        self.client = client
        self.rng = rng or random.Random()
        self._candidate_key: Optional[SearchKey] = None
        self._candidate_ids: List[str] = []

    def invalidate(self) -> None:
        self._candidate_key = None
        self._candidate_ids = []

    async def list_candidate_ids(self, location: Location, filters: FilterSet) -> List[str]:
        """
        Ids of every restaurant matching location + filters.

        Cached against the search key; refetched once the key changes.

        Raises:
            NoLocationError: If the location has no coordinates
            NetworkError: If the id list cannot be fetched
        """
        if not location.is_set:
            raise NoLocationError("Set a location before picking a restaurant")
        key = SearchKey.build(location, filters)
        if key == self._candidate_key:
            return list(self._candidate_ids)

        ids = await self.client.fetch_ids(key)
        self._candidate_key = key
        self._candidate_ids = ids
        logger.info(f"Fetched {len(ids)} candidate ids for random pick")
        return list(ids)

    def sample_index(self, count: int) -> int:
        """Uniform index in [0, count)."""
        return self.rng.randrange(count)

    async def pick_one(
        self,
        location: Location,
        filters: FilterSet,
        exclude_ids: Collection[str] = (),
    ) -> Restaurant:
        """
        Pick one matching restaurant at random and return its full record.

        Raises:
            NoLocationError: If the location has no coordinates
            NoCandidatesError: If nothing matches (after exclusions)
            PickFailedError: If the detail fetch for the chosen id fails
        """
        candidates = await self.list_candidate_ids(location, filters)
        if exclude_ids:
            candidates = [c for c in candidates if c not in exclude_ids]
        if not candidates:
            raise NoCandidatesError("No restaurants available. Try adjusting your filters or changing your location.")

        chosen = candidates[self.sample_index(len(candidates))]
        try:
            return await self.client.fetch_details(chosen)
        except NetworkError as e:
            raise PickFailedError(f"Failed to fetch details for {chosen}: {e}", restaurant_id=chosen) from e
