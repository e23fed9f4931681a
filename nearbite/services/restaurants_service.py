"""
Restaurants service: the search/pick surface handed to UI code.

Holds the current location, filters and visit history, and drives the
discovery engine and random picker from them.
"""

import logging
from typing import List, Optional

from nearbite.models.schemas import FilterSet, Location, VisitRecord
from nearbite.services.discovery_service import DiscoveryEngine, recently_visited_ids, restaurant_id
from nearbite.services.random_picker import RandomPicker
from nearbite.services.restaurant_api import Restaurant, RestaurantApiClient

logger = logging.getLogger(__name__)


class RestaurantsService:
    def __init__(
        self,
        client: RestaurantApiClient,
        engine: Optional[DiscoveryEngine] = None,
        picker: Optional[RandomPicker] = None,
    ):
        self.engine = engine or DiscoveryEngine(client)
        self.picker = picker or RandomPicker(client)
        self.location = Location()
        self.filters = FilterSet()
        self.highlighted_result: Optional[str] = None

    @property
    def visit_history(self) -> List[VisitRecord]:
        return self.engine.visit_history

    @visit_history.setter
    def visit_history(self, history: List[VisitRecord]) -> None:
        self.engine.visit_history = list(history)

    @property
    def data(self) -> List[Restaurant]:
        return self.engine.data

    @property
    def is_loading(self) -> bool:
        return self.engine.is_loading

    @property
    def error(self) -> Optional[Exception]:
        return self.engine.error

    @property
    def has_more(self) -> bool:
        return self.engine.has_more

    async def update(self, location: Location, filters: FilterSet) -> List[Restaurant]:
        """
        Apply a new location/filter pair. Searches only once coordinates are
        known; an unchanged pair does not refetch. Without coordinates the
        previous results are dropped.
        """
        self.location = location
        self.filters = filters
        if not location.is_set:
            self.engine.clear()
            self.picker.invalidate()
            return []
        return await self.engine.search(location, filters)

    async def refetch(self) -> List[Restaurant]:
        return await self.engine.refetch()

    async def load_more(self) -> List[Restaurant]:
        return await self.engine.load_more()

    async def pick_random(self) -> Restaurant:
        """
        Pick one restaurant for the current location and filters, skipping
        recently visited ones, and highlight it.

        Raises:
            NoLocationError, NoCandidatesError, PickFailedError, NetworkError
        """
        exclude = recently_visited_ids(self.visit_history, self.filters.history_days, self.engine.now())
        restaurant = await self.picker.pick_one(self.location, self.filters, exclude_ids=exclude)
        self.highlighted_result = restaurant_id(restaurant)
        logger.info(f"Random pick: {restaurant.get('name', self.highlighted_result)}")
        return restaurant

    def clear_highlight(self) -> None:
        self.highlighted_result = None
