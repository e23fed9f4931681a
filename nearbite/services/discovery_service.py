"""
Restaurant discovery: cursor-paginated search keyed by (location, filters).

Pages for the current SearchKey are accumulated in order; a new key discards
them. Every response is stamped with the key and generation it was requested
for and is dropped if the engine has moved on by the time it arrives.
"""

import logging
import math
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Iterable, List, Optional

from nearbite.config.settings import SEARCH_PAGE_SIZE
from nearbite.models.schemas import FilterSet, Location, SearchKey, VisitRecord
from nearbite.services.restaurant_api import NetworkError, Restaurant, RestaurantApiClient

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


class DiscoveryError(Exception):
    """Base exception for restaurant discovery errors."""
    pass


class InvalidLocationError(DiscoveryError):
    """Search attempted without coordinates."""
    pass


class StaleResponseDiscarded(DiscoveryError):
    """A response arrived for a search that is no longer current. Never surfaced."""
    pass


class SearchState(Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    HAS_RESULTS = "has_results"
    EMPTY = "empty"
    FAILED = "failed"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


def restaurant_id(record: Restaurant) -> Optional[str]:
    """Provider-specific identifier of a restaurant record."""
    return record.get("place_id") or record.get("fsq_id") or record.get("id")


def recently_visited_ids(
    visit_history: Iterable[VisitRecord],
    history_days: int,
    now: datetime,
) -> set:
    """Ids visited fewer than history_days whole days before now."""
    if history_days == 0:
        return set()
    now = _as_utc(now)
    recent = set()
    for visit in visit_history:
        elapsed = (now - _as_utc(visit.visit_date)).total_seconds()
        if math.floor(elapsed / SECONDS_PER_DAY) < history_days:
            recent.add(visit.id)
    return recent


def filter_recent_visits(
    results: Iterable[Restaurant],
    visit_history: Iterable[VisitRecord],
    history_days: int,
    now: datetime,
) -> List[Restaurant]:
    """
    Drop restaurants visited within the last history_days days.

    history_days == 0 keeps everything. The input list is not modified.
    """
    recent = recently_visited_ids(visit_history, history_days, now)
    if not recent:
        return list(results)
    return [r for r in results if restaurant_id(r) not in recent]


class DiscoveryEngine:
    """
    Paginated restaurant search for one SearchKey at a time.

    States: idle -> fetching -> {has_results, empty, failed}; load_more goes
    has_results -> fetching and appends. Network failures are stored on
    `error` (state failed) rather than raised.
    """

    def __init__(
        self,
        client: RestaurantApiClient,
        page_size: int = SEARCH_PAGE_SIZE,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.client = client
        self.page_size = page_size
        self.visit_history: List[VisitRecord] = []
        self._clock = clock
        self._generation = 0
        self._reset(None)

    def _reset(self, key: Optional[SearchKey]) -> None:
        self._generation += 1
        self.key = key
        self.results: List[Restaurant] = []
        self.cursor: Optional[str] = None
        self.error: Optional[Exception] = None
        self.state = SearchState.IDLE
        self._in_flight = False

    def now(self) -> datetime:
        return self._clock()

    @property
    def has_more(self) -> bool:
        return bool(self.cursor)

    @property
    def is_loading(self) -> bool:
        return self._in_flight

    @property
    def data(self) -> List[Restaurant]:
        """Accumulated results minus recently visited restaurants."""
        if self.key is None:
            return []
        return filter_recent_visits(self.results, self.visit_history, self.key.history_days, self.now())

    async def search(
        self,
        location: Location,
        filters: FilterSet,
        page_size: Optional[int] = None,
    ) -> List[Restaurant]:
        """
        Start (or keep) the search for location + filters.

        An unchanged key does not refetch unless the last attempt failed.

        Raises:
            InvalidLocationError: If the location has no coordinates
        """
        if not location.is_set:
            raise InvalidLocationError("Location has no coordinates; set a location before searching")
        if page_size:
            self.page_size = page_size

        key = SearchKey.build(location, filters)
        if key == self.key and self.state not in (SearchState.IDLE, SearchState.FAILED):
            return self.data

        if self.key is not None and key != self.key:
            logger.info(f"Search changed, discarding {len(self.results)} accumulated results")
        self._reset(key)
        await self._fetch_page()
        return self.data

    async def load_more(self) -> List[Restaurant]:
        """Fetch the next page. Does nothing without a cursor or while a page is in flight."""
        if self.key is None or not self.has_more or self._in_flight:
            logger.debug("load_more ignored: nothing more to load or a page is already in flight")
            return self.data
        await self._fetch_page()
        return self.data

    def clear(self) -> None:
        """Forget the current search; in-flight responses for it are discarded."""
        if self.key is not None:
            logger.info(f"Search cleared, discarding {len(self.results)} accumulated results")
        self._reset(None)

    async def refetch(self) -> List[Restaurant]:
        """Drop the accumulated pages and fetch the current search from the first page."""
        if self.key is None:
            return []
        self._reset(self.key)
        await self._fetch_page()
        return self.data

    def _check_current(self, key: SearchKey, generation: int) -> None:
        if key != self.key or generation != self._generation:
            raise StaleResponseDiscarded(f"Discarding response for superseded search at ({key.lat}, {key.lng})")

    async def _fetch_page(self) -> None:
        key, generation, cursor = self.key, self._generation, self.cursor
        self._in_flight = True
        self.state = SearchState.FETCHING
        try:
            page = await self.client.fetch_page(key, self.page_size, cursor)
        except NetworkError as e:
            try:
                self._check_current(key, generation)
            except StaleResponseDiscarded as stale:
                logger.info(str(stale))
                return
            logger.error(f"Restaurant search failed: {e}")
            self._in_flight = False
            self.error = e
            self.state = SearchState.FAILED
            return
        except BaseException:
            if key == self.key and generation == self._generation:
                self._in_flight = False
                self.state = SearchState.FAILED
            raise

        try:
            self._check_current(key, generation)
        except StaleResponseDiscarded as stale:
            logger.info(str(stale))
            return

        self._in_flight = False
        self.results.extend(page.results)
        self.cursor = page.cursor
        self.error = None
        self.state = SearchState.HAS_RESULTS if self.results else SearchState.EMPTY
        logger.info(
            f"Loaded {len(page.results)} restaurants ({len(self.results)} total, more={self.has_more})"
        )
