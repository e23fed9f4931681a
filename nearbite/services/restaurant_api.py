"""
Client for the restaurant search backend.

GET /api/restaurants        one page of full records, plus a cursor
GET /api/restaurants/ids    identifiers only, for random picks
GET /api/restaurants/{id}   one full record
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests

from nearbite.config.settings import HTTP_TIMEOUT_SECONDS, RESTAURANT_API_BASE_URL
from nearbite.models.schemas import SearchKey

logger = logging.getLogger(__name__)

Restaurant = Dict[str, Any]


class NetworkError(Exception):
    """Non-2xx response or transport failure talking to the backend."""
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class SearchPage:
    results: List[Restaurant] = field(default_factory=list)
    size: int = 0
    cursor: Optional[str] = None  # None or empty means no more pages


class RestaurantApiClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: float = HTTP_TIMEOUT_SECONDS,
    ):
        self.base_url = (base_url or RESTAURANT_API_BASE_URL).rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise NetworkError(f"Request to {path} failed: {e}") from e

        if not 200 <= response.status_code < 300:
            raise NetworkError(
                f"Restaurant API error ({response.status_code}): {response.text}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as e:
            raise NetworkError(f"Invalid JSON from {path}: {e}", status_code=response.status_code) from e

    def search_page(self, key: SearchKey, page_size: int, cursor: Optional[str] = None) -> SearchPage:
        params = key.query_params()
        params["pageSize"] = page_size
        if cursor:
            params["cursor"] = cursor
        data = self._get("/api/restaurants", params)
        results = data.get("results") or []
        return SearchPage(
            results=results,
            size=data.get("size", len(results)),
            cursor=data.get("cursor") or None,
        )

    def list_ids(self, key: SearchKey) -> List[str]:
        params = key.query_params()
        params["fieldsToFetch"] = "fsq_id"
        data = self._get("/api/restaurants/ids", params)
        return [item["fsq_id"] for item in data.get("results") or [] if item.get("fsq_id")]

    def get_details(self, restaurant_id: str) -> Restaurant:
        return self._get(f"/api/restaurants/{requests.utils.quote(restaurant_id, safe='')}")

    # Async wrappers: run the blocking call off the event loop

    async def fetch_page(self, key: SearchKey, page_size: int, cursor: Optional[str] = None) -> SearchPage:
        return await asyncio.to_thread(self.search_page, key, page_size, cursor)

    async def fetch_ids(self, key: SearchKey) -> List[str]:
        return await asyncio.to_thread(self.list_ids, key)

    async def fetch_details(self, restaurant_id: str) -> Restaurant:
        return await asyncio.to_thread(self.get_details, restaurant_id)
