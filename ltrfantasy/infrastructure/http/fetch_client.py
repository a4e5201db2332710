"""Cache-first HTTP client for the remote sports API.

A fetch consults the store first. On a miss it loops over a bounded number
of attempts; each attempt waits for throttle clearance, issues a GET and
checks the response. Failed attempts are retried after an exponential
backoff, and only the exhaustion of all attempts raises past this layer.
"""

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Union

import httpx

from ltrfantasy.domain.events.live_events import DataFetched, EventType, FetchFailed
from ltrfantasy.domain.exceptions import (
    ApiEnvelopeError,
    ApiError,
    EmptyResponseError,
    HttpStatusError,
    InvalidResponseError,
    MaxRetryError,
    NetworkError,
)
from ltrfantasy.domain.interfaces.store import KeyValueStore
from ltrfantasy.domain.models.common import CacheKey, EntityType, Url
from ltrfantasy.infrastructure.http.ttl_policy import TtlPolicy
from ltrfantasy.infrastructure.http.validation import validate_api_response
from ltrfantasy.infrastructure.messaging.hub import NotificationHub
from ltrfantasy.infrastructure.resilience.throttler import Throttler

logger = logging.getLogger(__name__)


class CachedFetchClient:
    """Fetches JSON through the store, the throttler and bounded retries."""

    def __init__(
        self,
        store: KeyValueStore,
        throttler: Throttler,
        http_client: httpx.AsyncClient,
        ttl_policy: Optional[TtlPolicy] = None,
        max_retries: int = 3,
        retry_base_delay: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        hub: Optional[NotificationHub] = None,
        single_flight: bool = False,
    ):
        """Initializes the client.

        Args:
            store: Key-value store used as the response cache.
            throttler: Shared throttler; one permit is taken per attempt.
            http_client: httpx client used for the GET requests.
            ttl_policy: Maps URLs to TTLs when a fetch passes no explicit TTL.
            max_retries: Default number of attempts per fetch.
            retry_base_delay: Wait after the first failed attempt, doubled each time.
            sleep: Coroutine used for retry waits.
            hub: Optional hub that receives DataFetched / FetchFailed events.
            single_flight: Share one in-flight request between concurrent
                fetches of the same URL.
        """
        if max_retries < 1:
            raise ValueError(f"max_retries must be at least 1, got {max_retries}")
        self.store = store
        self.throttler = throttler
        self.http_client = http_client
        self.ttl_policy = ttl_policy or TtlPolicy()
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self._sleep = sleep
        self.hub = hub
        self.single_flight = single_flight
        self._in_flight: Dict[str, asyncio.Task] = {}

    async def fetch(
        self,
        url: Url,
        ttl: Optional[int] = None,
        max_retries: Optional[int] = None,
        schema_type: Optional[Union[EntityType, str]] = None,
    ) -> Any:
        """Returns the JSON payload for ``url``, from the store when fresh.

        Args:
            url: Absolute request URL, also used as the cache key.
            ttl: Expiry in seconds; derived from the URL when omitted.
            max_retries: Attempt ceiling for this call.
            schema_type: Optional entity type the payload must resemble.

        Returns:
            The decoded payload, or None when ``schema_type`` validation fails.

        Raises:
            MaxRetryError: Every attempt failed.
        """
        resolved_ttl = ttl if ttl is not None else self.ttl_policy.ttl_for(url)
        if resolved_ttl <= 0:
            raise ValueError(f"ttl must be positive, got {resolved_ttl}")
        attempts = max_retries if max_retries is not None else self.max_retries
        if attempts < 1:
            raise ValueError(f"max_retries must be at least 1, got {attempts}")

        cached = await self._read_cache(url)
        if cached is not None:
            logger.debug(f"Cache hit for {url}")
            return cached
        logger.debug(f"Cache miss for {url}")

        if not self.single_flight:
            return await self._fetch_remote(url, resolved_ttl, attempts, schema_type)

        task = self._in_flight.get(url)
        if task is None:
            task = asyncio.ensure_future(self._fetch_remote(url, resolved_ttl, attempts, schema_type))
            self._in_flight[url] = task
            task.add_done_callback(lambda _: self._in_flight.pop(url, None))
        else:
            logger.debug(f"Joining in-flight request for {url}")
        # A cancelled caller leaves the shared request running for the others
        return await asyncio.shield(task)

    async def _read_cache(self, url: str) -> Any:
        try:
            return await self.store.get(CacheKey(url))
        except Exception as e:
            logger.warning(f"Cache read error for {url}: {e}")
            return None

    async def _fetch_remote(
        self,
        url: str,
        ttl: int,
        attempts: int,
        schema_type: Optional[Union[EntityType, str]],
    ) -> Any:
        last_error: Optional[ApiError] = None
        for attempt in range(attempts):
            try:
                await self.throttler.acquire()
                data = await self._request(url)
            except ApiError as e:
                last_error = e
                logger.warning(f"Attempt {attempt + 1}/{attempts} failed for {url}: {e}")
                if attempt == attempts - 1:
                    break
                wait_time = (2 ** attempt) * self.retry_base_delay
                logger.info(f"Waiting {wait_time:.2f}s before retry...")
                await self._sleep(wait_time)
                continue

            if schema_type is not None and not validate_api_response(data, schema_type):
                logger.warning(f"Invalid {schema_type} data structure received from {url}")
                return None

            stored = await self._write_cache(url, data, ttl)
            self._publish(EventType.DATA_FETCHED, DataFetched(url=url, ttl_seconds=ttl, attempts=attempt + 1, cached=stored))
            return data

        logger.error(f"Max retries ({attempts}) reached for {url}. Last error: {last_error}")
        self._publish(
            EventType.FETCH_FAILED,
            FetchFailed(
                url=url,
                attempts=attempts,
                error_type=type(last_error).__name__,
                error_message=str(last_error),
            ),
        )
        raise MaxRetryError(url, attempts, last_error) from last_error

    async def _request(self, url: str) -> Any:
        """Performs one GET and maps every failure onto an ApiError."""
        try:
            response = await self.http_client.get(url)
        except httpx.HTTPError as e:
            raise NetworkError(url, e) from e

        if not response.is_success:
            raise HttpStatusError(url, response.status_code)
        if not response.content.strip():
            raise EmptyResponseError(url)

        try:
            data = response.json()
        except ValueError as e:
            raise InvalidResponseError(url, str(e)) from e

        if data is None:
            raise EmptyResponseError(url)
        if isinstance(data, dict) and data.get("error"):
            error = data["error"]
            message = error.get("message") if isinstance(error, dict) else None
            raise ApiEnvelopeError(url, message or json.dumps(error))
        return data

    async def _write_cache(self, url: str, data: Any, ttl: int) -> bool:
        try:
            stored = await self.store.set(CacheKey(url), data, ttl)
        except Exception as e:
            logger.warning(f"Cache write error for {url}: {e}")
            return False
        if stored:
            logger.debug(f"Cached data for {url} (expires in {ttl}s)")
        else:
            logger.warning(f"Could not cache data for {url}")
        return stored

    def _publish(self, event_type: EventType, payload: Any) -> None:
        if self.hub is not None:
            self.hub.notify(event_type, payload)
