"""Implementation of a fixed-window request throttler.

Controls the frequency of outgoing requests to the remote API. Up to
``max_requests`` permits are handed out per window; each permit is followed
by a short flat spacing delay. Once the quota is exhausted callers back off
with a growing delay until the window rolls over.

Bursts of up to twice the quota are possible around a window boundary. That
is the accepted cost of fixed-window counting.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

from ltrfantasy.domain.models.cache import RateLimiterState
from ltrfantasy.infrastructure.config.settings import ThrottleSettings

logger = logging.getLogger(__name__)


class Throttler:
    """Fixed-window rate limiter with exponential backoff while throttled."""

    def __init__(
        self,
        settings: Optional[ThrottleSettings] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initializes the throttler.

        Args:
            settings: Quota, window and backoff tunables.
            clock: Monotonic time source in seconds.
            sleep: Coroutine used for every wait (spacing and backoff).
        """
        self.settings = settings or ThrottleSettings()
        s = self.settings
        if s.max_requests <= 0:
            raise ValueError(f"max_requests must be positive, got {s.max_requests}")
        if s.window_seconds <= 0:
            raise ValueError(f"window_seconds must be positive, got {s.window_seconds}")
        if s.backoff_factor <= 0 or s.backoff_growth < 1:
            raise ValueError("backoff_factor must be positive and backoff_growth at least 1")
        if s.spacing_seconds < 0 or s.backoff_base_delay < 0 or s.max_backoff_seconds < 0:
            raise ValueError("Throttle delays must not be negative")

        self._clock = clock
        self._sleep = sleep
        self._state = RateLimiterState(
            max_requests=s.max_requests,
            window_seconds=s.window_seconds,
            backoff_factor=s.backoff_factor,
            window_start=clock(),
        )
        logger.info(
            f"Throttler initialized: {s.max_requests} requests / {s.window_seconds} seconds, "
            f"spacing={s.spacing_seconds}s, max_backoff={s.max_backoff_seconds}s"
        )

    @property
    def state(self) -> RateLimiterState:
        return self._state

    def reset(self) -> None:
        """Starts a fresh window with the base backoff factor."""
        self._start_window(self._clock())

    def _start_window(self, now: float) -> None:
        self._state.request_count = 0
        self._state.window_start = now
        self._state.backoff_factor = self.settings.backoff_factor
        self._state.throttled_events = 0

    async def acquire(self) -> None:
        """Waits until a request may be dispatched, then records it.

        The quota check and the counter increment happen without a suspension
        point in between, so concurrent callers can never overrun the quota.
        """
        state = self._state
        while True:
            now = self._clock()
            if now - state.window_start >= state.window_seconds:
                logger.debug(f"Rate limit window rolled over after {state.request_count} requests.")
                self._start_window(now)

            if state.request_count < state.max_requests:
                state.request_count += 1
                logger.debug(f"Rate limit permission granted ({state.request_count}/{state.max_requests}).")
                if self.settings.spacing_seconds > 0:
                    await self._sleep(self.settings.spacing_seconds)
                return

            delay = min(state.backoff_factor * self.settings.backoff_base_delay, self.settings.max_backoff_seconds)
            state.backoff_factor *= self.settings.backoff_growth
            state.throttled_events += 1
            logger.debug(
                f"Rate limit reached ({state.request_count}/{state.max_requests}). "
                f"Backing off for {delay:.2f} seconds."
            )
            await self._sleep(delay)
