"""Cached availability of an external service.

Each probe owns its (available, checked_at) state and re-runs its check only
once the previous result is older than its TTL. A check that raises counts
as "unavailable".
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional

from shared.clock import Clock
from shared.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class AvailabilityState:
    available: bool
    checked_at: Optional[datetime]


class AvailabilityProbe:
    def __init__(
        self,
        name: str,
        check: Callable[[], Awaitable[bool]],
        *,
        ttl_seconds: int,
        clock: Clock,
    ) -> None:
        self.name = name
        self._check = check
        self._ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock
        self._state = AvailabilityState(available=False, checked_at=None)

    @property
    def state(self) -> AvailabilityState:
        return self._state

    def is_stale(self) -> bool:
        checked_at = self._state.checked_at
        return checked_at is None or self._clock.now() - checked_at >= self._ttl

    async def is_available(self) -> bool:
        if self.is_stale():
            await self.refresh()
        return self._state.available

    async def refresh(self) -> AvailabilityState:
        previous = self._state
        try:
            available = bool(await self._check())
        except Exception as e:
            log.warning(
                "availability_check_failed",
                service=self.name,
                error=str(e),
                error_type=type(e).__name__,
            )
            available = False

        self._state = AvailabilityState(available=available, checked_at=self._clock.now())
        if previous.checked_at is None or previous.available != available:
            log.info("service_availability_changed", service=self.name, available=available)
        return self._state

    def invalidate(self) -> None:
        """Force the next is_available() call to re-run the check."""
        self._state = AvailabilityState(available=self._state.available, checked_at=None)
