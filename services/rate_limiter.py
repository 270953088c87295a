"""
Per-client-IP request throttling for the auth endpoints.

Backed by the ``limits`` library (the engine behind flask-limiter) with the
async fixed-window strategy. Storage is in-process by default; point
RATE_LIMIT storage at ``async+redis://`` to share counters across workers.

Two budgets:
    AUTH            general auth endpoints (5 per 15 minutes)
    PASSWORD_RESET  reset initiation (3 per hour)

Outside production every budget is multiplied by
``non_production_multiplier``. This is defence in depth only; the per-account
lockout is the authoritative brute-force control.
"""

from __future__ import annotations

from enum import Enum

from limits import RateLimitItem, RateLimitItemPerMinute
from limits.aio.strategies import FixedWindowRateLimiter
from limits.storage import storage_from_string

from config import RateLimitSettings
from errors import RateLimitError
from shared.logging import get_logger, hash_ip

log = get_logger(__name__)


class RateLimitClass(str, Enum):
    AUTH = "auth"
    PASSWORD_RESET = "password_reset"


class RateLimiter:
    def __init__(self, settings: RateLimitSettings, *, is_production: bool) -> None:
        multiplier = 1 if is_production else settings.non_production_multiplier
        self._limits: dict[RateLimitClass, RateLimitItem] = {
            RateLimitClass.AUTH: RateLimitItemPerMinute(
                settings.auth_max_requests * multiplier, settings.auth_window_minutes
            ),
            RateLimitClass.PASSWORD_RESET: RateLimitItemPerMinute(
                settings.reset_max_requests * multiplier, settings.reset_window_minutes
            ),
        }
        self._storage = storage_from_string(settings.storage_uri)
        self._strategy = FixedWindowRateLimiter(self._storage)

    def limit_for(self, limit_class: RateLimitClass) -> RateLimitItem:
        return self._limits[limit_class]

    async def hit(self, limit_class: RateLimitClass, client_ip: str) -> None:
        """Count one request from *client_ip*.

        Raises:
            RateLimitError: the window's budget is already spent.
        """
        item = self._limits[limit_class]
        if not await self._strategy.hit(item, limit_class.value, client_ip or "unknown"):
            log.warning(
                "rate_limit_exceeded",
                limit_class=limit_class.value,
                limit=str(item),
                ip_hash=hash_ip(client_ip),
            )
            raise RateLimitError()
