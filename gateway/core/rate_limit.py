"""Rate limiting.

Two layers, both on the ``limits`` library that slowapi is built on:

* ``FixedWindowRateLimiter``: per-credential fixed windows, one counter per
  (key_id, request class). Read and write classes have separate ceilings.
  The default ``memory://`` storage is per-process: counts reset on restart
  and are not shared between instances. A shared storage URI
  (``redis://...``) keeps the same interface across instances.
* ``build_preauth_limiter``: slowapi per-client-address throttle that runs
  before any key-store lookup, so credential guessing is bounded too.
"""

import logging
import math
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict

from limits import RateLimitItem, RateLimitItemPerSecond, strategies
from limits.storage import Storage, storage_from_string
from slowapi import Limiter
from slowapi.util import get_remote_address

logger = logging.getLogger(__name__)

WRITE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})

NAMESPACE = "gateway"


class RequestClass(str, Enum):
    READ = "read"
    WRITE = "write"

    @classmethod
    def for_method(cls, method: str) -> "RequestClass":
        return cls.WRITE if method.upper() in WRITE_METHODS else cls.READ


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    retry_after_seconds: int
    limit: int
    remaining: int


class FixedWindowRateLimiter:
    """Fixed-window counter keyed by (identity, request class).

    The window opens on the first hit and a fresh one opens once it has
    elapsed. Rejected hits still count.
    """

    def __init__(
        self,
        read_limit: int = 120,
        write_limit: int = 60,
        window_seconds: float = 60.0,
        storage_uri: str = "memory://",
        clock: Callable[[], float] = time.time,
    ):
        window = max(1, int(window_seconds))
        self.items: Dict[RequestClass, RateLimitItem] = {
            RequestClass.READ: RateLimitItemPerSecond(read_limit, window, namespace=NAMESPACE),
            RequestClass.WRITE: RateLimitItemPerSecond(write_limit, window, namespace=NAMESPACE),
        }
        self.storage: Storage = storage_from_string(storage_uri)
        self._strategy = strategies.FixedWindowRateLimiter(self.storage)
        # Must read the same clock as the storage backend
        self._clock = clock

    def check(self, identity: str, request_class: RequestClass) -> RateLimitDecision:
        """
        Count one request against the caller's current window.

        Args:
            identity: Caller identity (the credential's key_id)
            request_class: READ or WRITE

        Returns:
            RateLimitDecision; ``retry_after_seconds`` is positive when rejected
        """
        item = self.items[request_class]
        allowed = self._strategy.hit(item, identity, request_class.value)
        stats = self._strategy.get_window_stats(item, identity, request_class.value)
        if not allowed:
            retry_after = max(1, math.ceil(stats.reset_time - self._clock()))
            return RateLimitDecision(False, retry_after, item.amount, 0)
        return RateLimitDecision(True, 0, item.amount, stats.remaining)

    def remaining(self, identity: str, request_class: RequestClass) -> int:
        """Calls left in the current window, without counting one."""
        item = self.items[request_class]
        return self._strategy.get_window_stats(item, identity, request_class.value).remaining

    def reset(self) -> None:
        self.storage.reset()


def build_preauth_limiter(limit: str, enabled: bool = True, storage_uri: str = "memory://") -> Limiter:
    """Per-address throttle applied to every route by SlowAPIMiddleware."""
    return Limiter(
        key_func=get_remote_address,
        default_limits=[limit],
        enabled=enabled,
        storage_uri=storage_uri,
    )
