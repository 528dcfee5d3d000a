"""
Sliding-window rate limiting per (bucket, client identity).

Counting is delegated to the ``limits`` moving-window strategy: every hit is
recorded with its timestamp and a call is refused once ``limit`` hits fall
inside the trailing window. The storage backend is picked by URI, so
``memory://`` (one process) can be swapped for ``redis://...`` without
touching call sites. Memory storage expires idle keys on its own timer.
"""
import logging
import math
import time
from dataclasses import dataclass
from functools import wraps
from typing import Dict, Mapping, Optional, Tuple, Union

from flask import current_app, request
from limits import RateLimitItem, RateLimitItemPerSecond, parse
from limits.storage import storage_from_string
from limits.strategies import MovingWindowRateLimiter

from ..errors import RateLimitExceeded

logger = logging.getLogger(__name__)

PolicySpec = Union[str, Tuple[int, int]]

DEFAULT_POLICIES: Dict[str, PolicySpec] = {
    "auth": (5, 60),
    "verify": (10, 60),
    "register": (3, 60),
    "vote": (10, 60),
    "api": (60, 60),
}


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining: int
    retry_after_seconds: int


def _to_item(spec: PolicySpec) -> RateLimitItem:
    if isinstance(spec, RateLimitItem):
        return spec
    if isinstance(spec, str):
        return parse(spec)
    limit, window_seconds = spec
    if limit < 1 or window_seconds < 1:
        raise ValueError(f"invalid rate limit policy: {spec!r}")
    return RateLimitItemPerSecond(limit, window_seconds)


class RateLimiter:
    """
    ``allow(bucket, identity)`` records the call and says whether it may
    proceed. Buckets are action classes ("auth", "vote", ...) with their own
    limit and window.
    """

    def __init__(self, policies: Optional[Mapping[str, PolicySpec]] = None, storage_uri: str = "memory://"):
        self.configure(policies or DEFAULT_POLICIES, storage_uri)

    def init_app(self, app) -> None:
        policies = dict(DEFAULT_POLICIES)
        policies.update(app.config.get("RATE_LIMITS") or {})
        self.configure(policies, app.config.get("RATE_LIMIT_STORAGE_URI", "memory://"))
        app.extensions["rate_limiter"] = self

    def configure(self, policies: Mapping[str, PolicySpec], storage_uri: str = "memory://") -> None:
        self._policies = {name: _to_item(spec) for name, spec in policies.items()}
        self._storage = storage_from_string(storage_uri)
        self._strategy = MovingWindowRateLimiter(self._storage)

    def policy(self, bucket: str) -> RateLimitItem:
        try:
            return self._policies[bucket]
        except KeyError:
            raise KeyError(f"no rate limit policy for bucket {bucket!r}") from None

    def allow(self, bucket: str, identity: str) -> RateLimitDecision:
        item = self.policy(bucket)

        if self._strategy.hit(item, bucket, identity):
            stats = self._strategy.get_window_stats(item, bucket, identity)
            return RateLimitDecision(allowed=True, remaining=max(0, stats[1]), retry_after_seconds=0)

        # Window resets once the oldest hit still inside it ages out.
        reset_time = self._strategy.get_window_stats(item, bucket, identity)[0]
        retry_after = max(1, math.ceil(reset_time - time.time()))
        return RateLimitDecision(allowed=False, remaining=0, retry_after_seconds=retry_after)

    def clear(self, bucket: str, identity: str) -> None:
        self._strategy.clear(self.policy(bucket), bucket, identity)

    def reset(self) -> None:
        self._storage.reset()


def client_ip() -> str:
    """
    Socket address of the caller. Forwarding headers are ignored here; behind
    a proxy, set PROXY_FIX_X_FOR so ProxyFix rewrites remote_addr from the
    hops that proxy appends.
    """
    return request.remote_addr or "unknown"


def rate_limited(bucket: str):
    """
    Throttle a view per client IP under ``bucket``.
    Raises RateLimitExceeded, rendered as 429 with Retry-After.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            if current_app.config.get("RATELIMIT_ENABLED", True):
                limiter: RateLimiter = current_app.extensions["rate_limiter"]
                ip = client_ip()
                decision = limiter.allow(bucket, ip)
                if not decision.allowed:
                    logger.warning("Rate limit hit bucket=%s ip=%s retry_after=%s",
                                   bucket, ip, decision.retry_after_seconds)
                    raise RateLimitExceeded(decision.retry_after_seconds, bucket=bucket)
            return fn(*args, **kwargs)
        return wrapper
    return decorator
