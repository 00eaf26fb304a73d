from __future__ import annotations
import time
from typing import Callable, Dict, Iterable, Tuple
from fastapi import Request

from studiodesk.core.errors import RateLimited

# Fixed-window limiter kept in process memory (per-IP, per-route). Not shared across workers.


def get_client_ip(request: Request, trusted_proxies: Iterable[str] = ()) -> str:
    peer = request.client.host if request.client else "unknown"
    # Forwarding headers are only honoured when the peer is a proxy we run
    if peer in trusted_proxies:
        xff = request.headers.get("x-forwarded-for")
        if xff:
            # Take the first IP
            return xff.split(",")[0].strip() or peer
    return peer


class RateLimiter:
    def __init__(
        self,
        limit: int = 0,
        window_seconds: int = 60,
        trusted_proxies: Iterable[str] = (),
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.limit = limit
        self.window_seconds = window_seconds
        self.trusted_proxies = frozenset(trusted_proxies)
        self._clock = clock
        # key: (ip, route) -> (window_start_epoch, count)
        self._buckets: Dict[Tuple[str, str], Tuple[float, int]] = {}

    def _prune(self, now: float) -> None:
        expired = [k for k, (start, _) in self._buckets.items() if now - start >= self.window_seconds]
        for k in expired:
            del self._buckets[k]

    def enforce(self, request: Request) -> None:
        if self.limit <= 0:
            return
        key = (get_client_ip(request, self.trusted_proxies), request.url.path)

        now = self._clock()
        # Drops every elapsed window, including this key's, which resets it
        self._prune(now)
        window_start, count = self._buckets.get(key, (now, 0))

        count += 1
        self._buckets[key] = (window_start, count)

        if count > self.limit:
            retry_after = max(1, int(self.window_seconds - (now - window_start)))
            raise RateLimited("Rate limit exceeded", headers={"Retry-After": str(retry_after)})
