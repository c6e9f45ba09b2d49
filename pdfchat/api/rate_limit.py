# pdfchat/api/rate_limit.py
import threading
import time
from collections import deque
from typing import Callable, Deque, Dict

from pdfchat.errors import RateLimited


class SlidingWindowRateLimiter:
    """
    At most `limit` hits per `window_seconds` for each client identity.

    Every attempt counts, including those that later fail validation.
    """

    def __init__(
        self,
        limit: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):

        if limit <= 0 or window_seconds <= 0:
            raise ValueError("limit and window_seconds must be positive")

        self._limit = limit
        self._window = window_seconds
        self._clock = clock
        self._hits: Dict[str, Deque[float]] = {}
        self._lock = threading.Lock()

    def hit(self, identity: str) -> None:

        now = self._clock()

        with self._lock:

            self._prune(now)

            hits = self._hits.setdefault(identity, deque())

            if len(hits) >= self._limit:
                retry_after = max(hits[0] + self._window - now, 0.0)
                raise RateLimited(
                    f"Upload limit of {self._limit} per {self._window:g}s reached",
                    retry_after=retry_after,
                )

            hits.append(now)

    def _prune(self, now: float) -> None:

        cutoff = now - self._window

        for identity in list(self._hits):

            hits = self._hits[identity]

            while hits and hits[0] <= cutoff:
                hits.popleft()

            if not hits:
                del self._hits[identity]

    def remaining(self, identity: str) -> int:

        with self._lock:
            self._prune(self._clock())
            return self._limit - len(self._hits.get(identity, ()))
