"""Per-client fixed window rate limiting."""
import asyncio
import contextlib
import math
import time
import zlib
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Optional, Protocol
from capture.core.logging import logger


@dataclass(frozen=True)
class RateLimitWindow:
    """Requests counted for one client since ``window_start``."""
    count: int
    window_start: float  # seconds on the limiter's clock


@dataclass(frozen=True)
class AdmissionDecision:
    allowed: bool
    retry_after_seconds: Optional[int] = None


class WindowStore(Protocol):
    """Storage the limiter keeps its windows in."""

    def get(self, client_id: str) -> Optional[RateLimitWindow]: ...

    def set(self, client_id: str, window: RateLimitWindow) -> None: ...

    def delete(self, client_id: str) -> None: ...

    def keys(self) -> Iterable[str]: ...


class InMemoryWindowStore:
    """
    Process-local window storage.

    Any other :class:`WindowStore` implementation can be handed to
    :class:`RateLimiter` instead.
    """

    def __init__(self):
        self._windows: Dict[str, RateLimitWindow] = {}

    def get(self, client_id: str) -> Optional[RateLimitWindow]:
        return self._windows.get(client_id)

    def set(self, client_id: str, window: RateLimitWindow) -> None:
        self._windows[client_id] = window

    def delete(self, client_id: str) -> None:
        self._windows.pop(client_id, None)

    def keys(self) -> Iterable[str]:
        return list(self._windows.keys())

    def __len__(self) -> int:
        return len(self._windows)


class RateLimiter:
    """Admits at most ``limit`` requests per client per window."""

    def __init__(
        self,
        store: Optional[WindowStore] = None,
        limit: int = 100,
        window_seconds: float = 60.0,
        sweep_interval_seconds: float = 300.0,
        cleanup_every: int = 100,
        lock_stripes: int = 64,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize the limiter.

        Args:
            store: Window storage (a fresh in-memory store if omitted)
            limit: Requests allowed per client per window
            window_seconds: Window length
            sweep_interval_seconds: Period of the background eviction sweep
            cleanup_every: Run an extra sweep after this many admission checks
            lock_stripes: Number of locks client identifiers are spread over
            clock: Monotonic time source in seconds
        """
        self.store = store if store is not None else InMemoryWindowStore()
        self.limit = limit
        self.window_seconds = window_seconds
        self._sweep_interval = sweep_interval_seconds
        self._cleanup_every = cleanup_every
        self._clock = clock
        # Read-modify-write for a client happens under its stripe's lock;
        # clients on different stripes never contend.
        self._locks = [asyncio.Lock() for _ in range(max(1, lock_stripes))]
        self._checks_since_sweep = 0
        self._sweep_task: Optional[asyncio.Task] = None

    def _lock_for(self, client_id: str) -> asyncio.Lock:
        return self._locks[zlib.crc32(client_id.encode("utf-8")) % len(self._locks)]

    def _expired(self, window: RateLimitWindow, now: float) -> bool:
        return now - window.window_start >= self.window_seconds

    async def admit(self, client_id: Optional[str]) -> AdmissionDecision:
        """
        Decide whether a request from ``client_id`` may proceed.

        Requests without a client identifier are not counted; authentication
        rejects them later. Errors inside the check let the request through.
        """
        if not client_id:
            return AdmissionDecision(allowed=True)

        try:
            return await self._check(client_id)
        except Exception as e:
            logger.error(f"Rate limiting error for client {client_id}, allowing request: {e}", exc_info=True)
            return AdmissionDecision(allowed=True)

    async def _check(self, client_id: str) -> AdmissionDecision:
        self._checks_since_sweep += 1
        if self._checks_since_sweep >= self._cleanup_every:
            self._checks_since_sweep = 0
            await self.sweep()

        async with self._lock_for(client_id):
            now = self._clock()
            window = self.store.get(client_id)

            if window is None or self._expired(window, now):
                self.store.set(client_id, RateLimitWindow(count=1, window_start=now))
                return AdmissionDecision(allowed=True)

            window = RateLimitWindow(count=window.count + 1, window_start=window.window_start)
            self.store.set(client_id, window)

            if window.count > self.limit:
                age = now - window.window_start
                retry_after = max(1, math.ceil(self.window_seconds - age))
                logger.info(f"Rate limit exceeded for client {client_id} ({window.count}/{self.limit})")
                return AdmissionDecision(allowed=False, retry_after_seconds=retry_after)

            return AdmissionDecision(allowed=True)

    async def sweep(self) -> int:
        """
        Evict expired windows.

        Returns:
            Number of windows removed
        """
        removed = 0
        for client_id in list(self.store.keys()):
            async with self._lock_for(client_id):
                window = self.store.get(client_id)
                if window is not None and self._expired(window, self._clock()):
                    self.store.delete(client_id)
                    removed += 1
        if removed:
            logger.debug(f"Evicted {removed} expired rate limit windows")
        return removed

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval)
            try:
                await self.sweep()
            except Exception as e:
                logger.error(f"Rate limit sweep failed: {e}", exc_info=True)

    def start(self) -> None:
        """Start the background eviction sweep (must be called inside a running loop)."""
        if self._sweep_task is None or self._sweep_task.done():
            self._sweep_task = asyncio.create_task(self._sweep_loop())
            logger.info(f"Rate limit sweep started (every {self._sweep_interval:g}s)")

    async def stop(self) -> None:
        """Cancel the background eviction sweep."""
        task, self._sweep_task = self._sweep_task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("Rate limit sweep stopped")
