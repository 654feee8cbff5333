import asyncio, logging, time, uuid, weakref

from redis import asyncio as aioredis

from .core import Settings, LockTimeoutError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
#  Per-trip seat locks
# ---------------------------------------------------------------------------


class RedisTripLock:
    """Async context-manager that obtains a short-lived Redis lock per trip.

    Usage::
        async with RedisTripLock(redis, trip_id):
            # safe to rebuild the seat map, reserve & INSERT booking

    – Locks automatically expire after *ttl* seconds so that a crashed
      worker can't hold a trip's seats indefinitely.
    """

    def __init__(self, redis, trip_id: int, ttl: int = 30, retry_delay: float = 0.1, timeout: float = 5.0):
        self.trip_id = trip_id
        self.key = f"lock:trip:{trip_id}"
        self.ttl = ttl
        self._redis = redis
        self._retry_delay = retry_delay
        self._timeout = timeout
        self._token = uuid.uuid4().hex  # unique owner id

    async def __aenter__(self):
        start = time.monotonic()
        # Redis SET … NX EX implements a simple mutex
        while True:
            ok = await self._redis.set(self.key, self._token, ex=self.ttl, nx=True)
            if ok:
                return self
            if time.monotonic() - start > self._timeout:
                logger.warning("Timed out waiting for %s", self.key)
                raise LockTimeoutError(self.trip_id)
            await asyncio.sleep(self._retry_delay)

    async def __aexit__(self, exc_type, exc, tb):
        # Delete the lock *only* if we still own it
        if (await self._redis.get(self.key)) == self._token:
            await self._redis.delete(self.key)


class LocalTripLock:
    """In-process variant backed by one ``asyncio.Lock`` per trip"""

    def __init__(self, lock: asyncio.Lock, trip_id: int, timeout: float = 5.0):
        self.trip_id = trip_id
        self._lock = lock
        self._timeout = timeout

    async def __aenter__(self):
        try:
            await asyncio.wait_for(self._lock.acquire(), timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.warning("Timed out waiting for local lock on trip %s", self.trip_id)
            raise LockTimeoutError(self.trip_id)
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self._lock.release()


class TripLockManager:
    """Hands out per-trip locks. One instance per application.

    Different trips never contend; there is no global lock and a unit of
    work only ever holds the lock of the single trip it touches.
    """

    def __init__(
        self,
        backend: str = "local",
        *,
        redis=None,
        ttl: int = 30,
        timeout: float = 5.0,
        retry_delay: float = 0.1,
    ):
        if backend not in ("redis", "local"):
            raise ValueError(f"Unknown lock backend: {backend}")
        if backend == "redis" and redis is None:
            raise ValueError("Redis backend requires a client")
        self.backend = backend
        self._redis = redis
        self._ttl = ttl
        self._timeout = timeout
        self._retry_delay = retry_delay
        # Entries vanish once no LocalTripLock holds or waits on them
        self._local: "weakref.WeakValueDictionary[int, asyncio.Lock]" = weakref.WeakValueDictionary()

    @classmethod
    def from_settings(cls, settings: Settings) -> "TripLockManager":
        redis = None
        if settings.LOCK_BACKEND == "redis":
            redis = aioredis.from_url(settings.REDIS_DSN, encoding="utf-8", decode_responses=True)
        return cls(
            settings.LOCK_BACKEND,
            redis=redis,
            ttl=settings.LOCK_TTL,
            timeout=settings.LOCK_TIMEOUT,
            retry_delay=settings.LOCK_RETRY_DELAY,
        )

    def for_trip(self, trip_id: int):
        """Return an async context manager guarding *trip_id*"""
        if self.backend == "redis":
            return RedisTripLock(
                self._redis, trip_id,
                ttl=self._ttl, retry_delay=self._retry_delay, timeout=self._timeout,
            )
        lock = self._local.get(trip_id)
        if lock is None:
            lock = self._local[trip_id] = asyncio.Lock()
        return LocalTripLock(lock, trip_id, timeout=self._timeout)

    @property
    def redis(self):
        return self._redis

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
