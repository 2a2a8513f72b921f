"""
Client-side subscription cache.

Holds the signed-in user's subscription record for UI code, fetched from
GET /api/subscription. Runs on a single asyncio event loop: at most one fetch
is in flight, refreshes inside the cooldown window are dropped, and failures
degrade to the last-known value instead of raising.
"""
import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import httpx
from pydantic import ValidationError

from app.core.entitlement import is_subscribed
from app.schemas.subscription import SubscriptionOut

logger = logging.getLogger(__name__)

Notifier = Callable[[str], None]
Listener = Callable[[Optional[SubscriptionOut]], None]

SUBSCRIPTION_ENDPOINT = "/api/subscription"
DEFAULT_COOLDOWN_SECONDS = 30.0
DEFAULT_TIMEOUT_SECONDS = 5.0
LOAD_FAILED_MESSAGE = "Failed to load subscription data"

_UNSET = object()


def _parse_record(data: Any) -> Optional[SubscriptionOut]:
    if data is None:
        return None
    if isinstance(data, SubscriptionOut):
        return data
    return SubscriptionOut.model_validate(data)


class SubscriptionCache:
    """
    In-memory source of truth for "is this user subscribed".

    Args:
        client: HTTP client pointed at the API (base_url and auth already set)
        notify: Non-blocking user notification hook (e.g. a toast)
        endpoint: Subscription read endpoint path
        cooldown: Seconds during which non-forced refreshes are no-ops
        timeout: Per-fetch timeout in seconds; a timeout leaves state untouched
        clock: Monotonic clock used for the cooldown
        now: Wall clock used by the entitlement date fallback
        initial: Server-provided record (or None); treated as fresh
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        notify: Optional[Notifier] = None,
        endpoint: str = SUBSCRIPTION_ENDPOINT,
        cooldown: float = DEFAULT_COOLDOWN_SECONDS,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        initial: Any = _UNSET,
        owns_client: bool = False,
    ):
        self._client = client
        self._notify = notify
        self._endpoint = endpoint
        self._cooldown = cooldown
        self._timeout = timeout
        self._clock = clock
        self._now = now
        self._owns_client = owns_client

        self._subscription: Optional[SubscriptionOut] = None
        self._is_loading = False
        self._in_flight = False
        self._last_fetch_started: Optional[float] = None
        # Bumped on reset/close; fetches from an older generation are discarded
        self._generation = 0
        self._closed = False
        self._listeners: List[Listener] = []

        if initial is not _UNSET:
            self.seed(initial)

    @classmethod
    def for_base_url(
        cls,
        base_url: str,
        access_token: Optional[str] = None,
        **kwargs,
    ) -> "SubscriptionCache":
        """Build a cache that owns its own HTTP client."""
        headers: Dict[str, str] = {}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        client = httpx.AsyncClient(base_url=base_url, headers=headers)
        return cls(client, owns_client=True, **kwargs)

    @property
    def subscription(self) -> Optional[SubscriptionOut]:
        return self._subscription

    @property
    def is_loading(self) -> bool:
        return self._is_loading

    @property
    def is_subscribed(self) -> bool:
        return is_subscribed(self._subscription, self._now())

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener for record changes. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self):
        for listener in list(self._listeners):
            listener(self._subscription)

    def seed(self, record: Any):
        """Install a server-fetched record and treat it as fresh."""
        self._subscription = _parse_record(record)
        self._last_fetch_started = self._clock()
        self._publish()

    def _in_cooldown(self) -> bool:
        if self._last_fetch_started is None:
            return False
        return self._clock() - self._last_fetch_started < self._cooldown

    async def refresh(self, force: bool = False) -> bool:
        """
        Fetch the record unless a fetch is in flight or the cache is fresh.

        Never raises for HTTP or network failures.

        Returns:
            True if a network request was issued
        """
        if self._closed:
            return False
        if self._in_flight:
            logger.debug("Subscription fetch already in flight, dropping refresh")
            return False
        if not force and self._in_cooldown():
            logger.debug("Subscription refresh within cooldown, skipping")
            return False

        generation = self._generation
        self._in_flight = True
        self._is_loading = True
        self._last_fetch_started = self._clock()
        try:
            await self._fetch(generation)
        finally:
            if generation == self._generation:
                self._in_flight = False
                self._is_loading = False
        return True

    async def _fetch(self, generation: int):
        try:
            response = await self._client.get(self._endpoint, timeout=self._timeout)
        except httpx.TimeoutException:
            logger.warning("Subscription fetch timed out, keeping cached value")
            return
        except httpx.HTTPError as e:
            logger.error(f"Error fetching subscription: {e}")
            self._fail(generation)
            return

        if generation != self._generation:
            logger.debug("Discarding subscription fetch from a superseded session")
            return

        if response.status_code == 401:
            # Signed out is a normal state, not an error
            self._apply(None)
            return

        if not response.is_success:
            logger.error(f"Error fetching subscription: status={response.status_code}")
            self._fail(generation)
            return

        try:
            record = _parse_record(response.json())
        except (ValueError, ValidationError) as e:
            logger.error(f"Malformed subscription payload: {e}")
            self._fail(generation)
            return

        self._apply(record)

    def _apply(self, record: Optional[SubscriptionOut]):
        self._subscription = record
        self._publish()

    def _fail(self, generation: int):
        if generation != self._generation:
            return
        if self._notify:
            self._notify(LOAD_FAILED_MESSAGE)

    def reset(self):
        """Sign-out: forget the record and ignore any fetch already running."""
        self._generation += 1
        self._in_flight = False
        self._is_loading = False
        self._last_fetch_started = None
        self._apply(None)

    async def aclose(self):
        """Unmount: stop all updates and release the HTTP client if owned."""
        self._generation += 1
        self._closed = True
        self._in_flight = False
        self._is_loading = False
        self._listeners.clear()
        if self._owns_client:
            await self._client.aclose()
