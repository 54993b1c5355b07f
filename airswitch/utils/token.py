import logging
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenGrant:
    """A bearer credential and its lifespan in seconds."""

    token: str
    expires_in: float


class TokenManager:
    """
    Caches a bearer token for any upstream API and refreshes it before expiry.

    The cached token is considered stale once `lifespan * (1 - buffer_fraction)`
    has elapsed, so with the default buffer of 0.2 a refresh happens at 80%
    of the token's life. Refreshes are single-flight: while one thread is
    fetching, every other caller waits on the same Future instead of issuing
    its own fetch. A failed fetch caches nothing; all waiters receive the
    error and the next call starts a fresh attempt.
    """

    def __init__(
        self,
        fetch_token: Callable[[], TokenGrant],
        buffer_fraction: float = 0.2,
        clock: Callable[[], float] = time.time,
    ):
        if not 0 <= buffer_fraction < 1:
            raise ValueError("buffer_fraction must be in [0, 1).")
        self._fetch_token = fetch_token
        self._buffer_fraction = buffer_fraction
        self._clock = clock
        self._lock = threading.Lock()
        self._access_token: Optional[str] = None
        self._expires_at = 0.0
        self._inflight: Optional[Future] = None

    def get_token(self) -> str:
        """Return a valid token, refreshing first if it is missing or stale."""
        with self._lock:
            if self._access_token is not None and self._clock() < self._expires_at:
                return self._access_token
        return self.refresh_token()

    def refresh_token(self) -> str:
        """Force a refresh, joining the in-flight one if there is any."""
        with self._lock:
            future = self._inflight
            owner = future is None
            if owner:
                future = Future()
                self._inflight = future

        if not owner:
            return future.result()

        try:
            grant = self._fetch_token()
            with self._lock:
                self._access_token = grant.token
                self._expires_at = self._clock() + grant.expires_in * (
                    1 - self._buffer_fraction
                )
            future.set_result(grant.token)
            logger.debug("Token refreshed: expires_in=%s", grant.expires_in)
            return grant.token
        except Exception as exc:
            logger.error("Token refresh failed: %s", exc)
            future.set_exception(exc)
            raise
        finally:
            with self._lock:
                self._inflight = None

    def expiry_status(self) -> dict:
        with self._lock:
            return {
                "has_token": self._access_token is not None,
                "expires_at": self._expires_at,
                "is_expired": self._access_token is None
                or self._clock() >= self._expires_at,
            }
