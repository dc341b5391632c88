"""Match asynchronous registry responses to the threads waiting for them.

A lookup is registered with ``submit`` before the network call is handed to
a worker. The worker calls ``complete_handle`` exactly once; the caller
blocks in ``wait`` until that happens or its timeout expires. A completion
that arrives after the waiter gave up is dropped quietly, even when the key
has been reused by a newer request.
"""

import logging
import threading
import time
from typing import Any, Optional

from pydantic import BaseModel

from consolidator.core.errors import DuplicateKeyError
from consolidator.lookup.models import LookupResponse

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0  # seconds


# ── Pending Request ──────────────────────────────────────────────────


class PendingRequest:
    """Handle for one in-flight lookup: key, payload, latched response."""

    def __init__(self, key: str, payload: Any):
        self.key = key
        self.payload = payload
        self.created_at = time.monotonic()
        self.response: Optional[LookupResponse] = None
        self._done = threading.Event()

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def __repr__(self) -> str:
        return f"PendingRequest(key={self.key!r}, done={self.done})"


class TimedOut(BaseModel):
    """Returned by ``wait`` when no response arrived within the timeout."""

    key: str
    timeout: float


# ── Correlator ───────────────────────────────────────────────────────


class RequestCorrelator:
    """Keyed registry of pending lookups with bounded waiting."""

    def __init__(self, default_timeout: float = DEFAULT_TIMEOUT):
        self.default_timeout = default_timeout
        self._pending: dict[str, PendingRequest] = {}
        self._lock = threading.Lock()

    def submit(self, key: str, payload: Any = None) -> PendingRequest:
        """Register a new pending request under ``key``."""
        with self._lock:
            existing = self._pending.get(key)
            if existing is not None and not existing.done:
                raise DuplicateKeyError(key)
            handle = PendingRequest(key, payload)
            self._pending[key] = handle
        return handle

    def complete(self, key: str, response: LookupResponse) -> bool:
        """Latch ``response`` for the request currently registered under ``key``.

        Returns False when the request is unknown (already timed out) or was
        completed before; neither case is an error.
        """
        with self._lock:
            handle = self._pending.get(key)
            if handle is None:
                logger.debug("Dropping late completion for %s", key)
                return False
            return self._latch(handle, response)

    def complete_handle(self, handle: PendingRequest, response: LookupResponse) -> bool:
        """Latch ``response`` for exactly this request.

        A handle that is no longer registered, because its waiter gave up and
        the key may since have been reused, is dropped like a late completion.
        """
        with self._lock:
            if self._pending.get(handle.key) is not handle:
                logger.debug("Dropping late completion for %s", handle.key)
                return False
            return self._latch(handle, response)

    @staticmethod
    def _latch(handle: PendingRequest, response: LookupResponse) -> bool:
        # caller holds self._lock
        if handle.done:
            return False
        handle.response = response
        handle._done.set()
        return True

    def wait(
        self, handle: PendingRequest, timeout: float | None = None
    ) -> LookupResponse | TimedOut:
        """Block until ``handle`` is completed or ``timeout`` seconds pass.

        The request is discarded either way, so its key can be reused.
        """
        if timeout is None:
            timeout = self.default_timeout

        if timeout > 0:
            handle._done.wait(timeout)

        with self._lock:
            if self._pending.get(handle.key) is handle:
                del self._pending[handle.key]
            completed = handle.done

        if completed:
            return handle.response

        logger.warning(
            "No response for %s within %.1fs, giving up", handle.key, timeout
        )
        return TimedOut(key=handle.key, timeout=timeout)

    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)
