"""
Per-identifier session tracking used to decide greeting verbosity.

An identifier (guest phone or staff user id) is in a new session when it
has never been touched, or when its last activity is older than the
configured timeout. State lives only in process memory: a restart makes
every identifier "new", which is the safe default.

Usage:
    store = SessionStore()
    if store.is_new_session(phone):
        ...  # full greeting
    store.touch(phone)
"""

import logging
import threading
import time
from collections import OrderedDict
from typing import Callable, Optional

from lendchat.config import get_session_timeout_seconds, settings
from lendchat.utils import mask_phone

logger = logging.getLogger(__name__)


class SessionStore:
    """Thread-safe identifier -> last-activity map with bounded LRU eviction."""

    def __init__(
        self,
        max_entries: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
        timeout_provider: Callable[[], float] = get_session_timeout_seconds,
    ) -> None:
        if max_entries is None:
            max_entries = settings.session.max_entries
        self._max_entries = max_entries
        self._clock = clock
        self._timeout_provider = timeout_provider
        self._last_activity: OrderedDict[str, float] = OrderedDict()
        self._lock = threading.Lock()

    def is_new_session(self, identifier: str) -> bool:
        """True when the identifier is absent or its session has expired."""
        with self._lock:
            last = self._last_activity.get(identifier)
        if last is None:
            logger.debug("Session not found for %s, treating as new", mask_phone(identifier))
            return True

        timeout = self._timeout_provider()
        elapsed = self._clock() - last
        expired = elapsed > timeout
        logger.debug(
            "Session check for %s: elapsed=%.1fs timeout=%.1fs new=%s",
            mask_phone(identifier), elapsed, timeout, expired,
        )
        return expired

    def touch(self, identifier: str) -> None:
        """Mark the identifier as active now, regardless of its prior state."""
        now = self._clock()
        with self._lock:
            self._last_activity[identifier] = now
            self._last_activity.move_to_end(identifier)
            evicted = self._evict_overflow()
        if evicted:
            logger.info("Session capacity reached, evicted %d oldest entries", evicted)

    def sweep_expired(self) -> int:
        """Drop every expired entry. Returns the number removed."""
        cutoff = self._clock() - self._timeout_provider()
        with self._lock:
            stale = [key for key, last in self._last_activity.items() if last < cutoff]
            for key in stale:
                del self._last_activity[key]
        if stale:
            logger.debug("Swept %d expired sessions", len(stale))
        return len(stale)

    def _evict_overflow(self) -> int:
        evicted = 0
        while len(self._last_activity) > self._max_entries:
            self._last_activity.popitem(last=False)
            evicted += 1
        return evicted

    def __len__(self) -> int:
        with self._lock:
            return len(self._last_activity)

    def __contains__(self, identifier: object) -> bool:
        with self._lock:
            return identifier in self._last_activity
