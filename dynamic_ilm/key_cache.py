"""Process-local key state map: the single-flight primitive for provisioning.

Every transition happens under one lock, so "insert if absent" is an
atomic compare-and-set: exactly one caller moves a key from ``ABSENT`` to
``INITIALIZING``; everyone else sees ``INITIALIZING`` or ``READY``.

The cache is best-effort truth. Entries are dropped whenever the store
says otherwise and rebuilt from the store on the next record.
"""

import logging
import threading
import time
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Callable, Iterable, Optional

logger = logging.getLogger(__name__)


class KeyState(str, Enum):
    ABSENT = "absent"
    INITIALIZING = "initializing"
    READY = "ready"


class AcquireOutcome(str, Enum):
    ALREADY_READY = "already_ready"
    WON_RACE = "won_race"
    LOST_RACE = "lost_race"


@dataclass(frozen=True)
class AcquireResult:
    outcome: AcquireOutcome
    state: KeyState


@dataclass
class CacheEntry:
    state: KeyState = KeyState.INITIALIZING
    last_rollover_check: Optional[date] = None


class KeyCache:
    """Thread-safe key -> :class:`CacheEntry` map plus a resource existence sub-cache."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: dict[str, CacheEntry] = {}
        # "policy:<name>" / "template:<name>" -> known to exist
        self._resources: set[str] = set()

    # ── Key state ───────────────────────────────────────────────

    def state(self, key: str) -> KeyState:
        with self._lock:
            entry = self._entries.get(key)
            return entry.state if entry else KeyState.ABSENT

    def acquire(self, key: str) -> AcquireResult:
        """Try to move *key* from ``ABSENT`` to ``INITIALIZING``."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._entries[key] = CacheEntry()
                return AcquireResult(AcquireOutcome.WON_RACE, KeyState.INITIALIZING)
            if entry.state is KeyState.READY:
                return AcquireResult(AcquireOutcome.ALREADY_READY, KeyState.READY)
            return AcquireResult(AcquireOutcome.LOST_RACE, entry.state)

    def mark_ready(self, key: str, checked_on: Optional[date] = None) -> None:
        """Commit ``INITIALIZING -> READY``. Only the race winner calls this."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or entry.state is not KeyState.INITIALIZING:
                raise RuntimeError(f"Cannot mark {key!r} ready from state {entry and entry.state}")
            entry.state = KeyState.READY
            entry.last_rollover_check = checked_on

    def release(self, key: str) -> None:
        """Drop the entry so the next record starts provisioning from scratch."""
        with self._lock:
            self._entries.pop(key, None)

    def wait_until_ready(
        self,
        key: str,
        interval: float,
        attempts: int,
        sleep: Callable[[float], None] = time.sleep,
    ) -> KeyState:
        """Poll until *key* is ``READY``, the winner gave up, or the bound runs out.

        Returns the last observed state: ``READY`` on success, ``ABSENT``
        when the winning worker failed and released the key, and
        ``INITIALIZING`` when the bound was exhausted.
        """
        state = self.state(key)
        for _ in range(attempts):
            if state is not KeyState.INITIALIZING:
                return state
            sleep(interval)
            state = self.state(key)
        return state

    # ── Daily rollover marker ───────────────────────────────────

    def claim_daily_check(self, key: str, today: date) -> bool:
        """Compare-and-set the per-key "last checked" date to *today*.

        Only ``READY`` keys are checked, and only by the first caller of
        the day.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or entry.state is not KeyState.READY:
                return False
            if entry.last_rollover_check == today:
                return False
            entry.last_rollover_check = today
            return True

    def clear_daily_check(self, key: str) -> None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                entry.last_rollover_check = None

    def last_rollover_check(self, key: str) -> Optional[date]:
        with self._lock:
            entry = self._entries.get(key)
            return entry.last_rollover_check if entry else None

    # ── Resource existence sub-cache ────────────────────────────

    def resource_known(self, cache_key: str) -> bool:
        with self._lock:
            return cache_key in self._resources

    def remember_resource(self, cache_key: str) -> None:
        with self._lock:
            self._resources.add(cache_key)

    def forget_resources(self, cache_keys: Iterable[str]) -> None:
        with self._lock:
            self._resources.difference_update(cache_keys)

    # ── Invalidation ────────────────────────────────────────────

    def invalidate(self, key: str, resource_keys: Iterable[str] = ()) -> bool:
        """Drop *key*'s entry and the given existence sub-cache entries.

        An entry that is still ``INITIALIZING`` belongs to the worker
        provisioning it and is kept; that worker releases it on failure.
        Returns whether the entry was dropped.
        """
        with self._lock:
            self._resources.difference_update(resource_keys)
            entry = self._entries.get(key)
            if entry is None:
                return False
            if entry.state is KeyState.INITIALIZING:
                logger.debug("Keeping in-flight entry for %s", key)
                return False
            del self._entries[key]
            return True

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._entries)
