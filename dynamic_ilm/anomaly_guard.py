"""Per-key attempt counter that breaks provisioning failure loops."""

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class AnomalyGuard:
    """Counts provisioning runs of a key that have not yet made it ready.

    Above ``warn_threshold`` attempts a warning is logged. Above
    ``reset_threshold`` the ``on_reset`` callback wipes the key's cached
    state and the counter starts over. A successful verification resets
    the counter through :meth:`reset`.
    """

    def __init__(
        self,
        warn_threshold: int = 5,
        reset_threshold: int = 10,
        on_reset: Optional[Callable[[str], None]] = None,
    ):
        self.warn_threshold = warn_threshold
        self.reset_threshold = reset_threshold
        self.on_reset = on_reset
        self._lock = threading.Lock()
        self._counts: dict[str, int] = {}

    def record_attempt(self, key: str) -> int:
        """Count one provisioning attempt and return the counter afterwards."""
        with self._lock:
            count = self._counts.get(key, 0) + 1
            if count > self.reset_threshold:
                self._counts.pop(key, None)
            else:
                self._counts[key] = count

        if count > self.reset_threshold:
            logger.warning(
                "Key %s started provisioning %d times, forcing a full cache reset",
                key,
                count,
            )
            if self.on_reset is not None:
                self.on_reset(key)
            return 0

        if count > self.warn_threshold:
            logger.warning("Key %s has %d provisioning attempts without success", key, count)
        return count

    def reset(self, key: str) -> None:
        with self._lock:
            self._counts.pop(key, None)

    def attempts(self, key: str) -> int:
        with self._lock:
            return self._counts.get(key, 0)
