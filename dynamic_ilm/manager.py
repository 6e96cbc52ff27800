"""Record-boundary entry point wiring the cache, coordinator and rollover manager.

Construct one :class:`DynamicIlmManager` at startup and share it between
worker threads::

    manager = DynamicIlmManager()
    if manager.ensure(key):
        ...  # index the record into alias ``key``
"""

import logging
import time
from datetime import date
from typing import Any, Callable, Iterable, Optional

from .client import create_client
from .connection_settings import ConnectionConfig
from .error_classifier import is_index_missing
from .exceptions import InvalidKey, RolloverError
from .key_cache import KeyCache, KeyState
from .naming import ResourceNames, utc_today, validate_key
from .provisioning import ProvisioningCoordinator
from .rollover import RolloverManager
from .settings import IlmSettings, load_settings
from .store import ElasticsearchStore

logger = logging.getLogger(__name__)


class DynamicIlmManager:
    """Keeps one rollover group per key provisioned and rolled over daily."""

    def __init__(
        self,
        client: Any = None,
        store: Any = None,
        settings: Optional[IlmSettings] = None,
        connection: Optional[ConnectionConfig] = None,
        clock: Callable[[], date] = utc_today,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings or load_settings()
        if store is None:
            client = client or create_client(config=connection)
            store = ElasticsearchStore(client, major_version=self.settings.es_major_version)
        self.store = store
        self.cache = KeyCache()
        self.coordinator = ProvisioningCoordinator(
            store, self.cache, self.settings, clock=clock, sleep=sleep
        )
        self.guard = self.coordinator.guard
        self.rollover = RolloverManager(
            store, self.cache, clock=clock, on_alias_missing=self.coordinator.invalidate
        )

    def ensure(self, key: str) -> bool:
        """Make the rollover group for *key* writable.

        Returns ``False`` when the key is invalid and the record should be
        skipped. A failed daily rollover is logged and the record proceeds
        to the current write index.

        Raises:
            ProvisioningError: resources could not be provisioned for this
                record; a later record (or redelivery) retries.
        """
        try:
            validate_key(key)
        except InvalidKey as exc:
            logger.warning("Skipping record: %s", exc)
            return False

        self.coordinator.ensure_ready(key)

        try:
            self.rollover.check(key)
        except RolloverError as exc:
            logger.error("Rollover of %s failed, still writing to the current index: %s", key, exc)

        if self.cache.state(key) is not KeyState.READY:
            # The check found no write index and dropped the key; rebuild it
            # before the record is written, or the store auto-creates a plain index.
            logger.warning("Re-provisioning %s before writing the record", key)
            self.coordinator.ensure_ready(key)
        return True

    def on_index_error(self, key: str, error: Any) -> bool:
        """React to a write-path error for *key*; True if the cache was invalidated.

        Only "target missing" errors matter here. Everything else belongs
        to the write path's own retry policy.
        """
        if not is_index_missing(error):
            return False
        logger.warning("Index not found for %s, clearing cache for next retry: %s", key, error)
        self.coordinator.invalidate(key)
        return True

    def handle_bulk_errors(self, errors: Iterable[dict[str, Any]]) -> int:
        """Route item errors from ``helpers.bulk(..., raise_on_error=False)``.

        Each item looks like ``{"index": {"_index": ..., "status": 404,
        "error": {"type": ..., "reason": ...}}}``. Returns how many items
        invalidated a key.
        """
        invalidated = 0
        for item in errors:
            for detail in item.values():
                if not isinstance(detail, dict):
                    continue
                target = detail.get("_index")
                if target and self.on_index_error(target, detail.get("error")):
                    invalidated += 1
        return invalidated

    def status(self, key: str) -> dict:
        """Snapshot of what the process knows about *key* (for debugging)."""
        names = ResourceNames.for_key(key)
        last_check = self.cache.last_rollover_check(key)
        return {
            "key": key,
            "state": self.cache.state(key).value,
            "last_rollover_check": last_check.isoformat() if last_check else None,
            "attempts": self.guard.attempts(key),
            "policy": names.policy_name,
            "template": names.template_name,
            "alias": names.alias_name,
        }
