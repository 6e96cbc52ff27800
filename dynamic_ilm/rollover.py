"""Daily write-unit handoff for ready rollover groups.

Write units carry their creation day in the name
(``<alias>-<yyyy.mm.dd>-<seq>``). Once per key and calendar day the first
caller compares that day with today; on a mismatch it creates a new unit
and moves the alias's write flag onto it in a single ``_aliases`` request,
so the alias never has zero or two write units.
"""

import logging
from datetime import date
from typing import Any, Callable, Optional

from .builders import build_unit_payload
from .exceptions import PartialRolloverFailure, RolloverError
from .key_cache import KeyCache
from .naming import (
    ResourceNames,
    next_sequence,
    parse_unit_name,
    unit_name,
    unit_pattern,
    utc_today,
)

logger = logging.getLogger(__name__)


class RolloverManager:
    def __init__(
        self,
        store: Any,
        cache: KeyCache,
        clock: Callable[[], date] = utc_today,
        on_alias_missing: Optional[Callable[[str], Any]] = None,
    ):
        self.store = store
        self.cache = cache
        self.clock = clock
        self.on_alias_missing = on_alias_missing

    def check(self, key: str, today: Optional[date] = None) -> Optional[str]:
        """Run the daily check for *key* if nobody ran it today.

        Returns the new write unit's name when a rollover happened.

        Raises:
            RolloverError: the check failed; the daily marker is cleared so
                a later record tries again.
        """
        today = today or self.clock()
        if not self.cache.claim_daily_check(key, today):
            return None

        names = ResourceNames.for_key(key)
        try:
            return self._check(names, today)
        except Exception as exc:
            self.cache.clear_daily_check(key)
            logger.error(
                "Daily rollover check failed for %s - will retry on next record: %s",
                key,
                exc,
            )
            if isinstance(exc, RolloverError):
                raise
            raise RolloverError(key, f"Daily rollover check failed for {key!r}: {exc}") from exc

    def _check(self, names: ResourceNames, today: date) -> Optional[str]:
        alias = names.alias_name
        current = self.store.get_write_unit_for_alias(alias)
        if current is None:
            logger.warning("Alias %s has no write index, clearing cache for %s", alias, names.key)
            if self.on_alias_missing is not None:
                self.on_alias_missing(names.key)
            return None

        parsed = parse_unit_name(alias, current)
        if parsed is None:
            logger.info(
                "Write index %s of %s has no embedded date, skipping daily rollover",
                current,
                alias,
            )
            return None

        if parsed[0] == today:
            logger.debug("Write index %s of %s is current", current, alias)
            return None

        return self.force_rollover(names, current, today)

    def force_rollover(self, names: ResourceNames, current: str, today: date) -> str:
        """Create today's next write unit and atomically move the alias onto it."""
        alias = names.alias_name
        existing = self.store.list_units_matching(unit_pattern(alias, today))
        new_unit = unit_name(alias, today, next_sequence(alias, today, existing))

        logger.info("Rolling over %s: %s -> %s", alias, current, new_unit)
        # Unaliased until the swap, or the alias would briefly have two write units.
        self.store.create_unit(new_unit, build_unit_payload(names, attach_alias=False))

        try:
            self.store.atomic_alias_swap(current, new_unit, alias)
        except Exception as exc:
            self._compensate(names, new_unit, exc)

        logger.info("Rolled over %s to write index %s", alias, new_unit)
        return new_unit

    def _compensate(self, names: ResourceNames, new_unit: str, swap_error: Exception) -> None:
        """Undo a half-done rollover. Returns only if the swap took effect after all."""
        alias = names.alias_name
        try:
            if self.store.get_write_unit_for_alias(alias) == new_unit:
                logger.warning(
                    "Alias swap for %s reported an error but %s is the write index: %s",
                    alias,
                    new_unit,
                    swap_error,
                )
                return
        except Exception as exc:
            # The swap may have applied; deleting could leave the alias with no write index.
            logger.error(
                "Could not re-check alias %s after failed swap, keeping %s; "
                "remove it manually if it is not the write index: %s",
                alias,
                new_unit,
                exc,
            )
            raise PartialRolloverFailure(names.key, new_unit, cleaned_up=False) from swap_error

        try:
            self.store.delete_unit(new_unit)
        except Exception as exc:
            logger.error(
                "Failed to delete unlinked index %s after failed rollover of %s; "
                "remove it manually: %s",
                new_unit,
                alias,
                exc,
            )
            raise PartialRolloverFailure(names.key, new_unit, cleaned_up=False) from swap_error

        logger.warning(
            "Deleted unlinked index %s after failed alias swap for %s: %s",
            new_unit,
            alias,
            swap_error,
        )
        raise PartialRolloverFailure(names.key, new_unit, cleaned_up=True) from swap_error
