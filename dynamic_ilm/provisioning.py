"""Provision the policy, template and first write unit of a rollover group.

One coordinator instance serves the whole process. For each key it runs

    NOT_STARTED -> POLICY_PENDING -> TEMPLATE_PENDING -> UNIT_PENDING
                -> VERIFYING -> READY

under the single-flight mandate of :class:`~dynamic_ilm.key_cache.KeyCache`.
Any failure moves to FAILED, which releases the key back to ABSENT so
the next record retries from scratch.
"""

import logging
import time
from datetime import date
from enum import Enum
from typing import Any, Callable, Optional

from .anomaly_guard import AnomalyGuard
from .builders import build_index_template, build_lifecycle_policy, build_unit_payload
from .error_classifier import RecoveryAction, classify
from .exceptions import (
    DynamicIlmError,
    ProvisioningError,
    ProvisioningTimeout,
    RateLimited,
    ResourceConflict,
    VerificationFailed,
)
from .key_cache import AcquireOutcome, KeyCache, KeyState
from .naming import ResourceNames, next_sequence, unit_name, unit_pattern, utc_today
from .settings import IlmSettings

logger = logging.getLogger(__name__)


class ProvisioningStage(str, Enum):
    NOT_STARTED = "not_started"
    POLICY_PENDING = "policy_pending"
    TEMPLATE_PENDING = "template_pending"
    UNIT_PENDING = "unit_pending"
    VERIFYING = "verifying"
    READY = "ready"
    FAILED = "failed"


class ProvisioningCoordinator:
    """Creates and verifies the resources of a key exactly once per process."""

    def __init__(
        self,
        store: Any,
        cache: KeyCache,
        settings: IlmSettings,
        guard: Optional[AnomalyGuard] = None,
        clock: Callable[[], date] = utc_today,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.store = store
        self.cache = cache
        self.settings = settings
        self.guard = guard or AnomalyGuard(
            warn_threshold=settings.anomaly_warn_threshold,
            reset_threshold=settings.anomaly_reset_threshold,
            on_reset=self.reset,
        )
        self.clock = clock
        self.sleep = sleep
        # Built once: a bad rollover configuration fails at startup, not per record.
        self.policy_payload = build_lifecycle_policy(settings)

    # ── Entry points ────────────────────────────────────────────

    def ensure_ready(self, key: str) -> AcquireOutcome:
        """Make sure *key*'s resources exist; return how the key was obtained.

        Raises:
            ProvisioningError: this worker (or the one it waited for) failed.
        """
        if self.cache.state(key) is KeyState.READY:
            return AcquireOutcome.ALREADY_READY

        result = self.cache.acquire(key)
        if result.outcome is AcquireOutcome.WON_RACE:
            # Only provisioning runs count; waiters are not failures.
            self.guard.record_attempt(key)
            logger.info("Lock acquired, initializing ILM resources for %s", key)
            self._provision(key)
        elif result.outcome is AcquireOutcome.LOST_RACE:
            logger.debug("Another worker is initializing %s, waiting", key)
            self._wait_for_winner(key)
        return result.outcome

    def invalidate(self, key: str) -> bool:
        """Forget everything cached for *key* so the next record re-provisions."""
        names = ResourceNames.for_key(key)
        return self.cache.invalidate(
            key, [names.policy_cache_key, names.template_cache_key]
        )

    def reset(self, key: str) -> None:
        """Full cold reset, triggered by the anomaly guard."""
        dropped = self.invalidate(key)
        logger.warning("Cache reset for %s (entry dropped: %s)", key, dropped)

    # ── Race handling ───────────────────────────────────────────

    def _wait_for_winner(self, key: str) -> None:
        state = self.cache.wait_until_ready(
            key,
            interval=self.settings.wait_interval,
            attempts=self.settings.wait_attempts,
            sleep=self.sleep,
        )
        if state is KeyState.READY:
            logger.debug("Initialization of %s completed by another worker", key)
            return
        if state is KeyState.ABSENT:
            raise ProvisioningError(
                key, f"Another worker failed to initialize {key!r}; will retry"
            )

        waited = self.settings.wait_interval * self.settings.wait_attempts
        logger.error("Timeout waiting for ILM initialization of %s - will retry", key)
        raise ProvisioningTimeout(
            key, f"Timeout after {waited:.1f}s waiting for {key!r} ILM initialization"
        )

    # ── State machine ───────────────────────────────────────────

    def _provision(self, key: str) -> None:
        names = ResourceNames.for_key(key)
        today = self.clock()
        stage = ProvisioningStage.NOT_STARTED
        committed = False
        try:
            stage = self._advance(key, ProvisioningStage.POLICY_PENDING)
            self._ensure_policy(key, names)

            stage = self._advance(key, ProvisioningStage.TEMPLATE_PENDING)
            self._ensure_template(key, names)

            stage = self._advance(key, ProvisioningStage.UNIT_PENDING)
            created = self._ensure_unit(key, names, today)

            stage = self._advance(key, ProvisioningStage.VERIFYING)
            self._verify(key, names)

            # A unit created today needs no rollover check until tomorrow.
            self.cache.mark_ready(key, checked_on=today if created else None)
            self.guard.reset(key)
            committed = True
            self._advance(key, ProvisioningStage.READY)
            logger.info(
                "ILM resources ready for %s (policy=%s, template=%s, alias=%s)",
                key,
                names.policy_name,
                names.template_name,
                names.alias_name,
            )
        except DynamicIlmError as exc:
            self._fail(key, stage, exc)
            raise
        except Exception as exc:
            self._fail(key, stage, exc)
            raise ProvisioningError(
                key, f"Failed to provision {key!r} at {stage.value}: {exc}", stage=stage.value
            ) from exc
        finally:
            if not committed:
                self.cache.release(key)

    def _advance(self, key: str, stage: ProvisioningStage) -> ProvisioningStage:
        logger.debug("Provisioning %s: %s", key, stage.value)
        return stage

    def _fail(self, key: str, stage: ProvisioningStage, exc: BaseException) -> None:
        logger.error(
            "Failed to initialize ILM resources for %s at %s - will retry on next record: %s",
            key,
            stage.value,
            exc,
        )
        self._advance(key, ProvisioningStage.FAILED)

    # ── Stages ──────────────────────────────────────────────────

    def _ensure_policy(self, key: str, names: ResourceNames) -> None:
        name = names.policy_name
        if self.cache.resource_known(names.policy_cache_key):
            logger.debug("Policy known to exist: %s", name)
            return

        stage = ProvisioningStage.POLICY_PENDING
        if self._call(key, stage, f"checking policy {name}", self.store.lifecycle_policy_exists, name):
            logger.debug("Policy already exists: %s", name)
        elif self._create(
            key,
            stage,
            f"policy {name}",
            lambda: self.store.put_lifecycle_policy(name, self.policy_payload),
            lambda: self.store.lifecycle_policy_exists(name),
        ):
            logger.info("Created ILM policy: %s", name)
        self.cache.remember_resource(names.policy_cache_key)

    def _ensure_template(self, key: str, names: ResourceNames) -> None:
        name = names.template_name
        if self.cache.resource_known(names.template_cache_key):
            logger.debug("Template known to exist: %s", name)
            return

        stage = ProvisioningStage.TEMPLATE_PENDING
        existing = self._call(key, stage, f"checking template {name}", self.store.get_template, name)
        if existing is not None:
            logger.debug("Template already exists: %s", name)
        else:
            payload = build_index_template(names, self.settings, self.store.major_version)
            if self._create(
                key,
                stage,
                f"template {name}",
                lambda: self.store.install_template(name, payload),
                lambda: self.store.get_template(name) is not None,
            ):
                logger.info(
                    "Created template %s (pattern %s, priority %d)",
                    name,
                    names.index_pattern,
                    self.settings.template_priority,
                )
        self.cache.remember_resource(names.template_cache_key)

    def _ensure_unit(self, key: str, names: ResourceNames, today: date) -> bool:
        """Create the first write unit with the alias bound; False if the alias already existed."""
        alias = names.alias_name
        stage = ProvisioningStage.UNIT_PENDING
        attempts = self.settings.unit_cleanup_attempts

        for attempt in range(1, attempts + 1):
            if self._call(key, stage, f"checking alias {alias}", self.store.alias_exists, alias):
                logger.debug("Index/alias already exists: %s", alias)
                return False

            raw = self._call(key, stage, f"inspecting index {alias}", self.store.get_unit_raw, alias)
            if not self._is_plain_unit(alias, raw):
                break

            # The store auto-created a plain index under the alias name.
            logger.warning(
                "Found plain index named %s, deleting it to create the alias (attempt %d/%d)",
                alias,
                attempt,
                attempts,
            )
            self._call(key, stage, f"deleting index {alias}", self.store.delete_unit, alias)
            self.sleep(self.settings.cleanup_pause)
        else:
            raise ProvisioningError(
                key,
                f"Cannot create rollover index for {key!r}: auto-created index "
                f"{alias!r} reappeared {attempts} times",
                stage=stage.value,
            )

        existing = self._call(
            key,
            stage,
            f"listing units for {alias}",
            self.store.list_units_matching,
            unit_pattern(alias, today),
        )
        first_unit = unit_name(alias, today, next_sequence(alias, today, existing))
        payload = build_unit_payload(names, attach_alias=True)

        created = self._create(
            key,
            stage,
            f"write unit {first_unit}",
            lambda: self.store.create_unit(first_unit, payload),
            lambda: self.store.alias_exists(alias),
        )
        if not created:
            return False

        if self._call(key, stage, f"checking alias {alias}", self.store.alias_exists, alias):
            logger.info("Created rollover index %s with write alias %s", first_unit, alias)
        else:
            logger.warning(
                "Alias %s not visible yet after creating %s", alias, first_unit
            )
        return True

    def _verify(self, key: str, names: ResourceNames) -> None:
        stage = ProvisioningStage.VERIFYING
        missing = []
        if not self._call(key, stage, "verifying policy", self.store.lifecycle_policy_exists, names.policy_name):
            missing.append(f"policy {names.policy_name}")
        if self._call(key, stage, "verifying template", self.store.get_template, names.template_name) is None:
            missing.append(f"template {names.template_name}")
        if not self._call(key, stage, "verifying alias", self.store.alias_exists, names.alias_name):
            missing.append(f"alias {names.alias_name}")

        if missing:
            self.cache.forget_resources([names.policy_cache_key, names.template_cache_key])
            raise VerificationFailed(key, missing)

    @staticmethod
    def _is_plain_unit(alias: str, raw: Optional[dict[str, Any]]) -> bool:
        """An index literally named *alias* that no write alias points at."""
        if not raw or alias not in raw:
            return False
        bindings = raw[alias].get("aliases") or {}
        return not any(
            alias_def.get("is_write_index") is True for alias_def in bindings.values()
        )

    # ── Store calls ─────────────────────────────────────────────

    def _call(
        self,
        key: str,
        stage: ProvisioningStage,
        description: str,
        func: Callable[..., Any],
        *args: Any,
    ) -> Any:
        """Run a store call, backing off on throttling: min(2**attempt, max_backoff) seconds."""
        attempts = self.settings.create_attempts
        for attempt in range(1, attempts + 1):
            try:
                return func(*args)
            except Exception as exc:
                if classify(exc) is not RecoveryAction.RETRY:
                    raise
                if attempt >= attempts:
                    raise RateLimited(
                        key,
                        f"Throttled while {description} for {key!r} after {attempt} attempts",
                        stage=stage.value,
                    ) from exc
                delay = min(2 ** attempt, self.settings.max_backoff)
                logger.warning(
                    "Throttled while %s for %s, retrying in %.1fs (attempt %d/%d)",
                    description,
                    key,
                    delay,
                    attempt,
                    attempts,
                )
                self.sleep(delay)

    def _create(
        self,
        key: str,
        stage: ProvisioningStage,
        what: str,
        create: Callable[[], Any],
        exists: Callable[[], bool],
    ) -> bool:
        """Create a resource; True if this call created it, False if someone else did."""
        try:
            self._call(key, stage, f"creating {what}", create)
            return True
        except RateLimited:
            raise
        except Exception as exc:
            if classify(exc) is not RecoveryAction.TREAT_AS_EXISTS:
                raise
            if self._call(key, stage, f"re-checking {what}", exists):
                logger.info("%s was created concurrently for %s", what, key)
                return False
            raise ResourceConflict(
                key,
                f"Conflict creating {what} for {key!r} but it still does not exist: {exc}",
                stage=stage.value,
            ) from exc
