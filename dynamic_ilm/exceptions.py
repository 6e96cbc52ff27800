"""Exception taxonomy for per-key ILM provisioning.

Every error here is scoped to one key (or one record). None of them is
meant to stop the process; the caller decides whether the record is
skipped, failed for redelivery, or indexed anyway.
"""

from typing import Optional, Sequence


class DynamicIlmError(Exception):
    """Base class for all errors raised by this package."""


class InvalidKey(DynamicIlmError, ValueError):
    """Raised when a key cannot be used to derive resource names.

    The record carrying the key is skipped; nothing is retried.
    """

    def __init__(self, key: object, reason: str) -> None:
        self.key = key
        self.reason = reason
        super().__init__(f"Invalid key {key!r}: {reason}")


class ConfigurationError(DynamicIlmError, ValueError):
    """Raised when policy or template configuration cannot produce a valid payload."""


class ProvisioningError(DynamicIlmError):
    """Provisioning of a key's resources failed; the next record retries from scratch."""

    def __init__(self, key: str, message: str, stage: Optional[str] = None) -> None:
        self.key = key
        self.stage = stage
        super().__init__(message)


class ResourceConflict(ProvisioningError):
    """The store reported a conflict but the resource is still not there."""


class RateLimited(ProvisioningError):
    """The store kept throttling after every backoff attempt."""


class VerificationFailed(ProvisioningError):
    """Resources were created but a re-query could not find all of them."""

    def __init__(self, key: str, missing: Sequence[str]) -> None:
        self.missing = list(missing)
        super().__init__(
            key,
            f"Verification failed for {key!r}; missing: {', '.join(self.missing)}",
            stage="verifying",
        )


class ProvisioningTimeout(ProvisioningError):
    """Another worker held the key's provisioning lock for longer than the wait bound."""


class RolloverError(DynamicIlmError):
    """The daily rollover check for a key failed."""

    def __init__(self, key: str, message: str) -> None:
        self.key = key
        super().__init__(message)


class PartialRolloverFailure(RolloverError):
    """A new write unit was created but the alias could not be moved onto it.

    ``cleaned_up`` tells whether the new unit was deleted again; when it is
    ``False`` the unit is an orphan that needs manual removal.
    """

    def __init__(self, key: str, new_unit: str, cleaned_up: bool) -> None:
        self.new_unit = new_unit
        self.cleaned_up = cleaned_up
        state = "deleted" if cleaned_up else "left orphaned"
        super().__init__(
            key,
            f"Alias swap to {new_unit!r} failed for {key!r}; new unit {state}",
        )
