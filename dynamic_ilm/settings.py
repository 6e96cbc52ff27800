"""Lifecycle and orchestration settings for dynamically provisioned rollover groups.

Same resolution order as :func:`dynamic_ilm.connection_settings.load_config`:
dataclass defaults, then ``DYNAMIC_ILM_<FIELD>`` environment variables,
then explicit keyword overrides.
"""

from dataclasses import dataclass
from typing import Any, Callable, Optional

from .connection_settings import _parse_bool, apply_values, read_env


@dataclass
class IlmSettings:
    """Static configuration shared by every rollover group."""

    # Lifecycle policy
    hot_priority: int = 50
    rollover_max_age: Optional[str] = "1d"
    rollover_max_size: Optional[str] = "50gb"
    rollover_max_docs: Optional[int] = None
    delete_enabled: bool = False
    delete_min_age: str = "7d"

    # Index template
    template_path: Optional[str] = None
    template_priority: int = 100
    es_major_version: Optional[int] = None
    number_of_shards: int = 1
    number_of_replicas: int = 0
    refresh_interval: str = "5s"

    # Bounds
    wait_interval: float = 0.1
    wait_attempts: int = 50
    create_attempts: int = 3
    max_backoff: float = 10.0
    unit_cleanup_attempts: int = 3
    cleanup_pause: float = 0.1
    anomaly_warn_threshold: int = 5
    anomaly_reset_threshold: int = 10

    @property
    def rollover_conditions(self) -> dict[str, Any]:
        """Non-null rollover conditions, in the order ILM documents them."""
        conditions: dict[str, Any] = {}
        if self.rollover_max_age:
            conditions["max_age"] = self.rollover_max_age
        if self.rollover_max_size:
            conditions["max_size"] = self.rollover_max_size
        if self.rollover_max_docs is not None:
            conditions["max_docs"] = self.rollover_max_docs
        return conditions


def _optional(parser: Callable[[str], Any]) -> Callable[[str], Any]:
    # An empty env value clears a nullable setting.
    def parse(value: str) -> Any:
        if not value.strip():
            return None
        return parser(value)

    return parse


_PARSERS: dict[str, Callable[[str], Any]] = {
    "hot_priority": int,
    "rollover_max_age": _optional(str),
    "rollover_max_size": _optional(str),
    "rollover_max_docs": _optional(int),
    "delete_enabled": _parse_bool,
    "delete_min_age": str,
    "template_path": _optional(str),
    "template_priority": int,
    "es_major_version": _optional(int),
    "number_of_shards": int,
    "number_of_replicas": int,
    "refresh_interval": str,
    "wait_interval": float,
    "wait_attempts": int,
    "create_attempts": int,
    "max_backoff": float,
    "unit_cleanup_attempts": int,
    "cleanup_pause": float,
    "anomaly_warn_threshold": int,
    "anomaly_reset_threshold": int,
}


def load_settings(**overrides) -> IlmSettings:
    """Build IlmSettings from env vars and keyword overrides.

    Every field maps to ``DYNAMIC_ILM_<FIELD_NAME_UPPER>``, e.g.
    ``DYNAMIC_ILM_ROLLOVER_MAX_AGE=1d`` or ``DYNAMIC_ILM_DELETE_ENABLED=true``.
    Setting a nullable rollover condition to an empty string disables it.
    """
    cfg = IlmSettings()
    apply_values(cfg, read_env(_PARSERS))
    return apply_values(cfg, overrides)
