"""Connection settings for the Elasticsearch cluster that holds the ILM resources.

Credential pattern:
  - Separate host / port (not combined URL)
  - Any 7.x-compatible client works (elasticsearch 7.x or opensearch-py)

Resolution order (later wins):
  1. Dataclass defaults
  2. ``DYNAMIC_ILM_<FIELD>`` environment variables
  3. Explicit keyword arguments
"""

import os
from dataclasses import dataclass, fields
from typing import Any, Callable, Mapping, Optional

ENV_PREFIX = "DYNAMIC_ILM_"


def _parse_bool(value: str) -> bool:
    normalized = value.strip().lower()
    if normalized in {"1", "true", "t", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "f", "no", "n", "off"}:
        return False
    raise ValueError(f"Invalid boolean value: {value!r}")


@dataclass
class ConnectionConfig:
    """Where and how to reach the cluster."""

    host: str = "localhost"
    port: int = 9200
    user: str = "elastic"
    password: str = "changeme"
    use_ssl: bool = False
    verify_certs: bool = False
    ssl_show_warn: bool = False
    ca_certs: Optional[str] = None
    timeout: int = 30
    max_retries: int = 3
    retry_on_timeout: bool = True
    http_compress: bool = True

    @property
    def http_auth(self) -> Optional[tuple[str, str]]:
        if self.user and self.password:
            return (self.user, self.password)
        return None

    @property
    def hosts(self) -> list[dict]:
        """Single-node hosts list for the 7.x client constructors."""
        scheme = "https" if self.use_ssl else "http"
        return [{"host": self.host, "port": self.port, "scheme": scheme}]


_CONNECTION_PARSERS: dict[str, Callable[[str], Any]] = {
    "host": str,
    "port": int,
    "user": str,
    "password": str,
    "use_ssl": _parse_bool,
    "verify_certs": _parse_bool,
    "ssl_show_warn": _parse_bool,
    "ca_certs": str,
    "timeout": int,
    "max_retries": int,
    "retry_on_timeout": _parse_bool,
    "http_compress": _parse_bool,
}


def read_env(
    parsers: Mapping[str, Callable[[str], Any]],
    skip_blank: bool = False,
) -> dict[str, Any]:
    """Parse the ``DYNAMIC_ILM_<FIELD>`` variables that are set for *parsers*.

    With ``skip_blank`` an empty variable counts as unset.
    """
    values: dict[str, Any] = {}
    for name, parse in parsers.items():
        raw = os.getenv(f"{ENV_PREFIX}{name.upper()}")
        if raw is None or (skip_blank and not raw.strip()):
            continue
        values[name] = parse(raw)
    return values


def apply_values(cfg: Any, values: Mapping[str, Any]) -> Any:
    """Set dataclass fields on *cfg*; unknown names raise ``TypeError``."""
    known = {f.name for f in fields(cfg)}
    for key, value in values.items():
        if key not in known:
            raise TypeError(f"Unknown {type(cfg).__name__} key: {key!r}")
        setattr(cfg, key, value)
    return cfg


def load_config(**overrides) -> ConnectionConfig:
    """Build a ConnectionConfig from env vars and keyword overrides.

    Supported env vars:
      - DYNAMIC_ILM_HOST / DYNAMIC_ILM_PORT
      - DYNAMIC_ILM_USER / DYNAMIC_ILM_PASSWORD
      - DYNAMIC_ILM_USE_SSL / DYNAMIC_ILM_VERIFY_CERTS / DYNAMIC_ILM_SSL_SHOW_WARN
      - DYNAMIC_ILM_CA_CERTS
      - DYNAMIC_ILM_TIMEOUT / DYNAMIC_ILM_MAX_RETRIES
      - DYNAMIC_ILM_RETRY_ON_TIMEOUT / DYNAMIC_ILM_HTTP_COMPRESS
    """
    cfg = ConnectionConfig()
    apply_values(cfg, read_env(_CONNECTION_PARSERS, skip_blank=True))
    return apply_values(cfg, overrides)
