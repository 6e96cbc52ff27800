"""Per-key ILM policy, template and write alias provisioning for Elasticsearch."""

from .anomaly_guard import AnomalyGuard
from .builders import (
    build_index_template,
    build_lifecycle_policy,
    build_minimal_template,
    build_unit_payload,
    load_template_file,
)
from .client import create_client
from .connection_settings import ConnectionConfig, load_config
from .error_classifier import RecoveryAction, classify, is_index_missing
from .exceptions import (
    ConfigurationError,
    DynamicIlmError,
    InvalidKey,
    PartialRolloverFailure,
    ProvisioningError,
    ProvisioningTimeout,
    RateLimited,
    ResourceConflict,
    RolloverError,
    VerificationFailed,
)
from .key_cache import AcquireOutcome, KeyCache, KeyState
from .manager import DynamicIlmManager
from .naming import ResourceNames, parse_unit_name, unit_name, validate_key
from .provisioning import ProvisioningCoordinator, ProvisioningStage
from .rollover import RolloverManager
from .settings import IlmSettings, load_settings
from .store import ElasticsearchStore

__all__ = [
    # entry point
    "DynamicIlmManager",
    # config
    "ConnectionConfig",
    "load_config",
    "IlmSettings",
    "load_settings",
    # client / store
    "create_client",
    "ElasticsearchStore",
    # naming
    "ResourceNames",
    "validate_key",
    "unit_name",
    "parse_unit_name",
    # state machines
    "KeyCache",
    "KeyState",
    "AcquireOutcome",
    "AnomalyGuard",
    "ProvisioningCoordinator",
    "ProvisioningStage",
    "RolloverManager",
    # payloads
    "build_lifecycle_policy",
    "build_index_template",
    "build_minimal_template",
    "build_unit_payload",
    "load_template_file",
    # errors
    "RecoveryAction",
    "classify",
    "is_index_missing",
    "DynamicIlmError",
    "InvalidKey",
    "ConfigurationError",
    "ProvisioningError",
    "ResourceConflict",
    "RateLimited",
    "VerificationFailed",
    "ProvisioningTimeout",
    "RolloverError",
    "PartialRolloverFailure",
]
