"""Map backing-store errors to recovery actions.

Classification works on the HTTP status and the Elasticsearch error type
carried by the 7.x client exceptions (``status_code`` / ``error`` /
``info``), so it does not care which client library raised them.
"""

from enum import Enum
from typing import Any, Optional

CONFLICT_TYPES = frozenset(
    {
        "resource_already_exists_exception",
        "version_conflict_engine_exception",
    }
)
THROTTLE_TYPES = frozenset({"es_rejected_execution_exception"})
INDEX_MISSING_MARKERS = ("index_not_found", "no such index", "indexnotfound")


class RecoveryAction(str, Enum):
    NOT_FOUND = "not_found"
    TREAT_AS_EXISTS = "treat_as_exists"
    RETRY = "retry"
    FATAL = "fatal"


def status_of(exc: BaseException) -> Optional[int]:
    """HTTP status of a client exception, or None for transport-level failures."""
    status = getattr(exc, "status_code", None)
    if isinstance(status, int):
        return status
    return None


def error_type_of(exc: BaseException) -> str:
    """Elasticsearch error type (``index_not_found_exception`` etc.), lowercased."""
    error = getattr(exc, "error", None)
    if isinstance(error, str) and error:
        return error.lower()

    info = getattr(exc, "info", None)
    if isinstance(info, dict):
        detail = info.get("error")
        if isinstance(detail, dict):
            return str(detail.get("type", "")).lower()
        if isinstance(detail, str):
            return detail.lower()
    return ""


def classify(exc: BaseException) -> RecoveryAction:
    status = status_of(exc)
    error_type = error_type_of(exc)

    if status == 409 or error_type in CONFLICT_TYPES:
        return RecoveryAction.TREAT_AS_EXISTS
    # put_template(create=True) reports an existing template this way
    if status == 400 and "already exists" in str(exc).lower():
        return RecoveryAction.TREAT_AS_EXISTS
    if status == 429 or error_type in THROTTLE_TYPES:
        return RecoveryAction.RETRY
    if status == 404:
        return RecoveryAction.NOT_FOUND
    return RecoveryAction.FATAL


def is_not_found(exc: BaseException) -> bool:
    return classify(exc) is RecoveryAction.NOT_FOUND


def is_index_missing(error: Any) -> bool:
    """Whether a write-path error means the target index or alias is gone.

    Accepts a client exception, a bulk item error dict
    (``{"type": ..., "reason": ...}``) or a plain message string.
    """
    if error is None:
        return False

    if isinstance(error, BaseException):
        text = f"{error_type_of(error)} {error}"
    elif isinstance(error, dict):
        text = f"{error.get('type', '')} {error.get('reason', '')}"
    else:
        text = str(error)

    text = text.lower()
    return any(marker in text for marker in INDEX_MISSING_MARKERS)
