"""Physical write unit (index) operations."""

from __future__ import annotations

from typing import Any, Optional

from .error_classifier import is_not_found


def create_unit(client: Any, name: str, body: dict[str, Any]) -> dict:
    """Create an index with the given aliases and settings."""
    return client.indices.create(index=name, body=body)


def get_unit(client: Any, name: str) -> Optional[dict[str, Any]]:
    """Return the raw ``GET /<name>`` body, or ``None`` when nothing matches.

    If *name* is an alias the body is keyed by the concrete indices behind it.
    """
    try:
        return client.indices.get(index=name)
    except Exception as exc:
        if is_not_found(exc):
            return None
        raise


def delete_unit(client: Any, name: str) -> dict:
    """Delete an index."""
    return client.indices.delete(index=name)


def list_units(client: Any, pattern: str) -> list[str]:
    """Names of open and closed indices matching a wildcard *pattern*, sorted."""
    try:
        response = client.indices.get(
            index=pattern,
            allow_no_indices=True,
            ignore_unavailable=True,
            expand_wildcards="open,closed",
        )
    except Exception as exc:
        if is_not_found(exc):
            return []
        raise
    return sorted(response)
