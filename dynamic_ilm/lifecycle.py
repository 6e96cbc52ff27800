"""Lifecycle policy, template and alias calls against a 7.x-compatible client."""

from typing import Any, Optional

from .error_classifier import is_not_found


def detect_major_version(client: Any) -> int:
    """Return the cluster's major version from ``client.info()``.

    Raises:
        ValueError: when the version number is missing or malformed.
    """
    info = client.info()
    number = str(info.get("version", {}).get("number", ""))
    major = number.split(".", 1)[0]
    if not major.isdigit():
        raise ValueError(f"Could not determine cluster version from {number!r}")
    return int(major)


def get_lifecycle_policy(client: Any, policy_name: str) -> Optional[dict[str, Any]]:
    """Return the ILM policy body, or ``None`` when it does not exist."""
    try:
        return client.transport.perform_request("GET", f"/_ilm/policy/{policy_name}")
    except Exception as exc:
        if is_not_found(exc):
            return None
        raise


def put_lifecycle_policy(
    client: Any,
    policy_name: str,
    policy_body: dict[str, Any],
) -> dict[str, Any]:
    """Create/update an ILM policy (``PUT /_ilm/policy/<name>``)."""
    return client.transport.perform_request(
        "PUT", f"/_ilm/policy/{policy_name}", body=policy_body
    )


def get_index_template(
    client: Any,
    name: str,
    composable: bool = True,
) -> Optional[dict[str, Any]]:
    """Return a template body, or ``None`` when it does not exist.

    - Composable template API: ``indices.get_index_template``
    - Legacy template API: ``indices.get_template``
    """
    try:
        if composable:
            response = client.indices.get_index_template(name=name)
            for item in response.get("index_templates", []):
                if item.get("name") == name:
                    return item.get("index_template")
            return None
        response = client.indices.get_template(name=name)
        return response.get(name)
    except Exception as exc:
        if is_not_found(exc):
            return None
        raise


def put_index_template(
    client: Any,
    name: str,
    body: dict[str, Any],
    composable: bool = True,
) -> dict[str, Any]:
    """Create an index template without replacing an existing one.

    - Composable template API: ``indices.put_index_template``
    - Legacy template API: ``indices.put_template``
    """
    if composable:
        return client.indices.put_index_template(name=name, body=body, create=True)
    return client.indices.put_template(name=name, body=body, create=True)


def alias_exists(client: Any, alias: str) -> bool:
    return bool(client.indices.exists_alias(name=alias))


def get_alias(client: Any, alias: str) -> dict[str, Any]:
    """Return ``{index: {"aliases": {alias: {...}}}}`` for *alias*, ``{}`` if absent."""
    try:
        return client.indices.get_alias(name=alias)
    except Exception as exc:
        if is_not_found(exc):
            return {}
        raise


def write_index_for_alias(client: Any, alias: str) -> Optional[str]:
    """Name of the unit flagged ``is_write_index`` for *alias*.

    An alias over a single index without an explicit flag writes to that
    index, so it is returned as well.
    """
    bindings = get_alias(client, alias)
    for index_name, data in sorted(bindings.items()):
        alias_def = (data.get("aliases") or {}).get(alias) or {}
        if alias_def.get("is_write_index") is True:
            return index_name

    if len(bindings) == 1:
        (index_name, data), = bindings.items()
        alias_def = (data.get("aliases") or {}).get(alias) or {}
        if alias_def.get("is_write_index") is None:
            return index_name
    return None


def swap_write_alias(
    client: Any,
    alias: str,
    remove_from: str,
    add_to: str,
) -> dict[str, Any]:
    """Move the write flag from *remove_from* to *add_to* in one request.

    The old unit stays in the alias for reads with ``is_write_index: false``.
    """
    body = {
        "actions": [
            {"add": {"index": remove_from, "alias": alias, "is_write_index": False}},
            {"add": {"index": add_to, "alias": alias, "is_write_index": True}},
        ]
    }
    return client.indices.update_aliases(body=body)
