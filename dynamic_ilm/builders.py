"""Pure payload builders for the lifecycle policy, index template and write units."""

from __future__ import annotations

import copy
import json
import logging
from pathlib import Path
from typing import Any, Optional

from .exceptions import ConfigurationError
from .naming import ResourceNames
from .settings import IlmSettings

logger = logging.getLogger(__name__)

TEMPLATE_META = {
    "description": "Dynamically created template for ILM-managed index",
    "created_by": "dynamic-ilm",
}

MINIMAL_MAPPINGS = {
    "dynamic_templates": [
        {
            "message_field": {
                "path_match": "message",
                "match_mapping_type": "string",
                "mapping": {"type": "text", "norms": False},
            }
        },
        {
            "string_fields": {
                "match": "*",
                "match_mapping_type": "string",
                "mapping": {
                    "type": "text",
                    "norms": False,
                    "fields": {
                        "keyword": {"type": "keyword", "ignore_above": 256}
                    },
                },
            }
        },
    ],
    "properties": {
        "@timestamp": {"type": "date"},
        "@version": {"type": "keyword"},
    },
}


def is_composable(major_version: int) -> bool:
    """Elasticsearch 8+ takes composable templates; 7.x takes legacy ones."""
    return major_version >= 8


# ──────────────────────────────────────────────
# Lifecycle policy
# ──────────────────────────────────────────────


def build_lifecycle_policy(settings: IlmSettings) -> dict[str, Any]:
    """Build the ILM policy body shared by every rollover group.

    Raises:
        ConfigurationError: when no rollover condition is configured.
    """
    conditions = settings.rollover_conditions
    if not conditions:
        raise ConfigurationError(
            "Rollover action needs at least one of max_age, max_size or max_docs"
        )

    phases: dict[str, Any] = {
        "hot": {
            "min_age": "0ms",
            "actions": {
                "set_priority": {"priority": settings.hot_priority},
                "rollover": conditions,
            },
        }
    }

    if settings.delete_enabled:
        if not settings.delete_min_age:
            raise ConfigurationError("delete_min_age is required when delete is enabled")
        phases["delete"] = {
            "min_age": settings.delete_min_age,
            "actions": {"delete": {"delete_searchable_snapshot": True}},
        }

    return {"policy": {"phases": phases}}


# ──────────────────────────────────────────────
# Index template
# ──────────────────────────────────────────────


def load_template_file(path: str | Path) -> Optional[dict[str, Any]]:
    """Read an operator-supplied template; ``None`` if missing, unreadable or empty."""
    try:
        with open(path, encoding="utf-8") as f:
            template = json.load(f)
    except (OSError, ValueError) as exc:
        logger.warning("Could not load template file %s: %s", path, exc)
        return None

    if not isinstance(template, dict) or not template:
        logger.warning("Template file %s holds no template object", path)
        return None
    return template


def build_minimal_template(
    names: ResourceNames,
    settings: IlmSettings,
    major_version: int,
) -> dict[str, Any]:
    """Built-in template used when no operator template is available.

    No ``rollover_alias`` here: the alias must exist first, so it is bound
    when the first write unit is created together with it.
    """
    index_settings = {
        "index": {
            "lifecycle": {"name": names.policy_name},
            "routing": {
                "allocation": {"include": {"_tier_preference": "data_content"}}
            },
            "refresh_interval": settings.refresh_interval,
            "number_of_shards": str(settings.number_of_shards),
            "number_of_replicas": str(settings.number_of_replicas),
        }
    }
    mappings = copy.deepcopy(MINIMAL_MAPPINGS)

    if is_composable(major_version):
        return {
            "index_patterns": [names.index_pattern],
            "priority": settings.template_priority,
            "template": {
                "settings": index_settings,
                "mappings": mappings,
                "aliases": {},
            },
            "_meta": dict(TEMPLATE_META),
        }

    return {
        "index_patterns": [names.index_pattern],
        "order": settings.template_priority,
        "settings": index_settings,
        "mappings": mappings,
        "aliases": {},
        "_meta": dict(TEMPLATE_META),
    }


def _set_lifecycle_name(index_settings: dict[str, Any], policy_name: str) -> None:
    """Point *index_settings* at the policy, whichever notation the file uses."""
    index_settings.pop("index.lifecycle.rollover_alias", None)

    nested = index_settings.get("index")
    if isinstance(nested, dict):
        lifecycle = nested.setdefault("lifecycle", {})
        lifecycle.pop("rollover_alias", None)
        lifecycle["name"] = policy_name
        index_settings.pop("index.lifecycle.name", None)
    else:
        index_settings["index.lifecycle.name"] = policy_name


def _flatten_composable(template: dict[str, Any]) -> dict[str, Any]:
    inner = template.pop("template", None)
    if isinstance(inner, dict):
        for section in ("settings", "mappings", "aliases"):
            if section in inner:
                template.setdefault(section, inner[section])
    return template


def customize_template(
    template: dict[str, Any],
    names: ResourceNames,
    settings: IlmSettings,
    major_version: int,
) -> dict[str, Any]:
    """Inject the key's pattern, priority and policy into an operator template."""
    template = copy.deepcopy(template)
    template["index_patterns"] = [names.index_pattern]

    if is_composable(major_version):
        template.pop("order", None)
        template["priority"] = settings.template_priority
        body = template.setdefault("template", {})
    else:
        template = _flatten_composable(template)
        template.pop("priority", None)
        template["order"] = settings.template_priority
        body = template

    index_settings = body.setdefault("settings", {})
    _set_lifecycle_name(index_settings, names.policy_name)
    return template


def build_index_template(
    names: ResourceNames,
    settings: IlmSettings,
    major_version: int,
) -> dict[str, Any]:
    """Operator template when configured and loadable, minimal template otherwise."""
    template = None
    if settings.template_path:
        template = load_template_file(settings.template_path)

    if template:
        return customize_template(template, names, settings, major_version)

    logger.info(
        "Using minimal built-in template for %s (policy %s)",
        names.index_pattern,
        names.policy_name,
    )
    return build_minimal_template(names, settings, major_version)


# ──────────────────────────────────────────────
# Write units
# ──────────────────────────────────────────────


def build_unit_payload(names: ResourceNames, attach_alias: bool = True) -> dict[str, Any]:
    """Body for creating a write unit bound to the key's policy and rollover alias.

    With ``attach_alias=False`` the unit is created unaliased; a rollover
    attaches the alias afterwards in one atomic swap.
    """
    body: dict[str, Any] = {
        "settings": {
            "index": {
                "lifecycle": {
                    "name": names.policy_name,
                    "rollover_alias": names.alias_name,
                }
            }
        }
    }
    if attach_alias:
        body["aliases"] = {names.alias_name: {"is_write_index": True}}
    return body
