"""Backing-store adapter used by the provisioning and rollover state machines.

:class:`ElasticsearchStore` binds a client and the cluster's major version
to the functions in :mod:`dynamic_ilm.lifecycle` and :mod:`dynamic_ilm.index`.
Lookups return ``None``/``False`` for missing resources; every other
client error propagates for :mod:`dynamic_ilm.error_classifier` to judge.
"""

import logging
from typing import Any, Optional

from . import index, lifecycle
from .builders import is_composable

logger = logging.getLogger(__name__)


class ElasticsearchStore:
    def __init__(self, client: Any, major_version: Optional[int] = None):
        self.client = client
        if major_version is None:
            major_version = lifecycle.detect_major_version(client)
            logger.info("Detected Elasticsearch major version %d", major_version)
        self.major_version = major_version

    @property
    def composable_templates(self) -> bool:
        return is_composable(self.major_version)

    # Lifecycle policies

    def lifecycle_policy_exists(self, name: str) -> bool:
        return lifecycle.get_lifecycle_policy(self.client, name) is not None

    def put_lifecycle_policy(self, name: str, payload: dict[str, Any]) -> None:
        lifecycle.put_lifecycle_policy(self.client, name, payload)

    # Templates

    def get_template(self, name: str) -> Optional[dict[str, Any]]:
        return lifecycle.get_index_template(
            self.client, name, composable=self.composable_templates
        )

    def install_template(self, name: str, payload: dict[str, Any]) -> None:
        lifecycle.put_index_template(
            self.client, name, payload, composable=self.composable_templates
        )

    # Aliases

    def alias_exists(self, name: str) -> bool:
        return lifecycle.alias_exists(self.client, name)

    def get_write_unit_for_alias(self, alias: str) -> Optional[str]:
        return lifecycle.write_index_for_alias(self.client, alias)

    def atomic_alias_swap(self, remove_from: str, add_to: str, alias: str) -> None:
        lifecycle.swap_write_alias(self.client, alias, remove_from, add_to)

    # Write units

    def create_unit(self, name: str, payload: dict[str, Any]) -> None:
        index.create_unit(self.client, name, payload)

    def get_unit_raw(self, name: str) -> Optional[dict[str, Any]]:
        return index.get_unit(self.client, name)

    def delete_unit(self, name: str) -> None:
        index.delete_unit(self.client, name)

    def list_units_matching(self, pattern: str) -> list[str]:
        return index.list_units(self.client, pattern)
