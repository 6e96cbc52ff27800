from __future__ import annotations

import uuid

import pytest

from dynamic_ilm.client import create_client
from dynamic_ilm.manager import DynamicIlmManager
from dynamic_ilm.naming import ResourceNames, parse_unit_name, utc_today
from dynamic_ilm.settings import IlmSettings


def _cleanup(client, manager: DynamicIlmManager, names: ResourceNames) -> None:
    client.indices.delete(index=names.index_pattern, ignore=[404])
    if manager.store.composable_templates:
        client.indices.delete_index_template(name=names.template_name, ignore=[404])
    else:
        client.indices.delete_template(name=names.template_name, ignore=[404])
    client.transport.perform_request("DELETE", f"/_ilm/policy/{names.policy_name}")


@pytest.mark.integration
def test_live_cluster_provision_and_rollover() -> None:
    client = create_client()
    assert client.ping() is True

    key = f"test-dynamic-ilm-{uuid.uuid4().hex[:8]}"
    names = ResourceNames.for_key(key)
    manager = DynamicIlmManager(client=client, settings=IlmSettings())

    try:
        assert manager.ensure(key) is True
        assert manager.store.lifecycle_policy_exists(names.policy_name)
        assert manager.store.get_template(names.template_name) is not None

        write_unit = manager.store.get_write_unit_for_alias(key)
        assert parse_unit_name(key, write_unit) == (utc_today(), 1)

        # Second record: served from the cache.
        assert manager.ensure(key) is True

        new_unit = manager.rollover.force_rollover(names, write_unit, utc_today())
        assert parse_unit_name(key, new_unit) == (utc_today(), 2)
        assert manager.store.get_write_unit_for_alias(key) == new_unit

        client.index(index=key, body={"message": "hello", "@timestamp": "2025-01-01T00:00:00Z"})
        client.indices.refresh(index=new_unit)
        assert client.count(index=new_unit)["count"] == 1
    finally:
        _cleanup(client, manager, names)
