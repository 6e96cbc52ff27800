from __future__ import annotations

import pytest
from opensearchpy.exceptions import NotFoundError, TransportError

from dynamic_ilm.lifecycle import (
    alias_exists,
    detect_major_version,
    get_index_template,
    get_lifecycle_policy,
    put_index_template,
    put_lifecycle_policy,
    swap_write_alias,
    write_index_for_alias,
)


class DummyIndices:
    def __init__(self, aliases=None, templates=None):
        self.calls = []
        self.aliases = aliases or {}
        self.templates = templates or {}

    def put_index_template(self, **kwargs):
        self.calls.append(("put_index_template", kwargs))
        return {"api": "put_index_template", **kwargs}

    def put_template(self, **kwargs):
        self.calls.append(("put_template", kwargs))
        return {"api": "put_template", **kwargs}

    def get_index_template(self, **kwargs):
        self.calls.append(("get_index_template", kwargs))
        if kwargs["name"] not in self.templates:
            raise NotFoundError(404, "resource_not_found_exception", {})
        return {
            "index_templates": [
                {"name": kwargs["name"], "index_template": self.templates[kwargs["name"]]}
            ]
        }

    def get_template(self, **kwargs):
        self.calls.append(("get_template", kwargs))
        if kwargs["name"] not in self.templates:
            raise NotFoundError(404, "resource_not_found_exception", {})
        return {kwargs["name"]: self.templates[kwargs["name"]]}

    def exists_alias(self, **kwargs):
        self.calls.append(("exists_alias", kwargs))
        return bool(self.aliases)

    def get_alias(self, **kwargs):
        self.calls.append(("get_alias", kwargs))
        if not self.aliases:
            raise NotFoundError(404, "aliases_not_found_exception", {})
        return self.aliases

    def update_aliases(self, **kwargs):
        self.calls.append(("update_aliases", kwargs))
        return {"acknowledged": True, **kwargs}


class DummyTransport:
    def __init__(self, policies=None, error=None):
        self.calls = []
        self.policies = policies or {}
        self.error = error

    def perform_request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if self.error is not None:
            raise self.error
        if method == "GET":
            name = url.rsplit("/", 1)[-1]
            if name not in self.policies:
                raise NotFoundError(404, "resource_not_found_exception", {})
            return {name: self.policies[name]}
        return {"acknowledged": True}


class DummyClient:
    def __init__(self, info_body=None, indices=None, transport=None):
        self._info_body = info_body or {}
        self.indices = indices or DummyIndices()
        self.transport = transport or DummyTransport()

    def info(self):
        return self._info_body


def test_detect_major_version():
    assert detect_major_version(DummyClient({"version": {"number": "7.17.9"}})) == 7
    assert detect_major_version(DummyClient({"version": {"number": "8.11.1"}})) == 8


def test_detect_major_version_raises_without_number():
    with pytest.raises(ValueError):
        detect_major_version(DummyClient({"tagline": "You Know, for Search"}))


def test_get_lifecycle_policy_returns_none_on_404():
    client = DummyClient(transport=DummyTransport(policies={"nginx-ilm-policy": {}}))

    assert get_lifecycle_policy(client, "nginx-ilm-policy") == {"nginx-ilm-policy": {}}
    assert get_lifecycle_policy(client, "other-ilm-policy") is None
    assert client.transport.calls[0][:2] == ("GET", "/_ilm/policy/nginx-ilm-policy")


def test_get_lifecycle_policy_propagates_other_errors():
    client = DummyClient(transport=DummyTransport(error=TransportError(500, "boom", {})))
    with pytest.raises(TransportError):
        get_lifecycle_policy(client, "nginx-ilm-policy")


def test_put_lifecycle_policy_routes_to_ilm():
    client = DummyClient()
    body = {"policy": {"phases": {}}}

    put_lifecycle_policy(client, "nginx-ilm-policy", body)

    method, url, kwargs = client.transport.calls[0]
    assert (method, url) == ("PUT", "/_ilm/policy/nginx-ilm-policy")
    assert kwargs["body"] is body


def test_put_index_template_composable_and_legacy():
    client = DummyClient()

    composable = put_index_template(client, "logstash-nginx", {"index_patterns": ["nginx-*"]})
    legacy = put_index_template(
        client, "logstash-nginx", {"index_patterns": ["nginx-*"]}, composable=False
    )

    assert composable["api"] == "put_index_template"
    assert composable["create"] is True
    assert legacy["api"] == "put_template"
    assert legacy["create"] is True


def test_get_index_template_both_apis():
    indices = DummyIndices(templates={"logstash-nginx": {"priority": 100}})
    client = DummyClient(indices=indices)

    assert get_index_template(client, "logstash-nginx") == {"priority": 100}
    assert get_index_template(client, "logstash-nginx", composable=False) == {"priority": 100}
    assert get_index_template(client, "logstash-other") is None


def test_alias_exists():
    assert alias_exists(DummyClient(), "nginx") is False
    indices = DummyIndices(aliases={"nginx-2025.01.01-000001": {"aliases": {"nginx": {}}}})
    assert alias_exists(DummyClient(indices=indices), "nginx") is True


def test_write_index_for_alias_prefers_write_flag():
    indices = DummyIndices(
        aliases={
            "nginx-2025.01.01-000001": {"aliases": {"nginx": {"is_write_index": False}}},
            "nginx-2025.01.02-000001": {"aliases": {"nginx": {"is_write_index": True}}},
        }
    )
    assert write_index_for_alias(DummyClient(indices=indices), "nginx") == "nginx-2025.01.02-000001"


def test_write_index_for_alias_single_unflagged_index():
    indices = DummyIndices(aliases={"nginx-2025.01.01-000001": {"aliases": {"nginx": {}}}})
    assert write_index_for_alias(DummyClient(indices=indices), "nginx") == "nginx-2025.01.01-000001"


def test_write_index_for_alias_missing_alias():
    assert write_index_for_alias(DummyClient(), "nginx") is None


def test_swap_write_alias_sends_one_request():
    client = DummyClient()

    swap_write_alias(client, "nginx", "nginx-2025.01.01-000001", "nginx-2025.01.02-000001")

    (name, kwargs), = client.indices.calls
    assert name == "update_aliases"
    assert kwargs["body"]["actions"] == [
        {"add": {"index": "nginx-2025.01.01-000001", "alias": "nginx", "is_write_index": False}},
        {"add": {"index": "nginx-2025.01.02-000001", "alias": "nginx", "is_write_index": True}},
    ]
