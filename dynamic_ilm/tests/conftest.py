from __future__ import annotations

import copy
import fnmatch
import os
import threading
import time
from datetime import date

import pytest
from opensearchpy.exceptions import NotFoundError, RequestError

from dynamic_ilm.settings import IlmSettings

WRITE_OPS = frozenset(
    {
        "put_lifecycle_policy",
        "install_template",
        "create_unit",
        "delete_unit",
        "atomic_alias_swap",
    }
)


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "integration: tests that require a running Elasticsearch cluster",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if os.getenv("DYNAMIC_ILM_RUN_INTEGRATION") == "1":
        return

    skip_integration = pytest.mark.skip(
        reason="Set DYNAMIC_ILM_RUN_INTEGRATION=1 to run integration tests"
    )
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


class FakeStore:
    """In-memory backing store with Elasticsearch-like alias semantics.

    ``fail_next[op]`` holds exceptions raised (in order) by the next calls
    to ``op``; ``delay[op]`` adds latency to widen race windows.
    """

    def __init__(self, major_version: int = 8):
        self.major_version = major_version
        self.policies: dict[str, dict] = {}
        self.templates: dict[str, dict] = {}
        # index name -> {"aliases": {alias: {"is_write_index": bool}}, "settings": {...}}
        self.units: dict[str, dict] = {}
        self.calls: list[tuple] = []
        self.fail_next: dict[str, list[Exception]] = {}
        self.delay: dict[str, float] = {}
        self._lock = threading.RLock()

    def _record(self, op: str, *args) -> None:
        with self._lock:
            self.calls.append((op, *args))
            pending = self.fail_next.get(op)
            error = pending.pop(0) if pending else None
        if op in self.delay:
            time.sleep(self.delay[op])
        if error is not None:
            raise error

    def calls_to(self, op: str) -> list[tuple]:
        return [call for call in self.calls if call[0] == op]

    @property
    def writes(self) -> list[tuple]:
        return [call for call in self.calls if call[0] in WRITE_OPS]

    def write_units(self, alias: str) -> list[str]:
        return sorted(
            name
            for name, unit in self.units.items()
            if unit["aliases"].get(alias, {}).get("is_write_index") is True
        )

    def add_unit(self, name: str, aliases: dict | None = None) -> None:
        self.units[name] = {"aliases": copy.deepcopy(aliases or {}), "settings": {}}

    # ── store interface ────────────────────────────────────────

    def lifecycle_policy_exists(self, name):
        self._record("lifecycle_policy_exists", name)
        return name in self.policies

    def put_lifecycle_policy(self, name, payload):
        self._record("put_lifecycle_policy", name)
        self.policies[name] = copy.deepcopy(payload)

    def get_template(self, name):
        self._record("get_template", name)
        return self.templates.get(name)

    def install_template(self, name, payload):
        self._record("install_template", name)
        self.templates[name] = copy.deepcopy(payload)

    def alias_exists(self, name):
        self._record("alias_exists", name)
        return any(name in unit["aliases"] for unit in self.units.values())

    def create_unit(self, name, payload):
        self._record("create_unit", name)
        with self._lock:
            if name in self.units:
                raise RequestError(
                    400,
                    "resource_already_exists_exception",
                    {"error": {"type": "resource_already_exists_exception"}},
                )
            self.units[name] = {
                "aliases": copy.deepcopy(payload.get("aliases", {})),
                "settings": copy.deepcopy(payload.get("settings", {})),
            }

    def get_unit_raw(self, name):
        self._record("get_unit_raw", name)
        if name in self.units:
            return {name: copy.deepcopy(self.units[name])}
        behind_alias = {
            index: copy.deepcopy(unit)
            for index, unit in self.units.items()
            if name in unit["aliases"]
        }
        return behind_alias or None

    def delete_unit(self, name):
        self._record("delete_unit", name)
        if name not in self.units:
            raise NotFoundError(404, "index_not_found_exception", {})
        del self.units[name]

    def get_write_unit_for_alias(self, alias):
        self._record("get_write_unit_for_alias", alias)
        writers = self.write_units(alias)
        return writers[0] if writers else None

    def list_units_matching(self, pattern):
        self._record("list_units_matching", pattern)
        return sorted(name for name in self.units if fnmatch.fnmatchcase(name, pattern))

    def atomic_alias_swap(self, remove_from, add_to, alias):
        self._record("atomic_alias_swap", remove_from, add_to, alias)
        with self._lock:
            if remove_from not in self.units or add_to not in self.units:
                raise NotFoundError(404, "index_not_found_exception", {})
            self.units[remove_from]["aliases"][alias] = {"is_write_index": False}
            self.units[add_to]["aliases"][alias] = {"is_write_index": True}


class Clock:
    def __init__(self, today: date):
        self.today = today

    def __call__(self) -> date:
        return self.today


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def clock() -> Clock:
    return Clock(date(2025, 1, 1))


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def settings() -> IlmSettings:
    return IlmSettings(wait_interval=0.01, cleanup_pause=0)
