from __future__ import annotations

import pytest

from dynamic_ilm.connection_settings import ConnectionConfig, load_config
from dynamic_ilm.settings import IlmSettings, load_settings


def test_load_config_env_parsing(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DYNAMIC_ILM_HOST", "es.internal")
    monkeypatch.setenv("DYNAMIC_ILM_PORT", "9243")
    monkeypatch.setenv("DYNAMIC_ILM_USER", "u")
    monkeypatch.setenv("DYNAMIC_ILM_PASSWORD", "p")
    monkeypatch.setenv("DYNAMIC_ILM_USE_SSL", "yes")
    monkeypatch.setenv("DYNAMIC_ILM_VERIFY_CERTS", "no")
    monkeypatch.setenv("DYNAMIC_ILM_RETRY_ON_TIMEOUT", "on")
    monkeypatch.setenv("DYNAMIC_ILM_HTTP_COMPRESS", "off")
    monkeypatch.setenv("DYNAMIC_ILM_TIMEOUT", "99")
    monkeypatch.setenv("DYNAMIC_ILM_MAX_RETRIES", "5")

    cfg = load_config()

    assert cfg.host == "es.internal"
    assert cfg.port == 9243
    assert cfg.http_auth == ("u", "p")
    assert cfg.use_ssl is True
    assert cfg.verify_certs is False
    assert cfg.retry_on_timeout is True
    assert cfg.http_compress is False
    assert cfg.timeout == 99
    assert cfg.max_retries == 5


def test_invalid_bool_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DYNAMIC_ILM_USE_SSL", "maybe")
    with pytest.raises(ValueError):
        load_config()


def test_unknown_override_key_raises() -> None:
    with pytest.raises(TypeError):
        load_config(not_a_real_key=True)


def test_hosts_property_uses_scheme() -> None:
    cfg = ConnectionConfig(host="localhost", port=9200, use_ssl=False)
    assert cfg.hosts == [{"host": "localhost", "port": 9200, "scheme": "http"}]


def test_settings_defaults_have_rollover_conditions() -> None:
    cfg = IlmSettings()
    assert cfg.rollover_conditions == {"max_age": "1d", "max_size": "50gb"}
    assert cfg.wait_attempts == 50
    assert cfg.anomaly_reset_threshold == 10


def test_load_settings_env_parsing(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DYNAMIC_ILM_ROLLOVER_MAX_AGE", "7d")
    monkeypatch.setenv("DYNAMIC_ILM_ROLLOVER_MAX_SIZE", "")
    monkeypatch.setenv("DYNAMIC_ILM_ROLLOVER_MAX_DOCS", "1000")
    monkeypatch.setenv("DYNAMIC_ILM_DELETE_ENABLED", "true")
    monkeypatch.setenv("DYNAMIC_ILM_DELETE_MIN_AGE", "30d")
    monkeypatch.setenv("DYNAMIC_ILM_ES_MAJOR_VERSION", "7")
    monkeypatch.setenv("DYNAMIC_ILM_WAIT_INTERVAL", "0.5")

    cfg = load_settings()

    assert cfg.rollover_conditions == {"max_age": "7d", "max_docs": 1000}
    assert cfg.delete_enabled is True
    assert cfg.delete_min_age == "30d"
    assert cfg.es_major_version == 7
    assert cfg.wait_interval == 0.5


def test_load_settings_overrides_win(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DYNAMIC_ILM_HOT_PRIORITY", "10")
    cfg = load_settings(hot_priority=99)
    assert cfg.hot_priority == 99

    with pytest.raises(TypeError):
        load_settings(unknown=True)
