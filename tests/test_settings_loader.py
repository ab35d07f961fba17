from pathlib import Path

import pytest
import yaml

from scrapeops_mcp.settings.loader import DEFAULT_PARSER_URL, DEFAULT_PROXY_URL, load_settings

_ENV_VARS = (
    "APP_CONFIG_PATH",
    "SCRAPEOPS_API_KEY",
    "SCRAPEOPS_PROXY_URL",
    "SCRAPEOPS_PARSER_URL",
    "SCRAPEOPS_RETRY_MAX_ATTEMPTS",
    "SCRAPEOPS_RETRY_INITIAL_DELAY",
    "PORT",
    "HOST",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def _write_config(tmp_path: Path, data) -> Path:
    config_path = tmp_path / "config.yaml"
    config_path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return config_path


def test_defaults_without_yaml(tmp_path: Path) -> None:
    settings = load_settings(str(tmp_path / "absent.yaml"))

    assert settings.runtime.api_key is None
    assert settings.runtime.port is None
    assert settings.backend.proxy_url == DEFAULT_PROXY_URL
    assert settings.backend.parser_url == DEFAULT_PARSER_URL
    assert settings.retry.max_attempts == 1
    assert settings.retry.initial_delay_ms == 1000
    assert settings.http.analyzer_timeout_ms == 120_000


def test_yaml_values_are_read(monkeypatch, tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path,
        {
            "http": {"rps": 2.5, "proxy_timeout_s": 60, "analyzer_timeout_ms": 5000},
            "retry": {"max_attempts": 3, "initial_delay_ms": 200},
            "backend": {"proxy_url": "http://localhost:9000/proxy"},
        },
    )
    monkeypatch.setenv("APP_CONFIG_PATH", str(config_path))

    settings = load_settings()

    assert settings.http.rps == 2.5
    assert settings.http.proxy_timeout_s == 60
    assert settings.http.analyzer_timeout_ms == 5000
    assert settings.retry.max_attempts == 3
    assert settings.retry.initial_delay_ms == 200
    # Слэш в конце добавляется автоматически.
    assert settings.backend.proxy_url == "http://localhost:9000/proxy/"


def test_env_overrides_yaml(monkeypatch, tmp_path: Path) -> None:
    config_path = _write_config(tmp_path, {"retry": {"max_attempts": 3, "initial_delay_ms": 200}})
    monkeypatch.setenv("APP_CONFIG_PATH", str(config_path))
    monkeypatch.setenv("SCRAPEOPS_RETRY_MAX_ATTEMPTS", "5")
    monkeypatch.setenv("SCRAPEOPS_RETRY_INITIAL_DELAY", "50")
    monkeypatch.setenv("SCRAPEOPS_PARSER_URL", "http://parser.local")
    monkeypatch.setenv("SCRAPEOPS_API_KEY", "secret")
    monkeypatch.setenv("PORT", "8080")

    settings = load_settings()

    assert settings.retry.max_attempts == 5
    assert settings.retry.initial_delay_ms == 50
    assert settings.backend.parser_url == "http://parser.local/"
    assert settings.runtime.api_key == "secret"
    assert settings.runtime.port == 8080


def test_max_attempts_below_one_is_rejected(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("SCRAPEOPS_RETRY_MAX_ATTEMPTS", "0")

    with pytest.raises(ValueError):
        load_settings(str(tmp_path / "absent.yaml"))


def test_non_integer_env_is_rejected(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("SCRAPEOPS_RETRY_INITIAL_DELAY", "soon")

    with pytest.raises(ValueError):
        load_settings(str(tmp_path / "absent.yaml"))


def test_explicit_missing_config_path_fails(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("APP_CONFIG_PATH", str(tmp_path / "nope.yaml"))

    with pytest.raises(FileNotFoundError):
        load_settings()


def test_malformed_yaml_fails(monkeypatch, tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text("http: [unclosed\n", encoding="utf-8")
    monkeypatch.setenv("APP_CONFIG_PATH", str(config_path))

    with pytest.raises(yaml.YAMLError):
        load_settings()


def test_invalid_section_type_fails(monkeypatch, tmp_path: Path) -> None:
    config_path = _write_config(tmp_path, {"retry": "fast"})
    monkeypatch.setenv("APP_CONFIG_PATH", str(config_path))

    with pytest.raises(KeyError):
        load_settings()
