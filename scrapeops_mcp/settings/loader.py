from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_PROXY_URL = "https://proxy.scrapeops.io/v1/"
DEFAULT_PARSER_URL = "https://parser.scrapeops.io/v1/"


# -----------------------------
# Models
# -----------------------------

@dataclass(frozen=True)
class RuntimeSettings:
    api_key: str | None
    host: str
    port: int | None
    log_level: str


@dataclass(frozen=True)
class BackendSettings:
    proxy_url: str
    parser_url: str


@dataclass(frozen=True)
class RetrySettings:
    max_attempts: int
    initial_delay_ms: int


@dataclass(frozen=True)
class HttpSettings:
    rps: float
    proxy_timeout_s: int
    analyzer_timeout_ms: int


@dataclass(frozen=True)
class Settings:
    runtime: RuntimeSettings
    backend: BackendSettings
    retry: RetrySettings
    http: HttpSettings


# -----------------------------
# Helpers
# -----------------------------

def _get_int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        logger.debug("ENV %s not set -> default=%s", name, default)
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        logger.error("ENV %s=%r is not an integer", name, raw)
        raise
    logger.debug("ENV %s=%r -> %s", name, raw, value)
    return value


def _read_yaml(path: str, *, required: bool) -> dict:
    """
    Читает YAML-файл настроек.

    Файл необязателен: сервер должен стартовать только на ENV.
    Если путь задан явно (APP_CONFIG_PATH) и файла нет, это ошибка конфигурации.
    """
    p = Path(path)
    if not p.exists():
        if required:
            logger.error("YAML config not found: %s", path)
            raise FileNotFoundError(path)
        logger.debug("YAML config %s absent, using defaults", path)
        return {}

    try:
        content = p.read_text(encoding="utf-8")
        logger.debug("YAML config read: %s bytes", len(content))
        data = yaml.safe_load(content) or {}
    except yaml.YAMLError as exc:
        logger.error("YAML parse error: %s", exc)
        raise

    if not isinstance(data, dict):
        logger.error("YAML config root must be a mapping, got %s", type(data).__name__)
        raise ValueError("config root must be a mapping")
    return data


def _optional_dict(data: dict, key: str) -> dict:
    v = data.get(key)
    if v is None:
        return {}
    if not isinstance(v, dict):
        logger.error("Config section '%s' is not a dict", key)
        raise KeyError(f"invalid section: {key}")
    return v


def _ensure_trailing_slash(url: str) -> str:
    return url if url.endswith("/") else url + "/"


# -----------------------------
# Public API
# -----------------------------

def load_settings(default_yaml_path: str = "config.yaml") -> Settings:
    """
    Единая точка загрузки настроек. Вызывается один раз при старте процесса,
    дальше Settings передаётся компонентам явно.

    Runtime (ENV):
      SCRAPEOPS_API_KEY, HOST, PORT, LOG_LEVEL

    Backend / retry (ENV, приоритетнее YAML):
      SCRAPEOPS_PROXY_URL, SCRAPEOPS_PARSER_URL,
      SCRAPEOPS_RETRY_MAX_ATTEMPTS, SCRAPEOPS_RETRY_INITIAL_DELAY (мс)

    YAML (необязательный):
      http.rps, http.proxy_timeout_s, http.analyzer_timeout_ms,
      retry.max_attempts, retry.initial_delay_ms
    """
    load_dotenv()

    # ---- yaml ----
    explicit_path = os.getenv("APP_CONFIG_PATH")
    yaml_path = explicit_path or default_yaml_path
    data = _read_yaml(yaml_path, required=bool(explicit_path))
    http_section = _optional_dict(data, "http")
    retry_section = _optional_dict(data, "retry")
    backend_section = _optional_dict(data, "backend")

    # ---- runtime (ENV) ----
    api_key = os.getenv("SCRAPEOPS_API_KEY") or None
    if api_key is None:
        # Ключ может прийти заголовком в HTTP-сессии, поэтому это не фатально.
        logger.warning("SCRAPEOPS_API_KEY is not set; requests must supply the scrapeops-api-key header")

    port_raw = os.getenv("PORT")
    port = int(port_raw) if port_raw and port_raw.strip() else None

    runtime = RuntimeSettings(
        api_key=api_key,
        host=os.getenv("HOST", "0.0.0.0"),
        port=port,
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )

    # ---- backend ----
    proxy_url = os.getenv("SCRAPEOPS_PROXY_URL") or backend_section.get("proxy_url") or DEFAULT_PROXY_URL
    parser_url = os.getenv("SCRAPEOPS_PARSER_URL") or backend_section.get("parser_url") or DEFAULT_PARSER_URL
    backend = BackendSettings(
        proxy_url=_ensure_trailing_slash(str(proxy_url)),
        parser_url=_ensure_trailing_slash(str(parser_url)),
    )

    # ---- retry ----
    max_attempts = _get_int_env("SCRAPEOPS_RETRY_MAX_ATTEMPTS", int(retry_section.get("max_attempts", 1)))
    if max_attempts < 1:
        logger.error("retry max_attempts must be >= 1, got %s", max_attempts)
        raise ValueError("retry max_attempts must be >= 1")

    initial_delay_ms = _get_int_env("SCRAPEOPS_RETRY_INITIAL_DELAY", int(retry_section.get("initial_delay_ms", 1000)))
    if initial_delay_ms < 0:
        logger.error("retry initial_delay_ms must be >= 0, got %s", initial_delay_ms)
        raise ValueError("retry initial_delay_ms must be >= 0")

    retry = RetrySettings(max_attempts=max_attempts, initial_delay_ms=initial_delay_ms)

    # ---- http ----
    http = HttpSettings(
        rps=float(http_section.get("rps", 10.0)),
        proxy_timeout_s=int(http_section.get("proxy_timeout_s", 180)),
        analyzer_timeout_ms=int(http_section.get("analyzer_timeout_ms", 120_000)),
    )
    if http.rps <= 0:
        logger.error("http.rps must be > 0")
        raise ValueError("http.rps must be > 0")

    logger.info(
        "Settings loaded: proxy_url=%s parser_url=%s retry_max_attempts=%s retry_initial_delay_ms=%s "
        "rps=%s analyzer_timeout_ms=%s port=%s api_key_set=%s",
        backend.proxy_url,
        backend.parser_url,
        retry.max_attempts,
        retry.initial_delay_ms,
        http.rps,
        http.analyzer_timeout_ms,
        runtime.port,
        api_key is not None,
    )
    return Settings(runtime=runtime, backend=backend, retry=retry, http=http)
