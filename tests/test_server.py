import asyncio
import json

import pytest

from scrapeops_mcp import server
from scrapeops_mcp.errors import MissingApiKeyError
from scrapeops_mcp.settings import BackendSettings, HttpSettings, RetrySettings, RuntimeSettings, Settings
from scrapeops_mcp.tools import resolve_api_key


def _settings(api_key=None, port=None) -> Settings:
    return Settings(
        runtime=RuntimeSettings(api_key=api_key, host="127.0.0.1", port=port, log_level="INFO"),
        backend=BackendSettings(proxy_url="http://proxy.test/", parser_url="http://parser.test/"),
        retry=RetrySettings(max_attempts=1, initial_delay_ms=0),
        http=HttpSettings(rps=100.0, proxy_timeout_s=5, analyzer_timeout_ms=1000),
    )


def test_render_passes_text_through() -> None:
    assert server.render("<html>ok</html>") == "<html>ok</html>"


def test_render_dumps_json_with_indent() -> None:
    rendered = server.render({"success": True, "name": "Café"})

    assert json.loads(rendered) == {"success": True, "name": "Café"}
    assert '\n  "success": true' in rendered
    assert "Café" in rendered


def test_header_key_wins_over_env() -> None:
    assert resolve_api_key({"scrapeops-api-key": "from-header"}, "from-env") == "from-header"
    assert resolve_api_key({"scrapeops_api_key": "underscored"}, None) == "underscored"


def test_env_key_used_without_header() -> None:
    assert resolve_api_key({}, "from-env") == "from-env"
    assert resolve_api_key(None, "from-env") == "from-env"


def test_missing_key_raises() -> None:
    with pytest.raises(MissingApiKeyError):
        resolve_api_key({"scrapeops-api-key": ""}, None)


def test_missing_key_becomes_error_payload(monkeypatch) -> None:
    # После теста глобальное состояние откатится.
    monkeypatch.setattr(server, "_state", None)
    server.configure_server(_settings(api_key=None))

    async def handler(ctx):
        raise AssertionError("handler must not run without an API key")

    rendered = asyncio.run(server._call("maps_web", "https://example.com", None, handler))
    payload = json.loads(rendered)

    assert payload["success"] is False
    assert payload["url"] == "https://example.com"
    assert "SCRAPEOPS_API_KEY" in payload["error"]


def test_unconfigured_server_fails_loudly(monkeypatch) -> None:
    monkeypatch.setattr(server, "_state", None)

    with pytest.raises(RuntimeError):
        server._require_state()


def test_parser_defaults() -> None:
    args = server.build_parser().parse_args([])

    assert args.config == "config.yaml"
    assert args.transport is None
    assert server.build_parser().parse_args(["--transport", "streamable-http"]).transport == "streamable-http"
