from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Mapping, Optional, Protocol

from scrapeops_mcp.analyzer import AnalyzerClient
from scrapeops_mcp.errors import MissingApiKeyError
from scrapeops_mcp.http import HttpClient
from scrapeops_mcp.proxy import ProxyClient
from scrapeops_mcp.retry import RequestResult, RetryPolicy
from scrapeops_mcp.settings import Settings

logger = logging.getLogger(__name__)


class Proxy(Protocol):
    async def fetch(self, params: Mapping[str, Any], *, expect_json: bool = False) -> RequestResult:
        """GET к прокси с политикой повторов."""


class Analyzer(Protocol):
    async def web_analyzer(self, url: str, **flags: bool) -> Mapping[str, Any]: ...

    async def determine_page_type(self, url: str, html_content: str, *, label: str | None = None) -> Mapping[str, Any]: ...

    async def css_selector_stability(self, url: str) -> Mapping[str, Any]: ...

    async def data_schema(self, page_type: str) -> Mapping[str, Any]: ...


@dataclass(slots=True)
class ToolContext:
    """
    Контекст одного вызова инструмента.

    Ничего не переживает вызов: сессия, Evidence и конверты создаются заново.
    """

    proxy: Proxy
    analyzer: Analyzer


def build_retry_policy(settings: Settings) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=settings.retry.max_attempts,
        initial_delay_s=settings.retry.initial_delay_ms / 1000.0,
    )


@asynccontextmanager
async def open_tool_context(settings: Settings, http: HttpClient, api_key: str) -> AsyncIterator[ToolContext]:
    """Открывает aiohttp-сессию на время вызова и собирает клиентов прокси и анализатора."""
    async with http.create_session() as session:
        yield ToolContext(
            proxy=ProxyClient(http, session, settings.backend.proxy_url, api_key, build_retry_policy(settings)),
            analyzer=AnalyzerClient(http, session, settings.backend.parser_url, api_key),
        )
    logger.debug("[context] tool session closed")


API_KEY_HEADERS = ("scrapeops-api-key", "scrapeops_api_key")


def resolve_api_key(headers: Optional[Mapping[str, str]], fallback: Optional[str]) -> str:
    """Ключ из заголовка сессии (HTTP-транспорт), иначе из настроек процесса."""
    if headers:
        for name in API_KEY_HEADERS:
            value = headers.get(name)
            if value:
                return value
    if fallback:
        return fallback
    raise MissingApiKeyError()
