from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

import aiohttp

from scrapeops_mcp.http import HttpClient

logger = logging.getLogger(__name__)

WEB_ANALYZER_PATH = "web-analyzer"
PAGE_TYPE_PATH = "determine-page-type"
SELECTOR_STABILITY_PATH = "web-analyzer/css-selector-stability"
DATA_SCHEMA_PATH = "web-analyzer/data-schema"

WEB_ANALYZER_FLAGS = ("protections", "data_extraction", "legal", "resources")


class AnalyzerClient:
    """
    Обёртки над эндпоинтами сервиса-анализатора.
    Ключ передаётся заголовком Api_key; web-analyzer дополнительно принимает его в query.
    """

    def __init__(self, http: HttpClient, session: aiohttp.ClientSession, base_url: str, api_key: str) -> None:
        self._http = http
        self._session = session
        self._base_url = base_url
        self._api_key = api_key

    def _headers(self) -> dict[str, str]:
        return {"Api_key": self._api_key}

    async def web_analyzer(
        self,
        url: str,
        *,
        protections: bool = False,
        data_extraction: bool = False,
        legal: bool = False,
        resources: bool = False,
    ) -> Mapping[str, Any]:
        flags = {"protections": protections, "data_extraction": data_extraction, "legal": legal, "resources": resources}
        params = {"api_key": self._api_key, "url": url}
        params.update({name: "true" for name, enabled in flags.items() if enabled})

        logger.info(
            "[analyzer] web-analyzer url=%s flags=%s",
            url,
            [name for name in WEB_ANALYZER_FLAGS if flags[name]],
        )
        data = await self._http.post_json(
            self._session,
            self._base_url + WEB_ANALYZER_PATH,
            label="Web analyzer request",
            payload={"url": url},
            headers=self._headers(),
            params=params,
        )
        return data if isinstance(data, Mapping) else {}

    async def determine_page_type(self, url: str, html_content: str, *, label: Optional[str] = None) -> Mapping[str, Any]:
        logger.info("[analyzer] determine-page-type url=%s html_len=%s", url, len(html_content))
        data = await self._http.post_json(
            self._session,
            self._base_url + PAGE_TYPE_PATH,
            label=label or "Page type classification (determine-page-type)",
            payload={"url": url, "html_content": html_content},
            headers=self._headers(),
        )
        return data if isinstance(data, Mapping) else {}

    async def css_selector_stability(self, url: str) -> Mapping[str, Any]:
        logger.info("[analyzer] css-selector-stability url=%s", url)
        data = await self._http.post_json(
            self._session,
            self._base_url + SELECTOR_STABILITY_PATH,
            label="CSS selector stability request",
            payload={"url": url},
            headers=self._headers(),
        )
        return data if isinstance(data, Mapping) else {}

    async def data_schema(self, page_type: str) -> Mapping[str, Any]:
        logger.info("[analyzer] data-schema page_type=%s", page_type)
        data = await self._http.post_json(
            self._session,
            self._base_url + DATA_SCHEMA_PATH,
            label="Data schema request",
            payload={"page_type": page_type},
            headers=self._headers(),
        )
        return data if isinstance(data, Mapping) else {}
