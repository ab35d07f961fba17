from __future__ import annotations

import logging
from typing import Any, Mapping

import aiohttp

from scrapeops_mcp.http import HttpClient
from scrapeops_mcp.params import encode_query
from scrapeops_mcp.retry import RequestResult, RetryPolicy

logger = logging.getLogger(__name__)


class ProxyClient:
    """GET к прокси через RetryPolicy. Возвращает RequestResult, не бросает исключений транспорта."""

    def __init__(
        self,
        http: HttpClient,
        session: aiohttp.ClientSession,
        base_url: str,
        api_key: str,
        policy: RetryPolicy,
    ) -> None:
        self._http = http
        self._session = session
        self._base_url = base_url
        self._api_key = api_key
        self._policy = policy

    async def fetch(self, params: Mapping[str, Any], *, expect_json: bool = False) -> RequestResult:
        target = str(params.get("url") or "")
        query = encode_query({"url": target, "api_key": self._api_key, **params})
        logger.info(
            "[proxy] request url=%s params=%s",
            target,
            sorted(k for k in params if k != "url"),
        )

        async def call():
            return await self._http.get(self._session, self._base_url, params=query, log_url=target)

        result = await self._policy.execute(
            call,
            expect_json=expect_json or bool(params.get("json_response")),
            label=target,
        )
        logger.info(
            "[proxy] done url=%s success=%s status=%s retries=%s",
            target,
            result.success,
            result.status_code,
            result.retries_attempted,
        )
        return result
