from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Mapping, Optional

import aiohttp
from aiolimiter import AsyncLimiter

from scrapeops_mcp.errors import AnalyzerError, AnalyzerTimeoutError
from scrapeops_mcp.retry import TransportResponse

logger = logging.getLogger(__name__)

USER_AGENT = "ScrapeOps-MCP/mcp-scrapeops"


class HttpClient:
    """
    HTTP-клиент шлюза.

    Основные особенности:
    - Глобальный лимит RPS (через AsyncLimiter), общий для всех вызовов инструментов.
    - Отдельные таймауты для прокси (долгий рендеринг) и для анализатора.
    - Пул соединений aiohttp (TCPConnector) с DNS cache и keepalive.
    - Повторы здесь не делаются: ими управляет RetryPolicy.

    Важно:
    - Сессию создавайте через create_session(): на каждый вызов инструмента своя сессия.
    """

    def __init__(
        self,
        rps: float,
        proxy_timeout_s: int,
        analyzer_timeout_ms: int,
        *,
        # --- Таймауты ---
        connect_timeout_s: Optional[float] = 30.0,
        # --- Пул соединений ---
        pool_limit: int = 50,
        pool_limit_per_host: int = 20,
        dns_cache_ttl_s: int = 300,
        keepalive_timeout_s: int = 20,
    ) -> None:
        self._limiter = AsyncLimiter(max_rate=rps, time_period=1.0)

        self._proxy_timeout_s = int(proxy_timeout_s)
        self._analyzer_timeout_ms = int(analyzer_timeout_ms)
        self._connect_timeout_s = connect_timeout_s

        self._pool_limit = int(pool_limit)
        self._pool_limit_per_host = int(pool_limit_per_host)
        self._dns_cache_ttl_s = int(dns_cache_ttl_s)
        self._keepalive_timeout_s = int(keepalive_timeout_s)

        self._proxy_timeout = aiohttp.ClientTimeout(total=self._proxy_timeout_s, connect=self._connect_timeout_s)
        self._analyzer_timeout = aiohttp.ClientTimeout(total=self._analyzer_timeout_ms / 1000.0)

        logger.info(
            "HttpClient init rps=%s proxy_timeout_s=%s analyzer_timeout_ms=%s connect=%s pool_limit=%s per_host=%s",
            rps,
            self._proxy_timeout_s,
            self._analyzer_timeout_ms,
            self._connect_timeout_s,
            self._pool_limit,
            self._pool_limit_per_host,
        )

    @property
    def analyzer_timeout_ms(self) -> int:
        return self._analyzer_timeout_ms

    def build_connector(self) -> aiohttp.TCPConnector:
        return aiohttp.TCPConnector(
            limit=self._pool_limit,
            limit_per_host=self._pool_limit_per_host,
            ttl_dns_cache=self._dns_cache_ttl_s,
            keepalive_timeout=self._keepalive_timeout_s,
        )

    def create_session(self) -> aiohttp.ClientSession:
        """
        ClientSession с пулом и таймаутом прокси по умолчанию.

        Использование:
            async with http.create_session() as session:
                resp = await http.get(session, url, params=...)
        """
        return aiohttp.ClientSession(
            connector=self.build_connector(),
            timeout=self._proxy_timeout,
            headers={"User-Agent": USER_AGENT},
        )

    @staticmethod
    def classify_error(exc: BaseException) -> str:
        """
        Нормализация сетевых ошибок в стабильные коды для логов.
        В ответ инструмента они не попадают: там работает ErrorKind.
        """
        if isinstance(exc, asyncio.TimeoutError):
            return "timeout_total"
        if isinstance(exc, aiohttp.ClientSSLError):
            return "tls_error"
        if isinstance(exc, aiohttp.ClientConnectorError):
            inner = getattr(exc, "os_error", None)
            if inner is not None:
                name = inner.__class__.__name__.lower()
                if "gaierror" in name:
                    return "dns_error"
                if "connectionrefusederror" in name:
                    return "connection_refused"
            return "connect_error"
        if isinstance(exc, aiohttp.InvalidURL):
            return "invalid_url"
        if isinstance(exc, aiohttp.ClientError):
            return "client_error"
        return "unknown_error"

    async def get(
        self,
        session: aiohttp.ClientSession,
        url: str,
        *,
        params: Optional[Mapping[str, str]] = None,
        log_url: Optional[str] = None,
    ) -> TransportResponse:
        """
        Один GET к прокси. Сетевые исключения пробрасываются наверх (их обрабатывает RetryPolicy).
        log_url: что писать в лог вместо полного URL (в query лежит api_key).
        """
        shown = log_url or url
        async with self._limiter:
            t0 = time.monotonic()
            try:
                async with session.get(url, params=params, timeout=self._proxy_timeout) as resp:
                    text = await resp.text(errors="replace")
                    elapsed_ms = int((time.monotonic() - t0) * 1000)
                    logger.debug(
                        "HTTP GET %s -> %s elapsed=%sms bytes=%s",
                        shown,
                        resp.status,
                        elapsed_ms,
                        len(text),
                    )
                    return TransportResponse(
                        status=resp.status,
                        content_type=resp.headers.get("Content-Type", ""),
                        text=text,
                    )
            except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
                logger.warning(
                    "HTTP GET %s failed reason=%s elapsed=%sms error=%s",
                    shown,
                    self.classify_error(exc),
                    int((time.monotonic() - t0) * 1000),
                    exc,
                )
                raise

    async def post_json(
        self,
        session: aiohttp.ClientSession,
        url: str,
        *,
        label: str,
        payload: Mapping[str, Any],
        headers: Optional[Mapping[str, str]] = None,
        params: Optional[Mapping[str, str]] = None,
    ) -> Any:
        """
        POST к анализатору с JSON-телом и ограниченным таймаутом.

        - истечение таймаута -> AnalyzerTimeoutError ("<label> timed out after <n>ms");
        - не-2xx -> AnalyzerError с кодом и текстом ответа;
        - прочие сетевые ошибки пробрасываются как есть.
        """
        req_headers = {"Content-Type": "application/json"}
        if headers:
            req_headers.update(headers)

        async with self._limiter:
            t0 = time.monotonic()
            try:
                async with session.post(
                    url,
                    json=dict(payload),
                    headers=req_headers,
                    params=params,
                    timeout=self._analyzer_timeout,
                ) as resp:
                    if not 200 <= resp.status < 300:
                        body = await resp.text(errors="replace")
                        logger.warning("[analyzer] %s -> HTTP %s", label, resp.status)
                        raise AnalyzerError(label, resp.status, body)
                    data = await resp.json(content_type=None)
                    logger.debug(
                        "[analyzer] %s -> %s elapsed=%sms",
                        label,
                        resp.status,
                        int((time.monotonic() - t0) * 1000),
                    )
                    return data
            except asyncio.TimeoutError as exc:
                logger.warning("[analyzer] %s timed out after %sms", label, self._analyzer_timeout_ms)
                raise AnalyzerTimeoutError(label, self._analyzer_timeout_ms) from exc
