from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

import aiohttp

from scrapeops_mcp.errors import ErrorKind, classify_status, error_message

logger = logging.getLogger(__name__)

# Исключения транспортного уровня: на них действует правило "один повтор".
TRANSPORT_ERRORS: tuple[type[BaseException], ...] = (aiohttp.ClientError, asyncio.TimeoutError, OSError)


@dataclass(frozen=True)
class TransportResponse:
    """Сырой ответ прокси, уже прочитанный из сокета."""
    status: int
    content_type: str
    text: str


@dataclass(frozen=True)
class RequestResult:
    """
    Терминальное состояние RetryPolicy.
    Если success=False, заполнены error/error_kind.
    """
    success: bool
    data: Any = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    status_code: Optional[int] = None
    retries_attempted: int = 0


def _parse_body(response: TransportResponse, expect_json: bool) -> Any:
    """JSON, если он заявлен; битый JSON деградирует до текста."""
    if "application/json" in (response.content_type or "").lower() or expect_json:
        try:
            return json.loads(response.text)
        except ValueError as exc:
            logger.warning("[retry] JSON body could not be parsed, returning raw text: %s", exc)
    return response.text


class RetryPolicy:
    """
    Ограниченный повтор вызова прокси.

    - 401 не повторяется никогда;
    - повторяется только 500, с экспоненциальным backoff, в пределах max_attempts;
    - сетевое исключение повторяется ровно один раз, независимо от бюджета;
    - остальные коды сразу дают терминальную ошибку.
    """

    def __init__(
        self,
        max_attempts: int,
        initial_delay_s: float,
        *,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        transport_errors: tuple[type[BaseException], ...] = TRANSPORT_ERRORS,
    ) -> None:
        self._max_attempts = max(1, int(max_attempts))
        self._initial_delay_s = max(0.0, float(initial_delay_s))
        self._sleep = sleep
        self._transport_errors = transport_errors

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    async def execute(
        self,
        call: Callable[[], Awaitable[TransportResponse]],
        *,
        expect_json: bool = False,
        label: str = "",
    ) -> RequestResult:
        attempt = 0
        delay_s = self._initial_delay_s

        while True:
            try:
                response = await call()
            except self._transport_errors as exc:
                if attempt < 1:
                    logger.warning("[retry] %s network error: %s, retrying once in %.2fs", label, exc, delay_s)
                    await self._sleep(delay_s)
                    attempt += 1
                    continue
                logger.warning("[retry] %s network error after %s retries: %s", label, attempt, exc)
                return RequestResult(
                    success=False,
                    error=f"Network error: {exc}",
                    error_kind=ErrorKind.NETWORK_ERROR,
                    retries_attempted=attempt,
                )

            status = response.status
            if not 200 <= status < 300:
                kind = classify_status(status)
                logger.warning(
                    "[retry] %s failed with status %s (%s) attempt=%s/%s",
                    label,
                    status,
                    kind.value,
                    attempt + 1,
                    self._max_attempts,
                )

                if kind is ErrorKind.AUTH_FAILED:
                    return RequestResult(
                        success=False,
                        error=error_message(kind, status),
                        error_kind=kind,
                        status_code=status,
                        retries_attempted=attempt,
                    )

                if status == 500 and attempt < self._max_attempts - 1:
                    logger.info(
                        "[retry] %s HTTP 500, retrying in %.2fs (attempt %s/%s)",
                        label,
                        delay_s,
                        attempt + 1,
                        self._max_attempts,
                    )
                    await self._sleep(delay_s)
                    delay_s *= 2
                    attempt += 1
                    continue

                return RequestResult(
                    success=False,
                    error=error_message(kind, status),
                    error_kind=kind,
                    status_code=status,
                    retries_attempted=attempt,
                )

            return RequestResult(
                success=True,
                data=_parse_body(response, expect_json),
                status_code=status,
                retries_attempted=attempt,
            )
