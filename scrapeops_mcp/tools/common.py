from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional, Sequence

import aiohttp

from scrapeops_mcp.errors import GatewayError

logger = logging.getLogger(__name__)

# Всё, чем может закончиться вызов анализатора. ValueError = тело 2xx не разобралось как JSON.
ANALYZER_FAILURES: tuple[type[BaseException], ...] = (
    GatewayError,
    aiohttp.ClientError,
    asyncio.TimeoutError,
    ValueError,
)

PARSER_UNAVAILABLE = "Ensure the parser service is running and accessible"
VERIFY_API_KEY = "Verify your API key is valid"
TRY_DIFFERENT_URL = "Try again with a different URL"

DEFAULT_RECOMMENDATIONS: tuple[str, ...] = (PARSER_UNAVAILABLE, VERIFY_API_KEY, TRY_DIFFERENT_URL)


def analyzer_failure(
    url: str,
    action: str,
    exc: BaseException,
    *,
    recommendations: Optional[Sequence[str]] = DEFAULT_RECOMMENDATIONS,
) -> dict[str, Any]:
    """
    Конверт ошибки для инструментов поверх анализатора.
    recommendations=None -> ключа нет в ответе.
    """
    logger.error("[tools] %s failed url=%s error=%s", action, url, exc)
    response: dict[str, Any] = {
        "success": False,
        "url": url,
        "error": f"Failed to {action}: {exc}",
    }
    if recommendations is not None:
        response["recommendations"] = list(recommendations)
    return response
