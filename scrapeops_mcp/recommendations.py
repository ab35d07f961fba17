from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from scrapeops_mcp.errors import ErrorKind

logger = logging.getLogger(__name__)

# Параметры, которые стоят дополнительных кредитов.
ADVANCED_PARAMS: tuple[str, ...] = (
    "render_js",
    "residential",
    "mobile",
    "premium",
    "bypass_level",
    "optimize_request",
)

BASIC_OPTIONS_LABEL = "none (basic request with default settings)"

PERMISSION_MESSAGE = (
    "⚠️ REQUEST FOR PERMISSION: The basic request failed. I can retry with advanced scraping options "
    "that may help, but they will consume more API credits."
)
PERMISSION_QUESTION = "Would you like me to retry with the following advanced options?"
ESTIMATED_ADDITIONAL_COST = "Approximately 10-25 additional credits per request"
PERMISSION_ACTION = (
    'Please confirm by saying "yes, retry with advanced options" or specify which options you want to use.'
)

DIAGNOSTIC_MESSAGE = "Advanced options were already used but the request still failed."
DIAGNOSTIC_CAUSES: tuple[str, ...] = (
    "The target website has very strong anti-bot protection",
    "The URL may be incorrect or the page may not exist",
    "The website may be experiencing issues",
)
DIAGNOSTIC_RECOMMENDATIONS: tuple[str, ...] = (
    "Verify the URL is correct and accessible in a browser",
    "Try a different approach or target URL",
    "Contact ScrapeOps support if the issue persists",
)


def used_advanced_params(used_options: Mapping[str, Any]) -> list[str]:
    """Продвинутые параметры, реально применённые к запросу (значение задано и не False)."""
    used: list[str] = []
    for name in ADVANCED_PARAMS:
        value = used_options.get(name)
        if value is not None and value is not False:
            used.append(name)
    return used


def _user_message(
    kind: ErrorKind,
    *,
    error: str,
    status_code: Optional[int],
    retries_attempted: int,
    used_advanced: list[str],
) -> tuple[str, bool, dict[str, Any]]:
    """
    Возвращает (сообщение, может ли вид ошибки эскалироваться, предлагаемые опции).
    Фактическая допустимость эскалации дополнительно требует базового запроса.
    """
    was_basic = not used_advanced

    if kind is ErrorKind.AUTH_FAILED:
        return "Authentication failed. Please verify your SCRAPEOPS_API_KEY is correct and has not expired.", False, {}

    if kind is ErrorKind.FORBIDDEN:
        if was_basic:
            message = "The target website blocked the request (HTTP 403). This often happens with protected sites."
        else:
            message = f"The request was blocked even with advanced options: {', '.join(used_advanced)}."
        return message, True, {"residential": True, "bypass_level": "generic_level_2"}

    if kind is ErrorKind.RATE_LIMITED:
        return (
            "Rate limited by the target website (HTTP 429). The site is limiting request frequency.",
            True,
            {"residential": True},
        )

    if kind is ErrorKind.NOT_FOUND:
        return "Page not found (HTTP 404). Please verify the URL is correct and the page exists.", False, {}

    if kind is ErrorKind.SERVER_ERROR:
        return (
            f"Server error occurred (HTTP 500). Retried {retries_attempted} time(s) but the issue persists.",
            True,
            {"render_js": True},
        )

    if kind in (ErrorKind.BAD_GATEWAY, ErrorKind.SERVICE_UNAVAILABLE):
        return (
            f"Service temporarily unavailable (HTTP {status_code}). This is usually a temporary issue.",
            False,
            {},
        )

    if kind is ErrorKind.NETWORK_ERROR:
        return "Network connection error. Please check your internet connection and try again.", False, {}

    # unknown: отдаём сырой текст ошибки, предложений нет.
    return error or "An unknown error occurred.", True, {}


def build_error_envelope(
    url: str,
    error: str,
    error_kind: Optional[ErrorKind],
    status_code: Optional[int],
    used_options: Mapping[str, Any],
    retries_attempted: int = 0,
) -> dict[str, Any]:
    """
    Конверт ошибки с "шлюзом согласия".

    Никогда не повторяет запрос сам и не подставляет дорогие опции:
    - базовый запрос + эскалируемая ошибка + есть что предложить -> permission_request;
    - продвинутые опции уже использованы -> diagnostic;
    - иначе ни того, ни другого.
    """
    kind = error_kind or ErrorKind.UNKNOWN
    used_advanced = used_advanced_params(used_options)
    was_basic = not used_advanced

    message, escalatable, suggested = _user_message(
        kind,
        error=error,
        status_code=status_code,
        retries_attempted=retries_attempted,
        used_advanced=used_advanced,
    )
    can_retry_with_advanced = escalatable and was_basic

    envelope: dict[str, Any] = {
        "success": False,
        "url": url,
        "error": message,
        "error_type": kind.value,
    }
    if status_code is not None:
        envelope["status_code"] = status_code
    envelope["retries_attempted"] = retries_attempted
    envelope["options_used"] = BASIC_OPTIONS_LABEL if was_basic else dict(used_options)

    if can_retry_with_advanced and suggested:
        envelope["permission_request"] = {
            "message": PERMISSION_MESSAGE,
            "question": PERMISSION_QUESTION,
            "suggested_options": suggested,
            "estimated_additional_cost": ESTIMATED_ADDITIONAL_COST,
            "action_required": PERMISSION_ACTION,
        }
    elif not was_basic:
        envelope["diagnostic"] = {
            "message": DIAGNOSTIC_MESSAGE,
            "tried_options": used_advanced,
            "possible_causes": list(DIAGNOSTIC_CAUSES),
            "recommendations": list(DIAGNOSTIC_RECOMMENDATIONS),
        }

    logger.debug(
        "[recommendations] url=%s kind=%s basic=%s permission=%s diagnostic=%s",
        url,
        kind.value,
        was_basic,
        "permission_request" in envelope,
        "diagnostic" in envelope,
    )
    return envelope
