from __future__ import annotations

import logging
from enum import Enum

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    """Закрытая классификация неуспешного запроса к прокси."""

    AUTH_FAILED = "auth_failed"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    BAD_GATEWAY = "bad_gateway"
    SERVICE_UNAVAILABLE = "service_unavailable"
    NETWORK_ERROR = "network_error"
    UNKNOWN = "unknown"


STATUS_ERROR_KINDS: dict[int, ErrorKind] = {
    401: ErrorKind.AUTH_FAILED,
    403: ErrorKind.FORBIDDEN,
    404: ErrorKind.NOT_FOUND,
    429: ErrorKind.RATE_LIMITED,
    500: ErrorKind.SERVER_ERROR,
    502: ErrorKind.BAD_GATEWAY,
    503: ErrorKind.SERVICE_UNAVAILABLE,
}


def classify_status(status_code: int | None) -> ErrorKind:
    """Тотальная функция: любой код вне таблицы -> UNKNOWN."""
    if status_code is None:
        return ErrorKind.UNKNOWN
    return STATUS_ERROR_KINDS.get(status_code, ErrorKind.UNKNOWN)


def error_message(kind: ErrorKind, status_code: int | None) -> str:
    """Короткое сообщение транспортного уровня для RequestResult.error."""
    if kind is ErrorKind.AUTH_FAILED:
        return "Invalid API Key. Please check your SCRAPEOPS_API_KEY environment variable."
    if kind is ErrorKind.FORBIDDEN:
        return "Access denied (HTTP 403). The target website may be blocking the request."
    if kind is ErrorKind.NOT_FOUND:
        return "Page not found (HTTP 404). Please verify the URL is correct."
    if kind is ErrorKind.RATE_LIMITED:
        return "Rate limited (HTTP 429). Too many requests. Please wait before retrying."
    if kind is ErrorKind.SERVER_ERROR:
        return "Server error (HTTP 500). The request failed on ScrapeOps servers."
    if kind is ErrorKind.BAD_GATEWAY:
        return "Bad gateway (HTTP 502). There was a gateway error."
    if kind is ErrorKind.SERVICE_UNAVAILABLE:
        return "Service unavailable (HTTP 503). The service is temporarily down."
    if kind is ErrorKind.NETWORK_ERROR:
        return "Network error. Please check your internet connection."
    return f"Request failed with status {status_code}."


class GatewayError(Exception):
    """Базовое исключение шлюза. До транспорта MCP никогда не доходит."""


class MissingApiKeyError(GatewayError):
    def __init__(self) -> None:
        super().__init__("API key is required. Set SCRAPEOPS_API_KEY environment variable.")


class AnalyzerError(GatewayError):
    """Анализатор ответил не-2xx."""

    def __init__(self, label: str, status: int | None, body: str = "") -> None:
        self.label = label
        self.status = status
        self.body = body
        super().__init__(f"{label} failed with status {status}: {body}")


class AnalyzerTimeoutError(GatewayError):
    """Истёк таймаут вызова анализатора (отличаем от обычной сетевой ошибки)."""

    def __init__(self, label: str, timeout_ms: int) -> None:
        self.label = label
        self.timeout_ms = timeout_ms
        super().__init__(f"{label} timed out after {timeout_ms}ms")
