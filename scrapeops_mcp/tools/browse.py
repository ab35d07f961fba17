from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from scrapeops_mcp.params import (
    ProxyOptions,
    ValidationResult,
    build_request,
    invalid_params_envelope,
    validate_params,
)
from scrapeops_mcp.recommendations import build_error_envelope
from scrapeops_mcp.retry import RequestResult
from scrapeops_mcp.tools.context import ToolContext

logger = logging.getLogger(__name__)

SCREENSHOT_TYPE = "base64_png"
SCREENSHOT_USAGE = "Decode this base64 string to get the PNG image"
LINKS_DEFAULT_STATUS = "links_extract_successful"


def _validate(tool: str, url: str, options: ProxyOptions) -> ValidationResult:
    validation = validate_params(options)
    if not validation.valid:
        logger.error("[%s] parameter validation failed url=%s errors=%s", tool, url, validation.errors)
    elif validation.warnings:
        logger.warning("[%s] parameter warnings url=%s warnings=%s", tool, url, validation.warnings)
    return validation


def _failure(tool: str, url: str, result: RequestResult, used: Mapping[str, Any]) -> dict[str, Any]:
    logger.warning(
        "[%s] request failed url=%s kind=%s status=%s retries=%s",
        tool,
        url,
        result.error_kind.value if result.error_kind else None,
        result.status_code,
        result.retries_attempted,
    )
    return build_error_envelope(
        url,
        result.error or "Unknown error",
        result.error_kind,
        result.status_code,
        used,
        result.retries_attempted,
    )


def _screenshot_response(url: str, data: Mapping[str, Any]) -> dict[str, Any]:
    response: dict[str, Any] = {
        "success": True,
        "url": url,
        "screenshot": data["screenshot"],
        "screenshot_type": SCREENSHOT_TYPE,
        "screenshot_usage": SCREENSHOT_USAGE,
        "message": "Screenshot captured successfully",
    }
    for key in ("initial_status_code", "final_status_code"):
        if data.get(key):
            response[key] = data[key]
    return response


async def maps_web(ctx: ToolContext, url: str, options: ProxyOptions) -> Any:
    """
    Просмотр страницы через прокси.

    Успех: текст страницы как есть (или JSON-документ прокси), для скриншота отдельный словарь.
    Ошибка: конверт с permission_request / diagnostic.
    """
    validation = _validate("maps_web", url, options)
    if not validation.valid:
        return invalid_params_envelope(url, validation)

    request, used = build_request(url, options)
    logger.info("[maps_web] url=%s options=%s", url, used or "basic (no extra options)")

    result = await ctx.proxy.fetch(request)
    if not result.success:
        return _failure("maps_web", url, result, used)

    data = result.data
    if options.screenshot and isinstance(data, Mapping) and data.get("screenshot"):
        return _screenshot_response(url, data)
    return data


async def extract_data(
    ctx: ToolContext,
    url: str,
    mode: str,
    options: ProxyOptions,
    *,
    data_schema: Optional[str] = None,
    response_format: Optional[str] = "json",
) -> dict[str, Any]:
    """Структурное извлечение: режим auto использует доменные парсеры прокси, llm извлекает по схеме страницы."""
    validation = _validate("extract_data", url, options)
    if not validation.valid:
        return invalid_params_envelope(url, validation)

    extra: dict[str, Any] = {"json_response": True}
    if mode == "auto":
        extra["auto_extract"] = True
    elif mode == "llm":
        extra["llm_extract"] = True
        if data_schema:
            extra["llm_data_schema"] = data_schema
        if response_format:
            extra["llm_extract_response_type"] = response_format

    request, used = build_request(url, options, extra=extra)
    logger.info(
        "[extract_data] url=%s mode=%s schema=%s options=%s",
        url,
        mode,
        data_schema,
        used or "basic (no extra options)",
    )

    result = await ctx.proxy.fetch(request, expect_json=True)
    if not result.success:
        return _failure("extract_data", url, result, used)

    response: dict[str, Any] = {"success": True, "url": url, "extraction_mode": mode}
    if data_schema:
        response["data_schema"] = data_schema
    if validation.warnings:
        response["warnings"] = list(validation.warnings)
    response["data"] = result.data
    return response


async def return_links(ctx: ToolContext, url: str, options: ProxyOptions) -> dict[str, Any]:
    validation = _validate("return_links", url, options)
    if not validation.valid:
        return invalid_params_envelope(url, validation)

    request, used = build_request(url, options, extra={"return_links": True})
    logger.info("[return_links] url=%s options=%s", url, used or "basic")

    result = await ctx.proxy.fetch(request)
    if not result.success:
        return _failure("return_links", url, result, used)

    data = result.data
    if isinstance(data, Mapping):
        status = data.get("status") or LINKS_DEFAULT_STATUS
        links = data.get("data") or data
    else:
        status = LINKS_DEFAULT_STATUS
        links = data
    return {"success": True, "url": url, "status": status, "data": links}
