from __future__ import annotations

import logging
from typing import Any

from scrapeops_mcp.analysis import (
    analyze_api_endpoints as interpret_api_endpoints,
    analyze_data_sources,
    analyze_difficulty,
    analyze_legality,
    analyze_tech_stack,
    tech_stack_response,
)
from scrapeops_mcp.evidence import extract_html
from scrapeops_mcp.signatures import detect_frameworks, detect_technologies
from scrapeops_mcp.tools.common import ANALYZER_FAILURES, analyzer_failure
from scrapeops_mcp.tools.context import ToolContext

logger = logging.getLogger(__name__)

LOCAL_DETECTION_SOURCE = "local_signatures"


async def analyze_scraping_difficulty(ctx: ToolContext, url: str) -> dict[str, Any]:
    logger.info("[difficulty] url=%s", url)
    try:
        report = await ctx.analyzer.web_analyzer(url, protections=True)
    except ANALYZER_FAILURES as exc:
        return analyzer_failure(url, "analyze scraping difficulty", exc)
    return analyze_difficulty(report)


async def check_scraping_legality(ctx: ToolContext, url: str) -> dict[str, Any]:
    logger.info("[legality] url=%s", url)
    try:
        report = await ctx.analyzer.web_analyzer(url, legal=True)
    except ANALYZER_FAILURES as exc:
        return analyzer_failure(url, "check scraping legality", exc)
    return analyze_legality(report)


async def identify_data_sources(ctx: ToolContext, url: str) -> dict[str, Any]:
    logger.info("[data_sources] url=%s", url)
    try:
        report = await ctx.analyzer.web_analyzer(url, data_extraction=True)
    except ANALYZER_FAILURES as exc:
        return analyzer_failure(url, "identify data sources", exc)
    return analyze_data_sources(report)


async def analyze_api_endpoints(ctx: ToolContext, url: str) -> dict[str, Any]:
    logger.info("[api_endpoints] url=%s", url)
    try:
        report = await ctx.analyzer.web_analyzer(url, data_extraction=True)
    except ANALYZER_FAILURES as exc:
        return analyzer_failure(url, "analyze API endpoints", exc, recommendations=None)
    return interpret_api_endpoints(report)


async def detect_tech_stack(ctx: ToolContext, url: str) -> dict[str, Any]:
    """
    Стек технологий по данным анализатора.

    Если анализатор недоступен, делаем базовый запрос через прокси и прогоняем
    локальные сигнатуры технологий (detection_source = local_signatures).
    """
    logger.info("[tech_stack] url=%s", url)
    try:
        report = await ctx.analyzer.web_analyzer(url)
    except ANALYZER_FAILURES as exc:
        logger.warning("[tech_stack] analyzer failed url=%s error=%s, falling back to local signatures", url, exc)
        return await _local_tech_stack(ctx, url, exc)
    return analyze_tech_stack(report)


async def _local_tech_stack(ctx: ToolContext, url: str, analyzer_exc: BaseException) -> dict[str, Any]:
    result = await ctx.proxy.fetch({"url": url})
    html = extract_html(result)
    if not html:
        logger.warning(
            "[tech_stack] fallback fetch failed url=%s status=%s error=%s",
            url,
            result.status_code,
            result.error,
        )
        return analyzer_failure(url, "detect tech stack", analyzer_exc)

    technologies = detect_technologies(html)
    requires_js = any(f.rendering_likely_required for f in detect_frameworks(html))
    logger.info("[tech_stack] local signatures url=%s found=%s", url, [t["name"] for t in technologies])
    return tech_stack_response(
        technologies,
        url=url,
        requires_js=requires_js,
        detection_source=LOCAL_DETECTION_SOURCE,
    )
