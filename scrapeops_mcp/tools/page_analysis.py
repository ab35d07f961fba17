from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from scrapeops_mcp.analysis import classify_response, is_valid_classification, page_type_data, schema_response
from scrapeops_mcp.evidence import extract_html
from scrapeops_mcp.selector_stability import StabilityMetrics, assess_selectors
from scrapeops_mcp.tools.common import (
    ANALYZER_FAILURES,
    PARSER_UNAVAILABLE,
    TRY_DIFFERENT_URL,
    VERIFY_API_KEY,
    analyzer_failure,
)
from scrapeops_mcp.tools.context import ToolContext
from scrapeops_mcp.utils import as_mapping, drop_none

logger = logging.getLogger(__name__)

SCHEMA_CLASSIFICATION_LABEL = "Page classification (determine-page-type)"


async def classify_page_type(ctx: ToolContext, url: str) -> dict[str, Any]:
    logger.info("[classify_page_type] url=%s", url)
    fetched = await ctx.proxy.fetch({"url": url})
    html = extract_html(fetched)
    if not html:
        return drop_none({
            "success": False,
            "url": url,
            "error": "Failed to fetch page HTML. The page may be blocking requests.",
            "status_code": fetched.status_code,
            "recommendation": (
                "Try using the maps_web tool with render_js or bypass_level options to fetch the page first."
            ),
        })

    try:
        result = await ctx.analyzer.determine_page_type(url, html)
    except ANALYZER_FAILURES as exc:
        return analyzer_failure(
            url,
            "classify page type",
            exc,
            recommendations=(PARSER_UNAVAILABLE, TRY_DIFFERENT_URL),
        )
    return classify_response(url, result)


def _selector_response(url: str, data: Mapping[str, Any]) -> dict[str, Any]:
    comparison = as_mapping(data.get("selector_comparison"))
    metrics = StabilityMetrics.from_comparison(
        comparison,
        successful_requests=data.get("successful_requests"),
        total_requests=data.get("total_requests"),
    )
    assessment = assess_selectors(data.get("css_selector_stability"), metrics)

    analysis: dict[str, Any] = {
        "method": data.get("analysis_method"),
        "successful_requests": data.get("successful_requests"),
        "total_requests": data.get("total_requests"),
        "metrics": {
            "stability_score": metrics.stability_score,
            "random_ratio": metrics.random_ratio,
            "average_entropy": metrics.avg_entropy,
            "common_selectors": comparison.get("common_selectors"),
            "changing_selectors": comparison.get("changing_selectors"),
            "total_unique_selectors": comparison.get("total_unique"),
            "structured_dynamic": comparison.get("structured_dynamic"),
        },
    }
    if data.get("errors"):
        analysis["errors"] = data["errors"]

    return {
        "success": True,
        "url": url,
        "classification": data.get("css_selector_stability"),
        "is_dynamic": data.get("is_dynamic"),
        "is_obfuscated": data.get("is_obfuscated"),
        "analysis": analysis,
        "assessment": assessment.summary,
        "selector_strategy": assessment.strategy(),
        "recommendations": list(assessment.recommendations),
    }


async def check_css_selectors(ctx: ToolContext, url: str) -> dict[str, Any]:
    logger.info("[check_css_selectors] url=%s", url)
    try:
        data = await ctx.analyzer.css_selector_stability(url)
    except ANALYZER_FAILURES as exc:
        return analyzer_failure(
            url,
            "check CSS selector stability",
            exc,
            recommendations=(VERIFY_API_KEY, TRY_DIFFERENT_URL),
        )
    return _selector_response(url, data)


async def generate_data_schema(ctx: ToolContext, url: str, page_type: Optional[str] = None) -> dict[str, Any]:
    """
    Готовая схема данных для типа страницы.

    page_type не задан -> сначала классифицируем страницу (прокси + determine-page-type).
    """
    logger.info("[generate_data_schema] url=%s page_type=%s", url, page_type or "auto")
    classification: Optional[dict[str, Any]] = None

    try:
        if not page_type:
            fetched = await ctx.proxy.fetch({"url": url})
            html = extract_html(fetched)
            if not html:
                return drop_none({
                    "success": False,
                    "url": url,
                    "error": "Failed to fetch page HTML for classification.",
                    "status_code": fetched.status_code,
                    "recommendation": "Provide the page_type parameter manually, or try a different URL.",
                })

            result = await ctx.analyzer.determine_page_type(url, html, label=SCHEMA_CLASSIFICATION_LABEL)
            if not is_valid_classification(result):
                return {
                    "success": False,
                    "url": url,
                    "error": f"Page classification failed: {result.get('error') or result.get('status')}",
                    "recommendation": "Provide the page_type parameter manually.",
                }

            page = page_type_data(result)
            page_type = page.get("page_type")
            classification = drop_none({
                "page_type": page_type,
                "reasoning": page.get("reasoning"),
                "confidence_level": page.get("confidence_level"),
            })
            logger.info("[generate_data_schema] classified url=%s page_type=%s", url, page_type)

        schema_data = await ctx.analyzer.data_schema(str(page_type))
    except ANALYZER_FAILURES as exc:
        return analyzer_failure(
            url,
            "generate data schema",
            exc,
            recommendations=(PARSER_UNAVAILABLE, VERIFY_API_KEY, "Try providing the page_type parameter manually"),
        )

    return schema_response(url, str(page_type), schema_data, classification)
