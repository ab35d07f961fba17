from __future__ import annotations

import logging
import time
from typing import Any, Mapping

from scrapeops_mcp.evidence import Evidence, collect_evidence
from scrapeops_mcp.rendering import analyze_rendering, verdict_to_response
from scrapeops_mcp.signatures import bypass_recommendations, detect_anti_bots as match_anti_bots
from scrapeops_mcp.signatures import is_request_blocked, protection_level
from scrapeops_mcp.tools.context import ToolContext
from scrapeops_mcp.utils import drop_none

logger = logging.getLogger(__name__)

BOTH_FAILED_ERROR = "Both requests failed. The website may be blocking all requests."
BOTH_FAILED_RECOMMENDATION = "Try using bypass_level and residential options with the maps_web tool."


async def _fetch_evidence(ctx: ToolContext, params: Mapping[str, Any]) -> Evidence:
    t0 = time.monotonic()
    result = await ctx.proxy.fetch(params)
    return collect_evidence(result, timing_ms=int((time.monotonic() - t0) * 1000))


async def check_js_rendering(ctx: ToolContext, url: str) -> dict[str, Any]:
    """Два последовательных запроса (без рендеринга и с render_js) и их сравнение."""
    logger.info("[check_js_rendering] url=%s", url)
    no_js = await _fetch_evidence(ctx, {"url": url})
    js = await _fetch_evidence(ctx, {"url": url, "render_js": True})

    if not no_js.success and not js.success:
        logger.warning("[check_js_rendering] both requests failed url=%s", url)
        return drop_none({
            "success": False,
            "url": url,
            "error": BOTH_FAILED_ERROR,
            "without_js_error": no_js.error,
            "with_js_error": js.error,
            "recommendation": BOTH_FAILED_RECOMMENDATION,
        })

    verdict = analyze_rendering(no_js, js)
    return verdict_to_response(url, no_js, js, verdict)


async def detect_anti_bots(ctx: ToolContext, url: str) -> dict[str, Any]:
    logger.info("[detect_anti_bots] url=%s", url)
    evidence = await _fetch_evidence(ctx, {"url": url})
    blocked = is_request_blocked(evidence.success, evidence.status_code)

    # У заблокированного запроса HTML нет, сигнатуры ищем в тексте ошибки.
    detections = match_anti_bots(evidence.html or evidence.error or "", blocked, status_code=evidence.status_code)

    return drop_none({
        "success": True,
        "url": url,
        "request_status": drop_none({
            "success": evidence.success,
            "status_code": evidence.status_code or (200 if evidence.success else None),
            "was_blocked": blocked,
        }),
        "anti_bots_detected": [d.to_dict() for d in detections],
        "total_protections_found": len(detections),
        "protection_level": protection_level(detections),
        "bypass_recommendations": bypass_recommendations(detections),
    })
