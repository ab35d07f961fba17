from __future__ import annotations

from typing import Any, Mapping

DIFFICULTY_LEVELS: dict[int, str] = {
    1: "Very Easy",
    2: "Easy",
    3: "Medium",
    4: "Hard",
    5: "Very Hard",
}

SLOW_RESPONSE_MS = 5000


def clamp_score(raw: Any) -> int:
    """Оценка сложности в диапазоне [1, 5]; мусор и 0 -> 1."""
    try:
        score = int(raw or 1)
    except (TypeError, ValueError):
        score = 1
    return min(5, max(1, score))


def difficulty_level(score: int) -> str:
    return DIFFICULTY_LEVELS.get(score, "Very Hard")


def _bypass_recommendation(provider: str) -> str:
    provider = provider.lower()
    if "cloudflare" in provider:
        return "Use bypass_level: 'cloudflare_level_2' to bypass Cloudflare protection"
    if "datadome" in provider:
        return "Use bypass_level: 'datadome' to bypass DataDome protection"
    if "perimeterx" in provider:
        return "Use bypass_level: 'perimeterx' to bypass PerimeterX protection"
    if "incapsula" in provider or "imperva" in provider:
        return "Use bypass_level: 'incapsula' to bypass Incapsula/Imperva protection"
    return "Use bypass_level: 'generic_level_2' or higher to bypass anti-bot protection"


def analyze_difficulty(report: Mapping[str, Any]) -> dict[str, Any]:
    """Ответ web-analyzer -> оценка сложности, факторы и рекомендации."""
    score = clamp_score(report.get("scraping_complexity_score"))
    factors: list[dict[str, str]] = []
    recommendations: list[str] = []

    requires_js = bool(report.get("requires_javascript"))
    measures = [m for m in (report.get("anti_bot_measures") or []) if isinstance(m, Mapping)]
    rate_limited = bool(report.get("rate_limiting_detected"))
    residential = bool(report.get("requires_residential_ip"))
    stability = report.get("css_selector_stability")
    avg_ms = report.get("avg_response_time_ms") or 0

    if requires_js:
        factors.append({
            "factor": "JavaScript Rendering Required",
            "impact": "medium",
            "details": (
                f"Rendering type: {report.get('rendering_type') or 'unknown'}. "
                "Page requires JavaScript rendering to load content."
            ),
        })

    for measure in measures:
        provider = measure.get("provider")
        factors.append({
            "factor": f"Anti-Bot: {provider or measure.get('type')}",
            "impact": "high",
            "details": f"{provider or 'Unknown'} {measure.get('type')} protection detected",
        })

    if rate_limited:
        factors.append({
            "factor": "Rate Limiting Detected",
            "impact": "medium",
            "details": (
                f"Rate limit: {report.get('rate_limit_requests_per_minute')} req/min. "
                f"Strategy: {report.get('rate_limit_strategy') or 'unknown'}"
            ),
        })

    if residential:
        factors.append({
            "factor": "Residential IP Required",
            "impact": "high",
            "details": report.get("residential_ip_reason") or "Residential IP proxies are recommended for this site",
        })

    if stability and stability != "stable":
        factors.append({
            "factor": "Unstable CSS Selectors",
            "impact": "high" if stability == "dynamic" else "medium",
            "details": f"CSS selectors are {stability}, which may require adaptive scraping strategies",
        })

    if isinstance(avg_ms, (int, float)) and avg_ms > SLOW_RESPONSE_MS:
        factors.append({
            "factor": "Slow Response",
            "impact": "low",
            "details": f"Average response time is {avg_ms}ms",
        })

    if requires_js:
        recommendations.append("Use render_js: true to render JavaScript content")
    if residential:
        recommendations.append("Use residential: true for residential IP proxies")
    if measures:
        recommendations.append(_bypass_recommendation(str(measures[0].get("provider") or "")))
    if rate_limited:
        recommendations.append(
            f"Implement rate limiting: max {report.get('rate_limit_requests_per_minute')} requests/min"
        )
    if report.get("recommended_proxy_type"):
        recommendations.append(f"Recommended proxy type: {report['recommended_proxy_type']}")
    if score <= 2:
        recommendations.append("Basic request should work fine — no special options needed.")

    return {
        "success": True,
        "difficulty_score": score,
        "difficulty_level": difficulty_level(score),
        "factors": factors,
        "recommendations": recommendations,
    }
