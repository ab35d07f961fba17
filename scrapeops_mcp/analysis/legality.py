from __future__ import annotations

from typing import Any, Mapping

from scrapeops_mcp.utils import as_mapping, drop_none

RESTRICTIVE_STATUSES = frozenset({"blocked", "restricted", "no"})
PERMISSIVE_STATUSES = frozenset({"allowed", "yes"})

GENERAL_RECOMMENDATIONS: tuple[str, ...] = (
    "Always comply with applicable laws (GDPR, CCPA, CFAA, etc.)",
    "Consider reaching out to the website owner for explicit permission",
    "Avoid scraping personal data without a legal basis",
    "This analysis is informational only and does not constitute legal advice",
)


def _document_block(url: Any, status: Any, text: Any) -> dict[str, Any]:
    if not url:
        return {"found": False}
    return drop_none({
        "found": True,
        "url": url,
        "scraping_status": status or "unknown",
        "analysis": text or None,
    })


def _lawsuit_summary(lawsuit: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "title": lawsuit.get("title"),
        "description": lawsuit.get("description"),
        "status": lawsuit.get("status"),
        "prosecutor": lawsuit.get("prosecutor_name"),
        "defendant": lawsuit.get("defendant_name"),
        "jurisdiction": lawsuit.get("jurisdiction"),
        "impact_level": lawsuit.get("impact_level"),
        "ws_relevance": lawsuit.get("ws_relevance"),
        "ws_direct_issue": lawsuit.get("ws_direct_issue"),
        "means_for_website": lawsuit.get("means_for_ws_website"),
        "means_for_industry": lawsuit.get("means_for_ws_industry"),
        "legal_basis": lawsuit.get("legal_basis"),
        "affected_data_types": lawsuit.get("affected_data_types"),
        "more_info_links": lawsuit.get("more_info_links"),
        "date_started": lawsuit.get("date_started"),
        "date_ended": lawsuit.get("date_ended"),
        "conclusion": lawsuit.get("conclusion"),
    }


def assess_risk(risk_factors: list[str]) -> tuple[str, str]:
    """Число факторов риска -> (итоговая оценка, уровень риска)."""
    if len(risk_factors) >= 3:
        return "restricted", "high"
    if risk_factors:
        return "ambiguous", "medium"
    return "likely_allowed", "low"


def analyze_legality(report: Mapping[str, Any]) -> dict[str, Any]:
    legal = as_mapping(report.get("legal_data"))
    lawsuits = [l for l in (report.get("lawsuits") or []) if isinstance(l, Mapping)]

    robots = _document_block(legal.get("robots_url"), legal.get("robots_allow_ws_status"), legal.get("robots_allow_ws_text"))
    tos = _document_block(legal.get("terms_url"), legal.get("terms_allow_ws_status"), legal.get("terms_allow_ws_text"))

    risk_factors: list[str] = []
    mitigating: list[str] = []

    robots_status = str(legal.get("robots_allow_ws_status") or "").lower()
    robots_text = legal.get("robots_allow_ws_text") or ""
    if robots_status in RESTRICTIVE_STATUSES:
        risk_factors.append(f"robots.txt indicates scraping is {robots_status}: {robots_text}")
    elif robots_status in PERMISSIVE_STATUSES:
        mitigating.append(f"robots.txt allows scraping: {robots_text}")

    terms_status = str(legal.get("terms_allow_ws_status") or "").lower()
    terms_text = legal.get("terms_allow_ws_text") or ""
    if terms_status in RESTRICTIVE_STATUSES:
        risk_factors.append(f"Terms of Service restricts scraping: {terms_text}")
    elif terms_status in PERMISSIVE_STATUSES:
        mitigating.append(f"Terms of Service allows scraping: {terms_text}")

    if lawsuits:
        direct = [l for l in lawsuits if l.get("ws_direct_issue")]
        high_impact = [l for l in lawsuits if l.get("impact_level") == "high"]
        if direct:
            risk_factors.append(f"{len(direct)} lawsuit(s) directly related to web scraping of this site")
        if high_impact:
            risk_factors.append(f"{len(high_impact)} high-impact scraping-related lawsuit(s) found")
        if not direct and not high_impact:
            risk_factors.append(f"{len(lawsuits)} scraping-related lawsuit(s) found (indirect or low impact)")

    assessment, risk_level = assess_risk(risk_factors)

    recommendations: list[str] = []
    if risk_factors:
        recommendations.append("Review the specific risk factors above carefully before scraping")
    if lawsuits:
        recommendations.append("Review the lawsuit details — this site has a history of legal action related to scraping")
    if tos.get("found") and tos.get("url"):
        recommendations.append(f"Review the full Terms of Service at: {tos['url']}")
    if robots.get("found") and robots.get("url"):
        recommendations.append(f"Review the robots.txt at: {robots['url']}")
    recommendations.extend(GENERAL_RECOMMENDATIONS)

    website_info = None
    if legal:
        website_info = {
            "website": legal.get("website"),
            "category": legal.get("website_category"),
            "summary": legal.get("short_summary") or legal.get("summary"),
            "popularity_score": legal.get("popularity_score"),
            "legality_summary": legal.get("legality_summary"),
            "lawsuit_summary": legal.get("lawsuit_summary"),
        }

    return drop_none({
        "success": True,
        "url": report.get("url"),
        "domain": report.get("domain"),
        "analysis_status": report.get("analysis_status"),
        "robots_txt": robots,
        "terms_of_service": tos,
        "website_info": website_info,
        "lawsuits": [_lawsuit_summary(l) for l in lawsuits] or None,
        "legal_summary": {
            "overall_assessment": assessment,
            "risk_level": risk_level,
            "risk_factors": risk_factors,
            "mitigating_factors": mitigating,
            "recommendations": recommendations,
        },
    })
