from __future__ import annotations

from typing import Any, Mapping, Sequence

from scrapeops_mcp.utils import drop_none

SOURCE_TYPES: tuple[str, ...] = ("raw_html", "network_requests", "embedded_json")

SOURCE_DESCRIPTIONS: dict[str, str] = {
    "raw_html": "Data embedded directly in static HTML elements — available without JavaScript rendering",
    "network_requests": "Data loaded dynamically via XHR/API calls — requires JS rendering or direct API access",
    "embedded_json": (
        "Data in structured JSON (JSON-LD, Next.js __NEXT_DATA__, inline scripts) — parseable without rendering"
    ),
}

FIELD_VALUE_LIMIT = 200
EXTRACTED_VALUE_LIMIT = 500


def _truncate(value: Any, limit: int) -> str:
    text = "" if value is None else str(value)
    return text[:limit] + "..." if len(text) > limit else text


def group_by_source(extracted: Sequence[Mapping[str, Any]]) -> dict[str, list[Mapping[str, Any]]]:
    grouped: dict[str, list[Mapping[str, Any]]] = {}
    for item in extracted:
        grouped.setdefault(item.get("type") or "unknown", []).append(item)
    return grouped


def primary_source(grouped: Mapping[str, Sequence[Any]]) -> str:
    """Источник с наибольшим числом элементов; при равенстве побеждает первый, по умолчанию raw_html."""
    primary = "raw_html"
    max_items = 0
    for source_type, items in grouped.items():
        if len(items) > max_items:
            max_items = len(items)
            primary = source_type
    return primary


def extraction_strategy(primary: str, locations: Sequence[str], requires_js: bool) -> dict[str, Any]:
    if primary == "network_requests":
        return {
            "recommended_approach": "API/XHR Interception — data is loaded dynamically via API calls",
            "steps": [
                "1. Use render_js: true to capture XHR/API calls during page load",
                "2. Identify the API endpoint URLs from the network requests",
                "3. Call the API endpoints directly for structured JSON data (faster and more reliable)",
                "4. If API requires authentication cookies, use session_number to maintain sessions",
                "5. Implement pagination by following the API's pagination parameters",
            ],
            "scrapeops_options": {"render_js": True, "json_response": True},
            "tips": [
                "Direct API calls are faster and return structured data — prefer over HTML parsing",
                "Check API response headers for pagination info (Link, X-Total-Count, etc.)",
                "API responses are usually JSON — no HTML parsing needed",
                "Watch for API rate limits — they may be stricter than page-level limits",
            ],
        }

    if primary == "embedded_json":
        return {
            "recommended_approach": "Embedded JSON Extraction — data is in structured JSON within the page",
            "steps": [
                "1. Fetch the page with a basic request (render_js may not be needed)",
                '2. Parse JSON-LD from <script type="application/ld+json"> tags',
                '3. Check for Next.js data in <script id="__NEXT_DATA__"> or window.__NEXT_DATA__',
                "4. Look for other inline JSON in <script> tags (e.g., window.__INITIAL_STATE__)",
                "5. Parse the JSON directly — no HTML selector logic needed",
            ],
            "scrapeops_options": {"render_js": False},
            "tips": [
                "JSON-LD often contains the most complete product/article data",
                "Next.js __NEXT_DATA__ contains the full page props — very rich data source",
                "Embedded JSON is the most reliable source — not affected by CSS changes",
                "No JavaScript rendering needed — faster and cheaper requests",
            ],
        }

    options: dict[str, Any] = {"render_js": requires_js}
    if "network_requests" in locations:
        options["json_response"] = True

    tips = [
        "Use specific CSS selectors — IDs and semantic class names are most stable",
        "Avoid selectors that depend on layout (nth-child, position-based)",
        "Check for CSS selector stability — dynamic class names may change between deploys",
        "This page requires JavaScript rendering — use render_js: true"
        if requires_js
        else "JavaScript rendering is not required — basic requests are faster and cheaper",
    ]
    if "embedded_json" in locations:
        tips.append("Also check embedded JSON (JSON-LD) as a more reliable alternative for some fields")

    return {
        "recommended_approach": "HTML Parsing — data is in static HTML elements",
        "steps": [
            "1. Fetch the page with render_js: true (page requires JavaScript to load content)"
            if requires_js
            else "1. Fetch the page with a basic request (no JavaScript rendering needed)",
            "2. Use CSS selectors to target specific data elements",
            "3. Extract text content from the identified HTML elements",
            "4. Handle any data that spans multiple elements (e.g., price + currency)",
            "5. Implement pagination by following next-page links",
        ],
        "scrapeops_options": options,
        "tips": tips,
    }


def analyze_data_sources(report: Mapping[str, Any]) -> dict[str, Any]:
    locations = [str(l) for l in (report.get("data_locations") or [])]
    extracted = [i for i in (report.get("extracted_data") or []) if isinstance(i, Mapping)]
    requires_js = bool(report.get("requires_javascript"))

    grouped = group_by_source(extracted)
    breakdown: dict[str, Any] = {}
    for source_type in SOURCE_TYPES:
        items = grouped.get(source_type, [])
        breakdown[source_type] = {
            "found": source_type in locations,
            "item_count": len(items),
            "fields": [
                {
                    "name": item.get("name"),
                    "value": _truncate(item.get("value"), FIELD_VALUE_LIMIT),
                    "selector": item.get("source"),
                }
                for item in items
            ],
            "description": SOURCE_DESCRIPTIONS.get(source_type, "Unknown data source"),
        }

    primary = primary_source(grouped)

    return drop_none({
        "success": True,
        "url": report.get("url"),
        "domain": report.get("domain"),
        "page_type": report.get("page_type"),
        "analysis_status": report.get("analysis_status"),
        "data_sources": {
            "locations_identified": locations,
            "primary_source": primary,
            "breakdown": breakdown,
        },
        "extracted_data": [
            drop_none({
                "id": item.get("id"),
                "parent_id": item.get("parent_id") or None,
                "name": item.get("name"),
                "value": _truncate(item.get("value"), EXTRACTED_VALUE_LIMIT),
                "type": item.get("type"),
                "source": item.get("source"),
            })
            for item in extracted
        ],
        "extraction_strategy": extraction_strategy(primary, locations, requires_js),
        "requires_javascript": report.get("requires_javascript"),
        "rendering_type": report.get("rendering_type"),
    })
