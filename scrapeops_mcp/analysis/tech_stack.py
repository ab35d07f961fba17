from __future__ import annotations

from typing import Any, Mapping, Optional, Sequence

from scrapeops_mcp.signatures.technologies import tech_type_label
from scrapeops_mcp.utils import drop_none

HYBRID_FRAMEWORKS = frozenset({"Next.js", "Nuxt.js", "Remix", "Astro"})
CSR_FRAMEWORKS = frozenset({"React", "Vue.js", "Angular", "Svelte", "SolidJS"})
STATIC_FRAMEWORKS = frozenset({"Next.js", "Nuxt.js", "Gatsby", "Astro", "Eleventy"})
SPA_FRAMEWORKS = frozenset({"React", "Vue.js", "Angular"})


def _rendering_approach(names: set[str], rendering_type: Any, requires_js: bool) -> str:
    if requires_js:
        if names & HYBRID_FRAMEWORKS:
            return (
                "Hybrid SSR/CSR — initial HTML is server-rendered but dynamic content may require JavaScript. "
                "Use render_js: true for complete data."
            )
        if names & CSR_FRAMEWORKS:
            return (
                "Client-Side Rendering (CSR) — page content is rendered by JavaScript in the browser. "
                "render_js: true is required."
            )
        return f"JavaScript rendering required ({rendering_type or 'unknown'}). Use render_js: true to get full page content."

    if names & STATIC_FRAMEWORKS:
        return (
            "Server-Side Rendered / Static — HTML contains full content. Basic HTTP requests are sufficient, "
            "no JavaScript rendering needed."
        )
    if "WordPress" in names:
        return "Server-Side Rendered (WordPress) — HTML is fully rendered by the server. Basic HTTP requests work well."
    return "Static / Server-Rendered — page content is in the initial HTML. No JavaScript rendering needed."


def _data_loading_pattern(names: set[str]) -> str:
    if "Next.js" in names:
        return (
            "Next.js — check for __NEXT_DATA__ JSON in the HTML (contains page props), "
            "plus potential API routes at /api/* paths."
        )
    if "Nuxt.js" in names:
        return "Nuxt.js — check for __NUXT__ data payload embedded in the HTML, plus Nuxt API routes."
    if "Gatsby" in names:
        return (
            "Gatsby — static HTML with data pre-baked at build time. "
            "Also check /page-data/ JSON files for structured data."
        )
    if "Shopify" in names:
        return (
            "Shopify — product data available via structured JSON-LD, plus Shopify product.json endpoints "
            "(append .json to product URLs)."
        )
    if "WordPress" in names or "WooCommerce" in names:
        return (
            "WordPress — check for wp-json REST API (/wp-json/wp/v2/*), structured data in HTML, "
            "and WooCommerce product endpoints."
        )
    if names & SPA_FRAMEWORKS:
        return (
            "SPA framework — data is typically loaded via XHR/API calls. "
            "Use render_js: true and inspect network requests for API endpoints."
        )
    if "HTMX" in names or "Turbo" in names:
        return (
            "Progressive enhancement — initial HTML contains data, with AJAX fragments loaded for updates. "
            "Parse the HTML directly."
        )
    return "Standard HTML — data is embedded directly in page markup. Parse HTML elements using CSS selectors."


def _selector_strategy(names: set[str], stability: Any) -> str:
    if stability in ("stable", "high"):
        return "CSS selectors are stable — safe to use class names and IDs for targeting elements."
    if stability == "medium":
        return (
            "CSS selectors have moderate stability — prefer data attributes and semantic tags over class names "
            "that may change."
        )
    if "Tailwind CSS" in names:
        return (
            "Tailwind CSS detected — avoid Tailwind utility classes as selectors (they are verbose and may change). "
            "Use semantic HTML tags, IDs, or data attributes instead."
        )
    return (
        "CSS selectors may be unstable — use data attributes, IDs, or structural selectors (tag names) "
        "for more reliable targeting."
    )


# (технология, подсказка) в порядке вывода
_TECH_TIPS: tuple[tuple[str, str], ...] = (
    ("Next.js", 'Next.js: Extract data from the <script id="__NEXT_DATA__"> tag for structured JSON — often the most complete data source.'),
    ("Nuxt.js", "Nuxt.js: Look for window.__NUXT__ in the page source for pre-loaded data."),
    ("Shopify", "Shopify: Append .json to product/collection URLs for structured API access (e.g., /products/item.json)."),
    ("WordPress", "WordPress: The REST API at /wp-json/wp/v2/ provides structured data access without HTML parsing."),
    ("WooCommerce", "WooCommerce: Product data may be available at /wp-json/wc/v3/ endpoints."),
    ("Gatsby", "Gatsby: Check /page-data/*.json files for pre-built data payloads."),
)


def tech_stack_implications(
    technologies: Sequence[Mapping[str, Any]],
    rendering_type: Any,
    requires_js: bool,
    selector_stability: Any,
) -> dict[str, Any]:
    names = {str(t.get("name")) for t in technologies}

    tips: list[str] = [
        "Use render_js: true in your requests to get JavaScript-rendered content."
        if requires_js
        else "No JavaScript rendering needed — basic HTTP requests will return full content (faster and cheaper)."
    ]
    tips.extend(tip for name, tip in _TECH_TIPS if name in names)
    if names & SPA_FRAMEWORKS:
        tips.append("SPA detected: Intercept API calls during page load for the cleanest data extraction.")
    if "Tailwind CSS" in names:
        tips.append(
            "Tailwind CSS: Do not use Tailwind utility classes as CSS selectors — they are too long and may change. "
            "Target semantic elements instead."
        )
    if "Google Analytics" in names:
        tips.append(
            "Google Analytics present — be mindful of request tracking. "
            "Use appropriate headers to reduce fingerprinting."
        )
    if "Stripe" in names:
        tips.append(
            "Stripe detected — this page processes payments. Pricing data may be loaded dynamically via Stripe APIs."
        )

    return {
        "rendering_approach": _rendering_approach(names, rendering_type, requires_js),
        "data_loading_pattern": _data_loading_pattern(names),
        "selector_strategy": _selector_strategy(names, selector_stability),
        "tips": tips,
    }


def group_by_category(technologies: Sequence[Mapping[str, Any]]) -> dict[str, list[dict[str, str]]]:
    grouped: dict[str, list[dict[str, str]]] = {}
    for tech in technologies:
        grouped.setdefault(tech_type_label(tech.get("type")), []).append(
            {"name": str(tech.get("name")), "version": tech.get("version") or ""}
        )
    return grouped


def tech_stack_response(
    technologies: Sequence[Mapping[str, Any]],
    *,
    url: Any,
    domain: Any = None,
    page_type: Any = None,
    rendering_type: Any = None,
    requires_js: bool = False,
    selector_stability: Any = None,
    detection_source: Optional[str] = None,
) -> dict[str, Any]:
    return drop_none({
        "success": True,
        "url": url,
        "domain": domain,
        "page_type": page_type,
        "detection_source": detection_source,
        "tech_stack": {
            "technologies": [
                drop_none({
                    "name": t.get("name"),
                    "type": t.get("type"),
                    "category": tech_type_label(t.get("type")),
                    "version": t.get("version") or None,
                })
                for t in technologies
            ],
            "by_category": group_by_category(technologies),
            "count": len(technologies),
        },
        "rendering": drop_none({
            "type": rendering_type,
            "requires_javascript": requires_js,
            "css_selector_stability": selector_stability,
        }),
        "scraping_implications": tech_stack_implications(technologies, rendering_type, requires_js, selector_stability),
    })


def analyze_tech_stack(report: Mapping[str, Any]) -> dict[str, Any]:
    technologies = [t for t in (report.get("detected_technologies") or []) if isinstance(t, Mapping)]
    return tech_stack_response(
        technologies,
        url=report.get("url"),
        domain=report.get("domain"),
        page_type=report.get("page_type"),
        rendering_type=report.get("rendering_type"),
        requires_js=bool(report.get("requires_javascript")),
        selector_stability=report.get("css_selector_stability"),
    )
