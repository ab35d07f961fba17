from .browse import extract_data, maps_web, return_links
from .context import ToolContext, open_tool_context, resolve_api_key
from .diagnostics import check_js_rendering, detect_anti_bots
from .page_analysis import check_css_selectors, classify_page_type, generate_data_schema
from .site_analysis import (
    analyze_api_endpoints,
    analyze_scraping_difficulty,
    check_scraping_legality,
    detect_tech_stack,
    identify_data_sources,
)

__all__ = [
    "ToolContext",
    "analyze_api_endpoints",
    "analyze_scraping_difficulty",
    "check_css_selectors",
    "check_js_rendering",
    "check_scraping_legality",
    "classify_page_type",
    "detect_anti_bots",
    "detect_tech_stack",
    "extract_data",
    "generate_data_schema",
    "identify_data_sources",
    "maps_web",
    "open_tool_context",
    "resolve_api_key",
    "return_links",
]
