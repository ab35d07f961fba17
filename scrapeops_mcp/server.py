from __future__ import annotations

import argparse
import json
import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Optional

from mcp.server.fastmcp import Context as McpContext
from mcp.server.fastmcp import FastMCP
from starlette.requests import Request
from starlette.responses import JSONResponse

from scrapeops_mcp import __version__
from scrapeops_mcp.errors import MissingApiKeyError
from scrapeops_mcp.http import HttpClient
from scrapeops_mcp.params import (
    BypassLevel,
    Country,
    DataSchema,
    DeviceType,
    ExtractionMode,
    PremiumLevel,
    ProxyOptions,
    ResponseFormat,
)
from scrapeops_mcp.settings import Settings, configure_logging, load_settings
from scrapeops_mcp import tools
from scrapeops_mcp.tools import ToolContext, open_tool_context, resolve_api_key

logger = logging.getLogger(__name__)

SERVER_NAME = "scrapeops-mcp"

mcp = FastMCP(
    name=SERVER_NAME,
    instructions=(
        "Browse, extract data from and diagnose the scrapability of web pages through the ScrapeOps proxy. "
        "Always start with basic settings (just the URL). Never enable advanced options "
        "(render_js, residential, mobile, premium, bypass_level, optimize_request) unless the user asked for them "
        "or explicitly confirmed a permission_request returned by a failed call."
    ),
)


@dataclass(slots=True)
class ServerState:
    settings: Settings
    http: HttpClient


_state: Optional[ServerState] = None


def configure_server(settings: Settings) -> ServerState:
    """Один HttpClient (и один лимитер RPS) на процесс."""
    global _state
    _state = ServerState(
        settings=settings,
        http=HttpClient(
            rps=settings.http.rps,
            proxy_timeout_s=settings.http.proxy_timeout_s,
            analyzer_timeout_ms=settings.http.analyzer_timeout_ms,
        ),
    )
    return _state


def _require_state() -> ServerState:
    if _state is None:
        raise RuntimeError("server is not configured; call configure_server() first")
    return _state


def render(payload: Any) -> str:
    """Текст отдаём как есть, всё остальное сериализуем в JSON с отступом 2."""
    if isinstance(payload, str):
        return payload
    return json.dumps(payload, indent=2, ensure_ascii=False)


def _request_headers(mcp_ctx: Optional[McpContext]) -> Optional[Mapping[str, str]]:
    if mcp_ctx is None:
        return None
    try:
        request = mcp_ctx.request_context.request
    except ValueError:
        # вне обработки запроса (stdio без HTTP-контекста)
        return None
    return getattr(request, "headers", None)


async def _call(
    tool: str,
    url: str,
    mcp_ctx: Optional[McpContext],
    handler: Callable[[ToolContext], Awaitable[Any]],
) -> str:
    state = _require_state()
    t0 = time.monotonic()
    try:
        api_key = resolve_api_key(_request_headers(mcp_ctx), state.settings.runtime.api_key)
        async with open_tool_context(state.settings, state.http, api_key) as ctx:
            payload = await handler(ctx)
    except MissingApiKeyError as exc:
        logger.error("[server] %s rejected url=%s: %s", tool, url, exc)
        payload = {"success": False, "url": url, "error": str(exc)}
    except Exception as exc:
        logger.exception("[server] %s crashed url=%s err=%s", tool, url, exc)
        payload = {"success": False, "url": url, "error": f"Unexpected error: {exc}"}

    logger.info("[server] %s done url=%s duration_ms=%s", tool, url, int((time.monotonic() - t0) * 1000))
    return render(payload)


@mcp.custom_route("/health", methods=["GET"])
async def health(request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok", "server": SERVER_NAME, "version": __version__})


# -----------------------------
# Browse / extract
# -----------------------------

@mcp.tool()
async def maps_web(
    url: str,
    render_js: Optional[bool] = None,
    screenshot: Optional[bool] = None,
    residential: Optional[bool] = None,
    country: Optional[Country] = None,
    bypass_level: Optional[BypassLevel] = None,
    wait: Optional[int] = None,
    wait_for: Optional[str] = None,
    scroll: Optional[int] = None,
    mobile: Optional[bool] = None,
    premium: Optional[PremiumLevel] = None,
    device_type: Optional[DeviceType] = None,
    follow_redirects: Optional[bool] = None,
    return_status_codes: Optional[bool] = None,
    keep_headers: Optional[bool] = None,
    session_number: Optional[int] = None,
    optimize_request: Optional[bool] = None,
    max_request_cost: Optional[float] = None,
    mcp_ctx: McpContext = None,
) -> str:
    """Browse and scrape any webpage through the ScrapeOps proxy.

    Returns the page HTML, or JSON with a base64 PNG screenshot when screenshot=true.

    Always start with BASIC settings (just the URL). Advanced parameters (render_js, residential,
    mobile, premium, bypass_level, optimize_request) cost extra credits: use them only when the user
    asks for them, or after a failed request returned a permission_request and the user agreed.

    Args:
        url: Target URL including protocol (http:// or https://).
        render_js: Render JavaScript (SPAs). Auto-enabled by screenshot, wait_for and scroll.
        screenshot: Capture a base64 PNG screenshot. Forces render_js and JSON output.
        residential: Use residential IPs instead of datacenter IPs.
        country: Proxy country for geo-targeting.
        bypass_level: Anti-bot bypass level.
        wait: Milliseconds to wait before capturing the page.
        wait_for: CSS selector to wait for. Forces render_js.
        scroll: Pixels to scroll before capture. Forces render_js.
        mobile: Use mobile proxies.
        premium: Premium proxy tier.
        device_type: User-agent device type.
        follow_redirects: Whether to follow 3xx redirects.
        return_status_codes: Include initial/final status codes (forces JSON output).
        keep_headers: Return response headers.
        session_number: Sticky session id (1-10000).
        optimize_request: Let the proxy optimize parameters for cost/success.
        max_request_cost: Credit cap; only applies together with optimize_request.
    """
    options = ProxyOptions(
        country=country,
        residential=residential,
        mobile=mobile,
        premium=premium,
        render_js=render_js,
        wait_for=wait_for,
        wait=wait,
        scroll=scroll,
        screenshot=screenshot,
        bypass_level=bypass_level,
        device_type=device_type,
        follow_redirects=follow_redirects,
        return_status_codes=return_status_codes,
        keep_headers=keep_headers,
        session_number=session_number,
        optimize_request=optimize_request,
        max_request_cost=max_request_cost,
    )
    return await _call("maps_web", url, mcp_ctx, lambda ctx: tools.maps_web(ctx, url, options))


@mcp.tool()
async def extract_data(
    url: str,
    mode: ExtractionMode,
    data_schema: Optional[DataSchema] = None,
    response_format: ResponseFormat = "json",
    country: Optional[Country] = None,
    residential: Optional[bool] = None,
    mobile: Optional[bool] = None,
    premium: Optional[PremiumLevel] = None,
    device_type: Optional[DeviceType] = None,
    follow_redirects: Optional[bool] = None,
    render_js: Optional[bool] = None,
    wait_for: Optional[str] = None,
    wait: Optional[int] = None,
    bypass_level: Optional[BypassLevel] = None,
    keep_headers: Optional[bool] = None,
    session_number: Optional[int] = None,
    optimize_request: Optional[bool] = None,
    max_request_cost: Optional[float] = None,
    mcp_ctx: McpContext = None,
) -> str:
    """Extract structured data from a webpage.

    mode="auto" uses domain-specific parsers for well-known sites (Amazon, Google, ...);
    mode="llm" runs AI extraction, optionally guided by a page-type data_schema
    (product_page, job_search_page, real_estate_page, serp_search_page, ...).

    Args:
        url: The URL to extract data from.
        mode: "auto" or "llm".
        data_schema: Page type schema for LLM extraction.
        response_format: "json" or "markdown" (LLM mode).
        country: Proxy country for geo-targeting.
        residential: Use residential proxies.
        mobile: Use mobile proxies.
        premium: Premium proxy tier.
        device_type: User-agent device type.
        follow_redirects: Whether to follow redirects.
        render_js: Render JavaScript before extraction.
        wait_for: CSS selector to wait for. Forces render_js.
        wait: Milliseconds to wait.
        bypass_level: Anti-bot bypass level.
        keep_headers: Return response headers.
        session_number: Sticky session id (1-10000).
        optimize_request: Let the proxy optimize the request.
        max_request_cost: Credit cap; only applies together with optimize_request.
    """
    options = ProxyOptions(
        country=country,
        residential=residential,
        mobile=mobile,
        premium=premium,
        render_js=render_js,
        wait_for=wait_for,
        wait=wait,
        bypass_level=bypass_level,
        device_type=device_type,
        follow_redirects=follow_redirects,
        keep_headers=keep_headers,
        session_number=session_number,
        optimize_request=optimize_request,
        max_request_cost=max_request_cost,
    )
    return await _call(
        "extract_data",
        url,
        mcp_ctx,
        lambda ctx: tools.extract_data(
            ctx,
            url,
            mode,
            options,
            data_schema=data_schema,
            response_format=response_format,
        ),
    )


@mcp.tool()
async def return_links(
    url: str,
    country: Optional[Country] = None,
    residential: Optional[bool] = None,
    mobile: Optional[bool] = None,
    premium: Optional[PremiumLevel] = None,
    bypass_level: Optional[BypassLevel] = None,
    session_number: Optional[int] = None,
    optimize_request: Optional[bool] = None,
    max_request_cost: Optional[float] = None,
    mcp_ctx: McpContext = None,
) -> str:
    """Extract and categorize all URLs from a webpage.

    Returns JSON with two arrays: pages (navigational URLs) and assets (js, css, images, fonts, media).
    Relative URLs are made absolute, duplicates and mailto:/tel:/javascript:/data: URLs are dropped.

    Args:
        url: The webpage URL to extract links from.
        country: Proxy country for geo-targeting.
        residential: Use residential proxies.
        mobile: Use mobile proxies.
        premium: Premium proxy tier.
        bypass_level: Anti-bot bypass level.
        session_number: Sticky session id (1-10000).
        optimize_request: Let the proxy optimize the request.
        max_request_cost: Credit cap; only applies together with optimize_request.
    """
    options = ProxyOptions(
        country=country,
        residential=residential,
        mobile=mobile,
        premium=premium,
        bypass_level=bypass_level,
        session_number=session_number,
        optimize_request=optimize_request,
        max_request_cost=max_request_cost,
    )
    return await _call("return_links", url, mcp_ctx, lambda ctx: tools.return_links(ctx, url, options))


# -----------------------------
# Diagnostics
# -----------------------------

@mcp.tool()
async def analyze_scraping_difficulty(url: str, mcp_ctx: McpContext = None) -> str:
    """Analyze how difficult a website is to scrape.

    Returns a difficulty score (1-5) with a level, the factors behind it (anti-bot protections,
    JavaScript requirements, rate limiting, residential IP needs, selector stability) and
    actionable recommendations.

    Args:
        url: Website URL including protocol.
    """
    return await _call(
        "analyze_scraping_difficulty", url, mcp_ctx, lambda ctx: tools.analyze_scraping_difficulty(ctx, url)
    )


@mcp.tool()
async def check_js_rendering(url: str, mcp_ctx: McpContext = None) -> str:
    """Check whether a page needs JavaScript rendering to expose its content.

    Fetches the page with and without rendering (two basic requests) and compares visible text,
    empty SPA mount points, <noscript> messages and detected JS frameworks.

    Args:
        url: Webpage URL including protocol.
    """
    return await _call("check_js_rendering", url, mcp_ctx, lambda ctx: tools.check_js_rendering(ctx, url))


@mcp.tool()
async def detect_anti_bots(url: str, mcp_ctx: McpContext = None) -> str:
    """Detect anti-bot protection systems on a website.

    Makes one basic request and matches the response against known signatures (Cloudflare, DataDome,
    PerimeterX, Incapsula, Akamai, AWS WAF, Sucuri, reCAPTCHA, hCaptcha, Kasada, Shape Security).
    Returns detections with confidence, whether each is actively blocking, the overall protection
    level and suggested maps_web bypass settings (suggestions only, never applied).

    Args:
        url: Website URL including protocol.
    """
    return await _call("detect_anti_bots", url, mcp_ctx, lambda ctx: tools.detect_anti_bots(ctx, url))


@mcp.tool()
async def check_scraping_legality(url: str, mcp_ctx: McpContext = None) -> str:
    """Check legal aspects of scraping a website: robots.txt, Terms of Service and related lawsuits.

    Informational only, not legal advice.

    Args:
        url: Website URL including protocol.
    """
    return await _call(
        "check_scraping_legality", url, mcp_ctx, lambda ctx: tools.check_scraping_legality(ctx, url)
    )


@mcp.tool()
async def classify_page_type(url: str, mcp_ctx: McpContext = None) -> str:
    """Classify a page (product, search, job, article, ...) and suggest a parsing strategy.

    Args:
        url: Webpage URL including protocol.
    """
    return await _call("classify_page_type", url, mcp_ctx, lambda ctx: tools.classify_page_type(ctx, url))


@mcp.tool()
async def identify_data_sources(url: str, mcp_ctx: McpContext = None) -> str:
    """Identify where a page's data lives: static HTML, network (XHR/API) requests or embedded JSON.

    Args:
        url: Webpage URL including protocol.
    """
    return await _call(
        "identify_data_sources", url, mcp_ctx, lambda ctx: tools.identify_data_sources(ctx, url)
    )


@mcp.tool()
async def analyze_api_endpoints(url: str, mcp_ctx: McpContext = None) -> str:
    """Analyze network requests captured while loading a page and find the API endpoints carrying its data.

    Returns the requests that contain target data with method, query parameters, auth hints,
    pagination shape and sampled fields, plus a summary of all other requests.

    Args:
        url: Webpage URL including protocol.
    """
    return await _call(
        "analyze_api_endpoints", url, mcp_ctx, lambda ctx: tools.analyze_api_endpoints(ctx, url)
    )


@mcp.tool()
async def detect_tech_stack(url: str, mcp_ctx: McpContext = None) -> str:
    """Detect the technology stack of a website (frameworks, CMS, ecommerce platform, analytics, ...).

    Also returns scraping implications: rendering approach, data loading pattern, selector strategy and tips.

    Args:
        url: Website URL including protocol.
    """
    return await _call("detect_tech_stack", url, mcp_ctx, lambda ctx: tools.detect_tech_stack(ctx, url))


@mcp.tool()
async def check_css_selectors(url: str, mcp_ctx: McpContext = None) -> str:
    """Check how stable a page's CSS selectors are across loads (stable, dynamic or obfuscated).

    Returns the classification, metrics and a selector strategy: what to use and what to avoid.

    Args:
        url: Webpage URL including protocol.
    """
    return await _call("check_css_selectors", url, mcp_ctx, lambda ctx: tools.check_css_selectors(ctx, url))


@mcp.tool()
async def generate_data_schema(url: str, page_type: Optional[str] = None, mcp_ctx: McpContext = None) -> str:
    """Return a pre-built data schema for a page type, classifying the page first when page_type is omitted.

    Args:
        url: Webpage URL including protocol.
        page_type: Optional page type override, e.g. product_page, job_page, real_estate_page.
    """
    return await _call(
        "generate_data_schema",
        url,
        mcp_ctx,
        lambda ctx: tools.generate_data_schema(ctx, url, page_type),
    )


# -----------------------------
# Entry point
# -----------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="MCP-сервер ScrapeOps: просмотр, извлечение данных и диагностика страниц.")
    parser.add_argument(
        "--config",
        default="config.yaml",
        help="Путь к YAML-конфигу (необязателен; APP_CONFIG_PATH приоритетнее).",
    )
    parser.add_argument(
        "--transport",
        choices=("stdio", "streamable-http"),
        default=None,
        help="Транспорт MCP. По умолчанию stdio, streamable-http если задан PORT.",
    )
    return parser


def main() -> None:
    args = build_parser().parse_args()
    configure_logging(os.getenv("LOG_LEVEL", "INFO"))

    settings = load_settings(default_yaml_path=args.config)
    configure_server(settings)

    transport = args.transport or ("streamable-http" if settings.runtime.port else "stdio")
    if transport == "stdio":
        logger.info("[server] starting %s %s (stdio)", SERVER_NAME, __version__)
        mcp.run(transport="stdio")
        return

    mcp.settings.host = settings.runtime.host
    mcp.settings.port = settings.runtime.port or 8000
    logger.info(
        "[server] starting %s %s (streamable-http, host=%s, port=%s)",
        SERVER_NAME,
        __version__,
        mcp.settings.host,
        mcp.settings.port,
    )
    mcp.run(transport="streamable-http")


if __name__ == "__main__":
    main()
