import asyncio
from typing import Any, Mapping

from scrapeops_mcp.errors import AnalyzerError, AnalyzerTimeoutError, ErrorKind
from scrapeops_mcp.params import ProxyOptions
from scrapeops_mcp.retry import RequestResult
from scrapeops_mcp.tools import (
    ToolContext,
    analyze_api_endpoints,
    analyze_scraping_difficulty,
    check_css_selectors,
    check_js_rendering,
    check_scraping_legality,
    classify_page_type,
    detect_anti_bots,
    detect_tech_stack,
    extract_data,
    generate_data_schema,
    identify_data_sources,
    maps_web,
    return_links,
)

URL = "https://shop.example.com/item/1"


class FakeProxy:
    """Отдаёт результаты по очереди (последний повторяется) и запоминает параметры."""

    def __init__(self, *results: RequestResult) -> None:
        self._results = list(results) or [RequestResult(success=True, data="")]
        self.calls: list[dict[str, Any]] = []
        self.expect_json: list[bool] = []

    async def fetch(self, params: Mapping[str, Any], *, expect_json: bool = False) -> RequestResult:
        self.calls.append(dict(params))
        self.expect_json.append(expect_json)
        return self._results.pop(0) if len(self._results) > 1 else self._results[0]


class FakeAnalyzer:
    """Возвращает заданные ответы или бросает заданное исключение."""

    def __init__(self, *, report=None, page_type=None, selectors=None, schema=None, error=None) -> None:
        self.report = report or {}
        self.page_type = page_type or {}
        self.selectors = selectors or {}
        self.schema = schema or {}
        self.error = error
        self.calls: list[tuple[str, Any]] = []

    def _maybe_fail(self) -> None:
        if self.error is not None:
            raise self.error

    async def web_analyzer(self, url: str, **flags: bool) -> Mapping[str, Any]:
        self.calls.append(("web_analyzer", flags))
        self._maybe_fail()
        return self.report

    async def determine_page_type(self, url: str, html_content: str, *, label=None) -> Mapping[str, Any]:
        self.calls.append(("determine_page_type", html_content))
        self._maybe_fail()
        return self.page_type

    async def css_selector_stability(self, url: str) -> Mapping[str, Any]:
        self.calls.append(("css_selector_stability", url))
        self._maybe_fail()
        return self.selectors

    async def data_schema(self, page_type: str) -> Mapping[str, Any]:
        self.calls.append(("data_schema", page_type))
        self._maybe_fail()
        return self.schema


def _ctx(proxy=None, analyzer=None) -> ToolContext:
    return ToolContext(proxy=proxy or FakeProxy(), analyzer=analyzer or FakeAnalyzer())


def _ok(data: Any, status: int = 200) -> RequestResult:
    return RequestResult(success=True, data=data, status_code=status)


def _fail(kind: ErrorKind, status, error: str = "failed", retries: int = 0) -> RequestResult:
    return RequestResult(success=False, error=error, error_kind=kind, status_code=status, retries_attempted=retries)


# ---------- maps_web / extract_data / return_links ----------

def test_maps_web_returns_raw_text() -> None:
    proxy = FakeProxy(_ok("<html>hello</html>"))
    result = asyncio.run(maps_web(_ctx(proxy), URL, ProxyOptions(country="us", wait_for=".price")))

    assert result == "<html>hello</html>"
    assert proxy.calls == [{"url": URL, "country": "us", "wait_for": ".price", "render_js": True}]


def test_maps_web_invalid_params_makes_no_request() -> None:
    proxy = FakeProxy()
    result = asyncio.run(maps_web(_ctx(proxy), URL, ProxyOptions(render_js=False, screenshot=True)))

    assert result["success"] is False
    assert result["error"] == "Invalid parameter combination"
    assert len(result["validation_errors"]) == 1
    assert proxy.calls == []


def test_maps_web_forbidden_basic_request_asks_permission() -> None:
    proxy = FakeProxy(_fail(ErrorKind.FORBIDDEN, 403))
    result = asyncio.run(maps_web(_ctx(proxy), URL, ProxyOptions()))

    assert result["error_type"] == "forbidden"
    assert result["status_code"] == 403
    assert "permission_request" in result
    # Сам инструмент повторно не ходит.
    assert len(proxy.calls) == 1


def test_maps_web_forbidden_with_advanced_options_gives_diagnostic() -> None:
    proxy = FakeProxy(_fail(ErrorKind.FORBIDDEN, 403))
    result = asyncio.run(maps_web(_ctx(proxy), URL, ProxyOptions(residential=True, bypass_level="datadome")))

    assert "permission_request" not in result
    assert result["diagnostic"]["tried_options"] == ["residential", "bypass_level"]
    assert result["options_used"] == {"residential": True, "bypass_level": "datadome"}


def test_maps_web_screenshot() -> None:
    proxy = FakeProxy(_ok({"screenshot": "iVBORw0", "final_status_code": 200}))
    result = asyncio.run(maps_web(_ctx(proxy), URL, ProxyOptions(screenshot=True)))

    assert result["screenshot"] == "iVBORw0"
    assert result["screenshot_type"] == "base64_png"
    assert result["final_status_code"] == 200
    assert "initial_status_code" not in result
    assert proxy.calls[0]["json_response"] is True


def test_extract_data_llm_mode() -> None:
    proxy = FakeProxy(_ok({"name": "Shoe", "price": 10}))
    options = ProxyOptions(optimize_request=True, premium="level_1")
    result = asyncio.run(extract_data(_ctx(proxy), URL, "llm", options, data_schema="product_page"))

    assert result["success"] is True
    assert result["extraction_mode"] == "llm"
    assert result["data_schema"] == "product_page"
    assert len(result["warnings"]) == 1
    assert result["data"] == {"name": "Shoe", "price": 10}
    request = proxy.calls[0]
    assert request["llm_extract"] is True
    assert request["llm_data_schema"] == "product_page"
    assert request["llm_extract_response_type"] == "json"
    assert "auto_extract" not in request
    assert proxy.expect_json == [True]


def test_extract_data_auto_mode_failure() -> None:
    proxy = FakeProxy(_fail(ErrorKind.SERVER_ERROR, 500, retries=2))
    result = asyncio.run(extract_data(_ctx(proxy), URL, "auto", ProxyOptions()))

    assert proxy.calls[0]["auto_extract"] is True
    assert result["error_type"] == "server_error"
    assert result["retries_attempted"] == 2


def test_return_links_unwraps_proxy_json() -> None:
    proxy = FakeProxy(_ok({"status": "ok", "data": ["https://a", "https://b"]}))
    result = asyncio.run(return_links(_ctx(proxy), URL, ProxyOptions()))

    assert result == {"success": True, "url": URL, "status": "ok", "data": ["https://a", "https://b"]}
    assert proxy.calls[0]["return_links"] is True


def test_return_links_plain_text() -> None:
    result = asyncio.run(return_links(_ctx(FakeProxy(_ok("https://a\nhttps://b"))), URL, ProxyOptions()))

    assert result["status"] == "links_extract_successful"
    assert result["data"] == "https://a\nhttps://b"


# ---------- check_js_rendering / detect_anti_bots ----------

def test_check_js_rendering_makes_plain_then_rendered_request() -> None:
    proxy = FakeProxy(_ok("<p>" + "a" * 100 + "</p>"), _ok("<p>" + "b" * 3000 + "</p>"))
    result = asyncio.run(check_js_rendering(_ctx(proxy), URL))

    assert proxy.calls == [{"url": URL}, {"url": URL, "render_js": True}]
    assert result["needs_rendering"] is True
    assert result["comparison"]["content_length_ratio"] == 30.0


def test_check_js_rendering_both_failed() -> None:
    proxy = FakeProxy(_fail(ErrorKind.FORBIDDEN, 403, "blocked plain"), _fail(ErrorKind.FORBIDDEN, 403, "blocked js"))
    result = asyncio.run(check_js_rendering(_ctx(proxy), URL))

    assert result["success"] is False
    assert result["without_js_error"] == "blocked plain"
    assert result["with_js_error"] == "blocked js"
    assert result["error"].startswith("Both requests failed")


def test_detect_anti_bots_on_open_page() -> None:
    proxy = FakeProxy(_ok('<div class="cf-turnstile"></div>'))
    result = asyncio.run(detect_anti_bots(_ctx(proxy), URL))

    assert result["request_status"] == {"success": True, "status_code": 200, "was_blocked": False}
    assert result["total_protections_found"] == 1
    assert result["anti_bots_detected"][0]["is_actively_blocking"] is False
    assert result["protection_level"] == "low"


def test_detect_anti_bots_blocked_without_signature() -> None:
    proxy = FakeProxy(_fail(ErrorKind.FORBIDDEN, 403, "Access forbidden (HTTP 403)."))
    result = asyncio.run(detect_anti_bots(_ctx(proxy), URL))

    assert result["request_status"]["was_blocked"] is True
    assert result["anti_bots_detected"][0]["name"] == "Unknown Anti-Bot Protection"
    assert result["protection_level"] == "high"


def test_detect_anti_bots_nothing_found() -> None:
    result = asyncio.run(detect_anti_bots(_ctx(FakeProxy(_ok("<p>plain</p>"))), URL))

    assert result["anti_bots_detected"] == []
    assert result["protection_level"] == "none"
    assert "bypass_recommendations" not in result


# ---------- analyzer-backed tools ----------

def test_difficulty_passes_protections_flag() -> None:
    analyzer = FakeAnalyzer(report={"scraping_complexity_score": 2})
    result = asyncio.run(analyze_scraping_difficulty(_ctx(analyzer=analyzer), URL))

    assert analyzer.calls == [("web_analyzer", {"protections": True})]
    assert result["difficulty_level"] == "Easy"


def test_analyzer_timeout_becomes_failure_envelope() -> None:
    analyzer = FakeAnalyzer(error=AnalyzerTimeoutError("Web analyzer", 120000))
    result = asyncio.run(check_scraping_legality(_ctx(analyzer=analyzer), URL))

    assert result["success"] is False
    assert result["error"] == "Failed to check scraping legality: Web analyzer timed out after 120000ms"
    assert result["recommendations"] == [
        "Ensure the parser service is running and accessible",
        "Verify your API key is valid",
        "Try again with a different URL",
    ]


def test_identify_data_sources_uses_data_extraction() -> None:
    analyzer = FakeAnalyzer(report={"data_locations": ["embedded_json"]})
    result = asyncio.run(identify_data_sources(_ctx(analyzer=analyzer), URL))

    assert analyzer.calls == [("web_analyzer", {"data_extraction": True})]
    assert result["data_sources"]["breakdown"]["embedded_json"]["found"] is True


def test_api_endpoints_failure_has_no_recommendations() -> None:
    analyzer = FakeAnalyzer(error=AnalyzerError("Web analyzer", 500, "boom"))
    result = asyncio.run(analyze_api_endpoints(_ctx(analyzer=analyzer), URL))

    assert result["error"] == "Failed to analyze API endpoints: Web analyzer failed with status 500: boom"
    assert "recommendations" not in result


def test_tech_stack_from_analyzer() -> None:
    analyzer = FakeAnalyzer(report={"detected_technologies": [{"name": "Shopify", "type": "ecommerce"}]})
    proxy = FakeProxy()
    result = asyncio.run(detect_tech_stack(_ctx(proxy, analyzer), URL))

    assert result["tech_stack"]["count"] == 1
    assert "detection_source" not in result
    assert proxy.calls == []


def test_tech_stack_falls_back_to_local_signatures() -> None:
    html = '<div data-reactroot=""></div><link href="/wp-content/x.css">'
    proxy = FakeProxy(_ok(html))
    analyzer = FakeAnalyzer(error=AnalyzerTimeoutError("Web analyzer", 1000))
    result = asyncio.run(detect_tech_stack(_ctx(proxy, analyzer), URL))

    assert result["detection_source"] == "local_signatures"
    assert [t["name"] for t in result["tech_stack"]["technologies"]] == ["React", "WordPress"]
    assert result["rendering"]["requires_javascript"] is True
    assert proxy.calls == [{"url": URL}]


def test_tech_stack_fallback_fetch_failed() -> None:
    proxy = FakeProxy(_fail(ErrorKind.FORBIDDEN, 403))
    analyzer = FakeAnalyzer(error=AnalyzerTimeoutError("Web analyzer", 1000))
    result = asyncio.run(detect_tech_stack(_ctx(proxy, analyzer), URL))

    assert result["success"] is False
    assert result["error"].startswith("Failed to detect tech stack:")


# ---------- page analysis ----------

def test_classify_page_type_sends_fetched_html() -> None:
    proxy = FakeProxy(_ok("<html>product</html>"))
    analyzer = FakeAnalyzer(page_type={"status": "valid", "data": "product_page"})
    result = asyncio.run(classify_page_type(_ctx(proxy, analyzer), URL))

    assert analyzer.calls == [("determine_page_type", "<html>product</html>")]
    assert result["classification"]["page_type"] == "product_page"


def test_classify_page_type_fetch_failed() -> None:
    proxy = FakeProxy(_fail(ErrorKind.FORBIDDEN, 403))
    analyzer = FakeAnalyzer()
    result = asyncio.run(classify_page_type(_ctx(proxy, analyzer), URL))

    assert result["success"] is False
    assert result["status_code"] == 403
    assert "maps_web" in result["recommendation"]
    assert analyzer.calls == []


def test_classify_page_type_analyzer_failure() -> None:
    proxy = FakeProxy(_ok("<html>x</html>"))
    analyzer = FakeAnalyzer(error=AnalyzerError("Page type classification", 502))
    result = asyncio.run(classify_page_type(_ctx(proxy, analyzer), URL))

    assert result["recommendations"] == [
        "Ensure the parser service is running and accessible",
        "Try again with a different URL",
    ]


def test_check_css_selectors_obfuscated() -> None:
    analyzer = FakeAnalyzer(
        selectors={
            "css_selector_stability": "obfuscated",
            "is_obfuscated": True,
            "is_dynamic": False,
            "analysis_method": "multi_request",
            "successful_requests": 3,
            "total_requests": 3,
            "selector_comparison": {"average_entropy": 4.2, "random_ratio": 0.8, "total_unique": 120},
        }
    )
    result = asyncio.run(check_css_selectors(_ctx(analyzer=analyzer), URL))

    assert result["classification"] == "obfuscated"
    assert "(avg entropy: 4.20)" in result["assessment"]
    assert result["analysis"]["metrics"]["total_unique_selectors"] == 120
    assert "errors" not in result["analysis"]
    assert not any("class" in s.lower() for s in result["selector_strategy"]["use"])


def test_check_css_selectors_failure() -> None:
    analyzer = FakeAnalyzer(error=AnalyzerTimeoutError("CSS selector stability", 120000))
    result = asyncio.run(check_css_selectors(_ctx(analyzer=analyzer), URL))

    assert result["recommendations"] == ["Verify your API key is valid", "Try again with a different URL"]


def test_generate_data_schema_with_explicit_page_type() -> None:
    proxy = FakeProxy()
    analyzer = FakeAnalyzer(schema={"status": "valid", "schema": {"title": {"type": "string", "required": True}}})
    result = asyncio.run(generate_data_schema(_ctx(proxy, analyzer), URL, "job_page"))

    assert proxy.calls == []
    assert analyzer.calls == [("data_schema", "job_page")]
    assert result["summary"]["required_fields"] == 1
    assert "classification" not in result


def test_generate_data_schema_classifies_first() -> None:
    proxy = FakeProxy(_ok("<html>listing</html>"))
    analyzer = FakeAnalyzer(
        page_type={"status": "valid", "data": {"page_type": "real_estate_page", "reasoning": "r", "confidence_level": "medium"}},
        schema={"status": "no_schema", "supported_types": ["product_page"]},
    )
    result = asyncio.run(generate_data_schema(_ctx(proxy, analyzer), URL))

    assert [c[0] for c in analyzer.calls] == ["determine_page_type", "data_schema"]
    assert analyzer.calls[1] == ("data_schema", "real_estate_page")
    assert result["success"] is False
    assert result["classification"] == {"page_type": "real_estate_page", "reasoning": "r", "confidence_level": "medium"}


def test_generate_data_schema_invalid_classification() -> None:
    proxy = FakeProxy(_ok("<html>?</html>"))
    analyzer = FakeAnalyzer(page_type={"status": "invalid", "error": "unclear"})
    result = asyncio.run(generate_data_schema(_ctx(proxy, analyzer), URL))

    assert result["error"] == "Page classification failed: unclear"
    assert [c[0] for c in analyzer.calls] == ["determine_page_type"]
