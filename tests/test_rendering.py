from scrapeops_mcp.errors import ErrorKind
from scrapeops_mcp.evidence import collect_evidence, strip_html_tags
from scrapeops_mcp.rendering import analyze_rendering, content_ratio, verdict_to_response
from scrapeops_mcp.retry import RequestResult


def _ok(html: str):
    return collect_evidence(RequestResult(success=True, data=html, status_code=200))


def _failed(status: int = 403):
    return collect_evidence(
        RequestResult(success=False, error="blocked", error_kind=ErrorKind.FORBIDDEN, status_code=status)
    )


def _count(reasons: list[str], needle: str) -> int:
    return sum(1 for r in reasons if needle in r)


def test_strip_html_tags_removes_scripts_and_decodes_entities() -> None:
    html = (
        "<html><head><style>.a{color:red}</style><script>var x = 1;</script></head>"
        "<body><p>Tom&nbsp;&amp;&nbsp;Jerry</p>\n\n<p>&lt;b&gt; &quot;q&quot; it&#39;s</p></body></html>"
    )
    assert strip_html_tags(html) == "Tom & Jerry <b> \"q\" it's"


def test_evidence_from_json_response_uses_inner_data() -> None:
    evidence = collect_evidence(RequestResult(success=True, data={"data": "<p>inner</p>"}, status_code=200))

    assert evidence.html == "<p>inner</p>"
    assert evidence.text_content == "inner"


def test_failed_result_has_empty_html() -> None:
    evidence = _failed()

    assert evidence.html == ""
    assert evidence.success is False
    assert evidence.error_kind is ErrorKind.FORBIDDEN


def test_content_ratio_edge_cases() -> None:
    assert content_ratio(0, 0) == 0
    assert content_ratio(0, 10) == float("inf")
    assert content_ratio(10, 0) == 0
    assert content_ratio(100, 300) == 3


def test_large_growth_needs_rendering_with_single_ratio_reason() -> None:
    verdict = analyze_rendering(_ok("a" * 100), _ok("b" * 3000))

    assert verdict.needs_rendering is True
    assert verdict.metrics.no_js_len == 100
    assert verdict.metrics.js_len == 3000
    assert _count(verdict.reasons, "more text content") == 1
    assert verdict.reasons[0] == "Rendered version has 30.0x more text content (100 → 3000 chars)"
    # Правило "большая разница" не дублирует причину с отношением.
    assert _count(verdict.reasons, "appear only in the rendered version") == 0


def test_small_growth_does_not_need_rendering() -> None:
    verdict = analyze_rendering(_ok("a" * 3000), _ok("b" * 3050))

    assert verdict.needs_rendering is False
    assert verdict.reasons == []
    assert verdict.explanation.startswith("No, this page does not require JavaScript rendering.")
    assert "3000 chars of text" in verdict.explanation


def test_failed_plain_fetch_and_rendered_success() -> None:
    verdict = analyze_rendering(_failed(), _ok("<p>hello</p>"))

    assert verdict.needs_rendering is True
    assert "Non-rendered request failed while rendered request succeeded" in verdict.reasons
    # 0 -> N символов: отношение бесконечно, но разница мала.
    assert _count(verdict.reasons, "more text content") == 0


def test_empty_mount_point_and_noscript() -> None:
    html = (
        '<html><body><div id="root"></div>'
        "<noscript>You need to enable JavaScript to run this app.</noscript></body></html>"
    )
    verdict = analyze_rendering(_ok(html), _ok(html))

    assert verdict.needs_rendering is True
    assert verdict.empty_containers == ["Empty #root container (React)"]
    assert verdict.noscript_messages == ["You need to enable JavaScript to run this app."]
    assert _count(verdict.reasons, "Empty SPA mount points found") == 1
    assert _count(verdict.reasons, "<noscript> messages found") == 1


def test_thin_content_with_rendering_framework() -> None:
    html = '<html><body><script src="/_next/static/chunks/main.js"></script><p>Loading</p></body></html>'
    verdict = analyze_rendering(_ok(html), _ok(html))

    assert [f.name for f in verdict.frameworks] == ["Next.js"]
    assert _count(verdict.reasons, "Very thin non-rendered content") == 1


def test_large_difference_without_ratio_reason() -> None:
    verdict = analyze_rendering(_ok("a" * 20000), _ok("b" * 26000))

    # 1.3x: правило отношения не срабатывает, срабатывает правило разницы.
    assert _count(verdict.reasons, "more text content") == 0
    assert verdict.reasons == ["6000 characters of additional text content appear only in the rendered version"]


def test_response_has_null_ratio_for_infinite_growth() -> None:
    no_js, js = _ok(""), _ok("c" * 2500)
    verdict = analyze_rendering(no_js, js)
    response = verdict_to_response("https://example.com", no_js, js, verdict)

    assert response["comparison"]["content_length_ratio"] is None
    assert response["comparison"]["without_js"]["text_preview"] == "(empty)"
    assert "Rendered version has Infinityx more text content (0 → 2500 chars)" in response["reasons"]
    assert "empty_spa_containers" not in response


def test_response_rounds_ratio() -> None:
    no_js, js = _ok("a" * 300), _ok("b" * 1000)
    verdict = analyze_rendering(no_js, js)
    response = verdict_to_response("https://example.com", no_js, js, verdict)

    assert response["comparison"]["content_length_ratio"] == 3.33
    assert response["comparison"]["additional_text_from_rendering"] == 700
    assert response["comparison"]["with_js"]["status_code"] == 200
