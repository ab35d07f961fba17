from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Optional

from scrapeops_mcp.evidence import Evidence, strip_html_tags
from scrapeops_mcp.signatures.frameworks import FrameworkDetection, detect_empty_containers, detect_frameworks, merge_frameworks

logger = logging.getLogger(__name__)

RATIO_THRESHOLD = 1.5
RATIO_MIN_DIFF = 2000
THIN_CONTENT_CHARS = 500
LARGE_DIFF_CHARS = 5000
NOSCRIPT_MIN_CHARS = 10
NOSCRIPT_MAX_CHARS = 200
NOSCRIPT_QUOTE_CHARS = 100
PREVIEW_CHARS = 500

RATIO_REASON_MARKER = "more text content"

_NOSCRIPT_RE = re.compile(r"<noscript[^>]*>([\s\S]*?)<\/noscript>", re.I)


def detect_noscript_messages(html: str) -> list[str]:
    messages: list[str] = []
    for match in _NOSCRIPT_RE.finditer(html):
        text = strip_html_tags(match.group(1))[:NOSCRIPT_MAX_CHARS]
        if len(text) > NOSCRIPT_MIN_CHARS:
            messages.append(text)
    return messages


def content_ratio(no_js_len: int, js_len: int) -> float:
    if no_js_len == 0 and js_len > 0:
        return math.inf
    if no_js_len > 0 and js_len > 0:
        return js_len / no_js_len
    return 0.0


def _format_ratio(ratio: float) -> str:
    return "Infinity" if math.isinf(ratio) else f"{ratio:.1f}"


@dataclass(frozen=True)
class RenderingMetrics:
    no_js_len: int
    js_len: int
    ratio: float
    diff: int


@dataclass(frozen=True)
class RenderingVerdict:
    needs_rendering: bool
    reasons: list[str]
    metrics: RenderingMetrics
    no_js_preview: str
    js_preview: str
    empty_containers: list[str] = field(default_factory=list)
    noscript_messages: list[str] = field(default_factory=list)
    frameworks: list[FrameworkDetection] = field(default_factory=list)

    @property
    def explanation(self) -> str:
        if self.needs_rendering:
            return f"Yes, this page requires JavaScript rendering. {'. '.join(self.reasons)}."
        return (
            "No, this page does not require JavaScript rendering. The non-rendered version contains "
            f"sufficient content ({self.metrics.no_js_len} chars of text)."
        )


def analyze_rendering(no_js: Evidence, js: Evidence) -> RenderingVerdict:
    """
    Дифференциальный анализ двух выборок: без рендеринга и с рендерингом.

    Все правила вычисляются независимо, каждое сработавшее добавляет одну причину.
    Итог = OR по правилам. Функция чистая.
    """
    no_js_len = len(no_js.text_content)
    js_len = len(js.text_content)
    ratio = content_ratio(no_js_len, js_len)
    diff = js_len - no_js_len

    empty_containers = detect_empty_containers(no_js.html)
    noscript = detect_noscript_messages(no_js.html)
    frameworks = merge_frameworks(detect_frameworks(no_js.html), detect_frameworks(js.html))

    reasons: list[str] = []

    if not no_js.success and js.success:
        reasons.append("Non-rendered request failed while rendered request succeeded")

    if ratio > RATIO_THRESHOLD and diff > RATIO_MIN_DIFF:
        reasons.append(
            f"Rendered version has {_format_ratio(ratio)}x more text content ({no_js_len} → {js_len} chars)"
        )

    if empty_containers:
        reasons.append(f"Empty SPA mount points found: {', '.join(empty_containers)}")

    if noscript:
        reasons.append(f'<noscript> messages found: "{noscript[0][:NOSCRIPT_QUOTE_CHARS]}"')

    if no_js_len < THIN_CONTENT_CHARS and any(f.rendering_likely_required for f in frameworks):
        reasons.append(f"Very thin non-rendered content ({no_js_len} chars) with JS framework detected")

    if diff > LARGE_DIFF_CHARS and not any(RATIO_REASON_MARKER in r for r in reasons):
        reasons.append(f"{diff} characters of additional text content appear only in the rendered version")

    verdict = RenderingVerdict(
        needs_rendering=bool(reasons),
        reasons=reasons,
        metrics=RenderingMetrics(no_js_len=no_js_len, js_len=js_len, ratio=ratio, diff=diff),
        no_js_preview=no_js.text_content[:PREVIEW_CHARS],
        js_preview=js.text_content[:PREVIEW_CHARS],
        empty_containers=empty_containers,
        noscript_messages=noscript,
        frameworks=frameworks,
    )
    logger.debug(
        "[rendering] no_js_len=%s js_len=%s ratio=%s needs_rendering=%s reasons=%s",
        no_js_len,
        js_len,
        ratio,
        verdict.needs_rendering,
        len(reasons),
    )
    return verdict


def _sample_block(evidence: Evidence, preview: str) -> dict[str, Any]:
    status: Optional[int] = evidence.status_code or (200 if evidence.success else None)
    return {
        "request_success": evidence.success,
        "status_code": status,
        "html_length": len(evidence.html),
        "text_content_length": len(evidence.text_content),
        "text_preview": preview or "(empty)",
    }


def verdict_to_response(url: str, no_js: Evidence, js: Evidence, verdict: RenderingVerdict) -> dict[str, Any]:
    ratio = verdict.metrics.ratio
    response: dict[str, Any] = {
        "success": True,
        "url": url,
        "needs_rendering": verdict.needs_rendering,
        "explanation": verdict.explanation,
        "comparison": {
            "without_js": _sample_block(no_js, verdict.no_js_preview),
            "with_js": _sample_block(js, verdict.js_preview),
            # inf в JSON не представим -> null
            "content_length_ratio": round(ratio, 2) if ratio > 0 and not math.isinf(ratio) else None,
            "additional_text_from_rendering": verdict.metrics.diff,
        },
    }
    if verdict.empty_containers:
        response["empty_spa_containers"] = verdict.empty_containers
    if verdict.noscript_messages:
        response["noscript_messages"] = verdict.noscript_messages
    if verdict.frameworks:
        response["js_frameworks_detected"] = [f.to_dict() for f in verdict.frameworks]
    response["reasons"] = verdict.reasons
    return response
