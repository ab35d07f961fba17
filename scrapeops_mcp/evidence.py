from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Optional

from scrapeops_mcp.errors import ErrorKind
from scrapeops_mcp.retry import RequestResult

logger = logging.getLogger(__name__)

_SCRIPT_RE = re.compile(r"<script[^>]*>[\s\S]*?<\/script>", re.I)
_STYLE_RE = re.compile(r"<style[^>]*>[\s\S]*?<\/style>", re.I)
_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s+")

# Замены применяются строго в этом порядке.
_ENTITIES: tuple[tuple[str, str], ...] = (
    ("&nbsp;", " "),
    ("&amp;", "&"),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#39;", "'"),
)


def strip_html_tags(html: str) -> str:
    """Видимый текст страницы: без script/style, теги -> пробел, схлопнутые пробелы."""
    text = _SCRIPT_RE.sub("", html)
    text = _STYLE_RE.sub("", text)
    text = _TAG_RE.sub(" ", text)
    for entity, char in _ENTITIES:
        text = text.replace(entity, char)
    return _WS_RE.sub(" ", text).strip()


def extract_html(result: RequestResult) -> str:
    """
    HTML из результата прокси.
    Строка берётся как есть; у JSON-ответа берётся поле data, если это строка, иначе весь JSON.
    """
    if not result.success:
        return ""
    data = result.data
    if isinstance(data, str):
        return data
    if isinstance(data, dict):
        inner = data.get("data")
        if isinstance(inner, str):
            return inner
        return json.dumps(data, ensure_ascii=False)
    if data:
        return json.dumps(data, ensure_ascii=False)
    return ""


@dataclass(frozen=True)
class Evidence:
    """Нормализованный результат одного запроса: вход для классификаторов."""
    html: str
    text_content: str
    success: bool
    status_code: Optional[int] = None
    error_kind: Optional[ErrorKind] = None
    error: Optional[str] = None
    timing_ms: Optional[int] = None


def collect_evidence(result: RequestResult, *, timing_ms: Optional[int] = None) -> Evidence:
    html = extract_html(result)
    evidence = Evidence(
        html=html,
        text_content=strip_html_tags(html),
        success=result.success,
        status_code=result.status_code,
        error_kind=result.error_kind,
        error=result.error,
        timing_ms=timing_ms,
    )
    logger.debug(
        "[evidence] success=%s status=%s html_len=%s text_len=%s timing_ms=%s",
        evidence.success,
        evidence.status_code,
        len(evidence.html),
        len(evidence.text_content),
        timing_ms,
    )
    return evidence
