from __future__ import annotations

import json
import logging
import re
from typing import Any, Iterable, Mapping, Optional, Sequence
from urllib.parse import parse_qsl, urlsplit, urlunsplit

logger = logging.getLogger(__name__)

PAGINATION_SCAN_LIMIT = 256 * 1024
FIELD_SAMPLE_LIMIT = 64 * 1024
FIELD_SAMPLE_COUNT = 10
PAGINATION_MAX_DEPTH = 2

PAGINATION_KEYS: dict[str, tuple[str, ...]] = {
    "page": ("page", "current_page", "currentPage", "p"),
    "page_size": ("per_page", "page_size", "pageSize", "limit", "size"),
    "total_items": ("total", "total_items", "totalItems", "count"),
    "total_pages": ("total_pages", "totalPages", "pages"),
    "next": ("next", "next_page", "nextPage", "hasNext", "next_cursor", "cursor"),
    "offset": ("offset", "skip"),
}
PAGINATION_CONTAINERS: tuple[str, ...] = ("pagination", "paging", "meta", "pageInfo", "page_info")

# Префиксы защиты от JSON hijacking: while(1); )]}'  for(;;);
_ANTI_HIJACK_RE = re.compile(
    r"^\s*(?:while\s*\(\s*1\s*\)\s*;|\)\]\}'\}\s*|for\s*\(\s*;\s*;\s*\)\s*;|\)\]\}')\s*",
    re.I,
)


def _normalize_url(url: str) -> Optional[str]:
    """URL без фрагмента и без завершающего слэша; None, если это не абсолютный URL."""
    try:
        parts = urlsplit(url)
    except ValueError:
        # битый URL (например, незакрытый IPv6-литерал)
        return None
    if not parts.scheme or not parts.netloc:
        return None
    normalized = urlunsplit((parts.scheme, parts.netloc.lower(), parts.path or "/", parts.query, ""))
    return normalized[:-1] if normalized.endswith("/") else normalized


def target_data_urls(extracted: Iterable[Mapping[str, Any]]) -> set[str]:
    """URL сетевых запросов, из которых анализатор извлёк целевые данные."""
    urls: set[str] = set()
    for item in extracted:
        source = item.get("source")
        if item.get("type") != "network_requests" or not source:
            continue
        normalized = _normalize_url(str(source))
        if normalized is not None:
            urls.add(normalized)
        urls.add(str(source))
    return urls


def url_matches_target(url: str, targets: set[str]) -> bool:
    normalized = _normalize_url(url)
    if normalized is None:
        return url in targets
    if normalized in targets or url in targets:
        return True
    return any(normalized.startswith(t) or t.startswith(normalized) for t in targets)


def query_params(url: str) -> dict[str, str]:
    try:
        query = urlsplit(url).query
    except ValueError:
        return {}
    return dict(parse_qsl(query, keep_blank_values=True))


def auth_requirements(headers: Any) -> list[str]:
    auth: list[str] = []
    if not isinstance(headers, Mapping):
        return auth
    lowered = {str(k).lower(): v for k, v in headers.items()}
    if lowered.get("authorization"):
        auth.append("Authorization header present")
    if lowered.get("cookie"):
        auth.append("Cookie header (session/auth cookies may be required)")
    if lowered.get("x-api-key") or lowered.get("x-auth-token"):
        auth.append("API key or auth token in header")
    if not auth:
        auth.append("None detected from request headers (may still require cookies or session)")
    return auth


def _parse_json_body(body: str) -> Any:
    """Разбор тела ответа; битый JSON -> None (данных нет, это не ошибка)."""
    cleaned = _ANTI_HIJACK_RE.sub("", body, count=1).strip()
    try:
        return json.loads(cleaned)
    except ValueError:
        return None


def detect_pagination(body: Optional[str]) -> Optional[dict[str, Any]]:
    if not body or len(body) > PAGINATION_SCAN_LIMIT:
        return None
    parsed = _parse_json_body(body)
    if parsed is None:
        return None

    found: dict[str, Any] = {}

    def scan(node: Any, depth: int) -> None:
        if depth > PAGINATION_MAX_DEPTH:
            return
        if isinstance(node, dict):
            for target, candidates in PAGINATION_KEYS.items():
                for key in candidates:
                    if key in node:
                        found[target] = node[key]
            for key in PAGINATION_CONTAINERS:
                child = node.get(key)
                if child and isinstance(child, (dict, list)):
                    scan(child, depth + 1)
        elif isinstance(node, list) and node:
            scan(node[0], depth + 1)

    scan(parsed, 0)
    return found or None


def sample_fields(body: Optional[str]) -> list[str]:
    if not body or len(body) > FIELD_SAMPLE_LIMIT:
        return []
    parsed = _parse_json_body(body)
    if isinstance(parsed, dict):
        return list(parsed.keys())[:FIELD_SAMPLE_COUNT]
    if isinstance(parsed, list) and parsed and isinstance(parsed[0], dict):
        return list(parsed[0].keys())[:FIELD_SAMPLE_COUNT]
    return []


def endpoint_analysis(request: Mapping[str, Any], *, is_target_data: bool) -> dict[str, Any]:
    url = str(request.get("url") or "")
    parameters: dict[str, Any] = {"query": query_params(url)}

    raw_body = request.get("request_body")
    if raw_body:
        try:
            body = json.loads(raw_body)
        except (TypeError, ValueError):
            body = None
        if isinstance(body, (dict, list)):
            parameters["body"] = body

    response_body = request.get("response_body")
    return {
        "endpoint": {
            "url": url,
            "method": request.get("method") or "GET",
            "status_code": request.get("status_code"),
        },
        "parameters": parameters,
        "authentication_requirements": auth_requirements(request.get("request_headers")),
        "pagination_strategy": detect_pagination(response_body),
        "contains_target_data": is_target_data,
        "sample_fields": sample_fields(response_body),
    }


def _looks_like_json_api(request: Mapping[str, Any]) -> bool:
    return (
        request.get("request_type") in ("xhr", "fetch")
        and (request.get("data_format") == "json" or "json" in str(request.get("content_type") or ""))
        and request.get("status_code") == 200
        and len(request.get("response_body") or "") > 0
    )


def _summary(request: Mapping[str, Any], *, with_type: bool = False) -> dict[str, Any]:
    out = {
        "url": request.get("url"),
        "method": request.get("method"),
        "status_code": request.get("status_code"),
        "content_type": request.get("content_type"),
    }
    if with_type:
        out["request_type"] = request.get("request_type")
    return out


def segment_requests(
    requests: Sequence[Mapping[str, Any]],
    extracted: Sequence[Mapping[str, Any]],
    locations: Sequence[str],
) -> tuple[list[Mapping[str, Any]], list[Mapping[str, Any]]]:
    """
    Делит перехваченные запросы на несущие целевые данные и остальные.

    Если анализатор не привязал данные к конкретным URL, но сказал, что данные
    приходят по сети, целевыми считаем успешные JSON-ответы XHR/fetch.
    """
    targets = target_data_urls(extracted)
    prefer_network = "network_requests" in locations or "api_endpoints" in locations

    with_target: list[Mapping[str, Any]] = []
    without_target: list[Mapping[str, Any]] = []
    for req in requests:
        is_target = url_matches_target(str(req.get("url") or ""), targets)
        if not is_target and prefer_network and not targets and _looks_like_json_api(req):
            is_target = True
        (with_target if is_target else without_target).append(req)
    return with_target, without_target


def analyze_api_endpoints(report: Mapping[str, Any]) -> dict[str, Any]:
    requests = [r for r in (report.get("network_requests") or []) if isinstance(r, Mapping)]
    extracted = [i for i in (report.get("extracted_data") or []) if isinstance(i, Mapping)]
    locations = [str(l) for l in (report.get("data_locations") or [])]

    with_target, without_target = segment_requests(requests, extracted, locations)
    logger.debug(
        "[api_endpoints] captured=%s with_target=%s without_target=%s",
        len(requests),
        len(with_target),
        len(without_target),
    )

    return {
        "success": True,
        "url": report.get("url"),
        "domain": report.get("domain"),
        "page_type": report.get("page_type"),
        "data_locations": locations,
        "primary_data_requests": [endpoint_analysis(r, is_target_data=True) for r in with_target],
        "other_requests": [_summary(r, with_type=True) for r in without_target],
        "all_requests_segmented": {
            "contains_target_data": [_summary(r) for r in with_target],
            "does_not_contain_target_data": [_summary(r) for r in without_target],
        },
        "summary": {
            "total_captured": len(requests),
            "with_target_data": len(with_target),
            "without_target_data": len(without_target),
        },
    }
