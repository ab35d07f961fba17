from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Literal, Mapping, Optional

logger = logging.getLogger(__name__)

Country = Literal["us", "gb", "de", "fr", "ca", "au", "br", "in", "jp", "nl", "es", "it"]
BypassLevel = Literal[
    "generic_level_1",
    "generic_level_2",
    "generic_level_3",
    "generic_level_4",
    "cloudflare_level_1",
    "cloudflare_level_2",
    "cloudflare_level_3",
    "datadome",
    "incapsula",
    "perimeterx",
]
PremiumLevel = Literal["level_1", "level_2"]
DeviceType = Literal["desktop", "mobile"]
ExtractionMode = Literal["auto", "llm"]
ResponseFormat = Literal["json", "markdown"]
DataSchema = Literal[
    "product_page",
    "product_reviews_page",
    "product_search_page",
    "product_seller_page",
    "job_page",
    "job_advert_page",
    "job_search_page",
    "company_page",
    "company_job_page",
    "company_location_page",
    "company_review_page",
    "company_search_page",
    "company_social_media_page",
    "real_estate_page",
    "real_estate_profile_page",
    "real_estate_search_page",
    "serp_search_page",
]

SESSION_NUMBER_MIN = 1
SESSION_NUMBER_MAX = 10_000

INVALID_COMBINATION_ERROR = "Invalid parameter combination"
INVALID_COMBINATION_ACTION = "Please fix the parameter conflicts and try again."


@dataclass(frozen=True)
class ProxyOptions:
    """
    Все настраиваемые вызывающей стороной флаги прокси.
    None = параметр не передан (важно отличать от явного False).
    """
    country: Optional[str] = None
    residential: Optional[bool] = None
    mobile: Optional[bool] = None
    premium: Optional[str] = None
    render_js: Optional[bool] = None
    wait_for: Optional[str] = None
    wait: Optional[int] = None
    scroll: Optional[int] = None
    screenshot: Optional[bool] = None
    bypass_level: Optional[str] = None
    device_type: Optional[str] = None
    follow_redirects: Optional[bool] = None
    return_status_codes: Optional[bool] = None
    keep_headers: Optional[bool] = None
    session_number: Optional[int] = None
    optimize_request: Optional[bool] = None
    max_request_cost: Optional[float] = None


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    errors: list[str]
    warnings: list[str]


def build_request(
    url: str,
    options: ProxyOptions,
    *,
    extra: Optional[Mapping[str, Any]] = None,
) -> tuple[dict[str, Any], dict[str, Any]]:
    """
    Собирает параметры запроса к прокси и набор реально применённых опций.

    Правила применения:
    - wait_for / scroll / screenshot принудительно включают render_js;
    - screenshot и return_status_codes включают json_response;
    - bypass_level уходит в прокси как `bypass`;
    - max_request_cost применяется только вместе с optimize_request.

    extra: служебные параметры инструмента (json_response, auto_extract, return_links, ...),
    в used_options они не попадают.
    """
    request: dict[str, Any] = {"url": url}
    if extra:
        request.update(extra)
    used: dict[str, Any] = {}

    def apply(key: str, value: Any, *, request_key: Optional[str] = None) -> None:
        request[request_key or key] = value
        used[key] = value

    if options.country:
        apply("country", options.country)
    if options.residential:
        apply("residential", True)
    if options.mobile:
        apply("mobile", True)
    if options.premium:
        apply("premium", options.premium)

    if options.render_js:
        apply("render_js", True)
    if options.wait_for:
        apply("wait_for", options.wait_for)
        apply("render_js", True)
    if options.wait:
        apply("wait", options.wait)
    if options.scroll:
        apply("scroll", options.scroll)
        apply("render_js", True)

    if options.screenshot:
        apply("screenshot", True)
        apply("render_js", True)
        request["json_response"] = True

    if options.bypass_level:
        apply("bypass_level", options.bypass_level, request_key="bypass")

    if options.device_type:
        apply("device_type", options.device_type)
    if options.follow_redirects is not None:
        apply("follow_redirects", options.follow_redirects)
    if options.return_status_codes:
        request["initial_status_code"] = True
        request["final_status_code"] = True
        request["json_response"] = True
        used["return_status_codes"] = True
    if options.keep_headers:
        apply("keep_headers", True)
    if options.session_number:
        apply("session_number", options.session_number)
    if options.optimize_request:
        apply("optimize_request", True)
        if options.max_request_cost:
            apply("max_request_cost", options.max_request_cost)

    return remove_empty_values(request), used


def remove_empty_values(params: Mapping[str, Any]) -> dict[str, Any]:
    """Выкидывает None, пустые строки, пустые списки и словари."""
    out: dict[str, Any] = {}
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        if isinstance(value, (list, tuple, dict)) and len(value) == 0:
            continue
        out[key] = value
    return out


def encode_query(params: Mapping[str, Any]) -> dict[str, str]:
    """
    Приводит значения к строкам query-параметров.
    Булевы значения кодируются как true/false.
    """
    encoded: dict[str, str] = {}
    for key, value in params.items():
        if value is None or value == "":
            continue
        if isinstance(value, bool):
            encoded[key] = "true" if value else "false"
        else:
            encoded[key] = str(value)
    return encoded


def validate_params(options: ProxyOptions) -> ValidationResult:
    """Проверка конфликтующих комбинаций по исходным аргументам вызова."""
    errors: list[str] = []
    warnings: list[str] = []

    if options.render_js is False:
        for name in ("wait_for", "scroll", "screenshot"):
            if getattr(options, name):
                errors.append(
                    f"Conflict: `{name}` requires JavaScript rendering, but `render_js` is explicitly set to false. "
                    f"Remove `render_js: false` or remove `{name}`."
                )

    if options.optimize_request and options.bypass_level:
        warnings.append(
            "Warning: Using `optimize_request` with `bypass_level` may cause conflicts. "
            "The optimizer may override your bypass settings."
        )
    if options.optimize_request and options.premium:
        warnings.append(
            "Warning: Using `optimize_request` with `premium` may cause conflicts. "
            "The optimizer may override your premium settings."
        )

    if options.session_number is not None:
        if not SESSION_NUMBER_MIN <= options.session_number <= SESSION_NUMBER_MAX:
            errors.append("Invalid `session_number`: must be between 1 and 10000.")

    if options.max_request_cost and not options.optimize_request:
        errors.append("`max_request_cost` requires `optimize_request: true` to be set.")

    return ValidationResult(valid=not errors, errors=errors, warnings=warnings)


def invalid_params_envelope(url: str, validation: ValidationResult) -> dict[str, Any]:
    return {
        "success": False,
        "url": url,
        "error": INVALID_COMBINATION_ERROR,
        "validation_errors": list(validation.errors),
        "action_required": INVALID_COMBINATION_ACTION,
    }
