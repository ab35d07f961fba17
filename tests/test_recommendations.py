import itertools

from scrapeops_mcp.errors import ErrorKind
from scrapeops_mcp.recommendations import (
    ADVANCED_PARAMS,
    BASIC_OPTIONS_LABEL,
    build_error_envelope,
    used_advanced_params,
)

_OPTION_SETS = [
    {},
    {"country": "us"},
    {"country": "de", "follow_redirects": False},
    {"render_js": False},
    {"render_js": True},
    {"residential": True},
    {"mobile": True, "country": "gb"},
    {"premium": "level_1"},
    {"bypass_level": "cloudflare_level_2", "residential": True},
    {"optimize_request": True, "max_request_cost": 20},
]

ESCALATABLE = {ErrorKind.FORBIDDEN, ErrorKind.RATE_LIMITED, ErrorKind.SERVER_ERROR, ErrorKind.UNKNOWN}


def _envelope(kind: ErrorKind, used: dict, **kwargs) -> dict:
    return build_error_envelope(
        "https://example.com",
        kwargs.get("error", "raw error text"),
        kind,
        kwargs.get("status_code", 500),
        used,
        kwargs.get("retries", 0),
    )


def test_used_advanced_params_ignores_false_and_basic_options() -> None:
    assert used_advanced_params({"country": "us", "render_js": False}) == []
    assert used_advanced_params({"residential": True, "bypass_level": "datadome"}) == ["residential", "bypass_level"]
    assert set(ADVANCED_PARAMS) == {"render_js", "residential", "mobile", "premium", "bypass_level", "optimize_request"}


def test_permission_and_diagnostic_are_mutually_exclusive() -> None:
    # Перебираем все сочетания вида ошибки и набора опций.
    for kind, used in itertools.product(ErrorKind, _OPTION_SETS):
        env = _envelope(kind, used)
        assert not ("permission_request" in env and "diagnostic" in env), (kind, used)


def test_no_permission_request_after_advanced_options() -> None:
    for kind, used in itertools.product(ErrorKind, _OPTION_SETS):
        env = _envelope(kind, used)
        if used_advanced_params(used):
            assert "permission_request" not in env
            assert "diagnostic" in env
            assert env["options_used"] == used


def test_permission_request_only_for_basic_escalatable_kinds_with_suggestions() -> None:
    for kind in ErrorKind:
        env = _envelope(kind, {"country": "us"})
        if kind in (ErrorKind.FORBIDDEN, ErrorKind.RATE_LIMITED, ErrorKind.SERVER_ERROR):
            assert "permission_request" in env, kind
        else:
            # unknown эскалируем, но предложить нечего.
            assert "permission_request" not in env, kind
        assert "diagnostic" not in env
        assert env["options_used"] == BASIC_OPTIONS_LABEL


def test_forbidden_basic_request_suggests_residential_bypass() -> None:
    env = _envelope(ErrorKind.FORBIDDEN, {}, status_code=403)

    assert env["success"] is False
    assert env["error_type"] == "forbidden"
    assert env["status_code"] == 403
    assert env["retries_attempted"] == 0
    request = env["permission_request"]
    assert request["suggested_options"] == {"residential": True, "bypass_level": "generic_level_2"}
    assert request["estimated_additional_cost"]
    assert request["action_required"]


def test_forbidden_with_advanced_options_lists_them() -> None:
    env = _envelope(ErrorKind.FORBIDDEN, {"residential": True, "render_js": True}, status_code=403)

    assert "render_js, residential" in env["error"]
    assert env["diagnostic"]["tried_options"] == ["render_js", "residential"]
    assert env["diagnostic"]["possible_causes"]


def test_server_error_message_cites_retries() -> None:
    env = _envelope(ErrorKind.SERVER_ERROR, {}, retries=2)

    assert "Retried 2 time(s)" in env["error"]
    assert env["permission_request"]["suggested_options"] == {"render_js": True}


def test_unknown_kind_passes_raw_error_text() -> None:
    env = _envelope(ErrorKind.UNKNOWN, {}, error="Request failed with status 418.", status_code=418)

    assert env["error"] == "Request failed with status 418."
    assert "permission_request" not in env


def test_network_error_has_no_status_code() -> None:
    env = build_error_envelope("https://example.com", "Network error: boom", ErrorKind.NETWORK_ERROR, None, {}, 1)

    assert "status_code" not in env
    assert env["retries_attempted"] == 1
    assert "permission_request" not in env
    assert "diagnostic" not in env


def test_missing_kind_defaults_to_unknown() -> None:
    env = build_error_envelope("https://example.com", "boom", None, None, {})

    assert env["error_type"] == "unknown"
