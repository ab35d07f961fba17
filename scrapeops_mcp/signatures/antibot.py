from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Optional

from .base import SignatureDefinition, SignatureMatcher, compile_patterns

logger = logging.getLogger(__name__)

UNKNOWN_PROTECTION = "Unknown Anti-Bot Protection"

# Статусы, при которых считаем, что запрос заблокирован защитой.
BLOCKED_STATUS_CODES = frozenset({403, 503})

ANTI_BOT_SIGNATURES: tuple[SignatureDefinition, ...] = (
    SignatureDefinition(
        name="Cloudflare",
        challenge_patterns=compile_patterns(
            r"challenges\.cloudflare\.com",
            r"cdn-cgi\/challenge-platform",
            r"__cf_chl_",
            r"cf-browser-verification",
            r"Attention Required! \| Cloudflare",
            r"Just a moment\.\.\.<\/title>",
        ),
        presence_patterns=compile_patterns(
            r"cdn-cgi\/",
            r"cf-beacon",
            r"cloudflareinsights\.com",
            r"cf-turnstile",
        ),
    ),
    SignatureDefinition(
        name="DataDome",
        challenge_patterns=compile_patterns(r"captcha\.datadome", r"interstitial\.datadome"),
        presence_patterns=compile_patterns(r"datadome\.co", r"dd\.js", r"tags\.tiqcdn\.com.*datadome"),
    ),
    SignatureDefinition(
        name="PerimeterX (HUMAN)",
        challenge_patterns=compile_patterns(r"px-captcha", r"captcha\.px-cdn\.net"),
        presence_patterns=compile_patterns(r"b\.px-cloud\.net", r"client\.perimeterx\.net", r"_pxhd"),
    ),
    SignatureDefinition(
        name="Incapsula/Imperva",
        challenge_patterns=compile_patterns(r"_Incapsula_Resource", r"visid_incap_", r"incap_ses_"),
        presence_patterns=compile_patterns(r"incapsula", r"imperva"),
    ),
    SignatureDefinition(
        name="Akamai Bot Manager",
        challenge_patterns=compile_patterns(r"ak_bmsc"),
        presence_patterns=compile_patterns(r"akamaihd\.net", r"akam\/"),
    ),
    SignatureDefinition(
        name="AWS WAF",
        challenge_patterns=compile_patterns(r"aws-waf-token", r"captcha\.awswaf"),
        presence_patterns=compile_patterns(r"awswaf"),
    ),
    SignatureDefinition(
        name="Sucuri",
        challenge_patterns=compile_patterns(r"sucuri-cloudproxy"),
        presence_patterns=compile_patterns(r"sucuri\.net"),
    ),
    SignatureDefinition(
        name="reCAPTCHA",
        presence_patterns=compile_patterns(r"google\.com\/recaptcha", r"g-recaptcha", r"grecaptcha"),
    ),
    SignatureDefinition(
        name="hCaptcha",
        presence_patterns=compile_patterns(r"hcaptcha\.com", r"h-captcha"),
    ),
    SignatureDefinition(
        name="Kasada",
        presence_patterns=compile_patterns(r"kasada\.io"),
    ),
    SignatureDefinition(
        name="Shape Security (F5)",
        presence_patterns=compile_patterns(r"shapesecurity\.com"),
    ),
)

_MATCHER = SignatureMatcher(ANTI_BOT_SIGNATURES)


@dataclass(frozen=True)
class AntiBotDetection:
    name: str
    confidence: str  # high | medium | low
    is_actively_blocking: bool
    evidence: list[str]

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def is_request_blocked(success: bool, status_code: Optional[int]) -> bool:
    return not success and status_code in BLOCKED_STATUS_CODES


def _confidence(is_blocking: bool, evidence_count: int, request_blocked: bool) -> str:
    if is_blocking or (evidence_count >= 3 and request_blocked):
        return "high"
    if evidence_count >= 2 or request_blocked:
        return "medium"
    return "low"


def detect_anti_bots(
    text: str,
    request_blocked: bool,
    *,
    status_code: Optional[int] = None,
) -> list[AntiBotDetection]:
    """
    Сопоставляет текст с таблицей анти-бот сигнатур.

    "Активная блокировка" = совпал challenge-паттерн И сам запрос заблокирован.
    Если запрос заблокирован, а ни одна сигнатура не совпала, добавляем
    синтетическую "Unknown Anti-Bot Protection".
    """
    detected: list[AntiBotDetection] = []
    for m in _MATCHER.match(text):
        evidence = m.evidence()
        detected.append(
            AntiBotDetection(
                name=m.name,
                confidence=_confidence(m.is_blocking, len(evidence), request_blocked),
                is_actively_blocking=m.is_blocking and request_blocked,
                evidence=evidence,
            )
        )

    if request_blocked and not detected:
        detected.append(
            AntiBotDetection(
                name=UNKNOWN_PROTECTION,
                confidence="medium",
                is_actively_blocking=True,
                evidence=[f"Request blocked with HTTP {status_code}"],
            )
        )

    logger.debug(
        "[antibot] blocked=%s detected=%s",
        request_blocked,
        [d.name for d in detected],
    )
    return detected


def protection_level(detections: list[AntiBotDetection]) -> str:
    if not detections:
        return "none"
    if any(d.is_actively_blocking for d in detections):
        return "high"
    if any(d.confidence == "high" for d in detections):
        return "medium"
    return "low"


def bypass_recommendations(detections: list[AntiBotDetection]) -> Optional[dict[str, Any]]:
    """
    Рекомендации для повторного запроса через maps_web.
    Это только текст ответа: здесь ничего не применяется.
    """
    if not detections:
        return None

    main = next((d for d in detections if d.is_actively_blocking), detections[0])
    if main.name == "Cloudflare":
        return {"suggested_bypass_level": "cloudflare_level_2", "render_js": True, "residential": True}
    if main.name == "DataDome":
        return {"suggested_bypass_level": "datadome", "residential": True}
    if "PerimeterX" in main.name:
        return {"suggested_bypass_level": "perimeterx", "residential": True}
    if "Incapsula" in main.name:
        return {"suggested_bypass_level": "incapsula", "residential": True}
    return {"suggested_bypass_level": "generic_level_2", "residential": True, "render_js": True}
