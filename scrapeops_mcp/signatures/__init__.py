from .antibot import (
    ANTI_BOT_SIGNATURES,
    AntiBotDetection,
    bypass_recommendations,
    detect_anti_bots,
    is_request_blocked,
    protection_level,
)
from .base import SignatureDefinition, SignatureMatch, SignatureMatcher, compile_patterns
from .frameworks import JS_FRAMEWORKS, FrameworkDetection, detect_empty_containers, detect_frameworks, merge_frameworks
from .technologies import TECHNOLOGIES, detect_technologies, tech_type_label

__all__ = [
    "ANTI_BOT_SIGNATURES",
    "JS_FRAMEWORKS",
    "TECHNOLOGIES",
    "AntiBotDetection",
    "FrameworkDetection",
    "SignatureDefinition",
    "SignatureMatch",
    "SignatureMatcher",
    "bypass_recommendations",
    "compile_patterns",
    "detect_anti_bots",
    "detect_empty_containers",
    "detect_frameworks",
    "detect_technologies",
    "is_request_blocked",
    "merge_frameworks",
    "protection_level",
    "tech_type_label",
]
