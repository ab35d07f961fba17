from __future__ import annotations

import re
from dataclasses import asdict, dataclass
from typing import Any, Iterable

from .base import SignatureDefinition, SignatureMatcher, compile_patterns

JS_FRAMEWORKS: tuple[SignatureDefinition, ...] = (
    SignatureDefinition(
        name="React",
        presence_patterns=compile_patterns(r"data-reactroot", r"_reactListening", r"react-dom", r"react\.production"),
        renders_required=True,
    ),
    SignatureDefinition(name="Next.js", presence_patterns=compile_patterns(r"__NEXT_DATA__", r"_next\/"), renders_required=True),
    SignatureDefinition(
        name="Vue.js",
        presence_patterns=compile_patterns(r"data-v-[a-f0-9]", r"vue\.runtime", r"vue\.global"),
        renders_required=True,
    ),
    SignatureDefinition(name="Nuxt.js", presence_patterns=compile_patterns(r"__NUXT__", r"_nuxt\/"), renders_required=True),
    SignatureDefinition(
        name="Angular",
        presence_patterns=compile_patterns(r"ng-version=", r"ng-app", r"zone\.js"),
        renders_required=True,
    ),
    SignatureDefinition(name="Svelte", presence_patterns=compile_patterns(r"svelte-[a-z0-9]", r"__svelte"), renders_required=True),
    SignatureDefinition(name="Gatsby", presence_patterns=compile_patterns(r"___gatsby", r"gatsby-"), renders_required=True),
    SignatureDefinition(name="jQuery", presence_patterns=compile_patterns(r"jquery[.\-/]"), renders_required=False),
)

_MATCHER = SignatureMatcher(JS_FRAMEWORKS, first_match_only=True)

# Пустые точки монтирования SPA: (id контейнера, описание).
EMPTY_CONTAINERS: tuple[tuple[re.Pattern[str], str], ...] = tuple(
    (re.compile(rf"<div\s+id=[\"']{container_id}[\"']\s*>\s*<\/div>", re.I), description)
    for container_id, description in (
        ("root", "Empty #root container (React)"),
        ("app", "Empty #app container (Vue)"),
        ("__next", "Empty #__next container (Next.js)"),
        ("__nuxt", "Empty #__nuxt container (Nuxt)"),
        ("svelte", "Empty #svelte container"),
        ("gatsby-focus-wrapper", "Empty Gatsby container"),
    )
)


@dataclass(frozen=True)
class FrameworkDetection:
    name: str
    rendering_likely_required: bool

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def detect_frameworks(html: str) -> list[FrameworkDetection]:
    """Для каждого фреймворка достаточно первого совпавшего паттерна."""
    return [
        FrameworkDetection(name=m.name, rendering_likely_required=m.definition.renders_required)
        for m in _MATCHER.match(html)
    ]


def merge_frameworks(*groups: Iterable[FrameworkDetection]) -> list[FrameworkDetection]:
    """Объединение без дублей по имени, порядок первого появления."""
    seen: dict[str, FrameworkDetection] = {}
    for group in groups:
        for fw in group:
            seen.setdefault(fw.name, fw)
    return list(seen.values())


def detect_empty_containers(html: str) -> list[str]:
    return [description for pattern, description in EMPTY_CONTAINERS if pattern.search(html)]
