from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

logger = logging.getLogger(__name__)


def compile_patterns(*sources: str) -> tuple[re.Pattern[str], ...]:
    """Все сигнатуры регистронезависимые."""
    return tuple(re.compile(src, re.I) for src in sources)


@dataclass(frozen=True)
class SignatureDefinition:
    """
    Декларативное описание одной сигнатуры.

    challenge_patterns: признаки страницы-проверки (блокировки);
    presence_patterns: признаки присутствия, сами по себе не блокируют.
    """
    name: str
    challenge_patterns: tuple[re.Pattern[str], ...] = ()
    presence_patterns: tuple[re.Pattern[str], ...] = ()
    renders_required: bool = False
    category: Optional[str] = None


@dataclass(frozen=True)
class SignatureMatch:
    """Срабатывание сигнатуры: какие паттерны (по исходному тексту) совпали."""
    definition: SignatureDefinition
    challenge_hits: tuple[str, ...]
    presence_hits: tuple[str, ...]

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def is_blocking(self) -> bool:
        return bool(self.challenge_hits)

    def evidence(self) -> list[str]:
        out = [f"Challenge pattern: {src}" for src in self.challenge_hits]
        out.extend(f"Presence detected: {src}" for src in self.presence_hits)
        return out


class SignatureMatcher:
    """
    Общий движок сопоставления по таблице сигнатур.

    Таблица обходится в заданном порядке, порядок результата совпадает с порядком таблицы.
    first_match_only=True: для сигнатуры достаточно первого совпавшего паттерна
    (так работают таблицы фреймворков и технологий).
    Сетевых запросов матчер не делает: работает только по переданному тексту.
    """

    def __init__(self, table: Sequence[SignatureDefinition], *, first_match_only: bool = False) -> None:
        self._table = tuple(table)
        self._first_match_only = first_match_only

    @property
    def table(self) -> tuple[SignatureDefinition, ...]:
        return self._table

    def match(self, text: str) -> list[SignatureMatch]:
        if not text:
            return []

        matches: list[SignatureMatch] = []
        for sig in self._table:
            challenge = _hits(sig.challenge_patterns, text, self._first_match_only)
            if self._first_match_only and challenge:
                presence: list[str] = []
            else:
                presence = _hits(sig.presence_patterns, text, self._first_match_only)

            if challenge or presence:
                matches.append(
                    SignatureMatch(definition=sig, challenge_hits=tuple(challenge), presence_hits=tuple(presence))
                )

        logger.debug("[signatures] %s of %s signatures matched", len(matches), len(self._table))
        return matches


def _hits(patterns: Iterable[re.Pattern[str]], text: str, first_only: bool) -> list[str]:
    found: list[str] = []
    for pat in patterns:
        if pat.search(text):
            found.append(pat.pattern)
            if first_only:
                break
    return found
