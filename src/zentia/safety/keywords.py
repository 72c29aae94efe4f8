"""Crisis keyword matching and the detectors built on it.

Two detectors feed the alerting sink independently:
- KeywordDetector: the admin-configurable keyword table (SQLite-backed)
- PhraseDetector: a hard-coded safety net that ships with the code

They deliberately overlap and must not be merged.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Protocol

from zentia.models.guardrails import CrisisKeyword, CrisisSignal, Severity

# Shipped safety net, independent of the keyword table
CRISIS_PHRASES: tuple[str, ...] = (
    "suicide",
    "kill myself",
    "want to die",
    "end it all",
    "self harm",
)

# Seeded into an empty deployment
DEFAULT_KEYWORDS: tuple[CrisisKeyword, ...] = (
    CrisisKeyword(keyword="suicide", severity=Severity.CRITICAL),
    CrisisKeyword(keyword="kill myself", severity=Severity.CRITICAL),
    CrisisKeyword(keyword="want to die", severity=Severity.CRITICAL),
    CrisisKeyword(keyword="end it all", severity=Severity.CRITICAL),
    CrisisKeyword(keyword="self harm", severity=Severity.HIGH),
    CrisisKeyword(keyword="cut myself", severity=Severity.HIGH),
    CrisisKeyword(keyword="overdose", severity=Severity.HIGH),
    CrisisKeyword(keyword="no reason to live", severity=Severity.HIGH),
    CrisisKeyword(keyword="hopeless", severity=Severity.MEDIUM),
    CrisisKeyword(keyword="worthless", severity=Severity.MEDIUM),
    CrisisKeyword(keyword="burden", severity=Severity.MEDIUM),
    CrisisKeyword(keyword="everyone would be better off", severity=Severity.MEDIUM),
    CrisisKeyword(keyword="can't take it anymore", severity=Severity.MEDIUM),
    CrisisKeyword(keyword="tired of living", severity=Severity.MEDIUM),
)


def order_keywords(keywords: Iterable[CrisisKeyword]) -> list[CrisisKeyword]:
    """Fix the match order: most severe first, then alphabetical."""
    return sorted(keywords, key=lambda kw: (-kw.severity.rank, kw.keyword.lower()))


def match_keyword(text: str, active_keywords: Sequence[CrisisKeyword]) -> CrisisKeyword | None:
    """Return the first keyword contained in `text`, ignoring case.

    The caller controls precedence through the order of `active_keywords`
    (see order_keywords). Inactive records are skipped even if passed in.

    Args:
        text: Arbitrary user or AI text.
        active_keywords: Snapshot of the keyword table.

    Returns:
        The first matching keyword, or None.
    """
    haystack = text.casefold()
    for kw in active_keywords:
        if kw.active and kw.keyword.casefold() in haystack:
            return kw
    return None


class Detector(Protocol):
    name: str

    def detect(self, text: str) -> CrisisSignal | None: ...


class KeywordDetector:
    """Detector over a snapshot of the configurable keyword table."""

    name = "keyword_table"

    def __init__(self, keywords: Iterable[CrisisKeyword]) -> None:
        self._keywords = order_keywords(kw for kw in keywords if kw.active)

    def detect(self, text: str) -> CrisisSignal | None:
        hit = match_keyword(text, self._keywords)
        if hit is None:
            return None
        return CrisisSignal(detector=self.name, keyword=hit.keyword, severity=hit.severity)


class PhraseDetector:
    """Detector over the fixed phrase list compiled into the service."""

    name = "crisis_phrases"

    def __init__(
        self, phrases: Iterable[str] = CRISIS_PHRASES, severity: Severity = Severity.CRITICAL
    ) -> None:
        self._phrases = tuple(p.casefold() for p in phrases)
        self._severity = severity

    def detect(self, text: str) -> CrisisSignal | None:
        haystack = text.casefold()
        for phrase in self._phrases:
            if phrase in haystack:
                return CrisisSignal(detector=self.name, keyword=phrase, severity=self._severity)
        return None
