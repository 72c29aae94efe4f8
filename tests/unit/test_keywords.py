"""Unit tests for crisis keyword matching and the two detectors."""

from zentia.models.guardrails import CrisisKeyword, Severity
from zentia.safety.keywords import (
    CRISIS_PHRASES,
    DEFAULT_KEYWORDS,
    KeywordDetector,
    PhraseDetector,
    match_keyword,
    order_keywords,
)


def _kw(keyword: str, severity: Severity, active: bool = True) -> CrisisKeyword:
    return CrisisKeyword(keyword=keyword, severity=severity, active=active)


def test_match_is_case_insensitive_substring() -> None:
    keywords = [_kw("kill myself", Severity.CRITICAL)]

    hit = match_keyword("Sometimes I want to KILL MYSELF tonight", keywords)

    assert hit is not None
    assert hit.keyword == "kill myself"
    assert hit.severity is Severity.CRITICAL


def test_no_match_returns_none() -> None:
    keywords = [_kw("overdose", Severity.HIGH)]
    assert match_keyword("I had a good day today", keywords) is None


def test_first_match_in_sequence_wins() -> None:
    keywords = [_kw("hopeless", Severity.MEDIUM), _kw("overdose", Severity.HIGH)]

    hit = match_keyword("hopeless, thinking about an overdose", keywords)

    assert hit.keyword == "hopeless"


def test_order_keywords_puts_most_severe_first_then_alphabetical() -> None:
    ordered = order_keywords(
        [
            _kw("worthless", Severity.MEDIUM),
            _kw("overdose", Severity.HIGH),
            _kw("burden", Severity.MEDIUM),
            _kw("suicide", Severity.CRITICAL),
            _kw("tired", Severity.LOW),
        ]
    )

    assert [kw.keyword for kw in ordered] == ["suicide", "overdose", "burden", "worthless", "tired"]


def test_inactive_keywords_never_match() -> None:
    keywords = [_kw("overdose", Severity.HIGH, active=False)]
    assert match_keyword("overdose", keywords) is None
    assert KeywordDetector(keywords).detect("overdose") is None


def test_keyword_detector_prefers_higher_severity() -> None:
    detector = KeywordDetector(
        [_kw("hopeless", Severity.MEDIUM), _kw("overdose", Severity.HIGH)]
    )

    signal = detector.detect("I feel hopeless and keep thinking about an overdose")

    assert signal.keyword == "overdose"
    assert signal.severity is Severity.HIGH
    assert signal.detector == "keyword_table"


def test_matching_is_repeatable() -> None:
    detector = KeywordDetector(DEFAULT_KEYWORDS)
    text = "everything is hopeless and I want to end it all"

    results = {detector.detect(text).keyword for _ in range(5)}

    assert results == {"end it all"}


def test_phrase_detector_uses_shipped_list() -> None:
    detector = PhraseDetector()

    signal = detector.detect("Thinking about Self Harm again")

    assert signal is not None
    assert signal.keyword == "self harm"
    assert signal.detector == "crisis_phrases"
    assert detector.detect("I went for a walk") is None


def test_phrase_list_is_independent_of_keyword_table() -> None:
    # The safety net must still fire when the table has nothing active
    table = KeywordDetector([_kw(p, Severity.CRITICAL, active=False) for p in CRISIS_PHRASES])
    text = "I want to die"

    assert table.detect(text) is None
    assert PhraseDetector().detect(text) is not None


def test_default_seed_has_unique_keywords() -> None:
    names = [kw.keyword.lower() for kw in DEFAULT_KEYWORDS]
    assert len(names) == len(set(names))
