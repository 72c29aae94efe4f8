"""Canned supportive messages shown in place of blocked content."""

from __future__ import annotations

CRISIS_DETECTED = "crisis_detected"
SAFETY_VIOLATION = "safety_violation"
SYSTEM_ERROR = "system_error"

_SAFE_RESPONSES: dict[str, str] = {
    CRISIS_DETECTED: (
        "I hear that you're going through a really difficult time, and I want you to know "
        "that your feelings are valid. It's important to talk to someone who can provide "
        "professional support right now. Please consider reaching out to a mental health "
        "professional, calling a crisis hotline, or talking to someone you trust. "
        "You don't have to go through this alone."
    ),
    SAFETY_VIOLATION: (
        "I understand you're trying to communicate something important, but I want to make "
        "sure our conversation remains helpful and safe. Could you rephrase that in a "
        "different way? I'm here to support you."
    ),
    SYSTEM_ERROR: (
        "I'm having some technical difficulties right now. Please try again in a moment, "
        "or if you need immediate support, consider reaching out to a mental health "
        "professional."
    ),
}

_DEFAULT_RESPONSE = (
    "I want to make sure I can provide you with the best support possible. "
    "Could you rephrase that? I'm here to help."
)

# Pipeline reason codes that share a canned message
_ALIASES: dict[str, str] = {
    "safety_check_failed": SYSTEM_ERROR,
    "ai_safety_violation": SAFETY_VIOLATION,
    "crisis_keyword_in_response": CRISIS_DETECTED,
}


def _canonical(reason: str) -> str:
    if reason.startswith("crisis_keyword"):
        return CRISIS_DETECTED
    return _ALIASES.get(reason, reason)


def select_safe_response(reason: str | None) -> str:
    """Map a block reason to a supportive message. Never raises."""
    if not isinstance(reason, str):
        return _DEFAULT_RESPONSE
    return _SAFE_RESPONSES.get(_canonical(reason.strip().lower()), _DEFAULT_RESPONSE)
