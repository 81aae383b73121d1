from __future__ import annotations

import re

HONORIFIC_TOKENS = frozenset(
    {
        "sir",
        "miss",
        "mr",
        "ms",
        "mrs",
        "dr",
        "madam",
        "mam",
        "prof",
        "junior",
        "jr",
        "senior",
        "sr",
    }
)
GENERATION_TOKENS = {
    "junior": "junior",
    "jr": "junior",
    "senior": "senior",
    "sr": "senior",
}

_DISALLOWED_CHARS = re.compile(r"[^a-z\s-]")
_VOWELS = re.compile(r"[aeiou]+")
_NON_LETTERS = re.compile(r"[^a-z]")
_REPEATED_LETTERS = re.compile(r"(.)\1+")


def _raw_tokens(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [token.strip(".") for token in str(raw).lower().split()]


def normalize_name(raw: str | None) -> str:
    """Return the order-insensitive comparison key for a teacher name.

    Honorifics are dropped as whole words, punctuation other than hyphens is
    removed, single-letter tokens (initials) are discarded and the remaining
    tokens are sorted, so "Sir Bakir Shah" and "shah,  BAKIR" share one key.
    """
    tokens = [token for token in _raw_tokens(raw) if token not in HONORIFIC_TOKENS]
    cleaned = _DISALLOWED_CHARS.sub("", " ".join(tokens))
    kept = [token for token in cleaned.split() if len(token) > 1 and token not in HONORIFIC_TOKENS]
    return " ".join(sorted(kept))


def generation_suffix(raw: str | None) -> str:
    for token in _raw_tokens(raw):
        generation = GENERATION_TOKENS.get(token)
        if generation:
            return generation
    return ""


def phonetic_key(name: str, *, length: int = 8) -> str:
    key = _VOWELS.sub("a", name.lower())
    key = _NON_LETTERS.sub("", key)
    key = _REPEATED_LETTERS.sub(r"\1", key)
    return key[:length]


def display_name(raw: str) -> str:
    return " ".join(raw.split())
