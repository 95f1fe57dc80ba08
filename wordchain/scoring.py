"""Meme scoring for accepted chain words."""

from __future__ import annotations

from typing import Iterable

__all__ = [
    "DISRUPTIVE_TERMS",
    "LETTER_SCORE",
    "MAX_SCORE",
    "SCORE_BONUSES",
    "compute_score",
    "is_disruptive",
    "matching_bonuses",
]

LETTER_SCORE = 5
MAX_SCORE = 100

# (term group, bonus) pairs; a group pays out once no matter how many of its
# terms occur in the word.
SCORE_BONUSES: tuple[tuple[frozenset[str], int], ...] = (
    (frozenset({"ai", "ml", "api", "saas", "cloud"}), 20),
    (frozenset({"scale", "enterprise", "solution"}), 15),
    (frozenset({"blockchain", "crypto", "neural", "quantum"}), 25),
    (frozenset({"revenue", "growth", "retention"}), 15),
)

# Independent of SCORE_BONUSES; "tech" and "smart" never affect the score.
DISRUPTIVE_TERMS: frozenset[str] = frozenset({"ai", "tech", "smart", "cloud"})


def _contains_any(word: str, terms: Iterable[str]) -> bool:
    lowered = word.lower()
    return any(term in lowered for term in terms)


def matching_bonuses(word: str) -> list[int]:
    """Return the bonus of every term group that matches ``word``."""

    return [bonus for terms, bonus in SCORE_BONUSES if _contains_any(word, terms)]


def compute_score(word: str) -> int:
    """Return the meme score of ``word`` in the range ``0..MAX_SCORE``.

    The base score is five points per letter. Every matching term group adds
    its bonus and the total is capped at :data:`MAX_SCORE`.
    """

    score = len(word) * LETTER_SCORE + sum(matching_bonuses(word))
    return min(score, MAX_SCORE)


def is_disruptive(word: str) -> bool:
    """Return ``True`` when ``word`` mentions one of the disruptive buzzwords."""

    return _contains_any(word, DISRUPTIVE_TERMS)
