"""Shared chain state: accepted words and the queries derived from them."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Dict, Iterator

from wordchain.logging_config import get_logger

logger = get_logger("chain")

__all__ = ["ChainState", "WordEntry"]


@dataclass(frozen=True, slots=True)
class WordEntry:
    """One accepted word together with its metadata."""

    word: str
    author_id: str
    created_at: float
    meme_score: int
    is_disruptive: bool
    vote_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "word": self.word,
            "author_id": self.author_id,
            "created_at": self.created_at,
            "vote_count": self.vote_count,
            "meme_score": self.meme_score,
            "is_disruptive": self.is_disruptive,
        }


class ChainState:
    """Ordered, append-only sequence of accepted :class:`WordEntry` values.

    The chain does not validate what it is given. Callers run
    :func:`wordchain.validators.validate_word` first; the chain only keeps the
    case-folded index used for duplicate lookups in sync with its entries.
    """

    def __init__(self) -> None:
        self._entries: list[WordEntry] = []
        self._seen: set[str] = set()

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[WordEntry]:
        return iter(tuple(self._entries))

    @property
    def entries(self) -> tuple[WordEntry, ...]:
        return tuple(self._entries)

    @property
    def is_empty(self) -> bool:
        return not self._entries

    def last_word(self) -> str | None:
        """Return the most recent word, or ``None`` while the chain is empty."""

        if not self._entries:
            return None
        return self._entries[-1].word

    def required_letter(self) -> str | None:
        """Return the uppercase letter the next word must start with, if any."""

        if not self._entries:
            return None
        return self._entries[-1].word[-1].upper()

    def contains(self, word: str) -> bool:
        return word.casefold() in self._seen

    def next_timestamp(self) -> float:
        """Return a creation time that keeps the chain non-decreasing."""

        now = time.time()
        if self._entries and self._entries[-1].created_at > now:
            return self._entries[-1].created_at
        return now

    def total_score(self) -> int:
        return sum(entry.meme_score for entry in self._entries)

    def append(self, entry: WordEntry) -> None:
        self._entries.append(entry)
        self._seen.add(entry.word.casefold())
        logger.debug("Chain extended with %s (length=%s)", entry.word, len(self._entries))
