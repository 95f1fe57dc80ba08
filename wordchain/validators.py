"""Admission rules for words proposed to extend the chain."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from wordchain.logging_config import get_logger

logger = get_logger("validators")

if TYPE_CHECKING:  # pragma: no cover - used only for typing
    from wordchain.chain import ChainState

__all__ = [
    "CharacterValidationError",
    "DuplicateWordError",
    "EmptyWordError",
    "StartingLetterError",
    "ValidationResult",
    "WordValidationError",
    "validate_word",
]


class WordValidationError(Exception):
    """Base class for validation errors describing why a word is rejected."""

    code = "invalid"

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code

    @property
    def message(self) -> str:
        return str(self)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, WordValidationError):
            return NotImplemented
        return type(self) is type(other) and self.args == other.args

    def __hash__(self) -> int:
        return hash((type(self), self.args))


class EmptyWordError(WordValidationError):
    """Raised when nothing was submitted."""

    code = "empty"

    def __init__(self) -> None:
        super().__init__("Please enter a word")


class CharacterValidationError(WordValidationError):
    """Raised when a word contains anything but ASCII letters."""

    code = "characters"

    def __init__(self) -> None:
        super().__init__("Word must contain only letters")


class StartingLetterError(WordValidationError):
    """Raised when a word does not continue from the previous word's last letter."""

    code = "starting_letter"

    def __init__(self, expected: str) -> None:
        self.expected = expected.upper()
        super().__init__(f'Word must start with "{self.expected}"')


class DuplicateWordError(WordValidationError):
    """Raised when the word duplicates an already accepted entry."""

    code = "duplicate"

    def __init__(self) -> None:
        super().__init__("This word has already been used")


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """Outcome of :func:`validate_word`: accepted, or rejected with an error."""

    accepted: bool
    error: WordValidationError | None = None

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(accepted=True)

    @classmethod
    def rejected(cls, error: WordValidationError) -> "ValidationResult":
        return cls(accepted=False, error=error)


_ASCII_LETTERS = re.compile(r"[A-Za-z]+")


def _validate_not_empty(word: str) -> None:
    if not word:
        raise EmptyWordError()


def _validate_characters(word: str) -> None:
    if not _ASCII_LETTERS.fullmatch(word):
        raise CharacterValidationError()


def _validate_starting_letter(word: str, chain: "ChainState") -> None:
    expected = chain.required_letter()
    if expected is None:
        return
    if word[0].upper() != expected:
        raise StartingLetterError(expected)


def _validate_unique(word: str, chain: "ChainState") -> None:
    if chain.contains(word):
        raise DuplicateWordError()


def validate_word(candidate: str, chain: "ChainState") -> ValidationResult:
    """Check ``candidate`` against the admission rules and the current chain.

    Rules run in a fixed order and the first failing one decides the result:
    empty input, non-letter characters, wrong starting letter (only once the
    chain has a word), then chain-wide duplicates. Surrounding whitespace is
    expected to be stripped by the caller; it counts as a non-letter here.
    """

    try:
        _validate_not_empty(candidate)
        _validate_characters(candidate)
        _validate_starting_letter(candidate, chain)
        _validate_unique(candidate, chain)
    except WordValidationError as exc:
        logger.debug("Rejected word %r (%s): %s", candidate, exc.code, exc)
        return ValidationResult.rejected(exc)
    return ValidationResult.ok()
