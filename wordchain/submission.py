"""Single-flight orchestration of word submissions."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional, Union

from wordchain.chain import ChainState, WordEntry
from wordchain.identity import IdentityProvider
from wordchain.logging_config import get_logger
from wordchain.scoring import compute_score, is_disruptive
from wordchain.validators import WordValidationError, validate_word

logger = get_logger("submission")

__all__ = [
    "Outcome",
    "SubmissionController",
    "SubmissionFailed",
    "SubmissionStatus",
    "Success",
    "ValidationFailed",
]


class SubmissionStatus(str, enum.Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"


@dataclass(frozen=True, slots=True)
class Success:
    entry: WordEntry

    @property
    def is_success(self) -> bool:
        return True


@dataclass(frozen=True, slots=True)
class ValidationFailed:
    error: WordValidationError

    @property
    def is_success(self) -> bool:
        return False


@dataclass(frozen=True, slots=True)
class SubmissionFailed:
    cause: BaseException

    @property
    def is_success(self) -> bool:
        return False


Outcome = Union[Success, ValidationFailed, SubmissionFailed]


class SubmissionController:
    """Run one submission at a time against a shared :class:`ChainState`.

    ``submit`` flips the status to ``SUBMITTING`` before its first ``await``
    and restores ``IDLE`` on every exit path, so a call arriving while
    another is still waiting on the identity provider is dropped and returns
    ``None``. The chain is only touched by the final append.
    """

    def __init__(
        self,
        chain: ChainState,
        identity_provider: Optional[IdentityProvider] = None,
    ) -> None:
        self.chain = chain
        self.identity_provider = identity_provider
        self.status = SubmissionStatus.IDLE

    @property
    def is_submitting(self) -> bool:
        return self.status is SubmissionStatus.SUBMITTING

    async def submit(
        self,
        raw_word: str,
        *,
        identity_provider: Optional[IdentityProvider] = None,
    ) -> Optional[Outcome]:
        if self.is_submitting:
            logger.debug("Dropping submission of %r: another submission is in flight", raw_word)
            return None

        provider = identity_provider or self.identity_provider
        if provider is None:
            raise ValueError("No identity provider configured for submission")

        self.status = SubmissionStatus.SUBMITTING
        try:
            result = validate_word(raw_word, self.chain)
            if not result.accepted:
                return ValidationFailed(result.error)

            try:
                user = await provider.get_current_user()
            except Exception as exc:  # noqa: BLE001 - any provider failure is reported to the caller
                logger.exception("Identity lookup failed while submitting %r", raw_word)
                return SubmissionFailed(exc)

            entry = WordEntry(
                word=raw_word.upper(),
                author_id=user.username,
                created_at=self.chain.next_timestamp(),
                meme_score=compute_score(raw_word),
                is_disruptive=is_disruptive(raw_word),
            )
            self.chain.append(entry)
            logger.info(
                "Accepted %s from %s (score=%s, disruptive=%s)",
                entry.word,
                entry.author_id,
                entry.meme_score,
                entry.is_disruptive,
            )
            return Success(entry)
        finally:
            self.status = SubmissionStatus.IDLE
