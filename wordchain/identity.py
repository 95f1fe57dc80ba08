"""Identity lookup for the author of a submitted word."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from telegram import Bot
from telegram.error import TelegramError

from wordchain.logging_config import get_logger

logger = get_logger("identity")

__all__ = ["IdentityError", "IdentityProvider", "TelegramIdentityProvider", "UserIdentity"]


class IdentityError(Exception):
    """Raised when the current user cannot be resolved."""


@dataclass(frozen=True, slots=True)
class UserIdentity:
    username: str


class IdentityProvider(Protocol):
    async def get_current_user(self) -> UserIdentity:
        ...


def _display_username(user) -> str:
    username = getattr(user, "username", None)
    if username:
        return str(username)
    full_name = getattr(user, "full_name", None)
    if full_name:
        return str(full_name)
    return f"id{user.id}"


class TelegramIdentityProvider:
    """Resolve the sender of an update through ``getChatMember``.

    The lookup is a network call, so it may fail with any :class:`TelegramError`
    (network trouble, the bot was removed from the chat, the user left). Those
    failures surface as :class:`IdentityError`.
    """

    def __init__(self, bot: Bot, chat_id: int, user_id: int) -> None:
        self.bot = bot
        self.chat_id = chat_id
        self.user_id = user_id

    async def get_current_user(self) -> UserIdentity:
        try:
            member = await self.bot.get_chat_member(chat_id=self.chat_id, user_id=self.user_id)
        except TelegramError as exc:
            logger.warning(
                "Failed to resolve user %s in chat %s: %s", self.user_id, self.chat_id, exc
            )
            raise IdentityError(f"Unable to resolve user {self.user_id}") from exc
        return UserIdentity(username=_display_username(member.user))
