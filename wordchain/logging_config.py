"""Centralised logging helpers for the word chain bot."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from contextvars import ContextVar, Token
from logging.config import dictConfig
from typing import Iterator

BASE_LOGGER_NAME = "wordchain"

_chat_id_var: ContextVar[str] = ContextVar("chat_id", default="-")
_user_id_var: ContextVar[str] = ContextVar("user_id", default="-")


class ChatUserContextFilter(logging.Filter):
    """Ensure that log records always contain chat and user identifiers."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401 - logging API
        record.chat_id = getattr(record, "chat_id", _chat_id_var.get("-"))
        record.user_id = getattr(record, "user_id", _user_id_var.get("-"))
        return True


def configure_logging(level: int | str = "INFO") -> None:
    """Configure project-wide logging using :func:`logging.config.dictConfig`."""

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {
                "chat_user": {
                    "()": "wordchain.logging_config.ChatUserContextFilter",
                }
            },
            "formatters": {
                "default": {
                    "format": "%(asctime)s [%(levelname)s] %(name)s [chat=%(chat_id)s user=%(user_id)s] %(message)s",
                }
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                    "filters": ["chat_user"],
                    "level": level,
                }
            },
            "root": {
                "handlers": ["console"],
                "level": level,
            },
        }
    )


def get_logger(name: str) -> logging.Logger:
    """Return a logger within the project namespace."""

    if name.startswith(BASE_LOGGER_NAME):
        return logging.getLogger(name)
    return logging.getLogger(f"{BASE_LOGGER_NAME}.{name}")


@contextmanager
def logging_context(*, chat_id: int | str | None = None, user_id: int | str | None = None) -> Iterator[None]:
    """Temporarily bind chat and user identifiers to log records."""

    tokens: list[tuple[ContextVar[str], Token[str]]] = []
    if chat_id is not None:
        tokens.append((_chat_id_var, _chat_id_var.set(str(chat_id))))
    if user_id is not None:
        tokens.append((_user_id_var, _user_id_var.set(str(user_id))))
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)
