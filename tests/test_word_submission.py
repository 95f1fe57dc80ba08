"""Tests for word submissions coming in through Telegram."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from telegram.constants import ChatType
from telegram.error import NetworkError

import app
from app import (
    ADDED_TEXT,
    ADMIN_ONLY_TEXT,
    ANNOUNCEMENT_TITLE,
    DISRUPTED_TEXT,
    EMPTY_CHAIN_TEXT,
    SUBMISSION_FAILED_TEXT,
    GameSession,
    Settings,
    add_command,
    chain_command,
    new_chain_command,
    start_command,
    state,
    word_message_handler,
)
from wordchain.chain import WordEntry
from wordchain.submission import SubmissionStatus


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(autouse=True)
def fresh_session(monkeypatch):
    """Give every test its own empty chain and default settings."""

    monkeypatch.setattr(state, "session", GameSession())
    monkeypatch.setattr(state, "settings", None)
    yield state.session


def _make_bot(username: str = "founder") -> SimpleNamespace:
    member = SimpleNamespace(user=SimpleNamespace(id=42, username=username, full_name="Ada"))
    return SimpleNamespace(get_chat_member=AsyncMock(return_value=member))


def _make_update(text: str | None = None, *, user_id: int = 42):
    chat = SimpleNamespace(id=777, type=ChatType.PRIVATE)
    user = SimpleNamespace(id=user_id, username="founder")
    message = SimpleNamespace(text=text, reply_text=AsyncMock())
    update = SimpleNamespace(effective_chat=chat, effective_user=user, effective_message=message)
    return update, message


def _reply_text(message: SimpleNamespace) -> str:
    return message.reply_text.await_args.args[0]


@pytest.mark.anyio
async def test_plain_text_word_is_added_to_chain(fresh_session):
    update, message = _make_update("  Cloud ")
    context = SimpleNamespace(bot=_make_bot(), args=[])

    await word_message_handler(update, context)

    assert [entry.word for entry in fresh_session.chain] == ["CLOUD"]
    assert fresh_session.chain.entries[0].author_id == "founder"
    reply = _reply_text(message)
    assert reply.startswith(DISRUPTED_TEXT)
    assert "Meme Status: 45%" in reply
    assert "Enter a word starting with D" in reply
    context.bot.get_chat_member.assert_awaited_once_with(chat_id=777, user_id=42)


@pytest.mark.anyio
async def test_regular_word_uses_plain_success_text(fresh_session):
    context = SimpleNamespace(bot=_make_bot(), args=[])
    first, _ = _make_update("Cloud")
    await word_message_handler(first, context)

    update, message = _make_update("Data")
    await word_message_handler(update, context)

    assert _reply_text(message).startswith(ADDED_TEXT)
    assert fresh_session.chain.last_word() == "DATA"


@pytest.mark.anyio
async def test_rejected_word_reports_reason(fresh_session):
    context = SimpleNamespace(bot=_make_bot(), args=[])
    first, _ = _make_update("Cloud")
    await word_message_handler(first, context)

    update, message = _make_update("apple")
    await word_message_handler(update, context)

    message.reply_text.assert_awaited_once_with('Word must start with "D"')
    assert len(fresh_session.chain) == 1


@pytest.mark.anyio
async def test_non_alphabetic_word_is_rejected(fresh_session):
    update, message = _make_update("Data3")
    context = SimpleNamespace(bot=_make_bot(), args=[])

    await word_message_handler(update, context)

    message.reply_text.assert_awaited_once_with("Word must contain only letters")
    context.bot.get_chat_member.assert_not_awaited()
    assert fresh_session.chain.is_empty


@pytest.mark.anyio
async def test_identity_failure_reports_retryable_error(fresh_session):
    update, message = _make_update("Cloud")
    bot = SimpleNamespace(get_chat_member=AsyncMock(side_effect=NetworkError("offline")))
    context = SimpleNamespace(bot=bot, args=[])

    await word_message_handler(update, context)

    message.reply_text.assert_awaited_once_with(SUBMISSION_FAILED_TEXT)
    assert fresh_session.chain.is_empty


@pytest.mark.anyio
async def test_dropped_submission_sends_nothing(fresh_session, monkeypatch):
    update, message = _make_update("Cloud")
    context = SimpleNamespace(bot=_make_bot(), args=[])
    monkeypatch.setattr(fresh_session.controller, "status", SubmissionStatus.SUBMITTING)

    await word_message_handler(update, context)

    message.reply_text.assert_not_awaited()
    assert fresh_session.chain.is_empty


@pytest.mark.anyio
async def test_add_command_submits_argument(fresh_session):
    update, message = _make_update("/add Cloud")
    context = SimpleNamespace(bot=_make_bot(), args=["Cloud"])

    await add_command(update, context)

    assert fresh_session.chain.last_word() == "CLOUD"
    assert _reply_text(message).startswith(DISRUPTED_TEXT)


@pytest.mark.anyio
async def test_add_command_without_word_shows_usage(fresh_session):
    update, message = _make_update("/add")
    context = SimpleNamespace(bot=_make_bot(), args=[])

    await add_command(update, context)

    reply = _reply_text(message)
    assert reply.startswith("Usage: /add <word>")
    assert "any letter" in reply
    assert fresh_session.chain.is_empty


@pytest.mark.anyio
async def test_add_command_with_several_words_is_rejected_as_non_letters(fresh_session):
    update, message = _make_update("/add two words")
    context = SimpleNamespace(bot=_make_bot(), args=["two", "words"])

    await add_command(update, context)

    assert _reply_text(message) == "Word must contain only letters"
    assert fresh_session.chain.is_empty


@pytest.mark.anyio
async def test_chain_command_lists_entries(fresh_session):
    context = SimpleNamespace(bot=_make_bot(), args=[])
    for word in ("Cloud", "Data"):
        update, _ = _make_update(word)
        await word_message_handler(update, context)

    update, message = _make_update("/chain")
    await chain_command(update, context)

    reply = _reply_text(message)
    assert "1. <b>CLOUD</b> by @founder · Meme Status: 45%" in reply
    assert "2. <b>DATA</b> by @founder · Meme Status: 20%" in reply
    assert "Total meme status: 65%" in reply
    assert "Enter a word starting with A" in reply


@pytest.mark.anyio
async def test_chain_command_on_empty_chain():
    update, message = _make_update("/chain")

    await chain_command(update, SimpleNamespace(args=[]))

    reply = _reply_text(message)
    assert EMPTY_CHAIN_TEXT in reply
    assert "Enter a word starting with any letter" in reply


@pytest.mark.anyio
async def test_start_command_explains_rules():
    update, message = _make_update("/start")

    await start_command(update, SimpleNamespace(args=[]))

    reply = _reply_text(message)
    assert "SaaS Word Chain" in reply
    assert "Enter a word starting with any letter" in reply


@pytest.mark.anyio
async def test_new_chain_requires_admin(fresh_session, monkeypatch):
    fresh_session.chain.append(
        WordEntry(word="CLOUD", author_id="a", created_at=0.0, meme_score=45, is_disruptive=True)
    )
    monkeypatch.setattr(
        state,
        "settings",
        Settings(telegram_bot_token="t", public_url="https://x", webhook_secret="s", admin_id=1),
    )
    update, message = _make_update("/newchain", user_id=42)

    await new_chain_command(update, SimpleNamespace(args=[]))

    message.reply_text.assert_awaited_once_with(ADMIN_ONLY_TEXT)
    assert state.session is fresh_session


@pytest.mark.anyio
async def test_new_chain_by_admin_starts_empty_session(fresh_session, monkeypatch):
    fresh_session.chain.append(
        WordEntry(word="CLOUD", author_id="a", created_at=0.0, meme_score=45, is_disruptive=True)
    )
    monkeypatch.setattr(
        state,
        "settings",
        Settings(telegram_bot_token="t", public_url="https://x", webhook_secret="s", admin_id=42),
    )
    update, message = _make_update("/newchain", user_id=42)

    await new_chain_command(update, SimpleNamespace(args=[]))

    assert state.session is not fresh_session
    assert state.session.chain.is_empty
    assert ANNOUNCEMENT_TITLE in _reply_text(message)


@pytest.mark.anyio
async def test_unexpected_error_replies_with_generic_message(monkeypatch):
    update, message = _make_update("Cloud")

    def explode(_chain):
        raise RuntimeError("boom")

    monkeypatch.setattr(app, "format_chain_message", explode)

    await chain_command(update, SimpleNamespace(args=[]))

    message.reply_text.assert_awaited_once_with(app.TEMPORARY_ERROR_TEXT)
