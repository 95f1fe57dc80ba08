"""FastAPI application entrypoint for the SaaS Word Chain Telegram bot."""

from __future__ import annotations

import asyncio
import html
import os
import time
from contextlib import asynccontextmanager, suppress
from dataclasses import dataclass, field
from functools import wraps
from typing import AsyncIterator, Optional

import orjson
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, Response
from telegram import Chat, Message, Update, User, constants
from telegram.ext import Application, CommandHandler, ContextTypes, MessageHandler, filters
from telegram.request import HTTPXRequest

from wordchain.chain import ChainState, WordEntry
from wordchain.identity import TelegramIdentityProvider
from wordchain.logging_config import configure_logging, get_logger, logging_context
from wordchain.submission import (
    SubmissionController,
    SubmissionFailed,
    Success,
    ValidationFailed,
)

# ---------------------------------------------------------------------------
# Logging configuration
# ---------------------------------------------------------------------------

configure_logging(os.getenv("LOG_LEVEL", "INFO"))
logger = get_logger("app")


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class Settings:
    """Container for application environment variables."""

    telegram_bot_token: str
    public_url: str
    webhook_secret: str
    webhook_path: str = "/webhook"
    webhook_check_interval: int = 300
    admin_id: Optional[int] = None


def load_settings() -> Settings:
    """Load and validate required settings from environment variables."""

    required_vars = {
        "TELEGRAM_BOT_TOKEN": os.getenv("TELEGRAM_BOT_TOKEN"),
        "PUBLIC_URL": os.getenv("PUBLIC_URL"),
        "WEBHOOK_SECRET": os.getenv("WEBHOOK_SECRET"),
        "WEBHOOK_PATH": os.getenv("WEBHOOK_PATH", "/webhook"),
    }

    missing = [name for name, value in required_vars.items() if not value]
    if missing:
        logger.critical("Missing required environment variables: %s", ", ".join(missing))
        raise RuntimeError(f"Missing required environment variables: {', '.join(missing)}")

    logger.debug(
        "Loaded environment variables: %s",
        {k: v for k, v in required_vars.items() if k not in {"TELEGRAM_BOT_TOKEN", "WEBHOOK_SECRET"}},
    )

    interval_raw = os.getenv("WEBHOOK_CHECK_INTERVAL", "300")
    check_interval = 300
    if interval_raw.isdigit():
        check_interval = max(int(interval_raw), 60)
    else:
        logger.debug("WEBHOOK_CHECK_INTERVAL is not a digit, defaulting to 300 seconds")

    admin_id_raw = os.getenv("ADMIN_ID")
    admin_id: Optional[int] = None
    if admin_id_raw:
        try:
            admin_id = int(admin_id_raw)
        except ValueError:
            logger.warning("Invalid ADMIN_ID provided, ignoring value: %s", admin_id_raw)
            admin_id = None

    webhook_path = required_vars["WEBHOOK_PATH"]
    if not webhook_path.startswith("/"):
        webhook_path = f"/{webhook_path}"

    return Settings(
        telegram_bot_token=required_vars["TELEGRAM_BOT_TOKEN"],
        public_url=required_vars["PUBLIC_URL"].rstrip("/"),
        webhook_secret=required_vars["WEBHOOK_SECRET"],
        webhook_path=webhook_path,
        webhook_check_interval=check_interval,
        admin_id=admin_id,
    )


# ---------------------------------------------------------------------------
# FastAPI application and game session state
# ---------------------------------------------------------------------------


app = FastAPI()


@dataclass(slots=True)
class GameSession:
    """The single shared chain and the controller that guards it."""

    chain: ChainState = field(default_factory=ChainState)
    controller: SubmissionController = field(init=False)
    started_at: float = field(default_factory=time.time)

    def __post_init__(self) -> None:
        self.controller = SubmissionController(self.chain)


class AppState:
    """Shared state container for the FastAPI application."""

    def __init__(self) -> None:
        self.settings: Optional[Settings] = None
        self.telegram_app: Optional[Application] = None
        self.webhook_task: Optional[asyncio.Task[None]] = None
        self.session: GameSession = GameSession()


state = AppState()


def start_new_session() -> GameSession:
    """Replace the current chain with a fresh, empty one."""

    previous = state.session
    state.session = GameSession()
    logger.info(
        "Started new word chain session (previous chain length=%s, total score=%s)",
        len(previous.chain),
        previous.chain.total_score(),
    )
    return state.session


def get_telegram_application() -> Application:
    if state.telegram_app is None:
        logger.error("Telegram application is not initialized")
        raise HTTPException(status_code=503, detail="Telegram application is not initialized")
    return state.telegram_app


def command_entrypoint(fallback=None):
    """Decorator for command handlers providing logging context and error handling."""

    def decorator(func):
        @wraps(func)
        async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE, *args, **kwargs):
            chat = update.effective_chat if update else None
            user = update.effective_user if update else None
            with logging_context(
                chat_id=chat.id if chat else None,
                user_id=user.id if user else None,
            ):
                try:
                    return await func(update, context, *args, **kwargs)
                except Exception:  # noqa: BLE001 - ensure all exceptions are logged
                    logger.exception("Unhandled error in command %s", getattr(func, "__name__", "<unknown>"))
                    message = update.effective_message if update else None
                    if message is not None:
                        await message.reply_text(TEMPORARY_ERROR_TEXT)
                    return fallback

        return wrapper

    return decorator


def register_webhook_route(path: str) -> None:
    """Register the webhook endpoint for the configured path."""

    router = app.router
    for route in list(router.routes):
        if getattr(route, "endpoint", None) is telegram_webhook:
            logger.debug("Removing existing webhook route bound to %s", getattr(route, "path", "<unknown>"))
            router.routes.remove(route)

    logger.debug("Registering webhook route at path %s", path)
    router.add_api_route(path, telegram_webhook, methods=["POST"], name="telegram_webhook")


# ---------------------------------------------------------------------------
# Texts and formatting
# ---------------------------------------------------------------------------


GAME_TITLE = "SaaS Word Chain 🚀"
ANNOUNCEMENT_TITLE = "🚀 SaaS Word Chain - Build the Next Unicorn!"
EMPTY_CHAIN_TEXT = "Start the chain by adding a word! 🚀"
DISRUPTED_TEXT = "🚀 Successfully disrupted the chain!"
ADDED_TEXT = "✨ Word added successfully!"
SUBMISSION_FAILED_TEXT = "Failed to submit word. Please try again or check your connection."
TEMPORARY_ERROR_TEXT = "Something went wrong. Please try again later."
ADMIN_ONLY_TEXT = "Only the game admin can start a new chain."
ADD_USAGE_TEXT = "Usage: /add <word>"
RULES_TEXT = (
    "Every word must start with the last letter of the previous one. "
    "Letters only, and no word may be used twice.\n"
    "Points: 5 per letter, plus bonuses for AI, cloud, SaaS, enterprise, "
    "crypto, growth and friends (capped at 100%)."
)

ALLOWED_UPDATES = ["message"]


def format_prompt(chain: ChainState) -> str:
    letter = chain.required_letter()
    return f"Enter a word starting with {letter if letter else 'any letter'}"


def format_entry(entry: WordEntry) -> str:
    return (
        f"<b>{html.escape(entry.word)}</b> by @{html.escape(entry.author_id)} · "
        f"Meme Status: {entry.meme_score}%"
    )


def format_chain_message(chain: ChainState) -> str:
    lines = [f"<b>{GAME_TITLE}</b>", ""]
    if chain.is_empty:
        lines.append(EMPTY_CHAIN_TEXT)
    else:
        lines.extend(f"{index}. {format_entry(entry)}" for index, entry in enumerate(chain, start=1))
        lines.append("")
        lines.append(f"Total meme status: {chain.total_score()}%")
    lines.append("")
    lines.append(html.escape(format_prompt(chain)))
    return "\n".join(lines)


def _is_admin(user: User | None) -> bool:
    settings = state.settings
    if settings is None or settings.admin_id is None or user is None:
        return False
    return user.id == settings.admin_id


# ---------------------------------------------------------------------------
# Telegram handlers
# ---------------------------------------------------------------------------


@command_entrypoint()
async def start_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    message = update.effective_message
    if message is None:
        return
    logger.debug("Start requested")
    chain = state.session.chain
    await message.reply_text(
        f"<b>{GAME_TITLE}</b>\n\n{html.escape(RULES_TEXT)}\n\n{html.escape(format_prompt(chain))}",
        parse_mode=constants.ParseMode.HTML,
    )


@command_entrypoint()
async def chain_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    message = update.effective_message
    if message is None:
        return
    logger.debug("Chain overview requested")
    await message.reply_text(
        format_chain_message(state.session.chain),
        parse_mode=constants.ParseMode.HTML,
    )


@command_entrypoint()
async def new_chain_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    message = update.effective_message
    if message is None:
        return
    if not _is_admin(update.effective_user):
        logger.info("Rejected /newchain from non-admin user")
        await message.reply_text(ADMIN_ONLY_TEXT)
        return
    session = start_new_session()
    await message.reply_text(
        f"<b>{html.escape(ANNOUNCEMENT_TITLE)}</b>\n\n{html.escape(format_prompt(session.chain))}",
        parse_mode=constants.ParseMode.HTML,
    )


async def _handle_word_submission(
    context: ContextTypes.DEFAULT_TYPE,
    chat: Chat,
    user: User,
    message: Message,
    raw_word: str,
) -> None:
    word = raw_word.strip()
    session = state.session
    provider = TelegramIdentityProvider(context.bot, chat.id, user.id)

    outcome = await session.controller.submit(word, identity_provider=provider)
    if outcome is None:
        logger.debug("Submission of %r dropped while another one is in flight", word)
        return

    if isinstance(outcome, Success):
        headline = DISRUPTED_TEXT if outcome.entry.is_disruptive else ADDED_TEXT
        await message.reply_text(
            f"{headline}\n{format_entry(outcome.entry)}\n\n{html.escape(format_prompt(session.chain))}",
            parse_mode=constants.ParseMode.HTML,
        )
    elif isinstance(outcome, ValidationFailed):
        logger.info("Word %r rejected (%s)", word, outcome.error.code)
        await message.reply_text(outcome.error.message)
    elif isinstance(outcome, SubmissionFailed):
        await message.reply_text(SUBMISSION_FAILED_TEXT)


@command_entrypoint()
async def add_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    chat = update.effective_chat
    user = update.effective_user
    message = update.effective_message
    if chat is None or user is None or message is None:
        return
    args = list(context.args or [])
    if not args:
        await message.reply_text(f"{ADD_USAGE_TEXT}\n{format_prompt(state.session.chain)}")
        return
    await _handle_word_submission(context, chat, user, message, " ".join(args))


@command_entrypoint()
async def word_message_handler(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    chat = update.effective_chat
    user = update.effective_user
    message = update.effective_message
    if chat is None or user is None or message is None or message.text is None:
        return
    await _handle_word_submission(context, chat, user, message, message.text)


def configure_telegram_handlers(telegram_application: Application) -> None:
    telegram_application.add_handler(CommandHandler(["start", "help"], start_command))
    telegram_application.add_handler(CommandHandler("chain", chain_command))
    telegram_application.add_handler(CommandHandler("newchain", new_chain_command))
    telegram_application.add_handler(CommandHandler("add", add_command, block=False))
    telegram_application.add_handler(
        MessageHandler(
            filters.TEXT & ~filters.COMMAND & filters.ChatType.PRIVATE,
            word_message_handler,
            block=False,
        )
    )


# ---------------------------------------------------------------------------
# Webhook monitoring
# ---------------------------------------------------------------------------


async def monitor_webhook(application: Application, settings: Settings) -> None:
    """Background task to periodically ensure webhook registration is valid."""

    logger.debug("Starting webhook monitor task with interval %s seconds", settings.webhook_check_interval)
    expected_url = f"{settings.public_url}{settings.webhook_path}"
    while True:
        try:
            info = await application.bot.get_webhook_info()
            logger.debug("Current webhook info: url=%s, pending=%s", info.url, info.pending_update_count)
            if info.url != expected_url:
                logger.warning("Webhook mismatch detected. Expected url=%s, got %s", expected_url, info.url)
                await _set_webhook(application, settings)
                logger.info("Webhook re-registered due to mismatch")
        except Exception:  # noqa: BLE001 - We want to log all failures
            logger.exception("Failed to validate or reset webhook")
        await asyncio.sleep(settings.webhook_check_interval)


# ---------------------------------------------------------------------------
# Lifecycle events
# ---------------------------------------------------------------------------


@asynccontextmanager
async def app_lifespan(_: FastAPI) -> AsyncIterator[None]:
    logger.debug("FastAPI startup initiated")
    settings = load_settings()
    state.settings = settings

    logger.debug("Building Telegram application")
    telegram_application = (
        Application.builder()
        .token(settings.telegram_bot_token)
        .request(HTTPXRequest())
        .updater(None)
        .build()
    )
    configure_telegram_handlers(telegram_application)
    await telegram_application.initialize()
    logger.info("Telegram application initialized")
    await telegram_application.start()
    logger.info("Telegram application started")
    state.telegram_app = telegram_application

    register_webhook_route(settings.webhook_path)
    await _set_webhook(telegram_application, settings)
    logger.info("Webhook configured at %s%s", settings.public_url, settings.webhook_path)

    state.webhook_task = asyncio.create_task(monitor_webhook(telegram_application, settings))

    try:
        yield
    finally:
        logger.debug("FastAPI shutdown initiated")
        if state.webhook_task:
            logger.debug("Cancelling webhook monitor task")
            state.webhook_task.cancel()
            with suppress(asyncio.CancelledError):
                await state.webhook_task
            state.webhook_task = None
        if state.telegram_app:
            logger.debug("Shutting down Telegram application")
            if getattr(state.telegram_app, "running", False):
                await state.telegram_app.stop()
            await state.telegram_app.shutdown()
            state.telegram_app = None
            logger.info("Telegram application shut down")


app.router.lifespan_context = app_lifespan


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@app.get("/healthz")
async def healthz() -> JSONResponse:
    logger.debug("Health check requested")
    return JSONResponse({"status": "ok"})


@app.get("/chain")
async def chain_snapshot() -> Response:
    chain = state.session.chain
    payload = {
        "entries": [entry.to_dict() for entry in chain],
        "length": len(chain),
        "next_letter": chain.required_letter(),
        "total_score": chain.total_score(),
    }
    return Response(content=orjson.dumps(payload), media_type="application/json")


async def telegram_webhook(
    request: Request,
    telegram_application: Application = Depends(get_telegram_application),
) -> JSONResponse:
    settings = state.settings
    if settings is None:
        logger.error("Application settings are not available during webhook call")
        raise HTTPException(status_code=503, detail="Application settings unavailable")

    secret_header = request.headers.get("X-Telegram-Bot-Api-Secret-Token")
    if secret_header != settings.webhook_secret:
        logger.warning("Webhook secret mismatch")
        raise HTTPException(status_code=403, detail="Invalid secret token")

    try:
        payload = await request.json()
        logger.debug("Received webhook payload: %s", payload)
        update = Update.de_json(payload, telegram_application.bot)
    except Exception as exc:  # noqa: BLE001 - we need to report deserialization errors
        logger.exception("Failed to deserialize Telegram update")
        raise HTTPException(status_code=400, detail="Invalid update payload") from exc

    try:
        await telegram_application.process_update(update)
    except Exception as exc:  # noqa: BLE001 - log any processing errors
        logger.exception("Failed to process Telegram update")
        raise HTTPException(status_code=500, detail="Failed to process update") from exc

    logger.debug("Update processed successfully")
    return JSONResponse({"ok": True})


async def _set_webhook(telegram_application: Application, settings: Settings) -> None:
    expected_url = f"{settings.public_url}{settings.webhook_path}"
    logger.debug("Setting webhook to %s", expected_url)
    await telegram_application.bot.set_webhook(
        url=expected_url,
        secret_token=settings.webhook_secret,
        allowed_updates=ALLOWED_UPDATES,
    )


__all__ = ["app"]
