"""
Telegram bot application factory.

Builds the python-telegram-bot Application for the family chat with all
command handlers registered.
"""
from typing import Optional

from telegram.ext import Application, CommandHandler

from wellcheck.bot.handlers import (
    error_handler,
    handle_clear,
    handle_start,
    handle_status,
)


def build_bot_app(token: str, monitor, family_chat_id: Optional[int] = None) -> Application:
    """
    Build and return the PTB Application.

    Args:
        token: Telegram bot token.
        monitor: MonitorService shared with the API and scheduler.
        family_chat_id: only this chat may issue commands; receives errors.

    Returns:
        Configured Application (not yet started).
    """
    app = Application.builder().token(token).build()

    app.bot_data["monitor"] = monitor
    app.bot_data["family_chat_id"] = family_chat_id

    app.add_handler(CommandHandler(["start", "help"], handle_start))
    app.add_handler(CommandHandler("status", handle_status))
    app.add_handler(CommandHandler("clear", handle_clear))

    app.add_error_handler(error_handler)

    return app
