"""
Telegram bot command handlers for family members.

All handlers receive (update, context) from python-telegram-bot.
Bot data keys (set in build_bot_app):
  context.bot_data["monitor"]       — MonitorService shared with the API and scheduler
  context.bot_data["family_chat_id"] — chat allowed to issue commands; None allows any
"""
import logging
import traceback

from telegram import Update
from telegram.ext import ContextTypes

from wellcheck.analysis.alerts import AlertKind, AlertTransition
from wellcheck.monitor.service import SetupRequiredError

logger = logging.getLogger(__name__)

_STATUS_ICONS = {
    "normal": "🟢",
    "warning": "🟡",
    "alert": "🔴",
    "no_data": "⚪",
}

_KIND_LABELS = {
    "survival": "Phone activity",
    "food": "Meals",
}


def _authorized(update: Update, context: ContextTypes.DEFAULT_TYPE) -> bool:
    allowed = context.bot_data.get("family_chat_id")
    return allowed is None or update.effective_chat.id == allowed


def format_status(status: dict) -> str:
    """Render MonitorService.status() as a chat message."""
    lines = []
    for alert in status["alerts"]:
        icon = _STATUS_ICONS.get(alert["status"], "")
        label = _KIND_LABELS.get(alert["kind"], alert["kind"])
        line = f"{icon} {label}: {alert['time_since']}"
        if alert["active"]:
            line += " — ALERT ACTIVE"
        lines.append(line)

    lines.append(f"🍚 Meals today: {status['meals_today']}")

    sleep = status["sleep"]
    lines.append(f"😴 Sleep: {sleep['schedule']}")
    if sleep["is_sleep_time"]:
        lines.append("Currently in the sleep window.")
    return "\n".join(lines)


async def handle_start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await update.message.reply_text(
        "Commands:\n"
        "/status — latest phone activity, meals and alerts\n"
        "/clear survival|food — dismiss an active alert"
    )


async def handle_status(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """
    /status — both alert kinds with status and time since last activity/meal.
    """
    if not _authorized(update, context):
        return
    monitor = context.bot_data["monitor"]
    await update.message.reply_text(format_status(monitor.status()))


async def handle_clear(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """
    /clear survival|food — explicit family clear of an active alert.
    """
    if not _authorized(update, context):
        return

    args = context.args or []
    try:
        kind = AlertKind(args[0].lower())
    except (IndexError, ValueError):
        await update.message.reply_text("Usage: /clear survival  or  /clear food")
        return

    monitor = context.bot_data["monitor"]
    try:
        transition = await monitor.clear_alert(kind)
    except SetupRequiredError:
        await update.message.reply_text("The phone has not been set up yet.")
        return

    if transition == AlertTransition.CLEARED:
        await update.message.reply_text(f"{_KIND_LABELS[kind.value]} alert cleared.")
    elif monitor.alerts[kind].active:
        await update.message.reply_text("Could not clear the alert right now. Please try again.")
    else:
        await update.message.reply_text(f"No active {_KIND_LABELS[kind.value].lower()} alert.")


async def error_handler(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Global PTB error handler — logs the exception and notifies the family chat."""
    logger.exception("Unhandled exception", exc_info=context.error)

    chat_id = context.bot_data.get("family_chat_id")
    if not chat_id:
        return

    tb = "".join(traceback.format_exception(type(context.error), context.error, context.error.__traceback__))
    await context.bot.send_message(
        chat_id=chat_id,
        text=f"⚠️ Unhandled error:\n<pre>{tb[-3000:]}</pre>",
        parse_mode="HTML",
    )
