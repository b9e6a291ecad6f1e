"""Family notifications over Telegram."""
import logging
from typing import List, Optional

from telegram import Bot

from wellcheck.analysis.alerts import AlertKind, AlertTransition
from wellcheck.notify.base import AlertEvent

logger = logging.getLogger(__name__)

_TITLES = {
    AlertKind.SURVIVAL: "Phone inactivity",
    AlertKind.FOOD: "Missed meals",
}


def format_alert_text(event: AlertEvent) -> str:
    title = _TITLES[event.kind]
    if event.transition == AlertTransition.TRIGGERED:
        return f"⚠️ {title} alert for {event.elderly_name}\n{event.message}"
    return f"✅ {title} alert cleared for {event.elderly_name} ({event.at:%Y-%m-%d %H:%M})"


class TelegramAlertSink:
    """Sends alert signals to the family group chat."""

    def __init__(self, bot: Bot, chat_id: int):
        self.bot = bot
        self.chat_id = chat_id

    async def send(self, event: AlertEvent) -> None:
        await self.bot.send_message(chat_id=self.chat_id, text=format_alert_text(event))
        logger.info("Sent %s %s notification to chat %s", event.kind.value, event.transition.value, self.chat_id)


def build_telegram_sinks(settings, bot: Optional[Bot] = None) -> List[TelegramAlertSink]:
    """One sink for the family chat, or none when Telegram is not configured."""
    if not settings.telegram_bot_token or settings.telegram_family_chat_id is None:
        logger.info("Telegram not configured — family chat notifications disabled.")
        return []
    bot = bot or Bot(settings.telegram_bot_token)
    return [TelegramAlertSink(bot, settings.telegram_family_chat_id)]
