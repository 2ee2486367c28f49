"""
Telegram Notifier
Sends expiry warnings through the Bot API sendMessage call
"""
from telegram import Bot
from telegram.constants import ParseMode
from telegram.error import TelegramError
import logging

from ..exceptions import NotificationError

logger = logging.getLogger(__name__)


class TelegramNotifier:
    """Stateless sender; credentials are resolved per call"""

    def __init__(self, parse_mode: str = ParseMode.HTML):
        self.parse_mode = parse_mode

    async def send_message(self, bot_token: str, chat_id: str, text: str) -> None:
        """POST {chat_id, text, parse_mode}; raises NotificationError on failure"""
        if not bot_token or not chat_id:
            raise NotificationError("Telegram bot token or chat id missing")

        try:
            async with Bot(token=bot_token) as bot:
                await bot.send_message(
                    chat_id=chat_id,
                    text=text,
                    parse_mode=self.parse_mode,
                )
        except TelegramError as e:
            logger.error(f"Failed to send notification to {chat_id}: {e}")
            raise NotificationError(getattr(e, "message", None) or str(e)) from e


# Global notifier instance
telegram_notifier = TelegramNotifier()
