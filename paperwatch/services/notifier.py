"""
Telegram delivery for subscription updates.
"""
from typing import Optional
from telegram import Bot, LinkPreviewOptions
from telegram.constants import ParseMode
from telegram.error import TelegramError
from paperwatch.config import settings
from paperwatch.services.logger import logger

class TelegramNotifier:
    def __init__(self, bot: Optional[Bot] = None, token: Optional[str] = None):
        token = token or settings.TELEGRAM_BOT_TOKEN
        if bot is None and token:
            bot = Bot(token)
        if bot is None:
            logger.warning("TELEGRAM_BOT_TOKEN not set. Notifications cannot be delivered.")
        self.bot = bot

    async def initialize(self):
        if self.bot is not None:
            await self.bot.initialize()

    async def shutdown(self):
        if self.bot is not None:
            await self.bot.shutdown()

    async def send(self, chat_id: int, text: str) -> bool:
        """Send one MarkdownV2 message. Returns False instead of raising on delivery errors."""
        if self.bot is None:
            logger.error(f"Cannot notify chat {chat_id}: no Telegram bot configured")
            return False
        try:
            await self.bot.send_message(
                chat_id=chat_id,
                text=text,
                parse_mode=ParseMode.MARKDOWN_V2,
                link_preview_options=LinkPreviewOptions(is_disabled=True),
            )
            return True
        except TelegramError as e:
            logger.error(f"Failed to send notification to chat {chat_id}: {e}")
            return False
