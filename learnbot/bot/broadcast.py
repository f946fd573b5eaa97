"""
Рассылка сообщений пользователям бота.

Ошибка доставки одному получателю (бот заблокирован, чат удален)
записывается в лог и не прерывает рассылку остальным.
"""
import logging
from dataclasses import dataclass, field
from typing import Iterable, List

from sqlalchemy.orm import Session
from telegram.error import TelegramError

from learnbot.database.operations import get_all_users, get_user_by_telegram_id
from learnbot.errors import NotFound

logger = logging.getLogger(__name__)


@dataclass
class BroadcastReport:
    sent: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


async def send_notification(bot, db: Session, telegram_id, text: str, **kwargs) -> None:
    """Отправляет сообщение одному зарегистрированному пользователю."""
    user = get_user_by_telegram_id(db, telegram_id)
    if user is None:
        raise NotFound("user", telegram_id)
    await bot.send_message(chat_id=int(user.telegram_id), text=text, **kwargs)


async def send_to_chats(bot, chat_ids: Iterable, text: str, **kwargs) -> BroadcastReport:
    """Отправляет сообщение в список чатов по очереди."""
    report = BroadcastReport()
    for chat_id in chat_ids:
        try:
            await bot.send_message(chat_id=int(chat_id), text=text, **kwargs)
            report.sent.append(str(chat_id))
        except TelegramError as e:
            logger.warning(f"Не удалось отправить сообщение в чат {chat_id}: {e}")
            report.failed.append(str(chat_id))
    return report


async def broadcast(bot, db: Session, text: str, **kwargs) -> BroadcastReport:
    """Рассылка всем активным пользователям."""
    chat_ids = [user.telegram_id for user in get_all_users(db)]
    report = await send_to_chats(bot, chat_ids, text, **kwargs)
    logger.info(f"Рассылка завершена: доставлено {len(report.sent)}, ошибок {len(report.failed)}")
    return report
