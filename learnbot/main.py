"""
Точка входа в бот последовательного обучения.
"""
import logging
import os
import sys
import traceback
from typing import Optional

from telegram import Update
from telegram.ext import Application, CommandHandler, MessageHandler, CallbackQueryHandler, ContextTypes, filters

from learnbot.config import TELEGRAM_TOKEN, DATABASE_URL, LOG_LEVEL, LOG_DIR, DEFAULT_LANGUAGE, CATALOG_PATH
from learnbot.database.models import init_db, get_db, close_db, check_connection
from learnbot.i18n import I18nService
from learnbot.learning import CertificateService, CompletionTrigger, QuizEngine, InMemorySessionStore
from learnbot.learning.courses import init_courses, read_catalog
from learnbot.bot.handlers import (
    start,
    show_courses,
    show_progress,
    choose_language,
    show_help,
    show_profile,
    show_results,
    show_certificates,
    show_payments,
    confirm_payment,
    send_broadcast,
    handle_message,
    handle_callback
)


# Настройка логирования
def setup_logging(level: str = "INFO", log_dir: str = LOG_DIR):
    """Настройка системы логирования."""
    log_level = getattr(logging, level.upper(), logging.INFO)

    # Создаем директорию для логов
    os.makedirs(log_dir, exist_ok=True)

    # Настройка форматирования
    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    # Обработчик для файла
    file_handler = logging.FileHandler(os.path.join(log_dir, "bot.log"), encoding='utf-8')
    file_handler.setFormatter(formatter)
    file_handler.setLevel(log_level)

    # Обработчик для консоли
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    console_handler.setLevel(log_level)

    # Настройка корневого логгера
    logging.basicConfig(
        level=log_level,
        handlers=[file_handler, console_handler]
    )

    # Библиотека HTTP-клиента пишет каждый запрос к API
    logging.getLogger("httpx").setLevel(logging.WARNING)

    return logging.getLogger(__name__)


class LearningBot:
    """Класс для управления ботом."""

    def __init__(self, token: Optional[str] = TELEGRAM_TOKEN):
        self.logger = setup_logging(LOG_LEVEL)
        self.token = token
        self.application: Optional[Application] = None
        self.i18n: Optional[I18nService] = None
        self.engine: Optional[QuizEngine] = None

    def initialize(self) -> bool:
        """Инициализация конфигурации, базы данных, переводов и движка тестов."""
        if not self._check_configuration():
            return False

        try:
            init_db()
            if not check_connection():
                return False
            self.logger.info(f"✅ База данных: {DATABASE_URL}")

            self._load_catalog()

            self.i18n = I18nService(default_language=DEFAULT_LANGUAGE)
            self.engine = QuizEngine(
                completion=CompletionTrigger(CertificateService()),
                store=InMemorySessionStore()
            )

            self.application = self._create_application()
        except Exception as e:
            self.logger.error(f"❌ Критическая ошибка инициализации: {e}")
            self.logger.error(traceback.format_exc())
            return False

        self.logger.info("✅ Все системы успешно инициализированы")
        return True

    def _load_catalog(self) -> None:
        """Добавление курсов из файла каталога."""
        db = get_db()
        try:
            created = init_courses(db, read_catalog(CATALOG_PATH))
            if created:
                self.logger.info(f"✅ Загружено курсов из каталога: {len(created)}")
        finally:
            close_db(db)

    def _check_configuration(self) -> bool:
        """Проверка конфигурации."""
        if not self.token:
            self.logger.error("❌ TELEGRAM_TOKEN не установлен")
            self.logger.error("Создайте файл .env и добавьте токен от @BotFather")
            return False

        if len(self.token) < 20:
            self.logger.error("❌ TELEGRAM_TOKEN выглядит некорректно")
            return False

        self.logger.info("✅ Конфигурация загружена")
        return True

    def _create_application(self) -> Application:
        """Создание Telegram приложения."""
        application = Application.builder().token(self.token).concurrent_updates(True).build()

        application.bot_data["engine"] = self.engine
        application.bot_data["i18n"] = self.i18n
        application.bot_data["db_factory"] = get_db

        self.setup_handlers(application)
        application.add_error_handler(self._error_handler)

        self.logger.info("✅ Telegram приложение создано")
        return application

    @staticmethod
    def setup_handlers(application: Application) -> None:
        """Настройка обработчиков команд, сообщений и кнопок."""
        application.add_handler(CommandHandler("start", start))
        application.add_handler(CommandHandler("courses", show_courses))
        application.add_handler(CommandHandler("progress", show_progress))
        application.add_handler(CommandHandler("language", choose_language))
        application.add_handler(CommandHandler("help", show_help))
        application.add_handler(CommandHandler("profile", show_profile))
        application.add_handler(CommandHandler("results", show_results))
        application.add_handler(CommandHandler("certificates", show_certificates))
        application.add_handler(CommandHandler("payments", show_payments))
        application.add_handler(CommandHandler("verify", confirm_payment))
        application.add_handler(CommandHandler("broadcast", send_broadcast))
        application.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, handle_message))
        application.add_handler(CallbackQueryHandler(handle_callback))

    async def _error_handler(self, update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Обработчик ошибок."""
        error = context.error

        # Логируем ошибку
        self.logger.error(f"Ошибка при обработке обновления: {update}")
        self.logger.error(f"Ошибка: {error}")
        self.logger.error("".join(traceback.format_tb(error.__traceback__)))

        # Отправляем сообщение пользователю, если возможно
        if isinstance(update, Update) and update.effective_chat and self.i18n:
            user = update.effective_user
            language = user.language_code if user else None
            try:
                await context.bot.send_message(
                    chat_id=update.effective_chat.id,
                    text=self.i18n.t("errors.server_error", language)
                )
            except Exception as e:
                self.logger.error(f"Не удалось отправить сообщение об ошибке пользователю: {e}")

    def run(self) -> None:
        """Запуск бота."""
        self.logger.info("📡 Начинаю polling...")
        self.application.run_polling(
            allowed_updates=Update.ALL_TYPES,
            drop_pending_updates=True
        )


def main() -> int:
    """Основная функция запуска."""
    bot = LearningBot()

    if not bot.initialize():
        print("❌ Не удалось инициализировать бота")
        return 1

    try:
        bot.run()
    except KeyboardInterrupt:
        print("\n⚠️ Получен сигнал прерывания...")
    return 0


if __name__ == "__main__":
    sys.exit(main())
