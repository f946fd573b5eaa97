"""
Модуль для настройки конфигурации проекта.
"""
import os
import pathlib
import logging
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Получаем путь к корневой директории проекта
BASE_DIR = pathlib.Path(__file__).parent.parent.absolute()

# Загружаем переменные окружения из файла .env
env_path = os.path.join(BASE_DIR, ".env")
load_dotenv(env_path)

# Токен телеграм бота
TELEGRAM_TOKEN = os.getenv("TELEGRAM_TOKEN")

# Настройки базы данных
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///learnbot.db")

# Языки интерфейса
DEFAULT_LANGUAGE = os.getenv("DEFAULT_LANGUAGE", "uz")
SUPPORTED_LANGUAGES = ["uz", "ru", "en"]
LOCALES_DIR = BASE_DIR / "learnbot" / "i18n" / "locales"

# Настройки обучения
PASS_THRESHOLD = 60  # Минимальный процент правильных ответов для сертификата

# Каталог курсов, загружаемый при старте
CATALOG_PATH = os.getenv("CATALOG_PATH", os.path.join(BASE_DIR, "data", "catalog.json"))

# Способы оплаты (учет платежей без подключения платежной системы)
PAYMENT_METHODS = ["payme", "click"]

# Сертификаты
CERTIFICATE_ARTIFACT_PREFIX = os.getenv("CERTIFICATE_ARTIFACT_PREFIX", "certificates/")

# Логирование
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_DIR = os.getenv("LOG_DIR", "logs")

# Администраторы (Telegram ID через запятую), могут делать рассылки
ADMIN_IDS = [item.strip() for item in os.getenv("ADMIN_IDS", "").split(",") if item.strip()]

# Команды для запуска бота
START_COMMANDS = ["start", "boshlash", "старт", "/start"]

# Максимальная длина сообщения в Telegram
MAX_MESSAGE_LENGTH = 4000
