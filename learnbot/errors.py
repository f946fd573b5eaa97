"""
Исключения ядра обучения.

Каждое исключение содержит ключ перевода (message_key), по которому
транспортный слой показывает пользователю сообщение об ошибке.
"""
from typing import Any, Optional


class LearningError(Exception):
    """Базовая ошибка модуля обучения."""

    message_key = "errors.server_error"

    def __init__(self, message: str = "", message_key: Optional[str] = None):
        super().__init__(message)
        if message_key:
            self.message_key = message_key


class NotFound(LearningError):
    """Пользователь, курс, урок или тест не найден."""

    def __init__(self, entity: str, identifier: Any):
        self.entity = entity
        self.identifier = identifier
        super().__init__(f"{entity} {identifier} не найден", f"errors.{entity}_not_found")


class InvalidSessionState(LearningError):
    """Событие не соответствует текущей сессии теста (устаревшая или повторная кнопка)."""

    message_key = "errors.invalid_quiz_state"


class PersistenceFailure(LearningError):
    """Ошибка записи в хранилище. Сессия остается без изменений."""

    message_key = "errors.server_error"


class InvalidInput(LearningError):
    """Некорректные идентификаторы или номер варианта ответа."""

    message_key = "errors.invalid_input"


class AccessDenied(LearningError):
    """Курс не оплачен или урок еще не открыт."""

    message_key = "errors.access_denied"
