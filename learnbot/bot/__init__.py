"""
Модуль для работы с Telegram ботом.

Этот модуль содержит компоненты для взаимодействия с Telegram API:
- handlers.py: Обработчики команд и инлайн-кнопок
- callbacks.py: Разбор и формирование callback_data
- keyboards.py: Функции для создания клавиатур и меню
- broadcast.py: Рассылка сообщений пользователям
"""

from learnbot.bot.callbacks import Callback, parse_callback

from learnbot.bot.keyboards import (
    get_main_menu_keyboard,
    get_language_keyboard,
    get_courses_keyboard,
    get_lessons_keyboard,
    get_lesson_keyboard,
    get_question_options_keyboard,
    get_feedback_keyboard,
    get_quiz_result_keyboard,
    get_continue_keyboard,
    get_progress_keyboard,
    get_progress_bar,
    get_payment_keyboard,
    get_payment_methods_keyboard,
    get_check_payment_keyboard,
    get_profile_keyboard
)

from learnbot.bot.broadcast import BroadcastReport, send_notification, send_to_chats, broadcast

__all__ = [
    # Кнопки
    'Callback',
    'parse_callback',

    # Клавиатуры
    'get_main_menu_keyboard',
    'get_language_keyboard',
    'get_courses_keyboard',
    'get_lessons_keyboard',
    'get_lesson_keyboard',
    'get_question_options_keyboard',
    'get_feedback_keyboard',
    'get_quiz_result_keyboard',
    'get_continue_keyboard',
    'get_progress_keyboard',
    'get_progress_bar',
    'get_payment_keyboard',
    'get_payment_methods_keyboard',
    'get_check_payment_keyboard',
    'get_profile_keyboard',

    # Рассылка
    'BroadcastReport',
    'send_notification',
    'send_to_chats',
    'broadcast'
]
