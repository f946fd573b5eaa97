"""
Разбор и формирование callback_data инлайн-кнопок.
"""
import re
from typing import NamedTuple, Tuple

from learnbot.config import SUPPORTED_LANGUAGES, PAYMENT_METHODS
from learnbot.errors import InvalidInput


class Callback(NamedTuple):
    action: str
    args: Tuple


# Порядок важен: более длинные префиксы проверяются раньше
CALLBACK_PATTERNS = [
    ("start_quiz_lesson", re.compile(r"^start_quiz_lesson_(\d+)_(\d+)$")),
    ("start_quiz", re.compile(r"^start_quiz_(\d+)$")),
    ("submit_quiz", re.compile(r"^submit_quiz_(\d+)_(\d+)_(\d+)$")),
    ("next_question", re.compile(r"^next_question_(\d+)_(\d+)$")),
    ("restart_quiz_course", re.compile(r"^restart_quiz_course_(\d+)$")),
    ("list_lessons", re.compile(r"^list_lessons_(\d+)$")),
    ("complete_lesson", re.compile(r"^complete_lesson_(\d+)$")),
    ("lesson_locked", re.compile(r"^lesson_locked$")),
    ("lesson", re.compile(r"^lesson_(\d+)$")),
    ("progress", re.compile(r"^progress_(\d+)$")),
    ("certificate", re.compile(r"^certificate_(\d+)$")),
    ("list_courses", re.compile(r"^list_courses$")),
    ("lang", re.compile(r"^lang_([a-z]{2})$")),
    ("pay_course", re.compile(r"^pay_course_(\d+)$")),
    ("pay_method", re.compile(r"^pay_method_([a-z]+)_(\d+)$")),
    ("check_payment", re.compile(r"^check_payment_(\d+)$")),
    ("results", re.compile(r"^results$")),
    ("certificates", re.compile(r"^certificates$")),
]


def parse_callback(data: str) -> Callback:
    """
    Разбирает callback_data кнопки.

    Raises:
        InvalidInput: неизвестный формат или неподдерживаемый язык
    """
    if not data:
        raise InvalidInput("Пустые данные кнопки")

    for action, pattern in CALLBACK_PATTERNS:
        match = pattern.match(data)
        if not match:
            continue
        if action == "lang":
            language = match.group(1)
            if language not in SUPPORTED_LANGUAGES:
                raise InvalidInput(f"Неподдерживаемый язык: {language}")
            return Callback(action, (language,))
        if action == "pay_method":
            method, course_id = match.groups()
            if method not in PAYMENT_METHODS:
                raise InvalidInput(f"Неизвестный способ оплаты: {method}")
            return Callback(action, (method, int(course_id)))
        return Callback(action, tuple(int(group) for group in match.groups()))

    raise InvalidInput(f"Неизвестные данные кнопки: {data}")


def start_quiz_data(quiz_id: int) -> str:
    return f"start_quiz_{quiz_id}"


def start_lesson_quiz_data(lesson_id: int, course_id: int) -> str:
    return f"start_quiz_lesson_{lesson_id}_{course_id}"


def submit_data(quiz_id: int, question_index: int, option: int) -> str:
    return f"submit_quiz_{quiz_id}_{question_index}_{option}"


def next_question_data(quiz_id: int, question_index: int) -> str:
    return f"next_question_{quiz_id}_{question_index}"


def restart_course_data(course_id: int) -> str:
    return f"restart_quiz_course_{course_id}"


def list_lessons_data(course_id: int) -> str:
    return f"list_lessons_{course_id}"


def lesson_data(lesson_id: int) -> str:
    return f"lesson_{lesson_id}"


def complete_lesson_data(lesson_id: int) -> str:
    return f"complete_lesson_{lesson_id}"


def progress_data(course_id: int) -> str:
    return f"progress_{course_id}"


def certificate_data(course_id: int) -> str:
    return f"certificate_{course_id}"


def language_data(language: str) -> str:
    return f"lang_{language}"


def pay_course_data(course_id: int) -> str:
    return f"pay_course_{course_id}"


def pay_method_data(method: str, course_id: int) -> str:
    return f"pay_method_{method}_{course_id}"


def check_payment_data(payment_id: int) -> str:
    return f"check_payment_{payment_id}"
