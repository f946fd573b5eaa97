"""
Модуль для создания клавиатур и меню в Telegram.
"""
from typing import List, Optional, Sequence

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, ReplyKeyboardMarkup, KeyboardButton

from learnbot.bot import callbacks
from learnbot.config import PAYMENT_METHODS
from learnbot.database.models import Course, Lesson, Payment, Quiz
from learnbot.i18n import I18nService
from learnbot.learning.access import LessonAccess
from learnbot.learning.quiz_engine import AnswerFeedback, QuestionView
from learnbot.learning.scoring import localized, question_options

LANGUAGE_NAMES = {
    "uz": "🇺🇿 O'zbekcha",
    "ru": "🇷🇺 Русский",
    "en": "🇬🇧 English"
}


# Главное меню
def get_main_menu_keyboard(i18n: I18nService, language: str):
    """Создает клавиатуру главного меню."""
    keyboard = [
        [KeyboardButton(i18n.t("menu.courses", language))],
        [KeyboardButton(i18n.t("menu.progress", language)), KeyboardButton(i18n.t("menu.results", language))],
        [KeyboardButton(i18n.t("menu.certificates", language)), KeyboardButton(i18n.t("menu.profile", language))],
        [KeyboardButton(i18n.t("menu.language", language)), KeyboardButton(i18n.t("menu.help", language))]
    ]
    return ReplyKeyboardMarkup(keyboard, resize_keyboard=True)


def get_language_keyboard():
    """Выбор языка интерфейса."""
    keyboard = [
        [InlineKeyboardButton(name, callback_data=callbacks.language_data(code))]
        for code, name in LANGUAGE_NAMES.items()
    ]
    return InlineKeyboardMarkup(keyboard)


# Курсы и уроки
def get_courses_keyboard(courses: List[Course], language: str):
    """Создает инлайн-клавиатуру со списком курсов."""
    keyboard = []
    for course in courses:
        mark = "💳" if course.is_paid else "📘"
        keyboard.append([InlineKeyboardButton(
            f"{mark} {localized(course.title, language)}",
            callback_data=callbacks.list_lessons_data(course.id)
        )])
    return InlineKeyboardMarkup(keyboard)


def get_lessons_keyboard(course_id: int, lessons: List[LessonAccess], i18n: I18nService, language: str,
                         course_quizzes: Sequence[Quiz] = ()):
    """
    Создает инлайн-клавиатуру с уроками курса и их статусом.

    course_quizzes: общие тесты курса, которые пользователь может начать.
    """
    keyboard = []

    for item in lessons:
        if item.completed:
            status_emoji = "✅"
        elif item.unlocked:
            status_emoji = "🔓"
        else:
            status_emoji = "🔒"
        callback_data = callbacks.lesson_data(item.lesson.id) if item.unlocked else "lesson_locked"

        keyboard.append([InlineKeyboardButton(
            f"{status_emoji} {localized(item.lesson.title, language)}",
            callback_data=callback_data
        )])

    for number, quiz in enumerate(course_quizzes, start=1):
        keyboard.append([InlineKeyboardButton(
            i18n.t("quizzes.course_quiz", language, number=number),
            callback_data=callbacks.start_quiz_data(quiz.id)
        )])

    keyboard.append([InlineKeyboardButton(i18n.t("menu.progress", language),
                                          callback_data=callbacks.progress_data(course_id))])
    keyboard.append([InlineKeyboardButton(i18n.t("courses.back", language), callback_data="list_courses")])
    return InlineKeyboardMarkup(keyboard)


def get_lesson_keyboard(lesson: Lesson, quizzes: List[Quiz], i18n: I18nService, language: str,
                        quiz_passed: bool = False):
    """Кнопки под уроком: тест урока или отметка о завершении. Сданный тест не предлагается."""
    keyboard = []
    if not any(quiz.questions for quiz in quizzes):
        keyboard.append([InlineKeyboardButton(
            i18n.t("lessons.complete", language),
            callback_data=callbacks.complete_lesson_data(lesson.id)
        )])
    elif not quiz_passed:
        keyboard.append([InlineKeyboardButton(
            i18n.t("quizzes.start", language),
            callback_data=callbacks.start_lesson_quiz_data(lesson.id, lesson.course_id)
        )])
    keyboard.append([InlineKeyboardButton(i18n.t("lessons.back", language),
                                          callback_data=callbacks.list_lessons_data(lesson.course_id))])
    return InlineKeyboardMarkup(keyboard)


# Клавиатуры для вопросов
def get_question_options_keyboard(view: QuestionView, language: str):
    """Создает клавиатуру с вариантами ответов на вопрос."""
    keyboard = []
    for i, option in enumerate(question_options(view.question, language)):
        keyboard.append([InlineKeyboardButton(
            f"{chr(65 + i)}. {option}",
            callback_data=callbacks.submit_data(view.quiz_id, view.question_index, i)
        )])
    return InlineKeyboardMarkup(keyboard)


def get_feedback_keyboard(feedback: AnswerFeedback, i18n: I18nService, language: str) -> Optional[InlineKeyboardMarkup]:
    """Кнопка перехода к следующему вопросу."""
    if not feedback.has_next:
        return None
    return InlineKeyboardMarkup([[InlineKeyboardButton(
        i18n.t("quizzes.next_question", language),
        callback_data=callbacks.next_question_data(feedback.quiz_id, feedback.question_index + 1)
    )]])


def get_quiz_result_keyboard(feedback: AnswerFeedback, i18n: I18nService, language: str):
    """Кнопки после завершения теста."""
    outcome = feedback.outcome
    keyboard = []

    if outcome.next_lesson is not None:
        keyboard.append([InlineKeyboardButton(
            i18n.t("lessons.next", language),
            callback_data=callbacks.lesson_data(outcome.next_lesson.id)
        )])
    if outcome.retry_lesson_id is not None:
        keyboard.append([InlineKeyboardButton(
            i18n.t("quizzes.retry", language),
            callback_data=callbacks.start_lesson_quiz_data(outcome.retry_lesson_id, outcome.course_id)
        )])
    if outcome.retry_quiz_id is not None:
        keyboard.append([InlineKeyboardButton(
            i18n.t("quizzes.retry", language),
            callback_data=callbacks.start_quiz_data(outcome.retry_quiz_id)
        )])
    if outcome.next_quiz is not None:
        keyboard.append([InlineKeyboardButton(
            i18n.t("quizzes.next_course_quiz", language),
            callback_data=callbacks.start_quiz_data(outcome.next_quiz.id)
        )])
    if outcome.course is not None and outcome.course.restart_offered:
        keyboard.append([InlineKeyboardButton(
            i18n.t("quizzes.restart", language),
            callback_data=callbacks.restart_course_data(outcome.course_id)
        )])

    keyboard.append([InlineKeyboardButton(i18n.t("menu.progress", language),
                                          callback_data=callbacks.progress_data(outcome.course_id))])
    keyboard.append([InlineKeyboardButton(i18n.t("lessons.back", language),
                                          callback_data=callbacks.list_lessons_data(outcome.course_id))])
    return InlineKeyboardMarkup(keyboard)


# Клавиатура для продолжения обучения
def get_continue_keyboard(course_id: int, next_lesson: Optional[Lesson], i18n: I18nService, language: str):
    """Создает клавиатуру для продолжения обучения."""
    keyboard = []

    if next_lesson is not None:
        keyboard.append([InlineKeyboardButton(
            i18n.t("lessons.next", language),
            callback_data=callbacks.lesson_data(next_lesson.id)
        )])

    keyboard.append([InlineKeyboardButton(i18n.t("menu.progress", language),
                                          callback_data=callbacks.progress_data(course_id))])
    keyboard.append([InlineKeyboardButton(i18n.t("lessons.back", language),
                                          callback_data=callbacks.list_lessons_data(course_id))])
    return InlineKeyboardMarkup(keyboard)


def get_progress_keyboard(course_id: int, i18n: I18nService, language: str, finished: bool = False,
                          restart: bool = False):
    """Кнопки под прогрессом курса."""
    keyboard = []
    if finished:
        keyboard.append([InlineKeyboardButton(i18n.t("certificates.get", language),
                                              callback_data=callbacks.certificate_data(course_id))])
    if restart:
        keyboard.append([InlineKeyboardButton(i18n.t("quizzes.restart", language),
                                              callback_data=callbacks.restart_course_data(course_id))])
    keyboard.append([InlineKeyboardButton(i18n.t("lessons.back", language),
                                          callback_data=callbacks.list_lessons_data(course_id))])
    return InlineKeyboardMarkup(keyboard)


# Прогресс-бар
def get_progress_bar(percentage, width=10):
    """Создает текстовый прогресс-бар."""
    filled = int(width * percentage / 100)
    bar = "■" * filled + "□" * (width - filled)
    return f"{bar} {percentage:.1f}%"


# Оплата
def get_payment_keyboard(course: Course, i18n: I18nService, language: str):
    """Кнопка оплаты платного курса."""
    return InlineKeyboardMarkup([
        [InlineKeyboardButton(i18n.t("payment.pay", language, amount=course.price),
                              callback_data=callbacks.pay_course_data(course.id))],
        [InlineKeyboardButton(i18n.t("courses.back", language), callback_data="list_courses")]
    ])


def get_payment_methods_keyboard(course_id: int, i18n: I18nService, language: str):
    keyboard = [
        [InlineKeyboardButton(method.capitalize(), callback_data=callbacks.pay_method_data(method, course_id))]
        for method in PAYMENT_METHODS
    ]
    keyboard.append([InlineKeyboardButton(i18n.t("courses.back", language), callback_data="list_courses")])
    return InlineKeyboardMarkup(keyboard)


def get_check_payment_keyboard(payment: Payment, i18n: I18nService, language: str):
    return InlineKeyboardMarkup([
        [InlineKeyboardButton(i18n.t("payment.check", language),
                              callback_data=callbacks.check_payment_data(payment.id))],
        [InlineKeyboardButton(i18n.t("courses.back", language), callback_data="list_courses")]
    ])


# Профиль
def get_profile_keyboard(i18n: I18nService, language: str):
    return InlineKeyboardMarkup([
        [InlineKeyboardButton(i18n.t("menu.results", language), callback_data="results")],
        [InlineKeyboardButton(i18n.t("menu.certificates", language), callback_data="certificates")]
    ])
