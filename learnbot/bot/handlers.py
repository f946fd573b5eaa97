"""
Модуль для обработчиков Telegram бота.

Обработчики переводят команды и нажатия инлайн-кнопок в вызовы ядра
обучения и отображают результат. Движок тестов, переводы и фабрика
сессий БД берутся из context.bot_data.
"""
import logging
from contextlib import contextmanager
from typing import Optional

from telegram import Update
from telegram.constants import ParseMode
from telegram.error import TelegramError
from telegram.ext import ContextTypes
from telegram.helpers import escape_markdown

from learnbot.config import ADMIN_IDS, MAX_MESSAGE_LENGTH, PASS_THRESHOLD, START_COMMANDS
from learnbot.database.models import get_db, close_db
from learnbot.database.operations import (
    get_or_create_user,
    set_user_language,
    get_all_courses,
    get_course,
    get_lesson,
    get_quizzes_by_course,
    get_quizzes_by_lesson,
    initiate_payment,
    verify_payment,
    get_payment,
    get_pending_payment,
    get_payment_history
)
from learnbot.errors import LearningError, InvalidSessionState, InvalidInput, NotFound, AccessDenied, PersistenceFailure
from learnbot.bot.callbacks import parse_callback
from learnbot.bot.broadcast import broadcast, send_notification
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
    get_profile_keyboard,
    LANGUAGE_NAMES
)
from learnbot.i18n import I18nService
from learnbot.learning.access import can_access_course, can_access_lesson, can_access_quiz, lesson_access_map
from learnbot.learning.completion import CompletionOutcome, QuizOutcome, is_course_finished
from learnbot.learning.progress import record_completion, get_progress, get_next_lesson
from learnbot.learning.quiz_engine import AnswerFeedback, QuestionView, QuizEngine
from learnbot.learning.scoring import localized, question_options, course_score, quiz_passed, get_user_quiz_scores

logger = logging.getLogger(__name__)

MARKDOWN = ParseMode.MARKDOWN_V2


# Вспомогательные функции

def md(value) -> str:
    """Экранирует текст для MarkdownV2."""
    return escape_markdown(str(value), version=2)


def shorten(text: str, limit: int = MAX_MESSAGE_LENGTH) -> str:
    if len(text) <= limit:
        return text
    return text[:limit - 3] + "..."


@contextmanager
def open_db(context: ContextTypes.DEFAULT_TYPE):
    """Сессия БД на время обработки одного обновления."""
    db = context.bot_data.get("db_factory", get_db)()
    try:
        yield db
    finally:
        close_db(db)


def get_engine(context: ContextTypes.DEFAULT_TYPE) -> QuizEngine:
    return context.bot_data["engine"]


def get_i18n(context: ContextTypes.DEFAULT_TYPE) -> I18nService:
    return context.bot_data["i18n"]


def ensure_user(db, telegram_user):
    return get_or_create_user(
        db,
        telegram_id=telegram_user.id,
        username=telegram_user.username,
        first_name=telegram_user.first_name,
        last_name=telegram_user.last_name,
        language=telegram_user.language_code
    )


# Тексты сообщений

def render_question(view: QuestionView, i18n: I18nService, language: str) -> str:
    header = i18n.t("quizzes.question_header", language, number=view.question_index + 1, total=view.total)
    return f"{md(header)}\n\n*{md(localized(view.question.text, language))}*"


def render_feedback(feedback: AnswerFeedback, i18n: I18nService, language: str) -> str:
    question = feedback.question
    options = question_options(question, language)
    lines = [
        f"*{md(localized(question.text, language))}*",
        md(i18n.t("quizzes.your_answer", language, answer=options[feedback.selected]))
    ]
    if feedback.is_correct:
        lines.append(md(i18n.t("quizzes.correct", language)))
    else:
        lines.append(md(i18n.t("quizzes.incorrect", language, answer=options[question.correct])))
        explanation = localized(question.explanation, language) if question.explanation else None
        if explanation:
            lines.append(md(i18n.t("quizzes.explanation", language, text=explanation)))
    return "\n".join(lines)


def render_quiz_result(outcome: QuizOutcome, i18n: I18nService, language: str) -> str:
    score = outcome.score
    lines = [md(i18n.t("quizzes.result", language, score=score.score, total=score.total,
                       percentage=score.percentage))]

    if outcome.lesson_id is not None:
        key = "quizzes.lesson_passed" if outcome.passed else "quizzes.lesson_failed"
        lines.append(md(i18n.t(key, language, threshold=PASS_THRESHOLD)))

    if outcome.course is not None:
        lines.append(render_course_outcome(outcome.course, i18n, language))
    return "\n\n".join(lines)


def render_course_outcome(outcome: CompletionOutcome, i18n: I18nService, language: str) -> str:
    """Итог курса: сертификат или предложение пройти тесты заново."""
    percentage = outcome.score.percentage
    if outcome.certificate is None:
        return md(i18n.t("quizzes.course_failed", language, percentage=percentage, threshold=PASS_THRESHOLD))
    return (
        f"{md(i18n.t('certificates.issued', language, percentage=percentage))}\n"
        f"{md(i18n.t('certificates.artifact', language, artifact=outcome.certificate.artifact))}"
    )


# Обработчики команд и сообщений

async def start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Обрабатывает команду /start."""
    i18n = get_i18n(context)
    with open_db(context) as db:
        user = ensure_user(db, update.effective_user)
        language = user.language
        name = update.effective_user.first_name or ""

    await update.effective_message.reply_text(
        md(i18n.t("start.welcome", language, name=name)),
        parse_mode=MARKDOWN,
        reply_markup=get_main_menu_keyboard(i18n, language)
    )


async def show_courses(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Обрабатывает команду /courses."""
    with open_db(context) as db:
        user = ensure_user(db, update.effective_user)
        await _send_courses(update.effective_message, db, user, get_i18n(context))


async def show_progress(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Обрабатывает команду /progress: прогресс по всем доступным курсам."""
    i18n = get_i18n(context)
    with open_db(context) as db:
        user = ensure_user(db, update.effective_user)
        language = user.language

        lines = []
        for course in get_all_courses(db):
            if not can_access_course(db, user.id, course.id):
                continue
            progress = get_progress(db, user.id, course.id)
            lines.append(
                f"*{md(localized(course.title, language))}*\n"
                f"{md(i18n.t('progress.lessons', language, completed=progress.completed, total=progress.total))}\n"
                f"{md(get_progress_bar(progress.percentage))}"
            )

    if not lines:
        await update.effective_message.reply_text(i18n.t("progress.no_progress", language))
        return
    await update.effective_message.reply_text(
        f"{md(i18n.t('progress.title', language))}\n\n" + "\n\n".join(lines),
        parse_mode=MARKDOWN
    )


async def choose_language(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    i18n = get_i18n(context)
    with open_db(context) as db:
        language = ensure_user(db, update.effective_user).language
    await update.effective_message.reply_text(
        i18n.t("menu.choose_language", language),
        reply_markup=get_language_keyboard()
    )


async def show_help(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Обрабатывает команду /help."""
    i18n = get_i18n(context)
    with open_db(context) as db:
        language = ensure_user(db, update.effective_user).language
    await update.effective_message.reply_text(
        i18n.t("help.message", language),
        reply_markup=get_main_menu_keyboard(i18n, language)
    )


async def show_profile(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Обрабатывает команду /profile."""
    i18n = get_i18n(context)
    with open_db(context) as db:
        user = ensure_user(db, update.effective_user)
        language = user.language
        name = " ".join(part for part in (user.first_name, user.last_name) if part)
        lessons = sum(get_progress(db, user.id, course.id).completed for course in get_all_courses(db))
        certificates = len(get_engine(context).completion.certificates.get_certificates(db, user.id))
        text = i18n.t(
            "profile.info",
            language,
            name=name or i18n.t("profile.not_set", language),
            username=f"@{user.username}" if user.username else i18n.t("profile.not_set", language),
            language_name=LANGUAGE_NAMES.get(language, language),
            lessons=lessons,
            certificates=certificates
        )
    await update.effective_message.reply_text(text, reply_markup=get_profile_keyboard(i18n, language))


def _results_text(db, user, i18n: I18nService) -> str:
    language = user.language
    scores = get_user_quiz_scores(db, user.id)
    if not scores:
        return i18n.t("quizzes.no_results", language)

    lines = [i18n.t("quizzes.results_title", language)]
    for quiz, score in scores:
        title = localized(quiz.course.title, language)
        if quiz.lesson is not None:
            title += f" / {localized(quiz.lesson.title, language)}"
        lines.append(i18n.t("quizzes.result_item", language, title=title, score=score.score,
                            total=score.total, percentage=score.percentage))
    return shorten("\n".join(lines))


def _certificates_text(db, user, engine: QuizEngine, i18n: I18nService) -> str:
    language = user.language
    certificates = engine.completion.certificates.get_certificates(db, user.id)
    if not certificates:
        return i18n.t("certificates.no_certificates", language)

    lines = [i18n.t("certificates.list", language)]
    for certificate in certificates:
        lines.append(i18n.t(
            "certificates.item",
            language,
            course=localized(certificate.course.title, language),
            date=certificate.issued_at.strftime("%d.%m.%Y"),
            artifact=certificate.artifact
        ))
    return shorten("\n\n".join(lines))


async def show_results(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Обрабатывает команду /results: последние результаты по каждому тесту."""
    with open_db(context) as db:
        user = ensure_user(db, update.effective_user)
        text = _results_text(db, user, get_i18n(context))
    await update.effective_message.reply_text(text)


async def show_certificates(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Обрабатывает команду /certificates."""
    with open_db(context) as db:
        user = ensure_user(db, update.effective_user)
        text = _certificates_text(db, user, get_engine(context), get_i18n(context))
    await update.effective_message.reply_text(text)


async def show_payments(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Обрабатывает команду /payments: история платежей пользователя."""
    i18n = get_i18n(context)
    with open_db(context) as db:
        user = ensure_user(db, update.effective_user)
        language = user.language
        payments = get_payment_history(db, user.id)
        if not payments:
            text = i18n.t("payment.no_payments", language)
        else:
            lines = [i18n.t("payment.history", language)]
            for index, payment in enumerate(payments, start=1):
                lines.append(i18n.t(
                    "payment.history_item",
                    language,
                    index=index,
                    course=localized(payment.course.title, language),
                    amount=payment.amount,
                    status=i18n.t(f"payment.status_{payment.status}", language),
                    date=payment.created_at.strftime("%d.%m.%Y") if payment.created_at else ""
                ))
            text = shorten("\n".join(lines))
    await update.effective_message.reply_text(text)


async def confirm_payment(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Обрабатывает команду /verify <transaction_id>: подтверждение оплаты администратором."""
    i18n = get_i18n(context)
    with open_db(context) as db:
        language = ensure_user(db, update.effective_user).language
        if str(update.effective_user.id) not in ADMIN_IDS:
            await update.effective_message.reply_text(i18n.t("errors.access_denied", language))
            return

        transaction_id = " ".join(context.args or []).strip()
        if not transaction_id:
            await update.effective_message.reply_text(i18n.t("errors.invalid_input", language))
            return

        try:
            payment = verify_payment(db, transaction_id)
        except PersistenceFailure as e:
            logger.error(f"Не удалось подтвердить платеж {transaction_id}: {e}")
            await update.effective_message.reply_text(i18n.t(e.message_key, language))
            return
        if payment is None:
            await update.effective_message.reply_text(i18n.t("errors.payment_not_found", language))
            return

        logger.info(f"Администратор {update.effective_user.id} подтвердил платеж {transaction_id}")
        payer = payment.user
        try:
            await send_notification(
                context.bot, db, payer.telegram_id,
                i18n.t("payment.verified", payer.language, course=localized(payment.course.title, payer.language))
            )
        except TelegramError as e:
            logger.warning(f"Не удалось уведомить пользователя {payer.telegram_id} об оплате: {e}")

    await update.effective_message.reply_text(
        i18n.t("payment.admin_verified", language, transaction=transaction_id)
    )


async def send_broadcast(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Обрабатывает команду /broadcast <текст> (только для администраторов)."""
    i18n = get_i18n(context)
    with open_db(context) as db:
        language = ensure_user(db, update.effective_user).language
        if str(update.effective_user.id) not in ADMIN_IDS:
            await update.effective_message.reply_text(i18n.t("errors.access_denied", language))
            return

        text = " ".join(context.args or []).strip()
        if not text:
            await update.effective_message.reply_text(i18n.t("errors.invalid_input", language))
            return

        report = await broadcast(context.bot, db, text)

    await update.effective_message.reply_text(
        i18n.t("notification.sent", language, sent=len(report.sent), failed=len(report.failed))
    )


async def handle_message(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Обрабатывает текстовые сообщения (кнопки главного меню)."""
    i18n = get_i18n(context)
    message_text = (update.message.text or "").strip().lower()

    # Обработка команд запуска
    if message_text in [cmd.lower() for cmd in START_COMMANDS]:
        await start(update, context)
        return

    # Кнопки меню сравниваются на всех языках
    menu = {}
    for language in i18n.supported_languages:
        menu[i18n.t("menu.courses", language).lower()] = show_courses
        menu[i18n.t("menu.progress", language).lower()] = show_progress
        menu[i18n.t("menu.language", language).lower()] = choose_language
        menu[i18n.t("menu.results", language).lower()] = show_results
        menu[i18n.t("menu.certificates", language).lower()] = show_certificates
        menu[i18n.t("menu.profile", language).lower()] = show_profile
        menu[i18n.t("menu.help", language).lower()] = show_help

    action = menu.get(message_text)
    if action is not None:
        await action(update, context)
        return

    with open_db(context) as db:
        language = ensure_user(db, update.effective_user).language
    await update.message.reply_text(
        i18n.t("errors.invalid_command", language),
        reply_markup=get_main_menu_keyboard(i18n, language)
    )


# Обработчики инлайн-кнопок

async def _send_courses(message, db, user, i18n: I18nService) -> None:
    language = user.language
    courses = get_all_courses(db)
    if not courses:
        await message.reply_text(i18n.t("courses.no_courses", language))
        return
    await message.reply_text(
        i18n.t("courses.list", language),
        reply_markup=get_courses_keyboard(courses, language)
    )


async def _send_question(message, engine: QuizEngine, user, view: QuestionView, i18n: I18nService) -> None:
    sent = await message.reply_text(
        render_question(view, i18n, user.language),
        parse_mode=MARKDOWN,
        reply_markup=get_question_options_keyboard(view, user.language)
    )
    engine.set_message_handle(user.id, view.quiz_id, sent.message_id)


async def on_list_courses(query, context, db, user) -> Optional[str]:
    await _send_courses(query.message, db, user, get_i18n(context))
    return None


async def on_list_lessons(query, context, db, user, course_id: int) -> Optional[str]:
    i18n = get_i18n(context)
    language = user.language
    course = get_course(db, course_id)
    if course is None:
        raise NotFound("course", course_id)
    if not can_access_course(db, user.id, course_id):
        # Платный курс без подтвержденной оплаты: предлагаем оплатить
        await query.message.reply_text(
            i18n.t("errors.course_access_denied", language),
            reply_markup=get_payment_keyboard(course, i18n, language)
        )
        return None

    lessons = lesson_access_map(db, user.id, course_id)
    if not lessons:
        await query.message.reply_text(i18n.t("lessons.no_lessons", language))
        return None

    # Общие тесты курса, еще не сданные пользователем
    course_quizzes = []
    if can_access_quiz(db, user.id, course_id, None):
        course_quizzes = [
            quiz for quiz in get_quizzes_by_course(db, course_id)
            if quiz.lesson_id is None and quiz.questions and not quiz_passed(db, user.id, quiz)
        ]

    description = localized(course.description, language) if course.description else ""
    text = f"*{md(localized(course.title, language))}*"
    if description:
        text += f"\n\n{md(shorten(description, MAX_MESSAGE_LENGTH // 2))}"
    text += f"\n\n{md(i18n.t('lessons.list', language))}"
    await query.message.reply_text(
        text,
        parse_mode=MARKDOWN,
        reply_markup=get_lessons_keyboard(course_id, lessons, i18n, language, course_quizzes=course_quizzes)
    )
    return None


async def on_lesson_locked(query, context, db, user) -> Optional[str]:
    raise AccessDenied("Урок еще не открыт", "errors.lesson_locked")


async def on_lesson(query, context, db, user, lesson_id: int) -> Optional[str]:
    i18n = get_i18n(context)
    language = user.language
    lesson = get_lesson(db, lesson_id)
    if lesson is None:
        raise NotFound("lesson", lesson_id)
    if not can_access_lesson(db, user.id, lesson_id):
        raise AccessDenied(f"Урок {lesson_id} еще не открыт", "errors.lesson_locked")

    text = f"*{md(localized(lesson.title, language))}*"
    if lesson.content_url:
        text += f"\n\n{md(i18n.t('lessons.url', language, url=lesson.content_url))}"
    quizzes = get_quizzes_by_lesson(db, lesson_id)
    passed = any(quiz_passed(db, user.id, quiz) for quiz in quizzes if quiz.questions)
    await query.message.reply_text(
        text,
        parse_mode=MARKDOWN,
        reply_markup=get_lesson_keyboard(lesson, quizzes, i18n, language, quiz_passed=passed)
    )
    return None


async def on_complete_lesson(query, context, db, user, lesson_id: int) -> Optional[str]:
    """Урок без теста отмечается завершенным по кнопке, урок с тестом засчитывается по тесту."""
    i18n = get_i18n(context)
    language = user.language
    lesson = get_lesson(db, lesson_id)
    if lesson is None:
        raise NotFound("lesson", lesson_id)
    if not can_access_lesson(db, user.id, lesson_id):
        raise AccessDenied(f"Урок {lesson_id} еще не открыт", "errors.lesson_locked")
    if any(quiz.questions for quiz in get_quizzes_by_lesson(db, lesson_id)):
        raise InvalidInput(f"Урок {lesson_id} завершается через тест", "errors.quiz_required")

    record_completion(db, user.id, lesson_id)
    await query.message.reply_text(
        i18n.t("lessons.completed", language, title=localized(lesson.title, language)),
        reply_markup=get_continue_keyboard(lesson.course_id, get_next_lesson(db, lesson_id), i18n, language)
    )

    # Последний шаг курса: подводим итог
    outcome = get_engine(context).completion.on_lesson_completed(db, user.id, lesson_id)
    if outcome is not None:
        await _send_course_outcome(query.message, outcome, i18n, language)
    return None


async def on_start_quiz(query, context, db, user, quiz_id: int) -> Optional[str]:
    engine = get_engine(context)
    view = engine.start(db, user.id, quiz_id)
    await _send_question(query.message, engine, user, view, get_i18n(context))
    return None


async def on_start_lesson_quiz(query, context, db, user, lesson_id: int, course_id: int) -> Optional[str]:
    lesson = get_lesson(db, lesson_id)
    if lesson is None or lesson.course_id != course_id:
        raise NotFound("lesson", lesson_id)
    quizzes = [quiz for quiz in get_quizzes_by_lesson(db, lesson_id) if quiz.questions]
    if not quizzes:
        raise NotFound("quiz", f"lesson:{lesson_id}")
    return await on_start_quiz(query, context, db, user, quizzes[0].id)


async def on_submit(query, context, db, user, quiz_id: int, question_index: int, option: int) -> Optional[str]:
    i18n = get_i18n(context)
    language = user.language
    feedback = get_engine(context).submit(db, user.id, quiz_id, question_index, option, language)

    await query.edit_message_text(
        render_feedback(feedback, i18n, language),
        parse_mode=MARKDOWN,
        reply_markup=get_feedback_keyboard(feedback, i18n, language)
    )
    if feedback.finished:
        await query.message.reply_text(
            render_quiz_result(feedback.outcome, i18n, language),
            parse_mode=MARKDOWN,
            reply_markup=get_quiz_result_keyboard(feedback, i18n, language)
        )
    return i18n.t("quizzes.correct" if feedback.is_correct else "quizzes.wrong", language)


async def on_next_question(query, context, db, user, quiz_id: int, question_index: int) -> Optional[str]:
    view = get_engine(context).next(db, user.id, quiz_id, question_index)
    await query.edit_message_text(
        render_question(view, get_i18n(context), user.language),
        parse_mode=MARKDOWN,
        reply_markup=get_question_options_keyboard(view, user.language)
    )
    return None


async def on_restart_course(query, context, db, user, course_id: int) -> Optional[str]:
    engine = get_engine(context)
    view = engine.restart(db, user.id, course_id)
    await _send_question(query.message, engine, user, view, get_i18n(context))
    return None


async def on_course_progress(query, context, db, user, course_id: int) -> Optional[str]:
    i18n = get_i18n(context)
    language = user.language
    course = get_course(db, course_id)
    if course is None:
        raise NotFound("course", course_id)

    progress = get_progress(db, user.id, course_id)
    score = course_score(db, user.id, course_id)
    finished = is_course_finished(db, user.id, course_id)

    text = (
        f"*{md(localized(course.title, language))}*\n\n"
        f"{md(i18n.t('progress.lessons', language, completed=progress.completed, total=progress.total))}\n"
        f"{md(get_progress_bar(progress.percentage))}\n"
        f"{md(i18n.t('progress.score', language, percentage=score.percentage))}"
    )
    await query.message.reply_text(
        text,
        parse_mode=MARKDOWN,
        reply_markup=get_progress_keyboard(course_id, i18n, language, finished=finished)
    )
    return None


async def on_certificate(query, context, db, user, course_id: int) -> Optional[str]:
    """Повторная проверка завершения курса: выдает сертификат или предлагает перезапуск."""
    if not can_access_course(db, user.id, course_id):
        raise AccessDenied(f"Курс {course_id} не оплачен", "errors.course_access_denied")

    outcome = get_engine(context).completion.on_course_quizzes_exhausted(db, user.id, course_id)
    await _send_course_outcome(query.message, outcome, get_i18n(context), user.language)
    return None


async def _send_course_outcome(message, outcome: CompletionOutcome, i18n: I18nService, language: str) -> None:
    await message.reply_text(
        render_course_outcome(outcome, i18n, language),
        parse_mode=MARKDOWN,
        reply_markup=get_progress_keyboard(outcome.course_id, i18n, language, restart=outcome.restart_offered)
    )


async def on_results(query, context, db, user) -> Optional[str]:
    await query.message.reply_text(_results_text(db, user, get_i18n(context)))
    return None


async def on_certificates(query, context, db, user) -> Optional[str]:
    await query.message.reply_text(_certificates_text(db, user, get_engine(context), get_i18n(context)))
    return None


# Оплата курса (только учет платежей, подтверждение делает администратор)

def _paid_course(db, course_id: int):
    course = get_course(db, course_id)
    if course is None:
        raise NotFound("course", course_id)
    if not course.is_paid:
        raise InvalidInput(f"Курс {course_id} бесплатный", "errors.course_is_free")
    return course


async def on_pay_course(query, context, db, user, course_id: int) -> Optional[str]:
    i18n = get_i18n(context)
    language = user.language
    course = _paid_course(db, course_id)
    await query.message.reply_text(
        i18n.t("payment.choose_method", language, course=localized(course.title, language), amount=course.price),
        reply_markup=get_payment_methods_keyboard(course_id, i18n, language)
    )
    return None


async def on_pay_method(query, context, db, user, method: str, course_id: int) -> Optional[str]:
    """Создает платеж выбранным способом или показывает уже ожидающий."""
    i18n = get_i18n(context)
    language = user.language
    course = _paid_course(db, course_id)
    if can_access_course(db, user.id, course_id):
        await query.message.reply_text(
            i18n.t("payment.verified", language, course=localized(course.title, language)),
            reply_markup=get_continue_keyboard(course_id, None, i18n, language)
        )
        return None

    payment = get_pending_payment(db, user.id, course_id)
    if payment is None:
        payment = initiate_payment(db, user, course, method)
        logger.info(f"Пользователь {user.telegram_id} начал оплату курса {course_id}: {payment.transaction_id}")

    await query.message.reply_text(
        i18n.t("payment.initiated", language, transaction=payment.transaction_id, amount=payment.amount),
        reply_markup=get_check_payment_keyboard(payment, i18n, language)
    )
    return None


async def on_check_payment(query, context, db, user, payment_id: int) -> Optional[str]:
    i18n = get_i18n(context)
    language = user.language
    payment = get_payment(db, payment_id)
    if payment is None or payment.user_id != user.id:
        raise NotFound("payment", payment_id)

    if payment.status != "completed":
        await query.message.reply_text(
            i18n.t("payment.pending", language, transaction=payment.transaction_id),
            reply_markup=get_check_payment_keyboard(payment, i18n, language)
        )
        return None

    await query.message.reply_text(
        i18n.t("payment.verified", language, course=localized(payment.course.title, language)),
        reply_markup=get_continue_keyboard(payment.course_id, None, i18n, language)
    )
    return None


async def on_language(query, context, db, user, language: str) -> Optional[str]:
    i18n = get_i18n(context)
    set_user_language(db, user, language)
    await query.message.reply_text(
        i18n.t("menu.language_changed", language),
        reply_markup=get_main_menu_keyboard(i18n, language)
    )
    return None


CALLBACK_HANDLERS = {
    "list_courses": on_list_courses,
    "list_lessons": on_list_lessons,
    "lesson_locked": on_lesson_locked,
    "lesson": on_lesson,
    "complete_lesson": on_complete_lesson,
    "start_quiz": on_start_quiz,
    "start_quiz_lesson": on_start_lesson_quiz,
    "submit_quiz": on_submit,
    "next_question": on_next_question,
    "restart_quiz_course": on_restart_course,
    "progress": on_course_progress,
    "certificate": on_certificate,
    "lang": on_language,
    "pay_course": on_pay_course,
    "pay_method": on_pay_method,
    "check_payment": on_check_payment,
    "results": on_results,
    "certificates": on_certificates,
}


async def handle_callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Обрабатывает нажатия на инлайн-кнопки."""
    query = update.callback_query
    i18n = get_i18n(context)

    with open_db(context) as db:
        user = ensure_user(db, query.from_user)
        language = user.language
        try:
            callback = parse_callback(query.data)
            notice = await CALLBACK_HANDLERS[callback.action](query, context, db, user, *callback.args)
        except InvalidSessionState as e:
            # Устаревшая или повторная кнопка: сообщаем и ничего не меняем
            logger.warning(f"Кнопка {query.data} пользователя {user.telegram_id} отклонена: {e}")
            await query.answer(i18n.t(e.message_key, language))
            return
        except PersistenceFailure as e:
            logger.error(f"Ошибка сохранения для пользователя {user.telegram_id} ({query.data}): {e}")
            await query.answer()
            await query.message.reply_text(i18n.t(e.message_key, language))
            return
        except LearningError as e:
            logger.warning(f"Кнопка {query.data} пользователя {user.telegram_id}: {e}")
            await query.answer()
            await query.message.reply_text(i18n.t(e.message_key, language))
            return

    await query.answer(notice)
