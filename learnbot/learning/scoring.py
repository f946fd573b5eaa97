"""
Проверка ответов, запись результатов тестов и подсчет баллов.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from learnbot.config import DEFAULT_LANGUAGE, PASS_THRESHOLD
from learnbot.database.models import Quiz, Question, QuizResult
from learnbot.database.operations import get_user, get_course, get_quiz, get_quizzes_by_course
from learnbot.errors import NotFound, InvalidInput, PersistenceFailure, AccessDenied
from learnbot.learning.access import can_access_quiz

logger = logging.getLogger(__name__)


@dataclass
class QuizScore:
    """Итог одной попытки прохождения теста."""
    score: int
    total: int
    explanations: List[str] = field(default_factory=list)

    @property
    def percentage(self) -> int:
        return score_percentage(self.score, self.total)

    @property
    def passed(self) -> bool:
        return is_passing(self.score, self.total)


@dataclass(frozen=True)
class CourseScore:
    """Сводный балл по всем вопросам тестов курса."""
    correct: int
    total: int

    @property
    def percentage(self) -> int:
        return score_percentage(self.correct, self.total)

    @property
    def passed(self) -> bool:
        return is_passing(self.correct, self.total)


def score_percentage(correct: int, total: int) -> int:
    """Процент правильных ответов, округленный до целого (0.5 вверх)."""
    if total <= 0:
        return 0
    return (200 * correct + total) // (2 * total)


def is_passing(correct: int, total: int) -> bool:
    return total > 0 and score_percentage(correct, total) >= PASS_THRESHOLD


def localized(value, language: str = DEFAULT_LANGUAGE):
    """Берет перевод из поля вида {"uz": ..., "ru": ..., "en": ...}."""
    if isinstance(value, dict):
        if language in value:
            return value[language]
        if DEFAULT_LANGUAGE in value:
            return value[DEFAULT_LANGUAGE]
        return next(iter(value.values()), None)
    return value


def question_options(question: Question, language: str = DEFAULT_LANGUAGE) -> List[str]:
    return list(localized(question.options, language) or [])


def is_correct(question: Question, selected: int) -> bool:
    return selected == question.correct


def explain(question: Question, language: str = DEFAULT_LANGUAGE) -> str:
    """Пояснение к неправильному ответу: вопрос, верный вариант и объяснение."""
    options = question_options(question, language)
    correct = options[question.correct] if 0 <= question.correct < len(options) else ""
    text = f"{localized(question.text, language)}: {correct}"
    explanation = localized(question.explanation, language) if question.explanation else None
    if explanation:
        text += f"\n{explanation}"
    return text


def validate_answer(quiz: Quiz, question_index: int, selected: int) -> Question:
    """Проверяет номер вопроса и номер варианта до любых изменений."""
    if not 0 <= question_index < len(quiz.questions):
        raise InvalidInput(f"Вопрос {question_index} вне диапазона теста {quiz.id}")
    question = quiz.questions[question_index]
    if not 0 <= selected < len(question_options(question)):
        raise InvalidInput(f"Вариант {selected} вне диапазона вопроса {question_index}")
    return question


def record_answer(db: Session, user_id: int, quiz: Quiz, question_index: int, selected: int) -> QuizResult:
    """
    Сохраняет ответ на один вопрос теста.

    Raises:
        InvalidInput: неверный номер вопроса или варианта
        PersistenceFailure: ошибка записи, транзакция откатывается
    """
    question = validate_answer(quiz, question_index, selected)
    result = QuizResult(
        user_id=user_id,
        quiz_id=quiz.id,
        question_index=question_index,
        selected_answer=selected,
        is_correct=is_correct(question, selected)
    )
    db.add(result)
    try:
        db.commit()
    except SQLAlchemyError as e:
        logger.error(f"Ошибка при сохранении ответа пользователя {user_id}, тест {quiz.id}: {e}")
        db.rollback()
        raise PersistenceFailure(f"Не удалось сохранить ответ на вопрос {question_index}") from e

    db.refresh(result)
    logger.info(
        f"Ответ пользователя {user_id} на вопрос {question_index} теста {quiz.id}: "
        f"{selected} ({'верно' if result.is_correct else 'неверно'})"
    )
    return result


def score_attempt(quiz: Quiz, answers: Sequence[Optional[int]], language: str = DEFAULT_LANGUAGE) -> QuizScore:
    """Считает баллы по списку ответов без записи в базу. Вопрос без ответа считается неверным."""
    answers = list(answers) + [None] * (len(quiz.questions) - len(answers))
    score = 0
    explanations = []
    for question, selected in zip(quiz.questions, answers):
        if selected is not None and is_correct(question, selected):
            score += 1
        else:
            explanations.append(explain(question, language))
    return QuizScore(score=score, total=len(quiz.questions), explanations=explanations)


def submit_quiz(db: Session, user_id: int, quiz_id: int, answers: Sequence[int],
                language: str = DEFAULT_LANGUAGE) -> QuizScore:
    """
    Принимает все ответы теста сразу (неинтерактивная отправка).

    Все ответы проверяются до записи, результаты сохраняются одной транзакцией.
    """
    if get_user(db, user_id) is None:
        raise NotFound("user", user_id)
    quiz = get_quiz(db, quiz_id)
    if quiz is None:
        raise NotFound("quiz", quiz_id)
    if not can_access_quiz(db, user_id, quiz.course_id, quiz.lesson_id):
        raise AccessDenied(f"Тест {quiz_id} недоступен пользователю {user_id}")
    if len(answers) > len(quiz.questions):
        raise InvalidInput(f"Ответов больше, чем вопросов в тесте {quiz_id}")

    for index, selected in enumerate(answers):
        validate_answer(quiz, index, selected)

    for index, selected in enumerate(answers):
        db.add(QuizResult(
            user_id=user_id,
            quiz_id=quiz.id,
            question_index=index,
            selected_answer=selected,
            is_correct=is_correct(quiz.questions[index], selected)
        ))
    try:
        db.commit()
    except SQLAlchemyError as e:
        logger.error(f"Ошибка при сохранении результатов теста {quiz_id} пользователя {user_id}: {e}")
        db.rollback()
        raise PersistenceFailure(f"Не удалось сохранить результаты теста {quiz_id}") from e

    result = score_attempt(quiz, answers, language)
    logger.info(f"Пользователь {user_id} отправил тест {quiz_id}: {result.score}/{result.total}")
    return result


def get_results(db: Session, user_id: int, course_id: int) -> List[QuizResult]:
    """Все результаты пользователя по тестам курса."""
    return (
        db.query(QuizResult)
        .join(Quiz, QuizResult.quiz_id == Quiz.id)
        .filter(QuizResult.user_id == user_id, Quiz.course_id == course_id)
        .order_by(QuizResult.id)
        .all()
    )


def clear_course_results(db: Session, user_id: int, course_id: int) -> int:
    """Удаляет результаты пользователя по всем тестам курса."""
    quiz_ids = [quiz.id for quiz in get_quizzes_by_course(db, course_id)]
    if not quiz_ids:
        return 0
    try:
        deleted = (
            db.query(QuizResult)
            .filter(QuizResult.user_id == user_id, QuizResult.quiz_id.in_(quiz_ids))
            .delete(synchronize_session=False)
        )
        db.commit()
    except SQLAlchemyError as e:
        logger.error(f"Ошибка при сбросе результатов пользователя {user_id} по курсу {course_id}: {e}")
        db.rollback()
        raise PersistenceFailure(f"Не удалось сбросить результаты курса {course_id}") from e

    db.expire_all()
    logger.info(f"Сброшено {deleted} результатов пользователя {user_id} по курсу {course_id}")
    return deleted


def get_unanswered_quizzes(db: Session, user_id: int, course_id: int) -> List[Quiz]:
    """Тесты курса с вопросами, по которым у пользователя еще нет результатов."""
    answered = {result.quiz_id for result in get_results(db, user_id, course_id)}
    return [
        quiz for quiz in get_quizzes_by_course(db, course_id)
        if quiz.questions and quiz.id not in answered
    ]


def course_score(db: Session, user_id: int, course_id: int) -> CourseScore:
    """
    Сводный балл по курсу: правильные ответы / все вопросы тестов курса.

    Для каждого вопроса учитывается только последний ответ, поэтому
    повторное прохождение теста не завышает результат.
    """
    if get_user(db, user_id) is None:
        raise NotFound("user", user_id)
    if get_course(db, course_id) is None:
        raise NotFound("course", course_id)

    total = sum(len(quiz.questions) for quiz in get_quizzes_by_course(db, course_id))
    latest: Dict[Tuple[int, int], bool] = {}
    for result in get_results(db, user_id, course_id):
        latest[(result.quiz_id, result.question_index)] = result.is_correct
    correct = sum(1 for value in latest.values() if value)
    return CourseScore(correct=min(correct, total), total=total)


def _latest_answers(db: Session, user_id: int, quiz_id: int) -> Dict[int, bool]:
    """Последний ответ на каждый вопрос теста: номер вопроса -> верно ли."""
    latest: Dict[int, bool] = {}
    results = (
        db.query(QuizResult)
        .filter(QuizResult.user_id == user_id, QuizResult.quiz_id == quiz_id)
        .order_by(QuizResult.id)
    )
    for result in results:
        latest[result.question_index] = result.is_correct
    return latest


def latest_quiz_score(db: Session, user_id: int, quiz: Quiz) -> Optional[QuizScore]:
    """Балл по последним ответам пользователя на вопросы теста, None если ответов нет."""
    latest = _latest_answers(db, user_id, quiz.id)
    if not latest:
        return None
    correct = sum(1 for value in latest.values() if value)
    return QuizScore(score=min(correct, len(quiz.questions)), total=len(quiz.questions))


def quiz_passed(db: Session, user_id: int, quiz: Quiz) -> bool:
    """Тест пройден целиком и не ниже проходного балла."""
    latest = _latest_answers(db, user_id, quiz.id)
    if len(latest) < len(quiz.questions):
        return False
    return is_passing(sum(1 for value in latest.values() if value), len(quiz.questions))


def get_user_quiz_scores(db: Session, user_id: int) -> List[Tuple[Quiz, QuizScore]]:
    """Баллы пользователя по всем тестам, на которые есть ответы."""
    quiz_ids = [
        row[0] for row in
        db.query(QuizResult.quiz_id).filter(QuizResult.user_id == user_id).distinct().order_by(QuizResult.quiz_id)
    ]
    scores = []
    for quiz_id in quiz_ids:
        quiz = get_quiz(db, quiz_id)
        if quiz is not None and quiz.questions:
            scores.append((quiz, latest_quiz_score(db, user_id, quiz)))
    return scores
