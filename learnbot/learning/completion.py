"""
Завершение тестов и курса: прогресс по урокам и выдача сертификата.

Курс считается пройденным, когда завершены все его уроки, на все тесты
есть ответы и общий результат не ниже 60%.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from learnbot.database.models import Certificate, Lesson, Quiz
from learnbot.database.operations import get_lesson
from learnbot.errors import InvalidSessionState, NotFound
from learnbot.learning.certificates import CertificateService
from learnbot.learning.progress import record_completion, get_next_lesson, get_progress
from learnbot.learning.scoring import CourseScore, QuizScore, course_score, get_unanswered_quizzes

logger = logging.getLogger(__name__)


@dataclass
class CompletionOutcome:
    """Итог курса после завершения всех уроков и тестов."""
    course_id: int
    score: CourseScore
    certificate: Optional[Certificate] = None

    @property
    def passed(self) -> bool:
        # Курс без тестов засчитывается по урокам
        return self.score.total == 0 or self.score.passed

    @property
    def restart_offered(self) -> bool:
        return not self.passed


@dataclass
class QuizOutcome:
    """Что делать после завершения одного теста."""
    quiz_id: int
    course_id: int
    lesson_id: Optional[int]
    score: QuizScore
    next_lesson: Optional[Lesson] = None
    next_quiz: Optional[Quiz] = None
    course: Optional[CompletionOutcome] = None

    @property
    def passed(self) -> bool:
        return self.score.passed

    @property
    def retry_lesson_id(self) -> Optional[int]:
        return self.lesson_id if self.lesson_id is not None and not self.passed else None

    @property
    def retry_quiz_id(self) -> Optional[int]:
        """Общий тест курса пересдается отдельно от уроков."""
        return self.quiz_id if self.lesson_id is None and not self.passed and self.course is None else None


def is_course_finished(db: Session, user_id: int, course_id: int) -> bool:
    """Все уроки курса завершены и на все тесты курса есть ответы."""
    if not get_progress(db, user_id, course_id).is_complete:
        return False
    return not get_unanswered_quizzes(db, user_id, course_id)


class CompletionTrigger:
    """Решает, выдавать ли сертификат, и двигает прогресс по урокам."""

    def __init__(self, certificates: CertificateService):
        self.certificates = certificates

    def on_course_quizzes_exhausted(self, db: Session, user_id: int, course_id: int) -> CompletionOutcome:
        """
        Подводит итог курса, когда все уроки завершены и на все тесты есть ответы.

        При результате от 60% выдается сертификат (повторный вызов вернет
        тот же сертификат), иначе предлагается пройти тесты курса заново.

        Raises:
            NotFound: пользователь или курс не найден
            InvalidSessionState: в курсе остались незавершенные уроки или тесты без ответов
        """
        score = course_score(db, user_id, course_id)
        progress = get_progress(db, user_id, course_id)
        if not progress.is_complete:
            raise InvalidSessionState(
                f"В курсе {course_id} завершено уроков: {progress.completed}/{progress.total}",
                "errors.course_not_completed"
            )
        unanswered = get_unanswered_quizzes(db, user_id, course_id)
        if unanswered:
            raise InvalidSessionState(
                f"В курсе {course_id} осталось тестов без ответов: {len(unanswered)}",
                "errors.course_not_completed"
            )

        outcome = CompletionOutcome(course_id=course_id, score=score)
        if not outcome.passed:
            logger.info(
                f"Пользователь {user_id} не набрал проходной балл по курсу {course_id}: {score.percentage}%"
            )
            return outcome

        outcome.certificate = self.certificates.issue_or_get_existing(db, user_id, course_id)
        logger.info(f"Пользователь {user_id} завершил курс {course_id} с результатом {score.percentage}%")
        return outcome

    def on_quiz_finished(self, db: Session, user_id: int, quiz: Quiz, score: QuizScore) -> QuizOutcome:
        """Обрабатывает завершение теста: урок засчитывается при результате от 60%."""
        outcome = QuizOutcome(quiz_id=quiz.id, course_id=quiz.course_id, lesson_id=quiz.lesson_id, score=score)

        if quiz.lesson_id is not None and score.passed:
            record_completion(db, user_id, quiz.lesson_id)
            outcome.next_lesson = get_next_lesson(db, quiz.lesson_id)

        if is_course_finished(db, user_id, quiz.course_id):
            outcome.course = self.on_course_quizzes_exhausted(db, user_id, quiz.course_id)
        elif outcome.next_lesson is None and (score.passed or quiz.lesson_id is None):
            outcome.next_quiz = self._next_course_quiz(db, user_id, quiz)
        return outcome

    def on_lesson_completed(self, db: Session, user_id: int, lesson_id: int) -> Optional[CompletionOutcome]:
        """Урок без теста завершен: если это был последний шаг курса, подводится итог."""
        lesson = get_lesson(db, lesson_id)
        if lesson is None:
            raise NotFound("lesson", lesson_id)
        if not is_course_finished(db, user_id, lesson.course_id):
            return None
        return self.on_course_quizzes_exhausted(db, user_id, lesson.course_id)

    @staticmethod
    def _next_course_quiz(db: Session, user_id: int, quiz: Quiz) -> Optional[Quiz]:
        """Следующий общий тест курса без ответов."""
        for candidate in get_unanswered_quizzes(db, user_id, quiz.course_id):
            if candidate.lesson_id is None and candidate.id != quiz.id:
                return candidate
        return None
