"""
Пошаговое прохождение теста: старт, ответ, следующий вопрос и перезапуск.

Каждое событие от кнопок Telegram сверяется с текущей сессией по паре
(quiz_id, номер вопроса). Устаревшие и повторные нажатия отклоняются
без изменения сессии и без записи результата.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from learnbot.config import DEFAULT_LANGUAGE
from learnbot.database.models import Question, Quiz
from learnbot.database.operations import get_user, get_course, get_quiz, get_quizzes_by_course
from learnbot.errors import NotFound, InvalidSessionState, AccessDenied
from learnbot.learning.access import can_access_course, can_access_quiz
from learnbot.learning.completion import CompletionTrigger, QuizOutcome
from learnbot.learning.scoring import clear_course_results, quiz_passed, record_answer, score_attempt, validate_answer
from learnbot.learning.sessions import QuizSession, SessionStore, InMemorySessionStore

logger = logging.getLogger(__name__)


@dataclass
class QuestionView:
    """Вопрос, который нужно показать пользователю."""
    quiz_id: int
    course_id: int
    lesson_id: Optional[int]
    question_index: int
    total: int
    question: Question


@dataclass
class AnswerFeedback:
    """Результат ответа на вопрос."""
    quiz_id: int
    course_id: int
    lesson_id: Optional[int]
    question_index: int
    selected: int
    is_correct: bool
    question: Question
    total: int
    outcome: Optional[QuizOutcome] = None

    @property
    def has_next(self) -> bool:
        return self.question_index + 1 < self.total

    @property
    def finished(self) -> bool:
        return self.outcome is not None


class QuizEngine:
    """Машина состояний сессий тестов, по одной сессии на пользователя."""

    def __init__(self, completion: CompletionTrigger, store: Optional[SessionStore] = None):
        self.completion = completion
        self.store = store or InMemorySessionStore()

    def get_session(self, user_id: int) -> Optional[QuizSession]:
        return self.store.get(user_id)

    def _load_quiz(self, db: Session, quiz_id: int) -> Quiz:
        quiz = get_quiz(db, quiz_id)
        if quiz is None or not quiz.questions:
            raise NotFound("quiz", quiz_id)
        return quiz

    @staticmethod
    def _view(quiz: Quiz, index: int) -> QuestionView:
        return QuestionView(
            quiz_id=quiz.id,
            course_id=quiz.course_id,
            lesson_id=quiz.lesson_id,
            question_index=index,
            total=len(quiz.questions),
            question=quiz.questions[index]
        )

    def _check_session(self, user_id: int, quiz_id: int, question_index: int) -> QuizSession:
        session = self.store.get(user_id)
        if session is None or session.quiz_id != quiz_id or session.current_question_index != question_index:
            logger.warning(
                f"Отклонено устаревшее событие пользователя {user_id}: тест {quiz_id}, вопрос {question_index}, "
                f"сессия {session.quiz_id if session else None}/"
                f"{session.current_question_index if session else None}"
            )
            raise InvalidSessionState(f"Нет активного вопроса {question_index} теста {quiz_id}")
        return session

    def start(self, db: Session, user_id: int, quiz_id: int) -> QuestionView:
        """
        Начинает тест, заменяя любую незавершенную сессию пользователя.

        Уже сданный тест повторно не начинается, пересдать его можно только
        через перезапуск тестов курса.
        """
        if get_user(db, user_id) is None:
            raise NotFound("user", user_id)
        quiz = self._load_quiz(db, quiz_id)
        if not can_access_quiz(db, user_id, quiz.course_id, quiz.lesson_id):
            raise AccessDenied(f"Тест {quiz_id} недоступен пользователю {user_id}")
        if quiz_passed(db, user_id, quiz):
            raise InvalidSessionState(f"Тест {quiz_id} уже сдан пользователем {user_id}", "errors.quiz_already_passed")

        with self.store.lock(user_id):
            previous = self.store.get(user_id)
            if previous is not None:
                logger.info(f"Пользователь {user_id} бросил тест {previous.quiz_id}")
            self.store.put(user_id, QuizSession(
                quiz_id=quiz.id,
                course_id=quiz.course_id,
                lesson_id=quiz.lesson_id
            ))

        logger.info(f"Пользователь {user_id} начал тест {quiz.id}")
        return self._view(quiz, 0)

    def submit(self, db: Session, user_id: int, quiz_id: int, question_index: int, selected: int,
               language: str = DEFAULT_LANGUAGE) -> AnswerFeedback:
        """
        Принимает ответ на текущий вопрос.

        Сессия меняется только после успешной записи результата.

        Raises:
            InvalidSessionState: нет сессии или событие устарело
            InvalidInput: неверный номер варианта
            PersistenceFailure: ошибка записи, сессия не изменена
        """
        with self.store.lock(user_id):
            session = self._check_session(user_id, quiz_id, question_index)
            quiz = self._load_quiz(db, quiz_id)
            question = validate_answer(quiz, question_index, selected)

            result = record_answer(db, user_id, quiz, question_index, selected)

            while len(session.answers) <= question_index:
                session.answers.append(None)
            session.answers[question_index] = selected
            session.current_question_index = question_index + 1

            feedback = AnswerFeedback(
                quiz_id=quiz.id,
                course_id=quiz.course_id,
                lesson_id=quiz.lesson_id,
                question_index=question_index,
                selected=selected,
                is_correct=result.is_correct,
                question=question,
                total=len(quiz.questions)
            )

            if session.current_question_index < len(quiz.questions):
                self.store.put(user_id, session)
                return feedback

            self.store.delete(user_id)

        score = score_attempt(quiz, session.answers, language)
        logger.info(f"Пользователь {user_id} завершил тест {quiz.id}: {score.score}/{score.total}")
        feedback.outcome = self.completion.on_quiz_finished(db, user_id, quiz, score)
        return feedback

    def next(self, db: Session, user_id: int, quiz_id: int, question_index: int) -> QuestionView:
        """Показывает текущий вопрос повторно, без записи ответа."""
        with self.store.lock(user_id):
            self._check_session(user_id, quiz_id, question_index)
            quiz = self._load_quiz(db, quiz_id)
            if question_index >= len(quiz.questions):
                raise InvalidSessionState(f"Тест {quiz_id} уже завершен")
            return self._view(quiz, question_index)

    def restart(self, db: Session, user_id: int, course_id: int) -> QuestionView:
        """Сбрасывает результаты тестов курса и начинает первый тест курса."""
        if get_user(db, user_id) is None:
            raise NotFound("user", user_id)
        if get_course(db, course_id) is None:
            raise NotFound("course", course_id)
        if not can_access_course(db, user_id, course_id):
            raise AccessDenied(f"Курс {course_id} недоступен пользователю {user_id}")

        quizzes = [quiz for quiz in get_quizzes_by_course(db, course_id) if quiz.questions]
        if not quizzes:
            raise NotFound("quiz", f"course:{course_id}")

        clear_course_results(db, user_id, course_id)
        logger.info(f"Пользователь {user_id} перезапустил тесты курса {course_id}")
        return self.start(db, user_id, quizzes[0].id)

    def set_message_handle(self, user_id: int, quiz_id: int, message_id: int) -> None:
        """Запоминает последнее отправленное сообщение с вопросом."""
        with self.store.lock(user_id):
            session = self.store.get(user_id)
            if session is None or session.quiz_id != quiz_id:
                return
            session.last_message_id = message_id
            self.store.put(user_id, session)

    def abandon(self, user_id: int) -> None:
        with self.store.lock(user_id):
            self.store.delete(user_id)
