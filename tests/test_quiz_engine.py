"""
Тесты пошагового прохождения тестов.
"""
import unittest
from unittest.mock import patch

from sqlalchemy.exc import SQLAlchemyError

from learnbot.database.models import Certificate, Progress, QuizResult
from learnbot.database.operations import create_quiz, get_quizzes_by_lesson
from learnbot.errors import AccessDenied, InvalidInput, InvalidSessionState, NotFound, PersistenceFailure
from learnbot.learning.access import can_access_lesson
from learnbot.learning.certificates import CertificateService
from learnbot.learning.completion import CompletionTrigger
from learnbot.learning.quiz_engine import QuizEngine
from learnbot.learning.sessions import InMemorySessionStore
from tests.fixtures import DatabaseTestCase, make_question, seed_course, seed_user


class QuizEngineTestCase(DatabaseTestCase):

    def setUp(self):
        super().setUp()
        self.user = seed_user(self.db)
        self.course, self.lessons = seed_course(self.db, lessons=2, questions_per_lesson=(1, 0))
        self.quiz = get_quizzes_by_lesson(self.db, self.lessons[0].id)[0]
        self.engine = QuizEngine(CompletionTrigger(CertificateService()), InMemorySessionStore())


class TestQuizFlow(QuizEngineTestCase):
    """Тесты переходов состояния сессии."""

    def test_start_returns_first_question(self):
        view = self.engine.start(self.db, self.user.id, self.quiz.id)

        self.assertEqual((view.quiz_id, view.question_index, view.total), (self.quiz.id, 0, 2))
        self.assertEqual(view.lesson_id, self.lessons[0].id)
        session = self.engine.get_session(self.user.id)
        self.assertEqual((session.quiz_id, session.current_question_index, session.answers), (self.quiz.id, 0, []))

    def test_start_overwrites_previous_session(self):
        self.engine.start(self.db, self.user.id, self.quiz.id)
        self.engine.submit(self.db, self.user.id, self.quiz.id, 0, 1)

        self.engine.start(self.db, self.user.id, self.quiz.id)
        session = self.engine.get_session(self.user.id)
        self.assertEqual((session.current_question_index, session.answers), (0, []))

    def test_start_locked_lesson_quiz(self):
        locked_quiz = get_quizzes_by_lesson(self.db, self.lessons[1].id)[0]
        with self.assertRaises(AccessDenied):
            self.engine.start(self.db, self.user.id, locked_quiz.id)
        self.assertIsNone(self.engine.get_session(self.user.id))

    def test_start_unknown_quiz_or_user(self):
        with self.assertRaises(NotFound):
            self.engine.start(self.db, self.user.id, 999)
        with self.assertRaises(NotFound):
            self.engine.start(self.db, 999, self.quiz.id)

    def test_submit_advances_session(self):
        self.engine.start(self.db, self.user.id, self.quiz.id)
        feedback = self.engine.submit(self.db, self.user.id, self.quiz.id, 0, 1)

        self.assertTrue(feedback.is_correct)
        self.assertTrue(feedback.has_next)
        self.assertFalse(feedback.finished)
        session = self.engine.get_session(self.user.id)
        self.assertEqual((session.current_question_index, session.answers), (1, [1]))
        self.assertEqual(self.db.query(QuizResult).count(), 1)

    def test_replayed_submission_is_rejected(self):
        """Повторное нажатие на уже отвеченный вопрос не записывает второй ответ."""
        self.engine.start(self.db, self.user.id, self.quiz.id)
        self.engine.submit(self.db, self.user.id, self.quiz.id, 0, 1)

        with self.assertRaises(InvalidSessionState):
            self.engine.submit(self.db, self.user.id, self.quiz.id, 0, 2)

        session = self.engine.get_session(self.user.id)
        self.assertEqual((session.current_question_index, session.answers), (1, [1]))
        self.assertEqual(self.db.query(QuizResult).count(), 1)

    def test_submit_for_other_quiz_is_rejected(self):
        other_quiz = create_quiz(self.db, course_id=self.course.id, questions=[make_question(0)])
        self.engine.start(self.db, self.user.id, self.quiz.id)

        with self.assertRaises(InvalidSessionState):
            self.engine.submit(self.db, self.user.id, other_quiz.id, 0, 0)
        with self.assertRaises(InvalidSessionState):
            self.engine.submit(self.db, self.user.id, self.quiz.id, 1, 0)
        self.assertEqual(self.db.query(QuizResult).count(), 0)

    def test_submit_without_session(self):
        with self.assertRaises(InvalidSessionState) as ctx:
            self.engine.submit(self.db, self.user.id, self.quiz.id, 0, 0)
        self.assertEqual(ctx.exception.message_key, "errors.invalid_quiz_state")

    def test_out_of_range_option_leaves_session_unchanged(self):
        self.engine.start(self.db, self.user.id, self.quiz.id)
        with self.assertRaises(InvalidInput):
            self.engine.submit(self.db, self.user.id, self.quiz.id, 0, 5)

        session = self.engine.get_session(self.user.id)
        self.assertEqual((session.current_question_index, session.answers), (0, []))
        self.assertEqual(self.db.query(QuizResult).count(), 0)

    def test_persistence_failure_leaves_session_unchanged(self):
        """Ошибка записи не двигает сессию, повторная отправка принимается один раз."""
        self.engine.start(self.db, self.user.id, self.quiz.id)

        with patch.object(self.db, "commit", side_effect=SQLAlchemyError("database is locked")):
            with self.assertRaises(PersistenceFailure):
                self.engine.submit(self.db, self.user.id, self.quiz.id, 0, 1)

        session = self.engine.get_session(self.user.id)
        self.assertEqual((session.current_question_index, session.answers), (0, []))
        self.assertEqual(self.db.query(QuizResult).count(), 0)

        self.engine.submit(self.db, self.user.id, self.quiz.id, 0, 2)
        session = self.engine.get_session(self.user.id)
        self.assertEqual((session.current_question_index, session.answers), (1, [2]))
        self.assertEqual(self.db.query(QuizResult).count(), 1)

    def test_next_requires_current_index(self):
        self.engine.start(self.db, self.user.id, self.quiz.id)
        self.engine.submit(self.db, self.user.id, self.quiz.id, 0, 1)

        view = self.engine.next(self.db, self.user.id, self.quiz.id, 1)
        self.assertEqual(view.question_index, 1)
        self.assertEqual(view.question.id, self.quiz.questions[1].id)

        with self.assertRaises(InvalidSessionState):
            self.engine.next(self.db, self.user.id, self.quiz.id, 0)
        with self.assertRaises(InvalidSessionState):
            self.engine.next(self.db, self.user.id, self.quiz.id, 2)

        # next ничего не записывает
        self.assertEqual(self.engine.get_session(self.user.id).current_question_index, 1)
        self.assertEqual(self.db.query(QuizResult).count(), 1)

    def test_set_message_handle(self):
        self.engine.start(self.db, self.user.id, self.quiz.id)
        self.engine.set_message_handle(self.user.id, self.quiz.id, 42)
        self.assertEqual(self.engine.get_session(self.user.id).last_message_id, 42)

        # Сообщение чужого теста не запоминается
        self.engine.set_message_handle(self.user.id, self.quiz.id + 100, 43)
        self.assertEqual(self.engine.get_session(self.user.id).last_message_id, 42)

        self.engine.abandon(self.user.id)
        self.assertIsNone(self.engine.get_session(self.user.id))


class TestQuizCompletion(QuizEngineTestCase):
    """Тесты завершения теста."""

    def _answer_all(self, quiz, answers):
        self.engine.start(self.db, self.user.id, quiz.id)
        feedback = None
        for index, selected in enumerate(answers):
            feedback = self.engine.submit(self.db, self.user.id, quiz.id, index, selected)
        return feedback

    def test_passing_lesson_quiz_unlocks_next_lesson(self):
        feedback = self._answer_all(self.quiz, [1, 0])

        self.assertTrue(feedback.finished)
        self.assertFalse(feedback.has_next)
        outcome = feedback.outcome
        self.assertEqual((outcome.score.score, outcome.score.total), (2, 2))
        self.assertTrue(outcome.passed)
        self.assertEqual(outcome.next_lesson.id, self.lessons[1].id)
        self.assertIsNone(outcome.retry_lesson_id)
        self.assertIsNone(outcome.course)

        self.assertIsNone(self.engine.get_session(self.user.id))
        self.assertTrue(can_access_lesson(self.db, self.user.id, self.lessons[1].id))

    def test_failing_lesson_quiz_offers_retry(self):
        """1 из 2 (50%) ниже порога: урок не засчитан, предлагается пересдача."""
        feedback = self._answer_all(self.quiz, [1, 1])

        outcome = feedback.outcome
        self.assertEqual((outcome.score.score, outcome.score.total), (1, 2))
        self.assertFalse(outcome.passed)
        self.assertEqual(outcome.retry_lesson_id, self.lessons[0].id)
        self.assertIsNone(outcome.next_lesson)
        self.assertEqual(self.db.query(Progress).count(), 0)
        self.assertFalse(can_access_lesson(self.db, self.user.id, self.lessons[1].id))

    def test_last_quiz_issues_certificate(self):
        self._answer_all(self.quiz, [1, 0])
        second = get_quizzes_by_lesson(self.db, self.lessons[1].id)[0]
        feedback = self._answer_all(second, [1, 0])

        course_outcome = feedback.outcome.course
        self.assertIsNotNone(course_outcome)
        self.assertTrue(course_outcome.passed)
        self.assertIsNotNone(course_outcome.certificate)
        self.assertEqual(self.db.query(Certificate).count(), 1)

    def test_failed_last_lesson_quiz_gives_no_certificate(self):
        """Проваленный тест последнего урока не завершает курс."""
        self._answer_all(self.quiz, [1, 0])
        second = get_quizzes_by_lesson(self.db, self.lessons[1].id)[0]
        feedback = self._answer_all(second, [0, 1])

        outcome = feedback.outcome
        self.assertIsNone(outcome.course)
        self.assertEqual(outcome.retry_lesson_id, self.lessons[1].id)
        self.assertEqual(self.db.query(Certificate).count(), 0)

    def test_low_course_score_offers_restart(self):
        """Общий тест курса провален: 4 из 8 (50%), сертификат не выдается."""
        final = create_quiz(self.db, course_id=self.course.id, questions=[make_question(0) for _ in range(4)])
        self._answer_all(self.quiz, [1, 0])
        second = get_quizzes_by_lesson(self.db, self.lessons[1].id)[0]
        feedback = self._answer_all(second, [1, 0])

        self.assertIsNone(feedback.outcome.course)
        self.assertEqual(feedback.outcome.next_quiz.id, final.id)

        feedback = self._answer_all(final, [1, 1, 1, 1])
        course_outcome = feedback.outcome.course
        self.assertEqual((course_outcome.score.correct, course_outcome.score.total), (4, 8))
        self.assertFalse(course_outcome.passed)
        self.assertTrue(course_outcome.restart_offered)
        self.assertIsNone(course_outcome.certificate)
        self.assertEqual(self.db.query(Certificate).count(), 0)

    def test_failed_course_quiz_offers_retry_before_the_end(self):
        first_final = create_quiz(self.db, course_id=self.course.id, questions=[make_question(0)])
        second_final = create_quiz(self.db, course_id=self.course.id, questions=[make_question(0)])

        feedback = self._answer_all(first_final, [1])

        outcome = feedback.outcome
        self.assertIsNone(outcome.course)
        self.assertEqual(outcome.retry_quiz_id, first_final.id)
        self.assertIsNone(outcome.retry_lesson_id)
        self.assertEqual(outcome.next_quiz.id, second_final.id)

    def test_passed_quiz_cannot_be_started_again(self):
        self._answer_all(self.quiz, [1, 0])

        with self.assertRaises(InvalidSessionState) as ctx:
            self.engine.start(self.db, self.user.id, self.quiz.id)
        self.assertEqual(ctx.exception.message_key, "errors.quiz_already_passed")
        self.assertIsNone(self.engine.get_session(self.user.id))

        view = self.engine.restart(self.db, self.user.id, self.course.id)
        self.assertEqual((view.quiz_id, view.question_index), (self.quiz.id, 0))

    def test_failed_or_unfinished_quiz_can_be_started_again(self):
        self._answer_all(self.quiz, [1, 1])
        view = self.engine.start(self.db, self.user.id, self.quiz.id)
        self.assertEqual(view.question_index, 0)

        # Начатая, но не законченная попытка не считается сдачей
        self.engine.submit(self.db, self.user.id, self.quiz.id, 0, 1)
        view = self.engine.start(self.db, self.user.id, self.quiz.id)
        self.assertEqual(view.question_index, 0)

    def test_restart_clears_previous_attempt(self):
        """Перезапуск удаляет результаты курса и начинает первый тест."""
        self._answer_all(self.quiz, [1, 1])
        self.assertEqual(self.db.query(QuizResult).count(), 2)

        view = self.engine.restart(self.db, self.user.id, self.course.id)

        self.assertEqual((view.quiz_id, view.question_index), (self.quiz.id, 0))
        self.assertEqual(self.db.query(QuizResult).count(), 0)
        session = self.engine.get_session(self.user.id)
        self.assertEqual((session.quiz_id, session.current_question_index, session.answers), (self.quiz.id, 0, []))

    def test_restart_unknown_course(self):
        with self.assertRaises(NotFound):
            self.engine.restart(self.db, self.user.id, 999)


if __name__ == '__main__':
    unittest.main()
