"""
Тесты для модуля базы данных.
"""
import unittest

from learnbot.database.models import Progress, Quiz
from learnbot.database.operations import (
    get_user_by_telegram_id,
    get_or_create_user,
    set_user_language,
    get_all_users,
    create_course,
    get_all_courses,
    get_course,
    create_lesson,
    get_lessons_by_course,
    get_lesson,
    delete_lesson,
    create_quiz,
    get_quiz,
    get_quizzes_by_course,
    get_quizzes_by_lesson,
    initiate_payment,
    verify_payment,
    has_completed_payment,
    get_payment_history
)
from learnbot.errors import InvalidInput
from learnbot.learning.progress import record_completion
from tests.fixtures import DatabaseTestCase, make_question, seed_course, seed_user, text


class TestUsers(DatabaseTestCase):
    """Тесты операций с пользователями."""

    def test_user_operations(self):
        """Тестирование создания и обновления пользователя."""
        user = get_or_create_user(self.db, telegram_id=123456, username="test_user",
                                  first_name="Test", last_name="User", language="ru")

        self.assertIsNotNone(user)
        self.assertEqual(user.telegram_id, "123456")
        self.assertEqual(user.language, "ru")
        self.assertEqual(user.full_name, "Test User")

        # Поиск по Telegram ID принимает и число, и строку
        self.assertEqual(get_user_by_telegram_id(self.db, 123456).id, user.id)
        self.assertEqual(get_user_by_telegram_id(self.db, "123456").id, user.id)
        self.assertIsNone(get_user_by_telegram_id(self.db, 999999))

        # Повторный вызов обновляет данные, но не создает нового пользователя
        existing_user = get_or_create_user(self.db, telegram_id=123456, username="updated_user")
        self.assertEqual(existing_user.id, user.id)
        self.assertEqual(existing_user.username, "updated_user")

        new_user = get_or_create_user(self.db, telegram_id=654321)
        self.assertNotEqual(new_user.id, user.id)
        self.assertEqual(len(get_all_users(self.db)), 2)

    def test_unsupported_language_falls_back_to_default(self):
        user = get_or_create_user(self.db, telegram_id=1, language="de")
        self.assertEqual(user.language, "uz")

    def test_set_user_language(self):
        user = seed_user(self.db)
        set_user_language(self.db, user, "en")
        self.assertEqual(get_user_by_telegram_id(self.db, user.telegram_id).language, "en")

        with self.assertRaises(InvalidInput):
            set_user_language(self.db, user, "fr")


class TestCourses(DatabaseTestCase):
    """Тесты операций с курсами, уроками и тестами."""

    def test_course_operations(self):
        """Тестирование операций с курсами."""
        course = create_course(self.db, title=text("Курс"), description=text("Описание"))

        self.assertIsNotNone(course)
        self.assertEqual(course.title["ru"], "Курс (ru)")
        self.assertFalse(course.is_paid)
        self.assertEqual(len(get_all_courses(self.db)), 1)
        self.assertEqual(get_course(self.db, course.id).id, course.id)
        self.assertIsNone(get_course(self.db, 999))

    def test_lessons_are_ordered_by_order_then_id(self):
        """Уроки упорядочены по полю order, при равенстве по ID."""
        course = create_course(self.db, title=text("Курс"))
        third = create_lesson(self.db, course_id=course.id, title=text("C"), order=5)
        first = create_lesson(self.db, course_id=course.id, title=text("A"), order=1)
        second = create_lesson(self.db, course_id=course.id, title=text("B"), order=1)

        lessons = get_lessons_by_course(self.db, course.id)
        self.assertEqual([lesson.id for lesson in lessons], [first.id, second.id, third.id])
        self.assertEqual(get_lesson(self.db, third.id).order, 5)

    def test_quiz_operations(self):
        """Тестирование создания теста с вопросами."""
        course, lessons = seed_course(self.db, lessons=2, questions_per_lesson=(1, 0, 2))
        course_quiz = create_quiz(self.db, course_id=course.id, questions=[make_question(0)])

        lesson_quizzes = get_quizzes_by_lesson(self.db, lessons[0].id)
        self.assertEqual(len(lesson_quizzes), 1)
        quiz = get_quiz(self.db, lesson_quizzes[0].id)
        self.assertEqual([question.correct for question in quiz.questions], [1, 0, 2])
        self.assertEqual([question.position for question in quiz.questions], [0, 1, 2])

        # Сначала тесты уроков по порядку уроков, затем общий тест курса
        quizzes = get_quizzes_by_course(self.db, course.id)
        self.assertEqual(quizzes[-1].id, course_quiz.id)
        self.assertEqual([quiz.lesson_id for quiz in quizzes[:2]], [lessons[0].id, lessons[1].id])

    def test_create_quiz_rejects_invalid_correct_option(self):
        course = create_course(self.db, title=text("Курс"))
        with self.assertRaises(InvalidInput) as ctx:
            create_quiz(self.db, course_id=course.id, questions=[make_question(correct=3, options=3)])
        self.assertEqual(ctx.exception.message_key, "errors.invalid_correct_option")
        self.assertEqual(self.db.query(Quiz).count(), 0)

    def test_delete_lesson_removes_progress(self):
        course, lessons = seed_course(self.db, lessons=2, questions_per_lesson=())
        user = seed_user(self.db)
        record_completion(self.db, user.id, lessons[0].id)

        self.assertTrue(delete_lesson(self.db, lessons[0].id))
        self.assertFalse(delete_lesson(self.db, lessons[0].id))
        self.assertEqual(len(get_lessons_by_course(self.db, course.id)), 1)
        self.assertEqual(self.db.query(Progress).count(), 0)


class TestPayments(DatabaseTestCase):
    """Тесты платежей."""

    def test_payment_flow(self):
        course, _ = seed_course(self.db, lessons=1, is_paid=True)
        user = seed_user(self.db)

        payment = initiate_payment(self.db, user, course, "click")
        self.assertEqual(payment.status, "pending")
        self.assertFalse(has_completed_payment(self.db, user.id, course.id))

        verified = verify_payment(self.db, payment.transaction_id)
        self.assertEqual(verified.status, "completed")
        self.assertTrue(has_completed_payment(self.db, user.id, course.id))
        self.assertEqual(len(get_payment_history(self.db, user.id)), 1)

        self.assertIsNone(verify_payment(self.db, "TXN_unknown"))

    def test_free_course_cannot_be_paid(self):
        course, _ = seed_course(self.db, lessons=1)
        user = seed_user(self.db)
        with self.assertRaises(InvalidInput) as ctx:
            initiate_payment(self.db, user, course, "payme")
        self.assertEqual(ctx.exception.message_key, "errors.course_is_free")


if __name__ == '__main__':
    unittest.main()
