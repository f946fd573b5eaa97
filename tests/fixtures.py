"""
Общие данные для тестов: база SQLite в памяти, курсы, уроки и тесты.
"""
import unittest

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from learnbot.database.models import Base
from learnbot.database.operations import create_course, create_lesson, create_quiz, get_or_create_user

LANGUAGES = ("uz", "ru", "en")


def create_test_engine():
    """Одно соединение на все сессии, чтобы база в памяти была общей."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(engine)
    return engine


def text(value: str) -> dict:
    return {lang: f"{value} ({lang})" for lang in LANGUAGES}


def make_question(correct: int = 0, options: int = 3, name: str = "Вопрос") -> dict:
    return {
        "text": text(name),
        "options": {lang: [f"Вариант {i} ({lang})" for i in range(options)] for lang in LANGUAGES},
        "correct": correct,
        "explanation": text(f"Пояснение: {name}")
    }


def seed_user(db, telegram_id=1001, language="ru"):
    return get_or_create_user(db, telegram_id=telegram_id, username=f"user{telegram_id}",
                              first_name="Test", language=language)


def seed_course(db, lessons: int = 3, questions_per_lesson=(2,), is_paid: bool = False):
    """
    Создает курс с уроками и тестом к каждому уроку.

    questions_per_lesson: правильные ответы вопросов теста каждого урока;
    пустой кортеж означает урок без теста.
    """
    course = create_course(db, title=text("Курс"), description=text("Описание курса"),
                           is_paid=is_paid, price=100000 if is_paid else None)
    created = []
    for order in range(1, lessons + 1):
        lesson = create_lesson(db, course_id=course.id, title=text(f"Урок {order}"), order=order,
                               content_url=f"https://example.com/lesson{order}")
        if questions_per_lesson:
            create_quiz(db, course_id=course.id, lesson_id=lesson.id,
                        questions=[make_question(correct) for correct in questions_per_lesson])
        created.append(lesson)
    return course, created


class DatabaseTestCase(unittest.TestCase):
    """Базовый класс тестов с чистой базой данных в памяти."""

    def setUp(self):
        self.db_engine = create_test_engine()
        self.Session = sessionmaker(bind=self.db_engine, autoflush=False)
        self.db = self.Session()

    def tearDown(self):
        self.db.close()
        Base.metadata.drop_all(self.db_engine)
        self.db_engine.dispose()
