"""
Проверка доступа к курсам, урокам и тестам.

Уроки открываются строго по порядку: урок с позицией k доступен,
только если пользователь завершил не меньше k уроков курса.
"""
import logging
from typing import List, NamedTuple, Optional

from sqlalchemy.orm import Session

from learnbot.database.models import Lesson
from learnbot.database.operations import (
    get_user,
    get_course,
    get_lesson,
    get_lessons_by_course,
    has_completed_payment
)
from learnbot.errors import NotFound
from learnbot.learning.progress import completed_lesson_count, get_completed_lesson_ids, lesson_ordinal

logger = logging.getLogger(__name__)


class LessonAccess(NamedTuple):
    lesson: Lesson
    unlocked: bool
    completed: bool


def can_access_course(db: Session, user_id: int, course_id: int) -> bool:
    """Бесплатный курс доступен всем, платный только после оплаты."""
    if get_user(db, user_id) is None:
        raise NotFound("user", user_id)
    course = get_course(db, course_id)
    if course is None:
        raise NotFound("course", course_id)

    if not course.is_paid:
        return True
    return has_completed_payment(db, user_id, course_id)


def can_access_lesson(db: Session, user_id: int, lesson_id: int) -> bool:
    """
    Проверяет доступ к уроку.

    Raises:
        NotFound: пользователь или урок не найден
    """
    lesson = get_lesson(db, lesson_id)
    if lesson is None:
        raise NotFound("lesson", lesson_id)

    if not can_access_course(db, user_id, lesson.course_id):
        return False

    ordinal = lesson_ordinal(db, lesson)
    if ordinal == 0:
        return True
    return completed_lesson_count(db, user_id, lesson.course_id) >= ordinal


def is_lesson_accessible(db: Session, user_id: int, lesson_id: int) -> bool:
    """То же, что can_access_lesson, но несуществующий урок считается закрытым."""
    try:
        return can_access_lesson(db, user_id, lesson_id)
    except NotFound as e:
        logger.warning(f"Проверка доступа к уроку {lesson_id}: {e}")
        return False


def can_access_quiz(db: Session, user_id: int, course_id: int, lesson_id: Optional[int] = None) -> bool:
    """Тест урока наследует доступ урока, общий тест курса наследует доступ курса."""
    if lesson_id is None:
        return can_access_course(db, user_id, course_id)
    return can_access_lesson(db, user_id, lesson_id)


def lesson_access_map(db: Session, user_id: int, course_id: int) -> List[LessonAccess]:
    """Статус каждого урока курса для списка уроков."""
    course_open = can_access_course(db, user_id, course_id)
    completed_ids = set(get_completed_lesson_ids(db, user_id, course_id))
    completed_count = len(completed_ids)

    result = []
    for ordinal, lesson in enumerate(get_lessons_by_course(db, course_id)):
        unlocked = course_open and (ordinal == 0 or completed_count >= ordinal)
        result.append(LessonAccess(lesson, unlocked, lesson.id in completed_ids))
    return result
