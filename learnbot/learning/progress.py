"""
Учет прогресса: факты завершения уроков и производные показатели курса.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from learnbot.database.models import Lesson, Progress
from learnbot.database.operations import get_user, get_course, get_lesson, get_lessons_by_course
from learnbot.errors import NotFound, PersistenceFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CourseProgress:
    """Прогресс по курсу, вычисляется по требованию из записей Progress."""
    completed: int
    total: int

    @property
    def percentage(self) -> float:
        return (self.completed / self.total) * 100.0 if self.total else 0.0

    @property
    def is_complete(self) -> bool:
        return self.total > 0 and self.completed >= self.total


def _find_record(db: Session, user_id: int, lesson_id: int) -> Optional[Progress]:
    return db.query(Progress).filter(
        Progress.user_id == user_id,
        Progress.lesson_id == lesson_id
    ).first()


def record_completion(db: Session, user_id: int, lesson_id: int) -> Progress:
    """
    Отмечает урок завершенным. Повторный вызов ничего не меняет.

    Raises:
        NotFound: пользователь или урок не найден
        PersistenceFailure: ошибка записи
    """
    if get_user(db, user_id) is None:
        raise NotFound("user", user_id)
    if get_lesson(db, lesson_id) is None:
        raise NotFound("lesson", lesson_id)

    existing = _find_record(db, user_id, lesson_id)
    if existing:
        return existing

    record = Progress(user_id=user_id, lesson_id=lesson_id, completed_at=datetime.now(timezone.utc))
    db.add(record)
    try:
        db.commit()
    except IntegrityError:
        # Запись уже вставлена параллельным обработчиком
        db.rollback()
        existing = _find_record(db, user_id, lesson_id)
        if existing:
            return existing
        raise PersistenceFailure(f"Не удалось сохранить прогресс по уроку {lesson_id}")
    except SQLAlchemyError as e:
        logger.error(f"Ошибка при сохранении прогресса пользователя {user_id}, урок {lesson_id}: {e}")
        db.rollback()
        raise PersistenceFailure(f"Не удалось сохранить прогресс по уроку {lesson_id}") from e

    db.refresh(record)
    logger.info(f"Пользователь {user_id} завершил урок {lesson_id}")
    return record


def get_completed_lesson_ids(db: Session, user_id: int, course_id: int) -> List[int]:
    """Получает ID завершенных уроков курса."""
    rows = (
        db.query(Progress.lesson_id)
        .join(Lesson, Progress.lesson_id == Lesson.id)
        .filter(Progress.user_id == user_id, Lesson.course_id == course_id)
        .all()
    )
    return [row[0] for row in rows]


def completed_lesson_count(db: Session, user_id: int, course_id: int) -> int:
    return (
        db.query(Progress)
        .join(Lesson, Progress.lesson_id == Lesson.id)
        .filter(Progress.user_id == user_id, Lesson.course_id == course_id)
        .count()
    )


def get_progress(db: Session, user_id: int, course_id: int) -> CourseProgress:
    """
    Возвращает прогресс пользователя по курсу.

    Учитываются только уроки, которые сейчас входят в курс, поэтому
    completed никогда не превышает total.
    """
    if get_user(db, user_id) is None:
        raise NotFound("user", user_id)
    if get_course(db, course_id) is None:
        raise NotFound("course", course_id)

    total = len(get_lessons_by_course(db, course_id))
    return CourseProgress(completed=completed_lesson_count(db, user_id, course_id), total=total)


def get_latest_lesson_id(db: Session, user_id: int, course_id: int) -> Optional[int]:
    """Последний по порядку завершенный урок курса."""
    row = (
        db.query(Progress.lesson_id)
        .join(Lesson, Progress.lesson_id == Lesson.id)
        .filter(Progress.user_id == user_id, Lesson.course_id == course_id)
        .order_by(Lesson.order.desc(), Lesson.id.desc())
        .first()
    )
    return row[0] if row else None


def lesson_ordinal(db: Session, lesson: Lesson) -> int:
    """Позиция урока в курсе, начиная с нуля."""
    lessons = get_lessons_by_course(db, lesson.course_id)
    for index, item in enumerate(lessons):
        if item.id == lesson.id:
            return index
    raise NotFound("lesson", lesson.id)


def get_next_lesson(db: Session, lesson_id: int) -> Optional[Lesson]:
    """Получает следующий урок курса или None, если урок последний."""
    lesson = get_lesson(db, lesson_id)
    if not lesson:
        raise NotFound("lesson", lesson_id)

    lessons = get_lessons_by_course(db, lesson.course_id)
    index = lesson_ordinal(db, lesson)
    return lessons[index + 1] if index + 1 < len(lessons) else None
