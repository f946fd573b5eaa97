"""
Загрузка учебного каталога (курсы, уроки и тесты) из JSON-файла.

Формат файла:
    {"courses": [{"title": {...}, "description": {...}, "is_paid": false,
                  "lessons": [{"title": {...}, "order": 1, "content_url": "...",
                               "quiz": [{"text": {...}, "options": {...}, "correct": 0}]}],
                  "quiz": [...]}]}

Курс, название которого уже есть в базе, повторно не создается.
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from learnbot.config import CATALOG_PATH
from learnbot.database.models import Course
from learnbot.database.operations import get_all_courses, create_course, create_lesson, create_quiz

logger = logging.getLogger(__name__)


def read_catalog(path=CATALOG_PATH) -> List[Dict[str, Any]]:
    """Читает описание курсов из файла. Отсутствующий файл означает пустой каталог."""
    path = Path(path)
    if not path.exists():
        logger.info(f"Файл каталога не найден: {path}")
        return []
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f).get("courses", [])


def init_courses(db: Session, catalog: List[Dict[str, Any]]) -> List[Course]:
    """Создает курсы каталога, которых еще нет в базе данных."""
    existing_titles = [course.title for course in get_all_courses(db)]
    created = []

    for data in catalog:
        if data["title"] in existing_titles:
            continue

        course = create_course(
            db,
            title=data["title"],
            description=data.get("description"),
            is_paid=data.get("is_paid", False),
            price=data.get("price")
        )
        for order, lesson_data in enumerate(data.get("lessons", []), start=1):
            lesson = create_lesson(
                db,
                course_id=course.id,
                title=lesson_data["title"],
                order=lesson_data.get("order", order),
                content_type=lesson_data.get("content_type", "text"),
                content_url=lesson_data.get("content_url")
            )
            if lesson_data.get("quiz"):
                create_quiz(db, course_id=course.id, lesson_id=lesson.id, questions=lesson_data["quiz"])

        if data.get("quiz"):
            create_quiz(db, course_id=course.id, questions=data["quiz"])

        logger.info(f"Добавлен курс {course.id} из каталога")
        created.append(course)

    return created
