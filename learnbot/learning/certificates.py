"""
Выдача сертификатов о прохождении курса.

Сам файл сертификата формирует внешний рендерер; здесь хранится только
ссылка на него. На пару (пользователь, курс) выдается ровно один сертификат.
"""
import uuid
import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from learnbot.config import CERTIFICATE_ARTIFACT_PREFIX
from learnbot.database.models import Certificate, Course, User
from learnbot.database.operations import get_user, get_course
from learnbot.errors import NotFound, PersistenceFailure

logger = logging.getLogger(__name__)

ArtifactRenderer = Callable[[User, Course], str]


def default_artifact(user: User, course: Course) -> str:
    """Ключ файла сертификата в хранилище."""
    return f"{CERTIFICATE_ARTIFACT_PREFIX}{user.telegram_id}_{course.id}_{uuid.uuid4().hex}.pdf"


class CertificateService:
    """Выдает сертификаты и возвращает уже выданные."""

    def __init__(self, renderer: Optional[ArtifactRenderer] = None):
        self.renderer = renderer or default_artifact

    def find(self, db: Session, user_id: int, course_id: int) -> Optional[Certificate]:
        return db.query(Certificate).filter(
            Certificate.user_id == user_id,
            Certificate.course_id == course_id
        ).first()

    def issue_or_get_existing(self, db: Session, user_id: int, course_id: int) -> Certificate:
        """
        Выдает сертификат или возвращает ранее выданный.

        Raises:
            NotFound: пользователь или курс не найден
            PersistenceFailure: ошибка записи
        """
        existing = self.find(db, user_id, course_id)
        if existing:
            return existing

        user = get_user(db, user_id)
        if user is None:
            raise NotFound("user", user_id)
        course = get_course(db, course_id)
        if course is None:
            raise NotFound("course", course_id)

        certificate = Certificate(
            user_id=user_id,
            course_id=course_id,
            artifact=self.renderer(user, course),
            issued_at=datetime.now(timezone.utc)
        )
        db.add(certificate)
        try:
            db.commit()
        except IntegrityError:
            # Сертификат успел выдать параллельный обработчик
            db.rollback()
            existing = self.find(db, user_id, course_id)
            if existing:
                return existing
            raise PersistenceFailure(f"Не удалось выдать сертификат по курсу {course_id}")
        except SQLAlchemyError as e:
            logger.error(f"Ошибка при выдаче сертификата пользователю {user_id}, курс {course_id}: {e}")
            db.rollback()
            raise PersistenceFailure(f"Не удалось выдать сертификат по курсу {course_id}") from e

        db.refresh(certificate)
        logger.info(f"Выдан сертификат {certificate.id} пользователю {user_id} по курсу {course_id}")
        return certificate

    def get_certificates(self, db: Session, user_id: int) -> List[Certificate]:
        """Все сертификаты пользователя."""
        return db.query(Certificate).filter(Certificate.user_id == user_id).order_by(Certificate.id).all()
