"""
Операции для работы с базой данных: пользователи, курсы, уроки, тесты и платежи.
"""
import time
import uuid
import logging
from typing import Optional, List, Dict

from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from .models import User, Course, Lesson, Quiz, Question, Payment
from learnbot.config import DEFAULT_LANGUAGE, SUPPORTED_LANGUAGES
from learnbot.errors import PersistenceFailure, InvalidInput

logger = logging.getLogger(__name__)


def _commit(db: Session, action: str):
    """Фиксирует транзакцию, при ошибке откатывает ее и выбрасывает PersistenceFailure."""
    try:
        db.commit()
    except SQLAlchemyError as e:
        logger.error(f"Ошибка при {action}: {e}")
        db.rollback()
        raise PersistenceFailure(f"Ошибка при {action}") from e


# Пользователи

def get_user_by_telegram_id(db: Session, telegram_id) -> Optional[User]:
    """Получает пользователя по Telegram ID."""
    return db.query(User).filter(User.telegram_id == str(telegram_id)).first()


def get_user(db: Session, user_id: int) -> Optional[User]:
    return db.get(User, user_id)


def get_or_create_user(db: Session, telegram_id, username: str = None, first_name: str = None,
                       last_name: str = None, language: str = None) -> User:
    """Получает существующего пользователя или создает нового."""
    user = get_user_by_telegram_id(db, telegram_id)

    if user:
        # Обновляем информацию если она изменилась
        changed = False
        for field, value in (("username", username), ("first_name", first_name), ("last_name", last_name)):
            if value and getattr(user, field) != value:
                setattr(user, field, value)
                changed = True
        if changed:
            _commit(db, f"обновлении пользователя {telegram_id}")
        return user

    if language not in SUPPORTED_LANGUAGES:
        language = DEFAULT_LANGUAGE

    user = User(
        telegram_id=str(telegram_id),
        username=username,
        first_name=first_name,
        last_name=last_name,
        language=language
    )
    db.add(user)
    _commit(db, f"создании пользователя {telegram_id}")
    db.refresh(user)
    logger.info(f"Создан новый пользователь: {telegram_id}")
    return user


def set_user_language(db: Session, user: User, language: str) -> User:
    """Меняет язык интерфейса пользователя."""
    if language not in SUPPORTED_LANGUAGES:
        raise InvalidInput(f"Неподдерживаемый язык: {language}")
    user.language = language
    _commit(db, f"смене языка пользователя {user.telegram_id}")
    return user


def get_all_users(db: Session, active_only: bool = True) -> List[User]:
    """Получает всех пользователей для рассылки."""
    query = db.query(User)
    if active_only:
        query = query.filter(User.is_active.is_(True))
    return query.order_by(User.id).all()


# Курсы

def get_all_courses(db: Session) -> List[Course]:
    """Получает все курсы."""
    return db.query(Course).order_by(Course.id).all()


def get_course(db: Session, course_id: int) -> Optional[Course]:
    """Получает курс по ID."""
    return db.get(Course, course_id)


def create_course(db: Session, title: Dict[str, str], description: Dict[str, str] = None,
                  is_paid: bool = False, price=None) -> Course:
    """Создает новый курс."""
    course = Course(title=title, description=description or {}, is_paid=is_paid, price=price)
    db.add(course)
    _commit(db, "создании курса")
    db.refresh(course)
    return course


# Уроки

def get_lessons_by_course(db: Session, course_id: int) -> List[Lesson]:
    """Получает все уроки курса в порядке прохождения."""
    return db.query(Lesson).filter(Lesson.course_id == course_id).order_by(Lesson.order, Lesson.id).all()


def get_lesson(db: Session, lesson_id: int) -> Optional[Lesson]:
    """Получает урок по ID."""
    return db.get(Lesson, lesson_id)


def create_lesson(db: Session, course_id: int, title: Dict[str, str], order: int,
                  content_type: str = "text", content_url: str = None) -> Lesson:
    """Создает новый урок."""
    lesson = Lesson(
        course_id=course_id,
        title=title,
        order=order,
        content_type=content_type,
        content_url=content_url
    )
    db.add(lesson)
    _commit(db, "создании урока")
    db.refresh(lesson)
    return lesson


def delete_lesson(db: Session, lesson_id: int) -> bool:
    """Удаляет урок вместе с прогрессом и тестами урока."""
    lesson = get_lesson(db, lesson_id)
    if not lesson:
        return False
    db.delete(lesson)
    _commit(db, f"удалении урока {lesson_id}")
    logger.info(f"Удален урок {lesson_id}")
    return True


# Тесты

def get_quiz(db: Session, quiz_id: int) -> Optional[Quiz]:
    """Получает тест по ID."""
    return db.get(Quiz, quiz_id)


def get_quizzes_by_course(db: Session, course_id: int) -> List[Quiz]:
    """Получает все тесты курса, сначала тесты уроков в порядке уроков."""
    return (
        db.query(Quiz)
        .outerjoin(Lesson, Quiz.lesson_id == Lesson.id)
        .filter(Quiz.course_id == course_id)
        .order_by(Lesson.order.is_(None), Lesson.order, Lesson.id, Quiz.id)
        .all()
    )


def get_quizzes_by_lesson(db: Session, lesson_id: int) -> List[Quiz]:
    """Получает тесты урока."""
    return db.query(Quiz).filter(Quiz.lesson_id == lesson_id).order_by(Quiz.id).all()


def create_quiz(db: Session, course_id: int, questions: List[Dict], lesson_id: int = None) -> Quiz:
    """
    Создает тест с вопросами.

    Args:
        course_id: ID курса
        questions: Список словарей с ключами text, options, correct и explanation
        lesson_id: ID урока, если тест относится к уроку
    """
    for position, data in enumerate(questions):
        options = data["options"]
        variants = options.values() if isinstance(options, dict) else [options]
        if not all(0 <= data["correct"] < len(variant) for variant in variants):
            raise InvalidInput(
                f"Неверный номер правильного ответа в вопросе {position}",
                "errors.invalid_correct_option"
            )

    quiz = Quiz(course_id=course_id, lesson_id=lesson_id)
    for position, data in enumerate(questions):
        quiz.questions.append(Question(
            position=position,
            text=data["text"],
            options=data["options"],
            correct=data["correct"],
            explanation=data.get("explanation")
        ))
    db.add(quiz)
    _commit(db, "создании теста")
    db.refresh(quiz)
    logger.info(f"Создан тест {quiz.id} из {len(questions)} вопросов для курса {course_id}")
    return quiz


# Платежи

def initiate_payment(db: Session, user: User, course: Course, payment_method: str) -> Payment:
    """Создает платеж в статусе pending."""
    if not course.is_paid:
        raise InvalidInput(f"Курс {course.id} бесплатный", "errors.course_is_free")

    payment = Payment(
        user_id=user.id,
        course_id=course.id,
        amount=course.price,
        status="pending",
        transaction_id=f"TXN_{int(time.time() * 1000)}_{user.telegram_id}_{uuid.uuid4().hex[:8]}",
        payment_method=payment_method
    )
    db.add(payment)
    _commit(db, f"создании платежа пользователя {user.telegram_id}")
    db.refresh(payment)
    return payment


def verify_payment(db: Session, transaction_id: str) -> Optional[Payment]:
    """Подтверждает платеж по ID транзакции."""
    payment = get_payment_by_transaction(db, transaction_id)
    if not payment:
        return None
    payment.status = "completed"
    _commit(db, f"подтверждении платежа {transaction_id}")
    return payment


def has_completed_payment(db: Session, user_id: int, course_id: int) -> bool:
    """Проверяет наличие оплаченного платежа за курс."""
    return db.query(Payment).filter(
        Payment.user_id == user_id,
        Payment.course_id == course_id,
        Payment.status == "completed"
    ).first() is not None


def get_payment_history(db: Session, user_id: int) -> List[Payment]:
    return db.query(Payment).filter(Payment.user_id == user_id).order_by(Payment.id).all()


def get_payment(db: Session, payment_id: int) -> Optional[Payment]:
    return db.get(Payment, payment_id)


def get_payment_by_transaction(db: Session, transaction_id: str) -> Optional[Payment]:
    return db.query(Payment).filter(Payment.transaction_id == transaction_id).first()


def get_pending_payment(db: Session, user_id: int, course_id: int) -> Optional[Payment]:
    """Последний неподтвержденный платеж пользователя за курс."""
    return db.query(Payment).filter(
        Payment.user_id == user_id,
        Payment.course_id == course_id,
        Payment.status == "pending"
    ).order_by(Payment.id.desc()).first()
