"""
Модели базы данных для Telegram бота онлайн-обучения.
"""
import logging
from sqlalchemy import (
    create_engine, Column, Integer, String, DateTime, Boolean, ForeignKey, JSON,
    Numeric, UniqueConstraint, text
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker, Session
from sqlalchemy.sql import func

from learnbot.config import DATABASE_URL, DEFAULT_LANGUAGE

logger = logging.getLogger(__name__)

# Создаем базовый класс
Base = declarative_base()


class User(Base):
    """Модель пользователя (слушателя)."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    telegram_id = Column(String(64), unique=True, index=True, nullable=False)
    username = Column(String(255), nullable=True)
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    language = Column(String(8), nullable=False, default=DEFAULT_LANGUAGE)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Связи
    progress = relationship("Progress", back_populates="user", cascade="all")
    quiz_results = relationship("QuizResult", back_populates="user", cascade="all")
    payments = relationship("Payment", back_populates="user", cascade="all")
    certificates = relationship("Certificate", back_populates="user", cascade="all")

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part) or (self.username or "")


class Course(Base):
    """Модель курса."""
    __tablename__ = "courses"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(JSON, nullable=False)  # {"uz": ..., "ru": ..., "en": ...}
    description = Column(JSON, nullable=True)
    is_paid = Column(Boolean, default=False, nullable=False)
    price = Column(Numeric(12, 2), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Связи
    lessons = relationship(
        "Lesson",
        back_populates="course",
        cascade="all",
        order_by="Lesson.order",
    )
    quizzes = relationship("Quiz", back_populates="course", cascade="all")


class Lesson(Base):
    """Модель урока. Позиция урока в курсе определяется полем order."""
    __tablename__ = "lessons"

    id = Column(Integer, primary_key=True, index=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False)
    title = Column(JSON, nullable=False)
    content_type = Column(String(50), nullable=False, default="text")
    content_url = Column(String(1000), nullable=True)
    order = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Связи
    course = relationship("Course", back_populates="lessons")
    quizzes = relationship("Quiz", back_populates="lesson", cascade="all")
    progress = relationship("Progress", back_populates="lesson", cascade="all")


class Quiz(Base):
    """Модель теста. Тест без урока относится ко всему курсу."""
    __tablename__ = "quizzes"

    id = Column(Integer, primary_key=True, index=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False)
    lesson_id = Column(Integer, ForeignKey("lessons.id", ondelete="CASCADE"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Связи
    course = relationship("Course", back_populates="quizzes")
    lesson = relationship("Lesson", back_populates="quizzes")
    questions = relationship(
        "Question",
        back_populates="quiz",
        cascade="all",
        order_by="Question.position",
    )
    results = relationship("QuizResult", back_populates="quiz", cascade="all")


class Question(Base):
    """Модель вопроса теста."""
    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, index=True)
    quiz_id = Column(Integer, ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    text = Column(JSON, nullable=False)  # {"uz": ..., "ru": ..., "en": ...}
    options = Column(JSON, nullable=False)  # {"uz": [...], "ru": [...], "en": [...]}
    correct = Column(Integer, nullable=False)  # Индекс правильного варианта, с нуля
    explanation = Column(JSON, nullable=True)

    # Связи
    quiz = relationship("Quiz", back_populates="questions")


class Progress(Base):
    """Факт завершения урока пользователем. Создается один раз."""
    __tablename__ = "progress"
    __table_args__ = (UniqueConstraint("user_id", "lesson_id", name="uq_progress_user_lesson"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    lesson_id = Column(Integer, ForeignKey("lessons.id", ondelete="CASCADE"), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Связи
    user = relationship("User", back_populates="progress")
    lesson = relationship("Lesson", back_populates="progress")


class QuizResult(Base):
    """Ответ пользователя на один вопрос теста."""
    __tablename__ = "quiz_results"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    quiz_id = Column(Integer, ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False)
    question_index = Column(Integer, nullable=False)
    selected_answer = Column(Integer, nullable=False)
    is_correct = Column(Boolean, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Связи
    user = relationship("User", back_populates="quiz_results")
    quiz = relationship("Quiz", back_populates="results")


class Payment(Base):
    """Платеж за доступ к платному курсу."""
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False)
    amount = Column(Numeric(12, 2), nullable=True)
    status = Column(String(20), nullable=False, default="pending")  # pending, completed
    transaction_id = Column(String(128), unique=True, nullable=False)
    payment_method = Column(String(50), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Связи
    user = relationship("User", back_populates="payments")
    course = relationship("Course")


class Certificate(Base):
    """Сертификат о прохождении курса. Один на пару (пользователь, курс)."""
    __tablename__ = "certificates"
    __table_args__ = (UniqueConstraint("user_id", "course_id", name="uq_certificate_user_course"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False)
    artifact = Column(String(1000), nullable=False)
    issued_at = Column(DateTime(timezone=True), nullable=False)

    # Связи
    user = relationship("User", back_populates="certificates")
    course = relationship("Course")


# Создаем движок базы данных
engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False} if "sqlite" in DATABASE_URL else {}
)

# Создаем фабрику сессий
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind=None):
    """Инициализирует базу данных."""
    try:
        Base.metadata.create_all(bind=bind or engine)
        logger.info("База данных инициализирована успешно")
    except Exception as e:
        logger.error(f"Ошибка при инициализации базы данных: {e}")
        raise


def get_db() -> Session:
    """Получает сессию базы данных."""
    return SessionLocal()


def close_db(db: Session):
    """Закрывает сессию базы данных."""
    try:
        db.close()
    except Exception as e:
        logger.error(f"Ошибка при закрытии сессии базы данных: {e}")


def check_connection() -> bool:
    """Тестирует подключение к базе данных."""
    db = get_db()
    try:
        db.execute(text("SELECT 1"))
        logger.info("Подключение к базе данных успешно")
        return True
    except Exception as e:
        logger.error(f"Ошибка подключения к базе данных: {e}")
        return False
    finally:
        close_db(db)
