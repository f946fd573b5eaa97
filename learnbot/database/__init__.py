"""
Инициализация модуля базы данных.
"""

# Импортируем модели
from .models import (
    Base,
    User,
    Course,
    Lesson,
    Quiz,
    Question,
    Progress,
    QuizResult,
    Payment,
    Certificate,
    init_db,
    get_db,
    close_db,
    check_connection,
    engine,
    SessionLocal
)

# Импортируем операции
from .operations import (
    get_or_create_user,
    get_user,
    get_user_by_telegram_id,
    set_user_language,
    get_all_users,
    get_all_courses,
    get_course,
    create_course,
    get_lessons_by_course,
    get_lesson,
    create_lesson,
    delete_lesson,
    get_quiz,
    get_quizzes_by_course,
    get_quizzes_by_lesson,
    create_quiz,
    initiate_payment,
    verify_payment,
    has_completed_payment,
    get_payment_history,
    get_payment,
    get_payment_by_transaction,
    get_pending_payment
)

# Экспортируемые элементы
__all__ = [
    # Модели
    'Base',
    'User',
    'Course',
    'Lesson',
    'Quiz',
    'Question',
    'Progress',
    'QuizResult',
    'Payment',
    'Certificate',

    # Функции работы с БД
    'init_db',
    'get_db',
    'close_db',
    'check_connection',
    'engine',
    'SessionLocal',

    # Операции с пользователями
    'get_or_create_user',
    'get_user',
    'get_user_by_telegram_id',
    'set_user_language',
    'get_all_users',

    # Операции с курсами и уроками
    'get_all_courses',
    'get_course',
    'create_course',
    'get_lessons_by_course',
    'get_lesson',
    'create_lesson',
    'delete_lesson',

    # Операции с тестами
    'get_quiz',
    'get_quizzes_by_course',
    'get_quizzes_by_lesson',
    'create_quiz',

    # Платежи
    'initiate_payment',
    'verify_payment',
    'has_completed_payment',
    'get_payment_history',
    'get_payment',
    'get_payment_by_transaction',
    'get_pending_payment'
]
