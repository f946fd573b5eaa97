"""
Модуль последовательного обучения и оценки знаний.

Этот модуль содержит компоненты ядра обучения:
- progress.py: Учет завершенных уроков
- access.py: Проверка доступа к курсам, урокам и тестам
- sessions.py: Хранилище сессий прохождения тестов
- quiz_engine.py: Пошаговое прохождение тестов
- scoring.py: Проверка ответов и подсчет баллов
- completion.py: Завершение курса и выдача сертификата
- certificates.py: Сертификаты
- courses.py: Загрузка каталога курсов
"""

from learnbot.learning.progress import (
    CourseProgress,
    record_completion,
    get_completed_lesson_ids,
    completed_lesson_count,
    get_progress,
    get_latest_lesson_id,
    lesson_ordinal,
    get_next_lesson
)

from learnbot.learning.access import (
    LessonAccess,
    can_access_course,
    can_access_lesson,
    is_lesson_accessible,
    can_access_quiz,
    lesson_access_map
)

from learnbot.learning.scoring import (
    QuizScore,
    CourseScore,
    score_percentage,
    is_passing,
    localized,
    question_options,
    is_correct,
    explain,
    record_answer,
    score_attempt,
    submit_quiz,
    get_results,
    clear_course_results,
    get_unanswered_quizzes,
    course_score,
    latest_quiz_score,
    quiz_passed,
    get_user_quiz_scores
)

from learnbot.learning.sessions import (
    QuizSession,
    SessionStore,
    InMemorySessionStore
)

from learnbot.learning.certificates import CertificateService, default_artifact
from learnbot.learning.completion import CompletionOutcome, QuizOutcome, CompletionTrigger, is_course_finished
from learnbot.learning.quiz_engine import QuestionView, AnswerFeedback, QuizEngine
from learnbot.learning.courses import read_catalog, init_courses

__all__ = [
    # Прогресс
    'CourseProgress',
    'record_completion',
    'get_completed_lesson_ids',
    'completed_lesson_count',
    'get_progress',
    'get_latest_lesson_id',
    'lesson_ordinal',
    'get_next_lesson',

    # Доступ
    'LessonAccess',
    'can_access_course',
    'can_access_lesson',
    'is_lesson_accessible',
    'can_access_quiz',
    'lesson_access_map',

    # Баллы
    'QuizScore',
    'CourseScore',
    'score_percentage',
    'is_passing',
    'localized',
    'question_options',
    'is_correct',
    'explain',
    'record_answer',
    'score_attempt',
    'submit_quiz',
    'get_results',
    'clear_course_results',
    'get_unanswered_quizzes',
    'course_score',
    'latest_quiz_score',
    'quiz_passed',
    'get_user_quiz_scores',

    # Сессии и тесты
    'QuizSession',
    'SessionStore',
    'InMemorySessionStore',
    'QuestionView',
    'AnswerFeedback',
    'QuizEngine',

    # Завершение курса
    'CertificateService',
    'default_artifact',
    'CompletionOutcome',
    'QuizOutcome',
    'CompletionTrigger',
    'is_course_finished',

    # Каталог
    'read_catalog',
    'init_courses'
]
