"""
Хранилище сессий прохождения тестов.

Сессия живет только в памяти процесса: одна активная сессия на пользователя,
после перезапуска бота сессии теряются.
"""
import copy
import threading
import weakref
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional


@dataclass
class QuizSession:
    """Текущее состояние прохождения теста пользователем."""
    quiz_id: int
    course_id: int
    lesson_id: Optional[int] = None
    current_question_index: int = 0
    answers: List[int] = field(default_factory=list)
    last_message_id: Optional[int] = None


class SessionStore:
    """Интерфейс хранилища сессий: ключ пользователя -> QuizSession."""

    def get(self, learner_id: int) -> Optional[QuizSession]:
        raise NotImplementedError

    def put(self, learner_id: int, session: QuizSession) -> None:
        raise NotImplementedError

    def delete(self, learner_id: int) -> None:
        raise NotImplementedError

    @contextmanager
    def lock(self, learner_id: int) -> Iterator[None]:
        """Блокировка одного пользователя на время чтения-проверки-записи."""
        raise NotImplementedError
        yield  # pragma: no cover


class InMemorySessionStore(SessionStore):
    """Сессии в словаре процесса с отдельной блокировкой на каждого пользователя."""

    def __init__(self):
        self._sessions: Dict[int, QuizSession] = {}
        # Блокировка живет, пока ее держит или ждет хотя бы один поток
        self._locks: "weakref.WeakValueDictionary[int, threading.Lock]" = weakref.WeakValueDictionary()
        self._locks_guard = threading.Lock()

    def get(self, learner_id: int) -> Optional[QuizSession]:
        session = self._sessions.get(learner_id)
        # Вызывающий код меняет только свою копию
        return copy.deepcopy(session) if session else None

    def put(self, learner_id: int, session: QuizSession) -> None:
        self._sessions[learner_id] = copy.deepcopy(session)

    def delete(self, learner_id: int) -> None:
        self._sessions.pop(learner_id, None)

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, learner_id: int) -> bool:
        return learner_id in self._sessions

    @contextmanager
    def lock(self, learner_id: int) -> Iterator[None]:
        with self._locks_guard:
            learner_lock = self._locks.get(learner_id)
            if learner_lock is None:
                learner_lock = threading.Lock()
                self._locks[learner_id] = learner_lock
        with learner_lock:
            yield
