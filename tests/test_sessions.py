"""
Тесты хранилища сессий тестов.
"""
import gc
import threading
import unittest

from learnbot.learning.sessions import QuizSession, SessionStore, InMemorySessionStore


class TestInMemorySessionStore(unittest.TestCase):
    """Тесты для InMemorySessionStore."""

    def setUp(self):
        self.store = InMemorySessionStore()

    def test_put_get_delete(self):
        self.assertIsNone(self.store.get(1))

        self.store.put(1, QuizSession(quiz_id=10, course_id=5))
        session = self.store.get(1)
        self.assertEqual((session.quiz_id, session.current_question_index, session.answers), (10, 0, []))
        self.assertIn(1, self.store)
        self.assertEqual(len(self.store), 1)

        self.store.delete(1)
        self.store.delete(1)
        self.assertIsNone(self.store.get(1))
        self.assertEqual(len(self.store), 0)

    def test_returned_session_is_a_copy(self):
        """Изменения полученной сессии не видны без put."""
        self.store.put(1, QuizSession(quiz_id=10, course_id=5))
        session = self.store.get(1)
        session.answers.append(2)
        session.current_question_index = 1

        stored = self.store.get(1)
        self.assertEqual(stored.answers, [])
        self.assertEqual(stored.current_question_index, 0)

    def test_lock_serializes_read_modify_write(self):
        """Параллельные инкременты под блокировкой пользователя не теряются."""
        self.store.put(1, QuizSession(quiz_id=10, course_id=5))

        def worker():
            for _ in range(200):
                with self.store.lock(1):
                    session = self.store.get(1)
                    session.current_question_index += 1
                    self.store.put(1, session)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(self.store.get(1).current_question_index, 800)

    def test_locks_are_per_learner(self):
        """Блокировка одного пользователя не мешает другому."""
        acquired = threading.Event()

        with self.store.lock(1):
            def other():
                with self.store.lock(2):
                    acquired.set()

            thread = threading.Thread(target=other)
            thread.start()
            self.assertTrue(acquired.wait(timeout=2))
            thread.join()

    def test_unused_locks_are_released(self):
        """Блокировки не копятся для пользователей, которые уже ушли."""
        for learner_id in range(100):
            with self.store.lock(learner_id):
                self.store.put(learner_id, QuizSession(quiz_id=1, course_id=1))
            self.store.delete(learner_id)

        gc.collect()
        self.assertEqual(len(self.store._locks), 0)
        self.assertEqual(len(self.store), 0)

    def test_lock_is_shared_while_held(self):
        with self.store.lock(7):
            first = self.store._locks[7]
            self.assertIs(self.store._locks.get(7), first)

    def test_base_store_is_abstract(self):
        store = SessionStore()
        with self.assertRaises(NotImplementedError):
            store.get(1)
        with self.assertRaises(NotImplementedError):
            with store.lock(1):
                pass


if __name__ == '__main__':
    unittest.main()
