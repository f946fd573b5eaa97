"""
Тесты переводов.
"""
import json
import os
import tempfile
import unittest

from learnbot.i18n import I18nService


class TestBundledLocales(unittest.TestCase):
    """Тесты переводов, которые поставляются с ботом."""

    @classmethod
    def setUpClass(cls):
        cls.i18n = I18nService()

    def test_lookup_in_each_language(self):
        self.assertEqual(self.i18n.t("menu.courses", "ru"), "📚 Курсы")
        self.assertEqual(self.i18n.t("menu.courses", "en"), "📚 Courses")
        self.assertEqual(self.i18n.t("menu.courses", "uz"), "📚 Kurslar")

    def test_interpolation(self):
        text = self.i18n.t("quizzes.result", "en", score=3, total=5, percentage=60)
        self.assertEqual(text, "Quiz finished: 3/5 (60%)")

    def test_unsupported_language_uses_default(self):
        self.assertEqual(self.i18n.t("menu.courses", "de"), self.i18n.t("menu.courses", "uz"))
        self.assertEqual(self.i18n.t("menu.courses", None), self.i18n.t("menu.courses", "uz"))

    def test_missing_key_returns_key(self):
        self.assertEqual(self.i18n.t("errors.no_such_error", "ru"), "errors.no_such_error")
        self.assertFalse(self.i18n.has("errors.no_such_error"))
        self.assertTrue(self.i18n.has("errors.server_error", "en"))

    def test_error_keys_exist_in_all_languages(self):
        """Каждый ключ ошибок ядра переведен на все языки."""
        keys = [
            "errors.server_error",
            "errors.user_not_found",
            "errors.course_not_found",
            "errors.lesson_not_found",
            "errors.quiz_not_found",
            "errors.invalid_quiz_state",
            "errors.invalid_input",
            "errors.access_denied",
            "errors.course_access_denied",
            "errors.course_not_completed",
            "errors.lesson_locked",
            "errors.quiz_required"
        ]
        for language in ("uz", "ru", "en"):
            for key in keys:
                self.assertTrue(self.i18n.has(key, language), f"{key} ({language})")


class TestFallback(unittest.TestCase):
    """Тесты отката на язык по умолчанию."""

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        with open(os.path.join(self.tmp.name, "uz.json"), "w", encoding="utf-8") as f:
            json.dump({"greeting": {"hello": "Salom, {name}!"}, "only": {"uz": "faqat"}}, f)
        with open(os.path.join(self.tmp.name, "ru.json"), "w", encoding="utf-8") as f:
            json.dump({"greeting": {"hello": "Привет, {name}!"}}, f)
        self.i18n = I18nService(self.tmp.name, default_language="uz", supported_languages=["uz", "ru", "en"])

    def tearDown(self):
        self.tmp.cleanup()

    def test_fallback_to_default_language(self):
        self.assertEqual(self.i18n.t("greeting.hello", "ru", name="Анна"), "Привет, Анна!")
        self.assertEqual(self.i18n.t("only.uz", "ru"), "faqat")
        # Файла en.json нет
        self.assertEqual(self.i18n.t("greeting.hello", "en", name="Ann"), "Salom, Ann!")

    def test_is_supported(self):
        self.assertTrue(self.i18n.is_supported("en"))
        self.assertFalse(self.i18n.is_supported("de"))


if __name__ == '__main__':
    unittest.main()
