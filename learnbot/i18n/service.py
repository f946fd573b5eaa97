"""
Переводы сообщений бота.

Один JSON-файл на язык: locales/uz.json, locales/ru.json, locales/en.json.
Ключи задаются через точку ("quizzes.correct"), параметры подставляются
в виде {name}. Если перевода нет, берется язык по умолчанию, затем сам ключ.
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from learnbot.config import DEFAULT_LANGUAGE, LOCALES_DIR, SUPPORTED_LANGUAGES

logger = logging.getLogger(__name__)


class I18nService:
    """Загружает переводы при старте и отдает строки по ключу."""

    def __init__(self, locales_dir=LOCALES_DIR, default_language: str = DEFAULT_LANGUAGE,
                 supported_languages: Optional[List[str]] = None):
        self.locales_dir = Path(locales_dir)
        self.default_language = default_language
        self.supported_languages = list(supported_languages or SUPPORTED_LANGUAGES)
        self.translations: Dict[str, Dict[str, Any]] = {}
        self._load_translations()

    def _load_translations(self) -> None:
        for lang in self.supported_languages:
            file_path = self.locales_dir / f"{lang}.json"
            if not file_path.exists():
                logger.warning(f"Файл переводов не найден: {file_path}")
                self.translations[lang] = {}
                continue
            with open(file_path, "r", encoding="utf-8") as f:
                self.translations[lang] = json.load(f)
            logger.info(f"Загружены переводы: {lang}")

    @staticmethod
    def _get_nested(data: Dict[str, Any], path: List[str]) -> Optional[Any]:
        current = data
        for key in path:
            if not isinstance(current, dict) or key not in current:
                return None
            current = current[key]
        return current

    def resolve_language(self, language: Optional[str]) -> str:
        return language if language in self.supported_languages else self.default_language

    def t(self, key: str, language: Optional[str] = None, **params: Any) -> str:
        """
        Возвращает перевод по ключу.

        Examples:
            i18n.t("quizzes.correct", "ru")
            i18n.t("quizzes.result", "uz", score=3, total=5)
        """
        lang = self.resolve_language(language)
        path = key.split(".")

        value = self._get_nested(self.translations.get(lang, {}), path)
        if value is None and lang != self.default_language:
            value = self._get_nested(self.translations.get(self.default_language, {}), path)
        if value is None:
            logger.warning(f"Нет перевода для ключа {key} ({lang})")
            return key
        if not isinstance(value, str):
            return str(value)

        result = value
        for name, param in params.items():
            result = result.replace(f"{{{name}}}", str(param))
        return result

    def has(self, key: str, language: Optional[str] = None) -> bool:
        lang = self.resolve_language(language)
        return isinstance(self._get_nested(self.translations.get(lang, {}), key.split(".")), str)

    def is_supported(self, language: str) -> bool:
        return language in self.supported_languages
