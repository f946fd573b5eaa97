"""
Модуль переводов интерфейса бота (uz, ru, en).
"""

from learnbot.i18n.service import I18nService

__all__ = [
    'I18nService'
]
