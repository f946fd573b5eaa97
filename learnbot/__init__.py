"""
Telegram-бот для последовательного обучения: курсы, уроки, тесты и сертификаты.
"""
