"""
Удаляет webhook бота, чтобы можно было запустить polling.
"""
import sys

import requests

from learnbot.config import TELEGRAM_TOKEN


def delete_webhook(token: str = TELEGRAM_TOKEN, timeout: int = 10) -> bool:
    """Удаляет webhook бота."""
    if not token:
        print("TELEGRAM_TOKEN не установлен")
        return False

    api_url = f"https://api.telegram.org/bot{token}"
    print("Удаление webhook...")

    try:
        # Сначала проверим информацию о текущем webhook
        response = requests.get(f"{api_url}/getWebhookInfo", timeout=timeout)
        if response.status_code == 200:
            info = response.json()
            if info.get('ok') and not info.get('result', {}).get('url'):
                print("Webhook не установлен.")
                return True
            print(f"Текущая информация о webhook: {info}")

        # Удаляем webhook
        response = requests.get(f"{api_url}/deleteWebhook", params={"drop_pending_updates": True}, timeout=timeout)
        if response.status_code != 200:
            print(f"Ошибка HTTP при удалении webhook: {response.status_code}")
            return False

        result = response.json()
        if result.get('ok'):
            print("Webhook успешно удален!")
            return True
        print(f"Ошибка при удалении webhook: {result}")
        return False

    except requests.RequestException as e:
        print(f"Ошибка при удалении webhook: {e}")
        return False


if __name__ == "__main__":
    success = delete_webhook()
    sys.exit(0 if success else 1)
