from typing import Any

import requests

from utils.logger import get_logger

logger = get_logger(__name__)

API_ROOT = "https://api.telegram.org"


class TelegramError(Exception):
    """Telegram answered with ok=false."""


class TelegramClient:
    """Thin wrapper over the Telegram Bot HTTP API (sendMessage, getUpdates, getFile)."""

    def __init__(self, bot_token: str, timeout_seconds: float = 10, session: requests.Session | None = None):
        self.bot_token = bot_token
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()

    def send_message(self, chat_id: str, text: str) -> bool:
        """Send plain text to a chat. Never raises; returns False on failure."""
        try:
            self._call("sendMessage", {"chat_id": chat_id, "text": text})
            return True
        except (requests.RequestException, TelegramError) as e:
            logger.error(f"Failed to send Telegram message to {chat_id}: {e}")
            return False

    def get_updates(self, offset: int | None = None, poll_seconds: int = 30) -> list[dict]:
        """Long-poll for new updates.

        Raises:
            requests.RequestException or TelegramError on failure.
        """
        params: dict[str, Any] = {"timeout": poll_seconds, "allowed_updates": '["message"]'}
        if offset is not None:
            params["offset"] = offset
        return self._call("getUpdates", params, timeout=poll_seconds + self.timeout_seconds)

    def download_file(self, file_id: str) -> bytes:
        """Fetch the content of a file a user sent to the bot."""
        info = self._call("getFile", {"file_id": file_id})
        file_path = info.get("file_path")
        if not file_path:
            raise TelegramError(f"No file_path for file {file_id}")
        response = self.session.get(
            f"{API_ROOT}/file/bot{self.bot_token}/{file_path}",
            timeout=self.timeout_seconds,
        )
        response.raise_for_status()
        return response.content

    def _call(self, method: str, params: dict, timeout: float | None = None) -> Any:
        response = self.session.post(
            f"{API_ROOT}/bot{self.bot_token}/{method}",
            data=params,
            timeout=timeout or self.timeout_seconds,
        )
        try:
            body = response.json()
        except ValueError:
            response.raise_for_status()
            raise TelegramError(f"{method}: non-JSON response (HTTP {response.status_code})")
        if not body.get("ok"):
            raise TelegramError(f"{method}: {body.get('description', f'HTTP {response.status_code}')}")
        return body.get("result")
