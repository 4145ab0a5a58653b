import threading
from typing import Optional

import requests
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from admin.credential_parser import parse_credential_lines
from mail_source.fetcher import MessageFetcher
from notifier.telegram_client import TelegramClient, TelegramError
from utils.logger import get_logger
from utils.mailbox_directory import MailboxDirectory
from utils.message_formatter import format_mailbox_list, format_notification
from utils.otp_extractor import extract_message_otp
from watcher.poll_scheduler import PollScheduler

logger = get_logger(__name__)

HELP_TEXT = """Commands:
/help – show this
/list – list saved mailboxes
/latest <email> – latest mail (inbox + junk)

Owner:
/load – add mailboxes (paste OR upload .txt)
/remove – remove mailboxes (paste OR upload .txt)
/clear – remove ALL saved mailboxes

Format:
email:password:refresh_token:client_id"""

LOAD = "load"
REMOVE = "remove"


class CommandBot:
    """Telegram command surface for managing the mailbox directory.

    Runs a getUpdates long-poll loop on its own thread. Anyone may list
    mailboxes or fetch the latest mail manually; only the owner chat may
    load, remove or clear. /load and /remove arm a waiting mode so the next
    pasted text or uploaded .txt file is read as credential lines.

    Removing mailboxes also resets their watch state through the scheduler.
    """

    def __init__(
        self,
        client: TelegramClient,
        directory: MailboxDirectory,
        fetcher: MessageFetcher,
        scheduler: PollScheduler,
        owner_chat_id: str,
        poll_seconds: int = 30,
    ):
        self.client = client
        self.directory = directory
        self.fetcher = fetcher
        self.scheduler = scheduler
        self.owner_chat_id = owner_chat_id
        self.poll_seconds = poll_seconds
        self._waiting: dict[str, str] = {}
        self._offset: Optional[int] = None
        self._stop_event = threading.Event()

    def start(self) -> None:
        """Poll Telegram for commands until stop() is called. Blocks."""
        logger.info("Starting command bot")
        while not self._stop_event.is_set():
            try:
                updates = self._fetch_updates()
            except Exception as e:
                logger.error(f"Telegram polling error: {e}. Retrying in 30s...")
                self._stop_event.wait(30)
                continue
            for update in updates:
                self._offset = update["update_id"] + 1
                try:
                    self.handle_update(update)
                except Exception as e:
                    logger.error(f"Failed to handle update {update.get('update_id')}: {e}", exc_info=True)

    def stop(self) -> None:
        self._stop_event.set()
        logger.info("Command bot stopped")

    @retry(
        retry=retry_if_exception_type((requests.RequestException, TelegramError)),
        stop=stop_after_attempt(5),
        wait=wait_exponential(multiplier=2, min=2, max=30),
        reraise=True,
    )
    def _fetch_updates(self) -> list[dict]:
        return self.client.get_updates(offset=self._offset, poll_seconds=self.poll_seconds)

    # --- dispatch ---

    def handle_update(self, update: dict) -> None:
        message = update.get("message")
        if not message:
            return
        chat_id = str(message.get("chat", {}).get("id", ""))
        text = (message.get("text") or "").strip()

        if text.startswith("/"):
            self._handle_command(chat_id, text)
        else:
            self._handle_input(chat_id, text, message.get("document"))

    def _handle_command(self, chat_id: str, text: str) -> None:
        command, _, argument = text.partition(" ")
        command = command.split("@", 1)[0].lower()
        argument = argument.strip()

        if command in ("/start", "/help"):
            self._reply(chat_id, HELP_TEXT)
        elif command == "/list":
            self._reply(chat_id, format_mailbox_list([m.name for m in self.directory.mailboxes()]))
        elif command == "/latest":
            self._latest(chat_id, argument)
        elif command in ("/load", "/remove"):
            if not self._require_owner(chat_id):
                return
            mode = command[1:]
            self._waiting[chat_id] = mode
            if mode == LOAD:
                self._reply(chat_id, "Send lines now OR upload a .txt (each line: email:pass:refresh:client_id).")
            else:
                self._reply(chat_id, "Send lines now OR upload a .txt to remove.")
        elif command == "/clear":
            if not self._require_owner(chat_id):
                return
            removed = self.directory.clear()
            self.scheduler.forget(removed)
            self._reply(chat_id, "✅ Cleared all mailboxes.")

    def _handle_input(self, chat_id: str, text: str, document: Optional[dict]) -> None:
        if not self._is_owner(chat_id):
            return
        mode = self._waiting.get(chat_id)
        if not mode:
            return

        try:
            if document:
                content = self._read_txt_document(document)
            elif text:
                content = text
            else:
                return

            records = parse_credential_lines(content)
            self._waiting.pop(chat_id, None)
            if not records:
                self._reply(chat_id, "❌ No valid lines found.")
                return

            if mode == LOAD:
                added, skipped = self.directory.add(records)
                self._reply(chat_id, f"✅ Added {added}, skipped {skipped}")
            else:
                removed = self.directory.remove(r.name for r in records)
                self.scheduler.forget(removed)
                self._reply(chat_id, f"🗑️ Removed {len(removed)}")
        except Exception as e:
            self._waiting.pop(chat_id, None)
            logger.error(f"Failed to apply /{mode} input: {e}")
            self._reply(chat_id, f"⚠️ {str(e) or 'Failed to read input'}")

    # --- commands ---

    def _latest(self, chat_id: str, email: str) -> None:
        if not email:
            self._reply(chat_id, "Usage: /latest <email>")
            return
        mailbox = self.directory.get(email)
        if mailbox is None:
            self._reply(chat_id, "❌ Not found. Use /list")
            return

        message = self.fetcher.fetch(mailbox)
        if message is None:
            self._reply(chat_id, "📭 No mail / API error.")
            return
        self._reply(chat_id, format_notification(email, message, extract_message_otp(message)))

    def _read_txt_document(self, document: dict) -> str:
        name = (document.get("file_name") or "").lower()
        if name and not name.endswith(".txt"):
            raise ValueError("Only .txt allowed")
        return self.client.download_file(document["file_id"]).decode("utf-8", errors="replace")

    # --- helpers ---

    def _is_owner(self, chat_id: str) -> bool:
        return bool(self.owner_chat_id) and chat_id == self.owner_chat_id

    def _require_owner(self, chat_id: str) -> bool:
        if self._is_owner(chat_id):
            return True
        self._reply(chat_id, "❌ Not allowed.")
        return False

    def _reply(self, chat_id: str, text: str) -> None:
        self.client.send_message(chat_id, text)
