"""
OTP Watch — entry point.

Polls every saved mailbox on a fixed period and pushes each new message
(with any one-time passcode it contains) to the operator's Telegram chat.
A Telegram command bot runs alongside to add, remove and inspect mailboxes.

Stop the watcher at any time with Ctrl+C.
"""

import signal
import sys
import threading
import time

from admin.command_bot import CommandBot
from config import load_settings
from mail_source.fetcher import MessageFetcher
from mail_source.hotmail_client import HotmailApiSource
from notifier.operator_notifier import OperatorNotifier
from notifier.telegram_client import TelegramClient
from utils.logger import get_logger, setup_logging
from utils.mailbox_directory import MailboxDirectory
from utils.seen_store import SeenStore
from watcher.change_detector import ChangeDetector
from watcher.poll_scheduler import PollScheduler


def main() -> None:
    # ── 1. Load config from .env ─────────────────────────────────────────────
    settings = load_settings()
    setup_logging(log_level=settings.log_level, log_file=settings.log_file or "")
    logger = get_logger(__name__)
    logger.info("OTP Watch starting…")
    if not settings.client_key:
        logger.warning("CLIENT_KEY missing — mail API calls will likely fail")
    if not settings.owner_chat_id:
        logger.warning("CHAT_ID missing — owner-only commands are blocked")

    # ── 2. Open persistent state ─────────────────────────────────────────────
    seen_store = SeenStore(db_path=settings.state_db_path)
    seen_store.load()
    if seen_store.memory_only:
        logger.warning("Running without durable seen state")
    directory = MailboxDirectory(db_path=settings.state_db_path)
    if directory.memory_only:
        logger.warning("Mailbox directory is not persisted; /load again after a restart")
    logger.info(f"{len(directory.mailboxes())} mailbox(es) in directory")

    # ── 3. Build mail source and Telegram clients ────────────────────────────
    source = HotmailApiSource(
        api_base=settings.mail_api_base,
        client_key=settings.client_key,
        timeout_seconds=settings.fetch_timeout_seconds,
    )
    fetcher = MessageFetcher(
        source,
        primary_folder=settings.primary_folder,
        fallback_folder=settings.fallback_folder,
    )
    notifier = OperatorNotifier(TelegramClient(settings.bot_token), settings.owner_chat_id)

    # ── 4. Build the watcher and the command bot ─────────────────────────────
    detector = ChangeDetector(seen_store, cooldown_seconds=settings.cooldown_seconds)
    scheduler = PollScheduler(
        directory=directory,
        fetcher=fetcher,
        detector=detector,
        deliver=notifier.deliver,
        interval_seconds=settings.poll_interval_seconds,
    )
    bot = CommandBot(
        client=TelegramClient(settings.bot_token),
        directory=directory,
        fetcher=fetcher,
        scheduler=scheduler,
        owner_chat_id=settings.owner_chat_id,
    )

    # ── 5. Start both loops in background threads ───────────────────────────
    workers = [(scheduler, "poll-scheduler"), (bot, "command-bot")]
    for worker, name in workers:
        thread = threading.Thread(target=worker.start, daemon=True, name=name)
        thread.start()

    logger.info(
        f"Watching every {settings.poll_interval_ms}ms "
        f"(cooldown {settings.cooldown_ms}ms). Press Ctrl+C to stop."
    )

    # ── 6. Wait until Ctrl+C, then shut down cleanly ─────────────────────────
    def shutdown(sig, frame):
        logger.info("Shutting down…")
        for worker, _ in workers:
            worker.stop()
        seen_store.close()
        sys.exit(0)

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    # Keep the main thread alive
    while True:
        time.sleep(1)


if __name__ == "__main__":
    main()
