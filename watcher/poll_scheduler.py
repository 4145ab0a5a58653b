import sqlite3
import threading
import time
from typing import Callable, Iterable, Optional

from mail_source.fetcher import MessageFetcher
from models.data_models import Decision, MailboxRecord, NormalizedMessage, TickReport
from utils.logger import get_logger
from utils.mailbox_directory import MailboxDirectory
from utils.message_formatter import format_notification
from utils.otp_extractor import extract_message_otp
from watcher.change_detector import ChangeDetector

logger = get_logger(__name__)


class PollScheduler:
    """Checks every saved mailbox on a fixed period and notifies the operator
    about new messages.

    Each tick re-reads the mailbox directory and walks it in order, one
    mailbox at a time: fetch -> detect (state saved) -> deliver. The first
    tick after start only records a baseline; notifications begin with the
    second tick.

    Ticks never overlap. The start() loop runs them back to back on one
    thread, skipping periods a slow tick overran, and run_tick() refuses to
    start while another tick holds the lock.
    """

    def __init__(
        self,
        directory: MailboxDirectory,
        fetcher: MessageFetcher,
        detector: ChangeDetector,
        deliver: Callable[[str], bool],
        interval_seconds: float = 5,
    ):
        self.directory = directory
        self.fetcher = fetcher
        self.detector = detector
        self.deliver = deliver
        self.interval_seconds = interval_seconds
        self._warmed_up = False
        self._known: set[str] = set()
        self._tick_lock = threading.Lock()
        self._stop_event = threading.Event()

    @property
    def warmed_up(self) -> bool:
        return self._warmed_up

    def start(self) -> None:
        """Run ticks until stop() is called. Blocks."""
        logger.info(f"Starting poll scheduler — every {self.interval_seconds:g}s")
        next_tick = time.monotonic()
        while not self._stop_event.is_set():
            try:
                self.run_tick()
            except Exception as e:
                logger.error(f"Poll tick crashed: {e}", exc_info=True)

            next_tick += self.interval_seconds
            now = time.monotonic()
            if now > next_tick:
                missed = int((now - next_tick) // self.interval_seconds) + 1
                logger.warning(f"Tick overran the {self.interval_seconds:g}s period; skipping {missed} tick(s)")
                next_tick += missed * self.interval_seconds
            self._stop_event.wait(next_tick - now)

    def stop(self) -> None:
        self._stop_event.set()
        logger.info("Poll scheduler stopped")

    def forget(self, names: Iterable[str]) -> None:
        """Reset state for mailboxes removed from the directory."""
        for name in names:
            self.detector.forget(name)
            self._known.discard(name)

    def run_tick(self) -> Optional[TickReport]:
        """Run one pass over the directory. Returns None if a tick is already running."""
        if not self._tick_lock.acquire(blocking=False):
            logger.warning("Previous tick still running; skipping this one")
            return None
        try:
            return self._tick()
        finally:
            self._tick_lock.release()

    def _tick(self) -> TickReport:
        report = TickReport()
        try:
            mailboxes = self.directory.mailboxes()
        except sqlite3.Error as e:
            logger.error(f"Could not read mailbox directory: {e}")
            return report

        self._prune(mailboxes)
        report.mailboxes = len(mailboxes)

        for mailbox in mailboxes:
            if self._stop_event.is_set():
                return report
            self._process(mailbox, report)

        if not self._warmed_up:
            self._warmed_up = True
            self.detector.store.flush()
            logger.info(f"Warm-up complete: baseline recorded for {report.seeded} mailbox(es)")

        logger.debug(
            f"Tick done: {report.mailboxes} mailbox(es), {report.fetched} fetched, "
            f"{report.notified} notified, {report.suppressed} suppressed"
        )
        return report

    def _process(self, mailbox: MailboxRecord, report: TickReport) -> None:
        epoch = self.detector.epoch(mailbox.name)
        try:
            message = self.fetcher.fetch(mailbox)
            decision = self.detector.observe(mailbox.name, message, self._warmed_up, epoch=epoch)
        except Exception as e:
            logger.error(f"Error checking {mailbox.name}: {e}", exc_info=True)
            report.failed += 1
            return

        if message is not None:
            report.fetched += 1

        if decision is Decision.SEEDED:
            report.seeded += 1
        elif decision is Decision.UNCHANGED:
            report.unchanged += 1
        elif decision is Decision.SUPPRESSED:
            report.suppressed += 1
        elif decision is Decision.NOTIFY:
            report.notified += 1
            self._notify(mailbox, message)

    def _notify(self, mailbox: MailboxRecord, message: NormalizedMessage) -> None:
        otp = extract_message_otp(message)
        logger.info(f"New mail for {mailbox.name}: '{message.subject}' (OTP: {otp or 'none'})")
        try:
            delivered = self.deliver(format_notification(mailbox.name, message, otp))
        except Exception as e:
            logger.error(f"Delivery raised for {mailbox.name}: {e}")
            delivered = False
        if not delivered:
            # state is already recorded; the message is not re-sent
            logger.error(f"Notification for {mailbox.name} was not delivered")

    def _prune(self, mailboxes: list[MailboxRecord]) -> None:
        """Forget mailboxes that vanished from the directory since the last tick."""
        current = {mailbox.name for mailbox in mailboxes}
        if not self._warmed_up:
            # entries left over from mailboxes removed while we were down
            self._known |= set(self.detector.store.snapshot())
        gone = self._known - current
        if gone:
            logger.info(f"{len(gone)} mailbox(es) no longer in directory; clearing their state")
            self.forget(gone)
        self._known = current
