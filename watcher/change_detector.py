import threading
import time
from typing import Callable, Optional

from models.data_models import Decision, NormalizedMessage
from utils.seen_store import SeenStore
from utils.logger import get_logger
from watcher.fingerprint import compute_fingerprint

logger = get_logger(__name__)


def decide(
    fingerprint: str,
    stored: Optional[str],
    warmed_up: bool,
    last_notified_at: Optional[float],
    now: float,
    cooldown_seconds: float,
) -> Decision:
    """Pure decision for one observed fingerprint of one mailbox.

    Rules, checked in order:
    1. warm-up not finished         -> SEEDED (record, never notify)
    2. same fingerprint as stored   -> UNCHANGED (no write)
    3. notified less than cooldown_seconds ago -> SUPPRESSED (record only)
    4. anything else                -> NOTIFY (record and notify)
    """
    if not warmed_up:
        return Decision.SEEDED
    if stored == fingerprint:
        return Decision.UNCHANGED
    if (
        cooldown_seconds > 0
        and last_notified_at is not None
        and now - last_notified_at < cooldown_seconds
    ):
        return Decision.SUPPRESSED
    return Decision.NOTIFY


class ChangeDetector:
    """Applies decide() to live observations and keeps the state it needs.

    Owns the per-mailbox cooldown timestamps (memory only, reset on restart)
    and writes every recorded fingerprint through to the SeenStore before
    returning, so the caller can notify knowing the state is already durable.

    Removing a mailbox bumps its epoch; an observation that was fetched
    under an older epoch is dropped instead of resurrecting state for a
    mailbox that no longer exists.
    """

    def __init__(
        self,
        store: SeenStore,
        cooldown_seconds: float = 15,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.cooldown_seconds = cooldown_seconds
        self.clock = clock
        self._last_notified: dict[str, float] = {}
        self._epochs: dict[str, int] = {}
        self._lock = threading.Lock()

    def epoch(self, mailbox: str) -> int:
        with self._lock:
            return self._epochs.get(mailbox, 0)

    def observe(
        self,
        mailbox: str,
        message: Optional[NormalizedMessage],
        warmed_up: bool,
        epoch: Optional[int] = None,
    ) -> Decision:
        if message is None:
            return Decision.NO_MESSAGE

        fingerprint = compute_fingerprint(message)

        with self._lock:
            if epoch is not None and epoch != self._epochs.get(mailbox, 0):
                logger.info(f"{mailbox} was removed while being fetched; observation dropped")
                return Decision.NO_MESSAGE

            now = self.clock()
            decision = decide(
                fingerprint=fingerprint,
                stored=self.store.get(mailbox),
                warmed_up=warmed_up,
                last_notified_at=self._last_notified.get(mailbox),
                now=now,
                cooldown_seconds=self.cooldown_seconds,
            )

            if decision is Decision.UNCHANGED:
                return decision
            if decision is Decision.NOTIFY:
                self._last_notified[mailbox] = now
            self.store.save(mailbox, fingerprint)

        if decision is Decision.SUPPRESSED:
            logger.info(f"{mailbox}: new content inside {self.cooldown_seconds:g}s cooldown; recorded without notifying")
        else:
            logger.debug(f"{mailbox}: {decision.value} ({fingerprint[:12]})")
        return decision

    def forget(self, mailbox: str) -> None:
        """Return a mailbox to the never-seen state (seen entry and cooldown)."""
        with self._lock:
            self._epochs[mailbox] = self._epochs.get(mailbox, 0) + 1
            self._last_notified.pop(mailbox, None)
            self.store.forget(mailbox)
