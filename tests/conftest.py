"""Shared fixtures for tests."""

import pytest

from mail_source.base_source import BaseMailSource
from mail_source.fetcher import MessageFetcher
from models.data_models import MailboxRecord, NormalizedMessage
from utils.mailbox_directory import MailboxDirectory
from utils.seen_store import SeenStore
from watcher.change_detector import ChangeDetector
from watcher.poll_scheduler import PollScheduler


class FakeSource(BaseMailSource):
    """Scripted mail source keyed by (account, folder).

    A value may be a NormalizedMessage, None, or an exception instance to raise.
    """

    def __init__(self):
        self.responses: dict[tuple[str, str], object] = {}
        self.calls: list[tuple[str, str]] = []

    def set(self, account: str, folder: str, response) -> None:
        self.responses[(account, folder)] = response

    def fetch_latest(self, account, folder):
        self.calls.append((account, folder))
        response = self.responses.get((account, folder))
        if isinstance(response, Exception):
            raise response
        return response


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingNotifier:
    def __init__(self, succeed: bool = True):
        self.sent: list[str] = []
        self.succeed = succeed

    def deliver(self, text: str) -> bool:
        self.sent.append(text)
        return self.succeed


def make_mailbox(name: str) -> MailboxRecord:
    return MailboxRecord(name=name, account=f"{name}:pass:refresh:client")


@pytest.fixture
def db_path(tmp_path) -> str:
    return str(tmp_path / "state" / "otp_watch.db")


@pytest.fixture
def seen_store(db_path):
    store = SeenStore(db_path=db_path)
    store.load()
    yield store
    store.close()


@pytest.fixture
def directory(db_path):
    mailboxes = MailboxDirectory(db_path=db_path)
    yield mailboxes
    mailboxes.close()


@pytest.fixture
def source() -> FakeSource:
    return FakeSource()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def detector(seen_store, clock) -> ChangeDetector:
    return ChangeDetector(seen_store, cooldown_seconds=15, clock=clock)


@pytest.fixture
def scheduler(directory, source, detector, notifier) -> PollScheduler:
    return PollScheduler(
        directory=directory,
        fetcher=MessageFetcher(source, primary_folder="inbox", fallback_folder="junkemail"),
        detector=detector,
        deliver=notifier.deliver,
        interval_seconds=5,
    )


@pytest.fixture
def otp_message() -> NormalizedMessage:
    return NormalizedMessage(sender="b@y.com", subject="Code", text="Your code is 482913")
