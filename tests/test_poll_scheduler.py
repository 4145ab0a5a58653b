"""Tests for the poll scheduler's tick behaviour."""

import threading

import requests

from conftest import make_mailbox
from models.data_models import NormalizedMessage
from watcher.fingerprint import compute_fingerprint


def test_otp_scenario_across_three_ticks(scheduler, directory, source, seen_store, notifier, clock):
    """Warm-up, unchanged content, then a new code past the cooldown."""
    mailbox = make_mailbox("a@x.com")
    directory.add([mailbox])
    first = NormalizedMessage(sender="b@y.com", subject="Code", text="Your code is 482913")
    second = NormalizedMessage(sender="b@y.com", subject="Code", text="Your code is 118822")

    source.set(mailbox.account, "inbox", first)
    scheduler.run_tick()
    assert notifier.sent == []
    assert seen_store.get("a@x.com") == compute_fingerprint(first)

    clock.advance(5)
    scheduler.run_tick()
    assert notifier.sent == []
    assert seen_store.get("a@x.com") == compute_fingerprint(first)

    clock.advance(20)
    source.set(mailbox.account, "inbox", second)
    report = scheduler.run_tick()
    assert report.notified == 1
    assert len(notifier.sent) == 1
    assert "OTP: 118822" in notifier.sent[0]
    assert "a@x.com" in notifier.sent[0]
    assert seen_store.get("a@x.com") == compute_fingerprint(second)


def test_warmup_seeds_every_mailbox_without_notifying(scheduler, directory, source, seen_store, notifier):
    mailboxes = [make_mailbox(f"user{i}@x.com") for i in range(3)]
    directory.add(mailboxes)
    for i, mailbox in enumerate(mailboxes):
        source.set(mailbox.account, "inbox", NormalizedMessage("b@y.com", "Code", f"code {1000 + i}"))

    assert not scheduler.warmed_up
    report = scheduler.run_tick()

    assert scheduler.warmed_up
    assert report.seeded == 3
    assert notifier.sent == []
    assert len(seen_store.snapshot()) == 3


def test_unchanged_content_never_renotifies(scheduler, directory, source, notifier, clock, otp_message):
    mailbox = make_mailbox("a@x.com")
    directory.add([mailbox])
    source.set(mailbox.account, "inbox", otp_message)

    for _ in range(6):
        scheduler.run_tick()
        clock.advance(30)

    assert notifier.sent == []


def test_cooldown_suppresses_back_to_back_changes(scheduler, directory, source, seen_store, notifier, clock):
    mailbox = make_mailbox("a@x.com")
    directory.add([mailbox])
    source.set(mailbox.account, "inbox", NormalizedMessage("b@y.com", "Code", "0000"))
    scheduler.run_tick()

    source.set(mailbox.account, "inbox", NormalizedMessage("b@y.com", "Code", "1111"))
    scheduler.run_tick()
    clock.advance(5)
    latest = NormalizedMessage("b@y.com", "Code", "2222")
    source.set(mailbox.account, "inbox", latest)
    report = scheduler.run_tick()

    assert report.suppressed == 1
    assert len(notifier.sent) == 1
    assert seen_store.get("a@x.com") == compute_fingerprint(latest)


def test_junk_message_is_the_observation_when_inbox_fails(scheduler, directory, source, notifier):
    mailbox = make_mailbox("a@x.com")
    directory.add([mailbox])
    scheduler.run_tick()  # warm-up with nothing to see

    source.set(mailbox.account, "inbox", requests.ConnectionError("down"))
    source.set(mailbox.account, "junkemail", NormalizedMessage("spam@y.com", "Verify", "code 556677"))
    scheduler.run_tick()

    assert len(notifier.sent) == 1
    assert "OTP: 556677" in notifier.sent[0]


def test_removal_then_readd_notifies_once(scheduler, directory, source, notifier, otp_message):
    mailbox = make_mailbox("a@x.com")
    directory.add([mailbox])
    source.set(mailbox.account, "inbox", otp_message)
    scheduler.run_tick()
    scheduler.run_tick()
    assert notifier.sent == []

    scheduler.forget(directory.remove(["a@x.com"]))
    directory.add([mailbox])
    scheduler.run_tick()
    scheduler.run_tick()

    assert len(notifier.sent) == 1


def test_removal_detected_between_ticks_clears_state(scheduler, directory, source, seen_store, otp_message):
    mailbox = make_mailbox("a@x.com")
    directory.add([mailbox])
    source.set(mailbox.account, "inbox", otp_message)
    scheduler.run_tick()
    assert seen_store.get("a@x.com") is not None

    directory.remove(["a@x.com"])
    scheduler.run_tick()

    assert seen_store.get("a@x.com") is None


def test_leftover_state_for_unknown_mailbox_is_cleared_at_startup(scheduler, seen_store):
    seen_store.save("gone@x.com", "f" * 64)
    scheduler.run_tick()
    assert seen_store.get("gone@x.com") is None


def test_fetch_failure_writes_no_state_and_does_not_stop_tick(scheduler, directory, source, seen_store, otp_message):
    broken = make_mailbox("broken@x.com")
    healthy = make_mailbox("ok@x.com")
    directory.add([broken, healthy])
    source.set(broken.account, "inbox", requests.Timeout("slow"))
    source.set(broken.account, "junkemail", requests.Timeout("slow"))
    source.set(healthy.account, "inbox", otp_message)

    report = scheduler.run_tick()

    assert report.mailboxes == 2
    assert report.fetched == 1
    assert seen_store.get("broken@x.com") is None
    assert seen_store.get("ok@x.com") == compute_fingerprint(otp_message)


def test_delivery_failure_keeps_recorded_state(directory, source, detector, seen_store, otp_message):
    from conftest import RecordingNotifier
    from mail_source.fetcher import MessageFetcher
    from watcher.poll_scheduler import PollScheduler

    failing = RecordingNotifier(succeed=False)
    scheduler = PollScheduler(directory, MessageFetcher(source), detector, failing.deliver)
    mailbox = make_mailbox("a@x.com")
    directory.add([mailbox])
    scheduler.run_tick()

    source.set(mailbox.account, "inbox", otp_message)
    scheduler.run_tick()
    scheduler.run_tick()

    assert len(failing.sent) == 1
    assert seen_store.get("a@x.com") == compute_fingerprint(otp_message)


def test_delivery_exception_does_not_abort_tick(directory, source, detector, seen_store):
    from mail_source.fetcher import MessageFetcher
    from watcher.poll_scheduler import PollScheduler

    def explode(text):
        raise RuntimeError("transport down")

    scheduler = PollScheduler(directory, MessageFetcher(source), detector, explode)
    first, second = make_mailbox("a@x.com"), make_mailbox("c@x.com")
    directory.add([first, second])
    scheduler.run_tick()
    source.set(first.account, "inbox", NormalizedMessage("s", "t", "1111"))
    source.set(second.account, "inbox", NormalizedMessage("s", "t", "2222"))

    report = scheduler.run_tick()

    assert report.notified == 2
    assert seen_store.get("c@x.com") is not None


def test_overlapping_tick_is_skipped(scheduler, directory, source):
    """A tick started while another holds the lock returns None."""
    entered = threading.Event()
    release = threading.Event()
    results = []
    mailbox = make_mailbox("a@x.com")
    directory.add([mailbox])

    original = source.fetch_latest

    def slow_fetch(account, folder):
        entered.set()
        release.wait(timeout=5)
        return original(account, folder)

    source.fetch_latest = slow_fetch
    worker = threading.Thread(target=lambda: results.append(scheduler.run_tick()))
    worker.start()
    assert entered.wait(timeout=5)

    assert scheduler.run_tick() is None

    release.set()
    worker.join(timeout=5)
    assert results and results[0] is not None


def test_mailboxes_visited_in_directory_order(scheduler, directory, source):
    names = ["c@x.com", "a@x.com", "b@x.com"]
    directory.add([make_mailbox(name) for name in names])

    scheduler.run_tick()

    inbox_calls = [account.split(":")[0] for account, folder in source.calls if folder == "inbox"]
    assert inbox_calls == names


def test_stop_ends_start_loop(scheduler):
    thread = threading.Thread(target=scheduler.start)
    thread.start()
    scheduler.stop()
    thread.join(timeout=5)
    assert not thread.is_alive()
