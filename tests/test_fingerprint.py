"""Tests for content fingerprinting."""

from models.data_models import NormalizedMessage
from watcher.fingerprint import BODY_PREFIX_CHARS, compute_fingerprint


def test_fingerprint_is_stable_hex_digest(otp_message):
    """Same content always hashes to the same 64-char hex digest."""
    first = compute_fingerprint(otp_message)
    second = compute_fingerprint(NormalizedMessage(sender="b@y.com", subject="Code", text="Your code is 482913"))
    assert first == second
    assert len(first) == 64
    int(first, 16)


def test_fingerprint_changes_with_each_field(otp_message):
    base = compute_fingerprint(otp_message)
    assert compute_fingerprint(NormalizedMessage("c@y.com", "Code", otp_message.text)) != base
    assert compute_fingerprint(NormalizedMessage("b@y.com", "Other", otp_message.text)) != base
    assert compute_fingerprint(NormalizedMessage("b@y.com", "Code", "Your code is 118822")) != base


def test_fingerprint_ignores_body_past_prefix():
    """Bodies that differ only after the prefix collapse to one fingerprint."""
    prefix = "x" * BODY_PREFIX_CHARS
    a = NormalizedMessage(sender="s", subject="t", text=prefix + "tail one")
    b = NormalizedMessage(sender="s", subject="t", text=prefix + "tail two")
    assert compute_fingerprint(a) == compute_fingerprint(b)


def test_fingerprint_fields_do_not_run_together():
    """The separator keeps ("ab", "c") and ("a", "bc") apart."""
    a = NormalizedMessage(sender="ab", subject="c", text="")
    b = NormalizedMessage(sender="a", subject="bc", text="")
    assert compute_fingerprint(a) != compute_fingerprint(b)
