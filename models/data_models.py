from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class MailboxRecord:
    """One watched mailbox.

    name is the unique identity (the email address); account is the opaque
    credential line handed to the mail API and never inspected by the watcher.
    """
    name: str
    account: str


@dataclass(frozen=True)
class NormalizedMessage:
    """Latest message of a mailbox, reduced to the fields the watcher uses.

    Built by mail_source.message_parser from whatever shape the API returns.
    Missing fields are empty strings, never None.
    """
    sender: str = ""
    subject: str = ""
    text: str = ""


class Decision(Enum):
    """What the change detector did with one observation."""
    NO_MESSAGE = "no_message"       # nothing fetched; state untouched
    UNCHANGED = "unchanged"         # same fingerprint as stored; no write
    SEEDED = "seeded"               # warm-up cycle; recorded without notifying
    SUPPRESSED = "suppressed"       # inside cooldown window; recorded without notifying
    NOTIFY = "notify"               # recorded and operator must be told


@dataclass
class TickReport:
    """Counters for one pass of the poll scheduler over the mailbox directory."""
    mailboxes: int = 0
    fetched: int = 0
    notified: int = 0
    suppressed: int = 0
    seeded: int = 0
    unchanged: int = 0
    failed: int = 0
