from typing import Optional

from models.data_models import NormalizedMessage

# Telegram rejects messages longer than this
MAX_MESSAGE_CHARS = 4096


def format_notification(mailbox: str, message: NormalizedMessage, otp: Optional[str]) -> str:
    """Text pushed to the operator when a mailbox receives a new message.

    Example:
        📬 a@x.com
        From: b@y.com
        Subject: Code
        OTP: 118822
    """
    return _clip(
        f"📬 {mailbox}\n"
        f"From: {message.sender or '?'}\n"
        f"Subject: {message.subject or '?'}\n"
        f"OTP: {otp or 'N/A'}"
    )


def format_mailbox_list(names: list[str]) -> str:
    if not names:
        return "📭 No mailboxes saved."
    return _clip("📧 Mailboxes:\n" + "\n".join(f"• {name}" for name in names))


def _clip(text: str) -> str:
    if len(text) <= MAX_MESSAGE_CHARS:
        return text
    return text[: MAX_MESSAGE_CHARS - 3] + "..."
