import re
from typing import Optional

from models.data_models import NormalizedMessage

# First standalone run of 4-8 digits. Best effort: dates, phone numbers and
# amounts match too.
OTP_PATTERN = re.compile(r"\b\d{4,8}\b")


def extract_otp(text: str) -> Optional[str]:
    """Return the first 4-8 digit code found in text, or None."""
    match = OTP_PATTERN.search(text or "")
    return match.group(0) if match else None


def extract_message_otp(message: NormalizedMessage) -> Optional[str]:
    """Look for a code in the subject first, then the body."""
    return extract_otp(f"{message.subject} {message.text}")
