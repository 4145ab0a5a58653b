from typing import Any, Optional

from models.data_models import NormalizedMessage
from utils.logger import get_logger

logger = get_logger(__name__)

# Field names seen across the API's response shapes, in order of preference
SENDER_FIELDS = ("from", "sender")
SUBJECT_FIELDS = ("subject",)
TEXT_FIELDS = ("text", "body", "content")


def parse_payload(payload: Any) -> Optional[NormalizedMessage]:
    """Turn a decoded mail API response into a NormalizedMessage.

    The API answers in one of three shapes:
    - a list of messages (the first one is the latest)
    - an envelope object whose "data" key holds the message (or a list of them)
    - the bare message object

    Returns None for anything that does not resolve to a JSON object; that is
    "no message", not an error. An object that carries none of the sender,
    subject or text fields (an error envelope such as {"success": false})
    is also "no message" rather than an all-empty message, so the fetcher
    goes on to the fallback folder and an empty fingerprint is never
    recorded.
    """
    message = _unwrap(payload)
    if not isinstance(message, dict):
        logger.debug(f"Payload has no message object (got {type(message).__name__})")
        return None

    normalized = NormalizedMessage(
        sender=_first_field(message, SENDER_FIELDS),
        subject=_first_field(message, SUBJECT_FIELDS),
        text=_first_field(message, TEXT_FIELDS),
    )
    if not (normalized.sender or normalized.subject or normalized.text):
        # error envelopes such as {"success": false, "msg": "..."} land here
        logger.debug(f"Payload object carries no message fields: {sorted(message)}")
        return None
    return normalized


def _unwrap(payload: Any) -> Any:
    if isinstance(payload, list):
        return payload[0] if payload else None
    if isinstance(payload, dict) and payload.get("data"):
        data = payload["data"]
        if isinstance(data, list):
            return data[0] if data else None
        return data
    return payload


def _first_field(message: dict, names: tuple[str, ...]) -> str:
    """Return the first non-empty value among names, as a string ("" if none)."""
    for name in names:
        value = message.get(name)
        if value is None or value == "":
            continue
        if isinstance(value, dict):
            # some senders arrive as {"name": ..., "address": ...}
            value = value.get("address") or value.get("name") or ""
        return str(value)
    return ""
