import hashlib

from models.data_models import NormalizedMessage

# Only the start of the body takes part; long bodies that share sender,
# subject and this prefix collapse to the same fingerprint.
BODY_PREFIX_CHARS = 400
SEPARATOR = "|"


def compute_fingerprint(message: NormalizedMessage) -> str:
    """Content-derived identity of a message: SHA-256 hex of sender, subject
    and the first BODY_PREFIX_CHARS characters of the body.

    Upstream message ids are not used; they change between polls for the
    same content.
    """
    material = SEPARATOR.join(
        (message.sender, message.subject, message.text[:BODY_PREFIX_CHARS])
    )
    return hashlib.sha256(material.encode("utf-8")).hexdigest()
