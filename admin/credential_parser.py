from models.data_models import MailboxRecord

FIELD_COUNT = 4  # email:password:refresh_token:client_id


def parse_credential_lines(text: str) -> list[MailboxRecord]:
    """Parse pasted or uploaded credential lines into mailbox records.

    Each line must be email:password:refresh_token:client_id. Blank and
    malformed lines are skipped silently. The whole line is kept as the
    opaque account string the mail API expects.
    """
    records = []
    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue
        parts = line.split(":")
        if len(parts) != FIELD_COUNT:
            continue
        email = parts[0].strip()
        if "@" not in email:
            continue
        records.append(MailboxRecord(name=email, account=line))
    return records
