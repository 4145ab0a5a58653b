from typing import Optional

from mail_source.base_source import BaseMailSource
from models.data_models import MailboxRecord, NormalizedMessage
from utils.logger import get_logger

logger = get_logger(__name__)


class MessageFetcher:
    """Gets the latest message of a mailbox, looking in the inbox first and
    the junk folder second.

    A failed attempt (exception or empty result) on the primary folder falls
    through to the fallback folder. If both come up empty the mailbox simply
    has "no message" this tick; errors never propagate to the caller.
    """

    def __init__(
        self,
        source: BaseMailSource,
        primary_folder: str = "inbox",
        fallback_folder: str = "junkemail",
    ):
        self.source = source
        self.folders = (primary_folder, fallback_folder)

    def fetch(self, mailbox: MailboxRecord) -> Optional[NormalizedMessage]:
        for folder in self.folders:
            message = self._attempt(mailbox, folder)
            if message is not None:
                return message
        logger.debug(f"No message for {mailbox.name} in {' or '.join(self.folders)}")
        return None

    def _attempt(self, mailbox: MailboxRecord, folder: str) -> Optional[NormalizedMessage]:
        try:
            return self.source.fetch_latest(mailbox.account, folder)
        except Exception as e:
            logger.warning(f"Fetch failed for {mailbox.name} [{folder}]: {e}")
            return None
