from notifier.telegram_client import TelegramClient
from utils.logger import get_logger

logger = get_logger(__name__)


class OperatorNotifier:
    """Delivers text to the single operator chat.

    Fire-and-forget: failures are logged by the client and reported as
    False, never retried here.
    """

    def __init__(self, client: TelegramClient, operator_chat_id: str):
        self.client = client
        self.operator_chat_id = operator_chat_id
        if not operator_chat_id:
            logger.warning("CHAT_ID missing — notifications will not be delivered")

    def deliver(self, text: str) -> bool:
        if not self.operator_chat_id:
            logger.warning("No operator chat configured; dropping notification")
            return False
        return self.client.send_message(self.operator_chat_id, text)
