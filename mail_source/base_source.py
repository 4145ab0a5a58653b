from abc import ABC, abstractmethod
from typing import Optional

from models.data_models import NormalizedMessage


class BaseMailSource(ABC):
    """Abstract base class for anything that can return a mailbox's latest message.

    The HTTP mail API plugs into the fetcher by implementing this single
    interface; tests plug in scripted fakes the same way.
    """

    @abstractmethod
    def fetch_latest(self, account: str, folder: str) -> Optional[NormalizedMessage]:
        """Return the newest message in the given folder, or None if there is none.

        Args:
            account: Opaque credential line of the mailbox.
            folder:  Upstream folder name, e.g. "inbox" or "junkemail".

        Implementations may raise on network errors or timeouts; the caller
        folds those into "no message".
        """
        ...
