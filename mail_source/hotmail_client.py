import json
import time
from typing import Callable, Optional

import requests

from mail_source.base_source import BaseMailSource
from mail_source.message_parser import parse_payload
from models.data_models import NormalizedMessage
from utils.logger import get_logger

logger = get_logger(__name__)

CHUNK_SIZE = 8192


class HotmailApiSource(BaseMailSource):
    """Reads the latest message of a mailbox through the hosted mail HTTP API.

    One GET per call: clientKey + account + folder as query parameters.

    The requests timeout only bounds the connect and each socket read, so a
    server that trickles bytes could keep a call open indefinitely. The body
    is therefore streamed and the whole call is abandoned with
    requests.Timeout once timeout_seconds have passed since it started.
    """

    def __init__(
        self,
        api_base: str,
        client_key: str,
        timeout_seconds: float = 10,
        session: requests.Session | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.api_base = api_base
        self.client_key = client_key
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()
        self.clock = clock

    def fetch_latest(self, account: str, folder: str) -> Optional[NormalizedMessage]:
        """GET the first mail of the folder.

        Raises:
            requests.RequestException: network error, timeout or non-2xx status.
        """
        deadline = self.clock() + self.timeout_seconds
        response = self.session.get(
            self.api_base,
            params={
                "clientKey": self.client_key,
                "account": account,
                "folder": folder,
            },
            timeout=self.timeout_seconds,
            stream=True,
        )
        try:
            response.raise_for_status()
            body = self._read_body(response, deadline)
        finally:
            response.close()

        try:
            payload = json.loads(body)
        except ValueError:
            logger.debug(f"Non-JSON response from mail API for folder '{folder}'")
            return None

        return parse_payload(payload)

    def _read_body(self, response: requests.Response, deadline: float) -> bytes:
        chunks = []
        for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
            chunks.append(chunk)
            if self.clock() > deadline:
                raise requests.Timeout(
                    f"Mail API response not complete after {self.timeout_seconds:g}s"
                )
        return b"".join(chunks)

    def close(self) -> None:
        self.session.close()
