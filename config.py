import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()

DEFAULT_MAIL_API_BASE = "https://gapi.hotmail007.com/v1/mail/getFirstMail"


def _require(key: str) -> str:
    val = os.getenv(key)
    if not val:
        raise EnvironmentError(f"Missing required environment variable: {key}")
    return val


def _optional(key: str, default: str = "") -> str:
    return os.getenv(key, default)


def _int(key: str, default: str, minimum: int) -> int:
    """Read an integer env var and reject values below minimum."""
    raw = _optional(key, default).strip()
    try:
        value = int(raw)
    except ValueError:
        raise EnvironmentError(f"{key} must be an integer, got {raw!r}") from None
    if value < minimum:
        raise EnvironmentError(f"{key} must be >= {minimum}, got {value}")
    return value


@dataclass
class Settings:
    # Telegram
    bot_token: str
    owner_chat_id: str          # the single operator; "" disables delivery and owner commands

    # Mail API
    client_key: str
    mail_api_base: str
    primary_folder: str
    fallback_folder: str
    fetch_timeout_seconds: float

    # Watching
    poll_interval_ms: int
    cooldown_ms: int            # 0 disables cooldown suppression

    # Storage
    state_db_path: str

    # Logging
    log_level: str
    log_file: str

    @property
    def poll_interval_seconds(self) -> float:
        return self.poll_interval_ms / 1000

    @property
    def cooldown_seconds(self) -> float:
        return self.cooldown_ms / 1000


def load_settings() -> Settings:
    return Settings(
        bot_token=_require("BOT_TOKEN"),
        owner_chat_id=_optional("CHAT_ID", "").strip(),
        client_key=_optional("CLIENT_KEY", ""),
        mail_api_base=_optional("MAIL_API_BASE", DEFAULT_MAIL_API_BASE),
        primary_folder=_optional("PRIMARY_FOLDER", "inbox"),
        fallback_folder=_optional("FALLBACK_FOLDER", "junkemail"),
        fetch_timeout_seconds=float(_int("FETCH_TIMEOUT_SECONDS", "10", minimum=1)),
        poll_interval_ms=_int("POLL_INTERVAL_MS", "5000", minimum=1),
        cooldown_ms=_int("COOLDOWN_MS", "15000", minimum=0),
        state_db_path=_optional("STATE_DB_PATH", "data/otp_watch.db"),
        log_level=_optional("LOG_LEVEL", "INFO"),
        log_file=_optional("LOG_FILE", ""),
    )
