from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict

_env_path = Path(__file__).resolve().parent.parent.parent / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(_env_path),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    DATABASE_URL: str
    SESSION_KEY: str
    SESSION_COOKIE_NAME: str = "newsdesk_session"
    API_BASE_URL: str = "http://localhost:8000"
    ADMIN_USER_ID: int = 1
    MESSAGE_MAX_LENGTH: int = 5000
    MESSAGE_HISTORY_LIMIT: int = 500
    CONVERSATION_POLL_SECONDS: float = 30.0
    MESSAGE_POLL_SECONDS: float = 5.0
    REQUEST_TIMEOUT_SECONDS: float = 10.0


settings = Settings()
