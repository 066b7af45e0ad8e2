from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ROOT_DIR = Path(__file__).parents[1]


class Settings(BaseSettings):
    """Manages application-wide configuration settings using Pydantic.
    Values are read from environment variables and from a `.env` file located
    at the project root.
    The settings are structured into logical groups:
    - Directory Paths: where rotating log files are written.
    - Users API: base URL, collection path and HTTP client limits.
    - Synchronization: retry policy for collection fetches and cache freshness.
    Attributes:
        ROOT_DIR (Path): The absolute path to the project's root directory.
        LOGS_DIR (Path): Path to the directory for log files.
        API_BASE_URL (str): Base URL of the remote API, without the collection path.
        USERS_PATH (str): Path of the users collection below `API_BASE_URL`.
        HTTP_TIMEOUT (float): Connect/read/write timeout of the HTTP client, in seconds.
        HTTP_MAX_CONNECTIONS (int): Connection pool size of the HTTP client.
        FETCH_MAX_ATTEMPTS (int): Total attempts for a collection fetch (first try included).
        FETCH_RETRY_DELAY (float): Fixed delay between fetch attempts, in seconds.
        CACHE_MAX_AGE (float): Age, in seconds, after which a fresh snapshot is refetched.
    """

    ROOT_DIR: Path = ROOT_DIR
    LOGS_DIR: Path = ROOT_DIR / "logs"

    # Users API
    API_BASE_URL: str = "http://localhost:8080/api"
    USERS_PATH: str = "/users"
    HTTP_TIMEOUT: float = 10.0
    HTTP_MAX_CONNECTIONS: int = 20

    # Synchronization policy
    FETCH_MAX_ATTEMPTS: int = 3
    FETCH_RETRY_DELAY: float = 1.0
    CACHE_MAX_AGE: float = 30.0

    @property
    def USERS_URL(self) -> str:
        """Absolute URL of the users collection."""
        return f"{self.API_BASE_URL.rstrip('/')}/{self.USERS_PATH.strip('/')}"

    # Pydantic -> .env
    model_config = SettingsConfigDict(
        env_file=ROOT_DIR / ".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("FETCH_MAX_ATTEMPTS", "HTTP_MAX_CONNECTIONS")
    @classmethod
    def must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    @field_validator("FETCH_RETRY_DELAY", "CACHE_MAX_AGE", "HTTP_TIMEOUT")
    @classmethod
    def must_not_be_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("must not be negative")
        return v


settings = Settings()
