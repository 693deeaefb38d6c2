"""
Library settings loaded from environment variables (or a local .env file).

Per-pool sizing lives on sqlkv.models.Config; these are process-wide knobs.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )

    # Driver connect timeout (seconds), passed to pymysql/psycopg/sqlite3
    SQLKV_CONNECT_TIMEOUT: int = 10
    # Per-statement timeout (seconds) for PostgreSQL and MySQL; None = driver default
    SQLKV_STATEMENT_TIMEOUT: float | None = None
    # Idle connections older than this are pinged before being handed out again
    SQLKV_PING_IDLE_THRESHOLD: float = 30.0
    # Log every executed statement (with args interpolated) at DEBUG
    SQLKV_LOG_STATEMENTS: bool = False


settings = Settings()  # type: ignore
