"""Configuration via environment variables.

Individual POSTGRES_* variables, with a SQLite fallback for local use.
"""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # --- Database ---
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_db: str = "postgres"
    postgres_user: str = "postgres"
    postgres_password: str = ""

    # SQLite fallback for local dev (set USE_SQLITE=true)
    use_sqlite: bool = False
    sqlite_path: str = "distribution.db"

    @property
    def database_url(self) -> str:
        if self.use_sqlite:
            return f"sqlite:///{self.sqlite_path}"
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    # Contact field limits
    first_name_max_length: int = 100
    notes_max_length: int = 500

    # Item status policy. True keeps free transitions (completed -> pending is allowed),
    # False only lets an item move forward out of pending.
    allow_status_regression: bool = True

    # --- Logging (CLI entry points) ---
    log_level: str = "INFO"

    model_config = {"env_prefix": ""}
