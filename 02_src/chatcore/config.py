"""Project-level configuration and path helpers."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Union

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
DATA_DIR = PROJECT_ROOT / "03_data"
LOGS_DIR = PROJECT_ROOT / "04_logs"
DEFAULT_DB_PATH = DATA_DIR / "chat.db"
DEFAULT_LOG_PATH = LOGS_DIR / "app.log"

DATA_DIR.mkdir(parents=True, exist_ok=True)
LOGS_DIR.mkdir(parents=True, exist_ok=True)

# Message limits
MAX_FILES_PER_MESSAGE = 10
MAX_FILE_SIZE_BYTES = 10 * 1024 * 1024

# Pending live pushes buffered per subscriber before new ones are dropped
FANOUT_CAPACITY = 100

# Largest value an SQLite INTEGER column can hold
MAX_ROW_ID = 2**63 - 1

TOKEN_TTL_SECONDS = 60 * 60 * 24


PathLike = Union[str, Path]


def resolve_db_path(env_value: PathLike | None = None) -> PathLike:
    """Resolve DATABASE_URL to an absolute path."""
    if not env_value:
        return DEFAULT_DB_PATH

    value = str(env_value)
    if value == ":memory:":
        return ":memory:"

    # Accept the sqlite URL form used by other tooling
    if value.startswith("sqlite:///"):
        value = value[len("sqlite:///"):]
    elif value.startswith("sqlite:"):
        value = value[len("sqlite:"):]

    candidate = Path(value)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


@dataclass
class Settings:
    """Runtime settings read from the environment."""

    database_url: str | None = None
    jwt_secret: str | None = None
    api_host: str = "localhost"
    api_port: int = 8000
    log_level: str = "INFO"
    fanout_capacity: int = FANOUT_CAPACITY
    token_ttl_seconds: int = TOKEN_TTL_SECONDS


def load_settings() -> Settings:
    """Build Settings from environment variables (call load_dotenv first)."""
    return Settings(
        database_url=os.getenv("DATABASE_URL"),
        jwt_secret=os.getenv("JWT_SECRET"),
        api_host=os.getenv("API_HOST", "localhost"),
        api_port=int(os.getenv("API_PORT", "8000")),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        fanout_capacity=int(os.getenv("FANOUT_CAPACITY", str(FANOUT_CAPACITY))),
        token_ttl_seconds=int(os.getenv("TOKEN_TTL_SECONDS", str(TOKEN_TTL_SECONDS))),
    )
