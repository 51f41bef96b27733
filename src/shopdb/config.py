# environment-driven settings for the data-access layer
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional, Tuple

from dotenv import load_dotenv

DEFAULT_DB_PATH = "data/shop.sqlite"
DEFAULT_POOL_SIZE = 5
DEFAULT_BUSY_TIMEOUT = 5.0


def _env_bool(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "on")


def _split_scripts(value: Optional[str]) -> Tuple[str, ...]:
    return tuple(s.strip() for s in (value or "").split(",") if s.strip())


@dataclass(frozen=True)
class Config:
    """
    Settings for a Database.

    Fields:
      - db_path: SQLite file the pool connects to
      - pool_size: max number of open connections
      - busy_timeout: seconds a writer waits on a held write lock
      - init_scripts: SQL files run once when the database has no Users table
      - debug: log at DEBUG level
    """

    db_path: str = DEFAULT_DB_PATH
    pool_size: int = DEFAULT_POOL_SIZE
    busy_timeout: float = DEFAULT_BUSY_TIMEOUT
    init_scripts: Tuple[str, ...] = field(default_factory=tuple)
    debug: bool = False

    def __post_init__(self) -> None:
        if self.pool_size < 1:
            raise ValueError(f"pool_size must be at least 1, got {self.pool_size}")
        if self.busy_timeout < 0:
            raise ValueError(
                f"busy_timeout cannot be negative, got {self.busy_timeout}"
            )

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "Config":
        """Build a Config from SHOPDB_* environment variables (and .env if present)."""
        if dotenv:
            load_dotenv()
        return cls(
            db_path=os.getenv("SHOPDB_PATH", DEFAULT_DB_PATH),
            pool_size=int(os.getenv("SHOPDB_POOL_SIZE", DEFAULT_POOL_SIZE)),
            busy_timeout=float(os.getenv("SHOPDB_BUSY_TIMEOUT", DEFAULT_BUSY_TIMEOUT)),
            init_scripts=_split_scripts(os.getenv("SHOPDB_INIT_SCRIPTS")),
            debug=_env_bool(os.getenv("DEBUG")),
        )
