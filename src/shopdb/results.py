# explicit outcome of write operations
from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ShopDBError(Exception):
    """Base class for errors raised by shopdb itself (not the driver)."""


class DatabaseClosedError(ShopDBError):
    """Raised when a connection is requested from a closed Database."""


class ErrorKind(str, Enum):
    NONE = "none"
    CONSTRAINT = "constraint"
    CONNECTION = "connection"
    LOCK_TIMEOUT = "lock_timeout"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    VALIDATION = "validation"
    UNKNOWN = "unknown"


_LOCK_MESSAGES = ("database is locked", "database table is locked", "busy")
_CONNECTION_MESSAGES = (
    "unable to open database",
    "disk i/o error",
    "closed",
    "not a database",
)


def classify(exc: BaseException) -> ErrorKind:
    """Map an exception raised during a write to an ErrorKind."""
    if isinstance(exc, DatabaseClosedError):
        return ErrorKind.CONNECTION
    if isinstance(exc, sqlite3.IntegrityError):
        return ErrorKind.CONSTRAINT

    msg = str(exc).lower()
    if isinstance(exc, sqlite3.OperationalError):
        if any(m in msg for m in _LOCK_MESSAGES):
            return ErrorKind.LOCK_TIMEOUT
        if any(m in msg for m in _CONNECTION_MESSAGES):
            return ErrorKind.CONNECTION
        return ErrorKind.UNKNOWN
    # aiosqlite raises ValueError("Connection closed"), sqlite3 a ProgrammingError
    if isinstance(exc, (sqlite3.ProgrammingError, ValueError)) and "closed" in msg:
        return ErrorKind.CONNECTION
    return ErrorKind.UNKNOWN


@dataclass(frozen=True)
class WriteResult:
    """
    Outcome of a write operation.

    ``ok`` is True only when the statement committed; otherwise ``kind`` says
    why it did not and ``error`` carries the message. ``rowcount`` and
    ``lastrowid`` come from the mutating statement.
    """

    ok: bool
    kind: ErrorKind = ErrorKind.NONE
    error: Optional[str] = None
    rowcount: int = 0
    lastrowid: Optional[int] = None

    def __bool__(self) -> bool:
        return self.ok

    @classmethod
    def success(cls, rowcount: int = 0, lastrowid: Optional[int] = None) -> "WriteResult":
        return cls(ok=True, rowcount=rowcount, lastrowid=lastrowid)

    @classmethod
    def failure(cls, kind: ErrorKind, error: str) -> "WriteResult":
        if kind is ErrorKind.NONE:
            raise ValueError("a failed WriteResult needs an error kind")
        return cls(ok=False, kind=kind, error=error)

    @classmethod
    def from_exception(cls, exc: BaseException) -> "WriteResult":
        return cls.failure(classify(exc), str(exc) or type(exc).__name__)
