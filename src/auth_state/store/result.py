"""Tagged results of store reads."""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class ReadStatus(str, Enum):
    """Outcome of a single-key read."""

    OK = "ok"
    NOT_FOUND = "not_found"
    FAILED = "failed"


@dataclass(frozen=True)
class ReadResult:
    """A read outcome that keeps "absent" and "failed" apart."""

    status: ReadStatus
    value: Any = None
    error: Exception | None = None

    @classmethod
    def ok(cls, value: Any) -> "ReadResult":
        return cls(ReadStatus.OK, value)

    @classmethod
    def not_found(cls) -> "ReadResult":
        return cls(ReadStatus.NOT_FOUND)

    @classmethod
    def failed(cls, error: Exception) -> "ReadResult":
        return cls(ReadStatus.FAILED, error=error)

    @property
    def found(self) -> bool:
        return self.status is ReadStatus.OK
