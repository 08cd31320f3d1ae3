"""Tagged results returned by a collection gateway."""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Ready(Generic[T]):
    """The remote source produced data."""
    items: list[T]


@dataclass(frozen=True)
class RetryLater:
    """The remote source has no data yet, or is throttling us."""
    backoff: bool = False
    error: str | None = None


class UserValidity(Enum):
    VALID = "valid"
    INVALID = "invalid"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class UserInfo:
    """Whether a username exists on the remote source."""
    validity: UserValidity
    username: str | None = None
    error: str | None = None

    @property
    def is_valid(self) -> bool:
        return self.validity == UserValidity.VALID
