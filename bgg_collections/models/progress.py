"""Loading status data models."""

from dataclasses import dataclass
from enum import Enum

from .game import GameInfo
from .results import RetryLater


class LoadingKind(Enum):
    """What a loading entry is tracking."""
    COLLECTION = "collection"
    GAME = "game"
    PLAYS = "plays"


@dataclass(frozen=True)
class LoadingStatus:
    """Loading state of one collection, game or plays request."""
    kind: LoadingKind
    is_loading: bool
    username: str | None = None
    game: GameInfo | None = None
    retry_info: RetryLater | None = None

    def matches(self, kind: LoadingKind, key: str | int) -> bool:
        """Check if this entry tracks the given username or game id."""
        if self.kind != kind:
            return False
        if kind == LoadingKind.GAME:
            return self.game is not None and self.game.id == key
        return self.username == key
