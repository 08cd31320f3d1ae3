"""Filter and sort option models."""

from dataclasses import dataclass
from enum import Enum


class SortKey(Enum):
    """Simple sort criteria."""
    ALPHABETIC = "alphabetic"
    BGG_RATING = "bggrating"
    NEW = "new"
    OLD = "old"
    USER_RATING = "userrating"
    WEIGHT_LIGHT = "weight-light"
    WEIGHT_HEAVY = "weight-heavy"
    PLAYED_RECENTLY = "playedRecently"
    PLAYED_LONG_AGO = "playedLongAgo"
    PLAYED_A_LOT = "playedALot"
    PLAYED_NOT_A_LOT = "playedNotALot"


@dataclass(frozen=True)
class SuggestedPlayers:
    """Parametric sort: best fit for a number of players."""
    number_of_players: int | None = None


SortOption = SortKey | SuggestedPlayers


@dataclass(frozen=True)
class PlaytimeOption:
    """Window in minutes a game's whole playtime range must fit in."""
    minimum: int | None = None
    maximum: int | None = None


@dataclass(frozen=True)
class FilterAndSortOptions:
    """How to filter and sort a collection."""
    playtime: PlaytimeOption | None = None
    player_count: int | None = None
    sort_option: SortOption | tuple[SortOption, ...] | None = None
