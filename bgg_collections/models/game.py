"""Game-related data models."""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum


ANY_PLAYER_COUNT = "any"


class GameInfoKind(Enum):
    """Which attachments a game record currently carries."""
    BASE = "base"
    EXTENDED = "extended"
    WITH_PLAYS = "with_plays"
    FULL = "full"


@dataclass(frozen=True)
class BoardGameFamily:
    """A ranked family a game belongs to, e.g. Strategy Games."""
    name: str
    friendly_name: str
    value: float
    bayes_average: float | None = None


@dataclass(frozen=True)
class NumberOfPlayersVotes:
    """Community votes for playing a game with a given number of players."""
    number_of_players: str
    best: int
    recommended: int
    not_recommended: int

    @property
    def total(self) -> int:
        return self.best + self.recommended + self.not_recommended


@dataclass(frozen=True)
class ExtendedGameInfo:
    """Secondary metadata fetched per game id in batches."""
    game_id: int
    description: str | None = None
    weight: float | None = None  # 1-5 complexity scale
    mechanics: list[str] = field(default_factory=list)
    categories: list[str] = field(default_factory=list)
    # Keyed by player count as a string, "N+" entries under ANY_PLAYER_COUNT
    suggested_number_of_players: dict[str, NumberOfPlayersVotes] = field(default_factory=dict)


@dataclass(frozen=True)
class PlayRecord:
    """A single logged play of a game."""
    play_id: int
    date: date
    quantity: int
    game_id: int
    length: int | None = None  # Minutes
    played_by: str | None = None


@dataclass(frozen=True)
class GamePlayInfo:
    """Play history aggregated for one game across the active users."""
    plays: list[PlayRecord]
    last_played: date | None
    time_played_minutes: int


@dataclass(frozen=True)
class GameInfo:
    """Core game record as reported by a user's collection.

    Extended info and play info are attached later; until then the
    corresponding fields are None and ``kind`` reports what is present.
    """
    id: int
    name: str
    average_rating: float = 0.0
    thumbnail_url: str | None = None
    image_url: str | None = None
    year_published: int | None = None
    min_players: int | None = None
    max_players: int | None = None
    min_playtime: int | None = None
    max_playtime: int | None = None
    playing_time: int | None = None
    families: list[BoardGameFamily] = field(default_factory=list)
    owners: list[str] | None = None
    user_rating: dict[str, float | None] | None = None
    extended: ExtendedGameInfo | None = None
    play_info: GamePlayInfo | None = None

    @property
    def kind(self) -> GameInfoKind:
        if self.extended is not None and self.play_info is not None:
            return GameInfoKind.FULL
        if self.extended is not None:
            return GameInfoKind.EXTENDED
        if self.play_info is not None:
            return GameInfoKind.WITH_PLAYS
        return GameInfoKind.BASE

    @property
    def weight(self) -> float | None:
        return self.extended.weight if self.extended is not None else None

    @property
    def last_played(self) -> date | None:
        return self.play_info.last_played if self.play_info is not None else None

    @property
    def play_count(self) -> int:
        return len(self.play_info.plays) if self.play_info is not None else 0
