"""Data models for the boardgame collection pipeline."""

from .config import AppConfig, RetryDelays
from .game import (
    ANY_PLAYER_COUNT,
    BoardGameFamily,
    ExtendedGameInfo,
    GameInfo,
    GameInfoKind,
    GamePlayInfo,
    NumberOfPlayersVotes,
    PlayRecord,
)
from .options import FilterAndSortOptions, PlaytimeOption, SortKey, SortOption, SuggestedPlayers
from .progress import LoadingKind, LoadingStatus
from .results import Ready, RetryLater, UserInfo, UserValidity

__all__ = [
    "ANY_PLAYER_COUNT",
    "AppConfig",
    "BoardGameFamily",
    "ExtendedGameInfo",
    "FilterAndSortOptions",
    "GameInfo",
    "GameInfoKind",
    "GamePlayInfo",
    "LoadingKind",
    "LoadingStatus",
    "NumberOfPlayersVotes",
    "PlayRecord",
    "PlaytimeOption",
    "Ready",
    "RetryDelays",
    "RetryLater",
    "SortKey",
    "SortOption",
    "SuggestedPlayers",
    "UserInfo",
    "UserValidity",
]
