"""Sorters ranking a collection by one or several criteria.

Every sorter returns a new list and sorts stably: games whose keys compare
equal keep the order they had in the input.
"""

import math
from abc import ABC, abstractmethod
from collections.abc import Sequence
from functools import lru_cache
from typing import Any

from ..models import ANY_PLAYER_COUNT, GameInfo, SortKey, SortOption, SuggestedPlayers
from .errors import ValidationError


class Sorter(ABC):
    """A sorter takes a collection and returns that collection sorted."""

    @abstractmethod
    def sort(self, collection: Sequence[GameInfo]) -> list[GameInfo]:
        ...


class KeySorter(Sorter):
    """Sorter driven by a per-game sort key, ascending."""

    def sort(self, collection: Sequence[GameInfo]) -> list[GameInfo]:
        return sorted(collection, key=self.sort_key)

    @abstractmethod
    def sort_key(self, game: GameInfo) -> Any:
        ...


class BggRatingSorter(KeySorter):
    def sort_key(self, game: GameInfo) -> float:
        return -game.average_rating


class NameSorter(KeySorter):
    def sort_key(self, game: GameInfo) -> tuple[str, str]:
        return game.name.casefold(), game.name


class NewSorter(KeySorter):
    def sort_key(self, game: GameInfo) -> float:
        # Unknown year counts as oldest
        return -game.year_published if game.year_published is not None else math.inf


class OldSorter(KeySorter):
    def sort_key(self, game: GameInfo) -> float:
        return game.year_published if game.year_published is not None else math.inf


class UserRatingSorter(KeySorter):
    def sort_key(self, game: GameInfo) -> float:
        return -(average_user_rating(game) or 0)


class HeavySorter(KeySorter):
    def sort_key(self, game: GameInfo) -> float:
        return -(game.weight or 0)


class LightSorter(KeySorter):
    def sort_key(self, game: GameInfo) -> float:
        return game.weight or 99


class RecentlyPlayedSorter(KeySorter):
    def sort_key(self, game: GameInfo) -> int:
        return -_last_played_ordinal(game)


class PlayedLongAgoSorter(KeySorter):
    def sort_key(self, game: GameInfo) -> int:
        return _last_played_ordinal(game)


class PlayedALotSorter(KeySorter):
    def sort_key(self, game: GameInfo) -> int:
        return -game.play_count


class PlayedNotALotSorter(KeySorter):
    def sort_key(self, game: GameInfo) -> int:
        return game.play_count


class SuggestedPlayersSorter(KeySorter):
    """Ranks games by how well the community rates them for a player count.

    Without a player count the collection is returned in its input order.
    """

    def __init__(self, player_count: int | None = None) -> None:
        self.player_count = player_count

    def sort(self, collection: Sequence[GameInfo]) -> list[GameInfo]:
        if self.player_count is None:
            return list(collection)
        return super().sort(collection)

    def sort_key(self, game: GameInfo) -> float:
        return -suggested_players_score(game, self.player_count)


class MultiSorter(Sorter):
    """Combines several sorters by summing each game's rank under each of them.

    Lower rank sums come first. Ties fall back to the rank given by the
    first sorter.
    """

    def __init__(self, inner_sorters: Sequence[Sorter]) -> None:
        self.inner_sorters = list(inner_sorters)

    def sort(self, collection: Sequence[GameInfo]) -> list[GameInfo]:
        if not self.inner_sorters:
            return list(collection)

        rank_maps = [
            {game.id: index for index, game in enumerate(sorter.sort(list(collection)))}
            for sorter in self.inner_sorters
        ]
        first_ranks = rank_maps[0]

        def combined_key(game: GameInfo) -> tuple[int, int]:
            return sum(ranks[game.id] for ranks in rank_maps), first_ranks[game.id]

        return sorted(collection, key=combined_key)


def average_user_rating(game: GameInfo) -> float | None:
    """Mean of the scored user ratings, None when nobody gave a score."""
    if not game.user_rating:
        return None
    scores = [rating for rating in game.user_rating.values() if rating]
    if not scores:
        return None
    return sum(scores) / len(scores)


def suggested_players_score(game: GameInfo, player_count: int | None) -> float:
    """Score the community votes for playing ``game`` with ``player_count`` players.

    Falls back to the open-ended "N+" tally. Games without votes score -inf.
    """
    if player_count is None or game.extended is None:
        return -math.inf
    suggestions = game.extended.suggested_number_of_players
    votes = suggestions.get(str(player_count)) or suggestions.get(ANY_PLAYER_COUNT)
    if votes is None or votes.total == 0:
        return -math.inf
    total = votes.total
    return (votes.best / total * 3) + (votes.recommended / total) - (votes.not_recommended / total * 2)


def _last_played_ordinal(game: GameInfo) -> int:
    last_played = game.last_played
    return last_played.toordinal() if last_played is not None else 0


SORTERS: dict[SortKey, Sorter] = {
    SortKey.ALPHABETIC: NameSorter(),
    SortKey.BGG_RATING: BggRatingSorter(),
    SortKey.NEW: NewSorter(),
    SortKey.OLD: OldSorter(),
    SortKey.USER_RATING: UserRatingSorter(),
    SortKey.WEIGHT_HEAVY: HeavySorter(),
    SortKey.WEIGHT_LIGHT: LightSorter(),
    SortKey.PLAYED_RECENTLY: RecentlyPlayedSorter(),
    SortKey.PLAYED_LONG_AGO: PlayedLongAgoSorter(),
    SortKey.PLAYED_A_LOT: PlayedALotSorter(),
    SortKey.PLAYED_NOT_A_LOT: PlayedNotALotSorter(),
}

DEFAULT_SORT_KEY = SortKey.BGG_RATING


def get_sorter(sort_option: SortOption | Sequence[SortOption] | str | None = None) -> Sorter:
    """Resolve a sort option, or a sequence of them, into a sorter.

    Args:
        sort_option: A SortKey (or its string value), a SuggestedPlayers
            option, a sequence of those for a multi-key sort, or None for
            the default BGG rating sort

    Raises:
        ValidationError: If a sort key is unknown
    """
    if isinstance(sort_option, (list, tuple)):
        return _resolve_sorter(tuple(_normalise(option) for option in sort_option))
    return _resolve_sorter(_normalise(sort_option))


def _normalise(sort_option: Any) -> SortOption | tuple[SortOption, ...]:
    if sort_option is None:
        return DEFAULT_SORT_KEY
    if isinstance(sort_option, (SortKey, SuggestedPlayers)):
        return sort_option
    if isinstance(sort_option, (list, tuple)):
        return tuple(_normalise(option) for option in sort_option)
    try:
        return SortKey(sort_option)
    except ValueError as e:
        raise ValidationError(
            f"Unknown sort option: {sort_option}",
            field="sort_option",
            value=sort_option,
            constraints=[f"one of {', '.join(key.value for key in SortKey)}"],
        ) from e


@lru_cache(maxsize=None)
def _resolve_sorter(sort_option: SortOption | tuple[SortOption, ...]) -> Sorter:
    if isinstance(sort_option, tuple):
        return MultiSorter([_resolve_sorter(option) for option in sort_option])
    if isinstance(sort_option, SuggestedPlayers):
        return SuggestedPlayersSorter(sort_option.number_of_players)
    return SORTERS[sort_option]
