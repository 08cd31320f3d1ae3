"""Filtering and the combined filter-and-sort pipeline."""

import math
from collections.abc import Sequence

import structlog

from ..models import FilterAndSortOptions, GameInfo, PlaytimeOption
from .memo import Memo
from .sorters import get_sorter

log = structlog.stdlib.get_logger()


class GameFilterer:
    """Narrows a collection by playtime window and player count."""

    def filter(self, collection: Sequence[GameInfo], options: FilterAndSortOptions) -> list[GameInfo]:
        """Return the games matching every filter in ``options``.

        Playtime is applied before player count. The input is not modified.
        """
        games = list(collection)
        if options.playtime is not None:
            games = self._filter_on_time(games, options.playtime)
        if options.player_count is not None:
            games = self._filter_on_player_count(games, options.player_count)
        return games

    @staticmethod
    def _filter_on_time(games: list[GameInfo], playtime: PlaytimeOption) -> list[GameInfo]:
        # The whole playtime range has to fit in the window, overlapping is not enough
        minimum = playtime.minimum if playtime.minimum is not None else 0
        maximum = playtime.maximum if playtime.maximum is not None else math.inf
        return [
            game for game in games
            if minimum <= (game.min_playtime or 0) and (game.max_playtime or math.inf) <= maximum
        ]

    @staticmethod
    def _filter_on_player_count(games: list[GameInfo], player_count: int) -> list[GameInfo]:
        return [
            game for game in games
            if game.min_players is not None
            and game.max_players is not None
            and game.min_players <= player_count <= game.max_players
        ]


class FilterAndSortService:
    """Filters and sorts a collection according to a set of options."""

    def __init__(self, filterer: GameFilterer | None = None) -> None:
        self.filterer: GameFilterer = filterer or GameFilterer()
        self._process_memo: Memo[list[GameInfo]] = Memo(self._process)

    def process(
        self,
        collection: Sequence[GameInfo],
        options: FilterAndSortOptions | None = None,
    ) -> list[GameInfo]:
        """Filter and sort a collection, returning a new list.

        Args:
            collection: Games to filter and sort
            options: How to filter and sort; defaults to no filtering and
                the BGG rating sort

        Returns:
            The filtered, sorted games
        """
        return self._process_memo(collection, options or FilterAndSortOptions())

    def _process(self, collection: Sequence[GameInfo], options: FilterAndSortOptions) -> list[GameInfo]:
        filtered = self.filterer.filter(list(collection), options)
        result = get_sorter(options.sort_option).sort(filtered)
        log.debug(
            "Collection filtered and sorted",
            input_games=len(collection),
            output_games=len(result),
            sort_option=str(options.sort_option),
        )
        return result
