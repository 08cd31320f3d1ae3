"""Merging of several users' collections into one."""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace

import structlog

from ..models import GameInfo
from .memo import Memo

log = structlog.stdlib.get_logger()


@dataclass
class _MergedEntry:
    game: GameInfo
    owners: list[str]
    user_rating: dict[str, float | None] | None = field(default=None)


class CollectionMerger:
    """Merges multiple collections of game information.

    A single list is returned with one record per game id. Each record has
    its ``owners`` and ``user_rating`` fields updated to include every user
    owning it. Input records are never mutated.
    """

    def __init__(self) -> None:
        self._merge_memo: Memo[list[GameInfo]] = Memo(self._merge)

    def merge(self, collections_by_username: Mapping[str, Sequence[GameInfo]]) -> list[GameInfo]:
        """Merge the collections, keyed by username.

        Args:
            collections_by_username: Map between usernames and their collections

        Returns:
            Merged games in the order their ids were first encountered
        """
        return self._merge_memo(collections_by_username)

    def _merge(self, collections_by_username: Mapping[str, Sequence[GameInfo]]) -> list[GameInfo]:
        merged: dict[int, _MergedEntry] = {}

        for username, collection in collections_by_username.items():
            for game in collection:
                entry = merged.get(game.id)
                if entry is None:
                    merged[game.id] = _MergedEntry(
                        game=game,
                        owners=[username],
                        user_rating=dict(game.user_rating) if game.user_rating is not None else None,
                    )
                    continue

                if username not in entry.owners:
                    entry.owners.append(username)
                if game.user_rating:
                    if entry.user_rating is None:
                        entry.user_rating = {}
                    entry.user_rating.update(game.user_rating)

        log.debug(
            "Collections merged",
            usernames=list(collections_by_username),
            merged_games=len(merged),
        )

        return [
            replace(entry.game, owners=entry.owners, user_rating=entry.user_rating)
            for entry in merged.values()
        ]
