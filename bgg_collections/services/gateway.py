"""Contract of the remote source the collection loader pulls from."""

from collections.abc import Sequence
from typing import Protocol

from ..models import ExtendedGameInfo, GameInfo, PlayRecord, Ready, RetryLater, UserInfo


class CollectionGateway(Protocol):
    """Fetches raw collection, user, game and plays data.

    Every fetch either returns ``Ready`` data or ``RetryLater``; transport
    and parse failures are reported as ``RetryLater`` with an error message,
    never raised.
    """

    async def fetch_user_collection(self, username: str) -> Ready[GameInfo] | RetryLater:
        ...

    async def fetch_user_validity(self, username: str) -> UserInfo:
        ...

    async def fetch_extended_info(self, game_ids: Sequence[int]) -> Ready[ExtendedGameInfo] | RetryLater:
        ...

    async def fetch_plays(self, username: str) -> Ready[PlayRecord] | RetryLater:
        ...
