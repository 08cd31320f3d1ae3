"""Collection loading service with retries, incremental merging and subscribers."""

import asyncio
from collections import deque
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field, replace
from typing import TypeVar

import structlog

from ..models import (
    ExtendedGameInfo,
    GameInfo,
    GamePlayInfo,
    LoadingKind,
    LoadingStatus,
    PlayRecord,
    Ready,
    RetryDelays,
    RetryLater,
    UserInfo,
)
from .gateway import CollectionGateway
from .memo import Memo
from .merger import CollectionMerger
from .storage import CollectionCache

log = structlog.stdlib.get_logger()

T = TypeVar("T")

GamesUpdateHandler = Callable[[list[GameInfo]], None]
LoadingUpdateHandler = Callable[[list[LoadingStatus]], None]


@dataclass
class LoaderState:
    """Mutable state owned by one loader.

    Maps are replaced, never mutated in place, so memoized derivations can
    compare them by identity.
    """
    current_names: list[str] = field(default_factory=list)
    collections: dict[str, list[GameInfo]] = field(default_factory=dict)
    extended_info: dict[int, ExtendedGameInfo] = field(default_factory=dict)
    plays: dict[str, list[PlayRecord]] = field(default_factory=dict)
    loading_info: list[LoadingStatus] = field(default_factory=list)


class CollectionLoaderService:
    """Loads, merges and enriches the collections of a set of users.

    Every remote fetch is retried until the gateway returns data: "not ready
    yet" and throttling are expected states of the remote source, not
    failures. Progress is published through two listener registries, one
    for the merged games and one for the loading status list.
    """

    def __init__(
        self,
        gateway: CollectionGateway,
        merger: CollectionMerger | None = None,
        cache: CollectionCache | None = None,
        retry_delays: RetryDelays | None = None,
        concurrent_requests: int = 5,
        chunk_size: int = 50,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the collection loader.

        Args:
            gateway: Remote source of collections, game info and plays
            merger: Merger combining the users' collections
            cache: Optional best-effort cache for collections and extended info
            retry_delays: Seconds to wait before retrying a request
            concurrent_requests: Initial number of extended info chunks in flight
            chunk_size: Games per extended info request
            sleep: Coroutine used to wait between retries
        """
        self.gateway = gateway
        self.merger = merger or CollectionMerger()
        self.cache = cache
        self.retry_delays = retry_delays or RetryDelays()
        self.concurrent_request_limit = max(concurrent_requests, 1)
        self.chunk_size = chunk_size
        self._sleep = sleep
        self.state = LoaderState()

        self._games_handlers: list[GamesUpdateHandler] = []
        self._loading_handlers: list[LoadingUpdateHandler] = []

        self._shown_collections_memo: Memo[dict[str, list[GameInfo]]] = Memo(self._get_shown_collections)
        self._extended_info_memo: Memo[list[GameInfo]] = Memo(self._attach_extended_info)
        self._play_info_memo: Memo[list[GameInfo]] = Memo(self._attach_play_info)

        if self.cache is not None:
            self.state.collections = self.cache.load_collections()
            self.state.extended_info = self.cache.load_extended_info()
            self.cache.mark_version()

        log.info(
            "Collection loader initialized",
            cached_users=len(self.state.collections),
            cached_extended_info=len(self.state.extended_info),
            concurrent_requests=self.concurrent_request_limit,
            chunk_size=chunk_size,
        )

    # Subscriptions

    def on_games_update(self, handler: GamesUpdateHandler) -> None:
        self._games_handlers.append(handler)

    def on_loading_update(self, handler: LoadingUpdateHandler) -> None:
        self._loading_handlers.append(handler)

    def get_loading_info(self) -> list[LoadingStatus]:
        return list(self.state.loading_info)

    # Loading operations

    async def validate_user(self, username: str) -> UserInfo:
        """Check whether a username exists on the remote source."""
        return await self.gateway.fetch_user_validity(username)

    async def load_collections(self, usernames: Sequence[str]) -> list[list[GameInfo]]:
        """Load the collections of ``usernames`` and make them the current set.

        Collections are fetched concurrently; each one becomes visible to
        subscribers as soon as it arrives.

        Args:
            usernames: Users whose collections to load

        Returns:
            The collections, in the order of ``usernames``
        """
        self.state.current_names = list(usernames)
        log.info("Loading collections", usernames=self.state.current_names)
        self._inform_games_handlers()
        return list(await asyncio.gather(*(self._load_collection(username) for username in usernames)))

    async def load_extended_info(self) -> list[list[ExtendedGameInfo]]:
        """Load extended info for every shown game that does not have it yet.

        Unknown games are requested in chunks of ``chunk_size``. At most
        ``concurrent_request_limit`` chunks are in flight; throttling by the
        remote source lowers that limit for the chunks dispatched afterwards.

        Returns:
            The extended info received, one list per chunk
        """
        fetching = {
            entry.game.id for entry in self.state.loading_info
            if entry.kind == LoadingKind.GAME and entry.game is not None
        }
        unknown_games = [
            game for game in self.get_all_games_plus()
            if game.id not in self.state.extended_info and game.id not in fetching
        ]
        if not unknown_games:
            log.debug("No games without extended info")
            return []

        new_entries = [LoadingStatus(kind=LoadingKind.GAME, is_loading=False, game=game) for game in unknown_games]
        self.state.loading_info = new_entries + self.state.loading_info
        self._inform_loading_handlers()

        chunks = self.chunk(unknown_games, self.chunk_size)
        log.info("Loading extended info", games=len(unknown_games), chunks=len(chunks))

        results: list[list[ExtendedGameInfo]] = [[] for _ in chunks]
        queued = deque(enumerate(chunks))
        in_flight: dict[asyncio.Task[list[ExtendedGameInfo]], int] = {}
        try:
            while queued or in_flight:
                while queued and len(in_flight) < self.concurrent_request_limit:
                    index, games = queued.popleft()
                    in_flight[asyncio.create_task(self._load_chunk(games))] = index
                done, _ = await asyncio.wait(set(in_flight), return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    results[in_flight.pop(task)] = task.result()
        finally:
            for task in in_flight:
                task.cancel()
            unfinished = {game.id for _, games in queued for game in games}
            unfinished |= {game.id for index in in_flight.values() for game in chunks[index]}
            if unfinished:
                self._remove_games(unfinished)
                self._inform_loading_handlers()

        log.info("Extended info loaded", games=sum(len(result) for result in results))
        return results

    async def load_plays(self) -> list[list[PlayRecord]]:
        """Load the play history of every current user, concurrently.

        Returns:
            The plays, in the order of the current usernames
        """
        usernames = list(self.state.current_names)
        log.info("Loading plays", usernames=usernames)
        return list(await asyncio.gather(*(self._load_plays(username) for username in usernames)))

    @staticmethod
    def chunk(items: Sequence[T], chunk_size: int) -> list[list[T]]:
        """Split ``items`` into lists of ``chunk_size``; the last may be shorter."""
        if chunk_size < 1:
            raise ValueError("chunk_size must be a positive integer")
        items = list(items)
        return [items[start:start + chunk_size] for start in range(0, len(items), chunk_size)]

    # Derived state

    def get_all_games_plus(self) -> list[GameInfo]:
        """Merged games of the current users with extended and play info attached."""
        names = tuple(self.state.current_names)
        shown = self._shown_collections_memo(names, tuple(self.state.collections.get(name) for name in names))
        merged = self.merger.merge(shown)
        with_extended = self._extended_info_memo(merged, self.state.extended_info)
        return self._play_info_memo(names, with_extended, tuple(self.state.plays.get(name) for name in names))

    @staticmethod
    def _get_shown_collections(
        names: tuple[str, ...],
        collections: tuple[list[GameInfo] | None, ...],
    ) -> dict[str, list[GameInfo]]:
        return {name: games for name, games in zip(names, collections) if games is not None}

    @staticmethod
    def _attach_extended_info(games: list[GameInfo], extended_info: dict[int, ExtendedGameInfo]) -> list[GameInfo]:
        return [
            replace(game, extended=extended_info[game.id]) if game.id in extended_info else game
            for game in games
        ]

    @staticmethod
    def _attach_play_info(
        names: tuple[str, ...],
        games: list[GameInfo],
        user_plays: tuple[list[PlayRecord] | None, ...],
    ) -> list[GameInfo]:
        if all(plays is None for plays in user_plays):
            return games

        plays_by_game: dict[int, list[PlayRecord]] = {}
        for name, plays in zip(names, user_plays):
            for play in plays or []:
                plays_by_game.setdefault(play.game_id, []).append(replace(play, played_by=name))

        result = []
        for game in games:
            plays = plays_by_game.get(game.id, [])
            play_info = GamePlayInfo(
                plays=plays,
                last_played=max((play.date for play in plays), default=None),
                time_played_minutes=sum(play.length or 0 for play in plays),
            )
            result.append(replace(game, play_info=play_info))
        return result

    # Internals

    async def _load_collection(self, username: str) -> list[GameInfo]:
        games = await self._load_user_data_with_retry(LoadingKind.COLLECTION, username, self.gateway.fetch_user_collection)
        self.state.collections = {**self.state.collections, username: games}
        if self.cache is not None:
            self.cache.store_collections(self.state.collections)
        log.info("Collection loaded", username=username, games=len(games))
        self._inform_games_handlers()
        return games

    async def _load_plays(self, username: str) -> list[PlayRecord]:
        plays = await self._load_user_data_with_retry(LoadingKind.PLAYS, username, self.gateway.fetch_plays)
        self.state.plays = {**self.state.plays, username: plays}
        log.info("Plays loaded", username=username, plays=len(plays))
        self._inform_games_handlers()
        return plays

    async def _load_user_data_with_retry(
        self,
        kind: LoadingKind,
        username: str,
        fetch: Callable[[str], Awaitable[Ready[T] | RetryLater]],
    ) -> list[T]:
        self._set_loading(LoadingStatus(kind=kind, is_loading=True, username=username))
        self._inform_loading_handlers()

        attempt = 0
        while True:
            attempt += 1
            result = await fetch(username)
            if isinstance(result, Ready):
                self._remove_loading(kind, username)
                self._inform_loading_handlers()
                return list(result.items)

            delay = self.retry_delays.backoff if result.backoff else self.retry_delays.pending
            self._set_loading(LoadingStatus(kind=kind, is_loading=True, username=username, retry_info=result))
            self._inform_loading_handlers()
            log.info(
                "Request not ready, retrying",
                kind=kind.value,
                username=username,
                attempt=attempt,
                delay=delay,
                backoff=result.backoff,
                error=result.error,
            )
            await self._sleep(delay)

    async def _load_chunk(self, games: list[GameInfo]) -> list[ExtendedGameInfo]:
        infos = await self._load_games_with_retry(games)
        received = {info.game_id: info for info in infos}
        missing = [game.id for game in games if game.id not in received]
        if missing:
            log.warning("Extended info missing from response", game_ids=missing)
        self.state.extended_info = {**self.state.extended_info, **received}
        if self.cache is not None:
            self.cache.store_extended_info(self.state.extended_info)
        self._inform_games_handlers()
        return infos

    async def _load_games_with_retry(self, games: list[GameInfo]) -> list[ExtendedGameInfo]:
        game_ids = [game.id for game in games]
        self._mark_games(set(game_ids), retry_info=None)
        self._inform_loading_handlers()

        attempt = 0
        while True:
            attempt += 1
            result = await self.gateway.fetch_extended_info(game_ids)
            if isinstance(result, Ready):
                self._remove_games(set(game_ids))
                self._inform_loading_handlers()
                return list(result.items)

            if result.backoff:
                self.concurrent_request_limit = max(self.concurrent_request_limit - 1, 1)
                delay = self.retry_delays.backoff
            else:
                delay = self.retry_delays.extended_info
            self._mark_games(set(game_ids), retry_info=result)
            self._inform_loading_handlers()
            log.info(
                "Extended info not ready, retrying",
                games=len(game_ids),
                attempt=attempt,
                delay=delay,
                backoff=result.backoff,
                concurrent_request_limit=self.concurrent_request_limit,
                error=result.error,
            )
            await self._sleep(delay)

    def _mark_games(self, game_ids: set[int], retry_info: RetryLater | None) -> None:
        self.state.loading_info = [
            replace(entry, is_loading=True, retry_info=retry_info)
            if entry.kind == LoadingKind.GAME and entry.game is not None and entry.game.id in game_ids
            else entry
            for entry in self.state.loading_info
        ]

    def _remove_games(self, game_ids: set[int]) -> None:
        self.state.loading_info = [
            entry for entry in self.state.loading_info
            if not (entry.kind == LoadingKind.GAME and entry.game is not None and entry.game.id in game_ids)
        ]

    def _set_loading(self, status: LoadingStatus) -> None:
        """Replace the entry tracking the same user in place, or append it."""
        entries = list(self.state.loading_info)
        for index, entry in enumerate(entries):
            if entry.kind == status.kind and entry.username == status.username:
                entries[index] = status
                break
        else:
            entries.append(status)
        self.state.loading_info = entries

    def _remove_loading(self, kind: LoadingKind, username: str) -> None:
        self.state.loading_info = [entry for entry in self.state.loading_info if not entry.matches(kind, username)]

    def _inform_games_handlers(self) -> None:
        if not self._games_handlers:
            return
        games = self.get_all_games_plus()
        for handler in self._games_handlers:
            handler(games)

    def _inform_loading_handlers(self) -> None:
        loading_info = self.get_loading_info()
        for handler in self._loading_handlers:
            handler(loading_info)
