"""Best-effort local cache of collections and extended game info."""

import json
from collections.abc import Mapping, Sequence
from dataclasses import asdict
from pathlib import Path
from typing import Any, Protocol

import structlog

from ..models import BoardGameFamily, ExtendedGameInfo, GameInfo, NumberOfPlayersVotes
from .errors import handle_error

log = structlog.stdlib.get_logger()

STORAGE_VERSION = "2"
COLLECTIONS_KEY = "collections"
EXTRA_INFO_KEY = "extrainfo"
STORAGE_VERSION_KEY = "storageVersion"


class KeyValueStore(Protocol):
    """String key-value store used for the cache."""

    def get(self, key: str) -> str | None:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...


class MemoryStore:
    """In-memory key-value store."""

    def __init__(self, initial: Mapping[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStore:
    """Key-value store kept in a single JSON file.

    Writes go to a temporary file which then replaces the original, so a
    crash never leaves a half-written cache behind.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._data: dict[str, str] | None = None
        log.debug("JSON file store initialized", path=str(path))

    def get(self, key: str) -> str | None:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def remove(self, key: str) -> None:
        data = self._load()
        if data.pop(key, None) is not None:
            self._save(data)

    def _load(self) -> dict[str, str]:
        if self._data is None:
            if self.path.exists():
                try:
                    with open(self.path, "r", encoding="utf-8") as f:
                        raw = json.load(f)
                    if not isinstance(raw, dict):
                        raise ValueError(f"Expected JSON object in {self.path}, got {type(raw).__name__}")
                except ValueError:
                    # Start over; the next write replaces the unreadable file.
                    log.warning("Unreadable cache file, starting empty", path=str(self.path))
                    self._data = {}
                    raise
                self._data = {str(k): str(v) for k, v in raw.items()}
            else:
                self._data = {}
        return self._data

    def _save(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False)
            temp_path.replace(self.path)
        except OSError:
            if temp_path.exists():
                temp_path.unlink()
            raise


class CollectionCache:
    """Versioned cache of the collection map and the extended info map.

    Every operation is best-effort: failures of the underlying store are
    reported through the error service and otherwise ignored.
    """

    def __init__(self, store: KeyValueStore, version: str = STORAGE_VERSION) -> None:
        self.store = store
        self.version = version

    def load_collections(self) -> dict[str, list[GameInfo]]:
        raw = self._load(COLLECTIONS_KEY)
        if not isinstance(raw, dict):
            return {}
        try:
            return {
                str(username): [game_from_dict(game) for game in games]
                for username, games in raw.items()
            }
        except (KeyError, TypeError, ValueError) as e:
            handle_error(e, "load_collections", "CollectionCache", {"key": COLLECTIONS_KEY})
            return {}

    def load_extended_info(self) -> dict[int, ExtendedGameInfo]:
        raw = self._load(EXTRA_INFO_KEY)
        if not isinstance(raw, dict):
            return {}
        try:
            return {int(game_id): extended_info_from_dict(info) for game_id, info in raw.items()}
        except (KeyError, TypeError, ValueError) as e:
            handle_error(e, "load_extended_info", "CollectionCache", {"key": EXTRA_INFO_KEY})
            return {}

    def store_collections(self, collections: Mapping[str, Sequence[GameInfo]]) -> None:
        self._store(COLLECTIONS_KEY, {
            username: [game_to_dict(game) for game in games]
            for username, games in collections.items()
        })

    def store_extended_info(self, extended_info: Mapping[int, ExtendedGameInfo]) -> None:
        self._store(EXTRA_INFO_KEY, {str(game_id): asdict(info) for game_id, info in extended_info.items()})

    def mark_version(self) -> None:
        try:
            self.store.set(STORAGE_VERSION_KEY, self.version)
        except (OSError, ValueError) as e:
            handle_error(e, "mark_version", "CollectionCache", {"key": STORAGE_VERSION_KEY})

    def _load(self, key: str) -> Any:
        try:
            if self.store.get(STORAGE_VERSION_KEY) != self.version:
                log.info("Discarding cache from another storage version", key=key)
                self.store.remove(key)
                return None
            value = self.store.get(key)
            if value is None:
                return None
            return json.loads(value)
        except (OSError, ValueError) as e:
            handle_error(e, "load_cache", "CollectionCache", {"key": key})
            return None

    def _store(self, key: str, value: Any) -> None:
        try:
            self.store.set(key, json.dumps(value))
            log.debug("Cache entry stored", key=key)
        except (OSError, TypeError, ValueError) as e:
            handle_error(e, "store_cache", "CollectionCache", {"key": key})


def game_to_dict(game: GameInfo) -> dict[str, Any]:
    """Serialize the collection part of a game; attachments are not cached here."""
    data = asdict(game)
    data.pop("extended")
    data.pop("play_info")
    return data


def game_from_dict(data: dict[str, Any]) -> GameInfo:
    return GameInfo(
        id=int(data["id"]),
        name=str(data["name"]),
        average_rating=float(data.get("average_rating") or 0.0),
        thumbnail_url=data.get("thumbnail_url"),
        image_url=data.get("image_url"),
        year_published=data.get("year_published"),
        min_players=data.get("min_players"),
        max_players=data.get("max_players"),
        min_playtime=data.get("min_playtime"),
        max_playtime=data.get("max_playtime"),
        playing_time=data.get("playing_time"),
        families=[BoardGameFamily(**family) for family in data.get("families") or []],
        owners=data.get("owners"),
        user_rating=data.get("user_rating"),
    )


def extended_info_from_dict(data: dict[str, Any]) -> ExtendedGameInfo:
    return ExtendedGameInfo(
        game_id=int(data["game_id"]),
        description=data.get("description"),
        weight=data.get("weight"),
        mechanics=list(data.get("mechanics") or []),
        categories=list(data.get("categories") or []),
        suggested_number_of_players={
            str(count): NumberOfPlayersVotes(**votes)
            for count, votes in (data.get("suggested_number_of_players") or {}).items()
        },
    )
