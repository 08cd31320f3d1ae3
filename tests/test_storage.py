"""Tests for the key-value stores and the versioned collection cache."""

import json
import tempfile
from pathlib import Path

import pytest

from bgg_collections.models import (
    BoardGameFamily,
    ExtendedGameInfo,
    GameInfo,
    NumberOfPlayersVotes,
)
from bgg_collections.services.storage import (
    COLLECTIONS_KEY,
    EXTRA_INFO_KEY,
    STORAGE_VERSION,
    STORAGE_VERSION_KEY,
    CollectionCache,
    JsonFileStore,
    MemoryStore,
    game_from_dict,
    game_to_dict,
)


def test_memory_store_get_set_remove() -> None:
    store = MemoryStore({"a": "1"})

    store.set("b", "2")
    store.remove("a")
    store.remove("missing")

    assert store.get("a") is None
    assert store.get("b") == "2"


def test_json_file_store_persists_between_instances() -> None:
    with tempfile.TemporaryDirectory() as temp_dir:
        path = Path(temp_dir) / "nested" / "cache.json"

        JsonFileStore(path).set("key", "value")

        assert JsonFileStore(path).get("key") == "value"
        assert json.loads(path.read_text(encoding="utf-8")) == {"key": "value"}
        assert not path.with_suffix(".json.tmp").exists()


def test_json_file_store_rejects_non_object_file() -> None:
    with tempfile.TemporaryDirectory() as temp_dir:
        path = Path(temp_dir) / "cache.json"
        path.write_text("[1, 2]", encoding="utf-8")

        with pytest.raises(ValueError):
            JsonFileStore(path).get("key")


def test_json_file_store_replaces_corrupt_file() -> None:
    with tempfile.TemporaryDirectory() as temp_dir:
        path = Path(temp_dir) / "cache.json"
        path.write_text("{broken", encoding="utf-8")
        store = JsonFileStore(path)

        with pytest.raises(ValueError):
            store.get("key")
        store.set("key", "value")

        assert store.get("key") == "value"
        assert json.loads(path.read_text(encoding="utf-8")) == {"key": "value"}


def test_cache_recovers_from_corrupt_file() -> None:
    with tempfile.TemporaryDirectory() as temp_dir:
        path = Path(temp_dir) / "cache.json"
        path.write_text("{broken", encoding="utf-8")
        cache = CollectionCache(JsonFileStore(path))

        assert cache.load_collections() == {}
        cache.mark_version()
        cache.store_collections({"A": [GameInfo(id=1, name="Azul")]})

        reopened = CollectionCache(JsonFileStore(path))
        assert reopened.load_collections() == {"A": [GameInfo(id=1, name="Azul")]}


def test_game_dict_drops_attachments() -> None:
    game = GameInfo(
        id=1,
        name="Brass",
        families=[BoardGameFamily("strategygames", "Strategy Game Rank", 1.0, 8.4)],
        owners=["A"],
        user_rating={"A": 9.0},
        extended=ExtendedGameInfo(game_id=1, weight=3.9),
    )

    data = game_to_dict(game)

    assert "extended" not in data
    assert "play_info" not in data
    assert game_from_dict(json.loads(json.dumps(data))) == GameInfo(
        id=1,
        name="Brass",
        families=[BoardGameFamily("strategygames", "Strategy Game Rank", 1.0, 8.4)],
        owners=["A"],
        user_rating={"A": 9.0},
    )


def test_cache_restores_collections_and_extended_info() -> None:
    store = MemoryStore({STORAGE_VERSION_KEY: STORAGE_VERSION})
    cache = CollectionCache(store)
    votes = {"2": NumberOfPlayersVotes("2", 1, 2, 3)}
    extended = {7: ExtendedGameInfo(game_id=7, weight=2.5, mechanics=["Dice Rolling"], suggested_number_of_players=votes)}

    cache.store_collections({"A": [GameInfo(id=7, name="Dice", user_rating={"A": None})]})
    cache.store_extended_info(extended)

    assert cache.load_collections() == {"A": [GameInfo(id=7, name="Dice", user_rating={"A": None})]}
    assert cache.load_extended_info() == extended


def test_cache_discards_entries_from_other_version() -> None:
    store = MemoryStore({
        STORAGE_VERSION_KEY: "1",
        COLLECTIONS_KEY: json.dumps({"A": []}),
        EXTRA_INFO_KEY: json.dumps({}),
    })
    cache = CollectionCache(store)

    assert cache.load_collections() == {}
    assert cache.load_extended_info() == {}
    assert store.get(COLLECTIONS_KEY) is None
    assert store.get(EXTRA_INFO_KEY) is None

    cache.mark_version()
    assert store.get(STORAGE_VERSION_KEY) == STORAGE_VERSION


def test_cache_ignores_corrupt_entries() -> None:
    store = MemoryStore({
        STORAGE_VERSION_KEY: STORAGE_VERSION,
        COLLECTIONS_KEY: "{not json",
        EXTRA_INFO_KEY: json.dumps({"5": {"weight": 2.0}}),
    })
    cache = CollectionCache(store)

    assert cache.load_collections() == {}
    assert cache.load_extended_info() == {}


def test_cache_survives_failing_store() -> None:
    class BrokenStore(MemoryStore):
        def set(self, key: str, value: str) -> None:
            raise OSError("disk full")

    cache = CollectionCache(BrokenStore())

    cache.store_collections({"A": []})
    cache.mark_version()
