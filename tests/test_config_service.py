"""Property-based tests for configuration service."""

import json
import tempfile
from dataclasses import replace
from pathlib import Path

import pytest
from hypothesis import given, strategies as st

from bgg_collections.models import AppConfig, RetryDelays
from bgg_collections.services import ConfigurationError, ConfigurationService


delays = st.floats(min_value=0.0, max_value=60.0, allow_nan=False, allow_infinity=False)
valid_log_levels = st.sampled_from(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])

valid_cache_paths = st.one_of(
    st.none(),
    st.builds(
        lambda x: Path.home() / ".cache" / x / "cache.json",
        st.text(min_size=1, max_size=30, alphabet=st.characters(whitelist_categories=("Lu", "Ll", "Nd")))
    ),
)

valid_config_strategy = st.builds(
    AppConfig,
    base_url=st.sampled_from(["https://boardgamegeek.com/xmlapi2", "http://localhost:8080/xmlapi2"]),
    request_delay=delays,
    request_timeout=st.floats(min_value=0.1, max_value=120.0, allow_nan=False, allow_infinity=False),
    concurrent_requests=st.integers(min_value=1, max_value=10),
    chunk_size=st.integers(min_value=1, max_value=50),
    pending_retry_delay=delays,
    backoff_retry_delay=delays,
    extended_info_retry_delay=delays,
    log_level=valid_log_levels,
    use_cache=st.booleans(),
    cache_path=valid_cache_paths,
    cache_ttl=delays,
)


@given(valid_config_strategy)
def test_configuration_round_trip(config: AppConfig) -> None:
    """For any valid configuration, saving it and reloading it preserves all values."""
    with tempfile.TemporaryDirectory() as temp_dir:
        config_path = Path(temp_dir) / "test_config.json"
        service = ConfigurationService(config_path)

        service.save_config(config)
        loaded_config = service.load_config()

        assert loaded_config == config


@given(valid_config_strategy)
def test_configuration_validation_accepts_valid(config: AppConfig) -> None:
    result = ConfigurationService().validate_config(config)

    assert result.is_valid
    assert result.errors == []


def create_invalid_config_strategy():
    """Valid configurations with exactly one setting broken."""
    base = ConfigurationService().get_default_config()
    return st.one_of(
        st.builds(lambda url: replace(base, base_url=url), st.sampled_from(["ftp://bgg", "boardgamegeek.com", ""])),
        st.builds(lambda d: replace(base, request_delay=d), st.floats(max_value=-0.01, allow_nan=False, allow_infinity=False)),
        st.builds(lambda d: replace(base, backoff_retry_delay=d), st.floats(max_value=-0.01, allow_nan=False, allow_infinity=False)),
        st.builds(lambda t: replace(base, request_timeout=t), st.floats(max_value=0.0, allow_nan=False, allow_infinity=False)),
        st.builds(lambda n: replace(base, concurrent_requests=n), st.one_of(st.integers(max_value=0), st.integers(min_value=11))),
        st.builds(lambda n: replace(base, chunk_size=n), st.one_of(st.integers(max_value=0), st.integers(min_value=51))),
        st.builds(
            lambda level: replace(base, log_level=level),
            st.text(min_size=1).filter(lambda x: x not in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]),
        ),
        st.just(replace(base, cache_path=Path("relative/cache.json"))),
    )


@given(create_invalid_config_strategy())
def test_configuration_validation_rejects_invalid(config: AppConfig) -> None:
    result = ConfigurationService().validate_config(config)

    assert not result.is_valid
    assert len(result.errors) > 0
    assert all(isinstance(error, str) for error in result.errors)


def test_save_rejects_invalid_configuration() -> None:
    with tempfile.TemporaryDirectory() as temp_dir:
        config_path = Path(temp_dir) / "config.json"
        service = ConfigurationService(config_path)
        invalid = replace(service.get_default_config(), chunk_size=0)

        with pytest.raises(ConfigurationError) as exc_info:
            service.save_config(invalid)

        assert exc_info.value.errors == ["chunk_size must be an integer between 1 and 50"]
        assert not config_path.exists()


def test_missing_file_gives_defaults() -> None:
    with tempfile.TemporaryDirectory() as temp_dir:
        service = ConfigurationService(Path(temp_dir) / "absent.json")

        assert service.load_config() == service.get_default_config()


def test_partial_file_fills_defaults() -> None:
    with tempfile.TemporaryDirectory() as temp_dir:
        config_path = Path(temp_dir) / "config.json"
        config_path.write_text(json.dumps({"concurrent_requests": 2, "cache_path": None}), encoding="utf-8")
        service = ConfigurationService(config_path)

        config = service.load_config()

        assert config.concurrent_requests == 2
        assert config.cache_path is None
        assert config.chunk_size == service.get_default_config().chunk_size


@pytest.mark.parametrize("content", ["{broken", "[1, 2, 3]", json.dumps({"chunk_size": 500})])
def test_unusable_file_falls_back_to_defaults(content: str) -> None:
    with tempfile.TemporaryDirectory() as temp_dir:
        config_path = Path(temp_dir) / "config.json"
        config_path.write_text(content, encoding="utf-8")
        service = ConfigurationService(config_path)

        assert service.load_config() == service.get_default_config()


def test_default_configuration_values() -> None:
    config = ConfigurationService().get_default_config()

    assert config.base_url == "https://boardgamegeek.com/xmlapi2"
    assert config.concurrent_requests == 5
    assert config.chunk_size == 50
    assert ConfigurationService.retry_delays(config) == RetryDelays(pending=1.0, backoff=10.0, extended_info=3.0)
