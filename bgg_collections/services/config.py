"""Configuration service for managing application settings."""

import json
from pathlib import Path

import structlog

from ..models import AppConfig, RetryDelays
from .bgg_gateway import BGG_BASE_URL
from .errors import ConfigurationError

log = structlog.stdlib.get_logger()

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "bgg-collections" / "config.json"
DEFAULT_CACHE_PATH = Path.home() / ".cache" / "bgg-collections" / "cache.json"


class ValidationResult:
    """Result of configuration validation."""

    def __init__(self, is_valid: bool, errors: list[str] | None = None) -> None:
        self.is_valid: bool = is_valid
        self.errors: list[str] = errors or []


class ConfigurationService:
    """Service for managing application configuration."""

    def __init__(self, config_path: Path | None = None) -> None:
        self.config_path: Path = config_path or DEFAULT_CONFIG_PATH
        log.debug("Configuration service initialized", config_path=str(self.config_path))

    def load_config(self) -> AppConfig:
        """Load configuration from file or return default configuration."""
        if not self.config_path.exists():
            log.info("Configuration file not found, using defaults")
            return self.get_default_config()

        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise TypeError(f"Expected a JSON object, got {type(data).__name__}")

            config = self._dict_to_config(data)
            validation_result = self.validate_config(config)

            if not validation_result.is_valid:
                log.warning("Invalid configuration loaded, using defaults", errors=validation_result.errors)
                return self.get_default_config()

            log.info("Configuration loaded successfully")
            return config

        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            log.error("Failed to load configuration, using defaults", error=str(e))
            return self.get_default_config()

    def save_config(self, config: AppConfig) -> None:
        """Save configuration to file.

        Raises:
            ConfigurationError: If the configuration is invalid
            OSError: If the file cannot be written
        """
        validation_result = self.validate_config(config)
        if not validation_result.is_valid:
            raise ConfigurationError(
                f"Invalid configuration: {', '.join(validation_result.errors)}",
                errors=validation_result.errors,
            )

        self.config_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            with open(self.config_path, 'w', encoding='utf-8') as f:
                json.dump(self._config_to_dict(config), f, indent=2, ensure_ascii=False)
            log.info("Configuration saved successfully")
        except OSError as e:
            log.error("Failed to save configuration", error=str(e))
            raise

    def validate_config(self, config: AppConfig) -> ValidationResult:
        """Validate configuration settings."""
        errors = []

        if not config.base_url.startswith(("http://", "https://")):
            errors.append("base_url must be an http(s) URL")

        for name in ("request_delay", "pending_retry_delay", "backoff_retry_delay", "extended_info_retry_delay", "cache_ttl"):
            value = getattr(config, name)
            if not isinstance(value, (int, float)) or value < 0:
                errors.append(f"{name} must be a non-negative number")

        if not isinstance(config.request_timeout, (int, float)) or config.request_timeout <= 0:
            errors.append("request_timeout must be a positive number")

        if not isinstance(config.concurrent_requests, int) or config.concurrent_requests < 1:
            errors.append("concurrent_requests must be a positive integer")
        elif config.concurrent_requests > 10:
            errors.append("concurrent_requests should not exceed 10")

        if not isinstance(config.chunk_size, int) or not 1 <= config.chunk_size <= 50:
            errors.append("chunk_size must be an integer between 1 and 50")

        valid_log_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if config.log_level not in valid_log_levels:
            errors.append(f"log_level must be one of: {', '.join(sorted(valid_log_levels))}")

        if config.cache_path is not None and not config.cache_path.is_absolute():
            errors.append("cache_path must be an absolute path")

        return ValidationResult(len(errors) == 0, errors)

    @staticmethod
    def retry_delays(config: AppConfig) -> RetryDelays:
        return RetryDelays(
            pending=config.pending_retry_delay,
            backoff=config.backoff_retry_delay,
            extended_info=config.extended_info_retry_delay,
        )

    def get_default_config(self) -> AppConfig:
        """Get default configuration."""
        return AppConfig(
            base_url=BGG_BASE_URL,
            request_delay=1.0,
            request_timeout=30.0,
            concurrent_requests=5,
            chunk_size=50,
            pending_retry_delay=1.0,
            backoff_retry_delay=10.0,
            extended_info_retry_delay=3.0,
            log_level="INFO",
            use_cache=True,
            cache_path=DEFAULT_CACHE_PATH,
            cache_ttl=300.0,
        )

    def _config_to_dict(self, config: AppConfig) -> dict[str, str | int | float | bool | None]:
        """Convert AppConfig to dictionary for JSON serialization."""
        return {
            "base_url": config.base_url,
            "request_delay": config.request_delay,
            "request_timeout": config.request_timeout,
            "concurrent_requests": config.concurrent_requests,
            "chunk_size": config.chunk_size,
            "pending_retry_delay": config.pending_retry_delay,
            "backoff_retry_delay": config.backoff_retry_delay,
            "extended_info_retry_delay": config.extended_info_retry_delay,
            "log_level": config.log_level,
            "use_cache": config.use_cache,
            "cache_path": str(config.cache_path) if config.cache_path is not None else None,
            "cache_ttl": config.cache_ttl,
        }

    def _dict_to_config(self, data: dict[str, object]) -> AppConfig:
        """Convert dictionary to AppConfig, filling missing keys with defaults."""
        defaults = self.get_default_config()

        def number(key: str, default: float) -> float:
            value = data.get(key, default)
            return float(value) if isinstance(value, (int, float)) and not isinstance(value, bool) else default

        def integer(key: str, default: int) -> int:
            value = data.get(key, default)
            return int(value) if isinstance(value, (int, float)) and not isinstance(value, bool) else default

        cache_path_raw = data.get("cache_path", str(defaults.cache_path))
        use_cache_raw = data.get("use_cache", True)

        return AppConfig(
            base_url=str(data.get("base_url") or defaults.base_url),
            request_delay=number("request_delay", defaults.request_delay),
            request_timeout=number("request_timeout", defaults.request_timeout),
            concurrent_requests=integer("concurrent_requests", defaults.concurrent_requests),
            chunk_size=integer("chunk_size", defaults.chunk_size),
            pending_retry_delay=number("pending_retry_delay", defaults.pending_retry_delay),
            backoff_retry_delay=number("backoff_retry_delay", defaults.backoff_retry_delay),
            extended_info_retry_delay=number("extended_info_retry_delay", defaults.extended_info_retry_delay),
            log_level=str(data.get("log_level") or defaults.log_level),
            use_cache=use_cache_raw if isinstance(use_cache_raw, bool) else True,
            cache_path=Path(str(cache_path_raw)) if cache_path_raw else None,
            cache_ttl=number("cache_ttl", defaults.cache_ttl),
        )
