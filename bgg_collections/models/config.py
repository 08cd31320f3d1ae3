"""Configuration data models."""

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class AppConfig:
    """Application configuration settings."""
    base_url: str
    request_delay: float  # Minimum seconds between HTTP requests
    request_timeout: float
    concurrent_requests: int  # Initial width of the extended info fan-out
    chunk_size: int  # Games per extended info request
    pending_retry_delay: float
    backoff_retry_delay: float
    extended_info_retry_delay: float
    log_level: str
    use_cache: bool = True
    cache_path: Path | None = None
    cache_ttl: float = 300.0  # Seconds a fetched collection is reused


@dataclass(frozen=True)
class RetryDelays:
    """Seconds to wait before retrying a request that was not ready."""
    pending: float = 1.0
    backoff: float = 10.0
    extended_info: float = 3.0
