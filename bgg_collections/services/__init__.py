"""Service layer for loading, merging, filtering and sorting collections."""

from .bgg_gateway import BggGatewayService
from .collection_loader import CollectionLoaderService, LoaderState
from .config import ConfigurationService, ValidationResult
from .errors import (
    AppError,
    ConfigurationError,
    ErrorCategory,
    ErrorHandlingService,
    ErrorSeverity,
    NetworkError,
    ParseError,
    StorageError,
    UserFriendlyError,
    ValidationError,
    get_error_service,
    handle_error,
)
from .filtering import FilterAndSortService, GameFilterer
from .gateway import CollectionGateway
from .http_client import HttpClientService
from .memo import Memo
from .merger import CollectionMerger
from .sorters import MultiSorter, Sorter, get_sorter
from .storage import CollectionCache, JsonFileStore, KeyValueStore, MemoryStore

__all__ = [
    "AppError",
    "BggGatewayService",
    "CollectionCache",
    "CollectionGateway",
    "CollectionLoaderService",
    "CollectionMerger",
    "ConfigurationError",
    "ConfigurationService",
    "ErrorCategory",
    "ErrorHandlingService",
    "ErrorSeverity",
    "FilterAndSortService",
    "GameFilterer",
    "HttpClientService",
    "JsonFileStore",
    "KeyValueStore",
    "LoaderState",
    "Memo",
    "MemoryStore",
    "MultiSorter",
    "NetworkError",
    "ParseError",
    "Sorter",
    "StorageError",
    "UserFriendlyError",
    "ValidationError",
    "ValidationResult",
    "get_error_service",
    "get_sorter",
    "handle_error",
]
