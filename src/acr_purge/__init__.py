"""ACR Purge - Async retention and archive engine for container registries."""

__version__ = "0.1.0"

from .core.registry_client import RegistryClient
from .core.types import ArchiveRecord, PurgeOptions, PurgeResult, RegistryConfig
from .exceptions import (
    MetadataError,
    ParseError,
    PatternError,
    PurgeError,
    RegistryError,
    TransportError,
    ValidationError,
)
from .registry import purge, purge_dangling, purge_tags, unarchive

__all__ = [
    "RegistryClient",
    "ArchiveRecord",
    "PurgeOptions",
    "PurgeResult",
    "RegistryConfig",
    "purge",
    "purge_dangling",
    "purge_tags",
    "unarchive",
    "PurgeError",
    "ParseError",
    "PatternError",
    "ValidationError",
    "MetadataError",
    "RegistryError",
    "TransportError",
]
