"""Registry access layer: configuration, HTTP session and client."""

from .registry_client import RegistryClient
from .types import PurgeOptions, RegistryConfig

__all__ = ["RegistryClient", "PurgeOptions", "RegistryConfig"]
